"""Schema introspection and mutation handles."""

from indexer_agent.schema.base import (
    ColumnDescriptor,
    ColumnNotFoundError,
    ColumnSpec,
    DuplicateColumnError,
    SchemaError,
    SchemaHandle,
    TableDescriptor,
    TableNotFoundError,
)
from indexer_agent.schema.memory import InMemorySchemaHandle
from indexer_agent.schema.sqlalchemy_handle import SQLAlchemySchemaHandle

__all__ = [
    # Capability
    "SchemaHandle",
    "ColumnDescriptor",
    "ColumnSpec",
    "TableDescriptor",
    # Errors
    "SchemaError",
    "TableNotFoundError",
    "ColumnNotFoundError",
    "DuplicateColumnError",
    # Implementations
    "InMemorySchemaHandle",
    "SQLAlchemySchemaHandle",
]
