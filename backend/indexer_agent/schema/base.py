"""Schema introspection and mutation capability.

Migration steps never talk to a connection directly. They receive a
SchemaHandle that can list tables, describe a table's columns and apply
column-level DDL, so a step can be run against a live database or an
in-memory store with the same code.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncContextManager, Optional

from sqlalchemy.types import TypeEngine


class SchemaError(Exception):
    """Base exception for schema handle operations."""

    pass


class TableNotFoundError(SchemaError):
    """Raised when a table doesn't exist."""

    pass


class ColumnNotFoundError(SchemaError):
    """Raised when a column doesn't exist on a table."""

    pass


class DuplicateColumnError(SchemaError):
    """Raised when adding or renaming onto a column name already in use."""

    pass


@dataclass(frozen=True)
class TableDescriptor:
    """Whether a named table exists in the store."""

    name: str
    exists: bool


@dataclass(frozen=True)
class ColumnDescriptor:
    """Metadata for one column as reported by the store.

    ``default`` is the stored default value (``group``, not the SQL literal
    ``'group'``), or the expression text when the default is computed.
    """

    name: str
    type: TypeEngine
    nullable: bool = True
    primary_key: bool = False
    default: Optional[Any] = None


@dataclass(frozen=True)
class ColumnSpec:
    """Definition of a column to add.

    Attributes:
        type: Column type. Restricted value sets are expressed with a named
            ``sqlalchemy.Enum``, which PostgreSQL stores as a native enum type.
            Backends without one store the values as plain strings.
        primary_key: Whether the column joins the table's primary key
        nullable: Whether NULL is allowed (primary key columns never are)
        default: Server-side default applied to existing and new rows
    """

    type: TypeEngine
    primary_key: bool = False
    nullable: bool = True
    default: Optional[str] = None

    @property
    def is_nullable(self) -> bool:
        return self.nullable and not self.primary_key


class SchemaHandle(ABC):
    """Abstract base class for schema operations.

    Every method is one round-trip to the backing store. Implementations must
    report the live structure on each call and never cache it, since another
    step (or a previous partial run) may have changed it.
    """

    @abstractmethod
    async def list_tables(self) -> set[str]:
        """List the names of all tables in the store."""
        pass

    @abstractmethod
    async def describe_table(self, table: str) -> dict[str, ColumnDescriptor]:
        """Describe the columns of a table.

        Args:
            table: Table name

        Returns:
            Mapping of column name to its descriptor

        Raises:
            TableNotFoundError: If the table doesn't exist
        """
        pass

    @abstractmethod
    async def add_column(self, table: str, column: str, spec: ColumnSpec) -> None:
        """Add a column to a table.

        Args:
            table: Table name
            column: Name of the new column
            spec: Type, key membership, nullability and default
        """
        pass

    @abstractmethod
    async def rename_column(self, table: str, old_name: str, new_name: str) -> None:
        """Rename a column, keeping its type and constraints."""
        pass

    @abstractmethod
    async def remove_column(self, table: str, column: str) -> None:
        """Drop a column from a table."""
        pass

    @abstractmethod
    def transaction(self) -> AsyncContextManager["SchemaHandle"]:
        """Open a transaction scope.

        Changes made inside the scope are undone when it exits with an
        exception, which is then re-raised unchanged. On normal exit they are
        kept as part of the enclosing unit of work. Committing that is up to
        whoever owns the connection, as ``get_schema_handle`` does.
        """
        pass

    async def describe_existence(self, table: str) -> TableDescriptor:
        """Check whether a table exists."""
        tables = await self.list_tables()
        return TableDescriptor(name=table, exists=table in tables)
