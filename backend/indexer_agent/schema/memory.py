"""In-memory schema handle.

Holds table definitions in process memory and applies the same column
operations as a database-backed handle, including transactional rollback.
Useful for dry runs of a migration step and for tests.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import AsyncIterator, Iterable, Optional

from indexer_agent.schema.base import (
    ColumnDescriptor,
    ColumnNotFoundError,
    ColumnSpec,
    DuplicateColumnError,
    SchemaHandle,
    TableNotFoundError,
)

logger = logging.getLogger(__name__)

Tables = dict[str, dict[str, ColumnDescriptor]]


class InMemorySchemaHandle(SchemaHandle):
    """Schema handle backed by a dictionary of tables.

    Attributes:
        mutations: Number of DDL operations applied (rolled back ones included)
    """

    def __init__(self, tables: Optional[dict[str, Iterable[ColumnDescriptor]]] = None):
        self._tables: Tables = {}
        self._failures: dict[str, Exception] = {}
        self.mutations = 0
        for name, columns in (tables or {}).items():
            self.create_table(name, columns)

    def create_table(self, name: str, columns: Iterable[ColumnDescriptor]) -> None:
        """Create a table outright (seeding helper, not a migration operation)."""
        self._tables[name] = {column.name: column for column in columns}

    def fail_on(self, operation: str, error: Exception) -> None:
        """Make the next call to ``operation`` raise ``error``.

        Args:
            operation: Method name, e.g. ``"rename_column"``
            error: Exception to raise
        """
        self._failures[operation] = error

    def _check_failure(self, operation: str) -> None:
        error = self._failures.pop(operation, None)
        if error is not None:
            raise error

    def _get_table(self, table: str) -> dict[str, ColumnDescriptor]:
        try:
            return self._tables[table]
        except KeyError:
            raise TableNotFoundError(f"Table not found: {table}") from None

    async def list_tables(self) -> set[str]:
        self._check_failure("list_tables")
        return set(self._tables)

    async def describe_table(self, table: str) -> dict[str, ColumnDescriptor]:
        self._check_failure("describe_table")
        return dict(self._get_table(table))

    async def add_column(self, table: str, column: str, spec: ColumnSpec) -> None:
        self._check_failure("add_column")
        columns = self._get_table(table)
        if column in columns:
            raise DuplicateColumnError(f"Column {column} already exists on {table}")

        self.mutations += 1
        columns[column] = ColumnDescriptor(
            name=column,
            type=spec.type,
            nullable=spec.is_nullable,
            primary_key=spec.primary_key,
            default=spec.default,
        )

    async def rename_column(self, table: str, old_name: str, new_name: str) -> None:
        self._check_failure("rename_column")
        columns = self._get_table(table)
        if old_name not in columns:
            raise ColumnNotFoundError(f"Column {old_name} not found on {table}")
        if new_name in columns:
            raise DuplicateColumnError(f"Column {new_name} already exists on {table}")

        self.mutations += 1
        # Rebuild to keep column order stable
        self._tables[table] = {
            (new_name if name == old_name else name): (
                replace(descriptor, name=new_name) if name == old_name else descriptor
            )
            for name, descriptor in columns.items()
        }

    async def remove_column(self, table: str, column: str) -> None:
        self._check_failure("remove_column")
        columns = self._get_table(table)
        if column not in columns:
            raise ColumnNotFoundError(f"Column {column} not found on {table}")

        self.mutations += 1
        del columns[column]

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["InMemorySchemaHandle"]:
        snapshot = {name: dict(columns) for name, columns in self._tables.items()}
        try:
            yield self
        except BaseException:
            logger.debug("Rolling back in-memory schema transaction")
            self._tables = snapshot
            raise
