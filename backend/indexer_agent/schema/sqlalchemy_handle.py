"""Schema handle backed by a live SQLAlchemy connection.

Introspection goes through ``sqlalchemy.inspect`` and DDL through Alembic's
``Operations`` API, both run against the sync side of an ``AsyncConnection``
so that each handle method is a single awaited round-trip.
"""

import logging
import re
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import sqlalchemy as sa
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy.dialects import postgresql
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import AsyncConnection

from indexer_agent.schema.base import (
    ColumnDescriptor,
    ColumnSpec,
    SchemaHandle,
    TableNotFoundError,
)

logger = logging.getLogger(__name__)

# A quoted literal, optionally followed by a PostgreSQL cast such as ::"enum_x"
_QUOTED_DEFAULT = re.compile(r"^'((?:[^']|'')*)'(?:::.+)?$", re.DOTALL)


class SQLAlchemySchemaHandle(SchemaHandle):
    """Schema handle over an async SQLAlchemy connection.

    The handle does not own the connection: committing or rolling back the
    outermost transaction is left to whoever opened it.

    Attributes:
        connection: Connection the handle introspects and alters
        schema: Database schema holding the tables (None = default schema)
    """

    def __init__(self, connection: AsyncConnection, schema: Optional[str] = None):
        self.connection = connection
        self.schema = schema

    async def list_tables(self) -> set[str]:
        def _list(conn: Connection) -> set[str]:
            return set(sa.inspect(conn).get_table_names(schema=self.schema))

        return await self.connection.run_sync(_list)

    async def describe_table(self, table: str) -> dict[str, ColumnDescriptor]:
        def _describe(conn: Connection) -> dict[str, ColumnDescriptor]:
            inspector = sa.inspect(conn)
            if not inspector.has_table(table, schema=self.schema):
                raise TableNotFoundError(f"Table not found: {table}")

            key_columns = set(self._primary_key_columns(conn, table))
            return {
                column["name"]: ColumnDescriptor(
                    name=column["name"],
                    type=column["type"],
                    nullable=column["nullable"],
                    primary_key=column["name"] in key_columns,
                    default=_server_default_value(column.get("default")),
                )
                for column in inspector.get_columns(table, schema=self.schema)
            }

        return await self.connection.run_sync(_describe)

    async def add_column(self, table: str, column: str, spec: ColumnSpec) -> None:
        def _add(conn: Connection) -> None:
            ops = _operations(conn)
            # Batch mode rebuilds the table from the column flags, which must
            # agree with the recreated key constraint
            rebuilds_key = spec.primary_key and conn.dialect.name == "sqlite"
            new_column = sa.Column(
                column,
                self._prepare_type(conn, spec.type),
                primary_key=rebuilds_key,
                nullable=spec.is_nullable,
                server_default=spec.default,
            )

            if not spec.primary_key:
                ops.add_column(table, new_column, schema=self.schema)
                return

            key_columns = self._primary_key_columns(conn, table) + [column]
            if rebuilds_key:
                with ops.batch_alter_table(
                    table, schema=self.schema, recreate="always"
                ) as batch:
                    batch.add_column(new_column)
                    batch.create_primary_key(self._primary_key_name(conn, table), key_columns)
            else:
                ops.add_column(table, new_column, schema=self.schema)
                self._replace_primary_key(ops, conn, table, key_columns)

        logger.debug(f"Adding column {column} to {table}")
        await self.connection.run_sync(_add)

    async def rename_column(self, table: str, old_name: str, new_name: str) -> None:
        def _rename(conn: Connection) -> None:
            _operations(conn).alter_column(
                table, old_name, new_column_name=new_name, schema=self.schema
            )

        logger.debug(f"Renaming column {table}.{old_name} to {new_name}")
        await self.connection.run_sync(_rename)

    async def remove_column(self, table: str, column: str) -> None:
        def _remove(conn: Connection) -> None:
            ops = _operations(conn)
            column_types = {
                c["name"]: c["type"]
                for c in sa.inspect(conn).get_columns(table, schema=self.schema)
            }
            key_columns = self._primary_key_columns(conn, table)

            if column not in key_columns:
                ops.drop_column(table, column, schema=self.schema)
            elif conn.dialect.name == "sqlite":
                remaining = [c for c in key_columns if c != column]
                with ops.batch_alter_table(
                    table, schema=self.schema, recreate="always"
                ) as batch:
                    batch.drop_column(column)
                    if remaining:
                        batch.create_primary_key(
                            self._primary_key_name(conn, table), remaining
                        )
            else:
                remaining = [c for c in key_columns if c != column]
                name = self._primary_key_name(conn, table)
                # PostgreSQL drops the key constraint together with the column
                ops.drop_column(table, column, schema=self.schema)
                if remaining:
                    ops.create_primary_key(name, table, remaining, schema=self.schema)

            self._drop_type(conn, column_types.get(column))

        logger.debug(f"Removing column {column} from {table}")
        await self.connection.run_sync(_remove)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["SQLAlchemySchemaHandle"]:
        # A SAVEPOINT autobegins the outer transaction when none is open yet
        async with self.connection.begin_nested():
            yield self

    def _primary_key_columns(self, conn: Connection, table: str) -> list[str]:
        constraint = sa.inspect(conn).get_pk_constraint(table, schema=self.schema)
        return list(constraint.get("constrained_columns") or [])

    def _primary_key_name(self, conn: Connection, table: str) -> str:
        constraint = sa.inspect(conn).get_pk_constraint(table, schema=self.schema)
        return constraint.get("name") or f"{table}_pkey"

    def _replace_primary_key(
        self, ops: Operations, conn: Connection, table: str, columns: list[str]
    ) -> None:
        constraint = sa.inspect(conn).get_pk_constraint(table, schema=self.schema)
        name = constraint.get("name") or f"{table}_pkey"
        if constraint.get("constrained_columns"):
            ops.drop_constraint(name, table, type_="primary", schema=self.schema)
        ops.create_primary_key(name, table, columns, schema=self.schema)

    def _prepare_type(self, conn: Connection, column_type: sa.types.TypeEngine):
        """Create named enum types up front on PostgreSQL.

        ``ADD COLUMN`` does not emit ``CREATE TYPE``, so the type is created
        separately and the column refers to it without creating it again.
        """
        if conn.dialect.name != "postgresql" or not isinstance(column_type, sa.Enum):
            return column_type

        enum_type = postgresql.ENUM(
            *column_type.enums,
            name=column_type.name,
            schema=self.schema,
            create_type=False,
        )
        enum_type.create(conn, checkfirst=True)
        return enum_type

    def _drop_type(self, conn: Connection, column_type: Optional[sa.types.TypeEngine]) -> None:
        if conn.dialect.name != "postgresql" or not isinstance(column_type, sa.Enum):
            return
        if column_type.name:
            postgresql.ENUM(name=column_type.name, schema=self.schema).drop(
                conn, checkfirst=True
            )


def _operations(conn: Connection) -> Operations:
    return Operations(MigrationContext.configure(conn))


def _server_default_value(text: Optional[str]) -> Optional[str]:
    """Turn reflected server-default SQL into the value it stores.

    ``'group'`` and ``'group'::"enum_IndexingRules_identifierType"`` both
    become ``group``. Expressions such as ``now()`` are returned as written.
    """
    if text is None:
        return None
    match = _QUOTED_DEFAULT.match(text.strip())
    if match is None:
        return text
    return match.group(1).replace("''", "'")
