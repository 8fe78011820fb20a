"""Database engine and schema handle management."""

from contextlib import asynccontextmanager
from functools import lru_cache
from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from indexer_agent.config import settings
from indexer_agent.schema.sqlalchemy_handle import SQLAlchemySchemaHandle


@lru_cache
def get_engine() -> AsyncEngine:
    """Get the async engine for the configured database."""
    return create_async_engine(
        settings.database_url,
        echo=settings.database_echo,
        future=True,
    )


@asynccontextmanager
async def get_schema_handle(
    engine: Optional[AsyncEngine] = None,
) -> AsyncIterator[SQLAlchemySchemaHandle]:
    """Provide a schema handle bound to a fresh connection.

    Work done through the handle is committed when the block exits normally
    and rolled back when it raises.
    """
    async with (engine or get_engine()).connect() as conn:
        try:
            yield SQLAlchemySchemaHandle(conn)
        except Exception:
            await conn.rollback()
            raise
        else:
            await conn.commit()
