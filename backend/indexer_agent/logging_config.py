"""Logging configuration for the indexer agent.

Provides JSON-formatted logs in production and human-readable logs in development.
Log lines emitted while a migration step runs are tagged with the step name.

The process that drives migrations calls ``setup_logging()`` once at startup,
before ``indexer_agent.migrations.runner.run_step``. The runner itself leaves
handler configuration alone so it can run inside a host that already has one.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

from indexer_agent.config import settings

# Name of the migration step currently executing (for log correlation)
migration_step_ctx: ContextVar[str | None] = ContextVar("migration_step", default=None)


class JSONFormatter(logging.Formatter):
    """JSON log formatter for production environments."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        step = migration_step_ctx.get()
        if step:
            log_data["migration_step"] = step

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Human-readable formatter for development."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)
        step = migration_step_ctx.get()
        if step:
            return f"[{step}] {formatted}"
        return formatted


def setup_logging() -> None:
    """Configure logging based on environment."""
    log_level = logging.DEBUG if settings.debug else getattr(
        logging, settings.log_level.upper(), logging.INFO
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)

    if settings.is_production:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(DevelopmentFormatter())

    root_logger.addHandler(handler)

    # Keep SQL and DDL chatter out of the migration narrative unless asked for
    sql_level = logging.INFO if settings.database_echo else logging.WARNING
    logging.getLogger("sqlalchemy.engine").setLevel(sql_level)
    logging.getLogger("alembic").setLevel(sql_level)
