"""Tests for logging configuration and settings."""

import json
import logging
from unittest.mock import patch

import pytest

from indexer_agent.config import Settings, get_settings
from indexer_agent.logging_config import (
    DevelopmentFormatter,
    JSONFormatter,
    migration_step_ctx,
    setup_logging,
)


def _record(message: str = "Checking if indexing rules table exists") -> logging.LogRecord:
    return logging.LogRecord(
        name="indexer_agent.migrations",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=message,
        args=(),
        exc_info=None,
    )


@pytest.fixture
def restore_root_logger():
    """Put the root logger back the way the test found it."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self, test_settings: Settings):
        """Test test settings override the database and environment."""
        assert test_settings.database_url.startswith("sqlite+aiosqlite://")
        assert test_settings.environment == "test"
        assert not test_settings.is_production

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch):
        """Test values are read from the environment."""
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://agent@db:5432/indexer")

        settings = Settings()

        assert settings.is_production
        assert settings.database_url == "postgresql+asyncpg://agent@db:5432/indexer"

    def test_get_settings_is_cached(self):
        """Test the same settings instance is returned."""
        assert get_settings() is get_settings()

    def test_settings_carry_only_runtime_fields(self):
        """Test settings hold environment, logging and database fields only."""
        assert set(Settings.model_fields) == {
            "environment",
            "debug",
            "log_level",
            "database_url",
            "database_echo",
        }


class TestFormatters:
    """Tests for the log formatters."""

    def test_json_formatter(self):
        """Test JSON output carries the core fields."""
        data = json.loads(JSONFormatter().format(_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "indexer_agent.migrations"
        assert data["message"] == "Checking if indexing rules table exists"
        assert "migration_step" not in data

    def test_json_formatter_includes_step(self):
        """Test the running step name is attached."""
        token = migration_step_ctx.set("05-indexing-rules-add-subgraph-id")
        try:
            data = json.loads(JSONFormatter().format(_record()))
        finally:
            migration_step_ctx.reset(token)

        assert data["migration_step"] == "05-indexing-rules-add-subgraph-id"

    def test_json_formatter_fixed_fields(self):
        """Test record attributes outside the fixed set are not emitted."""
        record = _record()
        record.table = "IndexingRules"

        data = json.loads(JSONFormatter().format(record))

        assert set(data) == {
            "timestamp", "level", "logger", "message", "module", "function", "line"
        }

    def test_development_formatter_prefixes_step(self):
        """Test development output is prefixed with the step name."""
        token = migration_step_ctx.set("05-indexing-rules-add-subgraph-id")
        try:
            output = DevelopmentFormatter().format(_record())
        finally:
            migration_step_ctx.reset(token)

        assert output.startswith("[05-indexing-rules-add-subgraph-id] ")
        assert output.endswith("Checking if indexing rules table exists")

    def test_development_formatter_without_step(self):
        """Test development output without a running step."""
        output = DevelopmentFormatter().format(_record())

        assert not output.startswith("[")
        assert "| INFO     |" in output


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_development_handler(self, restore_root_logger: logging.Logger):
        """Test development environments get the human-readable formatter."""
        with patch("indexer_agent.logging_config.settings") as mock_settings:
            mock_settings.debug = False
            mock_settings.log_level = "info"
            mock_settings.is_production = False
            mock_settings.database_echo = False
            setup_logging()

        assert len(restore_root_logger.handlers) == 1
        assert isinstance(restore_root_logger.handlers[0].formatter, DevelopmentFormatter)
        assert restore_root_logger.level == logging.INFO
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_production_handler(self, restore_root_logger: logging.Logger):
        """Test production gets JSON logs and debug forces DEBUG level."""
        with patch("indexer_agent.logging_config.settings") as mock_settings:
            mock_settings.debug = True
            mock_settings.log_level = "WARNING"
            mock_settings.is_production = True
            mock_settings.database_echo = True
            setup_logging()

        assert isinstance(restore_root_logger.handlers[0].formatter, JSONFormatter)
        assert restore_root_logger.level == logging.DEBUG
        assert logging.getLogger("alembic").level == logging.INFO
