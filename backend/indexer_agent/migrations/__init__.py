"""Schema migration steps."""

from indexer_agent.migrations.base import MigrationOutcome, OutcomeStatus, StepContext

__all__ = ["MigrationOutcome", "OutcomeStatus", "StepContext"]
