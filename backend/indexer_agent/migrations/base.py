"""Types shared by migration steps."""

import enum
import logging
from dataclasses import dataclass, field
from typing import Optional

from indexer_agent.schema.base import SchemaHandle


class OutcomeStatus(str, enum.Enum):
    """Result of running one direction of a migration step."""

    SKIPPED = "skipped"
    APPLIED = "applied"


@dataclass(frozen=True)
class MigrationOutcome:
    """What a step did: skipped (with the reason) or applied."""

    status: OutcomeStatus
    reason: Optional[str] = None

    @classmethod
    def skipped(cls, reason: str) -> "MigrationOutcome":
        return cls(status=OutcomeStatus.SKIPPED, reason=reason)

    @classmethod
    def applied(cls) -> "MigrationOutcome":
        return cls(status=OutcomeStatus.APPLIED)

    @property
    def was_applied(self) -> bool:
        return self.status == OutcomeStatus.APPLIED


@dataclass
class StepContext:
    """Everything a step needs from the runner: a schema handle and a logger."""

    handle: SchemaHandle
    logger: logging.Logger = field(
        default_factory=lambda: logging.getLogger("indexer_agent.migrations")
    )
