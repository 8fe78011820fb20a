"""Run the indexing rules migration step in one direction.

Ordering across steps and tracking which steps already ran belong to the
caller; this only wires a schema handle and logger into a single step.
"""

import logging
from typing import Awaitable, Callable, Optional

from indexer_agent.database import get_schema_handle
from indexer_agent.logging_config import migration_step_ctx
from indexer_agent.migrations import indexing_rules_identifier
from indexer_agent.migrations.base import MigrationOutcome, StepContext
from indexer_agent.schema.base import SchemaHandle

logger = logging.getLogger(__name__)

StepFunction = Callable[[StepContext], Awaitable[MigrationOutcome]]

DIRECTIONS: dict[str, StepFunction] = {
    "up": indexing_rules_identifier.up,
    "down": indexing_rules_identifier.down,
}


async def run_step(
    direction: str,
    handle: Optional[SchemaHandle] = None,
    step_logger: Optional[logging.Logger] = None,
) -> MigrationOutcome:
    """Apply or revert the step.

    Args:
        direction: "up" to apply, "down" to revert
        handle: Schema handle to use (default: a fresh database connection,
            committed on success and rolled back on failure)
        step_logger: Logger receiving the step's narration (default: this module's)

    Returns:
        The step's outcome

    Raises:
        ValueError: If direction is not "up" or "down"
    """
    try:
        step = DIRECTIONS[direction]
    except KeyError:
        raise ValueError(
            f"Unknown migration direction: {direction!r} (expected 'up' or 'down')"
        ) from None

    token = migration_step_ctx.set(indexing_rules_identifier.STEP_NAME)
    try:
        if handle is not None:
            return await _invoke(step, direction, StepContext(handle, step_logger or logger))

        async with get_schema_handle() as live_handle:
            return await _invoke(
                step, direction, StepContext(live_handle, step_logger or logger)
            )
    finally:
        migration_step_ctx.reset(token)


async def _invoke(step: StepFunction, direction: str, context: StepContext) -> MigrationOutcome:
    name = indexing_rules_identifier.STEP_NAME
    try:
        outcome = await step(context)
    except Exception:
        logger.exception(f"Migration {name} ({direction}) failed")
        raise

    if outcome.was_applied:
        logger.info(f"Migration {name} ({direction}) applied")
    else:
        logger.info(f"Migration {name} ({direction}) skipped: {outcome.reason}")
    return outcome
