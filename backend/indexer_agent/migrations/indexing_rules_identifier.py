"""Rename the indexing rule deployment column and add an identifier type.

Indexing rules used to be keyed by deployment only. This step renames
``IndexingRules.deployment`` to ``identifier`` and adds ``identifierType``
(one of deployment, subgraph or group) to the primary key, so a rule can
target a subgraph or a group as well.

Both directions look at the live schema first. ``up`` skips stores that never
had the table and tables that are already migrated. ``down`` only checks that
the table exists and reverts inside a single transaction.
"""

import sqlalchemy as sa

from indexer_agent.migrations.base import MigrationOutcome, StepContext
from indexer_agent.schema.base import ColumnSpec

STEP_NAME = "05-indexing-rules-add-subgraph-id"

TABLE_NAME = "IndexingRules"
LEGACY_COLUMN = "deployment"
IDENTIFIER_COLUMN = "identifier"
IDENTIFIER_TYPE_COLUMN = "identifierType"

IDENTIFIER_TYPES = ("deployment", "subgraph", "group")
DEFAULT_IDENTIFIER_TYPE = "group"


def identifier_type_spec() -> ColumnSpec:
    """Column definition for ``identifierType``."""
    return ColumnSpec(
        type=sa.Enum(*IDENTIFIER_TYPES, name=f"enum_{TABLE_NAME}_{IDENTIFIER_TYPE_COLUMN}"),
        primary_key=True,
        nullable=False,
        default=DEFAULT_IDENTIFIER_TYPE,
    )


async def up(context: StepContext) -> MigrationOutcome:
    handle, logger = context.handle, context.logger

    logger.info("Rename indexing rule identifier column and add identifier type column")

    logger.info("Checking if indexing rules table exists")
    tables = await handle.list_tables()
    if TABLE_NAME not in tables:
        logger.info("Indexing rules table does not exist, migration not necessary")
        return MigrationOutcome.skipped("table does not exist")

    logger.info("Checking if indexing rules table needs to be migrated")
    columns = await handle.describe_table(TABLE_NAME)
    if IDENTIFIER_TYPE_COLUMN in columns and IDENTIFIER_COLUMN in columns:
        logger.info(
            "Identifier and identifierType columns already exist, migration not necessary"
        )
        return MigrationOutcome.skipped("already migrated")

    async with handle.transaction():
        logger.info(f"Adding {IDENTIFIER_TYPE_COLUMN} column to {TABLE_NAME} table")
        await handle.add_column(TABLE_NAME, IDENTIFIER_TYPE_COLUMN, identifier_type_spec())

        logger.info(f"Renaming {LEGACY_COLUMN} column to {IDENTIFIER_COLUMN}")
        await handle.rename_column(TABLE_NAME, LEGACY_COLUMN, IDENTIFIER_COLUMN)

    return MigrationOutcome.applied()


async def down(context: StepContext) -> MigrationOutcome:
    handle, logger = context.handle, context.logger

    logger.info(
        "Revert renaming indexing rule identifier column and adding identifierType column"
    )

    # No column checks here: reverting a table that is not in the migrated
    # shape fails inside the transaction and leaves it untouched.
    async with handle.transaction():
        tables = await handle.list_tables()
        if TABLE_NAME not in tables:
            logger.info("Indexing rules table does not exist, nothing to revert")
            return MigrationOutcome.skipped("table does not exist")

        logger.info(f"Removing {IDENTIFIER_TYPE_COLUMN} column from {TABLE_NAME} table")
        await handle.remove_column(TABLE_NAME, IDENTIFIER_TYPE_COLUMN)

        logger.info(f"Renaming {IDENTIFIER_COLUMN} column back to {LEGACY_COLUMN}")
        await handle.rename_column(TABLE_NAME, IDENTIFIER_COLUMN, LEGACY_COLUMN)

    return MigrationOutcome.applied()
