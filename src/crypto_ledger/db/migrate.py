"""Run the ledger's alembic migrations from code."""

from __future__ import annotations

import structlog
from alembic import command
from alembic.config import Config

log = structlog.get_logger("migrate")

SCRIPT_LOCATION = "crypto_ledger:migrations"


def alembic_config(url: str) -> Config:
    """Alembic config for the packaged migrations, pointed at *url*."""
    config = Config()
    config.set_main_option("script_location", SCRIPT_LOCATION)
    # Read by get_url() in migrations/env.py
    config.attributes["url"] = url
    return config


def upgrade(url: str, revision: str = "head") -> None:
    """Create or update the ledger tables and run data backfills."""
    command.upgrade(alembic_config(url), revision)
    log.info("schema_upgraded", revision=revision)


def downgrade(url: str, revision: str) -> None:
    command.downgrade(alembic_config(url), revision)
    log.info("schema_downgraded", revision=revision)
