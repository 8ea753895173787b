"""Alembic environment for the ledger tables."""

from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from crypto_ledger.db.base import Base
from crypto_ledger.db.engine import normalize_url

# Import all table modules so Base.metadata sees them
import crypto_ledger.db.tables  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def get_url() -> str:
    """URL passed by ``db.migrate``, else LEDGER_DATABASE_URL, else alembic.ini."""
    url = (
        config.attributes.get("url")
        or os.environ.get("LEDGER_DATABASE_URL")
        or config.get_main_option("sqlalchemy.url")
    )
    if not url:
        raise RuntimeError("no database URL for migrations; set LEDGER_DATABASE_URL")
    return normalize_url(url)


def include_object(obj, name, type_, reflected, compare_to):
    """Only manage the ledger_* tables."""
    if type_ == "table":
        return name.startswith("ledger_")
    return True


def run_migrations_offline() -> None:
    """Emit SQL without connecting."""
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        include_object=include_object,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = create_engine(get_url(), poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            include_object=include_object,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
