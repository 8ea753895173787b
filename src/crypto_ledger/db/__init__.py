"""Database layer: engine, session, ORM base, migrations."""

from crypto_ledger.db.base import Base
from crypto_ledger.db.engine import get_engine, init_engine, normalize_url, session_scope

__all__ = ["Base", "get_engine", "init_engine", "normalize_url", "session_scope"]
