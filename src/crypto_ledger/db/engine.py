"""Process-wide engine for the ledger database."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

_engine: Engine | None = None
_sessions: sessionmaker[Session] | None = None

# Bare PostgreSQL schemes select psycopg2; the ledger ships psycopg 3
_PG_SCHEMES = ("postgresql://", "postgres://")


def normalize_url(url: str) -> str:
    """Point bare PostgreSQL URLs at the psycopg 3 driver; leave others alone."""
    for scheme in _PG_SCHEMES:
        if url.startswith(scheme):
            return "postgresql+psycopg://" + url[len(scheme):]
    return url


def init_engine(url: str, **kwargs) -> Engine:
    """Create the engine and session factory, replacing any previous ones."""
    global _engine, _sessions
    if _engine is not None:
        _engine.dispose()
    _engine = create_engine(normalize_url(url), **kwargs)
    _sessions = sessionmaker(bind=_engine)
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("no ledger database configured; call init_engine() first")
    return _engine


@contextmanager
def session_scope() -> Iterator[Session]:
    """A session closed on exit; committing is left to the caller."""
    if _sessions is None:
        raise RuntimeError("no ledger database configured; call init_engine() first")
    session = _sessions()
    try:
        yield session
    finally:
        session.close()
