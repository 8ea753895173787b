"""Shared test fixtures."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session

from crypto_ledger.config.schema import LedgerConfig
from crypto_ledger.db import Base
import crypto_ledger.db.tables  # noqa: F401  registers tables on Base.metadata
from crypto_ledger.ledger import MemoryStore, PortfolioManager, PositionLedger

OWNER = "user-1"
STRANGER = "user-2"


@pytest.fixture
def db_session():
    """In-memory SQLite session with the ledger tables created."""
    engine = create_engine("sqlite:///:memory:")

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, _rec):
        dbapi_conn.execute("PRAGMA foreign_keys=ON")

    Base.metadata.create_all(engine)

    session = Session(engine)
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def ledger_config():
    return LedgerConfig()


@pytest.fixture
def portfolios(store, ledger_config):
    return PortfolioManager(store, ledger_config)


@pytest.fixture
def ledger(store, ledger_config):
    return PositionLedger(store, ledger_config)


@pytest.fixture
def portfolio(portfolios):
    """BTC/ETH portfolio owned by OWNER with 0.5 BTC of free coins."""
    return portfolios.create_portfolio(
        OWNER,
        {
            "name": "Main",
            "total_deposit": Decimal("10000"),
            "coins": [
                {"symbol": "BTC", "percentage": Decimal("60")},
                {"symbol": "ETH", "percentage": Decimal("40"), "decimal_places": 4},
            ],
            "initial_coins": {"BTC": Decimal("0.5")},
        },
    )


def open_long(ledger, portfolio, **overrides):
    """OPEN BTC LONG: 0.01 BTC at 100000 for 1010 USD including a 1% fee."""
    request = {
        "coin_symbol": "BTC",
        "entry_price": Decimal("100000"),
        "deposit_percent": Decimal("10"),
        "entry_fee": Decimal("1"),
        "amount": Decimal("0.01"),
        "sum_plus_fee": Decimal("1010"),
        "open_date": datetime(2024, 1, 10, tzinfo=timezone.utc),
    }
    request.update(overrides)
    return ledger.create_long(portfolio.id, OWNER, request)


def filled_long(ledger, portfolio, **overrides):
    position = open_long(ledger, portfolio, **overrides)
    return ledger.update_position(
        position.id,
        OWNER,
        {"status": "FILLED", "filled_date": datetime(2024, 1, 11, tzinfo=timezone.utc)},
    )


def open_short(ledger, portfolio, **overrides):
    """OPEN BTC SHORT selling 0.01 BTC at 110000 (gross 1100 USD, 1% fee)."""
    request = {
        "coin_symbol": "BTC",
        "entry_price": Decimal("110000"),
        "deposit_percent": Decimal("10"),
        "entry_fee": Decimal("1"),
        "amount": Decimal("0.01"),
        "sum_plus_fee": Decimal("1100"),
        "open_date": datetime(2024, 2, 1, tzinfo=timezone.utc),
    }
    request.update(overrides)
    return ledger.create_short(portfolio.id, OWNER, request)
