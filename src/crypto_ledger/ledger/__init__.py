"""Position ledger: lifecycle operations, portfolios and storage."""

from crypto_ledger.ledger.engine import PositionLedger
from crypto_ledger.ledger.errors import (
    ForbiddenError,
    InsufficientBalanceError,
    InvalidStateError,
    LedgerError,
    MissingExitPriceError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from crypto_ledger.ledger.portfolios import PortfolioManager, require_owned
from crypto_ledger.ledger.sql_store import SqlStore
from crypto_ledger.ledger.store import LedgerStore, MemoryStore

__all__ = [
    "ForbiddenError",
    "InsufficientBalanceError",
    "InvalidStateError",
    "LedgerError",
    "LedgerStore",
    "MemoryStore",
    "MissingExitPriceError",
    "NotFoundError",
    "PortfolioManager",
    "PositionLedger",
    "SqlStore",
    "StorageError",
    "ValidationError",
    "require_owned",
]
