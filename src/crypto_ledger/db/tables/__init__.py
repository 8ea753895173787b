"""Import all table modules so Base.metadata knows about them."""

from crypto_ledger.db.tables.ledger import PortfolioRow, PositionRow

__all__ = ["PortfolioRow", "PositionRow"]
