"""LedgerStore over a SQLAlchemy session."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from decimal import Decimal

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from crypto_ledger.db.tables.ledger import PortfolioRow, PositionRow
from crypto_ledger.ledger.errors import StorageError
from crypto_ledger.models.portfolio import CoinAllocation, Portfolio
from crypto_ledger.models.position import CostBasis, Position

log = structlog.get_logger("sql_store")

_POSITION_COLUMNS = (
    "id",
    "portfolio_id",
    "coin_symbol",
    "trade_type",
    "status",
    "entry_price",
    "deposit_percent",
    "entry_fee",
    "sum_plus_fee",
    "amount",
    "exit_price",
    "exit_fee",
    "original_amount",
    "remaining_amount",
    "closed_sum_plus_fee",
    "is_partial_close",
    "parent_trade_id",
    "is_split",
    "split_from_trade_id",
    "split_group_id",
    "is_averaging_short",
    "open_date",
    "filled_date",
    "close_date",
)


def _dec(value) -> Decimal | None:
    if value is None:
        return None
    return Decimal(str(value))


# ── Row <-> model mapping ─────────────────────────────────────


def position_to_row(position: Position) -> PositionRow:
    row = PositionRow(**{name: getattr(position, name) for name in _POSITION_COLUMNS})
    row.initial_entry_price = position.initial_entry_price
    row.initial_amount = position.initial_amount
    return row


def row_to_position(row: PositionRow) -> Position:
    if row.trade_type is None or row.initial_entry_price is None or row.initial_amount is None:
        raise StorageError(
            f"position {row.id} predates SHORT support; run the migrations first"
        )
    data = {name: getattr(row, name) for name in _POSITION_COLUMNS}
    for name in (
        "entry_price", "deposit_percent", "entry_fee", "sum_plus_fee", "amount",
        "exit_price", "exit_fee", "original_amount", "remaining_amount",
        "closed_sum_plus_fee",
    ):
        data[name] = _dec(data[name])
    if data["closed_sum_plus_fee"] is None:
        data["closed_sum_plus_fee"] = Decimal("0")
    data["cost_basis"] = CostBasis(
        entry_price=_dec(row.initial_entry_price),
        amount=_dec(row.initial_amount),
    )
    return Position.model_validate(data)


def portfolio_to_row(portfolio: Portfolio) -> PortfolioRow:
    return PortfolioRow(
        id=portfolio.id,
        user_id=portfolio.user_id,
        name=portfolio.name,
        total_deposit=portfolio.total_deposit,
        coins=[coin.model_dump(mode="json") for coin in portfolio.coins],
        initial_coins={symbol: str(amount) for symbol, amount in portfolio.initial_coins.items()},
        created_at=portfolio.created_at,
    )


def row_to_portfolio(row: PortfolioRow) -> Portfolio:
    return Portfolio(
        id=row.id,
        user_id=row.user_id,
        name=row.name,
        total_deposit=_dec(row.total_deposit),
        coins=[CoinAllocation.model_validate(coin) for coin in row.coins],
        initial_coins={symbol: _dec(amount) for symbol, amount in (row.initial_coins or {}).items()},
        created_at=row.created_at,
    )


# ── Store ─────────────────────────────────────────────────────


class SqlStore:
    """Ledger storage backed by the ``ledger_*`` tables.

    Outside ``transaction()`` every write commits immediately. Inside, writes
    are flushed and the whole block commits once, or rolls back on error.
    SQLAlchemy failures surface as ``StorageError``.
    """

    def __init__(self, session: Session) -> None:
        self.session = session
        self._depth = 0

    def _write(self) -> None:
        if self._depth > 0:
            self.session.flush()
        else:
            self.session.commit()

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            if self._depth == 0:
                self.session.rollback()
            log.error("storage_failed", operation=operation, error=str(exc))
            raise StorageError(f"{operation} failed: {exc}") from exc

    # ── Positions ─────────────────────────────────────────────

    def load_position(self, position_id: str) -> Position | None:
        with self._guard("load_position"):
            row = self.session.get(PositionRow, position_id)
            return row_to_position(row) if row is not None else None

    def save_position(self, position: Position) -> None:
        with self._guard("save_position"):
            self.session.merge(position_to_row(position))
            self._write()

    def query_positions(self, portfolio_id: str, status: str | None = None) -> list[Position]:
        with self._guard("query_positions"):
            query = self.session.query(PositionRow).filter(
                PositionRow.portfolio_id == portfolio_id,
            )
            if status is not None:
                query = query.filter(PositionRow.status == status)
            rows = query.order_by(PositionRow.open_date.desc()).all()
            return [row_to_position(row) for row in rows]

    def query_split_group(self, split_group_id: str) -> list[Position]:
        with self._guard("query_split_group"):
            rows = (
                self.session.query(PositionRow)
                .filter(PositionRow.split_group_id == split_group_id)
                .order_by(PositionRow.open_date)
                .all()
            )
            return [row_to_position(row) for row in rows]

    def delete_position(self, position_id: str) -> None:
        with self._guard("delete_position"):
            row = self.session.get(PositionRow, position_id)
            if row is not None:
                self.session.delete(row)
                self._write()

    # ── Portfolios ────────────────────────────────────────────

    def load_portfolio(self, portfolio_id: str) -> Portfolio | None:
        with self._guard("load_portfolio"):
            row = self.session.get(PortfolioRow, portfolio_id)
            return row_to_portfolio(row) if row is not None else None

    def save_portfolio(self, portfolio: Portfolio) -> None:
        with self._guard("save_portfolio"):
            self.session.merge(portfolio_to_row(portfolio))
            self._write()

    def delete_portfolio(self, portfolio_id: str) -> None:
        with self._guard("delete_portfolio"):
            row = self.session.get(PortfolioRow, portfolio_id)
            if row is not None:
                self.session.delete(row)
                self._write()

    # ── Transactions ──────────────────────────────────────────

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._depth > 0:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        self._depth = 1
        try:
            yield
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            log.error("transaction_failed", error=str(exc))
            raise StorageError(f"transaction failed: {exc}") from exc
        except BaseException:
            self.session.rollback()
            raise
        finally:
            self._depth = 0
