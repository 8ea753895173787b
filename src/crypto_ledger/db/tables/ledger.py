"""SQLAlchemy ORM models for portfolios and positions."""

from decimal import Decimal

from sqlalchemy import JSON, Boolean, Index, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime

from crypto_ledger.db.base import Base

# Coin amounts carry 8 decimals; the extra digits hold recalculated prices
Amount = Numeric(38, 12)


class PortfolioRow(Base):
    __tablename__ = "ledger_portfolios"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    total_deposit: Mapped[Decimal] = mapped_column(Amount, nullable=False)
    coins: Mapped[list] = mapped_column(JSON, nullable=False)
    initial_coins: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False)


class PositionRow(Base):
    __tablename__ = "ledger_positions"
    __table_args__ = (
        Index("ix_ledger_positions_portfolio_status", "portfolio_id", "status"),
    )

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    # No foreign key: portfolio deletion policy is decided by the ledger
    portfolio_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    coin_symbol: Mapped[str] = mapped_column(Text, nullable=False)
    # Nullable for records written before SHORT support; see migration 002
    trade_type: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="OPEN")

    entry_price: Mapped[Decimal] = mapped_column(Amount, nullable=False)
    deposit_percent: Mapped[Decimal] = mapped_column(Amount, nullable=False)
    entry_fee: Mapped[Decimal] = mapped_column(Amount, nullable=False)
    sum_plus_fee: Mapped[Decimal] = mapped_column(Amount, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Amount, nullable=False)
    initial_entry_price: Mapped[Decimal | None] = mapped_column(Amount, nullable=True)
    initial_amount: Mapped[Decimal | None] = mapped_column(Amount, nullable=True)

    exit_price: Mapped[Decimal | None] = mapped_column(Amount, nullable=True)
    exit_fee: Mapped[Decimal | None] = mapped_column(Amount, nullable=True)
    original_amount: Mapped[Decimal | None] = mapped_column(Amount, nullable=True)
    remaining_amount: Mapped[Decimal | None] = mapped_column(Amount, nullable=True)
    closed_sum_plus_fee: Mapped[Decimal] = mapped_column(
        Amount, nullable=False, default=0, server_default="0"
    )

    is_partial_close: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    parent_trade_id: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)
    is_split: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    split_from_trade_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    split_group_id: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)
    is_averaging_short: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    open_date: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False)
    filled_date: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    close_date: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)
