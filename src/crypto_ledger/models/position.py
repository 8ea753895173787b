"""Position model: one LONG or SHORT record in a portfolio's ledger."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

TradeType = Literal["LONG", "SHORT"]
TradeStatus = Literal["OPEN", "FILLED", "CLOSED"]

# Statuses only move forward through this order
STATUS_ORDER: dict[str, int] = {"OPEN": 0, "FILLED": 1, "CLOSED": 2}


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CostBasis(BaseModel):
    """Entry price and amount recorded when a position is created.

    Historical reference only; live arithmetic uses the position's current
    ``entry_price`` and ``amount``.
    """

    model_config = ConfigDict(frozen=True)

    entry_price: Decimal
    amount: Decimal


class Position(BaseModel):
    """A LONG or SHORT position.

    ``sum_plus_fee`` is the gross USD of the entry leg: the cost including the
    entry fee for a LONG, the sale proceeds before the sale fee for a SHORT.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=new_id)
    portfolio_id: str
    coin_symbol: str
    trade_type: TradeType = "LONG"
    status: TradeStatus = "OPEN"

    entry_price: Decimal
    deposit_percent: Decimal
    entry_fee: Decimal
    sum_plus_fee: Decimal
    amount: Decimal = Field(ge=0)
    cost_basis: CostBasis = Field(frozen=True)

    exit_price: Decimal | None = None
    exit_fee: Decimal | None = None

    original_amount: Decimal | None = None
    remaining_amount: Decimal | None = Field(default=None, ge=0)
    # sum_plus_fee already carried by partial-close slices of this position
    closed_sum_plus_fee: Decimal = Field(default=Decimal("0"), ge=0)
    is_partial_close: bool = False
    parent_trade_id: str | None = None

    is_split: bool = False
    split_from_trade_id: str | None = None
    split_group_id: str | None = None
    is_averaging_short: bool = False

    open_date: datetime = Field(default_factory=utcnow)
    filled_date: datetime | None = None
    close_date: datetime | None = None

    @field_validator("coin_symbol")
    @classmethod
    def _upper_symbol(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("open_date", "filled_date", "close_date")
    @classmethod
    def _utc_dates(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)

    @property
    def initial_entry_price(self) -> Decimal:
        return self.cost_basis.entry_price

    @property
    def initial_amount(self) -> Decimal:
        return self.cost_basis.amount

    @property
    def is_long(self) -> bool:
        return self.trade_type == "LONG"

    @property
    def is_short(self) -> bool:
        return self.trade_type == "SHORT"

    @property
    def is_closed(self) -> bool:
        return self.status == "CLOSED"

    @property
    def has_slices(self) -> bool:
        """True once part of this position was closed as a separate slice."""
        if self.is_partial_close:
            return False
        if self.closed_sum_plus_fee > 0:
            return True
        return (
            self.original_amount is not None
            and self.remaining_amount is not None
            and self.remaining_amount < self.original_amount
        )

    @property
    def is_derived_short(self) -> bool:
        """SHORT borrowed from a parent LONG rather than from initial coins."""
        return self.is_short and self.parent_trade_id is not None and not self.is_partial_close
