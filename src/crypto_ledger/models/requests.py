"""Validated inputs for ledger operations."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, ClassVar

from pydantic import BaseModel, ConfigDict, Field

from crypto_ledger.models.portfolio import CoinAllocation
from crypto_ledger.models.position import TradeStatus


class OpenLongRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    coin_symbol: str = Field(min_length=1)
    entry_price: Decimal = Field(gt=0)
    deposit_percent: Decimal = Field(ge=0, le=100)
    # None asks the ledger to suggest a fee from the volume tier
    entry_fee: Decimal | None = Field(default=None, ge=0, le=100)
    amount: Decimal = Field(gt=0)
    sum_plus_fee: Decimal = Field(gt=0)
    open_date: datetime | None = None


class OpenShortRequest(OpenLongRequest):
    parent_trade_id: str | None = None
    averaging: bool = False


class PositionPatch(BaseModel):
    """Sparse update; only fields explicitly passed are applied.

    ``exit_price=None`` passed explicitly clears the exit price.
    """

    model_config = ConfigDict(extra="forbid")

    ENTRY_FIELDS: ClassVar[tuple[str, ...]] = (
        "entry_price",
        "deposit_percent",
        "entry_fee",
        "open_date",
    )

    status: TradeStatus | None = None
    exit_price: Decimal | None = Field(default=None, gt=0)
    exit_fee: Decimal | None = Field(default=None, ge=0, le=100)
    amount: Decimal | None = Field(default=None, gt=0)
    sum_plus_fee: Decimal | None = Field(default=None, gt=0)
    filled_date: datetime | None = None
    close_date: datetime | None = None
    entry_price: Decimal | None = Field(default=None, gt=0)
    deposit_percent: Decimal | None = Field(default=None, ge=0, le=100)
    entry_fee: Decimal | None = Field(default=None, ge=0, le=100)
    open_date: datetime | None = None

    def given(self, name: str) -> bool:
        return name in self.model_fields_set

    def touches_entry_fields(self) -> bool:
        return any(
            self.given(name) and getattr(self, name) is not None
            for name in self.ENTRY_FIELDS
        )


class PartialCloseRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    amount_to_close: Decimal = Field(gt=0)
    exit_price: Decimal = Field(gt=0)
    exit_fee: Decimal = Field(ge=0, le=100)
    close_date: datetime | None = None


class SplitRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    amounts: list[Annotated[Decimal, Field(gt=0)]] = Field(min_length=1)

    def total(self) -> Decimal:
        return sum(self.amounts, Decimal("0"))


class PortfolioRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    total_deposit: Decimal | None = None
    coins: list[CoinAllocation] | None = None
    initial_coins: dict[str, Decimal] | None = None
