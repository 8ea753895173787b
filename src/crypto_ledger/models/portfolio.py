"""Portfolio model: target allocation, deposit and free coin balances."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from crypto_ledger.models.position import new_id, utcnow

ALLOCATION_TOLERANCE = Decimal("0.01")


class CoinAllocation(BaseModel):
    """One coin in a portfolio's target allocation."""

    symbol: str = Field(min_length=1)
    percentage: Decimal = Field(ge=0, le=100)
    decimal_places: int = Field(default=2, ge=0, le=8)

    @field_validator("symbol")
    @classmethod
    def _upper_symbol(cls, value: str) -> str:
        return value.strip().upper()


class Portfolio(BaseModel):
    """A user's portfolio.

    ``initial_coins`` holds balances owned outside any LONG position; SHORTs
    without a parent draw from it.
    """

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    user_id: str
    name: str = Field(min_length=1, max_length=100)
    total_deposit: Decimal = Field(ge=0)
    coins: list[CoinAllocation] = Field(min_length=1)
    initial_coins: dict[str, Decimal] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("initial_coins")
    @classmethod
    def _normalise_initial_coins(cls, value: dict[str, Decimal]) -> dict[str, Decimal]:
        normalised: dict[str, Decimal] = {}
        for symbol, amount in value.items():
            if amount < 0:
                raise ValueError(f"initial balance for {symbol} cannot be negative")
            normalised[symbol.strip().upper()] = amount
        return normalised

    @model_validator(mode="after")
    def _allocation_sums_to_100(self) -> "Portfolio":
        total = sum((coin.percentage for coin in self.coins), Decimal("0"))
        if abs(total - 100) >= ALLOCATION_TOLERANCE:
            raise ValueError(f"coin percentages must total 100 (got {total})")
        return self

    def has_coin(self, symbol: str) -> bool:
        symbol = symbol.strip().upper()
        return any(coin.symbol == symbol for coin in self.coins)

    def initial_balance(self, symbol: str) -> Decimal:
        return self.initial_coins.get(symbol.strip().upper(), Decimal("0"))
