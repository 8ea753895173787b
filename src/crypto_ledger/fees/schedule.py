"""Volume-tiered fee schedule: pure lookups, no state."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from crypto_ledger.config.schema import FeeConfig


@dataclass(frozen=True)
class FeeTier:
    level: str
    fee_percent: Decimal
    min_volume: Decimal


@dataclass(frozen=True)
class NextFeeLevel:
    level: str
    min_volume: Decimal
    remaining: Decimal


@dataclass(frozen=True)
class FeeLevel:
    """Result of a lookup: the applicable tier and the distance to the next one."""

    level: str
    fee_percent: Decimal
    current_volume: Decimal
    next_level: NextFeeLevel | None


def _tier(level: str, fee: str, min_volume: int) -> FeeTier:
    return FeeTier(level, Decimal(fee), Decimal(min_volume))


# Coinbase Advanced maker fees by 30-day volume (USD)
COINBASE_MAKER_TIERS: tuple[FeeTier, ...] = (
    _tier("Intro 1", "0.600", 0),
    _tier("Intro 2", "0.400", 10_000),
    _tier("Advanced 1", "0.250", 25_000),
    _tier("Advanced 2", "0.125", 75_000),
    _tier("Advanced 3", "0.075", 250_000),
    _tier("VIP 1", "0.060", 500_000),
    _tier("VIP 2", "0.050", 1_000_000),
    _tier("VIP 3", "0.040", 5_000_000),
    _tier("VIP 4", "0.025", 10_000_000),
    _tier("VIP 5", "0.010", 20_000_000),
    _tier("VIP 6", "0.000", 50_000_000),
    _tier("VIP 7", "0.000", 100_000_000),
    _tier("VIP 8", "0.000", 250_000_000),
)


class FeeSchedule:
    """Ordered fee tiers, ascending by minimum volume, starting at zero."""

    def __init__(self, tiers: Sequence[FeeTier] = COINBASE_MAKER_TIERS) -> None:
        if not tiers:
            raise ValueError("fee schedule needs at least one tier")
        ordered = tuple(sorted(tiers, key=lambda t: t.min_volume))
        if ordered[0].min_volume != 0:
            raise ValueError("lowest fee tier must start at volume 0")
        self._tiers = ordered

    @classmethod
    def from_config(cls, config: FeeConfig) -> "FeeSchedule":
        if not config.tiers:
            return cls()
        return cls(
            [FeeTier(t.level, t.fee_percent, t.min_volume) for t in config.tiers]
        )

    @property
    def tiers(self) -> tuple[FeeTier, ...]:
        return self._tiers

    def lookup(self, volume_usd: Decimal | float | int) -> FeeLevel:
        """Best tier whose threshold the volume reaches; equality qualifies."""
        volume = Decimal(str(volume_usd))
        if volume < 0:
            volume = Decimal("0")

        index = 0
        for i in range(len(self._tiers) - 1, -1, -1):
            if volume >= self._tiers[i].min_volume:
                index = i
                break

        current = self._tiers[index]
        next_level = None
        if index < len(self._tiers) - 1:
            nxt = self._tiers[index + 1]
            next_level = NextFeeLevel(
                level=nxt.level,
                min_volume=nxt.min_volume,
                remaining=nxt.min_volume - volume,
            )

        return FeeLevel(
            level=current.level,
            fee_percent=current.fee_percent,
            current_volume=volume,
            next_level=next_level,
        )


def format_fee_with_level(fee_percent: Decimal, level: str) -> str:
    """Render a fee as ``"0.250% (Advanced 1)"``."""
    return f"{Decimal(fee_percent):.3f}% ({level})"
