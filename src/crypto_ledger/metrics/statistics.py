"""Portfolio statistics derived from a list of positions: read-only.

Only CLOSED positions contribute P&L. Split originals are skipped (their
children carry the holding) and so are partial-close parents whose slices
consumed the whole amount (the slices carry the P&L). Averaging SHORTs are
reported in their own summary and kept out of the headline figures.

SHORT profit is measured in coins; a SHORT contributes 0 to every USD sum
and USD ranking.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from crypto_ledger.metrics.formulas import cumulative, mean, roi_percent, total, win_rate
from crypto_ledger.metrics.periods import DateRange
from crypto_ledger.metrics.profit import (
    effective_holding,
    position_fees_usd,
    position_profit_coins,
    position_profit_percent,
    position_profit_usd,
)
from crypto_ledger.models.position import Position

TOP_N = 5
DEFAULT_EPSILON = Decimal("1e-8")


def _f(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None


@dataclass
class PositionPerformance:
    """Profit figures for one closed position.

    ``profit_usd`` is None for a SHORT and ``profit_coins`` None for a LONG;
    both are None while no exit price is recorded.
    """

    position_id: str
    coin_symbol: str
    trade_type: str
    close_date: datetime | None
    profit_usd: float | None
    profit_percent: float | None
    profit_coins: float | None
    fees_usd: float
    invested_usd: float
    is_averaging_short: bool = False

    @property
    def usd(self) -> float:
        """USD profit used for sums and rankings."""
        return self.profit_usd or 0.0

    @property
    def is_win(self) -> bool:
        if self.trade_type == "SHORT":
            return (self.profit_coins or 0.0) > 0
        return self.usd > 0


@dataclass
class StatusCounts:
    open: int = 0
    filled: int = 0
    closed: int = 0


@dataclass
class CoinPerformance:
    coin_symbol: str
    trades_count: int
    win_rate: float
    total_profit_usd: float
    avg_profit_percent: float
    best: PositionPerformance | None
    worst: PositionPerformance | None


@dataclass
class CumulativePoint:
    date: str
    profit: float


@dataclass
class LongSummary:
    total_trades: int = 0
    total_profit_usd: float = 0.0
    avg_profit_usd: float = 0.0
    avg_profit_percent: float = 0.0
    win_rate: float = 0.0


@dataclass
class ShortSummary:
    """SHORT results per coin; used for standard and averaging SHORTs alike."""

    total_trades: int = 0
    total_profit_coins: dict[str, float] = field(default_factory=dict)
    avg_profit_coins: dict[str, float] = field(default_factory=dict)
    avg_profit_percent: float = 0.0
    win_rate: float = 0.0


@dataclass
class PortfolioStatistics:
    total_profit_usd: float = 0.0
    avg_profit_percent: float = 0.0
    total_fees_usd: float = 0.0
    standard_fees_usd: float = 0.0
    averaging_fees_usd: float = 0.0
    win_rate: float = 0.0
    avg_profit_usd: float = 0.0
    total_roi_percent: float = 0.0
    counts: StatusCounts = field(default_factory=StatusCounts)
    best: PositionPerformance | None = None
    worst: PositionPerformance | None = None
    by_coin: list[CoinPerformance] = field(default_factory=list)
    top_winners: list[PositionPerformance] = field(default_factory=list)
    top_losers: list[PositionPerformance] = field(default_factory=list)
    cumulative_profit: list[CumulativePoint] = field(default_factory=list)
    long: LongSummary = field(default_factory=LongSummary)
    short: ShortSummary = field(default_factory=ShortSummary)
    averaging: ShortSummary = field(default_factory=ShortSummary)


# ── Per position ──────────────────────────────────────────────


def evaluate_position(position: Position) -> PositionPerformance:
    _, invested = effective_holding(position)
    return PositionPerformance(
        position_id=position.id,
        coin_symbol=position.coin_symbol,
        trade_type=position.trade_type,
        close_date=position.close_date,
        profit_usd=_f(position_profit_usd(position)),
        profit_percent=_f(position_profit_percent(position)),
        profit_coins=_f(position_profit_coins(position)),
        fees_usd=float(position_fees_usd(position)),
        invested_usd=float(invested),
        is_averaging_short=position.is_averaging_short,
    )


def is_consumed_parent(position: Position, epsilon: Decimal = DEFAULT_EPSILON) -> bool:
    """A parent whose partial-close slices took the whole amount."""
    return (
        position.is_closed
        and not position.is_partial_close
        and position.remaining_amount is not None
        and position.remaining_amount <= epsilon
        and position.amount > epsilon
    )


def closed_positions(
    positions: Iterable[Position],
    period: DateRange | None = None,
    epsilon: Decimal = DEFAULT_EPSILON,
) -> list[Position]:
    """The positions whose P&L counts, ordered by close date ascending."""
    selected = [
        p for p in positions
        if p.is_closed
        and not p.is_split
        and not is_consumed_parent(p, epsilon)
        and (period is None or p.close_date in period)
    ]
    # Undated records sort last
    return sorted(selected, key=lambda p: (p.close_date is None, p.close_date or datetime.min))


# ── Aggregates ────────────────────────────────────────────────


def _short_summary(rows: list[PositionPerformance]) -> ShortSummary:
    coins: dict[str, list[float]] = defaultdict(list)
    for row in rows:
        coins[row.coin_symbol].append(row.profit_coins or 0.0)
    return ShortSummary(
        total_trades=len(rows),
        total_profit_coins={symbol: total(values) for symbol, values in coins.items()},
        avg_profit_coins={symbol: mean(values) for symbol, values in coins.items()},
        avg_profit_percent=mean([row.profit_percent or 0.0 for row in rows]),
        win_rate=win_rate(sum(1 for row in rows if row.is_win), len(rows)),
    )


def _long_summary(rows: list[PositionPerformance]) -> LongSummary:
    usd = [row.usd for row in rows]
    return LongSummary(
        total_trades=len(rows),
        total_profit_usd=total(usd),
        avg_profit_usd=mean(usd),
        avg_profit_percent=mean([row.profit_percent or 0.0 for row in rows]),
        win_rate=win_rate(sum(1 for row in rows if row.is_win), len(rows)),
    )


def _coin_rollups(rows: list[PositionPerformance]) -> list[CoinPerformance]:
    groups: dict[str, list[PositionPerformance]] = defaultdict(list)
    for row in rows:
        groups[row.coin_symbol].append(row)

    rollups = []
    for symbol, members in groups.items():
        ranked = sorted(members, key=lambda r: r.usd, reverse=True)
        rollups.append(
            CoinPerformance(
                coin_symbol=symbol,
                trades_count=len(members),
                win_rate=win_rate(sum(1 for r in members if r.is_win), len(members)),
                total_profit_usd=total([r.usd for r in members]),
                avg_profit_percent=mean([r.profit_percent or 0.0 for r in members]),
                best=ranked[0],
                worst=ranked[-1],
            )
        )
    rollups.sort(key=lambda c: c.total_profit_usd, reverse=True)
    return rollups


def compute_statistics(
    positions: Iterable[Position],
    period: DateRange | None = None,
    epsilon: Decimal = DEFAULT_EPSILON,
) -> PortfolioStatistics:
    """Aggregate a portfolio's positions; *period* filters by close date."""
    positions = list(positions)
    closed = closed_positions(positions, period, epsilon)
    rows = [evaluate_position(p) for p in closed]

    standard = [r for r in rows if not r.is_averaging_short]
    averaging = [r for r in rows if r.is_averaging_short]
    longs = [r for r in standard if r.trade_type == "LONG"]
    shorts = [r for r in standard if r.trade_type == "SHORT"]

    counts = StatusCounts(closed=len(standard))
    for p in positions:
        if p.is_split or p.is_averaging_short:
            continue
        if p.status == "OPEN":
            counts.open += 1
        elif p.status == "FILLED":
            counts.filled += 1

    stats = PortfolioStatistics(counts=counts)
    if not rows:
        return stats

    usd = [r.usd for r in standard]
    stats.total_profit_usd = total(usd)
    stats.avg_profit_usd = mean(usd)
    stats.avg_profit_percent = mean([r.profit_percent or 0.0 for r in standard])
    stats.win_rate = win_rate(sum(1 for r in standard if r.is_win), len(standard))
    stats.total_roi_percent = roi_percent(
        stats.total_profit_usd, total([r.invested_usd for r in standard])
    )

    stats.standard_fees_usd = total([r.fees_usd for r in standard])
    stats.averaging_fees_usd = total([r.fees_usd for r in averaging])
    stats.total_fees_usd = stats.standard_fees_usd + stats.averaging_fees_usd

    ranked = sorted(standard, key=lambda r: r.usd, reverse=True)
    if ranked:
        stats.best = ranked[0]
        stats.worst = ranked[-1]
    stats.top_winners = ranked[:TOP_N]
    stats.top_losers = list(reversed(ranked[-TOP_N:]))
    stats.by_coin = _coin_rollups(standard)

    running = cumulative(usd)
    stats.cumulative_profit = [
        CumulativePoint(date=r.close_date.date().isoformat(), profit=value)
        for r, value in zip(standard, running)
        if r.close_date is not None
    ]

    stats.long = _long_summary(longs)
    stats.short = _short_summary(shorts)
    stats.averaging = _short_summary(averaging)
    return stats
