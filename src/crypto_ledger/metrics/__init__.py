"""Profit calculations and portfolio statistics."""

from crypto_ledger.metrics.formulas import cumulative, mean, roi_percent, total, win_rate
from crypto_ledger.metrics.periods import DateRange, date_range_for_month, date_range_for_year
from crypto_ledger.metrics.queries import compute_portfolio_statistics
from crypto_ledger.metrics.statistics import (
    CoinPerformance,
    CumulativePoint,
    LongSummary,
    PortfolioStatistics,
    PositionPerformance,
    ShortSummary,
    StatusCounts,
    closed_positions,
    compute_statistics,
    evaluate_position,
)

__all__ = [
    "CoinPerformance",
    "CumulativePoint",
    "DateRange",
    "LongSummary",
    "PortfolioStatistics",
    "PositionPerformance",
    "ShortSummary",
    "StatusCounts",
    "closed_positions",
    "compute_portfolio_statistics",
    "compute_statistics",
    "cumulative",
    "date_range_for_month",
    "date_range_for_year",
    "evaluate_position",
    "mean",
    "roi_percent",
    "total",
    "win_rate",
]
