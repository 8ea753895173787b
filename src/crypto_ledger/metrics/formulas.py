"""Pure aggregate formulas over float series: no models, no storage."""

from __future__ import annotations

from typing import Sequence

import numpy as np


def win_rate(wins: int, total: int) -> float:
    """Win rate as a percentage 0-100."""
    if total <= 0:
        return 0.0
    return wins / total * 100


def mean(values: Sequence[float]) -> float:
    """Simple (unweighted) mean; 0.0 for an empty series."""
    if len(values) == 0:
        return 0.0
    return float(np.mean(np.asarray(values, dtype=np.float64)))


def total(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.sum(np.asarray(values, dtype=np.float64)))


def roi_percent(profit: float, invested: float) -> float:
    """Profit over invested capital, as a percentage."""
    if invested <= 0:
        return 0.0
    return profit / invested * 100


def cumulative(values: Sequence[float]) -> list[float]:
    """Running total of *values*, in order."""
    if len(values) == 0:
        return []
    return [float(v) for v in np.cumsum(np.asarray(values, dtype=np.float64))]
