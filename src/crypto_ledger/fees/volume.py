"""Rolling trading volume used to pick a fee tier."""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable

from crypto_ledger.models.position import Position, as_utc


def rolling_volume(
    positions: Iterable[Position],
    now: datetime,
    window_days: int = 30,
    exclude_id: str | None = None,
) -> Decimal:
    """Sum ``sum_plus_fee`` of FILLED/CLOSED positions active inside the window.

    A position counts when its fill date or close date falls within the last
    *window_days*. *exclude_id* drops one position, so an entry fee can be
    suggested for a trade without counting the trade itself.
    """
    since = as_utc(now) - timedelta(days=window_days)
    total = Decimal("0")
    for pos in positions:
        if pos.status not in ("FILLED", "CLOSED"):
            continue
        if exclude_id is not None and pos.id == exclude_id:
            continue
        filled = pos.filled_date is not None and pos.filled_date >= since
        closed = pos.close_date is not None and pos.close_date >= since
        if filled or closed:
            total += pos.sum_plus_fee
    return total
