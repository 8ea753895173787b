"""Calendar periods used to filter statistics by close date."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from crypto_ledger.models.position import as_utc


@dataclass(frozen=True)
class DateRange:
    """Half-open UTC interval ``[start, end)``."""

    start: datetime
    end: datetime

    def __contains__(self, moment: datetime | None) -> bool:
        if moment is None:
            return False
        return self.start <= as_utc(moment) < self.end


def date_range_for_year(year: int) -> DateRange:
    return DateRange(
        start=datetime(year, 1, 1, tzinfo=timezone.utc),
        end=datetime(year + 1, 1, 1, tzinfo=timezone.utc),
    )


def date_range_for_month(year: int, month: int) -> DateRange:
    """Range covering *month* (1-12) of *year*."""
    if not 1 <= month <= 12:
        raise ValueError(f"month must be 1-12, got {month}")
    start = datetime(year, month, 1, tzinfo=timezone.utc)
    if month == 12:
        end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        end = datetime(year, month + 1, 1, tzinfo=timezone.utc)
    return DateRange(start=start, end=end)
