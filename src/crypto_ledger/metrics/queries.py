"""Store bridge: loads a portfolio's positions and delegates to statistics.py."""

from __future__ import annotations

import structlog

from crypto_ledger.config.schema import LedgerConfig
from crypto_ledger.ledger.portfolios import require_owned
from crypto_ledger.ledger.store import LedgerStore
from crypto_ledger.metrics.periods import DateRange
from crypto_ledger.metrics.statistics import PortfolioStatistics, compute_statistics

log = structlog.get_logger("statistics")


def compute_portfolio_statistics(
    store: LedgerStore,
    portfolio_id: str,
    caller_id: str,
    period: DateRange | None = None,
    config: LedgerConfig | None = None,
) -> PortfolioStatistics:
    """Statistics for a portfolio the caller owns."""
    config = config or LedgerConfig()
    require_owned(store, portfolio_id, caller_id)
    positions = store.query_positions(portfolio_id)
    stats = compute_statistics(positions, period=period, epsilon=config.zero_epsilon)
    log.info(
        "statistics_computed",
        portfolio_id=portfolio_id,
        positions=len(positions),
        closed=stats.counts.closed,
        period_start=period.start.isoformat() if period else None,
    )
    return stats
