"""Pydantic domain models."""

from crypto_ledger.models.portfolio import CoinAllocation, Portfolio
from crypto_ledger.models.position import (
    STATUS_ORDER,
    CostBasis,
    Position,
    TradeStatus,
    TradeType,
    as_utc,
    new_id,
    utcnow,
)
from crypto_ledger.models.requests import (
    OpenLongRequest,
    OpenShortRequest,
    PartialCloseRequest,
    PortfolioRequest,
    PositionPatch,
    SplitRequest,
)

__all__ = [
    "STATUS_ORDER",
    "CoinAllocation",
    "CostBasis",
    "OpenLongRequest",
    "OpenShortRequest",
    "PartialCloseRequest",
    "Portfolio",
    "PortfolioRequest",
    "Position",
    "PositionPatch",
    "SplitRequest",
    "TradeStatus",
    "TradeType",
    "as_utc",
    "new_id",
    "utcnow",
]
