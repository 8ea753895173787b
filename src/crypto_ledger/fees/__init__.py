"""Fee tiers and rolling volume."""

from crypto_ledger.fees.schedule import (
    COINBASE_MAKER_TIERS,
    FeeLevel,
    FeeSchedule,
    FeeTier,
    NextFeeLevel,
    format_fee_with_level,
)
from crypto_ledger.fees.volume import rolling_volume

__all__ = [
    "COINBASE_MAKER_TIERS",
    "FeeLevel",
    "FeeSchedule",
    "FeeTier",
    "NextFeeLevel",
    "format_fee_with_level",
    "rolling_volume",
]
