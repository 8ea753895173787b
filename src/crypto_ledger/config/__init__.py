"""Configuration system."""

from crypto_ledger.config.loader import load_config
from crypto_ledger.config.schema import AppConfig, FeeConfig, LedgerConfig

__all__ = ["AppConfig", "FeeConfig", "LedgerConfig", "load_config"]
