"""Structured logging."""

from crypto_ledger.logging.setup import bind_command, get_logger, setup_logging

__all__ = ["bind_command", "get_logger", "setup_logging"]
