"""Position-accounting engine for a personal crypto trading ledger."""

__version__ = "0.1.0"
