"""structlog configuration for ledger events.

Events go to stderr so the CLI can keep stdout for its JSON output.
"""

from __future__ import annotations

import logging
import sys
from decimal import Decimal

import structlog

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _render_decimals(_logger, _method_name, event_dict: dict) -> dict:
    """Render Decimal amounts as plain strings ("0.007", not "0.0070000000")."""
    for key, value in event_dict.items():
        if isinstance(value, Decimal):
            event_dict[key] = format(value.normalize(), "f")
    return event_dict


def _event_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _render_decimals,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "console":
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer(default=str)


def setup_logging(level: str = "INFO", log_format: str = "json") -> None:
    """Route structlog through stdlib logging.

    Args:
        level: One of ``LEVELS``; unknown names fall back to INFO.
        log_format: "json" for machine-readable lines, "console" for a terminal.
    """
    structlog.configure(
        processors=[
            *_event_processors(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        # Reconfigured per CLI run and per test
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(log_format),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    name = level.upper()
    root.setLevel(getattr(logging, name) if name in LEVELS else logging.INFO)


def get_logger(name: str | None = None, **context) -> structlog.stdlib.BoundLogger:
    """A logger with *context* (e.g. ``portfolio_id``) bound to every event."""
    logger = structlog.get_logger(name)
    return logger.bind(**context) if context else logger


def bind_command(command: str, **context) -> None:
    """Attach the running command (and any ids) to every event that follows."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(command=command, **context)
