"""Exceptions raised by ledger operations.

Every failure is raised immediately with enough context (field, limit,
offending id) for a caller to render a message. Nothing here is retried.
"""

from __future__ import annotations

from decimal import Decimal

from pydantic import ValidationError as PydanticValidationError


class LedgerError(Exception):
    """Base exception for all ledger errors."""


class ValidationError(LedgerError):
    """Malformed or out-of-range input, detected before any mutation."""

    def __init__(self, field: str | None, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}" if field else message)


class NotFoundError(LedgerError):
    """Referenced position or portfolio does not exist."""

    def __init__(self, kind: str, ident: str) -> None:
        self.kind = kind
        self.ident = ident
        super().__init__(f"{kind} {ident} not found")


class ForbiddenError(LedgerError):
    """Caller does not own the portfolio."""


class InvalidStateError(LedgerError):
    """Operation is illegal for the position's current status."""


class InsufficientBalanceError(LedgerError):
    """SHORT amount exceeds what the parent or free balance holds."""

    def __init__(self, requested: Decimal, available: Decimal, source: str) -> None:
        self.requested = requested
        self.available = available
        self.source = source
        super().__init__(
            f"cannot short {requested}: only {available} available from {source}"
        )


class MissingExitPriceError(ValidationError, InvalidStateError):
    """A derived SHORT cannot be settled without an exit price."""

    def __init__(self, position_id: str) -> None:
        self.position_id = position_id
        super().__init__("exit_price", "cannot close without exit price")


class StorageError(LedgerError):
    """The storage collaborator failed; retry policy belongs to the caller."""


def from_pydantic(exc: PydanticValidationError) -> ValidationError:
    """Convert a pydantic error into a ledger ``ValidationError``.

    Only the first problem is reported; its location names the field.
    """
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or None
    return ValidationError(field, first.get("msg", str(exc)))
