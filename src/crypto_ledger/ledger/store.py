"""Storage collaborator interface and a dict-backed implementation."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from typing import Protocol

from crypto_ledger.models.portfolio import Portfolio
from crypto_ledger.models.position import Position


class LedgerStore(Protocol):
    """What the ledger needs from persistence.

    Loads return detached copies; changes only take effect through ``save_*``.
    Mutations made inside ``transaction()`` are committed together or not at
    all. Failures raise ``StorageError``.
    """

    def load_position(self, position_id: str) -> Position | None: ...

    def save_position(self, position: Position) -> None: ...

    def query_positions(self, portfolio_id: str, status: str | None = None) -> list[Position]: ...

    def query_split_group(self, split_group_id: str) -> list[Position]: ...

    def delete_position(self, position_id: str) -> None: ...

    def load_portfolio(self, portfolio_id: str) -> Portfolio | None: ...

    def save_portfolio(self, portfolio: Portfolio) -> None: ...

    def delete_portfolio(self, portfolio_id: str) -> None: ...

    def transaction(self) -> AbstractContextManager[None]: ...


def _newest_first(positions: list[Position]) -> list[Position]:
    return sorted(positions, key=lambda p: p.open_date, reverse=True)


class MemoryStore:
    """In-process store; transactions snapshot and restore on error."""

    def __init__(self) -> None:
        self._positions: dict[str, Position] = {}
        self._portfolios: dict[str, Portfolio] = {}
        self._depth = 0

    # ── Positions ─────────────────────────────────────────────

    def load_position(self, position_id: str) -> Position | None:
        pos = self._positions.get(position_id)
        return pos.model_copy(deep=True) if pos is not None else None

    def save_position(self, position: Position) -> None:
        self._positions[position.id] = position.model_copy(deep=True)

    def query_positions(self, portfolio_id: str, status: str | None = None) -> list[Position]:
        found = [
            p.model_copy(deep=True)
            for p in self._positions.values()
            if p.portfolio_id == portfolio_id and (status is None or p.status == status)
        ]
        return _newest_first(found)

    def query_split_group(self, split_group_id: str) -> list[Position]:
        return [
            p.model_copy(deep=True)
            for p in self._positions.values()
            if p.split_group_id == split_group_id
        ]

    def delete_position(self, position_id: str) -> None:
        self._positions.pop(position_id, None)

    # ── Portfolios ────────────────────────────────────────────

    def load_portfolio(self, portfolio_id: str) -> Portfolio | None:
        portfolio = self._portfolios.get(portfolio_id)
        return portfolio.model_copy(deep=True) if portfolio is not None else None

    def save_portfolio(self, portfolio: Portfolio) -> None:
        self._portfolios[portfolio.id] = portfolio.model_copy(deep=True)

    def delete_portfolio(self, portfolio_id: str) -> None:
        self._portfolios.pop(portfolio_id, None)

    # ── Transactions ──────────────────────────────────────────

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._depth > 0:
            # Nested: the outermost transaction owns the snapshot
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        positions = dict(self._positions)
        portfolios = dict(self._portfolios)
        self._depth = 1
        try:
            yield
        except BaseException:
            self._positions = positions
            self._portfolios = portfolios
            raise
        finally:
            self._depth = 0
