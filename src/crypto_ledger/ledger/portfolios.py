"""Portfolio operations and the ownership check shared by every ledger call."""

from __future__ import annotations

from typing import Any, TypeVar

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from crypto_ledger.config.schema import LedgerConfig
from crypto_ledger.ledger.errors import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
    from_pydantic,
)
from crypto_ledger.ledger.store import LedgerStore
from crypto_ledger.models.portfolio import Portfolio
from crypto_ledger.models.requests import PortfolioRequest

log = structlog.get_logger("portfolios")

RequestT = TypeVar("RequestT", bound=BaseModel)


def parse_request(model: type[RequestT], data: RequestT | dict[str, Any]) -> RequestT:
    """Accept a request model or a plain mapping; raise ``ValidationError``."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise from_pydantic(exc) from exc


def require_owned(store: LedgerStore, portfolio_id: str, caller_id: str) -> Portfolio:
    """Load a portfolio the caller owns.

    Raises NotFoundError when it does not exist and ForbiddenError when it
    belongs to someone else.
    """
    portfolio = store.load_portfolio(portfolio_id)
    if portfolio is None:
        raise NotFoundError("portfolio", portfolio_id)
    if portfolio.user_id != caller_id:
        log.warning("portfolio_access_denied", portfolio_id=portfolio_id, caller_id=caller_id)
        raise ForbiddenError(f"portfolio {portfolio_id} does not belong to {caller_id}")
    return portfolio


class PortfolioManager:
    """Create, edit and remove portfolios.

    Positions reference portfolios by id only; what happens to them when a
    portfolio is deleted is ``LedgerConfig.portfolio_delete_policy``.
    """

    def __init__(self, store: LedgerStore, config: LedgerConfig | None = None) -> None:
        self.store = store
        self.config = config or LedgerConfig()

    def create_portfolio(
        self,
        caller_id: str,
        request: PortfolioRequest | dict[str, Any],
    ) -> Portfolio:
        req = parse_request(PortfolioRequest, request)
        for name in ("name", "total_deposit", "coins"):
            if getattr(req, name) is None:
                raise ValidationError(name, "is required")

        try:
            portfolio = Portfolio(
                user_id=caller_id,
                name=req.name,
                total_deposit=req.total_deposit,
                coins=req.coins,
                initial_coins=req.initial_coins or {},
            )
        except PydanticValidationError as exc:
            raise from_pydantic(exc) from exc

        with self.store.transaction():
            self.store.save_portfolio(portfolio)
        log.info(
            "portfolio_created",
            portfolio_id=portfolio.id,
            user_id=caller_id,
            coins=[coin.symbol for coin in portfolio.coins],
        )
        return portfolio

    def get_portfolio(self, portfolio_id: str, caller_id: str) -> Portfolio:
        return require_owned(self.store, portfolio_id, caller_id)

    def update_portfolio(
        self,
        portfolio_id: str,
        caller_id: str,
        request: PortfolioRequest | dict[str, Any],
    ) -> Portfolio:
        """Replace the fields given in *request*; the rest are kept."""
        req = parse_request(PortfolioRequest, request)
        changes = req.model_dump(exclude_unset=True, exclude_none=True)

        with self.store.transaction():
            portfolio = require_owned(self.store, portfolio_id, caller_id)
            merged = {**portfolio.model_dump(), **changes}
            try:
                updated = Portfolio.model_validate(merged)
            except PydanticValidationError as exc:
                raise from_pydantic(exc) from exc
            self.store.save_portfolio(updated)

        log.info("portfolio_updated", portfolio_id=portfolio_id, fields=sorted(changes))
        return updated

    def delete_portfolio(self, portfolio_id: str, caller_id: str) -> None:
        policy = self.config.portfolio_delete_policy
        with self.store.transaction():
            require_owned(self.store, portfolio_id, caller_id)
            positions = self.store.query_positions(portfolio_id)
            if positions and policy == "reject":
                raise InvalidStateError(
                    f"portfolio {portfolio_id} still has {len(positions)} positions"
                )
            if policy == "cascade":
                for pos in positions:
                    self.store.delete_position(pos.id)
            self.store.delete_portfolio(portfolio_id)

        log.info(
            "portfolio_deleted",
            portfolio_id=portfolio_id,
            policy=policy,
            positions=len(positions),
        )
