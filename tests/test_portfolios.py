"""Tests for portfolio operations and delete policies."""

from __future__ import annotations

from decimal import Decimal

import pytest

from conftest import OWNER, STRANGER, open_long
from crypto_ledger.config.schema import LedgerConfig
from crypto_ledger.ledger import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    PortfolioManager,
    PositionLedger,
    ValidationError,
)

D = Decimal

BASIC = {
    "name": "  Swing  ",
    "total_deposit": D("5000"),
    "coins": [{"symbol": "sol", "percentage": D("100")}],
}


class TestCreate:
    def test_create(self, portfolios, store):
        created = portfolios.create_portfolio(OWNER, BASIC)
        assert created.user_id == OWNER
        assert created.name == "Swing"
        assert created.coins[0].symbol == "SOL"
        assert created.initial_coins == {}
        assert store.load_portfolio(created.id) == created

    @pytest.mark.parametrize("missing", ["name", "total_deposit", "coins"])
    def test_required_fields(self, portfolios, missing):
        data = {k: v for k, v in BASIC.items() if k != missing}
        with pytest.raises(ValidationError) as exc:
            portfolios.create_portfolio(OWNER, data)
        assert exc.value.field == missing

    def test_allocation_must_total_100(self, portfolios):
        data = {**BASIC, "coins": [{"symbol": "SOL", "percentage": D("90")}]}
        with pytest.raises(ValidationError):
            portfolios.create_portfolio(OWNER, data)

    def test_negative_deposit(self, portfolios):
        with pytest.raises(ValidationError) as exc:
            portfolios.create_portfolio(OWNER, {**BASIC, "total_deposit": D("-1")})
        assert exc.value.field == "total_deposit"


class TestUpdate:
    def test_update_name_keeps_rest(self, portfolios, portfolio):
        updated = portfolios.update_portfolio(portfolio.id, OWNER, {"name": "Renamed"})
        assert updated.name == "Renamed"
        assert updated.coins == portfolio.coins
        assert updated.initial_coins == portfolio.initial_coins
        assert updated.created_at == portfolio.created_at

    def test_update_initial_coins(self, portfolios, portfolio):
        updated = portfolios.update_portfolio(
            portfolio.id, OWNER, {"initial_coins": {"eth": D("2")}}
        )
        assert updated.initial_coins == {"ETH": D("2")}

    def test_invalid_update_leaves_portfolio(self, portfolios, portfolio, store):
        with pytest.raises(ValidationError):
            portfolios.update_portfolio(
                portfolio.id, OWNER, {"coins": [{"symbol": "BTC", "percentage": D("50")}]}
            )
        assert store.load_portfolio(portfolio.id) == portfolio

    def test_update_forbidden(self, portfolios, portfolio):
        with pytest.raises(ForbiddenError):
            portfolios.update_portfolio(portfolio.id, STRANGER, {"name": "Mine now"})


class TestGet:
    def test_get(self, portfolios, portfolio):
        assert portfolios.get_portfolio(portfolio.id, OWNER) == portfolio

    def test_missing(self, portfolios):
        with pytest.raises(NotFoundError):
            portfolios.get_portfolio("missing", OWNER)

    def test_forbidden(self, portfolios, portfolio):
        with pytest.raises(ForbiddenError):
            portfolios.get_portfolio(portfolio.id, STRANGER)


class TestDelete:
    def test_orphan_policy_leaves_positions(self, portfolios, portfolio, ledger, store):
        pos = open_long(ledger, portfolio)
        portfolios.delete_portfolio(portfolio.id, OWNER)
        assert store.load_portfolio(portfolio.id) is None
        assert store.load_position(pos.id) is not None

    def test_reject_policy(self, store, portfolio, ledger):
        manager = PortfolioManager(store, LedgerConfig(portfolio_delete_policy="reject"))
        open_long(ledger, portfolio)
        with pytest.raises(InvalidStateError):
            manager.delete_portfolio(portfolio.id, OWNER)
        assert store.load_portfolio(portfolio.id) is not None

    def test_reject_policy_allows_empty(self, store, portfolio):
        manager = PortfolioManager(store, LedgerConfig(portfolio_delete_policy="reject"))
        manager.delete_portfolio(portfolio.id, OWNER)
        assert store.load_portfolio(portfolio.id) is None

    def test_cascade_policy(self, store, portfolio):
        manager = PortfolioManager(store, LedgerConfig(portfolio_delete_policy="cascade"))
        ledger = PositionLedger(store)
        first = open_long(ledger, portfolio)
        second = open_long(ledger, portfolio)
        manager.delete_portfolio(portfolio.id, OWNER)
        assert store.load_position(first.id) is None
        assert store.load_position(second.id) is None

    def test_delete_forbidden(self, portfolios, portfolio, store):
        with pytest.raises(ForbiddenError):
            portfolios.delete_portfolio(portfolio.id, STRANGER)
        assert store.load_portfolio(portfolio.id) is not None
