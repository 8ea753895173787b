"""Tests for SHORT positions: borrowing, settlement, deletion."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from conftest import OWNER, STRANGER, filled_long, open_long, open_short
from crypto_ledger.ledger import (
    ForbiddenError,
    InsufficientBalanceError,
    InvalidStateError,
    MemoryStore,
    MissingExitPriceError,
    NotFoundError,
    PositionLedger,
    StorageError,
    ValidationError,
)
from crypto_ledger.metrics.profit import short_net_proceeds

D = Decimal


class FailingStore(MemoryStore):
    """Fails when a SHORT is written, after its parent was already saved."""

    def save_position(self, position):
        if position.trade_type == "SHORT":
            raise StorageError("disk full")
        super().save_position(position)


# ═══════════════════════════════════════════════════════════════
# create_short
# ═══════════════════════════════════════════════════════════════


class TestShortFromParent:
    def test_borrows_from_parent(self, ledger, portfolio, store):
        parent = filled_long(ledger, portfolio)
        short = open_short(ledger, portfolio, parent_trade_id=parent.id, amount=D("0.004"),
                           sum_plus_fee=D("440"))
        reloaded = store.load_position(parent.id)
        assert reloaded.amount == D("0.006")
        assert reloaded.remaining_amount == D("0.006")
        assert reloaded.sum_plus_fee == D("1010")
        assert reloaded.entry_price == D("100000")
        assert short.trade_type == "SHORT"
        assert short.status == "OPEN"
        assert short.exit_fee == short.entry_fee

    def test_inherits_parent_cost_basis(self, ledger, portfolio):
        parent = filled_long(ledger, portfolio)
        short = open_short(ledger, portfolio, parent_trade_id=parent.id, amount=D("0.004"))
        assert short.initial_entry_price == D("100000")
        assert short.initial_amount == D("0.01")
        assert short.entry_price == D("110000")

    def test_open_parent_allowed(self, ledger, portfolio):
        parent = open_long(ledger, portfolio)
        short = open_short(ledger, portfolio, parent_trade_id=parent.id, amount=D("0.001"))
        assert short.parent_trade_id == parent.id

    def test_amount_above_parent_holding(self, ledger, portfolio, store):
        parent = filled_long(ledger, portfolio)
        with pytest.raises(InsufficientBalanceError) as exc:
            open_short(ledger, portfolio, parent_trade_id=parent.id, amount=D("0.02"))
        assert exc.value.requested == D("0.02")
        assert exc.value.available == D("0.01")
        assert store.load_position(parent.id).amount == D("0.01")

    def test_whole_holding_can_be_borrowed(self, ledger, portfolio, store):
        parent = filled_long(ledger, portfolio)
        open_short(ledger, portfolio, parent_trade_id=parent.id, amount=D("0.01"))
        assert store.load_position(parent.id).amount == 0

    def test_missing_parent(self, ledger, portfolio):
        with pytest.raises(NotFoundError):
            open_short(ledger, portfolio, parent_trade_id="missing")

    def test_closed_parent_rejected(self, ledger, portfolio):
        parent = filled_long(ledger, portfolio)
        ledger.update_position(parent.id, OWNER, {"status": "CLOSED", "exit_price": D("1")})
        with pytest.raises(InvalidStateError):
            open_short(ledger, portfolio, parent_trade_id=parent.id, amount=D("0.001"))

    def test_short_parent_rejected(self, ledger, portfolio):
        other = open_short(ledger, portfolio, amount=D("0.1"))
        with pytest.raises(InvalidStateError):
            open_short(ledger, portfolio, parent_trade_id=other.id, amount=D("0.001"))

    def test_parent_in_other_portfolio_rejected(self, ledger, portfolio, portfolios):
        second = portfolios.create_portfolio(OWNER, {
            "name": "Second",
            "total_deposit": D("100"),
            "coins": [{"symbol": "BTC", "percentage": D("100")}],
        })
        parent = filled_long(ledger, second)
        with pytest.raises(InvalidStateError):
            open_short(ledger, portfolio, parent_trade_id=parent.id, amount=D("0.001"))

    def test_parent_coin_must_match(self, ledger, portfolio):
        parent = filled_long(ledger, portfolio)
        with pytest.raises(ValidationError):
            open_short(ledger, portfolio, parent_trade_id=parent.id, coin_symbol="ETH",
                       amount=D("0.001"))

    def test_other_user_forbidden(self, ledger, portfolio):
        parent = filled_long(ledger, portfolio)
        with pytest.raises(ForbiddenError):
            ledger.create_short(portfolio.id, STRANGER, {
                "coin_symbol": "BTC", "entry_price": 1, "deposit_percent": 1, "entry_fee": 0,
                "amount": D("0.001"), "sum_plus_fee": 1, "parent_trade_id": parent.id,
            })

    def test_failed_write_leaves_parent_untouched(self, portfolio, portfolios):
        failing = FailingStore()
        failing.save_portfolio(portfolio)
        ledger = PositionLedger(failing)
        parent = filled_long(ledger, portfolio)
        with pytest.raises(StorageError):
            open_short(ledger, portfolio, parent_trade_id=parent.id, amount=D("0.004"))
        assert failing.load_position(parent.id).amount == D("0.01")


class TestShortFromInitialCoins:
    def test_draws_down_initial_balance(self, ledger, portfolio, store):
        short = open_short(ledger, portfolio, amount=D("0.2"))
        assert store.load_portfolio(portfolio.id).initial_coins == {"BTC": D("0.3")}
        assert short.parent_trade_id is None
        assert short.initial_entry_price == D("110000")
        assert short.initial_amount == D("0.2")

    def test_balance_removed_when_exhausted(self, ledger, portfolio, store):
        open_short(ledger, portfolio, amount=D("0.5"))
        assert store.load_portfolio(portfolio.id).initial_coins == {}

    def test_insufficient_initial_coins(self, ledger, portfolio):
        with pytest.raises(InsufficientBalanceError) as exc:
            open_short(ledger, portfolio, amount=D("0.6"))
        assert exc.value.available == D("0.5")

    def test_no_initial_balance_for_coin(self, ledger, portfolio):
        with pytest.raises(InsufficientBalanceError) as exc:
            open_short(ledger, portfolio, coin_symbol="ETH", amount=D("1"))
        assert exc.value.available == 0

    def test_averaging_flag(self, ledger, portfolio):
        short = open_short(ledger, portfolio, amount=D("0.1"), averaging=True)
        assert short.is_averaging_short


# ═══════════════════════════════════════════════════════════════
# Settlement on close
# ═══════════════════════════════════════════════════════════════


class TestSettlement:
    def _borrowed(self, ledger, portfolio):
        parent = filled_long(ledger, portfolio)
        short = open_short(ledger, portfolio, parent_trade_id=parent.id, amount=D("0.004"),
                           sum_plus_fee=D("440"))
        ledger.update_position(short.id, OWNER, {"status": "FILLED"})
        return parent, short

    def test_close_merges_bought_back_coins(self, ledger, portfolio, store):
        parent, short = self._borrowed(ledger, portfolio)
        ledger.update_position(short.id, OWNER, {
            "status": "CLOSED", "exit_price": D("100000"), "exit_fee": D("0"),
        })
        after = store.load_position(parent.id)
        # 440 * 0.99 / 100000 = 0.004356 coins back
        assert after.amount == D("0.010356")
        assert after.entry_price == after.sum_plus_fee / after.amount
        assert after.sum_plus_fee == D("1010")

    def test_settlement_keeps_parent_cost_basis(self, ledger, portfolio, store):
        parent, short = self._borrowed(ledger, portfolio)
        ledger.update_position(short.id, OWNER, {
            "status": "CLOSED", "exit_price": D("90000"), "exit_fee": D("0.5"),
        })
        after = store.load_position(parent.id)
        assert after.initial_entry_price == D("100000")
        assert after.initial_amount == D("0.01")

    def test_bought_back_matches_formula(self, ledger, portfolio, store):
        parent, short = self._borrowed(ledger, portfolio)
        x, f = D("95000"), D("0.25")
        ledger.update_position(short.id, OWNER, {"status": "CLOSED", "exit_price": x, "exit_fee": f})
        expected = short_net_proceeds(D("440"), D("1")) / (x * (100 + f) / 100)
        after = store.load_position(parent.id)
        assert after.amount == (D("0.006") + expected).quantize(D("1e-8"))

    def test_close_without_exit_price_fails(self, ledger, portfolio, store):
        parent, short = self._borrowed(ledger, portfolio)
        with pytest.raises(MissingExitPriceError) as exc:
            ledger.update_position(short.id, OWNER, {"status": "CLOSED"})
        assert isinstance(exc.value, ValidationError)
        assert isinstance(exc.value, InvalidStateError)
        assert exc.value.field == "exit_price"
        assert store.load_position(short.id).status == "FILLED"
        assert store.load_position(parent.id).amount == D("0.006")

    def test_only_first_close_settles(self, ledger, portfolio, store):
        parent, short = self._borrowed(ledger, portfolio)
        ledger.update_position(short.id, OWNER, {"status": "CLOSED", "exit_price": D("100000"),
                                                 "exit_fee": D("0")})
        ledger.update_position(short.id, OWNER, {"status": "CLOSED", "exit_price": D("80000")})
        assert store.load_position(parent.id).amount == D("0.010356")

    def test_closed_parent_is_not_settled(self, ledger, portfolio, store):
        parent, short = self._borrowed(ledger, portfolio)
        ledger.update_position(parent.id, OWNER, {"status": "CLOSED", "exit_price": D("1")})
        ledger.update_position(short.id, OWNER, {"status": "CLOSED", "exit_price": D("100000")})
        assert store.load_position(parent.id).amount == D("0.006")

    def test_initial_coin_short_has_no_settlement(self, ledger, portfolio, store):
        short = open_short(ledger, portfolio, amount=D("0.1"))
        closed = ledger.update_position(short.id, OWNER, {"status": "CLOSED"})
        assert closed.status == "CLOSED"
        assert store.load_portfolio(portfolio.id).initial_coins == {"BTC": D("0.4")}


class TestDerivedShortAmountEdit:
    def test_increase_borrows_more(self, ledger, portfolio, store):
        parent = filled_long(ledger, portfolio)
        short = open_short(ledger, portfolio, parent_trade_id=parent.id, amount=D("0.004"))
        ledger.update_position(short.id, OWNER, {"amount": D("0.006")})
        assert store.load_position(parent.id).amount == D("0.004")

    def test_decrease_returns_coins(self, ledger, portfolio, store):
        parent = filled_long(ledger, portfolio)
        short = open_short(ledger, portfolio, parent_trade_id=parent.id, amount=D("0.004"))
        ledger.update_position(short.id, OWNER, {"amount": D("0.001")})
        assert store.load_position(parent.id).amount == D("0.009")

    def test_increase_beyond_parent_fails(self, ledger, portfolio, store):
        parent = filled_long(ledger, portfolio)
        short = open_short(ledger, portfolio, parent_trade_id=parent.id, amount=D("0.004"))
        with pytest.raises(InsufficientBalanceError):
            ledger.update_position(short.id, OWNER, {"amount": D("0.02")})
        assert store.load_position(short.id).amount == D("0.004")


# ═══════════════════════════════════════════════════════════════
# delete_position
# ═══════════════════════════════════════════════════════════════


class TestDelete:
    def test_open_short_returns_coins_to_parent(self, ledger, portfolio, store):
        parent = filled_long(ledger, portfolio, amount=D("0.10"), sum_plus_fee=D("10100"))
        short = open_short(ledger, portfolio, parent_trade_id=parent.id, amount=D("0.02"))
        assert store.load_position(parent.id).amount == D("0.08")
        ledger.delete_position(short.id, OWNER)
        assert store.load_position(parent.id).amount == D("0.10")
        assert store.load_position(short.id) is None

    def test_closed_short_returns_nothing(self, ledger, portfolio, store):
        parent = filled_long(ledger, portfolio)
        short = open_short(ledger, portfolio, parent_trade_id=parent.id, amount=D("0.004"),
                           sum_plus_fee=D("440"))
        ledger.update_position(short.id, OWNER, {"status": "CLOSED", "exit_price": D("100000"),
                                                 "exit_fee": D("0")})
        ledger.delete_position(short.id, OWNER)
        assert store.load_position(parent.id).amount == D("0.010356")

    def test_long_delete_has_no_reversal(self, ledger, portfolio, store):
        parent = filled_long(ledger, portfolio)
        short = open_short(ledger, portfolio, parent_trade_id=parent.id, amount=D("0.004"))
        ledger.delete_position(parent.id, OWNER)
        assert store.load_position(parent.id) is None
        assert store.load_position(short.id).amount == D("0.004")

    def test_short_with_missing_parent_still_deleted(self, ledger, portfolio, store):
        parent = filled_long(ledger, portfolio)
        short = open_short(ledger, portfolio, parent_trade_id=parent.id, amount=D("0.004"))
        ledger.delete_position(parent.id, OWNER)
        ledger.delete_position(short.id, OWNER)
        assert store.load_position(short.id) is None

    def test_delete_forbidden(self, ledger, portfolio, store):
        pos = open_long(ledger, portfolio)
        with pytest.raises(ForbiddenError):
            ledger.delete_position(pos.id, STRANGER)
        assert store.load_position(pos.id) is not None

    def test_delete_missing(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.delete_position("missing", OWNER)
