"""Profit calculations for LONG and SHORT positions: pure functions, no I/O.

Fees are percentage points (``1`` means 1%). LONG profit is measured in USD,
SHORT profit in coins: a SHORT sells coins for USD and buys more (or fewer)
coins back with the proceeds.

LONG ``sum_plus_fee`` is the USD spent including the entry fee; SHORT
``sum_plus_fee`` is the gross sale proceeds before the sale fee. The net USD a
SHORT has to buy back with is therefore ``short_net_proceeds``.
"""

from __future__ import annotations

from decimal import Decimal

from crypto_ledger.models.position import Position

HUNDRED = Decimal("100")
ZERO = Decimal("0")


def long_profit_usd(
    amount: Decimal,
    sum_plus_fee: Decimal,
    exit_price: Decimal,
    exit_fee: Decimal,
) -> Decimal:
    """amount × exit_price × (100 − exit_fee)/100 − sum_plus_fee.

    Negative for a loss; never clamped.
    """
    exit_value = amount * exit_price * (HUNDRED - exit_fee) / HUNDRED
    return exit_value - sum_plus_fee


def long_profit_percent(
    entry_price: Decimal,
    exit_price: Decimal,
    entry_fee: Decimal,
    exit_fee: Decimal,
) -> Decimal:
    """(exit/entry − 1) × 100 − entry_fee − exit_fee."""
    return (exit_price / entry_price - 1) * HUNDRED - entry_fee - exit_fee


def short_net_proceeds(sum_plus_fee: Decimal, entry_fee: Decimal) -> Decimal:
    """USD actually received from a SHORT sale after the sale fee."""
    return sum_plus_fee * (HUNDRED - entry_fee) / HUNDRED


def coins_bought_back(
    net_proceeds: Decimal,
    buy_back_price: Decimal,
    buy_back_fee: Decimal,
) -> Decimal:
    """Coins the net proceeds buy at *buy_back_price* plus fee."""
    price_with_fee = buy_back_price * (HUNDRED + buy_back_fee) / HUNDRED
    return net_proceeds / price_with_fee


def short_profit_coins(
    sold_amount: Decimal,
    net_proceeds: Decimal,
    buy_back_price: Decimal,
    buy_back_fee: Decimal,
) -> Decimal:
    return coins_bought_back(net_proceeds, buy_back_price, buy_back_fee) - sold_amount


def short_profit_percent(sold_amount: Decimal, bought_back: Decimal) -> Decimal:
    return (bought_back / sold_amount - 1) * HUNDRED


def recalculate_long_entry_price(total_sum_plus_fee: Decimal, new_total_amount: Decimal) -> Decimal:
    """Average cost per coin once bought-back coins are merged into a LONG."""
    if new_total_amount <= 0:
        raise ValueError("cannot price a LONG holding zero coins")
    return total_sum_plus_fee / new_total_amount


# ── Position-level helpers ────────────────────────────────────


def effective_holding(position: Position) -> tuple[Decimal, Decimal]:
    """(amount, sum_plus_fee) still attributable to *position* itself.

    A parent that has been partially closed only owns ``remaining_amount`` and
    whatever cost its slices have not taken (``closed_sum_plus_fee``). Coins
    lent to or returned by derived SHORTs change the remainder, never the cost.
    """
    if not position.has_slices or position.remaining_amount is None:
        return position.amount, position.sum_plus_fee
    remaining = position.remaining_amount
    if position.closed_sum_plus_fee > 0:
        return remaining, position.sum_plus_fee - position.closed_sum_plus_fee
    # Records sliced before closed_sum_plus_fee was tracked
    original = position.original_amount
    return remaining, position.sum_plus_fee * remaining / original


def position_profit_usd(position: Position) -> Decimal | None:
    """USD profit of a LONG; None while no exit price is recorded."""
    if position.exit_price is None or not position.is_long:
        return None
    amount, cost = effective_holding(position)
    return long_profit_usd(amount, cost, position.exit_price, position.exit_fee or ZERO)


def position_coins_bought_back(position: Position) -> Decimal | None:
    """Coins a SHORT's remaining proceeds buy back at its exit price."""
    if position.exit_price is None or not position.is_short:
        return None
    _, gross = effective_holding(position)
    net = short_net_proceeds(gross, position.entry_fee)
    return coins_bought_back(net, position.exit_price, position.exit_fee or ZERO)


def position_profit_coins(position: Position) -> Decimal | None:
    """Coin profit of a SHORT; None while no exit price is recorded."""
    bought_back = position_coins_bought_back(position)
    if bought_back is None:
        return None
    amount, _ = effective_holding(position)
    return bought_back - amount


def position_profit_percent(position: Position) -> Decimal | None:
    if position.exit_price is None:
        return None
    exit_fee = position.exit_fee or ZERO
    if position.is_short:
        amount, _ = effective_holding(position)
        if amount <= 0:
            return None
        return short_profit_percent(amount, position_coins_bought_back(position))
    return long_profit_percent(position.entry_price, position.exit_price, position.entry_fee, exit_fee)


def position_fees_usd(position: Position) -> Decimal:
    """Entry fee always; exit fee only once an exit price is set."""
    amount, cost = effective_holding(position)
    fees = cost * position.entry_fee / HUNDRED
    if position.exit_price is not None and position.exit_fee is not None:
        fees += amount * position.exit_price * position.exit_fee / HUNDRED
    return fees
