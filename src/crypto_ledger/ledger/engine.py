"""PositionLedger: LONG/SHORT lifecycle, partial closes, splits, settlement."""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Literal

import structlog

from crypto_ledger.config.schema import AppConfig, LedgerConfig
from crypto_ledger.fees.schedule import FeeLevel, FeeSchedule
from crypto_ledger.fees.volume import rolling_volume
from crypto_ledger.ledger.errors import (
    InsufficientBalanceError,
    InvalidStateError,
    MissingExitPriceError,
    NotFoundError,
    ValidationError,
)
from crypto_ledger.ledger.portfolios import parse_request, require_owned
from crypto_ledger.ledger.store import LedgerStore
from crypto_ledger.metrics.profit import (
    ZERO,
    effective_holding,
    position_coins_bought_back,
    recalculate_long_entry_price,
)
from crypto_ledger.models.portfolio import Portfolio
from crypto_ledger.models.position import STATUS_ORDER, CostBasis, Position, new_id, utcnow
from crypto_ledger.models.requests import (
    OpenLongRequest,
    OpenShortRequest,
    PartialCloseRequest,
    PositionPatch,
    SplitRequest,
)

log = structlog.get_logger("ledger")

FeeSide = Literal["entry", "exit"]


class PositionLedger:
    """All position mutations for one store.

    Every call takes the caller's id; the owning portfolio must exist and
    belong to the caller. Mutations run inside ``store.transaction()`` so a
    SHORT and its parent LONG, or a parent and its slice, change together.
    """

    def __init__(
        self,
        store: LedgerStore,
        config: LedgerConfig | None = None,
        fee_schedule: FeeSchedule | None = None,
        volume_window_days: int = 30,
    ) -> None:
        self.store = store
        self.config = config or LedgerConfig()
        self.fee_schedule = fee_schedule or FeeSchedule()
        self.volume_window_days = volume_window_days
        self._quantum = Decimal(1).scaleb(-self.config.amount_decimals)

    @classmethod
    def from_config(cls, store: LedgerStore, config: AppConfig) -> PositionLedger:
        """Ledger using the ``ledger`` and ``fees`` sections of *config*."""
        return cls(
            store,
            config.ledger,
            FeeSchedule.from_config(config.fees),
            volume_window_days=config.fees.volume_window_days,
        )

    # ── Amount arithmetic ─────────────────────────────────────

    def _round(self, value: Decimal) -> Decimal:
        return value.quantize(self._quantum, rounding=ROUND_HALF_UP)

    def _is_zero(self, value: Decimal) -> bool:
        return value <= self.config.zero_epsilon

    def _holding(self, position: Position) -> Decimal:
        """Coins a position still holds: the remainder once partially closed."""
        if position.remaining_amount is not None:
            return min(position.amount, position.remaining_amount)
        return position.amount

    def _adjust_holding(self, long: Position, delta: Decimal) -> None:
        """Move coins in or out of a LONG, keeping partial-close fields in step.

        Once slices exist ``original_amount`` stays put: the cost the slices
        carry is fixed in ``closed_sum_plus_fee``.
        """
        sliced = long.has_slices
        if sliced and long.closed_sum_plus_fee == 0:
            long.closed_sum_plus_fee = long.sum_plus_fee - effective_holding(long)[1]
        long.amount = self._round(long.amount + delta)
        if long.original_amount is not None and not sliced:
            long.original_amount = self._round(long.original_amount + delta)
        if long.remaining_amount is not None:
            long.remaining_amount = max(self._round(long.remaining_amount + delta), ZERO)

    # ── Loading ───────────────────────────────────────────────

    def _load_owned(self, position_id: str, caller_id: str) -> tuple[Position, Portfolio]:
        position = self.store.load_position(position_id)
        if position is None:
            raise NotFoundError("position", position_id)
        portfolio = require_owned(self.store, position.portfolio_id, caller_id)
        return position, portfolio

    def _live_parent(self, short: Position) -> Position | None:
        """The LONG a derived SHORT borrowed from, if it can still take coins back."""
        if not short.is_derived_short:
            return None
        parent = self.store.load_position(short.parent_trade_id)
        if parent is None or parent.is_closed or not parent.is_long:
            log.warning(
                "parent_not_live",
                position_id=short.id,
                parent_trade_id=short.parent_trade_id,
                parent_status=parent.status if parent is not None else None,
            )
            return None
        return parent

    def _require_coin(self, portfolio: Portfolio, symbol: str) -> None:
        if not portfolio.has_coin(symbol):
            raise ValidationError(
                "coin_symbol", f"coin {symbol.upper()} is not in portfolio {portfolio.id}"
            )

    # ── Fees ──────────────────────────────────────────────────

    def _fee_level(
        self,
        portfolio_id: str,
        side: FeeSide,
        position_id: str | None,
        now: datetime | None,
    ) -> FeeLevel:
        exclude = position_id if side == "entry" else None
        volume = rolling_volume(
            self.store.query_positions(portfolio_id),
            now or utcnow(),
            window_days=self.volume_window_days,
            exclude_id=exclude,
        )
        return self.fee_schedule.lookup(volume)

    def suggest_fee(
        self,
        portfolio_id: str,
        caller_id: str,
        side: FeeSide = "entry",
        position_id: str | None = None,
        now: datetime | None = None,
    ) -> FeeLevel:
        """Fee tier for the portfolio's rolling volume.

        An entry fee leaves *position_id* out of the volume so a trade does
        not count towards its own fee; an exit fee includes everything.
        """
        if side not in ("entry", "exit"):
            raise ValidationError("side", "must be 'entry' or 'exit'")
        require_owned(self.store, portfolio_id, caller_id)
        return self._fee_level(portfolio_id, side, position_id, now)

    # ── Create ────────────────────────────────────────────────

    def create_long(
        self,
        portfolio_id: str,
        caller_id: str,
        request: OpenLongRequest | dict[str, Any],
    ) -> Position:
        req = parse_request(OpenLongRequest, request)
        with self.store.transaction():
            portfolio = require_owned(self.store, portfolio_id, caller_id)
            self._require_coin(portfolio, req.coin_symbol)

            entry_fee = req.entry_fee
            if entry_fee is None:
                entry_fee = self._fee_level(portfolio_id, "entry", None, None).fee_percent

            position = Position(
                portfolio_id=portfolio_id,
                coin_symbol=req.coin_symbol,
                trade_type="LONG",
                status="OPEN",
                entry_price=req.entry_price,
                deposit_percent=req.deposit_percent,
                entry_fee=entry_fee,
                exit_fee=entry_fee,
                sum_plus_fee=req.sum_plus_fee,
                amount=req.amount,
                cost_basis=CostBasis(entry_price=req.entry_price, amount=req.amount),
                original_amount=req.amount,
                remaining_amount=req.amount,
                open_date=req.open_date or utcnow(),
            )
            self.store.save_position(position)

        log.info(
            "position_opened",
            position_id=position.id,
            portfolio_id=portfolio_id,
            coin=position.coin_symbol,
            amount=position.amount,
            entry_price=position.entry_price,
            entry_fee=entry_fee,
        )
        return position

    def create_short(
        self,
        portfolio_id: str,
        caller_id: str,
        request: OpenShortRequest | dict[str, Any],
    ) -> Position:
        """Sell coins borrowed from a parent LONG or from the free balance.

        With ``parent_trade_id`` the parent's ``amount`` shrinks by the sold
        amount and the SHORT inherits the parent's cost basis. Without one the
        coins come out of ``portfolio.initial_coins``.
        """
        req = parse_request(OpenShortRequest, request)
        with self.store.transaction():
            portfolio = require_owned(self.store, portfolio_id, caller_id)
            self._require_coin(portfolio, req.coin_symbol)
            symbol = req.coin_symbol.strip().upper()

            if req.parent_trade_id is not None:
                parent = self.store.load_position(req.parent_trade_id)
                if parent is None:
                    raise NotFoundError("position", req.parent_trade_id)
                if parent.portfolio_id != portfolio_id:
                    raise InvalidStateError(
                        f"parent {parent.id} belongs to another portfolio"
                    )
                if not parent.is_long:
                    raise InvalidStateError(f"parent {parent.id} is not a LONG")
                if parent.status not in ("OPEN", "FILLED"):
                    raise InvalidStateError(
                        f"parent {parent.id} is {parent.status}, expected OPEN or FILLED"
                    )
                if parent.coin_symbol != symbol:
                    raise ValidationError(
                        "coin_symbol", f"parent {parent.id} holds {parent.coin_symbol}"
                    )
                available = self._holding(parent)
                if req.amount > available:
                    raise InsufficientBalanceError(req.amount, available, f"position {parent.id}")
                self._adjust_holding(parent, -req.amount)
                self.store.save_position(parent)
                cost_basis = parent.cost_basis
            else:
                available = portfolio.initial_balance(symbol)
                if req.amount > available:
                    raise InsufficientBalanceError(req.amount, available, "initial coins")
                balance = self._round(available - req.amount)
                coins = dict(portfolio.initial_coins)
                if balance <= 0:
                    coins.pop(symbol, None)
                else:
                    coins[symbol] = balance
                portfolio.initial_coins = coins
                self.store.save_portfolio(portfolio)
                cost_basis = CostBasis(entry_price=req.entry_price, amount=req.amount)

            entry_fee = req.entry_fee
            if entry_fee is None:
                entry_fee = self._fee_level(portfolio_id, "entry", None, None).fee_percent

            position = Position(
                portfolio_id=portfolio_id,
                coin_symbol=symbol,
                trade_type="SHORT",
                status="OPEN",
                entry_price=req.entry_price,
                deposit_percent=req.deposit_percent,
                entry_fee=entry_fee,
                exit_fee=entry_fee,
                sum_plus_fee=req.sum_plus_fee,
                amount=req.amount,
                cost_basis=cost_basis,
                original_amount=req.amount,
                remaining_amount=req.amount,
                parent_trade_id=req.parent_trade_id,
                is_averaging_short=req.averaging,
                open_date=req.open_date or utcnow(),
            )
            self.store.save_position(position)

        log.info(
            "short_opened",
            position_id=position.id,
            portfolio_id=portfolio_id,
            coin=symbol,
            amount=position.amount,
            sale_price=position.entry_price,
            parent_trade_id=position.parent_trade_id,
            averaging=position.is_averaging_short,
        )
        return position

    # ── Update ────────────────────────────────────────────────

    def update_position(
        self,
        position_id: str,
        caller_id: str,
        patch: PositionPatch | dict[str, Any],
    ) -> Position:
        """Apply a sparse patch.

        Status moves forward only; the first move to CLOSED stamps
        ``close_date`` and settles a derived SHORT into its parent LONG.
        """
        patch = parse_request(PositionPatch, patch)
        with self.store.transaction():
            position, _ = self._load_owned(position_id, caller_id)
            was_closed = position.is_closed

            if was_closed and patch.touches_entry_fields():
                raise InvalidStateError(f"cannot edit entry fields of closed position {position_id}")

            if patch.given("status") and patch.status is not None:
                if STATUS_ORDER[patch.status] < STATUS_ORDER[position.status]:
                    raise InvalidStateError(
                        f"cannot move position {position_id} from {position.status} to {patch.status}"
                    )
                position.status = patch.status

            for name in PositionPatch.ENTRY_FIELDS:
                if patch.given(name) and getattr(patch, name) is not None:
                    setattr(position, name, getattr(patch, name))

            if patch.given("exit_fee") and patch.exit_fee is not None:
                position.exit_fee = patch.exit_fee
            if patch.given("exit_price"):
                if patch.exit_price is None:
                    position.exit_price = None
                    position.exit_fee = position.entry_fee
                else:
                    position.exit_price = patch.exit_price

            if patch.given("sum_plus_fee") and patch.sum_plus_fee is not None:
                position.sum_plus_fee = patch.sum_plus_fee
            if patch.given("amount") and patch.amount is not None:
                self._apply_amount(position, patch.amount)

            if patch.given("filled_date") and patch.filled_date is not None:
                position.filled_date = patch.filled_date
            if patch.given("close_date") and patch.close_date is not None:
                position.close_date = patch.close_date

            if position.status == "FILLED" and position.filled_date is None:
                position.filled_date = utcnow()
            if position.status == "CLOSED" and position.close_date is None:
                position.close_date = utcnow()

            if position.is_closed and not was_closed and position.is_derived_short:
                self._settle_short(position)

            self.store.save_position(position)

        log.info(
            "position_updated",
            position_id=position_id,
            fields=sorted(patch.model_fields_set),
            status=position.status,
        )
        return position

    def _apply_amount(self, position: Position, amount: Decimal) -> None:
        if position.is_closed:
            position.amount = amount
            return
        if position.has_slices:
            raise InvalidStateError(
                f"cannot edit amount of partially closed position {position.id}"
            )

        delta = amount - position.amount
        parent = self._live_parent(position) if position.is_short else None
        if parent is not None and delta != 0:
            # A derived SHORT borrows the difference from (or returns it to) its parent
            available = self._holding(parent)
            if delta > available:
                raise InsufficientBalanceError(delta, available, f"position {parent.id}")
            self._adjust_holding(parent, -delta)
            self.store.save_position(parent)

        position.amount = amount
        position.original_amount = amount
        position.remaining_amount = amount

    def _settle_short(self, short: Position) -> None:
        """Add the coins a closing SHORT buys back to its parent LONG."""
        if short.exit_price is None:
            raise MissingExitPriceError(short.id)
        parent = self._live_parent(short)
        if parent is None:
            return

        bought_back = self._round(position_coins_bought_back(short))
        before = parent.amount
        self._adjust_holding(parent, bought_back)
        parent.entry_price = recalculate_long_entry_price(parent.sum_plus_fee, parent.amount)
        self.store.save_position(parent)

        log.info(
            "short_settled",
            position_id=short.id,
            parent_trade_id=parent.id,
            coins_bought_back=bought_back,
            parent_amount_before=before,
            parent_amount_after=parent.amount,
            parent_entry_price=parent.entry_price,
        )

    # ── Partial close ─────────────────────────────────────────

    def partial_close(
        self,
        position_id: str,
        caller_id: str,
        request: PartialCloseRequest | dict[str, Any],
    ) -> tuple[Position, Position]:
        """Close part of a FILLED position as a separate CLOSED slice.

        The slice takes its share of the cost the parent still carries; the
        last slice takes all of it, so slices and remainder always add up to
        the parent's ``sum_plus_fee``. Returns ``(parent, slice)``.
        """
        req = parse_request(PartialCloseRequest, request)
        with self.store.transaction():
            parent, _ = self._load_owned(position_id, caller_id)
            if parent.status != "FILLED":
                raise InvalidStateError(
                    f"only FILLED positions can be partially closed (got {parent.status})"
                )

            current_remaining = (
                parent.remaining_amount if parent.remaining_amount is not None else parent.amount
            )
            current_original = (
                parent.original_amount if parent.original_amount is not None else parent.amount
            )
            if req.amount_to_close > current_remaining:
                raise ValidationError(
                    "amount_to_close",
                    f"cannot close more than remaining amount ({current_remaining})",
                )

            remaining = self._round(current_remaining - req.amount_to_close)
            fully_closed = self._is_zero(remaining)
            _, open_cost = effective_holding(parent)
            if fully_closed:
                slice_cost = open_cost
            else:
                slice_cost = open_cost * req.amount_to_close / current_remaining
            close_date = req.close_date or utcnow()

            piece = Position(
                portfolio_id=parent.portfolio_id,
                coin_symbol=parent.coin_symbol,
                trade_type=parent.trade_type,
                status="CLOSED",
                entry_price=parent.entry_price,
                deposit_percent=parent.deposit_percent,
                entry_fee=parent.entry_fee,
                sum_plus_fee=slice_cost,
                amount=req.amount_to_close,
                cost_basis=parent.cost_basis,
                exit_price=req.exit_price,
                exit_fee=req.exit_fee,
                original_amount=current_original,
                remaining_amount=ZERO,
                is_partial_close=True,
                parent_trade_id=parent.id,
                is_averaging_short=parent.is_averaging_short,
                open_date=parent.open_date,
                filled_date=parent.filled_date,
                close_date=close_date,
            )

            parent.remaining_amount = ZERO if fully_closed else remaining
            parent.closed_sum_plus_fee = parent.sum_plus_fee - open_cost + slice_cost
            if parent.original_amount is None:
                parent.original_amount = current_original
            if fully_closed:
                parent.status = "CLOSED"
                parent.close_date = close_date

            self.store.save_position(piece)
            self.store.save_position(parent)

            if parent.is_derived_short:
                # The slice's bought-back coins go straight to the LONG it borrowed from
                grandparent = self._live_parent(parent)
                if grandparent is not None:
                    bought_back = self._round(position_coins_bought_back(piece))
                    self._adjust_holding(grandparent, bought_back)
                    grandparent.entry_price = recalculate_long_entry_price(
                        grandparent.sum_plus_fee, grandparent.amount
                    )
                    self.store.save_position(grandparent)
                    log.info(
                        "short_settled",
                        position_id=piece.id,
                        parent_trade_id=grandparent.id,
                        coins_bought_back=bought_back,
                        parent_amount_after=grandparent.amount,
                    )

        log.info(
            "position_partially_closed",
            position_id=parent.id,
            slice_id=piece.id,
            amount_closed=piece.amount,
            remaining=parent.remaining_amount,
            fully_closed=fully_closed,
        )
        return parent, piece

    # ── Split ─────────────────────────────────────────────────

    def split(
        self,
        position_id: str,
        caller_id: str,
        request: SplitRequest | dict[str, Any] | list,
    ) -> tuple[Position, list[Position]]:
        """Divide a FILLED position into independent FILLED positions.

        Each child starts its own cost basis at the original's entry price;
        the original is marked ``is_split`` and CLOSED.
        """
        if isinstance(request, list):
            request = {"amounts": request}
        req = parse_request(SplitRequest, request)

        low, high = self.config.split_min_parts, self.config.split_max_parts
        if not low <= len(req.amounts) <= high:
            raise ValidationError(
                "amounts", f"split needs between {low} and {high} parts (got {len(req.amounts)})"
            )

        with self.store.transaction():
            original, _ = self._load_owned(position_id, caller_id)
            if original.status != "FILLED":
                raise InvalidStateError(
                    f"only FILLED positions can be split (got {original.status})"
                )
            if original.is_derived_short:
                raise InvalidStateError(
                    "cannot split SHORT positions that are derived from LONG positions"
                )
            if original.is_partial_close or self._holding(original) < original.amount:
                raise InvalidStateError(
                    f"cannot split partially closed position {position_id}"
                )

            total = req.total()
            if abs(total - original.amount) > self.config.zero_epsilon:
                raise ValidationError(
                    "amounts",
                    f"sum of amounts ({total}) must equal position amount ({original.amount})",
                )

            if original.is_long:
                borrowers = [
                    p for p in self.store.query_positions(original.portfolio_id)
                    if p.is_derived_short and p.parent_trade_id == original.id and not p.is_closed
                ]
                if borrowers:
                    raise InvalidStateError(
                        f"position {position_id} has {len(borrowers)} open SHORTs borrowing from it"
                    )

            group_id = new_id()
            children = []
            for amount in req.amounts:
                child = Position(
                    portfolio_id=original.portfolio_id,
                    coin_symbol=original.coin_symbol,
                    trade_type=original.trade_type,
                    status="FILLED",
                    entry_price=original.entry_price,
                    deposit_percent=original.deposit_percent,
                    entry_fee=original.entry_fee,
                    sum_plus_fee=original.sum_plus_fee * (amount / original.amount),
                    amount=amount,
                    cost_basis=CostBasis(entry_price=original.entry_price, amount=amount),
                    original_amount=amount,
                    remaining_amount=amount,
                    split_from_trade_id=original.id,
                    split_group_id=group_id,
                    is_averaging_short=original.is_averaging_short,
                    open_date=original.open_date,
                    filled_date=original.filled_date,
                )
                self.store.save_position(child)
                children.append(child)

            original.is_split = True
            original.status = "CLOSED"
            original.close_date = utcnow()
            self.store.save_position(original)

        log.info(
            "position_split",
            position_id=original.id,
            split_group_id=group_id,
            parts=[child.amount for child in children],
        )
        return original, children

    # ── Delete ────────────────────────────────────────────────

    def delete_position(self, position_id: str, caller_id: str) -> None:
        """Delete a position.

        An open derived SHORT hands its coins back to the parent LONG first.
        Deleting a LONG reverses nothing.
        """
        restored = ZERO
        with self.store.transaction():
            position, _ = self._load_owned(position_id, caller_id)
            if position.is_derived_short and not position.is_closed:
                parent = self._live_parent(position)
                if parent is not None:
                    restored, _ = effective_holding(position)
                    self._adjust_holding(parent, restored)
                    self.store.save_position(parent)
            self.store.delete_position(position_id)

        log.info(
            "position_deleted",
            position_id=position_id,
            trade_type=position.trade_type,
            restored_to_parent=restored,
        )

    # ── Queries ───────────────────────────────────────────────

    def get_position(self, position_id: str, caller_id: str) -> Position:
        position, _ = self._load_owned(position_id, caller_id)
        return position

    def list_positions(
        self,
        portfolio_id: str,
        caller_id: str,
        status: str | None = None,
    ) -> list[Position]:
        """Positions newest open date first, optionally filtered by status."""
        if status is not None and status not in STATUS_ORDER:
            raise ValidationError("status", f"unknown status {status}")
        require_owned(self.store, portfolio_id, caller_id)
        return self.store.query_positions(portfolio_id, status)

    def split_group(self, split_group_id: str, caller_id: str) -> list[Position]:
        """Members of a split group, checked to come from one original."""
        members = self.store.query_split_group(split_group_id)
        if not members:
            raise NotFoundError("split group", split_group_id)

        sources = {m.split_from_trade_id for m in members}
        portfolios = {m.portfolio_id for m in members}
        if len(sources) != 1 or len(portfolios) != 1 or None in sources:
            raise InvalidStateError(f"split group {split_group_id} is inconsistent")
        require_owned(self.store, portfolios.pop(), caller_id)
        return sorted(members, key=lambda m: (m.open_date, m.id))
