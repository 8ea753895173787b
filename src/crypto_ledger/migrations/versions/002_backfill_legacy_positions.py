"""Backfill positions recorded before SHORT support and slice cost tracking.

Legacy records are LONGs: trade_type becomes LONG and the cost basis is the
current entry price and the original amount (or the amount when that was
never recorded). Parents partially closed before closed_sum_plus_fee existed
get the proportional cost their slices took.

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from decimal import Decimal
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

AMOUNT = sa.Numeric(38, 12)

# Frozen view of the table as of this revision
positions = sa.table(
    "ledger_positions",
    sa.column("id", sa.Text),
    sa.column("trade_type", sa.Text),
    sa.column("entry_price", AMOUNT),
    sa.column("sum_plus_fee", AMOUNT),
    sa.column("amount", AMOUNT),
    sa.column("initial_entry_price", AMOUNT),
    sa.column("initial_amount", AMOUNT),
    sa.column("original_amount", AMOUNT),
    sa.column("remaining_amount", AMOUNT),
    sa.column("closed_sum_plus_fee", AMOUNT),
    sa.column("is_partial_close", sa.Boolean),
)


def _sliced_cost(row) -> Decimal | None:
    original, remaining = row.original_amount, row.remaining_amount
    if row.is_partial_close or original is None or remaining is None:
        return None
    if row.closed_sum_plus_fee or original <= 0 or remaining >= original:
        return None
    return row.sum_plus_fee * (original - remaining) / original


def upgrade() -> None:
    bind = op.get_bind()
    c = positions.c
    rows = bind.execute(
        sa.select(positions).where(
            sa.or_(
                c.trade_type.is_(None),
                c.initial_entry_price.is_(None),
                c.initial_amount.is_(None),
                sa.and_(
                    c.is_partial_close == sa.false(),
                    c.closed_sum_plus_fee == 0,
                    c.remaining_amount < c.original_amount,
                ),
            )
        )
    ).all()

    for row in rows:
        values = {}
        if row.trade_type is None:
            values["trade_type"] = "LONG"
        if row.initial_entry_price is None:
            values["initial_entry_price"] = row.entry_price
        if row.initial_amount is None:
            values["initial_amount"] = (
                row.original_amount if row.original_amount is not None else row.amount
            )
        sliced = _sliced_cost(row)
        if sliced is not None:
            values["closed_sum_plus_fee"] = sliced
        if values:
            bind.execute(positions.update().where(c.id == row.id).values(**values))


def downgrade() -> None:
    # Backfilled values are indistinguishable from recorded ones
    pass
