"""Create ledger_portfolios and ledger_positions.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

AMOUNT = sa.Numeric(38, 12)


def upgrade() -> None:
    op.create_table(
        "ledger_portfolios",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("user_id", sa.Text, nullable=False),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("total_deposit", AMOUNT, nullable=False),
        sa.Column("coins", sa.JSON, nullable=False),
        sa.Column("initial_coins", sa.JSON, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_ledger_portfolios_user_id", "ledger_portfolios", ["user_id"])

    op.create_table(
        "ledger_positions",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("portfolio_id", sa.Text, nullable=False),
        sa.Column("coin_symbol", sa.Text, nullable=False),
        # Nullable for records written before SHORT support; filled by 002
        sa.Column("trade_type", sa.Text, nullable=True),
        sa.Column("status", sa.Text, nullable=False, server_default="OPEN"),
        sa.Column("entry_price", AMOUNT, nullable=False),
        sa.Column("deposit_percent", AMOUNT, nullable=False),
        sa.Column("entry_fee", AMOUNT, nullable=False),
        sa.Column("sum_plus_fee", AMOUNT, nullable=False),
        sa.Column("amount", AMOUNT, nullable=False),
        sa.Column("initial_entry_price", AMOUNT, nullable=True),
        sa.Column("initial_amount", AMOUNT, nullable=True),
        sa.Column("exit_price", AMOUNT, nullable=True),
        sa.Column("exit_fee", AMOUNT, nullable=True),
        sa.Column("original_amount", AMOUNT, nullable=True),
        sa.Column("remaining_amount", AMOUNT, nullable=True),
        sa.Column("closed_sum_plus_fee", AMOUNT, nullable=False, server_default="0"),
        sa.Column("is_partial_close", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("parent_trade_id", sa.Text, nullable=True),
        sa.Column("is_split", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("split_from_trade_id", sa.Text, nullable=True),
        sa.Column("split_group_id", sa.Text, nullable=True),
        sa.Column("is_averaging_short", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("open_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("filled_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("close_date", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_ledger_positions_portfolio_id", "ledger_positions", ["portfolio_id"])
    op.create_index("ix_ledger_positions_parent_trade_id", "ledger_positions", ["parent_trade_id"])
    op.create_index("ix_ledger_positions_split_group_id", "ledger_positions", ["split_group_id"])
    op.create_index(
        "ix_ledger_positions_portfolio_status", "ledger_positions", ["portfolio_id", "status"]
    )


def downgrade() -> None:
    op.drop_index("ix_ledger_positions_portfolio_status", table_name="ledger_positions")
    op.drop_index("ix_ledger_positions_split_group_id", table_name="ledger_positions")
    op.drop_index("ix_ledger_positions_parent_trade_id", table_name="ledger_positions")
    op.drop_index("ix_ledger_positions_portfolio_id", table_name="ledger_positions")
    op.drop_table("ledger_positions")
    op.drop_index("ix_ledger_portfolios_user_id", table_name="ledger_portfolios")
    op.drop_table("ledger_portfolios")
