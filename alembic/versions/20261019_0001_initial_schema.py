"""Initial schema for transactions, balances, profiles and rankings.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000+00:00
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Transactions table
    op.create_table(
        "kol_transactions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("signature", sa.String(128), nullable=False),
        sa.Column("participant", sa.String(64), nullable=False),
        sa.Column("asset", sa.String(64), nullable=False),
        sa.Column("kind", sa.String(4), nullable=False),
        sa.Column("asset_amount", sa.Numeric(30, 10), nullable=False),
        sa.Column("quote_amount", sa.Numeric(30, 10), nullable=False),
        sa.Column("price", sa.Numeric(30, 10), nullable=True),
        sa.Column("market_cap", sa.Numeric(30, 10), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("signature", name="uq_kol_transactions_signature"),
    )
    op.create_index(
        "idx_kol_transactions_participant_ts", "kol_transactions", ["participant", "timestamp"]
    )
    op.create_index(
        "idx_kol_transactions_pair_ts", "kol_transactions", ["participant", "asset", "timestamp"]
    )
    op.create_index("idx_kol_transactions_ts", "kol_transactions", ["timestamp"])

    # Balances table
    op.create_table(
        "kol_balances",
        sa.Column("participant", sa.String(64), nullable=False),
        sa.Column("asset", sa.String(64), nullable=False),
        sa.Column("quantity", sa.Numeric(30, 10), nullable=False),
        sa.Column("total_cost_basis", sa.Numeric(30, 10), nullable=False),
        sa.Column("total_quantity_bought", sa.Numeric(30, 10), nullable=False),
        sa.Column("first_buy_signature", sa.String(128), nullable=True),
        sa.Column("first_buy_timestamp", sa.DateTime(timezone=True), nullable=True),
        sa.Column("first_buy_price", sa.Numeric(30, 10), nullable=True),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("participant", "asset"),
    )
    op.create_index("idx_kol_balances_asset", "kol_balances", ["asset"])

    # Behavior patterns table
    op.create_table(
        "kol_behavior_patterns",
        sa.Column("participant", sa.String(64), nullable=False),
        sa.Column("avg_buy_size", sa.Numeric(30, 10), nullable=False),
        sa.Column("avg_sell_size", sa.Numeric(30, 10), nullable=False),
        sa.Column("typical_buy_sizes", sa.JSON(), nullable=False),
        sa.Column("typical_sell_sizes", sa.JSON(), nullable=False),
        sa.Column("avg_hold_time", sa.Float(), nullable=True),
        sa.Column("min_hold_time", sa.Float(), nullable=True),
        sa.Column("max_hold_time", sa.Float(), nullable=True),
        sa.Column("buy_count", sa.Integer(), nullable=False),
        sa.Column("sell_count", sa.Integer(), nullable=False),
        sa.Column("transaction_count", sa.Integer(), nullable=False),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("participant"),
    )

    # Performance snapshots table
    op.create_table(
        "kol_performance_snapshots",
        sa.Column("participant", sa.String(64), nullable=False),
        sa.Column("window", sa.String(8), nullable=False),
        sa.Column("snapshot_date", sa.Date(), nullable=False),
        sa.Column("window_hours", sa.Integer(), nullable=False),
        sa.Column("total_pnl", sa.Numeric(30, 10), nullable=False),
        sa.Column("total_pnl_percentage", sa.Float(), nullable=False),
        sa.Column("total_cost_basis", sa.Numeric(30, 10), nullable=False),
        sa.Column("total_proceeds", sa.Numeric(30, 10), nullable=False),
        sa.Column("total_buys", sa.Integer(), nullable=False),
        sa.Column("total_sells", sa.Integer(), nullable=False),
        sa.Column("total_volume", sa.Numeric(30, 10), nullable=False),
        sa.Column("unique_assets_traded", sa.Integer(), nullable=False),
        sa.Column("win_rate", sa.Float(), nullable=False),
        sa.Column("avg_hold_time", sa.Float(), nullable=True),
        sa.Column("profitable_asset_count", sa.Integer(), nullable=False),
        sa.Column("losing_asset_count", sa.Integer(), nullable=False),
        sa.Column("largest_win", sa.Numeric(30, 10), nullable=False),
        sa.Column("largest_loss", sa.Numeric(30, 10), nullable=False),
        sa.Column("transaction_count", sa.Integer(), nullable=False),
        sa.Column("computed_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("participant", "window", "snapshot_date"),
    )
    op.create_index(
        "idx_kol_performance_window_date",
        "kol_performance_snapshots",
        ["window", "snapshot_date"],
    )

    # Leaderboard table
    op.create_table(
        "kol_leaderboard",
        sa.Column("window", sa.String(8), nullable=False),
        sa.Column("snapshot_date", sa.Date(), nullable=False),
        sa.Column("participant", sa.String(64), nullable=False),
        sa.Column("rank", sa.Integer(), nullable=False),
        sa.Column("total_pnl", sa.Numeric(30, 10), nullable=False),
        sa.Column("total_pnl_percentage", sa.Float(), nullable=False),
        sa.Column("win_rate", sa.Float(), nullable=False),
        sa.Column("total_volume", sa.Numeric(30, 10), nullable=False),
        sa.Column("unique_assets_traded", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("window", "snapshot_date", "participant"),
    )
    op.create_index(
        "idx_kol_leaderboard_window_date_rank",
        "kol_leaderboard",
        ["window", "snapshot_date", "rank"],
    )


def downgrade() -> None:
    op.drop_index("idx_kol_leaderboard_window_date_rank", table_name="kol_leaderboard")
    op.drop_table("kol_leaderboard")
    op.drop_index("idx_kol_performance_window_date", table_name="kol_performance_snapshots")
    op.drop_table("kol_performance_snapshots")
    op.drop_table("kol_behavior_patterns")
    op.drop_index("idx_kol_balances_asset", table_name="kol_balances")
    op.drop_table("kol_balances")
    op.drop_index("idx_kol_transactions_ts", table_name="kol_transactions")
    op.drop_index("idx_kol_transactions_pair_ts", table_name="kol_transactions")
    op.drop_index("idx_kol_transactions_participant_ts", table_name="kol_transactions")
    op.drop_table("kol_transactions")
