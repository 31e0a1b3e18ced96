"""SQLAlchemy models for persistent storage.

This module defines the database schema for storing participant
transactions, running balances, behavior patterns, performance
snapshots and leaderboard rankings.
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    Float,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class TransactionModel(Base):
    """Recorded buy/sell events (durable truth, never deleted)."""

    __tablename__ = "kol_transactions"

    # Surrogate key preserves insertion order for equal timestamps.
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    signature: Mapped[str] = mapped_column(String(128), nullable=False)
    participant: Mapped[str] = mapped_column(String(64), nullable=False)
    asset: Mapped[str] = mapped_column(String(64), nullable=False)

    kind: Mapped[str] = mapped_column(String(4), nullable=False)  # buy/sell
    asset_amount: Mapped[Decimal] = mapped_column(Numeric(30, 10), nullable=False)
    quote_amount: Mapped[Decimal] = mapped_column(Numeric(30, 10), nullable=False)
    price: Mapped[Decimal | None] = mapped_column(Numeric(30, 10), nullable=True)
    market_cap: Mapped[Decimal | None] = mapped_column(Numeric(30, 10), nullable=True)

    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    __table_args__ = (
        UniqueConstraint("signature", name="uq_kol_transactions_signature"),
        Index("idx_kol_transactions_participant_ts", "participant", "timestamp"),
        Index("idx_kol_transactions_pair_ts", "participant", "asset", "timestamp"),
        Index("idx_kol_transactions_ts", "timestamp"),
    )


class BalanceModel(Base):
    """Running quantity and cost basis per (participant, asset)."""

    __tablename__ = "kol_balances"

    participant: Mapped[str] = mapped_column(String(64), primary_key=True)
    asset: Mapped[str] = mapped_column(String(64), primary_key=True)

    quantity: Mapped[Decimal] = mapped_column(Numeric(30, 10), nullable=False)
    total_cost_basis: Mapped[Decimal] = mapped_column(Numeric(30, 10), nullable=False)
    total_quantity_bought: Mapped[Decimal] = mapped_column(Numeric(30, 10), nullable=False)

    first_buy_signature: Mapped[str | None] = mapped_column(String(128), nullable=True)
    first_buy_timestamp: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    first_buy_price: Mapped[Decimal | None] = mapped_column(Numeric(30, 10), nullable=True)

    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    __table_args__ = (Index("idx_kol_balances_asset", "asset"),)


class BehaviorPatternModel(Base):
    """Per-participant trade size and hold-time profile."""

    __tablename__ = "kol_behavior_patterns"

    participant: Mapped[str] = mapped_column(String(64), primary_key=True)

    avg_buy_size: Mapped[Decimal] = mapped_column(Numeric(30, 10), nullable=False)
    avg_sell_size: Mapped[Decimal] = mapped_column(Numeric(30, 10), nullable=False)
    # Decimal strings, most frequent first.
    typical_buy_sizes: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    typical_sell_sizes: Mapped[list[str]] = mapped_column(JSON, nullable=False)

    avg_hold_time: Mapped[float | None] = mapped_column(Float, nullable=True)
    min_hold_time: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_hold_time: Mapped[float | None] = mapped_column(Float, nullable=True)

    buy_count: Mapped[int] = mapped_column(Integer, nullable=False)
    sell_count: Mapped[int] = mapped_column(Integer, nullable=False)
    transaction_count: Mapped[int] = mapped_column(Integer, nullable=False)

    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class PerformanceSnapshotModel(Base):
    """Windowed performance aggregate, one row per participant/window/day."""

    __tablename__ = "kol_performance_snapshots"

    participant: Mapped[str] = mapped_column(String(64), primary_key=True)
    window: Mapped[str] = mapped_column(String(8), primary_key=True)  # 24h|48h|7d
    snapshot_date: Mapped[date] = mapped_column(Date, primary_key=True)

    window_hours: Mapped[int] = mapped_column(Integer, nullable=False)
    total_pnl: Mapped[Decimal] = mapped_column(Numeric(30, 10), nullable=False)
    total_pnl_percentage: Mapped[float] = mapped_column(Float, nullable=False)
    total_cost_basis: Mapped[Decimal] = mapped_column(Numeric(30, 10), nullable=False)
    total_proceeds: Mapped[Decimal] = mapped_column(Numeric(30, 10), nullable=False)
    total_buys: Mapped[int] = mapped_column(Integer, nullable=False)
    total_sells: Mapped[int] = mapped_column(Integer, nullable=False)
    total_volume: Mapped[Decimal] = mapped_column(Numeric(30, 10), nullable=False)
    unique_assets_traded: Mapped[int] = mapped_column(Integer, nullable=False)
    win_rate: Mapped[float] = mapped_column(Float, nullable=False)
    avg_hold_time: Mapped[float | None] = mapped_column(Float, nullable=True)
    profitable_asset_count: Mapped[int] = mapped_column(Integer, nullable=False)
    losing_asset_count: Mapped[int] = mapped_column(Integer, nullable=False)
    largest_win: Mapped[Decimal] = mapped_column(Numeric(30, 10), nullable=False)
    largest_loss: Mapped[Decimal] = mapped_column(Numeric(30, 10), nullable=False)
    transaction_count: Mapped[int] = mapped_column(Integer, nullable=False)

    computed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_kol_performance_window_date", "window", "snapshot_date"),
    )


class LeaderboardEntryModel(Base):
    """Ranked participant for one window and calendar day."""

    __tablename__ = "kol_leaderboard"

    window: Mapped[str] = mapped_column(String(8), primary_key=True)
    snapshot_date: Mapped[date] = mapped_column(Date, primary_key=True)
    participant: Mapped[str] = mapped_column(String(64), primary_key=True)

    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    total_pnl: Mapped[Decimal] = mapped_column(Numeric(30, 10), nullable=False)
    total_pnl_percentage: Mapped[float] = mapped_column(Float, nullable=False)
    win_rate: Mapped[float] = mapped_column(Float, nullable=False)
    total_volume: Mapped[Decimal] = mapped_column(Numeric(30, 10), nullable=False)
    unique_assets_traded: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    __table_args__ = (
        Index("idx_kol_leaderboard_window_date_rank", "window", "snapshot_date", "rank"),
    )
