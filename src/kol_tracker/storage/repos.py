"""Repository pattern implementations for data access.

This module provides clean data access abstractions for transactions,
balances, behavior patterns, performance snapshots and leaderboards.
Each repository works inside a caller-owned ``AsyncSession``; commit and
rollback belong to the unit of work that created the session.
"""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError

from kol_tracker.errors import DuplicateTransaction
from kol_tracker.ledger.models import Balance, Transaction, TransactionKind
from kol_tracker.performance.models import (
    LeaderboardEntry,
    PerformanceSnapshot,
    PerformanceWindow,
)
from kol_tracker.profiler.models import BehaviorPattern
from kol_tracker.storage.models import (
    BalanceModel,
    BehaviorPatternModel,
    LeaderboardEntryModel,
    PerformanceSnapshotModel,
    TransactionModel,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite drops the offset; every stored timestamp is UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _as_utc_optional(value: datetime | None) -> datetime | None:
    return _as_utc(value) if value is not None else None


def transaction_from_model(model: TransactionModel) -> Transaction:
    return Transaction(
        signature=model.signature,
        participant=model.participant,
        asset=model.asset,
        kind=TransactionKind(model.kind),
        asset_amount=model.asset_amount,
        quote_amount=model.quote_amount,
        timestamp=_as_utc(model.timestamp),
        price=model.price,
        market_cap=model.market_cap,
    )


def balance_from_model(model: BalanceModel) -> Balance:
    return Balance(
        participant=model.participant,
        asset=model.asset,
        quantity=model.quantity,
        total_cost_basis=model.total_cost_basis,
        total_quantity_bought=model.total_quantity_bought,
        first_buy_signature=model.first_buy_signature,
        first_buy_timestamp=_as_utc_optional(model.first_buy_timestamp),
        first_buy_price=model.first_buy_price,
        last_updated=_as_utc_optional(model.last_updated),
    )


def pattern_from_model(model: BehaviorPatternModel) -> BehaviorPattern:
    return BehaviorPattern(
        participant=model.participant,
        avg_buy_size=model.avg_buy_size,
        avg_sell_size=model.avg_sell_size,
        typical_buy_sizes=tuple(Decimal(s) for s in model.typical_buy_sizes),
        typical_sell_sizes=tuple(Decimal(s) for s in model.typical_sell_sizes),
        avg_hold_time=model.avg_hold_time,
        min_hold_time=model.min_hold_time,
        max_hold_time=model.max_hold_time,
        buy_count=model.buy_count,
        sell_count=model.sell_count,
        transaction_count=model.transaction_count,
        last_updated=_as_utc(model.last_updated),
    )


def snapshot_from_model(model: PerformanceSnapshotModel) -> PerformanceSnapshot:
    return PerformanceSnapshot(
        participant=model.participant,
        window_hours=model.window_hours,
        total_pnl=model.total_pnl,
        total_pnl_percentage=model.total_pnl_percentage,
        total_cost_basis=model.total_cost_basis,
        total_proceeds=model.total_proceeds,
        total_buys=model.total_buys,
        total_sells=model.total_sells,
        total_volume=model.total_volume,
        unique_assets_traded=model.unique_assets_traded,
        win_rate=model.win_rate,
        avg_hold_time=model.avg_hold_time,
        profitable_asset_count=model.profitable_asset_count,
        losing_asset_count=model.losing_asset_count,
        largest_win=model.largest_win,
        largest_loss=model.largest_loss,
        transaction_count=model.transaction_count,
        computed_at=_as_utc(model.computed_at),
    )


def leaderboard_entry_from_model(model: LeaderboardEntryModel) -> LeaderboardEntry:
    return LeaderboardEntry(
        window=PerformanceWindow(model.window),
        rank=model.rank,
        participant=model.participant,
        total_pnl=model.total_pnl,
        total_pnl_percentage=model.total_pnl_percentage,
        win_rate=model.win_rate,
        total_volume=model.total_volume,
        unique_assets_traded=model.unique_assets_traded,
        snapshot_date=model.snapshot_date,
    )


class TransactionRepository:
    """Repository for recorded transactions."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_signature(self, signature: str) -> Transaction | None:
        result = await self.session.execute(
            select(TransactionModel).where(TransactionModel.signature == signature)
        )
        model = result.scalar_one_or_none()
        return transaction_from_model(model) if model else None

    async def append(self, tx: Transaction) -> bool:
        """Insert a transaction keyed by signature (idempotent ingestion).

        Returns:
            True if inserted, False if an identical record already exists.

        Raises:
            DuplicateTransaction: If the signature exists with other content.
        """
        existing = await self.get_by_signature(tx.signature)
        if existing is not None:
            if existing.same_content(tx):
                logger.debug("Transaction %s already recorded, skipping", tx.signature)
                return False
            raise DuplicateTransaction(tx.signature)

        self.session.add(
            TransactionModel(
                signature=tx.signature,
                participant=tx.participant,
                asset=tx.asset,
                kind=tx.kind.value,
                asset_amount=tx.asset_amount,
                quote_amount=tx.quote_amount,
                price=tx.price,
                market_cap=tx.market_cap,
                timestamp=tx.timestamp,
            )
        )
        try:
            await self.session.flush()
        except IntegrityError as e:
            # Lost a race with a concurrent insert of the same signature.
            raise DuplicateTransaction(tx.signature) from e
        return True

    async def get_history(
        self,
        participant: str,
        asset: str | None = None,
        limit: int | None = None,
        *,
        since: datetime | None = None,
    ) -> list[Transaction]:
        """Return transactions newest first (ties in reverse insertion order)."""
        stmt = select(TransactionModel).where(TransactionModel.participant == participant)
        if asset is not None:
            stmt = stmt.where(TransactionModel.asset == asset)
        if since is not None:
            stmt = stmt.where(TransactionModel.timestamp >= since)
        stmt = stmt.order_by(TransactionModel.timestamp.desc(), TransactionModel.id.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return [transaction_from_model(m) for m in result.scalars().all()]

    async def list_active_participants(self, since: datetime) -> list[str]:
        result = await self.session.execute(
            select(TransactionModel.participant)
            .where(TransactionModel.timestamp >= since)
            .distinct()
            .order_by(TransactionModel.participant)
        )
        return list(result.scalars().all())

    async def count(self, participant: str | None = None) -> int:
        stmt = select(func.count()).select_from(TransactionModel)
        if participant is not None:
            stmt = stmt.where(TransactionModel.participant == participant)
        result = await self.session.execute(stmt)
        return int(result.scalar_one())


class BalanceRepository:
    """Repository for per-pair running balances."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, participant: str, asset: str) -> Balance | None:
        model = await self.session.get(BalanceModel, (participant, asset))
        return balance_from_model(model) if model else None

    async def upsert(self, balance: Balance) -> None:
        """Upsert balance keyed by (participant, asset)."""
        now = datetime.now(UTC)
        model = await self.session.get(BalanceModel, (balance.participant, balance.asset))
        if model is None:
            model = BalanceModel(participant=balance.participant, asset=balance.asset)
            self.session.add(model)
        model.quantity = balance.quantity
        model.total_cost_basis = balance.total_cost_basis
        model.total_quantity_bought = balance.total_quantity_bought
        model.first_buy_signature = balance.first_buy_signature
        model.first_buy_timestamp = balance.first_buy_timestamp
        model.first_buy_price = balance.first_buy_price
        model.last_updated = balance.last_updated or now
        await self.session.flush()

    async def list_participants_for_asset(self, asset: str) -> list[str]:
        """Participants that have bought ``asset`` at least once."""
        result = await self.session.execute(
            select(BalanceModel.participant)
            .where(BalanceModel.asset == asset)
            .where(BalanceModel.first_buy_signature.is_not(None))
            .order_by(BalanceModel.participant)
        )
        return list(result.scalars().all())


class BehaviorPatternRepository:
    """Repository for participant behavior patterns."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, participant: str) -> BehaviorPattern | None:
        model = await self.session.get(BehaviorPatternModel, participant)
        return pattern_from_model(model) if model else None

    async def upsert(self, pattern: BehaviorPattern) -> None:
        """Replace the stored pattern for the participant."""
        model = await self.session.get(BehaviorPatternModel, pattern.participant)
        if model is None:
            model = BehaviorPatternModel(participant=pattern.participant)
            self.session.add(model)
        model.avg_buy_size = pattern.avg_buy_size
        model.avg_sell_size = pattern.avg_sell_size
        model.typical_buy_sizes = [str(s) for s in pattern.typical_buy_sizes]
        model.typical_sell_sizes = [str(s) for s in pattern.typical_sell_sizes]
        model.avg_hold_time = pattern.avg_hold_time
        model.min_hold_time = pattern.min_hold_time
        model.max_hold_time = pattern.max_hold_time
        model.buy_count = pattern.buy_count
        model.sell_count = pattern.sell_count
        model.transaction_count = pattern.transaction_count
        model.last_updated = pattern.last_updated
        await self.session.flush()


class PerformanceSnapshotRepository:
    """Repository for windowed performance snapshots."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(
        self, participant: str, window: PerformanceWindow, day: date
    ) -> PerformanceSnapshot | None:
        model = await self.session.get(PerformanceSnapshotModel, (participant, window.value, day))
        return snapshot_from_model(model) if model else None

    async def upsert(
        self,
        participant: str,
        window: PerformanceWindow,
        day: date,
        snapshot: PerformanceSnapshot,
    ) -> None:
        """Upsert snapshot keyed by (participant, window, day)."""
        model = await self.session.get(PerformanceSnapshotModel, (participant, window.value, day))
        if model is None:
            model = PerformanceSnapshotModel(
                participant=participant, window=window.value, snapshot_date=day
            )
            self.session.add(model)
        model.window_hours = snapshot.window_hours
        model.total_pnl = snapshot.total_pnl
        model.total_pnl_percentage = snapshot.total_pnl_percentage
        model.total_cost_basis = snapshot.total_cost_basis
        model.total_proceeds = snapshot.total_proceeds
        model.total_buys = snapshot.total_buys
        model.total_sells = snapshot.total_sells
        model.total_volume = snapshot.total_volume
        model.unique_assets_traded = snapshot.unique_assets_traded
        model.win_rate = snapshot.win_rate
        model.avg_hold_time = snapshot.avg_hold_time
        model.profitable_asset_count = snapshot.profitable_asset_count
        model.losing_asset_count = snapshot.losing_asset_count
        model.largest_win = snapshot.largest_win
        model.largest_loss = snapshot.largest_loss
        model.transaction_count = snapshot.transaction_count
        model.computed_at = snapshot.computed_at
        await self.session.flush()


class LeaderboardRepository:
    """Repository for leaderboard rankings."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def clear(self, window: PerformanceWindow, day: date) -> int:
        """Delete the ranking for a window and day. Returns rows removed."""
        result = await self.session.execute(
            delete(LeaderboardEntryModel)
            .where(LeaderboardEntryModel.window == window.value)
            .where(LeaderboardEntryModel.snapshot_date == day)
        )
        return int(result.rowcount or 0)

    async def upsert(self, window: PerformanceWindow, day: date, entry: LeaderboardEntry) -> None:
        """Upsert entry keyed by (window, day, participant)."""
        model = await self.session.get(
            LeaderboardEntryModel, (window.value, day, entry.participant)
        )
        if model is None:
            model = LeaderboardEntryModel(
                window=window.value, snapshot_date=day, participant=entry.participant
            )
            self.session.add(model)
        model.rank = entry.rank
        model.total_pnl = entry.total_pnl
        model.total_pnl_percentage = entry.total_pnl_percentage
        model.win_rate = entry.win_rate
        model.total_volume = entry.total_volume
        model.unique_assets_traded = entry.unique_assets_traded
        await self.session.flush()

    async def get_latest(self, window: PerformanceWindow, limit: int) -> list[LeaderboardEntry]:
        """Return the most recent day's ranking for a window, best rank first."""
        latest_day = await self.session.execute(
            select(func.max(LeaderboardEntryModel.snapshot_date)).where(
                LeaderboardEntryModel.window == window.value
            )
        )
        day = latest_day.scalar_one_or_none()
        if day is None:
            return []
        result = await self.session.execute(
            select(LeaderboardEntryModel)
            .where(LeaderboardEntryModel.window == window.value)
            .where(LeaderboardEntryModel.snapshot_date == day)
            .order_by(LeaderboardEntryModel.rank.asc())
            .limit(limit)
        )
        return [leaderboard_entry_from_model(m) for m in result.scalars().all()]
