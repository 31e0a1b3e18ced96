"""Persistence interface consumed by the analytics components.

Components depend only on the :class:`PersistenceGateway` protocol. The
relational implementation, :class:`SqlPersistenceGateway`, is chosen at
startup from ``DATABASE_URL``; any other backend only needs to provide the
same unit-of-work contract.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import date, datetime
from typing import TYPE_CHECKING, Protocol

from sqlalchemy.exc import SQLAlchemyError

from kol_tracker.errors import StorageUnavailable
from kol_tracker.storage.database import DatabaseManager
from kol_tracker.storage.repos import (
    BalanceRepository,
    BehaviorPatternRepository,
    LeaderboardRepository,
    PerformanceSnapshotRepository,
    TransactionRepository,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from kol_tracker.config import Settings
    from kol_tracker.ledger.models import Balance, Transaction
    from kol_tracker.performance.models import (
        LeaderboardEntry,
        PerformanceSnapshot,
        PerformanceWindow,
    )
    from kol_tracker.profiler.models import BehaviorPattern

logger = logging.getLogger(__name__)


class PersistenceSession(Protocol):
    """Operations available inside one unit of work."""

    async def append_transaction(self, tx: Transaction) -> bool: ...

    async def get_transaction_history(
        self,
        participant: str,
        asset: str | None = None,
        limit: int | None = None,
        *,
        since: datetime | None = None,
    ) -> list[Transaction]: ...

    async def list_active_participants(self, since: datetime) -> list[str]: ...

    async def get_balance(self, participant: str, asset: str) -> Balance | None: ...

    async def upsert_balance(self, participant: str, asset: str, balance: Balance) -> None: ...

    async def list_participants_for_asset(self, asset: str) -> list[str]: ...

    async def get_behavior_pattern(self, participant: str) -> BehaviorPattern | None: ...

    async def upsert_behavior_pattern(self, participant: str, pattern: BehaviorPattern) -> None: ...

    async def get_performance_snapshot(
        self, participant: str, window: PerformanceWindow, day: date
    ) -> PerformanceSnapshot | None: ...

    async def upsert_performance_snapshot(
        self,
        participant: str,
        window: PerformanceWindow,
        day: date,
        snapshot: PerformanceSnapshot,
    ) -> None: ...

    async def clear_leaderboard(self, window: PerformanceWindow, day: date) -> None: ...

    async def upsert_leaderboard_entry(
        self, window: PerformanceWindow, day: date, entry: LeaderboardEntry
    ) -> None: ...

    async def get_leaderboard(
        self, window: PerformanceWindow, limit: int
    ) -> list[LeaderboardEntry]: ...


class PersistenceGateway(Protocol):
    """Durable store the analytics core depends on.

    ``unit_of_work()`` yields a :class:`PersistenceSession`; everything done
    through it is committed together when the block exits normally and
    discarded if it raises. Backend failures surface as
    :class:`StorageUnavailable`.
    """

    def unit_of_work(self) -> AbstractAsyncContextManager[PersistenceSession]: ...


class SqlPersistenceSession:
    """:class:`PersistenceSession` backed by an SQLAlchemy ``AsyncSession``."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self._transactions = TransactionRepository(session)
        self._balances = BalanceRepository(session)
        self._patterns = BehaviorPatternRepository(session)
        self._snapshots = PerformanceSnapshotRepository(session)
        self._leaderboard = LeaderboardRepository(session)

    async def append_transaction(self, tx: Transaction) -> bool:
        return await self._transactions.append(tx)

    async def get_transaction_history(
        self,
        participant: str,
        asset: str | None = None,
        limit: int | None = None,
        *,
        since: datetime | None = None,
    ) -> list[Transaction]:
        return await self._transactions.get_history(participant, asset, limit, since=since)

    async def list_active_participants(self, since: datetime) -> list[str]:
        return await self._transactions.list_active_participants(since)

    async def get_balance(self, participant: str, asset: str) -> Balance | None:
        return await self._balances.get(participant, asset)

    async def upsert_balance(self, participant: str, asset: str, balance: Balance) -> None:
        if (balance.participant, balance.asset) != (participant, asset):
            raise ValueError("Balance key does not match its participant/asset")
        await self._balances.upsert(balance)

    async def list_participants_for_asset(self, asset: str) -> list[str]:
        return await self._balances.list_participants_for_asset(asset)

    async def get_behavior_pattern(self, participant: str) -> BehaviorPattern | None:
        return await self._patterns.get(participant)

    async def upsert_behavior_pattern(self, participant: str, pattern: BehaviorPattern) -> None:
        if pattern.participant != participant:
            raise ValueError("Behavior pattern key does not match its participant")
        await self._patterns.upsert(pattern)

    async def get_performance_snapshot(
        self, participant: str, window: PerformanceWindow, day: date
    ) -> PerformanceSnapshot | None:
        return await self._snapshots.get(participant, window, day)

    async def upsert_performance_snapshot(
        self,
        participant: str,
        window: PerformanceWindow,
        day: date,
        snapshot: PerformanceSnapshot,
    ) -> None:
        await self._snapshots.upsert(participant, window, day, snapshot)

    async def clear_leaderboard(self, window: PerformanceWindow, day: date) -> None:
        removed = await self._leaderboard.clear(window, day)
        if removed:
            logger.debug("Cleared %d leaderboard rows for %s on %s", removed, window.value, day)

    async def upsert_leaderboard_entry(
        self, window: PerformanceWindow, day: date, entry: LeaderboardEntry
    ) -> None:
        await self._leaderboard.upsert(window, day, entry)

    async def get_leaderboard(self, window: PerformanceWindow, limit: int) -> list[LeaderboardEntry]:
        return await self._leaderboard.get_latest(window, limit)


class SqlPersistenceGateway:
    """Relational :class:`PersistenceGateway` (PostgreSQL or SQLite).

    Example:
        ```python
        gateway = SqlPersistenceGateway(DatabaseManager(settings.database.url))
        async with gateway.unit_of_work() as store:
            history = await store.get_transaction_history(participant)
        ```
    """

    def __init__(self, db_manager: DatabaseManager) -> None:
        self._db = db_manager

    @property
    def db_manager(self) -> DatabaseManager:
        return self._db

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[PersistenceSession]:
        try:
            async with self._db.get_async_session() as session:
                yield SqlPersistenceSession(session)
        except (SQLAlchemyError, OSError) as e:
            logger.warning("Storage operation failed: %s", e)
            raise StorageUnavailable(str(e)) from e

    async def init_schema(self) -> None:
        try:
            await self._db.init_schema_async()
        except (SQLAlchemyError, OSError) as e:
            raise StorageUnavailable(str(e)) from e

    async def close(self) -> None:
        await self._db.dispose_async()


def build_gateway(settings: Settings) -> SqlPersistenceGateway:
    """Create the configured persistence gateway."""
    db = settings.database
    return SqlPersistenceGateway(
        DatabaseManager(db.url, pool_size=db.pool_size, echo=db.echo)
    )
