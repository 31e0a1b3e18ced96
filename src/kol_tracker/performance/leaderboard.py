"""Leaderboard generation.

This module provides the LeaderboardGenerator class that ranks every
participant active in a window by realized PnL.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, date, datetime, timedelta
from typing import TYPE_CHECKING

from kol_tracker.performance.models import (
    LeaderboardEntry,
    PerformanceSnapshot,
    PerformanceWindow,
)

if TYPE_CHECKING:
    from kol_tracker.performance.aggregator import PerformanceAggregator
    from kol_tracker.storage.gateway import PersistenceGateway

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_LEADERBOARD_LIMIT = 50
DEFAULT_MAX_CONCURRENCY = 8


def _check_limit(limit: int) -> int:
    if limit < 0:
        raise ValueError(f"Leaderboard limit must not be negative, got {limit}")
    return limit


def rank_snapshots(
    snapshots: list[PerformanceSnapshot],
    *,
    window: PerformanceWindow,
    limit: int,
    snapshot_date: date,
) -> list[LeaderboardEntry]:
    """Order snapshots by total PnL, best first, and assign ranks from 1.

    The sort is stable, so participants with equal PnL keep their input order.
    """
    limit = _check_limit(limit)
    ordered = sorted(snapshots, key=lambda s: s.total_pnl, reverse=True)[:limit]
    return [
        LeaderboardEntry.from_snapshot(
            snapshot, window=window, rank=rank, snapshot_date=snapshot_date
        )
        for rank, snapshot in enumerate(ordered, start=1)
    ]


class LeaderboardGenerator:
    """Batch job that ranks participants over a performance window.

    Performance for each participant is computed concurrently, up to
    ``max_concurrency`` at a time. A participant whose computation fails
    is logged and left out; the rest of the batch continues. Sorting and
    ranking happen once every result is in.

    Example:
        ```python
        generator = LeaderboardGenerator(gateway, PerformanceAggregator(gateway))
        entries = await generator.generate_leaderboard("24h", 50)
        for entry in entries:
            print(entry.rank, entry.participant, entry.total_pnl)
        ```
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        aggregator: PerformanceAggregator,
        *,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> None:
        """Initialize the generator.

        Args:
            gateway: Persistence gateway for participants and rankings.
            aggregator: PerformanceAggregator computing each snapshot.
            max_concurrency: Most performance computations run at once.
        """
        self._gateway = gateway
        self._aggregator = aggregator
        self._max_concurrency = max(1, max_concurrency)

    async def generate_leaderboard(
        self,
        window: PerformanceWindow | str,
        limit: int = DEFAULT_LEADERBOARD_LIMIT,
        *,
        now: datetime | None = None,
    ) -> list[LeaderboardEntry]:
        """Rank participants active in the window and store the ranking.

        The stored ranking for the same window and calendar day (UTC) is
        replaced.

        Args:
            window: Window label such as ``"24h"``, ``"48h"`` or ``"7d"``.
            limit: Number of entries to keep.
            now: End of the window, defaults to now.

        Returns:
            The ranking, best first.

        Raises:
            ValueError: If the window is unknown or the limit is negative.
            StorageUnavailable: If participants cannot be listed or the
                ranking cannot be stored.
        """
        window = PerformanceWindow.parse(window)
        limit = _check_limit(limit)
        now = (now or datetime.now(UTC)).astimezone(UTC)
        day = now.date()
        since = now - timedelta(hours=window.hours)

        async with self._gateway.unit_of_work() as store:
            participants = await store.list_active_participants(since)

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def evaluate(participant: str) -> PerformanceSnapshot | None:
            async with semaphore:
                snapshot = await self._aggregator.compute_performance(
                    participant, window.hours, now=now
                )
                if snapshot is not None:
                    await self._aggregator.save_snapshot(participant, window, snapshot, day=day)
                return snapshot

        results = await asyncio.gather(
            *(evaluate(p) for p in participants), return_exceptions=True
        )

        snapshots: list[PerformanceSnapshot] = []
        failed = 0
        for participant, result in zip(participants, results):
            if isinstance(result, Exception):
                failed += 1
                logger.warning(
                    "Skipping %s in %s leaderboard: %s", participant, window.value, result
                )
                continue
            if isinstance(result, BaseException):
                raise result
            if result is not None:
                snapshots.append(result)

        entries = rank_snapshots(snapshots, window=window, limit=limit, snapshot_date=day)

        async with self._gateway.unit_of_work() as store:
            await store.clear_leaderboard(window, day)
            for entry in entries:
                await store.upsert_leaderboard_entry(window, day, entry)

        logger.info(
            "Generated %s leaderboard for %s: %d ranked, %d participants, %d failed",
            window.value,
            day,
            len(entries),
            len(participants),
            failed,
        )
        return entries

    async def get_leaderboard(
        self,
        window: PerformanceWindow | str,
        limit: int = DEFAULT_LEADERBOARD_LIMIT,
    ) -> list[LeaderboardEntry]:
        """Return the most recently stored ranking for the window."""
        window = PerformanceWindow.parse(window)
        limit = _check_limit(limit)
        async with self._gateway.unit_of_work() as store:
            return await store.get_leaderboard(window, limit)
