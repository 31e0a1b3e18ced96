"""Scheduled performance analysis.

Regenerates the leaderboard of every configured window, once or on a
fixed interval until stopped.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from datetime import datetime
from typing import TYPE_CHECKING

from kol_tracker.performance.models import LeaderboardEntry, PerformanceWindow

if TYPE_CHECKING:
    from kol_tracker.performance.leaderboard import LeaderboardGenerator

logger = logging.getLogger(__name__)

DEFAULT_WINDOWS = (PerformanceWindow.DAY, PerformanceWindow.TWO_DAYS, PerformanceWindow.WEEK)
DEFAULT_INTERVAL_SECONDS = 3600.0


class PerformanceRunner:
    """Runs leaderboard generation for each window on a schedule.

    A window that fails is logged and skipped; the other windows of the
    same pass still run.

    Example:
        ```python
        runner = PerformanceRunner(generator, interval_seconds=600)
        task = asyncio.create_task(runner.run_forever())
        ...
        await runner.stop()
        await task
        ```
    """

    def __init__(
        self,
        generator: LeaderboardGenerator,
        *,
        windows: Sequence[PerformanceWindow] = DEFAULT_WINDOWS,
        limit: int = 50,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
    ) -> None:
        self._generator = generator
        self._windows = tuple(windows)
        self._limit = limit
        self._interval = interval_seconds
        self._stop_event = asyncio.Event()
        self._passes = 0

    @property
    def passes(self) -> int:
        """Number of completed analysis passes."""
        return self._passes

    async def run_once(
        self, *, now: datetime | None = None
    ) -> dict[PerformanceWindow, list[LeaderboardEntry]]:
        """Generate every window's leaderboard once.

        Returns:
            Ranking per window that succeeded.
        """
        rankings: dict[PerformanceWindow, list[LeaderboardEntry]] = {}
        for window in self._windows:
            try:
                rankings[window] = await self._generator.generate_leaderboard(
                    window, self._limit, now=now
                )
            except Exception as e:
                logger.warning("Performance analysis for %s failed: %s", window.value, e)
        self._passes += 1
        logger.info(
            "Performance analysis pass %d complete: %d/%d windows",
            self._passes,
            len(rankings),
            len(self._windows),
        )
        return rankings

    async def run_forever(self) -> None:
        """Run passes every ``interval_seconds`` until :meth:`stop` is called."""
        self._stop_event.clear()
        logger.info(
            "Performance runner started: windows=%s interval=%.0fs",
            ",".join(w.value for w in self._windows),
            self._interval,
        )
        while not self._stop_event.is_set():
            await self.run_once()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except TimeoutError:
                continue
        logger.info("Performance runner stopped")

    async def stop(self) -> None:
        """Ask :meth:`run_forever` to return after the current pass."""
        self._stop_event.set()
