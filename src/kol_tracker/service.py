"""Analytics service facade.

Wires the ledger, PnL engine, profilers, detector and performance
components around one persistence gateway and exposes the operations
callers use.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from kol_tracker.config import Settings, get_settings
from kol_tracker.detector.deviation import DeviationDetector
from kol_tracker.ledger.ledger import TransactionLedger
from kol_tracker.performance.aggregator import PerformanceAggregator
from kol_tracker.performance.leaderboard import LeaderboardGenerator
from kol_tracker.performance.runner import PerformanceRunner
from kol_tracker.pnl.engine import PnLEngine
from kol_tracker.profiler.activity import ActivityProfiler
from kol_tracker.profiler.behavior import BehaviorProfiler
from kol_tracker.storage.gateway import build_gateway

if TYPE_CHECKING:
    from datetime import datetime
    from decimal import Decimal

    from kol_tracker.detector.models import DeviationSignal
    from kol_tracker.ledger.models import Balance, Transaction, TransactionKind
    from kol_tracker.performance.models import (
        LeaderboardEntry,
        PerformanceSnapshot,
        PerformanceWindow,
    )
    from kol_tracker.pnl.fifo import RealizedPnL
    from kol_tracker.profiler.models import BehaviorPattern, HourlyActivity
    from kol_tracker.storage.gateway import PersistenceGateway

logger = logging.getLogger(__name__)


class AnalyticsService:
    """Entry point to the KOL analytics core.

    Every component shares the gateway given here; nothing is held in
    module-level state, so several services can coexist (one per test,
    for example).

    Example:
        ```python
        service = AnalyticsService(get_settings())
        await service.init_db()

        signals = await service.check_deviation(
            tx.participant, tx.kind, tx.quote_amount, tx.asset, as_of=tx.timestamp
        )
        await service.record_transaction(tx)

        await service.close()
        ```
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        gateway: PersistenceGateway | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            settings: Application settings. If not provided, uses get_settings().
            gateway: Persistence gateway. If not provided, one is built from
                ``settings.database``.
        """
        self._settings = settings or get_settings()
        self._gateway = gateway or build_gateway(self._settings)

        profiler = self._settings.profiler
        deviation = self._settings.deviation
        performance = self._settings.performance

        self.ledger = TransactionLedger(self._gateway)
        self.pnl_engine = PnLEngine(self._gateway, history_limit=performance.pnl_history_limit)
        self.behavior_profiler = BehaviorProfiler(
            self._gateway,
            history_limit=profiler.history_limit,
            size_granularity=profiler.size_granularity,
            typical_size_count=profiler.typical_size_count,
            max_hold_seconds=profiler.max_hold_seconds,
        )
        self.activity_profiler = ActivityProfiler(
            self._gateway, history_limit=profiler.activity_history_limit
        )
        self.detector = DeviationDetector(
            self._gateway,
            self.behavior_profiler,
            self.pnl_engine,
            test_buy_threshold=deviation.test_buy_threshold,
            large_buy_multiplier=deviation.large_buy_multiplier,
            recent_window_size=deviation.recent_window_size,
            long_hold_multiplier=deviation.long_hold_multiplier,
            large_avg_multiplier=deviation.large_avg_multiplier,
            typical_size_tolerance=deviation.typical_size_tolerance,
        )
        self.aggregator = PerformanceAggregator(
            self._gateway, history_limit=performance.pnl_history_limit
        )
        self.leaderboard = LeaderboardGenerator(
            self._gateway, self.aggregator, max_concurrency=performance.max_concurrency
        )
        self.runner = PerformanceRunner(
            self.leaderboard,
            windows=performance.window_list,
            limit=performance.leaderboard_limit,
            interval_seconds=performance.analysis_interval_seconds,
        )

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def gateway(self) -> PersistenceGateway:
        return self._gateway

    async def init_db(self) -> None:
        """Create the schema if the gateway supports it."""
        init_schema = getattr(self._gateway, "init_schema", None)
        if init_schema is not None:
            await init_schema()
            logger.info("Database schema initialized")

    async def close(self) -> None:
        close = getattr(self._gateway, "close", None)
        if close is not None:
            await close()

    # Ledger

    async def record_transaction(self, tx: Transaction) -> Balance:
        return await self.ledger.record_transaction(tx)

    async def get_balance(self, participant: str, asset: str) -> Balance:
        return await self.ledger.get_balance(participant, asset)

    async def get_participants_for_asset(self, asset: str) -> list[str]:
        return await self.ledger.get_participants_for_asset(asset)

    # Analytics

    async def check_deviation(
        self,
        participant: str,
        kind: TransactionKind | str,
        quote_amount: Decimal,
        asset: str,
        *,
        as_of: datetime | None = None,
        exclude_signature: str | None = None,
    ) -> list[DeviationSignal]:
        return await self.detector.check_deviation(
            participant,
            kind,
            quote_amount,
            asset,
            as_of=as_of,
            exclude_signature=exclude_signature,
        )

    async def compute_realized_pnl(self, participant: str, asset: str) -> RealizedPnL | None:
        return await self.pnl_engine.compute_realized_pnl(participant, asset)

    async def rebuild_profile(self, participant: str) -> BehaviorPattern | None:
        return await self.behavior_profiler.rebuild_profile(participant)

    async def get_activity_pattern(self, participant: str) -> list[HourlyActivity]:
        return await self.activity_profiler.get_activity_pattern(participant)

    # Performance

    async def compute_performance(
        self, participant: str, window_hours: int, *, now: datetime | None = None
    ) -> PerformanceSnapshot | None:
        return await self.aggregator.compute_performance(participant, window_hours, now=now)

    async def generate_leaderboard(
        self,
        window: PerformanceWindow | str,
        limit: int | None = None,
        *,
        now: datetime | None = None,
    ) -> list[LeaderboardEntry]:
        if limit is None:
            limit = self._settings.performance.leaderboard_limit
        return await self.leaderboard.generate_leaderboard(window, limit, now=now)

    async def get_leaderboard(
        self, window: PerformanceWindow | str, limit: int | None = None
    ) -> list[LeaderboardEntry]:
        if limit is None:
            limit = self._settings.performance.leaderboard_limit
        return await self.leaderboard.get_leaderboard(window, limit)

    async def run_performance_analysis(
        self, *, now: datetime | None = None
    ) -> dict[PerformanceWindow, list[LeaderboardEntry]]:
        """Regenerate every configured window's leaderboard once."""
        return await self.runner.run_once(now=now)
