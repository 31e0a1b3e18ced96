"""Windowed performance aggregation.

This module provides the PerformanceAggregator class that sums realized
FIFO results across every asset a participant traded in a trailing window.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING

from kol_tracker.performance.models import PerformanceSnapshot, PerformanceWindow
from kol_tracker.pnl.fifo import RealizedPnL, match_fifo

if TYPE_CHECKING:
    from kol_tracker.ledger.models import Transaction
    from kol_tracker.storage.gateway import PersistenceGateway

logger = logging.getLogger(__name__)


def summarize_window(
    participant: str,
    window_hours: int,
    window_transactions: Sequence[Transaction],
    per_asset: dict[str, RealizedPnL],
    *,
    computed_at: datetime,
) -> PerformanceSnapshot:
    """Combine per-asset realized results into one snapshot.

    Args:
        participant: Participant the results belong to.
        window_hours: Length of the trailing window.
        window_transactions: Transactions inside the window.
        per_asset: Realized result per asset traded in the window.
        computed_at: Time the snapshot is stamped with.
    """
    total_pnl = Decimal(0)
    total_cost_basis = Decimal(0)
    total_proceeds = Decimal(0)
    profitable = 0
    losing = 0
    largest_win = Decimal(0)
    largest_loss = Decimal(0)
    hold_times: list[float] = []

    for result in per_asset.values():
        pnl = result.realized_pnl
        total_pnl += pnl
        total_cost_basis += result.total_cost_basis
        total_proceeds += result.total_proceeds
        if pnl > 0:
            profitable += 1
            largest_win = max(largest_win, pnl)
        elif pnl < 0:
            losing += 1
            largest_loss = min(largest_loss, pnl)
        if result.avg_hold_time is not None:
            hold_times.append(result.avg_hold_time)

    decided = profitable + losing
    win_rate = profitable / decided * 100 if decided else 0.0
    percentage = float(total_pnl / total_cost_basis * 100) if total_cost_basis > 0 else 0.0

    return PerformanceSnapshot(
        participant=participant,
        window_hours=window_hours,
        total_pnl=total_pnl,
        total_pnl_percentage=percentage,
        total_cost_basis=total_cost_basis,
        total_proceeds=total_proceeds,
        total_buys=sum(1 for tx in window_transactions if tx.is_buy),
        total_sells=sum(1 for tx in window_transactions if tx.is_sell),
        total_volume=sum((tx.quote_amount for tx in window_transactions), Decimal(0)),
        unique_assets_traded=len({tx.asset for tx in window_transactions}),
        win_rate=win_rate,
        avg_hold_time=sum(hold_times) / len(hold_times) if hold_times else None,
        profitable_asset_count=profitable,
        losing_asset_count=losing,
        largest_win=largest_win,
        largest_loss=largest_loss,
        transaction_count=len(window_transactions),
        computed_at=computed_at,
    )


class PerformanceAggregator:
    """Computes and stores windowed performance snapshots.

    The window selects which assets count and supplies the activity
    figures (buys, sells, volume). Realized PnL for each selected asset
    covers its complete history up to the end of the window, the same
    result the PnL engine reports for that pair.

    Example:
        ```python
        aggregator = PerformanceAggregator(gateway)
        snapshot = await aggregator.compute_performance(wallet, 24)
        if snapshot is not None:
            print(snapshot.total_pnl, snapshot.win_rate)
        ```
    """

    def __init__(self, gateway: PersistenceGateway, *, history_limit: int | None = None) -> None:
        """Initialize the aggregator.

        Args:
            gateway: Persistence gateway for history and snapshots.
            history_limit: Read at most this many of the newest transactions
                per asset when matching lots. None reads the full history.
        """
        self._gateway = gateway
        self._history_limit = history_limit

    async def compute_performance(
        self,
        participant: str,
        window_hours: int,
        *,
        now: datetime | None = None,
    ) -> PerformanceSnapshot | None:
        """Compute a participant's realized performance over a trailing window.

        Args:
            participant: Participant to evaluate.
            window_hours: Length of the trailing window in hours.
            now: End of the window, defaults to now.

        Returns:
            PerformanceSnapshot, or None if nothing was traded in the window.

        Raises:
            StorageUnavailable: If the store cannot be reached.
        """
        now = (now or datetime.now(UTC)).astimezone(UTC)
        since = now - timedelta(hours=window_hours)

        per_asset: dict[str, RealizedPnL] = {}
        async with self._gateway.unit_of_work() as store:
            window_txs = await store.get_transaction_history(participant, None, None, since=since)
            window_txs = [tx for tx in window_txs if tx.timestamp <= now]
            if not window_txs:
                return None

            for asset in sorted({tx.asset for tx in window_txs}):
                history = await store.get_transaction_history(
                    participant, asset, self._history_limit
                )
                history.reverse()
                result = match_fifo([tx for tx in history if tx.timestamp <= now])
                if result is not None:
                    per_asset[asset] = result

        snapshot = summarize_window(
            participant, window_hours, window_txs, per_asset, computed_at=now
        )
        logger.debug(
            "Performance %s over %dh: pnl=%s win_rate=%.1f assets=%d",
            participant,
            window_hours,
            snapshot.total_pnl,
            snapshot.win_rate,
            snapshot.unique_assets_traded,
        )
        return snapshot

    async def save_snapshot(
        self,
        participant: str,
        window: PerformanceWindow,
        snapshot: PerformanceSnapshot,
        *,
        day: date,
    ) -> None:
        """Store a snapshot, replacing any for the same participant, window and day."""
        async with self._gateway.unit_of_work() as store:
            await store.upsert_performance_snapshot(participant, window, day, snapshot)
