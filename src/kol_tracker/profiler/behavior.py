"""Behavior profiling of tracked participants.

This module provides the BehaviorProfiler class that summarises a
participant's recent transactions into typical trade sizes and hold-time
statistics used as a baseline for deviation detection.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter, defaultdict
from collections.abc import Sequence
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from kol_tracker.profiler.models import BehaviorPattern

if TYPE_CHECKING:
    from kol_tracker.ledger.models import Transaction
    from kol_tracker.storage.gateway import PersistenceGateway

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_HISTORY_LIMIT = 100
DEFAULT_SIZE_GRANULARITY = Decimal("0.01")
DEFAULT_TYPICAL_SIZE_COUNT = 5
DEFAULT_MAX_HOLD_SECONDS = 24 * 3600


def _mean(values: Sequence[Decimal]) -> Decimal:
    if not values:
        return Decimal(0)
    return sum(values, Decimal(0)) / len(values)


def typical_sizes(
    sizes: Sequence[Decimal],
    *,
    granularity: Decimal = DEFAULT_SIZE_GRANULARITY,
    count: int = DEFAULT_TYPICAL_SIZE_COUNT,
) -> tuple[Decimal, ...]:
    """Return the most frequent sizes after rounding to ``granularity``.

    Non-positive sizes are ignored. Sizes with equal frequency keep the
    order in which they were first seen.
    """
    counts = Counter(
        size.quantize(granularity, rounding=ROUND_HALF_UP) for size in sizes if size > 0
    )
    return tuple(size for size, _ in counts.most_common(count))


def hold_time_samples(
    transactions: Sequence[Transaction],
    *,
    max_hold_seconds: float = DEFAULT_MAX_HOLD_SECONDS,
) -> list[float]:
    """Pair each sell with the transaction right before it in the same asset.

    ``transactions`` is expected newest first, as history is returned.

    A sample is taken only when that preceding transaction is a buy.
    Durations outside ``(0, max_hold_seconds]`` are discarded as outliers.
    """
    by_asset: dict[str, list[Transaction]] = defaultdict(list)
    for tx in sorted(reversed(transactions), key=lambda t: t.timestamp):
        by_asset[tx.asset].append(tx)

    samples: list[float] = []
    for asset_txs in by_asset.values():
        for previous, current in zip(asset_txs, asset_txs[1:]):
            if not (current.is_sell and previous.is_buy):
                continue
            duration = (current.timestamp - previous.timestamp).total_seconds()
            if 0 < duration <= max_hold_seconds:
                samples.append(duration)
    return samples


def build_pattern(
    participant: str,
    transactions: Sequence[Transaction],
    *,
    granularity: Decimal = DEFAULT_SIZE_GRANULARITY,
    typical_count: int = DEFAULT_TYPICAL_SIZE_COUNT,
    max_hold_seconds: float = DEFAULT_MAX_HOLD_SECONDS,
    now: datetime | None = None,
) -> BehaviorPattern | None:
    """Build a behavior pattern from a participant's transactions.

    Args:
        participant: Participant the transactions belong to.
        transactions: Recent transactions, newest first.
        granularity: Rounding unit for typical sizes.
        typical_count: Number of typical sizes to keep.
        max_hold_seconds: Longest hold time kept as a sample.
        now: Timestamp recorded as ``last_updated``.

    Returns:
        BehaviorPattern, or None if there are no transactions.
    """
    if not transactions:
        return None

    buys = [tx for tx in transactions if tx.is_buy]
    sells = [tx for tx in transactions if tx.is_sell]
    holds = hold_time_samples(transactions, max_hold_seconds=max_hold_seconds)

    return BehaviorPattern(
        participant=participant,
        avg_buy_size=_mean([tx.quote_amount for tx in buys]),
        avg_sell_size=_mean([tx.quote_amount for tx in sells]),
        typical_buy_sizes=typical_sizes(
            [tx.quote_amount for tx in buys], granularity=granularity, count=typical_count
        ),
        typical_sell_sizes=typical_sizes(
            [tx.quote_amount for tx in sells], granularity=granularity, count=typical_count
        ),
        avg_hold_time=sum(holds) / len(holds) if holds else None,
        min_hold_time=min(holds) if holds else None,
        max_hold_time=max(holds) if holds else None,
        buy_count=len(buys),
        sell_count=len(sells),
        transaction_count=len(transactions),
        last_updated=now or datetime.now(UTC),
    )


class BehaviorProfiler:
    """Rebuilds and serves participant behavior patterns.

    A rebuild always recomputes the pattern from the most recent history
    and overwrites the stored one. Rebuilds requested while one is already
    running for the same participant share that in-flight computation.

    Example:
        ```python
        profiler = BehaviorProfiler(gateway)
        pattern = await profiler.rebuild_profile(participant)
        if pattern is not None:
            print(pattern.typical_buy_sizes)
        ```
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        *,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        size_granularity: Decimal = DEFAULT_SIZE_GRANULARITY,
        typical_size_count: int = DEFAULT_TYPICAL_SIZE_COUNT,
        max_hold_seconds: float = DEFAULT_MAX_HOLD_SECONDS,
    ) -> None:
        """Initialize the behavior profiler.

        Args:
            gateway: Persistence gateway for history and pattern storage.
            history_limit: Number of most recent transactions to sample.
            size_granularity: Rounding unit for typical sizes (0.01).
            typical_size_count: Number of typical sizes to keep (5).
            max_hold_seconds: Longest hold time kept as a sample (24h).
        """
        self._gateway = gateway
        self._history_limit = history_limit
        self._size_granularity = size_granularity
        self._typical_size_count = typical_size_count
        self._max_hold_seconds = max_hold_seconds
        self._inflight: dict[str, asyncio.Task[BehaviorPattern | None]] = {}

    async def rebuild_profile(self, participant: str) -> BehaviorPattern | None:
        """Recompute and store the participant's behavior pattern.

        Returns:
            The new pattern, or None if the participant has no history.
        """
        task = self._inflight.get(participant)
        if task is None:
            task = asyncio.ensure_future(self._rebuild(participant))
            self._inflight[participant] = task
            task.add_done_callback(lambda _t: self._inflight.pop(participant, None))
        else:
            logger.debug("Joining in-flight profile rebuild for %s", participant)
        return await asyncio.shield(task)

    async def _rebuild(self, participant: str) -> BehaviorPattern | None:
        async with self._gateway.unit_of_work() as store:
            history = await store.get_transaction_history(
                participant, None, self._history_limit
            )
            pattern = build_pattern(
                participant,
                history,
                granularity=self._size_granularity,
                typical_count=self._typical_size_count,
                max_hold_seconds=self._max_hold_seconds,
            )
            if pattern is None:
                logger.debug("No history for %s, profile not stored", participant)
                return None
            await store.upsert_behavior_pattern(participant, pattern)

        logger.info(
            "Rebuilt profile for %s: buys=%d sells=%d avg_buy=%s avg_hold=%s",
            participant,
            pattern.buy_count,
            pattern.sell_count,
            pattern.avg_buy_size,
            pattern.avg_hold_time,
        )
        return pattern

    async def get_profile(self, participant: str) -> BehaviorPattern | None:
        """Return the stored pattern for the participant, if any."""
        async with self._gateway.unit_of_work() as store:
            return await store.get_behavior_pattern(participant)
