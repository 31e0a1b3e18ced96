"""Hour-of-day activity profiling."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from decimal import Decimal
from typing import TYPE_CHECKING

from kol_tracker.profiler.models import HourlyActivity

if TYPE_CHECKING:
    from kol_tracker.ledger.models import Transaction
    from kol_tracker.storage.gateway import PersistenceGateway

logger = logging.getLogger(__name__)

DEFAULT_ACTIVITY_HISTORY_LIMIT = 1000


def hourly_histogram(transactions: Sequence[Transaction]) -> list[HourlyActivity]:
    """Bucket transactions by UTC hour of day.

    Only hours with at least one transaction are returned, busiest first;
    hours with equal counts are ordered by hour.
    """
    counts: dict[int, int] = {}
    volumes: dict[int, Decimal] = {}
    for tx in transactions:
        hour = tx.timestamp.hour
        counts[hour] = counts.get(hour, 0) + 1
        volumes[hour] = volumes.get(hour, Decimal(0)) + tx.quote_amount

    buckets = [
        HourlyActivity(hour=hour, transaction_count=count, volume=volumes[hour])
        for hour, count in counts.items()
    ]
    buckets.sort(key=lambda b: (-b.transaction_count, b.hour))
    return buckets


class ActivityProfiler:
    """Reports when in the day a participant usually trades."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        *,
        history_limit: int = DEFAULT_ACTIVITY_HISTORY_LIMIT,
    ) -> None:
        self._gateway = gateway
        self._history_limit = history_limit

    async def get_activity_pattern(self, participant: str) -> list[HourlyActivity]:
        """Return the participant's hourly activity, busiest hour first.

        Returns an empty list for a participant with no history.
        """
        async with self._gateway.unit_of_work() as store:
            history = await store.get_transaction_history(participant, None, self._history_limit)
        buckets = hourly_histogram(history)
        logger.debug("Activity for %s: %d active hours", participant, len(buckets))
        return buckets
