"""Data models for the profiler module."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal


@dataclass(frozen=True)
class BehaviorPattern:
    """Typical trading behavior of a participant.

    Derived wholesale from the participant's recent transactions; a newer
    pattern replaces the stored one rather than being merged into it.

    Attributes:
        participant: Participant the pattern describes.
        avg_buy_size: Mean quote amount per buy (0 when no buys).
        avg_sell_size: Mean quote amount per sell (0 when no sells).
        typical_buy_sizes: Most frequent rounded buy sizes, most frequent first.
        typical_sell_sizes: Most frequent rounded sell sizes, most frequent first.
        avg_hold_time: Mean buy-to-sell duration in seconds, None without samples.
        min_hold_time: Shortest retained hold time in seconds.
        max_hold_time: Longest retained hold time in seconds.
        buy_count: Number of buys in the sampled history.
        sell_count: Number of sells in the sampled history.
        transaction_count: Size of the sampled history.
        last_updated: When the pattern was computed.
    """

    participant: str
    avg_buy_size: Decimal
    avg_sell_size: Decimal
    typical_buy_sizes: tuple[Decimal, ...]
    typical_sell_sizes: tuple[Decimal, ...]
    avg_hold_time: float | None
    min_hold_time: float | None
    max_hold_time: float | None
    buy_count: int
    sell_count: int
    transaction_count: int
    last_updated: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def has_buys(self) -> bool:
        return self.buy_count > 0


@dataclass(frozen=True)
class HourlyActivity:
    """Trading activity of a participant within one UTC hour of the day."""

    hour: int
    transaction_count: int
    volume: Decimal
