"""Data models for performance aggregation and ranking."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum


class PerformanceWindow(str, Enum):
    """Trailing windows over which performance is ranked."""

    DAY = "24h"
    TWO_DAYS = "48h"
    WEEK = "7d"

    @property
    def hours(self) -> int:
        return _WINDOW_HOURS[self]

    @classmethod
    def parse(cls, value: str | PerformanceWindow) -> PerformanceWindow:
        """Parse a window label such as ``"24h"`` or ``"7d"``."""
        if isinstance(value, PerformanceWindow):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError as e:
            valid = ", ".join(w.value for w in cls)
            raise ValueError(f"Unknown window {value!r} (expected one of: {valid})") from e


_WINDOW_HOURS = {
    PerformanceWindow.DAY: 24,
    PerformanceWindow.TWO_DAYS: 48,
    PerformanceWindow.WEEK: 168,
}


@dataclass(frozen=True)
class PerformanceSnapshot:
    """Realized performance of a participant over a trailing window.

    Attributes:
        participant: Participant the snapshot describes.
        window_hours: Length of the trailing window.
        total_pnl: Realized PnL summed over assets traded in the window.
        total_pnl_percentage: total_pnl relative to matched cost basis (x100).
        total_cost_basis: Cost basis matched by in-window sells.
        total_proceeds: Proceeds of in-window sells.
        total_buys: Buys inside the window.
        total_sells: Sells inside the window.
        total_volume: Quote volume of all transactions inside the window.
        unique_assets_traded: Distinct assets traded inside the window.
        win_rate: Profitable assets over decided assets (x100).
        avg_hold_time: Mean of per-asset average hold times, in seconds.
        profitable_asset_count: Assets with positive realized PnL.
        losing_asset_count: Assets with negative realized PnL.
        largest_win: Largest positive per-asset PnL (0 if none).
        largest_loss: Most negative per-asset PnL (0 if none).
        transaction_count: Transactions inside the window.
        computed_at: When the snapshot was computed.
    """

    participant: str
    window_hours: int
    total_pnl: Decimal
    total_pnl_percentage: float
    total_cost_basis: Decimal
    total_proceeds: Decimal
    total_buys: int
    total_sells: int
    total_volume: Decimal
    unique_assets_traded: int
    win_rate: float
    avg_hold_time: float | None
    profitable_asset_count: int
    losing_asset_count: int
    largest_win: Decimal
    largest_loss: Decimal
    transaction_count: int
    computed_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class LeaderboardEntry:
    """One ranked row of a leaderboard."""

    window: PerformanceWindow
    rank: int
    participant: str
    total_pnl: Decimal
    total_pnl_percentage: float
    win_rate: float
    total_volume: Decimal
    unique_assets_traded: int
    snapshot_date: date

    @classmethod
    def from_snapshot(
        cls,
        snapshot: PerformanceSnapshot,
        *,
        window: PerformanceWindow,
        rank: int,
        snapshot_date: date,
    ) -> LeaderboardEntry:
        return cls(
            window=window,
            rank=rank,
            participant=snapshot.participant,
            total_pnl=snapshot.total_pnl,
            total_pnl_percentage=snapshot.total_pnl_percentage,
            win_rate=snapshot.win_rate,
            total_volume=snapshot.total_volume,
            unique_assets_traded=snapshot.unique_assets_traded,
            snapshot_date=snapshot_date,
        )

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-friendly dictionary."""
        return {
            "window": self.window.value,
            "rank": self.rank,
            "participant": self.participant,
            "total_pnl": str(self.total_pnl),
            "total_pnl_percentage": self.total_pnl_percentage,
            "win_rate": self.win_rate,
            "total_volume": str(self.total_volume),
            "unique_assets_traded": self.unique_assets_traded,
            "snapshot_date": self.snapshot_date.isoformat(),
        }
