"""Performance module - Windowed realized performance and leaderboards."""

from kol_tracker.performance.aggregator import PerformanceAggregator, summarize_window
from kol_tracker.performance.leaderboard import LeaderboardGenerator, rank_snapshots
from kol_tracker.performance.models import (
    LeaderboardEntry,
    PerformanceSnapshot,
    PerformanceWindow,
)
from kol_tracker.performance.runner import PerformanceRunner

__all__ = [
    "LeaderboardEntry",
    "LeaderboardGenerator",
    "PerformanceAggregator",
    "PerformanceRunner",
    "PerformanceSnapshot",
    "PerformanceWindow",
    "rank_snapshots",
    "summarize_window",
]
