"""Profiler module - Participant behavior and activity baselines."""

from kol_tracker.profiler.activity import ActivityProfiler, hourly_histogram
from kol_tracker.profiler.behavior import (
    BehaviorProfiler,
    build_pattern,
    hold_time_samples,
    typical_sizes,
)
from kol_tracker.profiler.models import BehaviorPattern, HourlyActivity

__all__ = [
    "ActivityProfiler",
    "BehaviorPattern",
    "BehaviorProfiler",
    "HourlyActivity",
    "build_pattern",
    "hold_time_samples",
    "hourly_histogram",
    "typical_sizes",
]
