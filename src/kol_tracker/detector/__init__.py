"""Detector module - Deviations from a participant's usual behavior."""

from kol_tracker.detector.deviation import DeviationDetector
from kol_tracker.detector.models import DeviationSignal, DeviationType, Severity

__all__ = [
    "DeviationDetector",
    "DeviationSignal",
    "DeviationType",
    "Severity",
]
