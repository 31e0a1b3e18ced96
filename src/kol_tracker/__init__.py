"""KOL Tracker - wallet activity analytics for monitored market participants."""

from kol_tracker.errors import (
    DuplicateTransaction,
    InvalidTransaction,
    KolTrackerError,
    StorageUnavailable,
)

__version__ = "0.1.0"

__all__ = [
    "DuplicateTransaction",
    "InvalidTransaction",
    "KolTrackerError",
    "StorageUnavailable",
    "__version__",
]
