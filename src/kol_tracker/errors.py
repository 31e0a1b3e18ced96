"""Error taxonomy shared by the analytics components."""

from __future__ import annotations


class KolTrackerError(Exception):
    """Base class for all analytics errors."""


class InvalidTransaction(KolTrackerError):
    """Raised when a transaction record is malformed and must be rejected."""


class DuplicateTransaction(KolTrackerError):
    """Raised when a signature is already recorded with different content.

    Re-recording an identical transaction is a no-op and never raises.
    """

    def __init__(self, signature: str, message: str | None = None) -> None:
        super().__init__(message or f"Transaction {signature} already recorded with different content")
        self.signature = signature


class StorageUnavailable(KolTrackerError):
    """Raised when the persistence backend cannot serve a request.

    Not retried internally; retry policy belongs to the caller.
    """
