"""Data models for the detector module."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum


class DeviationType(str, Enum):
    """Kinds of departure from a participant's usual behavior."""

    LARGE_BUY_WITHOUT_TEST = "large_buy_without_test"
    TEST_BUY_AFTER_LARGE = "test_buy_after_large"
    UNUSUALLY_LONG_HOLD = "unusually_long_hold"
    UNUSUALLY_LARGE_BUY = "unusually_large_buy"


class Severity(str, Enum):
    """How strongly a deviation suggests conviction."""

    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class DeviationSignal:
    """Signal emitted when a transaction departs from the participant's pattern.

    Attributes:
        type: Which heuristic fired.
        severity: Severity of the deviation.
        message: Human readable explanation.
        participant: Participant the transaction belongs to.
        asset: Asset traded.
        quote_amount: Quote-currency size of the evaluated transaction.
        timestamp: When this signal was generated.
    """

    type: DeviationType
    severity: Severity
    message: str
    participant: str
    asset: str
    quote_amount: Decimal
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_high_severity(self) -> bool:
        return self.severity == Severity.HIGH

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "type": self.type.value,
            "severity": self.severity.value,
            "message": self.message,
            "participant": self.participant,
            "asset": self.asset,
            "quote_amount": str(self.quote_amount),
            "timestamp": self.timestamp.isoformat(),
        }
