"""Behavioral deviation detection.

This module provides the DeviationDetector class that compares a new
transaction against the participant's stored behavior pattern and recent
activity in the same asset.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from kol_tracker.detector.models import DeviationSignal, DeviationType, Severity
from kol_tracker.ledger.models import TransactionKind

if TYPE_CHECKING:
    from kol_tracker.ledger.models import Transaction
    from kol_tracker.pnl.engine import PnLEngine
    from kol_tracker.profiler.behavior import BehaviorProfiler
    from kol_tracker.profiler.models import BehaviorPattern
    from kol_tracker.storage.gateway import PersistenceGateway

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_TEST_BUY_THRESHOLD = Decimal("0.5")
DEFAULT_LARGE_BUY_MULTIPLIER = Decimal("3")
DEFAULT_RECENT_WINDOW_SIZE = 10
DEFAULT_LONG_HOLD_MULTIPLIER = 3.0
DEFAULT_LARGE_AVG_MULTIPLIER = Decimal("2.5")
DEFAULT_TYPICAL_SIZE_TOLERANCE = Decimal("0.1")


class DeviationDetector:
    """Detector for trades that break a participant's habits.

    Heuristics are evaluated independently and any subset may fire:
    - large_buy_without_test: a large buy with no recent small "test" buy
      in the same asset
    - test_buy_after_large: a small buy right after a large buy in the
      same asset
    - unusually_long_hold: a sell after holding far longer than usual
    - unusually_large_buy: a buy far above the average that matches none
      of the typical sizes

    A participant without a usable pattern is never flagged; the first
    check schedules a profile rebuild instead.

    Example:
        ```python
        detector = DeviationDetector(gateway, profiler, pnl_engine)
        signals = await detector.check_deviation(wallet, "buy", Decimal("2"), mint)
        for signal in signals:
            print(signal.type, signal.message)
        ```
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        profiler: BehaviorProfiler,
        pnl_engine: PnLEngine,
        *,
        test_buy_threshold: Decimal = DEFAULT_TEST_BUY_THRESHOLD,
        large_buy_multiplier: Decimal = DEFAULT_LARGE_BUY_MULTIPLIER,
        recent_window_size: int = DEFAULT_RECENT_WINDOW_SIZE,
        long_hold_multiplier: float = DEFAULT_LONG_HOLD_MULTIPLIER,
        large_avg_multiplier: Decimal = DEFAULT_LARGE_AVG_MULTIPLIER,
        typical_size_tolerance: Decimal = DEFAULT_TYPICAL_SIZE_TOLERANCE,
    ) -> None:
        """Initialize the deviation detector.

        Args:
            gateway: Persistence gateway for recent pair history.
            profiler: BehaviorProfiler providing stored patterns.
            pnl_engine: PnLEngine used to measure the current hold time.
            test_buy_threshold: Buys below this size are test buys (0.5).
            large_buy_multiplier: Buys above this multiple of the test
                threshold are large buys (3).
            recent_window_size: Number of recent pair transactions inspected (10).
            long_hold_multiplier: Hold time multiple of the average that
                counts as unusually long (3).
            large_avg_multiplier: Buy size multiple of the average buy that
                counts as unusually large (2.5).
            typical_size_tolerance: Absolute distance within which a size
                matches a typical size (0.1).
        """
        self._gateway = gateway
        self._profiler = profiler
        self._pnl_engine = pnl_engine
        self._test_buy_threshold = test_buy_threshold
        self._large_buy_threshold = test_buy_threshold * large_buy_multiplier
        self._recent_window_size = recent_window_size
        self._long_hold_multiplier = long_hold_multiplier
        self._large_avg_multiplier = large_avg_multiplier
        self._typical_size_tolerance = typical_size_tolerance

    async def check_deviation(
        self,
        participant: str,
        kind: TransactionKind | str,
        quote_amount: Decimal,
        asset: str,
        *,
        as_of: datetime | None = None,
        exclude_signature: str | None = None,
    ) -> list[DeviationSignal]:
        """Evaluate a transaction against the participant's behavior.

        Meant to run before the transaction is recorded. To evaluate one
        that has already been recorded, pass its signature as
        ``exclude_signature`` so it is not compared against itself.

        Args:
            participant: Participant making the transaction.
            kind: ``buy`` or ``sell``.
            quote_amount: Quote-currency size of the transaction.
            asset: Asset traded.
            as_of: Time of the transaction, defaults to now.
            exclude_signature: Signature to ignore in the recent history.

        Returns:
            Signals that fired, empty if none did.

        Raises:
            StorageUnavailable: If the store cannot be reached.
        """
        kind = TransactionKind(kind)
        if not isinstance(quote_amount, Decimal):
            quote_amount = Decimal(str(quote_amount))
        as_of = as_of or datetime.now(UTC)

        pattern = await self._profiler.get_profile(participant)
        if pattern is None or not pattern.has_buys:
            logger.debug("No usable pattern for %s, rebuilding profile", participant)
            await self._profiler.rebuild_profile(participant)
            return []

        recent = await self._recent_history(participant, asset, exclude_signature)

        signals: list[DeviationSignal] = []

        def emit(dtype: DeviationType, severity: Severity, message: str) -> None:
            signals.append(
                DeviationSignal(
                    type=dtype,
                    severity=severity,
                    message=message,
                    participant=participant,
                    asset=asset,
                    quote_amount=quote_amount,
                    timestamp=as_of,
                )
            )

        if kind == TransactionKind.BUY:
            if self._is_large_buy_without_test(quote_amount, recent):
                emit(
                    DeviationType.LARGE_BUY_WITHOUT_TEST,
                    Severity.HIGH,
                    f"Large buy {quote_amount:.3f} without a preceding test buy",
                )
            if self._is_test_buy_after_large(quote_amount, recent):
                emit(
                    DeviationType.TEST_BUY_AFTER_LARGE,
                    Severity.MEDIUM,
                    f"Test buy {quote_amount:.3f} right after a large buy",
                )
            if self._is_unusually_large_buy(quote_amount, pattern):
                emit(
                    DeviationType.UNUSUALLY_LARGE_BUY,
                    Severity.HIGH,
                    f"Large buy {quote_amount:.3f} (avg: {pattern.avg_buy_size:.3f})",
                )
        else:
            hold_time = await self._long_hold_time(
                participant, asset, pattern, as_of, exclude_signature
            )
            if hold_time is not None:
                emit(
                    DeviationType.UNUSUALLY_LONG_HOLD,
                    Severity.HIGH,
                    f"Held {hold_time / 60:.1f}m (avg: {pattern.avg_hold_time / 60:.1f}m)",
                )

        if signals:
            logger.info(
                "Deviation for %s on %s: %s",
                participant,
                asset,
                ", ".join(s.type.value for s in signals),
            )
        return signals

    async def _recent_history(
        self,
        participant: str,
        asset: str,
        exclude_signature: str | None,
    ) -> list[Transaction]:
        limit = self._recent_window_size + (1 if exclude_signature else 0)
        async with self._gateway.unit_of_work() as store:
            history = await store.get_transaction_history(participant, asset, limit)
        if exclude_signature:
            history = [tx for tx in history if tx.signature != exclude_signature]
        return history[: self._recent_window_size]

    def _is_large_buy_without_test(self, quote_amount: Decimal, recent: list[Transaction]) -> bool:
        if quote_amount <= self._large_buy_threshold or not recent:
            return False
        return not any(
            tx.is_buy and tx.quote_amount < self._test_buy_threshold for tx in recent
        )

    def _is_test_buy_after_large(self, quote_amount: Decimal, recent: list[Transaction]) -> bool:
        if quote_amount >= self._test_buy_threshold or not recent:
            return False
        last = recent[0]
        return last.is_buy and last.quote_amount > self._large_buy_threshold

    def _is_unusually_large_buy(self, quote_amount: Decimal, pattern: BehaviorPattern) -> bool:
        if pattern.avg_buy_size <= 0:
            return False
        if quote_amount <= pattern.avg_buy_size * self._large_avg_multiplier:
            return False
        return not any(
            abs(quote_amount - size) < self._typical_size_tolerance
            for size in pattern.typical_buy_sizes
        )

    async def _long_hold_time(
        self,
        participant: str,
        asset: str,
        pattern: BehaviorPattern,
        as_of: datetime,
        exclude_signature: str | None,
    ) -> float | None:
        """Return the current hold time if it is unusually long, else None."""
        if not pattern.avg_hold_time:
            return None
        hold_time = await self._pnl_engine.current_hold_time(
            participant, asset, as_of=as_of, exclude_signature=exclude_signature
        )
        if hold_time is None or hold_time <= pattern.avg_hold_time * self._long_hold_multiplier:
            return None
        return hold_time
