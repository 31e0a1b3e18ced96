"""Tests for behavioral deviation detection."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest

from kol_tracker.detector.deviation import DeviationDetector
from kol_tracker.detector.models import DeviationSignal, DeviationType, Severity
from kol_tracker.pnl.engine import PnLEngine
from kol_tracker.profiler.behavior import BehaviorProfiler

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def profiler(gateway) -> BehaviorProfiler:
    return BehaviorProfiler(gateway)


@pytest.fixture
def detector(gateway, profiler: BehaviorProfiler) -> DeviationDetector:
    return DeviationDetector(gateway, profiler, PnLEngine(gateway))


def types(signals: list[DeviationSignal]) -> set[DeviationType]:
    return {s.type for s in signals}


# ============================================================================
# Tests
# ============================================================================


class TestColdStart:
    @pytest.mark.asyncio
    async def test_no_pattern_rebuilds_and_returns_nothing(
        self, detector: DeviationDetector, profiler: BehaviorProfiler, record, make_tx
    ) -> None:
        await record(make_tx("buy", quote_amount="0.3"))

        signals = await detector.check_deviation("walletA", "buy", Decimal("50"), "mintX")

        assert signals == []
        assert await profiler.get_profile("walletA") is not None

    @pytest.mark.asyncio
    async def test_pattern_without_buys_is_cold(
        self, detector: DeviationDetector, profiler: BehaviorProfiler, record, make_tx
    ) -> None:
        await record(make_tx("sell", quote_amount="2"))
        await profiler.rebuild_profile("walletA")

        signals = await detector.check_deviation("walletA", "buy", Decimal("50"), "mintX")

        assert signals == []

    @pytest.mark.asyncio
    async def test_unknown_participant(self, detector: DeviationDetector) -> None:
        assert await detector.check_deviation("nobody", "buy", Decimal("5"), "mintX") == []


class TestSequenceHeuristics:
    @pytest.mark.asyncio
    async def test_large_buy_without_test(
        self, detector: DeviationDetector, profiler: BehaviorProfiler, record, make_tx
    ) -> None:
        await record(make_tx("buy", quote_amount="1.0"), make_tx("buy", quote_amount="1.2", minutes=1))
        await profiler.rebuild_profile("walletA")

        signals = await detector.check_deviation("walletA", "buy", Decimal("2.0"), "mintX")

        assert DeviationType.LARGE_BUY_WITHOUT_TEST in types(signals)
        signal = next(s for s in signals if s.type == DeviationType.LARGE_BUY_WITHOUT_TEST)
        assert signal.severity == Severity.HIGH
        assert signal.participant == "walletA"
        assert signal.asset == "mintX"

    @pytest.mark.asyncio
    async def test_large_buy_after_test_is_normal(
        self, detector: DeviationDetector, profiler: BehaviorProfiler, record, make_tx
    ) -> None:
        await record(make_tx("buy", quote_amount="0.2"), make_tx("buy", quote_amount="1.2", minutes=1))
        await profiler.rebuild_profile("walletA")

        signals = await detector.check_deviation("walletA", "buy", Decimal("2.0"), "mintX")

        assert DeviationType.LARGE_BUY_WITHOUT_TEST not in types(signals)

    @pytest.mark.asyncio
    async def test_large_buy_in_new_asset_is_not_flagged(
        self, detector: DeviationDetector, profiler: BehaviorProfiler, record, make_tx
    ) -> None:
        await record(make_tx("buy", quote_amount="1.0"))
        await profiler.rebuild_profile("walletA")

        signals = await detector.check_deviation("walletA", "buy", Decimal("2.0"), "freshMint")

        assert DeviationType.LARGE_BUY_WITHOUT_TEST not in types(signals)

    @pytest.mark.asyncio
    async def test_test_buy_after_large(
        self, detector: DeviationDetector, profiler: BehaviorProfiler, record, make_tx
    ) -> None:
        await record(make_tx("buy", quote_amount="0.3"), make_tx("buy", quote_amount="2.0", minutes=1))
        await profiler.rebuild_profile("walletA")

        signals = await detector.check_deviation("walletA", "buy", Decimal("0.2"), "mintX")

        assert types(signals) == {DeviationType.TEST_BUY_AFTER_LARGE}
        assert signals[0].severity == Severity.MEDIUM

    @pytest.mark.asyncio
    async def test_exclude_signature_ignores_recorded_transaction(
        self, detector: DeviationDetector, profiler: BehaviorProfiler, record, make_tx
    ) -> None:
        await record(make_tx("buy", quote_amount="1.0"))
        await profiler.rebuild_profile("walletA")
        small = make_tx("buy", quote_amount="0.2", minutes=1)
        await record(small)

        signals = await detector.check_deviation(
            "walletA", "buy", Decimal("2.0"), "mintX", exclude_signature=small.signature
        )

        assert DeviationType.LARGE_BUY_WITHOUT_TEST in types(signals)


class TestSizeAndHoldHeuristics:
    @pytest.mark.asyncio
    async def test_unusually_large_buy(
        self, detector: DeviationDetector, profiler: BehaviorProfiler, record, make_tx
    ) -> None:
        await record(
            make_tx("buy", quote_amount="0.3", asset="a1"),
            make_tx("buy", quote_amount="0.4", asset="a2", minutes=1),
        )
        await profiler.rebuild_profile("walletA")

        signals = await detector.check_deviation("walletA", "buy", Decimal("1.0"), "mintX")

        assert types(signals) == {DeviationType.UNUSUALLY_LARGE_BUY}
        assert signals[0].severity == Severity.HIGH

    @pytest.mark.asyncio
    async def test_typical_size_is_not_unusual(
        self, detector: DeviationDetector, profiler: BehaviorProfiler, record, make_tx
    ) -> None:
        await record(
            *(make_tx("buy", quote_amount="0.2", asset=f"a{i}", minutes=i) for i in range(5)),
            make_tx("buy", quote_amount="1.0", asset="a9", minutes=10),
        )
        await profiler.rebuild_profile("walletA")

        # avg is 0.333..., 1.05 is within 0.1 of the typical 1.00
        signals = await detector.check_deviation("walletA", "buy", Decimal("1.05"), "mintX")

        assert DeviationType.UNUSUALLY_LARGE_BUY not in types(signals)

    @pytest.mark.asyncio
    async def test_unusually_long_hold(
        self, detector: DeviationDetector, profiler: BehaviorProfiler, record, make_tx, base_time
    ) -> None:
        # Usual hold: ten minutes.
        await record(
            make_tx("buy", quote_amount="0.4", asset="a1"),
            make_tx("sell", quote_amount="0.5", asset="a1", minutes=10),
            make_tx("buy", quote_amount="0.4", minutes=20),
        )
        await profiler.rebuild_profile("walletA")

        signals = await detector.check_deviation(
            "walletA", "sell", Decimal("0.9"), "mintX", as_of=base_time + timedelta(minutes=80)
        )

        assert types(signals) == {DeviationType.UNUSUALLY_LONG_HOLD}
        assert signals[0].severity == Severity.HIGH

    @pytest.mark.asyncio
    async def test_short_hold_is_normal(
        self, detector: DeviationDetector, profiler: BehaviorProfiler, record, make_tx, base_time
    ) -> None:
        await record(
            make_tx("buy", quote_amount="0.4", asset="a1"),
            make_tx("sell", quote_amount="0.5", asset="a1", minutes=10),
            make_tx("buy", quote_amount="0.4", minutes=20),
        )
        await profiler.rebuild_profile("walletA")

        signals = await detector.check_deviation(
            "walletA", "sell", Decimal("0.9"), "mintX", as_of=base_time + timedelta(minutes=40)
        )

        assert signals == []


class TestDeviationSignal:
    def test_to_dict(self, base_time) -> None:
        signal = DeviationSignal(
            type=DeviationType.UNUSUALLY_LONG_HOLD,
            severity=Severity.HIGH,
            message="Held 60.0m (avg: 10.0m)",
            participant="walletA",
            asset="mintX",
            quote_amount=Decimal("0.9"),
            timestamp=base_time,
        )

        data = signal.to_dict()

        assert data["type"] == "unusually_long_hold"
        assert data["severity"] == "high"
        assert data["quote_amount"] == "0.9"
        assert data["timestamp"] == base_time.isoformat()
        assert signal.is_high_severity
