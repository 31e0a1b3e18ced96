"""Tests for behavior profiling."""

from __future__ import annotations

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from kol_tracker.profiler.behavior import (
    BehaviorProfiler,
    build_pattern,
    hold_time_samples,
    typical_sizes,
)


def newest_first(*txs):
    return list(reversed(txs))


class TestTypicalSizes:
    def test_rounds_half_up_and_orders_by_frequency(self) -> None:
        sizes = [Decimal(s) for s in ("0.125", "1", "0.13", "2", "1.001", "0.125")]

        assert typical_sizes(sizes) == (Decimal("0.13"), Decimal("1.00"), Decimal("2.00"))

    def test_ties_keep_first_seen_order(self) -> None:
        sizes = [Decimal(s) for s in ("3", "1", "2", "1", "3", "2")]

        assert typical_sizes(sizes) == (Decimal("3.00"), Decimal("1.00"), Decimal("2.00"))

    def test_keeps_at_most_count(self) -> None:
        sizes = [Decimal(i) for i in range(1, 10)]

        assert len(typical_sizes(sizes, count=5)) == 5

    def test_ignores_zero_sizes(self) -> None:
        assert typical_sizes([Decimal("0"), Decimal("0.001")]) == ()


class TestHoldTimeSamples:
    def test_pairs_sell_with_preceding_buy(self, make_tx) -> None:
        txs = newest_first(
            make_tx("buy", minutes=0),
            make_tx("sell", minutes=10),
            make_tx("sell", minutes=20),
            make_tx("buy", minutes=30, asset="other"),
            make_tx("sell", minutes=35, asset="other"),
        )

        assert sorted(hold_time_samples(txs)) == [300.0, 600.0]

    def test_discards_outliers(self, make_tx) -> None:
        txs = newest_first(
            make_tx("buy", minutes=0),
            make_tx("sell", minutes=0),
            make_tx("buy", minutes=10),
            make_tx("sell", minutes=10 + 25 * 60),
        )

        assert hold_time_samples(txs) == []


class TestBuildPattern:
    def test_empty_history(self) -> None:
        assert build_pattern("walletA", []) is None

    def test_summarizes_history(self, make_tx) -> None:
        txs = newest_first(
            make_tx("buy", quote_amount="0.4", minutes=0),
            make_tx("buy", quote_amount="1.6", minutes=5),
            make_tx("sell", quote_amount="3", minutes=15),
        )

        pattern = build_pattern("walletA", txs)

        assert pattern is not None
        assert pattern.avg_buy_size == Decimal("1.0")
        assert pattern.avg_sell_size == Decimal("3")
        assert pattern.typical_buy_sizes == (Decimal("0.40"), Decimal("1.60"))
        assert pattern.typical_sell_sizes == (Decimal("3.00"),)
        assert pattern.avg_hold_time == 600.0
        assert pattern.min_hold_time == 600.0
        assert pattern.max_hold_time == 600.0
        assert (pattern.buy_count, pattern.sell_count, pattern.transaction_count) == (2, 1, 3)

    def test_no_hold_samples(self, make_tx) -> None:
        pattern = build_pattern("walletA", [make_tx("buy")])

        assert pattern is not None
        assert pattern.avg_hold_time is None
        assert pattern.avg_sell_size == Decimal("0")


class TestBehaviorProfiler:
    @pytest.mark.asyncio
    async def test_rebuild_stores_pattern(self, gateway, record, make_tx) -> None:
        await record(
            make_tx("buy", quote_amount="0.4"),
            make_tx("sell", quote_amount="0.9", minutes=20),
        )
        profiler = BehaviorProfiler(gateway)

        built = await profiler.rebuild_profile("walletA")
        stored = await profiler.get_profile("walletA")

        assert built is not None
        assert stored is not None
        assert stored.typical_buy_sizes == (Decimal("0.40"),)
        assert stored.avg_hold_time == 1200.0
        assert stored.buy_count == 1

    @pytest.mark.asyncio
    async def test_rebuild_overwrites_previous(self, gateway, record, make_tx) -> None:
        profiler = BehaviorProfiler(gateway)
        await record(make_tx("buy", quote_amount="1"))
        await profiler.rebuild_profile("walletA")

        await record(make_tx("buy", quote_amount="3", minutes=1))
        await profiler.rebuild_profile("walletA")

        stored = await profiler.get_profile("walletA")
        assert stored is not None
        assert stored.buy_count == 2
        assert stored.avg_buy_size == Decimal("2")

    @pytest.mark.asyncio
    async def test_history_limit(self, gateway, record, make_tx) -> None:
        await record(*(make_tx("buy", quote_amount=str(i + 1), minutes=i) for i in range(5)))
        profiler = BehaviorProfiler(gateway, history_limit=2)

        pattern = await profiler.rebuild_profile("walletA")

        assert pattern is not None
        assert pattern.transaction_count == 2
        assert pattern.avg_buy_size == Decimal("4.5")

    @pytest.mark.asyncio
    async def test_no_history(self, gateway) -> None:
        profiler = BehaviorProfiler(gateway)

        assert await profiler.rebuild_profile("nobody") is None
        assert await profiler.get_profile("nobody") is None

    @pytest.mark.asyncio
    async def test_concurrent_rebuilds_coalesce(self, make_tx) -> None:
        release = asyncio.Event()
        store = MagicMock()

        async def slow_history(*_args, **_kwargs):
            await release.wait()
            return [make_tx("buy")]

        store.get_transaction_history = AsyncMock(side_effect=slow_history)
        store.upsert_behavior_pattern = AsyncMock()
        gateway = MagicMock()
        gateway.unit_of_work.return_value.__aenter__ = AsyncMock(return_value=store)
        gateway.unit_of_work.return_value.__aexit__ = AsyncMock(return_value=False)
        profiler = BehaviorProfiler(gateway)

        calls = [asyncio.create_task(profiler.rebuild_profile("walletA")) for _ in range(3)]
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(*calls)

        assert store.get_transaction_history.await_count == 1
        assert store.upsert_behavior_pattern.await_count == 1
        assert results[0] is results[1] is results[2]

        # A later rebuild starts a fresh computation.
        await profiler.rebuild_profile("walletA")
        assert store.get_transaction_history.await_count == 2
