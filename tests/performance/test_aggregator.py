"""Tests for windowed performance aggregation."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest

from kol_tracker.performance.aggregator import PerformanceAggregator
from kol_tracker.performance.models import PerformanceWindow


@pytest.fixture
def aggregator(gateway) -> PerformanceAggregator:
    return PerformanceAggregator(gateway)


class TestComputePerformance:
    @pytest.mark.asyncio
    async def test_sums_assets_and_win_rate(
        self, aggregator: PerformanceAggregator, record, make_tx, base_time
    ) -> None:
        for asset, proceeds in (("a1", "15"), ("a2", "12"), ("a3", "11"), ("a4", "6")):
            await record(
                make_tx("buy", "10", "10", asset=asset),
                make_tx("sell", "10", proceeds, asset=asset, minutes=60),
            )

        snapshot = await aggregator.compute_performance(
            "walletA", 24, now=base_time + timedelta(hours=10)
        )

        assert snapshot is not None
        assert snapshot.total_pnl == Decimal("4")
        assert snapshot.total_cost_basis == Decimal("40")
        assert snapshot.total_proceeds == Decimal("44")
        assert snapshot.total_pnl_percentage == pytest.approx(10.0)
        assert snapshot.win_rate == pytest.approx(75.0)
        assert snapshot.profitable_asset_count == 3
        assert snapshot.losing_asset_count == 1
        assert snapshot.largest_win == Decimal("5")
        assert snapshot.largest_loss == Decimal("-4")
        assert snapshot.total_volume == Decimal("84")
        assert (snapshot.total_buys, snapshot.total_sells) == (4, 4)
        assert snapshot.unique_assets_traded == 4
        assert snapshot.transaction_count == 8
        assert snapshot.avg_hold_time == pytest.approx(3600.0)
        assert snapshot.window_hours == 24

    @pytest.mark.asyncio
    async def test_no_activity_in_window(
        self, aggregator: PerformanceAggregator, record, make_tx, base_time
    ) -> None:
        await record(make_tx("buy", "10", "10"))

        snapshot = await aggregator.compute_performance(
            "walletA", 24, now=base_time + timedelta(hours=30)
        )

        assert snapshot is None

    @pytest.mark.asyncio
    async def test_asset_pnl_covers_full_history(
        self, aggregator: PerformanceAggregator, record, make_tx, base_time
    ) -> None:
        await record(
            make_tx("buy", "10", "10", minutes=-30 * 60),
            make_tx("sell", "5", "20", minutes=-26 * 60),
            make_tx("sell", "5", "3", minutes=30),
        )

        snapshot = await aggregator.compute_performance(
            "walletA", 24, now=base_time + timedelta(hours=1)
        )

        # Both sells are realized; activity figures stay in-window.
        assert snapshot is not None
        assert snapshot.total_pnl == Decimal("13")
        assert snapshot.total_cost_basis == Decimal("10")
        assert snapshot.total_proceeds == Decimal("23")
        assert snapshot.total_volume == Decimal("3")
        assert (snapshot.total_buys, snapshot.total_sells) == (0, 1)
        assert snapshot.win_rate == pytest.approx(100.0)
        assert snapshot.profitable_asset_count == 1

    @pytest.mark.asyncio
    async def test_sells_before_window_count_for_assets_traded_in_it(
        self, aggregator: PerformanceAggregator, record, make_tx, base_time
    ) -> None:
        await record(
            make_tx("buy", "10", "100", minutes=-72 * 60),
            make_tx("sell", "5", "100", minutes=-60 * 60),
            make_tx("buy", "1", "1", minutes=-60),
            make_tx("buy", "1", "1", asset="quiet", minutes=-72 * 60),
            make_tx("sell", "1", "9", asset="quiet", minutes=-60 * 60),
        )

        snapshot = await aggregator.compute_performance("walletA", 24, now=base_time)

        assert snapshot is not None
        assert snapshot.total_pnl == Decimal("50")
        assert snapshot.unique_assets_traded == 1
        assert snapshot.total_volume == Decimal("1")

    @pytest.mark.asyncio
    async def test_ignores_transactions_after_window_end(
        self, aggregator: PerformanceAggregator, record, make_tx, base_time
    ) -> None:
        await record(
            make_tx("buy", "10", "10"),
            make_tx("sell", "5", "20", minutes=30),
            make_tx("sell", "5", "50", minutes=180),
        )

        snapshot = await aggregator.compute_performance(
            "walletA", 24, now=base_time + timedelta(hours=1)
        )

        assert snapshot is not None
        assert snapshot.total_pnl == Decimal("15")

    @pytest.mark.asyncio
    async def test_open_positions_only(
        self, aggregator: PerformanceAggregator, record, make_tx, base_time
    ) -> None:
        await record(make_tx("buy", "10", "10"))

        snapshot = await aggregator.compute_performance(
            "walletA", 24, now=base_time + timedelta(hours=1)
        )

        assert snapshot is not None
        assert snapshot.total_pnl == Decimal("0")
        assert snapshot.total_pnl_percentage == 0.0
        assert snapshot.win_rate == 0.0
        assert snapshot.avg_hold_time is None

    @pytest.mark.asyncio
    async def test_save_snapshot_is_keyed_by_day(
        self, aggregator: PerformanceAggregator, gateway, record, make_tx, base_time
    ) -> None:
        await record(make_tx("buy", "10", "10"), make_tx("sell", "10", "12", minutes=5))
        now = base_time + timedelta(hours=1)
        snapshot = await aggregator.compute_performance("walletA", 24, now=now)
        assert snapshot is not None

        await aggregator.save_snapshot("walletA", PerformanceWindow.DAY, snapshot, day=now.date())
        await aggregator.save_snapshot("walletA", PerformanceWindow.DAY, snapshot, day=now.date())

        async with gateway.unit_of_work() as store:
            stored = await store.get_performance_snapshot(
                "walletA", PerformanceWindow.DAY, now.date()
            )
        assert stored is not None
        assert stored.total_pnl == Decimal("2")
        assert stored.win_rate == pytest.approx(100.0)


class TestPerformanceWindow:
    @pytest.mark.parametrize(("label", "hours"), [("24h", 24), ("48h", 48), ("7D", 168)])
    def test_parse(self, label: str, hours: int) -> None:
        assert PerformanceWindow.parse(label).hours == hours

    def test_parse_unknown(self) -> None:
        with pytest.raises(ValueError):
            PerformanceWindow.parse("1y")
