"""Tests for the analytics service facade and the CLI."""

from __future__ import annotations

import json
from datetime import timedelta
from decimal import Decimal

import pytest
from click.testing import CliRunner

from kol_tracker.cli import ingest_lines, main
from kol_tracker.config import Settings, clear_settings_cache
from kol_tracker.performance.models import PerformanceWindow
from kol_tracker.service import AnalyticsService


def tx_line(signature: str, kind: str, asset_amount: str, quote_amount: str, ts: str, **extra):
    record = {
        "signature": signature,
        "participant": "walletA",
        "asset": "mintX",
        "kind": kind,
        "asset_amount": asset_amount,
        "quote_amount": quote_amount,
        "price": "0.1",
        "timestamp": ts,
    }
    record.update(extra)
    return json.dumps(record)


@pytest.fixture
def settings(monkeypatch: pytest.MonkeyPatch, tmp_path, database_url: str):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DATABASE_URL", database_url)
    clear_settings_cache()
    yield Settings()
    clear_settings_cache()


@pytest.fixture
def service(settings: Settings, gateway) -> AnalyticsService:
    return AnalyticsService(settings, gateway=gateway)


# ============================================================================
# AnalyticsService Tests
# ============================================================================


class TestAnalyticsService:
    @pytest.mark.asyncio
    async def test_ingest_lines_records_and_skips(self, service: AnalyticsService) -> None:
        lines = [
            tx_line("sig-1", "buy", "10", "1", "2026-10-01T12:00:00Z"),
            "",
            "{not json",
            tx_line("sig-2", "sell", "5", "2", "2026-10-01T13:00:00Z"),
            tx_line("sig-1", "buy", "10", "1", "2026-10-01T12:00:00Z", asset="other"),
        ]

        recorded, skipped = await ingest_lines(service, lines)

        assert (recorded, skipped) == (2, 2)
        balance = await service.get_balance("walletA", "mintX")
        assert balance.quantity == Decimal("5")
        pnl = await service.compute_realized_pnl("walletA", "mintX")
        assert pnl is not None
        assert pnl.realized_pnl == Decimal("1.5")

    @pytest.mark.asyncio
    async def test_ingest_lines_skips_out_of_range_timestamps(
        self, service: AnalyticsService
    ) -> None:
        lines = [
            tx_line("sig-1", "buy", "10", "1", "inf"),
            tx_line("sig-2", "buy", "10", "1", "", timestamp=1e20),
            "[1, 2]",
            tx_line("sig-3", "buy", "10", "1", "2026-10-01T12:00:00Z"),
        ]

        recorded, skipped = await ingest_lines(service, lines)

        assert (recorded, skipped) == (1, 3)
        balance = await service.get_balance("walletA", "mintX")
        assert balance.quantity == Decimal("10")

    @pytest.mark.asyncio
    async def test_uses_configured_leaderboard_limit(
        self, service: AnalyticsService, record, make_tx, base_time
    ) -> None:
        for i, participant in enumerate(("walletA", "walletB", "walletC")):
            await record(
                make_tx("buy", "10", "1", participant=participant, minutes=i),
                make_tx("sell", "10", str(2 + i), participant=participant, minutes=30 + i),
            )

        entries = await service.generate_leaderboard(
            PerformanceWindow.DAY, now=base_time + timedelta(hours=1)
        )

        assert [e.participant for e in entries] == ["walletC", "walletB", "walletA"]
        assert await service.get_leaderboard("24h", 1) == entries[:1]

    @pytest.mark.asyncio
    async def test_explicit_zero_limit_is_kept(
        self, service: AnalyticsService, record, make_tx, base_time
    ) -> None:
        await record(make_tx("buy", "10", "1"), make_tx("sell", "10", "2", minutes=5))

        entries = await service.generate_leaderboard("24h", 0, now=base_time + timedelta(hours=1))

        assert entries == []
        assert len(await service.get_leaderboard("24h")) == 0

    @pytest.mark.asyncio
    async def test_run_performance_analysis_covers_configured_windows(
        self, service: AnalyticsService, record, make_tx, base_time
    ) -> None:
        await record(make_tx("buy", "10", "1"), make_tx("sell", "10", "2", minutes=10))

        rankings = await service.run_performance_analysis(now=base_time + timedelta(hours=1))

        assert set(rankings) == set(PerformanceWindow)
        assert all(len(entries) == 1 for entries in rankings.values())


# ============================================================================
# CLI Tests
# ============================================================================


class TestCli:
    def test_init_ingest_and_leaderboard(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path, database_url: str
    ) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("DATABASE_URL", database_url)
        clear_settings_cache()
        source = tmp_path / "txs.jsonl"
        source.write_text(
            "\n".join(
                [
                    tx_line("sig-1", "buy", "10", "1", "2026-10-01T12:00:00Z"),
                    tx_line("sig-2", "sell", "10", "3", "2026-10-01T12:30:00Z"),
                ]
            ),
            encoding="utf-8",
        )
        runner = CliRunner()

        try:
            result = runner.invoke(main, ["init-db"])
            assert result.exit_code == 0, result.output
            assert "Schema ready" in result.output

            result = runner.invoke(main, ["ingest", str(source)])
            assert result.exit_code == 0, result.output
            assert "Recorded 2 transactions, skipped 0" in result.output

            result = runner.invoke(main, ["leaderboard", "7d"])
            assert result.exit_code == 0, result.output
            assert "{" not in result.output
        finally:
            clear_settings_cache()

    def test_rejects_unknown_window(self, monkeypatch: pytest.MonkeyPatch, database_url: str) -> None:
        monkeypatch.setenv("DATABASE_URL", database_url)
        clear_settings_cache()

        result = CliRunner().invoke(main, ["leaderboard", "1y"])

        assert result.exit_code != 0
        clear_settings_cache()
