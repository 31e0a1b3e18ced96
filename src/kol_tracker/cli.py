"""CLI entry point for the KOL tracker."""

from __future__ import annotations

import asyncio
import json
import logging
import signal
from contextlib import suppress
from pathlib import Path

import click

from kol_tracker.config import get_settings
from kol_tracker.errors import DuplicateTransaction, InvalidTransaction
from kol_tracker.ledger.models import Transaction
from kol_tracker.performance.models import PerformanceWindow
from kol_tracker.service import AnalyticsService

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.get_logging_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.debug("Settings: %s", settings.redacted_summary())


@click.group()
def main() -> None:
    """KOL wallet analytics: ledger, PnL, deviations and leaderboards."""
    _configure_logging()


@main.command("init-db")
def init_db() -> None:
    """Create the database schema."""

    async def _run() -> None:
        service = AnalyticsService()
        try:
            await service.init_db()
        finally:
            await service.close()

    asyncio.run(_run())
    click.echo("Schema ready")


async def ingest_lines(service: AnalyticsService, lines: list[str]) -> tuple[int, int]:
    """Check and record one JSON transaction per line.

    Deviation signals are echoed as JSON. Malformed or conflicting lines
    are logged and skipped.

    Returns:
        (recorded, skipped) counts.
    """
    recorded = 0
    skipped = 0
    for lineno, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        try:
            record = json.loads(line)
            if not isinstance(record, dict):
                raise InvalidTransaction("Expected a JSON object")
            tx = Transaction.from_dict(record)
            signals = await service.check_deviation(
                tx.participant, tx.kind, tx.quote_amount, tx.asset, as_of=tx.timestamp
            )
            await service.record_transaction(tx)
        except (json.JSONDecodeError, InvalidTransaction, DuplicateTransaction) as e:
            skipped += 1
            logger.warning("Skipping line %d: %s", lineno, e)
            continue
        recorded += 1
        for deviation in signals:
            click.echo(json.dumps({"signature": tx.signature, **deviation.to_dict()}))
    return recorded, skipped


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def ingest(file: Path) -> None:
    """Record transactions from FILE (JSON lines)."""

    async def _run() -> tuple[int, int]:
        service = AnalyticsService()
        try:
            return await ingest_lines(service, file.read_text(encoding="utf-8").splitlines())
        finally:
            await service.close()

    recorded, skipped = asyncio.run(_run())
    click.echo(f"Recorded {recorded} transactions, skipped {skipped}")


@main.command()
def analyze() -> None:
    """Run one performance analysis pass over every configured window."""

    async def _run() -> dict[PerformanceWindow, int]:
        service = AnalyticsService()
        try:
            rankings = await service.run_performance_analysis()
        finally:
            await service.close()
        return {window: len(entries) for window, entries in rankings.items()}

    for window, count in asyncio.run(_run()).items():
        click.echo(f"{window.value}: {count} ranked")


@main.command()
@click.argument("window", type=click.Choice([w.value for w in PerformanceWindow]))
@click.option("--limit", default=None, type=int, help="Number of entries to show")
@click.option("--refresh", is_flag=True, help="Regenerate the ranking before showing it")
def leaderboard(window: str, limit: int | None, refresh: bool) -> None:
    """Show the latest leaderboard for WINDOW."""

    async def _run() -> list[dict[str, object]]:
        service = AnalyticsService()
        try:
            if refresh:
                entries = await service.generate_leaderboard(window, limit)
            else:
                entries = await service.get_leaderboard(window, limit)
        finally:
            await service.close()
        return [entry.to_dict() for entry in entries]

    for row in asyncio.run(_run()):
        click.echo(json.dumps(row))


@main.command()
def serve() -> None:
    """Run scheduled performance analysis until interrupted."""

    async def _run() -> None:
        service = AnalyticsService()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with suppress(NotImplementedError):
                loop.add_signal_handler(sig, lambda: asyncio.ensure_future(service.runner.stop()))
        try:
            await service.runner.run_forever()
        finally:
            await service.close()

    asyncio.run(_run())
