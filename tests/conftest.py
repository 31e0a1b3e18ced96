"""Pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from itertools import count
from pathlib import Path

import pytest

from kol_tracker.ledger.models import Transaction, TransactionKind
from kol_tracker.storage.database import DatabaseManager
from kol_tracker.storage.gateway import SqlPersistenceGateway

pytest.importorskip("aiosqlite", exc_type=ImportError)

BASE_TIME = datetime(2026, 10, 1, 12, 0, tzinfo=UTC)

TxFactory = Callable[..., Transaction]


@pytest.fixture
def base_time() -> datetime:
    """Fixed reference time used across tests."""
    return BASE_TIME


@pytest.fixture
def make_tx() -> TxFactory:
    """Factory for transactions with unique signatures.

    ``minutes`` is an offset from BASE_TIME; amounts accept anything
    ``Decimal`` does.
    """
    seq = count(1)

    def factory(
        kind: str = "buy",
        asset_amount: object = "10",
        quote_amount: object = "1",
        *,
        participant: str = "walletA",
        asset: str = "mintX",
        minutes: float = 0,
        price: object | None = "0.1",
        signature: str | None = None,
    ) -> Transaction:
        n = next(seq)
        return Transaction(
            signature=signature or f"sig-{n}",
            participant=participant,
            asset=asset,
            kind=TransactionKind(kind),
            asset_amount=Decimal(str(asset_amount)),
            quote_amount=Decimal(str(quote_amount)),
            timestamp=BASE_TIME + timedelta(minutes=minutes),
            price=Decimal(str(price)) if price is not None else None,
        )

    return factory


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """File-backed SQLite URL so several sessions can share the database."""
    return f"sqlite+aiosqlite:///{tmp_path / 'kol.db'}"


@pytest.fixture
async def db_manager(database_url: str):
    """Create a database manager with the schema in place."""
    manager = DatabaseManager(database_url)
    await manager.init_schema_async()
    yield manager
    await manager.dispose_async()


@pytest.fixture
async def gateway(db_manager: DatabaseManager) -> SqlPersistenceGateway:
    """SQL persistence gateway over a fresh database."""
    return SqlPersistenceGateway(db_manager)


@pytest.fixture
def record(gateway: SqlPersistenceGateway):
    """Append transactions and balances through the ledger."""
    from kol_tracker.ledger.ledger import TransactionLedger

    ledger = TransactionLedger(gateway)

    async def _record(*txs: Transaction) -> None:
        for tx in txs:
            await ledger.record_transaction(tx)

    return _record
