"""Transaction ledger.

Records each buy/sell event and maintains the running balance of the
(participant, asset) pair it belongs to.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import Iterable
from dataclasses import replace
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from kol_tracker.errors import InvalidTransaction
from kol_tracker.ledger.models import Balance, Transaction, TransactionKind

if TYPE_CHECKING:
    from kol_tracker.storage.gateway import PersistenceGateway

logger = logging.getLogger(__name__)


def validate_transaction(tx: Transaction) -> Transaction:
    """Check a transaction before ingestion.

    Returns:
        The transaction with its timestamp normalised to UTC.

    Raises:
        InvalidTransaction: If any field is missing or out of range.
    """
    if not tx.signature:
        raise InvalidTransaction("Transaction signature is required")
    if not tx.participant or not tx.asset:
        raise InvalidTransaction(f"Transaction {tx.signature}: participant and asset are required")
    if not isinstance(tx.kind, TransactionKind):
        raise InvalidTransaction(f"Transaction {tx.signature}: unknown kind {tx.kind!r}")

    for name in ("asset_amount", "quote_amount", "price", "market_cap"):
        value = getattr(tx, name)
        if value is None:
            continue
        if not isinstance(value, Decimal) or not value.is_finite():
            raise InvalidTransaction(f"Transaction {tx.signature}: {name} must be a finite decimal")
        if value < 0:
            raise InvalidTransaction(f"Transaction {tx.signature}: {name} must not be negative")
    if tx.asset_amount <= 0:
        raise InvalidTransaction(f"Transaction {tx.signature}: asset_amount must be positive")

    if not isinstance(tx.timestamp, datetime) or tx.timestamp.tzinfo is None:
        raise InvalidTransaction(f"Transaction {tx.signature}: timestamp must be timezone-aware")

    return tx.normalized()


def apply_transaction(balance: Balance, tx: Transaction, *, now: datetime) -> Balance:
    """Return the balance that results from applying ``tx``.

    Buys add to the quantity and, when both the quote amount and price are
    known, to the cost basis. Sells reduce the quantity, clamped at zero;
    cost basis is left untouched.
    """
    if tx.is_buy:
        updated = replace(balance, quantity=balance.quantity + tx.asset_amount, last_updated=now)
        if tx.quote_amount > 0 and tx.price is not None and tx.price > 0:
            updated = replace(
                updated,
                total_cost_basis=balance.total_cost_basis + tx.quote_amount,
                total_quantity_bought=balance.total_quantity_bought + tx.asset_amount,
            )
        if balance.first_buy_timestamp is None or tx.timestamp < balance.first_buy_timestamp:
            updated = replace(
                updated,
                first_buy_signature=tx.signature,
                first_buy_timestamp=tx.timestamp,
                first_buy_price=tx.price if tx.price is not None else Decimal(0),
            )
        return updated

    remaining = balance.quantity - tx.asset_amount
    if remaining < 0:
        logger.debug(
            "Sell %s exceeds recorded quantity for %s/%s, clamping to zero",
            tx.signature,
            tx.participant,
            tx.asset,
        )
    return replace(balance, quantity=max(Decimal(0), remaining), last_updated=now)


def replay_balance(
    participant: str,
    asset: str,
    transactions: Iterable[Transaction],
    *,
    now: datetime,
) -> Balance:
    """Rebuild a pair's balance by applying its transactions in timestamp order.

    Transactions with equal timestamps apply in the order given.
    """
    balance = Balance.empty(participant, asset)
    for tx in sorted(transactions, key=lambda t: t.timestamp):
        balance = apply_transaction(balance, tx, now=now)
    return balance


class TransactionLedger:
    """Records transactions and keeps per-pair balances consistent.

    Updates to the same (participant, asset) pair are serialized with a
    per-pair ``asyncio.Lock``; different pairs are recorded concurrently.
    Within a pair, transactions apply in timestamp order: one that arrives
    older than the pair's latest recorded transaction makes the balance be
    rebuilt from the pair's full history.

    Example:
        ```python
        ledger = TransactionLedger(gateway)
        balance = await ledger.record_transaction(tx)
        ```
    """

    def __init__(self, gateway: PersistenceGateway) -> None:
        self._gateway = gateway
        self._locks: weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, pair: tuple[str, str]) -> asyncio.Lock:
        lock = self._locks.get(pair)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[pair] = lock
        return lock

    async def record_transaction(self, tx: Transaction) -> Balance:
        """Record a transaction and update its pair's balance atomically.

        Re-recording an identical transaction is a no-op that returns the
        current balance.

        Raises:
            InvalidTransaction: If the transaction is malformed.
            DuplicateTransaction: If the signature exists with other content.
            StorageUnavailable: If the store cannot be reached.
        """
        tx = validate_transaction(tx)
        lock = self._lock_for(tx.pair)

        async with lock:
            async with self._gateway.unit_of_work() as store:
                current = await store.get_balance(tx.participant, tx.asset)
                balance = current or Balance.empty(tx.participant, tx.asset)

                latest = await store.get_transaction_history(tx.participant, tx.asset, 1)

                inserted = await store.append_transaction(tx)
                if not inserted:
                    return balance

                now = datetime.now(UTC)
                if latest and tx.timestamp < latest[0].timestamp:
                    history = await store.get_transaction_history(tx.participant, tx.asset)
                    updated = replay_balance(
                        tx.participant, tx.asset, reversed(history), now=now
                    )
                    logger.debug(
                        "%s arrived out of order for %s/%s, replayed %d transactions",
                        tx.signature,
                        tx.participant,
                        tx.asset,
                        len(history),
                    )
                else:
                    updated = apply_transaction(balance, tx, now=now)
                await store.upsert_balance(tx.participant, tx.asset, updated)

        logger.debug(
            "Recorded %s %s %s/%s: quantity=%s",
            tx.kind.value,
            tx.signature,
            tx.participant,
            tx.asset,
            updated.quantity,
        )
        return updated

    async def get_balance(self, participant: str, asset: str) -> Balance:
        """Return the pair's balance, or a zero balance if it has none."""
        async with self._gateway.unit_of_work() as store:
            balance = await store.get_balance(participant, asset)
        return balance or Balance.empty(participant, asset)

    async def get_participants_for_asset(self, asset: str) -> list[str]:
        """Return the participants that have bought ``asset``, sorted."""
        async with self._gateway.unit_of_work() as store:
            return await store.list_participants_for_asset(asset)
