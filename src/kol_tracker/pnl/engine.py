"""Realized PnL computation over persisted transaction history."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from kol_tracker.pnl.fifo import RealizedPnL, match_fifo

if TYPE_CHECKING:
    from kol_tracker.ledger.models import Transaction
    from kol_tracker.storage.gateway import PersistenceGateway

logger = logging.getLogger(__name__)


class PnLEngine:
    """Computes realized PnL per (participant, asset) by FIFO lot matching.

    Every call reloads the pair's history and recomputes from scratch; no
    lot state is cached between calls.
    """

    def __init__(self, gateway: PersistenceGateway, *, history_limit: int | None = None) -> None:
        """Initialize the engine.

        Args:
            gateway: Persistence gateway to read history from.
            history_limit: Read at most this many of the newest transactions
                per pair. None reads the complete history.
        """
        self._gateway = gateway
        self._history_limit = history_limit

    async def load_history(self, participant: str, asset: str) -> list[Transaction]:
        """Return the pair's history, oldest first."""
        async with self._gateway.unit_of_work() as store:
            history = await store.get_transaction_history(participant, asset, self._history_limit)
        history.reverse()
        return history

    async def compute_realized_pnl(
        self,
        participant: str,
        asset: str,
        *,
        realized_since: datetime | None = None,
    ) -> RealizedPnL | None:
        """Compute realized PnL for a pair.

        Returns:
            RealizedPnL, or None if the pair has no recorded transactions.
        """
        history = await self.load_history(participant, asset)
        result = match_fifo(history, realized_since=realized_since)
        if result is not None:
            logger.debug(
                "Realized PnL %s/%s: pnl=%s cost=%s proceeds=%s open_lots=%d",
                participant,
                asset,
                result.realized_pnl,
                result.total_cost_basis,
                result.total_proceeds,
                result.remaining_buys,
            )
        return result

    async def current_hold_time(
        self,
        participant: str,
        asset: str,
        *,
        as_of: datetime,
        exclude_signature: str | None = None,
    ) -> float | None:
        """Seconds the pair's oldest open lot has been held as of ``as_of``.

        Returns:
            Hold time in seconds, or None if nothing is currently held.
        """
        history = await self.load_history(participant, asset)
        if exclude_signature is not None:
            history = [tx for tx in history if tx.signature != exclude_signature]
        result = match_fifo(history)
        if result is None or not result.open_lots:
            return None
        return (as_of - result.open_lots[0].acquired_at).total_seconds()
