"""FIFO lot matching for realized profit and loss.

Sells consume the oldest open buy lots first. A lot consumed in full
contributes its whole remaining cost basis; a partially consumed lot
contributes the fraction of its cost basis equal to the fraction of its
quantity that was sold.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from kol_tracker.ledger.models import Transaction

# Remaining sell quantity below this is rounding residue, not an open sell.
DUST_QUANTITY = Decimal("0.000001")


@dataclass(frozen=True)
class FifoLot:
    """An open (unsold) portion of a buy."""

    quantity: Decimal
    cost_basis: Decimal
    acquired_at: datetime
    signature: str


@dataclass
class _OpenLot:
    quantity: Decimal
    cost_basis: Decimal
    acquired_at: datetime
    signature: str

    def freeze(self) -> FifoLot:
        return FifoLot(
            quantity=self.quantity,
            cost_basis=self.cost_basis,
            acquired_at=self.acquired_at,
            signature=self.signature,
        )


@dataclass(frozen=True)
class RealizedPnL:
    """Result of FIFO matching over one pair's history.

    Attributes:
        realized_pnl: Sum of (proceeds - matched cost basis) over counted sells.
        realized_pnl_percentage: realized_pnl / total_cost_basis x 100 (0 without cost).
        total_cost_basis: Cost basis matched by counted sells.
        total_proceeds: Proceeds of counted sells.
        remaining_tokens: Quantity still held in open lots.
        remaining_buys: Number of open lots.
        open_lots: Open lots, oldest first.
        hold_time_samples: Seconds between each lot's buy and the sell consuming it.
        sell_count: Number of counted sells.
    """

    realized_pnl: Decimal
    realized_pnl_percentage: float
    total_cost_basis: Decimal
    total_proceeds: Decimal
    remaining_tokens: Decimal
    remaining_buys: int
    open_lots: tuple[FifoLot, ...]
    hold_time_samples: tuple[float, ...]
    sell_count: int

    @property
    def open_cost_basis(self) -> Decimal:
        return sum((lot.cost_basis for lot in self.open_lots), Decimal(0))

    @property
    def avg_hold_time(self) -> float | None:
        if not self.hold_time_samples:
            return None
        return sum(self.hold_time_samples) / len(self.hold_time_samples)

    @property
    def is_profitable(self) -> bool:
        return self.realized_pnl > 0


def match_fifo(
    transactions: Iterable[Transaction],
    *,
    realized_since: datetime | None = None,
) -> RealizedPnL | None:
    """Compute realized PnL for one pair using FIFO lot matching.

    Transactions are ordered by timestamp (stable for equal timestamps), so
    the result depends only on the set of transactions given.

    A sell that matches no open lot at all is not realized: it adds nothing
    to the PnL, cost basis or proceeds. When a sell matches only part of its
    quantity, the unmatched remainder is zero-cost and the whole proceeds
    count. With incomplete buy history this overstates gains; it is kept
    that way rather than estimated.

    Args:
        transactions: The pair's transactions, in any order.
        realized_since: If set, sells before this time still consume lots
            but are excluded from the realized totals and hold samples.

    Returns:
        RealizedPnL, or None if there are no transactions.
    """
    ordered = sorted(transactions, key=lambda tx: tx.timestamp)
    if not ordered:
        return None

    lots: deque[_OpenLot] = deque()
    realized_pnl = Decimal(0)
    total_cost_basis = Decimal(0)
    total_proceeds = Decimal(0)
    hold_samples: list[float] = []
    sell_count = 0

    for tx in ordered:
        if tx.is_buy:
            lots.append(
                _OpenLot(
                    quantity=tx.asset_amount,
                    cost_basis=tx.quote_amount,
                    acquired_at=tx.timestamp,
                    signature=tx.signature,
                )
            )
            continue

        to_sell = tx.asset_amount
        matched_cost = Decimal(0)
        samples: list[float] = []

        while to_sell > DUST_QUANTITY and lots:
            lot = lots[0]
            samples.append((tx.timestamp - lot.acquired_at).total_seconds())
            if lot.quantity <= to_sell:
                matched_cost += lot.cost_basis
                to_sell -= lot.quantity
                lots.popleft()
            else:
                lot_cost = lot.cost_basis * (to_sell / lot.quantity)
                matched_cost += lot_cost
                lot.quantity -= to_sell
                lot.cost_basis -= lot_cost
                to_sell = Decimal(0)

        if matched_cost <= 0:
            continue
        if realized_since is not None and tx.timestamp < realized_since:
            continue

        realized_pnl += tx.quote_amount - matched_cost
        total_cost_basis += matched_cost
        total_proceeds += tx.quote_amount
        hold_samples.extend(samples)
        sell_count += 1

    percentage = float(realized_pnl / total_cost_basis * 100) if total_cost_basis > 0 else 0.0

    return RealizedPnL(
        realized_pnl=realized_pnl,
        realized_pnl_percentage=percentage,
        total_cost_basis=total_cost_basis,
        total_proceeds=total_proceeds,
        remaining_tokens=sum((lot.quantity for lot in lots), Decimal(0)),
        remaining_buys=len(lots),
        open_lots=tuple(lot.freeze() for lot in lots),
        hold_time_samples=tuple(hold_samples),
        sell_count=sell_count,
    )
