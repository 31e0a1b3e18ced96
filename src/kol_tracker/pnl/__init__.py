"""PnL engine - FIFO realized profit and loss."""

from kol_tracker.pnl.engine import PnLEngine
from kol_tracker.pnl.fifo import DUST_QUANTITY, FifoLot, RealizedPnL, match_fifo

__all__ = [
    "DUST_QUANTITY",
    "FifoLot",
    "PnLEngine",
    "RealizedPnL",
    "match_fifo",
]
