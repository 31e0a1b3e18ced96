"""Transaction ledger - Per-pair transaction recording and balances."""

from kol_tracker.ledger.ledger import (
    TransactionLedger,
    apply_transaction,
    replay_balance,
    validate_transaction,
)
from kol_tracker.ledger.models import Balance, Transaction, TransactionKind

__all__ = [
    "Balance",
    "Transaction",
    "TransactionKind",
    "TransactionLedger",
    "apply_transaction",
    "replay_balance",
    "validate_transaction",
]
