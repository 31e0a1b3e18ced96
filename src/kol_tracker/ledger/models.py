"""Data models for the transaction ledger."""

from __future__ import annotations

import contextlib
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from kol_tracker.errors import InvalidTransaction

# Precision used when comparing persisted amounts (matches Numeric(30, 10)).
AMOUNT_QUANTUM = Decimal("0.0000000001")


class TransactionKind(str, Enum):
    """Direction of a swap from the participant's point of view."""

    BUY = "buy"
    SELL = "sell"


def _parse_optional_decimal(value: Any, *, name: str) -> Decimal | None:
    if value is None or value == "":
        return None
    return _parse_decimal(value, name=name)


def _parse_decimal(value: Any, *, name: str) -> Decimal:
    if value is None or value == "":
        raise InvalidTransaction(f"Missing {name}")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise InvalidTransaction(f"Invalid {name}: {value!r}") from e


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, (int, float)):
        ts = float(value)
        if ts > 1e12:
            ts /= 1000.0
        try:
            return datetime.fromtimestamp(ts, tz=UTC)
        except (ValueError, OverflowError, OSError) as e:
            raise InvalidTransaction(f"Invalid timestamp: {value!r}") from e
    if isinstance(value, str):
        with contextlib.suppress(ValueError):
            return _parse_timestamp(float(value))
        with contextlib.suppress(ValueError):
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
            return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    raise InvalidTransaction(f"Invalid timestamp: {value!r}")


def _quantize(value: Decimal | None) -> Decimal | None:
    return value.quantize(AMOUNT_QUANTUM) if value is not None else None


@dataclass(frozen=True)
class Transaction:
    """A single buy or sell executed by a tracked participant.

    Identified by its on-chain signature. Amounts are in asset units
    (``asset_amount``) and in the quote currency (``quote_amount``).
    """

    signature: str
    participant: str
    asset: str
    kind: TransactionKind
    asset_amount: Decimal
    quote_amount: Decimal
    timestamp: datetime
    price: Decimal | None = None
    market_cap: Decimal | None = None

    @property
    def is_buy(self) -> bool:
        return self.kind == TransactionKind.BUY

    @property
    def is_sell(self) -> bool:
        return self.kind == TransactionKind.SELL

    @property
    def pair(self) -> tuple[str, str]:
        """Return the (participant, asset) key this transaction belongs to."""
        return (self.participant, self.asset)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Transaction:
        """Create a Transaction from a parsed swap record.

        Accepts either ``kind`` or ``type`` for the direction and unix
        seconds, unix milliseconds or ISO-8601 strings for the timestamp.

        Raises:
            InvalidTransaction: If a required field is missing or unparseable.
        """
        raw_kind = str(data.get("kind", data.get("type", ""))).lower()
        try:
            kind = TransactionKind(raw_kind)
        except ValueError as e:
            raise InvalidTransaction(f"Unknown transaction kind: {raw_kind!r}") from e

        asset_amount = _parse_decimal(data.get("asset_amount"), name="asset_amount")
        quote_amount = _parse_decimal(data.get("quote_amount"), name="quote_amount")
        raw_timestamp = data.get("timestamp")
        if raw_timestamp is None:
            raise InvalidTransaction("Missing timestamp")

        return cls(
            signature=str(data.get("signature", "")),
            participant=str(data.get("participant", "")),
            asset=str(data.get("asset", "")),
            kind=kind,
            asset_amount=asset_amount,
            quote_amount=quote_amount,
            timestamp=_parse_timestamp(raw_timestamp),
            price=_parse_optional_decimal(data.get("price"), name="price"),
            market_cap=_parse_optional_decimal(data.get("market_cap"), name="market_cap"),
        )

    def normalized(self) -> Transaction:
        """Return a copy with the timestamp converted to UTC."""
        return replace(self, timestamp=self.timestamp.astimezone(UTC))

    def same_content(self, other: Transaction) -> bool:
        """Return True if both records describe the same swap.

        Amounts are compared at storage precision so a value read back from
        the database matches the one that was written.
        """
        return (
            self.signature == other.signature
            and self.participant == other.participant
            and self.asset == other.asset
            and self.kind == other.kind
            and _quantize(self.asset_amount) == _quantize(other.asset_amount)
            and _quantize(self.quote_amount) == _quantize(other.quote_amount)
            and _quantize(self.price) == _quantize(other.price)
            and _quantize(self.market_cap) == _quantize(other.market_cap)
            and self.timestamp.astimezone(UTC) == other.timestamp.astimezone(UTC)
        )


@dataclass
class Balance:
    """Running position of one participant in one asset.

    ``quantity`` is clamped at zero because the observed history may be
    incomplete. Cost basis only grows; realized PnL is computed separately
    by FIFO matching over the full history.
    """

    participant: str
    asset: str
    quantity: Decimal = Decimal(0)
    total_cost_basis: Decimal = Decimal(0)
    total_quantity_bought: Decimal = Decimal(0)
    first_buy_signature: str | None = None
    first_buy_timestamp: datetime | None = None
    first_buy_price: Decimal | None = None
    last_updated: datetime | None = None

    @classmethod
    def empty(cls, participant: str, asset: str) -> Balance:
        """Return the zero-value balance for a pair with no history."""
        return cls(participant=participant, asset=asset)

    @property
    def has_position(self) -> bool:
        return self.quantity > 0

    @property
    def average_cost(self) -> Decimal | None:
        """Average quote paid per asset unit across costed buys."""
        if self.total_quantity_bought <= 0:
            return None
        return self.total_cost_basis / self.total_quantity_bought
