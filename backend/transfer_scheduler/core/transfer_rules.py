"""Transfer Rules - recipient normalisation, amount arithmetic and result aggregation.

Invariants:
    - normalize_recipients never returns an empty list (raises TransferValidationError)
    - total = amount * n when amount_per_recipient, else amount (split evenly)
    - Even splits are quantised DOWN to AMOUNT_DECIMALS so the sum never exceeds total
    - Result records keep recipient input order

Design Decisions:
    - Decimal everywhere: floats never touch amounts compared against authorization limits
    - A recipient's own `amount` entry is carried for display only; the transfer-level
      rule decides what is sent
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_DOWN, InvalidOperation

from transfer_scheduler.core.domain_types import AMOUNT_DECIMALS, RecipientResultStatus
from transfer_scheduler.core.errors import ErrorContext, TransferValidationError

_QUANTUM = Decimal(1).scaleb(-AMOUNT_DECIMALS)


@dataclass(frozen=True)
class Recipient:
    address: str
    amount: Decimal | None = None


@dataclass
class RecipientResult:
    """Outcome of one recipient send, persisted in `transaction_ids`."""
    recipient: str
    amount: Decimal
    status: RecipientResultStatus
    transaction_id: str | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == RecipientResultStatus.COMPLETED

    def to_record(self) -> dict:
        return {
            "recipient": self.recipient,
            "amount": format_amount(self.amount),
            "transactionId": self.transaction_id,
            "status": self.status.value,
            "error": self.error,
        }


def to_decimal(value) -> Decimal:
    """Coerce str/int/float/Decimal to Decimal (floats via str to avoid binary noise)."""
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise TransferValidationError(f"Invalid amount: {value!r}", "amount") from e


def format_amount(value: Decimal) -> str:
    """Render with fixed AMOUNT_DECIMALS digits (UFix64 wire format)."""
    return str(to_decimal(value).quantize(_QUANTUM, rounding=ROUND_DOWN))


def normalize_recipients(
    recipients: list[dict] | None,
    legacy_recipient: str | None = None,
    context: ErrorContext | None = None,
) -> list[Recipient]:
    """Recipient list, falling back to the single legacy `recipient` field."""
    normalized = [
        Recipient(
            address=r["address"],
            amount=to_decimal(r["amount"]) if r.get("amount") is not None else None,
        )
        for r in (recipients or [])
        if r.get("address")
    ]
    if normalized:
        return normalized
    if legacy_recipient:
        return [Recipient(address=legacy_recipient)]
    raise TransferValidationError(
        "Transfer has no recipients", "recipients", context,
    )


def compute_total_amount(
    amount: Decimal, recipient_count: int, amount_per_recipient: bool,
) -> Decimal:
    """Total funds the transfer needs across all recipients."""
    amount = to_decimal(amount)
    if amount_per_recipient:
        return amount * recipient_count
    return amount


def compute_recipient_amount(
    amount: Decimal, recipient_count: int, amount_per_recipient: bool,
) -> Decimal:
    """Amount sent to each recipient."""
    amount = to_decimal(amount)
    if amount_per_recipient:
        return amount
    return (amount / recipient_count).quantize(_QUANTUM, rounding=ROUND_DOWN)


def count_failed(results: list[RecipientResult]) -> int:
    return sum(1 for r in results if not r.succeeded)


def all_succeeded(results: list[RecipientResult]) -> bool:
    return bool(results) and count_failed(results) == 0


def result_records(results: list[RecipientResult]) -> list[dict]:
    return [r.to_record() for r in results]
