"""Domain Types - rich types that replace bare primitives across the codebase.

Invariants:
    - TransferId and RecurringId wrap UUIDs; addresses are opaque strings
    - All valid states encoded as Enums, no raw string matching
    - TERMINAL_STATUSES admit no further transitions

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: values are the persisted column values and serialize to JSON as-is
"""

from datetime import datetime, timezone
from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

TransferId = NewType("TransferId", UUID)
RecurringId = NewType("RecurringId", UUID)
Address = NewType("Address", str)


# ─── Constants ───────────────────────────────────────────────────

AMOUNT_DECIMALS = 8             # UFix64 precision on Flow
DEFAULT_RETRY_LIMIT = 3
DEFAULT_BATCH_SIZE = 100


# ─── Enums ───────────────────────────────────────────────────────

class TransferStatus(str, Enum):
    """Scheduled transfer lifecycle - maps to DB `status` column."""
    SCHEDULED = "scheduled"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({
    TransferStatus.COMPLETED, TransferStatus.FAILED, TransferStatus.CANCELLED,
})


class RecipientResultStatus(str, Enum):
    """Outcome of a single recipient send."""
    COMPLETED = "completed"
    FAILED = "failed"


class RecurrenceFrequency(str, Enum):
    """Calendar unit a recurrence definition advances by."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class RecurringStatus(str, Enum):
    """Recurrence definition lifecycle."""
    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class TransferEventKind(str, Enum):
    """Outbound notifications emitted by the execution engine."""
    EXECUTING = "transfer.executing"
    COMPLETED = "transfer.completed"
    FAILED = "transfer.failed"
    RECURRENCE_GENERATED = "recurrence.generated"


# ─── Time helpers ────────────────────────────────────────────────

def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on round-trip)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
