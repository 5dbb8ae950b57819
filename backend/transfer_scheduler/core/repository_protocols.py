"""Boundary Protocols - contracts between core and shell.

Invariants:
    - Core NEVER imports from shell; dependency arrows point inward only
    - All IO operations accessed through Protocol types
    - Implementations provided by infrastructure/ via dependency injection
    - compare_and_set_status is the only concurrency control on transfer status

Design Decisions:
    - Protocol over ABC: structural subtyping, fakes in tests need no inheritance
    - Async in Protocol: implementations do IO, callers in services/ await them
"""

from datetime import datetime
from decimal import Decimal
from typing import Protocol
from uuid import UUID


class TransferLike(Protocol):
    """Structural contract for ScheduledTransfer records handled by the engine."""
    id: UUID
    user_address: str
    title: str | None
    recipient: str | None
    recipients: list
    amount: Decimal
    amount_per_recipient: bool
    scheduled_date: datetime
    retry_limit: int
    status: str
    executed_at: datetime | None
    transaction_id: str | None
    transaction_ids: list
    error_message: str | None
    parent_recurring_id: UUID | None
    recurrence_cycle: int | None


class RecurringLike(Protocol):
    """Structural contract for recurrence definitions."""
    id: UUID
    user_address: str
    title: str | None
    message: str | None
    recipients: list
    amount: Decimal
    amount_per_recipient: bool
    retry_limit: int
    frequency: str
    interval: int
    start_date: datetime
    end_date: datetime | None
    max_occurrences: int | None
    occurrences_generated: int
    next_execution_date: datetime | None
    last_instance_id: UUID | None
    status: str


class TransferStore(Protocol):
    """Contract for scheduled transfer persistence."""
    async def find_due(
        self, now: datetime, limit: int | None = None,
    ) -> list[TransferLike]: ...
    async def get_by_id(self, transfer_id: UUID) -> TransferLike | None: ...
    async def save(self, transfer: TransferLike) -> TransferLike: ...
    async def add(self, transfer: TransferLike) -> TransferLike: ...
    async def compare_and_set_status(
        self, transfer_id: UUID, expected: str, new: str, **values: object,
    ) -> bool: ...
    async def count_by_status(
        self, user_address: str | None = None,
    ) -> dict[str, int]: ...
    async def list_for_user(
        self, user_address: str, status: str | None = None,
        limit: int = 50, offset: int = 0,
    ) -> list[TransferLike]: ...


class RecurringStore(Protocol):
    """Contract for recurrence definition persistence."""
    async def get_definition(self, recurring_id: UUID) -> RecurringLike | None: ...
    async def add_definition(self, definition: RecurringLike) -> RecurringLike: ...
    async def save_definition(self, definition: RecurringLike) -> RecurringLike: ...
    async def find_instance(
        self, recurring_id: UUID, cycle: int,
    ) -> TransferLike | None: ...
    async def find_outstanding_instances(
        self, recurring_id: UUID,
    ) -> list[TransferLike]: ...
    async def add_instance(self, transfer: TransferLike) -> TransferLike: ...
