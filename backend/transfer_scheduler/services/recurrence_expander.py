"""Recurring Transfer Service - creates definitions and expands them into scheduled instances.

Invariants:
    - Occurrence k is scheduled at occurrence_date(start_date, frequency, interval, k)
    - At most one instance exists per (definition, cycle): generate_next_instance is
      idempotent for a completed cycle and returns the existing instance on replay
    - Only active definitions generate; exhaustion marks the definition completed
    - Cancelling a definition cancels its outstanding scheduled instances through
      compare-and-set (an executing instance finishes normally)

Design Decisions:
    - Cycle index stored on each instance (recurrence_cycle): the uniqueness key for
      crash-and-retry replays of the same completion
    - resume() skips occurrences whose date already passed while paused
"""

import logging
from datetime import datetime
from uuid import UUID

from transfer_scheduler.core.domain_types import (
    RecurringStatus, TransferStatus, utc_now,
)
from transfer_scheduler.core.errors import (
    ErrorContext, InvalidTransferStateError, ResourceNotFoundError,
)
from transfer_scheduler.core.recurrence_rules import is_exhausted, occurrence_date
from transfer_scheduler.core.repository_protocols import RecurringStore, TransferStore
from transfer_scheduler.models.recurring_transfer import RecurringTransfer
from transfer_scheduler.models.scheduled_transfer import ScheduledTransfer

logger = logging.getLogger(__name__)


class RecurringTransferService:
    """Recurrence expander plus definition lifecycle (create, pause, resume, cancel)."""

    def __init__(self, store: RecurringStore, transfers: TransferStore):
        self.store = store
        self.transfers = transfers

    async def create_recurring_transfer(
        self, definition: RecurringTransfer,
    ) -> tuple[RecurringTransfer, ScheduledTransfer | None]:
        """Persist a definition and its first instance (cycle 0 at start_date)."""
        definition.status = RecurringStatus.ACTIVE.value
        definition.occurrences_generated = 0
        definition = await self.store.add_definition(definition)
        first = await self._generate_cycle(definition, 0)
        logger.info(
            "Recurring transfer created",
            extra={"recurring_id": str(definition.id), "user_address": definition.user_address},
        )
        return definition, first

    async def get(self, recurring_id: UUID) -> RecurringTransfer:
        definition = await self.store.get_definition(recurring_id)
        if definition is None:
            raise ResourceNotFoundError(
                "Recurring transfer", str(recurring_id),
                ErrorContext(recurring_id=str(recurring_id)),
            )
        return definition

    async def generate_next_instance(
        self, recurring_id: UUID, completed_cycle: int | None = None,
    ) -> ScheduledTransfer | None:
        """Create the instance following `completed_cycle` (or the next ungenerated one)."""
        definition = await self.get(recurring_id)
        if definition.status != RecurringStatus.ACTIVE.value:
            logger.info(
                f"Recurring transfer is {definition.status}, not generating",
                extra={"recurring_id": str(recurring_id)},
            )
            return None
        if completed_cycle is None:
            cycle = definition.occurrences_generated
        else:
            cycle = completed_cycle + 1
        return await self._generate_cycle(definition, cycle)

    async def pause(self, recurring_id: UUID) -> RecurringTransfer:
        definition = await self.get(recurring_id)
        self._require_status(definition, RecurringStatus.ACTIVE, "pause")
        definition.status = RecurringStatus.PAUSED.value
        return await self.store.save_definition(definition)

    async def resume(
        self, recurring_id: UUID, now: datetime | None = None,
    ) -> RecurringTransfer:
        definition = await self.get(recurring_id)
        self._require_status(definition, RecurringStatus.PAUSED, "resume")
        definition.status = RecurringStatus.ACTIVE.value
        definition = await self.store.save_definition(definition)

        if not await self.store.find_outstanding_instances(definition.id):
            now = now or utc_now()
            cycle = definition.occurrences_generated
            while occurrence_date(
                definition.start_date, definition.frequency, definition.interval, cycle,
            ) < now:
                cycle += 1
            await self._generate_cycle(definition, cycle)
        return await self.get(recurring_id)

    async def cancel_recurring_transfer(self, recurring_id: UUID) -> RecurringTransfer:
        definition = await self.get(recurring_id)
        if definition.status in (
            RecurringStatus.CANCELLED.value, RecurringStatus.COMPLETED.value,
        ):
            raise InvalidTransferStateError(
                definition.status, "cancel",
                ErrorContext(recurring_id=str(recurring_id)),
            )
        definition.status = RecurringStatus.CANCELLED.value
        definition = await self.store.save_definition(definition)

        for instance in await self.store.find_outstanding_instances(definition.id):
            await self.transfers.compare_and_set_status(
                instance.id,
                TransferStatus.SCHEDULED.value,
                TransferStatus.CANCELLED.value,
            )
        logger.info(
            "Recurring transfer cancelled", extra={"recurring_id": str(recurring_id)},
        )
        return definition

    async def _generate_cycle(
        self, definition: RecurringTransfer, cycle: int,
    ) -> ScheduledTransfer | None:
        existing = await self.store.find_instance(definition.id, cycle)
        if existing is not None:
            return existing

        scheduled_date = occurrence_date(
            definition.start_date, definition.frequency, definition.interval, cycle,
        )
        if is_exhausted(
            cycle, scheduled_date, definition.max_occurrences, definition.end_date,
        ):
            definition.status = RecurringStatus.COMPLETED.value
            await self.store.save_definition(definition)
            logger.info(
                "Recurring transfer exhausted, marked completed",
                extra={"recurring_id": str(definition.id)},
            )
            return None

        instance = await self.store.add_instance(
            ScheduledTransfer(
                user_address=definition.user_address,
                title=definition.title,
                message=definition.message,
                recipients=list(definition.recipients),
                amount=definition.amount,
                amount_per_recipient=definition.amount_per_recipient,
                scheduled_date=scheduled_date,
                retry_limit=definition.retry_limit,
                status=TransferStatus.SCHEDULED.value,
                transaction_ids=[],
                parent_recurring_id=definition.id,
                recurrence_cycle=cycle,
            ),
        )
        definition.occurrences_generated = max(
            definition.occurrences_generated, cycle + 1,
        )
        definition.next_execution_date = instance.scheduled_date
        definition.last_instance_id = instance.id
        await self.store.save_definition(definition)
        logger.info(
            f"Generated recurrence cycle {cycle}",
            extra={"recurring_id": str(definition.id), "transfer_id": str(instance.id)},
        )
        return instance

    @staticmethod
    def _require_status(
        definition: RecurringTransfer, expected: RecurringStatus, action: str,
    ) -> None:
        if definition.status != expected.value:
            raise InvalidTransferStateError(
                definition.status, action,
                ErrorContext(recurring_id=str(definition.id)),
            )
