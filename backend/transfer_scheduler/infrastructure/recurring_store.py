"""SQL Recurring Store - recurrence definitions and their generated instances.

Invariants:
    - add_instance never produces two instances for one (parent, cycle): the unique
      constraint rejects the duplicate and the existing instance is returned instead
    - find_outstanding_instances returns only `scheduled` instances of a definition
"""

import logging
from uuid import UUID

from sqlalchemy import select

from transfer_scheduler.core.domain_types import TransferStatus
from transfer_scheduler.core.errors import PersistenceError
from transfer_scheduler.infrastructure.database import DatabaseSessionManager
from transfer_scheduler.models.recurring_transfer import RecurringTransfer
from transfer_scheduler.models.scheduled_transfer import ScheduledTransfer

logger = logging.getLogger(__name__)


class SqlRecurringStore:
    """Recurrence definition persistence over DatabaseSessionManager."""

    def __init__(self, db: DatabaseSessionManager):
        self._db = db

    async def get_definition(self, recurring_id: UUID) -> RecurringTransfer | None:
        async with self._db.session() as session:
            return await session.get(RecurringTransfer, recurring_id)

    async def add_definition(self, definition: RecurringTransfer) -> RecurringTransfer:
        async with self._db.session() as session:
            session.add(definition)
            await session.commit()
            return definition

    async def save_definition(self, definition: RecurringTransfer) -> RecurringTransfer:
        async with self._db.session() as session:
            merged = await session.merge(definition)
            await session.commit()
            return merged

    async def find_instance(
        self, recurring_id: UUID, cycle: int,
    ) -> ScheduledTransfer | None:
        query = (
            select(ScheduledTransfer)
            .where(ScheduledTransfer.parent_recurring_id == recurring_id)
            .where(ScheduledTransfer.recurrence_cycle == cycle)
        )
        async with self._db.session() as session:
            result = await session.execute(query)
            return result.scalar_one_or_none()

    async def find_outstanding_instances(
        self, recurring_id: UUID,
    ) -> list[ScheduledTransfer]:
        query = (
            select(ScheduledTransfer)
            .where(ScheduledTransfer.parent_recurring_id == recurring_id)
            .where(ScheduledTransfer.status == TransferStatus.SCHEDULED.value)
            .order_by(ScheduledTransfer.scheduled_date.asc())
        )
        async with self._db.session() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def add_instance(self, transfer: ScheduledTransfer) -> ScheduledTransfer:
        try:
            async with self._db.session() as session:
                session.add(transfer)
                await session.commit()
                return transfer
        except PersistenceError as e:
            if e.operation != "constraint":
                raise
            existing = await self.find_instance(
                transfer.parent_recurring_id, transfer.recurrence_cycle,
            )
            if existing is None:
                raise
            logger.info(
                f"Instance for cycle {transfer.recurrence_cycle} already exists",
                extra={"recurring_id": str(transfer.parent_recurring_id)},
            )
            return existing
