"""SQL Transfer Store - SQLAlchemy implementation of the TransferStore protocol.

Invariants:
    - find_due returns only status == scheduled AND scheduled_date <= now,
      ordered by scheduled_date ascending (created_at breaks ties)
    - save persists the full record (merge), never partial columns
    - compare_and_set_status is a single conditional UPDATE: the row changes only if
      its current status equals `expected`
    - Each call uses its own short-lived session; returned records are detached

Design Decisions:
    - Session per operation: the scheduler runs outside request scope, so there is no
      ambient session to borrow
"""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update, func

from transfer_scheduler.core.domain_types import TransferStatus, utc_now
from transfer_scheduler.infrastructure.database import DatabaseSessionManager
from transfer_scheduler.models.scheduled_transfer import ScheduledTransfer

logger = logging.getLogger(__name__)


class SqlTransferStore:
    """Scheduled transfer persistence over DatabaseSessionManager."""

    def __init__(self, db: DatabaseSessionManager):
        self._db = db

    async def find_due(
        self, now: datetime, limit: int | None = None,
    ) -> list[ScheduledTransfer]:
        query = (
            select(ScheduledTransfer)
            .where(ScheduledTransfer.status == TransferStatus.SCHEDULED.value)
            .where(ScheduledTransfer.scheduled_date <= now)
            .order_by(
                ScheduledTransfer.scheduled_date.asc(),
                ScheduledTransfer.created_at.asc(),
            )
        )
        if limit:
            query = query.limit(limit)
        async with self._db.session() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def get_by_id(self, transfer_id: UUID) -> ScheduledTransfer | None:
        async with self._db.session() as session:
            return await session.get(ScheduledTransfer, transfer_id)

    async def save(self, transfer: ScheduledTransfer) -> ScheduledTransfer:
        async with self._db.session() as session:
            merged = await session.merge(transfer)
            await session.commit()
            return merged

    async def add(self, transfer: ScheduledTransfer) -> ScheduledTransfer:
        async with self._db.session() as session:
            session.add(transfer)
            await session.commit()
            return transfer

    async def compare_and_set_status(
        self, transfer_id: UUID, expected: str, new: str, **values,
    ) -> bool:
        """Flip status (and any extra `values` columns) only if status still equals `expected`."""
        stmt = (
            update(ScheduledTransfer)
            .where(ScheduledTransfer.id == transfer_id)
            .where(ScheduledTransfer.status == expected)
            .values(status=new, updated_at=utc_now(), **values)
        )
        async with self._db.session() as session:
            result = await session.execute(stmt)
            await session.commit()
            changed = result.rowcount == 1
        if not changed:
            logger.info(
                f"Status compare-and-set {expected} -> {new} rejected",
                extra={"transfer_id": str(transfer_id)},
            )
        return changed

    async def count_by_status(
        self, user_address: str | None = None,
    ) -> dict[str, int]:
        query = select(
            ScheduledTransfer.status, func.count(ScheduledTransfer.id),
        ).group_by(ScheduledTransfer.status)
        if user_address:
            query = query.where(ScheduledTransfer.user_address == user_address)
        async with self._db.session() as session:
            result = await session.execute(query)
            return {status: count for status, count in result.all()}

    async def list_for_user(
        self, user_address: str, status: str | None = None,
        limit: int = 50, offset: int = 0,
    ) -> list[ScheduledTransfer]:
        query = (
            select(ScheduledTransfer)
            .where(ScheduledTransfer.user_address == user_address)
            .order_by(ScheduledTransfer.scheduled_date.desc())
        )
        if status:
            query = query.where(ScheduledTransfer.status == status)
        query = query.limit(limit).offset(offset)
        async with self._db.session() as session:
            result = await session.execute(query)
            return list(result.scalars().all())
