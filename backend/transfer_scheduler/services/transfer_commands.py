"""Transfer Commands - create, read, cancel and report on scheduled transfers.

Invariants:
    - Only `scheduled` transfers are cancellable; the change is a compare-and-set so a
      transfer the engine already claimed is never flipped to cancelled
    - New transfers always start in `scheduled` with empty results
"""

import logging
from uuid import UUID

from transfer_scheduler.core.domain_types import TransferStatus
from transfer_scheduler.core.errors import (
    ErrorContext, InvalidTransferStateError, TransferNotFoundError,
)
from transfer_scheduler.core.repository_protocols import TransferStore
from transfer_scheduler.core.transfer_rules import normalize_recipients
from transfer_scheduler.core.transfer_state import check_cancellable
from transfer_scheduler.core.transfer_stats import compute_transfer_stats
from transfer_scheduler.models.scheduled_transfer import ScheduledTransfer

logger = logging.getLogger(__name__)


class TransferCommands:

    def __init__(self, store: TransferStore):
        self.store = store

    async def create(self, transfer: ScheduledTransfer) -> ScheduledTransfer:
        ctx = ErrorContext(user_address=transfer.user_address)
        normalize_recipients(transfer.recipients, transfer.recipient, ctx)
        transfer.status = TransferStatus.SCHEDULED.value
        transfer.transaction_ids = []
        transfer = await self.store.add(transfer)
        logger.info(
            f"Scheduled transfer created for {transfer.scheduled_date.isoformat()}",
            extra={"transfer_id": str(transfer.id), "user_address": transfer.user_address},
        )
        return transfer

    async def get(self, transfer_id: UUID) -> ScheduledTransfer:
        transfer = await self.store.get_by_id(transfer_id)
        if transfer is None:
            raise TransferNotFoundError(
                str(transfer_id), ErrorContext(transfer_id=str(transfer_id)),
            )
        return transfer

    async def cancel(self, transfer_id: UUID) -> ScheduledTransfer:
        """scheduled -> cancelled; 409 for anything already claimed or finished."""
        ctx = ErrorContext(transfer_id=str(transfer_id))
        transfer = await self.get(transfer_id)
        check_cancellable(transfer.status, ctx)
        cancelled = await self.store.compare_and_set_status(
            transfer_id,
            TransferStatus.SCHEDULED.value,
            TransferStatus.CANCELLED.value,
        )
        if not cancelled:
            current = await self.get(transfer_id)
            raise InvalidTransferStateError(current.status, "cancel", ctx)
        logger.info("Scheduled transfer cancelled", extra={"transfer_id": str(transfer_id)})
        return await self.get(transfer_id)

    async def list_for_user(
        self, user_address: str, status: str | None = None,
        limit: int = 50, offset: int = 0,
    ) -> list[ScheduledTransfer]:
        return await self.store.list_for_user(user_address, status, limit, offset)

    async def stats(self, user_address: str | None = None) -> dict:
        counts = await self.store.count_by_status(user_address)
        return compute_transfer_stats(counts)
