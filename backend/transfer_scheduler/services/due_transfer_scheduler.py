"""Due-Transfer Scheduler - periodic driver that executes every due transfer, oldest first.

Invariants:
    - Due transfers are executed sequentially in ascending scheduled_date order
    - One transfer's failure never aborts the batch; every due transfer gets a result entry
    - Only a failure to query the store propagates out of process_due_transfers()
    - A run with zero due transfers returns processed == 0 and a distinct message
    - At most one interval job instance runs at a time (max_instances=1, coalesce=True)

Design Decisions:
    - Lifecycle-managed component (start/stop) owned by the composition root, not an
      import-time global timer
    - APScheduler AsyncIOScheduler drives the interval; the job wrapper swallows store
      outages so the next tick still fires
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from transfer_scheduler.core.domain_types import DEFAULT_BATCH_SIZE, utc_now
from transfer_scheduler.core.errors import (
    ErrorCategory, ErrorSeverity, TransferError,
)
from transfer_scheduler.core.repository_protocols import TransferStore
from transfer_scheduler.services.transfer_engine import (
    ExecutionOutcome, TransferExecutionEngine,
)

logger = logging.getLogger(__name__)

NO_DUE_TRANSFERS = "No due transfers to process"


@dataclass
class DueRunSummary:
    """Aggregate result of one polling cycle."""
    processed: int
    successful: int = 0
    failed: int = 0
    results: list[dict] = field(default_factory=list)
    message: str | None = None

    def to_dict(self) -> dict:
        return {
            "processed": self.processed,
            "successful": self.successful,
            "failed": self.failed,
            "results": self.results,
            "message": self.message,
        }


class DueTransferScheduler:
    """Polls the store for due transfers and hands each to the execution engine."""

    JOB_ID = "process_due_transfers"

    def __init__(
        self,
        store: TransferStore,
        engine: TransferExecutionEngine,
        interval_seconds: int = 60,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        self.store = store
        self.engine = engine
        self.interval_seconds = interval_seconds
        self.batch_size = batch_size
        self._scheduler: AsyncIOScheduler | None = None
        self.last_run: DueRunSummary | None = None

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        """Start the interval job. Must be called with a running event loop."""
        if self.is_running:
            return
        self._scheduler = AsyncIOScheduler(
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": self.interval_seconds,
            },
            timezone="UTC",
        )
        self._scheduler.add_job(
            self._run_job,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=self.JOB_ID,
            name="Process due scheduled transfers",
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info(
            f"Due-transfer scheduler started (every {self.interval_seconds}s)",
        )

    def stop(self) -> None:
        if self.is_running:
            self._scheduler.shutdown(wait=False)
            logger.info("Due-transfer scheduler stopped")
        self._scheduler = None

    async def process_due_transfers(
        self, now: datetime | None = None,
    ) -> DueRunSummary:
        """Execute every transfer due at `now`, oldest scheduled_date first."""
        now = now or utc_now()
        due = await self.store.find_due(now, limit=self.batch_size)
        if not due:
            return DueRunSummary(processed=0, message=NO_DUE_TRANSFERS)

        logger.info(f"Processing {len(due)} due scheduled transfers")
        results = []
        for transfer in due:
            outcome = await self._execute_one(transfer.id)
            results.append({
                "transferId": str(transfer.id),
                "title": transfer.title,
                **outcome.to_dict(),
            })

        successful = sum(1 for r in results if r["success"])
        failed = len(results) - successful
        logger.info(
            f"Processed {len(due)} transfers: {successful} successful, {failed} failed",
            extra={
                "processed": len(due), "successful": successful, "failed": failed,
            },
        )
        return DueRunSummary(
            processed=len(due),
            successful=successful,
            failed=failed,
            results=results,
            message=f"Processed {len(due)} transfers",
        )

    async def _execute_one(self, transfer_id: UUID) -> ExecutionOutcome:
        try:
            return await self.engine.execute(transfer_id)
        except Exception as e:
            logger.error(
                f"Engine raised for transfer: {e}",
                extra={"transfer_id": str(transfer_id)}, exc_info=True,
            )
            return ExecutionOutcome(
                success=False,
                error=TransferError(
                    str(e), "INTERNAL_ERROR", ErrorCategory.INTERNAL,
                    ErrorSeverity.CRITICAL,
                ),
            )

    async def _run_job(self) -> None:
        try:
            self.last_run = await self.process_due_transfers()
        except TransferError as e:
            logger.error(
                f"Error processing due transfers: {e.message}",
                extra={"error_code": e.code},
            )
