"""Transfer Execution Engine - runs one scheduled transfer through its full lifecycle.

Invariants:
    - The engine observes status == scheduled before claiming; any other status is an
      InvalidTransferStateError with no persistence write
    - The scheduled -> executing claim is a store compare-and-set, persisted before any send
    - ExceedsAuthorizationError is a pre-flight guard: no funds move, status stays scheduled
    - Fan-out is all-attempted in recipient order; a failed or raising send never stops
      the remaining recipients
    - Any failed recipient marks the whole transfer failed; successful sends are NOT
      rolled back and their transaction ids stay in transaction_ids
    - Recurrence expansion errors are logged and swallowed: a completed transfer stays completed
    - PersistenceError leaves the record in its last-known state (never forced to failed)
    - Authorization checks and chain sends are bounded by call_timeout_seconds

Design Decisions:
    - Outbound events go to listeners owned by this engine instance (subscribe()), not to
      a process-wide bus; a listener failure is logged and never affects execution
    - execute() returns ExecutionOutcome instead of raising: the scheduler and the HTTP
      layer both need a structured result for every transfer
"""

import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from transfer_scheduler.core.collaborator_protocols import (
    AuthorizationChecker, ChainExecutor, RecurrenceExpander,
    TransferEvent, TransferEventListener,
)
from transfer_scheduler.core.domain_types import (
    RecipientResultStatus, TransferEventKind, TransferStatus, utc_now,
)
from transfer_scheduler.core.errors import (
    CollaboratorTimeoutError, ErrorCategory, ErrorContext, ErrorSeverity,
    ExceedsAuthorizationError, InvalidTransferStateError, PersistenceError,
    RecipientSendFailureError, TransferError, TransferNotFoundError,
    UnauthorizedTransferError,
)
from transfer_scheduler.core.repository_protocols import TransferLike, TransferStore
from transfer_scheduler.core.transfer_rules import (
    RecipientResult, all_succeeded, compute_recipient_amount,
    compute_total_amount, count_failed, normalize_recipients, result_records,
)
from transfer_scheduler.core.transfer_state import (
    assert_transition, check_executable, is_terminal,
)

logger = logging.getLogger(__name__)


@dataclass
class ExecutionOutcome:
    """Result of one execute() call."""
    success: bool
    transfer: TransferLike | None = None
    results: list[RecipientResult] = field(default_factory=list)
    error: TransferError | None = None

    def to_dict(self) -> dict:
        data: dict = {"success": self.success}
        if self.transfer is not None:
            data["transferId"] = str(self.transfer.id)
            data["status"] = self.transfer.status
        if self.results:
            data["results"] = result_records(self.results)
        if self.error is not None:
            data["error"] = self.error.message
            data["code"] = self.error.code
        return data


class TransferExecutionEngine:
    """Orchestrates authorization, fan-out, status transitions and recurrence chaining."""

    def __init__(
        self,
        store: TransferStore,
        authorization: AuthorizationChecker,
        executor: ChainExecutor,
        expander: RecurrenceExpander | None = None,
        call_timeout_seconds: float = 180.0,
    ):
        self.store = store
        self.authorization = authorization
        self.executor = executor
        self.expander = expander
        self.call_timeout_seconds = call_timeout_seconds
        self._listeners: list[TransferEventListener] = []

    def subscribe(self, listener: TransferEventListener) -> None:
        self._listeners.append(listener)

    async def execute(self, transfer_id: UUID) -> ExecutionOutcome:
        """Execute a due transfer. Never raises for domain or collaborator failures."""
        ctx = ErrorContext(transfer_id=str(transfer_id))
        try:
            return await self._execute(transfer_id, ctx)
        except ExceedsAuthorizationError as e:
            logger.warning(e.message, extra=self._log_extra(ctx, e))
            return ExecutionOutcome(success=False, error=e)
        except (TransferNotFoundError, InvalidTransferStateError) as e:
            logger.warning(
                f"Transfer not executed: {e.message}", extra=self._log_extra(ctx, e),
            )
            return ExecutionOutcome(success=False, error=e)
        except PersistenceError as e:
            logger.error(
                f"Store unavailable while executing transfer: {e.message}",
                extra=self._log_extra(ctx, e),
            )
            return ExecutionOutcome(success=False, error=e)
        except TransferError as e:
            logger.error(
                f"Failed to execute scheduled transfer: {e.message}",
                extra=self._log_extra(ctx, e),
            )
            await self._force_failed(transfer_id, e.message, ctx)
            return ExecutionOutcome(success=False, error=e)
        except Exception as e:
            logger.error(
                f"Unexpected error executing scheduled transfer: {e}",
                extra=self._log_extra(ctx), exc_info=True,
            )
            await self._force_failed(transfer_id, str(e), ctx)
            return ExecutionOutcome(
                success=False,
                error=TransferError(
                    str(e), "INTERNAL_ERROR", ErrorCategory.INTERNAL,
                    ErrorSeverity.CRITICAL, ctx,
                ),
            )

    # ─── lifecycle steps ─────────────────────────────────────────

    async def _execute(self, transfer_id: UUID, ctx: ErrorContext) -> ExecutionOutcome:
        transfer = await self.store.get_by_id(transfer_id)
        if transfer is None:
            raise TransferNotFoundError(str(transfer_id), ctx)
        ctx.user_address = transfer.user_address
        check_executable(transfer.status, ctx)

        authorization = await self._with_timeout(
            self.authorization.check(transfer.user_address),
            "authorization check", ctx,
        )
        if not authorization.is_valid:
            ctx.debug_info = {"authorization_message": authorization.message}
            raise UnauthorizedTransferError(context=ctx)

        recipients = normalize_recipients(
            transfer.recipients, transfer.recipient, ctx,
        )
        total = compute_total_amount(
            transfer.amount, len(recipients), transfer.amount_per_recipient,
        )
        if total > authorization.max_amount:
            raise ExceedsAuthorizationError(total, authorization.max_amount, ctx)

        await self._claim(transfer, ctx)

        amount_each = compute_recipient_amount(
            transfer.amount, len(recipients), transfer.amount_per_recipient,
        )
        results = []
        for recipient in recipients:
            results.append(
                await self._send_one(transfer, recipient.address, amount_each, ctx),
            )

        if all_succeeded(results):
            return await self._complete(transfer, results, ctx)
        return await self._fail_fan_out(transfer, results, ctx)

    async def _claim(self, transfer: TransferLike, ctx: ErrorContext) -> None:
        """scheduled -> executing, persisted so concurrent pollers see it in flight."""
        assert_transition(transfer.status, TransferStatus.EXECUTING.value, ctx)
        claimed = await self.store.compare_and_set_status(
            transfer.id,
            TransferStatus.SCHEDULED.value,
            TransferStatus.EXECUTING.value,
        )
        if not claimed:
            current = await self.store.get_by_id(transfer.id)
            raise InvalidTransferStateError(
                current.status if current else "missing", "execute", ctx,
            )
        transfer.status = TransferStatus.EXECUTING.value
        logger.info("Transfer claimed for execution", extra=self._log_extra(ctx))
        await self._emit(TransferEventKind.EXECUTING, transfer)

    async def _send_one(
        self, transfer: TransferLike, address: str, amount: Decimal, ctx: ErrorContext,
    ) -> RecipientResult:
        try:
            sent = await asyncio.wait_for(
                self.executor.send(
                    transfer.user_address, address, amount, transfer.retry_limit,
                ),
                timeout=self.call_timeout_seconds,
            )
        except asyncio.TimeoutError:
            error = CollaboratorTimeoutError("chain send", self.call_timeout_seconds)
            logger.error(
                error.message,
                extra={**self._log_extra(ctx, error), "recipient": address},
            )
            return RecipientResult(
                address, amount, RecipientResultStatus.FAILED, error=error.message,
            )
        except Exception as e:
            logger.error(
                f"Recipient send raised: {e}",
                extra={**self._log_extra(ctx), "recipient": address},
            )
            return RecipientResult(
                address, amount, RecipientResultStatus.FAILED, error=str(e),
            )

        if sent.success:
            return RecipientResult(
                address, amount, RecipientResultStatus.COMPLETED,
                transaction_id=sent.transaction_id,
            )
        return RecipientResult(
            address, amount, RecipientResultStatus.FAILED,
            transaction_id=sent.transaction_id,
            error=sent.error or "send failed",
        )

    async def _complete(
        self, transfer: TransferLike, results: list[RecipientResult], ctx: ErrorContext,
    ) -> ExecutionOutcome:
        assert_transition(transfer.status, TransferStatus.COMPLETED.value, ctx)
        self._record_results(transfer, results)
        transfer.status = TransferStatus.COMPLETED.value
        transfer.error_message = None
        transfer = await self.store.save(transfer)

        logger.info(
            f"Scheduled transfer executed successfully, sent to "
            f"{len(results)} recipient(s)",
            extra=self._log_extra(ctx),
        )
        await self._emit(
            TransferEventKind.COMPLETED, transfer,
            {"results": result_records(results)},
        )
        if transfer.parent_recurring_id is not None:
            await self._expand_recurrence(transfer, ctx)
        return ExecutionOutcome(success=True, transfer=transfer, results=results)

    async def _fail_fan_out(
        self, transfer: TransferLike, results: list[RecipientResult], ctx: ErrorContext,
    ) -> ExecutionOutcome:
        """Any failed recipient fails the transfer; successful sends are kept as-is."""
        error = RecipientSendFailureError(count_failed(results), len(results), ctx)
        assert_transition(transfer.status, TransferStatus.FAILED.value, ctx)
        self._record_results(transfer, results)
        transfer.status = TransferStatus.FAILED.value
        transfer.error_message = error.message
        transfer = await self.store.save(transfer)

        logger.error(error.message, extra=self._log_extra(ctx, error))
        await self._emit(
            TransferEventKind.FAILED, transfer,
            {"error": error.message, "results": result_records(results)},
        )
        return ExecutionOutcome(
            success=False, transfer=transfer, results=results, error=error,
        )

    async def _force_failed(
        self, transfer_id: UUID, message: str, ctx: ErrorContext,
    ) -> None:
        """Best-effort terminal state after an error; never overwrites a terminal status.

        The status flip and the failure fields land in one conditional update
        against the status observed on reload, so a concurrent cancellation wins.
        """
        try:
            transfer = await self.store.get_by_id(transfer_id)
            if transfer is None or is_terminal(transfer.status):
                return
            flipped = await self.store.compare_and_set_status(
                transfer_id, transfer.status, TransferStatus.FAILED.value,
                executed_at=utc_now(), error_message=message,
            )
            if not flipped:
                return
            transfer.status = TransferStatus.FAILED.value
            transfer.error_message = message
        except Exception as e:
            logger.error(
                f"Failed to update transfer status: {e}",
                extra=self._log_extra(ctx), exc_info=True,
            )
            return
        await self._emit(TransferEventKind.FAILED, transfer, {"error": message})

    async def _expand_recurrence(self, transfer: TransferLike, ctx: ErrorContext) -> None:
        if self.expander is None:
            return
        try:
            instance = await self.expander.generate_next_instance(
                transfer.parent_recurring_id, transfer.recurrence_cycle,
            )
        except Exception as e:
            logger.error(
                f"Failed to generate next recurring instance: {e}",
                extra={
                    **self._log_extra(ctx),
                    "recurring_id": str(transfer.parent_recurring_id),
                },
                exc_info=True,
            )
            return
        if instance is not None:
            await self._emit(
                TransferEventKind.RECURRENCE_GENERATED, transfer,
                {
                    "recurringId": str(transfer.parent_recurring_id),
                    "nextTransferId": str(instance.id),
                    "scheduledDate": instance.scheduled_date.isoformat(),
                },
            )

    # ─── helpers ─────────────────────────────────────────────────

    @staticmethod
    def _record_results(transfer: TransferLike, results: list[RecipientResult]) -> None:
        transfer.executed_at = utc_now()
        transfer.transaction_ids = result_records(results)
        if len(results) == 1:
            transfer.transaction_id = results[0].transaction_id

    async def _with_timeout(self, awaitable, operation: str, ctx: ErrorContext):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.call_timeout_seconds)
        except asyncio.TimeoutError:
            raise CollaboratorTimeoutError(operation, self.call_timeout_seconds, ctx)

    async def _emit(
        self, kind: TransferEventKind, transfer: TransferLike, payload: dict | None = None,
    ) -> None:
        event = TransferEvent(
            kind=kind,
            transfer_id=transfer.id,
            user_address=transfer.user_address,
            payload=payload or {},
        )
        for listener in list(self._listeners):
            try:
                await listener(event)
            except Exception as e:
                logger.error(
                    f"Transfer event listener failed for {kind.value}: {e}",
                    extra={"transfer_id": str(transfer.id)}, exc_info=True,
                )

    @staticmethod
    def _log_extra(ctx: ErrorContext, error: TransferError | None = None) -> dict:
        extra = {
            "transfer_id": ctx.transfer_id,
            "user_address": ctx.user_address,
        }
        if error is not None:
            extra["error_code"] = error.code
        return extra
