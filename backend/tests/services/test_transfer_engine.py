"""Integration Tests: TransferExecutionEngine - lifecycle, fan-out and failure handling.

Invariants:
    - Completed transfers carry one result per recipient and executedAt
    - Any failed recipient fails the transfer; successful sends stay recorded
    - ExceedsAuthorization leaves the transfer scheduled with no sends
    - A non-scheduled transfer is rejected before any collaborator call
    - The recurrence expander runs once per completed recurring instance and never
      turns a completion into a failure
"""

from decimal import Decimal
from uuid import uuid4

from transfer_scheduler.core.domain_types import TransferEventKind, TransferStatus
from transfer_scheduler.core.errors import (
    CollaboratorTimeoutError, ExceedsAuthorizationError, InvalidTransferStateError,
    PersistenceError, RecipientSendFailureError, TransferNotFoundError,
    UnauthorizedTransferError,
)
from transfer_scheduler.infrastructure.transfer_store import SqlTransferStore
from transfer_scheduler.services.transfer_engine import TransferExecutionEngine

USER = "0x1111111111111111"
A = "0xaaaaaaaaaaaaaaaa"
B = "0xbbbbbbbbbbbbbbbb"
C = "0xcccccccccccccccc"


def _recipients(*addresses):
    return [{"address": a} for a in addresses]


class RecordingExpander:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.calls = []

    async def generate_next_instance(self, recurring_id, completed_cycle=None):
        self.calls.append((recurring_id, completed_cycle))
        if self.error:
            raise self.error
        return None


# ==============================================================================
# Happy path
# ==============================================================================


async def test_split_amount_sent_evenly_and_completed(
    engine, executor, make_transfer, transfer_store,
):
    """amount 30 over [A, B, C], limit 100: each recipient receives 10."""
    transfer = await make_transfer(recipients=_recipients(A, B, C), amount=Decimal("30"))

    outcome = await engine.execute(transfer.id)

    assert outcome.success
    assert [c["to"] for c in executor.calls] == [A, B, C]
    assert all(c["amount"] == Decimal("10") for c in executor.calls)
    assert all(c["from"] == USER for c in executor.calls)
    stored = await transfer_store.get_by_id(transfer.id)
    assert stored.status == TransferStatus.COMPLETED.value
    assert stored.executed_at is not None
    assert len(stored.transaction_ids) == 3
    assert [r["recipient"] for r in stored.transaction_ids] == [A, B, C]
    assert stored.transaction_id is None


async def test_single_recipient_mirrors_transaction_id(
    engine, make_transfer, transfer_store,
):
    transfer = await make_transfer()

    await engine.execute(transfer.id)

    stored = await transfer_store.get_by_id(transfer.id)
    assert stored.transaction_id == "tx_1"
    assert stored.transaction_ids[0]["transactionId"] == "tx_1"


async def test_legacy_recipient_field_is_used(
    engine, executor, make_transfer,
):
    transfer = await make_transfer(recipients=[], recipient=B)

    outcome = await engine.execute(transfer.id)

    assert outcome.success
    assert [c["to"] for c in executor.calls] == [B]


async def test_retry_limit_passed_through(engine, executor, make_transfer):
    transfer = await make_transfer(retry_limit=7)
    await engine.execute(transfer.id)
    assert executor.calls[0]["retry_limit"] == 7


async def test_authorization_checked_fresh_each_attempt(
    engine, checker, make_transfer,
):
    first = await make_transfer()
    second = await make_transfer()
    await engine.execute(first.id)
    await engine.execute(second.id)
    assert checker.calls == [USER, USER]


# ==============================================================================
# Pre-flight guards
# ==============================================================================


async def test_exceeds_authorization_leaves_transfer_scheduled(
    engine, checker, executor, make_transfer, transfer_store,
):
    """amount 10 per recipient to [A, B] is 20 total, over a limit of 15."""
    checker.max_amount = Decimal("15")
    transfer = await make_transfer(
        recipients=_recipients(A, B), amount=Decimal("10"), amount_per_recipient=True,
    )

    outcome = await engine.execute(transfer.id)

    assert not outcome.success
    assert isinstance(outcome.error, ExceedsAuthorizationError)
    assert outcome.error.total == Decimal("20")
    assert executor.calls == []
    stored = await transfer_store.get_by_id(transfer.id)
    assert stored.status == TransferStatus.SCHEDULED.value
    assert stored.error_message is None


async def test_total_equal_to_limit_is_allowed(engine, checker, make_transfer):
    checker.max_amount = Decimal("30")
    transfer = await make_transfer(recipients=_recipients(A, B, C), amount=Decimal("30"))
    outcome = await engine.execute(transfer.id)
    assert outcome.success


async def test_non_scheduled_transfer_rejected_without_side_effects(
    engine, checker, executor, make_transfer, transfer_store,
):
    transfer = await make_transfer(status=TransferStatus.COMPLETED.value)
    before = await transfer_store.get_by_id(transfer.id)

    outcome = await engine.execute(transfer.id)

    assert isinstance(outcome.error, InvalidTransferStateError)
    assert checker.calls == []
    assert executor.calls == []
    after = await transfer_store.get_by_id(transfer.id)
    assert after.status == TransferStatus.COMPLETED.value
    assert after.updated_at == before.updated_at


async def test_unknown_transfer_is_not_found(engine):
    outcome = await engine.execute(uuid4())
    assert isinstance(outcome.error, TransferNotFoundError)
    assert outcome.to_dict() == {
        "success": False,
        "error": "Scheduled transfer not found",
        "code": "TRANSFER_NOT_FOUND",
    }


async def test_unauthorized_marks_failed_without_sends(
    engine, checker, executor, make_transfer, transfer_store,
):
    checker.is_valid = False
    transfer = await make_transfer()

    outcome = await engine.execute(transfer.id)

    assert isinstance(outcome.error, UnauthorizedTransferError)
    assert executor.calls == []
    stored = await transfer_store.get_by_id(transfer.id)
    assert stored.status == TransferStatus.FAILED.value
    assert stored.error_message == "User authorization is invalid or expired"


async def test_no_recipients_marks_failed(engine, make_transfer, transfer_store):
    transfer = await make_transfer(recipients=[], recipient=None)

    outcome = await engine.execute(transfer.id)

    assert outcome.error.code == "VALIDATION_ERROR"
    stored = await transfer_store.get_by_id(transfer.id)
    assert stored.status == TransferStatus.FAILED.value


async def test_unexpected_checker_error_forces_failed(
    engine, checker, make_transfer, transfer_store,
):
    checker.error = RuntimeError("node exploded")
    transfer = await make_transfer()

    outcome = await engine.execute(transfer.id)

    assert outcome.error.code == "INTERNAL_ERROR"
    stored = await transfer_store.get_by_id(transfer.id)
    assert stored.status == TransferStatus.FAILED.value
    assert stored.error_message == "node exploded"


async def test_forced_failure_never_overwrites_cancellation(
    engine, checker, make_transfer, transfer_store,
):
    """A transfer cancelled while its authorization was checked stays cancelled."""
    transfer = await make_transfer()

    async def cancel_then_reject(user_address):
        await transfer_store.compare_and_set_status(
            transfer.id, "scheduled", "cancelled",
        )
        raise RuntimeError("authorization service down")

    checker.check = cancel_then_reject

    await engine.execute(transfer.id)

    stored = await transfer_store.get_by_id(transfer.id)
    assert stored.status == TransferStatus.CANCELLED.value


async def test_cancellation_after_failure_reload_still_wins(
    engine, checker, make_transfer, transfer_store, monkeypatch,
):
    """Cancel lands after the failure path re-read the transfer but before it wrote."""
    transfer = await make_transfer()
    checker.is_valid = False
    original_cas = transfer_store.compare_and_set_status

    async def cancel_before_fail(transfer_id, expected, new, **values):
        if new == TransferStatus.FAILED.value:
            await original_cas(transfer_id, "scheduled", "cancelled")
        return await original_cas(transfer_id, expected, new, **values)

    monkeypatch.setattr(transfer_store, "compare_and_set_status", cancel_before_fail)

    outcome = await engine.execute(transfer.id)

    assert not outcome.success
    stored = await transfer_store.get_by_id(transfer.id)
    assert stored.status == TransferStatus.CANCELLED.value
    assert stored.error_message is None
    assert stored.executed_at is None


async def test_forced_failure_records_message_and_time(
    engine, checker, make_transfer, transfer_store,
):
    transfer = await make_transfer()
    checker.is_valid = False

    await engine.execute(transfer.id)

    stored = await transfer_store.get_by_id(transfer.id)
    assert stored.status == TransferStatus.FAILED.value
    assert stored.error_message
    assert stored.executed_at is not None


async def test_lost_claim_race_sends_nothing(
    engine, checker, executor, make_transfer, transfer_store,
):
    """Another worker claims the transfer between load and claim: no funds move."""
    transfer = await make_transfer()
    original_check = checker.check

    async def claimed_elsewhere(user_address):
        await transfer_store.compare_and_set_status(
            transfer.id, "scheduled", "executing",
        )
        return await original_check(user_address)

    checker.check = claimed_elsewhere

    outcome = await engine.execute(transfer.id)

    assert isinstance(outcome.error, InvalidTransferStateError)
    assert executor.calls == []
    stored = await transfer_store.get_by_id(transfer.id)
    assert stored.status == TransferStatus.EXECUTING.value


# ==============================================================================
# Fan-out failures
# ==============================================================================


async def test_partial_failure_fails_transfer_and_keeps_successes(
    engine, executor, make_transfer, transfer_store,
):
    executor.fail_for = {B}
    transfer = await make_transfer(recipients=_recipients(A, B, C))

    outcome = await engine.execute(transfer.id)

    assert isinstance(outcome.error, RecipientSendFailureError)
    assert len(executor.calls) == 3
    stored = await transfer_store.get_by_id(transfer.id)
    assert stored.status == TransferStatus.FAILED.value
    assert stored.error_message == "Some transfers failed: 1/3"
    records = stored.transaction_ids
    assert [r["status"] for r in records] == ["completed", "failed", "completed"]
    assert records[0]["transactionId"] == "tx_1"
    assert records[2]["transactionId"] == "tx_3"
    assert records[1]["error"] == "insufficient funds"


async def test_raising_send_recorded_and_fan_out_continues(
    engine, executor, make_transfer, transfer_store,
):
    executor.raise_for = {A}
    transfer = await make_transfer(recipients=_recipients(A, B))

    await engine.execute(transfer.id)

    assert [c["to"] for c in executor.calls] == [A, B]
    stored = await transfer_store.get_by_id(transfer.id)
    assert stored.transaction_ids[0]["status"] == "failed"
    assert stored.transaction_ids[0]["error"] == "connection reset"
    assert stored.transaction_ids[1]["status"] == "completed"


async def test_send_timeout_recorded_as_failed_recipient(
    transfer_store, checker, executor, make_transfer,
):
    engine = TransferExecutionEngine(
        transfer_store, checker, executor, call_timeout_seconds=0.05,
    )
    executor.hang_for = {A}
    transfer = await make_transfer(recipients=_recipients(A, B))

    await engine.execute(transfer.id)

    stored = await transfer_store.get_by_id(transfer.id)
    assert stored.status == TransferStatus.FAILED.value
    assert stored.transaction_ids[0]["error"] == "chain send timed out after 0.05s"
    assert stored.transaction_ids[1]["status"] == "completed"


async def test_authorization_timeout_forces_failed(
    transfer_store, checker, executor, make_transfer,
):
    engine = TransferExecutionEngine(
        transfer_store, checker, executor, call_timeout_seconds=0.05,
    )
    checker.delay = 1.0
    transfer = await make_transfer()

    outcome = await engine.execute(transfer.id)

    assert isinstance(outcome.error, CollaboratorTimeoutError)
    assert executor.calls == []
    stored = await transfer_store.get_by_id(transfer.id)
    assert stored.status == TransferStatus.FAILED.value


async def test_store_outage_leaves_last_known_state(
    db, checker, executor, make_transfer, transfer_store,
):
    class SaveFailsStore(SqlTransferStore):
        async def save(self, transfer):
            raise PersistenceError("Connection or operational error", "execute")

    engine = TransferExecutionEngine(SaveFailsStore(db), checker, executor)
    transfer = await make_transfer()

    outcome = await engine.execute(transfer.id)

    assert isinstance(outcome.error, PersistenceError)
    stored = await transfer_store.get_by_id(transfer.id)
    assert stored.status == TransferStatus.EXECUTING.value


# ==============================================================================
# Recurrence and events
# ==============================================================================


async def test_recurring_instance_triggers_expander_once(
    transfer_store, checker, executor, make_transfer,
):
    expander = RecordingExpander()
    engine = TransferExecutionEngine(
        transfer_store, checker, executor, expander=expander,
    )
    parent = uuid4()
    transfer = await make_transfer(parent_recurring_id=parent, recurrence_cycle=4)

    await engine.execute(transfer.id)
    await engine.execute(transfer.id)

    assert expander.calls == [(parent, 4)]


async def test_expander_not_called_on_failure(
    transfer_store, checker, executor, make_transfer,
):
    expander = RecordingExpander()
    engine = TransferExecutionEngine(
        transfer_store, checker, executor, expander=expander,
    )
    executor.fail_for = {A}
    transfer = await make_transfer(parent_recurring_id=uuid4(), recurrence_cycle=0)

    await engine.execute(transfer.id)

    assert expander.calls == []


async def test_expander_error_keeps_transfer_completed(
    transfer_store, checker, executor, make_transfer,
):
    engine = TransferExecutionEngine(
        transfer_store, checker, executor,
        expander=RecordingExpander(error=RuntimeError("definition store down")),
    )
    transfer = await make_transfer(parent_recurring_id=uuid4(), recurrence_cycle=0)

    outcome = await engine.execute(transfer.id)

    assert outcome.success
    stored = await transfer_store.get_by_id(transfer.id)
    assert stored.status == TransferStatus.COMPLETED.value


async def test_events_emitted_in_lifecycle_order(engine, make_transfer):
    received = []

    async def listener(event):
        received.append(event)

    engine.subscribe(listener)
    transfer = await make_transfer()

    await engine.execute(transfer.id)

    assert [e.kind for e in received] == [
        TransferEventKind.EXECUTING, TransferEventKind.COMPLETED,
    ]
    assert received[1].payload["results"][0]["status"] == "completed"
    assert all(e.transfer_id == transfer.id for e in received)


async def test_failing_listener_does_not_affect_execution(engine, make_transfer):
    async def broken(event):
        raise ValueError("listener bug")

    engine.subscribe(broken)
    transfer = await make_transfer()

    outcome = await engine.execute(transfer.id)

    assert outcome.success


async def test_outcome_to_dict_on_success(engine, make_transfer):
    transfer = await make_transfer()
    data = (await engine.execute(transfer.id)).to_dict()
    assert data["success"] is True
    assert data["transferId"] == str(transfer.id)
    assert data["status"] == "completed"
    assert data["results"][0]["recipient"] == A
