"""Integration Tests: TransferCommands - create, cancel, listing and stats."""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from transfer_scheduler.core.domain_types import TransferStatus, utc_now
from transfer_scheduler.core.errors import (
    InvalidTransferStateError, TransferNotFoundError, TransferValidationError,
)
from transfer_scheduler.models.scheduled_transfer import ScheduledTransfer
from transfer_scheduler.services.transfer_commands import TransferCommands

USER = "0x1111111111111111"
OTHER = "0x2222222222222222"


@pytest.fixture
def commands(transfer_store):
    return TransferCommands(transfer_store)


async def test_create_starts_scheduled(commands):
    transfer = await commands.create(ScheduledTransfer(
        user_address=USER,
        recipients=[{"address": "0xaaaaaaaaaaaaaaaa"}],
        amount=Decimal("12.5"),
        scheduled_date=utc_now() + timedelta(days=1),
    ))

    stored = await commands.get(transfer.id)
    assert stored.status == TransferStatus.SCHEDULED.value
    assert stored.transaction_ids == []


async def test_create_without_recipients_rejected(commands):
    with pytest.raises(TransferValidationError):
        await commands.create(ScheduledTransfer(
            user_address=USER, recipients=[], amount=Decimal("1"),
            scheduled_date=utc_now(),
        ))


async def test_get_unknown_transfer(commands):
    with pytest.raises(TransferNotFoundError):
        await commands.get(uuid4())


async def test_cancel_scheduled_transfer(commands, make_transfer):
    transfer = await make_transfer()
    cancelled = await commands.cancel(transfer.id)
    assert cancelled.status == TransferStatus.CANCELLED.value


@pytest.mark.parametrize("status", ["executing", "completed", "failed", "cancelled"])
async def test_cancel_requires_scheduled(commands, make_transfer, status):
    transfer = await make_transfer(status=status)
    with pytest.raises(InvalidTransferStateError) as exc:
        await commands.cancel(transfer.id)
    assert exc.value.http_status == 409


async def test_cancel_loses_to_concurrent_claim(
    commands, make_transfer, transfer_store, monkeypatch,
):
    """The engine claims the transfer after cancel read it: cancel must not win."""
    transfer = await make_transfer()
    original_cas = transfer_store.compare_and_set_status

    async def claim_first(transfer_id, expected, new):
        await original_cas(transfer_id, "scheduled", "executing")
        return await original_cas(transfer_id, expected, new)

    monkeypatch.setattr(transfer_store, "compare_and_set_status", claim_first)

    with pytest.raises(InvalidTransferStateError):
        await commands.cancel(transfer.id)
    assert (await commands.get(transfer.id)).status == "executing"


async def test_list_for_user_newest_first_with_filter(commands, make_transfer):
    now = utc_now()
    older = await make_transfer(scheduled_date=now + timedelta(days=1))
    newer = await make_transfer(scheduled_date=now + timedelta(days=2))
    await make_transfer(user_address=OTHER)
    await make_transfer(status="cancelled")

    listed = await commands.list_for_user(USER, status="scheduled")

    assert [t.id for t in listed] == [newer.id, older.id]


async def test_stats_per_status(commands, make_transfer):
    await make_transfer()
    await make_transfer()
    await make_transfer(status="completed")
    await make_transfer(status="failed", user_address=OTHER)

    assert await commands.stats() == {
        "total": 4, "scheduled": 2, "executing": 0,
        "completed": 1, "failed": 1, "cancelled": 0,
    }
    assert (await commands.stats(OTHER))["total"] == 1
