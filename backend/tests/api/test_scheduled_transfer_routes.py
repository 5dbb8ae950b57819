"""Scheduled transfer routes - HTTP contract over fake-backed services.

Invariants:
    - Wire format is camelCase; domain errors use the structured error envelope
    - Manual execution returns the engine outcome with the error's HTTP status on failure
"""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

from transfer_scheduler.core.domain_types import utc_now

USER = "0x1111111111111111"
A = "0xaaaaaaaaaaaaaaaa"
B = "0xbbbbbbbbbbbbbbbb"
BASE = "/api/v1/scheduled-transfers"


def _create_body(**overrides):
    body = {
        "userAddress": USER,
        "title": "Rent",
        "recipients": [{"address": A}, {"address": B}],
        "amount": 30,
        "scheduledDate": (utc_now() + timedelta(days=1)).isoformat(),
    }
    body.update(overrides)
    return body


async def test_create_returns_201_with_camel_case(client):
    res = await client.post(BASE, json=_create_body())

    assert res.status_code == 201
    data = res.json()
    assert data["status"] == "scheduled"
    assert data["userAddress"] == USER
    assert Decimal(data["amount"]) == Decimal("30")
    assert data["transactionIds"] == []
    assert [r["address"] for r in data["recipients"]] == [A, B]


async def test_create_invalid_body_returns_400(client):
    res = await client.post(BASE, json=_create_body(userAddress="0x123"))

    assert res.status_code == 400
    error = res.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert any("userAddress" in d["field"] for d in error["details"])


async def test_get_unknown_returns_404_envelope(client):
    res = await client.get(f"{BASE}/{uuid4()}")

    assert res.status_code == 404
    assert res.json()["error"]["code"] == "TRANSFER_NOT_FOUND"


async def test_get_existing(client, make_transfer):
    transfer = await make_transfer()
    res = await client.get(f"{BASE}/{transfer.id}")
    assert res.status_code == 200
    assert res.json()["id"] == str(transfer.id)


async def test_list_requires_user_address(client):
    res = await client.get(BASE)
    assert res.status_code == 400


async def test_list_filters_by_status(client, make_transfer):
    await make_transfer()
    await make_transfer(status="completed")

    res = await client.get(BASE, params={"userAddress": USER, "status": "completed"})

    assert res.status_code == 200
    transfers = res.json()["transfers"]
    assert [t["status"] for t in transfers] == ["completed"]


async def test_cancel_then_cancel_again_conflicts(client, make_transfer):
    transfer = await make_transfer()

    first = await client.post(f"{BASE}/{transfer.id}/cancel")
    second = await client.post(f"{BASE}/{transfer.id}/cancel")

    assert first.status_code == 200
    assert first.json()["status"] == "cancelled"
    assert second.status_code == 409
    assert second.json()["error"]["code"] == "INVALID_TRANSFER_STATE"


async def test_execute_success(client, make_transfer, executor):
    transfer = await make_transfer()

    res = await client.post(f"{BASE}/{transfer.id}/execute")

    assert res.status_code == 200
    data = res.json()
    assert data["success"] is True
    assert data["status"] == "completed"
    assert len(executor.calls) == 1


async def test_execute_over_limit_returns_422(client, make_transfer, checker):
    checker.max_amount = Decimal("15")
    transfer = await make_transfer(
        recipients=[{"address": A}, {"address": B}],
        amount=Decimal("10"), amount_per_recipient=True,
    )

    res = await client.post(f"{BASE}/{transfer.id}/execute")

    assert res.status_code == 422
    assert res.json()["code"] == "EXCEEDS_AUTHORIZATION"


async def test_process_due_runs_one_pass(client, make_transfer):
    await make_transfer()
    await make_transfer(scheduled_date=utc_now() + timedelta(hours=1))

    res = await client.post(f"{BASE}/process-due")

    assert res.status_code == 200
    assert res.json()["processed"] == 1
    assert res.json()["successful"] == 1


async def test_process_due_with_nothing_due(client):
    res = await client.post(f"{BASE}/process-due")
    assert res.json() == {
        "processed": 0, "successful": 0, "failed": 0,
        "results": [], "message": "No due transfers to process",
    }


async def test_stats(client, make_transfer):
    await make_transfer()
    await make_transfer(status="failed")

    res = await client.get(f"{BASE}/stats", params={"userAddress": USER})

    assert res.json()["total"] == 2
    assert res.json()["failed"] == 1


async def test_authorization_status(client, checker):
    res = await client.get(f"{BASE}/authorization/{USER}")

    assert res.status_code == 200
    assert res.json()["isValid"] is True
    assert Decimal(res.json()["maxAmount"]) == Decimal("100")
    assert checker.calls == [USER]


async def test_authorization_status_rejects_bad_address(client):
    res = await client.get(f"{BASE}/authorization/not-an-address")
    assert res.status_code == 400


async def test_authorization_transaction(client):
    res = await client.get(
        f"{BASE}/authorization-transaction", params={"maxAmount": "250", "expiryDays": 7},
    )

    assert res.status_code == 200
    body = res.json()
    assert "import ScheduledTransfer from" in body["cadence"]
    assert body["arguments"][0] == {"type": "UFix64", "value": "250.00000000"}
    assert body["arguments"][1] == {"type": "UFix64", "value": "7.00000000"}
