"""Scheduled Transfers - create, inspect, cancel and trigger scheduled transfers.

Invariants:
    - Fixed paths (/stats, /process-due, /authorization...) are registered before /{transfer_id}
    - Manual execution goes through the same engine as the scheduler
    - A failed execution responds with the error's HTTP status and the engine outcome body
"""

import logging
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, status
from fastapi.responses import JSONResponse

from transfer_scheduler.api.dependencies import get_services
from transfer_scheduler.core.domain_types import TransferStatus
from transfer_scheduler.infrastructure.cadence_templates import (
    build_authorization_transaction,
)
from transfer_scheduler.schemas.transfer import (
    FLOW_ADDRESS_PATTERN, ScheduledTransferCreate, ScheduledTransferResponse,
)
from transfer_scheduler.services.composition import TransferServices

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/scheduled-transfers", tags=["scheduled-transfers"])


def _serialize(transfer) -> dict:
    return ScheduledTransferResponse.model_validate(transfer).model_dump(
        mode="json", by_alias=True,
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_scheduled_transfer(
    body: ScheduledTransferCreate,
    services: TransferServices = Depends(get_services),
):
    transfer = await services.commands.create(body.to_model())
    return _serialize(transfer)


@router.get("")
async def list_scheduled_transfers(
    user_address: str = Query(..., alias="userAddress", pattern=FLOW_ADDRESS_PATTERN),
    status_filter: TransferStatus | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    services: TransferServices = Depends(get_services),
):
    transfers = await services.commands.list_for_user(
        user_address,
        status_filter.value if status_filter else None,
        limit, offset,
    )
    return {
        "transfers": [_serialize(t) for t in transfers],
        "pagination": {"limit": limit, "offset": offset},
    }


@router.get("/stats")
async def scheduled_transfer_stats(
    user_address: str | None = Query(
        None, alias="userAddress", pattern=FLOW_ADDRESS_PATTERN,
    ),
    services: TransferServices = Depends(get_services),
):
    return await services.commands.stats(user_address)


@router.post("/process-due")
async def process_due_transfers(
    services: TransferServices = Depends(get_services),
):
    """Run one scheduler pass now."""
    summary = await services.scheduler.process_due_transfers()
    return summary.to_dict()


@router.get("/authorization-transaction")
async def authorization_transaction(
    max_amount: Decimal = Query(..., alias="maxAmount", gt=0),
    expiry_days: int = Query(30, alias="expiryDays", ge=1, le=3650),
    services: TransferServices = Depends(get_services),
):
    """Cadence transaction the user signs to grant scheduled-transfer authorization."""
    return build_authorization_transaction(
        services.settings.scheduled_transfer_contract, max_amount, expiry_days,
    )


@router.get("/authorization/{address}")
async def authorization_status(
    address: str = Path(..., pattern=FLOW_ADDRESS_PATTERN),
    services: TransferServices = Depends(get_services),
):
    result = await services.authorization.check(address)
    return result.to_dict()


@router.get("/{transfer_id}")
async def get_scheduled_transfer(
    transfer_id: UUID, services: TransferServices = Depends(get_services),
):
    return _serialize(await services.commands.get(transfer_id))


@router.post("/{transfer_id}/cancel")
async def cancel_scheduled_transfer(
    transfer_id: UUID, services: TransferServices = Depends(get_services),
):
    return _serialize(await services.commands.cancel(transfer_id))


@router.post("/{transfer_id}/execute")
async def execute_scheduled_transfer(
    transfer_id: UUID, services: TransferServices = Depends(get_services),
):
    """Execute now, regardless of scheduled_date (status must still be scheduled)."""
    outcome = await services.engine.execute(transfer_id)
    if outcome.success:
        return outcome.to_dict()
    return JSONResponse(
        status_code=outcome.error.http_status, content=outcome.to_dict(),
    )
