"""Recurring Transfers - recurrence definitions and their lifecycle."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, status

from transfer_scheduler.api.dependencies import get_services
from transfer_scheduler.schemas.transfer import (
    RecurringTransferCreate, RecurringTransferResponse, ScheduledTransferResponse,
)
from transfer_scheduler.services.composition import TransferServices

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/recurring-transfers", tags=["recurring-transfers"])


def _serialize(definition) -> dict:
    return RecurringTransferResponse.model_validate(definition).model_dump(
        mode="json", by_alias=True,
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_recurring_transfer(
    body: RecurringTransferCreate,
    services: TransferServices = Depends(get_services),
):
    """Create a definition and its first scheduled instance."""
    definition, first = await services.recurring.create_recurring_transfer(
        body.to_model(),
    )
    return {
        **_serialize(definition),
        "firstInstance": (
            ScheduledTransferResponse.model_validate(first).model_dump(
                mode="json", by_alias=True,
            )
            if first else None
        ),
    }


@router.get("/{recurring_id}")
async def get_recurring_transfer(
    recurring_id: UUID, services: TransferServices = Depends(get_services),
):
    return _serialize(await services.recurring.get(recurring_id))


@router.post("/{recurring_id}/pause")
async def pause_recurring_transfer(
    recurring_id: UUID, services: TransferServices = Depends(get_services),
):
    return _serialize(await services.recurring.pause(recurring_id))


@router.post("/{recurring_id}/resume")
async def resume_recurring_transfer(
    recurring_id: UUID, services: TransferServices = Depends(get_services),
):
    return _serialize(await services.recurring.resume(recurring_id))


@router.post("/{recurring_id}/cancel")
async def cancel_recurring_transfer(
    recurring_id: UUID, services: TransferServices = Depends(get_services),
):
    return _serialize(await services.recurring.cancel_recurring_transfer(recurring_id))
