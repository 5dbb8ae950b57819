"""Transfer Schemas - Pydantic models for scheduled and recurring transfer endpoints.

Invariants:
    - Flow addresses are 0x + 16 hex digits
    - amount > 0; dates must carry a timezone
    - A create request names at least one recipient (recipients list or legacy recipient)
    - retryLimit is 0-10

Design Decisions:
    - alias_generator=to_camel with populate_by_name: clients send camelCase, tests and
      services can still build models with snake_case names
    - to_model() builds the ORM record; routes stay free of field copying
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from pydantic import (
    BaseModel, ConfigDict, Field, field_validator, model_validator,
)
from pydantic.alias_generators import to_camel

from transfer_scheduler.core.domain_types import (
    DEFAULT_RETRY_LIMIT, RecurrenceFrequency,
)
from transfer_scheduler.models.recurring_transfer import RecurringTransfer
from transfer_scheduler.models.scheduled_transfer import ScheduledTransfer

FLOW_ADDRESS_PATTERN = r"^0x[0-9a-fA-F]{16}$"

FlowAddress = Annotated[str, Field(pattern=FLOW_ADDRESS_PATTERN)]
PositiveAmount = Annotated[Decimal, Field(gt=0, max_digits=20, decimal_places=8)]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True,
    )


def _require_timezone(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        raise ValueError("datetime must include a timezone offset")
    return value


class RecipientIn(CamelModel):
    address: FlowAddress
    amount: PositiveAmount | None = None


class _TransferFields(CamelModel):
    user_address: FlowAddress
    title: str | None = Field(None, max_length=200)
    message: str | None = Field(None, max_length=2000)
    recipients: list[RecipientIn] = Field(default_factory=list, max_length=100)
    recipient: FlowAddress | None = None
    amount: PositiveAmount
    amount_per_recipient: bool = False
    retry_limit: int = Field(DEFAULT_RETRY_LIMIT, ge=0, le=10)

    @model_validator(mode="after")
    def require_recipient(self):
        if not self.recipients and not self.recipient:
            raise ValueError("at least one recipient is required")
        return self

    def _recipient_dicts(self) -> list[dict]:
        return [
            {
                "address": r.address,
                "amount": str(r.amount) if r.amount is not None else None,
            }
            for r in self.recipients
        ]


class ScheduledTransferCreate(_TransferFields):
    """Create request for a one-off scheduled transfer."""
    scheduled_date: datetime

    @field_validator("scheduled_date")
    @classmethod
    def check_timezone(cls, v: datetime) -> datetime:
        return _require_timezone(v)

    def to_model(self) -> ScheduledTransfer:
        return ScheduledTransfer(
            user_address=self.user_address,
            title=self.title,
            message=self.message,
            recipient=self.recipient,
            recipients=self._recipient_dicts(),
            amount=self.amount,
            amount_per_recipient=self.amount_per_recipient,
            scheduled_date=self.scheduled_date,
            retry_limit=self.retry_limit,
        )


class RecurringTransferCreate(_TransferFields):
    """Create request for a recurrence definition."""
    frequency: RecurrenceFrequency
    interval: int = Field(1, ge=1, le=365)
    start_date: datetime
    end_date: datetime | None = None
    max_occurrences: int | None = Field(None, ge=1)

    @field_validator("start_date", "end_date")
    @classmethod
    def check_timezone(cls, v: datetime | None) -> datetime | None:
        return _require_timezone(v)

    @model_validator(mode="after")
    def check_window(self):
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("endDate must not precede startDate")
        return self

    def to_model(self) -> RecurringTransfer:
        recipients = self._recipient_dicts() or [
            {"address": self.recipient, "amount": None},
        ]
        return RecurringTransfer(
            user_address=self.user_address,
            title=self.title,
            message=self.message,
            recipients=recipients,
            amount=self.amount,
            amount_per_recipient=self.amount_per_recipient,
            retry_limit=self.retry_limit,
            frequency=self.frequency.value,
            interval=self.interval,
            start_date=self.start_date,
            end_date=self.end_date,
            max_occurrences=self.max_occurrences,
        )


class ScheduledTransferResponse(CamelModel):
    id: UUID
    user_address: str
    title: str | None = None
    message: str | None = None
    recipient: str | None = None
    recipients: list[dict]
    amount: Decimal
    amount_per_recipient: bool
    scheduled_date: datetime
    retry_limit: int
    status: str
    executed_at: datetime | None = None
    transaction_id: str | None = None
    transaction_ids: list[dict]
    error_message: str | None = None
    parent_recurring_id: UUID | None = None
    recurrence_cycle: int | None = None
    created_at: datetime | None = None


class RecurringTransferResponse(CamelModel):
    id: UUID
    user_address: str
    title: str | None = None
    recipients: list[dict]
    amount: Decimal
    amount_per_recipient: bool
    retry_limit: int
    frequency: str
    interval: int
    start_date: datetime
    end_date: datetime | None = None
    max_occurrences: int | None = None
    occurrences_generated: int
    next_execution_date: datetime | None = None
    last_instance_id: UUID | None = None
    status: str
