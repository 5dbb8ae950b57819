"""RecurringTransfer ORM - a recurrence definition that spawns ScheduledTransfer instances.

Invariants:
    - status: active | paused | cancelled | completed
    - occurrences_generated counts instances created so far (next cycle index)
    - next_execution_date is the scheduled_date of the latest generated instance
    - Only an active definition generates instances

Design Decisions:
    - Instances point back via ScheduledTransfer.parent_recurring_id (no relationship()):
      the engine never loads a definition while executing an instance
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import String, Text, Integer, Boolean, Numeric, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from transfer_scheduler.db.base import Base


class RecurringTransfer(Base):
    """Recurrence definition."""
    __tablename__ = "recurring_transfers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    user_address: Mapped[str] = mapped_column(
        String(64), nullable=False, index=True,
    )
    title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    recipients: Mapped[list] = mapped_column(
        JSON, nullable=False, default=list,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(20, 8), nullable=False)
    amount_per_recipient: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    retry_limit: Mapped[int] = mapped_column(
        Integer, nullable=False, default=3,
    )
    frequency: Mapped[str] = mapped_column(String(20), nullable=False)
    interval: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1,
    )
    start_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    end_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    max_occurrences: Mapped[int | None] = mapped_column(
        Integer, nullable=True,
    )
    occurrences_generated: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
    )
    next_execution_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    last_instance_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), nullable=True,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="active",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
