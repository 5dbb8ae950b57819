"""ScheduledTransfer ORM - persists one future-dated (possibly multi-recipient) transfer.

Invariants:
    - id is UUID primary key
    - status transitions: scheduled -> executing -> completed | failed, scheduled -> cancelled
    - transaction_ids holds per-recipient result records in recipient input order
    - transaction_id mirrors the first result only for single-recipient transfers
    - (parent_recurring_id, recurrence_cycle) is unique: one instance per recurrence cycle
    - Records are never deleted; cancellation is a status transition

Design Decisions:
    - JSON columns for recipients/results: read and written whole, never queried into
    - parent_recurring_id has no ForeignKey: weak back-reference, lookup only
    - Numeric(20, 8): UFix64 precision, Decimal in Python
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    String, Text, Integer, Boolean, Numeric, DateTime, JSON, Index, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from transfer_scheduler.db.base import Base


class ScheduledTransfer(Base):
    """Scheduled transfer record, mutated only by the engine and cancellation."""
    __tablename__ = "scheduled_transfers"
    __table_args__ = (
        UniqueConstraint(
            "parent_recurring_id", "recurrence_cycle",
            name="uq_scheduled_transfers_parent_cycle",
        ),
        Index("ix_scheduled_transfers_status_date", "status", "scheduled_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    user_address: Mapped[str] = mapped_column(
        String(64), nullable=False, index=True,
    )
    title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    recipient: Mapped[str | None] = mapped_column(String(64), nullable=True)
    recipients: Mapped[list] = mapped_column(
        JSON, nullable=False, default=list,
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(20, 8), nullable=False,
    )
    amount_per_recipient: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    scheduled_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    retry_limit: Mapped[int] = mapped_column(
        Integer, nullable=False, default=3,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="scheduled",
    )
    executed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    transaction_id: Mapped[str | None] = mapped_column(
        String(128), nullable=True,
    )
    transaction_ids: Mapped[list] = mapped_column(
        JSON, nullable=False, default=list,
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    parent_recurring_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), nullable=True, index=True,
    )
    recurrence_cycle: Mapped[int | None] = mapped_column(
        Integer, nullable=True,
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
