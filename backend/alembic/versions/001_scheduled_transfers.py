"""Initial schema - scheduled_transfers, recurring_transfers.

Revision ID: 001_scheduled_transfers
Revises: None
Create Date: 2026-10-16

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_scheduled_transfers"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "recurring_transfers",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_address", sa.String(64), nullable=False),
        sa.Column("title", sa.String(200), nullable=True),
        sa.Column("message", sa.Text, nullable=True),
        sa.Column("recipients", sa.JSON, nullable=False),
        sa.Column("amount", sa.Numeric(20, 8), nullable=False),
        sa.Column("amount_per_recipient", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("retry_limit", sa.Integer, nullable=False, server_default="3"),
        sa.Column("frequency", sa.String(20), nullable=False),
        sa.Column("interval", sa.Integer, nullable=False, server_default="1"),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("max_occurrences", sa.Integer, nullable=True),
        sa.Column("occurrences_generated", sa.Integer, nullable=False, server_default="0"),
        sa.Column("next_execution_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_instance_id", UUID(as_uuid=True), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        "ix_recurring_transfers_user_address", "recurring_transfers", ["user_address"],
    )

    op.create_table(
        "scheduled_transfers",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_address", sa.String(64), nullable=False),
        sa.Column("title", sa.String(200), nullable=True),
        sa.Column("message", sa.Text, nullable=True),
        sa.Column("recipient", sa.String(64), nullable=True),
        sa.Column("recipients", sa.JSON, nullable=False),
        sa.Column("amount", sa.Numeric(20, 8), nullable=False),
        sa.Column("amount_per_recipient", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("scheduled_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("retry_limit", sa.Integer, nullable=False, server_default="3"),
        sa.Column("status", sa.String(20), nullable=False, server_default="scheduled"),
        sa.Column("executed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("transaction_id", sa.String(128), nullable=True),
        sa.Column("transaction_ids", sa.JSON, nullable=False),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("parent_recurring_id", UUID(as_uuid=True), nullable=True),
        sa.Column("recurrence_cycle", sa.Integer, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint(
            "parent_recurring_id", "recurrence_cycle",
            name="uq_scheduled_transfers_parent_cycle",
        ),
    )
    op.create_index(
        "ix_scheduled_transfers_status_date", "scheduled_transfers",
        ["status", "scheduled_date"],
    )
    op.create_index(
        "ix_scheduled_transfers_user_address", "scheduled_transfers", ["user_address"],
    )
    op.create_index(
        "ix_scheduled_transfers_parent_recurring_id", "scheduled_transfers",
        ["parent_recurring_id"],
    )


def downgrade() -> None:
    op.drop_index("ix_scheduled_transfers_parent_recurring_id", "scheduled_transfers")
    op.drop_index("ix_scheduled_transfers_user_address", "scheduled_transfers")
    op.drop_index("ix_scheduled_transfers_status_date", "scheduled_transfers")
    op.drop_table("scheduled_transfers")
    op.drop_index("ix_recurring_transfers_user_address", "recurring_transfers")
    op.drop_table("recurring_transfers")
