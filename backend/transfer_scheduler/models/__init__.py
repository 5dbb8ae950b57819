"""ORM Models - SQLAlchemy declarative models for all domain entities.

Invariants:
    - All models inherit from Base (db/base.py)

Design Decisions:
    - One file per entity
    - All models imported here so Base.metadata is complete before create_all/autogenerate
"""

from transfer_scheduler.models.scheduled_transfer import ScheduledTransfer  # noqa: F401
from transfer_scheduler.models.recurring_transfer import RecurringTransfer  # noqa: F401
