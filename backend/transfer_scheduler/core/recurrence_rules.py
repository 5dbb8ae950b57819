"""Recurrence Rules - occurrence date arithmetic for recurring transfer definitions.

Invariants:
    - occurrence_date(start, freq, interval, k) is computed from start, never chained,
      so month-end dates clamp per month without drift (Jan 31 -> Feb 28 -> Mar 31)
    - Occurrence 0 is start_date itself
    - A definition is exhausted when max_occurrences is reached or the next date
      falls after end_date

Design Decisions:
    - Calendar arithmetic via the calendar module: monthly/yearly steps are not fixed
      timedeltas
"""

import calendar
from datetime import datetime, timedelta

from transfer_scheduler.core.domain_types import RecurrenceFrequency, ensure_utc


def _add_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def occurrence_date(
    start_date: datetime,
    frequency: str,
    interval: int,
    occurrence: int,
) -> datetime:
    """Scheduled date of the `occurrence`-th instance (0-based)."""
    if interval < 1:
        raise ValueError(f"interval must be >= 1, got {interval}")
    if occurrence < 0:
        raise ValueError(f"occurrence must be >= 0, got {occurrence}")
    start = ensure_utc(start_date)
    steps = interval * occurrence
    freq = RecurrenceFrequency(frequency)
    if freq == RecurrenceFrequency.DAILY:
        return start + timedelta(days=steps)
    if freq == RecurrenceFrequency.WEEKLY:
        return start + timedelta(weeks=steps)
    if freq == RecurrenceFrequency.MONTHLY:
        return _add_months(start, steps)
    return _add_months(start, 12 * steps)


def is_exhausted(
    occurrence: int,
    next_date: datetime,
    max_occurrences: int | None,
    end_date: datetime | None,
) -> bool:
    """True when `occurrence` (0-based) must not be generated."""
    if max_occurrences is not None and occurrence >= max_occurrences:
        return True
    if end_date is not None and ensure_utc(next_date) > ensure_utc(end_date):
        return True
    return False
