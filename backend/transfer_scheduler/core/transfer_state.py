"""Transfer State Machine - legal status transitions for scheduled transfers.

Invariants:
    - scheduled -> executing | cancelled | failed
    - executing -> completed | failed
    - Terminal statuses (completed, failed, cancelled) admit no transitions
    - Only `scheduled` transfers can be executed or cancelled

Design Decisions:
    - Explicit ALLOWED table over scattered if-chains: every edge visible in one place
    - scheduled -> failed exists for the engine's forced-failure path (unauthorized,
      unexpected pre-flight errors); cancellation never takes it
"""

from transfer_scheduler.core.domain_types import TransferStatus, TERMINAL_STATUSES
from transfer_scheduler.core.errors import ErrorContext, InvalidTransferStateError


ALLOWED: dict[TransferStatus, frozenset[TransferStatus]] = {
    TransferStatus.SCHEDULED: frozenset({
        TransferStatus.EXECUTING, TransferStatus.CANCELLED, TransferStatus.FAILED,
    }),
    TransferStatus.EXECUTING: frozenset({
        TransferStatus.COMPLETED, TransferStatus.FAILED,
    }),
    TransferStatus.COMPLETED: frozenset(),
    TransferStatus.FAILED: frozenset(),
    TransferStatus.CANCELLED: frozenset(),
}


def can_transition(current: str, new: str) -> bool:
    try:
        return TransferStatus(new) in ALLOWED[TransferStatus(current)]
    except ValueError:
        return False


def assert_transition(
    current: str, new: str, context: ErrorContext | None = None,
) -> None:
    """Raise InvalidTransferStateError unless current -> new is a legal edge."""
    if not can_transition(current, new):
        raise InvalidTransferStateError(
            current, f"transition to {new}", context,
        )


def is_terminal(status: str) -> bool:
    try:
        return TransferStatus(status) in TERMINAL_STATUSES
    except ValueError:
        return False


def check_executable(status: str, context: ErrorContext | None = None) -> None:
    """Execution precondition: the engine must observe `scheduled`."""
    if status != TransferStatus.SCHEDULED.value:
        raise InvalidTransferStateError(status, "execute", context)


def check_cancellable(status: str, context: ErrorContext | None = None) -> None:
    """Cancellation precondition: only `scheduled` transfers are cancellable."""
    if status != TransferStatus.SCHEDULED.value:
        raise InvalidTransferStateError(status, "cancel", context)
