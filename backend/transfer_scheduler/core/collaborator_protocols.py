"""Collaborator Protocols - external services the execution engine consumes.

Invariants:
    - AuthorizationChecker.check is consulted fresh per execution attempt, never cached
    - ChainExecutor.send is called once per recipient; retry_limit passed through verbatim
    - ChainExecutor reports failure in SendResult, but callers still guard against raises

Design Decisions:
    - Plain dataclasses for results: collaborators may be Flow-backed, simulated or fakes
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Awaitable, Callable, Protocol
from uuid import UUID

from transfer_scheduler.core.domain_types import TransferEventKind, utc_now


@dataclass
class AuthorizationStatus:
    """Snapshot of a user's on-chain scheduled-transfer authorization."""
    is_valid: bool
    max_amount: Decimal
    expiry_date: datetime | None = None
    has_authorization: bool = True
    auth_id: str | None = None
    message: str | None = None

    def to_dict(self) -> dict:
        return {
            "hasAuthorization": self.has_authorization,
            "isValid": self.is_valid,
            "authId": self.auth_id,
            "maxAmount": str(self.max_amount),
            "expiryDate": self.expiry_date.isoformat() if self.expiry_date else None,
            "message": self.message,
        }


@dataclass
class SendResult:
    """Outcome of one on-chain send."""
    success: bool
    transaction_id: str | None = None
    error: str | None = None


@dataclass
class TransferEvent:
    """Outbound notification emitted by the execution engine."""
    kind: TransferEventKind
    transfer_id: UUID
    user_address: str
    payload: dict = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=utc_now)


TransferEventListener = Callable[[TransferEvent], Awaitable[None]]


class AuthorizationChecker(Protocol):
    async def check(self, user_address: str) -> AuthorizationStatus: ...


class ChainExecutor(Protocol):
    async def send(
        self, from_address: str, to_address: str,
        amount: Decimal, retry_limit: int,
    ) -> SendResult: ...


class RecurrenceExpander(Protocol):
    async def generate_next_instance(
        self, recurring_id: UUID, completed_cycle: int | None = None,
    ): ...
