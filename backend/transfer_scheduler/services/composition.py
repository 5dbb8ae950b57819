"""Composition Root - wires stores, collaborators and services from Settings.

Invariants:
    - Exactly one place decides between Flow-backed and development collaborators
    - The engine, scheduler and HTTP routes share one TransferServices instance
    - aclose() releases every HTTP client the composition opened

Design Decisions:
    - Explicit construction over a DI container: the graph is small and static
    - Flow mode without a signing relay is a startup error, not a silent downgrade
"""

import logging
from dataclasses import dataclass, field

from transfer_scheduler.config import Settings
from transfer_scheduler.core.collaborator_protocols import (
    AuthorizationChecker, ChainExecutor, TransferEvent,
)
from transfer_scheduler.infrastructure.database import DatabaseSessionManager
from transfer_scheduler.infrastructure.dev_collaborators import (
    DevelopmentAuthorizationChecker, DevelopmentChainExecutor,
)
from transfer_scheduler.infrastructure.flow_access_client import (
    FlowAccessClient, SigningRelayClient,
)
from transfer_scheduler.infrastructure.flow_collaborators import (
    FlowAuthorizationChecker, FlowChainExecutor,
)
from transfer_scheduler.infrastructure.recurring_store import SqlRecurringStore
from transfer_scheduler.infrastructure.transfer_store import SqlTransferStore
from transfer_scheduler.services.due_transfer_scheduler import DueTransferScheduler
from transfer_scheduler.services.recurrence_expander import RecurringTransferService
from transfer_scheduler.services.transfer_commands import TransferCommands
from transfer_scheduler.services.transfer_engine import TransferExecutionEngine

logger = logging.getLogger(__name__)


@dataclass
class TransferServices:
    """Everything the HTTP layer and the lifespan hook need."""
    settings: Settings
    commands: TransferCommands
    recurring: RecurringTransferService
    engine: TransferExecutionEngine
    scheduler: DueTransferScheduler
    authorization: AuthorizationChecker
    _clients: list = field(default_factory=list)

    async def aclose(self) -> None:
        self.scheduler.stop()
        for client in self._clients:
            await client.aclose()


async def log_transfer_event(event: TransferEvent) -> None:
    logger.info(
        f"Transfer event {event.kind.value}",
        extra={"transfer_id": str(event.transfer_id), "user_address": event.user_address},
    )


def build_collaborators(
    settings: Settings,
) -> tuple[AuthorizationChecker, ChainExecutor, list]:
    """Return (checker, executor, clients-to-close) for the configured mode."""
    if settings.development_mode:
        logger.warning(
            "Development mode: authorization checks and chain sends are simulated",
        )
        return (
            DevelopmentAuthorizationChecker(settings.dev_max_amount),
            DevelopmentChainExecutor(),
            [],
        )

    if not settings.signer_relay_url:
        raise ValueError(
            "SIGNER_RELAY_URL is required when SERVICE_ACCOUNT_ADDRESS is set",
        )
    access = FlowAccessClient(
        settings.flow_access_node,
        seal_poll_interval_seconds=settings.seal_poll_interval_seconds,
        seal_timeout_seconds=settings.seal_timeout_seconds,
    )
    relay = SigningRelayClient(
        settings.signer_relay_url, proposer=settings.service_account_address,
    )
    checker = FlowAuthorizationChecker(access, settings.scheduled_transfer_contract)
    executor = FlowChainExecutor(access, relay, settings.service_account_address)
    logger.info(f"Using Flow access node {settings.flow_access_node}")
    return checker, executor, [access, relay]


def build_transfer_services(
    settings: Settings, db: DatabaseSessionManager,
) -> TransferServices:
    transfers = SqlTransferStore(db)
    recurring = RecurringTransferService(SqlRecurringStore(db), transfers)
    checker, executor, clients = build_collaborators(settings)

    engine = TransferExecutionEngine(
        transfers, checker, executor,
        expander=recurring,
        call_timeout_seconds=settings.collaborator_timeout_seconds,
    )
    engine.subscribe(log_transfer_event)
    scheduler = DueTransferScheduler(
        transfers, engine,
        interval_seconds=settings.scheduler_interval_seconds,
        batch_size=settings.scheduler_batch_size,
    )
    return TransferServices(
        settings=settings,
        commands=TransferCommands(transfers),
        recurring=recurring,
        engine=engine,
        scheduler=scheduler,
        authorization=checker,
        _clients=clients,
    )
