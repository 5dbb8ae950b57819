"""Root conftest - shared test configuration, database and collaborator fakes.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - Settings resolve to development mode with the scheduler disabled
    - db_manager patched so readiness probes hit the test database
    - Fake collaborators record every call for assertions

Design Decisions:
    - SQLite in-memory (StaticPool): one shared connection, no external dependency
    - Fakes over mocks: the engine only sees the collaborator protocols
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///test.db")
os.environ.setdefault("SKIP_BLOCKCHAIN_CHECKS", "true")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import asyncio  # noqa: E402
from datetime import timedelta  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession, create_async_engine, async_sessionmaker,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

import transfer_scheduler.infrastructure.database as db_module  # noqa: E402
from transfer_scheduler.config import get_settings  # noqa: E402
from transfer_scheduler.core.collaborator_protocols import (  # noqa: E402
    AuthorizationStatus, SendResult,
)
from transfer_scheduler.core.domain_types import TransferStatus, utc_now  # noqa: E402
from transfer_scheduler.db.base import Base  # noqa: E402
from transfer_scheduler.infrastructure.database import DatabaseSessionManager  # noqa: E402
from transfer_scheduler.infrastructure.recurring_store import SqlRecurringStore  # noqa: E402
from transfer_scheduler.infrastructure.transfer_store import SqlTransferStore  # noqa: E402
from transfer_scheduler.main import app  # noqa: E402
from transfer_scheduler.models.scheduled_transfer import ScheduledTransfer  # noqa: E402
from transfer_scheduler.services.composition import TransferServices  # noqa: E402
from transfer_scheduler.services.due_transfer_scheduler import DueTransferScheduler  # noqa: E402
from transfer_scheduler.services.recurrence_expander import RecurringTransferService  # noqa: E402
from transfer_scheduler.services.transfer_commands import TransferCommands  # noqa: E402
from transfer_scheduler.services.transfer_engine import TransferExecutionEngine  # noqa: E402

USER = "0x1111111111111111"


# -- Collaborator fakes --------------------------------------------------------

class FakeAuthorizationChecker:
    """Configurable AuthorizationChecker; records every checked address."""

    def __init__(self):
        self.is_valid = True
        self.max_amount = Decimal("100")
        self.error: Exception | None = None
        self.delay: float | None = None
        self.calls: list[str] = []

    async def check(self, user_address):
        self.calls.append(user_address)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return AuthorizationStatus(
            is_valid=self.is_valid,
            max_amount=self.max_amount,
            expiry_date=utc_now() + timedelta(days=30),
            auth_id="auth_1",
        )


class FakeChainExecutor:
    """Configurable ChainExecutor; succeeds unless an address is listed as failing."""

    def __init__(self):
        self.fail_for: set[str] = set()
        self.raise_for: set[str] = set()
        self.hang_for: set[str] = set()
        self.calls: list[dict] = []

    async def send(self, from_address, to_address, amount, retry_limit):
        self.calls.append({
            "from": from_address, "to": to_address,
            "amount": amount, "retry_limit": retry_limit,
        })
        if to_address in self.hang_for:
            await asyncio.sleep(10)
        if to_address in self.raise_for:
            raise RuntimeError("connection reset")
        if to_address in self.fail_for:
            return SendResult(
                success=False, transaction_id=f"tx_{len(self.calls)}",
                error="insufficient funds",
            )
        return SendResult(success=True, transaction_id=f"tx_{len(self.calls)}")


# -- Database ------------------------------------------------------------------

@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db(test_engine):
    """DatabaseSessionManager bound to the test engine, also patched as db_manager."""
    manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    manager.engine = test_engine
    manager._session_factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )
    original_manager = db_module.db_manager
    db_module.db_manager = manager
    yield manager
    db_module.db_manager = original_manager


@pytest.fixture
def transfer_store(db):
    return SqlTransferStore(db)


@pytest.fixture
def recurring_store(db):
    return SqlRecurringStore(db)


# -- Services ------------------------------------------------------------------

@pytest.fixture
def checker():
    return FakeAuthorizationChecker()


@pytest.fixture
def executor():
    return FakeChainExecutor()


@pytest.fixture
def recurring_service(recurring_store, transfer_store):
    return RecurringTransferService(recurring_store, transfer_store)


@pytest.fixture
def engine(transfer_store, checker, executor, recurring_service):
    return TransferExecutionEngine(
        transfer_store, checker, executor,
        expander=recurring_service, call_timeout_seconds=2.0,
    )


@pytest.fixture
def scheduler(transfer_store, engine):
    return DueTransferScheduler(transfer_store, engine, interval_seconds=60)


@pytest.fixture
def services(transfer_store, recurring_service, engine, scheduler, checker):
    return TransferServices(
        settings=get_settings(),
        commands=TransferCommands(transfer_store),
        recurring=recurring_service,
        engine=engine,
        scheduler=scheduler,
        authorization=checker,
    )


@pytest.fixture
async def client(services):
    """FastAPI test client with fake-backed services on app.state."""
    original = getattr(app.state, "services", None)
    app.state.services = services
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c
    app.state.services = original


@pytest.fixture
def make_transfer(transfer_store):
    """Insert a scheduled transfer; keyword overrides map onto model columns."""

    async def _make(**overrides) -> ScheduledTransfer:
        fields = {
            "user_address": USER,
            "title": "Rent",
            "recipients": [{"address": "0xaaaaaaaaaaaaaaaa"}],
            "amount": Decimal("30"),
            "amount_per_recipient": False,
            "scheduled_date": utc_now() - timedelta(minutes=1),
            "retry_limit": 3,
            "status": TransferStatus.SCHEDULED.value,
            "transaction_ids": [],
        }
        fields.update(overrides)
        return await transfer_store.add(ScheduledTransfer(**fields))

    return _make
