"""
Pytest fixtures for the test database, HTTP client and seeded facilities.

Each test gets its own SQLite file (aiosqlite). The engine opens every
transaction with BEGIN IMMEDIATE, like in development, so concurrent
admissions in tests go through the same serialization as in a real run.
Sessions used for seeding or assertions must not be left inside a
transaction, or they hold the write lock.
"""

import os

os.environ["REDIS_ENABLED"] = "false"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["FACILITY_TIMEZONE"] = "UTC"

from datetime import date, datetime, time, timedelta
from types import SimpleNamespace
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from facility_access.main import app
from facility_access.api.deps import get_now
from facility_access.db.base import Base
from facility_access.db.session import create_engine, get_db
from facility_access.models.facility import Facility, EntranceToken
from facility_access.models.subscription import Subscription
from facility_access.models.time_slot import TimeSlot
from facility_access.schemas.member import MemberProfile
from facility_access.services.interfaces.notifier import FacilityEvent, Notifier
from facility_access.services.notifier_factory import get_notifier

SESSION_DATE = date(2025, 3, 3)  # a Monday


class RecordingNotifier(Notifier):
    """Keeps published events for assertions."""

    def __init__(self):
        self.events: list[FacilityEvent] = []

    async def publish(self, event: FacilityEvent) -> bool:
        self.events.append(event)
        return True


class Clock:
    def __init__(self, now: datetime):
        self.now = now


@pytest.fixture
def session_date() -> date:
    return SESSION_DATE


@pytest.fixture
def at():
    """Naive facility-local datetime on the test session date."""

    def _at(hour: int, minute: int = 0, second: int = 0, day: date = SESSION_DATE) -> datetime:
        return datetime.combine(day, time(hour, minute, second))

    return _at


@pytest.fixture
def make_member():
    def _make(member_id: int, gender: str = "male", tier: str = "student") -> MemberProfile:
        return MemberProfile(id=member_id, gender=gender, tier=tier)

    return _make


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    """Create tables in a fresh SQLite file, dispose afterwards."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'facility_access.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def clock(at) -> Clock:
    return Clock(at(8, 30))


@pytest_asyncio.fixture(scope="function")
async def client(session_factory, clock, notifier) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with a per-request test session, a pinned clock and a recording notifier."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            finally:
                if session.in_transaction():
                    await session.rollback()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_now] = lambda: clock.now
    app.dependency_overrides[get_notifier] = lambda: notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def pool(db_session: AsyncSession) -> SimpleNamespace:
    """
    Scheduled facility with three daily sessions:
    08:00-10:00 open (capacity 2), 10:00-12:00 male (20), 18:00-19:00 privileged (10).
    """
    facility = Facility(code="pool", name="Swimming Pool", kind="scheduled", restriction="open")
    facility.tokens = [EntranceToken(token="POOL-MAIN-0001", label="main entrance")]
    morning = TimeSlot(start_time=time(8, 0), end_time=time(10, 0), capacity=2, restriction="open")
    late = TimeSlot(start_time=time(10, 0), end_time=time(12, 0), capacity=20, restriction="male")
    evening = TimeSlot(start_time=time(18, 0), end_time=time(19, 0), capacity=10, restriction="privileged")
    facility.time_slots = [morning, late, evening]
    db_session.add(facility)
    await db_session.commit()
    return SimpleNamespace(
        facility=facility,
        token="POOL-MAIN-0001",
        morning=morning,
        late=late,
        evening=evening,
    )


@pytest_asyncio.fixture
async def gym(db_session: AsyncSession) -> SimpleNamespace:
    """Open-access facility, no time slots, three admissions per day."""
    facility = Facility(code="gym", name="Gym", kind="open_access", daily_capacity=3, restriction="open")
    facility.tokens = [EntranceToken(token="GYM-0001")]
    db_session.add(facility)
    await db_session.commit()
    return SimpleNamespace(facility=facility, token="GYM-0001")


@pytest.fixture
def subscribe(db_session: AsyncSession):
    """Create subscriptions: `await subscribe(facility, member_id, ...)`."""

    async def _subscribe(
        facility: Facility,
        member_id: int,
        status: str = "active",
        payment_due: bool = False,
        next_payment_date: date = SESSION_DATE + timedelta(days=30),
    ) -> Subscription:
        subscription = Subscription(
            member_id=member_id,
            facility_id=facility.id,
            status=status,
            payment_due=payment_due,
            next_payment_date=next_payment_date,
        )
        db_session.add(subscription)
        await db_session.commit()
        return subscription

    return _subscribe


@pytest.fixture
def flaky_execute(monkeypatch):
    """`flaky_execute(session, failures=1)`: the session's first executes raise OperationalError."""

    def _patch(session: AsyncSession, failures: int = 1) -> list:
        real_execute = session.execute
        calls = []

        async def execute(*args, **kwargs):
            calls.append(1)
            if len(calls) <= failures:
                raise OperationalError("SELECT", {}, Exception("server closed the connection unexpectedly"))
            return await real_execute(*args, **kwargs)

        monkeypatch.setattr(session, "execute", execute)
        return calls

    return _patch
