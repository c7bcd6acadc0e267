"""
Pytest fixtures for test database, client, and authentication.

Tests run against an in-memory SQLite database (aiosqlite) that is created
and dropped per test. Redis is disabled, so the analytics cache misses and
live notification pushes go through whatever transport a test installs.
"""

import os

os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import datetime, timezone, timedelta
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from tripshare.main import app
from tripshare.db.base import Base
from tripshare.db.session import get_db
from tripshare.core.security import create_access_token
from tripshare.infrastructure.notification_transport import NotificationTransport, set_transport
from tripshare.models import Company, Trip, MembershipSource
from tripshare.schemas.booking import BookingCreate
from tripshare.services.authorization import register_company, link_user_to_company

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    poolclass=StaticPool,
    connect_args={"check_same_thread": False},
)
TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

OPERATOR_ID = "operator-1"
STAFF_ID = "staff-1"
TRAVELER_A = "traveler-a"
TRAVELER_B = "traveler-b"
OUTSIDER_ID = "outsider"


class RecordingTransport(NotificationTransport):
    """Captures live pushes instead of publishing them."""

    def __init__(self):
        self.published: list[tuple[str, dict]] = []

    async def publish(self, recipient_id: str, payload: dict) -> bool:
        self.published.append((recipient_id, payload))
        return True


class FailingTransport(NotificationTransport):
    async def publish(self, recipient_id: str, payload: dict) -> bool:
        raise ConnectionError("push channel unavailable")


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield session, then drop tables for isolation."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def transport() -> RecordingTransport:
    recording = RecordingTransport()
    set_transport(recording)
    yield recording
    set_transport(None)


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB dependency with the test session."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def headers_for(user_id: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': user_id})}"}


@pytest.fixture
def operator_headers() -> dict:
    return headers_for(OPERATOR_ID)


@pytest.fixture
def staff_headers() -> dict:
    return headers_for(STAFF_ID)


@pytest.fixture
def traveler_a_headers() -> dict:
    return headers_for(TRAVELER_A)


@pytest.fixture
def traveler_b_headers() -> dict:
    return headers_for(TRAVELER_B)


@pytest.fixture
def outsider_headers() -> dict:
    return headers_for(OUTSIDER_ID)


@pytest_asyncio.fixture
async def company(db_session: AsyncSession) -> Company:
    """Company owned by OPERATOR_ID, with STAFF_ID linked through their profile."""
    company = await register_company(db_session, name="رحلات النيل", owner_id=OPERATOR_ID)
    await link_user_to_company(db_session, STAFF_ID, company.id, MembershipSource.PROFILE)
    await db_session.commit()
    await db_session.refresh(company)
    return company


async def make_trip(db_session: AsyncSession, company: Company, **overrides) -> Trip:
    values = dict(
        company_id=company.id,
        title="رحلة دهب",
        destination="دهب",
        price_label="500 جنيه",
        unit_price=Decimal("500"),
        transportation_type="bus-48",
        start_date=datetime.now(timezone.utc) + timedelta(days=14),
    )
    values.update(overrides)
    trip = Trip(**values)
    db_session.add(trip)
    await db_session.commit()
    await db_session.refresh(trip)
    return trip


@pytest_asyncio.fixture
async def trip(db_session: AsyncSession, company: Company) -> Trip:
    """bus-48 trip priced at 500 per seat, two weeks out."""
    return await make_trip(db_session, company)


def booking_payload(trip_id: int, **overrides) -> dict:
    payload = {
        "trip_id": trip_id,
        "seat_count": 1,
        "date": (datetime.now(timezone.utc) + timedelta(days=14)).isoformat(),
        "phone": "01012345678",
        "first_name": "أحمد",
        "last_name": "علي",
    }
    payload.update(overrides)
    return payload


def booking_request(trip: Trip, seats: list[str] | None = None, seat_count: int | None = None, **extra) -> BookingCreate:
    seats = seats or []
    return BookingCreate(
        trip_id=trip.id,
        seat_count=seat_count or max(len(seats), 1),
        seat_labels=seats,
        date=datetime.now(timezone.utc) + timedelta(days=14),
        phone="01112345678",
        first_name=extra.pop("first_name", "منى"),
        **extra,
    )
