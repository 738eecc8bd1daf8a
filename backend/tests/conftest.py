"""Pytest fixtures for RoadTracker backend tests."""

from collections.abc import AsyncGenerator
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.config import get_settings
from app.database import Base, get_db
from app.main import app
from app.models import Operator, ReportStatusCount, User
from app.models.enums import DEFAULT_OPERATOR_PERMISSIONS, ReportStatus, UserRole
from app.schemas.report import ReportCreate
from app.services.events import EventDispatcher
from app.services.notifications import NotificationDispatcher
from app.websocket.manager import ConnectionManager

# Test database URL - in-memory SQLite shared across one engine
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

CITIZEN_ID = "user-citizen"
OTHER_CITIZEN_ID = "user-other"
OPERATOR_USER_ID = "user-operator"


def make_token(sub: str, **claims: Any) -> str:
    """Sign a bearer token the way the identity provider would."""
    settings = get_settings()
    return jwt.encode({"sub": sub, **claims}, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def auth_headers(sub: str, **claims: Any) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(sub, **claims)}"}


def make_report_data(**overrides: Any) -> ReportCreate:
    """Valid report submission, with field overrides."""
    data: dict[str, Any] = {
        "type": "pothole",
        "severity": "medium",
        "location": {
            "address": "123 Market Street",
            "coordinates": {"latitude": 37.7749, "longitude": -122.4194},
            "city": "San Francisco",
        },
        "description": "Large pothole in the right lane near the intersection",
        "traffic_impact": "low",
        "safety_risk": "medium",
        "tags": ["Road", " lane "],
    }
    data.update(overrides)
    return ReportCreate.model_validate(data)


@pytest_asyncio.fixture
async def async_engine():
    """Create async engine with the full schema."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    """Sessionmaker for tests that need more than one independent session."""
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session with seeded status counters."""
    async with session_factory() as session:
        session.add_all([ReportStatusCount(status=s.value, count=0) for s in ReportStatus])
        await session.commit()
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def citizen(db_session: AsyncSession) -> User:
    user = User(
        id=CITIZEN_ID,
        email="citizen@example.com",
        name="Casey Citizen",
        role=UserRole.USER.value,
        operator=None,
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def other_citizen(db_session: AsyncSession) -> User:
    user = User(
        id=OTHER_CITIZEN_ID,
        email="other@example.com",
        name="Robin Resident",
        role=UserRole.USER.value,
        operator=None,
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def operator(db_session: AsyncSession) -> Operator:
    """An active admin user with the default operator permissions."""
    user = User(
        id=OPERATOR_USER_ID,
        email="operator@example.com",
        name="Olive Operator",
        role=UserRole.ADMIN.value,
    )
    user.operator = Operator(permissions=list(DEFAULT_OPERATOR_PERMISSIONS))
    db_session.add(user)
    await db_session.commit()
    return user.operator


@pytest.fixture
def citizen_headers() -> dict[str, str]:
    return auth_headers(CITIZEN_ID)


@pytest.fixture
def other_headers() -> dict[str, str]:
    return auth_headers(OTHER_CITIZEN_ID)


@pytest.fixture
def operator_headers() -> dict[str, str]:
    return auth_headers(OPERATOR_USER_ID)


@pytest.fixture
def broadcaster() -> MagicMock:
    """Stand-in ConnectionManager that records publishes."""
    mock = MagicMock(spec=ConnectionManager)
    mock.publish = AsyncMock(return_value=1)
    return mock


@pytest.fixture
def notifier() -> MagicMock:
    mock = MagicMock(spec=NotificationDispatcher)
    mock.notify = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def dispatcher(broadcaster, notifier) -> EventDispatcher:
    return EventDispatcher(broadcaster=broadcaster, notifier=notifier)


@pytest.fixture
def report_data():
    """Factory for valid ReportCreate payloads."""
    return make_report_data


@pytest.fixture
def token_headers():
    """Factory for Authorization headers of arbitrary subjects."""
    return auth_headers


@pytest.fixture
def bearer_token():
    """Factory for raw bearer tokens (the /ws endpoint takes them as ?token=)."""
    return make_token


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with database override."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()
