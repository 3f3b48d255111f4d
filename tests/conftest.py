"""
ScanAlert Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Unit tests (no database, no network):
    ├── mock_db_session: AsyncMock standing in for AsyncSession
    ├── mock_sender: AsyncMock NotificationSender returning a fixed SID
    └── sample_student: an unsaved Student row

    Endpoint tests:
    ├── session_factory: in-memory SQLite (aiosqlite) with all tables created
    ├── fake_sender: FakeSmsSender that records every send attempt
    └── test_client: HTTPX AsyncClient with get_db_session/get_sms_sender overridden
"""

import os

# Override settings for testing BEFORE any scanalert imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["TWILIO_ACCOUNT_SID"] = "ACtest00000000000000000000000000"
os.environ["TWILIO_AUTH_TOKEN"] = "test-token-not-real"
os.environ["TWILIO_PHONE_NUMBER"] = "+15005550006"
os.environ["LOG_LEVEL"] = "WARNING"

from typing import List, Optional, Tuple  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import func, select  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from scanalert.database import Base, get_db_session  # noqa: E402
from scanalert.models.scan_record import ScanRecord  # noqa: E402
from scanalert.models.student import Student  # noqa: E402
from scanalert.services.notification_base import NotificationSender  # noqa: E402
from scanalert.services.twilio_service import get_sms_sender  # noqa: E402


class FakeSmsSender(NotificationSender):
    """
    In-memory notification sender.

    Every call is recorded in `sent` before `fail_with` (if set) is raised,
    so tests can count attempts on both success and failure paths.
    """

    def __init__(self):
        self.sent: List[Tuple[str, str]] = []
        self.fail_with: Optional[Exception] = None
        self.healthy = True

    async def send(self, to: str, body: str) -> str:
        self.sent.append((to, body))
        if self.fail_with is not None:
            raise self.fail_with
        return f"SM{len(self.sent):032d}"

    async def health_check(self) -> bool:
        return self.healthy


# ══════════════════════════════════════════════════════════════════════════
# Unit Test Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_db_session():
    """
    Usage:
        mock_db_session.execute.return_value.scalars.return_value.first.return_value = student
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def mock_sender():
    sender = AsyncMock(spec=NotificationSender)
    sender.send = AsyncMock(return_value="SM00000000000000000000000000000001")
    return sender


@pytest.fixture
def sample_student():
    return Student(reg_number="S100", name="Asha", parent_number="+911234567890")


# ══════════════════════════════════════════════════════════════════════════
# Endpoint Test Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def session_factory():
    """Fresh in-memory database per test, shared by every session it hands out."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def fake_sender():
    return FakeSmsSender()


@pytest_asyncio.fixture
async def test_client(session_factory, fake_sender):
    """
    HTTPX AsyncClient talking to the FastAPI app through ASGITransport,
    with the database and SMS sender swapped for test doubles.
    """
    from scanalert.main import app

    async def override_db_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_sms_sender] = lambda: fake_sender

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def seed_students(session_factory):
    """Callable that inserts students: await seed_students(("S100", "Asha", "+91..."), ...)."""

    async def _seed(*rows: Tuple[str, str, str]) -> None:
        async with session_factory() as session:
            for reg_number, name, parent_number in rows:
                session.add(
                    Student(reg_number=reg_number, name=name, parent_number=parent_number)
                )
            await session.commit()

    return _seed


@pytest_asyncio.fixture
async def count_scan_records(session_factory):
    async def _count() -> int:
        async with session_factory() as session:
            result = await session.execute(select(func.count(ScanRecord.id)))
            return result.scalar_one()

    return _count
