"""
Pytest configuration and core fixtures.

Every test gets its own in-memory SQLite database (aiosqlite, StaticPool) with
the schema created from the models. Outbound collaborators (email, work queue)
are replaced with in-process fakes and time is driven by a mutable clock.
"""

import os

# Must be set before taskgate.core.config is imported anywhere
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "true")
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENABLE_MESSAGING"] = "false"
os.environ["ENABLE_SCHEDULER"] = "false"

import re
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncGenerator
from uuid import UUID

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import StaticPool

CODE_PATTERN = re.compile(r"<b>(\d+)</b>")


class MutableClock:
    """Injectable clock; tests move it forward explicitly."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeEmailSender:
    """Records outgoing mail instead of sending it."""

    def __init__(self):
        self.sent: list[dict[str, str]] = []
        self.fail = False

    async def send(self, to: str, subject: str, html: str) -> bool:
        if self.fail:
            return False
        self.sent.append({"to": to, "subject": subject, "html": html})
        return True

    def last_code(self, to: str | None = None) -> str:
        for mail in reversed(self.sent):
            if to is None or mail["to"] == to:
                match = CODE_PATTERN.search(mail["html"])
                if match:
                    return match.group(1)
        raise AssertionError(f"No OTP email sent to {to}")


class FakeWorkQueue:
    def __init__(self):
        self.enqueued: list[dict[str, Any]] = []
        self.fail = False

    async def enqueue(self, job_id: UUID, payload: Any, policy) -> None:
        if self.fail:
            raise ConnectionError("broker unreachable")
        self.enqueued.append({"job_id": job_id, "payload": payload, "policy": policy})


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock(datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def email_sender() -> FakeEmailSender:
    return FakeEmailSender()


@pytest.fixture
def work_queue() -> FakeWorkQueue:
    return FakeWorkQueue()


@pytest.fixture
async def database():
    """Fresh in-memory database per test."""
    from taskgate.core.db import Database

    db = Database(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await db.init(create_tables=True)
    try:
        yield db
    finally:
        await db.dispose()


@pytest.fixture
async def db_session(database) -> AsyncGenerator[AsyncSession, None]:
    async with database.session() as session:
        yield session


@pytest.fixture
def otp_service(email_sender, clock):
    from taskgate.core.config import settings
    from taskgate.core.db.crud import OTPChallengeDB
    from taskgate.core.services import OtpChallengeService

    return OtpChallengeService.from_settings(
        settings, OTPChallengeDB(), email_sender, clock=clock
    )


@pytest.fixture
def token_service():
    from taskgate.core.services import SessionTokenService

    return SessionTokenService(
        secret="test-secret", algorithm="HS256", lifetime_minutes=60
    )


@pytest.fixture
def app(database, email_sender, work_queue, clock):
    """The application with every service wired to test doubles."""
    from taskgate.core.config import settings
    from taskgate.core.services import MemoryBackend, RateLimiter
    from taskgate.main import app as fastapi_app, install_services

    install_services(
        fastapi_app,
        settings,
        database,
        email_sender,
        work_queue,
        RateLimiter(MemoryBackend()),
        clock=clock,
    )
    fastapi_app.state.rabbitmq = None
    return fastapi_app


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


async def create_user(
    session: AsyncSession,
    email: str = "testuser@example.com",
    password: str = "password123",
    name: str = "Test User",
    verified: bool = True,
):
    from taskgate.core.db.crud import UserDB
    from taskgate.core.utils import hash_password

    return await UserDB().create(
        session,
        {
            "email": email,
            "name": name,
            "password_hash": hash_password(password),
            "email_verified": verified,
        },
    )


@pytest.fixture
async def test_user(db_session):
    return await create_user(db_session)


@pytest.fixture
async def other_user(db_session):
    return await create_user(db_session, email="other@example.com", name="Other User")


def auth_headers_for(app, user) -> dict[str, str]:
    token = app.state.token_service.sign(user.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(app, test_user) -> dict[str, str]:
    return auth_headers_for(app, test_user)
