"""Pytest configuration and fixtures."""

import os
import re
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta
from typing import Any

# Set test environment before importing app
os.environ["ENVIRONMENT"] = "test"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["EMAIL_BACKEND"] = "console"
os.environ["SMS_BACKEND"] = "console"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from alive.database import get_session
from alive.main import app
from alive.models import Identity
from alive.models.base import utcnow
from alive.services.audit import AuditLogService
from alive.services.auth import create_token
from alive.services.codes import SecretCodes
from alive.services.credentials import CredentialService
from alive.services.email import ConsoleEmailBackend, EmailService
from alive.services.identity_store import IdentityStore
from alive.services.notifications import NotificationGateway, get_notification_gateway
from alive.services.passwords import hash_password
from alive.services.rate_limit import get_rate_limiter

USER_PASSWORD = "correct-horse-1"
ADMIN_PASSWORD = "admin-battery-2"

CODE_RE = re.compile(r"\b(\d{6})\b")


def extract_code(message: str) -> str:
    """Pull the six-digit code out of a notification body."""
    match = CODE_RE.search(message)
    assert match, f"no code in message: {message!r}"
    return match.group(1)


class RecordingGateway(NotificationGateway):
    """Notification gateway that keeps outbound messages instead of sending them."""

    def __init__(self) -> None:
        super().__init__(email_service=EmailService(ConsoleEmailBackend()))
        self.emails: list[tuple[str, str, str]] = []
        self.sms: list[tuple[str, str]] = []
        self.fail_sms = False

    async def send_email_message(self, to: str, subject: str, message: str) -> bool:
        self.emails.append((to, subject, message))
        return True

    async def send_sms(self, phone_number: str, message: str) -> bool:
        self.sms.append((phone_number, message))
        return not self.fail_sms

    def last_email_code(self) -> str:
        return extract_code(self.emails[-1][2])

    def last_sms_code(self) -> str:
        return extract_code(self.sms[-1][1])


class FakeClock:
    """Settable clock for code expiry tests."""

    def __init__(self, now: datetime | None = None):
        self.now = now or utcnow()

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """Start every test with empty rate limit windows."""
    get_rate_limiter().reset()
    yield
    get_rate_limiter().reset()


@pytest.fixture
async def test_engine():
    """Create a fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def gateway() -> RecordingGateway:
    return RecordingGateway()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(session: AsyncSession) -> IdentityStore:
    return IdentityStore(session)


@pytest.fixture
def audit(session: AsyncSession) -> AuditLogService:
    return AuditLogService(session)


@pytest.fixture
def service(
    store: IdentityStore,
    audit: AuditLogService,
    gateway: RecordingGateway,
    clock: FakeClock,
) -> CredentialService:
    """Credential service over the test session with a settable clock."""
    return CredentialService(
        store=store,
        notifications=gateway,
        audit=audit,
        codes=SecretCodes(store, clock=clock),
    )


@pytest.fixture
async def client(session: AsyncSession, gateway: RecordingGateway) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_session():
        yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_notification_gateway] = lambda: gateway

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def user(session: AsyncSession) -> Identity:
    """Create a test user with a known password."""
    identity = Identity(
        email="test@example.com",
        phone_number="+254700000001",
        national_id="10000001",
        first_name="Test",
        last_name="User",
        roles=["employee"],
        password_hash=hash_password(USER_PASSWORD),
    )
    session.add(identity)
    await session.commit()
    return identity


@pytest.fixture
async def admin_user(session: AsyncSession) -> Identity:
    """Create a test admin user."""
    identity = Identity(
        email="admin@example.com",
        phone_number="+254700000002",
        national_id="10000002",
        first_name="Admin",
        last_name="User",
        roles=["admin"],
        email_verified=True,
        phone_verified=True,
        password_hash=hash_password(ADMIN_PASSWORD),
    )
    session.add(identity)
    await session.commit()
    return identity


@pytest.fixture
def user_token(user: Identity) -> str:
    """Create a JWT token for the test user."""
    return create_token(user)


@pytest.fixture
def admin_token(admin_user: Identity) -> str:
    """Create a JWT token for the admin user."""
    return create_token(admin_user)


@pytest.fixture
def auth_headers(user_token: str) -> dict[str, str]:
    """Create authorization headers for the test user."""
    return {"Authorization": f"Bearer {user_token}"}


@pytest.fixture
def admin_headers(admin_token: str) -> dict[str, str]:
    """Create authorization headers for the admin user."""
    return {"Authorization": f"Bearer {admin_token}"}


# Helper to make authenticated requests
class AuthenticatedClient:
    """Wrapper for AsyncClient with authentication."""

    def __init__(self, client: AsyncClient, headers: dict[str, str]):
        self.client = client
        self.headers = headers

    async def get(self, url: str, **kwargs: Any) -> Any:
        kwargs.setdefault("headers", {}).update(self.headers)
        return await self.client.get(url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> Any:
        kwargs.setdefault("headers", {}).update(self.headers)
        return await self.client.post(url, **kwargs)

    async def patch(self, url: str, **kwargs: Any) -> Any:
        kwargs.setdefault("headers", {}).update(self.headers)
        return await self.client.patch(url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> Any:
        kwargs.setdefault("headers", {}).update(self.headers)
        return await self.client.delete(url, **kwargs)

    async def request(self, method: str, url: str, **kwargs: Any) -> Any:
        kwargs.setdefault("headers", {}).update(self.headers)
        return await self.client.request(method, url, **kwargs)


@pytest.fixture
def authenticated_client(client: AsyncClient, auth_headers: dict[str, str]) -> AuthenticatedClient:
    """Create an authenticated test client."""
    return AuthenticatedClient(client, auth_headers)


@pytest.fixture
def admin_client(client: AsyncClient, admin_headers: dict[str, str]) -> AuthenticatedClient:
    """Create an authenticated admin test client."""
    return AuthenticatedClient(client, admin_headers)
