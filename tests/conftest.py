import os
from collections.abc import AsyncGenerator
from typing import Any

# Settings are read at import time, so configure the environment first.
# Tests run against in-memory SQLite and a dict-backed Redis stand-in.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["REDIS_HOST"] = "localhost"
os.environ["REDIS_PORT"] = "6379"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-not-for-production"  # pragma: allowlist secret
os.environ["LOG_FORMAT"] = "console"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from elderwatch.core.redis_client import CacheManager, get_redis_client
from elderwatch.core.security import create_access_token
from elderwatch.database import get_db
from elderwatch.main import app
from elderwatch.models import caregiver_patients, metadata, user_roles, users
from elderwatch.schemas.users import PatientMetadata, ProfileMetadata
from elderwatch.services.auth_service import AuthService
from elderwatch.services.identity_service import IdentityService
from elderwatch.services.role_service import RoleService

STRONG_PASSWORD = "Str0ng!Pw"  # pragma: allowlist secret


class FakeRedis:
    """Just enough of the redis-py API for token revocation."""

    def __init__(self) -> None:
        self.store: dict[str, Any] = {}
        self.ttls: dict[str, int] = {}

    def get(self, key: str) -> Any:
        return self.store.get(key)

    def set(self, key: str, value: Any) -> bool:
        self.store[key] = value
        return True

    def setex(self, key: str, ttl: int, value: Any) -> bool:
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    def delete(self, *keys: str) -> int:
        return sum(1 for key in keys if self.store.pop(key, None) is not None)

    def exists(self, key: str) -> int:
        return int(key in self.store)

    def ping(self) -> bool:
        return True


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def auth_service(fake_redis: FakeRedis) -> AuthService:
    return AuthService(CacheManager(fake_redis))  # type: ignore[arg-type]


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession, fake_redis: FakeRedis
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the test database and Redis stand-in."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis_client] = lambda: fake_redis

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


async def make_user(
    db: AsyncSession,
    email: str,
    role: str | None,
    password: str = STRONG_PASSWORD,
    metadata: ProfileMetadata | None = None,
) -> dict:
    """Create an identity, optionally with a role, and a token for it."""
    user = await IdentityService.create_identity(
        db,
        email=email,
        password=password,
        metadata=metadata or ProfileMetadata(),
        user_type=role or "caregiver",
        email_verified=True,
    )
    if role:
        await RoleService.assign_role(db, user["id"], role)

    token = create_access_token(data={"sub": str(user["id"])})
    return {**user, "token": token, "headers": {"Authorization": f"Bearer {token}"}}


@pytest_asyncio.fixture
async def caregiver(db_session: AsyncSession) -> dict:
    return await make_user(
        db_session,
        "carol.caregiver@example.com",
        "caregiver",
        metadata=ProfileMetadata(first_name="Carol", last_name="Hughes", phone="555-0199"),
    )


@pytest_asyncio.fixture
async def patient(db_session: AsyncSession) -> dict:
    return await make_user(
        db_session,
        "paul.patient@example.com",
        "patient",
        metadata=PatientMetadata(first_name="Paul", emergency_contact="555-0111"),
    )


@pytest_asyncio.fixture
async def unassigned_user(db_session: AsyncSession) -> dict:
    """Authenticated identity with no role assignment."""
    return await make_user(db_session, "nora.norole@example.com", None)


async def count_rows(db: AsyncSession, table) -> int:
    result = await db.execute(select(func.count()).select_from(table))
    return result.scalar_one()


async def store_counts(db: AsyncSession) -> tuple[int, int, int]:
    """Row counts of the identity, role and relationship stores."""
    return (
        await count_rows(db, users),
        await count_rows(db, user_roles),
        await count_rows(db, caregiver_patients),
    )


@pytest.fixture
def patient_payload() -> dict:
    return {
        "email": "pat@example.com",
        "password": STRONG_PASSWORD,
        "metadata": {"first_name": "Ann", "phone": "555-0100"},
    }
