"""
Pytest configuration and fixtures for the back-office tests
"""

import asyncio
import os
import sys
import tempfile

# Test settings must be in place before backoffice.config is imported
_TEST_DB_DIR = tempfile.mkdtemp(prefix="backoffice-test-")
TEST_DATABASE_URL = f"sqlite+aiosqlite:///{os.path.join(_TEST_DB_DIR, 'test.db')}"  # noqa: PTH118

os.environ.setdefault("DATABASE_URL", TEST_DATABASE_URL)
os.environ.setdefault("JWT_SECRET", "test-access-secret-5f1c2a9e7b3d4c6a8e0f")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret-9a7b5c3d1e2f4a6b8c0d")
os.environ.setdefault("MFA_ENCRYPTION_KEY", "test-mfa-encryption-key-3c5e7a9b1d2f")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("MFA_BACKUP_CODES_COUNT", "8")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))  # noqa: PTH100, PTH118, PTH120

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from backoffice.constants.roles import RoleName  # noqa: E402
from backoffice.database import Base, get_db  # noqa: E402
from backoffice.main import app  # noqa: E402
from backoffice.services.auth_service import AuthService  # noqa: E402
from backoffice.services.credential_store import SqlAlchemyCredentialStore  # noqa: E402
from backoffice.services.token_service import TokenService  # noqa: E402
from utils.fakes import FakeCredentialStore  # noqa: E402
from utils.totp import current_code  # noqa: E402

# NullPool: every session opens its own connection, so the database can be
# used from the TestClient's event loop and from asyncio.run() alike
test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


async def _override_get_db():
    async with TestSessionLocal() as session:
        yield session


async def _reset_schema():
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


async def _drop_schema():
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


def run(coro):
    """Run a coroutine from a synchronous test."""
    return asyncio.run(coro)


# ============== Database ==============


@pytest.fixture(scope="function")
def setup_test_database():
    """Fresh schema for each test that touches the database."""
    run(_reset_schema())
    yield
    run(_drop_schema())


@pytest.fixture(scope="function")
async def test_db():
    """Database session with a fresh schema, for async store tests."""
    await _reset_schema()
    async with TestSessionLocal() as session:
        yield session
    await _drop_schema()


# ============== HTTP ==============


@pytest.fixture
def client(setup_test_database):
    """Test client for the application with the test database"""
    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


async def _create_account(email: str, password: str, role: RoleName, is_active: bool = True) -> dict:
    async with TestSessionLocal() as session:
        service = AuthService(SqlAlchemyCredentialStore(session))
        view = await service.create_account(email, password, role=role, name=email.split("@")[0])
        if not is_active:
            await SqlAlchemyCredentialStore(session).update_account(view.id, is_active=False)
        return {"id": view.id, "email": email, "password": password}


@pytest.fixture
def create_account(setup_test_database):
    """Factory creating accounts in the test database."""

    def _factory(email: str, password: str = "Password@123", role: RoleName = RoleName.USER, is_active: bool = True):
        return run(_create_account(email, password, role, is_active))

    return _factory


@pytest.fixture
def test_user(create_account) -> dict:
    return create_account("user@example.com", "UserPass@123", RoleName.USER)


@pytest.fixture
def test_admin(create_account) -> dict:
    return create_account("admin@example.com", "AdminPass@123", RoleName.ADMIN)


@pytest.fixture
def enrolled_admin(client, test_admin) -> dict:
    """Admin that completed forced enrollment; includes secret and backup codes."""
    secret = client.post("/api/v1/admin/mfa/enroll/secret", json={"userId": test_admin["id"]}).json()["data"]["secret"]
    response = client.post(
        "/api/v1/admin/mfa/enroll/enable",
        json={"userId": test_admin["id"], "token": current_code(secret)},
    )
    assert response.status_code == 200
    return {**test_admin, "secret": secret, "backup_codes": response.json()["data"]["backupCodes"]}


@pytest.fixture
def db_session_factory():
    return TestSessionLocal


# ============== Service-level fakes ==============


@pytest.fixture
def fake_store() -> FakeCredentialStore:
    return FakeCredentialStore()


@pytest.fixture
def token_service() -> TokenService:
    return TokenService()


@pytest.fixture
def auth_service(fake_store, token_service) -> AuthService:
    return AuthService(store=fake_store, tokens=token_service)