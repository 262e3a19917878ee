import os
import tempfile

# Settings are read at import time, make sure the app can start without a .env
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{os.path.join(tempfile.gettempdir(), 'dynamico_test.db')}",
)
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-dynamico")

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession

from app.core.security import create_access_token
from app.main import app
from app.core.config import settings
from app.core.database import build_sessionmaker, get_db
from app.core.orchestrator import TableOrchestrator
from app.core.registry import OwnershipRegistry

# Plain users, outside PRIVILEGED_USER_IDS
OWNER_ID = 2
OTHER_ID = 3
ADMIN_ID = 99


# Every test gets its own throw-away database file
@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'dynamico.db'}", echo=False
    )
    yield engine  # Tests happens here
    await engine.dispose()


# Session with the registry table already in place
@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine):
    async with build_sessionmaker(test_engine)() as session:
        await OwnershipRegistry(session).ensure_store_exists()
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def registry(db_session: AsyncSession):
    return OwnershipRegistry(db_session)


@pytest_asyncio.fixture(scope="function")
async def orchestrator(db_session: AsyncSession):
    return TableOrchestrator(db_session, settings)


# Client
@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession):
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# Token for the table owner
@pytest_asyncio.fixture(scope="function")
async def auth_headers_owner():
    token = create_access_token({"user_id": OWNER_ID})
    return {"Authorization": f"Bearer {token}"}


# Token for somebody else
@pytest_asyncio.fixture(scope="function")
async def auth_headers_other():
    token = create_access_token({"user_id": OTHER_ID})
    return {"Authorization": f"Bearer {token}"}


# Token for admin
@pytest_asyncio.fixture(scope="function")
async def auth_headers_admin():
    token = create_access_token({"user_id": ADMIN_ID, "role": "admin"})
    return {"Authorization": f"Bearer {token}"}
