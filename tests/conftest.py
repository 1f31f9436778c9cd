"""Test fixtures — a fresh schema per test and a fake media host.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets its own engine + schema (function-scoped). The default is
   an in-memory SQLite database via aiosqlite; point
   VIDTUBE_TEST_DATABASE_URL at Postgres to run the same suite there.
2. The app's get_db dependency is overridden to yield that session.
3. The Cloudinary uploader is replaced by FakeUploader, which "hosts" files
   at https://media.test/... and deletes the local temp file like the real one.

Environment overrides must be set before vidtube is imported, because
Settings is a module-level singleton.
"""

import os
import tempfile

os.environ.setdefault("VIDTUBE_BCRYPT_ROUNDS", "4")
os.environ.setdefault("VIDTUBE_UPLOAD_TMP_DIR", tempfile.mkdtemp(prefix="vidtube-uploads-"))

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from vidtube.auth.jwt import TokenService  # noqa: E402
from vidtube.db.engine import get_db  # noqa: E402
from vidtube.db.models import Base  # noqa: E402
from vidtube.main import app  # noqa: E402
from vidtube.services.account_store import AccountStore  # noqa: E402
from vidtube.services.media import get_media_uploader  # noqa: E402
from vidtube.services.session_service import SessionService  # noqa: E402

from helpers import FakeUploader  # noqa: E402

TEST_DB_URL = os.environ.get("VIDTUBE_TEST_DATABASE_URL", "sqlite+aiosqlite://")


@pytest_asyncio.fixture()
async def db_session():
    """Per-test session on a freshly created schema."""
    if TEST_DB_URL.startswith("sqlite"):
        engine = create_async_engine(
            TEST_DB_URL,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_async_engine(TEST_DB_URL)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session = AsyncSession(bind=engine, expire_on_commit=False)
    try:
        yield session
    finally:
        await session.close()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()


@pytest.fixture()
def media():
    return FakeUploader()


@pytest.fixture()
def tokens():
    return TokenService.from_settings()


@pytest.fixture()
def store(db_session):
    return AccountStore(db_session)


@pytest.fixture()
def sessions(store, tokens, media):
    return SessionService(store, tokens, media)


@pytest_asyncio.fixture()
async def client(db_session, media):
    """HTTP client with get_db and the media uploader overridden.

    Learn: Auth is NOT overridden — tests register and log in for real, so
    the whole cookie/Bearer pipeline runs.
    """
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_media_uploader] = lambda: media

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
