"""Shared pytest fixtures for the EduTrack test suite."""

from collections.abc import AsyncGenerator

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from edutrack.database import Base, get_db
from edutrack.models.user import User
from edutrack.services.auth import create_access_token
from edutrack.services.classrooms import create_classroom, enroll
from edutrack.services.storage import UploadStorage, get_upload_storage
from main import app

# ---------------------------------------------------------------------------
# Async engine & session fixtures (in-memory SQLite)
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture()
async def async_engine():
    """Create a fresh in-memory async engine per test."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture()
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Provide an async session that rolls back after each test."""
    session_factory = async_sessionmaker(
        async_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture()
def upload_storage(tmp_path) -> UploadStorage:
    storage = UploadStorage(tmp_path / "uploads", max_bytes=1024 * 1024)
    storage.ensure_dirs()
    return storage


@pytest.fixture()
async def client(
    db_session: AsyncSession, upload_storage: UploadStorage
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTPX async client wired to the FastAPI app with test DB and storage."""

    async def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_upload_storage] = lambda: upload_storage

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Convenience / data fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def auth_headers():
    """Build the bearer header for a user."""

    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers


@pytest.fixture()
def make_user(db_session: AsyncSession):
    """Factory creating a persisted user."""

    async def _make(name: str, email: str, role: str = "student", **fields) -> User:
        user = User(name=name, email=email, role=role, class_ids=[], **fields)
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make


@pytest.fixture()
async def teacher(make_user) -> User:
    return await make_user("Ms. Frizzle", "frizzle@example.com", role="teacher")


@pytest.fixture()
async def student(make_user) -> User:
    return await make_user(
        "Arnold", "arnold@example.com", role="student", parent_email="parent@example.com"
    )


@pytest.fixture()
async def parent(make_user) -> User:
    return await make_user("Arnold's Parent", "parent@example.com", role="parent")


@pytest.fixture()
async def classroom(db_session: AsyncSession, teacher: User, student: User):
    """A class taught by ``teacher`` with ``student`` enrolled."""
    classroom = await create_classroom(db_session, teacher, name="Science 101", subject="Science")
    enroll(classroom, student)
    await db_session.commit()
    await db_session.refresh(classroom)
    return classroom
