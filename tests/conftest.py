from itertools import count
from typing import AsyncGenerator, Awaitable, Callable, Dict

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.auth.models  # noqa: F401
import app.core.models  # noqa: F401
from app.auth.models import User
from app.auth.security import create_access_token, hash_password
from app.core.models import School
from app.db.session import Base, enable_sqlite_foreign_keys, get_db
from app.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite://"
TEST_PASSWORD = "password123"

# One bcrypt hash shared by every seeded user keeps the suite fast
_TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


@pytest.fixture()
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test; the app shares this session."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.pop(get_db, None)
    await engine.dispose()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def make_school(db_session: AsyncSession) -> Callable[..., Awaitable[School]]:
    async def _make(name: str = "Test School") -> School:
        school = School(name=name)
        db_session.add(school)
        await db_session.commit()
        await db_session.refresh(school)
        return school

    return _make


@pytest.fixture()
async def school(make_school) -> School:
    return await make_school("S1")


@pytest.fixture()
def make_user(db_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    counter = count(1)

    async def _make(role: str, school_id: int, **fields) -> User:
        n = next(counter)
        username = fields.pop("username", f"{role}{n}")
        user = User(
            school_id=school_id,
            username=username,
            email=fields.pop("email", f"{username}@example.com"),
            password_hash=_TEST_PASSWORD_HASH,
            role=role,
            first_name=fields.pop("first_name", role.capitalize()),
            last_name=fields.pop("last_name", f"No{n}"),
            **fields,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make


@pytest.fixture()
def auth_headers() -> Callable[[User], Dict[str, str]]:
    def _headers(user: User) -> Dict[str, str]:
        token = create_access_token(user_id=user.id, school_id=user.school_id, role=user.role)
        return {"Authorization": f"Bearer {token}"}

    return _headers
