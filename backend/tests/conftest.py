"""Test fixtures for the field reservation backend."""
from __future__ import annotations

import os
import uuid
from collections.abc import AsyncIterator, Callable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")

from app.core.config import get_settings
from app.core.security import create_access_token
from app.db.base import Base
from app.db.session import dispose_engine, get_sessionmaker
from app.main import app
from app.models import Account, Field, FieldStatus


@pytest.fixture(scope="session")
def db_url(tmp_path_factory: pytest.TempPathFactory) -> str:
    """Provide a temporary SQLite database URL for the test session."""
    db_path = tmp_path_factory.mktemp("db") / "test.db"
    return f"sqlite+aiosqlite:///{db_path}"


@pytest_asyncio.fixture()
async def reset_database(db_url: str) -> AsyncIterator[None]:
    """Drop and recreate the database schema for an isolated test."""
    os.environ["DATABASE_URL"] = db_url
    get_settings.cache_clear()
    get_settings()

    await dispose_engine(db_url)
    engine = create_async_engine(db_url, future=True)
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.drop_all)
        await connection.run_sync(Base.metadata.create_all)
    await engine.dispose()
    yield
    await dispose_engine(db_url)


@pytest_asyncio.fixture()
async def field_setup(reset_database: None, db_url: str) -> dict[str, uuid.UUID]:
    """Seed an account with open, small and closed fields plus a foreign field."""
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        account = Account(
            name="Riverside League", slug=f"riverside-{uuid.uuid4().hex[:8]}"
        )
        other_account = Account(
            name="Other League", slug=f"other-{uuid.uuid4().hex[:8]}"
        )
        session.add_all([account, other_account])
        await session.flush()

        main_field = Field(account_id=account.id, name="Field 1", field_type="soccer")
        second_field = Field(
            account_id=account.id, name="Field 2", field_type="soccer"
        )
        small_field = Field(account_id=account.id, name="Practice Pitch", capacity=10)
        closed_field = Field(
            account_id=account.id, name="Old Diamond", status=FieldStatus.CLOSED
        )
        foreign_field = Field(account_id=other_account.id, name="Field 1")
        session.add_all(
            [main_field, second_field, small_field, closed_field, foreign_field]
        )
        await session.commit()

        return {
            "account_id": account.id,
            "other_account_id": other_account.id,
            "field_id": main_field.id,
            "second_field_id": second_field.id,
            "small_field_id": small_field.id,
            "closed_field_id": closed_field.id,
            "foreign_field_id": foreign_field.id,
        }


@pytest_asyncio.fixture()
async def session(
    field_setup: dict[str, uuid.UUID], db_url: str
) -> AsyncIterator[AsyncSession]:
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as db_session:
        yield db_session


@pytest.fixture()
def make_headers() -> Callable[..., dict[str, str]]:
    """Return a factory for bearer headers carrying the given claims."""

    def _make(
        account_id: uuid.UUID,
        *,
        role: str = "member",
        user_id: uuid.UUID | None = None,
    ) -> dict[str, str]:
        token = create_access_token(
            str(user_id or uuid.uuid4()),
            account_id=str(account_id),
            role=role,
        )
        return {"Authorization": f"Bearer {token}"}

    return _make


@pytest_asyncio.fixture()
async def app_context(
    field_setup: dict[str, uuid.UUID],
    make_headers: Callable[..., dict[str, str]],
) -> AsyncIterator[dict[str, object]]:
    """Yield an async client, the seeded fields and headers for three callers."""
    account_id = field_setup["account_id"]
    manager_id = uuid.uuid4()
    coach_id = uuid.uuid4()
    member_id = uuid.uuid4()
    context: dict[str, object] = {
        **field_setup,
        "manager_id": manager_id,
        "coach_id": coach_id,
        "member_id": member_id,
        "manager_headers": make_headers(
            account_id, role="league_manager", user_id=manager_id
        ),
        "coach_headers": make_headers(account_id, role="coach", user_id=coach_id),
        "member_headers": make_headers(account_id, role="member", user_id=member_id),
    }

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        context["client"] = client
        yield context
