"""
tests.conftest

Shared fixtures: a file-backed SQLite store per test, the FastAPI app with its
lifecycle driven explicitly, and ready-made accounts for each built-in role.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleetdesk.api.app import create_app
from fleetdesk.auth.jwt import JwtConfig, issue_token
from fleetdesk.auth.models import RoleName
from fleetdesk.auth.passwords import hash_password
from fleetdesk.db.init_db import init_db
from fleetdesk.db.repositories.roles import RoleRepo
from fleetdesk.db.repositories.users import UserRepo
from fleetdesk.db.seed import seed_defaults
from fleetdesk.db.session import create_engine, create_sessionmaker
from fleetdesk.settings import Settings

TEST_SECRET = "test-secret-0123456789-abcdefghijklmnop"
PASSWORD = "secret123"
# bcrypt is deliberately slow; hash once per session.
PASSWORD_HASH = hash_password(PASSWORD)


@dataclass(frozen=True)
class Account:
    id: int
    username: str
    role: str
    token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


def sqlite_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'fleetdesk-test.db'}"


def make_token(
    settings: Settings,
    *,
    user_id: int,
    username: str = "someone",
    role: str | None = None,
    token_type: str = "access",
    ttl: timedelta = timedelta(minutes=5),
) -> str:
    return issue_token(
        cfg=JwtConfig.from_settings(settings),
        subject=str(user_id),
        username=username,
        role=role,
        token_type=token_type,  # type: ignore[arg-type]
        ttl=ttl,
    )


async def create_user(
    factory: async_sessionmaker[AsyncSession],
    *,
    username: str,
    role: str | None,
    email: str | None = None,
    is_active: bool = True,
) -> int:
    async with factory() as session:
        role_id = await RoleRepo(session).id_for_name(role) if role else None
        user = await UserRepo(session).create(
            username=username,
            email=email or f"{username}@example.com",
            password_hash=PASSWORD_HASH,
            role_id=role_id,
            name=username.title(),
        )
        user.is_active = is_active
        await session.commit()
        return user.id


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        env="test",
        database_url=sqlite_url(tmp_path),
        jwt_secret=TEST_SECRET,
        log_level="WARNING",
    )


@pytest_asyncio.fixture
async def store(settings: Settings) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Schema + default seed, without the app and without reconciling the superadmin role."""
    engine = create_engine(settings)
    await init_db(engine)
    factory = create_sessionmaker(engine)
    async with factory() as session:
        await seed_defaults(session)
        await session.commit()
    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def app(settings: Settings) -> AsyncIterator[FastAPI]:
    app = create_app(settings=settings)
    # httpx ASGITransport does not send lifespan events; enter the lifespan directly.
    async with app.router.lifespan_context(app):
        await app.state.catalog_dispatcher.wait_idle()
        yield app


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def app_sessions(app: FastAPI) -> async_sessionmaker[AsyncSession]:
    return app.state.sessionmaker


@pytest_asyncio.fixture
async def accounts(
    app: FastAPI, settings: Settings, app_sessions: async_sessionmaker[AsyncSession]
) -> dict[str, Account]:
    out: dict[str, Account] = {}
    for role in RoleName:
        username = f"{role.value}1"
        user_id = await create_user(app_sessions, username=username, role=role.value)
        out[role.value] = Account(
            id=user_id,
            username=username,
            role=role.value,
            token=make_token(settings, user_id=user_id, username=username, role=role.value),
        )
    return out
