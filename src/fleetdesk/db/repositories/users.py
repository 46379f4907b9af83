"""
fleetdesk.db.repositories.users

Repository for `User` entities.

Responsibilities:
- Look users up by id or login (username/email), with their role eagerly loaded.
- Persist login bookkeeping (last login, refresh token rotation).
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fleetdesk.db.models import User, utcnow


class UserRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: int) -> User | None:
        # `User.role` is lazy="joined", so the role name is available without extra I/O.
        return await self._session.get(User, user_id)

    async def get_by_login(self, login: str) -> User | None:
        stmt = select(User).where(or_(User.username == login, User.email == login))
        return (await self._session.execute(stmt)).unique().scalar_one_or_none()

    async def exists(self, *, username: str, email: str) -> bool:
        stmt = select(User.id).where(or_(User.username == username, User.email == email))
        return (await self._session.execute(stmt)).first() is not None

    async def list_all(self, *, role_id: int | None = None) -> list[User]:
        stmt = select(User).order_by(User.created_at.desc(), User.id.desc())
        if role_id is not None:
            stmt = stmt.where(User.role_id == role_id)
        return list((await self._session.execute(stmt)).unique().scalars().all())

    async def count(self, *, active_only: bool = False) -> int:
        stmt = select(func.count()).select_from(User)
        if active_only:
            stmt = stmt.where(User.is_active.is_(True))
        return int((await self._session.execute(stmt)).scalar_one())

    async def create(
        self,
        *,
        username: str,
        email: str,
        password_hash: str,
        role_id: int | None,
        name: str | None = None,
    ) -> User:
        user = User(
            username=username,
            email=email,
            name=name,
            password_hash=password_hash,
            role_id=role_id,
            is_active=True,
        )
        self._session.add(user)
        await self._session.flush()
        return user

    async def record_login(self, user_id: int, *, refresh_token: str) -> None:
        user = await self._session.get(User, user_id, with_for_update=True)
        if user is None:
            return
        user.refresh_token = refresh_token
        user.last_login = utcnow()

    async def set_refresh_token(self, user_id: int, refresh_token: str | None) -> None:
        user = await self._session.get(User, user_id, with_for_update=True)
        if user is None:
            return
        user.refresh_token = refresh_token

    async def patch(self, user_id: int, **fields: Any) -> User | None:
        user = await self._session.get(User, user_id, with_for_update=True)
        if user is None:
            return None
        for key, value in fields.items():
            if value is not None:
                setattr(user, key, value)
        await self._session.flush()
        return user


# --- Module Notes -----------------------------------------------------------
# Password hashing happens in `fleetdesk.auth.passwords`; this repo only stores hashes.
