from __future__ import annotations

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fleetdesk.db.models import Role, User


class RoleRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, role_id: int) -> Role | None:
        return await self._session.get(Role, role_id)

    async def get_by_name(self, name: str) -> Role | None:
        stmt = select(Role).where(Role.name == name)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def id_for_name(self, name: str) -> int | None:
        stmt = select(Role.id).where(Role.name == name)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def list_with_user_counts(self) -> list[dict[str, Any]]:
        stmt = (
            select(Role, func.count(User.id))
            .outerjoin(User, User.role_id == Role.id)
            .group_by(Role.id)
            .order_by(Role.name)
        )
        rows = (await self._session.execute(stmt)).all()
        return [{"role": role, "user_count": int(count)} for role, count in rows]

    async def create(self, *, name: str, description: str | None = None) -> Role:
        role = Role(name=name, description=description, is_active=True)
        self._session.add(role)
        await self._session.flush()
        return role
