"""
fleetdesk.db.repositories.permissions

Repository for the `Permission` catalog.

Responsibilities:
- Query the catalog (all, by name, by role).
- Insert new catalog entries.
"""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fleetdesk.db.models import Permission, Role, RolePermission


class PermissionRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_all(self) -> list[Permission]:
        stmt = select(Permission).order_by(Permission.resource, Permission.action)
        return list((await self._session.execute(stmt)).scalars().all())

    async def count(self) -> int:
        return int((await self._session.execute(select(func.count(Permission.id)))).scalar_one())

    async def get(self, permission_id: int) -> Permission | None:
        return await self._session.get(Permission, permission_id)

    async def get_by_name(self, name: str) -> Permission | None:
        stmt = select(Permission).where(Permission.name == name)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def existing_ids(self, permission_ids: list[int]) -> set[int]:
        if not permission_ids:
            return set()
        stmt = select(Permission.id).where(Permission.id.in_(permission_ids))
        return set((await self._session.execute(stmt)).scalars().all())

    async def for_role(self, role_id: int) -> list[Permission]:
        # DISTINCT: a permission reachable through more than one grant row counts once.
        stmt = (
            select(Permission)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .where(RolePermission.role_id == role_id)
            .distinct()
            .order_by(Permission.resource, Permission.action)
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def for_role_name(self, role_name: str) -> list[Permission]:
        stmt = (
            select(Permission)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .join(Role, Role.id == RolePermission.role_id)
            .where(Role.name == role_name)
            .distinct()
            .order_by(Permission.resource, Permission.action)
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def create(
        self,
        *,
        name: str,
        resource: str,
        action: str,
        description: str | None = None,
    ) -> Permission:
        perm = Permission(name=name, resource=resource, action=action, description=description)
        self._session.add(perm)
        await self._session.flush()
        return perm


# --- Module Notes -----------------------------------------------------------
# Creating a permission opens a drift window for the superadmin role; callers
# emit a catalog-changed event after committing (see `services.catalog_events`).
