"""
fleetdesk.db.repositories.grants

Repository for `RolePermission` grant rows.

Responsibilities:
- Count grants per role.
- Insert grants with insert-if-absent semantics so concurrent writers never
  produce duplicates or surface uniqueness violations.
- Replace a role's grant set (admin API).
"""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import Select, delete, exists, func, literal, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fleetdesk.db.models import Permission, RolePermission

_ON_CONFLICT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class GrantRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    def _dialect(self) -> str:
        return self._session.get_bind().dialect.name

    async def count_for_role(self, role_id: int) -> int:
        # Join the catalog so dangling grants (if any) never count toward completeness.
        stmt = (
            select(func.count())
            .select_from(RolePermission)
            .join(Permission, Permission.id == RolePermission.permission_id)
            .where(RolePermission.role_id == role_id)
        )
        return int((await self._session.execute(stmt)).scalar_one())

    async def missing_permission_ids(self, role_id: int) -> list[int]:
        stmt = select(Permission.id).where(~self._granted(role_id)).order_by(Permission.id)
        return list((await self._session.execute(stmt)).scalars().all())

    async def grant_missing(self, role_id: int) -> int:
        """Grant every catalog permission the role lacks. Returns rows actually inserted."""
        source = select(literal(role_id), Permission.id).where(~self._granted(role_id))
        return await self._insert_from_select(source, role_id)

    async def grant_all(self, role_id: int) -> int:
        """Grant the full catalog, relying only on the uniqueness constraint to skip existing rows."""
        source = select(literal(role_id), Permission.id).where(Permission.id.is_not(None))
        return await self._insert_from_select(source, role_id)

    async def grant(self, role_id: int, permission_ids: Iterable[int]) -> int:
        rows = [{"role_id": role_id, "permission_id": pid} for pid in dict.fromkeys(permission_ids)]
        if not rows:
            return 0
        insert = _ON_CONFLICT_DIALECTS.get(self._dialect())
        if insert is not None:
            stmt = insert(RolePermission).values(rows).on_conflict_do_nothing()
            result = await self._session.execute(stmt)
            return max(result.rowcount or 0, 0)

        inserted = 0
        for row in rows:
            inserted += await self._insert_one(role_id, row["permission_id"])
        return inserted

    async def replace_for_role(self, role_id: int, permission_ids: Iterable[int]) -> None:
        await self._session.execute(delete(RolePermission).where(RolePermission.role_id == role_id))
        for permission_id in dict.fromkeys(permission_ids):
            self._session.add(RolePermission(role_id=role_id, permission_id=permission_id))
        await self._session.flush()

    @staticmethod
    def _granted(role_id: int):
        return exists().where(
            RolePermission.role_id == role_id,
            RolePermission.permission_id == Permission.id,
        )

    async def _insert_from_select(self, source: Select, role_id: int) -> int:
        insert = _ON_CONFLICT_DIALECTS.get(self._dialect())
        if insert is not None:
            stmt = (
                insert(RolePermission)
                .from_select(["role_id", "permission_id"], source)
                .on_conflict_do_nothing()
            )
            result = await self._session.execute(stmt)
            return max(result.rowcount or 0, 0)

        # Backends without ON CONFLICT: one savepoint per row, a duplicate-key error
        # means another writer granted it first.
        permission_ids = [pid for _, pid in (await self._session.execute(source)).all()]
        inserted = 0
        for permission_id in permission_ids:
            inserted += await self._insert_one(role_id, permission_id)
        return inserted

    async def _insert_one(self, role_id: int, permission_id: int) -> int:
        try:
            async with self._session.begin_nested():
                self._session.add(RolePermission(role_id=role_id, permission_id=permission_id))
        except IntegrityError:
            return 0
        return 1


# --- Module Notes -----------------------------------------------------------
# The composite primary key on role_permissions is the source of truth for
# uniqueness; nothing here takes an application-level lock.
