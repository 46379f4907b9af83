"""
fleetdesk.services.superadmin

Superadmin permission reconciler.

Responsibilities:
- Report whether the privileged role holds every permission in the catalog.
- Close drift by granting missing permissions with insert-if-absent writes, so
  repeated or concurrent calls converge without duplicates or errors.
- Provide the read-only "list permissions by role" operator view.

State machine:
- INCOMPLETE --reconcile--> COMPLETE
- COMPLETE --catalog grows--> INCOMPLETE
- COMPLETE --reconcile--> COMPLETE (zero writes)
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fleetdesk.auth.errors import StoreUnavailable
from fleetdesk.auth.models import RoleName
from fleetdesk.db.repositories.grants import GrantRepo
from fleetdesk.db.repositories.permissions import PermissionRepo
from fleetdesk.db.repositories.roles import RoleRepo
from fleetdesk.observability.logging import get_logger

log = get_logger(__name__)


class PermissionState(enum.StrEnum):
    complete = "COMPLETE"
    incomplete = "INCOMPLETE"


class PrivilegedRoleMissing(Exception):
    """The configured privileged role does not exist; the reconciler never creates roles."""

    def __init__(self, role_name: str) -> None:
        super().__init__(f"Role '{role_name}' not found")
        self.role_name = role_name


@dataclass(frozen=True, slots=True)
class PermissionStatus:
    role: str
    total_permissions: int
    granted: int

    @property
    def missing(self) -> int:
        return self.total_permissions - self.granted

    @property
    def state(self) -> PermissionState:
        return PermissionState.complete if self.missing == 0 else PermissionState.incomplete

    @property
    def is_complete(self) -> bool:
        return self.state is PermissionState.complete

    def as_dict(self) -> dict[str, Any]:
        return {
            "role": self.role,
            "total_permissions": self.total_permissions,
            "granted": self.granted,
            "missing": self.missing,
            "state": self.state.value,
            "is_complete": self.is_complete,
        }


@dataclass(frozen=True, slots=True)
class ReconcileOutcome:
    permissions_granted: int
    status: PermissionStatus

    @property
    def message(self) -> str:
        return f"Granted {self.permissions_granted} missing permissions to {self.status.role}"

    def as_dict(self) -> dict[str, Any]:
        return {
            "permissions_granted": self.permissions_granted,
            "message": self.message,
            "status": self.status.as_dict(),
        }


class SuperadminReconciler:
    """
    Keeps `grants(role) == catalog` for the privileged role.

    The reconciler owns its transaction: `reconcile()` and `force_grant_all()`
    commit on success. Two reconcilers racing on separate sessions are safe because
    the (role_id, permission_id) primary key rejects duplicates and the insert is
    written as "do nothing on conflict".
    """

    def __init__(self, *, session: AsyncSession, role_name: str = RoleName.superadmin) -> None:
        self._session = session
        self._role_name = str(role_name)
        self._roles = RoleRepo(session)
        self._permissions = PermissionRepo(session)
        self._grants = GrantRepo(session)

    @property
    def role_name(self) -> str:
        return self._role_name

    async def status(self) -> PermissionStatus:
        try:
            total = await self._permissions.count()
            role_id = await self._roles.id_for_name(self._role_name)
            granted = 0 if role_id is None else await self._grants.count_for_role(role_id)
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Failed to read permission status: {e}") from e
        return PermissionStatus(role=self._role_name, total_permissions=total, granted=granted)

    async def reconcile(self) -> ReconcileOutcome:
        return await self._apply(self._grants.grant_missing, event="superadmin_reconciled")

    async def force_grant_all(self) -> PermissionStatus:
        outcome = await self._apply(self._grants.grant_all, event="superadmin_grant_all")
        return outcome.status

    async def missing_permissions(self) -> list[str]:
        try:
            role_id = await self._roles.id_for_name(self._role_name)
            catalog = await self._permissions.list_all()
            if role_id is None:
                return [p.name for p in catalog]
            missing = set(await self._grants.missing_permission_ids(role_id))
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Failed to read missing permissions: {e}") from e
        return [p.name for p in catalog if p.id in missing]

    async def _apply(self, write, *, event: str) -> ReconcileOutcome:
        try:
            role_id = await self._roles.id_for_name(self._role_name)
            if role_id is None:
                raise PrivilegedRoleMissing(self._role_name)
            granted = await write(role_id)
            await self._session.commit()
        except SQLAlchemyError as e:
            await self._session.rollback()
            log.error("superadmin_reconcile_failed", role=self._role_name, error=str(e))
            raise StoreUnavailable(f"Failed to reconcile permissions: {e}") from e

        status = await self.status()
        if granted:
            log.info(event, permissions_granted=granted, **status.as_dict())
        if not status.is_complete:
            # Catalog grew again between the insert and the status read.
            log.warning("superadmin_drift_remaining", role=self._role_name, missing=status.missing)
        return ReconcileOutcome(permissions_granted=granted, status=status)


async def list_permissions_by_role(
    session: AsyncSession, role_name: str | None = None
) -> dict[str, list[dict[str, Any]]]:
    """Map role name -> permissions (resource/action order). All roles when `role_name` is None."""

    roles = RoleRepo(session)
    permissions = PermissionRepo(session)
    names = [role_name] if role_name else [r["role"].name for r in await roles.list_with_user_counts()]
    out: dict[str, list[dict[str, Any]]] = {}
    for name in names:
        out[name] = [
            {
                "name": p.name,
                "resource": p.resource,
                "action": p.action,
                "description": p.description,
            }
            for p in await permissions.for_role_name(name)
        ]
    return out


# --- Module Notes -----------------------------------------------------------
# A status read may interleave with a reconcile in another session; it reports
# whatever grants were committed at read time.
