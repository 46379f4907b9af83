"""
fleetdesk.db.seed

Default roles, permission catalog and role grants.

Responsibilities:
- Insert the four built-in roles and the default permission catalog if absent.
- Grant the default per-role permission matrix (superadmin excluded; its grants
  come from the reconciler so seeding and catalog growth share one code path).
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from fleetdesk.auth.models import RoleName
from fleetdesk.db.repositories.grants import GrantRepo
from fleetdesk.db.repositories.permissions import PermissionRepo
from fleetdesk.db.repositories.roles import RoleRepo

ROLE_DESCRIPTIONS: dict[RoleName, str] = {
    RoleName.superadmin: "Super Administrator with full system access",
    RoleName.admin: "Administrator with management access",
    RoleName.manager: "Manager with operational access",
    RoleName.user: "Regular user with limited access",
}

_CRUD = ("view", "create", "update", "delete")

DEFAULT_CATALOG: list[tuple[str, str, str]] = [
    *((f"users.{a}", "users", a) for a in _CRUD),
    *((f"bookings.{a}", "bookings", a) for a in _CRUD),
    *((f"drivers.{a}", "drivers", a) for a in _CRUD),
    *((f"vehicles.{a}", "vehicles", a) for a in _CRUD),
    *((f"posts.{a}", "posts", a) for a in _CRUD),
    *((f"comments.{a}", "comments", a) for a in _CRUD),
    *((f"roles.{a}", "roles", a) for a in (*_CRUD, "assign")),
    *((f"permissions.{a}", "permissions", a) for a in ("view", "create")),
    ("dashboard.view", "dashboard", "view"),
    ("reports.view", "reports", "view"),
    ("reports.export", "reports", "export"),
]


def _default_grant(role: RoleName, resource: str, action: str) -> bool:
    if role == RoleName.admin:
        return resource not in ("roles", "permissions") or action == "view"
    if role == RoleName.manager:
        return (
            resource in ("bookings", "drivers", "vehicles", "posts", "comments") and action != "delete"
        ) or (
            resource in ("dashboard", "reports") and action == "view"
        )
    if role == RoleName.user:
        return (resource in ("bookings", "posts", "comments") and action == "view") or (
            resource in ("posts", "comments") and action == "create"
        )
    return False


@dataclass(frozen=True, slots=True)
class SeedReport:
    roles_created: int
    permissions_created: int
    grants_created: int


async def seed_defaults(session: AsyncSession) -> SeedReport:
    """Idempotent; safe to run on every dev/test startup. Caller commits."""

    roles = RoleRepo(session)
    permissions = PermissionRepo(session)
    grants = GrantRepo(session)

    roles_created = 0
    role_ids: dict[RoleName, int] = {}
    for name, description in ROLE_DESCRIPTIONS.items():
        role = await roles.get_by_name(name)
        if role is None:
            role = await roles.create(name=name, description=description)
            roles_created += 1
        role_ids[name] = role.id

    permissions_created = 0
    catalog: list[tuple[int, str, str]] = []
    for name, resource, action in DEFAULT_CATALOG:
        perm = await permissions.get_by_name(name)
        if perm is None:
            perm = await permissions.create(
                name=name,
                resource=resource,
                action=action,
                description=f"{action.capitalize()} {resource}",
            )
            permissions_created += 1
        catalog.append((perm.id, resource, action))

    grants_created = 0
    for role_name in (RoleName.admin, RoleName.manager, RoleName.user):
        wanted = [pid for pid, res, act in catalog if _default_grant(role_name, res, act)]
        grants_created += await grants.grant(role_ids[role_name], wanted)

    return SeedReport(
        roles_created=roles_created,
        permissions_created=permissions_created,
        grants_created=grants_created,
    )


# --- Module Notes -----------------------------------------------------------
# Seeding adds catalog rows, so callers run the superadmin reconciler afterwards.
