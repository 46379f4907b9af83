"""
fleetdesk.api.routers.rbac

Role/permission administration.

Responsibilities:
- Read views over roles, the permission catalog and per-role grants (admin).
- Catalog and grant mutations (superadmin). Creating a permission notifies the
  catalog dispatcher so the superadmin role converges in the background.
- Operator endpoints for the superadmin reconciler (status/reconcile/grant-all).
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import (
    HTTP_201_CREATED,
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
)

from fleetdesk.api.deps import catalog_dispatcher, db_session, settings_dep
from fleetdesk.auth.deps import require_admin, require_superadmin
from fleetdesk.auth.errors import AuthorizationError
from fleetdesk.db.models import Permission
from fleetdesk.db.repositories.grants import GrantRepo
from fleetdesk.db.repositories.permissions import PermissionRepo
from fleetdesk.db.repositories.roles import RoleRepo
from fleetdesk.observability.logging import get_logger
from fleetdesk.services.catalog_events import CatalogChangeDispatcher
from fleetdesk.services.superadmin import SuperadminReconciler
from fleetdesk.settings import Settings

log = get_logger(__name__)

router = APIRouter(prefix="/v1/rbac", tags=["rbac"])


class PermissionCreateRequest(BaseModel):
    resource: str = Field(min_length=1, max_length=50)
    action: str = Field(min_length=1, max_length=50)
    # Defaults to "<resource>.<action>".
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None


class RolePermissionsRequest(BaseModel):
    permission_ids: list[int] = Field(default_factory=list)


def _permission_out(p: Permission) -> dict[str, Any]:
    return {
        "id": p.id,
        "name": p.name,
        "resource": p.resource,
        "action": p.action,
        "description": p.description,
    }


@router.get("/roles", dependencies=[Depends(require_admin())])
async def list_roles(session: AsyncSession = Depends(db_session)) -> list[dict[str, Any]]:
    return [
        {
            "id": row["role"].id,
            "name": row["role"].name,
            "description": row["role"].description,
            "is_active": row["role"].is_active,
            "user_count": row["user_count"],
        }
        for row in await RoleRepo(session).list_with_user_counts()
    ]


@router.get("/roles/{role_id}", dependencies=[Depends(require_admin())])
async def get_role(role_id: int, session: AsyncSession = Depends(db_session)) -> dict[str, Any]:
    role = await RoleRepo(session).get(role_id)
    if role is None:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Role not found")
    permissions = await PermissionRepo(session).for_role(role.id)
    return {
        "id": role.id,
        "name": role.name,
        "description": role.description,
        "is_active": role.is_active,
        "permissions": [_permission_out(p) for p in permissions],
    }


@router.get("/permissions", dependencies=[Depends(require_admin())])
async def list_permissions(session: AsyncSession = Depends(db_session)) -> dict[str, Any]:
    permissions = [_permission_out(p) for p in await PermissionRepo(session).list_all()]
    grouped: dict[str, list[dict[str, Any]]] = {}
    for p in permissions:
        grouped.setdefault(p["resource"], []).append(p)
    return {"permissions": permissions, "grouped_by_resource": grouped}


@router.post(
    "/permissions",
    status_code=HTTP_201_CREATED,
    dependencies=[Depends(require_superadmin())],
)
async def create_permission(
    body: PermissionCreateRequest,
    session: AsyncSession = Depends(db_session),
    dispatcher: CatalogChangeDispatcher = Depends(catalog_dispatcher),
) -> dict[str, Any]:
    repo = PermissionRepo(session)
    name = body.name or f"{body.resource}.{body.action}"
    if await repo.get_by_name(name) is not None:
        raise HTTPException(status_code=HTTP_409_CONFLICT, detail=f"Permission '{name}' already exists")

    perm = await repo.create(
        name=name, resource=body.resource, action=body.action, description=body.description
    )
    await session.commit()
    log.info("permission_created", permission=name)
    # The superadmin role is now short one grant until the dispatcher catches up.
    dispatcher.notify("permission_created")
    return _permission_out(perm)


@router.put("/roles/{role_id}/permissions", dependencies=[Depends(require_superadmin())])
async def replace_role_permissions(
    role_id: int,
    body: RolePermissionsRequest,
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> dict[str, Any]:
    role = await RoleRepo(session).get(role_id)
    if role is None:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Role not found")
    if role.name == settings.superadmin_role:
        raise AuthorizationError(
            f"Cannot modify permissions of the {role.name} role; it always holds the full catalog",
            required=(),
        )

    permissions = PermissionRepo(session)
    requested = list(dict.fromkeys(body.permission_ids))
    unknown = sorted(set(requested) - await permissions.existing_ids(requested))
    if unknown:
        raise HTTPException(
            status_code=HTTP_400_BAD_REQUEST, detail=f"Unknown permission id(s): {unknown}"
        )

    await GrantRepo(session).replace_for_role(role.id, requested)
    await session.commit()
    log.info("role_permissions_replaced", role=role.name, permissions=len(requested))
    return {
        "id": role.id,
        "name": role.name,
        "permissions": [_permission_out(p) for p in await permissions.for_role(role.id)],
    }


@router.get("/superadmin/status", dependencies=[Depends(require_superadmin())])
async def superadmin_status(
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> dict[str, Any]:
    reconciler = SuperadminReconciler(session=session, role_name=settings.superadmin_role)
    status = await reconciler.status()
    return {**status.as_dict(), "missing_permissions": await reconciler.missing_permissions()}


@router.post("/superadmin/reconcile", dependencies=[Depends(require_superadmin())])
async def superadmin_reconcile(
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> dict[str, Any]:
    outcome = await SuperadminReconciler(session=session, role_name=settings.superadmin_role).reconcile()
    return outcome.as_dict()


@router.post("/superadmin/grant-all", dependencies=[Depends(require_superadmin())])
async def superadmin_grant_all(
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> dict[str, Any]:
    status = await SuperadminReconciler(
        session=session, role_name=settings.superadmin_role
    ).force_grant_all()
    return status.as_dict()


# --- Module Notes -----------------------------------------------------------
# `require_superadmin` checks the built-in role name; the reconciler targets the
# configured role, which is the same role unless FLEET_SUPERADMIN_ROLE is changed.
