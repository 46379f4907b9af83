"""
fleetdesk.auth.deps

FastAPI dependency functions for authentication and authorization.

Responsibilities:
- Convert a bearer token into a typed `Principal` (mandatory and optional modes).
- Enforce RBAC via reusable dependency factories built on `auth.guard`.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from fleetdesk.api.deps import db_session, settings_dep
from fleetdesk.auth import guard
from fleetdesk.auth.errors import AuthenticationError
from fleetdesk.auth.jwt import JwtConfig, decode_and_validate, extract_bearer
from fleetdesk.auth.models import Principal, RoleName
from fleetdesk.observability.logging import get_logger
from fleetdesk.services.access import resolve_principal
from fleetdesk.settings import Settings

log = get_logger(__name__)

# Registered for the OpenAPI security scheme; the header itself is parsed by
# `extract_bearer` so malformed values surface as MissingToken.
_bearer = HTTPBearer(auto_error=False)


async def _authenticate(request: Request, settings: Settings, session: AsyncSession) -> Principal:
    token = extract_bearer(request.headers.get("authorization"))
    payload = decode_and_validate(cfg=JwtConfig.from_settings(settings), token=token)
    principal = await resolve_principal(
        session, str(payload["sub"]), timeout=settings.store_timeout_seconds
    )
    request.state.principal = principal
    structlog.contextvars.bind_contextvars(principal_id=principal.id, role=principal.role)
    return principal


async def get_principal(
    request: Request,
    _creds: HTTPAuthorizationCredentials | None = Depends(_bearer),
    settings: Settings = Depends(settings_dep),
    session: AsyncSession = Depends(db_session),
) -> Principal:
    try:
        return await _authenticate(request, settings, session)
    except AuthenticationError as e:
        log.info("authentication_failed", reason=type(e).__name__)
        raise


async def get_optional_principal(
    request: Request,
    _creds: HTTPAuthorizationCredentials | None = Depends(_bearer),
    settings: Settings = Depends(settings_dep),
    session: AsyncSession = Depends(db_session),
) -> Principal | None:
    # Any verifier failure (missing, invalid, expired, orphaned) means "anonymous".
    # Store failures still propagate as StoreUnavailable.
    try:
        return await _authenticate(request, settings, session)
    except AuthenticationError as e:
        if request.headers.get("authorization"):
            log.info("optional_authentication_ignored", reason=type(e).__name__)
        return None


def require_roles(*roles: str):
    allowed = tuple(str(r) for r in roles)

    def _dep(principal: Principal = Depends(get_principal)) -> Principal:
        return guard.check_roles(principal, allowed)

    return _dep


def require_superadmin():
    return require_roles(RoleName.superadmin)


def require_admin():
    return require_roles(RoleName.superadmin, RoleName.admin)


def require_manager():
    return require_roles(RoleName.superadmin, RoleName.admin, RoleName.manager)


def require_permission(name: str):
    def _dep(principal: Principal = Depends(get_principal)) -> Principal:
        return guard.check_permission(principal, name)

    return _dep


def require_resource_permission(resource: str, action: str):
    def _dep(principal: Principal = Depends(get_principal)) -> Principal:
        return guard.check_resource_permission(principal, resource, action)

    return _dep


def require_any_permission(*names: str):
    def _dep(principal: Principal = Depends(get_principal)) -> Principal:
        return guard.check_any_permission(principal, names)

    return _dep


def require_all_permissions(*names: str):
    def _dep(principal: Principal = Depends(get_principal)) -> Principal:
        return guard.check_all_permissions(principal, names)

    return _dep


def require_owner_or_privileged(owner_id: Callable[[Request], Any]):
    """`owner_id` extracts the resource owner's id from the request (e.g. a path param)."""

    def _dep(request: Request, principal: Principal = Depends(get_principal)) -> Principal:
        return guard.check_owner_or_privileged(principal, owner_id(request))

    return _dep


# --- Module Notes -----------------------------------------------------------
# Guard dependencies sit on top of the mandatory `get_principal`, so an absent or
# bad token is always a 401 and only a resolved principal can produce a 403.
