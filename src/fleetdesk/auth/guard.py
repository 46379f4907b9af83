"""
fleetdesk.auth.guard

Authorization guard checks over an (optional) `Principal`.

Responsibilities:
- Turn predicate results into AuthenticationError (no principal, 401) or
  AuthorizationError (principal lacks a requirement, 403).
- Build 403 messages that name the unmet role(s) or permission(s).
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from fleetdesk.auth.errors import AuthenticationError, AuthorizationError
from fleetdesk.auth.models import Principal


def ensure_authenticated(principal: Principal | None) -> Principal:
    if principal is None:
        raise AuthenticationError()
    return principal


def check_roles(principal: Principal | None, roles: Iterable[str]) -> Principal:
    allowed = tuple(str(r) for r in roles)
    p = ensure_authenticated(principal)
    if not p.has_role(*allowed):
        raise AuthorizationError(
            f"Access denied. Required role(s): {', '.join(allowed)}. Your role: {p.role}",
            required=allowed,
        )
    return p


def check_permission(principal: Principal | None, name: str) -> Principal:
    p = ensure_authenticated(principal)
    if not p.has_permission(name):
        raise AuthorizationError(
            f"Access denied. Required permission: {name}", required=(name,)
        )
    return p


def check_resource_permission(principal: Principal | None, resource: str, action: str) -> Principal:
    p = ensure_authenticated(principal)
    if not p.has_resource_permission(resource, action):
        required = f"{resource}.{action}"
        raise AuthorizationError(
            f"Access denied. Required permission: {required}", required=(required,)
        )
    return p


def check_any_permission(principal: Principal | None, names: Iterable[str]) -> Principal:
    wanted = tuple(names)
    p = ensure_authenticated(principal)
    if not p.has_any(wanted):
        raise AuthorizationError(
            f"Access denied. Required one of: {', '.join(wanted)}", required=wanted
        )
    return p


def check_all_permissions(principal: Principal | None, names: Iterable[str]) -> Principal:
    wanted = tuple(names)
    p = ensure_authenticated(principal)
    if not p.has_all(wanted):
        missing = tuple(n for n in wanted if not p.has_permission(n))
        raise AuthorizationError(
            f"Access denied. Required all of: {', '.join(wanted)}. Missing: {', '.join(missing)}",
            required=wanted,
        )
    return p


def check_owner_or_privileged(principal: Principal | None, owner_id: Any) -> Principal:
    p = ensure_authenticated(principal)
    if not p.is_owner_or_privileged(owner_id):
        raise AuthorizationError(
            "Access denied. You can only access your own resources. "
            "Required role(s): superadmin, admin, or resource ownership",
            required=("superadmin", "admin", "owner"),
        )
    return p


# --- Module Notes -----------------------------------------------------------
# These helpers are framework-free; `fleetdesk.auth.deps` wraps them as FastAPI
# dependencies, and routers call them directly when the owner id is only known
# after loading a row.
