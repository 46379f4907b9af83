"""
fleetdesk.auth.models

Auth domain models.

Responsibilities:
- Define the closed set of role names (`RoleName`).
- Define the permission descriptor and the request-scoped `Principal` with its
  predicate checks.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any


class RoleName(enum.StrEnum):
    superadmin = "superadmin"
    admin = "admin"
    manager = "manager"
    user = "user"


PRIVILEGED_ROLES: frozenset[str] = frozenset({RoleName.superadmin, RoleName.admin})


@dataclass(frozen=True, slots=True)
class PermissionGrant:
    name: str
    resource: str
    action: str
    description: str | None = None

    @property
    def key(self) -> str:
        return f"{self.resource}.{self.action}"

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "resource": self.resource,
            "action": self.action,
            "description": self.description,
        }


def normalize_id(value: Any) -> str | None:
    # Ids may arrive as ints (ORM), strings (path params, JWT `sub`) or UUIDs.
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True, slots=True)
class Principal:
    """
    Authenticated caller identity plus its resolved permission set.

    Built fresh for every request; never persisted.
    """

    id: int
    username: str
    email: str | None
    role: str | None
    permissions: frozenset[PermissionGrant] = frozenset()

    _names: frozenset[str] = field(init=False, repr=False, compare=False)
    _pairs: frozenset[tuple[str, str]] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_names", frozenset(p.name for p in self.permissions))
        object.__setattr__(
            self, "_pairs", frozenset((p.resource, p.action) for p in self.permissions)
        )

    @property
    def permission_names(self) -> frozenset[str]:
        return self._names

    @property
    def is_superadmin(self) -> bool:
        return self.role == RoleName.superadmin

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES

    def has_role(self, *roles: str) -> bool:
        return self.role is not None and self.role in roles

    def has_permission(self, name: str) -> bool:
        return name in self._names

    def has_resource_permission(self, resource: str, action: str) -> bool:
        return (resource, action) in self._pairs

    def has_any(self, names: Iterable[str]) -> bool:
        return any(n in self._names for n in names)

    def has_all(self, names: Iterable[str]) -> bool:
        return all(n in self._names for n in names)

    def is_owner_or_privileged(self, owner_id: Any) -> bool:
        if self.is_privileged:
            return True
        owner = normalize_id(owner_id)
        return owner is not None and owner == normalize_id(self.id)

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "permissions": [
                p.as_dict() for p in sorted(self.permissions, key=lambda p: (p.resource, p.action))
            ],
        }


# --- Module Notes -----------------------------------------------------------
# Membership checks run against precomputed frozensets, so predicate cost does not
# grow with the size of the permission catalog.
