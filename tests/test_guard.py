"""
tests.test_guard

Principal predicates and the framework-free guard checks.
"""

from __future__ import annotations

import dataclasses

import pytest

from fleetdesk.auth import guard
from fleetdesk.auth.errors import AuthenticationError, AuthorizationError
from fleetdesk.auth.models import PermissionGrant, Principal, RoleName, normalize_id


def _grant(name: str) -> PermissionGrant:
    resource, action = name.split(".")
    return PermissionGrant(name=name, resource=resource, action=action)


def _principal(role: str | None = "user", *names: str, id: int = 5) -> Principal:
    return Principal(
        id=id,
        username="ann",
        email="ann@example.com",
        role=role,
        permissions=frozenset(_grant(n) for n in names),
    )


def test_permission_predicates() -> None:
    p = _principal("manager", "bookings.view", "bookings.create")
    assert p.has_permission("bookings.view")
    assert not p.has_permission("bookings.update")
    assert p.has_resource_permission("bookings", "create")
    assert not p.has_resource_permission("bookings", "delete")
    assert p.has_any(["bookings.delete", "bookings.view"])
    assert not p.has_any([])
    assert p.has_all(["bookings.view", "bookings.create"])
    assert not p.has_all(["bookings.view", "bookings.delete"])
    assert p.permission_names == frozenset({"bookings.view", "bookings.create"})


def test_role_predicates() -> None:
    assert _principal("superadmin").is_superadmin
    assert _principal("admin").is_privileged
    assert not _principal("manager").is_privileged
    assert _principal("manager").has_role(RoleName.admin, RoleName.manager)
    assert not _principal(None).has_role(RoleName.user)


def test_principal_is_immutable() -> None:
    p = _principal()
    with pytest.raises(dataclasses.FrozenInstanceError):
        p.role = "admin"  # type: ignore[misc]


@pytest.mark.parametrize(
    ("owner", "expected"),
    [(5, True), ("5", True), (" 5 ", True), (6, False), ("6", False), (None, False), ("", False)],
)
def test_ownership_normalizes_ids(owner: object, expected: bool) -> None:
    assert _principal("user", id=5).is_owner_or_privileged(owner) is expected


def test_privileged_roles_bypass_ownership() -> None:
    assert _principal("admin", id=1).is_owner_or_privileged(99)
    assert _principal("superadmin", id=1).is_owner_or_privileged(None)


def test_normalize_id() -> None:
    assert normalize_id(5) == normalize_id("5") == "5"
    assert normalize_id(None) is None
    assert normalize_id(True) is None
    assert normalize_id("   ") is None


def test_missing_principal_is_authentication_error_not_authorization() -> None:
    for check in (
        lambda: guard.check_roles(None, ["admin"]),
        lambda: guard.check_permission(None, "bookings.view"),
        lambda: guard.check_resource_permission(None, "bookings", "view"),
        lambda: guard.check_any_permission(None, ["bookings.view"]),
        lambda: guard.check_all_permissions(None, ["bookings.view"]),
        lambda: guard.check_owner_or_privileged(None, 1),
    ):
        with pytest.raises(AuthenticationError):
            check()


def test_near_miss_permission_names_the_requirement() -> None:
    p = _principal("user", "bookings.view")
    with pytest.raises(AuthorizationError) as exc:
        guard.check_resource_permission(p, "bookings", "update")
    assert exc.value.message == "Access denied. Required permission: bookings.update"
    assert exc.value.required == ("bookings.update",)
    assert guard.check_resource_permission(p, "bookings", "view") is p


def test_role_denial_message_lists_roles_and_actual_role() -> None:
    with pytest.raises(AuthorizationError) as exc:
        guard.check_roles(_principal("manager"), [RoleName.superadmin, RoleName.admin])
    assert "superadmin, admin" in exc.value.message
    assert "Your role: manager" in exc.value.message


def test_any_and_all_permission_checks() -> None:
    p = _principal("user", "posts.view")
    assert guard.check_any_permission(p, ["posts.create", "posts.view"]) is p
    with pytest.raises(AuthorizationError, match="Required one of: posts.create, posts.delete"):
        guard.check_any_permission(p, ["posts.create", "posts.delete"])
    with pytest.raises(AuthorizationError, match="Missing: posts.create"):
        guard.check_all_permissions(p, ["posts.view", "posts.create"])


def test_owner_check() -> None:
    owner = _principal("user", id=5)
    assert guard.check_owner_or_privileged(owner, "5") is owner
    with pytest.raises(AuthorizationError) as exc:
        guard.check_owner_or_privileged(owner, 6)
    assert "resource ownership" in exc.value.message


def test_as_dict_orders_permissions() -> None:
    p = _principal("user", "posts.view", "bookings.view", "posts.create")
    assert [g["name"] for g in p.as_dict()["permissions"]] == [
        "bookings.view",
        "posts.create",
        "posts.view",
    ]
