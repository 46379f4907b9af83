"""
tests.test_api_rbac

Role/permission administration and the superadmin operator endpoints.
"""

from __future__ import annotations

import httpx
import pytest
from fastapi import FastAPI

from fleetdesk.db.seed import DEFAULT_CATALOG
from tests.conftest import Account

CATALOG_SIZE = len(DEFAULT_CATALOG)


async def _role_ids(client: httpx.AsyncClient, admin: Account) -> dict[str, int]:
    r = await client.get("/v1/rbac/roles", headers=admin.headers)
    assert r.status_code == 200
    return {row["name"]: row["id"] for row in r.json()}


@pytest.mark.asyncio
async def test_startup_reconcile_completes_superadmin(
    client: httpx.AsyncClient, accounts: dict[str, Account]
) -> None:
    r = await client.get("/v1/rbac/superadmin/status", headers=accounts["superadmin"].headers)
    assert r.status_code == 200
    body = r.json()
    assert body["state"] == "COMPLETE"
    assert body["granted"] == body["total_permissions"] == CATALOG_SIZE
    assert body["missing_permissions"] == []


@pytest.mark.asyncio
async def test_roles_listing_requires_admin(
    client: httpx.AsyncClient, accounts: dict[str, Account]
) -> None:
    assert (await client.get("/v1/rbac/roles")).status_code == 401

    r = await client.get("/v1/rbac/roles", headers=accounts["manager"].headers)
    assert r.status_code == 403
    assert "Required role(s): superadmin, admin" in r.json()["detail"]
    assert r.json()["required"] == ["superadmin", "admin"]

    r = await client.get("/v1/rbac/roles", headers=accounts["admin"].headers)
    assert r.status_code == 200
    counts = {row["name"]: row["user_count"] for row in r.json()}
    assert counts == {"admin": 1, "manager": 1, "superadmin": 1, "user": 1}


@pytest.mark.asyncio
async def test_role_detail_and_catalog(client: httpx.AsyncClient, accounts: dict[str, Account]) -> None:
    admin = accounts["admin"]
    ids = await _role_ids(client, admin)

    r = await client.get(f"/v1/rbac/roles/{ids['user']}", headers=admin.headers)
    assert r.status_code == 200
    names = [p["name"] for p in r.json()["permissions"]]
    assert "bookings.view" in names and "bookings.update" not in names

    assert (await client.get("/v1/rbac/roles/9999", headers=admin.headers)).status_code == 404

    r = await client.get("/v1/rbac/permissions", headers=admin.headers)
    assert r.status_code == 200
    body = r.json()
    assert len(body["permissions"]) == CATALOG_SIZE
    assert {p["action"] for p in body["grouped_by_resource"]["roles"]} == {
        "view",
        "create",
        "update",
        "delete",
        "assign",
    }


@pytest.mark.asyncio
async def test_new_permission_reaches_superadmin(
    app: FastAPI, client: httpx.AsyncClient, accounts: dict[str, Account]
) -> None:
    root = accounts["superadmin"]
    payload = {"resource": "fuel", "action": "view", "description": "View fuel logs"}

    assert (await client.post("/v1/rbac/permissions", json=payload, headers=accounts["admin"].headers)).status_code == 403

    r = await client.post("/v1/rbac/permissions", json=payload, headers=root.headers)
    assert r.status_code == 201
    assert r.json()["name"] == "fuel.view"
    assert (await client.post("/v1/rbac/permissions", json=payload, headers=root.headers)).status_code == 409

    await app.state.catalog_dispatcher.wait_idle()

    status = (await client.get("/v1/rbac/superadmin/status", headers=root.headers)).json()
    assert status["state"] == "COMPLETE"
    assert status["total_permissions"] == CATALOG_SIZE + 1

    # The existing superadmin token sees the new grant without logging in again.
    me = (await client.get("/v1/auth/me", headers=root.headers)).json()
    assert "fuel.view" in {p["name"] for p in me["permissions"]}


@pytest.mark.asyncio
async def test_manual_reconcile_and_grant_all(
    client: httpx.AsyncClient, accounts: dict[str, Account]
) -> None:
    root = accounts["superadmin"]
    r = await client.post("/v1/rbac/superadmin/reconcile", headers=root.headers)
    assert r.status_code == 200
    assert r.json()["permissions_granted"] == 0
    assert r.json()["status"]["is_complete"] is True

    r = await client.post("/v1/rbac/superadmin/grant-all", headers=root.headers)
    assert r.status_code == 200
    assert r.json()["state"] == "COMPLETE"

    r = await client.post("/v1/rbac/superadmin/reconcile", headers=accounts["admin"].headers)
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_replace_role_permissions(client: httpx.AsyncClient, accounts: dict[str, Account]) -> None:
    root = accounts["superadmin"]
    ids = await _role_ids(client, root)
    catalog = (await client.get("/v1/rbac/permissions", headers=root.headers)).json()["permissions"]
    by_name = {p["name"]: p["id"] for p in catalog}

    r = await client.put(
        f"/v1/rbac/roles/{ids['superadmin']}/permissions",
        json={"permission_ids": []},
        headers=root.headers,
    )
    assert r.status_code == 403

    r = await client.put(
        f"/v1/rbac/roles/{ids['user']}/permissions",
        json={"permission_ids": [9999]},
        headers=root.headers,
    )
    assert r.status_code == 400

    wanted = [by_name["bookings.view"], by_name["bookings.delete"], by_name["bookings.view"]]
    r = await client.put(
        f"/v1/rbac/roles/{ids['user']}/permissions",
        json={"permission_ids": wanted},
        headers=root.headers,
    )
    assert r.status_code == 200
    assert [p["name"] for p in r.json()["permissions"]] == ["bookings.delete", "bookings.view"]

    # Takes effect on the next request made with the user's existing token.
    me = (await client.get("/v1/auth/me", headers=accounts["user"].headers)).json()
    assert {p["name"] for p in me["permissions"]} == {"bookings.view", "bookings.delete"}
