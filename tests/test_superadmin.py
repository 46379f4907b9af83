"""
tests.test_superadmin

Reconciler behaviour: idempotence, convergence after catalog growth, concurrent
reconciles, force-grant equivalence, the missing-role contract and store
failures on the read paths.
"""

from __future__ import annotations

import asyncio

import pytest
from sqlalchemy import delete, func, select, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleetdesk.auth.errors import StoreUnavailable
from fleetdesk.db.models import RolePermission
from fleetdesk.db.repositories.permissions import PermissionRepo
from fleetdesk.db.repositories.roles import RoleRepo
from fleetdesk.db.seed import DEFAULT_CATALOG
from fleetdesk.db.session import create_engine, create_sessionmaker
from fleetdesk.services.superadmin import (
    PermissionState,
    PrivilegedRoleMissing,
    SuperadminReconciler,
    list_permissions_by_role,
)
from fleetdesk.settings import Settings

CATALOG_SIZE = len(DEFAULT_CATALOG)


async def _grant_rows(factory: async_sessionmaker[AsyncSession], role: str = "superadmin") -> int:
    async with factory() as session:
        role_id = await RoleRepo(session).id_for_name(role)
        stmt = select(func.count()).select_from(RolePermission).where(RolePermission.role_id == role_id)
        return int((await session.execute(stmt)).scalar_one())


async def _reconcile(factory: async_sessionmaker[AsyncSession]):
    async with factory() as session:
        return await SuperadminReconciler(session=session).reconcile()


@pytest.mark.asyncio
async def test_fresh_seed_is_incomplete(store: async_sessionmaker[AsyncSession]) -> None:
    async with store() as session:
        status = await SuperadminReconciler(session=session).status()
    assert status.total_permissions == CATALOG_SIZE
    assert status.granted == 0
    assert status.missing == CATALOG_SIZE
    assert status.state is PermissionState.incomplete


@pytest.mark.asyncio
async def test_reconcile_is_idempotent(store: async_sessionmaker[AsyncSession]) -> None:
    first = await _reconcile(store)
    assert first.permissions_granted == CATALOG_SIZE
    assert first.status.is_complete
    assert first.message == f"Granted {CATALOG_SIZE} missing permissions to superadmin"

    second = await _reconcile(store)
    assert second.permissions_granted == 0
    assert second.status.as_dict() == first.status.as_dict()
    assert await _grant_rows(store) == CATALOG_SIZE


@pytest.mark.asyncio
async def test_catalog_growth_drifts_then_converges(store: async_sessionmaker[AsyncSession]) -> None:
    await _reconcile(store)
    async with store() as session:
        await PermissionRepo(session).create(name="fuel.view", resource="fuel", action="view")
        await session.commit()
        reconciler = SuperadminReconciler(session=session)
        status = await reconciler.status()
        assert status.state is PermissionState.incomplete
        assert status.missing == 1
        assert await reconciler.missing_permissions() == ["fuel.view"]

    outcome = await _reconcile(store)
    assert outcome.permissions_granted == 1
    assert outcome.status.total_permissions == CATALOG_SIZE + 1
    assert outcome.status.is_complete


@pytest.mark.asyncio
async def test_revoked_grant_is_restored(store: async_sessionmaker[AsyncSession]) -> None:
    await _reconcile(store)
    async with store() as session:
        role_id = await RoleRepo(session).id_for_name("superadmin")
        perm = await PermissionRepo(session).get_by_name("reports.export")
        await session.execute(
            delete(RolePermission).where(
                RolePermission.role_id == role_id, RolePermission.permission_id == perm.id
            )
        )
        await session.commit()

    outcome = await _reconcile(store)
    assert outcome.permissions_granted == 1
    assert await _grant_rows(store) == CATALOG_SIZE


@pytest.mark.asyncio
async def test_concurrent_reconciles_insert_each_grant_once(
    store: async_sessionmaker[AsyncSession],
) -> None:
    outcomes = await asyncio.gather(*(_reconcile(store) for _ in range(3)))
    assert sum(o.permissions_granted for o in outcomes) == CATALOG_SIZE
    assert all(o.status.is_complete for o in outcomes)
    assert await _grant_rows(store) == CATALOG_SIZE


@pytest.mark.asyncio
async def test_force_grant_all_converges_with_reconcile(
    store: async_sessionmaker[AsyncSession],
) -> None:
    async with store() as session:
        status = await SuperadminReconciler(session=session).force_grant_all()
        assert status.is_complete
        # Running it again on a complete role changes nothing.
        again = await SuperadminReconciler(session=session).force_grant_all()
    assert again.as_dict() == status.as_dict()
    assert (await _reconcile(store)).permissions_granted == 0
    assert await _grant_rows(store) == CATALOG_SIZE


@pytest.mark.asyncio
async def test_other_roles_are_untouched(store: async_sessionmaker[AsyncSession]) -> None:
    before = await _grant_rows(store, "user")
    await _reconcile(store)
    assert await _grant_rows(store, "user") == before


@pytest.mark.asyncio
async def test_missing_role_is_reported_not_created(store: async_sessionmaker[AsyncSession]) -> None:
    async with store() as session:
        reconciler = SuperadminReconciler(session=session, role_name="root")
        status = await reconciler.status()
        assert status.granted == 0
        assert status.state is PermissionState.incomplete
        with pytest.raises(PrivilegedRoleMissing, match="Role 'root' not found"):
            await reconciler.reconcile()
        with pytest.raises(PrivilegedRoleMissing):
            await reconciler.force_grant_all()
        assert await RoleRepo(session).get_by_name("root") is None


@pytest.mark.asyncio
async def test_configured_role_name(store: async_sessionmaker[AsyncSession]) -> None:
    async with store() as session:
        await RoleRepo(session).create(name="owner")
        await session.commit()
        outcome = await SuperadminReconciler(session=session, role_name="owner").reconcile()
    assert outcome.status.role == "owner"
    assert outcome.permissions_granted == CATALOG_SIZE
    assert await _grant_rows(store, "superadmin") == 0


@pytest.mark.asyncio
async def test_list_permissions_by_role(store: async_sessionmaker[AsyncSession]) -> None:
    await _reconcile(store)
    async with store() as session:
        everything = await list_permissions_by_role(session)
        only_user = await list_permissions_by_role(session, "user")
    assert set(everything) == {"superadmin", "admin", "manager", "user"}
    assert len(everything["superadmin"]) == CATALOG_SIZE
    assert list(only_user) == ["user"]
    names = [p["name"] for p in only_user["user"]]
    assert "posts.create" in names
    assert names == sorted(names, key=lambda n: tuple(n.split(".")))


@pytest.mark.asyncio
async def test_read_paths_on_empty_store_raise_store_unavailable(tmp_path) -> None:
    engine = create_engine(Settings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}"))
    try:
        async with create_sessionmaker(engine)() as session:
            reconciler = SuperadminReconciler(session=session)
            with pytest.raises(StoreUnavailable, match="permission status"):
                await reconciler.status()
            with pytest.raises(StoreUnavailable, match="missing permissions"):
                await reconciler.missing_permissions()
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_missing_permissions_without_grant_table(store: async_sessionmaker[AsyncSession]) -> None:
    async with store() as session:
        await session.execute(text("DROP TABLE role_permissions"))
        await session.commit()
        with pytest.raises(StoreUnavailable, match="Failed to read missing permissions"):
            await SuperadminReconciler(session=session).missing_permissions()
