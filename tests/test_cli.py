"""
tests.test_cli

Operator CLI driven through click's CliRunner against a temporary SQLite file.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
from click.testing import CliRunner

from fleetdesk.cli import cli
from fleetdesk.db.repositories.permissions import PermissionRepo
from fleetdesk.db.seed import DEFAULT_CATALOG
from fleetdesk.db.session import create_engine, create_sessionmaker
from fleetdesk.settings import Settings
from tests.conftest import sqlite_url


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    return sqlite_url(tmp_path)


@pytest.fixture
def run(db_url: str):
    runner = CliRunner()

    def invoke(*args: str):
        return runner.invoke(cli, ["--database-url", db_url, *args], catch_exceptions=False)

    return invoke


def _add_permission(db_url: str, name: str) -> None:
    async def main() -> None:
        engine = create_engine(Settings(database_url=db_url))
        try:
            async with create_sessionmaker(engine)() as session:
                resource, action = name.split(".")
                await PermissionRepo(session).create(name=name, resource=resource, action=action)
                await session.commit()
        finally:
            await engine.dispose()

    asyncio.run(main())


def test_seed_then_status(run) -> None:
    result = run("seed")
    assert result.exit_code == 0
    assert f"Granted {len(DEFAULT_CATALOG)} missing permissions to superadmin" in result.output

    result = run("status", "--check")
    assert result.exit_code == 0
    assert "State:       COMPLETE" in result.output

    # Seeding again creates nothing and grants nothing.
    result = run("seed")
    assert "Roles created: 0, permissions created: 0, grants created: 0" in result.output
    assert "Granted 0 missing permissions" in result.output


def test_status_check_fails_on_drift_until_reconciled(run, db_url: str) -> None:
    run("seed")
    _add_permission(db_url, "fuel.view")

    result = run("status", "--check")
    assert result.exit_code == 1
    assert "State:       INCOMPLETE" in result.output
    assert "  - fuel.view" in result.output

    result = run("reconcile")
    assert result.exit_code == 0
    assert "Granted 1 missing permissions to superadmin" in result.output
    assert run("status", "--check").exit_code == 0


def test_grant_all_and_listing(run) -> None:
    run("init-db")
    run("seed")
    result = run("grant-all")
    assert result.exit_code == 0
    assert "State:       COMPLETE" in result.output

    result = run("list-permissions", "--role", "superadmin")
    assert result.exit_code == 0
    assert f"superadmin ({len(DEFAULT_CATALOG)})" in result.output
    assert "  reports.export" in result.output

    result = run("list-permissions")
    for role in ("superadmin", "admin", "manager", "user"):
        assert f"{role} (" in result.output


def test_import_csv(run, tmp_path: Path) -> None:
    run("seed")
    csv_path = tmp_path / "users.csv"
    csv_path.write_text(
        "Username,Email,Password,Role,Is Active\n"
        "kim,kim@example.com,secret123,admin,true\n"
        "lee,lee@example.com,secret123,nobody,true\n",
        encoding="utf-8",
    )
    result = run("import-csv", "users", str(csv_path))
    assert result.exit_code == 0
    assert "Imported 1 row(s) into users; 1 failed." in result.output
    assert "Row 2: Unknown role 'nobody'" in result.output

    assert run("import-csv", "posts", str(csv_path)).exit_code != 0


def test_hash_password(run) -> None:
    result = run("hash-password", "--password", "secret123")
    assert result.exit_code == 0
    assert result.output.strip().splitlines()[-1].startswith("$2")

    assert run("hash-password", "--password", "123").exit_code != 0


def test_group_without_command_prints_help(run) -> None:
    result = run()
    assert result.exit_code == 0
    assert "import-csv" in result.output


def test_import_csv_rejects_non_utf8(run, tmp_path: Path) -> None:
    run("seed")
    csv_path = tmp_path / "drivers.csv"
    csv_path.write_bytes("Rick,Name\nR-1,José\n".encode("latin-1"))

    result = run("import-csv", "drivers", str(csv_path))
    assert result.exit_code == 1
    assert "not valid UTF-8" in result.output
    assert "Traceback" not in result.output

    csv_path.write_text("Rick,Name\nR-1,José\n", encoding="utf-8")
    result = run("import-csv", "drivers", str(csv_path))
    assert result.exit_code == 0
    assert "Imported 1 row(s) into drivers; 0 failed." in result.output
