"""
fleetdesk.cli

Operator command line (`fleetdesk ...`).

Responsibilities:
- Schema bootstrap and default seeding for fresh databases.
- Superadmin reconciler operations: status (with a CI-friendly `--check`),
  reconcile, grant-all, and the permissions-by-role listing.
- Bulk CSV import and password hashing helpers.
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import click
from sqlalchemy.ext.asyncio import AsyncEngine

from fleetdesk.auth.errors import StoreUnavailable
from fleetdesk.auth.passwords import MIN_PASSWORD_LENGTH, hash_password
from fleetdesk.db.init_db import init_db
from fleetdesk.db.seed import seed_defaults
from fleetdesk.db.session import create_engine, create_sessionmaker, session_scope
from fleetdesk.importer import CsvFileError, CsvImporter
from fleetdesk.observability.logging import configure_logging
from fleetdesk.services.superadmin import (
    PermissionStatus,
    PrivilegedRoleMissing,
    SuperadminReconciler,
    list_permissions_by_role,
)
from fleetdesk.settings import Settings, get_settings

T = TypeVar("T")

ERRORS_SHOWN = 5


def _run(settings: Settings, work: Callable[[AsyncEngine], Awaitable[T]]) -> T:
    async def main() -> T:
        engine = create_engine(settings)
        try:
            return await work(engine)
        finally:
            await engine.dispose()

    try:
        return asyncio.run(main())
    except (PrivilegedRoleMissing, StoreUnavailable) as e:
        raise click.ClickException(str(e)) from e


def _echo_status(status: PermissionStatus) -> None:
    click.echo(f"Role:        {status.role}")
    click.echo(f"Permissions: {status.granted}/{status.total_permissions} granted")
    click.echo(f"Missing:     {status.missing}")
    click.echo(f"State:       {status.state.value}")


@click.group(invoke_without_command=True)
@click.option(
    "--database-url",
    envvar="FLEET_DATABASE_URL",
    default=None,
    help="SQLAlchemy async URL; defaults to the configured database.",
)
@click.pass_context
def cli(ctx: click.Context, database_url: str | None) -> None:
    """Fleetdesk operator tools."""
    settings = get_settings()
    if database_url:
        settings = settings.model_copy(update={"database_url": database_url})
    configure_logging(
        service_name=settings.service_name, level=settings.log_level, json=False, stream=sys.stderr
    )
    ctx.obj = settings
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command("init-db")
@click.pass_obj
def init_db_cmd(settings: Settings) -> None:
    """Create all tables (development bootstrap; production uses Alembic)."""

    async def work(engine: AsyncEngine) -> None:
        await init_db(engine)

    _run(settings, work)
    click.echo("Tables created.")


@cli.command()
@click.pass_obj
def seed(settings: Settings) -> None:
    """Create default roles and permissions, then reconcile the superadmin role."""

    async def work(engine: AsyncEngine) -> Any:
        await init_db(engine)
        async with session_scope(create_sessionmaker(engine)) as session:
            report = await seed_defaults(session)
            await session.commit()
            outcome = await SuperadminReconciler(
                session=session, role_name=settings.superadmin_role
            ).reconcile()
        return report, outcome

    report, outcome = _run(settings, work)
    click.echo(
        f"Roles created: {report.roles_created}, permissions created: "
        f"{report.permissions_created}, grants created: {report.grants_created}"
    )
    click.echo(outcome.message)


@cli.command()
@click.option("--check", is_flag=True, help="Exit with status 1 when permissions are missing.")
@click.pass_context
def status(ctx: click.Context, check: bool) -> None:
    """Show whether the superadmin role holds the whole permission catalog."""
    settings: Settings = ctx.obj

    async def work(engine: AsyncEngine) -> Any:
        async with session_scope(create_sessionmaker(engine)) as session:
            reconciler = SuperadminReconciler(session=session, role_name=settings.superadmin_role)
            return await reconciler.status(), await reconciler.missing_permissions()

    current, missing = _run(settings, work)
    _echo_status(current)
    for name in missing:
        click.echo(f"  - {name}")
    if check and not current.is_complete:
        ctx.exit(1)


@cli.command()
@click.pass_obj
def reconcile(settings: Settings) -> None:
    """Grant every missing permission to the superadmin role."""

    async def work(engine: AsyncEngine) -> Any:
        async with session_scope(create_sessionmaker(engine)) as session:
            return await SuperadminReconciler(
                session=session, role_name=settings.superadmin_role
            ).reconcile()

    outcome = _run(settings, work)
    click.echo(outcome.message)
    _echo_status(outcome.status)


@cli.command("grant-all")
@click.pass_obj
def grant_all(settings: Settings) -> None:
    """Grant the full permission catalog to the superadmin role."""

    async def work(engine: AsyncEngine) -> PermissionStatus:
        async with session_scope(create_sessionmaker(engine)) as session:
            return await SuperadminReconciler(
                session=session, role_name=settings.superadmin_role
            ).force_grant_all()

    _echo_status(_run(settings, work))


@cli.command("list-permissions")
@click.option("--role", "role_name", default=None, help="Only show this role.")
@click.pass_obj
def list_permissions(settings: Settings, role_name: str | None) -> None:
    """List granted permissions per role."""

    async def work(engine: AsyncEngine) -> dict[str, list[dict[str, Any]]]:
        async with session_scope(create_sessionmaker(engine)) as session:
            return await list_permissions_by_role(session, role_name)

    for name, permissions in _run(settings, work).items():
        click.echo(f"{name} ({len(permissions)})")
        for p in permissions:
            click.echo(f"  {p['name']}")


@cli.command("import-csv")
@click.argument("table", type=click.Choice(CsvImporter.TABLES))
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
def import_csv(settings: Settings, table: str, path: str) -> None:
    """Import rows from a CSV file into TABLE."""

    async def work(engine: AsyncEngine) -> Any:
        async with session_scope(create_sessionmaker(engine)) as session:
            report = await CsvImporter(session).import_file(table, path)
            await session.commit()
        return report

    try:
        report = _run(settings, work)
    except CsvFileError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Imported {report.imported} row(s) into {table}; {report.failed} failed.")
    for row, message in report.errors[:ERRORS_SHOWN]:
        click.echo(f"  Row {row}: {message}")
    if len(report.errors) > ERRORS_SHOWN:
        click.echo(f"  ... and {len(report.errors) - ERRORS_SHOWN} more errors")


@cli.command("hash-password")
@click.password_option(help="Password to hash (prompted when omitted).")
def hash_password_cmd(password: str) -> None:
    """Print a bcrypt hash suitable for the users.password_hash column."""
    if len(password) < MIN_PASSWORD_LENGTH:
        raise click.BadParameter(
            f"must be at least {MIN_PASSWORD_LENGTH} characters", param_hint="password"
        )
    click.echo(hash_password(password))


if __name__ == "__main__":
    cli()
