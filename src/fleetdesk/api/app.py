"""
fleetdesk.api.app

FastAPI app factory for the fleetdesk service.

Responsibilities:
- Build the FastAPI application and register routers/middleware/exception handlers.
- Initialize and dispose shared infrastructure (DB engine/session factory,
  catalog change dispatcher).
- Provide a single composition root where cross-cutting concerns live.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from fleetdesk import __version__
from fleetdesk.api.errors import register_exception_handlers
from fleetdesk.api.routers.auth import router as auth_router
from fleetdesk.api.routers.bookings import router as bookings_router
from fleetdesk.api.routers.comments import router as comments_router
from fleetdesk.api.routers.dashboard import router as dashboard_router
from fleetdesk.api.routers.drivers import router as drivers_router
from fleetdesk.api.routers.health import router as health_router
from fleetdesk.api.routers.posts import router as posts_router
from fleetdesk.api.routers.rbac import router as rbac_router
from fleetdesk.api.routers.users import router as users_router
from fleetdesk.api.routers.vehicles import router as vehicles_router
from fleetdesk.db.init_db import init_db
from fleetdesk.db.seed import seed_defaults
from fleetdesk.db.session import create_engine, create_sessionmaker, session_scope
from fleetdesk.observability.logging import configure_logging, get_logger
from fleetdesk.observability.middleware import RequestContextMiddleware
from fleetdesk.services.catalog_events import CatalogChangeDispatcher
from fleetdesk.settings import Settings

log = get_logger(__name__)


def create_app(*, settings: Settings) -> FastAPI:
    configure_logging(
        service_name=settings.service_name,
        level=settings.log_level,
        json=settings.env != "dev",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await _startup(app, settings)
        try:
            yield
        finally:
            await _shutdown(app)

    app = FastAPI(
        title="Fleetdesk API",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(RequestContextMiddleware)
    register_exception_handlers(app)

    app.include_router(health_router, tags=["health"])
    app.include_router(auth_router)
    app.include_router(rbac_router)
    app.include_router(users_router)
    app.include_router(bookings_router)
    app.include_router(drivers_router)
    app.include_router(vehicles_router)
    app.include_router(dashboard_router)
    app.include_router(posts_router)
    app.include_router(comments_router)

    return app


async def _startup(app: FastAPI, settings: Settings) -> None:
    log.info("startup", env=settings.env, superadmin_role=settings.superadmin_role)
    engine = create_engine(settings)
    app.state.engine = engine
    app.state.sessionmaker = create_sessionmaker(engine)

    if settings.env in ("dev", "test"):
        # Tables are created here only outside production; prod runs Alembic migrations.
        await init_db(engine)
        if settings.seed_on_startup:
            async with session_scope(app.state.sessionmaker) as session:
                report = await seed_defaults(session)
                await session.commit()
            log.info(
                "seeded_defaults",
                roles_created=report.roles_created,
                permissions_created=report.permissions_created,
                grants_created=report.grants_created,
            )

    dispatcher = CatalogChangeDispatcher(
        session_factory=app.state.sessionmaker,
        role_name=settings.superadmin_role,
    )
    app.state.catalog_dispatcher = dispatcher
    dispatcher.start()
    if settings.reconcile_on_startup:
        dispatcher.notify("startup")


async def _shutdown(app: FastAPI) -> None:
    dispatcher = getattr(app.state, "catalog_dispatcher", None)
    if dispatcher is not None:
        await dispatcher.stop()
    engine = getattr(app.state, "engine", None)
    if engine is not None:
        await engine.dispose()
    log.info("shutdown")


# --- Module Notes -----------------------------------------------------------
# Business rules stay in services; this module only wires infrastructure together.
# Tests drive `app.router.lifespan_context(app)` directly since ASGITransport
# does not send lifespan events.
