"""
fleetdesk.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide dependency functions for settings, DB sessions and the catalog
  change dispatcher.
- Encapsulate app.state access patterns (engine/sessionmaker/dispatcher).
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleetdesk.services.catalog_events import CatalogChangeDispatcher
from fleetdesk.settings import Settings, get_settings


def settings_dep(request: Request) -> Settings:
    # Apps built with explicit settings (tests) stash them on app.state.
    return getattr(request.app.state, "settings", None) or get_settings()


def sessionmaker_from_app(request: Request) -> async_sessionmaker[AsyncSession]:
    # The sessionmaker is created on app startup in `fleetdesk.api.app.create_app`.
    return request.app.state.sessionmaker  # type: ignore[attr-defined]


async def db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> AsyncIterator[AsyncSession]:
    # Request-scoped DB session. Commit/rollback is managed explicitly by routers/services.
    async with session_factory() as session:
        yield session


def catalog_dispatcher(request: Request) -> CatalogChangeDispatcher:
    return request.app.state.catalog_dispatcher  # type: ignore[attr-defined]


# --- Module Notes -----------------------------------------------------------
# Auth dependencies (`fleetdesk.auth.deps`) build on `db_session` so the principal
# lookup and the route handler share one session per request.
