"""
fleetdesk.api.routers.health

Liveness (`/healthz`) and readiness (`/readyz`) probes.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from fleetdesk.api.deps import db_session

router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(request: Request, session: AsyncSession = Depends(db_session)) -> dict[str, object]:
    # Ready once the store answers and the catalog dispatcher is consuming events.
    await session.execute(text("SELECT 1"))
    dispatcher = getattr(request.app.state, "catalog_dispatcher", None)
    return {
        "status": "ready",
        "catalog_dispatcher": bool(dispatcher is not None and dispatcher.running),
    }
