"""
fleetdesk.api.routers.dashboard

Read-only operational counts for the admin dashboard.

Responsibilities:
- Driver, vehicle, booking and user totals (`/stats`), readable with either
  `dashboard.view` or `reports.view`.
- Per-document expiry counts across drivers and vehicles (`/expiring-documents`).
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fleetdesk.api.deps import db_session
from fleetdesk.auth.deps import require_any_permission, require_permission
from fleetdesk.db.models import Driver, DriverStatus, Vehicle, VehicleStatus, utcnow
from fleetdesk.db.repositories.bookings import BookingRepo
from fleetdesk.db.repositories.fleet import DriverRepo, VehicleRepo
from fleetdesk.db.repositories.users import UserRepo

router = APIRouter(prefix="/v1/dashboard", tags=["dashboard"])


def _availability(total: int, available: int) -> dict[str, int]:
    return {"total": total, "available": available, "unavailable": total - available}


@router.get(
    "/stats",
    dependencies=[Depends(require_any_permission("dashboard.view", "reports.view"))],
)
async def dashboard_stats(session: AsyncSession = Depends(db_session)) -> dict[str, Any]:
    drivers, vehicles = DriverRepo(session), VehicleRepo(session)
    users = UserRepo(session)
    bookings = await BookingRepo(session).count_by_status()
    return {
        "drivers": _availability(
            await drivers.count(), await drivers.count(Driver.status == DriverStatus.active)
        ),
        "vehicles": _availability(
            await vehicles.count(), await vehicles.count(Vehicle.status == VehicleStatus.available)
        ),
        "bookings": {"total": sum(bookings.values()), "by_status": bookings},
        "users": {"total": await users.count(), "active": await users.count(active_only=True)},
    }


@router.get("/expiring-documents", dependencies=[Depends(require_permission("dashboard.view"))])
async def expiring_documents(
    days: int = Query(default=30, ge=0, le=365),
    session: AsyncSession = Depends(db_session),
) -> dict[str, Any]:
    today = utcnow().date()
    until = today + timedelta(days=days)
    return {
        "days": days,
        "drivers": await DriverRepo(session).document_counts(today=today, until=until),
        "vehicles": await VehicleRepo(session).document_counts(today=today, until=until),
    }
