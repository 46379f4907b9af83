"""
fleetdesk.api.routers.drivers

Driver roster endpoints.

Responsibilities:
- CRUD gated per action by `drivers.<action>` permissions.
- Status changes (active, suspended, on leave ...) for managers and above.
- Roster summary and the list of drivers whose documents are about to expire.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_201_CREATED, HTTP_404_NOT_FOUND, HTTP_409_CONFLICT

from fleetdesk.api.deps import db_session
from fleetdesk.auth.deps import require_manager, require_resource_permission
from fleetdesk.db.models import DriverStatus, utcnow
from fleetdesk.db.repositories.fleet import DriverRepo

router = APIRouter(prefix="/v1/drivers", tags=["drivers"])

DriverDocument = Literal["all", "visa", "passport", "daman", "licence", "permit"]


class DriverFields(BaseModel):
    category: str | None = Field(default=None, max_length=100)
    mobile: str | None = Field(default=None, max_length=20)
    eid_no: str | None = Field(default=None, max_length=50)
    passport_no: str | None = Field(default=None, max_length=50)
    driving_licence_no: str | None = Field(default=None, max_length=50)
    traffic_code: str | None = Field(default=None, max_length=50)
    trans_no: str | None = Field(default=None, max_length=50)
    visa_expiry: date | None = None
    passport_expiry: date | None = None
    daman_expiry: date | None = None
    driving_licence_expiry: date | None = None
    limo_permit_expiry: date | None = None


class DriverCreateRequest(DriverFields):
    rick: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=255)
    status: DriverStatus = DriverStatus.active


class DriverUpdateRequest(DriverFields):
    rick: str | None = Field(default=None, min_length=1, max_length=50)
    name: str | None = Field(default=None, min_length=1, max_length=255)


class DriverStatusRequest(BaseModel):
    status: DriverStatus


class DriverOut(DriverFields):
    model_config = ConfigDict(from_attributes=True)

    id: int
    rick: str
    name: str
    status: DriverStatus
    created_at: datetime
    updated_at: datetime


def _not_found() -> HTTPException:
    return HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Driver not found")


async def _ensure_rick_free(repo: DriverRepo, rick: str, *, driver_id: int | None = None) -> None:
    existing = await repo.get_by_rick(rick)
    if existing is not None and existing.id != driver_id:
        raise HTTPException(status_code=HTTP_409_CONFLICT, detail=f"Driver with rick '{rick}' already exists")


@router.get(
    "",
    response_model=list[DriverOut],
    dependencies=[Depends(require_resource_permission("drivers", "view"))],
)
async def list_drivers(
    status: DriverStatus | None = None,
    category: str | None = None,
    session: AsyncSession = Depends(db_session),
) -> list[DriverOut]:
    rows = await DriverRepo(session).list_all(status=status, category=category)
    return [DriverOut.model_validate(d) for d in rows]


@router.get("/summary", dependencies=[Depends(require_resource_permission("drivers", "view"))])
async def driver_summary(session: AsyncSession = Depends(db_session)) -> dict[str, Any]:
    repo = DriverRepo(session)
    today = utcnow().date()
    by_status = await repo.count_by_status()
    return {
        "total": sum(by_status.values()),
        "by_status": by_status,
        "documents": await repo.document_counts(today=today, until=today + timedelta(days=30)),
    }


@router.get("/expiring", dependencies=[Depends(require_resource_permission("drivers", "view"))])
async def expiring_drivers(
    days: int = Query(default=30, ge=0, le=365),
    type: DriverDocument = "all",
    session: AsyncSession = Depends(db_session),
) -> dict[str, Any]:
    today = utcnow().date()
    rows = await DriverRepo(session).expiring(
        today=today,
        until=today + timedelta(days=days),
        kinds=None if type == "all" else (type,),
    )
    return {
        "days": days,
        "type": type,
        "count": len(rows),
        "drivers": [DriverOut.model_validate(d) for d in rows],
    }


@router.get(
    "/{driver_id}",
    response_model=DriverOut,
    dependencies=[Depends(require_resource_permission("drivers", "view"))],
)
async def get_driver(driver_id: int, session: AsyncSession = Depends(db_session)) -> DriverOut:
    driver = await DriverRepo(session).get(driver_id)
    if driver is None:
        raise _not_found()
    return DriverOut.model_validate(driver)


@router.post(
    "",
    response_model=DriverOut,
    status_code=HTTP_201_CREATED,
    dependencies=[Depends(require_resource_permission("drivers", "create"))],
)
async def create_driver(
    body: DriverCreateRequest, session: AsyncSession = Depends(db_session)
) -> DriverOut:
    repo = DriverRepo(session)
    await _ensure_rick_free(repo, body.rick)
    driver = await repo.create(**body.model_dump())
    await session.commit()
    return DriverOut.model_validate(driver)


@router.put(
    "/{driver_id}",
    response_model=DriverOut,
    dependencies=[Depends(require_resource_permission("drivers", "update"))],
)
async def update_driver(
    driver_id: int, body: DriverUpdateRequest, session: AsyncSession = Depends(db_session)
) -> DriverOut:
    repo = DriverRepo(session)
    if body.rick is not None:
        await _ensure_rick_free(repo, body.rick, driver_id=driver_id)
    driver = await repo.patch(driver_id, **body.model_dump(exclude_unset=True))
    if driver is None:
        raise _not_found()
    await session.commit()
    return DriverOut.model_validate(driver)


@router.put(
    "/{driver_id}/status",
    response_model=DriverOut,
    dependencies=[Depends(require_manager())],
)
async def update_driver_status(
    driver_id: int, body: DriverStatusRequest, session: AsyncSession = Depends(db_session)
) -> DriverOut:
    driver = await DriverRepo(session).patch(driver_id, status=body.status)
    if driver is None:
        raise _not_found()
    await session.commit()
    return DriverOut.model_validate(driver)


@router.delete(
    "/{driver_id}",
    dependencies=[Depends(require_resource_permission("drivers", "delete"))],
)
async def delete_driver(driver_id: int, session: AsyncSession = Depends(db_session)) -> dict[str, str]:
    if not await DriverRepo(session).delete(driver_id):
        raise _not_found()
    await session.commit()
    return {"message": "Driver deleted"}


# --- Module Notes -----------------------------------------------------------
# Status changes are gated by role rather than `drivers.update`: taking a driver
# off the roster is an operational decision, not a data edit.
