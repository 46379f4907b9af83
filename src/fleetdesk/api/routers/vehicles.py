"""
fleetdesk.api.routers.vehicles

Vehicle register endpoints, gated per action by `vehicles.<action>` permissions.
"""

from __future__ import annotations

from collections import Counter
from datetime import date, datetime, timedelta
from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_201_CREATED, HTTP_404_NOT_FOUND, HTTP_409_CONFLICT

from fleetdesk.api.deps import db_session
from fleetdesk.auth.deps import require_manager, require_resource_permission
from fleetdesk.db.models import VehicleStatus, utcnow
from fleetdesk.db.repositories.fleet import VehicleRepo

router = APIRouter(prefix="/v1/vehicles", tags=["vehicles"])

VehicleDocument = Literal["all", "mulkiya", "insurance"]


class VehicleFields(BaseModel):
    chassis_no: str | None = Field(default=None, max_length=100)
    engine_no: str | None = Field(default=None, max_length=100)
    vehicle_type: str | None = Field(default=None, max_length=100)
    model: str | None = Field(default=None, max_length=100)
    mulkiya_expiry: date | None = None
    insurance_expiry: date | None = None


class VehicleCreateRequest(VehicleFields):
    rick_no: str = Field(min_length=1, max_length=50)
    plate_code: str = Field(min_length=1, max_length=20)
    plate_no: str = Field(min_length=1, max_length=50)
    status: VehicleStatus = VehicleStatus.available


class VehicleUpdateRequest(VehicleFields):
    rick_no: str | None = Field(default=None, min_length=1, max_length=50)


class VehicleStatusRequest(BaseModel):
    status: VehicleStatus


class VehicleOut(VehicleFields):
    model_config = ConfigDict(from_attributes=True)

    id: int
    rick_no: str
    plate_code: str
    plate_no: str
    status: VehicleStatus
    created_at: datetime
    updated_at: datetime


def _not_found() -> HTTPException:
    return HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Vehicle not found")


@router.get(
    "",
    response_model=list[VehicleOut],
    dependencies=[Depends(require_resource_permission("vehicles", "view"))],
)
async def list_vehicles(
    status: VehicleStatus | None = None,
    rick_no: str | None = None,
    session: AsyncSession = Depends(db_session),
) -> list[VehicleOut]:
    rows = await VehicleRepo(session).list_all(status=status, rick_no=rick_no)
    return [VehicleOut.model_validate(v) for v in rows]


@router.get("/summary", dependencies=[Depends(require_resource_permission("vehicles", "view"))])
async def vehicle_summary(session: AsyncSession = Depends(db_session)) -> dict[str, Any]:
    repo = VehicleRepo(session)
    today = utcnow().date()
    vehicles = await repo.list_all()
    return {
        "total": len(vehicles),
        "unique_ricks": len({v.rick_no for v in vehicles}),
        "by_status": await repo.count_by_status(),
        "by_type": dict(Counter(v.vehicle_type for v in vehicles if v.vehicle_type)),
        "documents": await repo.document_counts(today=today, until=today + timedelta(days=30)),
    }


@router.get("/expiring", dependencies=[Depends(require_resource_permission("vehicles", "view"))])
async def expiring_vehicles(
    days: int = Query(default=30, ge=0, le=365),
    type: VehicleDocument = "all",
    session: AsyncSession = Depends(db_session),
) -> dict[str, Any]:
    today = utcnow().date()
    rows = await VehicleRepo(session).expiring(
        today=today,
        until=today + timedelta(days=days),
        kinds=None if type == "all" else (type,),
    )
    return {
        "days": days,
        "type": type,
        "count": len(rows),
        "vehicles": [VehicleOut.model_validate(v) for v in rows],
    }


@router.get(
    "/{vehicle_id}",
    response_model=VehicleOut,
    dependencies=[Depends(require_resource_permission("vehicles", "view"))],
)
async def get_vehicle(vehicle_id: int, session: AsyncSession = Depends(db_session)) -> VehicleOut:
    vehicle = await VehicleRepo(session).get(vehicle_id)
    if vehicle is None:
        raise _not_found()
    return VehicleOut.model_validate(vehicle)


@router.post(
    "",
    response_model=VehicleOut,
    status_code=HTTP_201_CREATED,
    dependencies=[Depends(require_resource_permission("vehicles", "create"))],
)
async def create_vehicle(
    body: VehicleCreateRequest, session: AsyncSession = Depends(db_session)
) -> VehicleOut:
    repo = VehicleRepo(session)
    if await repo.get_by_plate(body.plate_code, body.plate_no) is not None:
        raise HTTPException(
            status_code=HTTP_409_CONFLICT,
            detail=f"Vehicle with plate {body.plate_code} {body.plate_no} already exists",
        )
    vehicle = await repo.create(**body.model_dump())
    await session.commit()
    return VehicleOut.model_validate(vehicle)


@router.put(
    "/{vehicle_id}",
    response_model=VehicleOut,
    dependencies=[Depends(require_resource_permission("vehicles", "update"))],
)
async def update_vehicle(
    vehicle_id: int, body: VehicleUpdateRequest, session: AsyncSession = Depends(db_session)
) -> VehicleOut:
    vehicle = await VehicleRepo(session).patch(vehicle_id, **body.model_dump(exclude_unset=True))
    if vehicle is None:
        raise _not_found()
    await session.commit()
    return VehicleOut.model_validate(vehicle)


@router.put(
    "/{vehicle_id}/status",
    response_model=VehicleOut,
    dependencies=[Depends(require_manager())],
)
async def update_vehicle_status(
    vehicle_id: int, body: VehicleStatusRequest, session: AsyncSession = Depends(db_session)
) -> VehicleOut:
    vehicle = await VehicleRepo(session).patch(vehicle_id, status=body.status)
    if vehicle is None:
        raise _not_found()
    await session.commit()
    return VehicleOut.model_validate(vehicle)


@router.delete(
    "/{vehicle_id}",
    dependencies=[Depends(require_resource_permission("vehicles", "delete"))],
)
async def delete_vehicle(vehicle_id: int, session: AsyncSession = Depends(db_session)) -> dict[str, str]:
    if not await VehicleRepo(session).delete(vehicle_id):
        raise _not_found()
    await session.commit()
    return {"message": "Vehicle deleted"}
