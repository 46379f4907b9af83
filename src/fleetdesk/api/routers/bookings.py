"""
fleetdesk.api.routers.bookings

Booking CRUD, gated per action by `bookings.<action>` permissions, and driver
assignment (needs both `bookings.update` and `drivers.view`).
"""

from __future__ import annotations

from datetime import date, datetime, time

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_201_CREATED, HTTP_404_NOT_FOUND, HTTP_409_CONFLICT

from fleetdesk.api.deps import db_session
from fleetdesk.auth.deps import require_all_permissions, require_resource_permission
from fleetdesk.auth.models import Principal
from fleetdesk.db.models import BookingStatus, DriverStatus
from fleetdesk.db.repositories.bookings import BookingRepo
from fleetdesk.db.repositories.fleet import DriverRepo

router = APIRouter(prefix="/v1/bookings", tags=["bookings"])


class BookingCreateRequest(BaseModel):
    car_type: str = Field(min_length=1, max_length=100)
    pickup_loc: str = Field(min_length=1)
    drop_loc: str = Field(min_length=1)
    booking_date: date
    booking_time: time
    guest_name: str = Field(min_length=1, max_length=255)
    mobile_number: str = Field(min_length=1, max_length=20)
    email_id: str | None = Field(default=None, max_length=255)
    special_note: str | None = None
    assigned_driver: str | None = Field(default=None, max_length=255)
    status: BookingStatus = BookingStatus.pending


class BookingUpdateRequest(BaseModel):
    car_type: str | None = Field(default=None, min_length=1, max_length=100)
    pickup_loc: str | None = Field(default=None, min_length=1)
    drop_loc: str | None = Field(default=None, min_length=1)
    booking_date: date | None = None
    booking_time: time | None = None
    guest_name: str | None = Field(default=None, min_length=1, max_length=255)
    mobile_number: str | None = Field(default=None, min_length=1, max_length=20)
    email_id: str | None = Field(default=None, max_length=255)
    special_note: str | None = None
    assigned_driver: str | None = Field(default=None, max_length=255)
    status: BookingStatus | None = None


class AssignDriverRequest(BaseModel):
    driver_id: int


class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    car_type: str
    pickup_loc: str
    drop_loc: str
    booking_date: date
    booking_time: time
    guest_name: str
    mobile_number: str
    email_id: str | None
    special_note: str | None
    assigned_driver: str | None
    status: BookingStatus
    created_by: int | None
    created_at: datetime
    updated_at: datetime


@router.get(
    "",
    response_model=list[BookingOut],
    dependencies=[Depends(require_resource_permission("bookings", "view"))],
)
async def list_bookings(
    status: BookingStatus | None = None,
    session: AsyncSession = Depends(db_session),
) -> list[BookingOut]:
    return [BookingOut.model_validate(b) for b in await BookingRepo(session).list_all(status=status)]


@router.get(
    "/{booking_id}",
    response_model=BookingOut,
    dependencies=[Depends(require_resource_permission("bookings", "view"))],
)
async def get_booking(booking_id: int, session: AsyncSession = Depends(db_session)) -> BookingOut:
    booking = await BookingRepo(session).get(booking_id)
    if booking is None:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Booking not found")
    return BookingOut.model_validate(booking)


@router.post("", response_model=BookingOut, status_code=HTTP_201_CREATED)
async def create_booking(
    body: BookingCreateRequest,
    principal: Principal = Depends(require_resource_permission("bookings", "create")),
    session: AsyncSession = Depends(db_session),
) -> BookingOut:
    booking = await BookingRepo(session).create(created_by=principal.id, **body.model_dump())
    await session.commit()
    return BookingOut.model_validate(booking)


@router.put("/{booking_id}", response_model=BookingOut)
async def update_booking(
    booking_id: int,
    body: BookingUpdateRequest,
    _: Principal = Depends(require_resource_permission("bookings", "update")),
    session: AsyncSession = Depends(db_session),
) -> BookingOut:
    booking = await BookingRepo(session).patch(booking_id, **body.model_dump(exclude_unset=True))
    if booking is None:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Booking not found")
    await session.commit()
    return BookingOut.model_validate(booking)


@router.delete(
    "/{booking_id}",
    dependencies=[Depends(require_resource_permission("bookings", "delete"))],
)
async def delete_booking(booking_id: int, session: AsyncSession = Depends(db_session)) -> dict[str, str]:
    if not await BookingRepo(session).delete(booking_id):
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Booking not found")
    await session.commit()
    return {"message": "Booking deleted"}


@router.patch(
    "/{booking_id}/assign-driver",
    response_model=BookingOut,
    dependencies=[Depends(require_all_permissions("bookings.update", "drivers.view"))],
)
async def assign_driver(
    booking_id: int,
    body: AssignDriverRequest,
    session: AsyncSession = Depends(db_session),
) -> BookingOut:
    bookings = BookingRepo(session)
    if await bookings.get(booking_id) is None:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Booking not found")
    driver = await DriverRepo(session).get(body.driver_id)
    if driver is None:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Driver not found")
    if driver.status != DriverStatus.active:
        raise HTTPException(
            status_code=HTTP_409_CONFLICT, detail=f"Driver {driver.rick} is {driver.status}"
        )
    booking = await bookings.patch(booking_id, assigned_driver=driver.name)
    await session.commit()
    return BookingOut.model_validate(booking)
