from __future__ import annotations

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fleetdesk.db.models import Booking, BookingStatus


class BookingRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_all(self, *, status: BookingStatus | None = None) -> list[Booking]:
        stmt = select(Booking).order_by(Booking.booking_date.desc(), Booking.booking_time.desc())
        if status is not None:
            stmt = stmt.where(Booking.status == status)
        return list((await self._session.execute(stmt)).scalars().all())

    async def count_by_status(self) -> dict[str, int]:
        counts = {str(s): 0 for s in BookingStatus}
        stmt = select(Booking.status, func.count()).group_by(Booking.status)
        for status, n in (await self._session.execute(stmt)).all():
            counts[str(status)] = int(n)
        return counts

    async def get(self, booking_id: int) -> Booking | None:
        return await self._session.get(Booking, booking_id)

    async def create(self, *, created_by: int | None, **fields: Any) -> Booking:
        booking = Booking(created_by=created_by, **fields)
        self._session.add(booking)
        await self._session.flush()
        return booking

    async def patch(self, booking_id: int, **fields: Any) -> Booking | None:
        booking = await self._session.get(Booking, booking_id, with_for_update=True)
        if booking is None:
            return None
        for key, value in fields.items():
            setattr(booking, key, value)
        await self._session.flush()
        return booking

    async def delete(self, booking_id: int) -> bool:
        booking = await self._session.get(Booking, booking_id)
        if booking is None:
            return False
        await self._session.delete(booking)
        await self._session.flush()
        return True
