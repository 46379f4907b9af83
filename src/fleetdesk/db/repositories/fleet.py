"""
fleetdesk.db.repositories.fleet

Drivers and vehicles, plus the document-expiry queries the dashboard builds on.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from datetime import date
from typing import Any, Generic, TypeVar

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fleetdesk.db.models import Driver, DriverStatus, Vehicle, VehicleStatus

M = TypeVar("M", Driver, Vehicle)


class _FleetRepo(Generic[M]):
    model: type[M]
    statuses: type[enum.StrEnum]

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, row_id: int) -> M | None:
        return await self._session.get(self.model, row_id)

    async def create(self, **fields: Any) -> M:
        row = self.model(**fields)
        self._session.add(row)
        await self._session.flush()
        return row

    async def patch(self, row_id: int, **fields: Any) -> M | None:
        row = await self._session.get(self.model, row_id, with_for_update=True)
        if row is None:
            return None
        for key, value in fields.items():
            setattr(row, key, value)
        await self._session.flush()
        return row

    async def delete(self, row_id: int) -> bool:
        row = await self._session.get(self.model, row_id)
        if row is None:
            return False
        await self._session.delete(row)
        await self._session.flush()
        return True

    async def count(self, *criteria: Any) -> int:
        stmt = select(func.count()).select_from(self.model).where(*criteria)
        return int((await self._session.execute(stmt)).scalar_one())

    async def count_by_status(self) -> dict[str, int]:
        counts = {str(s): 0 for s in self.statuses}
        stmt = select(self.model.status, func.count()).group_by(self.model.status)
        for status, n in (await self._session.execute(stmt)).all():
            counts[str(status)] = int(n)
        return counts

    def _columns(self, kinds: Iterable[str] | None) -> dict[str, str]:
        docs: dict[str, str] = self.model.DOCUMENTS
        return dict(docs) if kinds is None else {k: docs[k] for k in kinds}

    async def expiring(self, *, today: date, until: date, kinds: Iterable[str] | None = None) -> list[M]:
        """Rows with at least one selected document expiring in [today, until], soonest first."""
        columns = list(self._columns(kinds).values())
        attrs = [getattr(self.model, c) for c in columns]
        stmt = select(self.model).where(or_(*(and_(a >= today, a <= until) for a in attrs)))
        rows = list((await self._session.execute(stmt)).scalars().all())

        def soonest(row: M) -> date:
            dates = [getattr(row, c) for c in columns]
            return min(d for d in dates if d is not None and today <= d <= until)

        return sorted(rows, key=lambda r: (soonest(r), r.id))

    async def document_counts(self, *, today: date, until: date) -> dict[str, dict[str, int]]:
        """Per document kind: how many rows expire within the window and how many already expired."""
        result: dict[str, dict[str, int]] = {}
        for kind, name in self._columns(None).items():
            column = getattr(self.model, name)
            result[kind] = {
                "expiring": await self.count(column >= today, column <= until),
                "expired": await self.count(column < today),
            }
        return result


class DriverRepo(_FleetRepo[Driver]):
    model = Driver
    statuses = DriverStatus

    async def list_all(self, *, status: str | None = None, category: str | None = None) -> list[Driver]:
        stmt = select(Driver).order_by(Driver.name, Driver.id)
        if status is not None:
            stmt = stmt.where(Driver.status == status)
        if category is not None:
            stmt = stmt.where(Driver.category == category)
        return list((await self._session.execute(stmt)).scalars().all())

    async def get_by_rick(self, rick: str) -> Driver | None:
        stmt = select(Driver).where(Driver.rick == rick)
        return (await self._session.execute(stmt)).scalar_one_or_none()


class VehicleRepo(_FleetRepo[Vehicle]):
    model = Vehicle
    statuses = VehicleStatus

    async def list_all(self, *, status: str | None = None, rick_no: str | None = None) -> list[Vehicle]:
        stmt = select(Vehicle).order_by(Vehicle.rick_no, Vehicle.plate_code, Vehicle.plate_no)
        if status is not None:
            stmt = stmt.where(Vehicle.status == status)
        if rick_no is not None:
            stmt = stmt.where(Vehicle.rick_no == rick_no)
        return list((await self._session.execute(stmt)).scalars().all())

    async def get_by_plate(self, plate_code: str, plate_no: str) -> Vehicle | None:
        stmt = select(Vehicle).where(Vehicle.plate_code == plate_code, Vehicle.plate_no == plate_no)
        return (await self._session.execute(stmt)).scalar_one_or_none()
