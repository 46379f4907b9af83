"""
tests.test_importer

CSV import: per-row validation, savepoint isolation of bad rows, password hashing
and whole-file rejection of unreadable input.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleetdesk.auth.passwords import verify_password
from fleetdesk.db.models import Booking, BookingStatus, Driver, DriverStatus, Vehicle, VehicleStatus
from fleetdesk.db.repositories.users import UserRepo
from fleetdesk.importer import CsvFileError, CsvImporter

BOOKINGS_CSV = """\
Car Type,Pickup Location,Drop Location,Booking Date,Booking Time,Guest Name,Mobile Number,Email,Special Note,Assigned Driver,Status
Sedan,Airport,Downtown,2026-10-20,08:15,Ann,+97150111,ann@example.com,,,Confirmed
SUV,Hotel,Airport,20/10/2026,09:00,Bob,+97150222,,,,
Van,Port,Mall,2026-10-21,17:45,Cy,+97150333,,Child seat,Driver 7,in progress
"""

USERS_CSV = """\
username,email,password,role,is_active
dana,dana@example.com,secret123,manager,true
eve,eve@example.com,secret123,,0
dana,dana2@example.com,secret123,user,1
finn,finn@example.com,secret123,pilot,1
gus,gus@example.com,123,user,1
"""

DRIVERS_CSV = """\
Rick,Name,Category,Mobile,EID Number,Visa Expiry,Passport Number,Passport Expiry,Daman Expiry,Driving Licence Number,Driving Licence Expiry,Traffic Code,Trans Number,Limo Permit Expiry,Status
R-1,Ali,Limo,+97150111,784-1,2027-01-31,P123,2030-05-01,,DL9,2028-02-02,TC1,T1,2027-06-30,Active
R-2,Bo,,,,,,,,,,,,,On Leave
R-1,Dup,,,,,,,,,,,,,
,NoRick,,,,,,,,,,,,,
R-5,Cy,,,,2027-13-01,,,,,,,,,
R-6,Di,,,,,,,,,,,,,Fired
"""

VEHICLES_CSV = """\
rick_no,plate_code,plate_no,mulkiya_expiry,insurance_expiry,chassis_no,engine_no,vehicle_type,model,status
R-1,A,100,2027-03-01,2027-04-01,CH1,EN1,Sedan,Camry,
R-1,A,100,,,,,,,
R-2,B,100,,,,,SUV,Patrol,In Use
"""


def _write(tmp_path: Path, name: str, content: str) -> Path:
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")
    return path


@pytest.mark.asyncio
async def test_import_bookings(tmp_path: Path, store: async_sessionmaker[AsyncSession]) -> None:
    path = _write(tmp_path, "bookings.csv", BOOKINGS_CSV)
    async with store() as session:
        report = await CsvImporter(session).import_file("bookings", path)
        await session.commit()

    assert (report.imported, report.failed) == (2, 1)
    assert report.errors[0][0] == 2
    assert "booking_date" in report.errors[0][1] or "Booking Date" in report.errors[0][1]

    async with store() as session:
        rows = (await session.execute(select(Booking).order_by(Booking.id))).scalars().all()
    assert [b.status for b in rows] == [BookingStatus.confirmed, BookingStatus.in_progress]
    assert rows[1].special_note == "Child seat"
    assert rows[0].email_id == "ann@example.com"
    assert rows[1].email_id is None
    assert rows[0].created_by is None


@pytest.mark.asyncio
async def test_import_users(tmp_path: Path, store: async_sessionmaker[AsyncSession]) -> None:
    path = _write(tmp_path, "users.csv", USERS_CSV)
    async with store() as session:
        report = await CsvImporter(session).import_file("users", path)
        await session.commit()

    assert report.imported == 2
    failed_rows = dict(report.errors)
    assert set(failed_rows) == {3, 4, 5}
    assert "Duplicate" in failed_rows[3]
    assert failed_rows[4] == "Unknown role 'pilot'"

    async with store() as session:
        users = UserRepo(session)
        dana = await users.get_by_login("dana")
        eve = await users.get_by_login("eve@example.com")
    assert dana is not None and dana.role is not None and dana.role.name == "manager"
    assert verify_password("secret123", dana.password_hash)
    assert dana.password_hash != "secret123"
    assert eve is not None and eve.role.name == "user" and eve.is_active is False


@pytest.mark.asyncio
async def test_unknown_table(tmp_path: Path, store: async_sessionmaker[AsyncSession]) -> None:
    path = _write(tmp_path, "x.csv", "a\n1\n")
    async with store() as session:
        with pytest.raises(ValueError, match="Unsupported table"):
            await CsvImporter(session).import_file("posts", path)


@pytest.mark.asyncio
async def test_import_drivers(tmp_path: Path, store: async_sessionmaker[AsyncSession]) -> None:
    path = _write(tmp_path, "drivers.csv", DRIVERS_CSV)
    async with store() as session:
        report = await CsvImporter(session).import_file("drivers", path)
        await session.commit()

    assert (report.imported, report.failed) == (2, 4)
    failed_rows = dict(report.errors)
    assert set(failed_rows) == {3, 4, 5, 6}
    assert failed_rows[3] == "Duplicate entry or invalid reference"

    async with store() as session:
        rows = (await session.execute(select(Driver).order_by(Driver.id))).scalars().all()
    assert [d.rick for d in rows] == ["R-1", "R-2"]
    ali, bo = rows
    assert ali.status is DriverStatus.active
    assert ali.driving_licence_no == "DL9"
    assert ali.limo_permit_expiry.isoformat() == "2027-06-30"
    assert ali.daman_expiry is None
    assert bo.status is DriverStatus.on_leave
    assert bo.category is None


@pytest.mark.asyncio
async def test_import_vehicles_with_column_names_and_bom(
    tmp_path: Path, store: async_sessionmaker[AsyncSession]
) -> None:
    path = tmp_path / "vehicles.csv"
    path.write_text(VEHICLES_CSV, encoding="utf-8-sig")
    async with store() as session:
        report = await CsvImporter(session).import_file("vehicles", path)
        await session.commit()

    assert (report.imported, report.failed) == (2, 1)
    assert report.errors == [(2, "Duplicate entry or invalid reference")]

    async with store() as session:
        rows = (await session.execute(select(Vehicle).order_by(Vehicle.id))).scalars().all()
    assert [(v.plate_code, v.plate_no) for v in rows] == [("A", "100"), ("B", "100")]
    assert rows[0].status is VehicleStatus.available
    assert rows[0].model == "Camry"
    assert rows[1].status is VehicleStatus.in_use


@pytest.mark.asyncio
async def test_non_utf8_file_is_rejected(tmp_path: Path, store: async_sessionmaker[AsyncSession]) -> None:
    path = tmp_path / "drivers.csv"
    path.write_bytes("Rick,Name\nR-1,José\n".encode("latin-1"))
    async with store() as session:
        with pytest.raises(CsvFileError, match="not valid UTF-8"):
            await CsvImporter(session).import_file("drivers", path)
        assert (await session.execute(select(Driver))).first() is None
