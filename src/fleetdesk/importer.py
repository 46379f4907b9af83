"""
fleetdesk.importer

Bulk CSV import for bookings, drivers, vehicles and users.

Responsibilities:
- Read a UTF-8 CSV file in one pass; headers may be the spreadsheet labels
  ("Car Type", "Plate Number", ...) or the column names themselves.
- Validate each row with a pydantic model; empty cells are NULL.
- Insert each row inside its own savepoint so one bad row never aborts the batch.
- Hash user passwords with bcrypt and resolve user roles by name.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from datetime import date, time
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fleetdesk.auth.passwords import MIN_PASSWORD_LENGTH, hash_password
from fleetdesk.db.models import (
    Booking,
    BookingStatus,
    Driver,
    DriverStatus,
    User,
    Vehicle,
    VehicleStatus,
)
from fleetdesk.db.repositories.roles import RoleRepo
from fleetdesk.observability.logging import get_logger

log = get_logger(__name__)


def _col(name: str, label: str) -> AliasChoices:
    return AliasChoices(label, name)


def _blank(v: Any) -> Any:
    if isinstance(v, str):
        return v.strip() or None
    return v


def _status(v: Any, default: Any) -> Any:
    # "In Progress" / "on leave" -> in_progress / on_leave
    v = _blank(v)
    if v is None:
        return default
    return str(v).lower().replace(" ", "_")


class CsvFileError(ValueError):
    """The file as a whole cannot be imported (unknown table, unreadable encoding)."""


class _CsvRow(BaseModel):
    @field_validator("*", mode="before")
    @classmethod
    def _blank_is_none(cls, v: Any) -> Any:
        return _blank(v)


class BookingRow(_CsvRow):
    car_type: str = Field(validation_alias=_col("car_type", "Car Type"), max_length=100)
    pickup_loc: str = Field(validation_alias=_col("pickup_loc", "Pickup Location"))
    drop_loc: str = Field(validation_alias=_col("drop_loc", "Drop Location"))
    booking_date: date = Field(validation_alias=_col("booking_date", "Booking Date"))
    booking_time: time = Field(validation_alias=_col("booking_time", "Booking Time"))
    guest_name: str = Field(validation_alias=_col("guest_name", "Guest Name"), max_length=255)
    mobile_number: str = Field(validation_alias=_col("mobile_number", "Mobile Number"), max_length=20)
    email_id: str | None = Field(default=None, validation_alias=_col("email_id", "Email"))
    special_note: str | None = Field(default=None, validation_alias=_col("special_note", "Special Note"))
    assigned_driver: str | None = Field(
        default=None, validation_alias=_col("assigned_driver", "Assigned Driver")
    )
    status: BookingStatus = Field(default=BookingStatus.pending, validation_alias=_col("status", "Status"))

    @field_validator("status", mode="before")
    @classmethod
    def _status_default(cls, v: Any) -> Any:
        return _status(v, BookingStatus.pending)


class DriverRow(_CsvRow):
    rick: str = Field(validation_alias=_col("rick", "Rick"), max_length=50)
    name: str = Field(validation_alias=_col("name", "Name"), max_length=255)
    category: str | None = Field(default=None, validation_alias=_col("category", "Category"))
    mobile: str | None = Field(default=None, validation_alias=_col("mobile", "Mobile"), max_length=20)
    eid_no: str | None = Field(default=None, validation_alias=_col("eid_no", "EID Number"))
    visa_expiry: date | None = Field(default=None, validation_alias=_col("visa_expiry", "Visa Expiry"))
    passport_no: str | None = Field(default=None, validation_alias=_col("passport_no", "Passport Number"))
    passport_expiry: date | None = Field(
        default=None, validation_alias=_col("passport_expiry", "Passport Expiry")
    )
    daman_expiry: date | None = Field(default=None, validation_alias=_col("daman_expiry", "Daman Expiry"))
    driving_licence_no: str | None = Field(
        default=None, validation_alias=_col("driving_licence_no", "Driving Licence Number")
    )
    driving_licence_expiry: date | None = Field(
        default=None, validation_alias=_col("driving_licence_expiry", "Driving Licence Expiry")
    )
    traffic_code: str | None = Field(default=None, validation_alias=_col("traffic_code", "Traffic Code"))
    trans_no: str | None = Field(default=None, validation_alias=_col("trans_no", "Trans Number"))
    limo_permit_expiry: date | None = Field(
        default=None, validation_alias=_col("limo_permit_expiry", "Limo Permit Expiry")
    )
    status: DriverStatus = Field(default=DriverStatus.active, validation_alias=_col("status", "Status"))

    @field_validator("status", mode="before")
    @classmethod
    def _status_default(cls, v: Any) -> Any:
        return _status(v, DriverStatus.active)


class VehicleRow(_CsvRow):
    rick_no: str = Field(validation_alias=_col("rick_no", "Rick Number"), max_length=50)
    plate_code: str = Field(validation_alias=_col("plate_code", "Plate Code"), max_length=20)
    plate_no: str = Field(validation_alias=_col("plate_no", "Plate Number"), max_length=50)
    mulkiya_expiry: date | None = Field(
        default=None, validation_alias=_col("mulkiya_expiry", "Mulkiya Expiry")
    )
    insurance_expiry: date | None = Field(
        default=None, validation_alias=_col("insurance_expiry", "Insurance Expiry")
    )
    chassis_no: str | None = Field(default=None, validation_alias=_col("chassis_no", "Chassis Number"))
    engine_no: str | None = Field(default=None, validation_alias=_col("engine_no", "Engine Number"))
    vehicle_type: str | None = Field(default=None, validation_alias=_col("vehicle_type", "Vehicle Type"))
    model: str | None = Field(default=None, validation_alias=_col("model", "Model"))
    status: VehicleStatus = Field(
        default=VehicleStatus.available, validation_alias=_col("status", "Status")
    )

    @field_validator("status", mode="before")
    @classmethod
    def _status_default(cls, v: Any) -> Any:
        return _status(v, VehicleStatus.available)


class UserRow(_CsvRow):
    username: str = Field(validation_alias=_col("username", "Username"), min_length=3, max_length=50)
    email: str = Field(validation_alias=_col("email", "Email"), max_length=255)
    password: str = Field(validation_alias=_col("password", "Password"), min_length=MIN_PASSWORD_LENGTH)
    name: str | None = Field(default=None, validation_alias=_col("name", "Name"))
    role: str = Field(default="user", validation_alias=_col("role", "Role"))
    is_active: bool = Field(default=True, validation_alias=_col("is_active", "Is Active"))

    @field_validator("role", mode="before")
    @classmethod
    def _role_default(cls, v: Any) -> Any:
        v = _blank(v)
        return "user" if v is None else str(v).lower()

    @field_validator("is_active", mode="before")
    @classmethod
    def _active_default(cls, v: Any) -> Any:
        v = _blank(v)
        return True if v is None else v


@dataclass(slots=True)
class ImportReport:
    table: str
    imported: int = 0
    failed: int = 0
    errors: list[tuple[int, str]] = field(default_factory=list)

    def fail(self, row: int, message: str) -> None:
        self.failed += 1
        self.errors.append((row, message))


def _first_error(e: ValidationError) -> str:
    err = e.errors()[0]
    loc = ".".join(str(p) for p in err.get("loc", ())) or "row"
    return f"{loc}: {err.get('msg', 'invalid value')}"


class CsvImporter:
    """
    Imports rows into one table. The caller owns the outer transaction and commits
    once the report looks acceptable.
    """

    _PLAIN: dict[str, tuple[type[_CsvRow], type[Booking | Driver | Vehicle]]] = {
        "bookings": (BookingRow, Booking),
        "drivers": (DriverRow, Driver),
        "vehicles": (VehicleRow, Vehicle),
    }
    TABLES = (*_PLAIN, "users")

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._role_ids: dict[str, int | None] = {}

    async def import_file(self, table: str, path: str | Path) -> ImportReport:
        if table not in self.TABLES:
            raise CsvFileError(f"Unsupported table '{table}'; expected one of {', '.join(self.TABLES)}")
        try:
            text = Path(path).read_text(encoding="utf-8-sig")
        except UnicodeDecodeError as e:
            raise CsvFileError(f"{path} is not valid UTF-8 (byte {e.start}); re-save it as UTF-8 CSV") from e

        report = ImportReport(table=table)
        for row_no, raw in enumerate(csv.DictReader(io.StringIO(text, newline="")), start=1):
            try:
                entity = await self._build(table, raw)
            except ValidationError as e:
                report.fail(row_no, _first_error(e))
                continue
            except LookupError as e:
                report.fail(row_no, str(e))
                continue

            try:
                async with self._session.begin_nested():
                    self._session.add(entity)
            except IntegrityError:
                report.fail(row_no, "Duplicate entry or invalid reference")
                continue
            report.imported += 1

        log.info(
            "csv_import_finished",
            table=table,
            path=str(path),
            imported=report.imported,
            failed=report.failed,
        )
        return report

    async def _build(self, table: str, raw: dict[str, Any]) -> Booking | Driver | Vehicle | User:
        if table in self._PLAIN:
            row_model, entity = self._PLAIN[table]
            return entity(**row_model.model_validate(raw).model_dump())

        row = UserRow.model_validate(raw)
        role_id = await self._role_id(row.role)
        return User(
            username=row.username,
            email=row.email,
            name=row.name,
            password_hash=hash_password(row.password),
            role_id=role_id,
            is_active=row.is_active,
        )

    async def _role_id(self, name: str) -> int:
        if name not in self._role_ids:
            self._role_ids[name] = await RoleRepo(self._session).id_for_name(name)
        role_id = self._role_ids[name]
        if role_id is None:
            raise LookupError(f"Unknown role '{name}'")
        return role_id


# --- Module Notes -----------------------------------------------------------
# Imported bookings carry no `created_by`; they were not created through the API.
