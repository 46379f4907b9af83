"""
fleetdesk.db.models

Persistence schema for the fleet backend.

Responsibilities:
- Define the RBAC tables: Role, Permission, RolePermission (grant), User.
- Define the fleet tables: Driver and Vehicle, each with dated documents that expire.
- Define the resource tables served by the CRUD routers: Booking, Post, Comment.
"""

from __future__ import annotations

import enum
from datetime import UTC, date, datetime, time

from sqlalchemy import (
    Boolean,
    Date,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fleetdesk.db.base import Base


def utcnow() -> datetime:
    # Persist naive UTC timestamps for simplicity; production systems may use tz-aware types.
    return datetime.now(UTC).replace(tzinfo=None)


class BookingStatus(enum.StrEnum):
    pending = "pending"
    confirmed = "confirmed"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


class DriverStatus(enum.StrEnum):
    active = "active"
    inactive = "inactive"
    suspended = "suspended"
    on_leave = "on_leave"


class VehicleStatus(enum.StrEnum):
    available = "available"
    in_use = "in_use"
    maintenance = "maintenance"
    retired = "retired"


class Role(Base):
    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    grants: Mapped[list[RolePermission]] = relationship(
        back_populates="role", cascade="all, delete-orphan"
    )
    users: Mapped[list[User]] = relationship(back_populates="role")


class Permission(Base):
    __tablename__ = "permissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    resource: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    grants: Mapped[list[RolePermission]] = relationship(
        back_populates="permission", cascade="all, delete-orphan"
    )


class RolePermission(Base):
    __tablename__ = "role_permissions"

    # The composite primary key is the (role, permission) uniqueness constraint the
    # superadmin reconciler relies on.
    role_id: Mapped[int] = mapped_column(
        ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True
    )
    permission_id: Mapped[int] = mapped_column(
        ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    role: Mapped[Role] = relationship(back_populates="grants")
    permission: Mapped[Permission] = relationship(back_populates="grants")


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role_id: Mapped[int | None] = mapped_column(
        ForeignKey("roles.id", ondelete="SET NULL"), nullable=True, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_login: Mapped[datetime | None] = mapped_column(nullable=True)
    refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    role: Mapped[Role | None] = relationship(back_populates="users", lazy="joined")


class Driver(Base):
    __tablename__ = "drivers"

    # Document kind -> expiry column, as accepted by the `type` filter of expiry queries.
    DOCUMENTS = {
        "visa": "visa_expiry",
        "passport": "passport_expiry",
        "daman": "daman_expiry",
        "licence": "driving_licence_expiry",
        "permit": "limo_permit_expiry",
    }

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    rick: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    mobile: Mapped[str | None] = mapped_column(String(20), nullable=True)
    eid_no: Mapped[str | None] = mapped_column(String(50), nullable=True)
    passport_no: Mapped[str | None] = mapped_column(String(50), nullable=True)
    driving_licence_no: Mapped[str | None] = mapped_column(String(50), nullable=True)
    traffic_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    trans_no: Mapped[str | None] = mapped_column(String(50), nullable=True)

    visa_expiry: Mapped[date | None] = mapped_column(Date, nullable=True)
    passport_expiry: Mapped[date | None] = mapped_column(Date, nullable=True)
    daman_expiry: Mapped[date | None] = mapped_column(Date, nullable=True)
    driving_licence_expiry: Mapped[date | None] = mapped_column(Date, nullable=True)
    limo_permit_expiry: Mapped[date | None] = mapped_column(Date, nullable=True)

    status: Mapped[DriverStatus] = mapped_column(
        Enum(DriverStatus), nullable=False, default=DriverStatus.active, index=True
    )

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)


class Vehicle(Base):
    __tablename__ = "vehicles"

    DOCUMENTS = {
        "mulkiya": "mulkiya_expiry",
        "insurance": "insurance_expiry",
    }

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    rick_no: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    plate_code: Mapped[str] = mapped_column(String(20), nullable=False)
    plate_no: Mapped[str] = mapped_column(String(50), nullable=False)
    chassis_no: Mapped[str | None] = mapped_column(String(100), nullable=True)
    engine_no: Mapped[str | None] = mapped_column(String(100), nullable=True)
    vehicle_type: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    model: Mapped[str | None] = mapped_column(String(100), nullable=True)

    mulkiya_expiry: Mapped[date | None] = mapped_column(Date, nullable=True)
    insurance_expiry: Mapped[date | None] = mapped_column(Date, nullable=True)

    status: Mapped[VehicleStatus] = mapped_column(
        Enum(VehicleStatus), nullable=False, default=VehicleStatus.available, index=True
    )

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (UniqueConstraint("plate_code", "plate_no"),)


class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    car_type: Mapped[str] = mapped_column(String(100), nullable=False)
    pickup_loc: Mapped[str] = mapped_column(Text, nullable=False)
    drop_loc: Mapped[str] = mapped_column(Text, nullable=False)
    booking_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    booking_time: Mapped[time] = mapped_column(Time, nullable=False)
    guest_name: Mapped[str] = mapped_column(String(255), nullable=False)
    mobile_number: Mapped[str] = mapped_column(String(20), nullable=False)
    email_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    special_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    assigned_driver: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus), nullable=False, default=BookingStatus.pending, index=True
    )
    created_by: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)


class Post(Base):
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    author: Mapped[User] = relationship(lazy="joined")
    comments: Mapped[list[Comment]] = relationship(
        back_populates="post", cascade="all, delete-orphan"
    )


class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    post_id: Mapped[int] = mapped_column(
        ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    post: Mapped[Post] = relationship(back_populates="comments")
    author: Mapped[User] = relationship(lazy="joined")

    __table_args__ = (Index("ix_comments_post_created", "post_id", "created_at"),)


# --- Module Notes -----------------------------------------------------------
# Catalog growth happens by inserting Permission rows; the grant rows for the
# superadmin role are then filled in by `fleetdesk.services.superadmin`.
