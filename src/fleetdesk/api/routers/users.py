"""
fleetdesk.api.routers.users

User directory endpoints.

Responsibilities:
- List users (permission `users.view`).
- Read/update a single user: the user themselves or a privileged role.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_404_NOT_FOUND, HTTP_409_CONFLICT

from fleetdesk.api.deps import db_session
from fleetdesk.auth import guard
from fleetdesk.auth.deps import require_owner_or_privileged, require_permission
from fleetdesk.auth.models import Principal, RoleName
from fleetdesk.db.models import User
from fleetdesk.db.repositories.roles import RoleRepo
from fleetdesk.db.repositories.users import UserRepo

router = APIRouter(prefix="/v1/users", tags=["users"])


class UserOut(BaseModel):
    id: int
    username: str
    email: str
    name: str | None
    role: str | None
    is_active: bool
    last_login: datetime | None
    created_at: datetime

    @classmethod
    def from_row(cls, user: User) -> UserOut:
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            name=user.name,
            role=user.role.name if user.role is not None else None,
            is_active=user.is_active,
            last_login=user.last_login,
            created_at=user.created_at,
        )


class UserUpdateRequest(BaseModel):
    name: str | None = Field(default=None, max_length=255)
    email: str | None = Field(default=None, min_length=3, max_length=255)
    # Role and activation changes are admin-only.
    role: str | None = Field(default=None, max_length=64)
    is_active: bool | None = None


def _target_user_id(request: Request) -> str:
    # Raw path value; ownership comparison normalizes it against the principal id.
    return request.path_params["user_id"]


@router.get(
    "",
    response_model=list[UserOut],
    dependencies=[Depends(require_permission("users.view"))],
)
async def list_users(
    role: str | None = None,
    session: AsyncSession = Depends(db_session),
) -> list[UserOut]:
    role_id = None
    if role is not None:
        role_id = await RoleRepo(session).id_for_name(role)
        if role_id is None:
            return []
    return [UserOut.from_row(u) for u in await UserRepo(session).list_all(role_id=role_id)]


@router.get(
    "/{user_id}",
    response_model=UserOut,
    dependencies=[Depends(require_owner_or_privileged(_target_user_id))],
)
async def get_user(user_id: int, session: AsyncSession = Depends(db_session)) -> UserOut:
    user = await UserRepo(session).get(user_id)
    if user is None:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="User not found")
    return UserOut.from_row(user)


@router.put("/{user_id}", response_model=UserOut)
async def update_user(
    user_id: int,
    body: UserUpdateRequest,
    principal: Principal = Depends(require_owner_or_privileged(_target_user_id)),
    session: AsyncSession = Depends(db_session),
) -> UserOut:
    if body.role is not None or body.is_active is not None:
        guard.check_roles(principal, (RoleName.superadmin, RoleName.admin))

    users = UserRepo(session)
    fields: dict[str, Any] = {"name": body.name, "email": body.email, "is_active": body.is_active}
    if body.role is not None:
        role_id = await RoleRepo(session).id_for_name(body.role)
        if role_id is None:
            raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail=f"Role '{body.role}' not found")
        fields["role_id"] = role_id
    if body.email is not None:
        existing = await users.get_by_login(body.email)
        if existing is not None and existing.id != user_id:
            raise HTTPException(status_code=HTTP_409_CONFLICT, detail="Email already in use")

    user = await users.patch(user_id, **fields)
    if user is None:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="User not found")
    await session.commit()
    await session.refresh(user, ["role"])
    return UserOut.from_row(user)
