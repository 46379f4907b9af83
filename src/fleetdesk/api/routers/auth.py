"""
fleetdesk.api.routers.auth

Account/session endpoints.

Responsibilities:
- Exchange credentials for an access/refresh token pair (`/login`).
- Rotate refresh tokens (`/refresh`); a refresh token is single-use.
- Logout, current principal, password change and self-registration.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import (
    HTTP_201_CREATED,
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_409_CONFLICT,
)

from fleetdesk.api.deps import db_session, settings_dep
from fleetdesk.api.routers.users import UserOut
from fleetdesk.auth.deps import get_principal
from fleetdesk.auth.errors import InvalidToken, NotFoundError
from fleetdesk.auth.jwt import JwtConfig, decode_and_validate, issue_token
from fleetdesk.auth.models import Principal, RoleName
from fleetdesk.auth.passwords import MIN_PASSWORD_LENGTH, hash_password, verify_password
from fleetdesk.db.models import User
from fleetdesk.db.repositories.roles import RoleRepo
from fleetdesk.db.repositories.users import UserRepo
from fleetdesk.observability.logging import get_logger
from fleetdesk.services.access import load_permissions
from fleetdesk.settings import Settings

log = get_logger(__name__)

router = APIRouter(prefix="/v1/auth", tags=["auth"])


class LoginRequest(BaseModel):
    # Username or email.
    login: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=MIN_PASSWORD_LENGTH)


class RegisterRequest(BaseModel):
    username: str = Field(min_length=3, max_length=50)
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)
    name: str | None = Field(default=None, max_length=255)


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class LoginResponse(TokenPair):
    user: UserOut
    permissions: list[dict[str, Any]]


def _issue_pair(settings: Settings, user: User) -> TokenPair:
    cfg = JwtConfig.from_settings(settings)
    role = user.role.name if user.role is not None else None
    common = {"cfg": cfg, "subject": str(user.id), "username": user.username, "role": role}
    return TokenPair(
        access_token=issue_token(
            **common,
            token_type="access",
            ttl=timedelta(minutes=settings.access_token_ttl_minutes),
        ),
        refresh_token=issue_token(
            **common,
            token_type="refresh",
            ttl=timedelta(minutes=settings.refresh_token_ttl_minutes),
        ),
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    settings: Settings = Depends(settings_dep),
    session: AsyncSession = Depends(db_session),
) -> LoginResponse:
    users = UserRepo(session)
    user = await users.get_by_login(body.login)
    if user is None or not verify_password(body.password, user.password_hash):
        log.info("login_failed", login=body.login)
        raise HTTPException(
            status_code=HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Account is deactivated")

    pair = _issue_pair(settings, user)
    await users.record_login(user.id, refresh_token=pair.refresh_token)
    await session.commit()

    permissions = await load_permissions(session, user.role_id)
    log.info("login_succeeded", user_id=user.id)
    return LoginResponse(
        **pair.model_dump(),
        user=UserOut.from_row(user),
        permissions=[g.as_dict() for g in sorted(permissions, key=lambda g: (g.resource, g.action))],
    )


@router.post("/refresh", response_model=TokenPair)
async def refresh(
    body: RefreshRequest,
    settings: Settings = Depends(settings_dep),
    session: AsyncSession = Depends(db_session),
) -> TokenPair:
    payload = decode_and_validate(
        cfg=JwtConfig.from_settings(settings), token=body.refresh_token, expected_type="refresh"
    )
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError) as e:
        raise NotFoundError() from e

    users = UserRepo(session)
    user = await users.get(user_id)
    if user is None or not user.is_active:
        raise NotFoundError()
    if user.refresh_token != body.refresh_token:
        # Already rotated or logged out.
        raise InvalidToken("Invalid refresh token.")

    pair = _issue_pair(settings, user)
    await users.set_refresh_token(user.id, pair.refresh_token)
    await session.commit()
    return pair


@router.post("/logout")
async def logout(
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(db_session),
) -> dict[str, str]:
    await UserRepo(session).set_refresh_token(principal.id, None)
    await session.commit()
    return {"message": "Logged out"}


@router.get("/me")
async def me(principal: Principal = Depends(get_principal)) -> dict[str, Any]:
    return principal.as_dict()


@router.put("/change-password")
async def change_password(
    body: ChangePasswordRequest,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(db_session),
) -> dict[str, str]:
    users = UserRepo(session)
    user = await users.get(principal.id)
    if user is None:
        raise NotFoundError()
    if not verify_password(body.current_password, user.password_hash):
        raise HTTPException(status_code=HTTP_400_BAD_REQUEST, detail="Current password is incorrect")

    await users.patch(user.id, password_hash=hash_password(body.new_password))
    # Outstanding refresh tokens die with the old password.
    await users.set_refresh_token(user.id, None)
    await session.commit()
    log.info("password_changed", user_id=user.id)
    return {"message": "Password changed"}


@router.post("/register", response_model=UserOut, status_code=HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    session: AsyncSession = Depends(db_session),
) -> UserOut:
    users = UserRepo(session)
    if await users.exists(username=body.username, email=body.email):
        raise HTTPException(status_code=HTTP_409_CONFLICT, detail="Username or email already exists")

    role_id = await RoleRepo(session).id_for_name(RoleName.user)
    user = await users.create(
        username=body.username,
        email=body.email,
        password_hash=hash_password(body.password),
        role_id=role_id,
        name=body.name,
    )
    await session.commit()
    await session.refresh(user, ["role"])
    log.info("user_registered", user_id=user.id)
    return UserOut.from_row(user)
