"""
fleetdesk.api.errors

HTTP translation of domain exceptions.

Responsibilities:
- AuthenticationError (and subclasses) -> 401 with `WWW-Authenticate: Bearer`.
- AuthorizationError -> 403, message names the unmet requirement.
- StoreUnavailable -> 500, logged.
- PrivilegedRoleMissing -> 409.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_401_UNAUTHORIZED,
    HTTP_403_FORBIDDEN,
    HTTP_409_CONFLICT,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

from fleetdesk.auth.errors import AuthenticationError, AuthorizationError, StoreUnavailable
from fleetdesk.observability.logging import get_logger
from fleetdesk.services.superadmin import PrivilegedRoleMissing

log = get_logger(__name__)


async def _authentication_error(_: Request, exc: AuthenticationError) -> JSONResponse:
    return JSONResponse(
        status_code=HTTP_401_UNAUTHORIZED,
        content={"detail": exc.message, "error": type(exc).__name__},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _authorization_error(_: Request, exc: AuthorizationError) -> JSONResponse:
    log.info("authorization_denied", required=list(exc.required))
    return JSONResponse(
        status_code=HTTP_403_FORBIDDEN,
        content={"detail": exc.message, "required": list(exc.required)},
    )


async def _store_unavailable(_: Request, exc: StoreUnavailable) -> JSONResponse:
    log.error("store_unavailable", error=str(exc))
    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc), "error": "StoreUnavailable"},
    )


async def _privileged_role_missing(_: Request, exc: PrivilegedRoleMissing) -> JSONResponse:
    return JSONResponse(status_code=HTTP_409_CONFLICT, content={"detail": str(exc)})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AuthenticationError, _authentication_error)  # type: ignore[arg-type]
    app.add_exception_handler(AuthorizationError, _authorization_error)  # type: ignore[arg-type]
    app.add_exception_handler(StoreUnavailable, _store_unavailable)  # type: ignore[arg-type]
    app.add_exception_handler(PrivilegedRoleMissing, _privileged_role_missing)  # type: ignore[arg-type]


# --- Module Notes -----------------------------------------------------------
# Starlette resolves handlers through the exception MRO, so MissingToken,
# InvalidToken, ExpiredToken and NotFoundError all land on the 401 handler.
