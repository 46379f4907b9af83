"""
fleetdesk.services.access

Permission loading and principal resolution.

Responsibilities:
- Load the distinct permission set granted to a role (no caching).
- Resolve a verified token subject into a `Principal`, mapping store failures
  to StoreUnavailable and vanished subjects to NotFoundError.
"""

from __future__ import annotations

import asyncio

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fleetdesk.auth.errors import NotFoundError, StoreUnavailable
from fleetdesk.auth.models import PermissionGrant, Principal
from fleetdesk.db.repositories.permissions import PermissionRepo
from fleetdesk.db.repositories.users import UserRepo
from fleetdesk.observability.logging import get_logger

log = get_logger(__name__)


async def load_permissions(session: AsyncSession, role_id: int | None) -> frozenset[PermissionGrant]:
    if role_id is None:
        return frozenset()
    rows = await PermissionRepo(session).for_role(role_id)
    return frozenset(
        PermissionGrant(
            name=p.name,
            resource=p.resource,
            action=p.action,
            description=p.description,
        )
        for p in rows
    )


def _parse_subject(subject: str) -> int:
    try:
        return int(subject)
    except (TypeError, ValueError) as e:
        raise NotFoundError() from e


async def resolve_principal(
    session: AsyncSession,
    subject: str,
    *,
    timeout: float | None = None,
) -> Principal:
    user_id = _parse_subject(subject)
    try:
        async with asyncio.timeout(timeout):
            user = await UserRepo(session).get(user_id)
            if user is None or not user.is_active:
                raise NotFoundError()
            permissions = await load_permissions(session, user.role_id)
    except TimeoutError as e:
        log.error("principal_lookup_timeout", user_id=user_id, timeout=timeout)
        raise StoreUnavailable("Timed out loading user permissions") from e
    except SQLAlchemyError as e:
        log.error("principal_lookup_failed", user_id=user_id, error=str(e))
        raise StoreUnavailable(f"Failed to load user permissions: {e}") from e

    return Principal(
        id=user.id,
        username=user.username,
        email=user.email,
        role=user.role.name if user.role is not None else None,
        permissions=permissions,
    )


# --- Module Notes -----------------------------------------------------------
# Every request re-reads user, role and grants; a grant added mid-flight may or
# may not be visible to a request that is already resolving its principal.
