"""
fleetdesk.auth.errors

Exception taxonomy for authentication and authorization.

Responsibilities:
- Keep 401 ("who are you") and 403 ("you are known but not allowed") failures
  as distinct types so the API layer can never conflate them.
- Carry a human-readable message that names the unmet requirement.
"""

from __future__ import annotations

from collections.abc import Iterable


class AuthenticationError(Exception):
    """No usable identity: missing, malformed, expired or orphaned token. Maps to 401."""

    default_message = "Authentication required"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class MissingToken(AuthenticationError):
    default_message = "No token provided. Please login to access this resource."


class InvalidToken(AuthenticationError):
    default_message = "Invalid token. Please login again."


class ExpiredToken(AuthenticationError):
    default_message = "Token expired. Please login again."


class NotFoundError(InvalidToken):
    """The token subject no longer exists in the store."""

    default_message = "User not found. Token is invalid."


class AuthorizationError(Exception):
    """Known principal lacking a role or permission. Maps to 403."""

    def __init__(self, message: str, *, required: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.required: tuple[str, ...] = tuple(required)

    @property
    def message(self) -> str:
        return str(self)


class StoreUnavailable(Exception):
    """User/role/permission rows could not be loaded. Maps to 500; never retried here."""


# --- Module Notes -----------------------------------------------------------
# `fleetdesk.api.errors` registers the HTTP translation for each of these types.
