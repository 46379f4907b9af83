"""
fleetdesk.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for all layers.
- Hide secrets from repr/logging (JWT signing secret).
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Every field can be overridden with a `FLEET_`-prefixed environment variable,
    e.g. `FLEET_JWT_SECRET` or `FLEET_DATABASE_URL`.
    """

    model_config = SettingsConfigDict(env_prefix="FLEET_", case_sensitive=False)

    # dev/test create tables and seed defaults on startup; prod relies on Alembic.
    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "fleetdesk"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # Auth
    jwt_alg: str = "HS256"
    jwt_issuer: str = "fleetdesk"
    jwt_audience: str = "fleetdesk-api"
    jwt_secret: str = Field(default="dev-secret-change-me-please-32-bytes-min", repr=False)
    access_token_ttl_minutes: int = Field(default=24 * 60, ge=1)
    refresh_token_ttl_minutes: int = Field(default=7 * 24 * 60, ge=1)

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./fleetdesk.db"
    # Upper bound for the user/permission lookups done while authenticating a request.
    store_timeout_seconds: float = Field(default=5.0, gt=0)

    # RBAC
    superadmin_role: str = "superadmin"
    reconcile_on_startup: bool = True
    seed_on_startup: bool = True


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars for each request dependency.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# The signing secret and DB URL are the only process-wide state the auth layer
# reads; both are treated as read-only once the app has started.
