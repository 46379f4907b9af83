"""
fleetdesk.db.init_db

Schema bootstrap for development, tests and the `fleetdesk init-db` command.
Deployed databases are migrated with Alembic instead.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine

from fleetdesk.db import models  # noqa: F401  # register models on Base.metadata
from fleetdesk.db.base import Base


async def init_db(engine: AsyncEngine) -> None:
    # create_all skips tables that already exist, so this is safe on every startup.
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
