"""
fleetdesk.services.catalog_events

"Permission catalog changed" events and the background reconcile worker.

Responsibilities:
- Accept catalog-changed notifications without blocking the caller; drop them
  while the worker is stopped.
- Run the superadmin reconciler once per burst of notifications, in a fresh
  DB session, from a single worker task.
- Log (never raise into the notifier) reconcile failures.
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass, field
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleetdesk.db.session import session_scope
from fleetdesk.observability.logging import get_logger
from fleetdesk.services.superadmin import ReconcileOutcome, SuperadminReconciler

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class CatalogChanged:
    reason: str
    occurred_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))


class CatalogChangeDispatcher:
    """
    Duplicate, delayed or out-of-order notifications are harmless: every run of the
    worker reconciles against the catalog as it is at that moment, and reconcile is
    idempotent. Notifications that queue up while a run is in flight are coalesced
    into the next run.
    """

    def __init__(
        self,
        *,
        session_factory: async_sessionmaker[AsyncSession],
        role_name: str,
    ) -> None:
        self._session_factory = session_factory
        self._role_name = role_name
        self._queue: asyncio.Queue[CatalogChanged] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None
        self.runs = 0
        self.last_outcome: ReconcileOutcome | None = None
        self.last_error: BaseException | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="catalog-change-dispatcher")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    def notify(self, reason: str) -> None:
        """Queue a reconcile. Dropped while the worker is stopped."""
        if not self.running:
            log.warning("catalog_change_dropped", reason=reason, role=self._role_name)
            return
        self._queue.put_nowait(CatalogChanged(reason=reason))
        log.info("catalog_changed", reason=reason, pending=self._queue.qsize())

    async def wait_idle(self) -> None:
        """Wait until every notification so far has been handled."""
        await self._queue.join()

    async def reconcile_now(self) -> ReconcileOutcome:
        async with session_scope(self._session_factory) as session:
            return await SuperadminReconciler(session=session, role_name=self._role_name).reconcile()

    async def _run(self) -> None:
        while True:
            first = await self._queue.get()
            batch = [first]
            while not self._queue.empty():
                batch.append(self._queue.get_nowait())
            try:
                await self._handle(batch)
            finally:
                for _ in batch:
                    self._queue.task_done()

    async def _handle(self, batch: list[CatalogChanged]) -> None:
        self.runs += 1
        reasons = sorted({e.reason for e in batch})
        try:
            outcome = await self.reconcile_now()
        except Exception as e:
            self.last_error = e
            log.exception("catalog_reconcile_failed", reasons=reasons, role=self._role_name)
            return
        self.last_error = None
        self.last_outcome = outcome
        log.info(
            "catalog_reconcile_done",
            reasons=reasons,
            coalesced=len(batch),
            permissions_granted=outcome.permissions_granted,
            state=outcome.status.state.value,
        )


# --- Module Notes -----------------------------------------------------------
# The dispatcher holds no lock around reconcile; uniqueness of grant rows is
# enforced by the database, so a manual reconcile racing the worker is safe.
