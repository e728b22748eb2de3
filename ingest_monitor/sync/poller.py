"""Adaptive poll loop for one subscription scope.

A ``Subscription`` repeatedly runs its probe, asks the ``PollIntervalPolicy``
for the next delay based on the records currently in scope, records the
schedule as a ``PollTicket``, and sleeps. Any other completed probe (a
manual refresh, or a cache write reported through ``reschedule()``) that
changes the interval wakes the sleep and the schedule is recomputed
without probing again. Stopping a subscription cancels
the sleep and its refresh busy timers; a probe already in flight is
shielded and allowed to finish, so its result still lands in the shared
cache for other subscribers.

Fetch errors (``MonitorError``) do not end the loop: they are kept in
``last_error`` for display and polling continues on the policy's cadence.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from ingest_monitor.core import constants
from ingest_monitor.core.exceptions import MonitorError
from ingest_monitor.models.status import PollTicket
from ingest_monitor.sync.refresh import RefreshController

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from ingest_monitor.models.api import FileProgress
    from ingest_monitor.models.status import StatusRecord
    from ingest_monitor.sync.policy import PollIntervalPolicy

    SleepFn = Callable[[float], Awaitable[None]]

logger = logging.getLogger("ingest_monitor.sync.poller")


class Subscription:
    """Policy-driven polling of one scope (a project, or every project).

    Args:
        scope: Identifier of the polled scope, used for tickets and logs.
        probe: Coroutine function refreshing the scope's records.
        records: Returns the cached records currently in scope.
        policy: Chooses fast vs idle delays.
        progress: Returns file-progress counters in scope, if any.
        repeat: ``False`` runs a single probe and never reschedules.
        min_busy_seconds: Busy window for manual refreshes.
        sleep: Awaitable sleep, injectable for tests.
    """

    def __init__(
        self,
        scope: str,
        probe: Callable[[], Awaitable[object]],
        records: Callable[[], list[StatusRecord]],
        policy: PollIntervalPolicy,
        *,
        progress: Callable[[], list[FileProgress]] | None = None,
        repeat: bool = True,
        min_busy_seconds: float = constants.REFRESH_MIN_BUSY_MS / 1000,
        sleep: SleepFn | None = None,
    ) -> None:
        self.scope = scope
        self._probe = probe
        self._records = records
        self._progress = progress or list
        self._policy = policy
        self._repeat = repeat
        self._sleep = sleep or asyncio.sleep
        self._task: asyncio.Task[None] | None = None
        self._wake = asyncio.Event()
        self._refresh = RefreshController(self._manual_probe, min_busy_seconds=min_busy_seconds)
        self.ticket: PollTicket | None = None
        self.last_error: MonitorError | None = None
        self.probe_count = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> Subscription:
        if self._task is None:
            self._task = asyncio.ensure_future(self._run())
            logger.info("subscription started | scope=%s | repeat=%s", self.scope, self._repeat)
        return self

    def stop(self) -> None:
        """Cancel the poll timer and refresh timers; in-flight probes finish."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self._refresh.close()
        self.ticket = None
        logger.info("subscription stopped | scope=%s | probes=%d", self.scope, self.probe_count)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Manual refresh
    # ------------------------------------------------------------------

    async def refresh(self) -> bool:
        """Probe now unless a manual refresh is in flight or busy."""
        return await self._refresh.refresh(self.scope)

    @property
    def is_refreshing(self) -> bool:
        return self._refresh.is_busy(self.scope)

    @property
    def can_refresh(self) -> bool:
        return self._refresh.can_refresh(self.scope)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def records(self) -> list[StatusRecord]:
        """Cached records currently in scope."""
        return self._records()

    def next_interval(self) -> int:
        return self._policy.next_interval(self._records(), self._progress())

    def reschedule(self) -> None:
        """Wake a pending sleep if the records in scope now call for another interval."""
        if self.ticket is None or not self.running:
            return
        if self.next_interval() != self.ticket.interval_ms:
            self._wake.set()

    async def _run(self) -> None:
        probe_due = True
        while True:
            if probe_due:
                await asyncio.shield(asyncio.ensure_future(self._probe_once()))
                if not self._repeat:
                    return
            self._wake.clear()
            interval_ms = self.next_interval()
            loop = asyncio.get_running_loop()
            self.ticket = PollTicket(
                entity_id=self.scope,
                next_due_at=loop.time() + interval_ms / 1000,
                interval_ms=interval_ms,
            )
            logger.debug("poll scheduled | scope=%s | interval_ms=%d", self.scope, interval_ms)
            probe_due = await self._wait(interval_ms / 1000)

    async def _wait(self, seconds: float) -> bool:
        """Sleep until the interval elapses (``True``) or a reschedule wakes us (``False``)."""
        sleeper = asyncio.ensure_future(self._sleep(seconds))
        waker = asyncio.ensure_future(self._wake.wait())
        try:
            done, _ = await asyncio.wait({sleeper, waker}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            sleeper.cancel()
            waker.cancel()
        if sleeper in done:
            return True
        logger.debug("poll rescheduled early | scope=%s", self.scope)
        return False

    async def _probe_once(self) -> MonitorError | None:
        try:
            await self._probe()
        except MonitorError as exc:
            self.last_error = exc
            logger.warning(
                "poll failed | scope=%s | category=%s | error=%s",
                self.scope,
                exc.category,
                exc,
            )
            return exc
        else:
            self.last_error = None
            return None
        finally:
            self.probe_count += 1

    async def _manual_probe(self, scope: str) -> None:
        error = await self._probe_once()
        self.reschedule()
        if error is not None:
            raise error
