"""Refresh controller — de-duplicated manual refresh with a busy window.

A manual refresh for an entity id runs its action at most once at a time:
calls arriving while one is in flight join it instead of issuing another
backend call. After completion the id stays *busy* for a minimum window
(1 s by default) so a refresh indicator never flashes imperceptibly, and
calls during that window are no-ops.

The action runs as its own task; tearing the controller down cancels the
busy-window timers but never the outstanding backend request.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import TYPE_CHECKING

from ingest_monitor.core import constants
from ingest_monitor.models.status import RefreshRequest

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger("ingest_monitor.sync.refresh")


class RefreshController:
    """Coalesce manual refreshes per entity id.

    Args:
        action: Coroutine function performing the refresh for an id.
        min_busy_seconds: Minimum time the busy flag stays raised after
            the action completes.
    """

    def __init__(
        self,
        action: Callable[[str], Awaitable[object]],
        *,
        min_busy_seconds: float = constants.REFRESH_MIN_BUSY_MS / 1000,
    ) -> None:
        if min_busy_seconds < 0:
            msg = f"min_busy_seconds must be >= 0, got {min_busy_seconds}"
            raise ValueError(msg)
        self._action = action
        self._min_busy = min_busy_seconds
        self._requests: dict[str, RefreshRequest] = {}
        self._tasks: dict[str, asyncio.Future[object]] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._closed = False

    async def refresh(self, entity_id: str) -> bool:
        """Refresh *entity_id* unless a refresh is in flight or busy.

        Returns:
            ``True`` if this call issued the action, ``False`` if it joined
            an in-flight refresh, landed in the busy window, or the
            controller is closed.

        Raises:
            Whatever the action raised, for the caller that issued it and
            for every caller that joined it.
        """
        if self._closed:
            logger.debug("refresh ignored after close | entity=%s", entity_id)
            return False
        task = self._tasks.get(entity_id)
        if task is not None:
            logger.debug("refresh coalesced | entity=%s", entity_id)
            await asyncio.shield(task)
            return False
        if entity_id in self._timers:
            logger.debug("refresh ignored inside busy window | entity=%s", entity_id)
            return False

        loop = asyncio.get_running_loop()
        request = self._requests.setdefault(entity_id, RefreshRequest())
        request.in_flight = True
        request.queued_at = loop.time()

        task = asyncio.ensure_future(self._action(entity_id))
        self._tasks[entity_id] = task
        task.add_done_callback(functools.partial(self._on_done, entity_id))
        await asyncio.shield(task)
        return True

    def is_busy(self, entity_id: str) -> bool:
        return entity_id in self._tasks or entity_id in self._timers

    def can_refresh(self, entity_id: str) -> bool:
        return not self._closed and not self.is_busy(entity_id)

    def request(self, entity_id: str) -> RefreshRequest:
        return self._requests.get(entity_id, RefreshRequest())

    def close(self) -> None:
        """Cancel pending busy-window timers; in-flight actions keep running."""
        self._closed = True
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()

    def _on_done(self, entity_id: str, task: asyncio.Future[object]) -> None:
        self._tasks.pop(entity_id, None)
        request = self._requests.get(entity_id)
        if request is not None:
            request.in_flight = False
            request.queued_at = None

        if not task.cancelled() and task.exception() is not None:
            logger.warning("refresh failed | entity=%s | error=%s", entity_id, task.exception())

        if self._closed:
            return
        loop = task.get_loop()
        self._timers[entity_id] = loop.call_later(self._min_busy, self._end_busy, entity_id)

    def _end_busy(self, entity_id: str) -> None:
        self._timers.pop(entity_id, None)
