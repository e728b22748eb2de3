"""Aggregate projector — counts by state, recomputed on every cache write.

The summary is never patched incrementally: every write or eviction of
the projector's entity class triggers a full recount from the cache, so
the exposed value is always exactly what the cache holds at that moment.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ingest_monitor.models.status import AggregateSummary, ConnectivityState, EntityClass

if TYPE_CHECKING:
    from collections.abc import Callable

    from ingest_monitor.models.status import StatusRecord
    from ingest_monitor.sync.cache import StatusCache

logger = logging.getLogger("ingest_monitor.sync.aggregate")


class AggregateProjector:
    """Keep an ``AggregateSummary`` in step with one entity class of a cache.

    Usage::

        projector = AggregateProjector(cache, EntityClass.CONNECTIVITY)
        projector.on_change(lambda summary: render(summary))
        ...
        projector.close()
    """

    def __init__(self, cache: StatusCache, entity_class: EntityClass) -> None:
        self._cache = cache
        self._entity_class = entity_class
        self._callbacks: list[Callable[[AggregateSummary], None]] = []
        self._summary = AggregateSummary.from_records(entity_class, cache.records(entity_class))
        self._unsubscribe: Callable[[], None] | None = cache.subscribe(entity_class, self._on_write)

    @property
    def entity_class(self) -> EntityClass:
        return self._entity_class

    @property
    def summary(self) -> AggregateSummary:
        return self._summary

    def on_change(self, callback: Callable[[AggregateSummary], None]) -> Callable[[], None]:
        """Call *callback* with every recomputed summary; returns a remover."""
        self._callbacks.append(callback)

        def _remove() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return _remove

    def recompute(self) -> AggregateSummary:
        self._summary = AggregateSummary.from_records(
            self._entity_class, self._cache.records(self._entity_class)
        )
        for callback in list(self._callbacks):
            callback(self._summary)
        return self._summary

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._callbacks.clear()

    def _on_write(self, entity_class: EntityClass, entity_id: str, record: StatusRecord | None) -> None:
        summary = self.recompute()
        logger.debug(
            "aggregate recomputed | class=%s | entity=%s | total=%d",
            entity_class.value,
            entity_id,
            summary.total,
        )


def connectivity_summary_dict(summary: AggregateSummary) -> dict[str, int]:
    """Render a connectivity summary with the dashboard's field names."""
    if summary.entity_class is not EntityClass.CONNECTIVITY:
        msg = f"expected a connectivity summary, got {summary.entity_class.value}"
        raise ValueError(msg)
    return {
        "total_databases": summary.total,
        "active_databases": summary.count(ConnectivityState.ACTIVE),
        "error_databases": summary.count(ConnectivityState.ERROR),
        "checking_databases": summary.count(ConnectivityState.CHECKING),
    }
