"""Status cache — the single source of truth for tracked entity status.

An explicit, injectable store of ``StatusRecord``s keyed by
``(entity_class, entity_id)``. Writes notify every listener registered for
the record's entity class *synchronously*, before ``set`` returns, so
derived views (aggregates, subscriptions) are never observed out of step
with the cache.

Concurrency:
    The engine runs on a single asyncio loop and only suspends at network
    boundaries, so no locking is needed. Overlapping probes for the same
    entity are handled by request sequence numbers: take a token with
    ``next_sequence()`` before calling the backend and pass it to
    ``set(record, sequence=token)``; a response carrying a token older than
    the last one applied is discarded. Writes without a token are plain
    last-write-wins.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import TYPE_CHECKING

from ingest_monitor.models.status import EntityClass, StatusRecord

if TYPE_CHECKING:
    from collections.abc import Callable

    Listener = Callable[[EntityClass, str, StatusRecord | None], None]

logger = logging.getLogger("ingest_monitor.sync.cache")

CacheKey = tuple[EntityClass, str]


class StatusCache:
    """In-memory status store with per-entity-class observers.

    Listeners are called as ``listener(entity_class, entity_id, record)``
    where ``record`` is ``None`` after an eviction. A listener that raises
    propagates the error to the writer.
    """

    def __init__(self) -> None:
        self._records: dict[CacheKey, StatusRecord] = {}
        self._invalidated: set[CacheKey] = set()
        self._issued: dict[CacheKey, int] = defaultdict(int)
        self._applied: dict[CacheKey, int] = {}
        self._listeners: dict[EntityClass, list[Listener]] = defaultdict(list)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, entity_class: EntityClass, entity_id: str) -> StatusRecord | None:
        return self._records.get((entity_class, entity_id))

    def records(self, entity_class: EntityClass) -> list[StatusRecord]:
        """Snapshot of every cached record of one class."""
        return [r for (cls, _), r in self._records.items() if cls is entity_class]

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def __len__(self) -> int:
        return len(self._records)

    def is_invalidated(self, entity_class: EntityClass, entity_id: str) -> bool:
        return (entity_class, entity_id) in self._invalidated

    def invalidated(self, entity_class: EntityClass) -> list[str]:
        return sorted(eid for cls, eid in self._invalidated if cls is entity_class)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def last_applied(self, entity_class: EntityClass, entity_id: str) -> int:
        """Sequence number of the last applied sequenced write (0 if none)."""
        return self._applied.get((entity_class, entity_id), 0)

    def next_sequence(self, entity_class: EntityClass, entity_id: str) -> int:
        """Issue a request token for a probe that is about to start."""
        key = (entity_class, entity_id)
        self._issued[key] += 1
        return self._issued[key]

    def set(self, record: StatusRecord, *, sequence: int | None = None) -> bool:
        """Store *record* and notify listeners before returning.

        Returns:
            ``False`` when the write was discarded because a response with
            a newer sequence number has already been applied.
        """
        key = (record.entity_class, record.entity_id)
        if sequence is not None:
            last = self._applied.get(key, 0)
            if sequence < last:
                logger.info(
                    "stale write discarded | class=%s | entity=%s | sequence=%d | applied=%d",
                    record.entity_class.value,
                    record.entity_id,
                    sequence,
                    last,
                )
                return False
            self._applied[key] = sequence
        self._records[key] = record
        self._invalidated.discard(key)
        self._notify(record.entity_class, record.entity_id, record)
        return True

    def invalidate(self, entity_class: EntityClass, entity_id: str) -> None:
        """Mark a record for re-probe; the last known value stays readable."""
        key = (entity_class, entity_id)
        if key in self._records:
            self._invalidated.add(key)

    def invalidate_all(self, entity_class: EntityClass) -> None:
        for cls, eid in list(self._records):
            if cls is entity_class:
                self._invalidated.add((cls, eid))

    def evict(self, entity_class: EntityClass, entity_id: str) -> StatusRecord | None:
        """Remove a record (owning project/job deleted) and notify."""
        key = (entity_class, entity_id)
        record = self._records.pop(key, None)
        self._invalidated.discard(key)
        if record is not None:
            self._notify(entity_class, entity_id, None)
        return record

    def restore(
        self,
        entity_class: EntityClass,
        entity_id: str,
        previous: StatusRecord | None,
        *,
        sequence: int,
        applied: int,
    ) -> bool:
        """Undo the sequenced write *sequence* if nothing newer has landed since.

        The record goes back to *previous* (evicted when ``None``) and the
        applied sequence rolls back to *applied*, so an older request that
        is still in flight can land its response afterwards.

        Returns:
            ``False`` when a newer write owns the entry and nothing changed.
        """
        key = (entity_class, entity_id)
        if self._applied.get(key, 0) != sequence:
            return False
        if applied:
            self._applied[key] = applied
        else:
            self._applied.pop(key, None)
        if previous is None:
            self._records.pop(key, None)
            self._invalidated.discard(key)
        else:
            self._records[key] = previous
        logger.debug(
            "write rolled back | class=%s | entity=%s | sequence=%d | applied=%d",
            entity_class.value,
            entity_id,
            sequence,
            applied,
        )
        self._notify(entity_class, entity_id, previous)
        return True

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(
        self,
        entity_class: EntityClass,
        listener: Listener,
    ) -> Callable[[], None]:
        """Register *listener* for writes of one class; returns an unsubscribe."""
        self._listeners[entity_class].append(listener)

        def _unsubscribe() -> None:
            listeners = self._listeners[entity_class]
            if listener in listeners:
                listeners.remove(listener)

        return _unsubscribe

    def _notify(self, entity_class: EntityClass, entity_id: str, record: StatusRecord | None) -> None:
        for listener in list(self._listeners[entity_class]):
            listener(entity_class, entity_id, record)
