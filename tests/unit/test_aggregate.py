"""Tests for the aggregate projector.

The summary must equal a fresh count of the cache after every write,
eviction, and stale-write rejection.
"""

from __future__ import annotations

import pytest

from ingest_monitor.models.status import (
    AggregateSummary,
    ConnectivityState,
    EntityClass,
    JobState,
    StatusRecord,
)
from ingest_monitor.sync.aggregate import AggregateProjector, connectivity_summary_dict
from ingest_monitor.sync.cache import StatusCache

CONN = EntityClass.CONNECTIVITY


def _conn(key: str, state: ConnectivityState) -> StatusRecord:
    return StatusRecord(entity_id=key, state=state, error_message="x" if state.is_failure else None)


class TestAggregateProjector:
    def test_initial_summary_reflects_existing_records(self, cache: StatusCache) -> None:
        cache.set(_conn("a", ConnectivityState.ACTIVE))
        projector = AggregateProjector(cache, CONN)
        assert projector.summary.count(ConnectivityState.ACTIVE) == 1

    def test_summary_matches_cache_after_every_write(self, cache: StatusCache) -> None:
        projector = AggregateProjector(cache, CONN)
        writes = [
            ("a", ConnectivityState.CHECKING),
            ("b", ConnectivityState.CHECKING),
            ("a", ConnectivityState.ACTIVE),
            ("b", ConnectivityState.ERROR),
            ("c", ConnectivityState.ACTIVE),
            ("b", ConnectivityState.ACTIVE),
        ]
        for key, state in writes:
            cache.set(_conn(key, state))
            expected = AggregateSummary.from_records(CONN, cache.records(CONN))
            assert projector.summary == expected
            assert projector.summary.total == len(cache.records(CONN))

        cache.evict(CONN, "c")
        assert projector.summary.total == 2
        assert projector.summary.count(ConnectivityState.ACTIVE) == 2

    def test_ignores_other_entity_class(self, cache: StatusCache) -> None:
        projector = AggregateProjector(cache, CONN)
        cache.set(StatusRecord(entity_id="job-1", state=JobState.QUEUED))
        assert projector.summary.total == 0

    def test_on_change_callbacks(self, cache: StatusCache) -> None:
        projector = AggregateProjector(cache, CONN)
        totals: list[int] = []
        remove = projector.on_change(lambda summary: totals.append(summary.total))
        cache.set(_conn("a", ConnectivityState.ACTIVE))
        remove()
        cache.set(_conn("b", ConnectivityState.ACTIVE))
        assert totals == [1]

    def test_close_stops_tracking(self, cache: StatusCache) -> None:
        projector = AggregateProjector(cache, CONN)
        projector.close()
        cache.set(_conn("a", ConnectivityState.ACTIVE))
        assert projector.summary.total == 0
        assert projector.recompute().total == 1


class TestConnectivitySummaryDict:
    def test_dashboard_field_names(self, cache: StatusCache) -> None:
        projector = AggregateProjector(cache, CONN)
        cache.set(_conn("a", ConnectivityState.ACTIVE))
        cache.set(_conn("b", ConnectivityState.ERROR))
        cache.set(_conn("c", ConnectivityState.CHECKING))
        assert connectivity_summary_dict(projector.summary) == {
            "total_databases": 3,
            "active_databases": 1,
            "error_databases": 1,
            "checking_databases": 1,
        }

    def test_rejects_job_summary(self) -> None:
        with pytest.raises(ValueError, match="connectivity"):
            connectivity_summary_dict(AggregateSummary.from_records(EntityClass.JOB, []))
