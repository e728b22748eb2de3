"""Tests for the status record models.

Covers state enums, StatusRecord invariants, AggregateSummary counting
and state parsing from wire values.
"""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from ingest_monitor.models.status import (
    AggregateSummary,
    ConnectivityState,
    EntityClass,
    JobState,
    ModelValidationError,
    StatusRecord,
    parse_state,
)


class TestStateEnums:
    def test_entity_class_states(self) -> None:
        assert EntityClass.CONNECTIVITY.states == (
            ConnectivityState.CHECKING,
            ConnectivityState.ACTIVE,
            ConnectivityState.ERROR,
        )
        assert len(EntityClass.JOB.states) == 4

    def test_transitional_states(self) -> None:
        assert ConnectivityState.CHECKING.is_transitional
        assert not ConnectivityState.ACTIVE.is_transitional
        assert JobState.QUEUED.is_transitional
        assert JobState.PROCESSING.is_transitional
        assert not JobState.COMPLETED.is_transitional
        assert not JobState.FAILED.is_transitional

    def test_failure_states(self) -> None:
        assert ConnectivityState.ERROR.is_failure
        assert JobState.FAILED.is_failure
        assert not JobState.COMPLETED.is_failure

    def test_parse_state(self) -> None:
        assert parse_state(EntityClass.JOB, "processing") is JobState.PROCESSING
        assert parse_state(EntityClass.CONNECTIVITY, "active") is ConnectivityState.ACTIVE

    def test_parse_unknown_state_rejected(self) -> None:
        with pytest.raises(ModelValidationError, match="must be one of"):
            parse_state(EntityClass.JOB, "paused")


class TestStatusRecord:
    def test_connectivity_defaults_project_key(self) -> None:
        record = StatusRecord(entity_id="acme", state=ConnectivityState.ACTIVE, latency_ms=12.5)
        assert record.project_key == "acme"
        assert record.entity_class is EntityClass.CONNECTIVITY
        assert record.last_checked_at.tzinfo is not None

    def test_error_message_dropped_for_non_failure(self) -> None:
        record = StatusRecord(entity_id="acme", state=ConnectivityState.ACTIVE, error_message="stale")
        assert record.error_message is None

    def test_error_message_kept_for_failure(self) -> None:
        record = StatusRecord(entity_id="job-1", state=JobState.FAILED, error_message="bad file")
        assert record.error_message == "bad file"

    def test_empty_entity_id_rejected(self) -> None:
        with pytest.raises(ModelValidationError, match="entity_id"):
            StatusRecord(entity_id="  ", state=JobState.QUEUED)

    def test_raw_string_state_rejected(self) -> None:
        with pytest.raises(ModelValidationError, match="state"):
            StatusRecord(entity_id="job-1", state="queued")  # type: ignore[arg-type]

    def test_latency_only_for_connectivity(self) -> None:
        with pytest.raises(ModelValidationError, match="only valid for connectivity"):
            StatusRecord(entity_id="job-1", state=JobState.QUEUED, latency_ms=5.0)

    def test_negative_latency_rejected(self) -> None:
        with pytest.raises(ModelValidationError, match=">= 0"):
            StatusRecord(entity_id="acme", state=ConnectivityState.ACTIVE, latency_ms=-1.0)

    def test_frozen(self) -> None:
        record = StatusRecord(entity_id="acme", state=ConnectivityState.ACTIVE)
        with pytest.raises(AttributeError):
            record.state = ConnectivityState.ERROR  # type: ignore[misc]

    def test_to_dict(self) -> None:
        created = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
        record = StatusRecord(
            entity_id="job-1",
            state=JobState.PROCESSING,
            project_key="acme",
            file_name="dialogs.json",
            created_at=created,
        )
        payload = record.to_dict()
        assert payload["entity_class"] == "job"
        assert payload["state"] == "processing"
        assert payload["created_at"] == created.isoformat()
        assert payload["latency_ms"] is None


class TestAggregateSummary:
    def test_every_state_has_a_count(self) -> None:
        summary = AggregateSummary.from_records(EntityClass.JOB, [])
        assert summary.total == 0
        assert set(summary.counts) == set(JobState)

    def test_counts_by_state(self) -> None:
        records = [
            StatusRecord(entity_id="a", state=ConnectivityState.ACTIVE),
            StatusRecord(entity_id="b", state=ConnectivityState.ACTIVE),
            StatusRecord(entity_id="c", state=ConnectivityState.ERROR, error_message="x"),
        ]
        summary = AggregateSummary.from_records(EntityClass.CONNECTIVITY, records)
        assert summary.total == 3
        assert summary.count(ConnectivityState.ACTIVE) == 2
        assert summary.count(ConnectivityState.CHECKING) == 0
        assert summary.to_dict() == {"total": 3, "checking": 0, "active": 2, "error": 1}

    def test_other_class_ignored(self) -> None:
        records = [StatusRecord(entity_id="j", state=JobState.QUEUED)]
        summary = AggregateSummary.from_records(EntityClass.CONNECTIVITY, records)
        assert summary.total == 0
