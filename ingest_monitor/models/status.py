"""Typed status models for the synchronisation engine.

Defines the records that flow through the status cache:

- ``EntityClass``: Category of tracked object (connectivity check vs upload job)
- ``ConnectivityState`` / ``JobState``: Closed state enumerations per class
- ``StatusRecord``: Latest known status of one tracked entity
- ``AggregateSummary``: Counts by state, derived from the cache
- ``PollTicket`` / ``RefreshRequest``: Transient scheduling metadata

Design notes:
- Records are frozen dataclasses; a new probe result is a new record.
- State enums carry ``is_transitional`` / ``is_failure`` so the policy and
  the projector never compare raw strings.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import UTC, datetime

from ingest_monitor.core.exceptions import ValidationError

# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ModelValidationError(ValueError, ValidationError):
    """Raised when a status model is constructed with invalid field values.

    Attributes:
        model: Name of the model class that failed validation.
        field_name: The field that violated the invariant.
        value: The invalid value.
    """

    default_stage = "model_validation"
    default_code = "MODEL_VALIDATION_FAILED"

    def __init__(self, model: str, field_name: str, value: object, message: str) -> None:
        self.model = model
        self.field_name = field_name
        self.value = value
        formatted = f"{model}.{field_name}={value!r}: {message}"
        ValidationError.__init__(self, formatted)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class EntityClass(enum.Enum):
    """Category of tracked entity, each with its own state enumeration."""

    CONNECTIVITY = "connectivity"
    JOB = "job"

    @property
    def states(self) -> tuple[ConnectivityState, ...] | tuple[JobState, ...]:
        """Every state value of this class, in declaration order."""
        if self is EntityClass.CONNECTIVITY:
            return tuple(ConnectivityState)
        return tuple(JobState)


class ConnectivityState(enum.Enum):
    """Backing-store connectivity of one project.

    Values:
        CHECKING: Probe in progress (or backend still checking).
        ACTIVE:   Database reachable.
        ERROR:    Confirmed failure (credentials, config, or exhausted retries).
    """

    CHECKING = "checking"
    ACTIVE = "active"
    ERROR = "error"

    @property
    def entity_class(self) -> EntityClass:
        return EntityClass.CONNECTIVITY

    @property
    def is_transitional(self) -> bool:
        return self is ConnectivityState.CHECKING

    @property
    def is_failure(self) -> bool:
        return self is ConnectivityState.ERROR


class JobState(enum.Enum):
    """Lifecycle state of an upload job as reported by the backend.

    Values:
        QUEUED:     Accepted, waiting for a worker.
        PROCESSING: Files are being extracted and indexed.
        COMPLETED:  Job finished successfully.
        FAILED:     Job failed; see ``error_message``.
    """

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def entity_class(self) -> EntityClass:
        return EntityClass.JOB

    @property
    def is_transitional(self) -> bool:
        return self in (JobState.QUEUED, JobState.PROCESSING)

    @property
    def is_failure(self) -> bool:
        return self is JobState.FAILED


EntityState = ConnectivityState | JobState


def parse_state(entity_class: EntityClass, value: str) -> EntityState:
    """Convert a wire status string into the class's state enum.

    Raises:
        ModelValidationError: If *value* is not a member of the class's enum.
    """
    enum_cls = ConnectivityState if entity_class is EntityClass.CONNECTIVITY else JobState
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise ModelValidationError(
            enum_cls.__name__,
            "value",
            value,
            f"must be one of {[s.value for s in enum_cls]}",
        ) from exc


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class StatusRecord:
    """Latest known status of one tracked entity.

    Attributes:
        entity_id: Project key (connectivity) or job id (upload job).
        state: Current state; its type determines the entity class.
        error_message: Failure detail; only kept when ``state.is_failure``.
        last_checked_at: When the most recent probe completed (UTC).
        latency_ms: Backend-reported probe latency (connectivity only).
        project_key: Owning project. Defaults to ``entity_id`` for connectivity.
        file_name: Uploaded file name (jobs only).
        created_at: Job creation time (jobs only).
    """

    entity_id: str
    state: EntityState
    error_message: str | None = None
    last_checked_at: datetime = field(default_factory=_utcnow)
    latency_ms: float | None = None
    project_key: str = ""
    file_name: str = ""
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        if not self.entity_id or not self.entity_id.strip():
            raise ModelValidationError("StatusRecord", "entity_id", self.entity_id, "must not be empty")
        if not isinstance(self.state, ConnectivityState | JobState):
            raise ModelValidationError(
                "StatusRecord", "state", self.state, "must be a ConnectivityState or JobState"
            )
        if self.latency_ms is not None:
            if self.state.entity_class is not EntityClass.CONNECTIVITY:
                raise ModelValidationError(
                    "StatusRecord", "latency_ms", self.latency_ms, "only valid for connectivity"
                )
            if self.latency_ms < 0:
                raise ModelValidationError("StatusRecord", "latency_ms", self.latency_ms, "must be >= 0")
        if not self.state.is_failure and self.error_message is not None:
            object.__setattr__(self, "error_message", None)
        if not self.project_key and self.state.entity_class is EntityClass.CONNECTIVITY:
            object.__setattr__(self, "project_key", self.entity_id)

    @property
    def entity_class(self) -> EntityClass:
        return self.state.entity_class

    @property
    def is_transitional(self) -> bool:
        return self.state.is_transitional

    def to_dict(self) -> dict[str, object]:
        return {
            "entity_id": self.entity_id,
            "entity_class": self.entity_class.value,
            "state": self.state.value,
            "error_message": self.error_message,
            "last_checked_at": self.last_checked_at.isoformat(),
            "latency_ms": self.latency_ms,
            "project_key": self.project_key,
            "file_name": self.file_name,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True, slots=True)
class AggregateSummary:
    """Counts by state for one entity class.

    ``counts`` always has a key for every state of the class, zero or not.
    """

    entity_class: EntityClass
    counts: dict[EntityState, int]

    @classmethod
    def from_records(cls, entity_class: EntityClass, records: list[StatusRecord]) -> AggregateSummary:
        counts: dict[EntityState, int] = {state: 0 for state in entity_class.states}
        for record in records:
            if record.entity_class is entity_class:
                counts[record.state] += 1
        return cls(entity_class=entity_class, counts=counts)

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    def count(self, state: EntityState) -> int:
        return self.counts.get(state, 0)

    def to_dict(self) -> dict[str, int]:
        """Serialise as ``{"total": n, "<state>": n, ...}``."""
        payload = {"total": self.total}
        payload.update({state.value: n for state, n in self.counts.items()})
        return payload


@dataclass(slots=True)
class PollTicket:
    """Scheduling metadata for the next poll of one subscription scope.

    Attributes:
        entity_id: Scope being polled (project key, or ``"*"`` for all).
        next_due_at: Event-loop time at which the next poll fires.
        interval_ms: Interval that produced ``next_due_at``.
    """

    entity_id: str
    next_due_at: float
    interval_ms: int


@dataclass(slots=True)
class RefreshRequest:
    """In-flight bookkeeping for a manual refresh of one entity id."""

    in_flight: bool = False
    queued_at: float | None = None
