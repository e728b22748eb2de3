"""Pydantic schemas for the ingestion backend's JSON payloads.

Each model mirrors one response or request body of the REST surface the
dashboard consumes. Conversion into engine records lives here too, so the
resolver never touches raw dicts.

- ``DbConfig`` / ``Project`` / ``ProjectCreate`` / ``ProjectUpdate``: project CRUD
- ``UploadJob``: one row of ``GET /uploads``
- ``FileProgress``: ``GET /uploads/progress/{project_key}``
- ``DatabaseHealth``: ``GET /api/v1/database/health[/{project_key}]``
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field

from ingest_monitor.models.status import ConnectivityState, EntityClass, StatusRecord, parse_state


class DbConfig(BaseModel):
    """Connection settings for a project's knowledge-graph database."""

    uri: str
    user: str
    password: str
    database: str


class Project(BaseModel):
    key: str
    name: str
    db_config: DbConfig
    created_at: str = ""
    updated_at: str = ""


class ProjectCreate(BaseModel):
    name: str
    db_config: DbConfig


class ProjectUpdate(BaseModel):
    """Partial update; unset fields are not sent."""

    name: str | None = None
    db_config: DbConfig | None = None


class UploadJob(BaseModel):
    """One upload/ingestion job as listed by the backend.

    Attributes:
        id: Job identifier.
        project_key: Owning project.
        file_name: Original name of the uploaded file.
        status: ``queued`` | ``processing`` | ``completed`` | ``failed``.
        created_at: ISO 8601 creation timestamp.
        error_message: Failure detail, when the job failed.
    """

    id: str
    project_key: str
    file_name: str
    status: str
    created_at: str
    error_message: str | None = None

    @property
    def created(self) -> datetime | None:
        return _parse_timestamp(self.created_at)

    def to_record(self, *, checked_at: datetime | None = None) -> StatusRecord:
        return StatusRecord(
            entity_id=self.id,
            state=parse_state(EntityClass.JOB, self.status),
            error_message=self.error_message,
            last_checked_at=checked_at or datetime.now(UTC),
            project_key=self.project_key,
            file_name=self.file_name,
            created_at=self.created,
        )


class FileProgress(BaseModel):
    """File-level processing counters for one project."""

    project_key: str = ""
    total_files: int = Field(default=0, ge=0)
    processed_files: int = Field(default=0, ge=0)
    failed_files: int = Field(default=0, ge=0)
    pending_files: int = Field(default=0, ge=0)
    processing_files: int = Field(default=0, ge=0)
    progress_percentage: float = Field(default=0.0, ge=0.0, le=100.0)

    @property
    def percentage(self) -> float:
        return self.progress_percentage

    @property
    def is_complete(self) -> bool:
        return self.total_files > 0 and self.processed_files == self.total_files

    @property
    def has_errors(self) -> bool:
        return self.failed_files > 0

    @property
    def is_processing(self) -> bool:
        return self.processing_files > 0 or self.pending_files > 0

    @property
    def has_data(self) -> bool:
        return self.total_files > 0


class DatabaseHealth(BaseModel):
    """Connectivity probe result for one project's database."""

    project_key: str
    status: str
    project_name: str = ""
    database_uri: str = ""
    error_message: str | None = None
    response_time_ms: float | None = None
    last_checked: str = ""

    @property
    def checked_at(self) -> datetime:
        return _parse_timestamp(self.last_checked) or datetime.now(UTC)

    def categorized_state(self) -> ConnectivityState:
        """Collapse the backend status onto active / checking / error.

        Anything other than ``active`` or ``checking`` (``inactive``,
        unknown values, credential failures) is an error.
        """
        if self.status == ConnectivityState.ACTIVE.value:
            return ConnectivityState.ACTIVE
        if self.status == ConnectivityState.CHECKING.value:
            return ConnectivityState.CHECKING
        return ConnectivityState.ERROR

    def to_record(self) -> StatusRecord:
        state = self.categorized_state()
        latency = self.response_time_ms
        if latency is not None and latency < 0:
            latency = None
        return StatusRecord(
            entity_id=self.project_key,
            state=state,
            error_message=(self.error_message or f"Database status: {self.status}")
            if state.is_failure
            else None,
            last_checked_at=self.checked_at,
            latency_ms=latency,
        )


def _parse_timestamp(timestamp: str) -> datetime | None:
    """Parse an ISO 8601 timestamp; naive values are taken as UTC."""
    if not timestamp:
        return None
    try:
        parsed = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    except (ValueError, TypeError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
