"""Data models and schemas.

Defines the data structures used throughout the monitor:
- StatusRecord: Latest known status of a tracked entity
- ConnectivityState / JobState: Tagged per-class state enumerations
- AggregateSummary: Counts by state derived from the status cache
- Project / UploadJob / FileProgress / DatabaseHealth: Backend payloads
"""

from ingest_monitor.models.api import (
    DatabaseHealth,
    DbConfig,
    FileProgress,
    Project,
    ProjectCreate,
    ProjectUpdate,
    UploadJob,
)
from ingest_monitor.models.status import (
    AggregateSummary,
    ConnectivityState,
    EntityClass,
    JobState,
    ModelValidationError,
    PollTicket,
    RefreshRequest,
    StatusRecord,
    parse_state,
)

__all__ = [
    "AggregateSummary",
    "ConnectivityState",
    "DatabaseHealth",
    "DbConfig",
    "EntityClass",
    "FileProgress",
    "JobState",
    "ModelValidationError",
    "PollTicket",
    "Project",
    "ProjectCreate",
    "ProjectUpdate",
    "RefreshRequest",
    "StatusRecord",
    "UploadJob",
    "parse_state",
]
