"""Stage mapper — five-stage display projection of an upload job.

Derives a coarse progress view (validate → transfer → extract → build →
finalize) from a job's discrete state plus the project's file-level
progress. Stages overlap on purpose to show a pipelined backend; this is
a display projection only and must never be read back as job state.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ingest_monitor.models.status import JobState

if TYPE_CHECKING:
    from collections.abc import Iterator

    from ingest_monitor.models.api import FileProgress
    from ingest_monitor.models.status import StatusRecord


class StageState(enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class StageDefinition:
    key: str
    label: str
    description: str


STAGE_DEFINITIONS: tuple[StageDefinition, ...] = (
    StageDefinition("validate", "Validating files", "Checking file type and size..."),
    StageDefinition("transfer", "Uploading", "Transferring files to server..."),
    StageDefinition("extract", "Processing files", "Extracting dialog nodes from files..."),
    StageDefinition("build", "Building knowledge graph", "Creating node relationships..."),
    StageDefinition("finalize", "Generating visualizations", "Preparing graph visualizations..."),
)

VALIDATE, TRANSFER, EXTRACT, BUILD, FINALIZE = range(len(STAGE_DEFINITIONS))

BUILD_THRESHOLD_PCT = 50.0
BUILD_OFFSET_PCT = 25.0
FINALIZE_THRESHOLD_PCT = 80.0
FINALIZE_OFFSET_PCT = 10.0


@dataclass(frozen=True, slots=True)
class Stage:
    """One row of the stage view.

    ``progress_percent`` is ``None`` when the value is indeterminate
    (processing with no file-level progress available).
    """

    key: str
    label: str
    description: str
    progress_percent: float | None
    state: StageState

    @property
    def indeterminate(self) -> bool:
        return self.progress_percent is None

    def to_dict(self) -> dict[str, object]:
        return {
            "key": self.key,
            "label": self.label,
            "description": self.description,
            "progress_percent": self.progress_percent,
            "state": self.state.value,
            "indeterminate": self.indeterminate,
        }


@dataclass(frozen=True, slots=True)
class StageView:
    """Ordered stages plus the index of the furthest stage in play.

    ``current_stage`` is ``-1`` for a failed job.
    """

    stages: tuple[Stage, ...]
    current_stage: int

    def __getitem__(self, key: str) -> Stage:
        for stage in self.stages:
            if stage.key == key:
                return stage
        raise KeyError(key)

    def __iter__(self) -> Iterator[Stage]:
        return iter(self.stages)

    def __len__(self) -> int:
        return len(self.stages)


def map_stages(job: StatusRecord, file_progress: FileProgress | None = None) -> StageView:
    """Project *job* (and optional file progress) onto the five stages.

    Raises:
        ValueError: If *job* is not an upload-job record.
    """
    if not isinstance(job.state, JobState):
        msg = f"map_stages expects a job record, got state {job.state!r}"
        raise ValueError(msg)

    progress: list[float | None] = [0.0] * len(STAGE_DEFINITIONS)
    states = [StageState.PENDING] * len(STAGE_DEFINITIONS)
    current = VALIDATE

    if job.state is JobState.QUEUED:
        for index in (VALIDATE, TRANSFER):
            progress[index] = 100.0
            states[index] = StageState.COMPLETED

    elif job.state is JobState.PROCESSING:
        for index in (VALIDATE, TRANSFER):
            progress[index] = 100.0
            states[index] = StageState.COMPLETED
        current = EXTRACT
        states[EXTRACT] = StageState.ACTIVE

        if file_progress is not None and file_progress.has_data:
            percent = file_progress.progress_percentage
            progress[EXTRACT] = percent
            if percent > BUILD_THRESHOLD_PCT:
                current = BUILD
                progress[BUILD] = max(0.0, percent - BUILD_OFFSET_PCT)
                states[BUILD] = StageState.ACTIVE
            if percent > FINALIZE_THRESHOLD_PCT:
                current = FINALIZE
                progress[FINALIZE] = max(0.0, percent - FINALIZE_OFFSET_PCT)
                states[FINALIZE] = StageState.ACTIVE
        else:
            progress[EXTRACT] = None

    elif job.state is JobState.COMPLETED:
        progress = [100.0] * len(STAGE_DEFINITIONS)
        states = [StageState.COMPLETED] * len(STAGE_DEFINITIONS)
        current = FINALIZE

    else:
        states = [StageState.ERROR] * len(STAGE_DEFINITIONS)
        current = -1

    stages = tuple(
        Stage(
            key=definition.key,
            label=definition.label,
            description=definition.description,
            progress_percent=progress[index],
            state=states[index],
        )
        for index, definition in enumerate(STAGE_DEFINITIONS)
    )
    return StageView(stages=stages, current_stage=current)
