"""Poll interval policy — fast while anything moves, idle otherwise.

Evaluated after every completed probe, so a subscription accelerates as
soon as work becomes active and slows down as soon as it settles.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from ingest_monitor.core import constants
from ingest_monitor.models.api import FileProgress

if TYPE_CHECKING:
    from collections.abc import Iterable

    from ingest_monitor.core.config import MonitorConfig
    from ingest_monitor.models.status import StatusRecord


@dataclass(frozen=True, slots=True)
class PollIntervalPolicy:
    """Choose the next polling delay for one subscription scope.

    Attributes:
        fast_ms: Interval while any record or progress counter is active.
        idle_ms: Interval once everything in scope has settled.
    """

    fast_ms: int = constants.FAST_POLL_INTERVAL_MS
    idle_ms: int = constants.IDLE_POLL_INTERVAL_MS

    def __post_init__(self) -> None:
        if self.fast_ms <= 0:
            msg = f"fast_ms must be > 0, got {self.fast_ms}"
            raise ValueError(msg)
        if self.idle_ms < self.fast_ms:
            msg = f"idle_ms ({self.idle_ms}) must be >= fast_ms ({self.fast_ms})"
            raise ValueError(msg)

    @classmethod
    def for_jobs(cls, config: MonitorConfig | None = None) -> PollIntervalPolicy:
        """Job and file-progress polling: 2 s / 10 s."""
        if config is None:
            return cls()
        return cls(fast_ms=config.fast_poll_interval_ms, idle_ms=config.idle_poll_interval_ms)

    @classmethod
    def for_status_page(cls, config: MonitorConfig | None = None) -> PollIntervalPolicy:
        """Dedicated status page: 2 s / 30 s."""
        if config is None:
            return cls(idle_ms=constants.STATUS_PAGE_POLL_INTERVAL_MS)
        return cls(
            fast_ms=config.fast_poll_interval_ms,
            idle_ms=config.status_page_poll_interval_ms,
        )

    def is_active(
        self,
        records: Iterable[StatusRecord],
        progress: Iterable[FileProgress] = (),
    ) -> bool:
        if any(record.is_transitional for record in records):
            return True
        return any(p.is_processing for p in progress)

    def next_interval(
        self,
        records: Iterable[StatusRecord],
        progress: FileProgress | Iterable[FileProgress] | None = None,
    ) -> int:
        """Return the next delay in milliseconds."""
        if progress is None:
            progress_list: list[FileProgress] = []
        elif isinstance(progress, FileProgress):
            progress_list = [progress]
        else:
            progress_list = list(progress)
        return self.fast_ms if self.is_active(records, progress_list) else self.idle_ms
