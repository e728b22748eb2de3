"""Transient-retry resolver — settle one status fetch into the cache.

Connectivity probes retry transient failures with bounded exponential
backoff; permanent failures (credentials, configuration, 4xx) settle into
``error`` on the first attempt. Upload-job fetches never retry locally:
the backend is the source of truth for job state and a failed fetch is
surfaced to the caller untouched.

Classification:
    A failure is *transient* when its message contains one of
    ``TRANSIENT_ERROR_MARKERS`` (case-insensitive), or when the client
    raised a retryable ``ApiError`` (transport failure, 5xx). Everything
    else is *permanent*.

Backoff:
    Attempt ``n`` (1-based) that fails transiently waits
    ``2**n * retry_base_seconds`` before attempt ``n + 1``; with the
    defaults that is 2 s then 4 s across three attempts.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from ingest_monitor.client.base import ApiError, ApiTransportError
from ingest_monitor.core import constants
from ingest_monitor.models.status import ConnectivityState, EntityClass, StatusRecord

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from ingest_monitor.client.base import IngestBackend
    from ingest_monitor.core.config import MonitorConfig
    from ingest_monitor.models.api import FileProgress, UploadJob
    from ingest_monitor.sync.cache import StatusCache

    SleepFn = Callable[[float], Awaitable[None]]

logger = logging.getLogger("ingest_monitor.sync.retry")

_EPOCH = datetime.min.replace(tzinfo=UTC)


def is_transient_error(
    message: str | None,
    markers: Iterable[str] = constants.TRANSIENT_ERROR_MARKERS,
) -> bool:
    """Return ``True`` if *message* looks like connectivity noise."""
    if not message:
        return False
    lowered = message.lower()
    return any(marker in lowered for marker in markers)


def is_transient_exception(exc: ApiError) -> bool:
    """Classify a client error; 4xx responses are always permanent."""
    if exc.status_code is not None and 400 <= exc.status_code < 500:
        return False
    return exc.retryable or is_transient_error(exc.message)


def backoff_seconds(attempt: int, base_seconds: float = constants.HEALTH_RETRY_BASE_MS / 1000) -> float:
    """Delay after failed attempt *attempt* (1-based): ``2**attempt * base``."""
    return (2**attempt) * base_seconds


class ConnectivityResolver:
    """Probe project database connectivity and settle the result in the cache.

    Args:
        backend: Backend adapter to call.
        cache: Shared status cache written with every transition.
        max_attempts: Total backend calls per probe, first call included.
        retry_base_seconds: Exponential backoff base.
        sleep: Awaitable sleep, injectable so tests do not wait.
    """

    def __init__(
        self,
        backend: IngestBackend,
        cache: StatusCache,
        *,
        max_attempts: int = constants.HEALTH_MAX_ATTEMPTS,
        retry_base_seconds: float = constants.HEALTH_RETRY_BASE_MS / 1000,
        sleep: SleepFn | None = None,
    ) -> None:
        if max_attempts < 1:
            msg = f"max_attempts must be >= 1, got {max_attempts}"
            raise ValueError(msg)
        self._backend = backend
        self._cache = cache
        self._max_attempts = max_attempts
        self._retry_base = retry_base_seconds
        self._sleep = sleep or asyncio.sleep

    @classmethod
    def from_config(
        cls,
        backend: IngestBackend,
        cache: StatusCache,
        config: MonitorConfig,
        *,
        sleep: SleepFn | None = None,
    ) -> ConnectivityResolver:
        return cls(
            backend,
            cache,
            max_attempts=config.health_max_attempts,
            retry_base_seconds=config.health_retry_base_seconds,
            sleep=sleep,
        )

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    async def probe(self, project_key: str) -> StatusRecord:
        """Check one project's database and return the settled record.

        Raises:
            ApiTransportError: If the client could not reach the backend on
                any attempt. The cache is restored to its pre-probe value.
        """
        entity = EntityClass.CONNECTIVITY
        previous = self._cache.get(entity, project_key)
        prior_applied = self._cache.last_applied(entity, project_key)
        sequence = self._cache.next_sequence(entity, project_key)
        self._cache.set(
            StatusRecord(entity_id=project_key, state=ConnectivityState.CHECKING),
            sequence=sequence,
        )

        attempt = 1
        while True:
            try:
                health = await self._backend.get_project_database_health(project_key)
            except ApiError as exc:
                if is_transient_exception(exc) and attempt < self._max_attempts:
                    await self._wait_before_retry(project_key, attempt, exc.message)
                    attempt += 1
                    continue
                if isinstance(exc, ApiTransportError):
                    logger.error(
                        "connectivity probe unreachable | project=%s | attempts=%d | error=%s",
                        project_key,
                        attempt,
                        exc.message,
                    )
                    self._cache.restore(
                        entity, project_key, previous, sequence=sequence, applied=prior_applied
                    )
                    raise
                record = StatusRecord(
                    entity_id=project_key,
                    state=ConnectivityState.ERROR,
                    error_message=exc.message,
                )
                break

            state = health.categorized_state()
            if (
                state is ConnectivityState.ERROR
                and is_transient_error(health.error_message)
                and attempt < self._max_attempts
            ):
                await self._wait_before_retry(project_key, attempt, health.error_message or "")
                attempt += 1
                continue
            record = health.to_record()
            break

        applied = self._cache.set(record, sequence=sequence)
        log = logger.warning if record.state is ConnectivityState.ERROR else logger.info
        log(
            "connectivity probe settled | project=%s | state=%s | attempts=%d | applied=%s | error=%s",
            project_key,
            record.state.value,
            attempt,
            applied,
            record.error_message or "",
        )
        return record

    async def probe_all(self) -> list[StatusRecord]:
        """Batch-check every project and populate the per-project records.

        No local retry: a failed batch call propagates and leaves the
        cache untouched.
        """
        results = await self._backend.get_database_health()
        records: list[StatusRecord] = []
        for health in results:
            record = health.to_record()
            sequence = self._cache.next_sequence(EntityClass.CONNECTIVITY, record.entity_id)
            self._cache.set(record, sequence=sequence)
            records.append(record)
        logger.info("batch connectivity check | projects=%d", len(records))
        return records

    async def _wait_before_retry(self, project_key: str, attempt: int, reason: str) -> None:
        delay = backoff_seconds(attempt, self._retry_base)
        logger.warning(
            "transient connectivity failure (attempt %d/%d) | project=%s | backoff=%.1fs | error=%s",
            attempt,
            self._max_attempts,
            project_key,
            delay,
            reason,
        )
        await self._sleep(delay)


class JobStatusFetcher:
    """Fetch upload jobs and file progress; no local retry.

    The job list replaces the cached job records in scope: jobs that no
    longer appear in the backend listing are evicted.
    """

    def __init__(self, backend: IngestBackend, cache: StatusCache) -> None:
        self._backend = backend
        self._cache = cache
        self._progress: dict[str, FileProgress] = {}

    async def fetch(self, project_key: str | None = None) -> list[UploadJob]:
        """Return jobs (newest first), optionally for one project.

        Raises:
            ApiError: Propagated untouched; cached records are left as-is.
        """
        try:
            uploads = await self._backend.list_uploads()
        except ApiError:
            logger.exception("job fetch failed | project=%s", project_key or "*")
            raise

        jobs = [j for j in uploads if project_key is None or j.project_key == project_key]
        jobs.sort(key=lambda j: j.created or _EPOCH, reverse=True)

        checked_at = datetime.now(UTC)
        records = [job.to_record(checked_at=checked_at) for job in jobs]
        for record in records:
            self._cache.set(record)
        seen = {record.entity_id for record in records}

        for record in self._cache.records(EntityClass.JOB):
            in_scope = project_key is None or record.project_key == project_key
            if in_scope and record.entity_id not in seen:
                self._cache.evict(EntityClass.JOB, record.entity_id)

        logger.info(
            "job fetch completed | project=%s | jobs=%d | active=%d",
            project_key or "*",
            len(jobs),
            sum(1 for r in records if r.is_transitional),
        )
        return jobs

    async def fetch_progress(self, project_key: str) -> FileProgress:
        """Fetch and remember file-level progress for one project."""
        progress = await self._backend.get_file_progress(project_key)
        self._progress[project_key] = progress
        logger.debug(
            "file progress | project=%s | processed=%d/%d | pct=%.0f",
            project_key,
            progress.processed_files,
            progress.total_files,
            progress.progress_percentage,
        )
        return progress

    def progress_for(self, project_key: str) -> FileProgress | None:
        return self._progress.get(project_key)

    def forget_progress(self, project_key: str) -> None:
        self._progress.pop(project_key, None)
