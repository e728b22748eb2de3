"""Status engine — wires the cache, resolvers, projectors and poll loops.

The engine is what a dashboard view talks to. It owns one injectable
``StatusCache`` and exposes:

- subscriptions for connectivity and upload jobs (adaptive polling; any
  cache write of the tracked class re-evaluates the pending interval),
- de-duplicated manual refreshes,
- aggregate summaries and job stage views read straight from the cache,
- project and upload operations whose side effects keep the cache honest
  (a credentials update re-probes connectivity; a delete evicts records).

Usage::

    async with ApiClient.from_config(config) as api:
        engine = StatusEngine(api, config=config)
        jobs = engine.subscribe_jobs("acme")
        ...
        await engine.aclose()
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from ingest_monitor.core.config import MonitorConfig
from ingest_monitor.models.status import EntityClass
from ingest_monitor.sync.aggregate import AggregateProjector, connectivity_summary_dict
from ingest_monitor.sync.cache import StatusCache
from ingest_monitor.sync.policy import PollIntervalPolicy
from ingest_monitor.sync.poller import Subscription
from ingest_monitor.sync.refresh import RefreshController
from ingest_monitor.sync.retry import ConnectivityResolver, JobStatusFetcher
from ingest_monitor.sync.stages import map_stages

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from ingest_monitor.client.base import IngestBackend
    from ingest_monitor.models.api import (
        FileProgress,
        Project,
        ProjectCreate,
        ProjectUpdate,
        UploadJob,
    )
    from ingest_monitor.models.status import AggregateSummary, StatusRecord
    from ingest_monitor.sync.stages import StageView

    SleepFn = Callable[[float], Awaitable[None]]

logger = logging.getLogger("ingest_monitor.sync.engine")

ALL_SCOPE = "*"


class StatusEngine:
    """Facade over the synchronisation components for one backend."""

    def __init__(
        self,
        backend: IngestBackend,
        *,
        config: MonitorConfig | None = None,
        cache: StatusCache | None = None,
        sleep: SleepFn | None = None,
    ) -> None:
        self.config = config or MonitorConfig()
        self.backend = backend
        self.cache = cache if cache is not None else StatusCache()
        self._sleep = sleep
        self.resolver = ConnectivityResolver.from_config(backend, self.cache, self.config, sleep=sleep)
        self.jobs = JobStatusFetcher(backend, self.cache)
        self.connectivity_projector = AggregateProjector(self.cache, EntityClass.CONNECTIVITY)
        self.job_projector = AggregateProjector(self.cache, EntityClass.JOB)
        busy = self.config.refresh_min_busy_seconds
        self._health_refresh = RefreshController(self.resolver.probe, min_busy_seconds=busy)
        self._batch_refresh = RefreshController(self._probe_all, min_busy_seconds=busy)
        self._subscriptions: list[Subscription] = []
        self._listeners: dict[Subscription, Callable[[], None]] = {}

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe_connectivity(
        self,
        project_keys: Iterable[str],
        *,
        auto_refresh: bool | None = None,
    ) -> Subscription:
        """Probe each project's database, then keep polling on the status-page cadence."""
        keys = list(dict.fromkeys(project_keys))

        async def _probe() -> None:
            results = await asyncio.gather(
                *(self.resolver.probe(key) for key in keys), return_exceptions=True
            )
            for result in results:
                if isinstance(result, BaseException):
                    raise result

        def _records() -> list[StatusRecord]:
            return [
                record
                for key in keys
                if (record := self.cache.get(EntityClass.CONNECTIVITY, key)) is not None
            ]

        scope = ",".join(keys) or ALL_SCOPE
        return self._start(
            EntityClass.CONNECTIVITY,
            Subscription(
                f"connectivity:{scope}",
                _probe,
                _records,
                PollIntervalPolicy.for_status_page(self.config),
                repeat=self._auto_refresh(auto_refresh),
                min_busy_seconds=self.config.refresh_min_busy_seconds,
                sleep=self._sleep,
            ),
        )

    def subscribe_jobs(
        self,
        project_key: str | None = None,
        *,
        status_page: bool = False,
        auto_refresh: bool | None = None,
    ) -> Subscription:
        """Poll upload jobs (and the project's file progress) adaptively.

        Args:
            project_key: Limit to one project; ``None`` tracks every job.
            status_page: Use the slower idle cadence of the status page.
            auto_refresh: Override ``config.auto_refresh_enabled``.
        """

        async def _probe() -> None:
            await self.jobs.fetch(project_key)
            if project_key is not None:
                await self.jobs.fetch_progress(project_key)

        def _records() -> list[StatusRecord]:
            return self.job_records(project_key)

        def _progress() -> list[FileProgress]:
            if project_key is None:
                return []
            progress = self.jobs.progress_for(project_key)
            return [progress] if progress is not None else []

        policy = (
            PollIntervalPolicy.for_status_page(self.config)
            if status_page
            else PollIntervalPolicy.for_jobs(self.config)
        )
        return self._start(
            EntityClass.JOB,
            Subscription(
                f"jobs:{project_key or ALL_SCOPE}",
                _probe,
                _records,
                policy,
                progress=_progress,
                repeat=self._auto_refresh(auto_refresh),
                min_busy_seconds=self.config.refresh_min_busy_seconds,
                sleep=self._sleep,
            ),
        )

    def unsubscribe(self, subscription: Subscription, *, evict: bool = False) -> None:
        """Stop a subscription; optionally evict the records it was tracking."""
        self._stop(subscription)
        if evict:
            for record in subscription.records():
                self.cache.evict(record.entity_class, record.entity_id)

    @property
    def subscriptions(self) -> list[Subscription]:
        return list(self._subscriptions)

    # ------------------------------------------------------------------
    # Manual refresh
    # ------------------------------------------------------------------

    async def refresh_project_health(self, project_key: str) -> bool:
        return await self._health_refresh.refresh(project_key)

    def can_refresh_project_health(self, project_key: str) -> bool:
        return self._health_refresh.can_refresh(project_key)

    async def refresh_all_health(self) -> bool:
        """Batch-check every project's database (de-duplicated)."""
        return await self._batch_refresh.refresh(ALL_SCOPE)

    def can_refresh_all_health(self) -> bool:
        return self._batch_refresh.can_refresh(ALL_SCOPE)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def connectivity(self, project_key: str) -> StatusRecord | None:
        return self.cache.get(EntityClass.CONNECTIVITY, project_key)

    def connectivity_summary(self) -> AggregateSummary:
        return self.connectivity_projector.summary

    def connectivity_summary_dict(self) -> dict[str, int]:
        return connectivity_summary_dict(self.connectivity_projector.summary)

    def job_summary(self) -> AggregateSummary:
        return self.job_projector.summary

    def job_records(self, project_key: str | None = None) -> list[StatusRecord]:
        """Cached job records, newest first."""
        records = [
            record
            for record in self.cache.records(EntityClass.JOB)
            if project_key is None or record.project_key == project_key
        ]
        records.sort(
            key=lambda r: r.created_at.timestamp() if r.created_at else float("-inf"),
            reverse=True,
        )
        return records

    def job_stages(self, job_id: str) -> StageView:
        """Stage view for a cached job.

        Raises:
            KeyError: If the job is not in the cache.
        """
        record = self.cache.get(EntityClass.JOB, job_id)
        if record is None:
            raise KeyError(job_id)
        return map_stages(record, self.jobs.progress_for(record.project_key))

    # ------------------------------------------------------------------
    # Projects and uploads
    # ------------------------------------------------------------------

    async def list_projects(self) -> list[Project]:
        return await self.backend.list_projects()

    async def get_project(self, key: str) -> Project:
        return await self.backend.get_project(key)

    async def create_project(self, data: ProjectCreate) -> Project:
        project = await self.backend.create_project(data)
        logger.info("project created | project=%s", project.key)
        return project

    async def update_project(self, key: str, data: ProjectUpdate) -> Project:
        """Update a project; new database settings trigger a fresh connectivity probe."""
        project = await self.backend.update_project(key, data)
        logger.info("project updated | project=%s | db_config=%s", key, data.db_config is not None)
        if data.db_config is not None:
            self.cache.invalidate(EntityClass.CONNECTIVITY, key)
            await self.resolver.probe(key)
        return project

    async def delete_project(self, key: str) -> None:
        """Delete a project and evict every record it owned."""
        await self.backend.delete_project(key)
        self.cache.evict(EntityClass.CONNECTIVITY, key)
        for record in self.cache.records(EntityClass.JOB):
            if record.project_key == key:
                self.cache.evict(EntityClass.JOB, record.entity_id)
        self.jobs.forget_progress(key)
        logger.info("project deleted | project=%s", key)

    async def upload_file(self, project_key: str, file_name: str, content: bytes) -> UploadJob:
        """Upload a file; the new job is cached immediately so polling goes fast."""
        job = await self.backend.upload_file(project_key, file_name, content)
        self.cache.set(job.to_record())
        logger.info(
            "file uploaded | project=%s | job=%s | file=%s | status=%s",
            project_key,
            job.id,
            file_name,
            job.status,
        )
        return job

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        for subscription in list(self._subscriptions):
            self._stop(subscription)
        self._health_refresh.close()
        self._batch_refresh.close()
        self.connectivity_projector.close()
        self.job_projector.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _start(self, entity_class: EntityClass, subscription: Subscription) -> Subscription:
        """Track *subscription* and re-evaluate its interval on every write to its class."""
        self._subscriptions.append(subscription)
        self._listeners[subscription] = self.cache.subscribe(
            entity_class, lambda _cls, _eid, _record: subscription.reschedule()
        )
        return subscription.start()

    def _stop(self, subscription: Subscription) -> None:
        subscription.stop()
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
        remove_listener = self._listeners.pop(subscription, None)
        if remove_listener is not None:
            remove_listener()

    def _auto_refresh(self, override: bool | None) -> bool:
        return self.config.auto_refresh_enabled if override is None else override

    async def _probe_all(self, _scope: str) -> list[StatusRecord]:
        return await self.resolver.probe_all()
