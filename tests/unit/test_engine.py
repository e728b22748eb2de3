"""Tests for the StatusEngine facade.

Exercises subscriptions, de-duplicated refreshes and the cache side
effects of project and upload operations against the in-memory backend.
"""

from __future__ import annotations

import asyncio

import pytest

from ingest_monitor.core.config import MonitorConfig
from ingest_monitor.models.api import DbConfig, FileProgress, ProjectCreate, ProjectUpdate
from ingest_monitor.models.status import ConnectivityState, EntityClass, JobState
from ingest_monitor.sync.cache import StatusCache
from ingest_monitor.sync.engine import StatusEngine
from ingest_monitor.sync.stages import StageState
from tests.fakes import FakeBackend, ParkedSleep, drain, health, job

_NEW_DB = DbConfig(uri="bolt://new:7687", user="neo4j", password="rotated", database="acme")


def _engine(backend: FakeBackend, sleep: ParkedSleep, **config: object) -> StatusEngine:
    return StatusEngine(backend, config=MonitorConfig(refresh_min_busy_ms=0, **config), sleep=sleep)  # type: ignore[arg-type]


class TestSubscriptions:
    @pytest.mark.asyncio()
    async def test_job_subscription_populates_cache_and_polls_fast(
        self, backend: FakeBackend, parked_sleep: ParkedSleep
    ) -> None:
        backend.uploads = [job("job-1", "processing"), job("job-2", "completed", project_key="globex")]
        backend.progress["acme"] = FileProgress(project_key="acme", total_files=4, progress_percentage=60)
        engine = _engine(backend, parked_sleep)

        sub = engine.subscribe_jobs("acme")
        await drain()

        assert [r.entity_id for r in engine.job_records("acme")] == ["job-1"]
        assert engine.job_summary().count(JobState.PROCESSING) == 1
        assert parked_sleep.delays == [2.0]
        assert engine.job_stages("job-1")["build"].progress_percent == 35.0
        assert sub in engine.subscriptions
        await engine.aclose()

    @pytest.mark.asyncio()
    async def test_status_page_cadence_when_idle(self, backend: FakeBackend, parked_sleep: ParkedSleep) -> None:
        backend.uploads = [job("job-1", "completed")]
        engine = _engine(backend, parked_sleep)
        engine.subscribe_jobs(status_page=True)
        await drain()
        assert parked_sleep.delays == [30.0]
        await engine.aclose()

    @pytest.mark.asyncio()
    async def test_connectivity_subscription(self, backend: FakeBackend, parked_sleep: ParkedSleep) -> None:
        backend.health_script["globex"] = [health("globex", "error", "Invalid credentials")]
        engine = _engine(backend, parked_sleep)

        sub = engine.subscribe_connectivity(["acme", "globex", "acme"])
        await drain()

        assert engine.connectivity("acme").state is ConnectivityState.ACTIVE
        assert engine.connectivity("globex").state is ConnectivityState.ERROR
        assert engine.connectivity_summary_dict() == {
            "total_databases": 2,
            "active_databases": 1,
            "error_databases": 1,
            "checking_databases": 0,
        }
        assert backend.calls["get_project_database_health"] == 2
        assert parked_sleep.delays == [30.0]
        assert sub.last_error is None
        await engine.aclose()

    @pytest.mark.asyncio()
    async def test_auto_refresh_disabled_runs_once(self, backend: FakeBackend, parked_sleep: ParkedSleep) -> None:
        backend.uploads = [job("job-1", "processing")]
        engine = _engine(backend, parked_sleep, auto_refresh_enabled=False)
        sub = engine.subscribe_jobs("acme")
        await drain()
        assert backend.calls["list_uploads"] == 1
        assert parked_sleep.delays == []
        assert not sub.running
        await engine.aclose()

    @pytest.mark.asyncio()
    async def test_unsubscribe_with_eviction(self, backend: FakeBackend, parked_sleep: ParkedSleep) -> None:
        backend.uploads = [job("job-1", "queued")]
        engine = _engine(backend, parked_sleep)
        sub = engine.subscribe_jobs("acme")
        await drain()

        engine.unsubscribe(sub, evict=True)

        assert engine.job_records() == []
        assert engine.subscriptions == []
        assert not sub.running

    @pytest.mark.asyncio()
    async def test_subscribers_share_one_cache(self, backend: FakeBackend, parked_sleep: ParkedSleep) -> None:
        shared = StatusCache()
        backend.uploads = [job("job-1", "queued")]
        first = StatusEngine(backend, cache=shared, sleep=parked_sleep)
        second = StatusEngine(backend, cache=shared, sleep=parked_sleep)
        first.subscribe_jobs("acme", auto_refresh=False)
        await drain()
        assert second.job_summary().count(JobState.QUEUED) == 1
        await first.aclose()
        await second.aclose()


class TestRefresh:
    @pytest.mark.asyncio()
    async def test_project_health_refresh_is_deduplicated(
        self, backend: FakeBackend, parked_sleep: ParkedSleep
    ) -> None:
        backend.gate = asyncio.Event()
        engine = _engine(backend, parked_sleep)

        first = asyncio.ensure_future(engine.refresh_project_health("acme"))
        await drain()
        second = asyncio.ensure_future(engine.refresh_project_health("acme"))
        await drain()
        assert not engine.can_refresh_project_health("acme")

        backend.gate.set()
        assert await first is True
        assert await second is False
        assert backend.calls["get_project_database_health"] == 1
        assert engine.connectivity("acme").state is ConnectivityState.ACTIVE
        await engine.aclose()

    @pytest.mark.asyncio()
    async def test_refresh_all_health(self, backend: FakeBackend, parked_sleep: ParkedSleep) -> None:
        backend.batch_health = [health("acme"), health("globex", "inactive")]
        engine = _engine(backend, parked_sleep)
        assert await engine.refresh_all_health() is True
        assert engine.connectivity_summary().total == 2
        assert engine.connectivity("globex").state is ConnectivityState.ERROR
        await engine.aclose()


class TestProjectOperations:
    @pytest.mark.asyncio()
    async def test_create_and_list(self, backend: FakeBackend, parked_sleep: ParkedSleep) -> None:
        engine = _engine(backend, parked_sleep)
        created = await engine.create_project(ProjectCreate(name="Globex", db_config=_NEW_DB))
        assert created.key == "globex"
        assert {p.key for p in await engine.list_projects()} == {"acme", "globex"}
        assert (await engine.get_project("globex")).name == "Globex"

    @pytest.mark.asyncio()
    async def test_db_config_update_reprobes(self, backend: FakeBackend, parked_sleep: ParkedSleep) -> None:
        backend.health_script["acme"] = [
            health("acme", "error", "Invalid credentials"),
            health("acme", "active"),
        ]
        engine = _engine(backend, parked_sleep)
        await engine.resolver.probe("acme")
        assert engine.connectivity("acme").state is ConnectivityState.ERROR

        await engine.update_project("acme", ProjectUpdate(db_config=_NEW_DB))

        assert backend.calls["get_project_database_health"] == 2
        assert engine.connectivity("acme").state is ConnectivityState.ACTIVE
        assert not engine.cache.is_invalidated(EntityClass.CONNECTIVITY, "acme")

    @pytest.mark.asyncio()
    async def test_rename_does_not_reprobe(self, backend: FakeBackend, parked_sleep: ParkedSleep) -> None:
        engine = _engine(backend, parked_sleep)
        await engine.update_project("acme", ProjectUpdate(name="Acme Corp"))
        assert backend.calls["get_project_database_health"] == 0

    @pytest.mark.asyncio()
    async def test_delete_evicts_owned_records(self, backend: FakeBackend, parked_sleep: ParkedSleep) -> None:
        backend.uploads = [job("job-1", "processing"), job("job-2", "queued", project_key="globex")]
        engine = _engine(backend, parked_sleep)
        await engine.resolver.probe("acme")
        await engine.jobs.fetch()
        await engine.jobs.fetch_progress("acme")

        await engine.delete_project("acme")

        assert engine.connectivity("acme") is None
        assert [r.entity_id for r in engine.job_records()] == ["job-2"]
        assert engine.jobs.progress_for("acme") is None
        assert engine.connectivity_summary().total == 0


class TestUploads:
    @pytest.mark.asyncio()
    async def test_upload_caches_queued_job(self, backend: FakeBackend, parked_sleep: ParkedSleep) -> None:
        engine = _engine(backend, parked_sleep)
        uploaded = await engine.upload_file("acme", "dialogs.json", b"{}")

        record = engine.cache.get(EntityClass.JOB, uploaded.id)
        assert record.state is JobState.QUEUED
        assert engine.job_summary().count(JobState.QUEUED) == 1
        view = engine.job_stages(uploaded.id)
        assert view.current_stage == 0
        assert view["transfer"].state is StageState.COMPLETED

    @pytest.mark.asyncio()
    async def test_upload_speeds_up_idle_job_subscription(
        self, backend: FakeBackend, parked_sleep: ParkedSleep
    ) -> None:
        backend.uploads = [job("job-1", "completed")]
        engine = _engine(backend, parked_sleep)
        sub = engine.subscribe_jobs("acme")
        await drain()
        assert parked_sleep.delays == [10.0]

        await engine.upload_file("acme", "dialogs.json", b"{}")
        await drain()

        assert parked_sleep.delays == [10.0, 2.0]
        assert sub.ticket.interval_ms == 2000
        assert backend.calls["list_uploads"] == 1
        await engine.aclose()

    @pytest.mark.asyncio()
    async def test_unsubscribed_scope_ignores_later_writes(
        self, backend: FakeBackend, parked_sleep: ParkedSleep
    ) -> None:
        backend.uploads = [job("job-1", "completed")]
        engine = _engine(backend, parked_sleep)
        sub = engine.subscribe_jobs("acme")
        await drain()
        engine.unsubscribe(sub)

        await engine.upload_file("acme", "dialogs.json", b"{}")
        await drain()

        assert parked_sleep.delays == [10.0]
        assert sub.ticket is None

    def test_job_stages_unknown_job(self, backend: FakeBackend, parked_sleep: ParkedSleep) -> None:
        engine = _engine(backend, parked_sleep)
        with pytest.raises(KeyError):
            engine.job_stages("ghost")
