"""Shared pytest fixtures for the ingest monitor test suite."""

from __future__ import annotations

import pytest

from ingest_monitor.models.api import DbConfig, Project
from ingest_monitor.sync.cache import StatusCache
from tests.fakes import FakeBackend, ParkedSleep, RecordingSleep


@pytest.fixture()
def backend() -> FakeBackend:
    """Fresh in-memory backend with one project."""
    fake = FakeBackend()
    fake.projects["acme"] = Project(
        key="acme",
        name="Acme",
        db_config=DbConfig(uri="bolt://db:7687", user="neo4j", password="secret", database="acme"),
    )
    return fake


@pytest.fixture()
def cache() -> StatusCache:
    return StatusCache()


@pytest.fixture()
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture()
def parked_sleep() -> ParkedSleep:
    return ParkedSleep()
