"""Adaptive status-synchronisation engine.

- cache: Injectable status store with per-entity-class observers
- retry: Connectivity probes with transient-retry; job fetches without
- policy: Fast/idle poll interval selection
- aggregate: Counts by state recomputed on every cache write
- refresh: De-duplicated manual refresh with a minimum busy window
- stages: Five-stage display projection of an upload job
- poller: Policy-driven poll loops per subscription
- engine: Facade wiring everything to a backend
"""

from ingest_monitor.sync.aggregate import AggregateProjector, connectivity_summary_dict
from ingest_monitor.sync.cache import StatusCache
from ingest_monitor.sync.engine import StatusEngine
from ingest_monitor.sync.policy import PollIntervalPolicy
from ingest_monitor.sync.poller import Subscription
from ingest_monitor.sync.refresh import RefreshController
from ingest_monitor.sync.retry import (
    ConnectivityResolver,
    JobStatusFetcher,
    backoff_seconds,
    is_transient_error,
    is_transient_exception,
)
from ingest_monitor.sync.stages import Stage, StageState, StageView, map_stages

__all__ = [
    "AggregateProjector",
    "ConnectivityResolver",
    "JobStatusFetcher",
    "PollIntervalPolicy",
    "RefreshController",
    "Stage",
    "StageState",
    "StageView",
    "StatusCache",
    "StatusEngine",
    "Subscription",
    "backoff_seconds",
    "connectivity_summary_dict",
    "is_transient_error",
    "is_transient_exception",
    "map_stages",
]
