"""Shared monitor constants — single source of truth.

Centralises polling cadences, retry parameters, backend paths, and the
error-message markers used to classify connectivity failures, so the
resolver, the policy, and the client never disagree on a magic number.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Backend
# ---------------------------------------------------------------------------

DEFAULT_API_BASE_URL: str = "http://localhost:8000"
"""Default base URL of the ingestion backend."""

DEFAULT_API_TOKEN: str = "demo_token"
"""Bearer token used when no session token is configured."""

DEFAULT_HTTP_TIMEOUT_S: float = 30.0

PROJECTS_PATH = "/api/v1/projects"
DATABASE_HEALTH_PATH = "/api/v1/database/health"
UPLOAD_PATH = "/upload"
UPLOADS_PATH = "/uploads"
UPLOAD_PROGRESS_PATH = "/uploads/progress"
LIVENESS_PATH = "/health"

# ---------------------------------------------------------------------------
# Polling cadence (milliseconds)
# ---------------------------------------------------------------------------

FAST_POLL_INTERVAL_MS: int = 2_000
"""Interval while any tracked entity is mid-transition."""

IDLE_POLL_INTERVAL_MS: int = 10_000
"""Idle interval for job and file-progress polling."""

STATUS_PAGE_POLL_INTERVAL_MS: int = 30_000
"""Idle interval for the dedicated upload status page."""

REFRESH_MIN_BUSY_MS: int = 1_000
"""Minimum time a manual refresh keeps the busy flag raised."""

# ---------------------------------------------------------------------------
# Connectivity retry
# ---------------------------------------------------------------------------

HEALTH_MAX_ATTEMPTS: int = 3
"""Total backend calls per connectivity probe (first call included)."""

HEALTH_RETRY_BASE_MS: int = 1_000
"""Backoff base; attempt *n* waits ``2**n * base`` before the next call."""

TRANSIENT_ERROR_MARKERS: tuple[str, ...] = (
    "database instance is not accessible",
    "database instance is unreachable",
    "connection refused",
    "connection timeout",
    "network error",
    "failed to obtain connection",
    "connection test failed",
    "host unreachable",
    "unreachable",
    "timeout",
    "timed out",
    "refused",
    "server error",
    "service unavailable",
    "api busy",
    "temporary failure",
    "network timeout",
)
"""Lower-case substrings that mark a connectivity failure as transient."""
