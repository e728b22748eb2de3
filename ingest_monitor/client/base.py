"""IngestBackend abstract base class and client exceptions.

Defines the contract every backend adapter implements. The sync engine
talks exclusively to this interface, so tests swap in an in-memory fake
and production uses ``ApiClient`` over httpx.

Surface:
    - projects:  ``list_projects``, ``get_project``, ``create_project``,
      ``update_project``, ``delete_project``
    - uploads:   ``upload_file``, ``list_uploads``, ``get_file_progress``
    - health:    ``get_database_health``, ``get_project_database_health``,
      ``liveness``
"""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING

from ingest_monitor.core.exceptions import (
    ContractError,
    MonitorError,
    PermanentError,
    TransientError,
)

if TYPE_CHECKING:
    from ingest_monitor.models.api import (
        DatabaseHealth,
        FileProgress,
        Project,
        ProjectCreate,
        ProjectUpdate,
        UploadJob,
    )


class IngestBackend(abc.ABC):
    """Abstract base class for the ingestion backend REST surface.

    All methods are coroutines; implementations must not block the
    event loop.
    """

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    @abc.abstractmethod
    async def list_projects(self) -> list[Project]:
        """Return every project visible to the caller."""

    @abc.abstractmethod
    async def get_project(self, key: str) -> Project:
        """Return one project by key."""

    @abc.abstractmethod
    async def create_project(self, data: ProjectCreate) -> Project:
        """Create a project and return it."""

    @abc.abstractmethod
    async def update_project(self, key: str, data: ProjectUpdate) -> Project:
        """Apply a partial update and return the stored project."""

    @abc.abstractmethod
    async def delete_project(self, key: str) -> None:
        """Delete a project."""

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------

    @abc.abstractmethod
    async def upload_file(self, project_key: str, file_name: str, content: bytes) -> UploadJob:
        """Upload one source file and return the queued job."""

    @abc.abstractmethod
    async def list_uploads(self) -> list[UploadJob]:
        """Return every upload job known to the backend."""

    @abc.abstractmethod
    async def get_file_progress(self, project_key: str) -> FileProgress:
        """Return file-level processing counters for a project."""

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    @abc.abstractmethod
    async def get_database_health(self) -> list[DatabaseHealth]:
        """Check every project's database in one call."""

    @abc.abstractmethod
    async def get_project_database_health(self, project_key: str) -> DatabaseHealth:
        """Check one project's database connectivity."""

    async def liveness(self) -> dict[str, object]:
        """Backend liveness probe. Optional for fakes."""
        return {"status": "unknown"}


# ---------------------------------------------------------------------------
# Client exceptions
# ---------------------------------------------------------------------------


class ApiError(MonitorError):
    """Base exception for backend client errors.

    Attributes:
        endpoint: Request path that failed.
        status_code: HTTP status, or ``None`` when no response arrived.
        message: Human-readable error description.
        retryable: Whether the caller may retry the request.
    """

    default_stage = "client"
    default_code = "API_ERROR"

    def __init__(
        self,
        endpoint: str,
        message: str,
        *,
        status_code: int | None = None,
        retryable: bool = False,
    ) -> None:
        self.endpoint = endpoint
        self.status_code = status_code
        super().__init__(
            message,
            retryable=retryable,
            code=self.default_code,
            stage=self.default_stage,
            correlation_id=endpoint,
        )

    def __str__(self) -> str:
        return f"[{self.endpoint}] {self.message}"


class ApiTransportError(ApiError, TransientError):
    """No response reached the client (connection refused, DNS, timeout)."""

    default_code = "API_TRANSPORT_FAILED"

    def __init__(self, endpoint: str, message: str) -> None:
        super().__init__(endpoint, message, retryable=True)


class ApiStatusError(ApiError):
    """Backend answered with a non-2xx status. 5xx is retryable.

    Adapters raise through ``for_status`` so callers can catch the
    server-side and client-side halves by category.
    """

    default_code = "API_STATUS_ERROR"

    def __init__(self, endpoint: str, message: str, *, status_code: int) -> None:
        super().__init__(endpoint, message, status_code=status_code, retryable=status_code >= 500)

    @classmethod
    def for_status(cls, endpoint: str, message: str, status_code: int) -> ApiStatusError:
        """Build the concrete error for *status_code*."""
        if status_code in (401, 403):
            return ApiAuthError(endpoint, message, status_code=status_code)
        if status_code >= 500:
            return ApiServerError(endpoint, message, status_code=status_code)
        return ApiRejectedError(endpoint, message, status_code=status_code)


class ApiServerError(ApiStatusError, TransientError):
    """5xx: the backend failed to handle a valid request; retry may succeed."""

    default_code = "API_SERVER_ERROR"


class ApiRejectedError(ApiStatusError, PermanentError):
    """4xx: the request itself was refused; retrying it unchanged cannot help."""

    default_code = "API_REQUEST_REJECTED"


class ApiAuthError(ApiRejectedError):
    """Authentication or authorisation failure (401/403)."""

    default_code = "API_AUTH_FAILED"

    def __init__(self, endpoint: str, message: str, *, status_code: int = 401) -> None:
        super().__init__(endpoint, message, status_code=status_code)


class ApiContractError(ApiError, ContractError):
    """Response body does not match the expected schema."""

    default_code = "API_CONTRACT_VIOLATION"

    def __init__(self, endpoint: str, message: str) -> None:
        super().__init__(endpoint, message, retryable=False)
