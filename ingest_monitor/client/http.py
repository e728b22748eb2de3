"""httpx adapter for the ingestion backend REST API.

Concrete ``IngestBackend`` implementation over ``httpx.AsyncClient``.
Every request carries ``Authorization: Bearer <token>``; responses are
validated into pydantic models so schema drift surfaces as
``ApiContractError`` instead of a ``KeyError`` deep in the engine.

Error mapping:
    - ``httpx.TransportError`` (refused, DNS, timeouts) → ``ApiTransportError``
    - 401 / 403                                        → ``ApiAuthError``
    - any other 4xx                                    → ``ApiRejectedError``
    - 5xx                                              → ``ApiServerError``
    - body fails validation                            → ``ApiContractError``
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, TypeVar

import httpx
import pydantic

from ingest_monitor.client.base import (
    ApiContractError,
    ApiStatusError,
    ApiTransportError,
    IngestBackend,
)
from ingest_monitor.core import constants
from ingest_monitor.models.api import (
    DatabaseHealth,
    FileProgress,
    Project,
    ProjectCreate,
    ProjectUpdate,
    UploadJob,
)

if TYPE_CHECKING:
    from types import TracebackType

    from ingest_monitor.core.config import MonitorConfig

logger = logging.getLogger("ingest_monitor.client.http")

_T = TypeVar("_T")


class ApiClient(IngestBackend):
    """Async REST client for the ingestion backend.

    Usage::

        async with ApiClient.from_config(MonitorConfig.from_env()) as api:
            jobs = await api.list_uploads()
    """

    def __init__(
        self,
        base_url: str = constants.DEFAULT_API_BASE_URL,
        token: str = constants.DEFAULT_API_TOKEN,
        *,
        timeout_s: float = constants.DEFAULT_HTTP_TIMEOUT_S,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout_s,
            transport=transport,
        )

    @classmethod
    def from_config(
        cls,
        config: MonitorConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> ApiClient:
        return cls(
            config.api_base_url,
            config.api_token,
            timeout_s=config.http_timeout_s,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> ApiClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    async def list_projects(self) -> list[Project]:
        body = await self._request("GET", constants.PROJECTS_PATH)
        return self._parse_list(constants.PROJECTS_PATH, Project, body)

    async def get_project(self, key: str) -> Project:
        path = f"{constants.PROJECTS_PATH}/{key}"
        return self._parse(path, Project, await self._request("GET", path))

    async def create_project(self, data: ProjectCreate) -> Project:
        body = await self._request("POST", constants.PROJECTS_PATH, json=data.model_dump())
        return self._parse(constants.PROJECTS_PATH, Project, body)

    async def update_project(self, key: str, data: ProjectUpdate) -> Project:
        path = f"{constants.PROJECTS_PATH}/{key}"
        body = await self._request("PUT", path, json=data.model_dump(exclude_none=True))
        return self._parse(path, Project, body)

    async def delete_project(self, key: str) -> None:
        await self._request("DELETE", f"{constants.PROJECTS_PATH}/{key}")

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------

    async def upload_file(self, project_key: str, file_name: str, content: bytes) -> UploadJob:
        body = await self._request(
            "POST",
            constants.UPLOAD_PATH,
            files={"file": (file_name, content)},
            data={"project_key": project_key},
        )
        return self._parse(constants.UPLOAD_PATH, UploadJob, body)

    async def list_uploads(self) -> list[UploadJob]:
        body = await self._request("GET", constants.UPLOADS_PATH)
        return self._parse_list(constants.UPLOADS_PATH, UploadJob, body)

    async def get_file_progress(self, project_key: str) -> FileProgress:
        path = f"{constants.UPLOAD_PROGRESS_PATH}/{project_key}"
        return self._parse(path, FileProgress, await self._request("GET", path))

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    async def get_database_health(self) -> list[DatabaseHealth]:
        body = await self._request("GET", constants.DATABASE_HEALTH_PATH)
        return self._parse_list(constants.DATABASE_HEALTH_PATH, DatabaseHealth, body)

    async def get_project_database_health(self, project_key: str) -> DatabaseHealth:
        path = f"{constants.DATABASE_HEALTH_PATH}/{project_key}"
        return self._parse(path, DatabaseHealth, await self._request("GET", path))

    async def liveness(self) -> dict[str, object]:
        body = await self._request("GET", constants.LIVENESS_PATH)
        if not isinstance(body, dict):
            msg = f"Expected a JSON object, got {type(body).__name__}"
            raise ApiContractError(constants.LIVENESS_PATH, msg)
        return body

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send one request and decode the JSON body (``None`` when empty)."""
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TransportError as exc:
            msg = f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__
            logger.warning("API transport error | method=%s | path=%s | error=%s", method, path, msg)
            raise ApiTransportError(path, msg) from exc

        if response.is_error:
            logger.warning(
                "API error response | method=%s | path=%s | status=%d",
                method,
                path,
                response.status_code,
            )
            raise ApiStatusError.for_status(path, _error_detail(response), response.status_code)

        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ApiContractError(path, f"Invalid JSON body: {exc}") from exc

    @staticmethod
    def _parse(path: str, model: type[_T], body: Any) -> _T:
        try:
            return model.model_validate(body)  # type: ignore[attr-defined]
        except pydantic.ValidationError as exc:
            raise ApiContractError(path, f"{model.__name__} schema mismatch: {exc}") from exc

    @classmethod
    def _parse_list(cls, path: str, model: type[_T], body: Any) -> list[_T]:
        if not isinstance(body, list):
            msg = f"Expected a JSON array of {model.__name__}, got {type(body).__name__}"
            raise ApiContractError(path, msg)
        return [cls._parse(path, model, item) for item in body]


def _error_detail(response: httpx.Response) -> str:
    """Prefer the backend's ``detail`` message over a bare status line."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("error_message") or body.get("message")
        if detail:
            return f"HTTP {response.status_code}: {detail}"
    return f"HTTP error! status: {response.status_code}"
