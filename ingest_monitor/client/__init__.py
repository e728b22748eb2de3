"""Ingestion backend client.

- IngestBackend: Abstract async interface the sync engine depends on
- ApiClient: httpx implementation of the REST surface

References:
    ``client.base`` for the error taxonomy raised by every adapter.
"""

from ingest_monitor.client.base import (
    ApiAuthError,
    ApiContractError,
    ApiError,
    ApiRejectedError,
    ApiServerError,
    ApiStatusError,
    ApiTransportError,
    IngestBackend,
)
from ingest_monitor.client.http import ApiClient

__all__ = [
    "ApiAuthError",
    "ApiClient",
    "ApiContractError",
    "ApiError",
    "ApiRejectedError",
    "ApiServerError",
    "ApiStatusError",
    "ApiTransportError",
    "IngestBackend",
]
