"""Tests for the unified exception taxonomy.

Validates:
- MonitorError hierarchy and structured attributes
- Category classification (validation, transient, permanent, contract)
- ``to_error_dict()`` produces stable payload keys
- Client exceptions map onto the taxonomy with the right retry semantics
"""

from __future__ import annotations

from typing import ClassVar

import pytest

from ingest_monitor.client.base import (
    ApiAuthError,
    ApiContractError,
    ApiError,
    ApiRejectedError,
    ApiServerError,
    ApiStatusError,
    ApiTransportError,
)
from ingest_monitor.core.config import ConfigValidationError
from ingest_monitor.core.exceptions import (
    ContractError,
    MonitorError,
    PermanentError,
    TransientError,
    ValidationError,
)
from ingest_monitor.models.status import ModelValidationError


class TestMonitorErrorBase:
    """MonitorError structured attributes."""

    def test_defaults(self) -> None:
        err = MonitorError("boom")
        assert err.message == "boom"
        assert err.stage == ""
        assert err.code == ""
        assert err.retryable is False
        assert err.correlation_id == ""
        assert str(err) == "boom"

    def test_category_falls_back_to_retryable_flag(self) -> None:
        assert MonitorError("x", retryable=True).category == "transient"
        assert MonitorError("x").category == "permanent"

    def test_to_error_dict_keys(self) -> None:
        err = MonitorError("x", stage="s", code="C", correlation_id="id-1")
        assert err.to_error_dict() == {
            "category": "permanent",
            "code": "C",
            "stage": "s",
            "message": "x",
            "retryable": False,
            "correlation_id": "id-1",
        }


class TestCategoryBases:
    """Category base classes set retryable defaults."""

    CASES: ClassVar[list[tuple[type[MonitorError], str, bool]]] = [
        (ValidationError, "validation", False),
        (TransientError, "transient", True),
        (PermanentError, "permanent", False),
        (ContractError, "contract", False),
    ]

    @pytest.mark.parametrize(("cls", "category", "retryable"), CASES)
    def test_category_and_retryable(self, cls: type[MonitorError], category: str, retryable: bool) -> None:
        err = cls("x")
        assert err.category == category
        assert err.retryable is retryable


class TestClientExceptions:
    """API client errors slot into the taxonomy."""

    def test_all_are_monitor_errors(self) -> None:
        for cls in (
            ApiError,
            ApiTransportError,
            ApiStatusError,
            ApiServerError,
            ApiRejectedError,
            ApiAuthError,
            ApiContractError,
        ):
            assert issubclass(cls, MonitorError)

    def test_str_includes_endpoint(self) -> None:
        err = ApiError("/uploads", "nope")
        assert str(err) == "[/uploads] nope"
        assert err.correlation_id == "/uploads"
        assert err.stage == "client"

    def test_transport_error_is_transient(self) -> None:
        err = ApiTransportError("/health", "ConnectError")
        assert err.retryable is True
        assert err.category == "transient"
        assert err.status_code is None
        assert err.code == "API_TRANSPORT_FAILED"

    def test_5xx_is_retryable(self) -> None:
        err = ApiStatusError("/uploads", "HTTP 503", status_code=503)
        assert err.retryable is True
        assert err.category == "transient"

    def test_4xx_is_permanent(self) -> None:
        err = ApiStatusError("/uploads", "HTTP 404", status_code=404)
        assert err.retryable is False
        assert err.category == "permanent"

    def test_auth_error_defaults(self) -> None:
        err = ApiAuthError("/api/v1/projects", "Invalid token")
        assert err.status_code == 401
        assert err.retryable is False
        assert err.code == "API_AUTH_FAILED"
        assert isinstance(err, PermanentError)
        assert err.category == "permanent"

    @pytest.mark.parametrize(
        ("status_code", "cls", "base", "category"),
        [
            (401, ApiAuthError, PermanentError, "permanent"),
            (403, ApiAuthError, PermanentError, "permanent"),
            (404, ApiRejectedError, PermanentError, "permanent"),
            (422, ApiRejectedError, PermanentError, "permanent"),
            (500, ApiServerError, TransientError, "transient"),
            (503, ApiServerError, TransientError, "transient"),
        ],
    )
    def test_for_status_picks_category_class(
        self, status_code: int, cls: type[ApiStatusError], base: type[MonitorError], category: str
    ) -> None:
        err = ApiStatusError.for_status("/uploads", f"HTTP {status_code}", status_code)
        assert type(err) is cls
        assert isinstance(err, base)
        assert err.category == category
        assert err.status_code == status_code
        assert err.retryable is (status_code >= 500)

    def test_contract_error_category(self) -> None:
        err = ApiContractError("/uploads", "schema mismatch")
        assert err.category == "contract"
        assert err.retryable is False


class TestDomainValidationErrors:
    def test_config_error_is_validation_error(self) -> None:
        err = ConfigValidationError("X", 1, "bad")
        assert isinstance(err, ValidationError)
        assert err.category == "validation"
        assert err.retryable is False
        assert "X=1" in err.message

    def test_model_validation_error_is_value_error_and_validation(self) -> None:
        err = ModelValidationError("StatusRecord", "entity_id", "", "must not be empty")
        assert isinstance(err, ValueError)
        assert err.category == "validation"
        assert err.code == "MODEL_VALIDATION_FAILED"
        assert err.field_name == "entity_id"
