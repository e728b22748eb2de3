"""Monitor configuration loaded from environment variables.

All configuration values have defaults matching the dashboard's polling
configuration. ``from_env()`` raises ``ConfigValidationError`` if any
value is out of its valid range, so bad configuration is caught at
startup rather than in the middle of a poll loop.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from ingest_monitor.core import constants
from ingest_monitor.core.exceptions import ValidationError

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


class ConfigValidationError(ValidationError):
    """Raised when configuration values are out of valid range.

    Attributes:
        key: The configuration key that failed validation.
        value: The invalid value.
        message: Human-readable description of the valid range.
    """

    default_stage = "config"
    default_code = "CONFIG_VALIDATION_FAILED"

    def __init__(self, key: str, value: object, message: str) -> None:
        self.key = key
        self.value = value
        super().__init__(f"Invalid configuration {key}={value!r}: {message}")


@dataclass(frozen=True, slots=True)
class MonitorConfig:
    """Immutable monitor configuration.

    Attributes:
        api_base_url: Base URL of the ingestion backend.
        api_token: Bearer token sent on every request.
        http_timeout_s: Per-request timeout in seconds.
        fast_poll_interval_ms: Interval while any entity is mid-transition.
        idle_poll_interval_ms: Idle interval for job/file polling.
        status_page_poll_interval_ms: Idle interval for the status page.
        refresh_min_busy_ms: Minimum busy window after a manual refresh.
        health_max_attempts: Total backend calls per connectivity probe.
        health_retry_base_ms: Exponential backoff base for connectivity retries.
        auto_refresh_enabled: Whether job subscriptions reschedule themselves.
    """

    api_base_url: str = constants.DEFAULT_API_BASE_URL
    api_token: str = constants.DEFAULT_API_TOKEN
    http_timeout_s: float = constants.DEFAULT_HTTP_TIMEOUT_S
    fast_poll_interval_ms: int = constants.FAST_POLL_INTERVAL_MS
    idle_poll_interval_ms: int = constants.IDLE_POLL_INTERVAL_MS
    status_page_poll_interval_ms: int = constants.STATUS_PAGE_POLL_INTERVAL_MS
    refresh_min_busy_ms: int = constants.REFRESH_MIN_BUSY_MS
    health_max_attempts: int = constants.HEALTH_MAX_ATTEMPTS
    health_retry_base_ms: int = constants.HEALTH_RETRY_BASE_MS
    auto_refresh_enabled: bool = True

    @classmethod
    def from_env(cls) -> MonitorConfig:
        """Load and validate configuration from environment variables.

        Raises:
            ConfigValidationError: If a value is out of range, a required
                string is empty, or a boolean flag is unrecognised.
            ValueError: If a numeric environment variable cannot be
                parsed (e.g. ``FAST_POLL_INTERVAL_MS=abc``).
        """
        config = cls(
            api_base_url=os.getenv("INGEST_API_BASE_URL", constants.DEFAULT_API_BASE_URL),
            api_token=os.getenv("INGEST_API_TOKEN", constants.DEFAULT_API_TOKEN),
            http_timeout_s=float(
                os.getenv("INGEST_HTTP_TIMEOUT_S", str(constants.DEFAULT_HTTP_TIMEOUT_S))
            ),
            fast_poll_interval_ms=int(
                os.getenv("FAST_POLL_INTERVAL_MS", str(constants.FAST_POLL_INTERVAL_MS))
            ),
            idle_poll_interval_ms=int(
                os.getenv("IDLE_POLL_INTERVAL_MS", str(constants.IDLE_POLL_INTERVAL_MS))
            ),
            status_page_poll_interval_ms=int(
                os.getenv(
                    "STATUS_PAGE_POLL_INTERVAL_MS", str(constants.STATUS_PAGE_POLL_INTERVAL_MS)
                )
            ),
            refresh_min_busy_ms=int(
                os.getenv("REFRESH_MIN_BUSY_MS", str(constants.REFRESH_MIN_BUSY_MS))
            ),
            health_max_attempts=int(
                os.getenv("HEALTH_MAX_ATTEMPTS", str(constants.HEALTH_MAX_ATTEMPTS))
            ),
            health_retry_base_ms=int(
                os.getenv("HEALTH_RETRY_BASE_MS", str(constants.HEALTH_RETRY_BASE_MS))
            ),
            auto_refresh_enabled=_parse_bool(
                "AUTO_REFRESH_ENABLED", os.getenv("AUTO_REFRESH_ENABLED", "true")
            ),
        )
        _validate(config)
        return config

    @property
    def refresh_min_busy_seconds(self) -> float:
        return self.refresh_min_busy_ms / 1000.0

    @property
    def health_retry_base_seconds(self) -> float:
        return self.health_retry_base_ms / 1000.0


def _parse_bool(key: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigValidationError(key, raw, "must be a boolean (true/false)")


def _validate(config: MonitorConfig) -> None:
    """Validate configuration ranges.  Raises ``ConfigValidationError``."""
    if not config.api_base_url:
        raise ConfigValidationError(
            "INGEST_API_BASE_URL",
            config.api_base_url,
            "must not be empty",
        )

    if not config.api_base_url.startswith(("http://", "https://")):
        raise ConfigValidationError(
            "INGEST_API_BASE_URL",
            config.api_base_url,
            "must start with http:// or https://",
        )

    if not config.api_token:
        raise ConfigValidationError(
            "INGEST_API_TOKEN",
            config.api_token,
            "must not be empty",
        )

    if config.http_timeout_s <= 0:
        raise ConfigValidationError(
            "INGEST_HTTP_TIMEOUT_S",
            config.http_timeout_s,
            "must be > 0 (seconds)",
        )

    if config.fast_poll_interval_ms <= 0:
        raise ConfigValidationError(
            "FAST_POLL_INTERVAL_MS",
            config.fast_poll_interval_ms,
            "must be > 0 (milliseconds)",
        )

    if config.idle_poll_interval_ms < config.fast_poll_interval_ms:
        raise ConfigValidationError(
            "IDLE_POLL_INTERVAL_MS",
            config.idle_poll_interval_ms,
            f"must be >= FAST_POLL_INTERVAL_MS ({config.fast_poll_interval_ms})",
        )

    if config.status_page_poll_interval_ms < config.fast_poll_interval_ms:
        raise ConfigValidationError(
            "STATUS_PAGE_POLL_INTERVAL_MS",
            config.status_page_poll_interval_ms,
            f"must be >= FAST_POLL_INTERVAL_MS ({config.fast_poll_interval_ms})",
        )

    if config.refresh_min_busy_ms < 0:
        raise ConfigValidationError(
            "REFRESH_MIN_BUSY_MS",
            config.refresh_min_busy_ms,
            "must be >= 0 (milliseconds)",
        )

    if config.health_max_attempts < 1:
        raise ConfigValidationError(
            "HEALTH_MAX_ATTEMPTS",
            config.health_max_attempts,
            "must be >= 1",
        )

    if config.health_retry_base_ms < 0:
        raise ConfigValidationError(
            "HEALTH_RETRY_BASE_MS",
            config.health_retry_base_ms,
            "must be >= 0 (milliseconds)",
        )
