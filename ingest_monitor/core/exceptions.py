"""Error categories shared by the REST client, the models and the sync engine.

Every error the monitor raises is a ``MonitorError``. Its ``category`` decides
what the sync layer does with it and what a status view shows:

- ``validation``: bad configuration (``ConfigValidationError``) or a record
  that breaks its own invariants (``ModelValidationError``). Raised at
  construction; nothing is retried.
- ``transient``: the backend was unreachable (``ApiTransportError``) or
  answered 5xx (``ApiServerError``). Connectivity probes back off and retry;
  poll loops keep the error in ``last_error`` and carry on.
- ``permanent``: the backend refused the request, 4xx (``ApiRejectedError``,
  including ``ApiAuthError``). Settled immediately as an error state.
- ``contract``: a 2xx body that failed schema validation
  (``ApiContractError``).

``to_error_dict()`` is the payload the CLI prints for a failed command.
"""

from __future__ import annotations


class MonitorError(Exception):
    """Base exception for all monitor-domain errors.

    Attributes:
        message: Human-readable error description.
        stage: Component where the error occurred
            (e.g. ``"client"``, ``"connectivity_probe"``).
        code: Machine-readable error code (e.g. ``"API_STATUS_ERROR"``).
        retryable: Whether the caller may retry the operation.
        correlation_id: Entity or request identifier for diagnostics.
    """

    #: Default stage for subclasses (override via class attribute or kwarg).
    default_stage: str = ""
    #: Default code for subclasses (override via class attribute or kwarg).
    default_code: str = ""

    def __init__(
        self,
        message: str = "",
        *,
        stage: str = "",
        code: str = "",
        retryable: bool = False,
        correlation_id: str = "",
    ) -> None:
        self.message = message
        self.stage = stage or self.default_stage
        self.code = code or self.default_code
        self.retryable = retryable
        self.correlation_id = correlation_id
        super().__init__(message)

    @property
    def category(self) -> str:
        """First matching category base; bare errors fall back on ``retryable``."""
        for base, name in _CATEGORIES:
            if isinstance(self, base):
                return name
        return "transient" if self.retryable else "permanent"

    def to_error_dict(self) -> dict[str, object]:
        """Return a structured error payload with stable keys."""
        return {
            "category": self.category,
            "code": self.code,
            "stage": self.stage,
            "message": self.message,
            "retryable": self.retryable,
            "correlation_id": self.correlation_id,
        }


# ---------------------------------------------------------------------------
# Category base classes
# ---------------------------------------------------------------------------


class ValidationError(MonitorError):
    """Configuration or record invariant broken."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class TransientError(MonitorError):
    """Temporary failure that may succeed on retry."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", True)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class PermanentError(MonitorError):
    """Request refused by the backend; needs a change before it can succeed."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class ContractError(MonitorError):
    """Response payload does not match the expected schema."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


# Contract and validation win over the retry flag of a mixed-in base.
_CATEGORIES: tuple[tuple[type[MonitorError], str], ...] = (
    (ContractError, "contract"),
    (ValidationError, "validation"),
    (TransientError, "transient"),
    (PermanentError, "permanent"),
)
