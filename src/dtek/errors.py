"""Error types for the DTEK core.

Two families live here:

* ``DtekError`` values. Every fallible public operation returns one of these
  inside ``Err`` instead of raising. Each case carries the structured context
  needed to log it and to map it to an HTTP status at the boundary.
* ``ExtractionError`` exceptions, raised only inside a component (for example
  by the literal evaluator) and converted to a ``DtekError`` value by the
  component that owns the call.

Example:
    result = await service.get_status(city, street)
    if isinstance(result, Err):
        log.error("status_failed", **format_error_for_log(result.error))
        return error_to_http_status(result.error)
"""

from datetime import datetime, timezone
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

ParseKind = Literal["csrf", "discon_streets", "discon_fact", "template", "json"]
SessionReason = Literal["expired", "invalid", "missing", "auth_failed", "refresh_failed"]

# Statuses from the authenticated endpoint that mean our CSRF/cookies went stale.
# 419 is Laravel's "page expired" (CSRF mismatch).
AUTH_FAILURE_STATUSES: frozenset[int] = frozenset({401, 403, 419})


def _now() -> datetime:
    return datetime.now(timezone.utc)


class DtekErrorBase(BaseModel):
    """Fields shared by every error case."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    message: str
    cause: str | None = None  # repr of the underlying exception, if any
    timestamp: datetime = Field(default_factory=_now)


class NetworkError(DtekErrorBase):
    """Connection failure, timeout, or non-2xx response from DTEK."""

    code: Literal["NETWORK_ERROR"] = "NETWORK_ERROR"
    url: str
    http_status: int | None = None


class ParseError(DtekErrorBase):
    """The upstream answered, but not in the shape we know how to read."""

    code: Literal["PARSE_ERROR"] = "PARSE_ERROR"
    parse_kind: ParseKind
    expected: str = ""
    found: str | None = None


class SessionError(DtekErrorBase):
    """Session material (cookies, CSRF) missing or rejected upstream."""

    code: Literal["SESSION_ERROR"] = "SESSION_ERROR"
    reason: SessionReason
    http_status: int | None = None


class ValidationError(DtekErrorBase):
    """Caller supplied an invalid argument."""

    code: Literal["VALIDATION_ERROR"] = "VALIDATION_ERROR"
    field: str
    constraint: str
    provided_value: Any = None


class RegionUnavailable(DtekErrorBase):
    """Upstream served a bot-protection interstitial instead of data."""

    code: Literal["REGION_UNAVAILABLE"] = "REGION_UNAVAILABLE"
    region: str | None = None


class KvError(DtekErrorBase):
    """Read-through store has no entry, or could not be reached."""

    code: Literal["KV_ERROR"] = "KV_ERROR"
    key: str | None = None


class RetryExhausted(DtekErrorBase):
    """All retry attempts failed; ``last_error`` is the final failure.

    ``last_error`` is either a ``DtekError`` (explicit failure) or the
    exception raised by the last attempt.
    """

    code: Literal["RETRY_EXHAUSTED"] = "RETRY_EXHAUSTED"
    attempts: int
    last_error: Any = None


DtekError = Union[
    NetworkError,
    ParseError,
    SessionError,
    ValidationError,
    RegionUnavailable,
    KvError,
    RetryExhausted,
]


# ---------------------------------------------------------------------------
# Internal exceptions
# ---------------------------------------------------------------------------


class ExtractionError(Exception):
    """Base exception for failures while extracting data from a document."""

    pass


class LiteralEvaluationError(ExtractionError):
    """A script expression contained something other than plain literals.

    Raised for unsupported node types and when the nesting depth bound is hit.
    """

    def __init__(self, message: str, node_type: str | None = None) -> None:
        self.node_type = node_type
        super().__init__(message)


# ---------------------------------------------------------------------------
# Boundary helpers
# ---------------------------------------------------------------------------


def unwrap_retry_error(error: DtekError) -> DtekError:
    """Return the ``DtekError`` wrapped by ``RetryExhausted``.

    When the last attempt raised an exception instead of returning an error
    value, there is nothing typed to unwrap and the ``RetryExhausted`` itself
    is returned.
    """
    while isinstance(error, RetryExhausted) and isinstance(error.last_error, DtekErrorBase):
        error = error.last_error
    return error


def error_to_http_status(error: DtekError) -> int:
    """Map an error to the HTTP status the routing layer should answer with."""
    if isinstance(error, NetworkError):
        return error.http_status or 503
    if isinstance(error, ParseError):
        return 502
    if isinstance(error, SessionError):
        return 401 if error.reason == "auth_failed" else 503
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, (RegionUnavailable, KvError)):
        return 503
    if isinstance(error, RetryExhausted):
        inner = unwrap_retry_error(error)
        if inner is error:
            return 500
        return error_to_http_status(inner)
    return 500


def error_to_user_message(error: DtekError) -> str:
    """User-facing (Ukrainian) message for an error."""
    error = unwrap_retry_error(error)
    if isinstance(error, NetworkError):
        return "Немає з'єднання з сервером ДТЕК"
    if isinstance(error, ParseError):
        return "Сервер ДТЕК повернув некоректні дані"
    if isinstance(error, SessionError):
        return "Помилка авторизації з сервером ДТЕК"
    if isinstance(error, ValidationError):
        return "Невірні параметри запиту"
    if isinstance(error, (RegionUnavailable, KvError)):
        return "Регіон тимчасово недоступний. Спробуйте пізніше або оберіть інший регіон."
    return "Невідома помилка"


def format_error_for_log(error: DtekError) -> dict[str, Any]:
    """Flatten an error into structlog keyword fields."""
    fields = error.model_dump(exclude={"timestamp", "last_error"}, exclude_none=True)
    fields["error_code"] = fields.pop("code")
    fields["error_message"] = fields.pop("message")
    # callers bind region= themselves
    if "region" in fields:
        fields["unavailable_region"] = fields.pop("region")
    if isinstance(error, RetryExhausted):
        last = error.last_error
        if isinstance(last, DtekErrorBase):
            fields["last_error"] = format_error_for_log(last)
        elif last is not None:
            fields["last_error"] = repr(last)
    return fields


def describe_exception(e: BaseException) -> str:
    """``"TypeName: message"`` for the ``cause`` field of an error value."""
    return f"{type(e).__name__}: {e}"
