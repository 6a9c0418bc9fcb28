"""
AI Router - Error Definitions

Error taxonomy for routed provider calls.

Every failure that leaves the routing layer is a RoutingError carrying:
- kind: one of the ErrorKind values below
- message: sanitized (credentials and bearer tokens redacted)
- retryable: hint for the caller

classify_error() is a best-effort heuristic. Structured signals (our own
error types, httpx exceptions, HTTP status codes) are consulted first and
lower-cased message substrings only when nothing structured is available.
It is not exhaustive: a retryable failure whose message matches none of the
known phrases is reported as UNKNOWN and will not be retried.
"""

import asyncio
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import httpx


class ErrorKind(str, Enum):
    """Classified failure kinds."""
    API_RATE_LIMIT = "API_RATE_LIMIT"
    TIMEOUT = "TIMEOUT"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    NETWORK_ERROR = "NETWORK_ERROR"
    AUTHENTICATION = "AUTHENTICATION"
    CIRCUIT_BREAKER_OPEN = "CIRCUIT_BREAKER_OPEN"
    UNKNOWN = "UNKNOWN"


RETRYABLE_KINDS = frozenset({
    ErrorKind.API_RATE_LIMIT,
    ErrorKind.TIMEOUT,
    ErrorKind.SERVICE_UNAVAILABLE,
    ErrorKind.NETWORK_ERROR,
})

# Kinds that may be routed to the fallback provider
FALLBACK_KINDS = frozenset({
    ErrorKind.API_RATE_LIMIT,
    ErrorKind.TIMEOUT,
    ErrorKind.SERVICE_UNAVAILABLE,
})

# HTTP status used when a RoutingError reaches the API surface
HTTP_STATUS_BY_KIND = {
    ErrorKind.API_RATE_LIMIT: 429,
    ErrorKind.TIMEOUT: 504,
    ErrorKind.SERVICE_UNAVAILABLE: 503,
    ErrorKind.NETWORK_ERROR: 502,
    ErrorKind.AUTHENTICATION: 502,
    ErrorKind.CIRCUIT_BREAKER_OPEN: 503,
    ErrorKind.UNKNOWN: 500,
}


# ============================================================
# Message sanitization
# ============================================================

_SANITIZE_PATTERNS = [
    (re.compile(r"api[_-]?key[=:]\s*[^\s&]+", re.IGNORECASE), "api_key=***"),
    (
        re.compile(r"\b(access_|auth_|refresh_|id_)?token[=:]\s*[^\s&]+", re.IGNORECASE),
        r"\1token=***",
    ),
    (re.compile(r"authorization[=:]\s*[^\s&]+", re.IGNORECASE), "authorization=***"),
    (re.compile(r"bearer\s+[^\s&]+", re.IGNORECASE), "bearer ***"),
    # Gemini passes its key as ?key=... on the URL
    (re.compile(r"([?&])key=[^\s&]+", re.IGNORECASE), r"\1key=***"),
]


def sanitize_message(message: Any) -> str:
    """Redact credentials, tokens and bearer headers from a message."""
    text = "" if message is None else str(message)
    for pattern, replacement in _SANITIZE_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


# ============================================================
# Exceptions
# ============================================================

class RoutingError(Exception):
    """Base exception for all routing-layer errors."""

    kind: ErrorKind = ErrorKind.UNKNOWN
    code: str = "routing_error"

    def __init__(
        self,
        message: str,
        kind: Optional[ErrorKind] = None,
        provider: Optional[str] = None,
        operation: Optional[str] = None,
        retryable: Optional[bool] = None,
        retry_after_ms: Optional[int] = None,
        fallback_attempted: Optional[bool] = None,
        request_id: str = "",
    ):
        self.kind = kind or type(self).kind
        self.message = sanitize_message(message)
        self.provider = provider
        self.operation = operation
        self.retryable = (self.kind in RETRYABLE_KINDS) if retryable is None else retryable
        self.retry_after_ms = retry_after_ms
        self.fallback_attempted = fallback_attempted
        self.request_id = request_id
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return HTTP_STATUS_BY_KIND.get(self.kind, 500)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "code": self.code,
            "type": self.kind.value,
            "message": self.message,
            "retryable": self.retryable,
        }

        if self.request_id:
            result["request_id"] = self.request_id
        if self.provider:
            result["provider"] = self.provider
        if self.operation:
            result["operation"] = self.operation
        if self.retry_after_ms is not None:
            result["retry_after_ms"] = self.retry_after_ms
        if self.fallback_attempted is not None:
            result["fallback_attempted"] = self.fallback_attempted

        return {"error": result}


class ConfigurationError(RoutingError):
    """Missing or invalid configuration. Never retried, never routed to fallback."""

    code = "configuration_error"

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message, operation=operation, retryable=False)


class CircuitBreakerOpenError(RoutingError):
    """The provider's circuit breaker rejected the call before any attempt."""

    kind = ErrorKind.CIRCUIT_BREAKER_OPEN
    code = "circuit_breaker_open"

    def __init__(self, provider: str, operation: Optional[str] = None):
        super().__init__(
            f"Circuit breaker open for {provider}",
            provider=provider,
            operation=operation,
        )


class AttemptTimeoutError(RoutingError):
    """A single attempt did not settle within its timeout."""

    kind = ErrorKind.TIMEOUT
    code = "attempt_timeout"

    def __init__(self, provider: str, timeout_ms: int, operation: Optional[str] = None):
        self.timeout_ms = timeout_ms
        super().__init__(
            f"{provider} request timed out after {timeout_ms}ms",
            provider=provider,
            operation=operation,
        )


class OperationNotSupportedError(RoutingError):
    """No callable is registered for this provider and operation."""

    code = "operation_not_supported"

    def __init__(self, provider: str, operation: str):
        super().__init__(
            f"Operation {operation} is not supported by {provider}",
            provider=provider,
            operation=operation,
            retryable=False,
        )

    @property
    def status_code(self) -> int:
        return 501


class ProviderHTTPError(RoutingError):
    """Provider answered with a non-2xx status."""

    code = "provider_http_error"

    def __init__(
        self,
        provider: str,
        http_status: int,
        message: str = "",
        retry_after_ms: Optional[int] = None,
    ):
        self.http_status = http_status
        super().__init__(
            message or f"{provider} returned HTTP {http_status}",
            kind=kind_for_status(http_status) or ErrorKind.UNKNOWN,
            provider=provider,
            retry_after_ms=retry_after_ms,
        )


class ProviderResponseError(RoutingError):
    """Provider answered 2xx but the body could not be used."""

    code = "invalid_provider_response"

    def __init__(self, provider: str, message: str):
        super().__init__(message, provider=provider, retryable=False)


# ============================================================
# Classification
# ============================================================

@dataclass(frozen=True)
class ErrorClassification:
    """Result of classifying an arbitrary failure."""
    type: ErrorKind
    message: str
    retryable: bool
    retry_after_ms: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "type": self.type.value,
            "message": self.message,
            "retryable": self.retryable,
        }
        if self.retry_after_ms is not None:
            result["retry_after_ms"] = self.retry_after_ms
        return result


def kind_for_status(status: Optional[int]) -> Optional[ErrorKind]:
    """Map an HTTP status code to an error kind, or None if it says nothing."""
    if status is None:
        return None
    if status == 429:
        return ErrorKind.API_RATE_LIMIT
    if status in (401, 403):
        return ErrorKind.AUTHENTICATION
    if status == 408:
        return ErrorKind.TIMEOUT
    if status in (502, 503, 504):
        return ErrorKind.SERVICE_UNAVAILABLE
    return None


def parse_retry_after(value: Optional[str]) -> Optional[int]:
    """Parse a Retry-After header given in seconds into milliseconds."""
    if not value:
        return None
    try:
        return int(float(value) * 1000)
    except (TypeError, ValueError):
        return None


def _status_of(error: BaseException) -> Optional[int]:
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    for attr in ("status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    return None


def _retry_after_hint(error: BaseException) -> Optional[int]:
    """Suggested wait in ms from headers or attributes, if the error carries one."""
    if isinstance(error, httpx.HTTPStatusError):
        hint = parse_retry_after(error.response.headers.get("retry-after"))
        if hint is not None:
            return hint

    retry_after_ms = getattr(error, "retry_after_ms", None)
    if isinstance(retry_after_ms, (int, float)):
        return int(retry_after_ms)

    # Seconds, as SDK rate-limit errors usually report it
    retry_after = getattr(error, "retry_after", None)
    if isinstance(retry_after, (int, float)):
        return int(retry_after * 1000)
    return None


def _classify_structured(error: BaseException) -> Optional[ErrorKind]:
    if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        return ErrorKind.TIMEOUT
    if isinstance(error, (httpx.TransportError, ConnectionError)):
        return ErrorKind.NETWORK_ERROR
    return kind_for_status(_status_of(error))


def classify_message(message: str) -> ErrorKind:
    """Heuristic kind for a lower-cased error message."""
    if "rate limit" in message or "quota" in message:
        return ErrorKind.API_RATE_LIMIT
    if "timeout" in message or "timed out" in message:
        return ErrorKind.TIMEOUT
    if "network" in message or "connection" in message:
        return ErrorKind.NETWORK_ERROR
    if "authentication" in message or "unauthorized" in message:
        return ErrorKind.AUTHENTICATION
    if "service unavailable" in message or "503" in message:
        return ErrorKind.SERVICE_UNAVAILABLE
    if "circuit breaker" in message:
        return ErrorKind.CIRCUIT_BREAKER_OPEN
    return ErrorKind.UNKNOWN


def classify_error(error: BaseException) -> ErrorClassification:
    """
    Classify a failure into an ErrorClassification.

    Pure function, no side effects.

    Args:
        error: Any exception raised by a provider call or by this layer

    Returns:
        ErrorClassification with kind, sanitized message, retryable flag and
        an optional suggested retry delay in milliseconds
    """
    if isinstance(error, RoutingError):
        return ErrorClassification(
            type=error.kind,
            message=error.message,
            retryable=error.retryable,
            retry_after_ms=error.retry_after_ms,
        )

    message = sanitize_message(str(error) or type(error).__name__)

    kind = _classify_structured(error)
    if kind is None:
        kind = classify_message(message.lower())

    retry_after_ms = _retry_after_hint(error) if kind == ErrorKind.API_RATE_LIMIT else None

    return ErrorClassification(
        type=kind,
        message=message,
        retryable=kind in RETRYABLE_KINDS,
        retry_after_ms=retry_after_ms,
    )
