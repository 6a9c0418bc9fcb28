"""
AI Router Core Module

Data models and the error taxonomy shared by every layer.
"""

from .models import (
    # Enums
    Provider,
    HealthStatus,
    AlertType,
    AlertSeverity,

    # Routing configuration
    RoutingRule,
    RoutingOptions,

    # Telemetry records
    TokenUsage,
    RoutingLogEntry,
    ServiceHealthLogEntry,
    Alert,
    AlertMetrics,

    # Usage aggregates
    OperationUsage,
    ProviderUsage,

    # Helpers
    utcnow,
    generate_request_id,
    generate_alert_id,
)

from .errors import (
    ErrorKind,
    ErrorClassification,
    RETRYABLE_KINDS,
    FALLBACK_KINDS,
    RoutingError,
    ConfigurationError,
    CircuitBreakerOpenError,
    AttemptTimeoutError,
    OperationNotSupportedError,
    ProviderHTTPError,
    ProviderResponseError,
    classify_error,
    classify_message,
    kind_for_status,
    parse_retry_after,
    sanitize_message,
)

__all__ = [
    "Provider",
    "HealthStatus",
    "AlertType",
    "AlertSeverity",
    "RoutingRule",
    "RoutingOptions",
    "TokenUsage",
    "RoutingLogEntry",
    "ServiceHealthLogEntry",
    "Alert",
    "AlertMetrics",
    "OperationUsage",
    "ProviderUsage",
    "utcnow",
    "generate_request_id",
    "generate_alert_id",
    "ErrorKind",
    "ErrorClassification",
    "RETRYABLE_KINDS",
    "FALLBACK_KINDS",
    "RoutingError",
    "ConfigurationError",
    "CircuitBreakerOpenError",
    "AttemptTimeoutError",
    "OperationNotSupportedError",
    "ProviderHTTPError",
    "ProviderResponseError",
    "classify_error",
    "classify_message",
    "kind_for_status",
    "parse_retry_after",
    "sanitize_message",
]
