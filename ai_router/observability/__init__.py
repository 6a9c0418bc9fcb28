"""
AI Router - Observability Module

Structured logging, Prometheus metrics, OpenTelemetry tracing and the
in-memory routing telemetry/alerting sink.
"""

from .logging import (
    LogContext,
    StructuredLogger,
    TimedOperation,
    get_logger,
    setup_logging,
)
from .metrics import MetricsCollector, get_metrics, metrics_endpoint
from .tracing import (
    TracingManager,
    get_tracing_manager,
    setup_tracing,
    trace_context_middleware,
    trace_provider_call,
)
from .telemetry import (
    AlertConfig,
    AlertThresholds,
    BoundedLog,
    RoutingStatistics,
    RoutingTelemetry,
    TelemetryConfig,
    compute_statistics,
)

__all__ = [
    # Logging
    "LogContext",
    "StructuredLogger",
    "TimedOperation",
    "get_logger",
    "setup_logging",
    # Metrics
    "MetricsCollector",
    "get_metrics",
    "metrics_endpoint",
    # Tracing
    "TracingManager",
    "get_tracing_manager",
    "setup_tracing",
    "trace_context_middleware",
    "trace_provider_call",
    # Telemetry
    "AlertConfig",
    "AlertThresholds",
    "BoundedLog",
    "RoutingStatistics",
    "RoutingTelemetry",
    "TelemetryConfig",
    "compute_statistics",
]
