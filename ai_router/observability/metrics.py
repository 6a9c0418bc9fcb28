"""
AI Router - Prometheus Metrics

Metrics exposed:
- ai_router_requests_total: Counter of routing attempts by operation, provider, outcome
- ai_router_request_duration_seconds: Histogram of attempt latency
- ai_router_retries_total: Counter of retries by provider and error type
- ai_router_fallbacks_total: Counter of fallbacks by from/to provider and reason
- ai_router_tokens_total: Counter of estimated tokens (input/output)
- ai_router_circuit_breaker_state: Gauge of circuit breaker state per provider
- ai_router_alerts_total: Counter of alerts raised by type and severity
- ai_router_health_check_*: Active provider health probe results

Usage:
    from ai_router.observability.metrics import get_metrics, metrics_endpoint

    metrics = get_metrics()
    metrics.record_request(operation="verify_attendees", provider="mistral",
                           success=True, fallback_used=False, duration_seconds=0.4)

    @app.get("/metrics")
    async def metrics():
        return metrics_endpoint()
"""

from typing import Optional

from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    Info,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY,
)
from fastapi import Response


# 0 = closed (healthy), 1 = half-open, 2 = open (unhealthy)
CIRCUIT_STATE_VALUES = {
    "closed": 0,
    "half_open": 1,
    "open": 2,
}


class MetricsCollector:
    """
    Central metrics collector using the Prometheus client.

    Pass a fresh CollectorRegistry in tests; the process-wide instance
    registers on the default REGISTRY.
    """

    _instance: Optional["MetricsCollector"] = None

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        self.registry = registry

        self.info = Info(
            "ai_router",
            "AI routing layer information",
            registry=registry,
        )
        self.info.info({
            "version": "1.0.0",
            "service": "ai-router",
        })

        self.requests_total = Counter(
            "ai_router_requests_total",
            "Total routing attempts",
            labelnames=["operation", "provider", "outcome", "fallback"],
            registry=registry,
        )

        # LLM calls range from sub-second to the 45s agenda timeout
        self.request_duration = Histogram(
            "ai_router_request_duration_seconds",
            "Routing attempt duration in seconds",
            labelnames=["operation", "provider"],
            buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 45.0, 60.0, float("inf")),
            registry=registry,
        )

        self.retries_total = Counter(
            "ai_router_retries_total",
            "Total retries of provider calls",
            labelnames=["provider", "operation", "error_type"],
            registry=registry,
        )

        self.fallbacks_total = Counter(
            "ai_router_fallbacks_total",
            "Total fallbacks to the secondary provider",
            labelnames=["from_provider", "to_provider", "reason"],
            registry=registry,
        )

        self.tokens_total = Counter(
            "ai_router_tokens_total",
            "Estimated tokens used",
            labelnames=["provider", "operation", "type"],  # type = input/output
            registry=registry,
        )

        self.circuit_breaker_state = Gauge(
            "ai_router_circuit_breaker_state",
            "Circuit breaker state (0=closed, 1=half-open, 2=open)",
            labelnames=["provider"],
            registry=registry,
        )

        self.alerts_total = Counter(
            "ai_router_alerts_total",
            "Alerts raised by the telemetry sink",
            labelnames=["type", "severity"],
            registry=registry,
        )

        self.health_check_duration = Histogram(
            "ai_router_health_check_duration_seconds",
            "Health check duration",
            labelnames=["provider"],
            buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
            registry=registry,
        )

        self.health_check_success = Counter(
            "ai_router_health_check_success_total",
            "Health check successes",
            labelnames=["provider"],
            registry=registry,
        )

        self.health_check_failure = Counter(
            "ai_router_health_check_failure_total",
            "Health check failures",
            labelnames=["provider"],
            registry=registry,
        )

    @classmethod
    def get_instance(cls) -> "MetricsCollector":
        """Get the process-wide instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def record_request(
        self,
        operation: str,
        provider: str,
        success: bool,
        fallback_used: bool,
        duration_seconds: float,
    ):
        """Record a completed routing attempt."""
        self.requests_total.labels(
            operation=operation,
            provider=provider,
            outcome="success" if success else "failure",
            fallback="true" if fallback_used else "false",
        ).inc()

        self.request_duration.labels(
            operation=operation,
            provider=provider,
        ).observe(duration_seconds)

    def record_retry(self, provider: str, operation: str, error_type: str):
        self.retries_total.labels(
            provider=provider,
            operation=operation,
            error_type=error_type,
        ).inc()

    def record_fallback(self, from_provider: str, to_provider: str, reason: str):
        self.fallbacks_total.labels(
            from_provider=from_provider,
            to_provider=to_provider,
            reason=reason,
        ).inc()

    def record_tokens(
        self,
        provider: str,
        operation: str,
        input_tokens: int,
        output_tokens: int,
    ):
        self.tokens_total.labels(provider=provider, operation=operation, type="input").inc(input_tokens)
        self.tokens_total.labels(provider=provider, operation=operation, type="output").inc(output_tokens)

    def set_circuit_breaker_state(self, provider: str, state: str):
        """Update circuit breaker state gauge from a state name."""
        self.circuit_breaker_state.labels(provider=provider).set(
            CIRCUIT_STATE_VALUES.get(state, 0)
        )

    def record_alert(self, alert_type: str, severity: str):
        self.alerts_total.labels(type=alert_type, severity=severity).inc()

    def record_health_check(
        self,
        provider: str,
        success: bool,
        duration_seconds: float,
    ):
        self.health_check_duration.labels(provider=provider).observe(duration_seconds)

        if success:
            self.health_check_success.labels(provider=provider).inc()
        else:
            self.health_check_failure.labels(provider=provider).inc()


def get_metrics() -> MetricsCollector:
    """Get the process-wide metrics collector, creating it on first use."""
    return MetricsCollector.get_instance()


def metrics_endpoint(collector: Optional[MetricsCollector] = None) -> Response:
    """
    Generate the Prometheus /metrics response.

    Usage:
        @app.get("/metrics")
        async def metrics():
            return metrics_endpoint()
    """
    registry = collector.registry if collector is not None else REGISTRY
    return Response(
        content=generate_latest(registry),
        media_type=CONTENT_TYPE_LATEST,
    )
