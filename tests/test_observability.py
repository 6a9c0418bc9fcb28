"""
AI Router - Observability Tests

Tests for the observability stack:
- Bounded in-memory logs
- Routing statistics and threshold alerts
- Structured logging and redaction
- Prometheus metrics
- OpenTelemetry tracing
"""

import json
import logging

import pytest
from prometheus_client import CollectorRegistry

from ai_router.core.models import (
    AlertMetrics,
    AlertSeverity,
    AlertType,
    HealthStatus,
    Provider,
    RoutingLogEntry,
    ServiceHealthLogEntry,
    TokenUsage,
)
from ai_router.observability.logging import (
    JSONFormatter,
    LogContext,
    TimedOperation,
    get_logger,
)
from ai_router.observability.metrics import MetricsCollector, metrics_endpoint
from ai_router.observability.telemetry import (
    AlertConfig,
    AlertThresholds,
    BoundedLog,
    RoutingTelemetry,
    TelemetryConfig,
    compute_statistics,
)
from ai_router.observability.tracing import (
    TraceContext,
    TracingManager,
    trace_provider_call,
)


def make_entry(
    clock,
    success=True,
    fallback_used=False,
    response_time_ms=100.0,
    operation="generate_meeting_titles",
    provider=Provider.GEMINI,
    error=None,
    error_type=None,
):
    if not success and error is None:
        error, error_type = "Service Unavailable", error_type or "SERVICE_UNAVAILABLE"
    return RoutingLogEntry(
        operation=operation,
        primary_provider=Provider.GEMINI,
        actual_provider=provider,
        fallback_used=fallback_used,
        response_time_ms=response_time_ms,
        success=success,
        timestamp=clock(),
        error=error,
        error_type=error_type,
        token_usage=TokenUsage(input=10, output=20),
    )


def health_sample(clock, status, provider=Provider.MISTRAL, error=None):
    return ServiceHealthLogEntry(
        provider=provider,
        status=status,
        circuit_breaker_open=status == HealthStatus.UNHEALTHY,
        consecutive_failures=5 if status == HealthStatus.UNHEALTHY else 0,
        timestamp=clock(),
        error=error,
    )


# ============================================================
# Bounded Log Tests
# ============================================================

class TestBoundedLog:
    """Tests for the size-bounded log buffer."""

    def test_keeps_items_under_capacity(self):
        log = BoundedLog(10, 0.8)
        for i in range(10):
            assert log.append(i) == 0
        assert len(log) == 10

    def test_trims_to_newest_on_overflow(self):
        """Crossing capacity keeps the newest capacity * ratio items."""
        log = BoundedLog(10, 0.8)
        for i in range(10):
            log.append(i)

        evicted = log.append(10)

        assert evicted == 3
        assert log.snapshot() == [3, 4, 5, 6, 7, 8, 9, 10]

    def test_snapshot_is_a_copy(self):
        log = BoundedLog(5, 0.5)
        log.append("a")
        snapshot = log.snapshot()
        snapshot.append("b")
        assert log.snapshot() == ["a"]

    @pytest.mark.parametrize("capacity,ratio", [(0, 0.5), (10, 0), (10, 1.5)])
    def test_invalid_configuration(self, capacity, ratio):
        with pytest.raises(ValueError):
            BoundedLog(capacity, ratio)

    def test_telemetry_uses_configured_sizes(self, clock):
        telemetry = RoutingTelemetry(
            config=TelemetryConfig(max_log_entries=5, log_trim_ratio=0.6),
            clock=clock,
        )
        for _ in range(6):
            telemetry.record(make_entry(clock))
        assert len(telemetry.get_routing_logs()) == 3


# ============================================================
# Statistics Tests
# ============================================================

class TestRoutingStatistics:
    """Tests for sliding-window statistics."""

    def test_empty_window_is_all_zero(self):
        stats = compute_statistics([])
        assert stats.total_requests == 0
        assert stats.success_rate == 0
        assert stats.average_response_time_ms == 0
        assert stats.peak_hours == []

    def test_success_and_fallback_rates(self, clock):
        telemetry = RoutingTelemetry(clock=clock)
        telemetry.record(make_entry(clock, response_time_ms=100))
        telemetry.record(make_entry(clock, response_time_ms=200))
        telemetry.record(make_entry(
            clock, provider=Provider.MISTRAL, fallback_used=True, response_time_ms=300
        ))
        telemetry.record(make_entry(clock, success=False, response_time_ms=400))

        stats = telemetry.get_statistics()

        assert stats.total_requests == 4
        assert stats.success_rate == 0.75
        assert stats.fallback_rate == 0.25
        assert stats.average_response_time_ms == 250
        assert stats.error_breakdown == {"SERVICE_UNAVAILABLE": 1}
        assert stats.provider_usage == {"gemini": 3, "mistral": 1}
        assert stats.operation_usage == {"generate_meeting_titles": 4}

    def test_error_category_from_message(self, clock):
        """Entries without an error type are categorized from their message."""
        entry = make_entry(clock, success=False, error="Request timed out")
        stats = compute_statistics([entry])
        assert stats.error_breakdown == {"TIMEOUT": 1}

    def test_peak_hours(self, clock):
        entries = [make_entry(clock) for _ in range(3)]
        clock.advance(hours=1)
        entries.append(make_entry(clock))

        stats = compute_statistics(entries)

        assert stats.peak_hours == [
            {"hour": 9, "requests": 3},
            {"hour": 10, "requests": 1},
        ]

    def test_window_excludes_old_entries(self, clock):
        telemetry = RoutingTelemetry(clock=clock)
        telemetry.record(make_entry(clock))
        clock.advance(hours=25)
        telemetry.record(make_entry(clock))

        assert len(telemetry.get_routing_logs(24)) == 1
        assert telemetry.get_statistics(48).total_requests == 2

    def test_to_dict_rounds(self, clock):
        stats = compute_statistics([make_entry(clock), make_entry(clock, success=False)])
        data = stats.to_dict()
        assert data["success_rate"] == 0.5
        assert set(data) == {
            "total_requests", "success_rate", "average_response_time_ms",
            "fallback_rate", "error_breakdown", "provider_usage",
            "operation_usage", "peak_hours",
        }


# ============================================================
# Alert Tests
# ============================================================

class TestAlerts:
    """Tests for threshold alerts, cooldown and operator actions."""

    @pytest.fixture
    def telemetry(self, clock, metrics):
        return RoutingTelemetry(
            alert_config=AlertConfig(enabled=True),
            metrics=metrics,
            clock=clock,
        )

    def test_no_alerts_below_min_sample_size(self, telemetry, clock):
        for _ in range(9):
            telemetry.record(make_entry(clock, success=False))
        assert telemetry.get_alerts() == []

    def test_error_rate_alert(self, telemetry, clock):
        for _ in range(10):
            telemetry.record(make_entry(clock, success=False))

        alerts = telemetry.get_alerts()
        assert len(alerts) == 1
        assert alerts[0].type == AlertType.ERROR_RATE
        assert alerts[0].severity == AlertSeverity.HIGH
        assert alerts[0].metrics.current == 100.0
        assert alerts[0].metrics.threshold == 10.0

    def test_response_time_and_fallback_alerts(self, telemetry, clock):
        for _ in range(10):
            telemetry.record(make_entry(clock, fallback_used=True, response_time_ms=6000))

        types = {a.type for a in telemetry.get_alerts()}
        assert types == {AlertType.RESPONSE_TIME, AlertType.FALLBACK_RATE}

    def test_cooldown_suppresses_repeat_alerts(self, telemetry, clock):
        for _ in range(12):
            telemetry.record(make_entry(clock, success=False))
        assert len(telemetry.get_alerts()) == 1

        clock.advance(minutes=29)
        telemetry.record(make_entry(clock, success=False))
        assert len(telemetry.get_alerts()) == 1

        clock.advance(minutes=2)
        telemetry.record(make_entry(clock, success=False))
        assert len(telemetry.get_alerts()) == 2

    def test_alerts_disabled_by_default(self, clock):
        telemetry = RoutingTelemetry(clock=clock)
        for _ in range(20):
            telemetry.record(make_entry(clock, success=False))
        assert telemetry.get_alerts() == []

    def test_unhealthy_sample_raises_service_down(self, telemetry, clock):
        telemetry.log_service_health(
            health_sample(clock, HealthStatus.UNHEALTHY, error="HTTP 503")
        )

        alerts = telemetry.get_alerts()
        assert len(alerts) == 1
        assert alerts[0].type == AlertType.SERVICE_DOWN
        assert alerts[0].severity == AlertSeverity.CRITICAL
        assert alerts[0].title == "Mistral Service Down"
        assert "HTTP 503" in alerts[0].description

    def test_degraded_sample_raises_nothing(self, telemetry, clock):
        telemetry.log_service_health(health_sample(clock, HealthStatus.DEGRADED))
        assert telemetry.get_alerts() == []
        assert len(telemetry.get_health_logs()) == 1

    def test_acknowledge_and_resolve(self, telemetry, clock):
        alert = telemetry.create_alert(
            AlertType.ERROR_RATE, AlertSeverity.HIGH, "High Error Rate Detected",
            "Error rate is 50.0%", AlertMetrics(current=50, threshold=10),
        )

        assert telemetry.acknowledge_alert(alert.id) is True
        assert alert.acknowledged is True

        clock.advance(minutes=5)
        assert telemetry.resolve_alert(alert.id) is True
        assert alert.resolved_at == clock()
        assert telemetry.get_alerts() == []
        assert telemetry.get_alerts(include_resolved=True) == [alert]

    def test_unknown_alert_id(self, telemetry):
        assert telemetry.acknowledge_alert("alert_missing") is False
        assert telemetry.resolve_alert("alert_missing") is False

    def test_update_alert_config(self, telemetry, clock):
        telemetry.update_alert_config(error_rate=50.0, min_sample_size=2, cooldown_minutes=1)

        assert telemetry.alert_config.thresholds.error_rate == 50.0
        assert telemetry.alert_config.min_sample_size == 2

        telemetry.record(make_entry(clock))
        telemetry.record(make_entry(clock, success=False))
        assert telemetry.get_alerts() == []

    def test_update_alert_config_rejects_unknown_keys(self, telemetry):
        with pytest.raises(ValueError):
            telemetry.update_alert_config(latency_p99=100)

    def test_update_alert_config_applies_nothing_on_unknown_key(self, telemetry):
        with pytest.raises(ValueError):
            telemetry.update_alert_config(error_rate=99.0, latency_p99=100)
        assert telemetry.alert_config.thresholds.error_rate == 10.0

    def test_custom_thresholds(self, clock):
        telemetry = RoutingTelemetry(
            alert_config=AlertConfig(
                enabled=True,
                thresholds=AlertThresholds(error_rate=60.0),
                min_sample_size=2,
            ),
            clock=clock,
        )
        telemetry.record(make_entry(clock))
        telemetry.record(make_entry(clock, success=False))
        assert telemetry.get_alerts() == []

    def test_alert_counted_in_metrics(self, telemetry, clock, metrics):
        telemetry.log_service_health(health_sample(clock, HealthStatus.UNHEALTHY))
        value = metrics.registry.get_sample_value(
            "ai_router_alerts_total", {"type": "service_down", "severity": "critical"}
        )
        assert value == 1

    def test_export_logs(self, telemetry, clock):
        telemetry.record(make_entry(clock))
        telemetry.log_service_health(health_sample(clock, HealthStatus.HEALTHY))

        export = telemetry.export_logs()

        assert len(export["routing_logs"]) == 1
        assert export["routing_logs"][0]["token_usage"] == {"input": 10, "output": 20, "total": 30}
        assert export["health_logs"][0]["status"] == "healthy"
        assert export["statistics"]["total_requests"] == 1
        assert export["alerts"] == []
        assert export["export_time"] == clock().isoformat()
        json.dumps(export)


# ============================================================
# Logging Tests
# ============================================================

def _record(msg="message", **fields) -> logging.LogRecord:
    record = logging.LogRecord(
        name="ai_router.test", level=logging.INFO, pathname=__file__,
        lineno=1, msg=msg, args=(), exc_info=None,
    )
    for key, value in fields.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Tests for the JSON formatter."""

    def test_basic_fields(self):
        data = json.loads(JSONFormatter().format(_record("Routed call", operation="verify_attendees")))
        assert data["level"] == "INFO"
        assert data["logger"] == "ai_router.test"
        assert data["message"] == "Routed call"
        assert data["operation"] == "verify_attendees"

    def test_sensitive_fields_redacted(self):
        data = json.loads(JSONFormatter().format(_record(api_key="sk-live-123", authorization="Bearer x")))
        assert data["api_key"] == "[REDACTED]"
        assert data["authorization"] == "[REDACTED]"

    def test_token_counts_not_redacted(self):
        data = json.loads(JSONFormatter().format(_record(input_tokens=42)))
        assert data["input_tokens"] == 42

    def test_credentials_in_message_masked(self):
        output = JSONFormatter().format(_record("call failed with api_key=sk-live-123"))
        assert "sk-live-123" not in output

    def test_redaction_can_be_disabled(self):
        data = json.loads(JSONFormatter(redact_sensitive=False).format(_record(api_key="k")))
        assert data["api_key"] == "k"

    def test_context_injected(self):
        LogContext.set_current(LogContext(request_id="req_123", provider="gemini"))
        try:
            data = json.loads(JSONFormatter().format(_record()))
        finally:
            LogContext.clear()
        assert data["request_id"] == "req_123"
        assert data["provider"] == "gemini"


class TestStructuredLogger:

    def test_kwargs_become_record_fields(self, caplog):
        logger = get_logger("ai_router.test.structured")
        with caplog.at_level(logging.INFO, logger="ai_router.test.structured"):
            logger.info("Routing request", operation="verify_attendees", attempt=2)

        record = caplog.records[-1]
        assert record.operation == "verify_attendees"
        assert record.attempt == 2

    def test_context_update_goes_to_extra(self):
        ctx = LogContext(request_id="req_1")
        ctx.update(operation="get_chat_response", tenant="acme")
        assert ctx.to_dict() == {
            "request_id": "req_1",
            "operation": "get_chat_response",
            "tenant": "acme",
        }

    def test_timed_operation(self, caplog):
        logger = get_logger("ai_router.test.timed")
        with caplog.at_level(logging.DEBUG, logger="ai_router.test.timed"):
            with TimedOperation("health_check.gemini", logger) as timer:
                pass

        assert timer.duration_ms is not None
        assert caplog.records[-1].timed_operation == "health_check.gemini"

    def test_timed_operation_failure_logs_warning(self, caplog):
        logger = get_logger("ai_router.test.timed")
        with caplog.at_level(logging.DEBUG, logger="ai_router.test.timed"):
            with pytest.raises(RuntimeError):
                with TimedOperation("health_check.mistral", logger):
                    raise RuntimeError("unreachable")

        assert caplog.records[-1].levelno == logging.WARNING
        assert caplog.records[-1].error == "unreachable"


# ============================================================
# Metrics Tests
# ============================================================

class TestMetricsCollector:
    """Tests for MetricsCollector on a private registry."""

    def test_record_request(self, metrics):
        metrics.record_request(
            operation="verify_attendees",
            provider="mistral",
            success=True,
            fallback_used=False,
            duration_seconds=0.4,
        )
        value = metrics.registry.get_sample_value(
            "ai_router_requests_total",
            {"operation": "verify_attendees", "provider": "mistral", "outcome": "success", "fallback": "false"},
        )
        assert value == 1

    def test_circuit_breaker_gauge(self, metrics):
        metrics.set_circuit_breaker_state("gemini", "open")
        assert metrics.registry.get_sample_value(
            "ai_router_circuit_breaker_state", {"provider": "gemini"}
        ) == 2
        metrics.set_circuit_breaker_state("gemini", "half_open")
        assert metrics.registry.get_sample_value(
            "ai_router_circuit_breaker_state", {"provider": "gemini"}
        ) == 1

    def test_tokens(self, metrics):
        metrics.record_tokens("gemini", "generate_meeting_agenda", 120, 480)
        assert metrics.registry.get_sample_value(
            "ai_router_tokens_total",
            {"provider": "gemini", "operation": "generate_meeting_agenda", "type": "output"},
        ) == 480

    def test_health_checks(self, metrics):
        metrics.record_health_check("mistral", False, 0.2)
        assert metrics.registry.get_sample_value(
            "ai_router_health_check_failure_total", {"provider": "mistral"}
        ) == 1

    def test_collectors_are_independent(self):
        first = MetricsCollector(CollectorRegistry())
        second = MetricsCollector(CollectorRegistry())
        first.record_fallback("gemini", "mistral", "API_RATE_LIMIT")
        assert second.registry.get_sample_value(
            "ai_router_fallbacks_total",
            {"from_provider": "gemini", "to_provider": "mistral", "reason": "API_RATE_LIMIT"},
        ) is None

    def test_telemetry_records_requests(self, clock, metrics):
        telemetry = RoutingTelemetry(metrics=metrics, clock=clock)
        telemetry.record(make_entry(clock, success=False))
        assert metrics.registry.get_sample_value(
            "ai_router_requests_total",
            {"operation": "generate_meeting_titles", "provider": "gemini", "outcome": "failure", "fallback": "false"},
        ) == 1

    def test_metrics_endpoint(self, metrics):
        metrics.record_retry("gemini", "extract_meeting_intent", "TIMEOUT")
        response = metrics_endpoint(metrics)
        assert b"ai_router_retries_total" in response.body
        assert response.media_type.startswith("text/plain")


# ============================================================
# Tracing Tests
# ============================================================

class TestTracing:
    """Tests for TracingManager and provider call spans."""

    @pytest.fixture
    def tracing(self):
        return TracingManager(service_name="test-service")

    def test_client_span_ids(self, tracing):
        with tracing.start_client_span("gemini.generate_meeting_titles") as span:
            ctx = TraceContext.from_span(span)
        assert len(ctx.trace_id) == 32
        assert len(ctx.span_id) == 16

    def test_server_span_continues_incoming_trace(self, tracing):
        headers = {"Traceparent": "00-0af7651916cd43dd8448eb211c80319c-b7ad6b7169203331-01"}
        with tracing.start_server_span("POST /v1/ai/verify_attendees", headers) as span:
            ctx = TraceContext.from_span(span)
        assert ctx.trace_id == "0af7651916cd43dd8448eb211c80319c"

    def test_traceparent_format(self, tracing):
        with tracing.start_client_span("test") as span:
            parts = TraceContext.from_span(span).to_traceparent().split("-")
        assert parts[0] == "00"
        assert len(parts[1]) == 32
        assert len(parts[2]) == 16
        assert len(parts[3]) == 2

    def test_trace_provider_call_reraises(self):
        with pytest.raises(ValueError):
            with trace_provider_call("mistral", "verify_attendees", attempt=2):
                raise ValueError("bad payload")
