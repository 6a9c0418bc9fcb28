"""
AI Router - Routing Telemetry and Alerting

In-memory telemetry sink for routing decisions and provider health.

Features:
- Size-bounded logs of routing attempts and health samples
- Sliding-window statistics (success rate, latency, fallback rate,
  error histogram, provider/operation usage, busiest hours)
- Threshold alerts with a per-type cooldown
- Operator acknowledgment and resolution of alerts

Nothing here is persisted; logs live for the life of the process.
"""

from collections import Counter
from dataclasses import dataclass, field, fields
from datetime import datetime, timedelta
from threading import Lock
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from ..core.errors import classify_message
from ..core.models import (
    Alert,
    AlertMetrics,
    AlertSeverity,
    AlertType,
    HealthStatus,
    RoutingLogEntry,
    ServiceHealthLogEntry,
    utcnow,
)
from .logging import get_logger
from .metrics import MetricsCollector


logger = get_logger(__name__)

T = TypeVar("T")


# ============================================================
# Configuration
# ============================================================

@dataclass
class AlertThresholds:
    error_rate: float = 10.0           # percent
    response_time_ms: float = 5000.0   # average, milliseconds
    fallback_rate: float = 20.0        # percent


@dataclass
class AlertConfig:
    """Alerting switches and thresholds."""
    enabled: bool = False
    thresholds: AlertThresholds = field(default_factory=AlertThresholds)
    cooldown_minutes: float = 30.0

    # Alerts are only evaluated with at least this many entries in the last hour
    min_sample_size: int = 10


@dataclass
class TelemetryConfig:
    """Buffer sizes and trim ratios for the in-memory logs."""
    max_log_entries: int = 10000
    log_trim_ratio: float = 0.8
    max_health_entries: int = 1000
    health_trim_ratio: float = 0.5
    max_alerts: int = 100
    alert_trim_ratio: float = 0.5
    debug: bool = False


# ============================================================
# Bounded log
# ============================================================

class BoundedLog(Generic[T]):
    """
    Append-only list that trims itself to the newest capacity * trim_ratio
    items whenever it grows past capacity.

    The trim happens under the same lock as the append that triggers it.
    """

    def __init__(self, capacity: int, trim_ratio: float):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if not 0 < trim_ratio <= 1:
            raise ValueError("trim_ratio must be in (0, 1]")
        self.capacity = capacity
        self.trim_ratio = trim_ratio
        self._items: List[T] = []
        self._lock = Lock()

    def append(self, item: T) -> int:
        """Append an item. Returns the number of evicted items."""
        with self._lock:
            self._items.append(item)
            if len(self._items) <= self.capacity:
                return 0
            keep = int(self.capacity * self.trim_ratio)
            evicted = len(self._items) - keep
            self._items = self._items[-keep:] if keep else []
            return evicted

    def snapshot(self) -> List[T]:
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        return len(self._items)


# ============================================================
# Statistics
# ============================================================

@dataclass
class RoutingStatistics:
    """Aggregates over a window of routing log entries."""
    total_requests: int = 0
    success_rate: float = 0.0
    average_response_time_ms: float = 0.0
    fallback_rate: float = 0.0
    error_breakdown: Dict[str, int] = field(default_factory=dict)
    provider_usage: Dict[str, int] = field(default_factory=dict)
    operation_usage: Dict[str, int] = field(default_factory=dict)
    peak_hours: List[Dict[str, int]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "success_rate": round(self.success_rate, 4),
            "average_response_time_ms": round(self.average_response_time_ms, 2),
            "fallback_rate": round(self.fallback_rate, 4),
            "error_breakdown": dict(self.error_breakdown),
            "provider_usage": dict(self.provider_usage),
            "operation_usage": dict(self.operation_usage),
            "peak_hours": list(self.peak_hours),
        }


def _error_category(entry: RoutingLogEntry) -> str:
    if entry.error_type:
        return entry.error_type
    return classify_message((entry.error or "").lower()).value


def compute_statistics(entries: List[RoutingLogEntry]) -> RoutingStatistics:
    """Statistics for a list of entries; all zero when the list is empty."""
    if not entries:
        return RoutingStatistics()

    total = len(entries)
    successes = sum(1 for e in entries if e.success)
    fallbacks = sum(1 for e in entries if e.fallback_used)
    total_time = sum(e.response_time_ms for e in entries)

    errors = Counter(_error_category(e) for e in entries if not e.success)
    providers = Counter(e.actual_provider.value for e in entries)
    operations = Counter(e.operation for e in entries)
    hours = Counter(e.timestamp.hour for e in entries)

    peak_hours = [
        {"hour": hour, "requests": count}
        for hour, count in sorted(hours.items(), key=lambda item: (-item[1], item[0]))[:5]
    ]

    return RoutingStatistics(
        total_requests=total,
        success_rate=successes / total,
        average_response_time_ms=total_time / total,
        fallback_rate=fallbacks / total,
        error_breakdown=dict(errors),
        provider_usage=dict(providers),
        operation_usage=dict(operations),
        peak_hours=peak_hours,
    )


# ============================================================
# Telemetry sink
# ============================================================

class RoutingTelemetry:
    """
    Telemetry and alerting sink for the AI router.

    The clock is injectable so windows and cooldowns can be tested without
    waiting.
    """

    def __init__(
        self,
        alert_config: Optional[AlertConfig] = None,
        config: Optional[TelemetryConfig] = None,
        metrics: Optional[MetricsCollector] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.alert_config = alert_config or AlertConfig()
        self.config = config or TelemetryConfig()
        self.metrics = metrics
        self._clock = clock

        self._routing_logs: BoundedLog[RoutingLogEntry] = BoundedLog(
            self.config.max_log_entries, self.config.log_trim_ratio
        )
        self._health_logs: BoundedLog[ServiceHealthLogEntry] = BoundedLog(
            self.config.max_health_entries, self.config.health_trim_ratio
        )
        self._alerts: BoundedLog[Alert] = BoundedLog(
            self.config.max_alerts, self.config.alert_trim_ratio
        )
        self._last_alert_times: Dict[AlertType, datetime] = {}
        self._alert_lock = Lock()

    # --------------------------------------------------------
    # Recording
    # --------------------------------------------------------

    def record(self, entry: RoutingLogEntry):
        """Append a routing log entry, emit it, then evaluate alerts."""
        evicted = self._routing_logs.append(entry)
        if evicted:
            logger.debug("Routing log trimmed", evicted=evicted, retained=len(self._routing_logs))

        self._emit(entry)

        if self.metrics:
            self.metrics.record_request(
                operation=entry.operation,
                provider=entry.actual_provider.value,
                success=entry.success,
                fallback_used=entry.fallback_used,
                duration_seconds=entry.response_time_ms / 1000,
            )

        if self.alert_config.enabled:
            self.check_alerts()

    def _emit(self, entry: RoutingLogEntry):
        if entry.fallback_used:
            route = f"{entry.primary_provider.value} -> {entry.actual_provider.value} (fallback)"
        else:
            route = entry.actual_provider.value
        message = f"{entry.operation} -> {route} ({entry.response_time_ms:.0f}ms)"

        if entry.success:
            logger.info(f"Routed {message}", request_id=entry.request_id)
        else:
            logger.error(
                f"Routing failed {message}",
                request_id=entry.request_id,
                error=entry.error or "Unknown error",
                error_type=entry.error_type,
            )

        if self.config.debug:
            logger.debug(
                "Routing details",
                request_id=entry.request_id,
                token_usage=entry.token_usage.to_dict() if entry.token_usage else None,
                routing_metadata=entry.metadata,
            )

    def log_service_health(self, entry: ServiceHealthLogEntry):
        """Append a health sample; an unhealthy provider raises a critical alert."""
        self._health_logs.append(entry)

        details = f"{entry.provider.value}: {entry.status.value}"
        if entry.response_time_ms is not None:
            details += f" ({entry.response_time_ms:.0f}ms)"
        if entry.error:
            details += f" - {entry.error}"

        if entry.status == HealthStatus.HEALTHY:
            logger.info(f"Provider health {details}")
        elif entry.status == HealthStatus.DEGRADED:
            logger.warning(f"Provider health {details}")
        else:
            logger.error(f"Provider health {details}")

        if entry.status == HealthStatus.UNHEALTHY and self.alert_config.enabled:
            name = entry.provider.value.capitalize()
            self.create_alert(
                AlertType.SERVICE_DOWN,
                AlertSeverity.CRITICAL,
                f"{name} Service Down",
                f"The {entry.provider.value} service is currently unhealthy. "
                f"{entry.error or 'No additional details available.'}",
                AlertMetrics(
                    current=entry.consecutive_failures,
                    threshold=5,
                    window="5 minutes",
                ),
            )

    # --------------------------------------------------------
    # Queries
    # --------------------------------------------------------

    def _cutoff(self, hours: float) -> datetime:
        return self._clock() - timedelta(hours=hours)

    def get_routing_logs(self, hours: float = 24) -> List[RoutingLogEntry]:
        cutoff = self._cutoff(hours)
        return [e for e in self._routing_logs.snapshot() if e.timestamp >= cutoff]

    def get_health_logs(self, hours: float = 24) -> List[ServiceHealthLogEntry]:
        cutoff = self._cutoff(hours)
        return [e for e in self._health_logs.snapshot() if e.timestamp >= cutoff]

    def get_statistics(self, hours: float = 24) -> RoutingStatistics:
        return compute_statistics(self.get_routing_logs(hours))

    # --------------------------------------------------------
    # Alerts
    # --------------------------------------------------------

    def check_alerts(self) -> List[Alert]:
        """Compare last-hour statistics with thresholds. Returns alerts created."""
        recent = self.get_routing_logs(1)
        if len(recent) < self.alert_config.min_sample_size:
            return []

        stats = compute_statistics(recent)
        thresholds = self.alert_config.thresholds
        created = []

        error_rate = (1 - stats.success_rate) * 100
        if error_rate > thresholds.error_rate:
            created.append(self.create_alert(
                AlertType.ERROR_RATE,
                AlertSeverity.HIGH,
                "High Error Rate Detected",
                f"Error rate is {error_rate:.1f}%, exceeding threshold of {thresholds.error_rate}%",
                AlertMetrics(current=error_rate, threshold=thresholds.error_rate),
            ))

        if stats.average_response_time_ms > thresholds.response_time_ms:
            created.append(self.create_alert(
                AlertType.RESPONSE_TIME,
                AlertSeverity.MEDIUM,
                "Slow Response Times",
                f"Average response time is {stats.average_response_time_ms:.0f}ms, "
                f"exceeding threshold of {thresholds.response_time_ms:.0f}ms",
                AlertMetrics(
                    current=stats.average_response_time_ms,
                    threshold=thresholds.response_time_ms,
                ),
            ))

        fallback_rate = stats.fallback_rate * 100
        if fallback_rate > thresholds.fallback_rate:
            created.append(self.create_alert(
                AlertType.FALLBACK_RATE,
                AlertSeverity.MEDIUM,
                "High Fallback Usage",
                f"Fallback usage is {fallback_rate:.1f}%, exceeding threshold of {thresholds.fallback_rate}%",
                AlertMetrics(current=fallback_rate, threshold=thresholds.fallback_rate),
            ))

        return [alert for alert in created if alert is not None]

    def create_alert(
        self,
        alert_type: AlertType,
        severity: AlertSeverity,
        title: str,
        description: str,
        metrics: AlertMetrics,
    ) -> Optional[Alert]:
        """Create an alert unless one of the same type fired within the cooldown."""
        now = self._clock()
        cooldown = timedelta(minutes=self.alert_config.cooldown_minutes)

        with self._alert_lock:
            last = self._last_alert_times.get(alert_type)
            if last is not None and now - last < cooldown:
                return None
            self._last_alert_times[alert_type] = now

        alert = Alert(
            type=alert_type,
            severity=severity,
            title=title,
            description=description,
            metrics=metrics,
            timestamp=now,
        )
        self._alerts.append(alert)

        logger.warning(
            f"Alert {severity.value.upper()}: {title} - {description}",
            alert_id=alert.id,
            alert_type=alert_type.value,
        )
        if self.metrics:
            self.metrics.record_alert(alert_type.value, severity.value)
        return alert

    def get_alerts(self, include_resolved: bool = False) -> List[Alert]:
        alerts = self._alerts.snapshot()
        if include_resolved:
            return alerts
        return [a for a in alerts if a.resolved_at is None]

    def _find_alert(self, alert_id: str) -> Optional[Alert]:
        for alert in self._alerts.snapshot():
            if alert.id == alert_id:
                return alert
        return None

    def acknowledge_alert(self, alert_id: str) -> bool:
        alert = self._find_alert(alert_id)
        if alert is None:
            return False
        alert.acknowledged = True
        logger.info("Alert acknowledged", alert_id=alert_id)
        return True

    def resolve_alert(self, alert_id: str) -> bool:
        alert = self._find_alert(alert_id)
        if alert is None:
            return False
        alert.resolved_at = self._clock()
        logger.info("Alert resolved", alert_id=alert_id)
        return True

    def update_alert_config(self, **changes):
        """
        Update alerting settings in place.

        Accepts AlertConfig fields (enabled, cooldown_minutes, min_sample_size)
        and AlertThresholds fields (error_rate, response_time_ms, fallback_rate).
        """
        config_fields = {f.name for f in fields(AlertConfig)} - {"thresholds"}
        threshold_fields = {f.name for f in fields(AlertThresholds)}

        unknown = sorted(set(changes) - config_fields - threshold_fields)
        if unknown:
            raise ValueError(f"Unknown alert setting: {', '.join(unknown)}")

        for key, value in changes.items():
            if key in config_fields:
                setattr(self.alert_config, key, value)
            else:
                setattr(self.alert_config.thresholds, key, value)

        logger.info("Alert configuration updated", **changes)

    # --------------------------------------------------------
    # Export
    # --------------------------------------------------------

    def export_logs(self, hours: float = 24) -> Dict[str, Any]:
        return {
            "routing_logs": [e.to_dict() for e in self.get_routing_logs(hours)],
            "health_logs": [e.to_dict() for e in self.get_health_logs(hours)],
            "statistics": self.get_statistics(hours).to_dict(),
            "alerts": [a.to_dict() for a in self.get_alerts(include_resolved=True)],
            "export_time": self._clock().isoformat(),
        }
