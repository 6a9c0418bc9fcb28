"""
AI Router - Core Data Models

Routing rules, per-attempt log entries, health samples, alerts and
usage aggregates shared by the routing and observability layers.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_request_id() -> str:
    return f"req_{uuid.uuid4().hex[:24]}"


def generate_alert_id() -> str:
    return f"alert_{uuid.uuid4().hex[:16]}"


# ============================================================
# Enums
# ============================================================

class Provider(str, Enum):
    """Supported LLM providers."""
    GEMINI = "gemini"
    MISTRAL = "mistral"


class HealthStatus(str, Enum):
    """Provider health as seen by probes and routing outcomes."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class AlertType(str, Enum):
    ERROR_RATE = "error_rate"
    RESPONSE_TIME = "response_time"
    FALLBACK_RATE = "fallback_rate"
    SERVICE_DOWN = "service_down"


class AlertSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# ============================================================
# Routing configuration
# ============================================================

@dataclass(frozen=True)
class RoutingRule:
    """Static routing for one logical operation."""
    primary_provider: Provider
    fallback_provider: Optional[Provider] = None
    fallback_enabled: bool = True
    timeout_ms: int = 30000

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary_provider": self.primary_provider.value,
            "fallback_provider": self.fallback_provider.value if self.fallback_provider else None,
            "fallback_enabled": self.fallback_enabled,
            "timeout_ms": self.timeout_ms,
        }


@dataclass
class RoutingOptions:
    """Per-call overrides accepted by AIRouter.route_request."""
    force_provider: Optional[Provider] = None
    enable_fallback: Optional[bool] = None
    timeout_ms: Optional[int] = None


# ============================================================
# Telemetry records
# ============================================================

@dataclass(frozen=True)
class TokenUsage:
    input: int = 0
    output: int = 0

    @property
    def total(self) -> int:
        return self.input + self.output

    def to_dict(self) -> Dict[str, int]:
        return {"input": self.input, "output": self.output, "total": self.total}


@dataclass(frozen=True)
class RoutingLogEntry:
    """
    One routing attempt path (primary or fallback), immutable once written.

    metadata carries retry_count, circuit_breaker_state and routing_reason.
    """
    operation: str
    primary_provider: Provider
    actual_provider: Provider
    fallback_used: bool
    response_time_ms: float
    success: bool
    request_id: str = field(default_factory=generate_request_id)
    timestamp: datetime = field(default_factory=utcnow)
    error: Optional[str] = None
    error_type: Optional[str] = None
    token_usage: Optional[TokenUsage] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "request_id": self.request_id,
            "operation": self.operation,
            "primary_provider": self.primary_provider.value,
            "actual_provider": self.actual_provider.value,
            "fallback_used": self.fallback_used,
            "response_time_ms": round(self.response_time_ms, 2),
            "success": self.success,
            "metadata": dict(self.metadata),
        }
        if self.error is not None:
            result["error"] = self.error
        if self.error_type is not None:
            result["error_type"] = self.error_type
        if self.token_usage is not None:
            result["token_usage"] = self.token_usage.to_dict()
        return result


@dataclass(frozen=True)
class ServiceHealthLogEntry:
    """One health sample for a provider, from a probe or a routing outcome."""
    provider: Provider
    status: HealthStatus
    circuit_breaker_open: bool
    consecutive_failures: int
    timestamp: datetime = field(default_factory=utcnow)
    response_time_ms: Optional[float] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "provider": self.provider.value,
            "status": self.status.value,
            "response_time_ms": self.response_time_ms,
            "error": self.error,
            "circuit_breaker_open": self.circuit_breaker_open,
            "consecutive_failures": self.consecutive_failures,
        }


@dataclass
class AlertMetrics:
    current: float
    threshold: float
    window: str = "1 hour"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current": round(self.current, 2),
            "threshold": self.threshold,
            "window": self.window,
        }


@dataclass
class Alert:
    """
    Threshold breach raised by the telemetry sink.

    Mutable after creation: operators acknowledge and resolve alerts.
    """
    type: AlertType
    severity: AlertSeverity
    title: str
    description: str
    metrics: AlertMetrics
    id: str = field(default_factory=generate_alert_id)
    timestamp: datetime = field(default_factory=utcnow)
    acknowledged: bool = False
    resolved_at: Optional[datetime] = None

    @property
    def resolved(self) -> bool:
        return self.resolved_at is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "type": self.type.value,
            "severity": self.severity.value,
            "title": self.title,
            "description": self.description,
            "metrics": self.metrics.to_dict(),
            "acknowledged": self.acknowledged,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
        }


# ============================================================
# Usage aggregates
# ============================================================

@dataclass
class OperationUsage:
    """Running aggregate for one operation on one provider."""
    request_count: int = 0
    token_usage: int = 0
    average_response_time_ms: float = 0.0
    success_rate: float = 0.0
    last_used: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request_count": self.request_count,
            "token_usage": self.token_usage,
            "average_response_time_ms": round(self.average_response_time_ms, 2),
            "success_rate": round(self.success_rate, 4),
            "last_used": self.last_used.isoformat() if self.last_used else None,
        }


@dataclass
class ProviderUsage:
    """
    Running aggregate for one provider.

    Averages are updated incrementally, so memory is O(#operations).
    """
    total_requests: int = 0
    total_tokens: int = 0
    average_response_time_ms: float = 0.0
    success_rate: float = 1.0
    operations: Dict[str, OperationUsage] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "total_tokens": self.total_tokens,
            "average_response_time_ms": round(self.average_response_time_ms, 2),
            "success_rate": round(self.success_rate, 4),
            "operations": {
                name: usage.to_dict() for name, usage in self.operations.items()
            },
        }
