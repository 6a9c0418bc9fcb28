"""
AI Router - Pytest Configuration

Configures:
- Integration test markers (skip by default)
- Deterministic clocks and a recording sleep for retry/breaker tests
- Router factories wired with mock provider calls or stub adapters
"""

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock

import pytest
from prometheus_client import CollectorRegistry

from ai_router.config import RouterSettings
from ai_router.context import build_context
from ai_router.core.models import Provider
from ai_router.observability.metrics import MetricsCollector
from ai_router.observability.telemetry import AlertConfig, RoutingTelemetry, TelemetryConfig
from ai_router.providers import StubAdapter
from ai_router.routing.circuit_breaker import CircuitBreakerRegistry
from ai_router.routing.registry import OperationRegistry
from ai_router.routing.retry import RetryExecutor
from ai_router.routing.router import AIRouter, RouterConfig
from ai_router.routing.rules import RoutingTable
from ai_router.usage.tracker import UsageTracker


# ============================================================
# Environment Configuration
# ============================================================

def _is_truthy(value: Optional[str]) -> bool:
    """Check if environment variable is truthy."""
    if value is None:
        return False
    return value.lower() in ("1", "true", "yes", "on")


RUN_INTEGRATION = _is_truthy(os.getenv("RUN_INTEGRATION"))


# ============================================================
# Pytest Markers
# ============================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test against live providers (requires RUN_INTEGRATION=1)"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless RUN_INTEGRATION=1."""
    skip_integration = pytest.mark.skip(
        reason="Integration test - set RUN_INTEGRATION=1 to run"
    )

    for item in items:
        if "integration" in item.keywords and not RUN_INTEGRATION:
            item.add_marker(skip_integration)


# ============================================================
# Clocks and sleep
# ============================================================

class FakeClock:
    """Wall clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeTimer:
    """Epoch-seconds clock for circuit breakers."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that records requested delays in seconds."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float):
        self.delays.append(seconds)

    @property
    def delays_ms(self) -> List[float]:
        return [d * 1000 for d in self.delays]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def timer():
    return FakeTimer()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def metrics():
    """Metrics collector on a private registry."""
    return MetricsCollector(CollectorRegistry())


# ============================================================
# Router factories
# ============================================================

class ProviderError(Exception):
    """Error shaped like an SDK exception carrying an HTTP status."""

    def __init__(self, message: str, status: Optional[int] = None, **attrs: Any):
        super().__init__(message)
        if status is not None:
            self.status = status
        for name, value in attrs.items():
            setattr(self, name, value)


@pytest.fixture
def router_factory(clock, timer, sleep, metrics):
    """
    Build an AIRouter over an OperationRegistry of mock callables.

    Usage:
        router = router_factory({
            (Provider.GEMINI, "generate_meeting_titles"): AsyncMock(side_effect=...),
        })
    """
    def factory(
        calls: Optional[Dict[Any, Any]] = None,
        config: Optional[RouterConfig] = None,
        alert_config: Optional[AlertConfig] = None,
        telemetry_config: Optional[TelemetryConfig] = None,
        routing_table: Optional[RoutingTable] = None,
    ) -> AIRouter:
        registry = OperationRegistry()
        for (provider, operation), call in (calls or {}).items():
            registry.register(provider, operation, call)

        telemetry = RoutingTelemetry(
            alert_config=alert_config,
            config=telemetry_config,
            metrics=metrics,
            clock=clock,
        )
        return AIRouter(
            routing_table=routing_table or RoutingTable(),
            registry=registry,
            breakers=CircuitBreakerRegistry(clock=timer),
            executor=RetryExecutor(metrics=metrics, sleep=sleep),
            telemetry=telemetry,
            usage=UsageTracker(clock=clock),
            metrics=metrics,
            config=config,
            clock=clock,
        )

    return factory


@pytest.fixture
def stub_context(clock, timer, sleep, metrics):
    """Application context with stub adapters for both providers."""
    settings = RouterSettings.from_env({"USE_STUB_ADAPTERS": "true"})
    return build_context(
        settings,
        adapters=[StubAdapter(Provider.GEMINI), StubAdapter(Provider.MISTRAL)],
        metrics=metrics,
        clock=clock,
        breaker_clock=timer,
        sleep=sleep,
    )


def failing(*errors: BaseException, then: Any = None) -> AsyncMock:
    """AsyncMock raising the given errors in order, then returning `then`."""
    effects: List[Any] = list(errors)
    effects.append(then)
    return AsyncMock(side_effect=effects)


# ============================================================
# Logging Configuration
# ============================================================

@pytest.fixture(autouse=True)
def configure_test_logging():
    """Configure logging for tests."""
    logging.basicConfig(
        level=logging.DEBUG,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    yield


# ============================================================
# Skip Helpers
# ============================================================

skip_if_no_gemini = pytest.mark.skipif(
    not os.getenv("GEMINI_API_KEY"),
    reason="Requires GEMINI_API_KEY"
)

skip_if_no_mistral = pytest.mark.skipif(
    not os.getenv("MISTRAL_API_KEY"),
    reason="Requires MISTRAL_API_KEY"
)
