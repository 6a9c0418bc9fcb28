"""
AI Router - Composition Root

Builds the router and everything it depends on from RouterSettings.

There are no module-level router, breaker or telemetry singletons: the
server builds one AppContext at startup and tests build their own with
stub adapters, a private metrics registry, a fake clock and a recording
sleep.
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Sequence

from .config import ProviderSettings, RouterSettings
from .core.models import Provider, utcnow
from .observability.logging import get_logger
from .observability.metrics import MetricsCollector, get_metrics
from .observability.telemetry import RoutingTelemetry
from .providers import AdapterConfig, BaseAdapter, GeminiAdapter, MistralAdapter, StubAdapter
from .routing.circuit_breaker import CircuitBreakerRegistry, CircuitState
from .routing.registry import OperationRegistry
from .routing.retry import RetryExecutor
from .routing.router import AIRouter
from .routing.rules import RoutingTable
from .usage.tracker import UsageTracker


logger = get_logger(__name__)

_ADAPTER_CLASSES = {
    Provider.GEMINI: GeminiAdapter,
    Provider.MISTRAL: MistralAdapter,
}


@dataclass
class AppContext:
    """Everything one running router instance owns."""
    settings: RouterSettings
    router: AIRouter
    telemetry: RoutingTelemetry
    usage: UsageTracker
    metrics: MetricsCollector
    adapters: List[BaseAdapter] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    async def close(self):
        for adapter in self.adapters:
            await adapter.close()


def create_adapter(settings: ProviderSettings) -> BaseAdapter:
    """Real HTTP adapter for a configured provider."""
    adapter_class = _ADAPTER_CLASSES[settings.provider]
    return adapter_class(AdapterConfig(
        api_key=settings.api_key,
        model=settings.model or adapter_class.DEFAULT_MODEL,
    ))


def create_adapters(settings: RouterSettings) -> List[BaseAdapter]:
    """Stub adapters when enabled, otherwise one adapter per configured provider."""
    if settings.use_stub_adapters:
        return [StubAdapter(provider) for provider in Provider]
    return [create_adapter(p) for p in settings.providers() if p.configured]


def build_context(
    settings: Optional[RouterSettings] = None,
    adapters: Optional[Sequence[BaseAdapter]] = None,
    metrics: Optional[MetricsCollector] = None,
    clock: Callable[[], datetime] = utcnow,
    breaker_clock: Callable[[], float] = time.time,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    routing_table: Optional[RoutingTable] = None,
) -> AppContext:
    """
    Wire up the routing layer.

    Args:
        settings: Defaults to RouterSettings.from_env()
        adapters: Provider adapters; built from settings when omitted
        metrics: Defaults to the process-wide collector
        clock: Wall clock for log entries, windows and alert cooldowns
        breaker_clock: Epoch-seconds clock for circuit breaker windows
        sleep: Backoff sleep used by the retry executor
        routing_table: Defaults to the built-in routing rules

    Raises:
        ConfigurationError: No provider is configured and stubs are disabled
    """
    settings = settings or RouterSettings.from_env()
    warnings = [] if adapters is not None else settings.validate_provider_keys()
    for warning in warnings:
        logger.warning(warning)

    metrics = metrics or get_metrics()
    adapters = list(adapters) if adapters is not None else create_adapters(settings)

    registry = OperationRegistry()
    for adapter in adapters:
        registry.register_adapter(adapter)

    def on_breaker_change(provider: str, state: CircuitState):
        logger.warning(f"Circuit breaker {provider} -> {state.value}", provider=provider)
        metrics.set_circuit_breaker_state(provider, state.value)

    breakers = CircuitBreakerRegistry(clock=breaker_clock, on_state_change=on_breaker_change)
    for provider in Provider:
        metrics.set_circuit_breaker_state(provider.value, breakers.get_breaker(provider).state.value)

    telemetry = RoutingTelemetry(
        alert_config=settings.alerts,
        config=settings.telemetry,
        metrics=metrics,
        clock=clock,
    )
    usage = UsageTracker(clock=clock)

    router = AIRouter(
        routing_table=routing_table or RoutingTable(),
        registry=registry,
        breakers=breakers,
        executor=RetryExecutor(metrics=metrics, sleep=sleep),
        telemetry=telemetry,
        usage=usage,
        metrics=metrics,
        config=settings.router,
        clock=clock,
    )

    logger.info(
        "AI router ready",
        providers=[p.value for p in registry.providers()],
        stub_adapters=settings.use_stub_adapters,
        alerts_enabled=settings.alerts.enabled,
    )

    return AppContext(
        settings=settings,
        router=router,
        telemetry=telemetry,
        usage=usage,
        metrics=metrics,
        adapters=adapters,
        warnings=warnings,
    )
