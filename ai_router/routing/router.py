"""
AI Router - Request Router

Routes calendar-assistant operations to Gemini or Mistral.

For each request:
1. Look up the routing rule for the operation
2. Run the primary (or forced) provider through the retry executor
3. On a fallback-eligible failure, run the fallback provider the same way
4. Record usage, a routing log entry per path and provider health

Any final failure is raised as one RoutingError whose __cause__ is the
exception the provider actually raised.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..core.errors import (
    FALLBACK_KINDS,
    ErrorClassification,
    OperationNotSupportedError,
    RoutingError,
    classify_error,
)
from ..core.models import (
    Alert,
    HealthStatus,
    Provider,
    RoutingLogEntry,
    RoutingOptions,
    RoutingRule,
    ServiceHealthLogEntry,
    TokenUsage,
    generate_request_id,
    utcnow,
)
from ..observability.logging import TimedOperation, get_logger
from ..observability.metrics import MetricsCollector
from ..observability.telemetry import RoutingTelemetry
from ..usage.estimator import TokenEstimator
from ..usage.tracker import UsageTracker
from .circuit_breaker import CircuitBreakerRegistry
from .registry import OperationRegistry
from .retry import RetryExecutor, RetryOutcome
from .rules import RoutingTable


logger = get_logger(__name__)


@dataclass
class RouterConfig:
    """Router-wide switches and retry budgets."""
    enable_fallback: bool = True

    # Retries after the first attempt on each path
    primary_max_retries: int = 3
    fallback_max_retries: int = 2

    health_check_timeout_ms: int = 5000


@dataclass
class PathResult:
    """Outcome of running one provider path (primary or fallback)."""
    provider: Provider
    outcome: RetryOutcome
    response_time_ms: float
    tokens: TokenUsage


class AIRouter:
    """
    Routes operations across providers with retry, fallback and circuit
    breaking.

    All collaborators are passed in; nothing here is a module-level
    singleton.
    """

    def __init__(
        self,
        routing_table: RoutingTable,
        registry: OperationRegistry,
        breakers: CircuitBreakerRegistry,
        executor: RetryExecutor,
        telemetry: RoutingTelemetry,
        usage: UsageTracker,
        metrics: Optional[MetricsCollector] = None,
        config: Optional[RouterConfig] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.routing_table = routing_table
        self.registry = registry
        self.breakers = breakers
        self.executor = executor
        self.telemetry = telemetry
        self.usage = usage
        self.metrics = metrics
        self.config = config or RouterConfig()
        self._clock = clock

        self._estimators: Dict[Provider, TokenEstimator] = {
            provider: TokenEstimator(provider.value) for provider in Provider
        }
        self._health: Dict[Provider, HealthStatus] = {
            provider: HealthStatus.HEALTHY for provider in Provider
        }
        self._last_health_check: Optional[datetime] = None

    # ============================================================
    # Routing
    # ============================================================

    async def route_request(
        self,
        operation: str,
        args: Sequence[Any] = (),
        options: Optional[RoutingOptions] = None,
    ) -> Any:
        """
        Route one operation call.

        Args:
            operation: Operation name, e.g. "generate_meeting_titles"
            args: Positional arguments for the provider callable
            options: Per-call overrides (forced provider, fallback switch, timeout)

        Returns:
            Whatever the provider callable returned

        Raises:
            ConfigurationError: No routing rule for the operation
            OperationNotSupportedError: Target provider lacks the operation
            RoutingError: Final failure after retries (and fallback, if tried)
        """
        options = options or RoutingOptions()
        rule = self.routing_table.get_rule(operation)
        request_id = generate_request_id()
        args = tuple(args)

        self.usage.record_routing_decision()

        target = options.force_provider or rule.primary_provider
        timeout_ms = options.timeout_ms or rule.timeout_ms
        reason = "forced" if options.force_provider else "primary"

        # Primary not registered (e.g. no API key): serve from the fallback directly
        if (
            reason == "primary"
            and not self.registry.supports(target, operation)
            and self._fallback_allowed(rule, options)
            and self.registry.supports(rule.fallback_provider, operation)
        ):
            target = rule.fallback_provider
            reason = "primary_unavailable"
            self.usage.record_fallback()
            if self.metrics:
                self.metrics.record_fallback(
                    rule.primary_provider.value, target.value, reason
                )

        try:
            call = self.registry.resolve(target, operation)
        except OperationNotSupportedError as e:
            e.request_id = request_id
            raise

        logger.debug(
            f"{operation} -> {target.value} ({reason})",
            request_id=request_id,
            timeout_ms=timeout_ms,
        )

        primary = await self._run_path(
            call, args, target, operation, timeout_ms,
            self.config.primary_max_retries,
        )
        self._record_path(
            request_id, operation, options.force_provider or rule.primary_provider, primary,
            fallback_used=reason == "primary_unavailable", reason=reason,
        )

        if primary.outcome.succeeded:
            return primary.outcome.result

        classification = primary.outcome.classification
        if (
            reason == "primary_unavailable"
            or not self.should_try_fallback(rule, options, classification, operation)
        ):
            self.usage.record_routing_failure()
            raise self._final_error(primary, operation, request_id, fallback_attempted=False)

        fallback_provider = rule.fallback_provider
        self.usage.record_fallback()
        if self.metrics:
            self.metrics.record_fallback(
                target.value, fallback_provider.value, classification.type.value
            )
        logger.warning(
            f"{operation}: {target.value} failed, falling back to {fallback_provider.value}",
            request_id=request_id,
            error_type=classification.type.value,
        )

        fallback = await self._run_path(
            self.registry.resolve(fallback_provider, operation),
            args, fallback_provider, operation, timeout_ms,
            self.config.fallback_max_retries,
        )
        self._record_path(
            request_id, operation, target, fallback,
            fallback_used=True, reason="fallback",
        )

        if fallback.outcome.succeeded:
            return fallback.outcome.result

        self.usage.record_routing_failure()
        raise self._final_error(primary, operation, request_id, fallback_attempted=True)

    def should_try_fallback(
        self,
        rule: RoutingRule,
        options: Optional[RoutingOptions],
        classification: Optional[ErrorClassification],
        operation: Optional[str] = None,
    ) -> bool:
        """Whether a failed primary path may be retried on the fallback provider."""
        options = options or RoutingOptions()

        if not self._fallback_allowed(rule, options):
            return False
        if classification is None or classification.type not in FALLBACK_KINDS:
            return False
        if operation is not None and not self.registry.supports(rule.fallback_provider, operation):
            return False
        return True

    def _fallback_allowed(self, rule: RoutingRule, options: RoutingOptions) -> bool:
        if not self.config.enable_fallback or not rule.fallback_enabled:
            return False
        if options.enable_fallback is False:
            return False
        if rule.fallback_provider is None:
            return False
        return options.force_provider is None

    async def _run_path(
        self,
        call: Callable[..., Any],
        args: tuple,
        provider: Provider,
        operation: str,
        timeout_ms: int,
        max_retries: int,
    ) -> PathResult:
        breaker = self.breakers.get_breaker(provider)

        start = time.time()
        outcome = await self.executor.execute(
            lambda: call(*args),
            breaker,
            max_retries=max_retries,
            timeout_ms=timeout_ms,
            provider=provider.value,
            operation=operation,
        )
        response_time_ms = (time.time() - start) * 1000

        tokens = self._estimators[provider].estimate(
            args, outcome.result, success=outcome.succeeded
        )
        return PathResult(
            provider=provider,
            outcome=outcome,
            response_time_ms=response_time_ms,
            tokens=tokens,
        )

    def _record_path(
        self,
        request_id: str,
        operation: str,
        primary_provider: Provider,
        path: PathResult,
        fallback_used: bool,
        reason: str,
    ):
        outcome = path.outcome
        classification = outcome.classification
        breaker = self.breakers.get_breaker(path.provider)

        entry = RoutingLogEntry(
            operation=operation,
            primary_provider=primary_provider,
            actual_provider=path.provider,
            fallback_used=fallback_used,
            response_time_ms=path.response_time_ms,
            success=outcome.succeeded,
            request_id=request_id,
            timestamp=self._clock(),
            error=classification.message if classification else None,
            error_type=classification.type.value if classification else None,
            token_usage=path.tokens,
            metadata={
                "retry_count": max(outcome.attempts - 1, 0),
                "circuit_breaker_state": breaker.state.value,
                "routing_reason": reason,
            },
        )

        self.usage.record(
            path.provider,
            operation,
            path.response_time_ms,
            outcome.succeeded,
            tokens=path.tokens,
        )
        self.telemetry.record(entry)
        if self.metrics:
            self.metrics.record_tokens(
                path.provider.value, operation, path.tokens.input, path.tokens.output
            )

        self._infer_health(path, entry.error)

    def _final_error(
        self,
        path: PathResult,
        operation: str,
        request_id: str,
        fallback_attempted: bool,
    ) -> RoutingError:
        classification = path.outcome.classification
        original = path.outcome.error

        error = RoutingError(
            classification.message,
            kind=classification.type,
            provider=path.provider.value,
            operation=operation,
            retryable=classification.retryable,
            retry_after_ms=classification.retry_after_ms,
            fallback_attempted=fallback_attempted,
            request_id=request_id,
        )
        if isinstance(original, RoutingError):
            error.code = original.code
        error.__cause__ = original
        return error

    # ============================================================
    # Health
    # ============================================================

    def _infer_health(self, path: PathResult, error: Optional[str]):
        """Log a health sample when a routing outcome changes a provider's status."""
        breaker = self.breakers.get_breaker(path.provider)

        if path.outcome.succeeded:
            status = HealthStatus.HEALTHY
        elif breaker.is_tripped:
            status = HealthStatus.UNHEALTHY
        else:
            status = HealthStatus.DEGRADED

        if self._health.get(path.provider) == status:
            return
        self._health[path.provider] = status

        self.telemetry.log_service_health(ServiceHealthLogEntry(
            provider=path.provider,
            status=status,
            circuit_breaker_open=breaker.is_tripped,
            consecutive_failures=breaker.consecutive_failures,
            timestamp=self._clock(),
            response_time_ms=path.response_time_ms,
            error=error,
        ))

    async def check_service_health(self) -> Dict[Provider, ServiceHealthLogEntry]:
        """Probe every registered provider and log one health sample each."""
        providers = [p for p in self.registry.providers() if self.registry.health_probe(p)]
        samples = await asyncio.gather(*(self._probe(p) for p in providers))
        self._last_health_check = self._clock()
        return dict(zip(providers, samples))

    async def _probe(self, provider: Provider) -> ServiceHealthLogEntry:
        probe = self.registry.health_probe(provider)
        timeout = self.config.health_check_timeout_ms / 1000
        error = None

        timer = TimedOperation(f"health_check.{provider.value}", logger)
        try:
            with timer:
                result = await asyncio.wait_for(probe(), timeout=timeout)
            healthy = bool(getattr(result, "is_healthy", result))
            if not healthy:
                error = getattr(result, "last_error", None)
        except Exception as e:
            healthy = False
            error = classify_error(e).message

        breaker = self.breakers.get_breaker(provider)
        status = HealthStatus.HEALTHY if healthy else HealthStatus.UNHEALTHY
        self._health[provider] = status

        sample = ServiceHealthLogEntry(
            provider=provider,
            status=status,
            circuit_breaker_open=breaker.is_tripped,
            consecutive_failures=breaker.consecutive_failures,
            timestamp=self._clock(),
            response_time_ms=timer.duration_ms if healthy else None,
            error=error,
        )
        self.telemetry.log_service_health(sample)

        if self.metrics:
            self.metrics.record_health_check(provider.value, healthy, timer.duration_ms / 1000)
        return sample

    async def get_service_status(self) -> Dict[str, Any]:
        """Probe providers, then summarize overall health with recommendations."""
        await self.check_service_health()

        services = {}
        available = []
        for provider in Provider:
            breaker = self.breakers.get_breaker(provider)
            is_available = (
                self._health.get(provider) == HealthStatus.HEALTHY
                and not breaker.is_tripped
                and bool(self.registry.operations(provider))
            )
            if is_available:
                available.append(provider)
            services[provider.value] = {
                "available": is_available,
                "status": self._health.get(provider, HealthStatus.UNHEALTHY).value,
                "circuit_breaker": breaker.get_status(),
            }

        recommendations: List[str] = []
        if len(available) == len(services):
            overall = HealthStatus.HEALTHY
        elif available:
            overall = HealthStatus.DEGRADED
            backup = available[0].value.capitalize()
            for provider in Provider:
                if provider not in available:
                    recommendations.append(
                        f"{provider.value.capitalize()} service is unavailable - using {backup} fallback"
                    )
        else:
            overall = HealthStatus.UNHEALTHY
            recommendations.append(
                "All AI services are unavailable - check network connectivity and API keys"
            )

        return {
            "overall": overall.value,
            "services": services,
            "last_health_check": self._last_health_check.isoformat() if self._last_health_check else None,
            "recommendations": recommendations,
        }

    # ============================================================
    # Observability surface
    # ============================================================

    def get_routing_statistics(self, hours: float = 24) -> Dict[str, Any]:
        return self.telemetry.get_statistics(hours).to_dict()

    def get_routing_logs(self, hours: float = 24) -> List[RoutingLogEntry]:
        return self.telemetry.get_routing_logs(hours)

    def get_health_logs(self, hours: float = 24) -> List[ServiceHealthLogEntry]:
        return self.telemetry.get_health_logs(hours)

    def get_alerts(self, include_resolved: bool = False) -> List[Alert]:
        return self.telemetry.get_alerts(include_resolved)

    def acknowledge_alert(self, alert_id: str) -> bool:
        return self.telemetry.acknowledge_alert(alert_id)

    def resolve_alert(self, alert_id: str) -> bool:
        return self.telemetry.resolve_alert(alert_id)

    def export_logs(self, hours: float = 24) -> Dict[str, Any]:
        return self.telemetry.export_logs(hours)

    def get_usage_stats(self) -> Dict[str, Any]:
        return self.usage.to_dict()

    def get_routing_rules(self) -> Dict[str, Dict[str, Any]]:
        return self.routing_table.to_dict()

    def get_circuit_breaker_status(self) -> Dict[str, Dict[str, Any]]:
        return self.breakers.get_all_status()

    def format_error_response(
        self,
        error: BaseException,
        fallback_used: bool = False,
        fallback_response: Any = None,
    ) -> Dict[str, Any]:
        """Caller-facing error payload for any exception."""
        classification = classify_error(error)
        code = getattr(error, "code", None) or getattr(error, "status_code", None)

        result: Dict[str, Any] = {
            "success": False,
            "error": {
                "type": classification.type.value,
                "message": classification.message,
                "code": str(code) if code is not None else None,
                "retryable": classification.retryable,
                "fallback_used": fallback_used,
                "timestamp": self._clock().isoformat(),
            },
        }
        if fallback_response is not None:
            result["fallback_response"] = fallback_response
        return result
