"""
AI Router - Usage Tracker

Continuously updated per-provider usage aggregates plus routing counters.

Averages and success rates are maintained incrementally:
    new_avg = (old_avg * (n - 1) + value) / n
so memory stays proportional to the number of operations, not requests.
"""

from dataclasses import dataclass
from datetime import datetime
from threading import Lock
from typing import Any, Callable, Dict, Optional

from ..core.models import OperationUsage, Provider, ProviderUsage, TokenUsage, utcnow


@dataclass
class RoutingCounters:
    total_routing_decisions: int = 0
    fallbacks_triggered: int = 0
    routing_failures: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "total_routing_decisions": self.total_routing_decisions,
            "fallbacks_triggered": self.fallbacks_triggered,
            "routing_failures": self.routing_failures,
        }


def _running_average(previous: float, count: int, value: float) -> float:
    return (previous * (count - 1) + value) / count


class UsageTracker:
    """
    Usage statistics for every provider.

    Mutations run under a lock so concurrent requests never lose an update.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock
        self._lock = Lock()
        self._providers: Dict[Provider, ProviderUsage] = {
            provider: ProviderUsage() for provider in Provider
        }
        self.counters = RoutingCounters()

    def record(
        self,
        provider: Provider,
        operation: str,
        response_time_ms: float,
        success: bool,
        tokens: Optional[TokenUsage] = None,
    ):
        """Fold one attempt into the provider and operation aggregates."""
        outcome = 1.0 if success else 0.0
        total_tokens = tokens.total if tokens else 0

        with self._lock:
            stats = self._providers.setdefault(provider, ProviderUsage())
            stats.total_requests += 1
            stats.total_tokens += total_tokens
            stats.average_response_time_ms = _running_average(
                stats.average_response_time_ms, stats.total_requests, response_time_ms
            )
            stats.success_rate = _running_average(
                stats.success_rate, stats.total_requests, outcome
            )

            op_stats = stats.operations.setdefault(operation, OperationUsage())
            op_stats.request_count += 1
            op_stats.token_usage += total_tokens
            op_stats.average_response_time_ms = _running_average(
                op_stats.average_response_time_ms, op_stats.request_count, response_time_ms
            )
            op_stats.success_rate = _running_average(
                op_stats.success_rate, op_stats.request_count, outcome
            )
            op_stats.last_used = self._clock()

    def record_routing_decision(self):
        with self._lock:
            self.counters.total_routing_decisions += 1

    def record_fallback(self):
        with self._lock:
            self.counters.fallbacks_triggered += 1

    def record_routing_failure(self):
        with self._lock:
            self.counters.routing_failures += 1

    def get_provider_usage(self, provider: Provider) -> ProviderUsage:
        return self._providers[provider]

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "providers": {
                    provider.value: stats.to_dict()
                    for provider, stats in self._providers.items()
                },
                "routing": self.counters.to_dict(),
            }
