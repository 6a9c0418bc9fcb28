"""
AI Router - Routing Module

Request routing with:
- Per-operation routing rules (primary, fallback, timeout)
- Typed operation registry per provider
- Retry with exponential backoff and per-attempt timeouts
- Per-provider circuit breakers
- Fallback to the secondary provider for transient failure kinds
"""

from .router import AIRouter, RouterConfig, PathResult
from .circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitState,
)
from .retry import (
    RetryExecutor,
    RetryOutcome,
    RetryPolicy,
    calculate_backoff,
    calculate_retry_delay,
)
from .rules import (
    DEFAULT_ROUTING_RULES,
    RoutingTable,
    rule_from_dict,
    validate_rule,
)
from .registry import OperationRegistry

__all__ = [
    # Router
    "AIRouter",
    "RouterConfig",
    "PathResult",
    # Circuit Breaker
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerRegistry",
    "CircuitState",
    # Retry
    "RetryExecutor",
    "RetryOutcome",
    "RetryPolicy",
    "calculate_backoff",
    "calculate_retry_delay",
    # Rules
    "DEFAULT_ROUTING_RULES",
    "RoutingTable",
    "rule_from_dict",
    "validate_rule",
    # Registry
    "OperationRegistry",
]
