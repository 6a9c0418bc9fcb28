"""
AI Router - Retry Executor

Runs one unit of provider work with:
- a circuit breaker check before the first attempt
- a per-attempt timeout race (waiting stops, the call is not cancelled)
- exponential backoff with jitter for retryable error kinds
- server-suggested delays for rate-limit errors

Delays are in milliseconds throughout.
"""

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from ..core.errors import (
    AttemptTimeoutError,
    CircuitBreakerOpenError,
    ErrorClassification,
    ErrorKind,
    classify_error,
)
from ..observability.logging import get_logger
from ..observability.metrics import MetricsCollector
from ..observability.tracing import trace_provider_call
from .circuit_breaker import CircuitBreaker


logger = get_logger(__name__)

Work = Callable[[], Awaitable[Any]]
Sleep = Callable[[float], Awaitable[None]]

_MAX_EXPONENT = 32


@dataclass
class RetryPolicy:
    """Backoff tuning."""
    base_delay_ms: float = 1000.0
    max_delay_ms: float = 30000.0
    max_jitter_ms: float = 1000.0
    exponential_base: float = 2.0


def calculate_backoff(
    attempt: int,
    policy: Optional[RetryPolicy] = None,
    jitter: bool = True,
) -> float:
    """
    Delay before the retry that follows a failed attempt.

    Args:
        attempt: The attempt that just failed (1-based)
        policy: Backoff tuning
        jitter: Add uniform random jitter in [0, max_jitter_ms)

    Returns:
        Delay in milliseconds, never above policy.max_delay_ms
    """
    policy = policy or RetryPolicy()

    # Well past the point where the delay is clamped to max_delay_ms
    exponent = min(attempt - 1, _MAX_EXPONENT)
    delay = policy.base_delay_ms * (policy.exponential_base ** exponent)
    if jitter:
        delay += random.uniform(0, policy.max_jitter_ms)

    return min(delay, policy.max_delay_ms)


def calculate_retry_delay(
    attempt: int,
    classification: ErrorClassification,
    policy: Optional[RetryPolicy] = None,
) -> float:
    """Backoff delay, or the provider's retry-after hint for rate limits."""
    policy = policy or RetryPolicy()

    if classification.type == ErrorKind.API_RATE_LIMIT and classification.retry_after_ms:
        return min(float(classification.retry_after_ms), policy.max_delay_ms)

    return calculate_backoff(attempt, policy)


@dataclass
class RetryOutcome:
    """Result of running work through the executor."""
    attempts: int
    result: Any = None
    error: Optional[BaseException] = None
    classification: Optional[ErrorClassification] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


def _discard_late_result(task: "asyncio.Future"):
    # An abandoned attempt may still fail; retrieve it so asyncio does not
    # report "exception was never retrieved".
    if not task.cancelled():
        task.exception()


class RetryExecutor:
    """
    Drives provider calls through retries against one circuit breaker.

    The sleep function is injectable so tests can record delays instead of
    waiting for them.
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        metrics: Optional[MetricsCollector] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.policy = policy or RetryPolicy()
        self.metrics = metrics
        self._sleep = sleep

    async def execute(
        self,
        work: Work,
        breaker: Optional[CircuitBreaker],
        max_retries: int,
        timeout_ms: int,
        provider: str = "",
        operation: str = "",
    ) -> RetryOutcome:
        """
        Run work with up to max_retries retries after the first attempt.

        Never raises for provider failures: the last error and its
        classification are returned on the outcome. The breaker records one
        failure when retries are exhausted or the error is not retryable,
        and a success when any attempt succeeds.
        """
        if breaker is not None and breaker.is_open():
            error = CircuitBreakerOpenError(provider, operation=operation or None)
            logger.warning(
                "Circuit breaker open, skipping provider",
                provider=provider,
                operation=operation,
            )
            return RetryOutcome(attempts=0, error=error, classification=classify_error(error))

        try:
            return await self._attempt_loop(
                work, breaker, max_retries, timeout_ms, provider, operation
            )
        except BaseException:
            # Cancelled mid-call: no outcome, hand the half-open probe back.
            if breaker is not None:
                breaker.release_probe()
            raise

    async def _attempt_loop(
        self,
        work: Work,
        breaker: Optional[CircuitBreaker],
        max_retries: int,
        timeout_ms: int,
        provider: str,
        operation: str,
    ) -> RetryOutcome:
        max_attempts = max_retries + 1
        attempt = 0

        while True:
            attempt += 1
            try:
                with trace_provider_call(provider, operation, attempt):
                    result = await self._run_attempt(work, timeout_ms, provider, operation)
            except Exception as e:
                classification = classify_error(e)

                if classification.retryable and attempt < max_attempts:
                    delay_ms = calculate_retry_delay(attempt, classification, self.policy)
                    logger.warning(
                        "Provider call failed, retrying",
                        provider=provider,
                        operation=operation,
                        attempt=attempt,
                        error_type=classification.type.value,
                        error=classification.message,
                        delay_ms=round(delay_ms, 1),
                    )
                    if self.metrics:
                        self.metrics.record_retry(provider, operation, classification.type.value)
                    await self._sleep(delay_ms / 1000)
                    continue

                if breaker is not None:
                    breaker.record_failure()
                return RetryOutcome(
                    attempts=attempt,
                    error=e,
                    classification=classification,
                )

            if breaker is not None:
                breaker.record_success()
            return RetryOutcome(attempts=attempt, result=result)

    async def execute_with_retry(
        self,
        work: Work,
        breaker: Optional[CircuitBreaker],
        max_retries: int,
        timeout_ms: int,
        provider: str = "",
        operation: str = "",
    ) -> Any:
        """Same as execute(), but returns the result or raises the last error."""
        outcome = await self.execute(
            work, breaker, max_retries, timeout_ms, provider, operation
        )
        if outcome.error is not None:
            raise outcome.error
        return outcome.result

    async def _run_attempt(
        self,
        work: Work,
        timeout_ms: int,
        provider: str,
        operation: str,
    ) -> Any:
        task = asyncio.ensure_future(work())
        try:
            done, _ = await asyncio.wait({task}, timeout=timeout_ms / 1000)
        except asyncio.CancelledError:
            task.cancel()
            raise

        if task in done:
            return task.result()

        task.add_done_callback(_discard_late_result)
        raise AttemptTimeoutError(provider, timeout_ms, operation=operation or None)
