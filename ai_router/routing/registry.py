"""
AI Router - Operation Registry

Typed mapping from (provider, operation name) to the async callable that
performs the operation on that provider. Populated at startup from the
provider adapters; new operations are added by registering them.
"""

from threading import Lock
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..core.errors import OperationNotSupportedError
from ..core.models import Provider


ProviderCall = Callable[..., Awaitable[Any]]
HealthProbe = Callable[[], Awaitable[Any]]


class OperationRegistry:
    """Registry of provider operations and health probes."""

    def __init__(self):
        self._calls: Dict[Provider, Dict[str, ProviderCall]] = {}
        self._probes: Dict[Provider, HealthProbe] = {}
        self._lock = Lock()

    def register(self, provider: Provider, operation: str, call: ProviderCall):
        """Register (or replace) the callable for one provider operation."""
        with self._lock:
            self._calls.setdefault(provider, {})[operation] = call

    def register_health_probe(self, provider: Provider, probe: HealthProbe):
        with self._lock:
            self._probes[provider] = probe

    def register_adapter(self, adapter) -> None:
        """Register every operation an adapter exposes, plus its health probe."""
        for operation, call in adapter.operations().items():
            self.register(adapter.provider, operation, call)
        self.register_health_probe(adapter.provider, adapter.health_check)

    def resolve(self, provider: Provider, operation: str) -> ProviderCall:
        """Callable for an operation, or OperationNotSupportedError."""
        call = self._calls.get(provider, {}).get(operation)
        if call is None:
            raise OperationNotSupportedError(provider.value, operation)
        return call

    def supports(self, provider: Provider, operation: str) -> bool:
        return operation in self._calls.get(provider, {})

    def health_probe(self, provider: Provider) -> Optional[HealthProbe]:
        return self._probes.get(provider)

    def providers(self) -> List[Provider]:
        with self._lock:
            return sorted(set(self._calls) | set(self._probes), key=lambda p: p.value)

    def operations(self, provider: Provider) -> List[str]:
        return sorted(self._calls.get(provider, {}))
