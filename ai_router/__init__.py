"""
AI Router - Calendar assistant AI routing layer

Routes calendar-assistant operations to Gemini or Mistral with retries,
fallback, per-provider circuit breakers and routing telemetry.
"""

__version__ = "1.0.0"

from .config import RouterSettings, validate_provider_keys
from .context import AppContext, build_context
from .core.errors import ConfigurationError, ErrorKind, RoutingError
from .core.models import Provider, RoutingOptions, RoutingRule
from .routing.router import AIRouter, RouterConfig

__all__ = [
    "__version__",
    "RouterSettings",
    "validate_provider_keys",
    "AppContext",
    "build_context",
    "ConfigurationError",
    "ErrorKind",
    "RoutingError",
    "Provider",
    "RoutingOptions",
    "RoutingRule",
    "AIRouter",
    "RouterConfig",
]
