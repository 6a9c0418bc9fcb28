"""
AI Router - Configuration

Environment-driven settings for the routing layer.

All values are read once, at startup, by RouterSettings.from_env(). Malformed
values fail fast with ConfigurationError instead of silently falling back to
defaults.
"""

import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from .core.errors import ConfigurationError
from .core.models import Provider
from .observability.telemetry import AlertConfig, AlertThresholds, TelemetryConfig
from .routing.router import RouterConfig


_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}

MAX_RETRY_BUDGET = 10


def _env(environ: Mapping[str, str], name: str) -> Optional[str]:
    value = environ.get(name)
    if value is None:
        return None
    return value.strip()


def env_bool(environ: Mapping[str, str], name: str, default: bool) -> bool:
    value = _env(environ, name)
    if value is None:
        return default
    lowered = value.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {value!r}")


def env_int(
    environ: Mapping[str, str],
    name: str,
    default: int,
    minimum: int = 0,
    maximum: Optional[int] = None,
) -> int:
    value = _env(environ, name)
    if not value:
        return default
    try:
        parsed = int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from None
    if parsed < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {parsed}")
    if maximum is not None and parsed > maximum:
        raise ConfigurationError(f"{name} must be <= {maximum}, got {parsed}")
    return parsed


def env_float(environ: Mapping[str, str], name: str, default: float) -> float:
    value = _env(environ, name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from None


@dataclass
class ProviderSettings:
    """Credentials and model choice for one provider."""
    provider: Provider
    api_key: Optional[str] = None
    model: Optional[str] = None

    @property
    def configured(self) -> bool:
        return bool(self.api_key)


@dataclass
class RouterSettings:
    """Everything the composition root needs to build the router."""
    gemini: ProviderSettings = field(default_factory=lambda: ProviderSettings(Provider.GEMINI))
    mistral: ProviderSettings = field(default_factory=lambda: ProviderSettings(Provider.MISTRAL))
    use_stub_adapters: bool = False
    debug: bool = False

    router: RouterConfig = field(default_factory=RouterConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    alerts: AlertConfig = field(default_factory=AlertConfig)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RouterSettings":
        """Read settings from the environment (or a mapping, for tests)."""
        env = os.environ if environ is None else environ
        debug = env_bool(env, "AI_ROUTER_DEBUG", False)

        log_trim_ratio = env_float(env, "AI_ROUTER_LOG_TRIM_RATIO", 0.8)
        if not 0 < log_trim_ratio <= 1:
            raise ConfigurationError(
                f"AI_ROUTER_LOG_TRIM_RATIO must be in (0, 1], got {log_trim_ratio}"
            )

        return cls(
            gemini=ProviderSettings(
                Provider.GEMINI,
                api_key=_env(env, "GEMINI_API_KEY") or None,
                model=_env(env, "GEMINI_MODEL") or None,
            ),
            mistral=ProviderSettings(
                Provider.MISTRAL,
                api_key=_env(env, "MISTRAL_API_KEY") or None,
                model=_env(env, "MISTRAL_MODEL") or None,
            ),
            use_stub_adapters=env_bool(env, "USE_STUB_ADAPTERS", False),
            debug=debug,
            router=RouterConfig(
                enable_fallback=env_bool(env, "AI_ROUTER_ENABLE_FALLBACK", True),
                primary_max_retries=env_int(
                    env, "AI_ROUTER_PRIMARY_MAX_RETRIES", 3, maximum=MAX_RETRY_BUDGET
                ),
                fallback_max_retries=env_int(
                    env, "AI_ROUTER_FALLBACK_MAX_RETRIES", 2, maximum=MAX_RETRY_BUDGET
                ),
            ),
            telemetry=TelemetryConfig(
                max_log_entries=env_int(env, "AI_ROUTER_LOG_CAPACITY", 10000, minimum=1),
                log_trim_ratio=log_trim_ratio,
                debug=debug,
            ),
            alerts=AlertConfig(
                enabled=env_bool(env, "AI_ROUTING_ALERTS_ENABLED", False),
                thresholds=AlertThresholds(
                    error_rate=env_float(env, "AI_ROUTING_ERROR_RATE_THRESHOLD", 10.0),
                    response_time_ms=env_float(env, "AI_ROUTING_RESPONSE_TIME_THRESHOLD", 5000.0),
                    fallback_rate=env_float(env, "AI_ROUTING_FALLBACK_RATE_THRESHOLD", 20.0),
                ),
                cooldown_minutes=env_float(env, "AI_ROUTING_ALERT_COOLDOWN", 30.0),
            ),
        )

    def providers(self) -> List[ProviderSettings]:
        return [self.gemini, self.mistral]

    def validate_provider_keys(self) -> List[str]:
        """
        Check provider credentials.

        Returns:
            Warnings for providers that are not configured

        Raises:
            ConfigurationError: No provider has a key and stubs are disabled
        """
        if self.use_stub_adapters:
            return []

        missing = [p for p in self.providers() if not p.configured]
        if len(missing) == len(self.providers()):
            raise ConfigurationError(
                "No AI provider configured. Set GEMINI_API_KEY and/or MISTRAL_API_KEY, "
                "or USE_STUB_ADAPTERS=true for local runs."
            )

        return [
            f"{p.provider.value.upper()}_API_KEY is not set; "
            f"{p.provider.value} operations will fail and fall back where allowed"
            for p in missing
        ]


def validate_provider_keys(settings: Optional[RouterSettings] = None) -> List[str]:
    """Validate provider keys for the given (or environment) settings."""
    return (settings or RouterSettings.from_env()).validate_provider_keys()
