"""
AI Router - Configuration Tests

Verifies:
- Environment parsing with defaults and overrides
- Fail-fast handling of malformed values
- Provider key validation
- Composition root wiring
"""

import pytest

from ai_router.config import RouterSettings, env_bool, env_int, validate_provider_keys
from ai_router.context import build_context, create_adapters
from ai_router.core.errors import ConfigurationError
from ai_router.core.models import Provider
from ai_router.providers import GeminiAdapter, StubAdapter


# ============================================================
# Environment parsing
# ============================================================

class TestRouterSettings:
    """Test RouterSettings.from_env."""

    def test_defaults(self):
        settings = RouterSettings.from_env({})

        assert settings.use_stub_adapters is False
        assert settings.router.enable_fallback is True
        assert settings.router.primary_max_retries == 3
        assert settings.router.fallback_max_retries == 2
        assert settings.telemetry.max_log_entries == 10000
        assert settings.telemetry.log_trim_ratio == 0.8
        assert settings.alerts.enabled is False
        assert settings.alerts.thresholds.error_rate == 10.0
        assert settings.alerts.thresholds.response_time_ms == 5000.0
        assert settings.alerts.thresholds.fallback_rate == 20.0
        assert settings.alerts.cooldown_minutes == 30.0

    def test_overrides(self):
        settings = RouterSettings.from_env({
            "GEMINI_API_KEY": " g-key ",
            "MISTRAL_MODEL": "mistral-large-latest",
            "AI_ROUTER_ENABLE_FALLBACK": "false",
            "AI_ROUTER_PRIMARY_MAX_RETRIES": "1",
            "AI_ROUTER_FALLBACK_MAX_RETRIES": "0",
            "AI_ROUTER_LOG_CAPACITY": "500",
            "AI_ROUTER_LOG_TRIM_RATIO": "0.5",
            "AI_ROUTING_ALERTS_ENABLED": "yes",
            "AI_ROUTING_ERROR_RATE_THRESHOLD": "25",
            "AI_ROUTING_ALERT_COOLDOWN": "5",
            "AI_ROUTER_DEBUG": "1",
        })

        assert settings.gemini.api_key == "g-key"
        assert settings.gemini.configured is True
        assert settings.mistral.model == "mistral-large-latest"
        assert settings.mistral.configured is False
        assert settings.router.enable_fallback is False
        assert settings.router.primary_max_retries == 1
        assert settings.router.fallback_max_retries == 0
        assert settings.telemetry.max_log_entries == 500
        assert settings.telemetry.log_trim_ratio == 0.5
        assert settings.telemetry.debug is True
        assert settings.alerts.enabled is True
        assert settings.alerts.thresholds.error_rate == 25.0
        assert settings.alerts.cooldown_minutes == 5.0

    def test_blank_key_is_unset(self):
        settings = RouterSettings.from_env({"GEMINI_API_KEY": "   "})
        assert settings.gemini.api_key is None

    @pytest.mark.parametrize("env,name", [
        ({"AI_ROUTER_PRIMARY_MAX_RETRIES": "three"}, "AI_ROUTER_PRIMARY_MAX_RETRIES"),
        ({"AI_ROUTER_FALLBACK_MAX_RETRIES": "-1"}, "AI_ROUTER_FALLBACK_MAX_RETRIES"),
        ({"AI_ROUTER_PRIMARY_MAX_RETRIES": "5000"}, "AI_ROUTER_PRIMARY_MAX_RETRIES"),
        ({"AI_ROUTER_FALLBACK_MAX_RETRIES": "11"}, "AI_ROUTER_FALLBACK_MAX_RETRIES"),
        ({"AI_ROUTER_LOG_CAPACITY": "0"}, "AI_ROUTER_LOG_CAPACITY"),
        ({"AI_ROUTER_LOG_TRIM_RATIO": "1.5"}, "AI_ROUTER_LOG_TRIM_RATIO"),
        ({"AI_ROUTING_ALERTS_ENABLED": "maybe"}, "AI_ROUTING_ALERTS_ENABLED"),
        ({"AI_ROUTING_ERROR_RATE_THRESHOLD": "ten"}, "AI_ROUTING_ERROR_RATE_THRESHOLD"),
    ])
    def test_malformed_values_fail_fast(self, env, name):
        with pytest.raises(ConfigurationError) as exc_info:
            RouterSettings.from_env(env)
        assert name in exc_info.value.message


class TestEnvHelpers:

    @pytest.mark.parametrize("value,expected", [
        ("1", True), ("TRUE", True), ("on", True),
        ("0", False), ("no", False), ("", False),
    ])
    def test_env_bool(self, value, expected):
        assert env_bool({"FLAG": value}, "FLAG", not expected) is expected

    def test_env_bool_default(self):
        assert env_bool({}, "FLAG", True) is True

    def test_env_int_empty_uses_default(self):
        assert env_int({"N": ""}, "N", 7) == 7

    def test_env_int_maximum(self):
        assert env_int({"N": "10"}, "N", 1, maximum=10) == 10
        with pytest.raises(ConfigurationError):
            env_int({"N": "11"}, "N", 1, maximum=10)


# ============================================================
# Provider keys
# ============================================================

class TestProviderKeyValidation:
    """Test startup credential checks."""

    def test_no_keys_is_fatal(self):
        with pytest.raises(ConfigurationError) as exc_info:
            RouterSettings.from_env({}).validate_provider_keys()
        message = exc_info.value.message
        assert "GEMINI_API_KEY" in message
        assert "MISTRAL_API_KEY" in message
        assert "USE_STUB_ADAPTERS" in message

    def test_one_missing_key_is_a_warning(self):
        warnings = RouterSettings.from_env({"MISTRAL_API_KEY": "m-key"}).validate_provider_keys()
        assert len(warnings) == 1
        assert warnings[0].startswith("GEMINI_API_KEY is not set")

    def test_both_keys_no_warnings(self):
        settings = RouterSettings.from_env({"GEMINI_API_KEY": "g", "MISTRAL_API_KEY": "m"})
        assert settings.validate_provider_keys() == []

    def test_stub_mode_needs_no_keys(self):
        assert validate_provider_keys(RouterSettings.from_env({"USE_STUB_ADAPTERS": "true"})) == []


# ============================================================
# Composition root
# ============================================================

class TestBuildContext:
    """Test build_context wiring."""

    def test_stub_adapters_for_both_providers(self):
        adapters = create_adapters(RouterSettings.from_env({"USE_STUB_ADAPTERS": "true"}))
        assert [a.provider for a in adapters] == [Provider.GEMINI, Provider.MISTRAL]
        assert all(isinstance(a, StubAdapter) for a in adapters)

    def test_only_configured_providers_get_adapters(self):
        adapters = create_adapters(RouterSettings.from_env({"GEMINI_API_KEY": "g-key"}))
        assert len(adapters) == 1
        assert isinstance(adapters[0], GeminiAdapter)
        assert adapters[0].config.model == GeminiAdapter.DEFAULT_MODEL

    def test_build_context_without_keys_fails(self, metrics):
        with pytest.raises(ConfigurationError):
            build_context(RouterSettings.from_env({}), metrics=metrics)

    def test_stub_context_registers_every_operation(self, stub_context):
        router = stub_context.router
        for operation in router.routing_table.operations():
            assert router.registry.supports(Provider.GEMINI, operation)
            assert router.registry.supports(Provider.MISTRAL, operation)

    def test_contexts_are_independent(self, metrics):
        settings = RouterSettings.from_env({"USE_STUB_ADAPTERS": "true"})
        first = build_context(settings, metrics=metrics)
        second = build_context(settings, metrics=metrics)
        first.router.breakers.get_breaker(Provider.GEMINI).record_failure()
        assert second.router.breakers.get_breaker(Provider.GEMINI).consecutive_failures == 0

    def test_breaker_changes_reach_metrics(self, stub_context, metrics):
        breaker = stub_context.router.breakers.get_breaker(Provider.MISTRAL)
        for _ in range(5):
            breaker.record_failure()
        assert metrics.registry.get_sample_value(
            "ai_router_circuit_breaker_state", {"provider": "mistral"}
        ) == 2

    @pytest.mark.asyncio
    async def test_stub_context_routes(self, stub_context):
        result = await stub_context.router.route_request(
            "generate_meeting_titles", ["Quarterly planning", ["ana@example.com"]]
        )
        assert "suggestions" in result
        assert stub_context.usage.to_dict()["providers"]["gemini"]["total_requests"] == 1
