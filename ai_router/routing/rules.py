"""
AI Router - Routing Table

Maps each logical operation to a primary provider, an optional fallback
provider, a per-attempt timeout and a fallback switch.

Complex generation tasks go to Gemini first; short conversational and
lookup tasks go to Mistral first. Every rule falls back to the other
provider.
"""

from threading import Lock
from typing import Dict, List, Mapping, Optional

from ..core.errors import ConfigurationError
from ..core.models import Provider, RoutingRule


MIN_TIMEOUT_MS = 1000
MAX_TIMEOUT_MS = 300000


DEFAULT_ROUTING_RULES: Dict[str, RoutingRule] = {
    # Complex tasks
    "extract_meeting_intent": RoutingRule(
        primary_provider=Provider.GEMINI,
        fallback_provider=Provider.MISTRAL,
        fallback_enabled=True,
        timeout_ms=30000,
    ),
    "generate_meeting_titles": RoutingRule(
        primary_provider=Provider.GEMINI,
        fallback_provider=Provider.MISTRAL,
        fallback_enabled=True,
        timeout_ms=20000,
    ),
    "generate_meeting_agenda": RoutingRule(
        primary_provider=Provider.GEMINI,
        fallback_provider=Provider.MISTRAL,
        fallback_enabled=True,
        timeout_ms=45000,
    ),
    "generate_action_items": RoutingRule(
        primary_provider=Provider.GEMINI,
        fallback_provider=Provider.MISTRAL,
        fallback_enabled=True,
        timeout_ms=30000,
    ),
    "enhance_purpose_wording": RoutingRule(
        primary_provider=Provider.GEMINI,
        fallback_provider=Provider.MISTRAL,
        fallback_enabled=True,
        timeout_ms=25000,
    ),
    # Simple tasks
    "get_chat_response": RoutingRule(
        primary_provider=Provider.MISTRAL,
        fallback_provider=Provider.GEMINI,
        fallback_enabled=True,
        timeout_ms=15000,
    ),
    "verify_attendees": RoutingRule(
        primary_provider=Provider.MISTRAL,
        fallback_provider=Provider.GEMINI,
        fallback_enabled=True,
        timeout_ms=10000,
    ),
    "extract_time_from_natural_language": RoutingRule(
        primary_provider=Provider.MISTRAL,
        fallback_provider=Provider.GEMINI,
        fallback_enabled=True,
        timeout_ms=15000,
    ),
}


def validate_rule(operation: str, rule: RoutingRule) -> List[str]:
    """Return a list of problems with a rule (empty when valid)."""
    errors = []

    if not isinstance(rule.primary_provider, Provider):
        errors.append(f"{operation}: unknown primary provider {rule.primary_provider!r}")

    if rule.fallback_provider is not None:
        if not isinstance(rule.fallback_provider, Provider):
            errors.append(f"{operation}: unknown fallback provider {rule.fallback_provider!r}")
        elif rule.fallback_provider == rule.primary_provider:
            errors.append(f"{operation}: fallback provider must differ from primary")

    if rule.fallback_enabled and rule.fallback_provider is None:
        errors.append(f"{operation}: fallback enabled but no fallback provider set")

    if not MIN_TIMEOUT_MS <= rule.timeout_ms <= MAX_TIMEOUT_MS:
        errors.append(
            f"{operation}: timeout {rule.timeout_ms}ms outside "
            f"{MIN_TIMEOUT_MS}-{MAX_TIMEOUT_MS}ms"
        )

    return errors


def rule_from_dict(data: Mapping) -> RoutingRule:
    """Build a RoutingRule from a plain mapping (JSON config, API payload)."""
    try:
        fallback = data.get("fallback_provider")
        return RoutingRule(
            primary_provider=Provider(data["primary_provider"]),
            fallback_provider=Provider(fallback) if fallback else None,
            fallback_enabled=bool(data.get("fallback_enabled", fallback is not None)),
            timeout_ms=int(data.get("timeout_ms", 30000)),
        )
    except (KeyError, ValueError, TypeError) as e:
        raise ConfigurationError(f"Invalid routing rule: {e}") from e


class RoutingTable:
    """
    Operation name -> RoutingRule.

    Rules are immutable; replacing one swaps the whole object, so a request
    already holding a rule never sees it change.
    """

    def __init__(self, rules: Optional[Mapping[str, RoutingRule]] = None):
        self._rules: Dict[str, RoutingRule] = {}
        self._lock = Lock()
        self.update_rules(DEFAULT_ROUTING_RULES if rules is None else rules)

    def get_rule(self, operation: str) -> RoutingRule:
        """Rule for an operation; a missing rule is a configuration error."""
        rule = self._rules.get(operation)
        if rule is None:
            raise ConfigurationError(
                f"No routing rule configured for operation {operation}",
                operation=operation,
            )
        return rule

    def has_rule(self, operation: str) -> bool:
        return operation in self._rules

    def set_rule(self, operation: str, rule: RoutingRule):
        errors = validate_rule(operation, rule)
        if errors:
            raise ConfigurationError("; ".join(errors), operation=operation)
        with self._lock:
            self._rules[operation] = rule

    def update_rules(self, rules: Mapping[str, RoutingRule]):
        """Validate all rules first, then apply them together."""
        errors = []
        for operation, rule in rules.items():
            errors.extend(validate_rule(operation, rule))
        if errors:
            raise ConfigurationError("; ".join(errors))
        with self._lock:
            self._rules.update(rules)

    def remove_rule(self, operation: str) -> bool:
        with self._lock:
            return self._rules.pop(operation, None) is not None

    def list_rules(self) -> Dict[str, RoutingRule]:
        with self._lock:
            return dict(sorted(self._rules.items()))

    def operations(self) -> List[str]:
        return sorted(self._rules)

    def to_dict(self) -> Dict[str, Dict]:
        return {op: rule.to_dict() for op, rule in sorted(self._rules.items())}
