"""
AI Router - Token Estimation

Approximate token counts for routed calls. Provider wrappers do not
report usage uniformly, so the routing layer estimates from the text it
sends and receives.
"""

import json
import math
from typing import Any, Sequence

from ..core.models import TokenUsage


class TokenEstimator:
    """
    Character-based token estimator.

    Uses heuristics since we don't have the providers' tokenizers.
    """

    # Average characters per token by provider
    CHARS_PER_TOKEN = {
        "gemini": 4.0,
        "mistral": 4.0,
        "default": 4.0,
    }

    def __init__(self, provider: str = "default"):
        self.provider = provider
        self.chars_per_token = self.CHARS_PER_TOKEN.get(
            provider,
            self.CHARS_PER_TOKEN["default"],
        )

    def estimate_text_tokens(self, text: str) -> int:
        if not text:
            return 0
        return int(math.ceil(len(text) / self.chars_per_token))

    def estimate(self, args: Sequence[Any], result: Any = None, success: bool = True) -> TokenUsage:
        """Estimate input tokens from call args and output tokens from the result."""
        input_tokens = self.estimate_text_tokens(extract_input_text(args))
        output_tokens = self.estimate_text_tokens(extract_output_text(result)) if success else 0
        return TokenUsage(input=input_tokens, output=output_tokens)


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, default=str, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(value)


def extract_input_text(args: Sequence[Any]) -> str:
    """
    Flatten call arguments into the text a provider would see.

    Chat-style message lists and dicts contribute their "content" fields.
    """
    parts = []
    for arg in args or ():
        if isinstance(arg, str):
            parts.append(arg)
        elif isinstance(arg, (list, tuple)):
            parts.append(" ".join(
                _to_text(item["content"]) if isinstance(item, dict) and "content" in item else _to_text(item)
                for item in arg
            ))
        elif isinstance(arg, dict) and "content" in arg:
            parts.append(_to_text(arg["content"]))
        else:
            parts.append(_to_text(arg))
    return " ".join(p for p in parts if p)


def extract_output_text(result: Any) -> str:
    return _to_text(result)
