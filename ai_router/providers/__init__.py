"""
AI Router - Provider Adapters

Transport adapters for the Gemini and Mistral APIs plus a deterministic
stub adapter for local runs and tests.
"""

from .base import (
    SUPPORTED_OPERATIONS,
    AdapterConfig,
    BaseAdapter,
    ProviderHealth,
)
from .gemini import GeminiAdapter
from .mistral import MistralAdapter
from .stub import StubAdapter

__all__ = [
    "SUPPORTED_OPERATIONS",
    "AdapterConfig",
    "BaseAdapter",
    "ProviderHealth",
    "GeminiAdapter",
    "MistralAdapter",
    "StubAdapter",
]
