"""
AI Router - Usage Module

Token estimation and running usage aggregates per provider.
"""

from .estimator import TokenEstimator, extract_input_text, extract_output_text
from .tracker import RoutingCounters, UsageTracker

__all__ = [
    "TokenEstimator",
    "extract_input_text",
    "extract_output_text",
    "RoutingCounters",
    "UsageTracker",
]
