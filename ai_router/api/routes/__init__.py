"""
AI Router - API Routes

Route modules for operation calls and routing monitoring.
"""

from .operations import router as operations_router
from .monitoring import router as monitoring_router

__all__ = [
    "operations_router",
    "monitoring_router",
]
