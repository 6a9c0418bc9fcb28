"""
AI Router - API Layer

REST endpoints for routing operations and monitoring the router.
"""

from .models import (
    OperationRequest,
    OperationResponse,
    RoutingOptionsInput,
    AlertActionResponse,
    ServiceStatusResponse,
)
from .dependencies import get_context, get_router, get_request_id
from .routes import operations_router, monitoring_router


__all__ = [
    # Routers
    "operations_router",
    "monitoring_router",
    # Models
    "OperationRequest",
    "OperationResponse",
    "RoutingOptionsInput",
    "AlertActionResponse",
    "ServiceStatusResponse",
    # Dependencies
    "get_context",
    "get_router",
    "get_request_id",
]
