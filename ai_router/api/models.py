"""
AI Router - API Request/Response Models

Pydantic models for the HTTP surface.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..core.models import Provider, RoutingOptions


# ============================================================
# Operation calls
# ============================================================

class RoutingOptionsInput(BaseModel):
    """Per-call routing overrides."""
    force_provider: Optional[Provider] = None
    enable_fallback: Optional[bool] = None
    timeout_ms: Optional[int] = Field(default=None, ge=1000, le=300000)

    def to_options(self) -> RoutingOptions:
        return RoutingOptions(
            force_provider=self.force_provider,
            enable_fallback=self.enable_fallback,
            timeout_ms=self.timeout_ms,
        )


class OperationRequest(BaseModel):
    """Body of POST /v1/ai/{operation}."""
    args: List[Any] = Field(default_factory=list)
    options: Optional[RoutingOptionsInput] = None

    model_config = ConfigDict(extra="forbid")


class OperationResponse(BaseModel):
    """Successful operation result."""
    operation: str
    result: Any


# ============================================================
# Monitoring
# ============================================================

class AlertActionResponse(BaseModel):
    alert_id: str
    status: str


class ServiceStatusResponse(BaseModel):
    overall: str
    services: Dict[str, Any]
    last_health_check: Optional[str] = None
    recommendations: List[str] = Field(default_factory=list)
