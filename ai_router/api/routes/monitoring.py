"""
AI Router - Routing Monitoring API

Read-mostly endpoints over the router's telemetry: statistics, alerts,
log export, usage, rules and provider health.
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from ...routing.router import AIRouter
from ..dependencies import get_router
from ..models import AlertActionResponse, ServiceStatusResponse


router = APIRouter(prefix="/v1/routing", tags=["routing"])


@router.get("/statistics")
async def get_statistics(
    hours: float = Query(24, gt=0, le=24 * 30, description="Window size in hours"),
    router_instance: AIRouter = Depends(get_router),
):
    """Routing statistics over the last `hours` hours."""
    return {
        "hours": hours,
        "statistics": router_instance.get_routing_statistics(hours),
    }


@router.get("/alerts")
async def list_alerts(
    include_resolved: bool = Query(False),
    router_instance: AIRouter = Depends(get_router),
):
    alerts = router_instance.get_alerts(include_resolved=include_resolved)
    return {"alerts": [alert.to_dict() for alert in alerts]}


@router.post("/alerts/{alert_id}/acknowledge", response_model=AlertActionResponse)
async def acknowledge_alert(alert_id: str, router_instance: AIRouter = Depends(get_router)):
    if not router_instance.acknowledge_alert(alert_id):
        raise HTTPException(status_code=404, detail=f"Alert not found: {alert_id}")
    return AlertActionResponse(alert_id=alert_id, status="acknowledged")


@router.post("/alerts/{alert_id}/resolve", response_model=AlertActionResponse)
async def resolve_alert(alert_id: str, router_instance: AIRouter = Depends(get_router)):
    if not router_instance.resolve_alert(alert_id):
        raise HTTPException(status_code=404, detail=f"Alert not found: {alert_id}")
    return AlertActionResponse(alert_id=alert_id, status="resolved")


@router.get("/logs/export")
async def export_logs(
    hours: float = Query(24, gt=0, le=24 * 30),
    router_instance: AIRouter = Depends(get_router),
):
    """Routing logs, health logs, statistics and alerts as one JSON document."""
    return router_instance.export_logs(hours)


@router.get("/usage")
async def get_usage(router_instance: AIRouter = Depends(get_router)):
    return router_instance.get_usage_stats()


@router.get("/rules")
async def get_rules(router_instance: AIRouter = Depends(get_router)):
    return {"rules": router_instance.get_routing_rules()}


@router.get("/health", response_model=ServiceStatusResponse)
async def get_service_health(router_instance: AIRouter = Depends(get_router)):
    """Probe every provider and summarize overall routing health."""
    return await router_instance.get_service_status()


@router.get("/circuit-breakers")
async def get_circuit_breakers(router_instance: AIRouter = Depends(get_router)):
    return {"circuit_breakers": router_instance.get_circuit_breaker_status()}
