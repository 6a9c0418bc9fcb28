"""
AI Router - Operations API

POST /v1/ai/{operation} routes one calendar-assistant operation through
the AI router. Failures are raised as RoutingError and rendered by the
server's exception handler.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from ...observability.logging import get_logger
from ...routing.router import AIRouter
from ..dependencies import get_request_id, get_router
from ..models import OperationRequest, OperationResponse


logger = get_logger(__name__)

router = APIRouter(prefix="/v1/ai", tags=["operations"])


@router.get("")
async def list_operations(router_instance: AIRouter = Depends(get_router)):
    """List routable operations and the providers that implement them."""
    registry = router_instance.registry
    return {
        "operations": [
            {
                "operation": operation,
                "providers": [
                    provider.value
                    for provider in registry.providers()
                    if registry.supports(provider, operation)
                ],
            }
            for operation in router_instance.routing_table.operations()
        ]
    }


@router.post("/{operation}", response_model=OperationResponse)
async def route_operation(
    operation: str,
    body: OperationRequest,
    request: Request,
    router_instance: AIRouter = Depends(get_router),
):
    """
    Route an operation.

    **Example:**
    ```
    POST /v1/ai/generate_meeting_titles
    {"args": ["Quarterly planning", ["ana@example.com"]]}
    ```
    """
    if not router_instance.routing_table.has_rule(operation):
        raise HTTPException(status_code=404, detail=f"Unknown operation: {operation}")

    options = body.options.to_options() if body.options else None
    result = await router_instance.route_request(operation, body.args, options)

    return JSONResponse(
        content={"operation": operation, "result": result},
        headers={"X-Request-Id": get_request_id(request)},
    )
