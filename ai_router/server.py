"""
AI Router - API Server

FastAPI application exposing the AI routing layer.

Features:
- POST /v1/ai/{operation}: route a calendar-assistant operation
- /v1/routing/*: statistics, alerts, log export, usage, rules, health
- /health and Prometheus /metrics
- Request ids, trace ids and structured logs on every request

Configuration comes from the environment (see ai_router.config). Set
USE_STUB_ADAPTERS=true to run without provider keys.
"""

import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import monitoring_router, operations_router
from .api.dependencies import get_context, get_request_id
from .context import AppContext, build_context
from .core.errors import RoutingError
from .core.models import generate_request_id
from .observability import (
    get_logger,
    metrics_endpoint,
    setup_logging,
    setup_tracing,
    trace_context_middleware,
)


VERSION = "1.0.0"

logger = get_logger(__name__)


# ============================================================
# Lifespan management
# ============================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the application context on startup, close adapters on shutdown."""
    owns_context = getattr(app.state, "context", None) is None
    tracing = None

    if owns_context:
        debug = os.getenv("AI_ROUTER_DEBUG", "").lower() in ("1", "true", "yes", "on")
        setup_logging(
            level="DEBUG" if debug else os.getenv("LOG_LEVEL", "INFO"),
            json_output=os.getenv("LOG_FORMAT", "json").lower() == "json",
        )
        tracing = setup_tracing(service_name="ai-router", service_version=VERSION)
        app.state.context = build_context()

    context: AppContext = app.state.context
    logger.info(
        "AI router server ready",
        providers=[p.value for p in context.router.registry.providers()],
        warnings=context.warnings,
    )

    yield

    if owns_context:
        await context.close()
        app.state.context = None
    if tracing is not None:
        tracing.shutdown()

    logger.info("AI router server stopped")


# ============================================================
# FastAPI App
# ============================================================

def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """
    Create the FastAPI app.

    Args:
        context: Pre-built application context (tests). When omitted, the
            lifespan builds one from the environment and closes it on
            shutdown.
    """
    app = FastAPI(
        title="AI Router",
        description="Routes calendar-assistant AI operations across Gemini and Mistral",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.context = context

    app.middleware("http")(trace_context_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(operations_router)
    app.include_router(monitoring_router)

    _register_core_endpoints(app)
    _register_error_handlers(app)
    return app


# ============================================================
# Core Endpoints (not in routes)
# ============================================================

def _register_core_endpoints(app: FastAPI):

    @app.get("/health")
    async def health_check(request: Request):
        """Liveness plus the last known provider state. Does not probe providers."""
        context = get_context(request)
        breakers = context.router.get_circuit_breaker_status()
        tripped = [name for name, status in breakers.items() if status["is_open"]]

        return {
            "status": "degraded" if tripped else "healthy",
            "version": VERSION,
            "providers": [p.value for p in context.router.registry.providers()],
            "circuit_breakers": breakers,
            "warnings": context.warnings,
        }

    @app.get("/metrics")
    async def prometheus_metrics(request: Request):
        """Prometheus metrics in text exposition format."""
        return metrics_endpoint(get_context(request).metrics)


# ============================================================
# Error handlers
# ============================================================

def _register_error_handlers(app: FastAPI):

    @app.exception_handler(RoutingError)
    async def routing_error_handler(request: Request, exc: RoutingError):
        """Render routing errors as {"error": {...}} with a status per kind."""
        if not exc.request_id:
            exc.request_id = get_request_id(request)

        headers = {
            "X-Error-Type": exc.kind.value,
            "X-Error-Code": exc.code,
        }
        if exc.request_id:
            headers["X-Request-Id"] = exc.request_id
        if exc.provider:
            headers["X-Provider"] = exc.provider
        if exc.retry_after_ms:
            headers["Retry-After"] = str(max(1, round(exc.retry_after_ms / 1000)))

        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
            headers=headers,
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        request_id = get_request_id(request) or generate_request_id()
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": {
                    "code": "http_error",
                    "message": str(exc.detail),
                    "request_id": request_id,
                    "retryable": exc.status_code >= 500,
                }
            },
            headers={"X-Request-Id": request_id},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        request_id = get_request_id(request) or generate_request_id()
        logger.exception("Unhandled error", error_class=type(exc).__name__)
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": "internal_error",
                    "message": "An unexpected error occurred",
                    "request_id": request_id,
                    "retryable": True,
                }
            },
            headers={"X-Request-Id": request_id},
        )


app = create_app()


# ============================================================
# Run server
# ============================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "ai_router.server:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )
