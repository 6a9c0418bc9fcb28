"""
AI Router - API Dependencies

Shared dependencies for FastAPI routes.

The application context is built by the server lifespan (or injected by
tests) and stored on app.state; routes reach it through these helpers
rather than through module globals.
"""

from fastapi import Request

from ..context import AppContext
from ..core.errors import ErrorKind, RoutingError
from ..routing.router import AIRouter


def get_context(request: Request) -> AppContext:
    """Application context for the running app."""
    context = getattr(request.app.state, "context", None)
    if context is None:
        raise RoutingError(
            "Router not initialized. Server may be starting up.",
            kind=ErrorKind.SERVICE_UNAVAILABLE,
        )
    return context


def get_router(request: Request) -> AIRouter:
    """The AI router for the running app."""
    return get_context(request).router


def get_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "")
