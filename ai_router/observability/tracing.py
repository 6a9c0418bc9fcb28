"""
AI Router - OpenTelemetry Tracing

Features:
- W3C trace context propagation (traceparent header)
- Server spans for incoming HTTP requests
- Client spans around every provider attempt
- Trace ids injected into the logging context

Usage:
    from ai_router.observability.tracing import setup_tracing, trace_provider_call

    setup_tracing(service_name="ai-router")

    with trace_provider_call("gemini", "generate_meeting_titles", attempt=1) as span:
        result = await call()
"""

import os
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Optional

from opentelemetry import trace
from opentelemetry.propagate import set_global_textmap, extract
from opentelemetry.sdk.resources import Resource, SERVICE_NAME, SERVICE_VERSION
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor
from opentelemetry.trace import SpanKind, Status, StatusCode
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from .logging import LogContext
from ..core.models import generate_request_id


@dataclass
class TraceContext:
    """Trace/span ids of a span, formatted for headers and logs."""
    trace_id: str
    span_id: str
    trace_flags: int = 1

    @classmethod
    def from_span(cls, span) -> "TraceContext":
        ctx = span.get_span_context()
        return cls(
            trace_id=format(ctx.trace_id, "032x"),
            span_id=format(ctx.span_id, "016x"),
            trace_flags=ctx.trace_flags,
        )

    def to_traceparent(self) -> str:
        """W3C traceparent header value."""
        return f"00-{self.trace_id}-{self.span_id}-{self.trace_flags:02x}"


class TracingManager:
    """
    Owns the tracer provider and the tracer used by the routing layer.
    """

    _instance: Optional["TracingManager"] = None

    def __init__(
        self,
        service_name: str = "ai-router",
        service_version: str = "1.0.0",
        console_export: bool = False,
    ):
        self.service_name = service_name
        self.service_version = service_version

        resource = Resource.create({
            SERVICE_NAME: service_name,
            SERVICE_VERSION: service_version,
            "deployment.environment": os.getenv("MODE", "local"),
        })

        self.provider = TracerProvider(resource=resource)

        if console_export:
            self.provider.add_span_processor(
                SimpleSpanProcessor(ConsoleSpanExporter())
            )

        set_global_textmap(TraceContextTextMapPropagator())

        self.tracer = self.provider.get_tracer(service_name, service_version)

    @classmethod
    def get_instance(cls) -> "TracingManager":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def start_server_span(
        self,
        name: str,
        headers: Dict[str, str],
        attributes: Optional[Dict[str, Any]] = None,
    ):
        """Start a server span, continuing any trace found in the headers."""
        normalized = {k.lower(): v for k, v in headers.items()}
        return self.tracer.start_as_current_span(
            name,
            kind=SpanKind.SERVER,
            attributes=attributes,
            context=extract(normalized),
        )

    def start_client_span(
        self,
        name: str,
        attributes: Optional[Dict[str, Any]] = None,
    ):
        """Start a client span for an outgoing provider call."""
        return self.tracer.start_as_current_span(
            name,
            kind=SpanKind.CLIENT,
            attributes=attributes,
        )

    def shutdown(self):
        self.provider.shutdown()


def setup_tracing(
    service_name: str = "ai-router",
    service_version: str = "1.0.0",
    console_export: bool = False,
) -> TracingManager:
    """
    Setup tracing. Call once at application startup.

    OTEL_CONSOLE_EXPORT=true enables the console span exporter.
    """
    if os.getenv("OTEL_CONSOLE_EXPORT", "").lower() == "true":
        console_export = True

    TracingManager._instance = TracingManager(
        service_name=service_name,
        service_version=service_version,
        console_export=console_export,
    )
    return TracingManager._instance


def get_tracing_manager() -> TracingManager:
    return TracingManager.get_instance()


@contextmanager
def trace_provider_call(provider: str, operation: str, attempt: int = 1):
    """
    Trace one provider attempt.

    Exceptions are recorded on the span and re-raised.
    """
    tracing = get_tracing_manager()

    with tracing.start_client_span(
        name=f"{provider}.{operation}",
        attributes={
            "ai.provider": provider,
            "ai.operation": operation,
            "ai.attempt": attempt,
        },
    ) as span:
        try:
            yield span
        except Exception as e:
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, type(e).__name__))
            raise


async def trace_context_middleware(request, call_next):
    """
    FastAPI middleware creating a server span per request and binding the
    request id and trace ids to the logging context.

    Usage:
        app.middleware("http")(trace_context_middleware)
    """
    tracing = get_tracing_manager()
    headers = dict(request.headers)
    request_id = headers.get("x-request-id") or generate_request_id()

    with tracing.start_server_span(
        name=f"{request.method} {request.url.path}",
        headers=headers,
        attributes={
            "http.method": request.method,
            "http.route": request.url.path,
            "ai_router.request_id": request_id,
        },
    ) as span:
        trace_ctx = TraceContext.from_span(span)
        request.state.request_id = request_id
        LogContext.set_current(LogContext(
            request_id=request_id,
            trace_id=trace_ctx.trace_id,
            span_id=trace_ctx.span_id,
        ))

        try:
            response = await call_next(request)
        finally:
            LogContext.clear()

        span.set_attribute("http.status_code", response.status_code)
        if response.status_code >= 500:
            span.set_status(Status(StatusCode.ERROR, f"HTTP {response.status_code}"))

        response.headers["X-Request-Id"] = request_id
        response.headers["X-Trace-Id"] = trace_ctx.trace_id
        return response
