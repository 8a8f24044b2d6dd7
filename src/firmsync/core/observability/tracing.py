"""OpenTelemetry tracing.

HTTP requests and central store queries are instrumented automatically.
Tenant engines are created on demand and are not; work on a tenant
database runs inside a ``tenant_span`` instead, which tags the span with
the tenant id but never with its DSN.
"""

from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SpanExporter,
)
from sqlalchemy.ext.asyncio import AsyncEngine

from firmsync import __version__
from firmsync.config import settings


log = structlog.get_logger()

UNTRACED_URLS = "health/.*,docs,redoc,openapi.json"


def _build_exporter() -> SpanExporter | None:
    if settings.otlp_endpoint:
        return OTLPSpanExporter(
            endpoint=settings.otlp_endpoint,
            insecure=not settings.otlp_endpoint.startswith("https"),
        )
    if settings.debug:
        return ConsoleSpanExporter()
    return None


def setup_tracing(app: FastAPI) -> bool:
    """Install a tracer provider and instrument the app.

    Spans go to ``OTLP_ENDPOINT`` when set, to the console in debug mode,
    and nowhere otherwise.

    Returns:
        True if tracing was enabled
    """
    exporter = _build_exporter()
    if exporter is None:
        log.info("tracing_disabled", reason="no OTLP_ENDPOINT configured")
        return False

    provider = TracerProvider(
        resource=Resource.create(
            {
                "service.name": settings.app_name.lower().replace(" ", "-"),
                "service.version": __version__,
                "deployment.environment": settings.environment,
            }
        )
    )
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    FastAPIInstrumentor.instrument_app(app, excluded_urls=UNTRACED_URLS)
    log.info("tracing_configured", exporter=type(exporter).__name__)
    return True


def instrument_sqlalchemy(engine: AsyncEngine) -> None:
    """Trace queries on the central routing store."""
    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


def get_tracer(name: str) -> trace.Tracer:
    return trace.get_tracer(name)


@contextmanager
def tenant_span(tracer: trace.Tracer, name: str, tenant_id: int) -> Iterator[trace.Span]:
    """Open a span for work on one tenant's database.

    Example:
        with tenant_span(tracer, "tenant.query", tenant_id):
            ...
    """
    with tracer.start_as_current_span(name) as span:
        span.set_attribute("tenant.id", tenant_id)
        yield span


def shutdown_tracing() -> None:
    """Flush pending spans, if a provider was installed."""
    provider = trace.get_tracer_provider()
    if isinstance(provider, TracerProvider):
        provider.shutdown()
        log.info("tracing_shutdown_complete")
