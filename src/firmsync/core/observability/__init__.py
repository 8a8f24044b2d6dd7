"""Observability: OpenTelemetry tracing."""

from firmsync.core.observability.tracing import (
    get_tracer,
    instrument_sqlalchemy,
    setup_tracing,
    shutdown_tracing,
    tenant_span,
)


__all__ = [
    "get_tracer",
    "instrument_sqlalchemy",
    "setup_tracing",
    "shutdown_tracing",
    "tenant_span",
]
