"""Structured logging setup and per-request log lines.

``configure_logging`` is called once per process by the API, the worker
and the CLI. ``RequestLoggingMiddleware`` writes a start line and a
completion line for each request; the completion line names the principal
and, on tenant routes, the firm the isolation gate let the request into.
"""

import logging
import time
from collections.abc import Iterable
from typing import Any

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from firmsync.config import Settings


logger = structlog.get_logger()

QUIET_PATHS = ("/health/", "/docs", "/redoc", "/openapi.json")

# Set on request.state by PrincipalContextMiddleware and require_tenant_access
STATE_LOG_FIELDS = ("user_id", "tenant_id", "firm_code")


def configure_logging(settings: Settings) -> None:
    """Configure structlog for this process.

    Production writes JSON lines; every other environment uses the
    console renderer.
    """
    if settings.is_production:
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request that is not on a quiet path.

    Args:
        app: The ASGI application
        quiet_paths: Path prefixes that are never logged (probes, docs)
    """

    def __init__(self, app: Any, quiet_paths: Iterable[str] = QUIET_PATHS) -> None:
        super().__init__(app)
        self.quiet_paths = tuple(quiet_paths)

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        if request.url.path.startswith(self.quiet_paths):
            return await call_next(request)

        log = logger.bind(method=request.method, path=request.url.path)
        log.info(
            "request_started",
            client_ip=get_client_ip(request),
            query=str(request.url.query) or None,
        )

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            log.exception("request_failed", duration_ms=_elapsed_ms(started))
            raise

        fields: dict[str, Any] = {}
        for key in STATE_LOG_FIELDS:
            value = getattr(request.state, key, None)
            if value is not None:
                fields[key] = value

        status_code = response.status_code
        if status_code >= 500:
            emit = log.error
        elif status_code >= 400:
            emit = log.warning
        else:
            emit = log.info
        emit(
            "request_completed",
            status_code=status_code,
            duration_ms=_elapsed_ms(started),
            **fields,
        )
        return response


def get_client_ip(request: Request) -> str | None:
    """Best guess at the caller's address, for logs and audit events.

    Prefers the first ``X-Forwarded-For`` hop, then ``X-Real-IP``, then the
    socket peer.
    """
    forwarded = request.headers.get("X-Forwarded-For", "")
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return request.client.host if request.client else None
