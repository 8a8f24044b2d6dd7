"""Structured logging and request tracking."""

from firmsync.core.logging.middleware import (
    RequestLoggingMiddleware,
    configure_logging,
    get_client_ip,
)


__all__ = [
    "RequestLoggingMiddleware",
    "configure_logging",
    "get_client_ip",
]
