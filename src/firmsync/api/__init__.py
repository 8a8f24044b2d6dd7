"""API routing."""

from firmsync.api.router import api_router


__all__ = ["api_router"]
