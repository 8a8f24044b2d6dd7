"""Request identity middleware.

``RequestIdMiddleware`` gives every request an id that ends up in logs,
audit events and the ``X-Request-ID`` response header.
``PrincipalContextMiddleware`` records which user the bearer token names.
Neither rejects a request; the route dependencies do that.
"""

import uuid

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from firmsync.core.auth.backend import decode_token


REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 128

# Everything the middlewares and the tenant gate bind for one request
REQUEST_LOG_KEYS = ("request_id", "user_id", "tenant_id", "firm_code")


def bearer_token(request: Request) -> str | None:
    """Return the token from an ``Authorization: Bearer`` header, if any."""
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class PrincipalContextMiddleware(BaseHTTPMiddleware):
    """Set ``request.state.user_id`` from the bearer token.

    Only the signature and expiry are checked here, without touching the
    central store. A missing or invalid token leaves ``user_id`` as None.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        user_id = None
        token = bearer_token(request)
        if token:
            token_data = decode_token(token)
            if token_data is not None and token_data.type == "access":
                user_id = token_data.user_id
                structlog.contextvars.bind_contextvars(user_id=user_id)

        request.state.user_id = user_id
        return await call_next(request)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Assign a request id, or keep the caller's if it is usable.

    Runs outermost, so it also clears every per-request log binding once
    the response is built.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        incoming = request.headers.get(REQUEST_ID_HEADER, "").strip()
        if incoming and len(incoming) <= MAX_REQUEST_ID_LENGTH:
            request_id = incoming
        else:
            request_id = str(uuid.uuid4())

        request.state.request_id = request_id
        # Problem-details responses report it as trace_id
        request.state.trace_id = request_id
        structlog.contextvars.bind_contextvars(request_id=request_id)

        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars(*REQUEST_LOG_KEYS)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
