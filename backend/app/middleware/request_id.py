"""
ClubShelf Voting Backend — Request ID Middleware
==================================================

What:  Gives each request a correlation ID and echoes it in X-Request-ID.
How:   Uses the client's X-Request-ID when present, otherwise a short UUID.
       The ID lives in a ContextVar so loggers and exception handlers can
       read it without being handed the request.

Error bodies carry the same `request_id`, so a member reporting a failed
vote can quote it and support can find the matching log lines.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns the request ID before any other processing."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]

        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
