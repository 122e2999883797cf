"""
ClubShelf Voting Backend — Request Logging Middleware
=======================================================

What:  One access log line per HTTP request: method, path, status,
       duration, request ID and client IP.
Who:   Applied to every request; runs inside RequestIDMiddleware.

Level by status:
    5xx → ERROR, 4xx → WARNING, otherwise INFO.
    Voting produces many expected 409s (late votes, repeat votes, a second
    admin closing the same cycle), so WARNING rather than ERROR keeps them
    out of alerting.

Privacy:
    Request bodies and the Authorization header are never logged.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.middleware.request_id import request_id_var

logger = logging.getLogger("clubshelf.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request with its duration, skipping health probes."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start_time = time.perf_counter()

        client_ip = request.client.host if request.client else "unknown"
        method = request.method
        path = request.url.path
        rid = request_id_var.get("")

        # Probes every 10-30s would drown the access log
        if path == "/health":
            return await call_next(request)

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )

        return response
