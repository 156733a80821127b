"""
IDE Workspace — Request Logging Middleware
===========================================

What:  One access-log line per HTTP request, with status and duration.
How:   Measures from middleware entry to response return and logs at a level
       chosen from the status code (5xx ERROR, 4xx WARNING, else INFO).
When:  After RequestIDMiddleware, so every line carries the request ID.

What we log vs what we DON'T log:
    Log:       method, path, status, duration, client IP, request ID
    Don't log: request bodies (file contents, access tokens), auth headers
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from ide_workspace.middleware.request_id import request_id_var

logger = logging.getLogger("ide_workspace.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Typical durations:
        - GET /health: 1-5ms
        - PUT /api/projects/{id}/contents: <5ms (held for autosave)
        - POST /api/projects/{id}/push: one round trip per file, plus 4-6 more
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start_time = time.perf_counter()
        client_ip = getattr(request.client, "host", "unknown") if request.client else "unknown"
        method = request.method
        path = request.url.path
        rid = request_id_var.get("")

        # Health probes run every few seconds; skip them
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
