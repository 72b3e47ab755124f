"""
MealTracker Backend - Request Logging Middleware
=================================================

What:  One access-log line per request: method, path, status, duration, request id
       and, for writes, the persistence outcome.
Who:   Applied to every request except /health.

Level by status:
    5xx → ERROR, 4xx → WARNING, otherwise INFO.
    A write whose X-Persistence is not "durable" is logged at WARNING even on 2xx,
    so unsynced mutations stand out in the access log.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from mealtracker.middleware.request_id import request_id_var

logger = logging.getLogger("mealtracker.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path == "/health":
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"
        method = request.method
        rid = request_id_var.get("")

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        persistence = response.headers.get("X-Persistence", "-")

        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400 or persistence not in ("-", "durable"):
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms persistence=%s [%s] from %s",
            method,
            path,
            status,
            duration_ms,
            persistence,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "persistence": persistence,
            },
        )
        return response
