from __future__ import annotations

import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from ota_server.core.metrics import http_request_duration_seconds, http_requests_total

UNMATCHED_ROUTE = "unmatched"


def route_template(request: Request) -> str:
    """Path label for a request: the matched route template, never the raw path."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or UNMATCHED_ROUTE


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        started_at = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - started_at
        path = route_template(request)
        http_requests_total.labels(method=request.method, path=path, status=str(response.status_code)).inc()
        http_request_duration_seconds.labels(method=request.method, path=path).observe(elapsed)
        return response
