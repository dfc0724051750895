from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("ota.api")

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag every request with an id and write one access line for it.

    Update checks also carry the device's platform and channel headers, which
    are copied onto the access line so a decision can be traced per fleet.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - started) * 1000)

        response.headers.setdefault(REQUEST_ID_HEADER, request_id)
        fields = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": elapsed_ms,
        }
        if "x-app-platform" in request.headers:
            fields["platform"] = request.headers["x-app-platform"]
            fields["channel"] = request.headers.get("x-channel", "")
        level = logging.ERROR if response.status_code >= 500 else logging.INFO
        logger.log(level, "%s %s -> %s", request.method, request.url.path, response.status_code, extra=fields)
        return response
