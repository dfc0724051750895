from ota_server.core.middleware.metrics import MetricsMiddleware
from ota_server.core.middleware.request_logging import RequestLoggingMiddleware

__all__ = [
    "MetricsMiddleware",
    "RequestLoggingMiddleware",
]
