from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from ota_server.api import downloads
from ota_server.api.response import exception_envelope
from ota_server.api.v1.router import api_router
from ota_server.core.config import get_settings
from ota_server.core.logging_config import configure_logging
from ota_server.core.metrics import render_metrics
from ota_server.core.middleware import MetricsMiddleware, RequestLoggingMiddleware
from ota_server.db.session import dispose_engine
from ota_server.services.update_engine.errors import UpdateEngineError
from ota_server.storage import build_signed_url_issuer

settings = get_settings()
configure_logging(log_level=settings.log_level, app_env=settings.app_env)
logger = logging.getLogger("ota.api")


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    logger.info(
        "OTA update server starting (strategy=%s, database=%s, storage=%s)",
        settings.update_strategy,
        settings.database_backend,
        settings.storage_backend,
    )
    yield
    dispose_engine()


app = FastAPI(title=settings.app_name, lifespan=lifespan)
app.state.signed_url_issuer = build_signed_url_issuer(settings)
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.include_router(api_router, prefix=settings.api_v1_prefix)
app.include_router(downloads.router)

if settings.metrics_enabled:
    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        payload, content_type = render_metrics()
        return Response(content=payload, media_type=content_type)


def error_response(
    request: Request,
    status_code: int,
    message: str,
    code: str,
    details: dict | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    payload = exception_envelope(request, status_code, message, code, details)
    return JSONResponse(status_code=status_code, content=payload, headers=headers)


@app.exception_handler(UpdateEngineError)
async def update_engine_exception_handler(request: Request, exc: UpdateEngineError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("update resolution failed: %s", exc.message, exc_info=exc)
    return error_response(request, exc.status_code, exc.message, exc.error_code, exc.details)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    if isinstance(exc.detail, dict):
        message, details = "Request failed", exc.detail
    else:
        message, details = str(exc.detail), None
    return error_response(request, exc.status_code, message, f"http_{exc.status_code}", details, exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(request, 422, "Validation failed", "validation_error", {"errors": _jsonable_errors(exc)})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return error_response(request, 500, "Internal server error", "internal_server_error")


def _jsonable_errors(exc: RequestValidationError) -> list[dict]:
    errors = []
    for error in exc.errors():
        error = dict(error)
        # Custom validators leave the raised exception in ctx.
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        errors.append(error)
    return errors
