"""Request-scoped logging context and error translation."""

import time
import uuid

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from creative_ai_system.exceptions import (
    DEFAULT_CLIENT_MESSAGE,
    CreativeException,
    sanitize_error_message,
)
from creative_ai_system.telemetry import RequestContext

logger = structlog.get_logger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Binds request id and caller identity to the logging context."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        with RequestContext(
            request_id=request_id,
            user_id=request.headers.get("X-User-Id"),
            organization_id=request.headers.get("X-Organization-Id"),
        ):
            start_time = time.perf_counter()
            response = await call_next(request)
            process_time = time.perf_counter() - start_time

            response.headers["X-Request-ID"] = request_id
            response.headers["X-Process-Time"] = f"{process_time:.4f}"
            logger.info(
                "Request processed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                process_time=process_time,
            )
        return response


def register_exception_handlers(app: FastAPI) -> None:
    """Every error leaves as ``{"error": <sanitized message>}``."""

    @app.exception_handler(CreativeException)
    async def creative_exception_handler(request: Request, exc: CreativeException):
        logger.warning(
            "Request failed",
            path=request.url.path,
            error_code=exc.error_code,
            status_code=exc.status_code,
            error=exc.message,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": sanitize_error_message(exc)},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning("Invalid request body", path=request.url.path, errors=str(exc.errors()))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid request body"},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception("Unexpected error", path=request.url.path, error_type=type(exc).__name__)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": DEFAULT_CLIENT_MESSAGE},
        )
