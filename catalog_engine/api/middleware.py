"""API middleware for the Catalog Engine.

Provides:
- Request context (request ID and seller ID) for log correlation
- Upload size guard for file endpoints
- Error handling
"""

import time
from typing import Callable
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from catalog_engine.infrastructure.config import settings

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"
SELLER_ID_HEADER = "X-Seller-ID"


# ============================================================================
# Request Context Middleware
# ============================================================================


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Binds request and seller identity to every log line of a request.

    The request ID is taken from the ``X-Request-ID`` header or generated,
    stored on ``request.state`` for error bodies, and echoed back in the
    response header.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request inside its log context.

        Args:
            request: Incoming request.
            call_next: Next middleware/handler.

        Returns:
            Response with request ID header.
        """
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
        request.state.request_id = request_id

        context = {"request_id": request_id}
        seller_id = (request.headers.get(SELLER_ID_HEADER) or "").strip()
        if seller_id:
            context["seller_id"] = seller_id

        with structlog.contextvars.bound_contextvars(**context):
            started = time.perf_counter()
            status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
            try:
                response = await call_next(request)
                status_code = response.status_code
            finally:
                logger.info(
                    "Request completed",
                    method=request.method,
                    path=request.url.path,
                    status_code=status_code,
                    duration_ms=round((time.perf_counter() - started) * 1000, 2),
                )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


# ============================================================================
# Upload Size Middleware
# ============================================================================


# Multipart framing around the file part
MULTIPART_OVERHEAD_BYTES = 64 * 1024

UPLOAD_PATHS = {"/imports/preview"}


class UploadLimitMiddleware(BaseHTTPMiddleware):
    """Rejects oversized uploads before their body is read.

    Only requests that declare a ``Content-Length`` are checked here; the
    upload endpoint re-checks the size of the file it actually received.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Check the declared body size of upload requests.

        Args:
            request: Incoming request.
            call_next: Next middleware/handler.

        Returns:
            Response or 413 error.
        """
        if request.method != "POST" or request.url.path.rstrip("/") not in UPLOAD_PATHS:
            return await call_next(request)

        declared = request.headers.get("content-length")
        limit = settings.max_upload_bytes + MULTIPART_OVERHEAD_BYTES
        if declared and declared.isdigit() and int(declared) > limit:
            logger.warning(
                "Upload rejected",
                path=request.url.path,
                content_length=int(declared),
                limit=limit,
            )
            return JSONResponse(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                content={
                    "error_code": "FILE_TOO_LARGE",
                    "message": f"File exceeds the {settings.max_upload_bytes} byte limit",
                    "details": [],
                    "request_id": getattr(request.state, "request_id", None),
                },
            )

        return await call_next(request)


# ============================================================================
# Error Handling Middleware
# ============================================================================


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Turns exceptions that escape the routers into INTERNAL_ERROR responses."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Handle errors uniformly.

        Args:
            request: Incoming request.
            call_next: Next middleware/handler.

        Returns:
            Response or error response.
        """
        try:
            return await call_next(request)
        except Exception as e:
            logger.exception(
                "Unhandled exception",
                path=request.url.path,
                method=request.method,
                error=str(e),
            )
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error_code": "INTERNAL_ERROR",
                    "message": "An internal error occurred",
                    "details": [],
                    "request_id": getattr(request.state, "request_id", None),
                },
            )


# ============================================================================
# Middleware Setup
# ============================================================================


def setup_middleware(app: FastAPI) -> None:
    """Configure all middleware for the application.

    Middleware is added in reverse order (last added = first executed).

    Args:
        app: FastAPI application instance.
    """
    app.add_middleware(UploadLimitMiddleware)
    app.add_middleware(ErrorHandlerMiddleware)
    # Outermost, so every response and log line carries the request ID
    app.add_middleware(RequestIdMiddleware)
