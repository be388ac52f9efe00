"""Catalog Engine main application module.

This module initializes the FastAPI application and configures
core middleware, routers, background workers and startup/shutdown events.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from catalog_engine.api.attributes import router as attributes_router
from catalog_engine.api.categories import router as categories_router
from catalog_engine.api.exports import router as exports_router
from catalog_engine.api.health import router as health_router
from catalog_engine.api.imports import router as imports_router
from catalog_engine.api.middleware import setup_middleware
from catalog_engine.application.export_service import (
    ProductCatalogExportService,
    run_export_job,
)
from catalog_engine.application.import_service import (
    ProductCatalogImportService,
    run_import_job,
)
from catalog_engine.application.job_queue import JobQueue
from catalog_engine.application.workers import start_workers
from catalog_engine.domain.exceptions import DomainError
from catalog_engine.infrastructure.config import settings
from catalog_engine.infrastructure.database import async_session_factory
from catalog_engine.infrastructure.logging import configure_logging

logger = structlog.get_logger()


async def restore_queued_jobs(import_queue: JobQueue, export_queue: JobQueue) -> None:
    """Re-enqueue jobs a previous process left queued."""
    try:
        async with async_session_factory() as session:
            await ProductCatalogImportService(session).requeue_pending(import_queue)
            await ProductCatalogExportService(session).requeue_pending(export_queue)
    except SQLAlchemyError as e:
        logger.error("Failed to restore queued jobs", error=str(e))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown events.

    Args:
        app: The FastAPI application instance.

    Yields:
        None after startup, cleanup happens after yield.
    """
    configure_logging()

    # Startup
    logger.info(
        "Starting Catalog Engine",
        version=settings.api_version,
        debug=settings.debug,
    )

    import_queue = JobQueue("imports")
    export_queue = JobQueue("exports")
    app.state.import_queue = import_queue
    app.state.export_queue = export_queue

    workers = [
        *start_workers("import-worker", import_queue, run_import_job, settings.import_worker_count),
        *start_workers("export-worker", export_queue, run_export_job, settings.export_worker_count),
    ]
    logger.info("Background workers started", worker_count=len(workers))

    await restore_queued_jobs(import_queue, export_queue)

    yield

    # Shutdown
    logger.info("Shutting down Catalog Engine")
    for worker in workers:
        await worker.stop()


app = FastAPI(
    title="Catalog Engine API",
    description="Seller catalog back office: category tree, attributes, bulk import and export",
    version=settings.api_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware (must be added before custom middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Setup custom middleware (request ID, error handling, upload size guard)
setup_middleware(app)

# Include routers
app.include_router(health_router, tags=["Health"])
app.include_router(categories_router)
app.include_router(attributes_router)
app.include_router(imports_router)
app.include_router(exports_router)


# ============================================================================
# Custom Exception Handlers
# ============================================================================


def error_response(
    request: Request,
    status_code: int,
    error_code: str,
    message: str,
    details: Any = None,
) -> JSONResponse:
    """Render an error in the ErrorResponse shape.

    Args:
        request: Request that failed.
        status_code: HTTP status.
        error_code: Machine-readable error code.
        message: Human-readable message.
        details: Extra details (list or dict).

    Returns:
        JSON error response carrying the request ID.
    """
    return JSONResponse(
        status_code=status_code,
        content={
            "error_code": error_code,
            "message": message,
            "details": details if details is not None else [],
            "request_id": getattr(request.state, "request_id", None),
        },
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions raised by routers and dependencies."""
    detail = exc.detail
    if isinstance(detail, dict):
        return error_response(
            request,
            exc.status_code,
            detail.get("error_code", "ERROR"),
            detail.get("message", str(detail)),
            detail.get("details"),
        )
    return error_response(request, exc.status_code, "ERROR", str(detail))


@app.exception_handler(DomainError)
async def domain_exception_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Handle domain errors with their own status and error code."""
    logger.info(
        "Domain error",
        path=request.url.path,
        error_code=exc.error_code,
        message=exc.message,
    )
    return error_response(request, exc.status_code, exc.error_code, exc.message, exc.details)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions without leaking internals."""
    logger.exception(
        "Unhandled exception in handler",
        path=request.url.path,
        method=request.method,
        error=str(exc),
    )
    return error_response(request, 500, "INTERNAL_ERROR", "An internal error occurred")
