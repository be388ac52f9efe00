"""Bulk product import API endpoints.

Provides endpoints for the two-phase import flow:
- GET /imports/template - header-only CSV template
- POST /imports/preview - validate and diff an uploaded file
- POST /imports/{job_id}/confirm - queue a previewed job
- GET /imports - import history
- GET /imports/{job_id} - job status and counts
- GET /imports/{job_id}/errors - downloadable error report
"""

from typing import Annotated

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from fastapi.responses import Response

from catalog_engine.api.dependencies import SellerDep, get_import_service
from catalog_engine.api.schemas import (
    ErrorResponse,
    ImportJobListResponse,
    ImportJobResponse,
    ImportPreviewResponse,
    RowErrorSchema,
)
from catalog_engine.application.import_service import (
    TEMPLATE_FILE_NAME,
    ImportPreview,
    ProductCatalogImportService,
)
from catalog_engine.infrastructure.config import settings
from catalog_engine.infrastructure.models import ImportJobModel

router = APIRouter(prefix="/imports", tags=["Imports"])

ServiceDep = Annotated[ProductCatalogImportService, Depends(get_import_service)]


# ============================================================================
# Converters
# ============================================================================


def job_to_response(job: ImportJobModel) -> ImportJobResponse:
    """Convert ImportJobModel to ImportJobResponse."""
    return ImportJobResponse(
        id=job.id,
        file_name=job.file_name,
        status=job.status,
        total_rows=job.total_rows,
        created_count=job.created_count,
        updated_count=job.updated_count,
        failed_count=job.failed_count,
        summary=job.summary,
        template_version=job.template_version,
        has_error_report=bool(job.error_report and job.error_report.strip()),
        created_on=job.created_on,
        completed_on=job.completed_on,
    )


def preview_to_response(preview: ImportPreview, job: ImportJobModel | None) -> ImportPreviewResponse:
    """Convert a preview (and its pending job) to a response."""
    return ImportPreviewResponse(
        total_rows=preview.total_rows,
        create_count=preview.create_count,
        update_count=preview.update_count,
        errors=[
            RowErrorSchema(row_number=e.row_number, message=e.message)
            for e in sorted(preview.errors, key=lambda e: e.row_number)
        ],
        job=job_to_response(job) if job is not None else None,
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.get(
    "/template",
    summary="Download import template",
    response_class=Response,
)
async def download_template() -> Response:
    """Download the header-only CSV template."""
    return Response(
        content=ProductCatalogImportService.build_template(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{TEMPLATE_FILE_NAME}"'},
    )


@router.post(
    "/preview",
    response_model=ImportPreviewResponse,
    responses={
        401: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
    },
    summary="Preview import file",
    description=(
        "Validates a CSV or Excel file against the seller's inventory without "
        "changing it. A clean preview returns a job awaiting confirmation."
    ),
)
async def preview_import(
    seller_id: SellerDep,
    service: ServiceDep,
    file: UploadFile = File(..., description="CSV, XLSX or XLS file"),
) -> ImportPreviewResponse:
    """Preview an uploaded import file.

    Args:
        seller_id: Calling seller.
        service: Import service.
        file: Uploaded file.

    Returns:
        Counts, row errors and the pending job when there were no errors.

    Raises:
        HTTPException: If the upload exceeds the size limit.
    """
    content = await file.read()
    if len(content) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail={
                "error_code": "FILE_TOO_LARGE",
                "message": f"File exceeds the {settings.max_upload_bytes} byte limit",
            },
        )

    file_name = file.filename or "upload.csv"
    preview, job = await service.create_pending_job(seller_id, content, file_name)
    return preview_to_response(preview, job)


@router.get(
    "",
    response_model=ImportJobListResponse,
    responses={401: {"model": ErrorResponse}},
    summary="List import history",
)
async def list_imports(
    seller_id: SellerDep,
    service: ServiceDep,
    limit: int | None = Query(default=None, ge=1, le=500, description="Maximum jobs returned"),
) -> ImportJobListResponse:
    """List the seller's import jobs, newest first."""
    jobs = await service.get_history(seller_id, limit)
    return ImportJobListResponse(items=[job_to_response(job) for job in jobs])


@router.post(
    "/{job_id}/confirm",
    response_model=ImportJobResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Confirm import",
    description="Queues a previewed job. Rows are re-validated against current data when processed.",
)
async def confirm_import(
    job_id: str,
    seller_id: SellerDep,
    service: ServiceDep,
) -> ImportJobResponse:
    """Confirm a job awaiting confirmation.

    Raises:
        ImportJobNotFoundError: If the job is missing or not the seller's.
        HTTPException: If the job is not awaiting confirmation.
    """
    await service.get_job(job_id, seller_id)

    if not await service.confirm(job_id, seller_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "error_code": "IMPORT_NOT_CONFIRMABLE",
                "message": "Import job is not awaiting confirmation",
            },
        )

    job = await service.get_job(job_id, seller_id)
    return job_to_response(job)


@router.get(
    "/{job_id}",
    response_model=ImportJobResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get import job",
)
async def get_import(
    job_id: str,
    seller_id: SellerDep,
    service: ServiceDep,
) -> ImportJobResponse:
    """Get an import job's status and counts."""
    job = await service.get_job(job_id, seller_id)
    return job_to_response(job)


@router.get(
    "/{job_id}/errors",
    response_class=Response,
    responses={404: {"model": ErrorResponse}},
    summary="Download error report",
)
async def download_error_report(
    job_id: str,
    seller_id: SellerDep,
    service: ServiceDep,
) -> Response:
    """Download a job's error report as plain text.

    Raises:
        HTTPException: If the job has no error report.
    """
    report = await service.get_error_report(job_id, seller_id)
    if report is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error_code": "ERROR_REPORT_NOT_FOUND",
                "message": "Import job has no error report",
            },
        )

    file_name, content = report
    return Response(
        content=content,
        media_type="text/plain; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )
