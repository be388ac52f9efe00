"""Catalog export API endpoints.

Provides endpoints for queued exports:
- POST /exports - queue an export
- GET /exports - export history
- GET /exports/{job_id} - job status
- GET /exports/{job_id}/file - download a completed export
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response

from catalog_engine.api.dependencies import SellerDep, get_export_service
from catalog_engine.api.schemas import (
    ErrorResponse,
    ExportJobListResponse,
    ExportJobResponse,
    ExportRequest,
)
from catalog_engine.application.export_service import ProductCatalogExportService
from catalog_engine.domain.value_objects import ExportOptions
from catalog_engine.infrastructure.models import ExportJobModel

router = APIRouter(prefix="/exports", tags=["Exports"])

ServiceDep = Annotated[ProductCatalogExportService, Depends(get_export_service)]


def job_to_response(job: ExportJobModel) -> ExportJobResponse:
    """Convert ExportJobModel to ExportJobResponse."""
    return ExportJobResponse(
        id=job.id,
        format=job.format,
        status=job.status,
        use_filters=job.use_filters,
        search=job.search,
        workflow_state=job.workflow_state,
        total_products=job.total_products,
        file_name=job.file_name,
        content_type=job.content_type,
        summary=job.summary,
        error=job.error,
        created_on=job.created_on,
        completed_on=job.completed_on,
    )


@router.post(
    "",
    response_model=ExportJobResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={401: {"model": ErrorResponse}},
    summary="Queue export",
    description=(
        "Queues an export of the seller's catalog. Unknown formats fall back "
        "to CSV; filters apply only when use_filters is set."
    ),
)
async def queue_export(
    request: ExportRequest,
    seller_id: SellerDep,
    service: ServiceDep,
) -> ExportJobResponse:
    """Queue a catalog export."""
    options = ExportOptions(
        format=request.format,
        use_filters=request.use_filters,
        search=request.search,
        workflow_state=request.workflow_state,
    )
    job = await service.queue_export(seller_id, options)
    return job_to_response(job)


@router.get(
    "",
    response_model=ExportJobListResponse,
    responses={401: {"model": ErrorResponse}},
    summary="List export history",
)
async def list_exports(
    seller_id: SellerDep,
    service: ServiceDep,
    limit: int | None = Query(default=None, ge=1, le=500, description="Maximum jobs returned"),
) -> ExportJobListResponse:
    """List the seller's export jobs, newest first."""
    jobs = await service.get_history(seller_id, limit)
    return ExportJobListResponse(items=[job_to_response(job) for job in jobs])


@router.get(
    "/{job_id}",
    response_model=ExportJobResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get export job",
)
async def get_export(
    job_id: str,
    seller_id: SellerDep,
    service: ServiceDep,
) -> ExportJobResponse:
    """Get an export job's status."""
    job = await service.get_job(job_id, seller_id)
    return job_to_response(job)


@router.get(
    "/{job_id}/file",
    response_class=Response,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Download export file",
)
async def download_export(
    job_id: str,
    seller_id: SellerDep,
    service: ServiceDep,
) -> Response:
    """Download a completed export.

    Raises:
        ExportJobNotFoundError: If the job is missing or not the seller's.
        HTTPException: If the file is not ready.
    """
    job = await service.get_file(job_id, seller_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "error_code": "EXPORT_NOT_READY",
                "message": "Export file is not available",
            },
        )

    return Response(
        content=job.file_content,
        media_type=job.content_type or "text/csv",
        headers={"Content-Disposition": f'attachment; filename="{job.file_name}"'},
    )
