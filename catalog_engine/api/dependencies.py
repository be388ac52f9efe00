"""Shared FastAPI dependencies.

Seller identity comes from an upstream identity layer as the
``X-Seller-ID`` header; queues live on the application state created in
the lifespan.
"""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_engine.application.export_service import ProductCatalogExportService
from catalog_engine.application.import_service import ProductCatalogImportService
from catalog_engine.application.job_queue import JobQueue
from catalog_engine.infrastructure.database import get_session

SessionDep = Annotated[AsyncSession, Depends(get_session)]


def get_seller_id(x_seller_id: Annotated[str | None, Header()] = None) -> str:
    """Get the calling seller's ID.

    Raises:
        HTTPException: If the header is missing or blank.
    """
    if not x_seller_id or not x_seller_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error_code": "SELLER_REQUIRED",
                "message": "Missing X-Seller-ID header",
            },
        )
    return x_seller_id.strip()


SellerDep = Annotated[str, Depends(get_seller_id)]


def _queue(request: Request, name: str) -> JobQueue | None:
    return getattr(request.app.state, name, None)


def get_import_service(request: Request, session: SessionDep) -> ProductCatalogImportService:
    """Get import service bound to the request session."""
    return ProductCatalogImportService(session, queue=_queue(request, "import_queue"))


def get_export_service(request: Request, session: SessionDep) -> ProductCatalogExportService:
    """Get export service bound to the request session."""
    return ProductCatalogExportService(session, queue=_queue(request, "export_queue"))


_CONFLICT_CODES = {
    "CATEGORY_CYCLE",
    "CATEGORY_HAS_CHILDREN",
    "CATEGORY_HAS_PRODUCTS",
    "DUPLICATE_ATTRIBUTE",
    "DUPLICATE_CATEGORY_NAME",
    "DUPLICATE_CATEGORY_SLUG",
}


def result_status_code(error_code: str | None) -> int:
    """Map a failed service result's error code to an HTTP status."""
    if error_code and error_code.endswith("NOT_FOUND"):
        return status.HTTP_404_NOT_FOUND
    if error_code in _CONFLICT_CODES:
        return status.HTTP_409_CONFLICT
    return status.HTTP_400_BAD_REQUEST
