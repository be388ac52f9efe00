"""Catalog export application service.

Queues export jobs and renders a seller's catalog into the same column
layout the import accepts. XLS exports carry CSV content with an Excel
content type.
"""

from collections.abc import Sequence
from datetime import datetime, timezone
from decimal import Decimal

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_engine.application.job_queue import JobQueue
from catalog_engine.catalog.models import Product
from catalog_engine.catalog.repository import ProductRepository
from catalog_engine.catalog.tabular import KNOWN_HEADERS
from catalog_engine.domain.exceptions import ExportJobNotFoundError
from catalog_engine.domain.state_machines import (
    ExportJobStatus,
    ProductWorkflowState,
    validate_export_transition,
)
from catalog_engine.domain.value_objects import ExportFormat, ExportOptions
from catalog_engine.infrastructure.config import settings
from catalog_engine.infrastructure.database import async_session_factory
from catalog_engine.infrastructure.job_repository import ExportJobRepository
from catalog_engine.infrastructure.models import ExportJobModel

logger = structlog.get_logger()

EXPORT_HEADERS = KNOWN_HEADERS


class ProductCatalogExportService:
    """Application service for catalog exports.

    Example usage:
        service = ProductCatalogExportService(session, queue=export_queue)
        job = await service.queue_export(seller_id, ExportOptions(format="xls"))
    """

    def __init__(self, session: AsyncSession, queue: JobQueue | None = None) -> None:
        """Initialize service.

        Args:
            session: Async SQLAlchemy session.
            queue: Export queue new jobs are pushed to.
        """
        self.session = session
        self.queue = queue
        self.jobs = ExportJobRepository(session)
        self.products = ProductRepository(session)

    async def queue_export(self, seller_id: str, options: ExportOptions) -> ExportJobModel:
        """Create an export job and enqueue it.

        Args:
            seller_id: Seller requesting the export.
            options: Format and filters.

        Returns:
            The queued job.
        """
        export_format = options.normalized_format
        state = options.normalized_workflow_state
        search = options.search.strip() if options.search and options.search.strip() else None

        job = ExportJobModel(
            seller_id=seller_id,
            format=export_format.value,
            status=ExportJobStatus.QUEUED.value,
            use_filters=options.use_filters,
            search=search if options.use_filters else None,
            workflow_state=state.value if options.use_filters and state else None,
            file_name=build_file_name(export_format),
            content_type=export_format.content_type,
            summary=_queued_summary(
                export_format,
                options.use_filters,
                search,
                state,
            ),
        )
        await self.jobs.add(job)
        await self.session.commit()

        if self.queue is not None:
            self.queue.enqueue(job.id)
        logger.info(
            "Export job queued",
            job_id=job.id,
            seller_id=seller_id,
            format=job.format,
            use_filters=job.use_filters,
        )
        return job

    async def process_job(self, job_id: str) -> None:
        """Render an export job's file.

        Args:
            job_id: Job to process.
        """
        job = await self.jobs.get(job_id)
        if job is None:
            logger.warning("Export job not found", job_id=job_id)
            return

        if job.status_enum.is_terminal():
            logger.info("Export job skipped", job_id=job_id, status=job.status)
            return

        validate_export_transition(job_id, job.status_enum, ExportJobStatus.PROCESSING)
        job.status = ExportJobStatus.PROCESSING.value
        await self.session.commit()

        try:
            products = await self.products.get_list_filtered(
                job.seller_id,
                search=job.search if job.use_filters else None,
                workflow_state=ProductWorkflowState.parse(job.workflow_state) if job.use_filters else None,
            )
            content = render_csv(products)
        except Exception as e:
            logger.exception("Export job failed", job_id=job_id)
            await self.session.rollback()
            await self.session.refresh(job)
            job.status = ExportJobStatus.FAILED.value
            job.file_content = None
            job.error = str(e)
            job.summary = "Export failed."
            job.completed_on = datetime.now(timezone.utc)
            await self.session.commit()
            return

        scope = "filtered products" if job.use_filters else "full catalog"
        job.status = ExportJobStatus.COMPLETED.value
        job.file_content = content
        job.total_products = len(products)
        job.summary = f"Exported {len(products)} {scope} to {job.format.upper()}."
        job.completed_on = datetime.now(timezone.utc)
        await self.session.commit()

        logger.info("Export job completed", job_id=job_id, total_products=len(products))

    async def get_job(self, job_id: str, seller_id: str) -> ExportJobModel:
        """Get a seller's export job.

        Raises:
            ExportJobNotFoundError: If missing or owned by another seller.
        """
        job = await self.jobs.get_for_seller(job_id, seller_id)
        if job is None:
            raise ExportJobNotFoundError(job_id)
        return job

    async def get_history(self, seller_id: str, limit: int | None = None) -> list[ExportJobModel]:
        """List a seller's export jobs, newest first."""
        jobs = await self.jobs.list_by_seller(seller_id, limit or settings.job_history_limit)
        return list(jobs)

    async def get_file(self, job_id: str, seller_id: str) -> ExportJobModel | None:
        """Get a completed export job with its file.

        Returns:
            The job when its file is ready, None otherwise.

        Raises:
            ExportJobNotFoundError: If missing or owned by another seller.
        """
        job = await self.get_job(job_id, seller_id)
        if job.status_enum != ExportJobStatus.COMPLETED or job.file_content is None:
            return None
        return job

    async def requeue_pending(self, queue: JobQueue) -> int:
        """Re-enqueue jobs left queued by a previous process."""
        job_ids = await self.jobs.list_ids_by_status(ExportJobStatus.QUEUED.value)
        for job_id in job_ids:
            queue.enqueue(job_id)
        if job_ids:
            logger.info("Queued export jobs restored", count=len(job_ids))
        return len(job_ids)


async def run_export_job(job_id: str) -> None:
    """Process one export job in its own session (worker entry point)."""
    async with async_session_factory() as session:
        await ProductCatalogExportService(session).process_job(job_id)


# ============================================================================
# Rendering
# ============================================================================


def build_file_name(export_format: ExportFormat, now: datetime | None = None) -> str:
    """Build a timestamped export file name."""
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%d%H%M%S")
    return f"products-export-{stamp}.{export_format.value}"


def escape_csv_value(value: str | None) -> str:
    """Escape one CSV field.

    Fields containing a comma, quote, CR or LF are wrapped in quotes and
    embedded quotes are doubled.
    """
    if not value:
        return ""
    escaped = value.replace('"', '""')
    if any(ch in value for ch in (",", '"', "\n", "\r")):
        return f'"{escaped}"'
    return escaped


def render_csv(products: Sequence[Product]) -> bytes:
    """Render products as UTF-8 CSV without a byte order mark.

    Args:
        products: Products in output order.

    Returns:
        File bytes; one header line and one line per product.
    """
    lines = [",".join(EXPORT_HEADERS)]
    for product in products:
        values = [
            product.merchant_sku,
            product.title,
            product.description,
            _number(product.price),
            str(product.stock),
            product.category,
            product.shipping_methods,
            product.main_image_url,
            product.gallery_image_urls,
            _number(product.weight_kg),
            _number(product.length_cm),
            _number(product.width_cm),
            _number(product.height_cm),
        ]
        lines.append(",".join(escape_csv_value(v) for v in values))
    return ("\n".join(lines) + "\n").encode("utf-8")


def _number(value: Decimal | int | float | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


def _queued_summary(
    export_format: ExportFormat,
    use_filters: bool,
    search: str | None,
    state: ProductWorkflowState | None,
) -> str:
    format_label = export_format.value.upper()
    if not use_filters:
        return f"Queued export to {format_label} for full catalog."

    filters = []
    if search:
        filters.append(f"search: {search}")
    if state is not None:
        filters.append(f"state: {state.value}")
    filter_text = ", ".join(filters) if filters else "current filters"
    return f"Queued export to {format_label} with {filter_text}."
