"""Bulk product import application service.

Two-phase import of seller catalog files:

- Preview: parse, validate and diff the file against current inventory
  without touching it. A clean preview persists a job in
  ``pending_confirmation`` carrying the file bytes.
- Commit: once the seller confirms, a worker re-runs the whole preview
  against the current data and applies rows one at a time. A failing row
  is recorded in the error report and never stops its siblings.
"""

import asyncio
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_engine.application.job_queue import JobQueue
from catalog_engine.catalog.hierarchy import CategoryHierarchyService
from catalog_engine.catalog.models import Category, Product
from catalog_engine.catalog.repository import ProductRepository
from catalog_engine.catalog.tabular import (
    REQUIRED_HEADERS,
    RawRow,
    file_extension,
    guess_content_type,
    parse_tabular,
)
from catalog_engine.domain.exceptions import ImportJobNotFoundError, JobError
from catalog_engine.domain.state_machines import (
    ImportJobStatus,
    ProductWorkflowState,
    validate_import_transition,
)
from catalog_engine.infrastructure.config import settings
from catalog_engine.infrastructure.database import async_session_factory
from catalog_engine.infrastructure.job_repository import ImportJobRepository
from catalog_engine.infrastructure.models import ImportJobModel

logger = structlog.get_logger()

TEMPLATE_VERSION = "v1"
TEMPLATE_FILE_NAME = "product-import-template.csv"
TEMPLATE_HEADER = (
    "SKU,Title,Description,Price,Stock,Category,ShippingMethods,"
    "MainImageUrl,GalleryImageUrls,WeightKg,LengthCm,WidthCm,HeightCm"
)

INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")
DECIMAL_PATTERN = re.compile(r"[+-]?([0-9]+(\.[0-9]*)?|\.[0-9]+)([eE][+-]?[0-9]+)?")

# Scales of the product numeric columns
PRICE_SCALE = Decimal("0.01")
WEIGHT_SCALE = Decimal("0.001")
DIMENSION_SCALE = Decimal("0.01")


# ============================================================================
# Preview Types
# ============================================================================


@dataclass
class RowError:
    """Validation or apply error.

    Row 0 marks a job-level error that belongs to no single row.
    """

    row_number: int
    message: str

    def to_line(self) -> str:
        """Render as an error report line."""
        if self.row_number > 0:
            return f"Row {self.row_number}: {self.message}"
        return self.message


@dataclass
class ImportRow:
    """Validated row ready to be applied."""

    row_number: int
    merchant_sku: str
    title: str
    description: str | None
    price: Decimal
    stock: int
    category_id: int
    category_full_path: str
    shipping_methods: str | None = None
    main_image_url: str | None = None
    gallery_image_urls: str | None = None
    weight_kg: Decimal | None = None
    length_cm: Decimal | None = None
    width_cm: Decimal | None = None
    height_cm: Decimal | None = None


@dataclass
class ImportPreview:
    """Result of validating an import file against current inventory."""

    total_rows: int = 0
    create_count: int = 0
    update_count: int = 0
    errors: list[RowError] = field(default_factory=list)
    rows: list[ImportRow] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if the preview found any error."""
        return bool(self.errors)

    @property
    def summary(self) -> str:
        """Fixed-format counts summary."""
        return build_summary(self.total_rows, self.create_count, self.update_count, len(self.errors))


def build_summary(total: int, created: int, updated: int, failed: int) -> str:
    """Build the fixed-format import summary."""
    return f"Total: {total}, Created: {created}, Updated: {updated}, Failed: {failed}"


def build_error_report(errors: list[RowError]) -> str | None:
    """Render errors sorted by row number, one per line.

    Args:
        errors: Collected errors.

    Returns:
        Report text, or None when there is nothing to report.
    """
    if not errors:
        return None
    ordered = sorted(errors, key=lambda e: e.row_number)
    return "\n".join(error.to_line() for error in ordered)


# ============================================================================
# Import Service
# ============================================================================


class ProductCatalogImportService:
    """Application service for bulk product imports.

    Example usage:
        service = ProductCatalogImportService(session, queue=import_queue)
        preview, job = await service.create_pending_job(seller_id, content, "catalog.csv")
        if job is not None:
            await service.confirm(job.id, seller_id)
    """

    def __init__(self, session: AsyncSession, queue: JobQueue | None = None) -> None:
        """Initialize service.

        Args:
            session: Async SQLAlchemy session.
            queue: Import queue confirmed jobs are pushed to.
        """
        self.session = session
        self.queue = queue
        self.jobs = ImportJobRepository(session)
        self.products = ProductRepository(session)
        self.categories = CategoryHierarchyService(session)

    # ------------------------------------------------------------------------
    # Preview
    # ------------------------------------------------------------------------

    async def preview(self, seller_id: str, content: bytes, file_name: str) -> ImportPreview:
        """Validate an import file and diff it against the seller's inventory.

        Never modifies products.

        Args:
            seller_id: Seller uploading the file.
            content: File bytes.
            file_name: Original file name.

        Returns:
            ImportPreview with counts, errors and the rows to apply.
        """
        try:
            table = parse_tabular(content, file_name)
        except JobError as e:
            return ImportPreview(errors=[RowError(0, e.message)])

        missing = [h for h in REQUIRED_HEADERS if h not in table.headers]
        if missing:
            return ImportPreview(
                total_rows=table.total_rows,
                errors=[RowError(0, f"Missing required column: {h}") for h in missing],
            )

        if table.total_rows == 0:
            return ImportPreview(errors=[RowError(0, "The file does not contain any data rows.")])

        active = await self.categories.get_active_categories()
        category_lookup = {c.full_path.lower(): c for c in active}

        errors: list[RowError] = []
        rows: list[ImportRow] = []
        seen_skus: set[str] = set()

        for raw in table.rows:
            if raw.is_blank():
                continue

            parsed = _parse_row(raw, category_lookup, errors)
            if parsed is None:
                continue

            key = parsed.merchant_sku.lower()
            if key in seen_skus:
                errors.append(
                    RowError(raw.row_number, f"Duplicate SKU '{parsed.merchant_sku}' in file.")
                )
                continue

            seen_skus.add(key)
            rows.append(parsed)

        existing = await self.products.get_by_skus(seller_id, seen_skus)

        archived = sorted(key for key, product in existing.items() if product.is_archived)
        for key in archived:
            errors.append(
                RowError(
                    0,
                    f"Archived product already uses SKU '{existing[key].merchant_sku}'. "
                    "Restore or change SKU before importing.",
                )
            )
        if archived:
            blocked = set(archived)
            rows = [r for r in rows if r.merchant_sku.lower() not in blocked]

        update_count = sum(1 for r in rows if r.merchant_sku.lower() in existing)
        return ImportPreview(
            total_rows=table.total_rows,
            create_count=len(rows) - update_count,
            update_count=update_count,
            errors=errors,
            rows=rows,
        )

    async def create_pending_job(
        self,
        seller_id: str,
        content: bytes,
        file_name: str,
    ) -> tuple[ImportPreview, ImportJobModel | None]:
        """Preview a file and persist a job awaiting confirmation.

        A job is only created when the preview has no errors.

        Args:
            seller_id: Seller uploading the file.
            content: File bytes.
            file_name: Original file name.

        Returns:
            The preview and the created job (None when the preview failed).
        """
        preview = await self.preview(seller_id, content, file_name)
        if preview.has_errors:
            logger.info(
                "Import preview rejected",
                seller_id=seller_id,
                file_name=file_name,
                errors=len(preview.errors),
            )
            return preview, None

        job = ImportJobModel(
            seller_id=seller_id,
            file_name=file_name,
            content_type=guess_content_type(file_name),
            file_content=content,
            status=ImportJobStatus.PENDING_CONFIRMATION.value,
            total_rows=preview.total_rows,
            created_count=preview.create_count,
            updated_count=preview.update_count,
            failed_count=0,
            summary=preview.summary,
            template_version=TEMPLATE_VERSION,
        )
        await self.jobs.add(job)
        await self.session.commit()

        logger.info(
            "Import job awaiting confirmation",
            job_id=job.id,
            seller_id=seller_id,
            total_rows=preview.total_rows,
            create_count=preview.create_count,
            update_count=preview.update_count,
        )
        return preview, job

    async def confirm(self, job_id: str, seller_id: str) -> bool:
        """Confirm a previewed job and hand it to the import worker.

        Args:
            job_id: Job to confirm.
            seller_id: Seller confirming; must own the job.

        Returns:
            True if the job was queued, False if it is missing, owned by
            another seller, or not awaiting confirmation.
        """
        job = await self.jobs.get_for_seller(job_id, seller_id)
        if job is None or job.status_enum != ImportJobStatus.PENDING_CONFIRMATION:
            return False

        validate_import_transition(job.id, job.status_enum, ImportJobStatus.QUEUED)
        job.status = ImportJobStatus.QUEUED.value
        await self.session.commit()

        if self.queue is not None:
            self.queue.enqueue(job.id)
        logger.info("Import job queued", job_id=job.id, seller_id=seller_id)
        return True

    # ------------------------------------------------------------------------
    # Commit (worker)
    # ------------------------------------------------------------------------

    async def process_job(self, job_id: str) -> None:
        """Apply a queued import job.

        Re-runs the full preview against current data, then creates or
        updates products row by row with one commit per row.

        Args:
            job_id: Job to process.
        """
        job = await self.jobs.get(job_id)
        if job is None or job.file_content is None:
            logger.warning("Import job not found or has no file", job_id=job_id)
            return

        if job.status_enum != ImportJobStatus.QUEUED:
            logger.info("Import job skipped", job_id=job_id, status=job.status)
            return

        validate_import_transition(job_id, job.status_enum, ImportJobStatus.PROCESSING)
        job.status = ImportJobStatus.PROCESSING.value
        await self.session.commit()

        seller_id = job.seller_id
        created = 0
        updated = 0
        errors: list[RowError] = []
        total_rows = job.total_rows

        logger.info("Import job started", job_id=job_id, seller_id=seller_id)

        try:
            preview = await self.preview(seller_id, job.file_content, job.file_name)
            errors.extend(preview.errors)
            total_rows = preview.total_rows

            if not preview.rows:
                await self._finish(
                    job,
                    ImportJobStatus.FAILED,
                    total_rows=total_rows,
                    created=0,
                    updated=0,
                    errors=errors,
                    summary="No rows imported.",
                )
                return

            existing = await self.products.get_by_skus(
                seller_id, (row.merchant_sku for row in preview.rows)
            )

            for row in preview.rows:
                product = existing.get(row.merchant_sku.lower())
                try:
                    if product is not None:
                        _apply_row(product, row)
                    else:
                        self.session.add(_new_product(row, seller_id))
                    await self.session.commit()
                except Exception:
                    logger.exception("Failed to import row", job_id=job_id, row=row.row_number)
                    await self.session.rollback()
                    await self.session.refresh(job)
                    errors.append(
                        RowError(row.row_number, "Unexpected error while importing this row.")
                    )
                    continue

                if product is not None:
                    updated += 1
                else:
                    created += 1

            final_status = (
                ImportJobStatus.COMPLETED
                if created + updated > 0 or not errors
                else ImportJobStatus.FAILED
            )
            await self._finish(
                job,
                final_status,
                total_rows=total_rows,
                created=created,
                updated=updated,
                errors=errors,
            )
        except asyncio.CancelledError:
            logger.warning("Import job cancelled", job_id=job_id, created=created, updated=updated)
            await self.session.rollback()
            await self.session.refresh(job)
            errors.append(RowError(0, "Import cancelled."))
            await self._finish(
                job,
                ImportJobStatus.FAILED,
                total_rows=total_rows,
                created=created,
                updated=updated,
                errors=errors,
            )
            raise
        except Exception as e:
            logger.exception("Import job failed", job_id=job_id)
            await self.session.rollback()
            await self.session.refresh(job)
            job.status = ImportJobStatus.FAILED.value
            job.completed_on = datetime.now(timezone.utc)
            job.error_report = f"Unexpected error: {e}"
            await self.session.commit()

    async def _finish(
        self,
        job: ImportJobModel,
        status: ImportJobStatus,
        total_rows: int,
        created: int,
        updated: int,
        errors: list[RowError],
        summary: str | None = None,
    ) -> None:
        validate_import_transition(job.id, job.status_enum, status)

        job.status = status.value
        job.total_rows = total_rows
        job.created_count = created
        job.updated_count = updated
        job.failed_count = len(errors)
        job.error_report = build_error_report(errors)
        job.summary = summary or build_summary(total_rows, created, updated, len(errors))
        job.completed_on = datetime.now(timezone.utc)
        await self.session.commit()

        logger.info(
            "Import job finished",
            job_id=job.id,
            status=status.value,
            created=created,
            updated=updated,
            failed=len(errors),
        )

    # ------------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------------

    async def get_job(self, job_id: str, seller_id: str) -> ImportJobModel:
        """Get a seller's import job.

        Raises:
            ImportJobNotFoundError: If missing or owned by another seller.
        """
        job = await self.jobs.get_for_seller(job_id, seller_id)
        if job is None:
            raise ImportJobNotFoundError(job_id)
        return job

    async def get_history(self, seller_id: str, limit: int | None = None) -> list[ImportJobModel]:
        """List a seller's import jobs, newest first."""
        jobs = await self.jobs.list_by_seller(seller_id, limit or settings.job_history_limit)
        return list(jobs)

    async def get_error_report(self, job_id: str, seller_id: str) -> tuple[str, bytes] | None:
        """Get a job's error report as a downloadable text file.

        Args:
            job_id: Import job ID.
            seller_id: Seller that owns the job.

        Returns:
            (file name, UTF-8 bytes), or None when the job has no report.

        Raises:
            ImportJobNotFoundError: If missing or owned by another seller.
        """
        job = await self.get_job(job_id, seller_id)
        if not job.error_report or not job.error_report.strip():
            return None

        extension = file_extension(job.file_name)
        base_name = job.file_name[: -len(extension)] if extension else job.file_name
        return f"{base_name}-errors.txt", job.error_report.encode("utf-8")

    async def requeue_pending(self, queue: JobQueue) -> int:
        """Re-enqueue jobs left queued by a previous process.

        Args:
            queue: Import queue.

        Returns:
            Number of re-enqueued jobs.
        """
        job_ids = await self.jobs.list_ids_by_status(ImportJobStatus.QUEUED.value)
        for job_id in job_ids:
            queue.enqueue(job_id)
        if job_ids:
            logger.info("Queued import jobs restored", count=len(job_ids))
        return len(job_ids)

    @staticmethod
    def build_template() -> bytes:
        """Build the header-only CSV template sellers fill in."""
        return (TEMPLATE_HEADER + "\n").encode("utf-8")


async def run_import_job(job_id: str) -> None:
    """Process one import job in its own session (worker entry point)."""
    async with async_session_factory() as session:
        await ProductCatalogImportService(session).process_job(job_id)


# ============================================================================
# Row Parsing
# ============================================================================


def _parse_row(
    raw: RawRow,
    category_lookup: dict[str, Category],
    errors: list[RowError],
) -> ImportRow | None:
    """Validate one raw row, appending at most one error."""
    sku = _text(raw.get("sku"))
    if sku is None:
        errors.append(RowError(raw.row_number, "SKU is required."))
        return None

    title = _text(raw.get("title"))
    if title is None:
        errors.append(RowError(raw.row_number, "Title is required."))
        return None

    price = _parse_decimal(raw.get("price"), PRICE_SCALE)
    if price is None or price <= 0:
        errors.append(RowError(raw.row_number, "Price must be a number greater than zero."))
        return None

    stock = _parse_int(raw.get("stock"))
    if stock is None or stock < 0:
        errors.append(RowError(raw.row_number, "Stock must be zero or a positive whole number."))
        return None

    category_text = _text(raw.get("category"))
    if category_text is None:
        errors.append(RowError(raw.row_number, "Category is required."))
        return None

    category = category_lookup.get(category_text.lower())
    if category is None:
        errors.append(
            RowError(
                raw.row_number,
                f"Category '{category_text}' is not valid. Use the full path from the category tree.",
            )
        )
        return None

    return ImportRow(
        row_number=raw.row_number,
        merchant_sku=sku,
        title=title,
        description=_text(raw.get("description")),
        price=price,
        stock=stock,
        category_id=category.id,
        category_full_path=category.full_path,
        shipping_methods=_text(raw.get("shippingmethods")),
        main_image_url=_text(raw.get("mainimageurl")),
        gallery_image_urls=_text(raw.get("galleryimageurls")),
        weight_kg=_parse_decimal(raw.get("weightkg"), WEIGHT_SCALE),
        length_cm=_parse_decimal(raw.get("lengthcm"), DIMENSION_SCALE),
        width_cm=_parse_decimal(raw.get("widthcm"), DIMENSION_SCALE),
        height_cm=_parse_decimal(raw.get("heightcm"), DIMENSION_SCALE),
    )


def _text(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return value.strip()


def _parse_decimal(value: str | None, scale: Decimal) -> Decimal | None:
    """Parse a plain decimal, rounded to the scale it is stored with."""
    text = _text(value)
    if text is None or not DECIMAL_PATTERN.fullmatch(text):
        return None
    try:
        return Decimal(text).quantize(scale, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return None


def _parse_int(value: str | None) -> int | None:
    text = _text(value)
    if text is None or not INTEGER_PATTERN.fullmatch(text):
        return None
    return int(text)


def _new_product(row: ImportRow, seller_id: str) -> Product:
    product = Product(seller_id=seller_id, workflow_state=ProductWorkflowState.DRAFT.value)
    _apply_row(product, row)
    return product


def _apply_row(product: Product, row: ImportRow) -> None:
    product.merchant_sku = row.merchant_sku
    product.title = row.title
    product.description = row.description
    product.price = row.price
    product.stock = row.stock
    product.category_id = row.category_id
    product.category = row.category_full_path
    product.shipping_methods = row.shipping_methods
    product.main_image_url = row.main_image_url
    product.gallery_image_urls = row.gallery_image_urls
    product.weight_kg = row.weight_kg
    product.length_cm = row.length_cm
    product.width_cm = row.width_cm
    product.height_cm = row.height_cm
