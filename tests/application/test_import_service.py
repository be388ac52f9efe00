"""Tests for the bulk product import service."""

import asyncio
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_engine.application import import_service
from catalog_engine.application.import_service import (
    TEMPLATE_HEADER,
    ProductCatalogImportService,
    RowError,
    build_error_report,
    build_summary,
)
from catalog_engine.application.job_queue import JobQueue
from catalog_engine.catalog.models import Product
from catalog_engine.domain.exceptions import ImportJobNotFoundError
from catalog_engine.domain.state_machines import ImportJobStatus, ProductWorkflowState
from catalog_engine.infrastructure.database import async_session_factory

SELLER = "seller-1"
HEADER = "SKU,Title,Description,Price,Stock,Category,WeightKg"


def _csv(*rows: str) -> bytes:
    return ("\n".join([HEADER, *rows]) + "\n").encode("utf-8")


async def _products(seller_id: str = SELLER) -> dict[str, Product]:
    async with async_session_factory() as fresh:
        result = await fresh.execute(select(Product).where(Product.seller_id == seller_id))
        return {p.merchant_sku: p for p in result.scalars().all()}


@pytest_asyncio.fixture
async def phones(make_category):
    """Create the Electronics / Phones branch."""
    electronics = await make_category("Electronics")
    return await make_category("Phones", parent=electronics)


class TestSummaries:
    """Tests for summary and error report rendering."""

    def test_summary_format(self) -> None:
        """The summary has a fixed format."""
        assert build_summary(3, 1, 1, 1) == "Total: 3, Created: 1, Updated: 1, Failed: 1"

    def test_error_report_sorted_with_job_level_first(self) -> None:
        """Errors are sorted by row; row 0 renders without a prefix."""
        report = build_error_report(
            [RowError(4, "Title is required."), RowError(0, "Import cancelled."), RowError(2, "x")]
        )

        assert report == "Import cancelled.\nRow 2: x\nRow 4: Title is required."

    def test_no_errors_no_report(self) -> None:
        """An empty error list gives no report."""
        assert build_error_report([]) is None

    def test_template(self) -> None:
        """The template is the header line only."""
        template = ProductCatalogImportService.build_template().decode("utf-8")

        assert template == TEMPLATE_HEADER + "\n"
        assert template.startswith("SKU,Title,Description,Price,Stock,Category")


class TestPreview:
    """Tests for import preview."""

    @pytest.mark.asyncio
    async def test_create_update_split(
        self, session: AsyncSession, phones, make_product
    ) -> None:
        """Existing SKUs are updates, matched case-insensitively."""
        await make_product(SELLER, "A-1", phones)
        await make_product("seller-2", "B-1", phones)
        content = _csv(
            "a-1,Phone,,9.99,3,Electronics / Phones,",
            "B-1,Case,,2.50,10,electronics / phones,0.1",
        )

        preview = await ProductCatalogImportService(session).preview(SELLER, content, "c.csv")

        assert not preview.has_errors
        assert preview.total_rows == 2
        assert preview.update_count == 1
        assert preview.create_count == 1
        assert preview.summary == "Total: 2, Created: 1, Updated: 1, Failed: 0"

    @pytest.mark.asyncio
    async def test_row_errors_reported_with_row_numbers(
        self, session: AsyncSession, phones
    ) -> None:
        """Each invalid row reports one error with its row number."""
        content = _csv(
            ",No SKU,,1,1,Electronics / Phones,",
            "A-2,,,1,1,Electronics / Phones,",
            "A-3,Zero price,,0,1,Electronics / Phones,",
            "A-4,Bad stock,,1,-2,Electronics / Phones,",
            "A-5,Fraction stock,,1,1.5,Electronics / Phones,",
            "A-6,No category,,1,1,,",
            "A-7,Unknown category,,1,1,Phones,",
            "A-8,Fine,,1,1,Electronics / Phones,",
            "a-8,Duplicate,,1,1,Electronics / Phones,",
        )

        preview = await ProductCatalogImportService(session).preview(SELLER, content, "c.csv")

        messages = {e.row_number: e.message for e in preview.errors}
        assert messages == {
            2: "SKU is required.",
            3: "Title is required.",
            4: "Price must be a number greater than zero.",
            5: "Stock must be zero or a positive whole number.",
            6: "Stock must be zero or a positive whole number.",
            7: "Category is required.",
            8: "Category 'Phones' is not valid. Use the full path from the category tree.",
            10: "Duplicate SKU 'a-8' in file.",
        }
        assert preview.create_count == 1

    @pytest.mark.asyncio
    async def test_numbers_parsed_strictly_and_rounded(
        self, session: AsyncSession, phones
    ) -> None:
        """Only plain numbers parse; decimals round to their stored scale."""
        content = _csv(
            "A-1,Tiny price,,0.001,1,Electronics / Phones,",
            "A-2,Grouped stock,,1,1_000,Electronics / Phones,",
            "A-3,Grouped price,,1_0.5,1,Electronics / Phones,",
            "A-4,Hex stock,,1,0x10,Electronics / Phones,",
            "A-5,Not a number,,NaN,1,Electronics / Phones,",
            "A-6,Rounded,,0.005,+3,Electronics / Phones,0.2504",
            "A-7,Exponent,,1e2,1,Electronics / Phones,1_0",
        )

        preview = await ProductCatalogImportService(session).preview(SELLER, content, "c.csv")

        messages = {e.row_number: e.message for e in preview.errors}
        assert messages == {
            2: "Price must be a number greater than zero.",
            3: "Stock must be zero or a positive whole number.",
            4: "Price must be a number greater than zero.",
            5: "Stock must be zero or a positive whole number.",
            6: "Price must be a number greater than zero.",
        }
        rows = {row.merchant_sku: row for row in preview.rows}
        assert rows["A-6"].price == Decimal("0.01")
        assert rows["A-6"].stock == 3
        assert rows["A-6"].weight_kg == Decimal("0.250")
        assert rows["A-7"].price == Decimal("100.00")
        assert rows["A-7"].weight_kg is None

    @pytest.mark.asyncio
    async def test_inactive_category_not_resolved(
        self, session: AsyncSession, make_category
    ) -> None:
        """Only active categories resolve."""
        await make_category("Legacy", is_active=False)
        content = _csv("A-1,Phone,,1,1,Legacy,")

        preview = await ProductCatalogImportService(session).preview(SELLER, content, "c.csv")

        assert preview.errors[0].row_number == 2

    @pytest.mark.asyncio
    async def test_blank_rows_skipped_but_counted(
        self, session: AsyncSession, phones
    ) -> None:
        """Blank rows are counted in the total but not validated."""
        content = _csv(",,,,,,", "A-1,Phone,,1,1,Electronics / Phones,")

        preview = await ProductCatalogImportService(session).preview(SELLER, content, "c.csv")

        assert preview.total_rows == 2
        assert not preview.has_errors
        assert preview.create_count == 1

    @pytest.mark.asyncio
    async def test_archived_sku_blocks_row(
        self, session: AsyncSession, phones, make_product
    ) -> None:
        """An archived product's SKU cannot be imported."""
        await make_product(SELLER, "OLD-1", phones, ProductWorkflowState.ARCHIVED)
        content = _csv(
            "old-1,Revived,,1,1,Electronics / Phones,",
            "NEW-1,New,,1,1,Electronics / Phones,",
        )

        preview = await ProductCatalogImportService(session).preview(SELLER, content, "c.csv")

        assert [(e.row_number, e.message) for e in preview.errors] == [
            (
                0,
                "Archived product already uses SKU 'OLD-1'. "
                "Restore or change SKU before importing.",
            )
        ]
        assert [r.merchant_sku for r in preview.rows] == ["NEW-1"]
        assert preview.update_count == 0

    @pytest.mark.asyncio
    async def test_missing_required_columns(self, session: AsyncSession) -> None:
        """Every missing required column is reported."""
        content = b"SKU,Title,Category\nA-1,Phone,General\n"

        preview = await ProductCatalogImportService(session).preview(SELLER, content, "c.csv")

        assert [e.message for e in preview.errors] == [
            "Missing required column: price",
            "Missing required column: stock",
        ]

    @pytest.mark.asyncio
    async def test_no_data_rows(self, session: AsyncSession) -> None:
        """A header-only file is rejected."""
        preview = await ProductCatalogImportService(session).preview(
            SELLER, _csv(), "c.csv"
        )

        assert [e.message for e in preview.errors] == [
            "The file does not contain any data rows."
        ]

    @pytest.mark.asyncio
    async def test_unsupported_file(self, session: AsyncSession) -> None:
        """An unsupported file type is a job-level error."""
        preview = await ProductCatalogImportService(session).preview(SELLER, b"{}", "c.json")

        assert preview.errors[0].row_number == 0
        assert "Unsupported file type" in preview.errors[0].message

    @pytest.mark.asyncio
    async def test_preview_never_writes_products(
        self, session: AsyncSession, phones
    ) -> None:
        """Previewing leaves the inventory untouched."""
        content = _csv("A-1,Phone,,1,1,Electronics / Phones,")

        await ProductCatalogImportService(session).preview(SELLER, content, "c.csv")

        assert await _products() == {}


class TestConfirm:
    """Tests for pending jobs and confirmation."""

    @pytest.mark.asyncio
    async def test_clean_preview_creates_pending_job(
        self, session: AsyncSession, phones
    ) -> None:
        """A clean preview persists a job awaiting confirmation."""
        service = ProductCatalogImportService(session)

        preview, job = await service.create_pending_job(
            SELLER, _csv("A-1,Phone,,1,1,Electronics / Phones,"), "catalog.csv"
        )

        assert job is not None
        assert job.status == ImportJobStatus.PENDING_CONFIRMATION.value
        assert job.created_count == 1
        assert job.summary == preview.summary
        assert job.template_version == "v1"
        assert job.content_type == "text/csv"

    @pytest.mark.asyncio
    async def test_preview_with_errors_creates_no_job(self, session: AsyncSession) -> None:
        """A preview with errors creates no job."""
        service = ProductCatalogImportService(session)

        preview, job = await service.create_pending_job(
            SELLER, _csv("A-1,,,1,1,Nowhere,"), "catalog.csv"
        )

        assert preview.has_errors
        assert job is None
        assert await service.get_history(SELLER) == []

    @pytest.mark.asyncio
    async def test_confirm_enqueues_once(self, session: AsyncSession, phones) -> None:
        """Confirmation queues the job exactly once."""
        queue = JobQueue("imports")
        service = ProductCatalogImportService(session, queue=queue)
        _, job = await service.create_pending_job(
            SELLER, _csv("A-1,Phone,,1,1,Electronics / Phones,"), "catalog.csv"
        )

        assert await service.confirm(job.id, SELLER) is True
        assert await service.confirm(job.id, SELLER) is False
        assert queue.size == 1
        assert await queue.dequeue() == job.id
        assert (await service.get_job(job.id, SELLER)).status == ImportJobStatus.QUEUED.value

    @pytest.mark.asyncio
    async def test_confirm_other_seller_rejected(self, session: AsyncSession, phones) -> None:
        """A seller cannot confirm another seller's job."""
        service = ProductCatalogImportService(session, queue=JobQueue("imports"))
        _, job = await service.create_pending_job(
            SELLER, _csv("A-1,Phone,,1,1,Electronics / Phones,"), "catalog.csv"
        )

        assert await service.confirm(job.id, "seller-2") is False
        assert await service.confirm("missing", SELLER) is False

    @pytest.mark.asyncio
    async def test_get_job_scoped_to_seller(self, session: AsyncSession, phones) -> None:
        """Jobs of other sellers are not found."""
        service = ProductCatalogImportService(session)
        _, job = await service.create_pending_job(
            SELLER, _csv("A-1,Phone,,1,1,Electronics / Phones,"), "catalog.csv"
        )

        with pytest.raises(ImportJobNotFoundError):
            await service.get_job(job.id, "seller-2")

    @pytest.mark.asyncio
    async def test_history_limit(self, session: AsyncSession, phones) -> None:
        """History is limited and scoped to the seller."""
        service = ProductCatalogImportService(session)
        for index in range(3):
            await service.create_pending_job(
                SELLER, _csv(f"A-{index},Phone,,1,1,Electronics / Phones,"), f"c{index}.csv"
            )
        await service.create_pending_job(
            "seller-2", _csv("B-1,Phone,,1,1,Electronics / Phones,"), "other.csv"
        )

        assert len(await service.get_history(SELLER)) == 3
        assert len(await service.get_history(SELLER, limit=2)) == 2

    @pytest.mark.asyncio
    async def test_requeue_pending(self, session: AsyncSession, phones) -> None:
        """Queued jobs are restored into a fresh queue."""
        service = ProductCatalogImportService(session, queue=JobQueue("old"))
        _, queued = await service.create_pending_job(
            SELLER, _csv("A-1,Phone,,1,1,Electronics / Phones,"), "a.csv"
        )
        await service.create_pending_job(
            SELLER, _csv("A-2,Phone,,1,1,Electronics / Phones,"), "b.csv"
        )
        await service.confirm(queued.id, SELLER)

        fresh_queue = JobQueue("imports")
        restored = await service.requeue_pending(fresh_queue)

        assert restored == 1
        assert await fresh_queue.dequeue() == queued.id


async def _queued_job(session: AsyncSession, content: bytes, file_name: str = "catalog.csv"):
    service = ProductCatalogImportService(session, queue=JobQueue("imports"))
    _, job = await service.create_pending_job(SELLER, content, file_name)
    assert job is not None
    await service.confirm(job.id, SELLER)
    return service, job


class TestProcessJob:
    """Tests for applying confirmed imports."""

    @pytest.mark.asyncio
    async def test_applies_creates_and_updates(
        self, session: AsyncSession, phones, make_product
    ) -> None:
        """Rows create draft products or update existing ones."""
        await make_product(SELLER, "A-1", phones, title="Old title", stock=1)
        service, job = await _queued_job(
            session,
            _csv(
                "A-1,New title,Updated,12.50,7,Electronics / Phones,",
                "A-2,Case,,3,0,Electronics / Phones,0.25",
            ),
        )

        await service.process_job(job.id)

        job = await service.get_job(job.id, SELLER)
        assert job.status == ImportJobStatus.COMPLETED.value
        assert job.summary == "Total: 2, Created: 1, Updated: 1, Failed: 0"
        assert job.error_report is None
        assert job.completed_on is not None

        products = await _products()
        assert products["A-1"].title == "New title"
        assert products["A-1"].stock == 7
        assert products["A-1"].workflow_state == ProductWorkflowState.ACTIVE.value
        assert products["A-2"].workflow_state == ProductWorkflowState.DRAFT.value
        assert products["A-2"].category == "Electronics / Phones"
        assert products["A-2"].weight_kg == Decimal("0.25")

    @pytest.mark.asyncio
    async def test_sub_cent_price_never_stored_as_zero(
        self, session: AsyncSession, phones
    ) -> None:
        """A price that rounds to zero is rejected; others are stored rounded."""
        service = ProductCatalogImportService(session, queue=JobQueue("imports"))
        preview, job = await service.create_pending_job(
            SELLER, _csv("P-1,Cheap,,0.001,1,Electronics / Phones,"), "c.csv"
        )

        assert job is None
        assert [e.message for e in preview.errors] == [
            "Price must be a number greater than zero."
        ]

        service, job = await _queued_job(
            session, _csv("P-2,Cheap,,0.005,1,Electronics / Phones,1.0006")
        )
        await service.process_job(job.id)

        products = await _products()
        assert "P-1" not in products
        assert products["P-2"].price == Decimal("0.01")
        assert products["P-2"].weight_kg == Decimal("1.001")

    @pytest.mark.asyncio
    async def test_revalidates_against_current_data(
        self, session: AsyncSession, phones, make_category
    ) -> None:
        """Categories deactivated after confirmation fail their rows."""
        fashion = await make_category("Fashion")
        service, job = await _queued_job(
            session,
            _csv(
                "A-1,Phone,,1,1,Electronics / Phones,",
                "A-2,Scarf,,1,1,Fashion,",
            ),
        )
        fashion.is_active = False
        await session.commit()

        await service.process_job(job.id)

        job = await service.get_job(job.id, SELLER)
        assert job.status == ImportJobStatus.COMPLETED.value
        assert job.created_count == 1
        assert job.failed_count == 1
        assert job.error_report == (
            "Row 3: Category 'Fashion' is not valid. Use the full path from the category tree."
        )
        assert set(await _products()) == {"A-1"}

    @pytest.mark.asyncio
    async def test_nothing_left_to_apply_fails_job(
        self, session: AsyncSession, phones, make_product
    ) -> None:
        """A job whose every row became invalid fails."""
        service, job = await _queued_job(session, _csv("A-1,Phone,,1,1,Electronics / Phones,"))
        await make_product(SELLER, "A-1", phones, ProductWorkflowState.ARCHIVED)

        await service.process_job(job.id)

        job = await service.get_job(job.id, SELLER)
        assert job.status == ImportJobStatus.FAILED.value
        assert job.summary == "No rows imported."
        assert "Archived product already uses SKU 'A-1'" in job.error_report

    @pytest.mark.asyncio
    async def test_failing_row_does_not_stop_siblings(
        self, session: AsyncSession, phones, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """An unexpected error on one row is reported and the rest apply."""
        original = import_service._apply_row

        def flaky_apply(product, row):
            if row.merchant_sku == "BAD-1":
                raise RuntimeError("storage hiccup")
            original(product, row)

        monkeypatch.setattr(import_service, "_apply_row", flaky_apply)
        service, job = await _queued_job(
            session,
            _csv(
                "A-1,Phone,,1,1,Electronics / Phones,",
                "BAD-1,Broken,,1,1,Electronics / Phones,",
                "A-3,Case,,1,1,Electronics / Phones,",
            ),
        )

        await service.process_job(job.id)

        job = await service.get_job(job.id, SELLER)
        assert job.status == ImportJobStatus.COMPLETED.value
        assert job.summary == "Total: 3, Created: 2, Updated: 0, Failed: 1"
        assert job.error_report == "Row 3: Unexpected error while importing this row."
        assert set(await _products()) == {"A-1", "A-3"}

    @pytest.mark.asyncio
    async def test_cancellation_marks_job_failed(
        self, session: AsyncSession, phones, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Cancellation keeps applied rows, fails the job and propagates."""
        original = import_service._apply_row

        def cancel_on_second(product, row):
            if row.merchant_sku == "A-2":
                raise asyncio.CancelledError()
            original(product, row)

        monkeypatch.setattr(import_service, "_apply_row", cancel_on_second)
        service, job = await _queued_job(
            session,
            _csv(
                "A-1,Phone,,1,1,Electronics / Phones,",
                "A-2,Case,,1,1,Electronics / Phones,",
            ),
        )

        with pytest.raises(asyncio.CancelledError):
            await service.process_job(job.id)

        job = await service.get_job(job.id, SELLER)
        assert job.status == ImportJobStatus.FAILED.value
        assert job.created_count == 1
        assert job.error_report == "Import cancelled."
        assert set(await _products()) == {"A-1"}

    @pytest.mark.asyncio
    async def test_only_queued_jobs_are_processed(self, session: AsyncSession, phones) -> None:
        """Pending and finished jobs are skipped."""
        service = ProductCatalogImportService(session, queue=JobQueue("imports"))
        _, job = await service.create_pending_job(
            SELLER, _csv("A-1,Phone,,1,1,Electronics / Phones,"), "catalog.csv"
        )

        await service.process_job(job.id)

        assert (await service.get_job(job.id, SELLER)).status == (
            ImportJobStatus.PENDING_CONFIRMATION.value
        )
        assert await _products() == {}

    @pytest.mark.asyncio
    async def test_missing_job_is_ignored(self, session: AsyncSession) -> None:
        """Processing an unknown job does nothing."""
        await ProductCatalogImportService(session).process_job("missing")

    @pytest.mark.asyncio
    async def test_error_report_download(
        self, session: AsyncSession, phones, make_category
    ) -> None:
        """The error report is named after the uploaded file."""
        fashion = await make_category("Fashion")
        service, job = await _queued_job(
            session,
            _csv("A-1,Phone,,1,1,Electronics / Phones,", "A-2,Scarf,,1,1,Fashion,"),
            file_name="spring.catalog.csv",
        )
        fashion.is_active = False
        await session.commit()
        await service.process_job(job.id)

        file_name, content = await service.get_error_report(job.id, SELLER)

        assert file_name == "spring.catalog-errors.txt"
        assert content.decode("utf-8").startswith("Row 3:")

    @pytest.mark.asyncio
    async def test_no_error_report_for_clean_job(self, session: AsyncSession, phones) -> None:
        """Clean jobs have no error report."""
        service, job = await _queued_job(session, _csv("A-1,Phone,,1,1,Electronics / Phones,"))
        await service.process_job(job.id)

        assert await service.get_error_report(job.id, SELLER) is None
