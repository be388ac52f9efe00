"""Tests for the catalog export service."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_engine.application import export_service
from catalog_engine.application.export_service import (
    ProductCatalogExportService,
    build_file_name,
    escape_csv_value,
    render_csv,
)
from catalog_engine.application.job_queue import JobQueue
from catalog_engine.catalog.models import Product
from catalog_engine.domain.exceptions import ExportJobNotFoundError
from catalog_engine.domain.state_machines import ExportJobStatus, ProductWorkflowState
from catalog_engine.domain.value_objects import ExportFormat, ExportOptions

SELLER = "seller-1"
HEADER_LINE = (
    "sku,title,description,price,stock,category,shippingmethods,"
    "mainimageurl,galleryimageurls,weightkg,lengthcm,widthcm,heightcm"
)


@pytest_asyncio.fixture
async def catalog(make_category, make_product):
    """Create a small catalog for SELLER plus noise from another seller."""
    phones = await make_category("Phones")
    await make_product(
        SELLER,
        "B-2",
        phones,
        title='Case, "red"',
        price=Decimal("4.50"),
        stock=3,
        description="Line one\nline two",
    )
    await make_product(
        SELLER, "A-1", phones, title="Phone", price=Decimal("199.00"), stock=2,
        weight_kg=Decimal("1.500"),
    )
    await make_product(SELLER, "C-3", phones, ProductWorkflowState.ARCHIVED, title="Old phone")
    await make_product(SELLER, "D-4", phones, ProductWorkflowState.DRAFT, title="Draft phone")
    await make_product("seller-2", "A-0", phones, title="Not mine")
    return phones


class TestRendering:
    """Tests for CSV rendering helpers."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("plain", "plain"),
            ("a,b", '"a,b"'),
            ('say "hi"', '"say ""hi"""'),
            ("two\nlines", '"two\nlines"'),
            ("carriage\rreturn", '"carriage\rreturn"'),
            ("", ""),
            (None, ""),
        ],
    )
    def test_escape(self, raw: str | None, expected: str) -> None:
        """Fields with separators are quoted and quotes doubled."""
        assert escape_csv_value(raw) == expected

    def test_file_name(self) -> None:
        """File names are timestamped with the format extension."""
        now = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

        assert build_file_name(ExportFormat.XLS, now) == "products-export-20260102030405.xls"
        assert build_file_name(ExportFormat.CSV, now).endswith(".csv")

    def test_render_empty(self) -> None:
        """No products renders the header line only."""
        assert render_csv([]) == (HEADER_LINE + "\n").encode("utf-8")

    def test_render_row(self) -> None:
        """Each product renders one line in header order."""
        product = Product(
            merchant_sku="A-1",
            title="Phone",
            price=Decimal("9.90"),
            stock=0,
            category="Electronics / Phones",
            shipping_methods="Courier,Pickup",
            height_cm=Decimal("12.5"),
        )

        lines = render_csv([product]).decode("utf-8").splitlines()

        assert lines[0] == HEADER_LINE
        assert lines[1] == 'A-1,Phone,,9.90,0,Electronics / Phones,"Courier,Pickup",,,,,,12.5'

    def test_no_byte_order_mark(self) -> None:
        """Output is plain UTF-8."""
        assert not render_csv([]).startswith(b"\xef\xbb\xbf")


class TestQueueExport:
    """Tests for queueing exports."""

    @pytest.mark.asyncio
    async def test_full_catalog_job(self, session: AsyncSession) -> None:
        """An unfiltered export is queued with its file name and content type."""
        queue = JobQueue("exports")
        service = ProductCatalogExportService(session, queue=queue)

        job = await service.queue_export(SELLER, ExportOptions(format="csv"))

        assert job.status == ExportJobStatus.QUEUED.value
        assert job.summary == "Queued export to CSV for full catalog."
        assert job.content_type == "text/csv"
        assert job.file_name.startswith("products-export-")
        assert job.file_name.endswith(".csv")
        assert await queue.dequeue() == job.id

    @pytest.mark.asyncio
    async def test_filtered_job_summary(self, session: AsyncSession) -> None:
        """Filters are normalized and named in the summary."""
        service = ProductCatalogExportService(session)

        job = await service.queue_export(
            SELLER,
            ExportOptions(format="XLS", use_filters=True, search=" phone ", workflow_state="Active"),
        )

        assert job.format == "xls"
        assert job.content_type == "application/vnd.ms-excel"
        assert job.search == "phone"
        assert job.workflow_state == "active"
        assert job.summary == "Queued export to XLS with search: phone, state: active."

    @pytest.mark.asyncio
    async def test_unknown_inputs_normalized(self, session: AsyncSession) -> None:
        """Unknown formats become CSV and unknown states are dropped."""
        service = ProductCatalogExportService(session)

        job = await service.queue_export(
            SELLER, ExportOptions(format="pdf", use_filters=True, workflow_state="gone")
        )

        assert job.format == "csv"
        assert job.workflow_state is None
        assert job.summary == "Queued export to CSV with current filters."

    @pytest.mark.asyncio
    async def test_filters_ignored_without_flag(self, session: AsyncSession) -> None:
        """Search and state are not stored unless filters are used."""
        service = ProductCatalogExportService(session)

        job = await service.queue_export(
            SELLER, ExportOptions(search="phone", workflow_state="draft")
        )

        assert job.search is None
        assert job.workflow_state is None
        assert job.summary == "Queued export to CSV for full catalog."


class TestProcessJob:
    """Tests for rendering export jobs."""

    @pytest.mark.asyncio
    async def test_full_catalog_export(self, session: AsyncSession, catalog) -> None:
        """Non-archived products of the seller are exported ordered by SKU."""
        service = ProductCatalogExportService(session)
        job = await service.queue_export(SELLER, ExportOptions())

        await service.process_job(job.id)

        job = await service.get_file(job.id, SELLER)
        assert job is not None
        assert job.status == ExportJobStatus.COMPLETED.value
        assert job.total_products == 3
        assert job.summary == "Exported 3 full catalog to CSV."
        assert job.completed_on is not None

        text = job.file_content.decode("utf-8")
        assert text.startswith(HEADER_LINE + "\n")
        assert text.endswith("\n")
        assert "A-1,Phone,,199.00,2,Phones,,,,1.500,,,\n" in text
        assert 'B-2,"Case, ""red""","Line one\nline two",4.50,3,Phones,' in text
        assert "C-3" not in text
        assert "A-0" not in text
        assert text.index("A-1") < text.index("B-2") < text.index("D-4")

    @pytest.mark.asyncio
    async def test_filtered_export(self, session: AsyncSession, catalog) -> None:
        """Filtered exports honor search and workflow state."""
        service = ProductCatalogExportService(session)
        job = await service.queue_export(
            SELLER, ExportOptions(use_filters=True, workflow_state="archived")
        )

        await service.process_job(job.id)

        job = await service.get_file(job.id, SELLER)
        lines = job.file_content.decode("utf-8").splitlines()
        assert [line.split(",")[0] for line in lines[1:]] == ["C-3"]
        assert job.summary == "Exported 1 filtered products to CSV."

    @pytest.mark.asyncio
    async def test_search_filter(self, session: AsyncSession, catalog) -> None:
        """Search matches titles case-insensitively."""
        service = ProductCatalogExportService(session)
        job = await service.queue_export(SELLER, ExportOptions(use_filters=True, search="DRAFT"))

        await service.process_job(job.id)

        job = await service.get_file(job.id, SELLER)
        assert job.total_products == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("search", ["%", "_", "A_1", "Ph%ne"])
    async def test_search_wildcards_match_literally(
        self, session: AsyncSession, catalog, search: str
    ) -> None:
        """Percent and underscore in a search are plain characters."""
        service = ProductCatalogExportService(session)
        job = await service.queue_export(SELLER, ExportOptions(use_filters=True, search=search))

        await service.process_job(job.id)

        job = await service.get_file(job.id, SELLER)
        assert job.status == ExportJobStatus.COMPLETED.value
        assert job.total_products == 0

    @pytest.mark.asyncio
    async def test_rendering_is_deterministic(self, session: AsyncSession, catalog) -> None:
        """The same data renders the same bytes."""
        service = ProductCatalogExportService(session)
        first = await service.queue_export(SELLER, ExportOptions())
        second = await service.queue_export(SELLER, ExportOptions(format="xls"))

        await service.process_job(first.id)
        await service.process_job(second.id)

        first = await service.get_file(first.id, SELLER)
        second = await service.get_file(second.id, SELLER)
        assert first.file_content == second.file_content
        assert second.summary == "Exported 3 full catalog to XLS."

    @pytest.mark.asyncio
    async def test_failure_keeps_no_file(
        self, session: AsyncSession, catalog, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A rendering failure marks the job failed with the error message."""

        def broken_render(products):
            raise RuntimeError("disk full")

        monkeypatch.setattr(export_service, "render_csv", broken_render)
        service = ProductCatalogExportService(session)
        job = await service.queue_export(SELLER, ExportOptions())

        await service.process_job(job.id)

        job = await service.get_job(job.id, SELLER)
        assert job.status == ExportJobStatus.FAILED.value
        assert job.error == "disk full"
        assert job.summary == "Export failed."
        assert job.file_content is None
        assert await service.get_file(job.id, SELLER) is None

    @pytest.mark.asyncio
    async def test_file_not_ready_before_processing(self, session: AsyncSession) -> None:
        """Queued jobs have no file yet."""
        service = ProductCatalogExportService(session)
        job = await service.queue_export(SELLER, ExportOptions())

        assert await service.get_file(job.id, SELLER) is None

    @pytest.mark.asyncio
    async def test_finished_job_not_reprocessed(self, session: AsyncSession, catalog) -> None:
        """Processing a completed job again changes nothing."""
        service = ProductCatalogExportService(session)
        job = await service.queue_export(SELLER, ExportOptions())
        await service.process_job(job.id)
        completed_on = (await service.get_job(job.id, SELLER)).completed_on

        await service.process_job(job.id)

        assert (await service.get_job(job.id, SELLER)).completed_on == completed_on

    @pytest.mark.asyncio
    async def test_jobs_scoped_to_seller(self, session: AsyncSession) -> None:
        """Another seller's job is not found."""
        service = ProductCatalogExportService(session)
        job = await service.queue_export(SELLER, ExportOptions())

        with pytest.raises(ExportJobNotFoundError):
            await service.get_job(job.id, "seller-2")
        assert await service.get_history("seller-2") == []
        assert [j.id for j in await service.get_history(SELLER)] == [job.id]

    @pytest.mark.asyncio
    async def test_requeue_pending(self, session: AsyncSession, catalog) -> None:
        """Only still-queued jobs are restored."""
        service = ProductCatalogExportService(session)
        done = await service.queue_export(SELLER, ExportOptions())
        waiting = await service.queue_export(SELLER, ExportOptions())
        await service.process_job(done.id)

        queue = JobQueue("exports")
        assert await service.requeue_pending(queue) == 1
        assert await queue.dequeue() == waiting.id
