"""SQLAlchemy models for job records.

Provides ORM models for product import and export jobs. The job record
is the source of truth for job state; the in-memory queue only carries
job identifiers.
"""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    LargeBinary,
    String,
    Text,
)

from catalog_engine.domain.state_machines import ExportJobStatus, ImportJobStatus
from catalog_engine.infrastructure.database import Base


# ============================================================================
# Import Job Model
# ============================================================================


class ImportJobModel(Base):
    """Bulk product import job.

    Created after a successful preview in ``pending_confirmation`` and
    carries the uploaded file so the worker can re-validate it.
    """

    __tablename__ = "product_import_jobs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    seller_id = Column(String(100), nullable=False, index=True)
    file_name = Column(String(200), nullable=False)
    content_type = Column(String(128), nullable=True)
    file_content = Column(LargeBinary, nullable=True)
    status = Column(
        String(32),
        nullable=False,
        default=ImportJobStatus.PENDING_CONFIRMATION.value,
        index=True,
    )

    # Counters
    total_rows = Column(Integer, nullable=False, default=0)
    created_count = Column(Integer, nullable=False, default=0)
    updated_count = Column(Integer, nullable=False, default=0)
    failed_count = Column(Integer, nullable=False, default=0)

    # Reporting
    summary = Column(String(4000), nullable=True)
    error_report = Column(Text, nullable=True)
    template_version = Column(String(32), nullable=False, default="v1")

    # Timestamps
    created_on = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
    completed_on = Column(DateTime(timezone=True), nullable=True)

    @property
    def status_enum(self) -> ImportJobStatus:
        """Get status as enum."""
        return ImportJobStatus(self.status)


# ============================================================================
# Export Job Model
# ============================================================================


class ExportJobModel(Base):
    """Catalog export job.

    Holds the rendered file once completed; a failed job never keeps
    partial content.
    """

    __tablename__ = "product_export_jobs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    seller_id = Column(String(100), nullable=False, index=True)
    format = Column(String(16), nullable=False, default="csv")
    status = Column(
        String(32),
        nullable=False,
        default=ExportJobStatus.QUEUED.value,
        index=True,
    )

    # Filters
    use_filters = Column(Boolean, nullable=False, default=False)
    search = Column(String(200), nullable=True)
    workflow_state = Column(String(32), nullable=True)

    # Output
    total_products = Column(Integer, nullable=False, default=0)
    file_name = Column(String(200), nullable=False)
    content_type = Column(String(128), nullable=True)
    file_content = Column(LargeBinary, nullable=True)
    summary = Column(String(4000), nullable=True)
    error = Column(Text, nullable=True)

    # Timestamps
    created_on = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
    completed_on = Column(DateTime(timezone=True), nullable=True)

    @property
    def status_enum(self) -> ExportJobStatus:
        """Get status as enum."""
        return ExportJobStatus(self.status)
