"""Job record repositories.

Generic create/read/list access to import and export job records. The
job record is authoritative; queues only carry IDs.
"""

from collections.abc import Sequence
from typing import Generic, TypeVar

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_engine.infrastructure.models import ExportJobModel, ImportJobModel

JobT = TypeVar("JobT", ImportJobModel, ExportJobModel)


class JobRepository(Generic[JobT]):
    """Repository for one kind of job record.

    Example usage:
        repo = ImportJobRepository(session)
        job = await repo.get_for_seller(job_id, seller_id)
    """

    model: type[JobT]

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    async def add(self, job: JobT) -> JobT:
        """Add a job record and flush.

        Args:
            job: Job record.

        Returns:
            Saved job record.
        """
        self.session.add(job)
        await self.session.flush()
        return job

    async def get(self, job_id: str) -> JobT | None:
        """Get a job by ID.

        Args:
            job_id: Job ID.

        Returns:
            Job record if found.
        """
        result = await self.session.execute(select(self.model).where(self.model.id == job_id))
        return result.scalar_one_or_none()

    async def get_for_seller(self, job_id: str, seller_id: str) -> JobT | None:
        """Get a job by ID, scoped to its owning seller.

        Args:
            job_id: Job ID.
            seller_id: Seller ID.

        Returns:
            Job record if found and owned by the seller.
        """
        query = select(self.model).where(
            and_(self.model.id == job_id, self.model.seller_id == seller_id)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_by_seller(self, seller_id: str, limit: int = 50) -> Sequence[JobT]:
        """List a seller's jobs, newest first.

        Args:
            seller_id: Seller ID.
            limit: Maximum results.

        Returns:
            Sequence of job records.
        """
        query = (
            select(self.model)
            .where(self.model.seller_id == seller_id)
            .order_by(self.model.created_on.desc())
            .limit(limit)
        )
        result = await self.session.execute(query)
        return result.scalars().all()

    async def list_ids_by_status(self, status: str) -> list[str]:
        """List job IDs in a given status, oldest first.

        Args:
            status: Status value.

        Returns:
            Job IDs.
        """
        query = (
            select(self.model.id)
            .where(self.model.status == status)
            .order_by(self.model.created_on.asc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())


class ImportJobRepository(JobRepository[ImportJobModel]):
    """Repository for product import jobs."""

    model = ImportJobModel


class ExportJobRepository(JobRepository[ExportJobModel]):
    """Repository for product export jobs."""

    model = ExportJobModel
