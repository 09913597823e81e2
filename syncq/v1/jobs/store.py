"""
SQL persistence for job rows.

Every write is a single statement guarded by the row's current status, so
concurrent workers sharing one database can never both apply a transition.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import Select, desc, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from syncq.config.logging import get_logger
from syncq.infra.database import Database
from syncq.v1.core.exceptions import StoreError
from syncq.v1.jobs.models import JobRecord, JobStatus

logger = get_logger(__name__)


class JobStore:
    """Raw CRUD and conditional-update operations on the job table."""

    def __init__(self, database: Database):
        self.database = database

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self.database.SessionLocal() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error("Job store operation failed", operation=operation, error=str(e))
            raise StoreError(
                f"Failed to {operation} job: {e}", details={"operation": operation}
            ) from e

    async def insert(self, record: JobRecord) -> None:
        async with self._session("insert") as session:
            session.add(record)
            await session.commit()

    async def get(self, job_id: str) -> JobRecord | None:
        async with self._session("load") as session:
            return await session.get(JobRecord, job_id)

    async def claim(self, candidate: Select, started_at: int) -> JobRecord | None:
        """
        Move the row selected by ``candidate`` from pending to running.

        ``candidate`` must select a single job id. The selection and the
        status change happen in one UPDATE statement; a row that another
        caller claimed first fails the status guard and nothing is returned.
        """
        stmt = (
            update(JobRecord)
            .where(
                JobRecord.id == candidate.correlate(None).scalar_subquery(),
                JobRecord.status == JobStatus.PENDING.value,
            )
            .values(status=JobStatus.RUNNING.value, started_at=started_at)
            .returning(JobRecord)
            .execution_options(synchronize_session=False)
        )
        async with self._session("claim") as session:
            result = await session.execute(stmt)
            record = result.scalar_one_or_none()
            await session.commit()
            return record

    async def transition(
        self, job_id: str, expected: JobStatus, **values: Any
    ) -> bool:
        """Update a job only if it is still in ``expected`` status."""
        stmt = (
            update(JobRecord)
            .where(JobRecord.id == job_id, JobRecord.status == expected.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        async with self._session("update") as session:
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount == 1

    async def count_by_status(self) -> list[tuple[str, bool, int]]:
        """
        Count jobs per status, split by whether they were ever retried.

        One grouped query, so the counts come from a single snapshot.
        """
        retried = (JobRecord.retry_count > 0).label("retried")
        async with self._session("count") as session:
            result = await session.execute(
                select(JobRecord.status, retried, func.count(JobRecord.id)).group_by(
                    JobRecord.status, retried
                )
            )
            return [(status, bool(was_retried), count) for status, was_retried, count in result.all()]

    async def list_records(
        self,
        status: JobStatus | None = None,
        job_type: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[JobRecord]:
        query = select(JobRecord)
        if status:
            query = query.where(JobRecord.status == status.value)
        if job_type:
            query = query.where(JobRecord.type == job_type)
        query = (
            query.order_by(desc(JobRecord.created_at), desc(JobRecord.id))
            .limit(limit)
            .offset(offset)
        )

        async with self._session("list") as session:
            result = await session.execute(query)
            return list(result.scalars().all())
