"""
Job queue façade: enqueue, claim and resolve jobs.
"""

import json
import time
import uuid
from collections.abc import Callable, Mapping
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import aliased

from syncq.config.logging import get_logger
from syncq.v1.core.exceptions import NotFoundError, ValidationError
from syncq.v1.jobs.models import JobPriority, JobRecord, JobStatus, JobType
from syncq.v1.jobs.schemas import Job, JobQueueStats, JobResult
from syncq.v1.jobs.store import JobStore

logger = get_logger(__name__)

Clock = Callable[[], int]


def epoch_ms() -> int:
    return time.time_ns() // 1_000_000


class JobQueue:
    """
    Persistent priority queue of jobs.

    Eligible jobs are claimed highest priority first and oldest first within
    a priority band. Claiming, completing, failing and rescheduling are each
    one conditional update, so several workers may share the same store.
    """

    def __init__(
        self,
        store: JobStore,
        default_max_retries: int = 3,
        clock: Clock | None = None,
    ):
        self.store = store
        self.default_max_retries = default_max_retries
        self.clock = clock or epoch_ms

    async def enqueue(
        self,
        job_type: JobType | str,
        priority: JobPriority | str = JobPriority.NORMAL,
        payload: Mapping[str, Any] | None = None,
        max_retries: int | None = None,
        delay_ms: int = 0,
    ) -> str:
        """
        Add a pending job and return its id.

        Raises:
            ValidationError: unknown type or priority, bad payload or limits
            StoreError: the job could not be persisted
        """
        job_type = _parse_enum(JobType, job_type, "type")
        priority = _parse_enum(JobPriority, priority, "priority")

        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ValidationError(
                "Job payload must be a mapping",
                details={"payload_type": type(payload).__name__},
            )
        try:
            json.dumps(payload)
        except (TypeError, ValueError) as e:
            raise ValidationError(
                f"Job payload is not JSON serializable: {e}", details={"field": "payload"}
            ) from None
        if max_retries is None:
            max_retries = self.default_max_retries
        if max_retries < 0:
            raise ValidationError(
                f"max_retries must be >= 0, got: {max_retries}",
                details={"field": "max_retries"},
            )
        if delay_ms < 0:
            raise ValidationError(
                f"delay_ms must be >= 0, got: {delay_ms}", details={"field": "delay_ms"}
            )

        now = self.clock()
        job_id = f"job_{now}_{uuid.uuid4().hex[:10]}"
        await self.store.insert(
            JobRecord(
                id=job_id,
                type=job_type.value,
                priority=priority.rank,
                payload=dict(payload),
                created_at=now,
                scheduled_for=now + delay_ms,
                retry_count=0,
                max_retries=max_retries,
                status=JobStatus.PENDING.value,
            )
        )

        logger.info(
            "Job enqueued",
            job_id=job_id,
            job_type=job_type.value,
            priority=priority.value,
            max_retries=max_retries,
            delay_ms=delay_ms,
        )
        return job_id

    async def dequeue(self, type_filter: JobType | str | None = None) -> Job | None:
        """Claim the best eligible pending job, or return None."""
        now = self.clock()
        candidate_row = aliased(JobRecord)
        candidate = select(candidate_row.id).where(
            candidate_row.status == JobStatus.PENDING.value,
            candidate_row.scheduled_for <= now,
        )
        if type_filter is not None:
            job_type = _parse_enum(JobType, type_filter, "type")
            candidate = candidate.where(candidate_row.type == job_type.value)
        candidate = candidate.order_by(
            candidate_row.priority.desc(),
            candidate_row.created_at.asc(),
            candidate_row.id.asc(),
        ).limit(1)

        record = await self.store.claim(candidate, started_at=now)
        if record is None:
            return None

        job = Job.from_record(record)
        logger.debug(
            "Job claimed",
            job_id=job.id,
            job_type=job.type,
            priority=job.priority.value,
            retry_count=job.retry_count,
        )
        return job

    async def mark_completed(self, job_id: str, result: JobResult) -> bool:
        """
        Record a successful run.

        Only a running job is updated; repeating the call is a no-op that
        leaves the stored duration and result untouched.
        """
        updated = await self.store.transition(
            job_id,
            JobStatus.RUNNING,
            status=JobStatus.COMPLETED.value,
            completed_at=self.clock(),
            duration_ms=result.duration_ms,
            result=result.result,
        )
        if not updated:
            logger.warning("Ignoring completion of job that is not running", job_id=job_id)
        return updated

    async def mark_failed(self, job_id: str, error: str) -> bool:
        """Move a running job to the terminal failed state."""
        updated = await self.store.transition(
            job_id,
            JobStatus.RUNNING,
            status=JobStatus.FAILED.value,
            completed_at=self.clock(),
            last_error=error,
        )
        if not updated:
            logger.warning("Ignoring failure of job that is not running", job_id=job_id)
        return updated

    async def reschedule(
        self, job_id: str, delay_ms: int, error: str | None = None
    ) -> bool:
        """Return a running job to pending after ``delay_ms``, counting a retry."""
        if delay_ms < 0:
            raise ValidationError(
                f"delay_ms must be >= 0, got: {delay_ms}", details={"field": "delay_ms"}
            )

        values: dict[str, Any] = {
            "status": JobStatus.PENDING.value,
            "scheduled_for": self.clock() + delay_ms,
            "retry_count": JobRecord.retry_count + 1,
        }
        if error is not None:
            values["last_error"] = error

        updated = await self.store.transition(job_id, JobStatus.RUNNING, **values)
        if not updated:
            logger.warning("Ignoring reschedule of job that is not running", job_id=job_id)
        return updated

    async def get_stats(self) -> JobQueueStats:
        counts = dict.fromkeys(("pending", "running", "completed", "failed", "retrying"), 0)
        for status, retried, count in await self.store.count_by_status():
            if status == JobStatus.PENDING.value and retried:
                counts["retrying"] += count
            elif status in counts:
                counts[status] += count
        return JobQueueStats(**counts)

    async def get_job(self, job_id: str) -> Job:
        record = await self.store.get(job_id)
        if record is None:
            raise NotFoundError(f"Job not found: {job_id}", details={"job_id": job_id})
        return Job.from_record(record)

    async def list_jobs(
        self,
        status: JobStatus | None = None,
        job_type: JobType | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Job]:
        """List jobs newest first."""
        records = await self.store.list_records(
            status=status,
            job_type=job_type.value if job_type else None,
            limit=limit,
            offset=offset,
        )
        return [Job.from_record(record) for record in records]


def _parse_enum(enum_cls, value, field: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(
            f"Unknown job {field}: {value}",
            details={"field": field, "allowed": [member.value for member in enum_cls]},
        ) from None
