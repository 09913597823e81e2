"""
Job queue Pydantic schemas.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from syncq.v1.jobs.models import JobPriority, JobRecord, JobStatus, JobType


class Job(BaseModel):
    """Read-only view of a job row handed to workers and API callers."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: str
    priority: JobPriority
    payload: dict[str, Any] = Field(default_factory=dict)
    status: JobStatus
    created_at: int
    scheduled_for: int
    started_at: int | None = None
    completed_at: int | None = None
    retry_count: int = 0
    max_retries: int = 3
    duration_ms: int | None = None
    result: dict[str, Any] | None = None
    last_error: str | None = None

    @classmethod
    def from_record(cls, record: JobRecord) -> "Job":
        return cls(
            id=record.id,
            type=record.type,
            priority=JobPriority.from_rank(record.priority),
            payload=record.payload or {},
            status=JobStatus(record.status),
            created_at=record.created_at,
            scheduled_for=record.scheduled_for,
            started_at=record.started_at,
            completed_at=record.completed_at,
            retry_count=record.retry_count,
            max_retries=record.max_retries,
            duration_ms=record.duration_ms,
            result=record.result,
            last_error=record.last_error,
        )

    def can_retry(self) -> bool:
        """Check if another attempt is allowed after a failure."""
        return self.retry_count < self.max_retries


class JobResult(BaseModel):
    """Outcome of a single execution attempt."""

    success: bool
    duration_ms: int = Field(default=0, ge=0)
    result: dict[str, Any] | None = None
    error: str | None = None


class JobQueueStats(BaseModel):
    """
    Job counts per status.

    ``retrying`` holds pending jobs that already failed at least once and
    ``pending`` holds the rest, so the five counts add up to ``total``.
    """

    pending: int = 0
    running: int = 0
    completed: int = 0
    failed: int = 0
    retrying: int = 0

    @property
    def total(self) -> int:
        return self.pending + self.running + self.completed + self.failed + self.retrying


class JobEnqueueRequest(BaseModel):
    """Schema for enqueueing jobs via API."""

    type: JobType = Field(..., description="Job type")
    priority: JobPriority = Field(
        default=JobPriority.NORMAL, description="Dequeue ordering band"
    )
    payload: dict[str, Any] = Field(default_factory=dict, description="Job payload")
    max_retries: int | None = Field(
        default=None, ge=0, description="Retries before the job is failed"
    )
    delay_ms: int = Field(default=0, ge=0, description="Defer first execution")


class JobEnqueueResponse(BaseModel):
    """Schema for job enqueue response."""

    job_id: str
    status: JobStatus = JobStatus.PENDING


class JobListFilters(BaseModel):
    """Schema for job list filtering."""

    status: JobStatus | None = Field(default=None, description="Filter by status")
    type: JobType | None = Field(default=None, description="Filter by job type")
    limit: int = Field(
        default=50, ge=1, le=1000, description="Maximum results to return"
    )
    offset: int = Field(default=0, ge=0, description="Results offset for pagination")


class JobListResponse(BaseModel):
    """Schema for job list API response."""

    jobs: list[Job]
    limit: int
    offset: int


# Typed payloads, one per job kind. The queue never looks at them; handlers
# parse the opaque payload into these before doing any work.


class ProjectPayload(BaseModel):
    project_key: str = Field(..., min_length=1)


class SpacePayload(BaseModel):
    space_key: str = Field(..., min_length=1)


class ItemPayload(BaseModel):
    item_key: str = Field(..., min_length=1)


class IndexContentPayload(BaseModel):
    content_ids: list[str]

    @field_validator("content_ids")
    @classmethod
    def strip_blank_ids(cls, value: list[str]) -> list[str]:
        return [content_id for content_id in value if content_id.strip()]


class CleanupCachePayload(BaseModel):
    older_than_days: int = Field(default=30, ge=0)


class UpdateSearchIndexPayload(BaseModel):
    force: bool = False
