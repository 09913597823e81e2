"""
Job management API endpoints.

Lets external tools enqueue work, inspect individual jobs and read queue
statistics.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query

from syncq.config.logging import get_logger
from syncq.config.settings import Settings, SettingsDep
from syncq.infra.database import Database, get_database
from syncq.v1.core.exceptions import create_success_response
from syncq.v1.jobs.models import JobStatus, JobType
from syncq.v1.jobs.schemas import (
    JobEnqueueRequest,
    JobEnqueueResponse,
    JobListFilters,
    JobListResponse,
)
from syncq.v1.jobs.service import JobQueue
from syncq.v1.jobs.store import JobStore

logger = get_logger(__name__)
router = APIRouter(prefix="/jobs", tags=["jobs"])


def get_job_queue(
    database: Database = Depends(get_database), settings: Settings = SettingsDep
) -> JobQueue:
    """Dependency injection for the job queue."""
    return JobQueue(
        JobStore(database), default_max_retries=settings.job_default_max_retries
    )


JobQueueDep = Depends(get_job_queue)


@router.post("", response_model=dict, status_code=201)
async def enqueue_job(
    job_request: JobEnqueueRequest, queue: JobQueue = JobQueueDep
) -> dict[str, Any]:
    """Enqueue a new background job."""
    job_id = await queue.enqueue(
        job_request.type,
        priority=job_request.priority,
        payload=job_request.payload,
        max_retries=job_request.max_retries,
        delay_ms=job_request.delay_ms,
    )

    logger.info("Job enqueued via API", job_id=job_id, job_type=job_request.type.value)
    return create_success_response(data=JobEnqueueResponse(job_id=job_id).model_dump())


@router.get("/stats", response_model=dict)
async def get_job_stats(queue: JobQueue = JobQueueDep) -> dict[str, Any]:
    """Get job counts per status."""
    stats = await queue.get_stats()
    return create_success_response(data={**stats.model_dump(), "total": stats.total})


@router.get("", response_model=dict)
async def list_jobs(
    status: JobStatus | None = Query(default=None, description="Filter by status"),
    type: JobType | None = Query(default=None, description="Filter by job type"),
    limit: int = Query(default=50, ge=1, le=1000, description="Maximum results"),
    offset: int = Query(default=0, ge=0, description="Results offset"),
    queue: JobQueue = JobQueueDep,
) -> dict[str, Any]:
    """List jobs newest first."""
    filters = JobListFilters(status=status, type=type, limit=limit, offset=offset)
    jobs = await queue.list_jobs(
        status=filters.status,
        job_type=filters.type,
        limit=filters.limit,
        offset=filters.offset,
    )

    response = JobListResponse(jobs=jobs, limit=filters.limit, offset=filters.offset)
    return create_success_response(data=response.model_dump(mode="json"))


@router.get("/{job_id}", response_model=dict)
async def get_job(job_id: str, queue: JobQueue = JobQueueDep) -> dict[str, Any]:
    """Get a job by id."""
    job = await queue.get_job(job_id)
    return create_success_response(data=job.model_dump(mode="json"))
