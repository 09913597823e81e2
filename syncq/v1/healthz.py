from datetime import UTC, datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from syncq.config.settings import Settings, SettingsDep
from syncq.infra.database import get_session
from syncq.v1.core.exceptions import create_success_response
from syncq.v1.jobs.models import JobRecord, JobStatus

router = APIRouter()


class DatabaseHealth(BaseModel):
    """Database health status."""

    connected: bool
    response_time_ms: float | None = None
    error: str | None = None


class QueueHealth(BaseModel):
    """Queue depth as seen from the job table."""

    queue_depth: int = 0
    overdue_jobs: int = 0
    running_jobs: int = 0


@router.get("/healthz", response_model=dict)
async def health_check(
    settings: Settings = SettingsDep, session: AsyncSession = Depends(get_session)
):
    """Health check endpoint with database and queue status."""

    timestamp = datetime.now(UTC).isoformat()

    db_health = await _check_database_health(session)

    queue_health = None
    if db_health.connected:
        try:
            queue_health = await _check_queue_health(session)
        except Exception:
            # Queue statistics are informational and never fail the health check
            queue_health = QueueHealth()

    health_data = {
        "ok": db_health.connected,
        "version": settings.version,
        "environment": settings.environment,
        "timestamp": timestamp,
        "database": db_health.model_dump(),
        "queue": queue_health.model_dump() if queue_health else None,
    }

    return create_success_response(data=health_data)


async def _check_database_health(session: AsyncSession) -> DatabaseHealth:
    """Check database connectivity and response time."""
    start_time = datetime.now(UTC)

    try:
        await session.execute(text("SELECT 1"))

        end_time = datetime.now(UTC)
        response_time_ms = (end_time - start_time).total_seconds() * 1000

        return DatabaseHealth(
            connected=True, response_time_ms=round(response_time_ms, 2)
        )

    except Exception as e:
        return DatabaseHealth(connected=False, error=str(e))


async def _check_queue_health(session: AsyncSession) -> QueueHealth:
    """Count waiting, overdue and running jobs."""
    now_ms = int(datetime.now(UTC).timestamp() * 1000)

    queue_depth_result = await session.execute(
        select(func.count(JobRecord.id)).where(
            JobRecord.status == JobStatus.PENDING.value
        )
    )

    # Eligible for more than a minute but still not claimed
    overdue_result = await session.execute(
        select(func.count(JobRecord.id)).where(
            JobRecord.status == JobStatus.PENDING.value,
            JobRecord.scheduled_for < now_ms - 60_000,
        )
    )

    running_result = await session.execute(
        select(func.count(JobRecord.id)).where(
            JobRecord.status == JobStatus.RUNNING.value
        )
    )

    return QueueHealth(
        queue_depth=queue_depth_result.scalar() or 0,
        overdue_jobs=overdue_result.scalar() or 0,
        running_jobs=running_result.scalar() or 0,
    )
