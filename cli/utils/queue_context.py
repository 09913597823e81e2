"""Local job queue access for CLI commands"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from syncq.config.settings import Settings
from syncq.infra.database import Database
from syncq.v1.jobs.service import JobQueue
from syncq.v1.jobs.store import JobStore


def load_settings() -> Settings:
    """Read settings from the environment at command time"""
    return Settings()


@asynccontextmanager
async def open_queue(settings: Settings) -> AsyncIterator[JobQueue]:
    """Open the configured database, ensure the schema, and yield a queue"""
    database = Database(settings)
    try:
        await database.create_schema()
        yield JobQueue(
            JobStore(database), default_max_retries=settings.job_default_max_retries
        )
    finally:
        await database.close()
