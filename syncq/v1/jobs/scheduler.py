"""
Background sync scheduler.

Runs one asyncio task per recurring timer. On every tick a timer enqueues its
jobs; a failed enqueue is logged and the timer carries on with the next tick.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from syncq.config.logging import get_logger
from syncq.config.settings import Settings
from syncq.v1.jobs.models import JobPriority, JobType
from syncq.v1.jobs.service import JobQueue

logger = get_logger(__name__)


@dataclass
class ScheduledTask:
    """A named timer and the jobs it enqueues on each tick."""

    name: str
    interval_s: float
    job_type: JobType
    priority: JobPriority
    max_retries: int
    payloads: Callable[[], list[dict[str, Any]]] = field(default=lambda: [{}])


def default_tasks(settings: Settings) -> list[ScheduledTask]:
    """Recurring maintenance timers built from settings."""
    return [
        ScheduledTask(
            name="project-sync",
            interval_s=settings.project_sync_interval_s,
            job_type=JobType.SYNC_ISSUE_TRACKER_PROJECT,
            priority=JobPriority.NORMAL,
            max_retries=3,
            payloads=lambda: [{"project_key": key} for key in settings.sync_project_keys],
        ),
        ScheduledTask(
            name="space-sync",
            interval_s=settings.space_sync_interval_s,
            job_type=JobType.SYNC_WIKI_SPACE,
            priority=JobPriority.NORMAL,
            max_retries=3,
            payloads=lambda: [{"space_key": key} for key in settings.sync_space_keys],
        ),
        ScheduledTask(
            name="cache-cleanup",
            interval_s=settings.cache_cleanup_interval_s,
            job_type=JobType.CLEANUP_CACHE,
            priority=JobPriority.LOW,
            max_retries=1,
            payloads=lambda: [
                {"older_than_days": settings.cache_cleanup_older_than_days}
            ],
        ),
        ScheduledTask(
            name="search-index-update",
            interval_s=settings.search_index_interval_s,
            job_type=JobType.UPDATE_SEARCH_INDEX,
            priority=JobPriority.NORMAL,
            max_retries=2,
            payloads=lambda: [{"force": False}],
        ),
    ]


class BackgroundSyncScheduler:
    """Owns the recurring timers that feed maintenance jobs into the queue."""

    def __init__(
        self,
        queue: JobQueue,
        settings: Settings,
        tasks: list[ScheduledTask] | None = None,
    ):
        self.queue = queue
        self.settings = settings
        self.tasks = {
            task.name: task
            for task in (tasks if tasks is not None else default_tasks(settings))
        }
        self._stop_event = asyncio.Event()
        self._running: dict[str, asyncio.Task] = {}

    @property
    def running(self) -> bool:
        return bool(self._running)

    async def start(self) -> None:
        """Start one background task per timer."""
        if self._running:
            logger.warning("Background sync scheduler is already running")
            return

        self._stop_event.clear()
        for name, task in self.tasks.items():
            self._running[name] = asyncio.create_task(
                self._timer_loop(task), name=f"sync-timer:{name}"
            )

        logger.info(
            "Background sync schedules started",
            timers={name: task.interval_s for name, task in self.tasks.items()},
        )

    async def stop(self) -> None:
        """Stop all timers, letting any enqueue already in flight finish."""
        if not self._running:
            return

        logger.info("Stopping background sync schedules")
        self._stop_event.set()
        await asyncio.gather(*self._running.values(), return_exceptions=True)
        self._running.clear()

    async def tick(self, name: str) -> list[str]:
        """Run one timer body now and return the ids of the jobs it enqueued."""
        task = self.tasks[name]
        job_ids = []
        for payload in task.payloads():
            job_ids.append(
                await self.queue.enqueue(
                    task.job_type,
                    priority=task.priority,
                    payload=payload,
                    max_retries=task.max_retries,
                )
            )

        logger.debug("Scheduled jobs enqueued", timer=name, job_count=len(job_ids))
        return job_ids

    async def _timer_loop(self, task: ScheduledTask) -> None:
        if self.settings.scheduler_run_on_start:
            await self._safe_tick(task.name)

        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=task.interval_s)
            except asyncio.TimeoutError:
                await self._safe_tick(task.name)

    async def _safe_tick(self, name: str) -> None:
        try:
            await self.tick(name)
        except Exception:
            logger.exception("Scheduled enqueue failed", timer=name)
