"""
Job worker: claims jobs one at a time and resolves each attempt.
"""

import asyncio
import os
import random
import socket
import time
from collections.abc import Callable
from typing import Any

from pydantic_core import PydanticSerializationError, to_jsonable_python

from syncq.config.logging import get_logger
from syncq.config.settings import Settings
from syncq.v1.core.exceptions import ExecutorError, StoreError, ValidationError
from syncq.v1.core.registries import JobRegistry
from syncq.v1.jobs.models import JobType
from syncq.v1.jobs.schemas import Job, JobResult
from syncq.v1.jobs.service import JobQueue

logger = get_logger(__name__)


class JobWorker:
    """
    Sequential job consumer.

    Features:
    - Priority/age ordered claiming through JobQueue.dequeue
    - Exponential retry backoff (base * 2^retry_count), optional jitter and cap
    - Immediate failure for job types without a handler
    - Optional per-job timeout
    - Cooperative shutdown through a stop event checked once per iteration
    """

    def __init__(
        self,
        queue: JobQueue,
        registry: JobRegistry,
        settings: Settings,
        type_filter: JobType | None = None,
        stop_event: asyncio.Event | None = None,
        rng: Callable[[], float] = random.random,
    ):
        self.queue = queue
        self.registry = registry
        self.settings = settings
        self.type_filter = type_filter
        self.stop_event = stop_event or asyncio.Event()
        self.rng = rng
        self.worker_id = f"{socket.gethostname()}-{os.getpid()}-{id(self)}"
        self.stats = {"completed": 0, "retried": 0, "failed": 0}

    @property
    def poll_interval_s(self) -> float:
        return self.settings.job_poll_interval_ms / 1000

    async def run(self) -> None:
        """Process jobs until the stop event is set."""
        logger.info(
            "Starting job worker",
            worker_id=self.worker_id,
            type_filter=self.type_filter.value if self.type_filter else None,
            poll_interval_ms=self.settings.job_poll_interval_ms,
        )

        while not self.stop_event.is_set():
            try:
                processed = await self.run_once()
            except StoreError:
                logger.exception("Error claiming job", worker_id=self.worker_id)
                processed = False
            except Exception:
                logger.exception("Unexpected error in worker loop", worker_id=self.worker_id)
                processed = False

            if not processed:
                await self._idle()

        logger.info("Job worker stopped", worker_id=self.worker_id, **self.stats)

    def stop(self) -> None:
        """Ask the loop to exit after the current job."""
        logger.info("Stopping job worker", worker_id=self.worker_id)
        self.stop_event.set()

    async def run_once(self) -> bool:
        """
        Claim and resolve at most one job.

        Returns True if a job was processed. Store errors from the claim
        propagate; errors while resolving the job are logged and swallowed.
        """
        job = await self.queue.dequeue(self.type_filter)
        if job is None:
            return False

        await self._process_job(job)
        return True

    async def drain(self) -> int:
        """Process jobs until none is eligible; return how many ran."""
        count = 0
        while not self.stop_event.is_set() and await self.run_once():
            count += 1
        return count

    async def _idle(self) -> None:
        try:
            await asyncio.wait_for(self.stop_event.wait(), timeout=self.poll_interval_s)
        except asyncio.TimeoutError:
            pass

    async def _process_job(self, job: Job) -> None:
        job_logger = logger.bind(
            worker_id=self.worker_id, job_id=job.id, job_type=job.type
        )
        job_logger.info("Processing job started", retry_count=job.retry_count)

        try:
            handler = self._get_handler(job.type)
        except ValidationError as e:
            job_logger.error("Job has no executor, failing without retry", error=e.message)
            if await self._resolve(job_logger, self.queue.mark_failed(job.id, e.message)):
                self.stats["failed"] += 1
            return

        started = time.monotonic()
        try:
            output = await self._execute(handler, job)
        except ExecutorError as e:
            duration_ms = _elapsed_ms(started)
            await self._handle_failure(job, e.message, duration_ms, job_logger)
            return

        duration_ms = _elapsed_ms(started)
        result = JobResult(success=True, duration_ms=duration_ms, result=output)
        if await self._resolve(job_logger, self.queue.mark_completed(job.id, result)):
            self.stats["completed"] += 1
            job_logger.info("Processing job completed successfully", duration_ms=duration_ms)

    def _get_handler(self, job_type: str) -> Any:
        try:
            return self.registry.get(JobType(job_type))
        except (KeyError, ValueError):
            raise ValidationError(
                f"Unknown job type: {job_type}", details={"type": job_type}
            ) from None

    async def _execute(self, handler: Any, job: Job) -> dict[str, Any] | None:
        """
        Run the handler, converting every failure into an ExecutorError.

        The output is converted to JSON-compatible values here, so a result
        the job table cannot store fails the attempt instead of the completion.
        """
        deadline = asyncio.timeout(self.settings.job_timeout_s)
        try:
            async with deadline:
                output = await handler.handle(dict(job.payload), self.settings)
        except TimeoutError as e:
            if deadline.expired():
                raise ExecutorError(
                    f"Job timed out after {self.settings.job_timeout_s}s",
                    details={"job_id": job.id},
                ) from e
            raise _handler_error(job, e) from e
        except Exception as e:
            raise _handler_error(job, e) from e

        if output is not None and not isinstance(output, dict):
            output = {"value": output}
        try:
            return to_jsonable_python(output)
        except PydanticSerializationError as e:
            raise ExecutorError(
                f"Job result is not JSON serializable: {e}",
                details={"job_id": job.id},
            ) from e

    async def _handle_failure(
        self, job: Job, error: str, duration_ms: int, job_logger: Any
    ) -> None:
        if job.can_retry():
            delay_ms = self._calculate_retry_delay_ms(job.retry_count)
            if await self._resolve(
                job_logger, self.queue.reschedule(job.id, delay_ms, error=error)
            ):
                self.stats["retried"] += 1
            job_logger.warning(
                "Job failed, retry scheduled",
                error=error,
                retry_count=job.retry_count + 1,
                max_retries=job.max_retries,
                delay_ms=delay_ms,
                duration_ms=duration_ms,
            )
        else:
            if await self._resolve(job_logger, self.queue.mark_failed(job.id, error)):
                self.stats["failed"] += 1
            job_logger.error(
                "Job failed permanently",
                error=error,
                retry_count=job.retry_count,
                duration_ms=duration_ms,
            )

    def _calculate_retry_delay_ms(self, retry_count: int) -> int:
        """Exponential backoff: base * 2^retry_count, then optional cap and jitter."""
        delay = self.settings.job_backoff_base_ms * (2**retry_count)
        if self.settings.job_max_backoff_ms is not None:
            delay = min(delay, self.settings.job_max_backoff_ms)

        jitter = self.settings.job_backoff_jitter
        if jitter:
            delay = delay + delay * jitter * (2 * self.rng() - 1)
        return max(0, int(delay))

    async def _resolve(self, job_logger: Any, operation) -> bool:
        """Await a queue transition; False if it did not apply or the store failed."""
        try:
            return await operation
        except StoreError as e:
            job_logger.error("Failed to record job outcome", error=e.message)
            return False


def _handler_error(job: Job, error: Exception) -> ExecutorError:
    return ExecutorError(
        str(error) or error.__class__.__name__,
        details={"job_id": job.id, "exception": error.__class__.__name__},
    )


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
