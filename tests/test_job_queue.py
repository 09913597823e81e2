import asyncio
from datetime import datetime

import pytest

from syncq.infra.database import Database
from syncq.v1.core.exceptions import NotFoundError, StoreError, ValidationError
from syncq.v1.jobs.models import JobPriority, JobStatus, JobType
from syncq.v1.jobs.schemas import JobResult
from syncq.v1.jobs.service import JobQueue
from syncq.v1.jobs.store import JobStore


async def test_enqueue_sets_initial_state(queue, clock):
    """A new job is pending, unretried and eligible immediately."""
    job_id = await queue.enqueue(
        JobType.SYNC_ISSUE_TRACKER_PROJECT,
        priority=JobPriority.HIGH,
        payload={"project_key": "ENG"},
        max_retries=5,
    )

    job = await queue.get_job(job_id)
    assert job_id.startswith(f"job_{clock.now}_")
    assert job.type == JobType.SYNC_ISSUE_TRACKER_PROJECT.value
    assert job.priority == JobPriority.HIGH
    assert job.payload == {"project_key": "ENG"}
    assert job.status == JobStatus.PENDING
    assert job.created_at == clock.now
    assert job.scheduled_for == job.created_at
    assert job.retry_count == 0
    assert job.max_retries == 5
    assert job.started_at is None
    assert job.last_error is None


async def test_enqueue_accepts_string_type_and_priority(queue):
    job_id = await queue.enqueue("cleanup-cache", priority="low")

    job = await queue.get_job(job_id)
    assert job.type == "cleanup-cache"
    assert job.priority == JobPriority.LOW
    assert job.payload == {}
    assert job.max_retries == 3


async def test_enqueue_ids_are_unique(queue):
    ids = {await queue.enqueue(JobType.REFRESH_BOARDS) for _ in range(20)}
    assert len(ids) == 20


@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"job_type": "not-a-job"}, "Unknown job type"),
        ({"job_type": JobType.CLEANUP_CACHE, "priority": "critical"}, "Unknown job priority"),
        ({"job_type": JobType.CLEANUP_CACHE, "max_retries": -1}, "max_retries must be >= 0"),
        ({"job_type": JobType.CLEANUP_CACHE, "delay_ms": -5}, "delay_ms must be >= 0"),
        ({"job_type": JobType.CLEANUP_CACHE, "payload": ["a"]}, "payload must be a mapping"),
        (
            {"job_type": JobType.REFRESH_BOARDS, "payload": {"when": datetime(2024, 1, 1)}},
            "not JSON serializable",
        ),
    ],
)
async def test_enqueue_rejects_malformed_arguments(queue, kwargs, message):
    with pytest.raises(ValidationError, match=message):
        await queue.enqueue(**kwargs)

    assert (await queue.get_stats()).total == 0


async def test_dequeue_empty_queue_returns_none(queue):
    assert await queue.dequeue() is None


async def test_dequeue_orders_by_priority(queue):
    """High beats normal beats low regardless of enqueue order."""
    low = await queue.enqueue(JobType.CLEANUP_CACHE, priority=JobPriority.LOW)
    normal = await queue.enqueue(JobType.CLEANUP_CACHE, priority=JobPriority.NORMAL)
    high = await queue.enqueue(JobType.CLEANUP_CACHE, priority=JobPriority.HIGH)

    claimed = [(await queue.dequeue()).id for _ in range(3)]

    assert claimed == [high, normal, low]
    assert await queue.dequeue() is None


async def test_dequeue_is_fifo_within_priority(queue, clock):
    first = await queue.enqueue(JobType.REFRESH_ITEM, payload={"item_key": "ENG-1"})
    clock.advance(5)
    second = await queue.enqueue(JobType.REFRESH_ITEM, payload={"item_key": "ENG-2"})

    assert (await queue.dequeue()).id == first
    assert (await queue.dequeue()).id == second


async def test_dequeue_mixed_types_scenario(queue, clock):
    """urgent A, then normal A, then low B."""
    urgent_a = await queue.enqueue(JobType.REFRESH_ITEM, priority=JobPriority.URGENT)
    clock.advance(1)
    low_b = await queue.enqueue(JobType.CLEANUP_CACHE, priority=JobPriority.LOW)
    clock.advance(1)
    normal_a = await queue.enqueue(JobType.REFRESH_ITEM, priority=JobPriority.NORMAL)

    assert (await queue.dequeue()).id == urgent_a
    assert (await queue.dequeue()).id == normal_a
    assert (await queue.dequeue()).id == low_b


async def test_dequeue_marks_job_running(queue, clock):
    job_id = await queue.enqueue(JobType.UPDATE_SEARCH_INDEX)
    clock.advance(250)

    job = await queue.dequeue()

    assert job.id == job_id
    assert job.status == JobStatus.RUNNING
    assert job.started_at == clock.now
    stored = await queue.get_job(job_id)
    assert stored.status == JobStatus.RUNNING


async def test_dequeue_type_filter(queue):
    await queue.enqueue(JobType.CLEANUP_CACHE, priority=JobPriority.URGENT)
    wanted = await queue.enqueue(JobType.SYNC_WIKI_SPACE, priority=JobPriority.LOW)

    job = await queue.dequeue(JobType.SYNC_WIKI_SPACE)

    assert job.id == wanted
    assert await queue.dequeue("sync-wiki-space") is None


async def test_dequeue_skips_jobs_scheduled_in_the_future(queue, clock):
    deferred = await queue.enqueue(JobType.CLEANUP_CACHE, delay_ms=10_000)

    assert await queue.dequeue() is None
    clock.advance(9_999)
    assert await queue.dequeue() is None
    clock.advance(1)
    assert (await queue.dequeue()).id == deferred


async def test_eligible_low_priority_beats_ineligible_urgent(queue):
    await queue.enqueue(JobType.REFRESH_ITEM, priority=JobPriority.URGENT, delay_ms=60_000)
    ready = await queue.enqueue(JobType.CLEANUP_CACHE, priority=JobPriority.LOW)

    assert (await queue.dequeue()).id == ready
    assert await queue.dequeue() is None


async def test_concurrent_dequeue_claims_each_job_once(queue):
    for _ in range(5):
        await queue.enqueue(JobType.INDEX_CONTENT, payload={"content_ids": []})

    results = await asyncio.gather(*(queue.dequeue() for _ in range(12)))
    claimed = [job.id for job in results if job is not None]

    assert len(claimed) == 5
    assert len(set(claimed)) == 5
    assert (await queue.get_stats()).running == 5


async def test_workers_on_separate_connections_never_share_a_job(settings, queue, clock):
    """Two independent engines on the same file claim disjoint jobs."""
    for _ in range(10):
        await queue.enqueue(JobType.REFRESH_BOARDS, payload={"project_key": "ENG"})
        clock.advance(1)

    other_db = Database(settings)
    other_queue = JobQueue(JobStore(other_db), clock=clock)

    async def drain(target: JobQueue) -> list[str]:
        ids = []
        while (job := await target.dequeue()) is not None:
            ids.append(job.id)
        return ids

    try:
        first, second = await asyncio.gather(drain(queue), drain(other_queue))
    finally:
        await other_db.close()

    assert not set(first) & set(second)
    assert len(first) + len(second) == 10


async def test_mark_completed_stores_outcome(queue, clock):
    job_id = await queue.enqueue(JobType.REFRESH_BOARDS)
    await queue.dequeue()
    clock.advance(40)

    updated = await queue.mark_completed(
        job_id, JobResult(success=True, duration_ms=37, result={"boards": 2})
    )

    job = await queue.get_job(job_id)
    assert updated is True
    assert job.status == JobStatus.COMPLETED
    assert job.completed_at == clock.now
    assert job.duration_ms == 37
    assert job.result == {"boards": 2}


async def test_mark_completed_twice_is_a_no_op(queue):
    job_id = await queue.enqueue(JobType.REFRESH_BOARDS)
    await queue.dequeue()
    await queue.mark_completed(job_id, JobResult(success=True, duration_ms=10, result={"n": 1}))

    again = await queue.mark_completed(
        job_id, JobResult(success=True, duration_ms=999, result={"n": 2})
    )

    job = await queue.get_job(job_id)
    assert again is False
    assert job.duration_ms == 10
    assert job.result == {"n": 1}


async def test_mark_completed_ignores_pending_job(queue):
    job_id = await queue.enqueue(JobType.REFRESH_BOARDS)

    assert await queue.mark_completed(job_id, JobResult(success=True)) is False
    assert (await queue.get_job(job_id)).status == JobStatus.PENDING


async def test_mark_failed_is_terminal(queue, clock):
    job_id = await queue.enqueue(JobType.REFRESH_ITEM)
    await queue.dequeue()

    assert await queue.mark_failed(job_id, "tracker returned 500") is True

    job = await queue.get_job(job_id)
    assert job.status == JobStatus.FAILED
    assert job.last_error == "tracker returned 500"
    assert job.completed_at == clock.now
    # A failed job can no longer be rescheduled or claimed
    assert await queue.reschedule(job_id, 0) is False
    assert await queue.dequeue() is None


async def test_reschedule_returns_job_to_pending(queue, clock):
    job_id = await queue.enqueue(JobType.SYNC_WIKI_SPACE, payload={"space_key": "ENG"})
    await queue.dequeue()

    assert await queue.reschedule(job_id, 2_000, error="timeout") is True

    job = await queue.get_job(job_id)
    assert job.status == JobStatus.PENDING
    assert job.retry_count == 1
    assert job.scheduled_for == clock.now + 2_000
    assert job.last_error == "timeout"
    assert job.scheduled_for >= job.created_at

    assert await queue.dequeue() is None
    clock.advance(2_000)
    assert (await queue.dequeue()).retry_count == 1


async def test_reschedule_increments_retry_count_by_one(queue, clock):
    job_id = await queue.enqueue(JobType.SYNC_WIKI_SPACE)

    for expected in (1, 2, 3):
        await queue.dequeue()
        await queue.reschedule(job_id, 0)
        assert (await queue.get_job(job_id)).retry_count == expected


async def test_reschedule_rejects_negative_delay(queue):
    job_id = await queue.enqueue(JobType.SYNC_WIKI_SPACE)
    await queue.dequeue()

    with pytest.raises(ValidationError):
        await queue.reschedule(job_id, -1)


async def test_stats_partition_all_jobs(queue, clock):
    ids = []
    for _ in range(6):
        ids.append(await queue.enqueue(JobType.CLEANUP_CACHE))
        clock.advance(1)

    # completed
    await queue.dequeue()
    await queue.mark_completed(ids[0], JobResult(success=True))
    # failed
    await queue.dequeue()
    await queue.mark_failed(ids[1], "boom")
    # retrying
    await queue.dequeue()
    await queue.reschedule(ids[2], 60_000)
    # running
    await queue.dequeue()

    stats = await queue.get_stats()

    assert stats.completed == 1
    assert stats.failed == 1
    assert stats.retrying == 1
    assert stats.running == 1
    assert stats.pending == 2
    assert stats.total == len(ids)


async def test_unserializable_payload_names_the_field(queue):
    with pytest.raises(ValidationError) as excinfo:
        await queue.enqueue(JobType.REFRESH_BOARDS, payload={"tags": {"a", "b"}})

    assert excinfo.value.details == {"field": "payload"}


async def test_stats_count_retried_jobs_by_current_status(queue, store, clock):
    """Only pending jobs with retries count as retrying; a re-claimed one is running."""
    first = await queue.enqueue(JobType.CLEANUP_CACHE)
    clock.advance(1)
    await queue.enqueue(JobType.CLEANUP_CACHE)

    await queue.dequeue()
    await queue.reschedule(first, 0)
    clock.advance(1)
    await queue.dequeue()

    assert sorted(await store.count_by_status()) == [
        (JobStatus.PENDING.value, False, 1),
        (JobStatus.RUNNING.value, True, 1),
    ]
    stats = await queue.get_stats()
    assert (stats.pending, stats.running, stats.retrying) == (1, 1, 0)


async def test_stats_on_empty_queue(queue):
    stats = await queue.get_stats()
    assert stats.model_dump() == {
        "pending": 0,
        "running": 0,
        "completed": 0,
        "failed": 0,
        "retrying": 0,
    }


async def test_get_job_unknown_id(queue):
    with pytest.raises(NotFoundError, match="Job not found"):
        await queue.get_job("job_0_missing")


async def test_list_jobs_filters_and_orders_newest_first(queue, clock):
    older = await queue.enqueue(JobType.CLEANUP_CACHE)
    clock.advance(10)
    newer = await queue.enqueue(JobType.CLEANUP_CACHE)
    clock.advance(10)
    other = await queue.enqueue(JobType.REFRESH_BOARDS)
    await queue.dequeue(JobType.REFRESH_BOARDS)

    all_jobs = await queue.list_jobs()
    cleanup = await queue.list_jobs(job_type=JobType.CLEANUP_CACHE)
    running = await queue.list_jobs(status=JobStatus.RUNNING)

    assert [job.id for job in all_jobs] == [other, newer, older]
    assert [job.id for job in cleanup] == [newer, older]
    assert [job.id for job in running] == [other]
    assert [job.id for job in await queue.list_jobs(limit=1, offset=1)] == [newer]


async def test_store_failures_surface_as_store_error(settings, clock):
    """Operations against a database without the job table raise StoreError."""
    db = Database(settings.model_copy(update={"database_url": settings.database_url + "-missing"}))
    broken = JobQueue(JobStore(db), clock=clock)

    try:
        with pytest.raises(StoreError, match="Failed to insert job"):
            await broken.enqueue(JobType.CLEANUP_CACHE)
        with pytest.raises(StoreError, match="Failed to claim job"):
            await broken.dequeue()
        with pytest.raises(StoreError):
            await broken.get_stats()
    finally:
        await db.close()
