"""Job Commands - enqueue work and inspect the queue"""

import asyncio
import json

import typer
from rich.console import Console
from rich.panel import Panel

from syncq.v1.core.exceptions import SyncQException
from syncq.v1.jobs.models import JobPriority, JobStatus, JobType

from ..utils.formatting import (
    create_jobs_table,
    create_stats_panel,
    display_job,
    print_error,
    print_info,
    print_success,
)
from ..utils.queue_context import load_settings, open_queue

console = Console()
app = typer.Typer(name="jobs", help="Job queue commands")


@app.command("enqueue")
def enqueue(
    job_type: JobType = typer.Argument(..., help="Job type"),
    payload: str = typer.Option("{}", "--payload", "-p", help="JSON object payload"),
    priority: JobPriority = typer.Option(
        JobPriority.NORMAL, "--priority", help="Dequeue priority"
    ),
    max_retries: int | None = typer.Option(
        None, "--max-retries", "-r", help="Retries before the job is failed"
    ),
    delay_ms: int = typer.Option(0, "--delay-ms", help="Defer the first attempt"),
):
    """➕ Add a job to the queue"""
    try:
        payload_data = json.loads(payload)
    except json.JSONDecodeError as e:
        print_error(f"Payload is not valid JSON: {e}")
        raise typer.Exit(1) from None

    async def _enqueue() -> str:
        async with open_queue(load_settings()) as queue:
            return await queue.enqueue(
                job_type,
                priority=priority,
                payload=payload_data,
                max_retries=max_retries,
                delay_ms=delay_ms,
            )

    try:
        job_id = asyncio.run(_enqueue())
    except SyncQException as e:
        print_error(f"Failed to enqueue job: {e.message}")
        raise typer.Exit(1) from None

    print_success(f"Enqueued {job_type.value} job {job_id}")


@app.command("stats")
def stats():
    """📊 Show job counts per status"""

    async def _stats() -> dict[str, int]:
        async with open_queue(load_settings()) as queue:
            return (await queue.get_stats()).model_dump()

    try:
        data = asyncio.run(_stats())
    except SyncQException as e:
        print_error(f"Failed to read queue statistics: {e.message}")
        raise typer.Exit(1) from None

    console.print(create_stats_panel(data))


@app.command("list")
def list_jobs(
    status: JobStatus | None = typer.Option(None, "--status", "-s", help="Filter by status"),
    job_type: JobType | None = typer.Option(None, "--type", "-t", help="Filter by type"),
    limit: int = typer.Option(20, "--limit", "-l", help="Number of jobs to show"),
    offset: int = typer.Option(0, "--offset", "-o", help="Skip first N jobs"),
):
    """📋 List jobs, newest first"""

    async def _list() -> list[dict]:
        async with open_queue(load_settings()) as queue:
            jobs = await queue.list_jobs(
                status=status, job_type=job_type, limit=limit, offset=offset
            )
            return [job.model_dump(mode="json") for job in jobs]

    try:
        jobs = asyncio.run(_list())
    except SyncQException as e:
        print_error(f"Failed to list jobs: {e.message}")
        raise typer.Exit(1) from None

    if not jobs:
        console.print(
            Panel(
                "📭 [yellow]No jobs found![/yellow]\n\n"
                f"• Status: {status.value if status else 'any'}\n"
                f"• Type: {job_type.value if job_type else 'any'}",
                title="Empty Results",
                border_style="yellow",
            )
        )
        return

    console.print(create_jobs_table(jobs))
    print_info(f"Showing {len(jobs)} job(s)")


@app.command("show")
def show(job_id: str = typer.Argument(..., help="Job id")):
    """🔍 Show a single job"""

    async def _show() -> dict:
        async with open_queue(load_settings()) as queue:
            return (await queue.get_job(job_id)).model_dump(mode="json")

    try:
        job = asyncio.run(_show())
    except SyncQException as e:
        print_error(e.message)
        raise typer.Exit(1) from None

    display_job(job)
