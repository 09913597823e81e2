"""syncq CLI - Main Entry Point"""

import asyncio
import signal
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel

from syncq.config.logging import bind_worker_context, setup_logging
from syncq.config.settings import Settings
from syncq.v1.core.registries import JobRegistry
from syncq.v1.jobs.models import JobType
from syncq.v1.jobs.registry_init import load_collaborators, register_job_handlers
from syncq.v1.jobs.scheduler import BackgroundSyncScheduler
from syncq.v1.jobs.worker import JobWorker

from .commands import jobs
from .utils.formatting import print_info, print_success
from .utils.queue_context import load_settings, open_queue

console = Console()

# Create main Typer app
app = typer.Typer(
    name="syncq",
    help="⚙️ syncq - background job queue and sync scheduler",
    rich_markup_mode="rich",
)

# Add command subapps
app.add_typer(jobs.app, name="jobs")


@app.command()
def worker(
    job_type: Optional[JobType] = typer.Option(
        None, "--type", "-t", help="Only claim jobs of this type"
    ),
    scheduler: bool = typer.Option(
        True, "--scheduler/--no-scheduler", help="Run the recurring sync timers"
    ),
    once: bool = typer.Option(
        False, "--once", help="Process every eligible job, then exit"
    ),
):
    """🏃 Run the job worker (and sync scheduler) until interrupted"""
    settings = load_settings()
    setup_logging(settings)

    stats = asyncio.run(
        _run_worker(settings, job_type, scheduler and settings.scheduler_enabled, once)
    )
    print_success(
        f"Worker finished: {stats['completed']} completed, "
        f"{stats['retried']} retried, {stats['failed']} failed"
    )


async def _run_worker(
    settings: Settings, job_type: JobType | None, with_scheduler: bool, once: bool
) -> dict[str, int]:
    registry = register_job_handlers(load_collaborators(settings), JobRegistry())

    async with open_queue(settings) as queue:
        job_worker = JobWorker(queue, registry, settings, type_filter=job_type)
        bind_worker_context(job_worker.worker_id)

        if once:
            count = await job_worker.drain()
            print_info(f"Processed {count} job(s)")
            return job_worker.stats

        sync_scheduler = BackgroundSyncScheduler(queue, settings)
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, job_worker.stop)

        if with_scheduler:
            await sync_scheduler.start()
        try:
            await job_worker.run()
        finally:
            await sync_scheduler.stop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)

        return job_worker.stats


@app.command()
def version():
    """📎 Show version information"""
    settings = load_settings()

    console.print(Panel(
        f"⚙️ [bold cyan]{settings.app_name}[/bold cyan]\n\n"
        f"• Version: [green]{settings.version}[/green]\n"
        f"• Environment: [yellow]{settings.environment}[/yellow]\n"
        f"• Database: [blue]{settings.database_url}[/blue]",
        title="Version Info",
        border_style="cyan"
    ))


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: Optional[bool] = typer.Option(
        None, "--version", "-v", help="Show version and exit"
    ),
):
    """
    ⚙️ syncq - persistent background job queue

    Enqueue sync and maintenance jobs, inspect the queue, and run the
    worker that executes them with retry and backoff.
    """
    if version:
        from . import __version__
        console.print(f"syncq CLI v{__version__}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


if __name__ == "__main__":
    app()
