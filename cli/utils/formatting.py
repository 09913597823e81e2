"""Rich Formatting Utilities for CLI Output"""

from datetime import UTC, datetime
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()

STATUS_STYLES = {
    "pending": "yellow",
    "running": "cyan",
    "completed": "green",
    "failed": "red",
}


def print_success(message: str):
    """Print success message with green styling"""
    console.print(f"[green]✓ {message}[/green]")


def print_error(message: str):
    """Print error message with red styling"""
    console.print(f"[red]✗ {message}[/red]")


def print_info(message: str):
    """Print info message with blue styling"""
    console.print(f"[blue]ℹ {message}[/blue]")


def format_timestamp(epoch_ms: int | None) -> str:
    if epoch_ms is None:
        return "-"
    return datetime.fromtimestamp(epoch_ms / 1000, UTC).strftime("%Y-%m-%d %H:%M:%S")


def create_jobs_table(jobs: list[dict[str, Any]]) -> Table:
    """Create a formatted table for a job list"""
    table = Table(title="Jobs", box=box.ROUNDED)

    table.add_column("ID", justify="left", style="cyan", no_wrap=True)
    table.add_column("Type", justify="left", style="magenta")
    table.add_column("Priority", justify="center")
    table.add_column("Status", justify="center")
    table.add_column("Retries", justify="center")
    table.add_column("Scheduled For", justify="center", style="dim")
    table.add_column("Last Error", justify="left", style="red")

    for job in jobs:
        status = job.get("status", "")
        style = STATUS_STYLES.get(status, "white")
        error = job.get("last_error") or "-"

        table.add_row(
            job.get("id", ""),
            job.get("type", ""),
            job.get("priority", ""),
            f"[{style}]{status}[/{style}]",
            f"{job.get('retry_count', 0)}/{job.get('max_retries', 0)}",
            format_timestamp(job.get("scheduled_for")),
            error[:40] + "..." if len(error) > 40 else error,
        )

    return table


def create_stats_panel(stats: dict[str, int]) -> Panel:
    """Create formatted panel for queue statistics"""
    total = sum(stats.values())
    content = f"""
📊 [bold blue]Job Queue[/bold blue]

• Pending: [yellow]{stats.get("pending", 0)}[/yellow]
• Retrying: [yellow]{stats.get("retrying", 0)}[/yellow]
• Running: [cyan]{stats.get("running", 0)}[/cyan]
• Completed: [green]{stats.get("completed", 0)}[/green]
• Failed: [red]{stats.get("failed", 0)}[/red]
• Total: [blue]{total}[/blue]
"""

    return Panel(content, title="Queue Statistics", border_style="green")


def display_job(job: dict[str, Any]):
    """Display every field of a single job"""
    status = job.get("status", "")
    style = STATUS_STYLES.get(status, "white")

    lines = [
        f"• Type: [magenta]{job.get('type')}[/magenta]",
        f"• Priority: {job.get('priority')}",
        f"• Status: [{style}]{status}[/{style}]",
        f"• Retries: {job.get('retry_count', 0)}/{job.get('max_retries', 0)}",
        f"• Created: {format_timestamp(job.get('created_at'))}",
        f"• Scheduled For: {format_timestamp(job.get('scheduled_for'))}",
        f"• Started: {format_timestamp(job.get('started_at'))}",
        f"• Completed: {format_timestamp(job.get('completed_at'))}",
    ]
    if job.get("duration_ms") is not None:
        lines.append(f"• Duration: {job['duration_ms']}ms")

    console.print(Panel("\n".join(lines), title=f"Job {job.get('id')}", border_style=style))
    console.print(Panel(str(job.get("payload", {})), title="Payload", border_style="blue"))

    if job.get("result") is not None:
        console.print(Panel(str(job["result"]), title="Result", border_style="green"))
    if job.get("last_error"):
        console.print(Panel(job["last_error"], title="Last Error", border_style="red"))
