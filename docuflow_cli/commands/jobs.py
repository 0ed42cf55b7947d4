"""Job Commands - inspect and control pipeline jobs"""

import typer
from rich.console import Console

from ..client.endpoints import DocuFlowClient, DocuFlowError
from ..utils.formatting import (
    create_job_stats_panel,
    create_jobs_table,
    display_job,
    print_error,
    print_info,
    print_success,
)

console = Console()
app = typer.Typer(name="jobs", help="Pipeline job commands")


@app.command("list")
def list_jobs(
    status: list[str] | None = typer.Option(None, "--status", "-s", help="Filter by status (repeatable)"),
    type: str | None = typer.Option(None, "--type", "-t", help="OCR, PARSING, VALIDATION or EXPORT"),
    document_id: str | None = typer.Option(None, "--document", "-d", help="Filter by document"),
    limit: int = typer.Option(20, "--limit", "-l", help="Number of jobs to show"),
    offset: int = typer.Option(0, "--offset", "-o", help="Skip first N jobs"),
):
    """📋 List jobs, newest first"""
    try:
        with DocuFlowClient() as client:
            data = client.list_jobs(
                status=status, type=type, document_id=document_id, limit=limit, offset=offset
            )
    except DocuFlowError as e:
        print_error(f"Failed to list jobs: {e}")
        raise typer.Exit(1) from None

    jobs = data.get("jobs", [])
    if not jobs:
        print_info("No jobs found")
        return

    console.print(create_jobs_table(jobs))
    total = data.get("total", len(jobs))
    console.print(f"\n📊 Showing [cyan]{len(jobs)}[/cyan] of [yellow]{total}[/yellow] jobs")
    if offset + limit < total:
        console.print(f"💡 Use [cyan]--offset {offset + limit}[/cyan] to see more")


@app.command("show")
def show_job(job_id: str = typer.Argument(..., help="Job ID")):
    """🔍 Show one job"""
    try:
        with DocuFlowClient() as client:
            job = client.get_job(job_id)
    except DocuFlowError as e:
        print_error(f"Failed to get job: {e}")
        raise typer.Exit(1) from None

    display_job(job)


@app.command("retry")
def retry_job(job_id: str = typer.Argument(..., help="Job ID")):
    """🔁 Retry a failed job"""
    try:
        with DocuFlowClient() as client:
            job = client.retry_job(job_id)
    except DocuFlowError as e:
        print_error(f"Failed to retry job: {e}")
        raise typer.Exit(1) from None

    print_success(f"Job {job.get('id')} queued for retry")


@app.command("cancel")
def cancel_job(job_id: str = typer.Argument(..., help="Job ID")):
    """🛑 Cancel a queued or running job"""
    try:
        with DocuFlowClient() as client:
            job = client.cancel_job(job_id)
    except DocuFlowError as e:
        print_error(f"Failed to cancel job: {e}")
        raise typer.Exit(1) from None

    print_success(f"Job {job.get('id')} canceled")


@app.command("stats")
def job_stats():
    """📊 Show queue statistics"""
    try:
        with DocuFlowClient() as client:
            stats = client.get_job_stats()
    except DocuFlowError as e:
        print_error(f"Failed to get job statistics: {e}")
        raise typer.Exit(1) from None

    console.print(create_job_stats_panel(stats))
