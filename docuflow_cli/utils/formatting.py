"""Rich Formatting Utilities for CLI Output"""

from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()

STATUS_STYLES = {
    "uploaded": "blue",
    "processing": "yellow",
    "processed": "green",
    "review": "magenta",
    "error": "red",
    "queued": "blue",
    "done": "green",
    "canceled": "dim",
}


def print_success(message: str):
    console.print(f"[green]✓ {message}[/green]")


def print_error(message: str):
    console.print(f"[red]✗ {message}[/red]")


def print_warning(message: str):
    console.print(f"[yellow]⚠ {message}[/yellow]")


def print_info(message: str):
    console.print(f"[blue]ℹ {message}[/blue]")


def styled_status(status: str | None) -> str:
    """Wrap a status value in its colour markup"""
    if not status:
        return "—"
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/{style}]"


def short_id(value: str | None) -> str:
    return (value or "")[:8] or "—"


def create_documents_table(documents: list[dict[str, Any]]) -> Table:
    table = Table(title="Documents", box=box.ROUNDED)

    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="white")
    table.add_column("Type", justify="center", style="magenta")
    table.add_column("Status", justify="center")
    table.add_column("Pages", justify="right", style="yellow")
    table.add_column("Uploaded", style="dim")

    for doc in documents:
        table.add_row(
            short_id(doc.get("id")),
            doc.get("original_name", ""),
            doc.get("type", ""),
            styled_status(doc.get("status")),
            str(doc.get("page_count") or "—"),
            (doc.get("created_at") or "")[:19],
        )

    return table


def create_jobs_table(jobs: list[dict[str, Any]]) -> Table:
    table = Table(title="Jobs", box=box.ROUNDED)

    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Type", justify="center", style="magenta")
    table.add_column("Status", justify="center")
    table.add_column("Document", style="cyan", no_wrap=True)
    table.add_column("Attempts", justify="right", style="yellow")
    table.add_column("Error", style="red")

    for job in jobs:
        table.add_row(
            short_id(job.get("id")),
            job.get("type", ""),
            styled_status(job.get("status")),
            short_id(job.get("document_id")),
            f"{job.get('attempts', 0)}/{job.get('max_attempts', 0)}",
            job.get("error_code") or "",
        )

    return table


def create_members_table(members: list[dict[str, Any]]) -> Table:
    table = Table(title="Members", box=box.ROUNDED)

    table.add_column("DNI", style="cyan", no_wrap=True)
    table.add_column("Name", style="white")
    table.add_column("Email", style="blue")
    table.add_column("Status", justify="center", style="yellow")
    table.add_column("Institution", style="magenta")

    for member in members:
        institution = member.get("institution") or {}
        table.add_row(
            member.get("dni", ""),
            member.get("full_name", ""),
            member.get("email") or "—",
            member.get("status", ""),
            institution.get("name") or "—",
        )

    return table


def create_institutions_table(institutions: list[dict[str, Any]]) -> Table:
    table = Table(title="Institutions", box=box.ROUNDED)

    table.add_column("CUIT", style="cyan", no_wrap=True)
    table.add_column("Name", style="white")
    table.add_column("Email", style="blue")
    table.add_column("Active", justify="center")

    for institution in institutions:
        active = institution.get("is_active", False)
        table.add_row(
            institution.get("cuit", ""),
            institution.get("name", ""),
            institution.get("email") or "—",
            "[green]yes[/green]" if active else "[red]no[/red]",
        )

    return table


def create_page_footer(meta: dict[str, Any]) -> str:
    return (
        f"📊 Page [cyan]{meta.get('page', 1)}[/cyan] of "
        f"[cyan]{meta.get('total_pages', 1)}[/cyan] "
        f"([yellow]{meta.get('total', 0)}[/yellow] total)"
    )


def display_document(document: dict[str, Any]):
    """Show metadata, parsed records and extracted fields of one document"""
    metadata = (
        f"🆔 [bold]ID:[/bold] [cyan]{document.get('id')}[/cyan]\n"
        f"📄 [bold]Name:[/bold] {document.get('original_name')}\n"
        f"🔤 [bold]Type:[/bold] [magenta]{document.get('type')}[/magenta]\n"
        f"✅ [bold]Status:[/bold] {styled_status(document.get('status'))}\n"
        f"📑 [bold]Pages:[/bold] {document.get('page_count') or '—'}\n"
        f"🔒 [bold]SHA-256:[/bold] [dim]{document.get('sha256')}[/dim]"
    )
    console.print(Panel(metadata, title="Document", border_style="blue"))

    for transfer in document.get("bank_transfers", []):
        console.print(
            Panel(
                f"Amount: [green]{transfer.get('amount')}[/green]\n"
                f"Date: {transfer.get('transfer_date') or '—'}\n"
                f"CBU: {transfer.get('cbu') or '—'}\n"
                f"Beneficiary: {transfer.get('beneficiary_name') or '—'} ({transfer.get('beneficiary_cuit') or '—'})\n"
                f"Operation: {transfer.get('operation_number') or '—'}\n"
                f"Reference: {transfer.get('reference_number') or '—'}",
                title="🏦 Bank transfer",
                border_style="green",
            )
        )

    for batch in document.get("contribution_batches", []):
        console.print(
            Panel(
                f"Institution: {batch.get('institution_name')} ({batch.get('institution_cuit') or '—'})\n"
                f"Period: {batch.get('period') or '—'}\n"
                f"Total: [green]{batch.get('total_amount')}[/green]\n"
                f"People: {batch.get('people_count')}\n"
                f"Reconciliation: [yellow]{batch.get('reconciliation_status')}[/yellow]",
                title="📋 Contribution list",
                border_style="green",
            )
        )

    fields = [
        e for e in document.get("extractions", []) if e.get("source") == "parser"
    ]
    if fields:
        table = Table(title="Extracted fields", box=box.SIMPLE)
        table.add_column("Field", style="cyan")
        table.add_column("Value", style="white")
        table.add_column("Confidence", justify="right", style="yellow")
        for extraction in fields:
            confidence = extraction.get("confidence")
            table.add_row(
                extraction.get("field_name", ""),
                extraction.get("field_value", ""),
                f"{confidence:.2f}" if confidence is not None else "—",
            )
        console.print(table)

    jobs = document.get("jobs", [])
    if jobs:
        console.print(create_jobs_table(jobs))


def display_job(job: dict[str, Any]):
    content = (
        f"🆔 [bold]ID:[/bold] [cyan]{job.get('id')}[/cyan]\n"
        f"🔤 [bold]Type:[/bold] [magenta]{job.get('type')}[/magenta]\n"
        f"✅ [bold]Status:[/bold] {styled_status(job.get('status'))}\n"
        f"📄 [bold]Document:[/bold] {job.get('document_id') or '—'}\n"
        f"🔁 [bold]Attempts:[/bold] {job.get('attempts')}/{job.get('max_attempts')}\n"
        f"⏱️ [bold]Started:[/bold] {job.get('started_at') or '—'}\n"
        f"🏁 [bold]Finished:[/bold] {job.get('finished_at') or '—'}"
    )
    if job.get("last_error"):
        content += f"\n❌ [bold]Error:[/bold] [red]{job.get('error_code')}: {job.get('last_error')}[/red]"
    console.print(Panel(content, title="Job", border_style="blue"))

    if job.get("result"):
        console.print(Panel(str(job["result"]), title="Result", border_style="green"))


def create_job_stats_panel(stats: dict[str, Any]) -> Panel:
    by_status = stats.get("by_status", {})
    by_type = stats.get("by_type", {})
    avg = stats.get("avg_runtime_seconds")
    content = (
        f"📊 [bold blue]Job Statistics[/bold blue]\n\n"
        f"• Total jobs: [cyan]{stats.get('total_jobs', 0)}[/cyan]\n"
        f"• Queue depth: [yellow]{stats.get('queue_depth', 0)}[/yellow]\n"
        f"• Errors (last hour): [red]{stats.get('errors_last_hour', 0)}[/red]\n"
        f"• Avg runtime: [green]{f'{avg:.2f}s' if avg is not None else '—'}[/green]\n\n"
        f"[bold]By status:[/bold]\n{format_counts(by_status)}\n\n"
        f"[bold]By type:[/bold]\n{format_counts(by_type)}"
    )
    return Panel(content, title="Jobs Overview", border_style="green")


def format_counts(counts: dict[str, int]) -> str:
    if not counts:
        return "  [dim]none[/dim]"
    return "\n".join(f"  • {key}: [cyan]{value}[/cyan]" for key, value in counts.items())
