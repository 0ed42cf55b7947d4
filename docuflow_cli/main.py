"""DocuFlow CLI - Main Entry Point"""

import typer
from rich.console import Console
from rich.panel import Panel

from . import __version__
from .client.endpoints import DocuFlowClient, DocuFlowError
from .commands import config, documents, institutions, jobs, members
from .utils.config_manager import config as config_manager
from .utils.formatting import print_error, print_info

console = Console()

app = typer.Typer(
    name="docuflow",
    help="📄 DocuFlow - document intake and processing CLI",
    rich_markup_mode="rich",
)

app.add_typer(documents.app, name="documents")
app.add_typer(jobs.app, name="jobs")
app.add_typer(members.app, name="members")
app.add_typer(institutions.app, name="institutions")
app.add_typer(config.app, name="config")


@app.command()
def status():
    """📊 Check API connectivity, database and worker health"""
    base_url = config_manager.get("api.base_url")
    print_info(f"Checking connection to: {base_url}")

    try:
        with DocuFlowClient(base_url) as client:
            health = client.health_check()
    except DocuFlowError as e:
        print_error(f"Failed to connect: {e}")
        console.print(
            Panel(
                f"🚫 [red]Connection Failed[/red]\n\n"
                f"Make sure the DocuFlow API is running at:\n"
                f"[blue]{base_url}[/blue]\n\n"
                f"You can update the API URL with:\n"
                f"[cyan]docuflow config set api.base_url <url>[/cyan]",
                title="Connection Error",
                border_style="red",
            )
        )
        raise typer.Exit(1) from None

    database = health.get("database", {})
    worker = health.get("worker", {})
    healthy = health.get("ok", False)
    console.print(
        Panel(
            f"{'🚀 [green]Healthy[/green]' if healthy else '⚠️ [yellow]Degraded[/yellow]'}\n\n"
            f"• Version: [cyan]{health.get('version', 'unknown')}[/cyan]\n"
            f"• Environment: [yellow]{health.get('environment', 'unknown')}[/yellow]\n"
            f"• Database: {'[green]connected[/green]' if database.get('connected') else '[red]unavailable[/red]'}"
            f" ({database.get('response_time_ms', '—')} ms)\n"
            f"• Active workers: [cyan]{worker.get('active_workers', 0)}[/cyan]\n"
            f"• Queue depth: [cyan]{worker.get('queue_depth', 0)}[/cyan]\n"
            f"• Stuck jobs: [red]{worker.get('stuck_jobs_count', 0)}[/red]\n"
            f"• API URL: [blue]{base_url}[/blue]",
            title="System Status",
            border_style="green" if healthy else "yellow",
        )
    )


@app.command()
def version():
    """📎 Show CLI version information"""
    console.print(
        Panel(
            f"📄 [bold cyan]DocuFlow CLI[/bold cyan]\n\n"
            f"• Version: [green]{__version__}[/green]",
            title="Version Info",
            border_style="cyan",
        )
    )


@app.command()
def quickstart():
    """🚀 Quick start guide"""
    console.print(
        Panel(
            "📄 [bold cyan]DocuFlow Quick Start[/bold cyan]\n\n"
            "[bold]1. Check Status[/bold]\n"
            "   [dim]docuflow status[/dim]\n\n"
            "[bold]2. Upload a Document[/bold]\n"
            "   [dim]docuflow documents upload comprobante.pdf[/dim]\n\n"
            "[bold]3. Watch the Pipeline[/bold]\n"
            "   [dim]docuflow jobs list --document <id>[/dim]\n\n"
            "[bold]4. Inspect the Result[/bold]\n"
            "   [dim]docuflow documents show <id>[/dim]\n\n"
            "[bold yellow]Tip:[/bold yellow] Use [cyan]--help[/cyan] with any command for more options!",
            title="Quick Start Guide",
            border_style="green",
        )
    )


def _version_callback(value: bool):
    if value:
        console.print(f"DocuFlow CLI v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    show_version: bool = typer.Option(
        False, "--version", "-v", callback=_version_callback, is_eager=True,
        help="Show version and exit",
    ),
):
    """
    📄 DocuFlow CLI

    Upload receipts and contribution lists, follow the OCR and parsing
    pipeline, and browse members and institutions.
    """


if __name__ == "__main__":
    app()
