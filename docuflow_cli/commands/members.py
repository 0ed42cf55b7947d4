"""Member Commands"""

import typer
from rich.console import Console

from ..client.endpoints import DocuFlowClient, DocuFlowError
from ..utils.config_manager import config
from ..utils.formatting import create_members_table, create_page_footer, print_error, print_info

console = Console()
app = typer.Typer(name="members", help="Member browsing commands")


@app.command("list")
def list_members(
    q: str | None = typer.Option(None, "--search", "-q", help="Search DNI, names or email"),
    status: str | None = typer.Option(None, "--status", "-s", help="Filter by status"),
    institution_id: str | None = typer.Option(None, "--institution", "-i", help="Filter by institution"),
    page: int = typer.Option(1, "--page", "-p", help="Page number"),
):
    """👥 List members"""
    page_size = int(config.get("display.page_size", 20))
    try:
        with DocuFlowClient() as client:
            data = client.list_members(
                q=q, status=status, institution_id=institution_id, page=page, page_size=page_size
            )
    except DocuFlowError as e:
        print_error(f"Failed to list members: {e}")
        raise typer.Exit(1) from None

    members = data.get("members", [])
    if not members:
        print_info("No members found")
        return

    console.print(create_members_table(members))
    console.print(create_page_footer(data.get("meta", {})))
