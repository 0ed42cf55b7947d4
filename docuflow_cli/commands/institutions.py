"""Institution Commands"""

import typer
from rich.console import Console

from ..client.endpoints import DocuFlowClient, DocuFlowError
from ..utils.config_manager import config
from ..utils.formatting import (
    create_institutions_table,
    create_page_footer,
    print_error,
    print_info,
)

console = Console()
app = typer.Typer(name="institutions", help="Institution browsing commands")


@app.command("list")
def list_institutions(
    q: str | None = typer.Option(None, "--search", "-q", help="Search name, CUIT or email"),
    page: int = typer.Option(1, "--page", "-p", help="Page number"),
):
    """🏛️ List institutions"""
    page_size = int(config.get("display.page_size", 20))
    try:
        with DocuFlowClient() as client:
            data = client.list_institutions(q=q, page=page, page_size=page_size)
    except DocuFlowError as e:
        print_error(f"Failed to list institutions: {e}")
        raise typer.Exit(1) from None

    institutions = data.get("institutions", [])
    if not institutions:
        print_info("No institutions found")
        return

    console.print(create_institutions_table(institutions))
    console.print(create_page_footer(data.get("meta", {})))
