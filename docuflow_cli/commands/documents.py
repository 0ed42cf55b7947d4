"""Document Commands - upload and browse documents"""

from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel

from ..client.endpoints import DocuFlowClient, DocuFlowError
from ..utils.config_manager import config
from ..utils.formatting import (
    create_documents_table,
    create_page_footer,
    display_document,
    print_error,
    print_info,
    print_success,
    print_warning,
)

console = Console()
app = typer.Typer(name="documents", help="Document upload and browsing commands")


@app.command("upload")
def upload_document(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="File to upload"),
    member_id: str | None = typer.Option(None, "--member", "-m", help="Owning member ID"),
    institution_id: str | None = typer.Option(
        None, "--institution", "-i", help="Issuing institution ID"
    ),
):
    """📤 Upload a document and start processing"""
    try:
        with DocuFlowClient() as client:
            print_info(f"Uploading {file.name}")
            result = client.upload_document(
                file, member_id=member_id, institution_id=institution_id
            )
    except DocuFlowError as e:
        print_error(f"Upload failed: {e}")
        raise typer.Exit(1) from None

    document = result.get("document", {})
    if result.get("deduplicated"):
        print_warning("This file was already uploaded; returning the existing document")
    else:
        print_success("Document uploaded")

    console.print(
        Panel(
            f"🆔 Document: [cyan]{document.get('id')}[/cyan]\n"
            f"✅ Status: [yellow]{document.get('status')}[/yellow]\n"
            f"⚙️ OCR job: [cyan]{result.get('job_id') or '—'}[/cyan]",
            title=document.get("original_name", "Document"),
            border_style="green",
        )
    )
    console.print(f"💡 Follow progress with [cyan]docuflow documents show {document.get('id')}[/cyan]")


@app.command("list")
def list_documents(
    type: str | None = typer.Option(None, "--type", "-t", help="COMPROBANTE_BANCO, LISTADO_APORTE or DESCONOCIDO"),
    status: str | None = typer.Option(None, "--status", "-s", help="Filter by status"),
    search: str | None = typer.Option(None, "--search", "-q", help="Search by file name"),
    page: int = typer.Option(1, "--page", "-p", help="Page number"),
):
    """📋 List documents, newest first"""
    page_size = int(config.get("display.page_size", 20))
    try:
        with DocuFlowClient() as client:
            data = client.list_documents(
                type=type, status=status, search=search, page=page, page_size=page_size
            )
    except DocuFlowError as e:
        print_error(f"Failed to list documents: {e}")
        raise typer.Exit(1) from None

    documents = data.get("documents", [])
    if not documents:
        console.print(Panel("📭 [yellow]No documents found[/yellow]", border_style="yellow"))
        return

    console.print(create_documents_table(documents))
    console.print(create_page_footer(data.get("meta", {})))


@app.command("show")
def show_document(
    document_id: str = typer.Argument(..., help="Document ID"),
):
    """🔍 Show a document with its parsed data and jobs"""
    try:
        with DocuFlowClient() as client:
            document = client.get_document(document_id)
    except DocuFlowError as e:
        print_error(f"Failed to get document: {e}")
        raise typer.Exit(1) from None

    display_document(document)


@app.command("reprocess")
def reprocess_document(
    document_id: str = typer.Argument(..., help="Document ID"),
):
    """🔄 Re-run the processing pipeline for a document"""
    try:
        with DocuFlowClient() as client:
            job = client.reprocess_document(document_id)
    except DocuFlowError as e:
        print_error(f"Failed to reprocess document: {e}")
        raise typer.Exit(1) from None

    print_success(f"Reprocessing started (job {job.get('job_id')})")
