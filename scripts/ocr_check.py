#!/usr/bin/env python3
"""
OCR Check - run text extraction and classification on a local file

Prints the method, confidence and per-page text the OCR stage would store,
followed by the detected document type and parsed fields.

Usage:
    python scripts/ocr_check.py comprobante.pdf
"""

import mimetypes
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

import docuflow.v1.extraction.registry_init  # noqa: F401
from docuflow.v1.core.registries import document_parser_registry, text_extractor_registry
from docuflow.v1.extraction.classifier import classify
from docuflow.v1.extraction.text import ExtractionError

console = Console()


def ocr_check(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="File to extract"),
    mime_type: str | None = typer.Option(None, "--mime", help="Override the guessed mime type"),
):
    mime = mime_type or mimetypes.guess_type(file.name)[0] or "application/octet-stream"
    if not text_extractor_registry.has(mime):
        console.print(f"[red]✗ Unsupported file type: {mime}[/red]")
        raise typer.Exit(1)

    try:
        extracted = text_extractor_registry.get(mime).extract(file)
    except ExtractionError as e:
        console.print(f"[red]✗ Extraction failed: {e}[/red]")
        raise typer.Exit(1) from None

    confidence = f"{extracted.confidence:.2f}" if extracted.confidence is not None else "—"
    console.print(
        Panel(
            f"Method: [cyan]{extracted.method}[/cyan]\n"
            f"Pages: [yellow]{extracted.page_count}[/yellow]\n"
            f"Characters: [yellow]{extracted.char_count}[/yellow]\n"
            f"Confidence: [green]{confidence}[/green]",
            title=file.name,
            border_style="blue",
        )
    )
    for index, page in enumerate(extracted.pages, start=1):
        console.print(Panel(page or "[dim](empty)[/dim]", title=f"Page {index}"))

    doc_type = classify(extracted.full_text)
    console.print(f"\nDetected type: [magenta]{doc_type.value}[/magenta]")
    if not document_parser_registry.has(doc_type.value):
        return

    parsed = document_parser_registry.get(doc_type.value).parse(extracted.full_text)
    table = Table(title="Parsed fields")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for name, value in parsed.fields().items():
        table.add_row(name, "—" if value is None else str(value))
    console.print(table)


if __name__ == "__main__":
    typer.run(ocr_check)
