"""Write a processed document to CSV or JSON."""

import csv
import json
from decimal import Decimal
from pathlib import Path
from typing import Any
from uuid import UUID

from docuflow.config.settings import ExportFormat
from docuflow.v1.documents.models import (
    BankTransfer,
    ContributionBatch,
    Document,
    Extraction,
    ExtractionSource,
)

EXTENSIONS = {ExportFormat.CSV: "csv", ExportFormat.JSON: "json"}
MEDIA_TYPES = {ExportFormat.CSV: "text/csv", ExportFormat.JSON: "application/json"}


def export_path(export_dir: str | Path, document_id: UUID, fmt: ExportFormat) -> Path:
    return Path(export_dir) / f"{document_id}.{EXTENSIONS[fmt]}"


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, UUID):
        return str(value)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


def build_export_data(
    document: Document,
    extractions: list[Extraction],
    transfers: list[BankTransfer],
    batches: list[ContributionBatch],
) -> dict[str, Any]:
    """Collect document metadata, parsed fields and records into plain data."""
    return {
        "document": {
            "id": str(document.id),
            "original_name": document.original_name,
            "mime_type": document.mime_type,
            "size": document.size,
            "sha256": document.sha256,
            "type": document.type,
            "status": document.status,
            "page_count": document.page_count,
            "created_at": _plain(document.created_at),
        },
        "fields": {
            e.field_name: e.field_value
            for e in extractions
            if e.source == ExtractionSource.PARSER.value
        },
        "bank_transfers": [
            {
                "beneficiary_name": t.beneficiary_name,
                "beneficiary_cuit": t.beneficiary_cuit,
                "cbu": t.cbu,
                "transfer_date": _plain(t.transfer_date),
                "operation_number": t.operation_number,
                "reference_number": t.reference_number,
                "amount": _plain(t.amount),
            }
            for t in transfers
        ],
        "contribution_batches": [
            {
                "institution_name": b.institution_name,
                "institution_cuit": b.institution_cuit,
                "period": b.period,
                "concept": b.concept,
                "people_count": b.people_count,
                "total_amount": _plain(b.total_amount),
                "reconciliation_status": b.reconciliation_status,
                "items": [
                    {
                        "file_number": i.file_number,
                        "full_name_raw": i.full_name_raw,
                        "remunerative_amount": _plain(i.remunerative_amount),
                        "contribution_amount": _plain(i.contribution_amount),
                    }
                    for i in b.items
                ],
            }
            for b in batches
        ],
    }


def write_json(data: dict[str, Any], path: Path) -> None:
    path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


def write_csv(data: dict[str, Any], path: Path) -> None:
    """One ``field,value`` row per field, then one row per contribution item."""
    with path.open("w", newline="", encoding="utf-8") as fh:
        writer = csv.writer(fh)
        writer.writerow(["field", "value"])
        for key, value in data["document"].items():
            writer.writerow([f"document.{key}", "" if value is None else value])
        for key, value in data["fields"].items():
            writer.writerow([key, value])
        for idx, transfer in enumerate(data["bank_transfers"]):
            for key, value in transfer.items():
                writer.writerow([f"transfer[{idx}].{key}", "" if value is None else value])

        for batch in data["contribution_batches"]:
            writer.writerow([])
            writer.writerow(
                ["file_number", "full_name_raw", "remunerative_amount", "contribution_amount"]
            )
            for item in batch["items"]:
                writer.writerow(
                    [
                        item["file_number"] or "",
                        item["full_name_raw"],
                        item["remunerative_amount"] or "",
                        item["contribution_amount"] or "",
                    ]
                )


def write_export(data: dict[str, Any], export_dir: str | Path, fmt: ExportFormat) -> Path:
    path = export_path(export_dir, UUID(data["document"]["id"]), fmt)
    path.parent.mkdir(parents=True, exist_ok=True)
    if fmt == ExportFormat.JSON:
        write_json(data, path)
    else:
        write_csv(data, path)
    return path
