import csv
import json
from datetime import UTC, date, datetime
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest

from docuflow.config.settings import ExportFormat
from docuflow.v1.extraction.exporters import (
    MEDIA_TYPES,
    build_export_data,
    export_path,
    write_export,
)
from tests.samples import VALID_CBU, VALID_CUIT, VALID_INSTITUTION_CUIT


@pytest.fixture
def document():
    return SimpleNamespace(
        id=uuid4(),
        original_name="receipt.txt",
        mime_type="text/plain",
        size=120,
        sha256="ab" * 32,
        type="COMPROBANTE_BANCO",
        status="processed",
        page_count=1,
        created_at=datetime(2024, 3, 15, 12, 0, tzinfo=UTC),
    )


@pytest.fixture
def extractions():
    return [
        SimpleNamespace(source="plain", field_name="full_text", field_value="..."),
        SimpleNamespace(source="parser", field_name="amount", field_value="15000.50"),
        SimpleNamespace(source="parser", field_name="cbu", field_value=VALID_CBU),
    ]


@pytest.fixture
def transfer():
    return SimpleNamespace(
        beneficiary_name="Sindicato de Trabajadores",
        beneficiary_cuit=VALID_CUIT,
        cbu=VALID_CBU,
        transfer_date=date(2024, 3, 15),
        operation_number="987654",
        reference_number=None,
        amount=Decimal("15000.50"),
    )


@pytest.fixture
def batch():
    items = [
        SimpleNamespace(
            file_number="1",
            full_name_raw="GONZALEZ MARIA",
            remunerative_amount=Decimal("150000.00"),
            contribution_amount=Decimal("3000.00"),
        ),
        SimpleNamespace(
            file_number=None,
            full_name_raw="PEREZ JUAN",
            remunerative_amount=None,
            contribution_amount=Decimal("2000.00"),
        ),
    ]
    return SimpleNamespace(
        institution_name="Escuela Técnica N° 5",
        institution_cuit=VALID_INSTITUTION_CUIT,
        period="03/2024",
        concept="Aporte sindical",
        people_count=2,
        total_amount=Decimal("5000.00"),
        reconciliation_status="CONCILIADO",
        items=items,
    )


def test_build_export_data_keeps_only_parser_fields(document, extractions, transfer):
    data = build_export_data(document, extractions, [transfer], [])

    assert data["document"]["id"] == str(document.id)
    assert data["document"]["created_at"] == "2024-03-15T12:00:00+00:00"
    assert data["fields"] == {"amount": "15000.50", "cbu": VALID_CBU}
    assert data["bank_transfers"][0]["amount"] == "15000.50"
    assert data["bank_transfers"][0]["transfer_date"] == "2024-03-15"
    assert data["contribution_batches"] == []


def test_json_export(tmp_path, document, extractions, transfer):
    data = build_export_data(document, extractions, [transfer], [])

    path = write_export(data, tmp_path / "exports", ExportFormat.JSON)

    assert path == export_path(tmp_path / "exports", document.id, ExportFormat.JSON)
    assert path.name.endswith(".json")
    assert json.loads(path.read_text(encoding="utf-8")) == data


def test_csv_export_lists_fields_then_items(tmp_path, document, extractions, batch):
    data = build_export_data(document, extractions, [], [batch])

    path = write_export(data, tmp_path, ExportFormat.CSV)

    with path.open(newline="", encoding="utf-8") as fh:
        rows = list(csv.reader(fh))
    assert rows[0] == ["field", "value"]
    assert ["document.original_name", "receipt.txt"] in rows
    assert ["amount", "15000.50"] in rows

    header = rows.index(
        ["file_number", "full_name_raw", "remunerative_amount", "contribution_amount"]
    )
    assert rows[header - 1] == []
    assert rows[header + 1] == ["1", "GONZALEZ MARIA", "150000.00", "3000.00"]
    assert rows[header + 2] == ["", "PEREZ JUAN", "", "2000.00"]


def test_csv_transfer_rows_blank_missing_values(tmp_path, document, extractions, transfer):
    data = build_export_data(document, extractions, [transfer], [])

    path = write_export(data, tmp_path, ExportFormat.CSV)

    with path.open(newline="", encoding="utf-8") as fh:
        rows = list(csv.reader(fh))
    assert ["transfer[0].reference_number", ""] in rows
    assert ["transfer[0].cbu", VALID_CBU] in rows


def test_media_types():
    assert MEDIA_TYPES[ExportFormat.CSV] == "text/csv"
    assert MEDIA_TYPES[ExportFormat.JSON] == "application/json"
