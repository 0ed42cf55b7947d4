"""End-to-end pipeline: upload, drain the worker, inspect the results."""

import json

import pytest
from httpx import AsyncClient

from docuflow.config.settings import ExportFormat, settings
from docuflow.v1.infra.jobs.worker import JobWorker
from tests.samples import (
    BANK_RECEIPT_TEXT,
    CONTRIBUTION_LIST_TEXT,
    VALID_CBU,
    VALID_CUIT,
    VALID_INSTITUTION_CUIT,
)

pytestmark = pytest.mark.db


async def upload_and_drain(client: AsyncClient, text: str, name: str) -> dict:
    response = await client.post(
        "/v1/documents", files={"file": (name, text.encode("utf-8"), "text/plain")}
    )
    assert response.status_code == 201, response.text
    document_id = response.json()["data"]["document"]["id"]

    await JobWorker(settings).drain()

    detail = await client.get(f"/v1/documents/{document_id}")
    assert detail.status_code == 200
    return detail.json()["data"]


def fields_of(document: dict) -> dict:
    return {e["field_name"]: e["field_value"] for e in document["extractions"]}


async def test_bank_receipt_pipeline(async_client: AsyncClient, storage_dirs):
    _, export_dir = storage_dirs

    document = await upload_and_drain(async_client, BANK_RECEIPT_TEXT, "comprobante.txt")

    assert document["type"] == "COMPROBANTE_BANCO"
    assert document["status"] == "processed"
    assert document["page_count"] == 1
    assert sorted(j["type"] for j in document["jobs"]) == ["EXPORT", "OCR", "PARSING", "VALIDATION"]
    assert all(j["status"] == "done" for j in document["jobs"])
    assert all(j["attempts"] == 1 for j in document["jobs"])

    (transfer,) = document["bank_transfers"]
    assert transfer["cbu"] == VALID_CBU
    assert transfer["beneficiary_cuit"] == VALID_CUIT
    assert transfer["transfer_date"] == "2024-03-15"
    assert float(transfer["amount"]) == 15000.50

    fields = fields_of(document)
    assert fields["page:1"].startswith("Comprobante de transferencia")
    assert "full_text" in fields
    assert fields["operation_number"] == "987654"

    export = export_dir / f"{document['id']}.csv"
    assert export.is_file()
    response = await async_client.get(f"/v1/documents/{document['id']}/export")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")


async def test_contribution_list_pipeline(async_client: AsyncClient):
    document = await upload_and_drain(async_client, CONTRIBUTION_LIST_TEXT, "listado.txt")

    assert document["type"] == "LISTADO_APORTE"
    assert document["status"] == "processed"

    (batch,) = document["contribution_batches"]
    assert batch["institution_cuit"] == VALID_INSTITUTION_CUIT
    assert batch["period"] == "03/2024"
    assert batch["people_count"] == 2
    assert batch["reconciliation_status"] == "CONCILIADO"
    assert [i["full_name_raw"] for i in batch["items"]] == ["GONZALEZ MARIA", "PEREZ JUAN"]

    validation = next(j for j in document["jobs"] if j["type"] == "VALIDATION")
    assert validation["result"]["valid"] is True
    assert validation["result"]["reconciliation_status"] == "CONCILIADO"
    assert validation["metrics"]["status"] == "OK"


async def test_mismatched_total_goes_to_review(async_client: AsyncClient):
    text = CONTRIBUTION_LIST_TEXT.replace("Total aportes: 5.000,00", "Total aportes: 6.000,00")

    document = await upload_and_drain(async_client, text, "listado.txt")

    assert document["status"] == "review"
    assert document["contribution_batches"][0]["reconciliation_status"] == "DIFERENCIA"
    validation = next(j for j in document["jobs"] if j["type"] == "VALIDATION")
    assert validation["result"]["errors"]
    assert validation["metrics"]["status"] == "WARN"


async def test_list_links_known_institution(async_client: AsyncClient):
    institution = await async_client.post(
        "/v1/institutions", json={"name": "Escuela Técnica N° 5", "cuit": VALID_INSTITUTION_CUIT}
    )

    document = await upload_and_drain(async_client, CONTRIBUTION_LIST_TEXT, "listado.txt")

    assert document["contribution_batches"][0]["institution_id"] == institution.json()["data"]["id"]


async def test_unknown_document_type(async_client: AsyncClient):
    document = await upload_and_drain(async_client, "Hola, esto no es nada.", "nota.txt")

    assert document["type"] == "DESCONOCIDO"
    assert document["status"] == "review"
    assert document["bank_transfers"] == []


async def test_reprocess_replaces_records(async_client: AsyncClient, monkeypatch, storage_dirs):
    _, export_dir = storage_dirs
    monkeypatch.setattr(settings, "export_default_format", ExportFormat.JSON)
    document = await upload_and_drain(async_client, BANK_RECEIPT_TEXT, "comprobante.txt")

    response = await async_client.post(f"/v1/documents/{document['id']}/reprocess")
    assert response.status_code == 202
    await JobWorker(settings).drain()

    detail = (await async_client.get(f"/v1/documents/{document['id']}")).json()["data"]
    assert detail["status"] == "processed"
    assert len(detail["bank_transfers"]) == 1
    assert len(detail["jobs"]) == 8
    exported = json.loads((export_dir / f"{document['id']}.json").read_text(encoding="utf-8"))
    assert exported["fields"]["cbu"] == VALID_CBU


async def test_missing_file_fails_permanently(async_client: AsyncClient, storage_dirs):
    upload_dir, _ = storage_dirs
    response = await async_client.post(
        "/v1/documents", files={"file": ("gone.txt", b"Transferencia", "text/plain")}
    )
    document_id = response.json()["data"]["document"]["id"]
    (upload_dir / f"{document_id}.txt").unlink()

    await JobWorker(settings).drain()

    job = (await async_client.get(f"/v1/jobs/{response.json()['data']['job_id']}")).json()["data"]
    assert job["status"] == "error"
    assert job["error_code"] == "PERMANENT_ERROR"
    assert "Stored file not found" in job["last_error"]
