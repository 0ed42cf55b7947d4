"""Document intake and browsing against PostgreSQL (no worker)."""

from pathlib import Path

import pytest
from httpx import AsyncClient

from tests.samples import BANK_RECEIPT_TEXT

pytestmark = pytest.mark.db


async def upload(client: AsyncClient, content: bytes, name: str = "receipt.txt", **data):
    return await client.post(
        "/v1/documents", files={"file": (name, content, "text/plain")}, data=data
    )


async def test_upload_stores_file_and_enqueues_ocr(async_client: AsyncClient, storage_dirs):
    upload_dir, _ = storage_dirs

    response = await upload(async_client, BANK_RECEIPT_TEXT.encode())

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Document uploaded"
    document = body["data"]["document"]
    assert document["status"] == "uploaded"
    assert document["type"] == "DESCONOCIDO"
    assert document["uploaded_by"] == "DEV_USER"
    assert body["data"]["deduplicated"] is False
    assert (upload_dir / f"{document['id']}.txt").read_text(encoding="utf-8") == BANK_RECEIPT_TEXT

    jobs = await async_client.get("/v1/jobs", params={"document_id": document["id"]})
    (job,) = jobs.json()["data"]["jobs"]
    assert job["id"] == body["data"]["job_id"]
    assert job["type"] == "OCR"
    assert job["status"] == "queued"
    assert job["priority"] == 5
    assert job["dedupe_key"] == f"ocr:{document['sha256']}"


async def test_same_content_is_deduplicated(async_client: AsyncClient):
    first = await upload(async_client, b"Transferencia CBU 1", name="a.txt")
    second = await upload(async_client, b"Transferencia CBU 1", name="b.txt")

    assert second.status_code == 200
    data = second.json()["data"]
    assert data["deduplicated"] is True
    assert data["job_id"] is None
    assert data["document"]["id"] == first.json()["data"]["document"]["id"]
    assert data["document"]["original_name"] == "a.txt"


async def test_upload_with_unknown_member(async_client: AsyncClient):
    response = await upload(
        async_client, b"contenido", member_id="00000000-0000-0000-0000-000000000000"
    )

    assert response.status_code == 404
    assert response.json()["error"]["message"] == "Member not found"


async def test_list_filters_and_search(async_client: AsyncClient):
    await upload(async_client, b"uno", name="marzo.txt")
    await upload(async_client, b"dos", name="abril.txt")

    response = await async_client.get("/v1/documents", params={"search": "MAR"})
    data = response.json()["data"]
    assert [d["original_name"] for d in data["documents"]] == ["marzo.txt"]

    response = await async_client.get("/v1/documents", params={"status": "uploaded"})
    assert response.json()["data"]["meta"]["total"] == 2

    response = await async_client.get("/v1/documents", params={"type": "LISTADO_APORTE"})
    assert response.json()["data"]["documents"] == []


async def test_detail_download_and_missing_export(async_client: AsyncClient):
    created = (await upload(async_client, b"hola")).json()["data"]["document"]

    detail = await async_client.get(f"/v1/documents/{created['id']}")
    assert detail.status_code == 200
    data = detail.json()["data"]
    assert data["extractions"] == []
    assert [j["type"] for j in data["jobs"]] == ["OCR"]

    file_response = await async_client.get(f"/v1/documents/{created['id']}/file")
    assert file_response.status_code == 200
    assert file_response.content == b"hola"

    export = await async_client.get(f"/v1/documents/{created['id']}/export")
    assert export.status_code == 404
    assert export.json()["error"]["message"] == "Export not available yet"


async def test_reprocess_after_cancel_restarts_pipeline(async_client: AsyncClient, storage_dirs):
    _, export_dir = storage_dirs
    created = (await upload(async_client, b"hola")).json()["data"]
    document_id = created["document"]["id"]

    response = await async_client.post(f"/v1/documents/{document_id}/reprocess")
    assert response.status_code == 409

    await async_client.post(f"/v1/jobs/{created['job_id']}/cancel")
    stopped = (await async_client.get(f"/v1/documents/{document_id}")).json()["data"]
    assert stopped["status"] == "error"

    export_dir.mkdir(parents=True, exist_ok=True)
    stale_export = export_dir / f"{document_id}.csv"
    stale_export.write_text("field,value\n")
    assert (await async_client.get(f"/v1/documents/{document_id}/export")).status_code == 200

    response = await async_client.post(f"/v1/documents/{document_id}/reprocess")
    assert response.status_code == 202
    assert response.json()["data"]["type"] == "OCR"

    assert not stale_export.exists()
    assert (await async_client.get(f"/v1/documents/{document_id}/export")).status_code == 404
    restarted = (await async_client.get(f"/v1/documents/{document_id}")).json()["data"]
    assert restarted["status"] == "uploaded"


async def test_delete_removes_file(async_client: AsyncClient, storage_dirs):
    created = (await upload(async_client, b"borrar")).json()["data"]
    document_id = created["document"]["id"]

    response = await async_client.delete(f"/v1/documents/{document_id}")
    assert response.status_code == 409

    await async_client.post(f"/v1/jobs/{created['job_id']}/cancel")
    response = await async_client.delete(f"/v1/documents/{document_id}")
    assert response.status_code == 204
    assert not Path(storage_dirs[0] / f"{document_id}.txt").exists()

    response = await async_client.get(f"/v1/documents/{document_id}")
    assert response.status_code == 404
