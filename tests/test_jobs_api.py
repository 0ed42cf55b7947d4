"""Job queue endpoints against PostgreSQL."""

from uuid import UUID

import pytest
from httpx import AsyncClient
from sqlalchemy import update

from docuflow.v1.infra.jobs.models import Job, JobStatus

pytestmark = pytest.mark.db


@pytest.fixture
async def document_id(async_client: AsyncClient) -> str:
    response = await async_client.post(
        "/v1/documents", files={"file": ("nota.txt", b"nota", "text/plain")}
    )
    return response.json()["data"]["document"]["id"]


async def test_enqueue_clamps_and_dedupes(async_client: AsyncClient, document_id: str):
    request = {
        "type": "EXPORT",
        "payload": {"document_id": document_id, "format": "JSON"},
        "priority": 99,
        "max_attempts": 50,
        "dedupe_key": "export-once",
    }

    first = await async_client.post("/v1/jobs", json=request)
    second = await async_client.post("/v1/jobs", json=request)

    assert first.status_code == 201
    assert second.status_code == 200
    assert second.json()["data"]["deduplicated"] is True
    assert second.json()["data"]["job_id"] == first.json()["data"]["job_id"]

    job = (await async_client.get(f"/v1/jobs/{first.json()['data']['job_id']}")).json()["data"]
    assert job["priority"] == 10
    assert job["max_attempts"] == 10
    assert job["document_id"] == document_id
    assert job["requested_by"] == "DEV_USER"


async def test_enqueue_for_unknown_document(async_client: AsyncClient):
    missing = "00000000-0000-4000-8000-000000000000"

    response = await async_client.post(
        "/v1/jobs", json={"type": "PARSING", "payload": {"document_id": missing}}
    )

    assert response.status_code == 404
    assert response.json()["error"]["message"] == "Document not found"
    listed = (await async_client.get("/v1/jobs", params={"type": "PARSING"})).json()
    assert listed["data"]["total"] == 0


async def test_list_orders_by_priority(async_client: AsyncClient, document_id: str):
    await async_client.post(
        "/v1/jobs",
        json={"type": "EXPORT", "payload": {"document_id": document_id}, "priority": 9},
    )

    response = await async_client.get("/v1/jobs", params={"status": ["queued"]})
    jobs = response.json()["data"]["jobs"]

    assert [(j["type"], j["priority"]) for j in jobs] == [("EXPORT", 9), ("OCR", 5)]
    assert response.json()["data"]["total"] == 2


async def test_cancel_then_retry_rules(async_client: AsyncClient, document_id: str):
    jobs = (await async_client.get("/v1/jobs", params={"document_id": document_id})).json()
    job_id = jobs["data"]["jobs"][0]["id"]

    canceled = await async_client.post(f"/v1/jobs/{job_id}/cancel")
    assert canceled.status_code == 200
    assert canceled.json()["data"]["status"] == "canceled"
    assert canceled.json()["data"]["finished_at"] is not None

    document = (await async_client.get(f"/v1/documents/{document_id}")).json()["data"]
    assert document["status"] == "error"

    again = await async_client.post(f"/v1/jobs/{job_id}/cancel")
    assert again.status_code == 409

    retry = await async_client.post(f"/v1/jobs/{job_id}/retry")
    assert retry.status_code == 409
    assert retry.json()["error"]["details"]["status"] == "canceled"


async def test_retry_errored_job(async_client: AsyncClient, db_session, document_id: str):
    jobs = (await async_client.get("/v1/jobs", params={"document_id": document_id})).json()
    job_id = jobs["data"]["jobs"][0]["id"]
    await db_session.execute(
        update(Job)
        .where(Job.id == UUID(job_id))
        .values(status=JobStatus.ERROR.value, attempts=3, last_error="boom")
    )
    await db_session.commit()

    response = await async_client.post(f"/v1/jobs/{job_id}/retry")

    assert response.status_code == 200
    job = response.json()["data"]
    assert job["status"] == "queued"
    assert job["attempts"] == 0
    assert job["last_error"] is None


async def test_stats(async_client: AsyncClient, document_id: str):
    response = await async_client.get("/v1/jobs/stats/overview")

    stats = response.json()["data"]
    assert stats["total_jobs"] == 1
    assert stats["by_status"] == {"queued": 1}
    assert stats["by_type"] == {"OCR": 1}
    assert stats["queue_depth"] == 1
    assert stats["avg_runtime_seconds"] is None


async def test_cleanup_keeps_recent_jobs(async_client: AsyncClient, document_id: str):
    response = await async_client.post("/v1/jobs/cleanup")

    assert response.status_code == 200
    assert response.json()["data"]["deleted"] == 0


async def test_unknown_job(async_client: AsyncClient):
    response = await async_client.get("/v1/jobs/00000000-0000-0000-0000-000000000000")

    assert response.status_code == 404
