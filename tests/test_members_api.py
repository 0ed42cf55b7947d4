"""Member CRUD against PostgreSQL."""

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.db


async def create_member(client: AsyncClient, **overrides) -> dict:
    payload = {"dni": "30123456", "first_name": "María", "last_name": "Gómez", **overrides}
    response = await client.post("/v1/members", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def test_create_defaults(async_client: AsyncClient):
    member = await create_member(async_client, email="maria@example.org")

    assert member["status"] == "PENDING_VERIFICATION"
    assert member["full_name"] == "María Gómez"
    assert member["joined_at"] is not None
    assert member["institution"] is None


async def test_duplicate_dni(async_client: AsyncClient):
    await create_member(async_client)

    response = await async_client.post(
        "/v1/members", json={"dni": "30123456", "first_name": "Otro", "last_name": "Nombre"}
    )

    assert response.status_code == 409


async def test_unknown_institution(async_client: AsyncClient):
    response = await async_client.post(
        "/v1/members",
        json={
            "dni": "30123456",
            "first_name": "María",
            "last_name": "Gómez",
            "institution_id": "00000000-0000-0000-0000-000000000000",
        },
    )

    assert response.status_code == 404
    assert response.json()["error"]["message"] == "Institution not found"


async def test_list_filters_and_sorting(async_client: AsyncClient):
    await create_member(async_client, dni="30000001", last_name="Alvarez")
    await create_member(async_client, dni="30000002", last_name="Zapata", status="ACTIVE")
    await create_member(async_client, dni="40000003", first_name="Juan", last_name="Perez")

    response = await async_client.get("/v1/members", params={"sort": "last_name", "dir": "desc"})
    names = [m["last_name"] for m in response.json()["data"]["members"]]
    assert names == ["Zapata", "Perez", "Alvarez"]

    response = await async_client.get("/v1/members", params={"status": "ACTIVE"})
    assert [m["dni"] for m in response.json()["data"]["members"]] == ["30000002"]

    response = await async_client.get("/v1/members", params={"q": "3000"})
    assert response.json()["data"]["meta"]["total"] == 2


async def test_update_and_detail(async_client: AsyncClient):
    member = await create_member(async_client)

    response = await async_client.put(
        f"/v1/members/{member['id']}", json={"status": "ACTIVE", "phone": "11-5555-0000"}
    )
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "ACTIVE"

    response = await async_client.get(f"/v1/members/{member['id']}")
    detail = response.json()["data"]
    assert detail["phone"] == "11-5555-0000"
    assert detail["document_count"] == 0


async def test_delete(async_client: AsyncClient):
    member = await create_member(async_client)

    response = await async_client.delete(f"/v1/members/{member['id']}")
    assert response.status_code == 204

    response = await async_client.get(f"/v1/members/{member['id']}")
    assert response.status_code == 404
