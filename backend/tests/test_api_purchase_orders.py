import uuid

import pytest
from httpx import ASGITransport, AsyncClient

from app.api.deps import get_db
from app.core.security import create_access_token
from app.main import app as fastapi_app

BASE = "/api/v1/purchase-orders"


@pytest.fixture
async def client(session_maker):
    async def _get_test_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    fastapi_app.dependency_overrides[get_db] = _get_test_db
    async with AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://test") as ac:
        yield ac
    fastapi_app.dependency_overrides.clear()


def _headers(store_id, role: str = "STORE_ADMIN") -> dict:
    token = create_access_token(uuid.uuid4(), store_id, extra_claims={"role": role})
    return {"Authorization": f"Bearer {token}"}


def _create_body(store, quantity: int = 10, unit_cost: str = "5.00", product_id=None) -> dict:
    return {
        "supplier_id": str(store.supplier_id),
        "notes": "weekly restock",
        "lines": [
            {
                "product_id": str(product_id or store.bulk_product_id),
                "ordered_quantity": quantity,
                "unit_cost": unit_cost,
            }
        ],
    }


async def _create_po(client, store, **kwargs) -> dict:
    resp = await client.post(BASE, json=_create_body(store, **kwargs), headers=_headers(store.store_id))
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def test_health_is_public(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


async def test_requests_without_token_are_unauthorized(client):
    resp = await client.get(BASE)
    assert resp.status_code == 401


async def test_create_and_get_po(client, store):
    created = await _create_po(client, store)

    assert created["status"] == "ORDERED"
    assert created["total_amount"] == "50.00"
    assert created["po_number"].endswith("-00001")
    assert created["supplier"]["id"] == str(store.supplier_id)
    assert created["lines"][0]["received_quantity"] == 0

    resp = await client.get(f"{BASE}/{created['id']}", headers=_headers(store.store_id))
    assert resp.status_code == 200
    assert resp.json()["data"]["po_number"] == created["po_number"]


async def test_staff_cannot_create(client, store):
    resp = await client.post(BASE, json=_create_body(store), headers=_headers(store.store_id, role="STAFF"))
    assert resp.status_code == 403


async def test_create_with_empty_lines_is_invalid_input(client, store):
    body = _create_body(store)
    body["lines"] = []

    resp = await client.post(BASE, json=body, headers=_headers(store.store_id))

    assert resp.status_code == 400
    error = resp.json()["error"]
    assert error["code"] == "INVALID_INPUT"
    assert error["field_errors"]


async def test_create_with_unknown_product_is_not_found(client, store):
    resp = await client.post(
        BASE, json=_create_body(store, product_id=uuid.uuid4()), headers=_headers(store.store_id)
    )

    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "NOT_FOUND"


async def test_po_of_another_store_is_not_found(client, store, other_store):
    created = await _create_po(client, store)

    resp = await client.get(f"{BASE}/{created['id']}", headers=_headers(other_store.store_id))

    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "NOT_FOUND"


async def test_list_returns_pagination_meta(client, store):
    await _create_po(client, store)
    await _create_po(client, store)

    resp = await client.get(BASE, params={"page_size": 1}, headers=_headers(store.store_id))

    assert resp.status_code == 200
    body = resp.json()
    assert len(body["data"]) == 1
    assert body["data"][0]["line_count"] == 1
    assert body["meta"]["total_count"] == 2
    assert body["meta"]["total_pages"] == 2


async def test_receive_then_over_receive(client, store):
    created = await _create_po(client, store)
    line_id = created["lines"][0]["id"]
    url = f"{BASE}/{created['id']}/lines/{line_id}/receive"
    clerk = _headers(store.store_id, role="STOCK_CLERK")

    resp = await client.post(url, json={"received_quantity": 4, "location_id": str(store.location_id)}, headers=clerk)
    assert resp.status_code == 200
    assert resp.json()["data"]["received_quantity"] == 4

    resp = await client.get(f"{BASE}/{created['id']}", headers=clerk)
    assert resp.json()["data"]["status"] == "PARTIALLY_RECEIVED"

    resp = await client.post(url, json={"received_quantity": 7, "location_id": str(store.location_id)}, headers=clerk)
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "INVALID_QUANTITY"


async def test_receive_zero_is_invalid_quantity(client, store):
    created = await _create_po(client, store)
    url = f"{BASE}/{created['id']}/lines/{created['lines'][0]['id']}/receive"

    resp = await client.post(
        url, json={"received_quantity": 0, "location_id": str(store.location_id)}, headers=_headers(store.store_id)
    )

    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "INVALID_QUANTITY"


async def test_serialized_receipt_with_missing_items_is_invalid_input(client, store):
    created = await _create_po(client, store, quantity=2, unit_cost="300.00", product_id=store.serialized_product_id)
    url = f"{BASE}/{created['id']}/lines/{created['lines'][0]['id']}/receive"

    resp = await client.post(
        url,
        json={
            "received_quantity": 2,
            "location_id": str(store.location_id),
            "serialized_items": [{"unit_id": "SN-1"}],
        },
        headers=_headers(store.store_id),
    )

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "INVALID_INPUT"


async def test_update_rejects_unknown_fields(client, store):
    created = await _create_po(client, store)

    resp = await client.patch(
        f"{BASE}/{created['id']}", json={"status": "RECEIVED"}, headers=_headers(store.store_id)
    )

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "INVALID_INPUT"


async def test_update_notes(client, store):
    created = await _create_po(client, store)

    resp = await client.patch(
        f"{BASE}/{created['id']}", json={"notes": "deliver to side door"}, headers=_headers(store.store_id)
    )

    assert resp.status_code == 200
    assert resp.json()["data"]["notes"] == "deliver to side door"


async def test_cancel_then_cancel_again(client, store):
    created = await _create_po(client, store)
    url = f"{BASE}/{created['id']}/cancel"

    resp = await client.patch(url, headers=_headers(store.store_id))
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "CANCELLED"

    resp = await client.patch(url, headers=_headers(store.store_id))
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "INVALID_STATE"
