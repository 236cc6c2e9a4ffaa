from __future__ import annotations

API = "/api/v1"


async def _create_product(client, **fields):
    body = {"name": "Kashmiri Medallion 6x9", "category": "hand-knotted", "min_stock_level": 1, **fields}
    resp = await client.post(f"{API}/products", json=body)
    assert resp.status_code == 201
    return resp.json()["data"]


async def _create_units(client, product_id, quantity=2):
    resp = await client.post(f"{API}/products/{product_id}/individual-products", json={"quantity": quantity})
    assert resp.status_code == 201
    return resp.json()["data"]


async def test_health(client):
    resp = await client.get(f"{API}/health")

    assert resp.status_code == 200
    assert resp.json()["message"] == "Healthy"
    assert "X-Correlation-ID" in resp.headers


async def test_create_product_returns_envelope(client):
    product = await _create_product(client)

    assert product["id"].startswith("PRO-")
    assert product["qr_code"].startswith("QR-")
    assert product["current_stock"] == 0
    assert product["status"] == "out-of-stock"


async def test_units_update_product_counters(client):
    product = await _create_product(client)
    units = await _create_units(client, product["id"], 3)

    resp = await client.get(f"{API}/products/{product['id']}")
    assert resp.json()["data"]["current_stock"] == 3

    resp = await client.get(f"{API}/individual-products/qr/{units[0]['qr_code']}")
    assert resp.status_code == 200
    assert resp.json()["data"]["id"] == units[0]["id"]

    resp = await client.get(f"{API}/products/{product['id']}/individual-products/stats")
    assert resp.json()["data"]["available"] == 3


async def test_unknown_entity_is_404_envelope(client):
    resp = await client.get(f"{API}/products/PRO-000000-999", headers={"X-Correlation-ID": "cid-123"})

    assert resp.status_code == 404
    body = resp.json()
    assert body["success"] is False
    assert body["status"] == 404
    assert body["error"]["type"] == "not_found"
    assert body["correlation_id"] == "cid-123"
    assert body["path"] == f"{API}/products/PRO-000000-999"
    assert resp.headers["X-Correlation-ID"] == "cid-123"


async def test_unknown_route_uses_error_envelope(client):
    resp = await client.get(f"{API}/nothing-here")

    assert resp.status_code == 404
    assert resp.json()["error"]["type"] == "http_error"


async def test_malformed_payload_is_400(client):
    resp = await client.post(f"{API}/products", json={"category": "hand-knotted"})

    assert resp.status_code == 400
    body = resp.json()
    assert body["error"]["type"] == "validation_error"
    assert body["error"]["details"]


async def test_order_without_customer_is_400(client):
    product = await _create_product(client)

    resp = await client.post(
        f"{API}/orders", json={"items": [{"product_id": product["id"], "quantity": 1, "unit_price": 10}]}
    )

    assert resp.status_code == 400
    assert "customer_id or customer_name is required" in str(resp.json()["error"]["details"])


async def test_double_reservation_is_409(client):
    product = await _create_product(client)
    units = await _create_units(client, product["id"], 1)
    body = {"individual_product_ids": [units[0]["id"]], "order_id": "ORD-A"}

    first = await client.post(f"{API}/individual-products/reserve", json=body)
    second = await client.post(f"{API}/individual-products/reserve", json={**body, "order_id": "ORD-B"})

    assert first.status_code == 200
    assert second.status_code == 409
    assert second.json()["error"]["type"] == "conflict"


async def test_order_flow_through_dispatch(client):
    product = await _create_product(client)
    units = await _create_units(client, product["id"], 2)
    bulk = await _create_product(
        client, name="Jute Runner 2x8", individual_stock_tracking=False, base_quantity=20
    )

    resp = await client.post(
        f"{API}/orders",
        json={
            "customer_name": "Asha Interiors",
            "items": [
                {
                    "product_id": product["id"],
                    "quantity": 1,
                    "unit_price": 1000,
                    "individual_product_ids": [units[0]["id"]],
                },
                {"product_id": bulk["id"], "quantity": 5, "unit_price": 100},
            ],
        },
    )
    assert resp.status_code == 201
    order = resp.json()["data"]
    assert order["subtotal"] == 1500
    assert order["total_amount"] == 1770
    assert order["payment_status"] == "unpaid"

    resp = await client.put(f"{API}/orders/{order['id']}/status", json={"status": "dispatched"})
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "dispatched"

    resp = await client.get(f"{API}/orders/{order['id']}/settlement")
    assert resp.status_code == 200
    assert resp.json()["data"]["state"] == "completed"

    resp = await client.get(f"{API}/products/{bulk['id']}")
    assert resp.json()["data"]["current_stock"] == 15
    resp = await client.get(f"{API}/individual-products/{units[0]['id']}")
    assert resp.json()["data"]["status"] == "sold"

    resp = await client.put(f"{API}/orders/{order['id']}/status", json={"status": "pending"})
    assert resp.status_code == 409


async def test_purchase_order_delivery_through_api(client):
    supplier = (await client.post(f"{API}/suppliers", json={"name": "Panipat Yarn Mills"})).json()["data"]
    material = (
        await client.post(
            f"{API}/raw-materials",
            json={"name": "Wool Yarn 4-ply", "category": "yarn", "unit": "kg", "current_stock": 10, "min_threshold": 50},
        )
    ).json()["data"]
    assert material["status"] == "low-stock"

    resp = await client.post(
        f"{API}/purchase-orders",
        json={"supplier_id": supplier["id"], "items": [{"material_id": material["id"], "quantity": 100, "unit_price": 400}]},
    )
    assert resp.status_code == 201
    po = resp.json()["data"]

    resp = await client.post(f"{API}/purchase-orders/{po['id']}/deliver", json={"rating": 10})
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "delivered"

    resp = await client.get(f"{API}/raw-materials/{material['id']}")
    assert resp.json()["data"]["current_stock"] == 110
    resp = await client.get(f"{API}/raw-materials/{material['id']}/movements")
    assert resp.json()["data"][0]["reference_id"] == po["id"]


async def test_duplicate_supplier_is_409(client):
    await client.post(f"{API}/suppliers", json={"name": "Bhadohi Dye House"})
    resp = await client.post(f"{API}/suppliers", json={"name": "Bhadohi Dye House"})

    assert resp.status_code == 409


async def test_sequence_counters_are_exposed(client):
    await _create_product(client)

    resp = await client.get(f"{API}/operations/sequences/pro/current")

    assert resp.status_code == 200
    assert resp.json()["data"]["last_sequence"] == 1
