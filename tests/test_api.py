import pytest
from fastapi import Depends
from fastapi.testclient import TestClient

from storefront.api.deps import get_gateway, get_lock_service, get_order_service
from storefront.data.database import get_db
from storefront.main import create_app
from storefront.services.catalog_provider import CatalogProvider
from storefront.services.order_service import OrderService
from storefront.services.payment_service import compute_signature

from conftest import SECRET

USER = {"X-User-Id": "u1"}
OTHER = {"X-User-Id": "u2"}
ADMIN = {"X-User-Id": "ops-1", "X-User-Role": "admin"}

SHIPPING = {
    "shipping_address": "12 MG Road, Bengaluru 560001",
    "customer_phone": "+91 98765 43210",
    "customer_email": "asha@example.com",
}


@pytest.fixture
def client(session_factory, catalog, gateway, notifier):
    app = create_app(create_tables=False)

    def override_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    def override_order_service(db=Depends(get_db)):
        return OrderService(db=db, catalog=CatalogProvider(db), notifier=notifier)

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_lock_service] = lambda: None
    app.dependency_overrides[get_order_service] = override_order_service

    with TestClient(app) as c:
        yield c


def _place(client, catalog, quantity=1):
    assert client.post("/cart/lines", json={"product_id": catalog.watch, "quantity": quantity}, headers=USER).status_code == 200
    resp = client.post("/orders", json=SHIPPING, headers=USER)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["database"] == "ok"


def test_identity_header_is_required(client):
    assert client.get("/cart").status_code == 422


def test_cart_round_trip(client, catalog):
    resp = client.post(
        "/cart/lines",
        json={"product_id": catalog.band, "variant_id": catalog.red, "quantity": 2},
        headers=USER,
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["user_id"] == "u1"
    assert body["total_items"] == 2
    line_id = body["lines"][0]["line_id"]

    resp = client.put(f"/cart/lines/{line_id}", json={"quantity": 3}, headers=USER)
    assert resp.json()["lines"][0]["quantity"] == 3

    resp = client.delete(f"/cart/lines/{line_id}", headers=USER)
    assert resp.json()["lines"] == []


def test_error_body_carries_code(client, catalog):
    resp = client.post(
        "/cart/lines",
        json={"product_id": catalog.band, "variant_id": catalog.black, "quantity": 9},
        headers=USER,
    )
    assert resp.status_code == 409
    assert resp.json()["detail"]["code"] == "OUT_OF_STOCK"

    resp = client.put("/cart/lines/999", json={"quantity": 1}, headers=USER)
    assert resp.status_code == 404
    assert resp.json()["detail"]["code"] == "CART_LINE_NOT_FOUND"


def test_place_order_and_read_it_back(client, catalog, notifier):
    order = _place(client, catalog, quantity=2)

    assert order["status"] == "Pending"
    assert float(order["total_amount"]) == 200.0
    assert order["lines"][0]["product_name"] == "Classic Analog Watch"
    assert order["lines"][0]["quantity"] == 2
    assert client.get("/cart", headers=USER).json()["lines"] == []

    assert client.get(f"/orders/{order['id']}", headers=USER).status_code == 200
    assert client.get(f"/orders/{order['id']}", headers=OTHER).status_code == 403
    assert [o["id"] for o in client.get("/orders", headers=USER).json()] == [order["id"]]
    assert notifier.named("order_placed")


def test_empty_cart_order_is_bad_request(client):
    resp = client.post("/orders", json=SHIPPING, headers=USER)
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "EMPTY_CART"


def test_invalid_shipping_details_are_rejected(client, catalog):
    client.post("/cart/lines", json={"product_id": catalog.watch}, headers=USER)
    resp = client.post("/orders", json={**SHIPPING, "customer_email": "not-an-email"}, headers=USER)
    assert resp.status_code == 422


def test_cancel_twice(client, catalog):
    order = _place(client, catalog)

    assert client.post(f"/orders/{order['id']}/cancel", headers=OTHER).status_code == 403
    assert client.post(f"/orders/{order['id']}/cancel", headers=USER).json()["status"] == "Cancelled"

    resp = client.post(f"/orders/{order['id']}/cancel", headers=USER)
    assert resp.status_code == 409
    assert resp.json()["detail"]["code"] == "ALREADY_CANCELLED"


def test_admin_routes_need_admin_role(client, catalog):
    order = _place(client, catalog)

    assert client.get("/admin/orders", headers=USER).status_code == 403
    resp = client.put(f"/admin/orders/{order['id']}/status", json={"status": "Processing"}, headers=USER)
    assert resp.status_code == 403

    resp = client.put(
        f"/admin/orders/{order['id']}/status",
        json={"status": "Processing", "comment": "packing"},
        headers=ADMIN,
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "Processing"
    assert resp.json()["admin_comment"] == "packing"

    listed = client.get("/admin/orders", params={"status": "Processing"}, headers=ADMIN).json()
    assert [o["id"] for o in listed] == [order["id"]]


def test_payment_flow(client, catalog):
    order = _place(client, catalog)

    resp = client.post(f"/orders/{order['id']}/payment", headers=USER)
    assert resp.status_code == 200
    gateway_order_id = resp.json()["gateway_order_id"]

    callback = {
        "order_id": order["id"],
        "gateway_order_id": gateway_order_id,
        "gateway_payment_id": "pay_123",
        "signature": compute_signature(SECRET, gateway_order_id, "pay_123"),
    }
    first = client.post("/orders/verify-payment", json=callback)
    assert first.status_code == 200
    assert first.json() == {"order_id": order["id"], "status": "Confirmed", "replayed": False}

    again = client.post("/orders/verify-payment", json=callback)
    assert again.json()["replayed"] is True


def test_bad_signature_is_rejected(client, catalog):
    order = _place(client, catalog)
    gateway_order_id = client.post(f"/orders/{order['id']}/payment", headers=USER).json()["gateway_order_id"]

    resp = client.post(
        "/orders/verify-payment",
        json={
            "order_id": order["id"],
            "gateway_order_id": gateway_order_id,
            "gateway_payment_id": "pay_123",
            "signature": "forged",
        },
    )

    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "SIGNATURE_MISMATCH"
    assert client.get(f"/orders/{order['id']}", headers=USER).json()["status"] == "PaymentFailed"


def test_unknown_order_is_404(client):
    resp = client.get("/orders/4040", headers=USER)
    assert resp.status_code == 404
    assert resp.json()["detail"]["code"] == "ORDER_NOT_FOUND"
