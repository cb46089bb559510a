import pytest
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from orderflow.core.exceptions import GatewayError
from orderflow.models.order import Order as OrderModel

pytestmark = pytest.mark.api


@pytest.fixture(scope="function")
def created_order(client: TestClient, customer_token_headers, order_payload, standard_rules, ten_percent_coupon) -> dict:
    response = client.post("/api/v1/orders/", json=order_payload(coupon_id=ten_percent_coupon.id), headers=customer_token_headers)
    assert response.status_code == 201
    return response.json()


# --- Order Creation (POST /orders/) ---
def test_create_order_success(created_order, card_gateway, customer):
    assert Decimal(created_order["amount"]) == Decimal("100.00")
    assert Decimal(created_order["discount"]) == Decimal("10.00")
    assert Decimal(created_order["sales_tax"]) == Decimal("8.00")
    assert Decimal(created_order["delivery_fee"]) == Decimal("5.99")
    assert Decimal(created_order["total"]) == Decimal("103.99")
    assert Decimal(created_order["paid_total"]) == Decimal("103.99")
    assert created_order["customer_id"] == customer.id
    assert created_order["customer_email"] == customer.email
    assert created_order["order_status"] == "PENDING"
    assert created_order["payment_status"] == "PENDING"
    assert created_order["payment_gateway"] == "stripe"
    assert created_order["lines"][0]["product_id"] == 1
    assert Decimal(created_order["lines"][0]["unit_price"]) == Decimal("100.00")

    assert len(card_gateway.create_calls) == 1
    assert card_gateway.create_calls[0]["amount"] == 10399


def test_create_order_unauthenticated(client: TestClient, order_payload):
    response = client.post("/api/v1/orders/", json=order_payload())
    assert response.status_code == 401


def test_create_order_with_invalid_token(client: TestClient, order_payload):
    response = client.post("/api/v1/orders/", json=order_payload(), headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


def test_create_order_stale_totals(client: TestClient, customer_token_headers, order_payload, standard_rules, db_session: Session):
    payload = order_payload()
    payload["sales_tax"] = "7.99"
    payload["total"] = "113.98"
    response = client.post("/api/v1/orders/", json=payload, headers=customer_token_headers)
    assert response.status_code == 409
    data = response.json()
    assert data["code"] == "stale_quote"
    assert data["quote"]["total"] == "113.99"
    assert db_session.query(OrderModel).count() == 0


def test_create_order_unavailable_products(client: TestClient, customer_token_headers, order_payload):
    payload = order_payload(items=[{"product_id": 1, "quantity": 1}, {"product_id": 42, "quantity": 1}])
    response = client.post("/api/v1/orders/", json=payload, headers=customer_token_headers)
    assert response.status_code == 422
    assert response.json()["code"] == "products_unavailable"
    assert response.json()["unavailable_products"] == [42]


def test_create_order_unknown_product(client: TestClient, customer_token_headers, order_payload):
    response = client.post(
        "/api/v1/orders/", json=order_payload(items=[{"product_id": 999, "quantity": 1}]), headers=customer_token_headers
    )
    assert response.status_code == 404
    assert response.json()["code"] == "product_not_found"


def test_create_order_gateway_failure(client: TestClient, customer_token_headers, order_payload, card_gateway, db_session: Session):
    card_gateway.fail_with = GatewayError("card_declined", "Your card was declined.", "stripe")
    response = client.post("/api/v1/orders/", json=order_payload(), headers=customer_token_headers)
    assert response.status_code == 502
    assert response.json() == {"detail": "Your card was declined.", "code": "card_declined", "gateway": "stripe"}
    assert db_session.query(OrderModel).count() == 0


def test_create_order_is_idempotent_per_tracking_number(
    client: TestClient, customer_token_headers, other_customer_token_headers, order_payload, card_gateway
):
    payload = order_payload(tracking_number="TRK-API-REPLAY")
    first = client.post("/api/v1/orders/", json=payload, headers=customer_token_headers)
    second = client.post("/api/v1/orders/", json=payload, headers=customer_token_headers)
    assert first.status_code == 201
    assert second.status_code == 201
    assert first.json()["id"] == second.json()["id"]
    assert len(card_gateway.create_calls) == 1

    taken = client.post("/api/v1/orders/", json=payload, headers=other_customer_token_headers)
    assert taken.status_code == 422
    assert taken.json()["code"] == "tracking_number_taken"


def test_create_order_rejects_bad_payload(client: TestClient, customer_token_headers, order_payload):
    payload = order_payload()
    payload["items"] = []
    assert client.post("/api/v1/orders/", json=payload, headers=customer_token_headers).status_code == 422

    payload = order_payload(gateway="bitcoin")
    assert client.post("/api/v1/orders/", json=payload, headers=customer_token_headers).status_code == 422


# --- Order Reading ---
def test_read_own_order(client: TestClient, customer_token_headers, created_order):
    response = client.get(f"/api/v1/orders/{created_order['id']}", headers=customer_token_headers)
    assert response.status_code == 200
    assert response.json()["tracking_number"] == created_order["tracking_number"]

    by_tracking = client.get(f"/api/v1/orders/tracking/{created_order['tracking_number']}", headers=customer_token_headers)
    assert by_tracking.status_code == 200
    assert by_tracking.json()["id"] == created_order["id"]


def test_other_customers_order_is_not_found(client: TestClient, other_customer_token_headers, admin_token_headers, created_order):
    response = client.get(f"/api/v1/orders/{created_order['id']}", headers=other_customer_token_headers)
    assert response.status_code == 404
    assert response.json()["code"] == "order_not_found"

    response = client.get(f"/api/v1/orders/tracking/{created_order['tracking_number']}", headers=other_customer_token_headers)
    assert response.status_code == 404

    assert client.get(f"/api/v1/orders/{created_order['id']}", headers=admin_token_headers).status_code == 200


def test_read_order_not_found(client: TestClient, admin_token_headers):
    assert client.get("/api/v1/orders/99999", headers=admin_token_headers).status_code == 404


def test_list_orders_is_scoped_to_customer(
    client: TestClient, customer_token_headers, other_customer_token_headers, admin_token_headers, order_payload
):
    client.post("/api/v1/orders/", json=order_payload(tracking_number="TRK-LIST-A"), headers=customer_token_headers)
    client.post("/api/v1/orders/", json=order_payload(tracking_number="TRK-LIST-B"), headers=other_customer_token_headers)

    mine = client.get("/api/v1/orders/", headers=customer_token_headers)
    assert [o["tracking_number"] for o in mine.json()] == ["TRK-LIST-A"]

    # customer_id is ignored for customers
    spoofed = client.get("/api/v1/orders/?customer_id=202", headers=customer_token_headers)
    assert [o["tracking_number"] for o in spoofed.json()] == ["TRK-LIST-A"]

    everything = client.get("/api/v1/orders/?order_by=TRACKING_NUMBER&sorted_by=ASC", headers=admin_token_headers)
    assert [o["tracking_number"] for o in everything.json()] == ["TRK-LIST-A", "TRK-LIST-B"]

    filtered = client.get("/api/v1/orders/?customer_id=202", headers=admin_token_headers)
    assert [o["tracking_number"] for o in filtered.json()] == ["TRK-LIST-B"]


def test_order_stats_admin_only(client: TestClient, customer_token_headers, admin_token_headers, created_order):
    assert client.get("/api/v1/orders/stats", headers=customer_token_headers).status_code == 403

    response = client.get("/api/v1/orders/stats", headers=admin_token_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["pending"] == 1
    assert Decimal(data["revenue"]) == Decimal("103.99")


# --- Administrative status changes ---
def test_update_order_status(client: TestClient, admin_token_headers, customer_token_headers, created_order):
    url = f"/api/v1/orders/{created_order['id']}/status"
    assert client.patch(url, json={"order_status": "PROCESSING"}, headers=customer_token_headers).status_code == 403

    response = client.patch(url, json={"order_status": "PROCESSING"}, headers=admin_token_headers)
    assert response.status_code == 200
    assert response.json()["order_status"] == "PROCESSING"

    response = client.patch(url, json={"order_status": "COMPLETED"}, headers=admin_token_headers)
    assert response.json()["order_status"] == "COMPLETED"

    response = client.patch(url, json={"order_status": "PENDING"}, headers=admin_token_headers)
    assert response.status_code == 409
    assert response.json()["code"] == "invalid_status_transition"


def test_update_order_status_requires_a_change(client: TestClient, admin_token_headers, created_order):
    response = client.patch(f"/api/v1/orders/{created_order['id']}/status", json={}, headers=admin_token_headers)
    assert response.status_code == 422


def test_attach_status_label(client: TestClient, admin_token_headers, created_order):
    label = client.post(
        "/api/v1/order-statuses/",
        json={"name": "Packed", "color": "#d87b64", "serial": 2, "slug": "packed"},
        headers=admin_token_headers,
    ).json()
    response = client.patch(
        f"/api/v1/orders/{created_order['id']}/status", json={"status_id": label["id"]}, headers=admin_token_headers
    )
    assert response.status_code == 200
    assert response.json()["status"]["slug"] == "packed"
    assert response.json()["order_status"] == "PENDING"

    missing = client.patch(f"/api/v1/orders/{created_order['id']}/status", json={"status_id": 999}, headers=admin_token_headers)
    assert missing.status_code == 404


def test_cancel_order(client: TestClient, admin_token_headers, created_order):
    response = client.delete(f"/api/v1/orders/{created_order['id']}", headers=admin_token_headers)
    assert response.status_code == 200
    assert response.json()["order_status"] == "CANCELLED"

    # Still there afterwards
    assert client.get(f"/api/v1/orders/{created_order['id']}", headers=admin_token_headers).json()["order_status"] == "CANCELLED"


def test_refund_requires_paid_order(client: TestClient, admin_token_headers, created_order):
    response = client.post(f"/api/v1/orders/{created_order['id']}/refund", headers=admin_token_headers)
    assert response.status_code == 409
    assert response.json()["code"] == "invalid_status_transition"


def test_refund_paid_order(
    client: TestClient, admin_token_headers, created_order, stripe_event, signed_stripe_webhook
):
    raw, headers = signed_stripe_webhook(stripe_event(created_order["tracking_number"]))
    assert client.post("/api/v1/webhooks/stripe", content=raw, headers=headers).json()["outcome"] == "applied"

    response = client.post(f"/api/v1/orders/{created_order['id']}/refund", headers=admin_token_headers)
    assert response.status_code == 200
    assert response.json()["payment_status"] == "REFUNDED"


def test_order_payment_events(
    client: TestClient, customer_token_headers, other_customer_token_headers, created_order, stripe_event, signed_stripe_webhook
):
    url = f"/api/v1/orders/{created_order['id']}/payment-events"
    assert client.get(url, headers=customer_token_headers).json() == []

    raw, headers = signed_stripe_webhook(stripe_event(created_order["tracking_number"], event_id="evt_logged"))
    client.post("/api/v1/webhooks/stripe", content=raw, headers=headers)

    response = client.get(url, headers=customer_token_headers)
    assert response.status_code == 200
    events = response.json()
    assert [(e["event_id"], e["event_type"], e["outcome"]) for e in events] == [
        ("evt_logged", "payment_intent.succeeded", "applied")
    ]
    assert events[0]["payment_gateway"] == "stripe"

    assert client.get(url, headers=other_customer_token_headers).status_code == 404
