from __future__ import annotations

from decimal import Decimal

from sqlmodel import select

from app.core.config import settings
from app.core.db import SEED_PRODUCTS, init_db
from app.models import Order, Product, User

ADDRESS = {"full_name": "Asha Rao", "address_line1": "12 MG Road"}


def _place_order(client, gateway, headers, product, payment_intent_id):
    gateway.add_intent(payment_intent_id, product.price)
    body = {
        "items": [
            {"product_id": product.id, "quantity": 1, "price": str(product.price), "item_total": str(product.price)}
        ],
        "shipping_address": ADDRESS,
        "payment_intent_id": payment_intent_id,
    }
    r = client.post("/api/v1/orders", headers=headers, json=body)
    assert r.status_code == 200, r.text
    return r.json()["data"]["id"]


def test_admin_lists_all_orders(client, register, products, gateway, admin_headers):
    alice, _ = register("alice@example.com")
    bob, _ = register("bob@example.com")
    _place_order(client, gateway, alice, products[0], "pi_a")
    _place_order(client, gateway, bob, products[1], "pi_b")

    r = client.get("/api/v1/admin/orders", headers=admin_headers)
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["count"] == 2
    assert {o["payment_intent_id"] for o in data["data"]} == {"pi_a", "pi_b"}
    assert sum(Decimal(o["total"]) for o in data["data"]) == Decimal("1950.00")


def test_non_admin_is_forbidden(client, register):
    headers, _ = register()
    assert client.get("/api/v1/admin/orders", headers=headers).status_code == 403
    r = client.patch("/api/v1/admin/orders/1/status", headers=headers, json={"status": "SHIPPED"})
    assert r.status_code == 403
    assert r.json()["code"] == 403000


def test_admin_moves_order_through_fulfillment(client, register, products, gateway, admin_headers, send_webhook):
    headers, _ = register()
    order_id = _place_order(client, gateway, headers, products[0], "pi_ship")
    assert send_webhook("payment_intent.succeeded", "pi_ship").status_code == 200

    r = client.patch(f"/api/v1/admin/orders/{order_id}/status", headers=admin_headers, json={"status": "SHIPPED"})
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "SHIPPED"

    r = client.patch(f"/api/v1/admin/orders/{order_id}/status", headers=admin_headers, json={"status": "DELIVERED"})
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "DELIVERED"

    # Terminal: nothing moves out of DELIVERED.
    r = client.patch(f"/api/v1/admin/orders/{order_id}/status", headers=admin_headers, json={"status": "RECEIVED"})
    assert r.status_code == 409
    assert r.json()["code"] == 409201

    r = client.get(f"/api/v1/orders/{order_id}", headers=headers)
    assert r.json()["data"]["status"] == "DELIVERED"


def test_admin_cannot_ship_or_complete_unpaid_order(client, db, register, products, gateway, admin_headers):
    headers, _ = register()
    order_id = _place_order(client, gateway, headers, products[0], "pi_unpaid")

    for target in ("SHIPPED", "COMPLETED"):
        r = client.patch(f"/api/v1/admin/orders/{order_id}/status", headers=admin_headers, json={"status": target})
        assert r.status_code == 409
        assert r.json()["code"] == 409202

    order = db.get(Order, order_id)
    assert order.status == "RECEIVED"
    assert order.payment_status == "pending"

    # Unpaid orders can still be cancelled.
    r = client.patch(f"/api/v1/admin/orders/{order_id}/status", headers=admin_headers, json={"status": "CANCELLED"})
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "CANCELLED"


def test_admin_cannot_take_payment_edges(client, register, products, gateway, admin_headers):
    headers, _ = register()
    order_id = _place_order(client, gateway, headers, products[0], "pi_edge")

    r = client.patch(f"/api/v1/admin/orders/{order_id}/status", headers=admin_headers, json={"status": "FAILED"})
    assert r.status_code == 409

    r = client.patch(f"/api/v1/admin/orders/{order_id}/status", headers=admin_headers, json={"status": "BOGUS"})
    assert r.status_code == 422


def test_admin_update_unknown_order(client, admin_headers):
    r = client.patch("/api/v1/admin/orders/42/status", headers=admin_headers, json={"status": "SHIPPED"})
    assert r.status_code == 404
    assert r.json()["code"] == 404301


def test_initial_data_creates_superuser_and_products_once(db):
    init_db(db)
    init_db(db)

    admins = db.exec(select(User).where(User.email == settings.FIRST_SUPERUSER)).all()
    assert len(admins) == 1
    assert admins[0].is_superuser
    assert len(db.exec(select(Product)).all()) == len(SEED_PRODUCTS)
