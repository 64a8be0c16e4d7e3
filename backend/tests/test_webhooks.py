from __future__ import annotations

import json
import time

from sqlmodel import func, select

from app.models import CartItem, Order
from conftest import WEBHOOK_SECRET, sign_payload, stripe_event

ADDRESS = {"full_name": "Asha Rao", "address_line1": "12 MG Road", "city": "Bengaluru"}

SUCCEEDED = "payment_intent.succeeded"
FAILED = "payment_intent.payment_failed"


def _checkout(client, gateway, headers, product, payment_intent_id="pi_123"):
    """Fill the cart and place a pending order for the intent."""
    gateway.add_intent(payment_intent_id, product.price * 2)
    client.post("/api/v1/cart", headers=headers, json={"product_id": product.id, "quantity": 2})
    body = {
        "items": [
            {
                "product_id": product.id,
                "quantity": 2,
                "price": str(product.price),
                "item_total": str(product.price * 2),
            }
        ],
        "shipping_address": ADDRESS,
        "payment_intent_id": payment_intent_id,
    }
    r = client.post("/api/v1/orders", headers=headers, json=body)
    assert r.status_code == 200, r.text
    return r.json()["data"]


def _order(db, payment_intent_id="pi_123") -> Order:
    db.expire_all()
    return db.exec(select(Order).where(Order.payment_intent_id == payment_intent_id)).one()


def _cart_size(db, user_id):
    return db.exec(select(func.count()).select_from(CartItem).where(CartItem.user_id == user_id)).one()


def test_succeeded_marks_order_clears_cart_and_sends_one_email(client, db, register, products, gateway, send_webhook, fake_redis):
    headers, user_id = register()
    created = _checkout(client, gateway, headers, products[0])
    assert _cart_size(db, user_id) == 1

    r = send_webhook(SUCCEEDED, "pi_123")
    assert r.status_code == 200, r.text
    assert r.json()["data"] == {"received": True, "event_type": SUCCEEDED, "ignored": False, "duplicate": False}

    order = _order(db)
    assert order.status == "RECEIVED"
    assert order.payment_status == "succeeded"
    assert _cart_size(db, user_id) == 0
    assert fake_redis.messages == [("order_emails", {"kind": "order_confirmation", "order_id": str(created["id"])})]


def test_succeeded_delivered_twice_is_applied_once(client, db, register, products, gateway, send_webhook, fake_redis):
    headers, _ = register()
    _checkout(client, gateway, headers, products[0])

    assert send_webhook(SUCCEEDED, "pi_123").status_code == 200
    r = send_webhook(SUCCEEDED, "pi_123")
    assert r.status_code == 200
    assert r.json()["data"]["duplicate"] is True
    assert len(fake_redis.messages) == 1
    assert _order(db).payment_status == "succeeded"


def test_failed_marks_pending_order_failed(client, db, register, products, gateway, send_webhook, fake_redis):
    headers, user_id = register()
    _checkout(client, gateway, headers, products[0])

    r = send_webhook(FAILED, "pi_123")
    assert r.status_code == 200
    assert r.json()["data"]["duplicate"] is False
    order = _order(db)
    assert order.status == "FAILED"
    assert order.payment_status == "failed"
    # The buyer can retry, so the cart stays.
    assert _cart_size(db, user_id) == 1
    assert fake_redis.messages == []


def test_failed_after_succeeded_is_a_no_op(client, db, register, products, gateway, send_webhook, fake_redis):
    headers, _ = register()
    _checkout(client, gateway, headers, products[0])
    send_webhook(SUCCEEDED, "pi_123")

    r = send_webhook(FAILED, "pi_123", event_id="evt_test_2")
    assert r.status_code == 200
    assert r.json()["data"]["duplicate"] is True
    order = _order(db)
    assert order.status == "RECEIVED"
    assert order.payment_status == "succeeded"
    assert len(fake_redis.messages) == 1


def test_succeeded_after_failed_recovers_order(client, db, register, products, gateway, send_webhook, fake_redis):
    headers, user_id = register()
    _checkout(client, gateway, headers, products[0])
    send_webhook(FAILED, "pi_123")

    r = send_webhook(SUCCEEDED, "pi_123", event_id="evt_test_2")
    assert r.status_code == 200
    order = _order(db)
    assert order.status == "RECEIVED"
    assert order.payment_status == "succeeded"
    assert _cart_size(db, user_id) == 0
    assert len(fake_redis.messages) == 1


def test_event_for_unknown_intent_returns_404_without_creating_order(client, db, send_webhook, fake_redis):
    for event_type in (SUCCEEDED, FAILED):
        r = send_webhook(event_type, "pi_unknown")
        assert r.status_code == 404
        assert r.json()["code"] == 404301

    assert db.exec(select(func.count()).select_from(Order)).one() == 0
    assert fake_redis.messages == []


def test_order_created_after_early_webhook_is_reconciled_on_retry(client, db, register, products, gateway, send_webhook):
    headers, _ = register()
    # Gateway delivers before the order exists, then retries later.
    assert send_webhook(SUCCEEDED, "pi_123").status_code == 404
    _checkout(client, gateway, headers, products[0])
    assert send_webhook(SUCCEEDED, "pi_123").status_code == 200
    assert _order(db).payment_status == "succeeded"


def test_tampered_payload_is_rejected(client, db, register, products, gateway, fake_redis):
    headers, _ = register()
    _checkout(client, gateway, headers, products[0])

    body = json.dumps(stripe_event(SUCCEEDED, "pi_123")).encode()
    header = sign_payload(body)
    tampered = body.replace(b"pi_123", b"pi_124")
    r = client.post("/api/v1/webhooks/stripe", content=tampered, headers={"Stripe-Signature": header})
    assert r.status_code == 400
    assert r.json()["code"] == 400301

    order = _order(db)
    assert order.payment_status == "pending"
    assert fake_redis.messages == []


def test_signature_problems_are_rejected(client):
    body = json.dumps(stripe_event(SUCCEEDED, "pi_123")).encode()
    cases = [
        {},
        {"Stripe-Signature": "garbage"},
        {"Stripe-Signature": sign_payload(body, secret="whsec_other")},
        {"Stripe-Signature": sign_payload(body, timestamp=int(time.time()) - 3600)},
    ]
    for headers in cases:
        r = client.post("/api/v1/webhooks/stripe", content=body, headers=headers)
        assert r.status_code == 400, headers
        assert r.json()["code"] == 400301


def test_unconfigured_secret_rejects_everything(client, monkeypatch):
    from app.core.config import settings

    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", None)
    body = json.dumps(stripe_event(SUCCEEDED, "pi_123")).encode()
    r = client.post("/api/v1/webhooks/stripe", content=body, headers={"Stripe-Signature": sign_payload(body)})
    assert r.status_code == 400


def test_signed_non_json_body_is_rejected(client):
    body = b"not json"
    r = client.post("/api/v1/webhooks/stripe", content=body, headers={"Stripe-Signature": sign_payload(body, WEBHOOK_SECRET)})
    assert r.status_code == 400
    assert r.json()["code"] == 400301


def test_unknown_event_type_is_acknowledged(client, send_webhook):
    r = send_webhook("charge.refunded", "ch_123")
    assert r.status_code == 200
    assert r.json()["data"]["ignored"] is True


def test_succeeded_for_cancelled_order_records_payment_only(client, db, register, products, gateway, send_webhook, admin_headers, fake_redis):
    headers, _ = register()
    created = _checkout(client, gateway, headers, products[0])
    r = client.patch(
        f"/api/v1/admin/orders/{created['id']}/status", headers=admin_headers, json={"status": "CANCELLED"}
    )
    assert r.status_code == 200

    r = send_webhook(SUCCEEDED, "pi_123")
    assert r.status_code == 200
    order = _order(db)
    assert order.status == "CANCELLED"
    assert order.payment_status == "succeeded"
    assert fake_redis.messages == []
