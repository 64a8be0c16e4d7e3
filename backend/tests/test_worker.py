from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from sqlmodel import select

from app.api.errors import gateway_unavailable
from app.enums import OrderStatus, PaymentStatus
from app.models import Order, OrderItem, User, utc_now
from app.worker import email_worker
from app.worker.tasks import SWEEP_LOCK_KEY, sweep_pending_payments


def _user(db, email="buyer@example.com") -> User:
    user = User(email=email, hashed_password="x", full_name="Asha Rao")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _order(db, user, payment_intent_id, *, age=timedelta(hours=2), payment_status=PaymentStatus.pending) -> Order:
    order = Order(
        user_id=user.id,
        status=OrderStatus.received,
        payment_intent_id=payment_intent_id,
        payment_status=payment_status,
        total=Decimal("500.00"),
        shipping_address={"full_name": "Asha Rao", "address_line1": "12 MG Road", "city": "Pune"},
        created_at=utc_now() - age,
    )
    db.add(order)
    db.flush()
    db.add(OrderItem(order_id=order.id, product_id=None, product_name="Coffee Beans", quantity=1,
                     price=Decimal("500.00"), item_total=Decimal("500.00")))
    db.commit()
    db.refresh(order)
    return order


def _status(db, order_id):
    db.expire_all()
    order = db.get(Order, order_id)
    return order.status, order.payment_status


# ------------------------------------------------------------
# pending payment sweep
# ------------------------------------------------------------


def test_sweep_resolves_stale_pending_orders(engine, db, gateway, fake_redis):
    user = _user(db)
    paid = _order(db, user, "pi_paid")
    fresh = _order(db, user, "pi_fresh", age=timedelta(minutes=1))
    gateway.add_intent("pi_paid", paid.total)
    gateway.add_intent("pi_fresh", fresh.total)

    result = sweep_pending_payments(engine, gateway, redis_client=fake_redis)
    assert result is not None
    assert result.checked == 1
    assert result.succeeded == 1
    assert gateway.retrieved == ["pi_paid"]

    assert _status(db, paid.id) == ("RECEIVED", "succeeded")
    assert _status(db, fresh.id) == ("RECEIVED", "pending")
    assert fake_redis.messages == [("order_emails", {"kind": "order_confirmation", "order_id": str(paid.id)})]
    # Lock released.
    assert SWEEP_LOCK_KEY not in fake_redis.store


def test_sweep_marks_abandoned_payments_failed(engine, db, gateway, fake_redis):
    user = _user(db)
    order = _order(db, user, "pi_cancelled")
    gateway.add_intent("pi_cancelled", order.total)
    gateway.status = "canceled"

    result = sweep_pending_payments(engine, gateway, redis_client=fake_redis)
    assert result.failed == 1
    assert _status(db, order.id) == ("FAILED", "failed")


def test_sweep_leaves_processing_payments_alone(engine, db, gateway, fake_redis):
    user = _user(db)
    order = _order(db, user, "pi_processing")
    gateway.add_intent("pi_processing", order.total)
    gateway.status = "processing"

    result = sweep_pending_payments(engine, gateway, redis_client=fake_redis)
    assert result.checked == 1
    assert (result.succeeded, result.failed) == (0, 0)
    assert _status(db, order.id) == ("RECEIVED", "pending")


def test_sweep_counts_gateway_errors(engine, db, gateway, fake_redis):
    user = _user(db)
    order = _order(db, user, "pi_err")
    gateway.add_intent("pi_err", order.total)
    gateway.status = gateway_unavailable()

    result = sweep_pending_payments(engine, gateway, redis_client=fake_redis)
    assert result.errors == 1
    assert _status(db, order.id) == ("RECEIVED", "pending")


def test_sweep_skips_when_locked(engine, db, gateway, fake_redis):
    user = _user(db)
    _order(db, user, "pi_locked")
    fake_redis.store[SWEEP_LOCK_KEY] = "other-instance"

    assert sweep_pending_payments(engine, gateway, redis_client=fake_redis) is None
    assert gateway.retrieved == []
    assert fake_redis.store[SWEEP_LOCK_KEY] == "other-instance"


# ------------------------------------------------------------
# confirmation email worker
# ------------------------------------------------------------


def test_email_worker_sends_confirmation(db, monkeypatch):
    user = _user(db)
    order = _order(db, user, "pi_mail", payment_status=PaymentStatus.succeeded)
    sent = []
    monkeypatch.setattr(email_worker.settings, "SMTP_HOST", "smtp.example.com")
    monkeypatch.setattr(email_worker.settings, "EMAILS_FROM_EMAIL", "shop@example.com")
    monkeypatch.setattr(email_worker, "send_email", lambda **kwargs: sent.append(kwargs))

    assert email_worker.handle_message(db, {"kind": "order_confirmation", "order_id": str(order.id)}) is True
    assert len(sent) == 1
    assert sent[0]["to"] == "buyer@example.com"
    assert sent[0]["subject"] == "Your Order Confirmation"
    assert "Coffee Beans x 1" in sent[0]["html_body"]
    assert str(order.id) in sent[0]["html_body"]
    assert "12 MG Road" in sent[0]["html_body"]


def test_email_worker_skips_when_smtp_not_configured(db, monkeypatch):
    user = _user(db)
    order = _order(db, user, "pi_nosmtp", payment_status=PaymentStatus.succeeded)
    monkeypatch.setattr(email_worker.settings, "SMTP_HOST", None)
    monkeypatch.setattr(email_worker, "send_email", lambda **kwargs: (_ for _ in ()).throw(AssertionError("sent")))

    assert email_worker.handle_message(db, {"kind": "order_confirmation", "order_id": str(order.id)}) is False


def test_email_worker_ignores_unknown_messages(db):
    assert email_worker.handle_message(db, {"kind": "newsletter"}) is False
    assert email_worker.handle_message(db, {"kind": "order_confirmation", "order_id": "123"}) is False


def test_email_failures_are_acked_and_do_not_stop_the_batch(engine, db, fake_redis, monkeypatch):
    user = _user(db)
    first = _order(db, user, "pi_m1", payment_status=PaymentStatus.succeeded)
    second = _order(db, user, "pi_m2", payment_status=PaymentStatus.succeeded)
    monkeypatch.setattr(email_worker.settings, "SMTP_HOST", "smtp.example.com")
    monkeypatch.setattr(email_worker.settings, "EMAILS_FROM_EMAIL", "shop@example.com")

    sent = []

    def flaky_send(**kwargs):
        if not sent:
            sent.append(None)
            raise OSError("connection refused")
        sent.append(kwargs)

    monkeypatch.setattr(email_worker, "send_email", flaky_send)
    email_worker.process_messages(
        engine,
        fake_redis,
        [
            ("1-0", {"kind": "order_confirmation", "order_id": str(first.id)}),
            ("2-0", {"kind": "order_confirmation", "order_id": str(second.id)}),
        ],
    )
    assert fake_redis.acked == ["1-0", "2-0"]
    assert len(sent) == 2

    # Orders are untouched by email failures.
    orders = db.exec(select(Order).where(Order.payment_intent_id.in_(["pi_m1", "pi_m2"]))).all()
    assert {o.payment_status for o in orders} == {"succeeded"}
