"""
支付对账服务（Webhook Reconciler）

把支付网关的权威结果应用到订单上。网关按“至少一次”投递 webhook，
并且和客户端的结账请求之间没有任何顺序保证，所以这里的每一步都必须幂等：

- 状态更新一律用带条件的 UPDATE（比较并交换），而不是先查后写；
  只有真正改动了那一行的写入方才执行副作用（清空购物车、发确认邮件）。
- 找不到订单时返回 404 让网关稍后重投，绝不根据 webhook 数据伪造订单
  （网关那边没有收货地址）。

Stripe 文档: https://docs.stripe.com/webhooks
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass

import stripe
from sqlalchemy import or_
from sqlmodel import Session, update

from app import crud
from app.api.errors import invalid_signature, order_not_found
from app.api.schemas import WebhookAck
from app.enums import OrderStatus, PaymentStatus, WebhookEventType
from app.models import Order, utc_now
from app.services.notification_service import enqueue_order_confirmation
from app.services.order_status import payment_sources

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WebhookEvent:
    """验签通过后的 webhook 事件"""
    event_id: str
    event_type: str
    payment_intent_id: str | None


@dataclass(frozen=True)
class ApplyResult:
    order: Order
    changed: bool


def verify(
    raw_body: bytes,
    signature_header: str | None,
    secret: str | None,
    *,
    tolerance: int = stripe.Webhook.DEFAULT_TOLERANCE,
) -> WebhookEvent:
    """
    验证 webhook 确实来自网关且未被篡改

    任何无法验证的情况（未配置密钥、缺少签名头、签名不符、时间戳过期、
    body 不是合法 JSON）都视为失败，绝不继续处理。

    Raises:
        SignatureError: 验签失败（400）
    """
    if not secret:
        logger.error("Webhook rejected: STRIPE_WEBHOOK_SECRET is not configured")
        raise invalid_signature("Webhook secret not configured")
    if not signature_header:
        logger.warning("Webhook rejected: missing Stripe-Signature header")
        raise invalid_signature("No signature")

    try:
        stripe.Webhook.construct_event(raw_body, signature_header, secret, tolerance=tolerance)
        payload = json.loads(raw_body)
    except stripe.SignatureVerificationError as e:
        logger.warning("Webhook signature verification failed: %s", e)
        raise invalid_signature() from e
    except ValueError as e:
        logger.warning("Webhook payload could not be parsed: %s", e)
        raise invalid_signature("Invalid payload") from e

    obj = (payload.get("data") or {}).get("object") or {}
    intent_id = obj.get("id") if obj.get("object") == "payment_intent" else None
    return WebhookEvent(
        event_id=str(payload.get("id") or ""),
        event_type=str(payload.get("type") or ""),
        payment_intent_id=intent_id,
    )


def mark_payment_succeeded(session: Session, order: Order) -> bool:
    """
    把订单标记为支付成功（status=RECEIVED, payment_status=succeeded）

    条件更新只会命中一次：并发的 webhook、重投的 webhook、客户端收尾请求
    同时到达时，只有一个写入方返回 True，并负责清空购物车和入队确认邮件。

    Returns:
        本次调用是否真正改变了订单
    """
    now = utc_now()
    not_yet_succeeded = or_(
        Order.payment_status.is_(None),  # type: ignore[union-attr]
        Order.payment_status != PaymentStatus.succeeded,
    )
    result = session.exec(
        update(Order)
        .where(
            Order.id == order.id,
            not_yet_succeeded,
            Order.status.in_([s.value for s in payment_sources(OrderStatus.received)]),  # type: ignore[attr-defined]
        )
        .values(status=OrderStatus.received, payment_status=PaymentStatus.succeeded, updated_at=now)
    )
    if result.rowcount == 1:
        crud.clear_cart(session=session, user_id=order.user_id, commit=False)
        session.commit()
        session.refresh(order)
        logger.info("Order %s payment succeeded (intent %s)", order.id, order.payment_intent_id)
        enqueue_order_confirmation(order)
        return True

    # 订单已经离开可接受支付结果的状态（如被后台取消），只记录支付结果
    result = session.exec(
        update(Order)
        .where(Order.id == order.id, not_yet_succeeded)
        .values(payment_status=PaymentStatus.succeeded, updated_at=now)
    )
    changed = result.rowcount == 1
    session.commit()
    session.refresh(order)
    if changed:
        logger.warning(
            "Payment succeeded for order %s in status %s; status left unchanged",
            order.id,
            order.status,
        )
    return changed


def apply_payment_succeeded(session: Session, payment_intent_id: str) -> ApplyResult:
    """
    应用 payment_intent.succeeded

    Raises:
        NotFoundError: 该支付意图还没有对应订单（下单请求可能还没落库），网关会重投
    """
    order = crud.get_order_by_payment_intent(session=session, payment_intent_id=payment_intent_id)
    if not order:
        logger.warning("No order found for payment intent %s (succeeded)", payment_intent_id)
        raise order_not_found()

    if order.payment_status == PaymentStatus.succeeded:
        logger.info("Order %s already succeeded, skipping", order.id)
        return ApplyResult(order=order, changed=False)

    changed = mark_payment_succeeded(session, order)
    return ApplyResult(order=order, changed=changed)


def apply_payment_failed(session: Session, payment_intent_id: str) -> ApplyResult:
    """
    应用 payment_intent.payment_failed

    只有支付仍为 pending、且状态机允许支付事件落到 FAILED 的订单（RECEIVED）
    才会被置为 FAILED；
    已经支付成功、已经失败或已进入履约的订单保持不变（幂等的空操作）。

    Raises:
        NotFoundError: 该支付意图还没有对应订单，网关会重投；不会创建占位订单
    """
    result = session.exec(
        update(Order)
        .where(
            Order.payment_intent_id == payment_intent_id,
            Order.status.in_([s.value for s in payment_sources(OrderStatus.failed)]),  # type: ignore[attr-defined]
            Order.payment_status == PaymentStatus.pending,
        )
        .values(status=OrderStatus.failed, payment_status=PaymentStatus.failed, updated_at=utc_now())
    )
    changed = result.rowcount == 1
    if changed:
        session.commit()
    else:
        session.rollback()

    order = crud.get_order_by_payment_intent(session=session, payment_intent_id=payment_intent_id)
    if not order:
        logger.warning("No order found for payment intent %s (failed)", payment_intent_id)
        raise order_not_found()
    session.refresh(order)

    if changed:
        logger.info("Order %s payment failed (intent %s)", order.id, payment_intent_id)
    else:
        logger.info(
            "Order %s not pending (status=%s, payment_status=%s), failed event ignored",
            order.id,
            order.status,
            order.payment_status,
        )
    return ApplyResult(order=order, changed=changed)


class WebhookService:
    """Stripe webhook 入口：验签后按事件类型分发"""

    def __init__(self, session: Session, *, secret: str | None, tolerance: int) -> None:
        self.session = session
        self.secret = secret
        self.tolerance = tolerance

    def handle(self, raw_body: bytes, signature_header: str | None) -> WebhookAck:
        event = verify(raw_body, signature_header, self.secret, tolerance=self.tolerance)
        logger.info("Received Stripe event %s %s", event.event_type, event.event_id)

        if event.event_type == WebhookEventType.payment_succeeded.value:
            if not event.payment_intent_id:
                return WebhookAck(event_type=event.event_type, ignored=True)
            result = apply_payment_succeeded(self.session, event.payment_intent_id)
            return WebhookAck(event_type=event.event_type, duplicate=not result.changed)

        if event.event_type == WebhookEventType.payment_failed.value:
            if not event.payment_intent_id:
                return WebhookAck(event_type=event.event_type, ignored=True)
            result = apply_payment_failed(self.session, event.payment_intent_id)
            return WebhookAck(event_type=event.event_type, duplicate=not result.changed)

        logger.info("Unhandled event type: %s", event.event_type)
        return WebhookAck(event_type=event.event_type, ignored=True)
