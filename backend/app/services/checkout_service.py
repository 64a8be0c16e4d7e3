"""
结账编排服务（Checkout Orchestrator）

面向买家的三个步骤：
1. create_intent: 按服务端重算的购物车总额向网关创建支付意图
2. create_or_use_order: 用支付意图 ID 幂等地创建订单（快照明细和收货地址）
3. confirm_and_finalize: 网关确认支付后清空购物车

订单的支付结果以 webhook 为准（见 webhook_service），这里的收尾只是让买家
尽快看到结果；两条路径谁先到都可以，副作用只会执行一次。
"""
from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session

from app import crud
from app.api.errors import (
    invalid_address,
    invalid_amount,
    invalid_items,
    invalid_order_status,
    order_not_found,
    order_persist_failed,
    payment_intent_in_use,
    payment_not_confirmed,
    product_not_found,
)
from app.api.schemas import (
    OrderCreateRequest,
    OrderData,
    OrderItemData,
    PaymentIntentData,
    ShippingAddress,
)
from app.enums import PaymentStatus
from app.integrations.stripe_gateway import StripeGateway, to_minor_units
from app.models import Order, OrderItem, User, to_money
from app.services.notification_service import enqueue_order_confirmation
from app.services.order_status import INITIAL_STATUS
from app.services.webhook_service import mark_payment_succeeded

logger = logging.getLogger(__name__)


def to_order_data(session: Session, order: Order) -> OrderData:
    """把订单及其明细转换成响应模型"""
    items = crud.list_order_items(session=session, order_id=order.id)
    return OrderData(
        id=order.id,
        user_id=order.user_id,
        status=order.status,
        payment_status=order.payment_status,
        payment_intent_id=order.payment_intent_id,
        total=order.total,
        shipping_address=ShippingAddress.model_validate(order.shipping_address or {}),
        items=[
            OrderItemData(
                product_id=item.product_id,
                product_name=item.product_name,
                quantity=item.quantity,
                price=item.price,
                item_total=item.item_total,
            )
            for item in items
        ],
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


class CheckoutService:
    """买家结账流程"""

    def __init__(self, session: Session, gateway: StripeGateway) -> None:
        self.session = session
        self.gateway = gateway

    # ------------------------------------------------------------
    # 支付意图
    # ------------------------------------------------------------

    def create_intent(
        self, user: User, *, amount: Decimal | None = None, currency: str = "inr"
    ) -> PaymentIntentData:
        """
        为当前购物车创建支付意图

        金额永远由服务端按购物车重算；客户端传来的 amount 只用于核对。

        Raises:
            ValidationError: 购物车为空（总额 <= 0），或 amount 与服务端总额不一致
            UpstreamError: 网关不可用
        """
        total = to_money(crud.cart_total(session=self.session, user_id=user.id))
        if total <= 0:
            raise invalid_amount("Cart is empty")
        if amount is not None and to_money(amount) != total:
            logger.warning(
                "Client amount %s does not match cart total %s for user %s", amount, total, user.id
            )
            raise invalid_amount("Amount does not match cart total")

        result = self.gateway.create_intent(
            amount=total,
            currency=currency,
            metadata={"user_id": str(user.id), "user_email": user.email},
        )
        logger.info(
            "Created payment intent %s for user %s (%s %s)",
            result.payment_intent_id,
            user.id,
            total,
            result.currency,
        )
        return PaymentIntentData(
            client_secret=result.client_secret,
            payment_intent_id=result.payment_intent_id,
            amount=total,
            currency=result.currency,
        )

    # ------------------------------------------------------------
    # 下单
    # ------------------------------------------------------------

    def _reuse(self, order: Order, user: User) -> Order:
        if order.user_id != user.id:
            logger.warning(
                "User %s tried to reuse payment intent %s owned by user %s",
                user.id,
                order.payment_intent_id,
                order.user_id,
            )
            raise payment_intent_in_use()
        return order

    def _validate(self, body: OrderCreateRequest) -> None:
        if not body.items:
            raise invalid_items()

        seen: set[int] = set()
        for item in body.items:
            if item.product_id in seen:
                raise invalid_items(f"Duplicate product {item.product_id}")
            seen.add(item.product_id)
            if to_money(item.price * item.quantity) != to_money(item.item_total):
                raise invalid_items(f"Item total mismatch for product {item.product_id}")

        address = body.shipping_address
        if not address.full_name.strip() or not address.address_line1.strip():
            raise invalid_address()

        if body.status is not None and body.status != INITIAL_STATUS:
            raise invalid_order_status()
        if body.payment_status == PaymentStatus.failed:
            raise invalid_order_status("New orders cannot start with a failed payment")

    def _resolve_payment_status(
        self, user: User, body: OrderCreateRequest, total: Decimal
    ) -> PaymentStatus | None:
        """
        向网关核对支付意图，决定新订单的 payment_status

        - 没有支付意图的订单不能声明已支付
        - 支付意图必须属于当前用户，金额必须等于订单总额
        - 客户端声明 succeeded 时以网关状态为准，未确认则按 pending 保存

        Raises:
            ValidationError: 无支付意图却声明已支付，或金额不一致
            NotFoundError: 网关上不存在该支付意图
            ConflictError: 支付意图属于其他用户
            UpstreamError: 网关不可用
        """
        intent_id = body.payment_intent_id
        claimed = body.payment_status
        if not intent_id:
            if claimed == PaymentStatus.succeeded:
                raise invalid_order_status("Paid orders require a payment intent")
            return claimed

        intent = self.gateway.retrieve_intent(intent_id)
        owner = intent.metadata.get("user_id")
        if owner is not None and owner != str(user.id):
            logger.warning("User %s tried to order with payment intent %s created for user %s", user.id, intent_id, owner)
            raise payment_intent_in_use()
        if to_minor_units(total, intent.currency) != intent.amount:
            logger.warning(
                "Order total %s does not match payment intent %s amount %s %s",
                total,
                intent_id,
                intent.amount,
                intent.currency,
            )
            raise invalid_amount("Order total does not match payment amount")

        if claimed == PaymentStatus.succeeded and intent.status != "succeeded":
            logger.info("Payment intent %s not confirmed by gateway (status=%s), order stays pending", intent_id, intent.status)
            return PaymentStatus.pending
        return claimed or PaymentStatus.pending

    def create_or_use_order(self, user: User, body: OrderCreateRequest) -> Order:
        """
        创建订单；同一个支付意图重复提交时返回已有订单

        订单、明细（以及支付已成功时的购物车清空）在同一个事务里提交。
        两个请求同时用同一个支付意图下单时，唯一索引让其中一个插入失败，
        失败方回滚后返回胜出方的订单。

        Raises:
            ValidationError: 明细/地址/状态不合法，单价与商品目录不一致，
                或订单总额与支付意图金额不一致
            NotFoundError: 商品或支付意图不存在
            ConflictError: 支付意图属于其他用户
            UpstreamError: 网关不可用，或数据库写入失败（已整体回滚）
        """
        intent_id = body.payment_intent_id
        if intent_id:
            existing = crud.get_order_by_payment_intent(session=self.session, payment_intent_id=intent_id)
            if existing:
                logger.info("Order %s already exists for payment intent %s", existing.id, intent_id)
                return self._reuse(existing, user)

        self._validate(body)

        products = {}
        for item in body.items:
            product = crud.get_product(session=self.session, product_id=item.product_id)
            if not product:
                raise product_not_found()
            if to_money(item.price) != to_money(product.price):
                logger.warning(
                    "User %s sent price %s for product %s priced %s",
                    user.id,
                    item.price,
                    product.id,
                    product.price,
                )
                raise invalid_items(f"Price mismatch for product {item.product_id}")
            products[item.product_id] = product

        total = to_money(sum((item.item_total for item in body.items), Decimal("0")))
        payment_status = self._resolve_payment_status(user, body, total)

        order = Order(
            user_id=user.id,
            status=INITIAL_STATUS,
            payment_intent_id=intent_id,
            payment_status=payment_status,
            total=total,
            shipping_address=body.shipping_address.model_dump(),
        )
        try:
            self.session.add(order)
            self.session.flush()
            for item in body.items:
                self.session.add(
                    OrderItem(
                        order_id=order.id,
                        product_id=item.product_id,
                        product_name=products[item.product_id].name,
                        quantity=item.quantity,
                        price=products[item.product_id].price,
                        item_total=item.item_total,
                    )
                )
            if payment_status == PaymentStatus.succeeded:
                crud.clear_cart(session=self.session, user_id=user.id, commit=False)
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            if intent_id:
                winner = crud.get_order_by_payment_intent(session=self.session, payment_intent_id=intent_id)
                if winner:
                    logger.info("Concurrent order creation for payment intent %s, reusing order %s", intent_id, winner.id)
                    return self._reuse(winner, user)
            logger.error("Failed to create order for user %s: %s", user.id, e)
            raise order_persist_failed() from e
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error("Failed to create order for user %s: %s", user.id, e)
            raise order_persist_failed() from e

        self.session.refresh(order)
        logger.info("Created order %s for user %s (intent %s)", order.id, user.id, intent_id)
        if payment_status == PaymentStatus.succeeded:
            enqueue_order_confirmation(order)
        return order

    # ------------------------------------------------------------
    # 收尾
    # ------------------------------------------------------------

    def confirm_and_finalize(self, user: User, payment_intent_id: str) -> Order:
        """
        确认支付并清空购物车

        网关状态：
        - succeeded: 按对账路径把订单标记为成功（已由 webhook 标记则跳过）
        - processing: 接受，订单保持 pending，最终结果等 webhook
        - 其他: 支付未完成，购物车保留

        Raises:
            NotFoundError: 当前用户没有该支付意图的订单
            ConflictError: 网关未确认支付
            UpstreamError: 网关不可用
        """
        order = crud.get_order_by_payment_intent(
            session=self.session, payment_intent_id=payment_intent_id, user_id=user.id
        )
        if not order:
            raise order_not_found()

        if order.payment_status != PaymentStatus.succeeded:
            status = self.gateway.retrieve_intent(payment_intent_id).status
            if status == "succeeded":
                mark_payment_succeeded(self.session, order)
            elif status == "processing":
                logger.info("Payment intent %s still processing, order %s stays pending", payment_intent_id, order.id)
            else:
                logger.info("Payment intent %s not confirmed (status=%s)", payment_intent_id, status)
                raise payment_not_confirmed()

        crud.clear_cart(session=self.session, user_id=user.id)
        self.session.refresh(order)
        return order
