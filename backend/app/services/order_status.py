"""
订单状态机

履约状态（status）：
    RECEIVED → SHIPPED → DELIVERED
    RECEIVED → FAILED | CANCELLED | COMPLETED

支付状态（payment_status: pending/succeeded/failed）是独立的一条轴，
只由下单和 webhook 两条核心路径修改。

边分两类：
- 履约边：后台操作可走（发货、送达、取消、完成）；发货和完成要求支付已成功
- 支付边：RECEIVED → FAILED 只能由 webhook 对账走；
  同一个 PaymentIntent 失败后买家换卡重试成功，网关会再发 succeeded，
  这时允许 FAILED → RECEIVED，这条边同样只属于对账路径。
"""
from __future__ import annotations

from app.api.errors import invalid_status_transition, order_not_paid
from app.enums import OrderStatus, PaymentStatus

INITIAL_STATUS = OrderStatus.received

TERMINAL_STATUSES = frozenset(
    {
        OrderStatus.delivered,
        OrderStatus.failed,
        OrderStatus.cancelled,
        OrderStatus.completed,
    }
)

FULFILLMENT_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.received: frozenset(
        {OrderStatus.shipped, OrderStatus.cancelled, OrderStatus.completed}
    ),
    OrderStatus.shipped: frozenset({OrderStatus.delivered}),
}

PAYMENT_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.received: frozenset({OrderStatus.failed}),
    OrderStatus.failed: frozenset({OrderStatus.received}),
}

# 发货、完成之前支付必须已经成功
PAID_ONLY_TARGETS = frozenset({OrderStatus.shipped, OrderStatus.completed})


def is_terminal(status: OrderStatus | str) -> bool:
    return OrderStatus(status) in TERMINAL_STATUSES


def can_transition(
    current: OrderStatus | str,
    target: OrderStatus | str,
    *,
    payment_event: bool = False,
) -> bool:
    """
    判断状态流转是否合法

    终态只有一条出边：同一个支付意图失败后又成功（FAILED → RECEIVED），
    且只能由支付事件触发。

    Args:
        current: 当前状态
        target: 目标状态
        payment_event: 是否由支付网关事件驱动（只走支付边）

    Returns:
        是否允许
    """
    current = OrderStatus(current)
    target = OrderStatus(target)
    if payment_event:
        return target in PAYMENT_TRANSITIONS.get(current, frozenset())
    if is_terminal(current):
        return False
    return target in FULFILLMENT_TRANSITIONS.get(current, frozenset())


def ensure_transition(
    current: OrderStatus | str,
    target: OrderStatus | str,
    *,
    payment_event: bool = False,
) -> None:
    """
    校验状态流转，不合法时抛出 409

    Raises:
        ConflictError: 流转不合法
    """
    if not can_transition(current, target, payment_event=payment_event):
        raise invalid_status_transition(OrderStatus(current).value, OrderStatus(target).value)


def ensure_fulfillment(
    current: OrderStatus | str,
    target: OrderStatus | str,
    payment_status: PaymentStatus | str | None,
) -> None:
    """
    校验后台履约操作：边必须合法，发货/完成还要求支付已成功

    未支付的订单只能取消。

    Raises:
        ConflictError: 流转不合法，或订单尚未支付
    """
    ensure_transition(current, target)
    if OrderStatus(target) in PAID_ONLY_TARGETS and payment_status != PaymentStatus.succeeded:
        raise order_not_paid()


def payment_sources(target: OrderStatus | str) -> frozenset[OrderStatus]:
    """
    支付事件可以把订单落到 target 的起点状态

    包括 target 本身（状态不变，只更新 payment_status）和所有能经支付边
    到达 target 的状态。对账服务用它作为条件更新的 WHERE 条件。
    """
    target = OrderStatus(target)
    return frozenset(
        {target} | {s for s in OrderStatus if can_transition(s, target, payment_event=True)}
    )
