"""
枚举类型定义模块

定义应用中使用的所有枚举类型。
枚举用于限制字段只能取特定的值，提供类型安全和代码可读性。

所有枚举都继承自 str 和 Enum，这样既可以用作字符串，又具有枚举的特性。
"""
from enum import Enum  # 枚举类型，用于定义固定的选项集合


class OrderStatus(str, Enum):
    """
    订单履约状态枚举

    状态流转（见 app/services/order_status.py）：
    RECEIVED → SHIPPED → DELIVERED
    RECEIVED → FAILED / CANCELLED / COMPLETED

    - RECEIVED: 已接单（创建时的初始状态）
    - SHIPPED: 已发货
    - DELIVERED: 已送达（终态）
    - FAILED: 支付失败（终态）
    - CANCELLED: 已取消（终态）
    - COMPLETED: 已完成（终态）
    """
    received = "RECEIVED"
    shipped = "SHIPPED"
    delivered = "DELIVERED"
    failed = "FAILED"
    cancelled = "CANCELLED"
    completed = "COMPLETED"


class PaymentStatus(str, Enum):
    """
    支付状态枚举

    与履约状态正交，镜像支付网关上 PaymentIntent 的结果：
    - pending: 待确认（已创建订单，等待网关结果）
    - succeeded: 支付成功
    - failed: 支付失败
    """
    pending = "pending"
    succeeded = "succeeded"
    failed = "failed"


class WebhookEventType(str, Enum):
    """
    需要处理的 Stripe Webhook 事件类型

    其他事件类型一律确认接收后忽略。
    """
    payment_succeeded = "payment_intent.succeeded"
    payment_failed = "payment_intent.payment_failed"
