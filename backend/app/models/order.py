"""
订单模型模块

定义订单（Order Ledger）及订单明细的数据库模型。
"""
from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, BigInteger, Column, DateTime, ForeignKey, Index, Numeric, String
from sqlmodel import Field, SQLModel

from app.core.snowflake import generate_id
from app.enums import OrderStatus, PaymentStatus

from .base import utc_now


class Order(SQLModel, table=True):
    """
    订单模型

    一次结账尝试产生的持久化记录。
    payment_intent_id 上有唯一索引：同一个支付意图最多只能对应一个订单，
    并发创建时由数据库约束保证，而不是应用层先查后写。

    字段说明：
    - id: 主键
    - user_id: 买家用户 ID（外键）
    - status: 履约状态（RECEIVED/SHIPPED/DELIVERED/FAILED/CANCELLED/COMPLETED）
    - payment_intent_id: 支付网关的 PaymentIntent ID（可空，非空时唯一）
    - payment_status: 支付状态（pending/succeeded/failed，可空）
    - total: 订单总额（创建时由明细求和，之后不再重算）
    - shipping_address: 收货地址快照（JSON）
    - created_at: 创建时间
    - updated_at: 更新时间
    """
    __tablename__ = "orders"
    __table_args__ = (
        Index("ix_orders_payment_status_created_at", "payment_status", "created_at"),
    )

    id: int = Field(
        default_factory=generate_id,
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False),
    )
    user_id: int = Field(
        sa_column=Column(
            BigInteger, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
        )
    )

    status: OrderStatus = Field(sa_column=Column(String(16), nullable=False))
    payment_intent_id: str | None = Field(
        default=None,
        sa_column=Column(String(255), unique=True, index=True, nullable=True),
    )
    payment_status: PaymentStatus | None = Field(
        default=None, sa_column=Column(String(16), nullable=True)
    )

    total: Decimal = Field(
        default=Decimal("0.00"),
        sa_column=Column(Numeric(12, 2), nullable=False),
    )
    shipping_address: dict = Field(sa_column=Column(JSON, nullable=False))

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class OrderItem(SQLModel, table=True):
    """
    订单明细模型

    创建订单时对商品做快照（名称、单价、小计），
    之后商品改价或下架都不会影响历史订单。
    商品被删除时 product_id 置空，明细本身保留。
    """
    __tablename__ = "order_items"

    id: int = Field(
        default_factory=generate_id,
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False),
    )
    order_id: int = Field(
        sa_column=Column(
            BigInteger, ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False
        )
    )
    product_id: int | None = Field(
        default=None,
        sa_column=Column(
            BigInteger, ForeignKey("products.id", ondelete="SET NULL"), nullable=True
        ),
    )
    product_name: str = Field(max_length=255)
    quantity: int = Field(nullable=False)
    price: Decimal = Field(sa_column=Column(Numeric(10, 2), nullable=False))
    item_total: Decimal = Field(sa_column=Column(Numeric(12, 2), nullable=False))
