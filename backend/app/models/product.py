"""
商品与购物车模型模块

商品由后台维护（本服务只读取价格和存在性），
购物车条目是每个用户每个商品一行的临时数据，下单支付成功后清空。
"""
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlmodel import Field, SQLModel

from app.core.snowflake import generate_id

from .base import utc_now


class Product(SQLModel, table=True):
    """
    商品模型

    字段说明：
    - id: 主键
    - name: 商品名称
    - description: 商品描述
    - price: 当前售价（Decimal 保证精度）
    - image_url: 商品图片
    """
    __tablename__ = "products"
    id: int = Field(
        default_factory=generate_id,
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False),
    )
    name: str = Field(max_length=255)
    description: str | None = Field(default=None, sa_column=Column(Text))
    price: Decimal = Field(
        default=Decimal("0.00"),
        sa_column=Column(Numeric(10, 2), nullable=False),
    )
    image_url: str | None = Field(default=None, max_length=512)

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class CartItem(SQLModel, table=True):
    """
    购物车条目模型

    每个 (user_id, product_id) 只有一行（唯一约束）。
    price 是加入购物车时的单价快照，item_total 在每次修改数量时重新计算。
    不做版本控制，数量更新以最后一次写入为准。
    """
    __tablename__ = "cart_items"
    __table_args__ = (
        UniqueConstraint("user_id", "product_id", name="uq_cart_items_user_product"),
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
    product_id: int = Field(
        sa_column=Column(
            BigInteger, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
        )
    )
    quantity: int = Field(default=1)
    price: Decimal = Field(sa_column=Column(Numeric(10, 2), nullable=False))
    item_total: Decimal = Field(sa_column=Column(Numeric(12, 2), nullable=False))

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
