"""
API 请求/响应数据模型（Schema）

定义所有 API 接口的请求和响应数据结构。
使用 Pydantic 进行数据验证和序列化。

关键概念：
- BaseModel: Pydantic 的模型基类，用于数据验证
- Field: 字段验证器，定义字段的约束（长度、范围等）
- 这些模型不是数据库表，只用于 API 数据交换
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal  # 精确数值类型，用于金额
from typing import Any  # 任意类型

from pydantic import BaseModel, EmailStr, Field  # Pydantic 核心类

from app.enums import OrderStatus, PaymentStatus

# ============================================================
# 通用响应模型
# ============================================================


class Message(BaseModel):
    """
    消息响应模型

    用于 API 返回简单的文本消息。
    """
    message: str


class TokenPayload(BaseModel):
    """
    JWT Token 载荷模型

    用于解析 JWT token 中的用户信息。
    sub (subject) 存储用户 ID。
    """
    sub: str | None = None


class ApiEnvelope(BaseModel):
    """
    API 统一响应格式

    所有 API 响应都使用这个格式，包含：
    - code: 状态码（0 表示成功，非 0 表示错误）
    - message: 消息（成功时为 "success"，错误时为错误描述）
    - data: 数据（成功时返回业务数据，错误时为 None）

    示例响应：
        {"code": 0, "message": "success", "data": {...}}
        {"code": 404301, "message": "Order not found", "data": None}
    """
    code: int = 0  # 默认成功
    message: str = "success"  # 默认成功消息
    data: Any | None = None  # 业务数据（可选）


# ============================================================
# 账号
# ============================================================


class RegisterRequest(BaseModel):
    """注册请求模型"""
    email: EmailStr = Field(max_length=255)
    password: str = Field(min_length=8, max_length=128)
    full_name: str | None = Field(default=None, max_length=255)


class LoginRequest(BaseModel):
    """登录请求模型"""
    email: EmailStr = Field(max_length=255)
    password: str = Field(min_length=1, max_length=128)


class UserProfile(BaseModel):
    """
    用户资料模型

    不包含密码哈希等敏感信息。
    """
    id: int  # 用户 ID
    email: str  # 邮箱
    full_name: str | None = None  # 姓名
    is_superuser: bool = False  # 是否为管理员


class AuthLoginData(BaseModel):
    """
    登录响应数据模型

    登录成功后返回 token 和用户信息。
    """
    access_token: str  # JWT 访问令牌
    token_type: str = "bearer"
    expires_in: int  # token 过期时间（秒）
    user: UserProfile  # 用户信息


# ============================================================
# 购物车
# ============================================================


class CartItemUpsertRequest(BaseModel):
    """加入购物车 / 修改数量请求模型"""
    product_id: int
    quantity: int = Field(ge=1, le=1000)  # 数量（1-1000）


class CartItemData(BaseModel):
    """购物车条目数据模型"""
    product_id: int
    product_name: str | None = None
    quantity: int
    price: Decimal  # 单价快照
    item_total: Decimal  # 小计


class CartData(BaseModel):
    """购物车响应模型"""
    items: list[CartItemData]
    total: Decimal  # 服务端计算的总额


# ============================================================
# 支付
# ============================================================


class PaymentIntentCreateRequest(BaseModel):
    """
    创建支付意图请求模型

    amount 只用于和服务端重算的购物车总额做核对，
    实际扣款金额永远以服务端计算为准。
    """
    amount: Decimal | None = Field(default=None)  # 客户端展示的金额（可选）
    currency: str | None = Field(default=None, min_length=3, max_length=3)  # ISO 币种代码（默认 DEFAULT_CURRENCY）


class PaymentIntentData(BaseModel):
    """创建支付意图响应模型"""
    client_secret: str  # 前端确认支付用的 client secret
    payment_intent_id: str  # 网关侧的 PaymentIntent ID
    amount: Decimal  # 实际发起的金额
    currency: str


# ============================================================
# 订单
# ============================================================


class ShippingAddress(BaseModel):
    """
    收货地址模型

    在接口边界把 JSON 解析成结构化类型，格式不对的数据不会写入订单。
    full_name 和 address_line1 的非空校验在下单服务中完成（返回 400）。
    """
    full_name: str = Field(default="", max_length=255)  # 收件人姓名
    address_line1: str = Field(default="", max_length=255)  # 地址第一行
    address_line2: str | None = Field(default=None, max_length=255)  # 地址第二行（可选）
    city: str = Field(default="", max_length=128)  # 城市
    state: str = Field(default="", max_length=128)  # 省/州
    postal_code: str = Field(default="", max_length=32)  # 邮编
    phone: str = Field(default="", max_length=32)  # 联系电话


class OrderItemIn(BaseModel):
    """下单明细（来自购物车快照）"""
    product_id: int
    quantity: int = Field(ge=1, le=1000)
    price: Decimal = Field(ge=0)  # 单价快照
    item_total: Decimal = Field(ge=0)  # 小计 = 单价 × 数量


class OrderCreateRequest(BaseModel):
    """
    创建订单请求模型

    同一个 payment_intent_id 重复提交时返回已存在的订单。
    """
    items: list[OrderItemIn]
    shipping_address: ShippingAddress
    payment_intent_id: str | None = Field(default=None, min_length=1, max_length=255)
    status: OrderStatus | None = None  # 只能是 RECEIVED
    payment_status: PaymentStatus | None = None  # 只能是 pending 或 succeeded


class OrderFinalizeRequest(BaseModel):
    """确认支付并收尾（清空购物车）请求模型"""
    payment_intent_id: str = Field(min_length=1, max_length=255)


class OrderStatusUpdateRequest(BaseModel):
    """后台修改订单状态请求模型"""
    status: OrderStatus


class OrderItemData(BaseModel):
    """订单明细数据模型"""
    product_id: int | None = None
    product_name: str
    quantity: int
    price: Decimal
    item_total: Decimal


class OrderData(BaseModel):
    """
    订单数据模型

    返回订单的详细信息及明细。
    """
    id: int  # 订单 ID
    user_id: int  # 买家 ID
    status: OrderStatus  # 履约状态
    payment_status: PaymentStatus | None = None  # 支付状态
    payment_intent_id: str | None = None  # 支付意图 ID
    total: Decimal  # 订单总额
    shipping_address: ShippingAddress  # 收货地址
    items: list[OrderItemData]  # 订单明细
    created_at: datetime  # 创建时间
    updated_at: datetime  # 更新时间


class OrdersData(BaseModel):
    """
    订单列表响应模型

    返回订单列表和总数。
    """
    data: list[OrderData]  # 订单列表
    count: int  # 总记录数


class WebhookAck(BaseModel):
    """Webhook 处理结果"""
    received: bool = True
    event_type: str | None = None
    ignored: bool = False  # 未处理的事件类型
    duplicate: bool = False  # 重复投递，未产生任何变更
