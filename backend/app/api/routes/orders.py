"""
订单路由模块

处理买家订单相关的 API 端点，包括：
- 创建订单（按支付意图幂等）
- 支付确认后收尾（清空购物车）
- 查询订单列表（分页）
- 查询单个订单详情（按订单 ID 或支付意图 ID）
"""
from __future__ import annotations

from fastapi import APIRouter, Query  # FastAPI 路由和查询参数

from app import crud
from app.api.deps import CurrentUser, GatewayDep, SessionDep  # 依赖注入
from app.api.errors import order_not_found
from app.api.schemas import (
    ApiEnvelope,
    OrderCreateRequest,
    OrderFinalizeRequest,
    OrdersData,
)
from app.services.checkout_service import CheckoutService, to_order_data

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=ApiEnvelope)
def create_order(
    session: SessionDep,
    gateway: GatewayDep,
    current_user: CurrentUser,
    body: OrderCreateRequest,
) -> ApiEnvelope:
    """
    创建订单

    同一个 payment_intent_id 重复提交（客户端重试、并发请求）时返回已存在的订单，
    不会产生第二个订单。
    明细单价必须与商品目录一致，订单总额必须等于支付意图金额；
    声明已支付时以网关查询结果为准。

    请求路径: POST /api/v1/orders

    Args:
        session: 数据库会话
        gateway: 支付网关客户端
        current_user: 当前登录用户
        body: 订单明细、收货地址和支付意图 ID

    Returns:
        ApiEnvelope: 包含订单详情的响应
    """
    order = CheckoutService(session, gateway).create_or_use_order(current_user, body)
    return ApiEnvelope(data=to_order_data(session, order))


@router.post("/finalize", response_model=ApiEnvelope)
def finalize_order(
    session: SessionDep,
    gateway: GatewayDep,
    current_user: CurrentUser,
    body: OrderFinalizeRequest,
) -> ApiEnvelope:
    """
    支付确认后收尾

    向网关确认支付状态，成功（或仍在处理中）时清空购物车并返回订单；
    支付未完成时返回 409，购物车保留以便重试。

    请求路径: POST /api/v1/orders/finalize
    """
    order = CheckoutService(session, gateway).confirm_and_finalize(current_user, body.payment_intent_id)
    return ApiEnvelope(data=to_order_data(session, order))


@router.get("", response_model=ApiEnvelope)
def list_orders(
    session: SessionDep,
    current_user: CurrentUser,
    page: int = Query(default=1, ge=1),  # 页码，从 1 开始
    page_size: int = Query(default=20, ge=1, le=100),  # 每页数量，1-100
) -> ApiEnvelope:
    """
    获取订单列表（分页）

    查询当前用户的所有订单，按创建时间倒序排列。

    请求路径: GET /api/v1/orders?page=1&page_size=20
    """
    offset = (page - 1) * page_size  # 计算偏移量
    rows, count = crud.list_orders(
        session=session, user_id=current_user.id, offset=offset, limit=page_size
    )
    data = [to_order_data(session, o) for o in rows]
    return ApiEnvelope(data=OrdersData(data=data, count=count))


@router.get("/by-payment-intent/{payment_intent_id}", response_model=ApiEnvelope)
def get_order_by_payment_intent(
    session: SessionDep, current_user: CurrentUser, payment_intent_id: str
) -> ApiEnvelope:
    """
    按支付意图 ID 查询订单（支付完成页轮询用）

    请求路径: GET /api/v1/orders/by-payment-intent/{payment_intent_id}
    """
    order = crud.get_order_by_payment_intent(
        session=session, payment_intent_id=payment_intent_id, user_id=current_user.id
    )
    if not order:
        raise order_not_found()
    return ApiEnvelope(data=to_order_data(session, order))


@router.get("/{order_id}", response_model=ApiEnvelope)
def get_order(session: SessionDep, current_user: CurrentUser, order_id: int) -> ApiEnvelope:
    """
    获取订单详情

    只能查询当前用户自己的订单。

    请求路径: GET /api/v1/orders/{order_id}
    """
    order = crud.get_order_for_user(session=session, order_id=order_id, user_id=current_user.id)
    if not order:
        raise order_not_found()
    return ApiEnvelope(data=to_order_data(session, order))
