"""
后台管理路由模块

仅管理员（is_superuser）可访问：
- 查询全部订单
- 修改订单履约状态（只允许状态机中的履约边，发货和完成要求已支付）
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Query
from sqlmodel import update

from app import crud
from app.api.deps import CurrentAdmin, SessionDep
from app.api.errors import invalid_status_transition, order_not_found
from app.api.schemas import ApiEnvelope, OrdersData, OrderStatusUpdateRequest
from app.enums import PaymentStatus
from app.models import Order, utc_now
from app.services.checkout_service import to_order_data
from app.services.order_status import PAID_ONLY_TARGETS, ensure_fulfillment

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/orders", response_model=ApiEnvelope)
def list_all_orders(
    session: SessionDep,
    current_admin: CurrentAdmin,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
) -> ApiEnvelope:
    """
    查询全部订单（按创建时间倒序）

    请求路径: GET /api/v1/admin/orders?page=1&page_size=20
    """
    rows, count = crud.list_orders(session=session, offset=(page - 1) * page_size, limit=page_size)
    data = [to_order_data(session, o) for o in rows]
    return ApiEnvelope(data=OrdersData(data=data, count=count))


@router.patch("/orders/{order_id}/status", response_model=ApiEnvelope)
def update_order_status(
    session: SessionDep,
    current_admin: CurrentAdmin,
    order_id: int,
    body: OrderStatusUpdateRequest,
) -> ApiEnvelope:
    """
    修改订单履约状态

    以读到的当前状态为条件更新，避免覆盖并发写入（如同时到达的支付 webhook）。

    请求路径: PATCH /api/v1/admin/orders/{order_id}/status
    """
    order = crud.get_order(session=session, order_id=order_id)
    if not order:
        raise order_not_found()

    current = order.status
    ensure_fulfillment(current, body.status, order.payment_status)

    stmt = update(Order).where(Order.id == order_id, Order.status == current)
    if body.status in PAID_ONLY_TARGETS:
        stmt = stmt.where(Order.payment_status == PaymentStatus.succeeded)
    result = session.exec(stmt.values(status=body.status, updated_at=utc_now()))
    if result.rowcount != 1:
        session.rollback()
        session.refresh(order)
        raise invalid_status_transition(str(order.status), body.status.value)
    session.commit()
    session.refresh(order)
    logger.info("Admin %s moved order %s from %s to %s", current_admin.id, order_id, current, body.status.value)
    return ApiEnvelope(data=to_order_data(session, order))
