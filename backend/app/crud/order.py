"""订单 CRUD 操作（Order Ledger 的查询入口）"""
from datetime import datetime

from sqlmodel import Session, func, select

from app.enums import PaymentStatus
from app.models import Order, OrderItem


def get_by_id(*, session: Session, order_id: int) -> Order | None:
    return session.get(Order, order_id)


def get_for_user(*, session: Session, order_id: int, user_id: int) -> Order | None:
    """按 ID 查询订单，只返回属于该用户的订单"""
    return session.exec(
        select(Order).where(Order.id == order_id, Order.user_id == user_id)
    ).first()


def get_by_payment_intent(
    *, session: Session, payment_intent_id: str, user_id: int | None = None
) -> Order | None:
    """按支付意图 ID 查询订单；传入 user_id 时限定为该用户的订单"""
    stmt = select(Order).where(Order.payment_intent_id == payment_intent_id)
    if user_id is not None:
        stmt = stmt.where(Order.user_id == user_id)
    return session.exec(stmt).first()


def list_items(*, session: Session, order_id: int) -> list[OrderItem]:
    stmt = select(OrderItem).where(OrderItem.order_id == order_id).order_by(OrderItem.id)
    return list(session.exec(stmt).all())


def list_orders(
    *, session: Session, user_id: int | None = None, offset: int = 0, limit: int = 20
) -> tuple[list[Order], int]:
    """分页查询订单（按创建时间倒序）；user_id 为空时查询全部（后台用）"""
    count_stmt = select(func.count()).select_from(Order)
    stmt = select(Order)
    if user_id is not None:
        count_stmt = count_stmt.where(Order.user_id == user_id)
        stmt = stmt.where(Order.user_id == user_id)
    count = session.exec(count_stmt).one()
    rows = session.exec(
        stmt.order_by(Order.created_at.desc()).offset(offset).limit(limit)
    ).all()
    return list(rows), count


def list_stale_pending(*, session: Session, created_before: datetime, limit: int) -> list[Order]:
    """查询创建已久但支付状态仍为 pending 的订单（巡检用）"""
    stmt = (
        select(Order)
        .where(
            Order.payment_status == PaymentStatus.pending,
            Order.payment_intent_id.is_not(None),  # type: ignore[union-attr]
            Order.created_at < created_before,
        )
        .order_by(Order.created_at)
        .limit(limit)
    )
    return list(session.exec(stmt).all())
