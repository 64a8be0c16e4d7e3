"""购物车 CRUD 操作"""
from decimal import Decimal

from sqlmodel import Session, delete, select

from app.api.errors import product_not_found
from app.models import CartItem, Product, utc_now


def get_product(*, session: Session, product_id: int) -> Product | None:
    return session.get(Product, product_id)


def list_items(*, session: Session, user_id: int) -> list[tuple[CartItem, Product]]:
    """查询用户购物车（带商品信息），按加入时间排序"""
    stmt = (
        select(CartItem, Product)
        .join(Product, Product.id == CartItem.product_id)
        .where(CartItem.user_id == user_id)
        .order_by(CartItem.created_at)
    )
    return list(session.exec(stmt).all())


def cart_total(*, session: Session, user_id: int) -> Decimal:
    """服务端重算购物车总额（所有条目小计之和）"""
    rows = session.exec(select(CartItem.item_total).where(CartItem.user_id == user_id)).all()
    return sum((Decimal(v) for v in rows), Decimal("0.00"))


def upsert_item(*, session: Session, user_id: int, product_id: int, quantity: int) -> CartItem:
    """
    加入购物车或修改数量

    单价快照取商品当前价格，小计随数量重新计算。
    """
    product = get_product(session=session, product_id=product_id)
    if not product:
        raise product_not_found()

    price = Decimal(product.price)
    item = session.exec(
        select(CartItem).where(CartItem.user_id == user_id, CartItem.product_id == product_id)
    ).first()
    if item is None:
        item = CartItem(user_id=user_id, product_id=product_id, quantity=quantity, price=price, item_total=price * quantity)
    else:
        item.quantity = quantity
        item.price = price
        item.item_total = price * quantity
        item.updated_at = utc_now()

    session.add(item)
    session.commit()
    session.refresh(item)
    return item


def remove_item(*, session: Session, user_id: int, product_id: int) -> None:
    session.exec(
        delete(CartItem).where(CartItem.user_id == user_id, CartItem.product_id == product_id)
    )
    session.commit()


def clear(*, session: Session, user_id: int, commit: bool = True) -> int:
    """清空用户购物车，返回删除的条目数"""
    result = session.exec(delete(CartItem).where(CartItem.user_id == user_id))
    if commit:
        session.commit()
    return result.rowcount or 0
