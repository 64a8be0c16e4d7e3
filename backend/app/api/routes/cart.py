"""
购物车路由模块

- 查看购物车（含服务端计算的总额）
- 加入商品 / 修改数量
- 删除商品
- 清空购物车
"""
from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter

from app import crud
from app.api.deps import CurrentUser, SessionDep
from app.api.schemas import ApiEnvelope, CartData, CartItemData, CartItemUpsertRequest, Message

router = APIRouter(prefix="/cart", tags=["cart"])


def _cart_data(session: SessionDep, user_id: int) -> CartData:
    rows = crud.list_cart_items(session=session, user_id=user_id)
    items = [
        CartItemData(
            product_id=item.product_id,
            product_name=product.name,
            quantity=item.quantity,
            price=item.price,
            item_total=item.item_total,
        )
        for item, product in rows
    ]
    total = sum((Decimal(i.item_total) for i in items), Decimal("0.00"))
    return CartData(items=items, total=total)


@router.get("", response_model=ApiEnvelope)
def get_cart(session: SessionDep, current_user: CurrentUser) -> ApiEnvelope:
    """
    获取购物车

    请求路径: GET /api/v1/cart
    """
    return ApiEnvelope(data=_cart_data(session, current_user.id))


@router.post("", response_model=ApiEnvelope)
def upsert_item(session: SessionDep, current_user: CurrentUser, body: CartItemUpsertRequest) -> ApiEnvelope:
    """
    加入购物车或修改数量（数量为最终值，不是增量）

    请求路径: POST /api/v1/cart
    """
    crud.upsert_cart_item(
        session=session, user_id=current_user.id, product_id=body.product_id, quantity=body.quantity
    )
    return ApiEnvelope(data=_cart_data(session, current_user.id))


@router.delete("/{product_id}", response_model=ApiEnvelope)
def remove_item(session: SessionDep, current_user: CurrentUser, product_id: int) -> ApiEnvelope:
    """
    从购物车删除商品（不存在时也视为成功）

    请求路径: DELETE /api/v1/cart/{product_id}
    """
    crud.remove_cart_item(session=session, user_id=current_user.id, product_id=product_id)
    return ApiEnvelope(data=_cart_data(session, current_user.id))


@router.post("/clear", response_model=ApiEnvelope)
def clear_cart(session: SessionDep, current_user: CurrentUser) -> ApiEnvelope:
    """
    清空购物车

    请求路径: POST /api/v1/cart/clear
    """
    crud.clear_cart(session=session, user_id=current_user.id)
    return ApiEnvelope(data=Message(message="Cart cleared"))
