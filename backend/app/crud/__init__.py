"""CRUD 操作模块"""
from .cart import cart_total, get_product
from .cart import clear as clear_cart
from .cart import list_items as list_cart_items
from .cart import remove_item as remove_cart_item
from .cart import upsert_item as upsert_cart_item
from .order import (
    get_by_id as get_order,
)
from .order import (
    get_by_payment_intent as get_order_by_payment_intent,
)
from .order import (
    get_for_user as get_order_for_user,
)
from .order import (
    list_items as list_order_items,
)
from .order import (
    list_orders,
    list_stale_pending,
)
from .user import authenticate as authenticate_user
from .user import create as create_user
from .user import get_by_email as get_user_by_email

__all__ = [
    "cart_total",
    "get_product",
    "clear_cart",
    "list_cart_items",
    "remove_cart_item",
    "upsert_cart_item",
    "get_order",
    "get_order_by_payment_intent",
    "get_order_for_user",
    "list_order_items",
    "list_orders",
    "list_stale_pending",
    "authenticate_user",
    "create_user",
    "get_user_by_email",
]
