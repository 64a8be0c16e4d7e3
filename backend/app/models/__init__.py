"""
数据库模型定义模块

本模块使用 SQLModel 定义所有数据库表结构。

模型按功能拆分：
- base.py: 时间和金额工具
- user.py: 用户模型
- product.py: 商品、购物车模型
- order.py: 订单、订单明细模型
"""
from sqlmodel import SQLModel

from .base import to_money, utc_now
from .order import Order, OrderItem
from .product import CartItem, Product
from .user import User

__all__ = [
    "SQLModel",
    "to_money",
    "utc_now",
    "User",
    "Product",
    "CartItem",
    "Order",
    "OrderItem",
]
