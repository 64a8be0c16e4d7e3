"""
API 路由聚合模块

将所有业务路由模块聚合到一个统一的 router 中。
这个 router 会被注册到主应用（app/main.py）上。

路由模块说明：
- auth: 认证相关（注册、登录）
- user: 用户相关（资料）
- cart: 购物车
- payment: 支付意图
- orders: 订单（创建、收尾、查询）
- webhooks: 支付网关回调
- admin: 后台订单管理
- utils: 工具相关（健康检查等）
"""
from fastapi import APIRouter

from app.api.routes import (
    admin,  # 后台路由
    auth,  # 认证路由
    cart,  # 购物车路由
    orders,  # 订单路由
    payment,  # 支付路由
    user,  # 用户路由
    utils,  # 工具路由
    webhooks,  # Webhook 路由
)

# 创建主 API 路由器
api_router = APIRouter()

# 每个模块的路径前缀在各自的 router 中定义
api_router.include_router(auth.router)  # /auth/*
api_router.include_router(user.router)  # /user/*
api_router.include_router(cart.router)  # /cart/*
api_router.include_router(payment.router)  # /payment/*
api_router.include_router(orders.router)  # /orders/*
api_router.include_router(webhooks.router)  # /webhooks/*
api_router.include_router(admin.router)  # /admin/*
api_router.include_router(utils.router)  # /utils/*
