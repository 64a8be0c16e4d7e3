"""
支付路由模块

- 为当前购物车创建支付意图
"""
from __future__ import annotations

from fastapi import APIRouter

from app.api.deps import CurrentUser, GatewayDep, SessionDep
from app.api.schemas import ApiEnvelope, PaymentIntentCreateRequest
from app.core.config import settings
from app.services.checkout_service import CheckoutService

router = APIRouter(prefix="/payment", tags=["payment"])


@router.post("/create-payment-intent", response_model=ApiEnvelope)
def create_payment_intent(
    session: SessionDep,
    gateway: GatewayDep,
    current_user: CurrentUser,
    body: PaymentIntentCreateRequest,
) -> ApiEnvelope:
    """
    创建支付意图

    金额由服务端按购物车重算，客户端传入的 amount 只做核对。

    请求路径: POST /api/v1/payment/create-payment-intent

    响应示例：
        {
            "code": 0,
            "message": "success",
            "data": {
                "client_secret": "pi_123_secret_abc",
                "payment_intent_id": "pi_123",
                "amount": "1000.00",
                "currency": "inr"
            }
        }
    """
    data = CheckoutService(session, gateway).create_intent(
        current_user, amount=body.amount, currency=body.currency or settings.DEFAULT_CURRENCY
    )
    return ApiEnvelope(data=data)
