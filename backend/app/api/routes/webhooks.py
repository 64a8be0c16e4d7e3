"""
支付网关 Webhook 路由

验签需要原始请求体，所以这里直接读取 request.body()，不经过 JSON 解析；
数据库操作放到线程池里执行，不阻塞事件循环。

返回码约定（网关据此决定是否重投）：
- 200: 已处理 / 重复投递 / 未处理的事件类型
- 400: 签名无法验证
- 404: 支付意图还没有对应订单（稍后重投）
- 500: 内部错误（稍后重投）
"""
from __future__ import annotations

from fastapi import APIRouter, Header, Request
from fastapi.concurrency import run_in_threadpool

from app.api.deps import SessionDep
from app.api.schemas import ApiEnvelope
from app.core.config import settings
from app.services.webhook_service import WebhookService

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/stripe", response_model=ApiEnvelope)
async def stripe_webhook(
    request: Request,
    session: SessionDep,
    stripe_signature: str | None = Header(default=None),
) -> ApiEnvelope:
    """
    Stripe webhook 入口

    请求路径: POST /api/v1/webhooks/stripe
    """
    raw_body = await request.body()
    service = WebhookService(
        session,
        secret=settings.STRIPE_WEBHOOK_SECRET,
        tolerance=settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS,
    )
    ack = await run_in_threadpool(service.handle, raw_body, stripe_signature)
    return ApiEnvelope(data=ack)
