"""
定时任务逻辑

支付巡检：webhook 可能丢失或被网关放弃重投，订单就会一直停在 pending。
定期挑出创建已久仍为 pending 的订单，向网关查询支付意图的真实状态，
再通过对账服务走同一套条件更新（副作用同样只会执行一次）。
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import redis
from sqlalchemy import Engine
from sqlmodel import Session

from app import crud
from app.api.errors import AppError
from app.core.config import settings
from app.core.redis import acquire_lock, get_redis, release_lock
from app.integrations.stripe_gateway import StripeGateway
from app.services.webhook_service import apply_payment_failed, apply_payment_succeeded

logger = logging.getLogger(__name__)

SWEEP_LOCK_KEY = "payments:sweep_pending:lock"
SWEEP_LOCK_TTL_SECONDS = 60 * 10

# 网关侧已经不可能再成功的状态
GATEWAY_FAILED_STATUSES = frozenset({"canceled", "requires_payment_method"})


@dataclass
class SweepResult:
    checked: int = 0
    succeeded: int = 0
    failed: int = 0
    errors: int = 0


def sweep_pending_payments(
    engine: Engine,
    gateway: StripeGateway,
    *,
    redis_client: redis.Redis | None = None,
    now: datetime | None = None,
) -> SweepResult | None:
    """
    巡检长时间 pending 的订单

    Returns:
        巡检结果；其他实例正在巡检时返回 None
    """
    now = now or datetime.now(timezone.utc)
    created_before = now - timedelta(minutes=settings.PAYMENT_SWEEP_MIN_AGE_MINUTES)

    redis_client = redis_client or get_redis()
    lock_value = str(uuid4())
    if not acquire_lock(redis_client, SWEEP_LOCK_KEY, lock_value, expire_seconds=SWEEP_LOCK_TTL_SECONDS):
        logger.info("Payment sweep already running, skip this run.")
        return None

    result = SweepResult()
    try:
        with Session(engine) as session:
            orders = crud.list_stale_pending(
                session=session,
                created_before=created_before,
                limit=settings.PAYMENT_SWEEP_BATCH_SIZE,
            )
            if not orders:
                logger.info("No stale pending orders found.")
                return result

            for order in orders:
                intent_id = order.payment_intent_id
                if not intent_id:
                    continue
                result.checked += 1
                try:
                    status = gateway.retrieve_intent(intent_id).status
                    if status == "succeeded":
                        if apply_payment_succeeded(session, intent_id).changed:
                            result.succeeded += 1
                    elif status in GATEWAY_FAILED_STATUSES:
                        if apply_payment_failed(session, intent_id).changed:
                            result.failed += 1
                except AppError as exc:
                    # 网关暂不可用或订单已被删除，下一轮再看
                    session.rollback()
                    result.errors += 1
                    logger.warning("Sweep skipped order %s (intent %s): %s", order.id, intent_id, exc.message)

            logger.info(
                "Payment sweep done: checked=%d succeeded=%d failed=%d errors=%d",
                result.checked,
                result.succeeded,
                result.failed,
                result.errors,
            )
    finally:
        release_lock(redis_client, SWEEP_LOCK_KEY, lock_value)
    return result
