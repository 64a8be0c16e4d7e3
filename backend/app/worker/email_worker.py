"""
订单确认邮件 Worker

从 Redis Stream `order_emails` 消费任务，渲染邮件并通过 SMTP 发送。
发信是尽力而为：单条失败记录日志后照常 ack，不会阻塞后续消息，
也不会影响订单本身的状态。

运行方式：
    python -m app.worker.email_worker
"""
from __future__ import annotations

import logging
import os
import time

import redis
from redis.exceptions import ResponseError
from sqlalchemy import Engine
from sqlmodel import Session

from app import crud
from app.core.config import settings
from app.core.db import create_db_engine
from app.core.redis import get_redis
from app.models import User
from app.services.notification_service import EMAIL_STREAM, render_order_confirmation, send_email

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("email_worker")

GROUP = "email_worker"
CONSUMER = os.environ.get("EMAIL_WORKER_CONSUMER", "c1")


def ensure_consumer_group(r: redis.Redis) -> None:
    try:
        r.xgroup_create(EMAIL_STREAM, GROUP, id="0-0", mkstream=True)
    except ResponseError as e:
        if "BUSYGROUP" not in str(e):
            raise


def handle_message(session: Session, fields: dict[str, str]) -> bool:
    """
    处理单条邮件任务

    Returns:
        是否真正发出了邮件
    """
    if fields.get("kind") != "order_confirmation":
        logger.warning("unknown email kind: %s", fields.get("kind"))
        return False

    order_id = int(fields["order_id"])
    order = crud.get_order(session=session, order_id=order_id)
    if not order:
        logger.warning("order not found for confirmation email: %s", order_id)
        return False
    user = session.get(User, order.user_id)
    if not user:
        logger.warning("user %s not found for order %s", order.user_id, order_id)
        return False

    if not settings.emails_enabled:
        logger.info("SMTP not configured, skip confirmation email for order %s", order_id)
        return False

    items = crud.list_order_items(session=session, order_id=order.id)
    subject, html_body = render_order_confirmation(order, items, user)
    send_email(to=user.email, subject=subject, html_body=html_body)
    logger.info("confirmation email sent: order=%s to=%s", order_id, user.email)
    return True


def process_messages(engine: Engine, r: redis.Redis, messages: list[tuple[str, dict[str, str]]]) -> None:
    for msg_id, fields in messages:
        try:
            with Session(engine) as session:
                handle_message(session, fields)
        except Exception as e:
            logger.exception("failed sending email for message %s: %s", msg_id, e)
        r.xack(EMAIL_STREAM, GROUP, msg_id)


def main() -> None:
    engine = create_db_engine()
    r = get_redis()
    ensure_consumer_group(r)

    logger.info("email worker started: stream=%s group=%s consumer=%s", EMAIL_STREAM, GROUP, CONSUMER)

    try:
        while True:
            try:
                resp = r.xreadgroup(
                    GROUP,
                    CONSUMER,
                    {EMAIL_STREAM: ">"},
                    count=10,
                    block=5000,
                )
                messages: list[tuple[str, dict[str, str]]] = []
                if resp:
                    for _stream, batch in resp:
                        messages.extend(batch)
                else:
                    # Reclaim messages left pending by a crashed consumer (Redis 6.2+).
                    _next, claimed, _deleted = r.xautoclaim(
                        EMAIL_STREAM,
                        GROUP,
                        CONSUMER,
                        min_idle_time=60_000,
                        start_id="0-0",
                        count=10,
                    )
                    messages.extend(claimed)

                if messages:
                    process_messages(engine, r, messages)
            except redis.RedisError as e:
                logger.exception("worker loop error: %s", e)
                time.sleep(1)
    finally:
        engine.dispose()


if __name__ == "__main__":  # pragma: no cover
    main()
