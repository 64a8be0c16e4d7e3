"""
订单通知服务

订单支付成功后发送确认邮件。请求路径里只做入队（Redis Stream `order_emails`），
真正的 SMTP 发送由 app/worker/email_worker.py 消费完成。

发信是尽力而为：入队或发送失败只记日志，绝不影响结账和 webhook 的结果。
"""
from __future__ import annotations

import html
import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr

from app.core.config import settings
from app.core.redis import get_redis
from app.models import Order, OrderItem, User

logger = logging.getLogger(__name__)

EMAIL_STREAM = "order_emails"
EMAIL_STREAM_MAXLEN = 10_000


def enqueue_order_confirmation(order: Order) -> bool:
    """
    把订单确认邮件任务放入 Redis Stream

    Args:
        order: 已支付成功的订单

    Returns:
        是否入队成功（失败已记录日志）
    """
    try:
        get_redis().xadd(
            EMAIL_STREAM,
            {"kind": "order_confirmation", "order_id": str(order.id)},
            maxlen=EMAIL_STREAM_MAXLEN,
            approximate=True,
        )
    except Exception as e:
        logger.error("Failed to enqueue confirmation email for order %s: %s", order.id, e)
        return False
    return True


def render_order_confirmation(order: Order, items: list[OrderItem], user: User) -> tuple[str, str]:
    """
    生成订单确认邮件的标题和 HTML 正文

    Returns:
        (subject, html_body)
    """
    address = order.shipping_address or {}

    def esc(key: str) -> str:
        return html.escape(str(address.get(key) or ""))

    lines = "".join(
        f"<li>{html.escape(item.product_name)} x {item.quantity} - ₹{item.item_total}</li>"
        for item in items
    )
    body = (
        "<h1>Thank you for your order!</h1>"
        f"<p>Order ID: {order.id}</p>"
        f"<p>Total: ₹{order.total}</p>"
        "<h2>Shipping Address</h2>"
        f"<p>{esc('full_name')}<br/>{esc('address_line1')}<br/>{esc('address_line2')}<br/>"
        f"{esc('city')}, {esc('state')} - {esc('postal_code')}<br/>"
        f"Phone: {esc('phone')}</p>"
        f"<h2>Items</h2><ul>{lines}</ul>"
    )
    greeting = html.escape(user.full_name or user.email)
    return "Your Order Confirmation", f"<p>Hi {greeting},</p>{body}"


def send_email(*, to: str, subject: str, html_body: str) -> None:
    """
    通过 SMTP 发送 HTML 邮件

    Raises:
        RuntimeError: SMTP 未配置
        smtplib.SMTPException / OSError: 发送失败（由调用方决定是否重试）
    """
    if not settings.emails_enabled:
        raise RuntimeError("SMTP is not configured")

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = formataddr((settings.EMAILS_FROM_NAME or "", settings.EMAILS_FROM_EMAIL or ""))
    msg["To"] = to
    msg.set_content("Please view this email in an HTML-capable client.")
    msg.add_alternative(html_body, subtype="html")

    smtp_cls = smtplib.SMTP_SSL if settings.SMTP_SSL else smtplib.SMTP
    with smtp_cls(settings.SMTP_HOST or "", settings.SMTP_PORT, timeout=settings.SMTP_TIMEOUT_SECONDS) as smtp:
        if settings.SMTP_TLS and not settings.SMTP_SSL:
            smtp.starttls()
        if settings.SMTP_USER:
            smtp.login(settings.SMTP_USER, settings.SMTP_PASSWORD or "")
        smtp.send_message(msg)
