"""
Stripe 支付网关集成模块

封装 PaymentIntent 相关的出站 API 调用：
- 创建支付意图（payment_intents.create）
- 查询支付意图（payment_intents.retrieve）：下单时核对金额和归属，
  收尾确认和巡检补偿时读取支付状态

Webhook 的签名验证属于对账逻辑，见 app/services/webhook_service.py。

支持模拟模式（mock），用于本地开发时不需要真实 API 调用。
"""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

import stripe

from app.api.errors import gateway_unavailable, payment_intent_not_found
from app.core.config import settings

logger = logging.getLogger(__name__)

# Stripe 中不使用“分”为最小单位的币种
_ZERO_DECIMAL_CURRENCIES = frozenset(
    {"bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga", "pyg", "rwf", "ugx", "vnd", "vuv", "xaf", "xof", "xpf"}
)


@dataclass(frozen=True)
class PaymentIntentResult:
    """
    支付意图创建结果

    amount 为最小货币单位（如 INR 的 paise）。
    """
    payment_intent_id: str
    client_secret: str
    amount: int
    currency: str
    status: str


@dataclass(frozen=True)
class PaymentIntentInfo:
    """网关侧支付意图的当前状态（amount 为最小货币单位）"""
    payment_intent_id: str
    status: str
    amount: int
    currency: str
    metadata: dict[str, str] = field(default_factory=dict)


def to_minor_units(amount: Decimal, currency: str) -> int:
    """把金额换算成网关要求的最小货币单位"""
    if currency.lower() in _ZERO_DECIMAL_CURRENCIES:
        return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class StripeGateway:
    """
    Stripe PaymentIntent 客户端

    每次调用都受 STRIPE_TIMEOUT_SECONDS 限制，且不在 SDK 内部自动重试：
    重试由客户端结账流程和网关自身的 webhook 重投负责。
    """

    def __init__(
        self,
        *,
        api_key: str | None,
        timeout_seconds: int = 10,
        mock: bool = False,
    ) -> None:
        self._mock = mock
        self._client: stripe.StripeClient | None = None
        # 模拟模式下本进程创建过的支付意图
        self._mock_intents: dict[str, PaymentIntentInfo] = {}
        if not mock:
            if not api_key:
                raise ValueError("STRIPE_SECRET_KEY not configured")
            self._client = stripe.StripeClient(
                api_key,
                http_client=stripe.RequestsClient(timeout=timeout_seconds),
                max_network_retries=0,
            )
        logger.info("Stripe gateway initialized (mock=%s)", mock)

    @property
    def is_mock(self) -> bool:
        return self._mock

    def create_intent(
        self,
        *,
        amount: Decimal,
        currency: str,
        metadata: dict[str, str] | None = None,
    ) -> PaymentIntentResult:
        """
        创建支付意图

        Args:
            amount: 服务端计算的订单金额（主货币单位）
            currency: ISO 币种代码
            metadata: 附加到 PaymentIntent 上的元数据（用户 ID 等）

        Returns:
            PaymentIntentResult: 包含 client_secret 和 payment_intent_id

        Raises:
            UpstreamError: 网关调用失败
        """
        currency = currency.lower()
        minor = to_minor_units(amount, currency)

        if self._mock:
            intent_id = f"pi_mock_{secrets.token_hex(12)}"
            self._mock_intents[intent_id] = PaymentIntentInfo(
                payment_intent_id=intent_id,
                status="succeeded",
                amount=minor,
                currency=currency,
                metadata=dict(metadata or {}),
            )
            return PaymentIntentResult(
                payment_intent_id=intent_id,
                client_secret=f"{intent_id}_secret_{secrets.token_hex(12)}",
                amount=minor,
                currency=currency,
                status="requires_payment_method",
            )

        assert self._client is not None
        try:
            intent = self._client.payment_intents.create(
                params={
                    "amount": minor,
                    "currency": currency,
                    "metadata": metadata or {},
                    "automatic_payment_methods": {"enabled": True},
                }
            )
        except stripe.StripeError as e:
            logger.error("Stripe create payment intent failed: %s", e)
            raise gateway_unavailable() from e

        return PaymentIntentResult(
            payment_intent_id=intent.id,
            client_secret=intent.client_secret or "",
            amount=intent.amount,
            currency=intent.currency,
            status=intent.status,
        )

    def retrieve_intent(self, payment_intent_id: str) -> PaymentIntentInfo:
        """
        查询支付意图

        status 为 Stripe 的 PaymentIntent 状态，如 succeeded、processing、
        requires_payment_method、canceled。

        Raises:
            NotFoundError: 网关上不存在该支付意图
            UpstreamError: 网关调用失败
        """
        if self._mock:
            info = self._mock_intents.get(payment_intent_id)
            if info is None:
                raise payment_intent_not_found()
            return info

        assert self._client is not None
        try:
            intent = self._client.payment_intents.retrieve(payment_intent_id)
        except stripe.InvalidRequestError as e:
            if e.code == "resource_missing":
                logger.warning("Stripe payment intent %s does not exist", payment_intent_id)
                raise payment_intent_not_found() from e
            logger.error("Stripe retrieve payment intent %s failed: %s", payment_intent_id, e)
            raise gateway_unavailable() from e
        except stripe.StripeError as e:
            logger.error("Stripe retrieve payment intent %s failed: %s", payment_intent_id, e)
            raise gateway_unavailable() from e

        return PaymentIntentInfo(
            payment_intent_id=intent.id,
            status=intent.status,
            amount=intent.amount,
            currency=intent.currency,
            metadata={str(k): str(v) for k, v in (intent.metadata or {}).items()},
        )


def build_gateway() -> StripeGateway:
    """按当前配置创建网关实例（API 进程在 lifespan 中调用一次，worker 各自调用）"""
    return StripeGateway(
        api_key=settings.STRIPE_SECRET_KEY,
        timeout_seconds=settings.STRIPE_TIMEOUT_SECONDS,
        mock=settings.PAYMENT_GATEWAY_MOCK,
    )
