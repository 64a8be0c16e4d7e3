"""
自定义异常模块

定义应用特定的异常类，用于统一的错误处理。
所有业务异常都继承自 AppError，在 main.py 中有统一的异常处理器。

异常分类（决定 HTTP 状态码和调用方是否可以重试）：
- ValidationError: 请求内容不合法（400），调用方不应自动重试
- NotFoundError: 用户/订单/商品不存在（404）
- SignatureError: Webhook 签名无法验证（400），按安全事件记录日志，绝不应用
- ConflictError: 与当前状态冲突（409）
- UpstreamError: 支付网关或数据库不可用（500），可以安全重试

下面的便捷函数为每种具体失败分配稳定的业务错误码。
"""
from __future__ import annotations


class AppError(Exception):
    """
    应用自定义异常类

    用于业务逻辑中的错误处理，包含：
    - code: 业务错误码（用于前端区分不同错误）
    - message: 错误消息（用户友好的提示）
    - status_code: HTTP 状态码（400, 404, 500 等）

    使用示例：
        raise AppError(code=400101, message="Invalid amount", status_code=400)
    """

    default_status_code = 400

    def __init__(self, *, code: int, message: str, status_code: int | None = None) -> None:
        """
        初始化异常

        Args:
            code: 业务错误码（如 404301 表示订单不存在）
            message: 错误消息
            status_code: HTTP 状态码（默认取子类的 default_status_code）
        """
        super().__init__(message)  # 调用父类构造函数
        self.code = code
        self.message = message
        self.status_code = status_code if status_code is not None else self.default_status_code


class ValidationError(AppError):
    default_status_code = 400


class NotFoundError(AppError):
    default_status_code = 404


class SignatureError(AppError):
    default_status_code = 400


class ConflictError(AppError):
    default_status_code = 409


class UpstreamError(AppError):
    default_status_code = 500


# ============================================================
# 结账 / 下单
# ============================================================


def invalid_amount(message: str = "Invalid amount") -> ValidationError:
    """购物车总额 <= 0，或客户端金额与服务端重算的总额不一致"""
    return ValidationError(code=400101, message=message)


def invalid_items(message: str = "Invalid items") -> ValidationError:
    """订单明细为空，或小计与单价 × 数量不符"""
    return ValidationError(code=400102, message=message)


def invalid_address(message: str = "Invalid shipping address") -> ValidationError:
    """收货地址缺少姓名或地址第一行"""
    return ValidationError(code=400103, message=message)


def invalid_order_status(message: str = "New orders must start in RECEIVED") -> ValidationError:
    return ValidationError(code=400104, message=message)


def email_already_registered() -> ValidationError:
    return ValidationError(code=400201, message="Email already registered")


def invalid_credentials() -> ValidationError:
    return ValidationError(code=400202, message="Incorrect email or password")


def product_not_found() -> NotFoundError:
    return NotFoundError(code=404101, message="Product not found")


def order_not_found(message: str = "Order not found") -> NotFoundError:
    return NotFoundError(code=404301, message=message)


def payment_intent_not_found() -> NotFoundError:
    """网关上不存在该支付意图"""
    return NotFoundError(code=404302, message="Payment intent not found")


def payment_intent_in_use() -> ConflictError:
    """支付意图已被其他用户的订单占用"""
    return ConflictError(code=409101, message="Payment intent already used by another order")


def payment_not_confirmed() -> ConflictError:
    """网关尚未确认支付，购物车保留以便重试"""
    return ConflictError(code=409102, message="Payment failed, please retry")


def invalid_status_transition(current: str, target: str) -> ConflictError:
    return ConflictError(
        code=409201, message=f"Illegal order status transition {current} -> {target}"
    )


def order_not_paid() -> ConflictError:
    """订单支付尚未成功，不能发货或完成"""
    return ConflictError(code=409202, message="Order has not been paid")


# ============================================================
# 支付网关 / Webhook
# ============================================================


def invalid_signature(message: str = "Invalid signature") -> SignatureError:
    return SignatureError(code=400301, message=message)


def gateway_unavailable(message: str = "Payment failed, please retry") -> UpstreamError:
    return UpstreamError(code=500101, message=message)


def order_persist_failed() -> UpstreamError:
    """下单事务失败（已整体回滚），客户端重试会命中幂等校验"""
    return UpstreamError(code=500201, message="Failed to create order, please retry")
