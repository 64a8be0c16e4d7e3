"""
模型共用的工具函数

- utc_now: 所有时间字段统一存 UTC（带时区）
- to_money: 金额统一保留两位小数（四舍五入），订单总额、购物车总额都经过这里
"""
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from sqlmodel import SQLModel

CENT = Decimal("0.01")


def utc_now() -> datetime:
    """当前 UTC 时间（带时区）"""
    return datetime.now(timezone.utc)


def to_money(value: Decimal | int | str) -> Decimal:
    """把金额规范成两位小数，如 Decimal("12.5") -> Decimal("12.50")"""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


__all__ = ["SQLModel", "CENT", "to_money", "utc_now"]
