"""
Snowflake ID 生成器

所有表的主键（用户、商品、购物车条目、订单、订单明细）都用 64 位 Snowflake ID，
应用侧生成，不依赖数据库自增序列，多个 API / worker 实例之间也不会冲突。

ID 结构（64 位）：
- 41 位：时间戳（毫秒，从 2024-01-01T00:00:00Z 开始）
- 10 位：节点 ID（SNOWFLAKE_NODE_ID，0-1023，每个实例必须不同）
- 12 位：同一毫秒内的序列号（0-4095）

ID 按时间递增。
"""
from __future__ import annotations

import threading
import time
from functools import lru_cache

from app.core.config import settings

EPOCH_MS = 1704067200000  # 2024-01-01T00:00:00Z
NODE_BITS = 10
SEQUENCE_BITS = 12
MAX_NODE_ID = (1 << NODE_BITS) - 1
SEQUENCE_MASK = (1 << SEQUENCE_BITS) - 1
TIMESTAMP_SHIFT = NODE_BITS + SEQUENCE_BITS
MAX_CLOCK_DRIFT_MS = 5000


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class Snowflake:
    """线程安全的 Snowflake ID 生成器"""

    def __init__(self, *, node_id: int) -> None:
        if not (0 <= node_id <= MAX_NODE_ID):
            raise ValueError(f"SNOWFLAKE_NODE_ID must be in [0, {MAX_NODE_ID}]")
        self.node_id = node_id
        self._lock = threading.Lock()
        self._last_ts = -1
        self._seq = 0

    def next_id(self) -> int:
        """
        生成下一个 ID

        时钟小幅回拨（<= 5 秒）时等待追上；回拨过大时拒绝生成，避免重复主键。

        Raises:
            RuntimeError: 时钟回拨超过 5 秒
        """
        with self._lock:
            ts = _now_ms()
            if ts < self._last_ts:
                drift = self._last_ts - ts
                if drift > MAX_CLOCK_DRIFT_MS:
                    raise RuntimeError(f"Clock moved backwards by {drift}ms, refusing to generate ids")
                ts = self._wait_until(self._last_ts)

            if ts == self._last_ts:
                self._seq = (self._seq + 1) & SEQUENCE_MASK
                if self._seq == 0:
                    # 本毫秒序列号用完
                    ts = self._wait_until(self._last_ts + 1)
            else:
                self._seq = 0

            self._last_ts = ts
            return ((ts - EPOCH_MS) << TIMESTAMP_SHIFT) | (self.node_id << SEQUENCE_BITS) | self._seq

    @staticmethod
    def _wait_until(target_ms: int) -> int:
        ts = _now_ms()
        while ts < target_ms:
            time.sleep(0.001)
            ts = _now_ms()
        return ts


@lru_cache(maxsize=1)
def get_generator() -> Snowflake:
    """进程内共享的生成器（节点 ID 来自配置）"""
    return Snowflake(node_id=settings.SNOWFLAKE_NODE_ID)


def generate_id() -> int:
    """生成主键 ID（模型的 default_factory）"""
    return get_generator().next_id()
