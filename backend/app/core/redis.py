"""
Redis 连接模块

管理 Redis 客户端连接，使用单例模式确保全局只有一个连接实例。
Redis 用于：
- 消息队列（Redis Streams）：订单确认邮件
- 分布式锁：保证定时巡检任务同一时刻只有一个实例在跑

使用 @lru_cache 装饰器实现单例模式，避免重复创建连接。
"""
from __future__ import annotations

from functools import lru_cache  # 缓存装饰器，用于实现单例模式

import redis  # Redis 客户端库

from app.core.config import settings

# 释放锁的 Lua 脚本：只有锁的值匹配时才删除，避免误删别人持有的锁
_RELEASE_LOCK_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


@lru_cache(maxsize=1)
def get_redis() -> redis.Redis:
    """
    获取 Redis 客户端实例（单例模式）

    使用 @lru_cache 装饰器确保全局只有一个 Redis 连接实例。
    第一次调用时创建连接，后续调用返回缓存的实例。

    Returns:
        Redis 客户端实例

    配置说明：
    - decode_responses=True: 自动将字节响应解码为字符串
    - socket_timeout: 单次命令的超时时间，避免 Redis 不可用时请求被挂起
    """
    return redis.Redis(
        host=settings.REDIS_HOST,  # Redis 服务器地址
        port=settings.REDIS_PORT,  # Redis 端口
        db=settings.REDIS_DB,  # Redis 数据库编号（0-15）
        password=settings.REDIS_PASSWORD,  # Redis 密码（可选）
        decode_responses=True,  # 自动解码响应为字符串（而不是字节）
        socket_timeout=5,
        socket_connect_timeout=5,
    )


def acquire_lock(client: redis.Redis, lock_key: str, lock_value: str, *, expire_seconds: int) -> bool:
    """
    获取分布式锁（SET NX EX）

    Args:
        client: Redis 客户端
        lock_key: 锁键
        lock_value: 锁值（释放时用于校验持有者）
        expire_seconds: 过期时间（秒），防止持有者崩溃后死锁

    Returns:
        是否成功获取锁
    """
    return bool(client.set(lock_key, lock_value, ex=expire_seconds, nx=True))


def release_lock(client: redis.Redis, lock_key: str, lock_value: str) -> bool:
    """
    释放分布式锁

    Args:
        client: Redis 客户端
        lock_key: 锁键
        lock_value: 锁值（必须匹配才能释放）

    Returns:
        是否成功释放
    """
    return bool(client.eval(_RELEASE_LOCK_SCRIPT, 1, lock_key, lock_value))
