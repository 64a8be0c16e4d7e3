"""
应用启动前检查脚本

在应用启动前等待数据库和 Redis 可用。
主要用于 Docker Compose 环境：依赖的容器可能还在初始化，
通过重试避免 API / worker 启动即失败。

执行流程：
1. 不断重试连接数据库和 Redis，直到成功或超时
2. 成功后继续执行数据库迁移（alembic upgrade head）和初始数据（app.initial_data）
"""
import logging  # 日志记录

from redis import Redis
from sqlalchemy import Engine  # SQLAlchemy 引擎类型
from sqlmodel import Session, select  # SQLModel 会话和查询
from tenacity import (  # 重试库，用于实现重试机制
    after_log,  # 重试后的日志记录
    before_log,  # 重试前的日志记录
    retry,  # 重试装饰器
    stop_after_attempt,  # 停止条件：达到最大尝试次数
    wait_fixed,  # 等待策略：固定间隔
)

from app.core.db import create_db_engine
from app.core.redis import get_redis

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

max_tries = 60 * 5  # 最大尝试次数：300 次（5 分钟，每秒一次）
wait_seconds = 1  # 每次重试间隔：1 秒


@retry(
    stop=stop_after_attempt(max_tries),
    wait=wait_fixed(wait_seconds),
    before=before_log(logger, logging.INFO),
    after=after_log(logger, logging.WARN),
)
def init(db_engine: Engine, redis_client: Redis) -> None:
    """
    检查数据库和 Redis 是否可用

    失败时抛出异常，由 tenacity 重试，最多 5 分钟。
    """
    try:
        with Session(db_engine) as session:
            session.exec(select(1))
        redis_client.ping()
    except Exception as e:
        logger.error(e)
        raise e


def main() -> None:
    logger.info("Initializing service")
    engine = create_db_engine()
    try:
        init(engine, get_redis())
    finally:
        engine.dispose()
    logger.info("Service finished initializing")


if __name__ == "__main__":  # pragma: no cover
    main()
