"""
初始数据脚本

在数据库迁移完成后写入种子数据：
- 首个管理员账户（FIRST_SUPERUSER / FIRST_SUPERUSER_PASSWORD）
- 演示商品（products 表为空时）

重复执行是安全的，已存在的数据不会重复创建。
"""
import logging  # 日志记录

from sqlmodel import Session  # 数据库会话

from app.core.db import create_db_engine, init_db

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def main() -> None:
    logger.info("Creating initial data")
    engine = create_db_engine()
    try:
        with Session(engine) as session:
            init_db(session)
    finally:
        engine.dispose()
    logger.info("Initial data created")


if __name__ == "__main__":  # pragma: no cover
    main()
