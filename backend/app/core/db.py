"""
数据库连接模块

管理数据库引擎的创建和初始数据。
引擎由调用方显式创建并负责释放：
- API 进程：在 app.main 的 lifespan 中创建，挂到 app.state.engine，关闭时 dispose
- worker / 脚本：在 main() 中创建，退出前 dispose

重要提示：
- 数据库表结构通过 Alembic 迁移管理，不要在这里创建表
- 确保在使用前导入所有模型（app.models），否则关系可能无法正确初始化
"""
import logging
from decimal import Decimal

from sqlalchemy import Engine
from sqlmodel import Session, create_engine, select  # SQLModel 的数据库工具

from app.core import security
from app.core.config import settings
from app.models import Product, User

logger = logging.getLogger(__name__)

# 演示商品（仅在 products 表为空时写入）
SEED_PRODUCTS: list[dict[str, object]] = [
    {"name": "Cold Brew Coffee Beans", "description": "250g, medium roast", "price": Decimal("500.00")},
    {"name": "Ceramic Pour-Over Set", "description": "Dripper, server and 40 filters", "price": Decimal("1450.00")},
    {"name": "Insulated Steel Tumbler", "description": "450ml, keeps drinks hot for 6h", "price": Decimal("799.00")},
]


def create_db_engine(url: str | None = None) -> Engine:
    """
    创建数据库引擎（连接池）

    create_engine 只创建连接池，不会立即连接数据库。
    pool_pre_ping 在取出连接前检测连接是否存活；
    pool_timeout 限制等待空闲连接的时间，避免请求无限阻塞。

    Args:
        url: 数据库连接串，默认使用配置中的 PostgreSQL 地址

    Returns:
        Engine: SQLAlchemy 引擎
    """
    return create_engine(
        url or str(settings.SQLALCHEMY_DATABASE_URI),
        pool_pre_ping=True,
        pool_timeout=settings.DB_POOL_TIMEOUT_SECONDS,
    )


def init_db(session: Session) -> None:
    """
    初始化数据库种子数据

    注意：数据库表应该通过 Alembic 迁移创建，不要在这里创建表。
    这里只写入：
    1. 首个管理员账号（来自配置 FIRST_SUPERUSER / FIRST_SUPERUSER_PASSWORD）
    2. 演示商品（products 表为空时）

    Args:
        session: 数据库会话
    """
    user = session.exec(select(User).where(User.email == settings.FIRST_SUPERUSER)).first()
    if not user:
        user = User(
            email=settings.FIRST_SUPERUSER,
            full_name="Administrator",
            hashed_password=security.get_password_hash(settings.FIRST_SUPERUSER_PASSWORD),
            is_superuser=True,
        )
        session.add(user)
        logger.info("Created first superuser %s", settings.FIRST_SUPERUSER)

    if session.exec(select(Product)).first() is None:
        for row in SEED_PRODUCTS:
            session.add(Product(**row))
        logger.info("Seeded %d demo products", len(SEED_PRODUCTS))

    session.commit()
