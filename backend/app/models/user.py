"""
用户模型模块

定义用户相关的数据库模型。
"""
from datetime import datetime

from sqlalchemy import BigInteger, Column, DateTime, String
from sqlmodel import Field, SQLModel

from app.core.snowflake import generate_id

from .base import utc_now


class User(SQLModel, table=True):
    """
    用户模型

    存储买家和后台管理员账号，使用邮箱 + 密码登录。
    is_superuser 为 True 的用户可以访问后台订单接口。

    字段说明：
    - id: 主键，使用 Snowflake 算法生成的分布式唯一 ID
    - email: 登录邮箱（唯一且建立索引）
    - full_name: 姓名（可选）
    - hashed_password: bcrypt 密码哈希
    - is_active: 是否启用
    - is_superuser: 是否为后台管理员
    - created_at: 创建时间（自动设置）
    - updated_at: 更新时间（自动设置）
    """
    __tablename__ = "users"
    id: int = Field(
        default_factory=generate_id,
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False),
    )
    email: str = Field(
        max_length=255,
        sa_column=Column(String(255), unique=True, index=True, nullable=False),
    )
    full_name: str | None = Field(default=None, max_length=255)
    hashed_password: str = Field(max_length=255)

    is_active: bool = Field(default=True)
    is_superuser: bool = Field(default=False)

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
