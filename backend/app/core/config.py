"""
应用配置

所有配置都来自环境变量（或项目根目录的 .env），由 pydantic-settings 做类型校验。
API 进程、邮件 worker、巡检调度器共用同一个 settings 实例。

分组：
- 基础：API 前缀、JWT、CORS、Sentry、Snowflake 节点
- 存储：PostgreSQL、Redis
- 支付：Stripe 密钥、webhook 签名、待支付订单巡检
- 邮件：SMTP（未配置时确认邮件直接跳过）
"""
import secrets
import warnings
from typing import Annotated, Any, Literal

from pydantic import (
    AnyUrl,
    BeforeValidator,
    EmailStr,
    HttpUrl,
    PostgresDsn,
    computed_field,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing_extensions import Self


def parse_cors(v: Any) -> list[str] | str:
    """CORS 源既可以写成逗号分隔的字符串，也可以写成 JSON 列表"""
    if isinstance(v, str) and not v.startswith("["):
        return [i.strip() for i in v.split(",") if i.strip()]
    elif isinstance(v, list | str):
        return v
    raise ValueError(v)


class Settings(BaseSettings):
    """运行配置（环境变量 > .env > 默认值）"""
    model_config = SettingsConfigDict(
        # backend/ 的上一级目录
        env_file="../.env",
        env_ignore_empty=True,
        extra="ignore",
    )
    API_V1_STR: str = "/api/v1"
    SECRET_KEY: str = secrets.token_urlsafe(32)  # JWT 签名密钥
    ACCESS_TOKEN_EXPIRE_DAYS: int = 7
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"

    BACKEND_CORS_ORIGINS: Annotated[
        list[AnyUrl] | str, BeforeValidator(parse_cors)
    ] = []

    @computed_field  # type: ignore[prop-decorator]
    @property
    def all_cors_origins(self) -> list[str]:
        return [str(origin).rstrip("/") for origin in self.BACKEND_CORS_ORIGINS]

    PROJECT_NAME: str
    SENTRY_DSN: HttpUrl | None = None

    # Snowflake
    SNOWFLAKE_NODE_ID: int = 0

    POSTGRES_SERVER: str
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = ""
    DB_POOL_TIMEOUT_SECONDS: int = 10  # 从连接池获取连接的超时时间（秒）

    @computed_field  # type: ignore[prop-decorator]
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> PostgresDsn:
        return PostgresDsn.build(
            scheme="postgresql+psycopg",
            username=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD,
            host=self.POSTGRES_SERVER,
            port=self.POSTGRES_PORT,
            path=self.POSTGRES_DB,
        )

    # 首个管理员账号（由 initial_data.py 创建，替代硬编码的后台口令）
    FIRST_SUPERUSER: EmailStr = "admin@example.com"
    FIRST_SUPERUSER_PASSWORD: str = "changethis"

    # SMTP 邮件服务器配置（用于发送订单确认邮件）
    SMTP_TLS: bool = True  # 是否使用 TLS
    SMTP_SSL: bool = False  # 是否使用 SSL
    SMTP_PORT: int = 587  # SMTP 端口
    SMTP_HOST: str | None = None  # SMTP 服务器地址
    SMTP_USER: str | None = None  # SMTP 用户名
    SMTP_PASSWORD: str | None = None  # SMTP 密码
    SMTP_TIMEOUT_SECONDS: int = 10  # SMTP 连接超时（秒）
    EMAILS_FROM_EMAIL: str | None = None  # 发件人邮箱
    EMAILS_FROM_NAME: str | None = None  # 发件人名称

    @computed_field  # type: ignore[prop-decorator]
    @property
    def emails_enabled(self) -> bool:
        """是否已配置发信所需的 SMTP 主机和发件人"""
        return bool(self.SMTP_HOST and self.EMAILS_FROM_EMAIL)

    # Redis 配置（邮件队列、定时任务分布式锁）
    REDIS_HOST: str = "localhost"  # Redis 服务器地址
    REDIS_PORT: int = 6379  # Redis 端口
    REDIS_DB: int = 0  # Redis 数据库编号（0-15）
    REDIS_PASSWORD: str | None = None  # Redis 密码（可选）

    # Stripe 支付网关配置
    PAYMENT_GATEWAY_MOCK: bool = True  # 是否使用模拟模式（本地开发时）
    STRIPE_SECRET_KEY: str | None = None  # Stripe API 密钥
    STRIPE_WEBHOOK_SECRET: str | None = None  # Webhook 签名密钥（whsec_...）
    STRIPE_TIMEOUT_SECONDS: int = 10  # 调用 Stripe API 的超时时间（秒）
    STRIPE_WEBHOOK_TOLERANCE_SECONDS: int = 300  # Webhook 时间戳允许的偏差（秒）
    DEFAULT_CURRENCY: str = "inr"  # 默认币种

    # 待支付订单巡检（补偿丢失的 webhook）
    PAYMENT_SWEEP_INTERVAL_MINUTES: int = 10  # 巡检间隔（分钟）
    PAYMENT_SWEEP_MIN_AGE_MINUTES: int = 30  # 订单创建多久后仍为 pending 才巡检（分钟）
    PAYMENT_SWEEP_BATCH_SIZE: int = 100  # 每次巡检的最大订单数

    def _check_default_secret(self, var_name: str, value: str | None) -> None:
        # 本地环境只警告，其余环境拒绝启动
        if value == "changethis":
            message = (
                f'The value of {var_name} is "changethis", '
                "for security, please change it, at least for deployments."
            )
            if self.ENVIRONMENT == "local":
                warnings.warn(message, stacklevel=1)
            else:
                raise ValueError(message)

    @model_validator(mode="after")
    def _enforce_non_default_secrets(self) -> Self:
        """
        启动时校验敏感配置

        - 密钥、数据库密码、首个管理员密码不能是 "changethis"
        - 非本地环境关闭支付模拟模式时，必须配置 Stripe API 密钥和 webhook 签名密钥
        """
        self._check_default_secret("SECRET_KEY", self.SECRET_KEY)
        self._check_default_secret("POSTGRES_PASSWORD", self.POSTGRES_PASSWORD)
        self._check_default_secret("FIRST_SUPERUSER_PASSWORD", self.FIRST_SUPERUSER_PASSWORD)

        if not self.PAYMENT_GATEWAY_MOCK and self.ENVIRONMENT != "local":
            if not self.STRIPE_SECRET_KEY or not self.STRIPE_WEBHOOK_SECRET:
                raise ValueError(
                    "STRIPE_SECRET_KEY and STRIPE_WEBHOOK_SECRET are required "
                    "when PAYMENT_GATEWAY_MOCK is disabled."
                )

        return self


settings = Settings()  # type: ignore
