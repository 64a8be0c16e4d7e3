"""
认证路由模块

处理注册和登录相关的 API 端点。
使用邮箱 + 密码登录，成功后返回 JWT token。
"""
from __future__ import annotations

from datetime import timedelta  # 时间间隔

from fastapi import APIRouter  # FastAPI 路由器

from app import crud  # 数据库操作
from app.api.deps import SessionDep  # 数据库会话依赖
from app.api.errors import invalid_credentials
from app.api.schemas import ApiEnvelope, AuthLoginData, LoginRequest, RegisterRequest, UserProfile
from app.core import security  # 安全模块（JWT）
from app.core.config import settings
from app.models import User

# 创建认证路由，所有路径都会添加 /auth 前缀
router = APIRouter(prefix="/auth", tags=["auth"])


def _login_data(user: User) -> AuthLoginData:
    """为用户签发 token 并构建登录响应"""
    access_token_expires = timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS)
    token = security.create_access_token(user.id, expires_delta=access_token_expires)
    profile = UserProfile(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        is_superuser=user.is_superuser,
    )
    return AuthLoginData(
        access_token=token,
        expires_in=int(access_token_expires.total_seconds()),
        user=profile,
    )


@router.post("/register", response_model=ApiEnvelope)
def register(session: SessionDep, body: RegisterRequest) -> ApiEnvelope:
    """
    用户注册接口

    注册成功后直接返回 token（无需再调用登录）。

    请求路径: POST /api/v1/auth/register
    """
    user = crud.create_user(
        session=session, email=str(body.email), password=body.password, full_name=body.full_name
    )
    return ApiEnvelope(data=_login_data(user))


@router.post("/login", response_model=ApiEnvelope)
def login(session: SessionDep, body: LoginRequest) -> ApiEnvelope:
    """
    用户登录接口

    请求路径: POST /api/v1/auth/login

    响应示例：
        {
            "code": 0,
            "message": "success",
            "data": {
                "access_token": "eyJ0eXAiOiJKV1QiLCJhbGc...",
                "token_type": "bearer",
                "expires_in": 604800,
                "user": {"id": 123456789, "email": "buyer@example.com", "full_name": null, "is_superuser": false}
            }
        }
    """
    user = crud.authenticate_user(session=session, email=str(body.email), password=body.password)
    if not user:
        raise invalid_credentials()
    return ApiEnvelope(data=_login_data(user))
