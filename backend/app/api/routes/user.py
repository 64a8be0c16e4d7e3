"""
用户路由模块

- 获取当前用户资料
"""
from __future__ import annotations

from fastapi import APIRouter

from app.api.deps import CurrentUser  # 依赖注入
from app.api.schemas import ApiEnvelope, UserProfile

router = APIRouter(prefix="/user", tags=["user"])


@router.get("/profile", response_model=ApiEnvelope)
def profile(current_user: CurrentUser) -> ApiEnvelope:
    """
    获取用户资料

    请求路径: GET /api/v1/user/profile
    """
    data = UserProfile(
        id=current_user.id,
        email=current_user.email,
        full_name=current_user.full_name,
        is_superuser=current_user.is_superuser,
    )
    return ApiEnvelope(data=data)
