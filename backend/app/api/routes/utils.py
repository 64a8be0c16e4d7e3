"""
工具路由模块

提供系统工具类的 API 端点，如健康检查等。
"""
import logging

from fastapi import APIRouter
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from app.api.deps import SessionDep
from app.api.errors import AppError
from app.api.schemas import ApiEnvelope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/utils", tags=["utils"])


@router.get("/health-check/")
async def health_check() -> bool:
    """
    存活检查

    请求路径: GET /api/v1/utils/health-check/

    使用场景：
    - 负载均衡器健康检查
    - 容器编排系统（如 Kubernetes）的存活探针
    """
    return True


@router.get("/ready/", response_model=ApiEnvelope)
def readiness(session: SessionDep) -> ApiEnvelope:
    """
    就绪检查：确认数据库可用

    请求路径: GET /api/v1/utils/ready/
    """
    try:
        session.exec(select(1)).one()
    except SQLAlchemyError as e:
        logger.error("Readiness check failed: %s", e)
        raise AppError(code=503000, message="Database unavailable", status_code=503) from e
    return ApiEnvelope(data={"database": True})
