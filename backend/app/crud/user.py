"""用户 CRUD 操作"""
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.api.errors import email_already_registered
from app.core.security import get_password_hash, verify_password
from app.models import User


def get_by_email(*, session: Session, email: str) -> User | None:
    """根据邮箱查询用户（不区分大小写）"""
    statement = select(User).where(User.email == email.lower())
    return session.exec(statement).first()


def create(*, session: Session, email: str, password: str, full_name: str | None = None) -> User:
    """注册新用户，邮箱重复时抛出 400"""
    if get_by_email(session=session, email=email):
        raise email_already_registered()
    user = User(
        email=email.lower(),
        full_name=full_name,
        hashed_password=get_password_hash(password),
    )
    session.add(user)
    try:
        session.commit()
    except IntegrityError:
        # 并发注册同一邮箱，唯一索引兜底
        session.rollback()
        raise email_already_registered()
    session.refresh(user)
    return user


def authenticate(*, session: Session, email: str, password: str) -> User | None:
    """校验邮箱和密码，失败返回 None"""
    user = get_by_email(session=session, email=email)
    if not user or not user.is_active:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user
