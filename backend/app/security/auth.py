"""
认证与授权模块
JWT Bearer 令牌、bcrypt 密码哈希、基于角色的权限检查，
以及所有中心级接口依赖的租户上下文
"""
import bcrypt
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, UTC
from typing import Optional
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.models.ontology import User, UserRole
from app.security.permissions import has_permission
from app.services.errors import AuthorizationError

logger = logging.getLogger(__name__)

CENTER_HEADER = "X-Center-Id"

security = HTTPBearer()


def get_password_hash(password: str) -> str:
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))


def create_access_token(user_id: int, role: UserRole, center_id: Optional[int] = None) -> str:
    expire = datetime.now(UTC) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = {
        "sub": str(user_id),
        "role": role.value if isinstance(role, UserRole) else str(role),
        "exp": expire,
    }
    if center_id is not None:
        to_encode["center_id"] = center_id
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials"
        )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    payload = decode_token(credentials.credentials)

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials"
        )

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account disabled")
    return user


@dataclass(frozen=True)
class TenantContext:
    """已认证用户及本次请求作用的检验中心"""
    user: User
    center_id: int

    @property
    def user_id(self) -> int:
        return self.user.id

    @property
    def role(self) -> UserRole:
        return self.user.role

    @property
    def is_staff(self) -> bool:
        return self.user.role != UserRole.CLIENT


def resolve_center_id(user: User, header_value: Optional[str]) -> int:
    """
    解析请求作用的中心：中心用户只能操作本中心，SUPER_ADMIN 通过
    X-Center-Id 请求头指定

    Raises:
        AuthorizationError: 缺少中心，或请求头指向其他租户
    """
    requested = None
    if header_value:
        try:
            requested = int(header_value)
        except ValueError:
            raise AuthorizationError(f"Invalid {CENTER_HEADER} header")

    if user.role == UserRole.SUPER_ADMIN:
        if requested is None:
            raise AuthorizationError(f"{CENTER_HEADER} header is required for this endpoint")
        return requested

    if user.center_id is None:
        raise AuthorizationError("User is not attached to a center")
    if requested is not None and requested != user.center_id:
        raise AuthorizationError("Access to another center is not allowed")
    return user.center_id


def require_permission(*permission_codes: str):
    """
    权限检查依赖，满足任一权限码即可
    返回本次请求的 TenantContext
    """
    async def permission_checker(
        request: Request,
        current_user: User = Depends(get_current_user),
    ) -> TenantContext:
        if not any(has_permission(current_user.role, code) for code in permission_codes):
            logger.warning(
                f"User {current_user.id} ({current_user.role.value}) denied {', '.join(permission_codes)}"
            )
            raise AuthorizationError(f"Missing permission: {', '.join(permission_codes)}")
        center_id = resolve_center_id(current_user, request.headers.get(CENTER_HEADER))
        return TenantContext(user=current_user, center_id=center_id)
    return permission_checker
