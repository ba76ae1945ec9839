"""
用户服务 - 账号与登录
"""
from typing import List, Optional
import logging

from sqlalchemy.orm import Session

from app.models.ontology import User, UserRole
from app.models.schemas import UserCreate
from app.security.auth import create_access_token, get_password_hash, verify_password
from app.services.errors import AuthorizationError, ConflictError, NotFoundError

logger = logging.getLogger(__name__)

# 中心管理员可在本中心内分配的角色
ASSIGNABLE_ROLES = (UserRole.EMPLOYEE, UserRole.CLIENT)


class UserService:
    """用户服务"""

    def __init__(self, db: Session):
        self.db = db

    def authenticate(self, email: str, password: str) -> Optional[dict]:
        """
        校验登录凭据

        Returns:
            {"access_token", "token_type", "user"}，凭据错误时返回 None

        Raises:
            AuthorizationError: 账号已停用
        """
        user = self.db.query(User).filter(User.email == email.strip().lower()).first()
        if not user or not verify_password(password, user.password_hash):
            logger.info(f"Failed login for {email}")
            return None
        if not user.is_active:
            raise AuthorizationError("Account disabled")

        token = create_access_token(user.id, user.role, user.center_id)
        return {"access_token": token, "token_type": "bearer", "user": user}

    def get_users(self, center_id: int, role: Optional[UserRole] = None) -> List[User]:
        query = self.db.query(User).filter(User.center_id == center_id)
        if role:
            query = query.filter(User.role == role)
        return query.order_by(User.last_name, User.first_name).all()

    def get_user(self, center_id: int, user_id: int) -> User:
        user = self.db.query(User).filter(User.id == user_id, User.center_id == center_id).first()
        if not user:
            raise NotFoundError("User not found")
        return user

    def create_user(self, center_id: int, data: UserCreate, actor: User) -> User:
        if data.role not in ASSIGNABLE_ROLES and actor.role != UserRole.SUPER_ADMIN:
            raise AuthorizationError(f"Cannot create a {data.role.value} account")
        if data.role == UserRole.SUPER_ADMIN:
            raise AuthorizationError("SUPER_ADMIN accounts are not created through this endpoint")

        email = data.email.strip().lower()
        if self.db.query(User).filter(User.email == email).first():
            raise ConflictError("A user with this email already exists")

        user = User(
            email=email,
            password_hash=get_password_hash(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            phone=data.phone,
            role=data.role,
            center_id=center_id,
            is_active=True,
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"User {user.id} ({user.role.value}) created in center {center_id} by {actor.id}")
        return user

    def set_active(self, center_id: int, user_id: int, is_active: bool, actor: User) -> User:
        user = self.get_user(center_id, user_id)
        if user.id == actor.id and not is_active:
            raise AuthorizationError("You cannot disable your own account")
        user.is_active = is_active
        self.db.commit()
        self.db.refresh(user)
        return user
