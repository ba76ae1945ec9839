"""
用户账号路由
"""
from typing import List, Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.ontology import UserRole
from app.models.schemas import UserActiveUpdate, UserCreate, UserResponse
from app.security import permissions as perm
from app.security.auth import TenantContext, require_permission
from app.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("", response_model=List[UserResponse])
def list_users(
    role: Optional[UserRole] = None,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.USER_READ)),
):
    return UserService(db).get_users(ctx.center_id, role)


@router.post("", response_model=UserResponse, status_code=201)
def create_user(
    data: UserCreate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.USER_WRITE)),
):
    """在当前中心创建 EMPLOYEE 或 CLIENT 账号"""
    return UserService(db).create_user(ctx.center_id, data, ctx.user)


@router.patch("/{user_id}/active", response_model=UserResponse)
def set_user_active(
    user_id: int,
    data: UserActiveUpdate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.USER_WRITE)),
):
    return UserService(db).set_active(ctx.center_id, user_id, data.is_active, ctx.user)
