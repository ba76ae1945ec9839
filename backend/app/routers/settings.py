"""
中心设置路由
"""
from typing import Any, Dict
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.schemas import CenterResponse, CenterUpdate, OpeningHoursUpdate
from app.security import permissions as perm
from app.security.auth import TenantContext, require_permission
from app.services.settings_service import SettingsService

router = APIRouter(prefix="/settings", tags=["Settings"])


@router.get("/center", response_model=CenterResponse)
def get_center(
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.SETTINGS_READ)),
):
    return SettingsService(db).get_center(ctx.center_id)


@router.patch("/center", response_model=CenterResponse)
def update_center(
    data: CenterUpdate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.SETTINGS_WRITE)),
):
    return SettingsService(db).update_center(ctx.center_id, data)


@router.get("/opening-hours", response_model=Dict[str, Any])
def get_opening_hours(
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.SETTINGS_READ)),
):
    return SettingsService(db).get_opening_hours(ctx.center_id)


@router.put("/opening-hours", response_model=Dict[str, Any])
def update_opening_hours(
    data: OpeningHoursUpdate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.SETTINGS_WRITE)),
):
    """按星期返回 {open, close, closed}"""
    return SettingsService(db).update_opening_hours(ctx.center_id, data)
