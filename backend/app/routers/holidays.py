"""
节假日管理路由
"""
from typing import List, Optional
from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.schemas import (
    HolidayCreate, HolidayCreatedResponse, HolidayResponse, HolidayUpdate, MessageResponse,
)
from app.security import permissions as perm
from app.security.auth import TenantContext, require_permission
from app.services.holiday_service import HolidayService
from app.services.outbox import OutboxDispatcher, get_event_dispatcher

router = APIRouter(prefix="/holidays", tags=["Holidays"])


@router.get("", response_model=List[HolidayResponse])
def list_holidays(
    year: Optional[int] = None,
    month: Optional[int] = Query(None, ge=1, le=12),
    include_inactive: bool = Query(False, alias="includeInactive"),
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.HOLIDAY_READ)),
):
    return HolidayService(db).list_holidays(ctx.center_id, year, month, include_inactive)


@router.get("/upcoming", response_model=List[HolidayResponse])
def upcoming_holidays(
    limit: int = Query(5, ge=1, le=50),
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.HOLIDAY_READ)),
):
    return HolidayService(db).upcoming(ctx.center_id, limit)


@router.get("/{holiday_id}", response_model=HolidayResponse)
def get_holiday(
    holiday_id: int,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.HOLIDAY_READ)),
):
    return HolidayService(db).get_holiday(ctx.center_id, holiday_id)


@router.post("", response_model=HolidayCreatedResponse, status_code=201)
def create_holiday(
    data: HolidayCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.HOLIDAY_WRITE)),
    dispatcher: OutboxDispatcher = Depends(get_event_dispatcher),
):
    """创建休息日，范围内的预约会被取消"""
    holiday, cancelled_ids = HolidayService(db).create_holiday(ctx.center_id, data)
    background_tasks.add_task(dispatcher.dispatch_all)
    response = HolidayCreatedResponse.model_validate(holiday)
    response.cancelled_reservations = len(cancelled_ids)
    return response


@router.post("/import/{year}", response_model=List[HolidayResponse], status_code=201)
def import_public_holidays(
    year: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.HOLIDAY_WRITE)),
    dispatcher: OutboxDispatcher = Depends(get_event_dispatcher),
):
    """导入某年的法国法定节假日"""
    holidays = HolidayService(db).import_public_holidays(ctx.center_id, year)
    background_tasks.add_task(dispatcher.dispatch_all)
    return holidays


@router.patch("/{holiday_id}", response_model=HolidayResponse)
def update_holiday(
    holiday_id: int,
    data: HolidayUpdate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.HOLIDAY_WRITE)),
):
    return HolidayService(db).update_holiday(ctx.center_id, holiday_id, data)


@router.patch("/{holiday_id}/toggle", response_model=HolidayResponse)
def toggle_holiday(
    holiday_id: int,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.HOLIDAY_WRITE)),
):
    return HolidayService(db).toggle_holiday(ctx.center_id, holiday_id)


@router.delete("/{holiday_id}", response_model=MessageResponse)
def delete_holiday(
    holiday_id: int,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.HOLIDAY_WRITE)),
):
    HolidayService(db).delete_holiday(ctx.center_id, holiday_id)
    return {"message": "Holiday deleted"}
