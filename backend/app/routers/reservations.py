"""
预约管理路由
"""
from typing import List, Optional
from datetime import date
from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.ontology import InspectionResult, ReservationStatus, UserRole
from app.models.schemas import (
    AssignEmployee, DayScheduleResponse, MessageResponse, Page, QuickReservationCreate,
    ReservationCreate, ReservationResponse, ReservationResultUpdate, ReservationUpdate,
    SlotResponse, page_of,
)
from app.security import permissions as perm
from app.security.auth import TenantContext, require_permission
from app.services.lifecycle_service import LifecycleService
from app.services.outbox import OutboxDispatcher, get_event_dispatcher
from app.services.reservation_service import ReservationService

router = APIRouter(prefix="/reservations", tags=["Reservations"])


@router.get("", response_model=Page[ReservationResponse])
def list_reservations(
    date_from: Optional[date] = Query(None, alias="dateFrom"),
    date_to: Optional[date] = Query(None, alias="dateTo"),
    status: Optional[ReservationStatus] = None,
    result: Optional[InspectionResult] = None,
    client_id: Optional[int] = Query(None, alias="clientId"),
    employee_id: Optional[int] = Query(None, alias="employeeId"),
    category_id: Optional[int] = Query(None, alias="categoryId"),
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=10, le=100),
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.RESERVATION_READ)),
):
    items, total = ReservationService(db).get_reservations(
        ctx.center_id, date_from=date_from, date_to=date_to, status=status, result=result,
        client_id=client_id, employee_id=employee_id, category_id=category_id,
        search=search, page=page, limit=limit,
    )
    return page_of(ReservationResponse, items, total, page, limit)


@router.get("/day/{day}", response_model=DayScheduleResponse)
def get_day_schedule(
    day: date,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.RESERVATION_READ)),
):
    """单日预约，含节假日/休息标记"""
    schedule = ReservationService(db).get_day_schedule(ctx.center_id, day)
    schedule["reservations"] = [ReservationResponse.model_validate(r) for r in schedule["reservations"]]
    return schedule


@router.get("/available-slots/{day}", response_model=List[SlotResponse])
def get_available_slots(
    day: date,
    category_id: Optional[int] = Query(None, alias="categoryId"),
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.SLOT_READ)),
):
    return ReservationService(db).get_available_slots(ctx.center_id, day, category_id)


@router.get("/{reservation_id}", response_model=ReservationResponse)
def get_reservation(
    reservation_id: int,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.RESERVATION_READ)),
):
    return ReservationService(db).get_reservation(ctx.center_id, reservation_id)


@router.post("", response_model=ReservationResponse, status_code=201)
def create_reservation(
    data: ReservationCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.RESERVATION_WRITE, perm.RESERVATION_BOOK)),
    dispatcher: OutboxDispatcher = Depends(get_event_dispatcher),
):
    """创建预约：员工创建为 CONFIRMED，客户只能为自己预约且为 PENDING"""
    service = ReservationService(db)
    if ctx.role == UserRole.CLIENT:
        reservation = service.create_for_client(ctx.center_id, data, ctx.user)
    else:
        reservation = service.create_reservation(ctx.center_id, data, ctx.user)
    background_tasks.add_task(dispatcher.dispatch_pending)
    return reservation


@router.post("/quick", response_model=ReservationResponse, status_code=201)
def quick_reservation(
    data: QuickReservationCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.RESERVATION_WRITE)),
    dispatcher: OutboxDispatcher = Depends(get_event_dispatcher),
):
    """快速预约：现场创建客户和车辆"""
    reservation = ReservationService(db).quick_reservation(ctx.center_id, data, ctx.user)
    background_tasks.add_task(dispatcher.dispatch_pending)
    return reservation


@router.patch("/{reservation_id}", response_model=ReservationResponse)
def update_reservation(
    reservation_id: int,
    data: ReservationUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.RESERVATION_WRITE)),
    dispatcher: OutboxDispatcher = Depends(get_event_dispatcher),
):
    reservation = ReservationService(db).update_reservation(ctx.center_id, reservation_id, data, ctx.user)
    background_tasks.add_task(dispatcher.dispatch_pending)
    return reservation


@router.patch("/{reservation_id}/result", response_model=ReservationResponse)
def update_result(
    reservation_id: int,
    data: ReservationResultUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.RESERVATION_WRITE)),
    dispatcher: OutboxDispatcher = Depends(get_event_dispatcher),
):
    """记录检验结果并完成预约"""
    reservation = LifecycleService(db).update_result(ctx.center_id, reservation_id, data)
    background_tasks.add_task(dispatcher.dispatch_pending)
    return reservation


@router.patch("/{reservation_id}/assign", response_model=ReservationResponse)
def assign_employee(
    reservation_id: int,
    data: AssignEmployee,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.RESERVATION_WRITE)),
):
    return ReservationService(db).assign_employee(ctx.center_id, reservation_id, data.employee_id)


@router.delete("/{reservation_id}", response_model=ReservationResponse)
def cancel_reservation(
    reservation_id: int,
    background_tasks: BackgroundTasks,
    reason: Optional[str] = None,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.RESERVATION_CANCEL)),
    dispatcher: OutboxDispatcher = Depends(get_event_dispatcher),
):
    """取消预约（记录保留，状态为 CANCELLED）"""
    reservation = LifecycleService(db).cancel(ctx.center_id, reservation_id, reason)
    background_tasks.add_task(dispatcher.dispatch_pending)
    return reservation


@router.delete("/{reservation_id}/remove", response_model=MessageResponse)
def remove_reservation(
    reservation_id: int,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_permission(perm.RESERVATION_DELETE)),
):
    """软删除预约（仅管理员）"""
    ReservationService(db).remove_reservation(ctx.center_id, reservation_id)
    return {"message": "Reservation removed"}
