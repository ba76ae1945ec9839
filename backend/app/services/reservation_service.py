"""
预约服务 - 预约引擎
校验并写入预约。重叠查询用于给出友好的错误提示，
同一事务中写入的时段锁才是最终防线
"""
from datetime import date, datetime, time
from typing import Any, Dict, List, Optional, Tuple
import logging

from sqlalchemy import or_, desc
from sqlalchemy.orm import Session

from app.config import settings
from app.database import transaction
from app.inspection.domain.booking_code import issue_booking_code
from app.inspection.domain.slots import MINUTES_PER_DAY, from_minutes, parse_hhmm, to_minutes
from app.models.events import EventType, ReservationCreatedData
from app.models.ontology import (
    Category, Center, Client, Reservation, ReservationStatus, InspectionResult,
    User, UserRole, Vehicle,
)
from app.models.schemas import (
    ClientCreate, QuickReservationCreate, ReservationCreate, ReservationUpdate, VehicleCreate,
)
from app.services.availability_service import AvailabilityService, center_today
from app.services.client_service import ClientService, PLACEHOLDER_EMAIL_DOMAIN
from app.services.errors import AuthorizationError, ConflictError, ValidationError
from app.services.lifecycle_service import LifecycleService, get_live_reservation
from app.services.outbox import record_event
from app.services.slot_locks import acquire_slot_locks, release_slot_locks
from app.services.vehicle_service import VehicleService, normalize_plate

logger = logging.getLogger(__name__)

STAFF_ROLES = (UserRole.CT_ADMIN, UserRole.EMPLOYEE)
RESCHEDULABLE_STATUSES = (ReservationStatus.PENDING, ReservationStatus.CONFIRMED)


def compute_end_time(start: time, duration: int) -> time:
    """开始时间 + 时长，预约不能跨越午夜"""
    end = to_minutes(start) + duration
    if end >= MINUTES_PER_DAY:
        raise ValidationError("Reservation cannot end after midnight")
    return from_minutes(end)


def parse_start_time(value: str) -> time:
    try:
        return parse_hhmm(value)
    except ValueError as e:
        raise ValidationError(str(e))


class ReservationService:
    """预约引擎"""

    def __init__(self, db: Session):
        self.db = db
        self.availability = AvailabilityService(db)
        self.lifecycle = LifecycleService(db)
        self.clients = ClientService(db)
        self.vehicles = VehicleService(db)

    # ============== 查询 ==============

    def get_reservations(
        self,
        center_id: int,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        status: Optional[ReservationStatus] = None,
        result: Optional[InspectionResult] = None,
        client_id: Optional[int] = None,
        employee_id: Optional[int] = None,
        category_id: Optional[int] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Reservation], int]:
        query = self.db.query(Reservation).filter(
            Reservation.center_id == center_id,
            Reservation.deleted_at.is_(None),
        )
        if date_from:
            query = query.filter(Reservation.date >= date_from)
        if date_to:
            query = query.filter(Reservation.date <= date_to)
        if status:
            query = query.filter(Reservation.status == status)
        if result:
            query = query.filter(Reservation.result == result)
        if client_id:
            query = query.filter(Reservation.client_id == client_id)
        if employee_id:
            query = query.filter(Reservation.employee_id == employee_id)
        if category_id:
            query = query.filter(Reservation.category_id == category_id)
        if search:
            pattern = f"%{search}%"
            query = query.join(Reservation.client).join(Reservation.vehicle).filter(or_(
                Client.first_name.ilike(pattern),
                Client.last_name.ilike(pattern),
                Vehicle.plate_number.ilike(pattern),
                Reservation.booking_code.ilike(pattern),
            ))

        total = query.count()
        items = query.order_by(desc(Reservation.date), desc(Reservation.start_time)) \
            .offset((page - 1) * limit).limit(limit).all()
        return items, total

    def get_reservation(self, center_id: int, reservation_id: int) -> Reservation:
        return get_live_reservation(self.db, center_id, reservation_id)

    def get_day_schedule(self, center_id: int, day: date) -> Dict[str, Any]:
        """当日未取消的有效预约，以及节假日/休息标记和统计"""
        center = self.availability.get_center(center_id)
        reservations = self.db.query(Reservation).filter(
            Reservation.center_id == center_id,
            Reservation.date == day,
            Reservation.status != ReservationStatus.CANCELLED,
            Reservation.deleted_at.is_(None),
        ).order_by(Reservation.start_time.asc()).all()
        holiday = self.availability.holiday_for(center_id, day)

        return {
            "date": day,
            "is_holiday": holiday is not None,
            "holiday_name": holiday.name if holiday else None,
            "is_closed": self.availability.get_window(center, day) is None,
            "reservations": reservations,
            "stats": {
                "total": len(reservations),
                "confirmed": sum(1 for r in reservations if r.status == ReservationStatus.CONFIRMED),
                "completed": sum(1 for r in reservations if r.status == ReservationStatus.COMPLETED),
            },
        }

    def get_available_slots(self, center_id: int, day: date, category_id: Optional[int] = None):
        return self.availability.get_available_slots(center_id, day, category_id)

    # ============== 校验 ==============

    def _resolve_category(self, center_id: int, category_id: int) -> Category:
        category = self.db.query(Category).filter(
            Category.id == category_id,
            Category.center_id == center_id,
            Category.deleted_at.is_(None),
        ).first()
        if not category:
            raise ValidationError("Category does not belong to this center")
        if not category.is_active:
            raise ValidationError("Category is not active")
        return category

    def _resolve_client(self, center_id: int, client_id: int) -> Client:
        client = self.db.query(Client).filter(
            Client.id == client_id,
            Client.center_id == center_id,
            Client.deleted_at.is_(None),
        ).first()
        if not client:
            raise ValidationError("Client does not belong to this center")
        return client

    def _resolve_vehicle(self, center_id: int, vehicle_id: int, client: Client) -> Vehicle:
        vehicle = self.db.query(Vehicle).filter(
            Vehicle.id == vehicle_id,
            Vehicle.center_id == center_id,
            Vehicle.deleted_at.is_(None),
        ).first()
        if not vehicle:
            raise ValidationError("Vehicle does not belong to this center")
        if vehicle.client_id != client.id:
            raise ValidationError("Vehicle does not belong to this client")
        return vehicle

    def _resolve_employee(self, center_id: int, employee_id: Optional[int]) -> Optional[User]:
        if employee_id is None:
            return None
        employee = self.db.query(User).filter(
            User.id == employee_id,
            User.center_id == center_id,
            User.role.in_(STAFF_ROLES),
            User.is_active.is_(True),
        ).first()
        if not employee:
            raise ValidationError("Employee does not belong to this center")
        return employee

    def _check_slot(self, center: Center, day: date, start: time, end: time,
                    exclude_id: Optional[int] = None) -> None:
        """
        校验时段：日期未过去，当天营业且非节假日，区间在营业时间内，
        且与有效预约无重叠
        """
        if day < center_today(center):
            raise ValidationError("Cannot book a date in the past")

        window = self.availability.get_window(center, day)
        if window is None:
            raise ValidationError("The center is closed on this day")

        holiday = self.availability.holiday_for(center.id, day)
        if holiday is not None:
            raise ValidationError(f"The center is closed for {holiday.name}")

        if not window.contains(to_minutes(start), to_minutes(end)):
            raise ValidationError("Requested time is outside opening hours")

        conflict = self.availability.find_conflict(center.id, day, start, end, exclude_id)
        if conflict is not None:
            raise ConflictError("The requested time slot is not available")

    # ============== 写操作 ==============

    def _booking_code_exists(self, code: str) -> bool:
        return self.db.query(Reservation.id).filter(Reservation.booking_code == code).first() is not None

    def _book(
        self,
        center_id: int,
        client: Client,
        vehicle: Vehicle,
        category: Category,
        day: date,
        start: time,
        employee: Optional[User],
        notes: Optional[str],
        status: ReservationStatus,
        created_by: Optional[int],
    ) -> Reservation:
        """写入预约、时段锁和 reservation.created 事件（不提交）"""
        center = self.availability.get_center(center_id)
        end = compute_end_time(start, category.duration)
        self._check_slot(center, day, start, end)

        reservation = Reservation(
            booking_code=issue_booking_code(
                self._booking_code_exists,
                prefix=settings.BOOKING_CODE_PREFIX,
                max_attempts=settings.BOOKING_CODE_MAX_ATTEMPTS,
            ),
            center_id=center_id,
            client_id=client.id,
            vehicle_id=vehicle.id,
            category_id=category.id,
            employee_id=employee.id if employee else None,
            date=day,
            start_time=start,
            end_time=end,
            status=status,
            notes=notes,
            created_by=created_by,
        )
        self.db.add(reservation)
        self.db.flush()
        acquire_slot_locks(self.db, reservation)
        self.clients.touch(client)

        record_event(
            self.db,
            EventType.RESERVATION_CREATED,
            ReservationCreatedData(
                reservation_id=reservation.id,
                booking_code=reservation.booking_code,
                center_id=center_id,
                client_id=client.id,
                employee_id=reservation.employee_id,
                date=day.isoformat(),
                start_time=start.strftime("%H:%M"),
                vehicle_info=vehicle.description,
                category_name=category.name,
                status=status.value,
            ),
            center_id=center_id,
        )
        logger.info(
            f"Reservation {reservation.booking_code} booked for {day} "
            f"{start.strftime('%H:%M')}-{end.strftime('%H:%M')} ({status.value})"
        )
        return reservation

    def create_reservation(self, center_id: int, data: ReservationCreate, actor: User) -> Reservation:
        """
        创建预约。员工创建的预约直接为 CONFIRMED，客户自助预约为 PENDING

        Raises:
            ValidationError: 外键不属于本中心、当天休息或时间不合法
            ConflictError: 区间与有效预约重叠
        """
        start = parse_start_time(data.start_time)
        status = ReservationStatus.PENDING if actor.role == UserRole.CLIENT else ReservationStatus.CONFIRMED

        with transaction(self.db):
            category = self._resolve_category(center_id, data.category_id)
            client = self._resolve_client(center_id, data.client_id)
            vehicle = self._resolve_vehicle(center_id, data.vehicle_id, client)
            employee = self._resolve_employee(center_id, data.employee_id)
            reservation = self._book(
                center_id, client, vehicle, category, data.date, start,
                employee, data.notes, status, actor.id,
            )
        self.db.refresh(reservation)
        return reservation

    def create_for_client(self, center_id: int, data: ReservationCreate, actor: User) -> Reservation:
        """客户自助预约：只能为邮箱与账号一致的客户记录预约"""
        own = self.db.query(Client).filter(
            Client.center_id == center_id,
            Client.email == actor.email,
            Client.deleted_at.is_(None),
        ).first()
        if own is None or own.id != data.client_id:
            raise AuthorizationError("Clients can only book for themselves")
        return self.create_reservation(center_id, data, actor)

    def quick_reservation(self, center_id: int, data: QuickReservationCreate, actor: User) -> Reservation:
        """
        快速预约：按电话（其次邮箱）查找或创建客户，按车牌查找或创建车辆，再创建预约
        所有写操作在同一事务中
        """
        start = parse_start_time(data.start_time)

        with transaction(self.db):
            category = self._resolve_category(center_id, data.category_id)
            employee = self._resolve_employee(center_id, data.employee_id)

            client = self.clients.find_by_contact(center_id, data.client_phone, data.client_email)
            if client is None:
                client = self.clients.add_client(center_id, ClientCreate(
                    first_name=data.client_first_name,
                    last_name=data.client_last_name,
                    phone=data.client_phone,
                    email=data.client_email or f"{data.client_phone}@{PLACEHOLDER_EMAIL_DOMAIN}",
                ))

            vehicle = self.vehicles.find_by_plate(center_id, data.vehicle_plate)
            if vehicle is None:
                vehicle = self.vehicles.add_vehicle(center_id, VehicleCreate(
                    client_id=client.id,
                    plate_number=normalize_plate(data.vehicle_plate),
                    brand=data.vehicle_brand,
                    model=data.vehicle_model,
                ))
            elif vehicle.client_id != client.id:
                raise ValidationError("Vehicle is registered to another client")

            reservation = self._book(
                center_id, client, vehicle, category, data.date, start,
                employee, data.notes, ReservationStatus.CONFIRMED, actor.id,
            )
        self.db.refresh(reservation)
        return reservation

    def update_reservation(self, center_id: int, reservation_id: int,
                           data: ReservationUpdate, actor: User) -> Reservation:
        """
        更新预约：改期、指派员工、修改备注
        修改日期或时间时按类别时长重新计算结束时间并重新校验时段；
        状态变更交给生命周期服务。COMPLETED 只能通过检验结果接口设置，
        该接口会同时写入车辆检验快照
        """
        reservation = get_live_reservation(self.db, center_id, reservation_id)
        changes = data.model_dump(exclude_unset=True)
        if data.status == ReservationStatus.COMPLETED and reservation.status != ReservationStatus.COMPLETED:
            raise ValidationError(
                f"Record the inspection result with PATCH /reservations/{reservation_id}/result to complete it"
            )

        with transaction(self.db):
            if "date" in changes or "start_time" in changes:
                if reservation.status not in RESCHEDULABLE_STATUSES:
                    raise ValidationError("Only pending or confirmed reservations can be rescheduled")
                new_date = data.date or reservation.date
                new_start = parse_start_time(data.start_time) if data.start_time else reservation.start_time
                new_end = compute_end_time(new_start, reservation.category.duration)
                center = self.availability.get_center(center_id)
                self._check_slot(center, new_date, new_start, new_end, exclude_id=reservation.id)

                release_slot_locks(self.db, reservation)
                reservation.date = new_date
                reservation.start_time = new_start
                reservation.end_time = new_end
                acquire_slot_locks(self.db, reservation)
                logger.info(
                    f"Reservation {reservation.booking_code} rescheduled to {new_date} "
                    f"{new_start.strftime('%H:%M')}"
                )

            if "employee_id" in changes:
                employee = self._resolve_employee(center_id, data.employee_id)
                reservation.employee_id = employee.id if employee else None

            if "notes" in changes:
                reservation.notes = data.notes

            if data.status is not None and data.status != reservation.status:
                self.lifecycle.apply(reservation, data.status)

        self.db.refresh(reservation)
        return reservation

    def assign_employee(self, center_id: int, reservation_id: int, employee_id: int) -> Reservation:
        reservation = get_live_reservation(self.db, center_id, reservation_id)
        with transaction(self.db):
            employee = self._resolve_employee(center_id, employee_id)
            reservation.employee_id = employee.id
        self.db.refresh(reservation)
        logger.info(f"Reservation {reservation.booking_code} assigned to user {employee_id}")
        return reservation

    def remove_reservation(self, center_id: int, reservation_id: int) -> None:
        """软删除：从所有列表中隐藏并释放时段"""
        reservation = get_live_reservation(self.db, center_id, reservation_id)
        with transaction(self.db):
            release_slot_locks(self.db, reservation)
            reservation.deleted_at = datetime.utcnow()
        logger.info(f"Reservation {reservation.booking_code} removed")
