"""
预约状态生命周期
所有合法迁移都经过 ReservationEntity；预约不再占用时段时释放时段锁，
并在同一事务中记录 reservation.status_changed 事件
"""
from typing import Optional
import logging

from sqlalchemy.orm import Session

from app.database import transaction
from app.inspection.domain.reservation import ReservationEntity, occupies_slot
from app.models.events import EventType, ChangeCause, ReservationStatusChangedData
from app.models.ontology import Reservation, ReservationStatus
from app.models.schemas import ReservationResultUpdate
from app.services.errors import NotFoundError
from app.services.outbox import record_event
from app.services.slot_locks import release_slot_locks

logger = logging.getLogger(__name__)


def get_live_reservation(db: Session, center_id: int, reservation_id: int) -> Reservation:
    """租户范围内查找预约，已软删除的行不可见"""
    reservation = db.query(Reservation).filter(
        Reservation.id == reservation_id,
        Reservation.center_id == center_id,
        Reservation.deleted_at.is_(None),
    ).first()
    if not reservation:
        raise NotFoundError("Reservation not found")
    return reservation


class LifecycleService:
    """预约状态迁移服务"""

    def __init__(self, db: Session):
        self.db = db

    def apply(
        self,
        reservation: Reservation,
        target: ReservationStatus,
        reason: Optional[str] = None,
        cause: ChangeCause = ChangeCause.MANUAL,
    ) -> ReservationStatus:
        """
        在调用方的事务中迁移预约状态（不提交）

        Returns:
            迁移前的状态

        Raises:
            InvalidTransitionError: 不允许的迁移
        """
        entity = ReservationEntity(reservation)
        if target == ReservationStatus.CANCELLED:
            previous = entity.cancel(reason)
        else:
            previous = entity.move_to(target)

        if not occupies_slot(target):
            release_slot_locks(self.db, reservation)

        record_event(
            self.db,
            EventType.RESERVATION_STATUS_CHANGED,
            ReservationStatusChangedData(
                reservation_id=reservation.id,
                booking_code=reservation.booking_code,
                center_id=reservation.center_id,
                client_id=reservation.client_id,
                employee_id=reservation.employee_id,
                old_status=previous.value,
                new_status=target.value,
                reason=reason,
                cause=cause.value,
                date=reservation.date.isoformat(),
                start_time=reservation.start_time.strftime("%H:%M"),
            ),
            center_id=reservation.center_id,
        )
        return previous

    def change_status(
        self,
        center_id: int,
        reservation_id: int,
        target: ReservationStatus,
        reason: Optional[str] = None,
        cause: ChangeCause = ChangeCause.MANUAL,
    ) -> Reservation:
        reservation = get_live_reservation(self.db, center_id, reservation_id)
        with transaction(self.db):
            self.apply(reservation, target, reason, cause)
        self.db.refresh(reservation)
        return reservation

    def cancel(self, center_id: int, reservation_id: int, reason: Optional[str] = None) -> Reservation:
        return self.change_status(center_id, reservation_id, ReservationStatus.CANCELLED, reason)

    def update_result(self, center_id: int, reservation_id: int, data: ReservationResultUpdate) -> Reservation:
        """
        完成一次 IN_PROGRESS 状态的检验

        检验结果、报告、备注和车辆最近检验快照与 COMPLETED 状态在同一次提交中写入
        """
        reservation = get_live_reservation(self.db, center_id, reservation_id)
        report = data.report

        with transaction(self.db):
            self.apply(reservation, ReservationStatus.COMPLETED)
            reservation.result = data.result
            reservation.report = report.model_dump(mode="json", by_alias=True) if report else None
            if data.notes:
                reservation.notes = data.notes

            vehicle = reservation.vehicle
            vehicle.last_inspection_date = reservation.date
            vehicle.last_inspection_result = data.result
            vehicle.next_inspection_due = report.valid_until if report else None
            if report and report.mileage is not None:
                vehicle.mileage = report.mileage

        logger.info(
            f"Reservation {reservation.booking_code} completed with result {data.result.value}"
        )
        self.db.refresh(reservation)
        return reservation
