"""
时段锁 - 存储层防止重复预约
有效预约每占用一分钟持有一行，(center_id, date, minute) 唯一键拒绝同一分钟的第二个写入者
"""
import logging
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.inspection.domain.slots import occupied_minutes, to_minutes
from app.models.ontology import Reservation, ReservationSlotLock
from app.services.errors import ConflictError

logger = logging.getLogger(__name__)


def acquire_slot_locks(db: Session, reservation: Reservation) -> None:
    """
    为预约区间写入时段锁并 flush，预约必须已有 id

    Raises:
        ConflictError: 其中某一分钟已被其他预约占用
    """
    minutes = occupied_minutes(to_minutes(reservation.start_time), to_minutes(reservation.end_time))
    reservation.slot_locks.extend(
        ReservationSlotLock(center_id=reservation.center_id, date=reservation.date, minute=m)
        for m in minutes
    )
    try:
        db.flush()
    except IntegrityError:
        logger.warning(
            f"Slot lock collision for center {reservation.center_id} on {reservation.date} "
            f"{reservation.start_time}-{reservation.end_time}"
        )
        raise ConflictError("The requested time slot is already booked")


def release_slot_locks(db: Session, reservation: Reservation) -> None:
    """删除预约的全部时段锁并 flush"""
    if reservation.slot_locks:
        reservation.slot_locks.clear()
        db.flush()
