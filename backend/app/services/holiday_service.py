"""
节假日服务
管理休息日和休息日期范围。创建节假日时，在同一事务中取消其覆盖的
PENDING/CONFIRMED 预约
"""
from datetime import date, timedelta
from typing import List, Optional, Tuple
import logging

from sqlalchemy import or_, and_, extract
from sqlalchemy.orm import Session

from app.database import transaction
from app.inspection.domain.reservation import CANCELLABLE_STATUSES
from app.models.events import EventType, ChangeCause, HolidayCreatedData
from app.models.ontology import Holiday, Reservation, ReservationStatus
from app.models.schemas import HolidayCreate, HolidayUpdate
from app.services.errors import NotFoundError, ValidationError
from app.services.lifecycle_service import LifecycleService
from app.services.outbox import record_event

logger = logging.getLogger(__name__)


def easter_sunday(year: int) -> date:
    """公历复活节日期（匿名算法）"""
    a = year % 19
    b, c = divmod(year, 100)
    d, e = divmod(b, 4)
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i, k = divmod(c, 4)
    shift = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * shift) // 451
    month, day = divmod(h + shift - 7 * m + 114, 31)
    return date(year, month, day + 1)


def french_public_holidays(year: int) -> List[Tuple[str, date, bool]]:
    """某年的法国法定节假日，返回 (名称, 日期, 是否每年重复)"""
    easter = easter_sunday(year)
    return [
        ("Jour de l'An", date(year, 1, 1), True),
        ("Lundi de Pâques", easter + timedelta(days=1), False),
        ("Fête du Travail", date(year, 5, 1), True),
        ("Victoire 1945", date(year, 5, 8), True),
        ("Ascension", easter + timedelta(days=39), False),
        ("Lundi de Pentecôte", easter + timedelta(days=50), False),
        ("Fête Nationale", date(year, 7, 14), True),
        ("Assomption", date(year, 8, 15), True),
        ("Toussaint", date(year, 11, 1), True),
        ("Armistice", date(year, 11, 11), True),
        ("Noël", date(year, 12, 25), True),
    ]


def holiday_covers(holiday: Holiday, day: date) -> bool:
    """
    闭区间判断。每年重复的节假日只比较月和日，其范围可以跨年
    """
    start = holiday.date
    end = holiday.end_date or holiday.date
    if not holiday.is_recurring:
        return start <= day <= end
    key = (day.month, day.day)
    start_key, end_key = (start.month, start.day), (end.month, end.day)
    if start_key <= end_key:
        return start_key <= key <= end_key
    return key >= start_key or key <= end_key


class HolidayService:
    """节假日服务"""

    def __init__(self, db: Session):
        self.db = db

    def list_holidays(self, center_id: int, year: Optional[int] = None,
                      month: Optional[int] = None, include_inactive: bool = False) -> List[Holiday]:
        query = self.db.query(Holiday).filter(Holiday.center_id == center_id)
        if not include_inactive:
            query = query.filter(Holiday.is_active.is_(True))
        if year:
            query = query.filter(extract("year", Holiday.date) == year)
            if month:
                query = query.filter(extract("month", Holiday.date) == month)
        return query.order_by(Holiday.date.asc()).all()

    def get_holiday(self, center_id: int, holiday_id: int) -> Holiday:
        holiday = self.db.query(Holiday).filter(
            Holiday.id == holiday_id, Holiday.center_id == center_id
        ).first()
        if not holiday:
            raise NotFoundError("Holiday not found")
        return holiday

    def holiday_for(self, center_id: int, day: date) -> Optional[Holiday]:
        """覆盖该日期的有效节假日（如有）"""
        one_off = self.db.query(Holiday).filter(
            Holiday.center_id == center_id,
            Holiday.is_active.is_(True),
            Holiday.is_recurring.is_(False),
            Holiday.date <= day,
            or_(
                Holiday.end_date >= day,
                and_(Holiday.end_date.is_(None), Holiday.date == day),
            ),
        ).order_by(Holiday.date.asc()).first()
        if one_off:
            return one_off

        recurring = self.db.query(Holiday).filter(
            Holiday.center_id == center_id,
            Holiday.is_active.is_(True),
            Holiday.is_recurring.is_(True),
        ).order_by(Holiday.date.asc()).all()
        for holiday in recurring:
            if holiday_covers(holiday, day):
                return holiday
        return None

    def upcoming(self, center_id: int, limit: int = 5) -> List[Holiday]:
        return self.db.query(Holiday).filter(
            Holiday.center_id == center_id,
            Holiday.is_active.is_(True),
            Holiday.date >= date.today(),
        ).order_by(Holiday.date.asc()).limit(limit).all()

    def _add(self, center_id: int, name: str, start: date, end: Optional[date],
             is_recurring: bool) -> Tuple[Holiday, List[int]]:
        """写入节假日，执行级联取消并记录 holiday.created 事件（不提交）"""
        holiday = Holiday(
            center_id=center_id,
            name=name,
            date=start,
            end_date=end,
            is_recurring=is_recurring,
            is_active=True,
        )
        self.db.add(holiday)
        # 先写入节假日以开启事务，逐个预约的保存点嵌套在该事务中
        self.db.flush()

        cancelled_ids = self._cascade_cancel(holiday)

        record_event(
            self.db,
            EventType.HOLIDAY_CREATED,
            HolidayCreatedData(
                holiday_id=holiday.id,
                center_id=center_id,
                name=holiday.name,
                date=holiday.date.isoformat(),
                end_date=holiday.end_date.isoformat() if holiday.end_date else None,
                cancelled_reservation_ids=cancelled_ids,
            ),
            center_id=center_id,
        )
        return holiday, cancelled_ids

    def _cascade_cancel(self, holiday: Holiday) -> List[int]:
        """
        取消节假日覆盖的本中心所有 PENDING/CONFIRMED 预约
        每年重复的节假日还覆盖之后每一年的相同日期。
        每个预约使用独立保存点，单个失败记录日志后继续处理其余预约
        """
        query = self.db.query(Reservation).filter(
            Reservation.center_id == holiday.center_id,
            Reservation.deleted_at.is_(None),
            Reservation.status.in_(CANCELLABLE_STATUSES),
            Reservation.date >= holiday.date,
        )
        if not holiday.is_recurring:
            query = query.filter(Reservation.date <= (holiday.end_date or holiday.date))
        affected = [
            r for r in query.order_by(Reservation.date, Reservation.start_time)
            if holiday_covers(holiday, r.date)
        ]

        lifecycle = LifecycleService(self.db)
        cancelled: List[int] = []
        for reservation in affected:
            try:
                with self.db.begin_nested():
                    lifecycle.apply(
                        reservation,
                        ReservationStatus.CANCELLED,
                        reason=f"Holiday: {holiday.name}",
                        cause=ChangeCause.HOLIDAY,
                    )
                cancelled.append(reservation.id)
            except Exception as e:
                logger.error(
                    f"Holiday {holiday.id}: failed to cancel reservation {reservation.id}: {e}",
                    exc_info=True,
                )

        if affected:
            logger.info(
                f"Holiday '{holiday.name}' cancelled {len(cancelled)}/{len(affected)} reservations"
            )
        return cancelled

    def create_holiday(self, center_id: int, data: HolidayCreate) -> Tuple[Holiday, List[int]]:
        """
        创建节假日

        Returns:
            (节假日, 级联取消的预约ID列表)
        """
        with transaction(self.db):
            holiday, cancelled_ids = self._add(
                center_id, data.name, data.date, data.end_date, data.is_recurring
            )
        self.db.refresh(holiday)
        return holiday, cancelled_ids

    def update_holiday(self, center_id: int, holiday_id: int, data: HolidayUpdate) -> Holiday:
        holiday = self.get_holiday(center_id, holiday_id)
        for key, value in data.model_dump(exclude_unset=True).items():
            setattr(holiday, key, value)
        if holiday.end_date is not None and holiday.end_date < holiday.date:
            self.db.rollback()
            raise ValidationError("endDate must not be before date")
        self.db.commit()
        self.db.refresh(holiday)
        return holiday

    def delete_holiday(self, center_id: int, holiday_id: int) -> None:
        holiday = self.get_holiday(center_id, holiday_id)
        self.db.delete(holiday)
        self.db.commit()

    def toggle_holiday(self, center_id: int, holiday_id: int) -> Holiday:
        holiday = self.get_holiday(center_id, holiday_id)
        holiday.is_active = not holiday.is_active
        self.db.commit()
        self.db.refresh(holiday)
        return holiday

    def import_public_holidays(self, center_id: int, year: int) -> List[Holiday]:
        """导入某年的法国法定节假日，已存在的日期跳过"""
        if not 1970 <= year <= 2100:
            raise ValidationError("Year out of range")
        created: List[Holiday] = []
        with transaction(self.db):
            for name, day, is_recurring in french_public_holidays(year):
                exists = self.db.query(Holiday.id).filter(
                    Holiday.center_id == center_id, Holiday.date == day
                ).first()
                if exists:
                    continue
                holiday, _ = self._add(center_id, name, day, None, is_recurring)
                created.append(holiday)
        logger.info(f"Imported {len(created)} public holidays for center {center_id} ({year})")
        return created
