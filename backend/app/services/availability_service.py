"""
可用时段服务
根据营业时间、节假日和当日有效预约，每次调用时实时计算单个中心单日的可用时段
"""
from datetime import date, datetime, time, timezone
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging

from sqlalchemy.orm import Session

from app.config import settings
from app.inspection.domain.slots import (
    DayWindow, Interval, Slot, day_window, generate_slots, to_minutes,
)
from app.models.ontology import Center, Category, Holiday, Reservation, ReservationStatus
from app.services.errors import NotFoundError, ValidationError
from app.services.holiday_service import HolidayService

logger = logging.getLogger(__name__)


def center_today(center: Center) -> date:
    """中心所在时区的当前日期"""
    name = center.timezone or settings.DEFAULT_TIMEZONE
    try:
        tz = ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone '{name}' for center {center.id}, using UTC")
        tz = timezone.utc
    return datetime.now(tz).date()


class AvailabilityService:
    """时段可用性服务"""

    def __init__(self, db: Session):
        self.db = db
        self.holidays = HolidayService(db)

    def get_center(self, center_id: int) -> Center:
        center = self.db.query(Center).filter(Center.id == center_id).first()
        if not center:
            raise NotFoundError("Center not found")
        return center

    def get_window(self, center: Center, day: date) -> Optional[DayWindow]:
        """营业时间窗口，当天休息时为 None"""
        try:
            return day_window(center.opening_hours, day)
        except ValueError as e:
            logger.error(f"Center {center.id} has malformed opening hours: {e}")
            raise ValidationError("Center opening hours are misconfigured")

    def holiday_for(self, center_id: int, day: date) -> Optional[Holiday]:
        return self.holidays.holiday_for(center_id, day)

    def _live_reservations(self, center_id: int, day: date, exclude_id: Optional[int] = None):
        query = self.db.query(Reservation).filter(
            Reservation.center_id == center_id,
            Reservation.date == day,
            Reservation.status != ReservationStatus.CANCELLED,
            Reservation.deleted_at.is_(None),
        )
        if exclude_id is not None:
            query = query.filter(Reservation.id != exclude_id)
        return query

    def busy_intervals(self, center_id: int, day: date) -> List[Interval]:
        rows = self._live_reservations(center_id, day).with_entities(
            Reservation.start_time, Reservation.end_time
        ).all()
        return [(to_minutes(start), to_minutes(end)) for start, end in rows]

    def find_conflict(self, center_id: int, day: date, start: time, end: time,
                      exclude_id: Optional[int] = None) -> Optional[Reservation]:
        """与 [start, end) 重叠的第一个有效预约（如有）"""
        return self._live_reservations(center_id, day, exclude_id).filter(
            Reservation.start_time < end,
            Reservation.end_time > start,
        ).order_by(Reservation.start_time).first()

    def get_available_slots(self, center_id: int, day: date,
                            category_id: Optional[int] = None) -> List[Slot]:
        """
        按时间顺序返回当日时段

        当天休息或被节假日覆盖时返回空列表。指定类别时，
        按类别时长而不是时段宽度检测每个时段
        """
        center = self.get_center(center_id)

        duration = None
        if category_id is not None:
            category = self.db.query(Category).filter(
                Category.id == category_id,
                Category.center_id == center_id,
                Category.deleted_at.is_(None),
            ).first()
            if not category:
                raise NotFoundError("Category not found")
            duration = category.duration

        window = self.get_window(center, day)
        if window is None:
            return []
        if self.holiday_for(center_id, day) is not None:
            return []

        return generate_slots(
            window,
            self.busy_intervals(center_id, day),
            slot_minutes=settings.SLOT_MINUTES,
            duration=duration,
        )
