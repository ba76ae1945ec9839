"""
中心设置服务
当前中心的基本信息、短信选项和每周营业时间
"""
from typing import Any, Dict
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging

from sqlalchemy.orm import Session

from app.inspection.domain.slots import WEEKDAY_KEYS
from app.models.ontology import Center
from app.models.schemas import CenterUpdate, OpeningHoursUpdate
from app.services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def default_opening_hours() -> Dict[str, Dict[str, Any]]:
    """默认营业时间：工作日 08:00-18:00，周六上午，周日休息"""
    hours = {day: {"open": "08:00", "close": "18:00", "closed": False} for day in WEEKDAY_KEYS[:5]}
    hours["saturday"] = {"open": "08:00", "close": "12:00", "closed": False}
    hours["sunday"] = {"open": None, "close": None, "closed": True}
    return hours


class SettingsService:
    """中心设置服务"""

    def __init__(self, db: Session):
        self.db = db

    def get_center(self, center_id: int) -> Center:
        center = self.db.get(Center, center_id)
        if center is None:
            raise NotFoundError("Center not found")
        return center

    def update_center(self, center_id: int, data: CenterUpdate) -> Center:
        center = self.get_center(center_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("timezone"):
            try:
                ZoneInfo(changes["timezone"])
            except (ZoneInfoNotFoundError, ValueError):
                raise ValidationError(f"Unknown timezone: {changes['timezone']}")
        if changes.get("currency"):
            changes["currency"] = changes["currency"].upper()

        for key, value in changes.items():
            setattr(center, key, value)
        self.db.commit()
        self.db.refresh(center)
        logger.info(f"Center {center_id} settings updated: {', '.join(sorted(changes))}")
        return center

    def get_opening_hours(self, center_id: int) -> Dict[str, Any]:
        return dict(self.get_center(center_id).opening_hours or {})

    def update_opening_hours(self, center_id: int, data: OpeningHoursUpdate) -> Dict[str, Any]:
        """更新营业时间，未提及的日期保持原设置"""
        center = self.get_center(center_id)
        hours = dict(center.opening_hours or {})
        for day, value in data.days.items():
            hours[day] = value.model_dump()
        # 重新赋值，使 JSON 列被标记为已修改
        center.opening_hours = hours
        self.db.commit()
        self.db.refresh(center)
        logger.info(f"Opening hours of center {center_id} updated")
        return dict(center.opening_hours)
