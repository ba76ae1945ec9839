"""
领域事件定义
预约引擎发布的事件名称与数据结构。事件数据携带ID以及处理器所需的
冗余字段，处理器无需再次查询
"""
from enum import Enum
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Optional, Dict, Any, List


class EventType(str, Enum):
    RESERVATION_CREATED = "reservation.created"
    RESERVATION_STATUS_CHANGED = "reservation.status_changed"
    PAYMENT_COMPLETED = "payment.completed"
    HOLIDAY_CREATED = "holiday.created"
    PROMOTION_CREATED = "promotion.created"


class ChangeCause(str, Enum):
    """预约状态变更的原因"""
    MANUAL = "manual"
    PAYMENT = "payment"
    HOLIDAY = "holiday"


@dataclass
class BaseEventData:
    """事件数据基类"""
    occurred_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        for key, value in result.items():
            if isinstance(value, datetime):
                result[key] = value.isoformat()
        return result


@dataclass
class ReservationCreatedData(BaseEventData):
    reservation_id: int = 0
    booking_code: str = ""
    center_id: int = 0
    client_id: int = 0
    employee_id: Optional[int] = None
    date: str = ""          # ISO date
    start_time: str = ""    # HH:MM
    vehicle_info: str = ""
    category_name: str = ""
    status: str = ""


@dataclass
class ReservationStatusChangedData(BaseEventData):
    reservation_id: int = 0
    booking_code: str = ""
    center_id: int = 0
    client_id: int = 0
    employee_id: Optional[int] = None
    old_status: str = ""
    new_status: str = ""
    reason: Optional[str] = None
    cause: str = ChangeCause.MANUAL.value
    date: str = ""
    start_time: str = ""


@dataclass
class PaymentCompletedData(BaseEventData):
    payment_id: int = 0
    center_id: int = 0
    reservation_id: Optional[int] = None
    client_id: Optional[int] = None
    amount: float = 0.0
    invoice_number: str = ""


@dataclass
class HolidayCreatedData(BaseEventData):
    holiday_id: int = 0
    center_id: int = 0
    name: str = ""
    date: str = ""
    end_date: Optional[str] = None
    cancelled_reservation_ids: List[int] = field(default_factory=list)


@dataclass
class PromotionCreatedData(BaseEventData):
    promotion_id: int = 0
    center_id: int = 0
    name: str = ""
    code: str = ""
    discount_type: str = ""
    discount_value: float = 0.0
    start_date: str = ""
    end_date: str = ""
