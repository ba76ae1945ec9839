"""
Pydantic 请求/响应模型
JSON 使用 camelCase 键名，Python 属性保持 snake_case
"""
from datetime import datetime, date, time
from decimal import Decimal
import math
from typing import Optional, List, Dict, Any, Generic, TypeVar, Sequence, Type
from pydantic import BaseModel, Field, field_validator, model_validator, field_serializer, ConfigDict
from pydantic.alias_generators import to_camel

from app.models.ontology import (
    UserRole, ReservationStatus, InspectionResult, ClientType, VehicleType,
    DiscountType, PaymentMethod, PaymentStatus, InvoiceStatus, NotificationType,
)

TIME_PATTERN = r"^([01]\d|2[0-3]):([0-5]\d)$"
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

T = TypeVar("T")

# 名为 `date` 的字段会在注解求值前绑定，需使用别名
OptionalDate = Optional[date]


class APIModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class Page(APIModel, Generic[T]):
    """分页列表"""
    items: List[T]
    total: int
    page: int
    limit: int
    total_pages: int


def page_of(model: Type[APIModel], rows: Sequence[Any], total: int, page: int, limit: int) -> Page:
    """将 ORM 行包装为分页列表"""
    return Page[model](
        items=[model.model_validate(row) for row in rows],
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit) if limit else 0,
    )


def _hhmm(value: Optional[time]) -> Optional[str]:
    return value.strftime("%H:%M") if value is not None else None


# ============== 认证 / 用户 ==============

class LoginRequest(APIModel):
    email: str
    password: str


class UserResponse(APIModel):
    id: int
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    role: UserRole
    center_id: Optional[int] = None
    is_active: bool


class TokenResponse(APIModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class UserCreate(APIModel):
    email: str = Field(..., max_length=150)
    password: str = Field(..., min_length=6)
    first_name: str = Field(..., max_length=100)
    last_name: str = Field(default="", max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    role: UserRole = UserRole.EMPLOYEE


class UserActiveUpdate(APIModel):
    is_active: bool


# ============== 中心 / 设置 ==============

class DayHours(APIModel):
    open: Optional[str] = Field(None, pattern=TIME_PATTERN)
    close: Optional[str] = Field(None, pattern=TIME_PATTERN)
    closed: bool = False

    @model_validator(mode="after")
    def check_range(self):
        if self.closed:
            return self
        if not self.open or not self.close:
            raise ValueError("open and close are required unless the day is closed")
        if self.open >= self.close:
            raise ValueError("open must be earlier than close")
        return self


class OpeningHoursUpdate(APIModel):
    days: Dict[str, DayHours]

    @field_validator("days")
    @classmethod
    def check_weekdays(cls, v: Dict[str, DayHours]) -> Dict[str, DayHours]:
        unknown = [k for k in v if k not in WEEKDAYS]
        if unknown:
            raise ValueError(f"unknown weekday keys: {', '.join(unknown)}")
        return v


class CenterResponse(APIModel):
    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    timezone: str
    currency: str
    opening_hours: Dict[str, Any]
    owner_id: Optional[int] = None
    sms_enabled: bool
    sms_sender_name: Optional[str] = None


class CenterUpdate(APIModel):
    name: Optional[str] = Field(None, max_length=150)
    email: Optional[str] = Field(None, max_length=150)
    phone: Optional[str] = Field(None, max_length=30)
    address: Optional[str] = None
    timezone: Optional[str] = Field(None, max_length=64)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    sms_enabled: Optional[bool] = None
    sms_api_key: Optional[str] = None
    sms_sender_name: Optional[str] = Field(None, max_length=11)


# ============== 检验类别 ==============

class CategoryCreate(APIModel):
    name: str = Field(..., max_length=100)
    description: Optional[str] = None
    duration: int = Field(..., gt=0, le=24 * 60)
    price: Decimal = Field(..., ge=0)
    color: Optional[str] = Field(None, max_length=20)
    sort_order: int = 0


class CategoryUpdate(APIModel):
    name: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    duration: Optional[int] = Field(None, gt=0, le=24 * 60)
    price: Optional[Decimal] = Field(None, ge=0)
    color: Optional[str] = Field(None, max_length=20)
    sort_order: Optional[int] = None


class CategoryReorder(APIModel):
    ids: List[int]


class CategoryResponse(APIModel):
    id: int
    name: str
    description: Optional[str] = None
    duration: int
    price: Decimal
    color: Optional[str] = None
    is_active: bool
    sort_order: int


# ============== 节假日 ==============

class HolidayCreate(APIModel):
    name: str = Field(..., max_length=150)
    date: date
    end_date: Optional[date] = None
    is_recurring: bool = False

    @model_validator(mode="after")
    def check_range(self):
        if self.end_date is not None and self.end_date < self.date:
            raise ValueError("endDate must not be before date")
        return self


class HolidayUpdate(APIModel):
    name: Optional[str] = Field(None, max_length=150)
    date: OptionalDate = None
    end_date: OptionalDate = None
    is_recurring: Optional[bool] = None


class HolidayResponse(APIModel):
    id: int
    name: str
    date: date
    end_date: Optional[date] = None
    is_recurring: bool
    is_active: bool


class HolidayCreatedResponse(HolidayResponse):
    cancelled_reservations: int = 0


# ============== 客户 / 车辆 ==============

class ClientCreate(APIModel):
    first_name: str = Field(..., max_length=100)
    last_name: str = Field(default="", max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    email: Optional[str] = Field(None, max_length=150)
    type: ClientType = ClientType.NORMAL
    address: Optional[str] = None
    notes: Optional[str] = None


class ClientUpdate(APIModel):
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    email: Optional[str] = Field(None, max_length=150)
    type: Optional[ClientType] = None
    address: Optional[str] = None
    notes: Optional[str] = None


class ClientResponse(APIModel):
    id: int
    first_name: str
    last_name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    type: ClientType
    address: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class VehicleCreate(APIModel):
    client_id: int
    plate_number: str = Field(..., min_length=1, max_length=20)
    brand: Optional[str] = Field(None, max_length=60)
    model: Optional[str] = Field(None, max_length=60)
    year: Optional[int] = Field(None, ge=1900, le=2100)
    type: VehicleType = VehicleType.CAR
    mileage: Optional[int] = Field(None, ge=0)


class VehicleUpdate(APIModel):
    plate_number: Optional[str] = Field(None, min_length=1, max_length=20)
    brand: Optional[str] = Field(None, max_length=60)
    model: Optional[str] = Field(None, max_length=60)
    year: Optional[int] = Field(None, ge=1900, le=2100)
    type: Optional[VehicleType] = None
    mileage: Optional[int] = Field(None, ge=0)


class VehicleResponse(APIModel):
    id: int
    client_id: int
    plate_number: str
    brand: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    type: VehicleType
    mileage: Optional[int] = None
    last_inspection_date: Optional[date] = None
    last_inspection_result: Optional[InspectionResult] = None
    next_inspection_due: Optional[date] = None


# ============== 预约 ==============

class ReservationCreate(APIModel):
    client_id: int
    vehicle_id: int
    category_id: int
    employee_id: Optional[int] = None
    date: date
    start_time: str = Field(..., pattern=TIME_PATTERN)
    notes: Optional[str] = None


class QuickReservationCreate(APIModel):
    client_first_name: str = Field(..., max_length=100)
    client_last_name: str = Field(default="", max_length=100)
    client_phone: str = Field(..., min_length=3, max_length=30)
    client_email: Optional[str] = Field(None, max_length=150)
    vehicle_plate: str = Field(..., min_length=1, max_length=20)
    vehicle_brand: Optional[str] = Field(None, max_length=60)
    vehicle_model: Optional[str] = Field(None, max_length=60)
    category_id: int
    date: date
    start_time: str = Field(..., pattern=TIME_PATTERN)
    employee_id: Optional[int] = None
    notes: Optional[str] = None


class ReservationUpdate(APIModel):
    date: OptionalDate = None
    start_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    employee_id: Optional[int] = None
    status: Optional[ReservationStatus] = None
    notes: Optional[str] = None


class InspectionReport(APIModel):
    defects: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    observations: Optional[str] = None
    valid_until: Optional[date] = None
    mileage: Optional[int] = Field(None, ge=0)


class ReservationResultUpdate(APIModel):
    result: InspectionResult
    report: Optional[InspectionReport] = None
    notes: Optional[str] = None


class AssignEmployee(APIModel):
    employee_id: int


class ClientSummary(APIModel):
    id: int
    first_name: str
    last_name: str
    phone: Optional[str] = None
    email: Optional[str] = None


class VehicleSummary(APIModel):
    id: int
    plate_number: str
    brand: Optional[str] = None
    model: Optional[str] = None


class CategorySummary(APIModel):
    id: int
    name: str
    duration: int
    price: Decimal


class EmployeeSummary(APIModel):
    id: int
    first_name: str
    last_name: str


class ReservationResponse(APIModel):
    id: int
    booking_code: str
    date: date
    start_time: time
    end_time: time
    status: ReservationStatus
    result: Optional[InspectionResult] = None
    report: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None
    client_id: int
    vehicle_id: int
    category_id: int
    employee_id: Optional[int] = None
    client: Optional[ClientSummary] = None
    vehicle: Optional[VehicleSummary] = None
    category: Optional[CategorySummary] = None
    employee: Optional[EmployeeSummary] = None
    created_at: Optional[datetime] = None

    @field_serializer("start_time", "end_time")
    def serialize_time(self, value: time) -> str:
        return _hhmm(value)


class SlotResponse(APIModel):
    start_time: time
    end_time: time
    is_available: bool

    @field_serializer("start_time", "end_time")
    def serialize_time(self, value: time) -> str:
        return _hhmm(value)


class DayStats(APIModel):
    total: int
    confirmed: int
    completed: int


class DayScheduleResponse(APIModel):
    date: date
    is_holiday: bool
    holiday_name: Optional[str] = None
    is_closed: bool
    reservations: List[ReservationResponse]
    stats: DayStats


class MessageResponse(APIModel):
    message: str


# ============== 促销 ==============

class PromotionCreate(APIModel):
    name: str = Field(..., max_length=150)
    description: Optional[str] = None
    code: str = Field(..., min_length=2, max_length=50)
    discount_type: DiscountType
    discount_value: Decimal = Field(..., gt=0)
    usage_limit: Optional[int] = Field(None, ge=1)
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def check_values(self):
        if self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        if self.discount_type == DiscountType.PERCENTAGE and self.discount_value > 100:
            raise ValueError("percentage discount cannot exceed 100")
        return self


class PromotionUpdate(APIModel):
    name: Optional[str] = Field(None, max_length=150)
    description: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = Field(None, gt=0)
    usage_limit: Optional[int] = Field(None, ge=1)
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class PromotionResponse(APIModel):
    id: int
    name: str
    description: Optional[str] = None
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    usage_limit: Optional[int] = None
    used_count: int
    start_date: date
    end_date: date
    is_active: bool


class PromoCodeValidate(APIModel):
    code: str
    amount: Optional[Decimal] = Field(None, ge=0)


class PromoCodeValidation(APIModel):
    valid: bool
    promotion: PromotionResponse
    discount_amount: Decimal
    final_amount: Optional[Decimal] = None


class PromotionStats(APIModel):
    total: int
    active: int
    expired: int
    total_usage: int


# ============== 支付 ==============

class PaymentCreate(APIModel):
    reservation_id: int
    amount: Decimal = Field(..., gt=0)
    method: PaymentMethod = PaymentMethod.CASH
    reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class InvoiceResponse(APIModel):
    id: int
    number: str
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal
    status: InvoiceStatus


class PaymentResponse(APIModel):
    id: int
    reservation_id: Optional[int] = None
    amount: Decimal
    method: PaymentMethod
    status: PaymentStatus
    reference: Optional[str] = None
    notes: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    invoice: Optional[InvoiceResponse] = None


class PaymentComplete(APIModel):
    reference: Optional[str] = Field(None, max_length=100)


class PaymentRefund(APIModel):
    reason: str = Field(..., min_length=1)
    amount: Optional[Decimal] = Field(None, gt=0)


class PaymentWebhook(APIModel):
    payment_id: int
    status: PaymentStatus
    reference: Optional[str] = None


# ============== 通知 / 短信 ==============

class NotificationResponse(APIModel):
    id: int
    title: str
    message: str
    type: NotificationType
    data: Optional[Dict[str, Any]] = None
    is_read: bool
    created_at: datetime


class UnreadCount(APIModel):
    count: int


class SmsUsageResponse(APIModel):
    sent_count: int
    quota: int
    month: str
