"""
本体对象定义 (ORM)
租户根 (Center)、目录 (Category, Holiday)、身份 (User, Client, Vehicle)、
预约聚合及其时段锁、支付、促销、站内通知、短信用量和事件发件箱
"""
from datetime import datetime
from enum import Enum
from sqlalchemy import (
    Column, Integer, String, DateTime, Date, Time, JSON,
    ForeignKey, Text, Enum as SQLEnum, Boolean, Numeric,
    UniqueConstraint, Index,
)
from sqlalchemy.orm import relationship
from app.database import Base


# ============== 枚举定义 ==============

class UserRole(str, Enum):
    """平台角色（封闭集合）"""
    SUPER_ADMIN = "SUPER_ADMIN"
    CT_ADMIN = "CT_ADMIN"
    EMPLOYEE = "EMPLOYEE"
    CLIENT = "CLIENT"


class ReservationStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class InspectionResult(str, Enum):
    PASSED = "PASSED"
    FAILED = "FAILED"
    CONDITIONAL = "CONDITIONAL"


class ClientType(str, Enum):
    NORMAL = "NORMAL"
    PROFESSIONAL = "PROFESSIONAL"


class VehicleType(str, Enum):
    CAR = "CAR"
    MOTORCYCLE = "MOTORCYCLE"
    UTILITY = "UTILITY"
    OTHER = "OTHER"


class DiscountType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    CARD = "CARD"
    TRANSFER = "TRANSFER"
    ONLINE = "ONLINE"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class InvoiceStatus(str, Enum):
    DRAFT = "DRAFT"
    ISSUED = "ISSUED"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class NotificationType(str, Enum):
    SYSTEM = "SYSTEM"
    RESERVATION = "RESERVATION"
    PAYMENT = "PAYMENT"
    HOLIDAY = "HOLIDAY"
    PROMOTION = "PROMOTION"


class OutboxStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"


# ============== 租户 ==============

class Center(Base):
    """
    检验中心 - 租户根
    opening_hours: {"monday": {"open": "08:00", "close": "18:00", "closed": false}, ...}
    """
    __tablename__ = "centers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(150), nullable=False)
    email = Column(String(150))
    phone = Column(String(30))
    address = Column(Text)
    timezone = Column(String(64), nullable=False, default="Europe/Paris")
    currency = Column(String(3), nullable=False, default="EUR")
    opening_hours = Column(JSON, nullable=False, default=dict)
    owner_id = Column(Integer, ForeignKey("users.id", use_alter=True, name="fk_centers_owner_id"))
    sms_enabled = Column(Boolean, default=True)
    sms_api_key = Column(String(255))
    sms_sender_name = Column(String(11))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner = relationship("User", foreign_keys=[owner_id], post_update=True)


class User(Base):
    """平台账号，SUPER_ADMIN 不属于任何中心"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(150), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False, default="")
    phone = Column(String(30))
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.EMPLOYEE)
    center_id = Column(Integer, ForeignKey("centers.id"), index=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    center = relationship("Center", foreign_keys=[center_id])

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


# ============== 目录 ==============

class Category(Base):
    """中心提供的检验类别，duration 决定占用时长"""
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    center_id = Column(Integer, ForeignKey("centers.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text)
    duration = Column(Integer, nullable=False, default=30)  # minutes
    price = Column(Numeric(10, 2), nullable=False, default=0)
    color = Column(String(20))
    is_active = Column(Boolean, default=True)
    sort_order = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime)


class Holiday(Base):
    """休息日或闭区间日期范围"""
    __tablename__ = "holidays"

    id = Column(Integer, primary_key=True, index=True)
    center_id = Column(Integer, ForeignKey("centers.id"), nullable=False, index=True)
    name = Column(String(150), nullable=False)
    date = Column(Date, nullable=False)
    end_date = Column(Date)
    is_recurring = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)


# ============== 客户与车辆 ==============

class Client(Base):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)
    center_id = Column(Integer, ForeignKey("centers.id"), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False, default="")
    phone = Column(String(30), index=True)
    email = Column(String(150), index=True)
    type = Column(SQLEnum(ClientType), default=ClientType.NORMAL)
    address = Column(Text)
    notes = Column(Text)
    last_activity_at = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime)

    vehicles = relationship("Vehicle", back_populates="client")
    reservations = relationship("Reservation", back_populates="client")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, index=True)
    center_id = Column(Integer, ForeignKey("centers.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    plate_number = Column(String(20), nullable=False, index=True)
    brand = Column(String(60))
    model = Column(String(60))
    year = Column(Integer)
    type = Column(SQLEnum(VehicleType), default=VehicleType.CAR)
    mileage = Column(Integer)
    # 最近一次检验快照，预约完成时写入
    last_inspection_date = Column(Date)
    last_inspection_result = Column(SQLEnum(InspectionResult))
    next_inspection_due = Column(Date)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime)

    client = relationship("Client", back_populates="vehicles")

    @property
    def description(self) -> str:
        parts = [p for p in (self.brand, self.model) if p]
        label = " ".join(parts)
        return f"{label} ({self.plate_number})" if label else self.plate_number


# ============== 预约 ==============

class Reservation(Base):
    """
    预约聚合
    end_time 在预约时根据类别时长确定
    """
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True, index=True)
    booking_code = Column(String(20), unique=True, nullable=False)
    center_id = Column(Integer, ForeignKey("centers.id"), nullable=False)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    employee_id = Column(Integer, ForeignKey("users.id"))
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    status = Column(SQLEnum(ReservationStatus), nullable=False, default=ReservationStatus.PENDING)
    result = Column(SQLEnum(InspectionResult))
    report = Column(JSON)
    notes = Column(Text)
    created_by = Column(Integer, ForeignKey("users.id"))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime)

    client = relationship("Client", back_populates="reservations")
    vehicle = relationship("Vehicle")
    category = relationship("Category")
    employee = relationship("User", foreign_keys=[employee_id])
    slot_locks = relationship(
        "ReservationSlotLock", back_populates="reservation", cascade="all, delete-orphan"
    )
    payments = relationship("Payment", back_populates="reservation")

    __table_args__ = (
        Index("ix_reservations_center_date", "center_id", "date"),
    )


class ReservationSlotLock(Base):
    """
    有效预约每占用一分钟对应一行
    唯一键在存储层杜绝重叠预约
    """
    __tablename__ = "reservation_slot_locks"

    id = Column(Integer, primary_key=True)
    reservation_id = Column(Integer, ForeignKey("reservations.id", ondelete="CASCADE"), nullable=False, index=True)
    center_id = Column(Integer, nullable=False)
    date = Column(Date, nullable=False)
    minute = Column(Integer, nullable=False)  # minutes since midnight

    reservation = relationship("Reservation", back_populates="slot_locks")

    __table_args__ = (
        UniqueConstraint("center_id", "date", "minute", name="uq_slot_lock_center_date_minute"),
    )


# ============== 支付与发票 ==============

class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    center_id = Column(Integer, ForeignKey("centers.id"), nullable=False, index=True)
    reservation_id = Column(Integer, ForeignKey("reservations.id"), index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    method = Column(SQLEnum(PaymentMethod), nullable=False, default=PaymentMethod.CASH)
    status = Column(SQLEnum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    reference = Column(String(100))
    notes = Column(Text)
    paid_at = Column(DateTime)
    created_by = Column(Integer, ForeignKey("users.id"))
    created_at = Column(DateTime, default=datetime.utcnow)

    reservation = relationship("Reservation", back_populates="payments")
    invoice = relationship("Invoice", back_populates="payment", uselist=False)


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    center_id = Column(Integer, ForeignKey("centers.id"), nullable=False, index=True)
    payment_id = Column(Integer, ForeignKey("payments.id"), unique=True)
    client_id = Column(Integer, ForeignKey("clients.id"))
    number = Column(String(30), nullable=False)
    subtotal = Column(Numeric(10, 2), nullable=False)
    tax_rate = Column(Numeric(5, 2), nullable=False, default=20)
    tax_amount = Column(Numeric(10, 2), nullable=False, default=0)
    total = Column(Numeric(10, 2), nullable=False)
    status = Column(SQLEnum(InvoiceStatus), nullable=False, default=InvoiceStatus.ISSUED)
    created_at = Column(DateTime, default=datetime.utcnow)

    payment = relationship("Payment", back_populates="invoice")

    __table_args__ = (
        UniqueConstraint("center_id", "number", name="uq_invoice_center_number"),
    )


# ============== 促销 ==============

class Promotion(Base):
    __tablename__ = "promotions"

    id = Column(Integer, primary_key=True, index=True)
    center_id = Column(Integer, ForeignKey("centers.id"), nullable=False, index=True)
    name = Column(String(150), nullable=False)
    description = Column(Text)
    code = Column(String(50), nullable=False)
    discount_type = Column(SQLEnum(DiscountType), nullable=False, default=DiscountType.PERCENTAGE)
    discount_value = Column(Numeric(10, 2), nullable=False)
    usage_limit = Column(Integer)
    used_count = Column(Integer, nullable=False, default=0)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime)


# ============== 通知 ==============

class Notification(Base):
    """站内通知"""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(SQLEnum(NotificationType), nullable=False, default=NotificationType.SYSTEM)
    data = Column(JSON)
    is_read = Column(Boolean, default=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)


class SmsUsage(Base):
    """每个中心的月度短信计数，month 取当月第一天"""
    __tablename__ = "sms_usage"

    id = Column(Integer, primary_key=True)
    center_id = Column(Integer, ForeignKey("centers.id"), nullable=False)
    month = Column(Date, nullable=False)
    sent_count = Column(Integer, nullable=False, default=0)
    quota = Column(Integer, nullable=False, default=100)

    __table_args__ = (
        UniqueConstraint("center_id", "month", name="uq_sms_usage_center_month"),
    )


# ============== 发件箱 ==============

class OutboxEvent(Base):
    """与状态变更在同一事务中写入的领域事件"""
    __tablename__ = "outbox_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_type = Column(String(64), nullable=False, index=True)
    payload = Column(JSON, nullable=False)
    center_id = Column(Integer)
    status = Column(SQLEnum(OutboxStatus), nullable=False, default=OutboxStatus.PENDING, index=True)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    processed_at = Column(DateTime)
