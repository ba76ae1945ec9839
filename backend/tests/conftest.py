"""
Pytest 配置和共享 fixtures
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from datetime import date, timedelta
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from app.database import Base, get_db
from app.models import ontology  # noqa: F401
from app.models.ontology import (
    Category, Center, Client, User, UserRole, Vehicle,
)
from app.models.schemas import ReservationCreate
from app.security.auth import get_password_hash, create_access_token
from app.services.outbox import get_event_dispatcher
from app.services.reservation_service import ReservationService
from app.services.settings_service import default_opening_hours
from app.main import app


def next_weekday(weekday: int, min_days: int = 2) -> date:
    """至少 min_days 天之后、落在指定星期几的第一个日期（0 = 周一）"""
    day = date.today() + timedelta(days=min_days)
    while day.weekday() != weekday:
        day += timedelta(days=1)
    return day


class NullDispatcher:
    """派发器替身：API 测试只断言发件箱行，不执行处理器"""

    def __init__(self):
        self.calls = 0

    def dispatch_pending(self) -> int:
        self.calls += 1
        return 0

    def dispatch_all(self) -> int:
        self.calls += 1
        return 0


@pytest.fixture(scope="function")
def db_engine():
    """内存数据库引擎"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def null_dispatcher():
    return NullDispatcher()


@pytest.fixture(scope="function")
def client(db_session, null_dispatcher):
    """绑定测试会话的测试客户端"""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_event_dispatcher] = lambda: null_dispatcher
    yield TestClient(app)
    app.dependency_overrides.clear()


# ============== Tenant fixtures ==============

def _make_user(db_session, email, role, center=None, first_name="Test"):
    user = User(
        email=email,
        password_hash=get_password_hash("secret123"),
        first_name=first_name,
        last_name="User",
        role=role,
        center_id=center.id if center else None,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def center(db_session):
    """周一至周五 08:00-18:00，周六 08:00-12:00，周日休息"""
    center = Center(
        name="CT Paris Nord",
        email="contact@ct-paris.fr",
        phone="0102030405",
        timezone="Europe/Paris",
        currency="EUR",
        opening_hours=default_opening_hours(),
        sms_enabled=True,
        sms_api_key="center-key",
    )
    db_session.add(center)
    db_session.commit()
    db_session.refresh(center)
    return center


@pytest.fixture
def other_center(db_session):
    center = Center(name="CT Lyon", timezone="Europe/Paris", currency="EUR",
                    opening_hours=default_opening_hours())
    db_session.add(center)
    db_session.commit()
    db_session.refresh(center)
    return center


@pytest.fixture
def admin_user(db_session, center):
    """中心的 CT_ADMIN 兼所有者"""
    user = _make_user(db_session, "admin@ct-paris.fr", UserRole.CT_ADMIN, center, "Alice")
    center.owner_id = user.id
    db_session.commit()
    return user


@pytest.fixture
def employee_user(db_session, center):
    return _make_user(db_session, "tech@ct-paris.fr", UserRole.EMPLOYEE, center, "Bruno")


@pytest.fixture
def client_user(db_session, center, client_record):
    """与 client_record 邮箱相同的 CLIENT 账号"""
    return _make_user(db_session, client_record.email, UserRole.CLIENT, center, "Jean")


@pytest.fixture
def super_admin(db_session):
    return _make_user(db_session, "root@agendact.com", UserRole.SUPER_ADMIN)


def _headers(user):
    token = create_access_token(user.id, user.role, user.center_id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin_user):
    return _headers(admin_user)


@pytest.fixture
def employee_headers(employee_user):
    return _headers(employee_user)


@pytest.fixture
def client_headers(client_user):
    return _headers(client_user)


@pytest.fixture
def super_admin_headers(super_admin):
    return _headers(super_admin)


# ============== Entity fixtures ==============

@pytest.fixture
def category(db_session, center):
    category = Category(center_id=center.id, name="Contrôle technique", duration=30,
                        price=Decimal("78.00"), is_active=True, sort_order=0)
    db_session.add(category)
    db_session.commit()
    db_session.refresh(category)
    return category


@pytest.fixture
def long_category(db_session, center):
    category = Category(center_id=center.id, name="Contrôle utilitaire", duration=60,
                        price=Decimal("120.00"), is_active=True, sort_order=1)
    db_session.add(category)
    db_session.commit()
    db_session.refresh(category)
    return category


@pytest.fixture
def client_record(db_session, center):
    client = Client(center_id=center.id, first_name="Jean", last_name="Dupont",
                    phone="0601020304", email="jean.dupont@example.com")
    db_session.add(client)
    db_session.commit()
    db_session.refresh(client)
    return client


@pytest.fixture
def vehicle(db_session, center, client_record):
    vehicle = Vehicle(center_id=center.id, client_id=client_record.id, plate_number="AB123CD",
                      brand="Peugeot", model="208")
    db_session.add(vehicle)
    db_session.commit()
    db_session.refresh(vehicle)
    return vehicle


@pytest.fixture
def booking_day():
    """足够远的周一，任何时区下都可预约"""
    return next_weekday(0)


@pytest.fixture
def book(db_session, center, admin_user, client_record, vehicle, category, booking_day):
    """工厂函数：通过预约引擎以员工身份创建预约"""
    def _book(start_time="09:00", day=None, category_id=None, employee_id=None):
        return ReservationService(db_session).create_reservation(
            center.id,
            ReservationCreate(
                client_id=client_record.id,
                vehicle_id=vehicle.id,
                category_id=category_id or category.id,
                employee_id=employee_id,
                date=day or booking_day,
                start_time=start_time,
            ),
            admin_user,
        )
    return _book
