"""
Tests for the settings and user services
"""
import pytest

from app.models.ontology import UserRole
from app.models.schemas import CenterUpdate, DayHours, OpeningHoursUpdate, UserCreate
from app.services.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from app.services.settings_service import SettingsService, default_opening_hours
from app.services.user_service import UserService


class TestSettingsService:

    def test_default_hours(self):
        hours = default_opening_hours()
        assert hours["monday"] == {"open": "08:00", "close": "18:00", "closed": False}
        assert hours["saturday"]["close"] == "12:00"
        assert hours["sunday"]["closed"] is True

    def test_update_center(self, db_session, center):
        updated = SettingsService(db_session).update_center(
            center.id, CenterUpdate(name="CT Paris Nord-Est", currency="chf", timezone="Europe/Zurich")
        )
        assert updated.name == "CT Paris Nord-Est"
        assert updated.currency == "CHF"
        assert updated.timezone == "Europe/Zurich"

    def test_unknown_timezone(self, db_session, center):
        with pytest.raises(ValidationError):
            SettingsService(db_session).update_center(center.id, CenterUpdate(timezone="Mars/Olympus"))

    def test_opening_hours_merge(self, db_session, center):
        hours = SettingsService(db_session).update_opening_hours(center.id, OpeningHoursUpdate(days={
            "saturday": DayHours(closed=True),
            "monday": DayHours(open="07:30", close="19:00"),
        }))
        assert hours["saturday"]["closed"] is True
        assert hours["monday"] == {"open": "07:30", "close": "19:00", "closed": False}
        assert hours["tuesday"] == {"open": "08:00", "close": "18:00", "closed": False}
        db_session.refresh(center)
        assert center.opening_hours["monday"]["open"] == "07:30"

    def test_day_hours_validation(self):
        with pytest.raises(ValueError):
            DayHours(open="18:00", close="08:00")
        with pytest.raises(ValueError):
            DayHours(open="08:00")
        with pytest.raises(ValueError):
            OpeningHoursUpdate(days={"funday": DayHours(closed=True)})

    def test_unknown_center(self, db_session):
        with pytest.raises(NotFoundError):
            SettingsService(db_session).get_opening_hours(9999)


class TestUserService:

    def test_authenticate(self, db_session, admin_user):
        result = UserService(db_session).authenticate("ADMIN@ct-paris.fr ", "secret123")
        assert result["user"].id == admin_user.id
        assert result["token_type"] == "bearer"
        assert result["access_token"]

    def test_bad_password(self, db_session, admin_user):
        assert UserService(db_session).authenticate("admin@ct-paris.fr", "wrong") is None
        assert UserService(db_session).authenticate("nobody@ct-paris.fr", "secret123") is None

    def test_disabled_account(self, db_session, admin_user, employee_user):
        UserService(db_session).set_active(admin_user.center_id, employee_user.id, False, admin_user)
        with pytest.raises(AuthorizationError):
            UserService(db_session).authenticate("tech@ct-paris.fr", "secret123")

    def test_admin_creates_employee(self, db_session, center, admin_user):
        user = UserService(db_session).create_user(center.id, UserCreate(
            email="New.Tech@CT-Paris.fr", password="secret123", first_name="Nina", role=UserRole.EMPLOYEE,
        ), admin_user)
        assert user.email == "new.tech@ct-paris.fr"
        assert user.center_id == center.id
        assert UserService(db_session).authenticate("new.tech@ct-paris.fr", "secret123") is not None

    def test_admin_cannot_create_admin(self, db_session, center, admin_user):
        with pytest.raises(AuthorizationError):
            UserService(db_session).create_user(center.id, UserCreate(
                email="boss@ct-paris.fr", password="secret123", first_name="Boss", role=UserRole.CT_ADMIN,
            ), admin_user)

    def test_super_admin_creates_center_admin(self, db_session, center, super_admin):
        user = UserService(db_session).create_user(center.id, UserCreate(
            email="boss@ct-paris.fr", password="secret123", first_name="Boss", role=UserRole.CT_ADMIN,
        ), super_admin)
        assert user.role == UserRole.CT_ADMIN
        with pytest.raises(AuthorizationError):
            UserService(db_session).create_user(center.id, UserCreate(
                email="root2@agendact.com", password="secret123", first_name="Root",
                role=UserRole.SUPER_ADMIN,
            ), super_admin)

    def test_duplicate_email(self, db_session, center, admin_user, employee_user):
        with pytest.raises(ConflictError):
            UserService(db_session).create_user(center.id, UserCreate(
                email="TECH@ct-paris.fr", password="secret123", first_name="Bis",
            ), admin_user)

    def test_cannot_disable_self(self, db_session, center, admin_user):
        with pytest.raises(AuthorizationError):
            UserService(db_session).set_active(center.id, admin_user.id, False, admin_user)

    def test_users_of_center_only(self, db_session, center, other_center, admin_user, employee_user):
        service = UserService(db_session)
        assert {u.id for u in service.get_users(center.id)} == {admin_user.id, employee_user.id}
        assert [u.id for u in service.get_users(center.id, role=UserRole.EMPLOYEE)] == [employee_user.id]
        assert service.get_users(other_center.id) == []
        with pytest.raises(NotFoundError):
            service.get_user(other_center.id, employee_user.id)
