"""
节假日服务测试 - 休息日与级联取消
"""
import pytest
from datetime import date, timedelta

from app.models.events import EventType
from app.models.ontology import Holiday, OutboxEvent, ReservationStatus
from app.models.schemas import HolidayCreate, HolidayUpdate, ReservationCreate
from app.services.errors import NotFoundError, ValidationError
from app.services.holiday_service import (
    HolidayService, easter_sunday, french_public_holidays, holiday_covers,
)
from app.services.lifecycle_service import LifecycleService
from app.services.reservation_service import ReservationService


class TestCalendar:

    @pytest.mark.parametrize("year,expected", [
        (2024, date(2024, 3, 31)),
        (2025, date(2025, 4, 20)),
        (2026, date(2026, 4, 5)),
        (2038, date(2038, 4, 25)),
    ])
    def test_easter(self, year, expected):
        assert easter_sunday(year) == expected

    def test_french_holidays(self):
        holidays = {name: (day, recurring) for name, day, recurring in french_public_holidays(2025)}
        assert len(holidays) == 11
        assert holidays["Lundi de Pâques"] == (date(2025, 4, 21), False)
        assert holidays["Ascension"] == (date(2025, 5, 29), False)
        assert holidays["Lundi de Pentecôte"] == (date(2025, 6, 9), False)
        assert holidays["Noël"] == (date(2025, 12, 25), True)

    def test_recurring_matches_other_years(self):
        christmas = Holiday(name="Noël", date=date(2020, 12, 25), is_recurring=True)
        assert holiday_covers(christmas, date(2031, 12, 25))
        assert not holiday_covers(christmas, date(2031, 12, 26))

    def test_recurring_range_over_new_year(self):
        winter = Holiday(name="Hiver", date=date(2020, 12, 30), end_date=date(2021, 1, 2), is_recurring=True)
        assert holiday_covers(winter, date(2031, 12, 31))
        assert holiday_covers(winter, date(2032, 1, 2))
        assert not holiday_covers(winter, date(2032, 1, 3))

    def test_one_off_range_is_inclusive(self):
        closure = Holiday(name="Travaux", date=date(2030, 3, 4), end_date=date(2030, 3, 6), is_recurring=False)
        assert holiday_covers(closure, date(2030, 3, 4))
        assert holiday_covers(closure, date(2030, 3, 6))
        assert not holiday_covers(closure, date(2031, 3, 5))


class TestHolidayFor:

    def test_range_lookup(self, db_session, center):
        db_session.add(Holiday(center_id=center.id, name="Travaux", date=date(2030, 3, 4),
                               end_date=date(2030, 3, 6), is_active=True))
        db_session.commit()
        service = HolidayService(db_session)
        assert service.holiday_for(center.id, date(2030, 3, 5)).name == "Travaux"
        assert service.holiday_for(center.id, date(2030, 3, 7)) is None

    def test_recurring_lookup(self, db_session, center):
        db_session.add(Holiday(center_id=center.id, name="Fête Nationale", date=date(2000, 7, 14),
                               is_recurring=True, is_active=True))
        db_session.commit()
        assert HolidayService(db_session).holiday_for(center.id, date(2030, 7, 14)).name == "Fête Nationale"

    def test_scoped_to_center(self, db_session, center, other_center):
        db_session.add(Holiday(center_id=other_center.id, name="Lyon", date=date(2030, 3, 4), is_active=True))
        db_session.commit()
        assert HolidayService(db_session).holiday_for(center.id, date(2030, 3, 4)) is None


class TestCascade:
    """Creating a holiday cancels the reservations it covers"""

    def test_cancels_covered_reservations(self, db_session, center, book, booking_day):
        morning = book("09:00")
        afternoon = book("15:00")
        next_day = book("09:00", day=booking_day + timedelta(days=1))

        holiday, cancelled = HolidayService(db_session).create_holiday(
            center.id, HolidayCreate(name="Fermeture exceptionnelle", date=booking_day)
        )

        assert sorted(cancelled) == sorted([morning.id, afternoon.id])
        for reservation in (morning, afternoon):
            db_session.refresh(reservation)
            assert reservation.status == ReservationStatus.CANCELLED
            assert "Holiday: Fermeture exceptionnelle" in reservation.notes
            assert reservation.slot_locks == []
        db_session.refresh(next_day)
        assert next_day.status == ReservationStatus.CONFIRMED

    def test_range_cascade(self, db_session, center, book, booking_day):
        ids = [book("09:00", day=booking_day + timedelta(days=d)).id for d in range(3)]
        _, cancelled = HolidayService(db_session).create_holiday(
            center.id,
            HolidayCreate(name="Inventaire", date=booking_day, end_date=booking_day + timedelta(days=1)),
        )
        assert sorted(cancelled) == ids[:2]

    def test_recurring_holiday_cancels_later_years(self, db_session, center, book):
        this_year = book("09:00", day=date(2030, 6, 3))
        next_year = book("09:00", day=date(2031, 6, 3))
        day_after = book("09:00", day=date(2030, 6, 4))

        _, cancelled = HolidayService(db_session).create_holiday(
            center.id, HolidayCreate(name="Fête locale", date=date(2029, 6, 3), is_recurring=True)
        )

        assert cancelled == [this_year.id, next_year.id]
        db_session.refresh(day_after)
        assert day_after.status == ReservationStatus.CONFIRMED

    def test_one_off_holiday_ignores_later_years(self, db_session, center, book):
        reservation = book("09:00", day=date(2030, 6, 3))
        _, cancelled = HolidayService(db_session).create_holiday(
            center.id, HolidayCreate(name="Fête locale", date=date(2029, 6, 3))
        )
        assert cancelled == []
        db_session.refresh(reservation)
        assert reservation.status == ReservationStatus.CONFIRMED

    def test_events_recorded(self, db_session, center, book, booking_day):
        reservation = book("09:00")
        holiday, _ = HolidayService(db_session).create_holiday(
            center.id, HolidayCreate(name="Fermeture", date=booking_day)
        )
        created = db_session.query(OutboxEvent).filter(
            OutboxEvent.event_type == EventType.HOLIDAY_CREATED.value
        ).one()
        assert created.payload["holiday_id"] == holiday.id
        assert created.payload["cancelled_reservation_ids"] == [reservation.id]

        changed = db_session.query(OutboxEvent).filter(
            OutboxEvent.event_type == EventType.RESERVATION_STATUS_CHANGED.value
        ).one()
        assert changed.payload["cause"] == "holiday"
        assert changed.payload["new_status"] == "CANCELLED"

    def test_leaves_other_centers_alone(self, db_session, center, other_center, book, booking_day):
        reservation = book("09:00")
        _, cancelled = HolidayService(db_session).create_holiday(
            other_center.id, HolidayCreate(name="Lyon", date=booking_day)
        )
        assert cancelled == []
        db_session.refresh(reservation)
        assert reservation.status == ReservationStatus.CONFIRMED

    def test_skips_final_and_in_progress(self, db_session, center, book, booking_day):
        started = book("09:00")
        withdrawn = book("10:00")
        lifecycle = LifecycleService(db_session)
        lifecycle.change_status(center.id, started.id, ReservationStatus.IN_PROGRESS)
        lifecycle.cancel(center.id, withdrawn.id)

        _, cancelled = HolidayService(db_session).create_holiday(
            center.id, HolidayCreate(name="Fermeture", date=booking_day)
        )
        assert cancelled == []
        db_session.refresh(started)
        assert started.status == ReservationStatus.IN_PROGRESS

    def test_pending_reservations_are_cancelled(self, db_session, center, client_user, client_record,
                                                vehicle, category, booking_day):
        pending = ReservationService(db_session).create_for_client(
            center.id,
            ReservationCreate(client_id=client_record.id, vehicle_id=vehicle.id,
                              category_id=category.id, date=booking_day, start_time="09:00"),
            client_user,
        )
        _, cancelled = HolidayService(db_session).create_holiday(
            center.id, HolidayCreate(name="Fermeture", date=booking_day)
        )
        assert cancelled == [pending.id]

    def test_holiday_blocks_new_bookings(self, db_session, center, book, booking_day):
        HolidayService(db_session).create_holiday(center.id, HolidayCreate(name="Fermeture", date=booking_day))
        with pytest.raises(ValidationError):
            book("09:00")


class TestHolidayCrud:

    def test_list_filters(self, db_session, center):
        service = HolidayService(db_session)
        service.create_holiday(center.id, HolidayCreate(name="A", date=date(2030, 3, 4)))
        service.create_holiday(center.id, HolidayCreate(name="B", date=date(2030, 5, 8)))
        inactive, _ = service.create_holiday(center.id, HolidayCreate(name="C", date=date(2031, 1, 2)))
        service.toggle_holiday(center.id, inactive.id)

        assert [h.name for h in service.list_holidays(center.id)] == ["A", "B"]
        assert [h.name for h in service.list_holidays(center.id, year=2030, month=5)] == ["B"]
        assert len(service.list_holidays(center.id, include_inactive=True)) == 3

    def test_update_rejects_inverted_range(self, db_session, center):
        service = HolidayService(db_session)
        holiday, _ = service.create_holiday(center.id, HolidayCreate(name="A", date=date(2030, 3, 4)))
        with pytest.raises(ValidationError):
            service.update_holiday(center.id, holiday.id, HolidayUpdate(end_date=date(2030, 3, 1)))
        updated = service.update_holiday(center.id, holiday.id, HolidayUpdate(end_date=date(2030, 3, 6)))
        assert updated.end_date == date(2030, 3, 6)

    def test_delete_and_not_found(self, db_session, center, other_center):
        service = HolidayService(db_session)
        holiday, _ = service.create_holiday(center.id, HolidayCreate(name="A", date=date(2030, 3, 4)))
        with pytest.raises(NotFoundError):
            service.get_holiday(other_center.id, holiday.id)
        service.delete_holiday(center.id, holiday.id)
        with pytest.raises(NotFoundError):
            service.get_holiday(center.id, holiday.id)

    def test_import_public_holidays(self, db_session, center):
        service = HolidayService(db_session)
        service.create_holiday(center.id, HolidayCreate(name="Noël", date=date(2030, 12, 25)))
        created = service.import_public_holidays(center.id, 2030)
        assert len(created) == 10
        assert len(service.import_public_holidays(center.id, 2030)) == 0

    def test_import_year_range(self, db_session, center):
        with pytest.raises(ValidationError):
            HolidayService(db_session).import_public_holidays(center.id, 1800)
