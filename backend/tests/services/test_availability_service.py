"""
可用时段服务测试
"""
import pytest
from datetime import time, timedelta

from app.models.ontology import Holiday
from app.services.availability_service import AvailabilityService
from app.services.errors import NotFoundError
from conftest import next_weekday


def _free(slots):
    return [s.start_time.strftime("%H:%M") for s in slots if s.is_available]


class TestAvailableSlots:
    """Slot listing for one day"""

    def test_open_day_is_partitioned(self, db_session, center, booking_day):
        slots = AvailabilityService(db_session).get_available_slots(center.id, booking_day)
        assert len(slots) == 20  # 08:00-18:00 in 30 minute slots
        assert slots[0].start_time == time(8, 0)
        assert slots[-1].end_time == time(18, 0)
        assert all(s.is_available for s in slots)

    def test_closed_weekday_has_no_slots(self, db_session, center):
        sunday = next_weekday(6)
        assert AvailabilityService(db_session).get_available_slots(center.id, sunday) == []

    def test_saturday_short_day(self, db_session, center):
        saturday = next_weekday(5)
        slots = AvailabilityService(db_session).get_available_slots(center.id, saturday)
        assert len(slots) == 8
        assert slots[-1].end_time == time(12, 0)

    def test_holiday_has_no_slots(self, db_session, center, booking_day):
        db_session.add(Holiday(center_id=center.id, name="Fermeture", date=booking_day, is_active=True))
        db_session.commit()
        assert AvailabilityService(db_session).get_available_slots(center.id, booking_day) == []

    def test_inactive_holiday_is_ignored(self, db_session, center, booking_day):
        db_session.add(Holiday(center_id=center.id, name="Fermeture", date=booking_day, is_active=False))
        db_session.commit()
        assert AvailabilityService(db_session).get_available_slots(center.id, booking_day) != []

    def test_booked_interval_is_marked(self, db_session, center, booking_day, book):
        book("09:00")
        slots = AvailabilityService(db_session).get_available_slots(center.id, booking_day)
        taken = [s.start_time.strftime("%H:%M") for s in slots if not s.is_available]
        assert taken == ["09:00"]

    def test_cancelled_reservation_frees_the_slot(self, db_session, center, booking_day, book):
        from app.services.lifecycle_service import LifecycleService
        reservation = book("09:00")
        LifecycleService(db_session).cancel(center.id, reservation.id, "test")
        slots = AvailabilityService(db_session).get_available_slots(center.id, booking_day)
        assert all(s.is_available for s in slots)

    def test_category_duration_probes_following_slot(self, db_session, center, booking_day,
                                                     book, long_category):
        book("09:00")
        slots = AvailabilityService(db_session).get_available_slots(
            center.id, booking_day, long_category.id
        )
        free = _free(slots)
        assert "08:00" in free
        assert "08:30" not in free  # 60 minutes would run into 09:00
        assert "09:00" not in free
        assert "09:30" in free

    def test_category_duration_must_fit_before_closing(self, db_session, center, booking_day, long_category):
        slots = AvailabilityService(db_session).get_available_slots(
            center.id, booking_day, long_category.id
        )
        free = _free(slots)
        assert free[-1] == "17:00"
        assert "17:30" not in free
        assert slots[-1].start_time == time(17, 30)

    def test_unknown_category(self, db_session, center, booking_day):
        with pytest.raises(NotFoundError):
            AvailabilityService(db_session).get_available_slots(center.id, booking_day, 9999)

    def test_other_center_category_is_unknown(self, db_session, center, other_center, booking_day, category):
        with pytest.raises(NotFoundError):
            AvailabilityService(db_session).get_available_slots(other_center.id, booking_day, category.id)

    def test_other_center_bookings_do_not_block(self, db_session, other_center, booking_day, book):
        book("09:00")
        slots = AvailabilityService(db_session).get_available_slots(other_center.id, booking_day)
        assert all(s.is_available for s in slots)

    def test_unknown_center(self, db_session, booking_day):
        with pytest.raises(NotFoundError):
            AvailabilityService(db_session).get_available_slots(9999, booking_day)


class TestConflicts:
    """Overlap lookup used by the booking engine"""

    def test_touching_intervals_do_not_conflict(self, db_session, center, booking_day, book):
        book("09:00")
        service = AvailabilityService(db_session)
        assert service.find_conflict(center.id, booking_day, time(9, 30), time(10, 0)) is None
        assert service.find_conflict(center.id, booking_day, time(8, 30), time(9, 0)) is None

    def test_overlap_is_found(self, db_session, center, booking_day, book):
        reservation = book("09:00")
        found = AvailabilityService(db_session).find_conflict(
            center.id, booking_day, time(9, 15), time(9, 45)
        )
        assert found.id == reservation.id

    def test_excluded_reservation_is_ignored(self, db_session, center, booking_day, book):
        reservation = book("09:00")
        assert AvailabilityService(db_session).find_conflict(
            center.id, booking_day, time(9, 0), time(9, 30), exclude_id=reservation.id
        ) is None

    def test_busy_intervals(self, db_session, center, booking_day, book):
        book("09:00")
        book("14:30")
        busy = AvailabilityService(db_session).busy_intervals(center.id, booking_day)
        assert sorted(busy) == [(540, 570), (870, 900)]
        assert AvailabilityService(db_session).busy_intervals(center.id, booking_day + timedelta(days=1)) == []
