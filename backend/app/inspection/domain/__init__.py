"""
app/inspection/domain/__init__.py

检验领域层 - 时段计算、预约编号、预约生命周期
"""
from app.inspection.domain.slots import (
    DayWindow,
    Slot,
    day_window,
    generate_slots,
    overlaps,
    parse_hhmm,
    to_minutes,
    from_minutes,
    weekday_key,
)
from app.inspection.domain.booking_code import generate_booking_code, issue_booking_code
from app.inspection.domain.reservation import (
    CANCELLABLE_STATUSES,
    RESERVATION_STATE_MACHINE,
    ReservationEntity,
    occupies_slot,
)
