"""
Tests for core.engine.event_bus
"""
import pytest
from datetime import datetime
from core.engine.event_bus import Event, EventBus, event_bus


@pytest.fixture
def bus():
    bus = EventBus()
    bus.clear()
    yield bus
    bus.clear()


def _event(event_type="reservation.created", **data):
    return Event(event_type=event_type, timestamp=datetime.now(), data=data)


def test_event_defaults():
    event = _event(reservation_id=1)
    assert event.source == ""
    assert event.event_id
    assert event.data == {"reservation_id": 1}


def test_event_bus_singleton():
    assert EventBus() is EventBus()
    assert event_bus is EventBus()


def test_handlers_run_in_registration_order(bus):
    calls = []
    bus.subscribe("reservation.created", lambda e: calls.append("first"))
    bus.subscribe("reservation.created", lambda e: calls.append("second"))

    result = bus.publish(_event())

    assert calls == ["first", "second"]
    assert result.subscriber_count == 2
    assert result.ok


def test_failing_handler_does_not_stop_the_others(bus):
    calls = []

    def broken(event):
        raise RuntimeError("smtp down")

    bus.subscribe("holiday.created", broken)
    bus.subscribe("holiday.created", lambda e: calls.append(e.data["holiday_id"]))

    result = bus.publish(_event("holiday.created", holiday_id=7))

    assert calls == [7]
    assert result.failure_count == 1
    assert result.success_count == 1
    assert not result.ok
    assert isinstance(result.errors[0][1], RuntimeError)


def test_subscribe_twice_is_noop(bus):
    calls = []

    def handler(event):
        calls.append(1)

    bus.subscribe("payment.completed", handler)
    bus.subscribe("payment.completed", handler)
    bus.publish(_event("payment.completed"))

    assert calls == [1]


def test_unsubscribe(bus):
    calls = []

    def handler(event):
        calls.append(1)

    bus.subscribe("promotion.created", handler)
    bus.unsubscribe("promotion.created", handler)
    result = bus.publish(_event("promotion.created"))

    assert calls == []
    assert result.subscriber_count == 0
