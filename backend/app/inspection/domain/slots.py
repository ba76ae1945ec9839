"""
app/inspection/domain/slots.py

单个中心单日的时段计算
时间统一用距午夜的分钟数表示，所有区间均为左闭右开 [start, end)
"""
from dataclasses import dataclass
from datetime import date, time
from typing import Any, Dict, Iterable, List, Optional, Tuple

WEEKDAY_KEYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
MINUTES_PER_DAY = 24 * 60

Interval = Tuple[int, int]


def to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"{minutes} minutes is outside a single day")
    return time(minutes // 60, minutes % 60)


def parse_hhmm(value: str) -> time:
    """'09:30' -> time(9, 30)；格式错误时抛出 ValueError"""
    try:
        hours, minutes = value.split(":")
        return time(int(hours), int(minutes))
    except (AttributeError, ValueError) as e:
        raise ValueError(f"Invalid time '{value}', expected HH:MM") from e


def overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """左闭右开区间重叠判断，首尾相接不算重叠"""
    return a_start < b_end and a_end > b_start


def weekday_key(day: date) -> str:
    return WEEKDAY_KEYS[day.weekday()]


@dataclass(frozen=True)
class DayWindow:
    """单日营业时间窗口（分钟）"""
    open: int
    close: int

    def contains(self, start: int, end: int) -> bool:
        return self.open <= start and end <= self.close


def day_window(opening_hours: Optional[Dict[str, Any]], day: date) -> Optional[DayWindow]:
    """
    解析某日的营业时间窗口

    该星期几未配置、标记为休息、时间为空或开始晚于结束时返回 None
    """
    hours = (opening_hours or {}).get(weekday_key(day))
    if not hours or hours.get("closed"):
        return None
    open_at, close_at = hours.get("open"), hours.get("close")
    if not open_at or not close_at:
        return None
    window = DayWindow(to_minutes(parse_hhmm(open_at)), to_minutes(parse_hhmm(close_at)))
    if window.open >= window.close:
        return None
    return window


@dataclass(frozen=True)
class Slot:
    start: int
    end: int
    is_available: bool

    @property
    def start_time(self) -> time:
        return from_minutes(self.start)

    @property
    def end_time(self) -> time:
        return from_minutes(self.end)


def generate_slots(
    window: DayWindow,
    busy: Iterable[Interval],
    slot_minutes: int = 30,
    duration: Optional[int] = None,
) -> List[Slot]:
    """
    将 [open, close) 按固定宽度切分为时段，按时间顺序返回

    窗口不能整除时，最后一个时段截断到关门时间。时段与任一占用区间
    重叠即不可用；指定 duration 时检测区间为 [start, start + duration)，
    且必须在关门前结束
    """
    if slot_minutes <= 0:
        raise ValueError("slot_minutes must be positive")

    busy = list(busy)
    slots: List[Slot] = []
    current = window.open
    while current < window.close:
        end = min(current + slot_minutes, window.close)
        probe_end = current + duration if duration else end
        available = probe_end <= window.close and not any(
            overlaps(current, probe_end, b_start, b_end) for b_start, b_end in busy
        )
        slots.append(Slot(current, end, available))
        current += slot_minutes
    return slots


def occupied_minutes(start: int, end: int) -> range:
    """[start, end) 覆盖的分钟，每分钟对应一行时段锁"""
    return range(start, end)
