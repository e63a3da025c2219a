"""Next-fire-time computation for a single alarm.

Everything here is pure: the result depends only on the alarm and the
reference time passed in.
"""

from __future__ import annotations

from datetime import datetime
from typing import FrozenSet, Optional

from time_utils import DUE_TOLERANCE_SECONDS, add_days, at_time_of_day, calendar_weekday, is_after, within_window

from .models import Alarm, RepeatKind, RepeatPattern, Weekday

WEEKDAY_SET: FrozenSet[Weekday] = frozenset(
    {Weekday.MONDAY, Weekday.TUESDAY, Weekday.WEDNESDAY, Weekday.THURSDAY, Weekday.FRIDAY}
)
WEEKEND_SET: FrozenSet[Weekday] = frozenset({Weekday.SATURDAY, Weekday.SUNDAY})

SCAN_DAYS = 7


def allowed_weekdays(pattern: RepeatPattern) -> Optional[FrozenSet[Weekday]]:
    """Weekdays a set-constrained pattern may fire on; None for ONCE/DAILY."""
    if pattern.kind is RepeatKind.WEEKDAYS:
        return WEEKDAY_SET
    if pattern.kind is RepeatKind.WEEKENDS:
        return WEEKEND_SET
    if pattern.kind is RepeatKind.CUSTOM:
        return pattern.days
    return None


def next_occurrence(alarm: Alarm, now: datetime) -> Optional[datetime]:
    today = at_time_of_day(now, alarm.hour, alarm.minute)
    pattern = alarm.repeat_pattern

    if pattern.kind is RepeatKind.ONCE:
        return today if is_after(today, now) else None

    if pattern.kind is RepeatKind.DAILY:
        return today if is_after(today, now) else add_days(today, 1)

    return find_next_on_days(today, now, allowed_weekdays(pattern) or frozenset())


def find_next_on_days(today: datetime, now: datetime, days: FrozenSet[Weekday]) -> Optional[datetime]:
    if not days:
        return None
    if is_after(today, now) and calendar_weekday(today) in days:
        return today
    # Offset 7 lets a single allowed day whose time already passed today roll to next week.
    for offset in range(SCAN_DAYS + 1):
        candidate = add_days(today, offset) if offset else today
        if calendar_weekday(candidate) in days and is_after(candidate, now):
            return candidate
    return None


def is_due(alarm: Alarm, now: datetime, tolerance: float = DUE_TOLERANCE_SECONDS) -> bool:
    """True when the alarm's next occurrence lies within ``tolerance`` seconds of now (edges included)."""
    if not alarm.is_enabled:
        return False
    occurrence = next_occurrence(alarm, now)
    return occurrence is not None and within_window(occurrence, now, tolerance)
