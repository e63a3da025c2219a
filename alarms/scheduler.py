from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from time_utils import seconds_between

from .errors import NotificationError
from .models import Alarm, RepeatKind, Weekday
from .notifications import NotificationSink, Trigger
from .occurrence import allowed_weekdays, next_occurrence

logger = logging.getLogger(__name__)


@dataclass
class ScheduleResult:
    per_alarm_triggers: Dict[str, List[Trigger]] = field(default_factory=dict)
    next_global_time: Optional[datetime] = None
    failed: Dict[str, str] = field(default_factory=dict)


def fan_out_trigger_id(alarm_id: str, weekday: Weekday) -> str:
    return f"{alarm_id}-{int(weekday)}"


def all_trigger_ids(alarm_id: str) -> List[str]:
    return [alarm_id] + [fan_out_trigger_id(alarm_id, day) for day in Weekday]


def build_triggers(alarm: Alarm, now: datetime) -> List[Trigger]:
    payload = {"alarmId": alarm.id}
    kind = alarm.repeat_pattern.kind
    if kind is RepeatKind.ONCE:
        fire_at = next_occurrence(alarm, now)
        if fire_at is None:
            return []
        return [Trigger(id=alarm.id, payload=payload, fire_at=fire_at)]
    if kind is RepeatKind.DAILY:
        return [Trigger(id=alarm.id, payload=payload, hour=alarm.hour, minute=alarm.minute)]
    # The sink only understands single-weekday recurrences, so day sets fan out.
    return [
        Trigger(
            id=fan_out_trigger_id(alarm.id, day),
            payload=payload,
            hour=alarm.hour,
            minute=alarm.minute,
            weekday=day,
        )
        for day in sorted(allowed_weekdays(alarm.repeat_pattern) or ())
    ]


def earliest_occurrence(alarms: Iterable[Alarm], now: datetime) -> Optional[datetime]:
    earliest: Optional[datetime] = None
    for alarm in alarms:
        if not alarm.is_enabled:
            continue
        occurrence = next_occurrence(alarm, now)
        if occurrence is None:
            continue
        if earliest is None or seconds_between(occurrence, earliest) < 0:
            earliest = occurrence
    return earliest


class Scheduler:
    """Derives notification triggers from alarms and forwards them to the sink.

    Holds no authoritative state: everything here can be rebuilt with ``refresh``.
    """

    def __init__(self, sink: NotificationSink, clock):
        self.sink = sink
        self.clock = clock
        self._registered: Dict[str, List[str]] = {}

    def registered_triggers(self, alarm_id: str) -> List[str]:
        return list(self._registered.get(alarm_id, []))

    def cancel_alarm(self, alarm_id: str) -> None:
        ids = set(all_trigger_ids(alarm_id)) | set(self._registered.pop(alarm_id, []))
        for trigger_id in sorted(ids):
            try:
                self.sink.cancel(trigger_id)
            except Exception as exc:
                logger.error("Failed to cancel trigger %s: %s", trigger_id, exc)

    def schedule_alarm(self, alarm: Alarm, now: Optional[datetime] = None) -> List[Trigger]:
        """Cancel then re-register every trigger of ``alarm``.

        Raises NotificationError if the sink rejects a registration; triggers
        registered before the failure stay registered.
        """
        self.cancel_alarm(alarm.id)
        if not alarm.is_enabled:
            return []
        now = now or self.clock.now()
        triggers = build_triggers(alarm, now)
        registered = self._registered.setdefault(alarm.id, [])
        for trigger in triggers:
            try:
                self.sink.schedule(trigger)
            except NotificationError:
                raise
            except Exception as exc:
                raise NotificationError(f"Failed to register trigger {trigger.id}: {exc}") from exc
            registered.append(trigger.id)
        logger.info(
            "Scheduled alarm %s (%s at %02d:%02d) with %s trigger(s)",
            alarm.id,
            alarm.repeat_pattern.description,
            alarm.hour,
            alarm.minute,
            len(triggers),
        )
        return triggers

    def refresh(self, alarms: Iterable[Alarm], now: Optional[datetime] = None) -> ScheduleResult:
        now = now or self.clock.now()
        alarms = list(alarms)
        result = ScheduleResult()
        for alarm in alarms:
            if not alarm.is_enabled:
                self.cancel_alarm(alarm.id)
                continue
            try:
                result.per_alarm_triggers[alarm.id] = self.schedule_alarm(alarm, now)
            except NotificationError as exc:
                logger.error("Alarm %s left unscheduled until next refresh: %s", alarm.id, exc)
                result.failed[alarm.id] = str(exc)
        result.next_global_time = earliest_occurrence(alarms, now)
        return result

    def next_alarm_time(self, alarms: Iterable[Alarm], now: Optional[datetime] = None) -> Optional[datetime]:
        return earliest_occurrence(alarms, now or self.clock.now())
