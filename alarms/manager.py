from __future__ import annotations

import logging
from datetime import datetime, timedelta
from pathlib import Path
from threading import RLock
from typing import Callable, Dict, List, Optional

from time_utils import DUE_TOLERANCE_SECONDS, SystemClock, within_window

from .errors import NotificationError
from .models import Alarm, Question, RepeatPattern
from .notifications import LocalNotificationSink, NotificationSink
from .occurrence import is_due, next_occurrence
from .questions import QuestionProvider
from .scheduler import ScheduleResult, Scheduler
from .session import AlarmSessionController, SessionEvent, run_in_thread
from .sounds import AlarmSoundPlayer, default_sound
from .storage import AlarmStore

logger = logging.getLogger(__name__)


class AlarmManager:
    """Single owner of alarm state.

    Store and schedule mutations run under one lock; the session keeps its
    own lock and reports back through ``on_resolved``.
    """

    def __init__(
        self,
        storage_path: Path,
        sound_player: AlarmSoundPlayer,
        question_provider: QuestionProvider,
        clock=None,
        sink: Optional[NotificationSink] = None,
        check_interval: float = 1.0,
        due_tolerance: float = DUE_TOLERANCE_SECONDS,
        run_async: Callable[[Callable[[], None]], None] = run_in_thread,
        on_next_alarm_changed: Optional[Callable[[Optional[datetime]], None]] = None,
    ):
        self.clock = clock or SystemClock()
        self.store = AlarmStore(storage_path)
        self.sink = sink or LocalNotificationSink(
            self.clock, on_deliver=self.handle_notification, check_interval=check_interval
        )
        self.scheduler = Scheduler(self.sink, self.clock)
        self.session = AlarmSessionController(
            question_provider,
            sound_player,
            on_resolved=self._on_session_resolved,
            run_async=run_async,
        )
        self.question_provider = question_provider
        self.due_tolerance = due_tolerance
        self.on_next_alarm_changed = on_next_alarm_changed

        self._lock = RLock()
        self._next_alarm_time: Optional[datetime] = None
        self._answered_occurrence: Dict[str, datetime] = {}
        self._sample_question: Optional[Question] = None
        self.last_schedule: Optional[ScheduleResult] = None

    # -- lifecycle -------------------------------------------------------

    def start(self) -> None:
        with self._lock:
            self.store.load()
            self.refresh()
        if isinstance(self.sink, LocalNotificationSink):
            self.sink.start()
        self.check_pending_alarms()

    def resume(self) -> Optional[Alarm]:
        """Re-register triggers and catch an alarm that came due while we were away."""
        self.refresh()
        return self.check_pending_alarms()

    def shutdown(self) -> None:
        if isinstance(self.sink, LocalNotificationSink):
            self.sink.shutdown()
        self.session.cancel()

    def subscribe_store(self, listener) -> None:
        self.store.subscribe(listener)

    def subscribe_session(self, listener: Callable[[SessionEvent], None]) -> None:
        self.session.subscribe(listener)

    # -- alarm CRUD -------------------------------------------------------

    def list_alarms(self) -> List[Alarm]:
        with self._lock:
            return self.store.list_alarms()

    def get_alarm(self, alarm_id: str) -> Optional[Alarm]:
        with self._lock:
            return self.store.get(alarm_id)

    def is_alarm_set(self, alarm_id: str) -> bool:
        alarm = self.get_alarm(alarm_id)
        return bool(alarm and alarm.is_enabled)

    def add_alarm(self, time: datetime, repeat_pattern: Optional[RepeatPattern] = None, **fields) -> Alarm:
        fields.setdefault("sound", default_sound())
        alarm = Alarm(time=time, repeat_pattern=repeat_pattern or RepeatPattern.once(), **fields)
        with self._lock:
            self.store.add(alarm)
            self._schedule(alarm)
            self._update_next_alarm_time()
        logger.info("Alarm %s added for %02d:%02d (%s)", alarm.id, alarm.hour, alarm.minute, alarm.repeat_pattern.description)
        return alarm

    def update_alarm(self, alarm: Alarm) -> Alarm:
        """Replace an alarm by id (or add it if unknown) and reschedule it."""
        with self._lock:
            if self.store.get(alarm.id) is None:
                self.store.add(alarm)
            else:
                self.store.update(alarm)
            self._schedule(alarm)
            self._update_next_alarm_time()
        return alarm

    def toggle_alarm(self, alarm_id: str, is_enabled: bool) -> Optional[Alarm]:
        with self._lock:
            alarm = self.store.get(alarm_id)
            if alarm is None:
                return None
            alarm.is_enabled = is_enabled
            return self.update_alarm(alarm)

    def delete_alarm(self, alarm_id: str) -> Optional[Alarm]:
        with self._lock:
            self.scheduler.cancel_alarm(alarm_id)
            removed = self.store.remove(alarm_id)
            if removed:
                logger.info("Removed alarm %s", alarm_id)
                self._update_next_alarm_time()
            return removed

    def create_test_alarm(self, seconds: int = 10) -> Alarm:
        """One-time alarm a few seconds from now, for trying the flow end to end."""
        fire_at = self.clock.now() + timedelta(seconds=seconds)
        # Only hour and minute count, so round up to the next whole minute.
        if fire_at.second or fire_at.microsecond:
            fire_at = fire_at.replace(second=0, microsecond=0) + timedelta(minutes=1)
        return self.add_alarm(fire_at)

    # -- scheduling -------------------------------------------------------

    def refresh(self) -> ScheduleResult:
        with self._lock:
            result = self.scheduler.refresh(self.store.list_alarms())
            self.last_schedule = result
            self._set_next_alarm_time(result.next_global_time)
            return result

    def next_alarm_time(self) -> Optional[datetime]:
        with self._lock:
            return self.scheduler.next_alarm_time(self.store.list_alarms())

    def _schedule(self, alarm: Alarm) -> None:
        try:
            self.scheduler.schedule_alarm(alarm)
        except NotificationError as exc:
            logger.error("Alarm %s left unscheduled until next refresh: %s", alarm.id, exc)

    def _update_next_alarm_time(self) -> None:
        self._set_next_alarm_time(self.scheduler.next_alarm_time(self.store.list_alarms()))

    def _set_next_alarm_time(self, value: Optional[datetime]) -> None:
        if value == self._next_alarm_time:
            return
        self._next_alarm_time = value
        if self.on_next_alarm_changed:
            try:
                self.on_next_alarm_changed(value)
            except Exception:
                logger.error("on_next_alarm_changed callback failed", exc_info=True)

    # -- activation -------------------------------------------------------

    @property
    def is_alarm_active(self) -> bool:
        return self.session.is_active

    @property
    def active_alarm(self) -> Optional[Alarm]:
        return self.session.active_alarm

    @property
    def current_question(self) -> Optional[Question]:
        return self.session.current_question

    def handle_alarm_due(self, alarm_id: str) -> bool:
        with self._lock:
            alarm = self.store.get(alarm_id)
        if alarm is None:
            logger.info("Due event for unknown alarm %s ignored", alarm_id)
            return False
        return self.session.on_alarm_due(alarm)

    def handle_notification(self, payload: Dict[str, str]) -> bool:
        alarm_id = payload.get("alarmId")
        if not alarm_id:
            logger.warning("Notification payload without alarmId: %s", payload)
            return False
        if self._already_answered(alarm_id, self.clock.now()):
            logger.info("Alarm %s was already answered for this occurrence, skipping delivery", alarm_id)
            return False
        return self.handle_alarm_due(alarm_id)

    def check_pending_alarms(self) -> Optional[Alarm]:
        """Activate the first enabled alarm whose occurrence is within the tolerance window."""
        if self.session.is_active:
            return None
        now = self.clock.now()
        with self._lock:
            candidates = [a for a in self.store.list_alarms() if a.is_enabled]
        for alarm in candidates:
            if is_due(alarm, now, self.due_tolerance) and not self._already_answered(alarm.id, now):
                if self.session.on_alarm_due(alarm):
                    return alarm
                break
        return None

    def submit_answer(self, answer: str) -> bool:
        return self.session.submit_answer(answer)

    def emergency_override(self) -> bool:
        return self.session.emergency_override()

    def sample_question(self) -> Question:
        """Draw a new practice question; it is kept for ``check_sample_answer``."""
        self._sample_question = self.question_provider.sample_question()
        return self._sample_question

    def check_sample_answer(self, answer: str) -> Optional[bool]:
        """Judge an answer to the practice question, or None if none was drawn."""
        if self._sample_question is None:
            return None
        return self._sample_question.is_correct(answer)

    def _already_answered(self, alarm_id: str, now: datetime) -> bool:
        # An early activation and the trigger at the alarm minute share one occurrence.
        with self._lock:
            occurrence = self._answered_occurrence.get(alarm_id)
        return occurrence is not None and within_window(occurrence, now, self.due_tolerance)

    def _on_session_resolved(self, alarm_id: str) -> None:
        with self._lock:
            now = self.clock.now()
            alarm = self.store.get(alarm_id)
            occurrence = next_occurrence(alarm, now) if alarm else None
            if occurrence is not None and within_window(occurrence, now, self.due_tolerance):
                self._answered_occurrence[alarm_id] = occurrence
            else:
                self._answered_occurrence.pop(alarm_id, None)
            self._update_next_alarm_time()
