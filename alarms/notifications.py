from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from threading import Event, Lock, Thread
from typing import Callable, Dict, List, Optional

from time_utils import add_days, at_time_of_day, is_after

from .models import Weekday
from .occurrence import find_next_on_days

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Trigger:
    """A single notification registration.

    Either a one-shot ``fire_at`` or a recurrence on ``hour``:``minute``,
    optionally restricted to one ``weekday``.
    """

    id: str
    payload: Dict[str, str] = field(default_factory=dict)
    fire_at: Optional[datetime] = None
    hour: Optional[int] = None
    minute: Optional[int] = None
    weekday: Optional[Weekday] = None

    @property
    def repeats(self) -> bool:
        return self.fire_at is None

    def next_fire_after(self, now: datetime) -> Optional[datetime]:
        if self.fire_at is not None:
            return self.fire_at if is_after(self.fire_at, now) else None
        today = at_time_of_day(now, self.hour or 0, self.minute or 0)
        if self.weekday is None:
            return today if is_after(today, now) else add_days(today, 1)
        return find_next_on_days(today, now, frozenset({self.weekday}))


class NotificationSink:
    """Accepts trigger registrations and eventually calls back with their payload."""

    def schedule(self, trigger: Trigger) -> None:
        raise NotImplementedError

    def cancel(self, trigger_id: str) -> None:
        raise NotImplementedError


class LocalNotificationSink(NotificationSink):
    """In-process sink: a background thread delivers due triggers."""

    def __init__(
        self,
        clock,
        on_deliver: Optional[Callable[[Dict[str, str]], None]] = None,
        check_interval: float = 1.0,
    ):
        self.clock = clock
        self.on_deliver = on_deliver
        self.check_interval = max(0.2, check_interval)
        self._triggers: Dict[str, Trigger] = {}
        self._next_fire: Dict[str, datetime] = {}
        self._lock = Lock()
        self._stop_event = Event()
        self._thread: Optional[Thread] = None

    def schedule(self, trigger: Trigger) -> None:
        next_fire = trigger.next_fire_after(self.clock.now())
        if next_fire is None:
            logger.info("Trigger %s has no future fire time, not registered", trigger.id)
            return
        with self._lock:
            self._triggers[trigger.id] = trigger
            self._next_fire[trigger.id] = next_fire
        logger.debug("Registered trigger %s for %s", trigger.id, next_fire.isoformat())

    def cancel(self, trigger_id: str) -> None:
        with self._lock:
            self._triggers.pop(trigger_id, None)
            self._next_fire.pop(trigger_id, None)

    def pending(self) -> Dict[str, datetime]:
        with self._lock:
            return dict(self._next_fire)

    def poll(self) -> List[Trigger]:
        """Deliver every trigger whose fire time has been reached."""
        now = self.clock.now()
        due: List[Trigger] = []
        with self._lock:
            for trigger_id, fire_at in list(self._next_fire.items()):
                if is_after(fire_at, now):
                    continue
                trigger = self._triggers[trigger_id]
                due.append(trigger)
                following = trigger.next_fire_after(now) if trigger.repeats else None
                if following is None:
                    self._triggers.pop(trigger_id, None)
                    self._next_fire.pop(trigger_id, None)
                else:
                    self._next_fire[trigger_id] = following
        for trigger in due:
            logger.info("Delivering trigger %s", trigger.id)
            if self.on_deliver:
                try:
                    self.on_deliver(dict(trigger.payload))
                except Exception:
                    logger.error("Notification delivery callback failed for %s", trigger.id, exc_info=True)
        return due

    def start(self) -> None:
        self._stop_event.clear()
        self._thread = Thread(target=self._loop, name="notification-sink", daemon=True)
        self._thread.start()

    def shutdown(self) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=2)
        self._thread = None

    def _loop(self) -> None:  # pragma: no cover - timing loop
        while not self._stop_event.is_set():
            self.poll()
            self._stop_event.wait(self.check_interval)
