from datetime import datetime, timezone
from typing import Callable, Dict, List

from alarms.errors import NotificationError
from alarms.models import Alarm, RepeatPattern, Sound
from alarms.notifications import NotificationSink, Trigger

TRILL = Sound(id="1000", name="Trill")


def tuesday(hour: int = 10, minute: int = 0, second: int = 0) -> datetime:
    # 2025-01-07 is a Tuesday
    return datetime(2025, 1, 7, hour, minute, second, tzinfo=timezone.utc)


def make_alarm(hour: int = 7, minute: int = 0, pattern: RepeatPattern = None, **fields) -> Alarm:
    return Alarm(
        time=datetime(2025, 1, 1, hour, minute, tzinfo=timezone.utc),
        sound=TRILL,
        repeat_pattern=pattern or RepeatPattern.once(),
        **fields,
    )


class RecordingSink(NotificationSink):
    def __init__(self, fail_ids=()):
        self.scheduled: Dict[str, Trigger] = {}
        self.schedule_calls: List[str] = []
        self.cancel_calls: List[str] = []
        self.fail_ids = set(fail_ids)

    def schedule(self, trigger: Trigger) -> None:
        self.schedule_calls.append(trigger.id)
        if trigger.id in self.fail_ids:
            raise NotificationError(f"rejected {trigger.id}")
        self.scheduled[trigger.id] = trigger

    def cancel(self, trigger_id: str) -> None:
        self.cancel_calls.append(trigger_id)
        self.scheduled.pop(trigger_id, None)


class FakeSoundPlayer:
    def __init__(self):
        self.started: List[Sound] = []
        self.stopped = 0

    def start(self, sound: Sound) -> None:
        self.started.append(sound)

    def stop(self) -> None:
        self.stopped += 1


class DeferredRunner:
    """Collects async tasks so a test decides when they complete."""

    def __init__(self):
        self.tasks: List[Callable[[], None]] = []

    def __call__(self, task: Callable[[], None]) -> None:
        self.tasks.append(task)

    def run_all(self) -> None:
        tasks, self.tasks = self.tasks, []
        for task in tasks:
            task()


def run_now(task: Callable[[], None]) -> None:
    task()
