from datetime import datetime, timezone

from alarms.models import RepeatPattern, Weekday
from alarms.scheduler import Scheduler, all_trigger_ids, build_triggers
from helpers import RecordingSink, make_alarm, tuesday
from time_utils import FixedClock


def _scheduler(sink=None):
    sink = sink or RecordingSink()
    return Scheduler(sink, FixedClock(tuesday(10))), sink


def test_weekdays_alarm_fans_out_to_five_triggers():
    scheduler, sink = _scheduler()
    alarm = make_alarm(7, 0, RepeatPattern.weekdays())
    triggers = scheduler.schedule_alarm(alarm)

    expected = {f"{alarm.id}-{day}" for day in (2, 3, 4, 5, 6)}
    assert {t.id for t in triggers} == expected
    assert set(sink.scheduled) == expected
    assert {t.weekday for t in triggers} == {
        Weekday.MONDAY,
        Weekday.TUESDAY,
        Weekday.WEDNESDAY,
        Weekday.THURSDAY,
        Weekday.FRIDAY,
    }
    assert all(t.payload == {"alarmId": alarm.id} and t.repeats for t in triggers)

    sink.cancel(f"{alarm.id}-4")
    assert len(sink.scheduled) == 4


def test_once_and_daily_register_single_trigger_under_alarm_id():
    scheduler, sink = _scheduler()
    once = make_alarm(11, 0)
    daily = make_alarm(7, 0, RepeatPattern.daily())
    scheduler.schedule_alarm(once)
    scheduler.schedule_alarm(daily)

    assert sink.scheduled[once.id].fire_at == tuesday(11)
    assert not sink.scheduled[once.id].repeats
    assert sink.scheduled[daily.id].repeats
    assert (sink.scheduled[daily.id].hour, sink.scheduled[daily.id].minute) == (7, 0)


def test_consumed_once_alarm_registers_nothing():
    alarm = make_alarm(7, 0)
    assert build_triggers(alarm, tuesday(10)) == []


def test_empty_custom_registers_nothing():
    assert build_triggers(make_alarm(7, 0, RepeatPattern.custom([])), tuesday(10)) == []


def test_reschedule_cancels_before_registering():
    scheduler, sink = _scheduler()
    alarm = make_alarm(7, 0, RepeatPattern.weekends())
    scheduler.schedule_alarm(alarm)
    alarm.repeat_pattern = RepeatPattern.daily()
    scheduler.schedule_alarm(alarm)
    scheduler.schedule_alarm(alarm)

    assert set(sink.scheduled) == {alarm.id}
    assert set(all_trigger_ids(alarm.id)) <= set(sink.cancel_calls)


def test_refresh_skips_and_cancels_disabled_alarms():
    scheduler, sink = _scheduler()
    enabled = make_alarm(11, 0, RepeatPattern.daily())
    disabled = make_alarm(10, 30, RepeatPattern.daily(), is_enabled=False)
    sink.scheduled[disabled.id] = object()

    result = scheduler.refresh([enabled, disabled])

    assert disabled.id not in result.per_alarm_triggers
    assert disabled.id not in sink.scheduled
    assert result.next_global_time == tuesday(11)


def test_next_global_time_is_the_earliest_enabled_occurrence():
    scheduler, _ = _scheduler()
    alarms = [
        make_alarm(7, 0, RepeatPattern.custom([Weekday.SATURDAY])),
        make_alarm(8, 0, RepeatPattern.weekdays()),
        make_alarm(9, 0),
        make_alarm(10, 5, RepeatPattern.daily(), is_enabled=False),
    ]
    assert scheduler.next_alarm_time(alarms) == datetime(2025, 1, 8, 8, 0, tzinfo=timezone.utc)


def test_next_global_time_none_when_nothing_upcoming():
    scheduler, _ = _scheduler()
    assert scheduler.refresh([make_alarm(7, 0), make_alarm(8, 0, RepeatPattern.custom([]))]).next_global_time is None


def test_registration_failure_is_reported_and_retried_on_refresh():
    sink = RecordingSink(fail_ids=set())
    scheduler, _ = _scheduler(sink)
    alarm = make_alarm(7, 0, RepeatPattern.weekends())
    sink.fail_ids.add(f"{alarm.id}-7")

    result = scheduler.refresh([alarm])
    assert alarm.id in result.failed
    assert alarm.is_enabled

    sink.fail_ids.clear()
    result = scheduler.refresh([alarm])
    assert result.failed == {}
    assert set(sink.scheduled) == {f"{alarm.id}-1", f"{alarm.id}-7"}


def test_cancel_alarm_removes_every_trigger():
    scheduler, sink = _scheduler()
    alarm = make_alarm(7, 0, RepeatPattern.custom([Weekday.MONDAY, Weekday.FRIDAY]))
    scheduler.schedule_alarm(alarm)
    scheduler.cancel_alarm(alarm.id)
    assert sink.scheduled == {}
    assert scheduler.registered_triggers(alarm.id) == []
