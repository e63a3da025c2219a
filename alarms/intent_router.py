from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from .manager import AlarmManager
from .models import Alarm, Question, QuestionFormat
from .parser import parse_command

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "Commands: add HH:MM [once|daily|weekdays|weekends|mon tue ...] [override], list, next, "
    "delete N, enable N, disable N, test, sample, check TEXT, override, answer TEXT, quit"
)


@dataclass
class IntentResult:
    handled: bool
    response_text: Optional[str] = None
    action: Optional[str] = None
    correct: Optional[bool] = None


class IntentRouter:
    def __init__(self, alarm_manager: AlarmManager):
        self.alarm_manager = alarm_manager

    def handle_text(self, text: str, now: datetime) -> Optional[IntentResult]:
        parsed = parse_command(text, answering=self.alarm_manager.is_alarm_active)
        if not parsed:
            return None
        logger.debug("Command parsed: %s", parsed)

        if parsed.action == "unknown":
            return IntentResult(handled=True, response_text=parsed.error, action=parsed.action)

        if parsed.action == "help":
            return IntentResult(handled=True, response_text=HELP_TEXT, action="help")

        if parsed.action == "quit":
            return IntentResult(handled=True, action="quit")

        if parsed.action == "list":
            alarms = self.alarm_manager.list_alarms()
            if not alarms:
                resp = "No alarms yet."
            else:
                resp = "Your alarms:\n" + "\n".join(
                    f"{idx}) {describe_alarm(alarm)}" for idx, alarm in enumerate(alarms, start=1)
                )
            return IntentResult(handled=True, response_text=resp, action="list")

        if parsed.action == "next":
            next_time = self.alarm_manager.next_alarm_time()
            if next_time is None:
                resp = "No upcoming alarms."
            else:
                resp = f"Next alarm: {format_alarm_time(next_time, now)}."
            return IntentResult(handled=True, response_text=resp, action="next")

        if parsed.action in ("delete", "enable", "disable"):
            alarm = self._alarm_by_index(parsed.index)
            if alarm is None:
                return IntentResult(handled=True, response_text="No alarm with that number.", action=parsed.action)
            if parsed.action == "delete":
                self.alarm_manager.delete_alarm(alarm.id)
                resp = f"Removed the {alarm.time:%H:%M} alarm."
            else:
                enabled = parsed.action == "enable"
                self.alarm_manager.toggle_alarm(alarm.id, enabled)
                resp = f"Alarm {alarm.time:%H:%M} {'enabled' if enabled else 'disabled'}."
            return IntentResult(handled=True, response_text=resp, action=parsed.action)

        if parsed.action == "add":
            fire_at = now.replace(hour=parsed.hour, minute=parsed.minute, second=0, microsecond=0)
            alarm = self.alarm_manager.add_alarm(
                fire_at, repeat_pattern=parsed.repeat_pattern, has_override=parsed.has_override
            )
            return IntentResult(handled=True, response_text=f"Alarm set: {describe_alarm(alarm)}.", action="add")

        if parsed.action == "test":
            alarm = self.alarm_manager.create_test_alarm()
            return IntentResult(handled=True, response_text=f"Test alarm set for {alarm.time:%H:%M}.", action="test")

        if parsed.action == "sample":
            question = self.alarm_manager.sample_question()
            resp = format_question(question) + "\nReply with: check YOUR ANSWER"
            return IntentResult(handled=True, response_text=resp, action="sample")

        if parsed.action == "check":
            verdict = self.alarm_manager.check_sample_answer(parsed.answer or "")
            if verdict is None:
                resp = "No practice question yet, type: sample"
            elif verdict:
                resp = "Correct!"
            else:
                resp = "Not quite, try again."
            return IntentResult(handled=True, response_text=resp, action="check", correct=verdict)

        if parsed.action == "override":
            if self.alarm_manager.emergency_override():
                resp = "Alarm dismissed with the emergency override."
            elif self.alarm_manager.is_alarm_active:
                resp = "This alarm has no emergency override. Answer the question."
            else:
                resp = "Nothing is ringing."
            return IntentResult(handled=True, response_text=resp, action="override")

        if parsed.action == "answer":
            if not self.alarm_manager.is_alarm_active:
                return IntentResult(handled=True, response_text="Nothing is ringing.", action="answer")
            if self.alarm_manager.current_question is None:
                return IntentResult(handled=True, response_text="Question is still loading...", action="answer")
            correct = self.alarm_manager.submit_answer(parsed.answer or "")
            resp = "Correct! Alarm stopped." if correct else "Wrong answer, here is another one."
            return IntentResult(handled=True, response_text=resp, action="answer", correct=correct)

        return IntentResult(handled=True, response_text=None, action=parsed.action)

    def _alarm_by_index(self, index: Optional[int]) -> Optional[Alarm]:
        alarms: List[Alarm] = self.alarm_manager.list_alarms()
        if index is None or index < 1 or index > len(alarms):
            return None
        return alarms[index - 1]


def describe_alarm(alarm: Alarm) -> str:
    parts = [f"{alarm.time:%H:%M}", alarm.repeat_pattern.description, alarm.sound.name]
    if alarm.has_override:
        parts.append("override")
    if not alarm.is_enabled:
        parts.append("off")
    return ", ".join(parts)


def format_question(question: Question) -> str:
    lines = [f"[{question.category.value}] {question.text}"]
    if question.format is QuestionFormat.MULTIPLE_CHOICE:
        lines.extend(f"  - {option.text}" for option in question.options)
    return "\n".join(lines)


def format_alarm_time(dt: datetime, now: datetime) -> str:
    day_prefix = ""
    if dt.date() == now.date():
        day_prefix = "today "
    elif dt.date() == now.date() + timedelta(days=1):
        day_prefix = "tomorrow "
    else:
        day_prefix = dt.strftime("%a %d.%m ")
    return f"{day_prefix}{dt:%H:%M}"
