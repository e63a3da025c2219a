from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional

from .models import RepeatPattern, Weekday

DAY_WORDS = {
    "sun": Weekday.SUNDAY,
    "mon": Weekday.MONDAY,
    "tue": Weekday.TUESDAY,
    "wed": Weekday.WEDNESDAY,
    "thu": Weekday.THURSDAY,
    "fri": Weekday.FRIDAY,
    "sat": Weekday.SATURDAY,
}

NAMED_PATTERNS = {
    "once": RepeatPattern.once,
    "daily": RepeatPattern.daily,
    "everyday": RepeatPattern.daily,
    "weekdays": RepeatPattern.weekdays,
    "weekends": RepeatPattern.weekends,
}

FILLER_WORDS = {"am", "pm", "at", "on", "every", "override"}

SIMPLE_ACTIONS = {
    "list": "list",
    "alarms": "list",
    "next": "next",
    "test": "test",
    "sample": "sample",
    "override": "override",
    "sos": "override",
    "quit": "quit",
    "exit": "quit",
    "help": "help",
}

INDEX_ACTIONS = {
    "delete": "delete",
    "remove": "delete",
    "rm": "delete",
    "enable": "enable",
    "on": "enable",
    "disable": "disable",
    "off": "disable",
}


@dataclass
class AlarmCommand:
    action: str
    hour: Optional[int] = None
    minute: Optional[int] = None
    repeat_pattern: Optional[RepeatPattern] = None
    has_override: bool = False
    index: Optional[int] = None
    answer: Optional[str] = None
    error: Optional[str] = None
    raw_text: str = ""


def parse_command(text: str, answering: bool = False) -> Optional[AlarmCommand]:
    """Parse one console line into a command.

    While an alarm is ringing (``answering``) any line that is not a known
    command is taken as an answer.
    """

    cleaned = text.strip()
    if not cleaned:
        return None
    lower = cleaned.lower()
    head, _, rest = lower.partition(" ")

    if head == "answer":
        return AlarmCommand(action="answer", answer=cleaned[len(head):].strip(), raw_text=cleaned)

    if head == "check" and rest:
        return AlarmCommand(action="check", answer=cleaned[len(head):].strip(), raw_text=cleaned)

    if head in SIMPLE_ACTIONS and not rest:
        return AlarmCommand(action=SIMPLE_ACTIONS[head], raw_text=cleaned)

    if head in INDEX_ACTIONS and not answering:
        index = _extract_index(rest)
        if index is None:
            return AlarmCommand(action="unknown", error="Which alarm? Give its number from the list.", raw_text=cleaned)
        return AlarmCommand(action=INDEX_ACTIONS[head], index=index, raw_text=cleaned)

    if head in ("add", "set", "new") and not answering:
        return _parse_add(rest, cleaned)

    if answering:
        return AlarmCommand(action="answer", answer=cleaned, raw_text=cleaned)
    return AlarmCommand(action="unknown", error=f"Unknown command: {cleaned}", raw_text=cleaned)


def _parse_add(rest: str, cleaned: str) -> AlarmCommand:
    parsed_time = _extract_time(rest)
    if parsed_time is None:
        return AlarmCommand(action="unknown", error="Could not understand the alarm time, use HH:MM.", raw_text=cleaned)
    hour, minute = parsed_time
    try:
        pattern = _extract_pattern(rest)
    except ValueError as exc:
        return AlarmCommand(action="unknown", error=str(exc), raw_text=cleaned)
    return AlarmCommand(
        action="add",
        hour=hour,
        minute=minute,
        repeat_pattern=pattern,
        has_override="override" in rest.split(),
        raw_text=cleaned,
    )


def _extract_index(text: str) -> Optional[int]:
    match = re.search(r"(\d+)", text)
    if match:
        return int(match.group(1))
    return None


def _extract_time(text: str) -> Optional[tuple]:
    match = re.search(r"\b(\d{1,2})(?:[:.](\d{2}))?\s*(am|pm)?\b", text)
    if not match:
        return None
    hour = int(match.group(1))
    minute = int(match.group(2)) if match.group(2) else 0
    qualifier = match.group(3)
    if qualifier == "am" and hour == 12:
        hour = 0
    elif qualifier == "pm" and hour < 12:
        hour += 12
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return None
    return hour, minute


def _extract_pattern(text: str) -> RepeatPattern:
    words = re.findall(r"[a-z]+", text)
    for word in words:
        if word in NAMED_PATTERNS:
            return NAMED_PATTERNS[word]()
    days: List[Weekday] = []
    for word in words:
        if word in FILLER_WORDS:
            continue
        day = DAY_WORDS.get(word[:3])
        if day is None:
            raise ValueError(f"Unknown repeat day: {word}")
        days.append(day)
    if days:
        return RepeatPattern.custom(days)
    return RepeatPattern.once()
