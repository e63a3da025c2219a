from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import FrozenSet, Iterable, List, Optional


class Weekday(IntEnum):
    SUNDAY = 1
    MONDAY = 2
    TUESDAY = 3
    WEDNESDAY = 4
    THURSDAY = 5
    FRIDAY = 6
    SATURDAY = 7

    @property
    def short_name(self) -> str:
        return self.name[:3].title()

    @classmethod
    def from_python_weekday(cls, value: int) -> "Weekday":
        """Map ``date.weekday()`` (Monday=0) to the Sunday-first ordinal."""
        return cls((value + 1) % 7 + 1)


class RepeatKind(str, Enum):
    ONCE = "once"
    DAILY = "daily"
    WEEKDAYS = "weekdays"
    WEEKENDS = "weekends"
    CUSTOM = "custom"


@dataclass(frozen=True)
class RepeatPattern:
    """Repeat rule of an alarm. ``days`` is only meaningful for CUSTOM."""

    kind: RepeatKind
    days: FrozenSet[Weekday] = frozenset()

    def __post_init__(self) -> None:
        kind = RepeatKind(self.kind)
        days = frozenset(Weekday(d) for d in self.days) if kind is RepeatKind.CUSTOM else frozenset()
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "days", days)

    @classmethod
    def once(cls) -> "RepeatPattern":
        return cls(RepeatKind.ONCE)

    @classmethod
    def daily(cls) -> "RepeatPattern":
        return cls(RepeatKind.DAILY)

    @classmethod
    def weekdays(cls) -> "RepeatPattern":
        return cls(RepeatKind.WEEKDAYS)

    @classmethod
    def weekends(cls) -> "RepeatPattern":
        return cls(RepeatKind.WEEKENDS)

    @classmethod
    def custom(cls, days: Iterable[Weekday]) -> "RepeatPattern":
        return cls(RepeatKind.CUSTOM, frozenset(days))

    @property
    def sorted_days(self) -> List[Weekday]:
        return sorted(self.days)

    @property
    def description(self) -> str:
        if self.kind is not RepeatKind.CUSTOM:
            return self.kind.value.title()
        if not self.days:
            return "Never"
        if len(self.days) == 7:
            return "Every day"
        return ", ".join(day.short_name for day in self.sorted_days)

    def to_dict(self) -> dict:
        data = {"type": self.kind.value}
        if self.kind is RepeatKind.CUSTOM:
            data["days"] = [int(day) for day in self.sorted_days]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "RepeatPattern":
        kind = RepeatKind(data.get("type", RepeatKind.ONCE.value))
        return cls(kind, frozenset(Weekday(int(d)) for d in data.get("days") or []))


@dataclass(frozen=True)
class Sound:
    id: str
    name: str

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}

    @classmethod
    def from_dict(cls, data: dict) -> "Sound":
        return cls(id=str(data["id"]), name=str(data.get("name") or data["id"]))


class QuestionType(str, Enum):
    SIMPLE_MATH = "Simple Math with a Twist"
    WORD_SCRAMBLE = "Word Scrambles"
    READING_COMPREHENSION = "Reading Comprehension"
    VERBAL_MATH = "Verbal Math"


DEFAULT_QUESTION_TYPE = QuestionType.SIMPLE_MATH


def _non_empty_categories(values: Optional[Iterable[QuestionType]]) -> List[QuestionType]:
    categories: List[QuestionType] = []
    for value in values or []:
        category = QuestionType(value)
        if category not in categories:
            categories.append(category)
    return categories or [DEFAULT_QUESTION_TYPE]


@dataclass
class Alarm:
    time: datetime
    sound: Sound
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    is_enabled: bool = True
    repeat_pattern: RepeatPattern = field(default_factory=RepeatPattern.once)
    question_types: List[QuestionType] = field(default_factory=lambda: list(QuestionType))
    has_override: bool = False

    def __setattr__(self, name, value) -> None:
        if name == "question_types":
            value = _non_empty_categories(value)
        super().__setattr__(name, value)

    @property
    def hour(self) -> int:
        return self.time.hour

    @property
    def minute(self) -> int:
        return self.time.minute

    def remove_question_type(self, category: QuestionType) -> None:
        self.question_types = [c for c in self.question_types if c != category]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "time": self.time.isoformat(),
            "isEnabled": self.is_enabled,
            "repeatPattern": self.repeat_pattern.to_dict(),
            "sound": self.sound.to_dict(),
            "questionTypes": [c.value for c in self.question_types],
            "hasOverride": self.has_override,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Alarm":
        time_raw = data.get("time")
        sound_raw = data.get("sound")
        if not time_raw or not sound_raw:
            raise ValueError("Alarm payload missing time/sound fields")
        return cls(
            id=str(data.get("id") or uuid.uuid4()),
            time=datetime.fromisoformat(time_raw),
            sound=Sound.from_dict(sound_raw),
            is_enabled=bool(data.get("isEnabled", True)),
            repeat_pattern=RepeatPattern.from_dict(data.get("repeatPattern") or {}),
            question_types=[QuestionType(v) for v in data.get("questionTypes") or []],
            has_override=bool(data.get("hasOverride", False)),
        )


class QuestionFormat(str, Enum):
    OPEN_ENDED = "openEnded"
    MULTIPLE_CHOICE = "multipleChoice"


@dataclass(frozen=True)
class MCQOption:
    text: str
    is_correct: bool = False


def normalize_answer(value: str) -> str:
    return value.strip().casefold()


@dataclass
class Question:
    text: str
    correct_answer: str
    category: QuestionType
    format: QuestionFormat = QuestionFormat.OPEN_ENDED
    options: List[MCQOption] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self) -> None:
        self.category = QuestionType(self.category)
        self.format = QuestionFormat(self.format)
        if self.format is QuestionFormat.OPEN_ENDED:
            self.options = []
            return
        correct = [option for option in self.options if option.is_correct]
        if len(correct) != 1:
            raise ValueError(f"Multiple choice question needs exactly one correct option, got {len(correct)}")

    @property
    def correct_option(self) -> Optional[MCQOption]:
        for option in self.options:
            if option.is_correct:
                return option
        return None

    def is_correct(self, answer: str) -> bool:
        """Local judgement: normalised exact match, or the flagged option for MCQ."""
        if self.format is QuestionFormat.MULTIPLE_CHOICE:
            option = self.correct_option
            return option is not None and normalize_answer(answer) == normalize_answer(option.text)
        return normalize_answer(answer) == normalize_answer(self.correct_answer)
