import json

import pytest

from alarms.models import (
    Alarm,
    MCQOption,
    Question,
    QuestionFormat,
    QuestionType,
    RepeatPattern,
    Weekday,
)
from helpers import make_alarm


def test_custom_pattern_equality_ignores_order():
    a = RepeatPattern.custom([Weekday.MONDAY, Weekday.WEDNESDAY])
    b = RepeatPattern.custom([Weekday.WEDNESDAY, Weekday.MONDAY])
    assert a == b
    assert hash(a) == hash(b)
    assert len({a, b}) == 1


def test_custom_pattern_differs_from_other_kinds():
    assert RepeatPattern.custom([Weekday.SATURDAY, Weekday.SUNDAY]) != RepeatPattern.weekends()
    assert RepeatPattern.daily() != RepeatPattern.once()


def test_pattern_descriptions():
    assert RepeatPattern.once().description == "Once"
    assert RepeatPattern.weekdays().description == "Weekdays"
    assert RepeatPattern.custom([]).description == "Never"
    assert RepeatPattern.custom(list(Weekday)).description == "Every day"
    assert RepeatPattern.custom([Weekday.FRIDAY, Weekday.MONDAY]).description == "Mon, Fri"


def test_weekday_ordinals_start_on_sunday():
    assert Weekday.SUNDAY == 1
    assert Weekday.SATURDAY == 7
    assert Weekday.from_python_weekday(0) is Weekday.MONDAY
    assert Weekday.from_python_weekday(6) is Weekday.SUNDAY
    assert Weekday.THURSDAY.short_name == "Thu"


def test_alarm_round_trip_preserves_custom_days():
    alarm = make_alarm(
        6,
        15,
        RepeatPattern.custom([Weekday.THURSDAY, Weekday.TUESDAY]),
        question_types=[QuestionType.VERBAL_MATH, QuestionType.WORD_SCRAMBLE],
        has_override=True,
        is_enabled=False,
    )
    restored = Alarm.from_dict(json.loads(json.dumps(alarm.to_dict())))
    assert restored == alarm
    assert restored.repeat_pattern.days == frozenset({Weekday.TUESDAY, Weekday.THURSDAY})


def test_question_types_never_empty():
    alarm = make_alarm(question_types=[QuestionType.WORD_SCRAMBLE])
    alarm.remove_question_type(QuestionType.WORD_SCRAMBLE)
    assert alarm.question_types == [QuestionType.SIMPLE_MATH]

    alarm.question_types = []
    assert alarm.question_types == [QuestionType.SIMPLE_MATH]
    assert make_alarm(question_types=[]).question_types == [QuestionType.SIMPLE_MATH]


def test_new_alarm_defaults():
    alarm = make_alarm()
    assert alarm.is_enabled
    assert alarm.repeat_pattern == RepeatPattern.once()
    assert alarm.question_types == list(QuestionType)
    assert not alarm.has_override


def test_from_dict_rejects_missing_time():
    with pytest.raises(ValueError):
        Alarm.from_dict({"id": "x", "sound": {"id": "1000", "name": "Trill"}})


def test_multiple_choice_needs_exactly_one_correct_option():
    with pytest.raises(ValueError):
        Question(
            text="Pick",
            correct_answer="A",
            category=QuestionType.SIMPLE_MATH,
            format=QuestionFormat.MULTIPLE_CHOICE,
            options=[MCQOption("A", True), MCQOption("B", True)],
        )
    with pytest.raises(ValueError):
        Question(
            text="Pick",
            correct_answer="A",
            category=QuestionType.SIMPLE_MATH,
            format=QuestionFormat.MULTIPLE_CHOICE,
            options=[MCQOption("A"), MCQOption("B")],
        )


def test_open_ended_drops_options():
    question = Question(
        text="2+2?", correct_answer="4", category=QuestionType.SIMPLE_MATH, options=[MCQOption("4", True)]
    )
    assert question.options == []


def test_open_ended_comparison_is_trimmed_and_case_folded():
    question = Question(text="Unscramble: PPLAE", correct_answer="APPLE", category=QuestionType.WORD_SCRAMBLE)
    assert question.is_correct("  apple\n")
    assert not question.is_correct("apples")


def test_multiple_choice_matches_flagged_option():
    question = Question(
        text="Capital of France?",
        correct_answer="Paris",
        category=QuestionType.READING_COMPREHENSION,
        format=QuestionFormat.MULTIPLE_CHOICE,
        options=[MCQOption("London"), MCQOption("Paris", True), MCQOption("Rome")],
    )
    assert question.is_correct("paris")
    assert not question.is_correct("Rome")
