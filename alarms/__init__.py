"""Alarm subsystem for Lucid."""

from .manager import AlarmManager
from .models import Alarm, Question, QuestionFormat, QuestionType, RepeatPattern, Sound, Weekday
from .occurrence import next_occurrence
from .session import AlarmSessionController, SessionState
