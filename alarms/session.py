"""Lifecycle of a ringing alarm.

At most one session exists at a time. Activation is synchronous (state and
audio); the question arrives later through ``run_async`` and is dropped if
the session it was requested for is gone or has moved on to another
question.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from threading import Lock, Thread
from typing import Callable, List, Optional

from .models import DEFAULT_QUESTION_TYPE, Alarm, Question
from .questions import QuestionProvider

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"


@dataclass
class AlarmSession:
    alarm: Alarm
    question: Optional[Question] = None
    failed_attempts: int = 0
    history: List[str] = field(default_factory=list)
    request_id: int = 0

    @property
    def alarm_id(self) -> str:
        return self.alarm.id

    @property
    def question_pending(self) -> bool:
        return self.question is None


@dataclass(frozen=True)
class SessionEvent:
    kind: str  # activated | question_ready | answer_wrong | resolved | cancelled
    alarm_id: str
    question: Optional[Question] = None
    failed_attempts: int = 0


def run_in_thread(task: Callable[[], None]) -> None:
    Thread(target=task, name="question-fetch", daemon=True).start()


class AlarmSessionController:
    def __init__(
        self,
        provider: QuestionProvider,
        sound_player,
        on_resolved: Optional[Callable[[str], None]] = None,
        run_async: Callable[[Callable[[], None]], None] = run_in_thread,
    ):
        self.provider = provider
        self.sound_player = sound_player
        self.on_resolved = on_resolved
        self.run_async = run_async
        self._session: Optional[AlarmSession] = None
        self._lock = Lock()
        self._listeners: List[Callable[[SessionEvent], None]] = []

    def subscribe(self, listener: Callable[[SessionEvent], None]) -> None:
        self._listeners.append(listener)

    @property
    def state(self) -> SessionState:
        return SessionState.ACTIVE if self._session is not None else SessionState.IDLE

    @property
    def is_active(self) -> bool:
        return self._session is not None

    @property
    def session(self) -> Optional[AlarmSession]:
        return self._session

    @property
    def active_alarm(self) -> Optional[Alarm]:
        session = self._session
        return session.alarm if session else None

    @property
    def current_question(self) -> Optional[Question]:
        session = self._session
        return session.question if session else None

    def on_alarm_due(self, alarm: Alarm) -> bool:
        with self._lock:
            if not alarm.is_enabled:
                logger.info("Ignoring due event for disabled alarm %s", alarm.id)
                return False
            if self._session is not None:
                logger.info(
                    "Alarm %s due while %s is active, ignoring", alarm.id, self._session.alarm_id
                )
                return False
            session = AlarmSession(alarm=alarm)
            self._session = session
            self.sound_player.start(alarm.sound)
        logger.info("Alarm activated: %s (%02d:%02d)", alarm.id, alarm.hour, alarm.minute)
        self._emit(SessionEvent("activated", alarm.id))
        self._request_question(session)
        return True

    def submit_answer(self, answer: str) -> bool:
        with self._lock:
            session = self._session
            question = session.question if session else None
        if session is None:
            logger.debug("Answer submitted with no active alarm")
            return False
        if question is None:
            logger.info("Answer for alarm %s arrived before its question, ignoring", session.alarm_id)
            return False

        try:
            correct = self.provider.judge(question, answer)
        except Exception:
            logger.error("Answer judging failed, using local comparison", exc_info=True)
            correct = question.is_correct(answer)

        with self._lock:
            if self._session is not session or session.question is not question:
                logger.info("Session moved on while judging, discarding answer")
                return False
            if not correct:
                session.failed_attempts += 1
                session.history.append(answer)
                attempts = session.failed_attempts
        if correct:
            logger.info("Correct answer for alarm %s", session.alarm_id)
            self._finish(session, "resolved")
            return True
        logger.info("Wrong answer for alarm %s (attempt %s)", session.alarm_id, attempts)
        self._emit(SessionEvent("answer_wrong", session.alarm_id, question, attempts))
        self._request_question(session)
        return False

    def emergency_override(self) -> bool:
        with self._lock:
            session = self._session
        if session is None:
            return False
        if not session.alarm.has_override:
            logger.info("Emergency override not allowed for alarm %s", session.alarm_id)
            return False
        logger.warning("Emergency override used for alarm %s", session.alarm_id)
        return self._finish(session, "resolved")

    def cancel(self) -> bool:
        with self._lock:
            session = self._session
        if session is None:
            return False
        return self._finish(session, "cancelled")

    def _finish(self, session: AlarmSession, kind: str) -> bool:
        with self._lock:
            if self._session is not session:
                return False
            self._session = None
            self.sound_player.stop()
        self._emit(SessionEvent(kind, session.alarm_id, failed_attempts=session.failed_attempts))
        if self.on_resolved:
            try:
                self.on_resolved(session.alarm_id)
            except Exception:
                logger.error("on_resolved callback failed", exc_info=True)
        return True

    def _request_question(self, session: AlarmSession) -> None:
        with self._lock:
            if self._session is not session:
                return
            session.question = None
            session.request_id += 1
            request_id = session.request_id
            categories = list(session.alarm.question_types)

        def fetch() -> None:
            try:
                question = self.provider.generate_random(categories)
            except Exception:
                logger.error("Question provider failed, using local bank", exc_info=True)
                category = self.provider.choose_category(categories) or DEFAULT_QUESTION_TYPE
                question = self.provider.fallback_question(category)
            self._apply_question(session, request_id, question)

        self.run_async(fetch)

    def _apply_question(self, session: AlarmSession, request_id: int, question: Question) -> None:
        with self._lock:
            if self._session is not session or session.request_id != request_id:
                logger.debug("Discarding late question for alarm %s", session.alarm_id)
                return
            session.question = question
        self._emit(SessionEvent("question_ready", session.alarm_id, question, session.failed_attempts))

    def _emit(self, event: SessionEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.error("Session listener failed", exc_info=True)
