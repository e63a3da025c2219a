import logging
import signal
import sys
from datetime import datetime
from typing import Optional

from alarms.intent_router import IntentRouter, format_alarm_time, format_question
from alarms.manager import AlarmManager
from alarms.questions import QuestionProvider
from alarms.session import SessionEvent
from alarms.sounds import AlarmSoundPlayer
from config import Config, load_config, setup_logging
from gemini_questions import GeminiQuestionClient
from time_utils import SystemClock, format_tz_offset, resolve_timezone

logger = logging.getLogger("lucid")


def graceful_exit(signum, frame) -> None:  # pragma: no cover - signal handler
    logger.info("Shutting down (signal %s)", signum)
    raise KeyboardInterrupt()


def build_question_provider(config: Config) -> QuestionProvider:
    remote = None
    if config.ai_available:
        remote = GeminiQuestionClient(
            api_key=config.gemini_api_key,
            model_name=config.gemini_model_name,
            timeout_ms=config.gemini_timeout_ms,
        )
    return QuestionProvider(
        remote=remote,
        prefer_multiple_choice=config.prefer_multiple_choice,
        use_ai_validation=config.use_ai_validation,
    )


class AlarmClockRuntime:
    def __init__(self, config: Config, provider: QuestionProvider):
        self.config = config
        self.clock = SystemClock(resolve_timezone(config.timezone_name))
        self.sound_player = AlarmSoundPlayer(config.sounds_dir)
        self.alarm_manager = AlarmManager(
            storage_path=config.alarms_path,
            sound_player=self.sound_player,
            question_provider=provider,
            clock=self.clock,
            check_interval=config.alarm_check_interval_ms / 1000.0,
            due_tolerance=config.alarm_due_tolerance_sec,
            on_next_alarm_changed=self._on_next_alarm_changed,
        )
        self.alarm_manager.subscribe_session(self._on_session_event)
        self.intent_router = IntentRouter(self.alarm_manager)

    def start(self) -> None:
        self.alarm_manager.start()

    def shutdown(self) -> None:
        self.alarm_manager.shutdown()
        self.sound_player.stop()

    def handle_line(self, line: str) -> bool:
        """Run one console line; False means the user asked to quit."""
        result = self.intent_router.handle_text(line, now=self.clock.now())
        if not result:
            return True
        if result.action == "quit":
            return False
        if result.response_text:
            self._say(result.response_text)
        return True

    def _on_session_event(self, event: SessionEvent) -> None:
        if event.kind == "activated":
            self._say("Wake up! Fetching your question...")
        elif event.kind == "question_ready" and event.question:
            self._say(format_question(event.question))
        elif event.kind == "resolved":
            self._say("Good morning!")

    def _on_next_alarm_changed(self, value: Optional[datetime]) -> None:
        if value is None:
            logger.info("No upcoming alarm")
        else:
            logger.info("Next alarm %s", format_alarm_time(value, self.clock.now()))

    def _say(self, text: str) -> None:
        print(text, flush=True)


def main() -> None:
    config = load_config()
    setup_logging(config.log_level)
    signal.signal(signal.SIGINT, graceful_exit)
    logger.info("Starting Lucid alarm clock")
    provider = build_question_provider(config)
    logger.info(
        "Question source: %s, format: %s",
        "Gemini" if provider.ai_enabled else "local bank",
        provider.preferred_format.value,
    )

    runtime = AlarmClockRuntime(config, provider)
    logger.info("Timezone offset %s", format_tz_offset(runtime.clock.tzinfo))
    runtime.start()
    try:
        for line in sys.stdin:
            if not runtime.handle_line(line):
                break
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        runtime.shutdown()


if __name__ == "__main__":
    main()
