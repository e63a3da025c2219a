import logging
import logging.handlers
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def _get_env_bool(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return val.strip() in {"1", "true", "True", "yes", "YES", "y"}


def _get_env_int(name: str, default: int) -> int:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    try:
        return int(val)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer") from exc


def _get_env_float(name: str, default: float) -> float:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    try:
        return float(val)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be a float") from exc


@dataclass
class Config:
    gemini_api_key: str
    gemini_model_name: str
    gemini_timeout_ms: int
    use_ai_validation: bool
    prefer_multiple_choice: bool
    alarms_path: Path
    sounds_dir: Path
    alarm_check_interval_ms: int
    alarm_due_tolerance_sec: float
    timezone_name: Optional[str]
    debug: bool
    log_level: str

    @property
    def ai_available(self) -> bool:
        return bool(self.gemini_api_key)


def load_config(env_path: Optional[Path] = None) -> Config:
    if env_path is None:
        env_path = Path(".env")
    if env_path.exists():
        load_dotenv(env_path)

    gemini_api_key = os.getenv("GEMINI_API_KEY") or ""
    use_ai_validation = _get_env_bool("USE_AI_VALIDATION", False)
    if use_ai_validation and not gemini_api_key:
        logging.warning("USE_AI_VALIDATION is set but GEMINI_API_KEY is empty; using the local question bank")

    debug = _get_env_bool("DEBUG", False)
    log_level = os.getenv("LOG_LEVEL", "DEBUG" if debug else "INFO").upper()

    return Config(
        gemini_api_key=gemini_api_key,
        gemini_model_name=os.getenv("GEMINI_MODEL_NAME", "gemini-2.5-flash"),
        gemini_timeout_ms=_get_env_int("GEMINI_TIMEOUT_MS", 30000),
        use_ai_validation=use_ai_validation,
        prefer_multiple_choice=_get_env_bool("PREFER_MULTIPLE_CHOICE", False),
        alarms_path=Path(os.getenv("ALARM_STORAGE_PATH", "data/alarms.json")),
        sounds_dir=Path(os.getenv("ALARM_SOUNDS_DIR", "data/sounds")),
        alarm_check_interval_ms=_get_env_int("ALARM_CHECK_INTERVAL_MS", 1000),
        alarm_due_tolerance_sec=_get_env_float("ALARM_DUE_TOLERANCE_SEC", 60.0),
        timezone_name=os.getenv("TIMEZONE") or None,
        debug=debug,
        log_level=log_level,
    )


def setup_logging(log_level: str = "INFO") -> None:
    logs_dir = Path("logs")
    logs_dir.mkdir(exist_ok=True)

    log_path = logs_dir / "lucid.log"
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8"
    )
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        handlers=[file_handler, console_handler],
    )
