from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

DUE_TOLERANCE_SECONDS = 60


def resolve_timezone(name: Optional[str]):
    if name:
        try:
            return ZoneInfo(name)
        except Exception as exc:  # pragma: no cover - environment-dependent
            logger.warning("Failed to load timezone %s via zoneinfo (%s)", name, exc)
    system_tz = system_timezone()
    if system_tz is not None:
        return system_tz
    # Fixed offset only: alarms drift by an hour across DST changes.
    local_tz = datetime.now().astimezone().tzinfo
    if local_tz:
        logger.warning("Using system local timezone instead: %s", getattr(local_tz, "key", local_tz))
        return local_tz
    logger.warning("System timezone unavailable, fallback to UTC")
    return timezone.utc


def system_timezone(
    localtime_path: Path = Path("/etc/localtime"),
    timezone_file: Path = Path("/etc/timezone"),
) -> Optional[ZoneInfo]:
    """IANA zone of the host, from ``TZ``, the /etc/localtime link or /etc/timezone."""
    candidates = []
    tz_env = os.getenv("TZ", "").lstrip(":")
    if tz_env:
        candidates.append(tz_env)
    if localtime_path.is_symlink():
        target = str(localtime_path.resolve())
        if "zoneinfo/" in target:
            candidates.append(target.split("zoneinfo/", 1)[1])
    if timezone_file.exists():
        try:
            candidates.append(timezone_file.read_text(encoding="utf-8").strip())
        except OSError as exc:
            logger.debug("Could not read %s: %s", timezone_file, exc)
    for key in candidates:
        if not key:
            continue
        try:
            return ZoneInfo(key)
        except Exception as exc:
            logger.debug("System timezone candidate %s rejected: %s", key, exc)
    return None


def now_in_tz(tzinfo) -> datetime:
    if tzinfo:
        return datetime.now(tzinfo)
    return datetime.now().astimezone()


class SystemClock:
    """Wall clock in a fixed timezone."""

    def __init__(self, tzinfo=None):
        self.tzinfo = tzinfo

    def now(self) -> datetime:
        return now_in_tz(self.tzinfo)


class FixedClock:
    """Clock frozen at a given instant; ``advance`` moves it forward."""

    def __init__(self, current: datetime):
        self.current = current

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


def calendar_weekday(dt: datetime) -> int:
    """Weekday of ``dt`` in the Sunday=1 ... Saturday=7 convention."""
    return (dt.weekday() + 1) % 7 + 1


def at_time_of_day(day: datetime, hour: int, minute: int) -> datetime:
    return normalize(day.replace(hour=hour, minute=minute, second=0, microsecond=0))


def add_days(dt: datetime, days: int) -> datetime:
    # Calendar-day step: keeps the wall-clock time across DST changes.
    return normalize(dt + timedelta(days=days))


def normalize(dt: datetime) -> datetime:
    """Resolve an aware wall-clock time to a real instant in its own zone."""
    if dt.tzinfo is None or dt.tzinfo is timezone.utc:
        return dt
    return dt.astimezone(timezone.utc).astimezone(dt.tzinfo)


def seconds_between(later: datetime, earlier: datetime) -> float:
    if later.tzinfo is not None and earlier.tzinfo is not None:
        return (later.astimezone(timezone.utc) - earlier.astimezone(timezone.utc)).total_seconds()
    return (later - earlier).total_seconds()


def is_after(candidate: datetime, reference: datetime) -> bool:
    return seconds_between(candidate, reference) > 0


def within_window(target: datetime, now: datetime, tolerance: float = DUE_TOLERANCE_SECONDS) -> bool:
    difference = seconds_between(target, now)
    return -tolerance <= difference <= tolerance


def format_tz_offset(tzinfo) -> str:
    sample = now_in_tz(tzinfo)
    offset = tzinfo.utcoffset(sample) if hasattr(tzinfo, "utcoffset") else None
    if offset is None:
        return ""
    total_minutes = int(offset.total_seconds() // 60)
    sign = "+" if total_minutes >= 0 else "-"
    hours, minutes = divmod(abs(total_minutes), 60)
    return f"{sign}{hours:02d}:{minutes:02d}"
