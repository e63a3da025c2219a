from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Callable, List, Optional

from .errors import PersistenceError
from .models import Alarm

logger = logging.getLogger(__name__)

StoreListener = Callable[[str, Optional[Alarm]], None]


def load_alarms(path: Path) -> List[Alarm]:
    if not path.exists():
        return []
    try:
        with path.open("r", encoding="utf-8") as f:
            payload = json.load(f)
    except Exception as exc:
        logger.error("Failed to load alarms from %s: %s", path, exc)
        return []
    if not isinstance(payload, list):
        logger.error("Alarm file %s does not contain a list, ignoring it", path)
        return []
    alarms: List[Alarm] = []
    for item in payload:
        try:
            alarms.append(Alarm.from_dict(item))
        except Exception as exc:
            logger.warning("Skipping alarm item due to parse error: %s", exc)
    return alarms


def save_alarms(path: Path, alarms: List[Alarm]) -> None:
    serializable = [a.to_dict() for a in alarms]
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(serializable, f, ensure_ascii=False, indent=2)
        os.replace(tmp, path)
    except OSError as exc:
        raise PersistenceError(f"Failed to save alarms to {path}: {exc}") from exc


class AlarmStore:
    """Canonical, ordered list of alarms backed by a JSON file.

    Listeners are called as ``listener(change, alarm)`` where change is one
    of ``"loaded"``, ``"added"``, ``"updated"``, ``"deleted"``.
    Callers serialise mutations; the store itself does no locking.
    """

    def __init__(self, storage_path: Path):
        self.storage_path = storage_path
        self._alarms: List[Alarm] = []
        self._listeners: List[StoreListener] = []

    def subscribe(self, listener: StoreListener) -> None:
        self._listeners.append(listener)

    def load(self) -> List[Alarm]:
        self._alarms = load_alarms(self.storage_path)
        logger.info("Loaded %s alarms from %s", len(self._alarms), self.storage_path)
        self._emit("loaded", None)
        return list(self._alarms)

    def list_alarms(self) -> List[Alarm]:
        return list(self._alarms)

    def get(self, alarm_id: str) -> Optional[Alarm]:
        for alarm in self._alarms:
            if alarm.id == alarm_id:
                return alarm
        return None

    def add(self, alarm: Alarm) -> Alarm:
        if self.get(alarm.id) is not None:
            raise ValueError(f"Alarm {alarm.id} already exists")
        self._alarms.append(alarm)
        self._persist()
        self._emit("added", alarm)
        return alarm

    def update(self, alarm: Alarm) -> Alarm:
        for index, existing in enumerate(self._alarms):
            if existing.id == alarm.id:
                self._alarms[index] = alarm
                self._persist()
                self._emit("updated", alarm)
                return alarm
        raise KeyError(alarm.id)

    def remove(self, alarm_id: str) -> Optional[Alarm]:
        alarm = self.get(alarm_id)
        if alarm is None:
            return None
        self._alarms = [a for a in self._alarms if a.id != alarm_id]
        self._persist()
        self._emit("deleted", alarm)
        return alarm

    def _persist(self) -> None:
        try:
            save_alarms(self.storage_path, self._alarms)
        except PersistenceError as exc:
            logger.error("%s (keeping in-memory alarms)", exc)

    def _emit(self, change: str, alarm: Optional[Alarm]) -> None:
        for listener in list(self._listeners):
            try:
                listener(change, alarm)
            except Exception:
                logger.error("Alarm store listener failed", exc_info=True)
