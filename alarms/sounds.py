from __future__ import annotations

import logging
import wave
from pathlib import Path
from threading import Event, Lock, Thread
from typing import Dict, List, Optional

import numpy as np

from .models import Sound

try:
    import winsound
except ImportError:  # pragma: no cover - non-Windows fallback
    winsound = None  # type: ignore

logger = logging.getLogger(__name__)

SAMPLE_RATE = 24000

AVAILABLE_SOUNDS: List[Sound] = [
    Sound(id="1000", name="Trill"),
    Sound(id="1001", name="Chirp"),
    Sound(id="1002", name="Xylophone"),
    Sound(id="1003", name="Bell"),
    Sound(id="1004", name="Electronic"),
    Sound(id="1005", name="Alarm"),
    Sound(id="1007", name="Descending"),
    Sound(id="1008", name="Ascending"),
    Sound(id="1009", name="Chime"),
    Sound(id="1010", name="Glass"),
    Sound(id="1013", name="Tink"),
    Sound(id="1014", name="Horn"),
    Sound(id="1020", name="Anticipate"),
    Sound(id="1023", name="Bloom"),
]

# (start Hz, end Hz) of the sweep synthesised for each sound
TONE_PROFILES: Dict[str, tuple] = {
    "Descending": (1320.0, 660.0),
    "Ascending": (660.0, 1320.0),
    "Horn": (220.0, 220.0),
    "Bell": (1046.5, 1046.5),
}
DEFAULT_TONE = (880.0, 880.0)


def default_sound() -> Sound:
    return AVAILABLE_SOUNDS[0]


def find_sound(sound_id: str) -> Optional[Sound]:
    for sound in AVAILABLE_SOUNDS:
        if sound.id == sound_id:
            return sound
    return None


def synthesize_tone(sound: Sound, duration_seconds: float = 1.5, amplitude: float = 0.4) -> np.ndarray:
    start_hz, end_hz = TONE_PROFILES.get(sound.name, DEFAULT_TONE)
    samples = int(duration_seconds * SAMPLE_RATE)
    freqs = np.linspace(start_hz, end_hz, samples)
    phase = 2 * np.pi * np.cumsum(freqs) / SAMPLE_RATE
    envelope = np.minimum(1.0, np.linspace(0, 20, samples)) * np.minimum(1.0, np.linspace(20, 0, samples))
    return (32767 * amplitude * envelope * np.sin(phase)).astype(np.int16)


def ensure_alarm_sound(sounds_dir: Path, sound: Sound) -> Path:
    path = sounds_dir / f"{sound.id}.wav"
    if path.exists():
        return path
    path.parent.mkdir(parents=True, exist_ok=True)
    frames = synthesize_tone(sound)
    with wave.open(str(path), "w") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(SAMPLE_RATE)
        wav.writeframes(frames.tobytes())
    logger.info("Generated alarm sound %s at %s", sound.name, path)
    return path


class AlarmSoundPlayer:
    """Loops an alarm sound until stopped."""

    def __init__(self, sounds_dir: Path):
        self.sounds_dir = sounds_dir
        self._stop_event = Event()
        self._lock = Lock()
        self._beep_thread: Optional[Thread] = None
        self.current: Optional[Sound] = None

    @property
    def is_playing(self) -> bool:
        return self.current is not None

    def start(self, sound: Sound) -> None:
        with self._lock:
            self.current = sound
            self._stop_event.clear()
        try:
            path = ensure_alarm_sound(self.sounds_dir, sound)
        except OSError as exc:
            logger.warning("Could not prepare sound %s: %s", sound.name, exc)
            path = None
        if winsound and path is not None:
            try:
                winsound.PlaySound(
                    str(path),
                    winsound.SND_FILENAME | winsound.SND_LOOP | winsound.SND_ASYNC,
                )
                return
            except RuntimeError:
                logger.warning("winsound.PlaySound failed, falling back to beep loop")

        if self._beep_thread and self._beep_thread.is_alive():
            return
        self._beep_thread = Thread(target=self._beep_loop, name="alarm-beep", daemon=True)
        self._beep_thread.start()

    def stop(self) -> None:
        with self._lock:
            self.current = None
            self._stop_event.set()
        if winsound:
            try:
                winsound.PlaySound(None, winsound.SND_PURGE)
            except RuntimeError:
                logger.debug("winsound.PlaySound purge failed")

    def _beep_loop(self) -> None:  # pragma: no cover - timing loop
        while not self._stop_event.is_set():
            if winsound:
                try:
                    winsound.Beep(880, 250)
                except RuntimeError:
                    logger.debug("winsound.Beep failed inside loop")
            else:
                logger.info("Alarm ringing (%s)...", self.current.name if self.current else "?")
            self._stop_event.wait(0.75)
