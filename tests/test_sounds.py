import wave

from alarms.sounds import (
    AVAILABLE_SOUNDS,
    SAMPLE_RATE,
    AlarmSoundPlayer,
    default_sound,
    ensure_alarm_sound,
    find_sound,
    synthesize_tone,
)


def test_catalog_lookup():
    assert len(AVAILABLE_SOUNDS) == 14
    assert default_sound().name == "Trill"
    assert find_sound("1023").name == "Bloom"
    assert find_sound("nope") is None


def test_synthesized_tone_fits_in_int16():
    frames = synthesize_tone(find_sound("1014"), duration_seconds=0.5)
    assert len(frames) == SAMPLE_RATE // 2
    assert frames.dtype.name == "int16"
    assert abs(int(frames[0])) < 100


def test_ensure_alarm_sound_writes_wav_once(tmp_path):
    sound = default_sound()
    path = ensure_alarm_sound(tmp_path, sound)
    with wave.open(str(path)) as wav:
        assert wav.getframerate() == SAMPLE_RATE
        assert wav.getnchannels() == 1
    mtime = path.stat().st_mtime_ns
    assert ensure_alarm_sound(tmp_path, sound) == path
    assert path.stat().st_mtime_ns == mtime


def test_player_tracks_current_sound(tmp_path):
    player = AlarmSoundPlayer(tmp_path)
    sound = find_sound("1005")
    player.start(sound)
    assert player.is_playing
    assert player.current is sound
    player.stop()
    assert not player.is_playing
