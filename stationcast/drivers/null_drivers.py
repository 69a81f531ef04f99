from typing import Optional

from .base import MusicDriver, SpeechDriver


class NullMusicDriver(MusicDriver):
    """A music driver with no engine behind it. Nothing ever plays."""

    def __init__(self):
        self._volume = 100.0

    def load_and_play(self, source_id: str, start_offset: float = 0.0,
                      end_offset: Optional[float] = None) -> None:
        return

    def set_volume(self, volume: float) -> None:
        self._volume = volume

    def get_volume(self) -> float:
        return self._volume

    def get_current_time(self) -> float:
        return 0.0

    def get_duration(self) -> float:
        return 0.0

    def is_ended(self) -> bool:
        # Nothing loaded means a track segment finishes on the first poll
        return True

    def is_playing(self) -> bool:
        return False

    def stop(self) -> None:
        return


class NullSpeechDriver(SpeechDriver):
    """Reports no TTS capability; announcements are skipped."""

    def is_available(self) -> bool:
        return False

    def speak(self, text: str, voice_id: Optional[str] = None) -> bool:
        return False

    def cancel_all(self) -> None:
        return
