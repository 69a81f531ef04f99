"""
Driver interfaces used by the segment player.

The playback core never talks to an audio engine directly. It is handed one
MusicDriver (a single seekable music stream) and one SpeechDriver (a single
text-to-speech utterance at a time), both bound before the scheduler is built.
"""

from abc import ABC, abstractmethod
from typing import List, Optional


class MusicDriver(ABC):
    """
    A time-seekable media engine playing one clip at a time.

    Volume is on a 0-100 scale. Every method must tolerate being called
    before any clip has been loaded (no-op / neutral value, never an error).
    """

    @abstractmethod
    def load_and_play(self, source_id: str, start_offset: float = 0.0,
                      end_offset: Optional[float] = None) -> None:
        """
        Load a clip and start playing it at start_offset seconds.

        Args:
            source_id: Clip identifier (already extracted from any URL)
            start_offset: Seconds into the clip to start at
            end_offset: Seconds into the clip to stop at, or None for natural end
        """
        ...

    @abstractmethod
    def set_volume(self, volume: float) -> None:
        ...

    @abstractmethod
    def get_volume(self) -> float:
        ...

    @abstractmethod
    def get_current_time(self) -> float:
        """Seconds into the loaded clip (0.0 if nothing is loaded)."""
        ...

    @abstractmethod
    def get_duration(self) -> float:
        """Clip duration in seconds (0.0 if unknown or nothing is loaded)."""
        ...

    @abstractmethod
    def is_ended(self) -> bool:
        ...

    @abstractmethod
    def is_playing(self) -> bool:
        ...

    @abstractmethod
    def stop(self) -> None:
        """Halt playback unconditionally. Safe to call at any time."""
        ...

    def has_error(self) -> bool:
        """True if the engine reported an error for the current clip."""
        return False


class SpeechDriver(ABC):
    """
    A text-to-speech engine speaking one utterance at a time.

    speak() blocks the calling thread until the utterance finishes, fails, or
    is cancelled by cancel_all() from another thread.
    """

    @abstractmethod
    def is_available(self) -> bool:
        """True if a backing TTS capability exists. Must never raise."""
        ...

    @abstractmethod
    def speak(self, text: str, voice_id: Optional[str] = None) -> bool:
        """
        Speak `text` to completion.

        Returns:
            True if the utterance finished normally, False on error or cancel
        """
        ...

    @abstractmethod
    def cancel_all(self) -> None:
        """Cancel the current utterance (if any). Safe to call at any time."""
        ...

    def list_voices(self) -> List[str]:
        return []
