"""
Music driver backed by pygame's mixer.music stream.

Clip IDs resolve to local files in a clip directory:

    {clip_dir}/{source_id}.mp3 (or .ogg / .wav)

A missing or unreadable clip puts the driver in an error state, which the
segment player treats the same as the clip ending.

Example:
    ```python
    from stationcast.drivers.pygame_music import PygameMusicDriver

    music = PygameMusicDriver("/srv/clips")
    music.load_and_play("dQw4w9WgXcQ", start_offset=12.0)
    music.set_volume(80)
    ```
"""

import logging
import os
import threading
import time
from pathlib import Path
from typing import Optional, Union

import pygame

from .base import MusicDriver

logger = logging.getLogger(__name__)

CLIP_EXTENSIONS = (".mp3", ".ogg", ".wav")


def init_mixer(frequency: int = 48000, buffer_size: int = 2048) -> None:
    """
    Initialize pygame's mixer once for the whole process.

    Sets a dummy video driver for headless hosts and retries a few times when
    the audio device is busy.

    Raises:
        pygame.error: If the mixer cannot be initialized after retries
    """
    if pygame.mixer.get_init():
        return

    if 'DISPLAY' not in os.environ:
        os.environ.setdefault('SDL_VIDEODRIVER', 'dummy')

    max_retries = 3
    retry_delay = 1.0

    for attempt in range(1, max_retries + 1):
        try:
            pygame.mixer.pre_init(frequency=frequency, buffer=buffer_size)
            pygame.mixer.init()
            logger.info(f"[MUSIC] pygame mixer initialized ({frequency} Hz, buffer={buffer_size})")
            return
        except pygame.error as e:
            is_device_busy = 'busy' in str(e).lower() or 'resource' in str(e).lower()
            if attempt < max_retries and is_device_busy:
                logger.warning(f"[MUSIC] Audio device busy (attempt {attempt}/{max_retries}), retrying in {retry_delay}s...")
                time.sleep(retry_delay)
                retry_delay *= 1.5
            else:
                logger.error(f"[MUSIC] Failed to initialize pygame mixer: {e}")
                raise


class PygameMusicDriver(MusicDriver):
    """
    Single-stream music playback through pygame.mixer.music.

    Attributes:
        clip_dir: Directory holding clips named after their source IDs
    """

    def __init__(self, clip_dir: Union[str, Path], frequency: int = 48000, buffer_size: int = 2048):
        self.clip_dir = Path(clip_dir).expanduser()
        self._lock = threading.RLock()
        self._volume = 100.0
        self._loaded_path: Optional[Path] = None
        self._start_offset = 0.0
        self._end_offset: Optional[float] = None
        self._duration: Optional[float] = None
        self._stopped = True
        self._ended = False
        self._error = False
        init_mixer(frequency=frequency, buffer_size=buffer_size)

    def resolve_clip(self, source_id: str) -> Optional[Path]:
        """Return the local file for a clip ID, or None if none exists."""
        for ext in CLIP_EXTENSIONS:
            candidate = self.clip_dir / f"{source_id}{ext}"
            if candidate.is_file():
                return candidate
        return None

    def load_and_play(self, source_id: str, start_offset: float = 0.0,
                      end_offset: Optional[float] = None) -> None:
        with self._lock:
            self._reset()
            path = self.resolve_clip(source_id)
            if path is None:
                logger.warning(f"[MUSIC] No clip found for {source_id} in {self.clip_dir}")
                self._error = True
                return

            try:
                pygame.mixer.music.load(str(path))
                pygame.mixer.music.set_volume(self._volume / 100.0)
                pygame.mixer.music.play(start=start_offset)
            except pygame.error as e:
                logger.error(f"[MUSIC] Error playing {path}: {e}")
                self._error = True
                return

            self._loaded_path = path
            self._start_offset = start_offset
            self._end_offset = end_offset if end_offset else None
            self._stopped = False
            logger.info(f"[MUSIC] Playing: {path.name} from {start_offset:.1f}s")

    def _reset(self) -> None:
        self._loaded_path = None
        self._start_offset = 0.0
        self._end_offset = None
        self._duration = None
        self._stopped = True
        self._ended = False
        self._error = False

    @staticmethod
    def _read_duration(path: Path) -> float:
        try:
            return float(pygame.mixer.Sound(str(path)).get_length())
        except pygame.error as e:
            logger.debug(f"[MUSIC] Could not read duration of {path.name}: {e}")
            return 0.0

    def set_volume(self, volume: float) -> None:
        with self._lock:
            self._volume = max(0.0, min(100.0, float(volume)))
            if pygame.mixer.get_init():
                pygame.mixer.music.set_volume(self._volume / 100.0)

    def get_volume(self) -> float:
        return self._volume

    def get_current_time(self) -> float:
        with self._lock:
            if self._loaded_path is None:
                return 0.0
            pos_ms = pygame.mixer.music.get_pos()
            if pos_ms < 0:
                return self._start_offset
            current = self._start_offset + pos_ms / 1000.0
            if self._end_offset is not None and current >= self._end_offset and not self._ended:
                # Clip end offset reached: stop the stream like a natural end
                pygame.mixer.music.stop()
                self._ended = True
            return current

    def get_duration(self) -> float:
        """Clip length in seconds, decoded on first request; 0.0 if unknown."""
        with self._lock:
            path = self._loaded_path
            duration = self._duration
        if path is None:
            return 0.0
        if duration is not None:
            return duration

        # Decoded without the lock held
        duration = self._read_duration(path)
        with self._lock:
            if self._loaded_path == path and self._duration is None:
                self._duration = duration
        return duration

    def is_ended(self) -> bool:
        with self._lock:
            if self._loaded_path is None or self._stopped:
                return False
            if self._ended:
                return True
            self.get_current_time()
            if not self._ended and not pygame.mixer.music.get_busy():
                self._ended = True
            return self._ended

    def is_playing(self) -> bool:
        with self._lock:
            if self._loaded_path is None or self._stopped or self._ended:
                return False
            try:
                return bool(pygame.mixer.music.get_busy())
            except pygame.error:
                return False

    def has_error(self) -> bool:
        return self._error

    def stop(self) -> None:
        with self._lock:
            self._stopped = True
            try:
                if pygame.mixer.get_init():
                    pygame.mixer.music.stop()
                    logger.info("[MUSIC] Playback stopped")
            except pygame.error as e:
                logger.error(f"[MUSIC] Error stopping playback: {e}")
