"""
Fade Controller for Stationcast.

Linear volume ramps applied to the music driver in discrete steps.

Only one fade is ever in flight: starting a new fade cancels the remaining
steps of the previous one. A cancelled fade returns immediately and leaves
the last applied volume in place (it never snaps to the target).
"""

import logging
import threading
from typing import List, Optional

import numpy as np

from stationcast.drivers.base import MusicDriver
from stationcast.log_file import attach_log_file

logger = logging.getLogger(__name__)
attach_log_file(logger)

DEFAULT_FADE_STEPS = 20
MIN_VOLUME = 0.0
MAX_VOLUME = 100.0


def ramp_levels(start: float, target: float, steps: int = DEFAULT_FADE_STEPS) -> List[float]:
    """
    Volume levels for each step of a linear ramp from start to target.

    Each level is clamped to [0, 100]; the last level is exactly the
    (clamped) target so repeated float additions never drift.

    Args:
        start: Volume before the ramp
        target: Volume after the ramp
        steps: Number of discrete steps (>= 1)

    Returns:
        List of `steps` volume levels
    """
    if steps < 1:
        raise ValueError(f"steps must be >= 1 (got {steps})")
    delta = (float(target) - float(start)) / steps
    levels = float(start) + delta * np.arange(1, steps + 1, dtype=np.float64)
    np.clip(levels, MIN_VOLUME, MAX_VOLUME, out=levels)
    levels[-1] = min(MAX_VOLUME, max(MIN_VOLUME, float(target)))
    return levels.tolist()


class _Fade:
    """Handle for one in-flight ramp."""

    def __init__(self, start: float, target: float, duration_ms: float):
        self.start = start
        self.target = target
        self.duration_ms = duration_ms
        self.cancelled = threading.Event()


class FadeController:
    """
    Applies timed linear ramps to a MusicDriver's volume.

    fade() runs on the calling thread and sleeps between steps; cancel() may
    be called from any thread and wakes the sleeping fade at once.
    """

    def __init__(self, music: MusicDriver, steps: int = DEFAULT_FADE_STEPS):
        if steps < 1:
            raise ValueError(f"steps must be >= 1 (got {steps})")
        self._music = music
        self._steps = steps
        self._lock = threading.RLock()
        self._current: Optional[_Fade] = None

    @property
    def in_flight(self) -> bool:
        with self._lock:
            return self._current is not None

    def fade(self, start: float, target: float, duration_ms: float,
             stop_event: Optional[threading.Event] = None) -> bool:
        """
        Ramp the music volume from start to target over duration_ms.

        Args:
            start: Starting volume (0-100)
            target: Final volume (0-100)
            duration_ms: Ramp duration in milliseconds (0 = apply target now)
            stop_event: Session stop flag; once set no further step is applied

        Returns:
            True if the ramp reached its target, False if it was cancelled
        """
        handle = _Fade(start, target, duration_ms)
        with self._lock:
            if self._current is not None:
                logger.debug("[FADE] Superseding in-flight fade")
                self._current.cancelled.set()
            self._current = handle

        try:
            if duration_ms <= 0:
                return self._apply(handle, stop_event, min(MAX_VOLUME, max(MIN_VOLUME, float(target))))

            logger.debug(f"[FADE] {start:.0f} -> {target:.0f} over {duration_ms:.0f}ms")
            step_sec = (duration_ms / 1000.0) / self._steps
            for level in ramp_levels(start, target, self._steps):
                if handle.cancelled.wait(step_sec):
                    logger.debug("[FADE] Cancelled mid-ramp")
                    return False
                if not self._apply(handle, stop_event, level):
                    return False
            return True
        finally:
            with self._lock:
                if self._current is handle:
                    self._current = None

    def _apply(self, handle: _Fade, stop_event: Optional[threading.Event], level: float) -> bool:
        # Check and apply under the lock so cancel() returning means no more writes
        with self._lock:
            if handle.cancelled.is_set() or (stop_event is not None and stop_event.is_set()):
                return False
            self._music.set_volume(level)
            return True

    def cancel(self) -> None:
        """Cancel the in-flight fade (if any), keeping the current volume."""
        with self._lock:
            if self._current is not None:
                self._current.cancelled.set()
                self._current = None
