"""
Now Playing State Manager

Provides read-only state for the segment the scheduler is currently playing,
for display collaborators (segment list highlighting, HTTP publishing).

Listener failures are logged and dropped; they never affect playback.
"""

import logging
import threading
import time
from dataclasses import dataclass, asdict
from typing import Any, Callable, Dict, List, Optional

from stationcast.broadcast_core.segment import Segment, TrackConfig, AnnouncementConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NowPlayingState:
    """
    Immutable snapshot of the active segment.

    started_at is a wall-clock timestamp (time.time()).
    """
    segment_id: Any
    segment_kind: str
    index: int
    started_at: float
    title: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _segment_title(segment: Segment) -> str:
    cfg = segment.config
    if isinstance(cfg, TrackConfig):
        return cfg.display_title
    if isinstance(cfg, AnnouncementConfig):
        return "Announcement"
    return "Volume Dip"


class NowPlayingStateManager:
    """
    Holds the NowPlayingState for the active session.

    The scheduler is the only writer: state is created on each segment start
    and cleared when the session ends.
    """

    def __init__(self):
        self._state: Optional[NowPlayingState] = None
        self._lock = threading.RLock()
        self._listeners: List[Callable[[Optional[NowPlayingState]], None]] = []

    def on_segment_started(self, segment: Segment, index: int) -> None:
        """
        Record the segment that just started.

        Args:
            segment: Segment now playing
            index: Its index in the session's ordered segment list
        """
        with self._lock:
            self._state = NowPlayingState(
                segment_id=segment.id,
                segment_kind=segment.kind.value,
                index=index,
                started_at=time.time(),
                title=_segment_title(segment),
            )
            logger.debug(f"[NOW_PLAYING] State created: {self._state.segment_kind} - {self._state.title}")
            state = self._state
        self._notify_listeners(state)

    def clear_state(self) -> None:
        """Clear state when the session ends (naturally or by stop)."""
        with self._lock:
            if self._state is not None:
                logger.debug(f"[NOW_PLAYING] State cleared: {self._state.segment_kind} - {self._state.title}")
            self._state = None
        self._notify_listeners(None)

    def get_state(self) -> Optional[NowPlayingState]:
        with self._lock:
            return self._state

    def add_listener(self, callback: Callable[[Optional[NowPlayingState]], None]) -> None:
        """
        Add a listener called with the new state (or None when cleared).
        """
        with self._lock:
            self._listeners.append(callback)

    def remove_listener(self, callback) -> None:
        with self._lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    def _notify_listeners(self, state: Optional[NowPlayingState]) -> None:
        with self._lock:
            listeners = self._listeners.copy()

        for callback in listeners:
            try:
                callback(state)
            except Exception as e:
                logger.debug(f"[NOW_PLAYING] Listener callback error: {e}")
