"""
Playback Session - runtime state of one playback run.

A session is created by PlaybackScheduler.start() and destroyed when the
broadcast ends, is stopped, or is cancelled. Its stop event is the single
cancellation token every suspend point in the playback pipeline waits on.
"""

import threading
import time
import uuid
from typing import List, Optional

from stationcast.broadcast_core.segment import Segment, FULL_VOLUME


class PlaybackSession:
    """
    Mutable state for one active broadcast run.

    Attributes:
        session_id: Unique id for log correlation
        segments: Private, position-ordered copy of the broadcast's segments
        loop: Restart from the first segment after the last one completes
        cursor: Index of the segment currently executing
        current_volume: Last music volume recorded by the segment player
        loops_completed: Number of times the sequence wrapped back to 0
        end_reason: Why the session ended (None while active)
    """

    def __init__(self, segments: List[Segment], loop: bool, initial_volume: float = FULL_VOLUME):
        self.session_id = uuid.uuid4()
        self.segments: List[Segment] = list(segments)
        self.loop = loop
        self.cursor = 0
        self.current_volume = float(initial_volume)
        self.loops_completed = 0
        self.started_at = time.monotonic()
        self.ended_at: Optional[float] = None
        self.end_reason = None
        self._stop_event = threading.Event()

    @property
    def is_active(self) -> bool:
        return not self._stop_event.is_set()

    @property
    def stop_event(self) -> threading.Event:
        return self._stop_event

    @property
    def current_segment(self) -> Optional[Segment]:
        if 0 <= self.cursor < len(self.segments):
            return self.segments[self.cursor]
        return None

    def deactivate(self) -> None:
        if not self._stop_event.is_set():
            self.ended_at = time.monotonic()
        self._stop_event.set()

    def wait(self, seconds: float) -> bool:
        """
        Sleep for `seconds` unless the session is stopped first.

        Returns:
            True if the session is still active after the wait
        """
        if seconds > 0:
            return not self._stop_event.wait(seconds)
        return self.is_active

    def __repr__(self) -> str:
        return (f"PlaybackSession(id={str(self.session_id)[:8]}, cursor={self.cursor}/"
                f"{len(self.segments)}, loop={self.loop}, active={self.is_active})")
