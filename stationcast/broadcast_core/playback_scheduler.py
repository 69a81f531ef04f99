"""
Playback Scheduler for Stationcast.

Drives one Playback Session at a time through a broadcast's segments:

    start(segments, loop) -> session thread -> SegmentPlayer.play() per segment
                                            -> advance() on natural completion
    stop()                -> deactivate session, halt drivers, cancel fade

The session thread is the only thread that executes segments. stop() may be
called from any thread at any time; it never waits for the session thread to
unwind, but once it returns no further segment will begin and no further
volume change is applied.
"""

import logging
import threading
import time
from enum import Enum
from typing import Callable, List, Optional, Protocol, Sequence

from stationcast.broadcast_core.fade_controller import FadeController, DEFAULT_FADE_STEPS
from stationcast.broadcast_core.playback_session import PlaybackSession
from stationcast.broadcast_core.segment import Segment, order_segments
from stationcast.broadcast_core.segment_player import (
    DEFAULT_POLL_INTERVAL_SEC,
    DEFAULT_TRANSITION_MS,
    SegmentOutcome,
    SegmentPlayer,
)
from stationcast.drivers.base import MusicDriver, SpeechDriver
from stationcast.errors import NothingToPlayError, SessionActiveError
from stationcast.log_file import attach_log_file

logger = logging.getLogger(__name__)
attach_log_file(logger)


class SessionEndReason(str, Enum):
    ENDED = "ended"          # last segment completed with loop off
    CANCELLED = "cancelled"  # stop() was called


class NowPlayingSink(Protocol):
    """
    Receives segment transitions for display.

    Calls are fire-and-forget: exceptions are logged and ignored.
    """

    def on_segment_started(self, segment: Segment, index: int) -> None:
        ...

    def clear_state(self) -> None:
        ...


SessionListener = Callable[[PlaybackSession, SessionEndReason], None]


class PlaybackScheduler:
    """
    Sequencing engine for a station broadcast.

    Args:
        music: Music driver shared by every session
        speech: Speech driver shared by every session
        now_playing: Optional sink for "now playing" transitions
        poll_interval: Seconds between track progress checks
        transition_ms: Duck/dip fade duration in milliseconds
        fade_steps: Steps per fade ramp
    """

    def __init__(self, music: MusicDriver, speech: SpeechDriver,
                 now_playing: Optional[NowPlayingSink] = None,
                 poll_interval: float = DEFAULT_POLL_INTERVAL_SEC,
                 transition_ms: float = DEFAULT_TRANSITION_MS,
                 fade_steps: int = DEFAULT_FADE_STEPS):
        self._music = music
        self._speech = speech
        self._now_playing = now_playing
        self._poll_interval = poll_interval
        self._fades = FadeController(music, steps=fade_steps)
        self._player = SegmentPlayer(
            music, speech, self._fades,
            poll_interval=poll_interval,
            transition_ms=transition_ms,
        )
        self._lock = threading.RLock()
        self._session: Optional[PlaybackSession] = None
        self._thread: Optional[threading.Thread] = None
        self._listeners: List[SessionListener] = []

    @property
    def session(self) -> Optional[PlaybackSession]:
        """The active session, or None when idle."""
        with self._lock:
            return self._session

    @property
    def is_active(self) -> bool:
        with self._lock:
            return self._session is not None and self._session.is_active

    @property
    def fades(self) -> FadeController:
        return self._fades

    def add_listener(self, callback: SessionListener) -> None:
        """Add a callback invoked with (session, reason) when a session ends."""
        with self._lock:
            self._listeners.append(callback)

    def remove_listener(self, callback: SessionListener) -> None:
        with self._lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    def start(self, segments: Sequence[Segment], loop: bool) -> PlaybackSession:
        """
        Start a new playback session.

        Segments are played in ascending position order from a private copy.

        Args:
            segments: Broadcast segments (any order; positions must be unique)
            loop: Restart from the first segment after the last one completes

        Returns:
            The new PlaybackSession

        Raises:
            NothingToPlayError: If segments is empty (no session is created)
            SessionActiveError: If a session is already active
            SegmentError: If two segments share a position
        """
        if not segments:
            logger.warning("[SCHEDULER] Nothing to play: broadcast has no segments")
            raise NothingToPlayError("Broadcast has no segments")

        with self._lock:
            if self._session is not None and self._session.is_active:
                logger.warning("[SCHEDULER] Cannot start: a session is already active (stop it first)")
                raise SessionActiveError("A playback session is already active")

            ordered = order_segments(segments)
            session = PlaybackSession(ordered, loop, initial_volume=self._music.get_volume())
            self._session = session
            self._thread = threading.Thread(
                target=self._run_session,
                args=(session,),
                name=f"PlaybackSession-{str(session.session_id)[:8]}",
                daemon=True,
            )
            logger.info(f"[SCHEDULER] Session {str(session.session_id)[:8]} starting: "
                        f"{len(ordered)} segment(s), loop={loop}")
            self._thread.start()
        return session

    def stop(self) -> bool:
        """
        Stop the active session immediately.

        Halts both drivers, cancels any in-flight fade (keeping the last
        applied volume) and destroys the session. Idempotent.

        Returns:
            True if a session was stopped, False if none was active
        """
        with self._lock:
            session = self._session
        if session is None:
            return False
        return self._end_session(session, SessionEndReason.CANCELLED)

    def advance(self, session: PlaybackSession) -> bool:
        """
        Move the session cursor after a segment completed naturally.

        Returns:
            True if another segment should be played, False if the session
            is over (stopped, or ended with loop off)
        """
        with self._lock:
            if not session.is_active or self._session is not session:
                return False

            session.cursor += 1
            if session.cursor < len(session.segments):
                return True

            if session.loop:
                session.cursor = 0
                session.loops_completed += 1
                logger.info(f"[SCHEDULER] End of broadcast, looping (pass {session.loops_completed + 1})")
                return True

        logger.info("[SCHEDULER] End of broadcast, loop off")
        self._end_session(session, SessionEndReason.ENDED)
        return False

    def is_playing_index(self, index: int) -> bool:
        """True if the segment at `index` of the active session is playing."""
        with self._lock:
            session = self._session
            return session is not None and session.is_active and session.cursor == index

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the current session thread to exit.

        Returns:
            True if no session thread is running afterwards
        """
        with self._lock:
            thread = self._thread
        if thread is None or thread is threading.current_thread():
            return thread is None
        thread.join(timeout)
        return not thread.is_alive()

    def _run_session(self, session: PlaybackSession) -> None:
        pass_started = time.monotonic()
        try:
            while session.is_active:
                segment = session.current_segment
                if segment is None:
                    break
                self._notify_segment_started(session, segment)

                outcome = self._player.play(segment, session)
                if outcome is SegmentOutcome.CANCELLED:
                    break

                previous_loops = session.loops_completed
                if not self.advance(session):
                    break

                if session.loops_completed != previous_loops:
                    # A pass with nothing audible finishes instantly; pace it
                    elapsed = time.monotonic() - pass_started
                    if elapsed < self._poll_interval and not session.wait(self._poll_interval - elapsed):
                        break
                    pass_started = time.monotonic()
        except Exception as e:
            logger.error(f"[SCHEDULER] Session thread failed: {e}", exc_info=True)
            self._end_session(session, SessionEndReason.CANCELLED)
        finally:
            logger.debug(f"[SCHEDULER] Session thread exiting ({session!r})")

    def _end_session(self, session: PlaybackSession, reason: SessionEndReason) -> bool:
        with self._lock:
            if self._session is not session:
                return False
            session.deactivate()
            session.end_reason = reason
            self._session = None

        # Same teardown for ENDED and CANCELLED
        self._fades.cancel()
        for name, halt in (("music", self._music.stop), ("speech", self._speech.cancel_all)):
            try:
                halt()
            except Exception as e:
                logger.error(f"[SCHEDULER] Error halting {name} driver: {e}")

        logger.info(f"[SCHEDULER] Session {str(session.session_id)[:8]} {reason.value} "
                    f"at index {session.cursor}")
        self._notify_session_ended(session, reason)
        return True

    def _notify_segment_started(self, session: PlaybackSession, segment: Segment) -> None:
        if self._now_playing is None:
            return
        try:
            self._now_playing.on_segment_started(segment, session.cursor)
        except Exception as e:
            logger.warning(f"[SCHEDULER] Now playing sink error: {e}")

    def _notify_session_ended(self, session: PlaybackSession, reason: SessionEndReason) -> None:
        if self._now_playing is not None:
            try:
                self._now_playing.clear_state()
            except Exception as e:
                logger.warning(f"[SCHEDULER] Now playing sink error: {e}")

        with self._lock:
            listeners = self._listeners.copy()
        for callback in listeners:
            try:
                callback(session, reason)
            except Exception as e:
                logger.debug(f"[SCHEDULER] Session listener error: {e}")
