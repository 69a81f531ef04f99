"""
Segment Player for Stationcast.

Executes exactly one segment of a broadcast, dispatching on its kind:

- Track: load the clip, optional fade-in, poll progress, one fade-out, done
- Announcement: optional music duck, speak, restore, done
- VolumeDip: dip the music, hold, restore, done

Every handler ends in one of two outcomes. COMPLETED means the segment reached
its natural end and the scheduler should advance. CANCELLED means the session
was stopped underneath it and nothing further may be scheduled. Driver errors
never escape: a failing segment counts as COMPLETED so the rest of the
broadcast keeps playing.
"""

import logging
from enum import Enum
from typing import Callable, Dict

from stationcast.broadcast_core.fade_controller import FadeController
from stationcast.broadcast_core.playback_session import PlaybackSession
from stationcast.broadcast_core.segment import (
    FULL_VOLUME,
    AnnouncementConfig,
    Segment,
    SegmentKind,
    TrackConfig,
    VolumeDipConfig,
    extract_source_id,
)
from stationcast.drivers.base import MusicDriver, SpeechDriver
from stationcast.log_file import attach_log_file

logger = logging.getLogger(__name__)
attach_log_file(logger)

DEFAULT_POLL_INTERVAL_SEC = 0.1
DEFAULT_TRANSITION_MS = 500


class SegmentOutcome(Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SegmentPlayer:
    """
    Runs one segment to completion or cancellation on the session thread.

    Args:
        music: Music driver (single stream)
        speech: Speech driver (single utterance)
        fades: Fade controller bound to the same music driver
        poll_interval: Seconds between track progress checks
        transition_ms: Duck/dip fade duration in milliseconds
    """

    def __init__(self, music: MusicDriver, speech: SpeechDriver, fades: FadeController,
                 poll_interval: float = DEFAULT_POLL_INTERVAL_SEC,
                 transition_ms: float = DEFAULT_TRANSITION_MS):
        self._music = music
        self._speech = speech
        self._fades = fades
        self._poll_interval = poll_interval
        self._transition_ms = transition_ms

        self._handlers: Dict[SegmentKind, Callable[[object, PlaybackSession], SegmentOutcome]] = {
            SegmentKind.TRACK: self._play_track,
            SegmentKind.ANNOUNCEMENT: self._play_announcement,
            SegmentKind.VOLUME_DIP: self._play_volume_dip,
        }
        missing = set(SegmentKind) - set(self._handlers)
        if missing:
            raise TypeError(f"No segment handler for: {sorted(k.value for k in missing)}")

    @property
    def fades(self) -> FadeController:
        return self._fades

    def play(self, segment: Segment, session: PlaybackSession) -> SegmentOutcome:
        """
        Execute one segment.

        Args:
            segment: Segment to play
            session: Owning session (its stop event cancels the segment)

        Returns:
            SegmentOutcome.COMPLETED on natural end (including driver errors),
            SegmentOutcome.CANCELLED if the session stopped
        """
        if not session.is_active:
            return SegmentOutcome.CANCELLED

        logger.info(f"[SEGMENT] Playing {segment.kind.value} segment id={segment.id} "
                    f"(index {session.cursor})")
        handler = self._handlers[segment.kind]
        try:
            outcome = handler(segment.config, session)
            session.current_volume = self._music.get_volume()
        except Exception as e:
            logger.error(f"[SEGMENT] Error in {segment.kind.value} segment id={segment.id}: {e}",
                         exc_info=True)
            outcome = SegmentOutcome.COMPLETED

        if outcome is SegmentOutcome.COMPLETED and not session.is_active:
            # Stopped between natural completion and return
            outcome = SegmentOutcome.CANCELLED
        logger.debug(f"[SEGMENT] Segment id={segment.id} {outcome.value}")
        return outcome

    def _fade(self, start: float, target: float, duration_ms: float,
              session: PlaybackSession) -> bool:
        """Run a fade; True while the session is still active afterwards."""
        self._fades.fade(start, target, duration_ms, stop_event=session.stop_event)
        return session.is_active

    def _play_track(self, cfg: TrackConfig, session: PlaybackSession) -> SegmentOutcome:
        source_id = extract_source_id(cfg.source)
        if source_id is None:
            logger.warning(f"[SEGMENT] Unparsable track source {cfg.source!r}, skipping")
            return SegmentOutcome.COMPLETED

        logger.info(f"[SEGMENT] Track: {cfg.display_title} ({source_id})")
        if not session.is_active:
            return SegmentOutcome.CANCELLED
        self._music.load_and_play(source_id, cfg.start_offset, cfg.end_offset or None)
        if not session.is_active:
            # stop() ran while the clip was loading; its driver halt came too early
            self._music.stop()
            return SegmentOutcome.CANCELLED

        if cfg.fade_in > 0:
            self._music.set_volume(0)
            if not self._fade(0, FULL_VOLUME, cfg.fade_in * 1000, session):
                return SegmentOutcome.CANCELLED
        else:
            self._music.set_volume(FULL_VOLUME)

        fade_out_started = False
        while session.wait(self._poll_interval):
            if self._music.has_error():
                logger.warning(f"[SEGMENT] Music driver error on {source_id}, advancing")
                return SegmentOutcome.COMPLETED
            if self._music.is_ended():
                return SegmentOutcome.COMPLETED

            current = self._music.get_current_time()
            end_time = cfg.end_offset or self._music.get_duration()
            if end_time <= 0:
                # Duration not known yet
                continue
            if current >= end_time:
                return SegmentOutcome.COMPLETED

            if not fade_out_started and cfg.fade_out > 0 and current >= end_time - cfg.fade_out:
                fade_out_started = True
                logger.info(f"[SEGMENT] Fade-out at {current:.1f}s over {cfg.fade_out:g}s")
                if not self._fade(FULL_VOLUME, 0, cfg.fade_out * 1000, session):
                    return SegmentOutcome.CANCELLED
                return SegmentOutcome.COMPLETED

        return SegmentOutcome.CANCELLED

    def _play_announcement(self, cfg: AnnouncementConfig, session: PlaybackSession) -> SegmentOutcome:
        if not self._speech.is_available():
            logger.info("[SEGMENT] No speech capability, skipping announcement")
            return SegmentOutcome.COMPLETED

        restore_volume = None
        if cfg.duck_music and self._music.is_playing():
            restore_volume = self._music.get_volume()
            logger.info(f"[SEGMENT] Ducking music {restore_volume:.0f} -> {cfg.duck_volume}")
            if not self._fade(restore_volume, cfg.duck_volume, self._transition_ms, session):
                return SegmentOutcome.CANCELLED

        preview = cfg.text if len(cfg.text) <= 60 else cfg.text[:60] + "..."
        logger.info(f"[SEGMENT] Announcement: {preview}")
        if not session.is_active:
            return SegmentOutcome.CANCELLED
        try:
            if not self._speech.speak(cfg.text, cfg.voice):
                logger.debug("[SEGMENT] Utterance ended with error or cancel")
        except Exception as e:
            logger.error(f"[SEGMENT] Speech driver error: {e}")
        if not session.is_active:
            return SegmentOutcome.CANCELLED

        if restore_volume is not None:
            if not self._fade(cfg.duck_volume, restore_volume, self._transition_ms, session):
                return SegmentOutcome.CANCELLED
        return SegmentOutcome.COMPLETED

    def _play_volume_dip(self, cfg: VolumeDipConfig, session: PlaybackSession) -> SegmentOutcome:
        if not self._music.is_playing():
            logger.info("[SEGMENT] Nothing playing, skipping volume dip")
            return SegmentOutcome.COMPLETED

        restore_volume = self._music.get_volume()
        logger.info(f"[SEGMENT] Volume dip {restore_volume:.0f} -> {cfg.volume} for {cfg.duration:g}s")
        if not self._fade(restore_volume, cfg.volume, self._transition_ms, session):
            return SegmentOutcome.CANCELLED
        if not session.wait(cfg.duration):
            return SegmentOutcome.CANCELLED
        if not self._fade(cfg.volume, restore_volume, self._transition_ms, session):
            return SegmentOutcome.CANCELLED
        return SegmentOutcome.COMPLETED
