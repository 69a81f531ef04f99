"""
Station player orchestrator.

Wires configuration, drivers, the segment-list provider, now-playing state
and the playback scheduler together:

    provider.get_broadcast(station_id) -> scheduler.start(segments, loop)
    scheduler -> NowPlayingStateManager -> NowPlayingClient (optional)
"""

import logging
import threading
from typing import Optional

import pygame

from stationcast.app.broadcast_provider import BroadcastProvider
from stationcast.app.config import PlayerConfig
from stationcast.broadcast_core.playback_scheduler import PlaybackScheduler, SessionEndReason
from stationcast.broadcast_core.playback_session import PlaybackSession
from stationcast.broadcast_core.segment import Broadcast
from stationcast.drivers.base import MusicDriver, SpeechDriver
from stationcast.drivers.null_drivers import NullMusicDriver
from stationcast.drivers.piper_speech import PiperSpeechDriver
from stationcast.drivers.pygame_music import PygameMusicDriver
from stationcast.log_file import attach_log_file
from stationcast.outputs.now_playing_client import NowPlayingClient
from stationcast.state.now_playing_state import NowPlayingStateManager

logger = logging.getLogger(__name__)
attach_log_file(logger)


def create_music_driver(config: PlayerConfig) -> MusicDriver:
    """Build the pygame music driver, or an inert one if no audio device exists."""
    try:
        return PygameMusicDriver(config.clip_dir)
    except pygame.error as e:
        logger.error(f"[PLAYER] Music playback unavailable ({e}); tracks will be skipped")
        return NullMusicDriver()


def create_speech_driver(config: PlayerConfig) -> SpeechDriver:
    driver = PiperSpeechDriver(
        piper_bin=config.piper_bin,
        voices_dir=config.voices_dir,
        default_voice=config.default_voice,
    )
    if not driver.is_available():
        logger.warning("[PLAYER] Piper TTS not available; announcements will be skipped")
    return driver


class StationPlayer:
    """
    Plays one station's broadcast at a time.

    Drivers and provider are injectable so tests (and embedding apps) can
    supply their own; by default they are built from PlayerConfig.
    """

    def __init__(self, config: PlayerConfig, provider=None,
                 music: Optional[MusicDriver] = None, speech: Optional[SpeechDriver] = None):
        self.config = config
        self.provider = provider or BroadcastProvider(config.api_base_url, timeout=config.api_timeout)
        self.music = music or create_music_driver(config)
        self.speech = speech or create_speech_driver(config)
        self.now_playing = NowPlayingStateManager()
        self.now_playing_client: Optional[NowPlayingClient] = None
        self.broadcast: Optional[Broadcast] = None
        self._finished = threading.Event()
        self._finished.set()

        self.scheduler = PlaybackScheduler(
            self.music,
            self.speech,
            now_playing=self.now_playing,
            poll_interval=config.poll_interval,
            transition_ms=config.transition_ms,
            fade_steps=config.fade_steps,
        )
        self.scheduler.add_listener(self._on_session_ended)

    def load(self, station_id) -> Optional[Broadcast]:
        """Fetch a station's broadcast from the provider."""
        broadcast = self.provider.get_broadcast(station_id)
        if broadcast is None:
            logger.error(f"[PLAYER] Failed to load station {station_id}")
            return None
        logger.info(f"[PLAYER] Loaded station '{broadcast.station.name}' "
                    f"({len(broadcast.segments)} segment(s), loop={broadcast.loop})")
        self.broadcast = broadcast
        return broadcast

    def play(self, station_id, loop: Optional[bool] = None) -> Optional[PlaybackSession]:
        """
        Load and start a station's broadcast.

        Args:
            station_id: Station to play
            loop: Override the station's loop flag (None = use the station's)

        Returns:
            The started session, or None if the station could not be loaded

        Raises:
            NothingToPlayError: If the station has no segments
            SessionActiveError: If something is already playing
        """
        broadcast = self.load(station_id)
        if broadcast is None:
            return None

        if self.config.now_playing_url and self.now_playing_client is None:
            self.now_playing_client = NowPlayingClient(
                self.config.now_playing_url,
                station_id=broadcast.station.id,
                timeout=self.config.api_timeout,
            )
            self.now_playing.add_listener(self.now_playing_client.publish)
        elif self.now_playing_client is not None:
            self.now_playing_client.station_id = broadcast.station.id

        self._finished.clear()
        try:
            return self.scheduler.start(broadcast.segments, broadcast.loop if loop is None else loop)
        except Exception:
            self._finished.set()
            raise

    def stop(self) -> None:
        self.scheduler.stop()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the current session ends. True if it has ended."""
        return self._finished.wait(timeout)

    def close(self) -> None:
        self.stop()
        self.scheduler.join(timeout=2.0)
        if self.now_playing_client is not None:
            self.now_playing_client.close()
        self.provider.close()

    def _on_session_ended(self, session: PlaybackSession, reason: SessionEndReason) -> None:
        logger.info(f"[PLAYER] Broadcast {reason.value}")
        self._finished.set()
