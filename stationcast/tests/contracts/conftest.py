"""
Shared pytest fixtures for Stationcast contract tests.

Contract tests use test doubles (fakes, stubs, mocks) to avoid real audio
devices, clip files, TTS engines and network access.
"""

import threading

import pytest

from stationcast.broadcast_core.fade_controller import FadeController
from stationcast.broadcast_core.playback_scheduler import PlaybackScheduler
from stationcast.broadcast_core.segment_player import SegmentPlayer
from stationcast.tests.contracts.test_doubles import (
    FAST_POLL_INTERVAL,
    FAST_TRANSITION_MS,
    FakeMusicDriver,
    FakeSpeechDriver,
    RecordingNowPlayingSink,
)


@pytest.fixture
def fake_music():
    """Fake music driver with nothing loaded."""
    return FakeMusicDriver()


@pytest.fixture
def fake_speech():
    """Fake speech driver that is available and speaks instantly."""
    return FakeSpeechDriver()


@pytest.fixture
def now_playing_sink():
    return RecordingNowPlayingSink()


@pytest.fixture
def fade_controller(fake_music):
    return FadeController(fake_music)


@pytest.fixture
def segment_player(fake_music, fake_speech, fade_controller):
    return SegmentPlayer(
        fake_music, fake_speech, fade_controller,
        poll_interval=FAST_POLL_INTERVAL,
        transition_ms=FAST_TRANSITION_MS,
    )


@pytest.fixture
def scheduler(fake_music, fake_speech, now_playing_sink):
    """Scheduler with fast polling; any session left running is stopped."""
    sched = PlaybackScheduler(
        fake_music, fake_speech,
        now_playing=now_playing_sink,
        poll_interval=FAST_POLL_INTERVAL,
        transition_ms=FAST_TRANSITION_MS,
    )
    yield sched
    sched.stop()
    sched.join(timeout=2.0)


@pytest.fixture(autouse=False)
def thread_leak_guard():
    """
    Detect session threads leaking between tests.

    Request explicitly in tests that must fully shut down.
    """
    before = set(t.ident for t in threading.enumerate())
    yield
    after = set(t.ident for t in threading.enumerate())
    leaked = [t for t in threading.enumerate()
              if t.ident in after - before and t.name.startswith("PlaybackSession")]
    if leaked:
        thread_info = '\n'.join(f"  - {t.name} (daemon={t.daemon})" for t in leaked)
        assert False, f"Thread leak detected - session shutdown incomplete.\nLeaked threads:\n{thread_info}"
