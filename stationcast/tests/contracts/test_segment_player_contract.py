"""
Contract tests for SegmentPlayer.

Tests verify:
- Track: load with offsets, fade-in ramp, a single fade-out, completion on end
- Track errors (unparsable source, driver error) complete instead of stalling
- Announcement: duck, speak, restore to the captured volume
- Announcement without speech capability completes with no audible effect
- Volume dip: dip, hold, restore to the captured volume
- Stopping the session mid-segment yields CANCELLED
"""

import threading
import time

import pytest

from stationcast.broadcast_core.fade_controller import FadeController, ramp_levels
from stationcast.broadcast_core.playback_session import PlaybackSession
from stationcast.broadcast_core.segment import Segment
from stationcast.broadcast_core.segment_player import SegmentOutcome, SegmentPlayer
from stationcast.tests.contracts.test_doubles import (
    FAST_POLL_INTERVAL,
    FAST_TRANSITION_MS,
    FakeMusicDriver,
    FakeSpeechDriver,
    create_announcement,
    create_track,
    create_volume_dip,
)


def make_player(music, speech=None):
    return SegmentPlayer(
        music, speech or FakeSpeechDriver(), FadeController(music),
        poll_interval=FAST_POLL_INTERVAL,
        transition_ms=FAST_TRANSITION_MS,
    )


def make_session(segment):
    return PlaybackSession([segment], loop=False)


def record_fades(player):
    """Wrap the player's fade controller to record (start, target, duration_ms) calls."""
    calls = []
    original = player.fades.fade

    def recording_fade(start, target, duration_ms, stop_event=None):
        calls.append((start, target, duration_ms))
        return original(start, target, duration_ms, stop_event=stop_event)

    player.fades.fade = recording_fade
    return calls


def deactivate_after(session, seconds):
    timer = threading.Timer(seconds, session.deactivate)
    timer.start()
    return timer


class TestTrack:
    """Track segments."""

    def test_plays_to_natural_end_at_full_volume(self):
        music = FakeMusicDriver(duration=0.3)
        segment = create_track(fade_out=0)

        outcome = make_player(music).play(segment, make_session(segment))

        assert outcome is SegmentOutcome.COMPLETED
        assert music.loads == [("abc123", 0.0, None)]
        assert music.volume_history == [100]

    def test_source_url_normalized_before_load(self):
        music = FakeMusicDriver(duration=0.1)
        segment = create_track(source="https://youtu.be/dQw4w9WgXcQ", fade_out=0)

        make_player(music).play(segment, make_session(segment))

        assert music.loads[0][0] == "dQw4w9WgXcQ"

    def test_fade_in_ramps_from_zero(self):
        music = FakeMusicDriver(duration=0.3)
        segment = create_track(fade_in=0.1, fade_out=0)

        outcome = make_player(music).play(segment, make_session(segment))

        assert outcome is SegmentOutcome.COMPLETED
        assert music.volume_history == [0] + ramp_levels(0, 100, 20)

    def test_end_offset_bounds_playback(self):
        music = FakeMusicDriver(duration=100)
        segment = create_track(start_offset=1.0, end_offset=1.3, fade_out=0)

        started = time.monotonic()
        outcome = make_player(music).play(segment, make_session(segment))

        assert outcome is SegmentOutcome.COMPLETED
        assert music.loads == [("abc123", 1.0, 1.3)]
        assert time.monotonic() - started < 2.0

    def test_fade_out_triggered_exactly_once(self):
        music = FakeMusicDriver(duration=0.5)
        segment = create_track(fade_out=0.2)
        player = make_player(music)
        calls = record_fades(player)

        outcome = player.play(segment, make_session(segment))

        assert outcome is SegmentOutcome.COMPLETED
        assert calls == [(100, 0, 200.0)]
        assert music.get_volume() == 0.0

    def test_fade_out_uses_duration_when_no_end_offset(self):
        music = FakeMusicDriver(duration=0.4)
        segment = create_track(fade_out=0.1)
        player = make_player(music)
        calls = record_fades(player)

        player.play(segment, make_session(segment))

        assert len(calls) == 1

    def test_unparsable_source_completes_without_loading(self):
        music = FakeMusicDriver()
        segment = create_track(source="not a clip id")

        outcome = make_player(music).play(segment, make_session(segment))

        assert outcome is SegmentOutcome.COMPLETED
        assert music.loads == []
        assert music.volume_history == []

    def test_driver_error_completes(self):
        music = FakeMusicDriver(duration=0)
        segment = create_track()
        timer = threading.Timer(0.1, lambda: setattr(music, "error", True))
        timer.start()

        outcome = make_player(music).play(segment, make_session(segment))
        timer.join()

        assert outcome is SegmentOutcome.COMPLETED

    def test_unknown_duration_keeps_polling_until_ended(self):
        music = FakeMusicDriver(duration=0)
        segment = create_track()
        timer = threading.Timer(0.15, music.finish)
        timer.start()

        started = time.monotonic()
        outcome = make_player(music).play(segment, make_session(segment))
        timer.join()

        assert outcome is SegmentOutcome.COMPLETED
        assert time.monotonic() - started >= 0.14

    def test_driver_exception_completes(self):
        music = FakeMusicDriver()

        def broken_load(*args, **kwargs):
            raise RuntimeError("decoder crashed")

        music.load_and_play = broken_load
        segment = create_track()

        assert make_player(music).play(segment, make_session(segment)) is SegmentOutcome.COMPLETED

    def test_stop_mid_track_cancels(self):
        music = FakeMusicDriver(duration=100)
        segment = create_track()
        session = make_session(segment)
        timer = deactivate_after(session, 0.1)

        outcome = make_player(music).play(segment, session)
        timer.join()

        assert outcome is SegmentOutcome.CANCELLED

    def test_stop_during_fade_out_cancels(self):
        music = FakeMusicDriver(duration=0.3)
        segment = create_track(fade_out=0.25)
        session = make_session(segment)
        timer = deactivate_after(session, 0.15)

        outcome = make_player(music).play(segment, session)
        timer.join()

        assert outcome is SegmentOutcome.CANCELLED
        assert music.get_volume() > 0.0, "Fade must not snap to its target when stopped"

    def test_inactive_session_not_played(self):
        music = FakeMusicDriver()
        segment = create_track()
        session = make_session(segment)
        session.deactivate()

        assert make_player(music).play(segment, session) is SegmentOutcome.CANCELLED
        assert music.loads == []


class TestAnnouncement:
    """Announcement segments."""

    def test_ducks_and_restores_captured_volume(self):
        music = FakeMusicDriver(playing=True, volume=70)
        speech = FakeSpeechDriver()
        segment = create_announcement(text="Up next, the weather", duck_music=True, duck_volume=20)
        player = make_player(music, speech)
        calls = record_fades(player)

        outcome = player.play(segment, make_session(segment))

        assert outcome is SegmentOutcome.COMPLETED
        assert speech.spoken == [("Up next, the weather", None)]
        assert calls == [(70, 20, FAST_TRANSITION_MS), (20, 70, FAST_TRANSITION_MS)]
        assert music.get_volume() == 70, "Restore to the captured volume, not 100"

    def test_voice_passed_to_driver(self):
        speech = FakeSpeechDriver()
        segment = create_announcement(text="Hi", voice="en_US-amy-medium")

        make_player(FakeMusicDriver(), speech).play(segment, make_session(segment))

        assert speech.spoken == [("Hi", "en_US-amy-medium")]

    def test_no_duck_when_music_idle(self):
        music = FakeMusicDriver(playing=False)
        speech = FakeSpeechDriver()
        segment = create_announcement()

        outcome = make_player(music, speech).play(segment, make_session(segment))

        assert outcome is SegmentOutcome.COMPLETED
        assert len(speech.spoken) == 1
        assert music.volume_history == []

    def test_no_duck_when_disabled(self):
        music = FakeMusicDriver(playing=True, volume=100)
        segment = create_announcement(duck_music=False)

        make_player(music).play(segment, make_session(segment))

        assert music.volume_history == []

    def test_row_without_dip_flag_leaves_music_alone(self):
        music = FakeMusicDriver(playing=True, volume=100)
        speech = FakeSpeechDriver()
        segment = Segment.from_dict({"id": 5, "type": "tts", "position": 0,
                                     "config": {"text": "Station break", "dipVolume": 10}})

        outcome = make_player(music, speech).play(segment, make_session(segment))

        assert outcome is SegmentOutcome.COMPLETED
        assert speech.spoken == [("Station break", None)]
        assert music.volume_history == []

    def test_missing_speech_capability_skips(self):
        music = FakeMusicDriver(playing=True, volume=100)
        speech = FakeSpeechDriver(available=False)
        segment = create_announcement(duck_music=True)

        started = time.monotonic()
        outcome = make_player(music, speech).play(segment, make_session(segment))

        assert outcome is SegmentOutcome.COMPLETED
        assert time.monotonic() - started < 0.1
        assert speech.spoken == []
        assert music.volume_history == [], "No audible effect when speech is unavailable"

    @pytest.mark.parametrize("speech", [
        FakeSpeechDriver(succeed=False),
        FakeSpeechDriver(raise_error=RuntimeError("synthesis failed")),
    ])
    def test_speech_error_still_restores(self, speech):
        music = FakeMusicDriver(playing=True, volume=80)
        segment = create_announcement(duck_music=True)

        outcome = make_player(music, speech).play(segment, make_session(segment))

        assert outcome is SegmentOutcome.COMPLETED
        assert music.get_volume() == 80

    def test_stop_while_speaking_cancels(self):
        music = FakeMusicDriver(playing=True, volume=100)
        speech = FakeSpeechDriver(utterance_seconds=1.0)
        segment = create_announcement(duck_music=True)
        session = make_session(segment)

        def stop_session():
            session.deactivate()
            speech.cancel_all()

        timer = threading.Timer(0.2, stop_session)
        timer.start()
        outcome = make_player(music, speech).play(segment, session)
        timer.join()

        assert outcome is SegmentOutcome.CANCELLED
        assert music.get_volume() == 20, "Ducked volume is not restored after stop"


class TestVolumeDip:
    """Volume dip segments."""

    def test_dips_holds_and_restores(self):
        music = FakeMusicDriver(playing=True, volume=60)
        segment = create_volume_dip(volume=30, duration=0.2)
        player = make_player(music)
        calls = record_fades(player)

        started = time.monotonic()
        outcome = player.play(segment, make_session(segment))
        elapsed = time.monotonic() - started

        assert outcome is SegmentOutcome.COMPLETED
        assert calls == [(60, 30, FAST_TRANSITION_MS), (30, 60, FAST_TRANSITION_MS)]
        assert 30.0 in music.volume_history
        assert music.get_volume() == 60
        assert elapsed >= 0.2

    def test_nothing_playing_completes_immediately(self):
        music = FakeMusicDriver(playing=False)
        segment = create_volume_dip(volume=30, duration=5)

        started = time.monotonic()
        outcome = make_player(music).play(segment, make_session(segment))

        assert outcome is SegmentOutcome.COMPLETED
        assert time.monotonic() - started < 0.5
        assert music.volume_history == []

    def test_stop_during_hold_cancels(self):
        music = FakeMusicDriver(playing=True, volume=100)
        segment = create_volume_dip(volume=30, duration=5)
        session = make_session(segment)
        timer = deactivate_after(session, 0.2)

        started = time.monotonic()
        outcome = make_player(music).play(segment, session)
        timer.join()

        assert outcome is SegmentOutcome.CANCELLED
        assert time.monotonic() - started < 1.0
        assert music.get_volume() == 30, "Dip is not restored after stop"
