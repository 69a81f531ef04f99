"""
Contract tests for FadeController.

Tests verify:
- Linear ramps in a fixed number of steps, ending exactly on the target
- Levels are clamped to [0, 100]
- Zero duration applies the target immediately
- cancel() halts a ramp with no further volume change
- A new fade supersedes the one in flight
- The session stop event blocks further steps
"""

import threading
import time

import pytest

from stationcast.broadcast_core.fade_controller import FadeController, ramp_levels
from stationcast.tests.contracts.test_doubles import FakeMusicDriver, wait_for


class TestRampLevels:
    """Ramp level computation."""

    def test_twenty_linear_steps(self):
        levels = ramp_levels(100, 0, 20)
        assert len(levels) == 20
        assert levels[0] == pytest.approx(95.0)
        assert levels[9] == pytest.approx(50.0)
        assert levels[-1] == 0.0

    def test_last_step_exactly_target(self):
        levels = ramp_levels(0, 100 / 3, 7)
        assert levels[-1] == 100 / 3

    def test_levels_are_monotonic(self):
        levels = ramp_levels(20, 100, 20)
        assert all(a < b for a, b in zip(levels, levels[1:]))

    def test_clamped_to_volume_range(self):
        assert max(ramp_levels(50, 150, 10)) == 100.0
        assert min(ramp_levels(50, -20, 10)) == 0.0

    def test_single_step(self):
        assert ramp_levels(100, 30, 1) == [30.0]

    def test_invalid_steps_rejected(self):
        with pytest.raises(ValueError):
            ramp_levels(0, 100, 0)


class TestFade:
    """Applying ramps to the music driver."""

    def test_fade_applies_every_step(self):
        music = FakeMusicDriver()
        fades = FadeController(music)

        assert fades.fade(100, 0, 100) is True
        assert music.volume_history == ramp_levels(100, 0, 20)
        assert music.get_volume() == 0.0
        assert fades.in_flight is False

    def test_fade_takes_about_duration(self):
        fades = FadeController(FakeMusicDriver())
        started = time.monotonic()
        fades.fade(0, 100, 200)
        elapsed = time.monotonic() - started
        assert 0.18 <= elapsed < 1.0

    def test_zero_duration_applies_target_now(self):
        music = FakeMusicDriver()
        fades = FadeController(music)

        assert fades.fade(100, 40, 0) is True
        assert music.volume_history == [40.0]

    def test_zero_duration_target_clamped(self):
        music = FakeMusicDriver()
        FadeController(music).fade(0, 140, 0)
        assert music.get_volume() == 100.0

    def test_custom_step_count(self):
        music = FakeMusicDriver()
        FadeController(music, steps=4).fade(0, 100, 40)
        assert music.volume_history == [25.0, 50.0, 75.0, 100.0]

    def test_invalid_step_count_rejected(self):
        with pytest.raises(ValueError):
            FadeController(FakeMusicDriver(), steps=0)


class TestCancel:
    """Cancelling an in-flight ramp."""

    def test_cancel_mid_fade_stops_changes(self):
        music = FakeMusicDriver()
        fades = FadeController(music)
        results = []
        worker = threading.Thread(target=lambda: results.append(fades.fade(100, 0, 2000)))
        worker.start()

        time.sleep(0.5)
        fades.cancel()
        frozen = list(music.volume_history)
        worker.join(timeout=1.0)
        time.sleep(0.3)

        assert not worker.is_alive(), "Cancelled fade must return promptly"
        assert results == [False]
        assert music.volume_history == frozen, "No volume change after cancel() returns"
        assert 0.0 < music.get_volume() < 100.0, "Volume stays where the ramp stopped"

    def test_cancel_without_fade_is_noop(self):
        fades = FadeController(FakeMusicDriver())
        fades.cancel()
        assert fades.in_flight is False

    def test_new_fade_supersedes_previous(self):
        music = FakeMusicDriver()
        fades = FadeController(music)
        results = []
        worker = threading.Thread(target=lambda: results.append(fades.fade(100, 0, 2000)))
        worker.start()
        assert wait_for(lambda: fades.in_flight)
        time.sleep(0.2)

        assert fades.fade(50, 80, 0) is True
        worker.join(timeout=1.0)

        assert results == [False]
        assert music.get_volume() == 80.0
        assert music.volume_history[-1] == 80.0

    def test_stop_event_blocks_steps(self):
        music = FakeMusicDriver()
        fades = FadeController(music)
        stop_event = threading.Event()
        stop_event.set()

        assert fades.fade(100, 0, 50, stop_event=stop_event) is False
        assert music.volume_history == []

    def test_stop_event_blocks_immediate_apply(self):
        music = FakeMusicDriver()
        stop_event = threading.Event()
        stop_event.set()

        assert FadeController(music).fade(100, 0, 0, stop_event=stop_event) is False
        assert music.volume_history == []
