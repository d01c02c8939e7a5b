"""Tests for services/temp_reactive.py – zones, transitions, sensor fallback.

The temperature source and the monotonic clock are fakes, so every test
controls exactly when a reading happens and what it returns.
"""

import pytest

from ttrc.core.errors import SensorError
from ttrc.core.models import (
    FRAME_MASK,
    Color,
    SensorSpec,
    StaticEffect,
    TempReactiveConfig,
    TempReactiveState,
    TempZone,
)
from ttrc.sensor_source import TemperatureSource
from ttrc.services.temp_reactive import (
    FALLBACK_BLINK_FRAMES,
    TempReactiveEngine,
    frames_since,
    select_zone,
)

LEDS = 4


class FakeSource(TemperatureSource):
    """Returns queued readings; a queued exception is raised instead."""

    def __init__(self, *readings):
        self.readings = list(readings)
        self.calls = 0

    def read(self, sensor):
        self.calls += 1
        value = self.readings.pop(0) if len(self.readings) > 1 else self.readings[0]
        if isinstance(value, Exception):
            raise value
        return value


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def _config(transition_frames=10):
    return TempReactiveConfig(
        SensorSpec.parse("cpu"),
        (
            TempZone(0, 50, StaticEffect(Color.BLUE)),
            TempZone(50, 100, StaticEffect(Color.RED)),
        ),
        transition_frames,
    )


@pytest.fixture
def clock():
    return FakeClock()


# =========================================================================
# select_zone / frames_since
# =========================================================================

class TestSelectZone:

    ZONES = _config().zones

    @pytest.mark.parametrize("temp, expected", [
        (49.9, 0),
        (50.0, 1),
        (-5.0, 0),
        (150.0, 1),
        (100.0, 1),
        (0.0, 0),
    ])
    def test_boundaries(self, temp, expected):
        assert select_zone(self.ZONES, temp) == expected


class TestFramesSince:

    def test_plain(self):
        assert frames_since(15, 10) == 5

    def test_across_wrap(self):
        assert frames_since(3, FRAME_MASK - 1) == 5


# =========================================================================
# Rendering
# =========================================================================

class TestRender:

    def test_initial_read_selects_zone(self, clock):
        source = FakeSource(30.0)
        engine = TempReactiveEngine(source, clock)
        state = TempReactiveState()

        assert engine.render(_config(), state, 0, LEDS) == [Color.BLUE] * LEDS
        assert source.calls == 1
        assert state.last_temperature == 30.0

    def test_reads_only_after_interval(self, clock):
        source = FakeSource(30.0)
        engine = TempReactiveEngine(source, clock)
        state = TempReactiveState()

        for frame in range(20):
            engine.render(_config(), state, frame, LEDS)
        assert source.calls == 1

        clock.advance(4.9)
        engine.render(_config(), state, 20, LEDS)
        assert source.calls == 1

        clock.advance(0.1)
        engine.render(_config(), state, 21, LEDS)
        assert source.calls == 2

    def test_brightness_passed_to_zone_effect(self, clock):
        engine = TempReactiveEngine(FakeSource(30.0), clock)
        colors = engine.render(_config(), TempReactiveState(), 0, 2, brightness=0.5)
        assert colors == [Color(0, 0, 127)] * 2


class TestTransition:

    def _switch_at(self, clock, frame, transition_frames=10):
        source = FakeSource(30.0, 60.0)
        engine = TempReactiveEngine(source, clock)
        state = TempReactiveState()
        config = _config(transition_frames)
        engine.render(config, state, frame - 1, LEDS)   # zone 0
        clock.advance(5.0)
        first = engine.render(config, state, frame, LEDS)  # reads 60 -> zone 1
        return engine, state, config, first

    def test_switch_frame_shows_old_zone(self, clock):
        _, state, _, first = self._switch_at(clock, 100)
        assert state.current_zone_idx == 1
        assert state.transition_start_frame == 100
        assert first == [Color.BLUE] * LEDS

    def test_halfway(self, clock):
        engine, state, config, _ = self._switch_at(clock, 100)
        out = engine.render(config, state, 105, LEDS)
        assert out == [Color.BLUE.lerp(Color.RED, 0.5)] * LEDS
        assert out[0] == Color(127, 0, 127)

    def test_complete_after_transition_frames(self, clock):
        engine, state, config, _ = self._switch_at(clock, 100)
        assert engine.render(config, state, 110, LEDS) == [Color.RED] * LEDS
        assert not state.in_transition

    def test_zero_transition_switches_immediately(self, clock):
        _, state, _, first = self._switch_at(clock, 100, transition_frames=0)
        assert first == [Color.RED] * LEDS
        assert not state.in_transition

    def test_transition_across_frame_wrap(self, clock):
        engine, state, config, _ = self._switch_at(clock, FRAME_MASK - 1)
        # FRAME_MASK - 1 -> 0xFFFFFFFF -> 0 -> 1 -> 2 -> 3 is 5 frames
        out = engine.render(config, state, 3, LEDS)
        assert out == [Color(127, 0, 127)] * LEDS


class TestFallback:

    def test_sensor_failure_blinks_magenta_then_off(self, clock):
        source = FakeSource(SensorError("sensors not installed"))
        engine = TempReactiveEngine(source, clock)
        state = TempReactiveState()

        first = engine.render(_config(), state, 10, LEDS)
        assert first == [Color.MAGENTA] * LEDS
        assert state.fallback_mode
        assert state.fallback_frame_start == 10

        seen_magenta = [engine.render(_config(), state, 10 + i, LEDS)[0] == Color.MAGENTA
                        for i in range(FALLBACK_BLINK_FRAMES)]
        assert seen_magenta[0]
        assert any(seen_magenta)

        for frame in range(10 + FALLBACK_BLINK_FRAMES, 10 + FALLBACK_BLINK_FRAMES + 60):
            assert engine.render(_config(), state, frame, LEDS) == [Color.OFF] * LEDS

    def test_fallback_never_reads_sensor_again(self, clock):
        source = FakeSource(SensorError("boom"))
        engine = TempReactiveEngine(source, clock)
        state = TempReactiveState()
        engine.render(_config(), state, 0, LEDS)
        for frame in range(1, 200):
            clock.advance(1.0)
            engine.render(_config(), state, frame, LEDS)
        assert source.calls == 1

    def test_failure_mid_transition_clears_it(self, clock):
        source = FakeSource(30.0, 60.0, SensorError("gone"))
        engine = TempReactiveEngine(source, clock)
        state = TempReactiveState()
        config = _config(30)
        engine.render(config, state, 0, LEDS)
        clock.advance(5.0)
        engine.render(config, state, 1, LEDS)
        assert state.in_transition
        clock.advance(5.0)
        engine.render(config, state, 2, LEDS)
        assert state.fallback_mode
        assert not state.in_transition

    def test_fallback_without_start_frame_records_it(self):
        state = TempReactiveState(fallback_mode=True)
        colors = TempReactiveEngine.fallback_colors(state, 77, LEDS)
        assert state.fallback_frame_start == 77
        assert colors == [Color.MAGENTA] * LEDS

    def test_failure_is_logged(self, clock, caplog):
        engine = TempReactiveEngine(FakeSource(SensorError("no sensors")), clock)
        with caplog.at_level("WARNING"):
            engine.render(_config(), TempReactiveState(), 0, LEDS, port=2)
        assert "Port 2" in caplog.text
        assert "fallback" in caplog.text
