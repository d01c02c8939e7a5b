"""Tests for services/effects.py – per-frame color generation."""

import pytest

from ttrc.core.models import (
    BlinkEffect,
    Color,
    EffectSpeed,
    FlowEffect,
    PulseEffect,
    RippleEffect,
    SensorSpec,
    SpectrumEffect,
    StaticEffect,
    TempReactiveConfig,
    TempReactiveEffect,
    TempZone,
    WaveEffect,
)
from ttrc.services.effects import generate, interpolate_colors, is_animated

ALL_EFFECTS = [
    StaticEffect(Color.RED),
    SpectrumEffect(EffectSpeed.FAST),
    WaveEffect(Color.BLUE, EffectSpeed.SLOW),
    PulseEffect(Color.WHITE),
    BlinkEffect(Color.GREEN, EffectSpeed.EXTREME),
    FlowEffect((Color.RED, Color.GREEN, Color.BLUE)),
    RippleEffect(Color.CYAN),
]


def _temp_reactive():
    zone = TempZone(0, 100, StaticEffect(Color.RED))
    return TempReactiveEffect(TempReactiveConfig(SensorSpec.parse("cpu"), (zone,)))


# =========================================================================
# Generic properties
# =========================================================================

class TestGenerateContract:

    @pytest.mark.parametrize("effect", ALL_EFFECTS, ids=lambda e: e.name)
    @pytest.mark.parametrize("led_count", [0, 1, 19, 30, 38])
    def test_length_matches_led_count(self, effect, led_count):
        assert len(generate(effect, 17, led_count, 1.0)) == led_count

    @pytest.mark.parametrize("effect", ALL_EFFECTS, ids=lambda e: e.name)
    def test_deterministic(self, effect):
        for frame in (0, 1, 59, 1000, 0xFFFFFFFF):
            assert generate(effect, frame, 30, 0.7) == generate(effect, frame, 30, 0.7)

    @pytest.mark.parametrize("effect", ALL_EFFECTS, ids=lambda e: e.name)
    def test_zero_brightness_is_dark(self, effect):
        assert generate(effect, 5, 10, 0.0) == [Color.OFF] * 10

    def test_unknown_effect_rejected(self):
        with pytest.raises(TypeError):
            generate("wave", 0, 10, 1.0)

    def test_temp_reactive_placeholder_is_off(self):
        assert generate(_temp_reactive(), 42, 5, 1.0) == [Color.OFF] * 5

    def test_is_animated(self):
        assert not is_animated(StaticEffect(Color.RED))
        assert is_animated(SpectrumEffect())
        assert is_animated(_temp_reactive())


# =========================================================================
# Individual effects
# =========================================================================

class TestStatic:

    def test_frame_independent(self):
        effect = StaticEffect(Color.RED)
        assert generate(effect, 0, 30) == generate(effect, 12345, 30)
        assert generate(effect, 0, 30) == [Color.RED] * 30

    def test_brightness_applied(self):
        assert generate(StaticEffect(Color.RED), 0, 2, 0.5) == [Color(127, 0, 0)] * 2


class TestSpectrum:

    def test_starts_red(self):
        assert generate(SpectrumEffect(EffectSpeed.EXTREME), 0, 3) == [Color.RED] * 3

    def test_half_cycle_is_cyan(self):
        assert generate(SpectrumEffect(EffectSpeed.EXTREME), 15, 3) == [Color.CYAN] * 3

    def test_wraps_each_cycle(self):
        effect = SpectrumEffect(EffectSpeed.NORMAL)
        assert generate(effect, 7, 4) == generate(effect, 7 + 120, 4)

    def test_brightness_scales_full_value_hue(self):
        # hue 3 degrees: (255, 12, 0) at full value, then scaled by 0.9
        assert generate(SpectrumEffect(EffectSpeed.NORMAL), 1, 1, 0.9) == [Color(229, 10, 0)]


class TestWave:

    def test_phase_offsets_along_strip(self):
        colors = generate(WaveEffect(Color.BLUE, EffectSpeed.NORMAL), 0, 4)
        assert colors[0] == Color(0, 0, 127)
        assert colors[1] == Color(0, 0, 255)
        assert colors[2] == Color(0, 0, 127)
        assert colors[3] == Color.OFF


class TestPulse:

    def test_uniform(self):
        colors = generate(PulseEffect(Color.WHITE, EffectSpeed.NORMAL), 13, 8)
        assert len(set(colors)) == 1

    def test_peak_at_quarter_cycle(self):
        colors = generate(PulseEffect(Color.WHITE, EffectSpeed.NORMAL), 30, 2)
        assert colors == [Color.WHITE] * 2

    def test_midpoint_at_frame_zero(self):
        assert generate(PulseEffect(Color.WHITE), 0, 1) == [Color(127, 127, 127)]


class TestBlink:

    def test_halves(self):
        effect = BlinkEffect(Color.GREEN, EffectSpeed.NORMAL)
        for frame in range(0, 60):
            assert generate(effect, frame, 3) == [Color.GREEN] * 3
        for frame in range(60, 120):
            assert generate(effect, frame, 3) == [Color.OFF] * 3
        assert generate(effect, 120, 3) == [Color.GREEN] * 3

    def test_extreme_speed_half_is_15_frames(self):
        effect = BlinkEffect(Color.MAGENTA, EffectSpeed.EXTREME)
        assert generate(effect, 14, 1) == [Color.MAGENTA]
        assert generate(effect, 15, 1) == [Color.OFF]


class TestFlow:

    def test_frame_zero_maps_palette_in_order(self):
        effect = FlowEffect((Color.RED, Color.GREEN, Color.BLUE))
        assert generate(effect, 0, 3) == [Color.RED, Color.GREEN, Color.BLUE]

    def test_half_cycle_shifts_by_half_strip(self):
        effect = FlowEffect((Color.RED, Color.GREEN), EffectSpeed.NORMAL)
        assert generate(effect, 60, 2) == [Color.GREEN, Color.RED]

    def test_empty_palette_is_off(self):
        assert generate(FlowEffect(()), 3, 4) == [Color.OFF] * 4


class TestRipple:

    def test_symmetric_around_center(self):
        colors = generate(RippleEffect(Color.CYAN), 9, 4)
        assert colors[1] == colors[3]


# =========================================================================
# interpolate_colors
# =========================================================================

class TestInterpolateColors:

    def test_pointwise(self):
        out = interpolate_colors([Color.RED, Color.OFF], [Color.BLUE, Color.WHITE], 0.5)
        assert out == [Color(127, 0, 127), Color(127, 127, 127)]

    def test_shorter_length_wins(self):
        out = interpolate_colors([Color.RED] * 5, [Color.BLUE] * 3, 1.0)
        assert out == [Color.BLUE] * 3
