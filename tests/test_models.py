"""Tests for core/models.py – Color, EffectSpeed, SensorSpec, zones, state."""

import math
import unittest

import pytest

from ttrc.core.errors import ConfigError
from ttrc.core.models import (
    NAMED_COLORS,
    Color,
    EffectSpeed,
    FlowEffect,
    SensorKind,
    SensorSpec,
    StaticEffect,
    TempReactiveConfig,
    TempReactiveState,
    TempZone,
    validate_zones,
)

# =============================================================================
# Color
# =============================================================================


class TestColorBasics(unittest.TestCase):

    def test_from_rgb_clamps(self):
        self.assertEqual(Color.from_rgb(300, -5, 10), Color(255, 0, 10))

    def test_named_constants(self):
        self.assertEqual(Color.OFF, Color(0, 0, 0))
        self.assertEqual(Color.ORANGE, Color(255, 165, 0))
        self.assertEqual(Color.PURPLE, Color(128, 0, 128))
        self.assertEqual(Color.PINK, Color(255, 192, 203))
        self.assertEqual(Color.SKY, Color(135, 206, 235))

    def test_from_name_case_insensitive(self):
        self.assertEqual(Color.from_name("Sky"), Color.SKY)
        self.assertEqual(Color.from_name(" RED "), Color.RED)

    def test_black_is_off(self):
        self.assertEqual(Color.from_name("black"), Color.OFF)
        self.assertEqual(Color.from_name("off"), Color.OFF)

    def test_unknown_name(self):
        self.assertIsNone(Color.from_name("chartreuse"))

    def test_named_colors_table_complete(self):
        self.assertEqual(len(NAMED_COLORS), 14)

    def test_wire_order_is_grb(self):
        self.assertEqual(Color(1, 2, 3).to_wire_order(), bytes([2, 1, 3]))

    def test_immutable(self):
        with self.assertRaises(AttributeError):
            Color.RED.r = 0

    def test_str_is_hex(self):
        self.assertEqual(str(Color(255, 165, 0)), "#ffa500")


class TestColorBrightness(unittest.TestCase):

    def test_half(self):
        self.assertEqual(Color.WHITE.with_brightness(0.5), Color(127, 127, 127))

    def test_clamped(self):
        self.assertEqual(Color.RED.with_brightness(2.0), Color.RED)
        self.assertEqual(Color.RED.with_brightness(-1.0), Color.OFF)

    def test_nan_is_dark(self):
        self.assertEqual(Color.RED.with_brightness(float("nan")), Color.OFF)
        self.assertEqual(Color.RED.lerp(Color.BLUE, float("nan")), Color.RED)

    def test_monotonic(self):
        c = Color(200, 100, 50)
        steps = [i / 20 for i in range(21)]
        for lo, hi in zip(steps, steps[1:]):
            a, b = c.with_brightness(lo), c.with_brightness(hi)
            self.assertLessEqual(a.r, b.r)
            self.assertLessEqual(a.g, b.g)
            self.assertLessEqual(a.b, b.b)


class TestColorHsv:

    @pytest.mark.parametrize("hue, expected", [
        (0, Color.RED),
        (60, Color.YELLOW),
        (120, Color.GREEN),
        (180, Color.CYAN),
        (240, Color.BLUE),
        (300, Color.MAGENTA),
        (360, Color.RED),
        (-120, Color.BLUE),
    ])
    def test_primaries(self, hue, expected):
        assert Color.from_hsv(hue, 1.0, 1.0) == expected

    @pytest.mark.parametrize("hue", [0.0, 37.5, 90.0, 200.0, 330.0])
    def test_periodic(self, hue):
        assert Color.from_hsv(hue + 360.0, 1.0, 1.0) == Color.from_hsv(hue, 1.0, 1.0)

    def test_zero_value_is_off(self):
        assert Color.from_hsv(123.0, 1.0, 0.0) == Color.OFF

    def test_zero_saturation_is_grey(self):
        assert Color.from_hsv(200.0, 0.0, 1.0) == Color.WHITE

    def test_out_of_range_inputs_clamped(self):
        assert Color.from_hsv(0.0, 5.0, 5.0) == Color.RED

    def test_tiny_negative_hue(self):
        assert Color.from_hsv(-1e-20, 1.0, 1.0) == Color.RED


class TestColorLerp(unittest.TestCase):

    def test_endpoints(self):
        self.assertEqual(Color.RED.lerp(Color.BLUE, 0.0), Color.RED)
        self.assertEqual(Color.RED.lerp(Color.BLUE, 1.0), Color.BLUE)

    def test_halfway(self):
        self.assertEqual(Color.RED.lerp(Color.BLUE, 0.5), Color(127, 0, 127))

    def test_t_clamped(self):
        self.assertEqual(Color.RED.lerp(Color.BLUE, 3.0), Color.BLUE)
        self.assertEqual(Color.RED.lerp(Color.BLUE, -1.0), Color.RED)


# =============================================================================
# EffectSpeed / effect variants
# =============================================================================

class TestEffectSpeed(unittest.TestCase):

    def test_frames_per_cycle(self):
        self.assertEqual(EffectSpeed.EXTREME.frames_per_cycle, 30)
        self.assertEqual(EffectSpeed.FAST.frames_per_cycle, 60)
        self.assertEqual(EffectSpeed.NORMAL.frames_per_cycle, 120)
        self.assertEqual(EffectSpeed.SLOW.frames_per_cycle, 240)

    def test_from_name(self):
        self.assertEqual(EffectSpeed.from_name("Fast"), EffectSpeed.FAST)
        self.assertIsNone(EffectSpeed.from_name("ludicrous"))

    def test_flow_colors_stored_as_tuple(self):
        effect = FlowEffect([Color.RED, Color.GREEN])
        self.assertEqual(effect.colors, (Color.RED, Color.GREEN))
        self.assertEqual(effect.speed, EffectSpeed.NORMAL)


# =============================================================================
# SensorSpec
# =============================================================================

class TestSensorSpec(unittest.TestCase):

    def test_presets_case_insensitive(self):
        for text in ("CPU", "cpu", "Gpu", "GPU-NVIDIA", "nvme", "HDD", "ssd"):
            spec = SensorSpec.parse(text)
            self.assertEqual(spec.kind, SensorKind.PRESET)
            self.assertEqual(spec.name, text.lower())

    def test_explicit(self):
        spec = SensorSpec.parse("k10temp-pci-00c3:Tctl")
        self.assertEqual(spec.kind, SensorKind.EXPLICIT)
        self.assertEqual(spec.adapter, "k10temp-pci-00c3")
        self.assertEqual(spec.field, "Tctl")

    def test_unknown_word_is_preset(self):
        spec = SensorSpec.parse("chipset")
        self.assertEqual(spec.kind, SensorKind.PRESET)
        self.assertEqual(spec.name, "chipset")

    def test_dot_separator_split(self):
        spec = SensorSpec(SensorKind.EXPLICIT, "nvme.Composite")
        self.assertEqual((spec.adapter, spec.field), ("nvme", "Composite"))


# =============================================================================
# Zones
# =============================================================================

def _zone(lo, hi, color=Color.BLUE):
    return TempZone(lo, hi, StaticEffect(color))


class TestTempZone(unittest.TestCase):

    def test_contains_half_open(self):
        z = _zone(0, 50)
        self.assertTrue(z.contains(0))
        self.assertTrue(z.contains(49.9))
        self.assertFalse(z.contains(50.0))
        self.assertFalse(z.contains(-0.1))

    def test_validate_ok(self):
        validate_zones([_zone(0, 50), _zone(50, 80), _zone(80, 120)])

    def test_validate_empty(self):
        with self.assertRaises(ConfigError):
            validate_zones([])

    def test_validate_gap(self):
        with self.assertRaisesRegex(ConfigError, "contiguous"):
            validate_zones([_zone(0, 50), _zone(55, 80)])

    def test_validate_overlap(self):
        with self.assertRaisesRegex(ConfigError, "contiguous"):
            validate_zones([_zone(0, 60), _zone(50, 80)])

    def test_validate_inverted(self):
        with self.assertRaisesRegex(ConfigError, "min_temp"):
            validate_zones([_zone(50, 50)])

    def test_config_validates_on_construction(self):
        with self.assertRaises(ConfigError):
            TempReactiveConfig(SensorSpec.parse("cpu"), (_zone(0, 50), _zone(60, 80)))

    def test_config_default_transition(self):
        cfg = TempReactiveConfig(SensorSpec.parse("cpu"), [_zone(0, 50)])
        self.assertEqual(cfg.transition_frames, 30)
        self.assertIsInstance(cfg.zones, tuple)

    def test_negative_transition_rejected(self):
        with self.assertRaises(ConfigError):
            TempReactiveConfig(SensorSpec.parse("cpu"), [_zone(0, 50)], -1)


class TestTempReactiveState(unittest.TestCase):

    def test_fresh_state_forces_read(self):
        state = TempReactiveState()
        self.assertEqual(state.last_sensor_read, -math.inf)
        self.assertGreaterEqual(0.0 - state.last_sensor_read, state.sensor_read_interval)

    def test_transition_flags(self):
        state = TempReactiveState()
        self.assertFalse(state.in_transition)
        state.transition_start_frame = 3
        state.transition_from_colors = [Color.RED]
        self.assertTrue(state.in_transition)
        state.clear_transition()
        self.assertFalse(state.in_transition)
