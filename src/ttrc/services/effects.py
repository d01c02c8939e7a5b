"""Effect engine: per-frame color generation for addressable LED strips.

Pure functions, no device or clock access. The same (effect, frame,
led_count, brightness) always yields the same colors, so the daemon can
render any frame on demand and tests can check exact values.
"""
from __future__ import annotations

import math
from typing import List, Sequence

from ..core.models import (
    BlinkEffect,
    Color,
    Effect,
    FlowEffect,
    PulseEffect,
    RippleEffect,
    SpectrumEffect,
    StaticEffect,
    TempReactiveEffect,
    WaveEffect,
)

TWO_PI = 2.0 * math.pi


def generate(effect: Effect, frame: int, led_count: int,
             brightness: float = 1.0) -> List[Color]:
    """Render one frame of an effect.

    Args:
        effect: Effect variant to render.
        frame: Animation frame counter (30 per second).
        led_count: Number of LEDs; 0 yields an empty list.
        brightness: Global brightness, 0..1.

    Returns:
        Exactly led_count colors. TempReactiveEffect renders all-off here;
        its real output comes from the temperature-reactive engine.
    """
    if isinstance(effect, StaticEffect):
        return [effect.color.with_brightness(brightness)] * led_count
    elif isinstance(effect, SpectrumEffect):
        return _spectrum(effect, frame, led_count, brightness)
    elif isinstance(effect, WaveEffect):
        return _wave(effect, frame, led_count, brightness)
    elif isinstance(effect, PulseEffect):
        return _pulse(effect, frame, led_count, brightness)
    elif isinstance(effect, BlinkEffect):
        return _blink(effect, frame, led_count, brightness)
    elif isinstance(effect, FlowEffect):
        return _flow(effect, frame, led_count, brightness)
    elif isinstance(effect, RippleEffect):
        return _ripple(effect, frame, led_count, brightness)
    elif isinstance(effect, TempReactiveEffect):
        return [Color.OFF] * led_count
    raise TypeError(f"Unknown effect: {effect!r}")


def is_animated(effect: Effect) -> bool:
    """Whether the effect output depends on the frame counter."""
    return not isinstance(effect, StaticEffect)


def interpolate_colors(from_colors: Sequence[Color], to_colors: Sequence[Color],
                       t: float) -> List[Color]:
    """Pointwise blend of two color lists; the shorter length wins."""
    return [a.lerp(b, t) for a, b in zip(from_colors, to_colors)]


# ── Effect algorithms ───────────────────────────────────────────────

def _cycle_position(frame: int, frames_per_cycle: int) -> float:
    """Position within the current cycle, 0.0 (inclusive) to 1.0."""
    return (frame % frames_per_cycle) / frames_per_cycle


def _spectrum(effect: SpectrumEffect, frame: int, led_count: int,
              brightness: float) -> List[Color]:
    hue = _cycle_position(frame, effect.speed.frames_per_cycle) * 360.0
    return [Color.from_hsv(hue, 1.0, 1.0).with_brightness(brightness)] * led_count


def _wave(effect: WaveEffect, frame: int, led_count: int,
          brightness: float) -> List[Color]:
    phase = _cycle_position(frame, effect.speed.frames_per_cycle) * TWO_PI
    colors = []
    for i in range(led_count):
        led_phase = phase + (i / led_count) * TWO_PI
        intensity = (math.sin(led_phase) * 0.5 + 0.5) * brightness
        colors.append(effect.color.with_brightness(intensity))
    return colors


def _pulse(effect: PulseEffect, frame: int, led_count: int,
           brightness: float) -> List[Color]:
    phase = _cycle_position(frame, effect.speed.frames_per_cycle) * TWO_PI
    intensity = (math.sin(phase) * 0.5 + 0.5) * brightness
    return [effect.color.with_brightness(intensity)] * led_count


def _blink(effect: BlinkEffect, frame: int, led_count: int,
           brightness: float) -> List[Color]:
    cycle = effect.speed.frames_per_cycle
    if frame % cycle < cycle // 2:
        return [effect.color.with_brightness(brightness)] * led_count
    return [Color.OFF] * led_count


def _flow(effect: FlowEffect, frame: int, led_count: int,
          brightness: float) -> List[Color]:
    palette = effect.colors
    if not palette:
        return [Color.OFF] * led_count

    offset = _cycle_position(frame, effect.speed.frames_per_cycle)
    colors = []
    for i in range(led_count):
        pos = (i / led_count + offset) % 1.0
        idx = int(pos * len(palette)) % len(palette)
        colors.append(palette[idx].with_brightness(brightness))
    return colors


def _ripple(effect: RippleEffect, frame: int, led_count: int,
            brightness: float) -> List[Color]:
    phase = _cycle_position(frame, effect.speed.frames_per_cycle)
    colors = []
    for i in range(led_count):
        # 0 at the center LED, 1 at both ends
        distance = abs(i / led_count - 0.5) * 2.0
        wave = math.sin((phase - distance) * TWO_PI)
        intensity = (wave * 0.5 + 0.5) * brightness
        colors.append(effect.color.with_brightness(intensity))
    return colors
