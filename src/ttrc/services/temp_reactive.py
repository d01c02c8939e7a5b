"""Temperature-reactive lighting: pick an effect by temperature zone.

Wraps the effect engine with per-port state (TempReactiveState, owned by
the caller and passed in each frame):

- the temperature is re-read at most every ``sensor_read_interval`` seconds
- a zone change cross-fades from the old zone's output over
  ``transition_frames`` frames
- a failed sensor read switches the port to a fallback display (magenta
  blink for one second, then dark) until the daemon is restarted
"""
from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, Sequence

from ..core.errors import SensorError
from ..core.models import (
    FRAME_MASK,
    BlinkEffect,
    Color,
    EffectSpeed,
    TempReactiveConfig,
    TempReactiveState,
    TempZone,
)
from ..sensor_source import TemperatureSource
from .effects import generate, interpolate_colors

log = logging.getLogger(__name__)

FALLBACK_BLINK_FRAMES = 30
FALLBACK_EFFECT = BlinkEffect(Color.MAGENTA, EffectSpeed.EXTREME)


def select_zone(zones: Sequence[TempZone], temp: float) -> int:
    """Index of the zone containing temp.

    Below the first zone maps to 0, at or above the last zone's max maps
    to the last index.
    """
    for i, zone in enumerate(zones):
        if zone.contains(temp):
            return i
    if temp < zones[0].min_temp:
        return 0
    return len(zones) - 1


def frames_since(frame: int, start: int) -> int:
    """Frames elapsed from start to frame on the wrapping u32 counter."""
    return (frame - start) & FRAME_MASK


class TempReactiveEngine:
    """Renders temperature-reactive ports.

    Args:
        source: Where temperatures come from.
        clock: Monotonic seconds, injectable for tests.
    """

    def __init__(self, source: TemperatureSource,
                 clock: Callable[[], float] = time.monotonic) -> None:
        self._source = source
        self._clock = clock

    @property
    def source(self) -> TemperatureSource:
        return self._source

    def render(self, config: TempReactiveConfig, state: TempReactiveState,
               frame: int, led_count: int, brightness: float = 1.0,
               port: Optional[int] = None) -> List[Color]:
        """Produce this frame's colors and advance state."""
        if state.fallback_mode:
            return self.fallback_colors(state, frame, led_count, brightness)

        now = self._clock()
        if now - state.last_sensor_read >= state.sensor_read_interval:
            try:
                temp = self._source.read(config.sensor)
            except SensorError as e:
                log.warning("Port %s: sensor %s read failed: %s. Entering fallback mode.",
                            port if port is not None else '?', config.sensor, e)
                state.fallback_mode = True
                state.fallback_frame_start = frame
                state.clear_transition()
                return self.fallback_colors(state, frame, led_count, brightness)

            state.last_sensor_read = now
            state.last_temperature = temp
            self._update_zone(config, state, temp, frame, led_count, brightness, port)

        zone = config.zones[state.current_zone_idx]
        target = generate(zone.effect, frame, led_count, brightness)

        if state.in_transition:
            elapsed = frames_since(frame, state.transition_start_frame)
            if elapsed < config.transition_frames:
                t = elapsed / config.transition_frames
                return interpolate_colors(state.transition_from_colors, target, t)
            state.clear_transition()

        return target

    def _update_zone(self, config: TempReactiveConfig, state: TempReactiveState,
                     temp: float, frame: int, led_count: int, brightness: float,
                     port: Optional[int]) -> None:
        new_idx = select_zone(config.zones, temp)
        if new_idx == state.current_zone_idx:
            return

        old_zone = config.zones[state.current_zone_idx]
        new_zone = config.zones[new_idx]
        log.info("Port %s: %.1f°C, zone %d (%s) -> zone %d (%s)",
                 port if port is not None else '?', temp,
                 state.current_zone_idx, old_zone.effect.name,
                 new_idx, new_zone.effect.name)

        if config.transition_frames > 0:
            state.transition_from_colors = generate(
                old_zone.effect, frame, led_count, brightness)
            state.transition_start_frame = frame
        state.current_zone_idx = new_idx

    @staticmethod
    def fallback_colors(state: TempReactiveState, frame: int, led_count: int,
                        brightness: float = 1.0) -> List[Color]:
        """Magenta blink for FALLBACK_BLINK_FRAMES frames, then all off.

        The blink phase is counted from the frame fallback was entered, so
        the first frame of fallback is always lit.
        """
        if state.fallback_frame_start is None:
            state.fallback_frame_start = frame
        elapsed = frames_since(frame, state.fallback_frame_start)
        if elapsed < FALLBACK_BLINK_FRAMES:
            return generate(FALLBACK_EFFECT, elapsed, led_count, brightness)
        return [Color.OFF] * led_count
