"""Daemon configuration: TOML file -> PortConfig / DaemonConfig.

Config is looked up as ``riing-config.toml`` in the working directory,
then at ~/.config/ttrc/riing-config.toml (XDG-compliant).

Example::

    [daemon]
    interval_seconds = 5
    speed_once_at_startup = true

    [ports.1]
    speed = 60
    effect = "wave"
    color = "blue"
    effect_speed = "fast"

    [ports.2.temp_reactive]
    sensor = "CPU"
    [[ports.2.temp_reactive.zones]]
    min_temp = 0
    max_temp = 60
    effect = "static"
    color = "green"

Usage:
    from ttrc.conf import load_config
    config = load_config("riing-config.toml")
    for port, port_config in config.ports.items(): ...
"""
from __future__ import annotations

import logging
import math
import os
import tomllib
from typing import Any, Dict, List, Optional

from .core.errors import ConfigError
from .core.models import (
    DEFAULT_LED_COUNT,
    DEFAULT_SENSOR_READ_INTERVAL,
    DEFAULT_TRANSITION_FRAMES,
    BlinkEffect,
    Color,
    DaemonConfig,
    Effect,
    EffectSpeed,
    FlowEffect,
    PortConfig,
    PulseEffect,
    RiingConfig,
    RippleEffect,
    SensorSpec,
    SpectrumEffect,
    StaticEffect,
    TempReactiveConfig,
    TempReactiveEffect,
    TempZone,
    WaveEffect,
)
from .riing_device import MAX_LEDS_PER_PORT, validate_port, validate_speed

log = logging.getLogger(__name__)

# =========================================================================
# Config file location (XDG-compliant)
# =========================================================================

_XDG_CONFIG = os.environ.get('XDG_CONFIG_HOME', os.path.expanduser('~/.config'))
CONFIG_DIR = os.path.join(_XDG_CONFIG, 'ttrc')
CONFIG_FILENAME = 'riing-config.toml'
CONFIG_PATH = os.path.join(CONFIG_DIR, CONFIG_FILENAME)


def default_config_path() -> str:
    """./riing-config.toml if present, else the XDG config path."""
    if os.path.exists(CONFIG_FILENAME):
        return CONFIG_FILENAME
    return CONFIG_PATH


# =========================================================================
# Effect parsing
# =========================================================================

EFFECT_ALIASES: Dict[str, str] = {
    'rainbow': 'spectrum',
    'breathing': 'pulse',
}

# Base color used when an effect's color is missing or unknown
EFFECT_DEFAULT_COLORS: Dict[str, Color] = {
    'static': Color.WHITE,
    'wave': Color.BLUE,
    'pulse': Color.WHITE,
    'blink': Color.WHITE,
    'ripple': Color.CYAN,
}

DEFAULT_FLOW_COLORS = (Color.RED, Color.GREEN, Color.BLUE)

EFFECT_NAMES = ('static', 'spectrum', 'wave', 'pulse', 'blink', 'flow', 'ripple')


def parse_color(name: str) -> Color:
    color = Color.from_name(name)
    if color is None:
        raise ConfigError(f"Unknown color: {name}")
    return color


def parse_color_list(text: str) -> List[Color]:
    """Comma-separated color names; unknown names are dropped."""
    colors = []
    for name in text.split(','):
        color = Color.from_name(name)
        if color is None:
            log.warning("Ignoring unknown color '%s' in color list", name.strip())
            continue
        colors.append(color)
    return colors


def parse_effect_speed(name: Optional[str]) -> EffectSpeed:
    """Speed name -> EffectSpeed; missing or unknown means NORMAL."""
    if name is None:
        return EffectSpeed.NORMAL
    speed = EffectSpeed.from_name(name)
    if speed is None:
        log.warning("Unknown effect_speed '%s', using normal", name)
        return EffectSpeed.NORMAL
    return speed


def build_effect(effect: Optional[str], color: Optional[str] = None,
                 effect_speed: Optional[str] = None,
                 flow_colors: Optional[str] = None) -> Effect:
    """Resolve effect settings (as written in the config) into an Effect.

    A color with no effect means a static color. Named effects fall back
    to their default color when color is missing or unknown.

    Raises:
        ConfigError: Unknown effect, unknown static color, neither effect
            nor color given, or a flow with no usable colors.
    """
    if effect is None:
        if color is None:
            raise ConfigError("No effect or color specified")
        return StaticEffect(parse_color(color))

    name = effect.strip().lower()
    name = EFFECT_ALIASES.get(name, name)
    if name not in EFFECT_NAMES:
        raise ConfigError(f"Unknown effect: {effect}")

    speed = parse_effect_speed(effect_speed)

    if name == 'spectrum':
        return SpectrumEffect(speed)
    if name == 'flow':
        if flow_colors is None:
            colors = list(DEFAULT_FLOW_COLORS)
        else:
            colors = parse_color_list(flow_colors)
        if not colors:
            raise ConfigError("Flow effect requires at least one color")
        return FlowEffect(tuple(colors), speed)

    base = Color.from_name(color) if color is not None else None
    if base is None:
        if color is not None:
            log.warning("Unknown color '%s' for %s effect, using default", color, name)
        base = EFFECT_DEFAULT_COLORS[name]

    if name == 'static':
        return StaticEffect(base)
    if name == 'wave':
        return WaveEffect(base, speed)
    if name == 'pulse':
        return PulseEffect(base, speed)
    if name == 'blink':
        return BlinkEffect(base, speed)
    return RippleEffect(base, speed)


def _is_number(value: Any) -> bool:
    """Finite int or float; TOML bools, nan and inf are rejected."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _number(table: Dict[str, Any], key: str, context: str) -> float:
    if key not in table:
        raise ConfigError(f"{context}: missing '{key}'")
    value = table[key]
    if not _is_number(value):
        raise ConfigError(f"{context}: '{key}' must be a number, got {value!r}")
    return float(value)


def parse_temp_reactive(table: Dict[str, Any]) -> TempReactiveConfig:
    """Parse a ``[ports.N.temp_reactive]`` table.

    Raises:
        ConfigError: Missing sensor, bad zone, or non-contiguous zones.
    """
    sensor = table.get('sensor')
    if not isinstance(sensor, str) or not sensor.strip():
        raise ConfigError("temp_reactive: 'sensor' is required")

    zones = []
    for idx, zone in enumerate(table.get('zones', [])):
        context = f"Zone {idx}"
        if not isinstance(zone, dict):
            raise ConfigError(f"{context}: expected a table")
        min_temp = _number(zone, 'min_temp', context)
        max_temp = _number(zone, 'max_temp', context)
        if min_temp >= max_temp:
            raise ConfigError(
                f"{context}: min_temp ({min_temp}) must be less than max_temp ({max_temp})")
        if 'effect' not in zone:
            raise ConfigError(f"{context}: missing 'effect'")
        effect = build_effect(zone['effect'], zone.get('color'),
                              zone.get('effect_speed'), zone.get('flow_colors'))
        zones.append(TempZone(min_temp, max_temp, effect))

    transition_frames = table.get('transition_frames', DEFAULT_TRANSITION_FRAMES)
    if isinstance(transition_frames, bool) or not isinstance(transition_frames, int):
        raise ConfigError(f"transition_frames must be an integer, got {transition_frames!r}")

    return TempReactiveConfig(SensorSpec.parse(sensor), tuple(zones), transition_frames)


# =========================================================================
# Port / daemon sections
# =========================================================================

def parse_port_key(key: str) -> int:
    try:
        port = int(key)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid port number: {key!r}") from None
    try:
        validate_port(port)
    except ValueError as e:
        raise ConfigError(str(e)) from None
    return port


def parse_port(port: int, table: Dict[str, Any]) -> PortConfig:
    """Parse one ``[ports.N]`` table. temp_reactive wins over effect/color.

    A port with neither effect nor color keeps its LEDs untouched
    (``effect`` is None); its fan speed is still applied.
    """
    effect: Optional[Effect] = None
    if 'temp_reactive' in table:
        effect = TempReactiveEffect(parse_temp_reactive(table['temp_reactive']))
    elif 'effect' in table or 'color' in table:
        effect = build_effect(table.get('effect'), table.get('color'),
                              table.get('effect_speed'), table.get('flow_colors'))

    speed = table.get('speed')
    if speed is not None:
        if isinstance(speed, bool) or not isinstance(speed, int):
            raise ConfigError(f"speed must be an integer, got {speed!r}")
        try:
            validate_speed(speed)
        except ValueError as e:
            raise ConfigError(str(e)) from None

    if effect is None and speed is None:
        log.warning("Port %d: no effect, color or speed set, nothing to apply", port)

    brightness = table.get('brightness', 1.0)
    if not _is_number(brightness):
        raise ConfigError(f"brightness must be a finite number, got {brightness!r}")
    if not 0.0 <= brightness <= 1.0:
        log.warning("Port %d: brightness %s clamped to 0..1", port, brightness)
        brightness = min(max(float(brightness), 0.0), 1.0)

    led_count = table.get('led_count', DEFAULT_LED_COUNT)
    if isinstance(led_count, bool) or not isinstance(led_count, int) or led_count < 1:
        raise ConfigError(f"led_count must be a positive integer, got {led_count!r}")
    if led_count > MAX_LEDS_PER_PORT:
        log.warning("Port %d: led_count %d exceeds %d, extra LEDs stay dark",
                    port, led_count, MAX_LEDS_PER_PORT)

    return PortConfig(
        port=port,
        effect=effect,
        speed=speed,
        brightness=float(brightness),
        led_count=led_count,
        reapply_speed=bool(table.get('reapply_speed', False)),
    )


def parse_daemon(table: Dict[str, Any]) -> DaemonConfig:
    interval = table.get('interval_seconds', 5)
    if not _is_number(interval) or interval <= 0:
        raise ConfigError(f"interval_seconds must be a positive finite number, got {interval!r}")
    read_interval = table.get('sensor_read_interval', DEFAULT_SENSOR_READ_INTERVAL)
    if not _is_number(read_interval) or read_interval < 0:
        raise ConfigError(f"sensor_read_interval must be a finite number >= 0, got {read_interval!r}")
    return DaemonConfig(
        interval_seconds=float(interval),
        speed_once_at_startup=bool(table.get('speed_once_at_startup', True)),
        sensor_backend=str(table.get('sensor_backend', 'lm-sensors')),
        sensor_read_interval=float(read_interval),
    )


def parse_config(data: Dict[str, Any]) -> RiingConfig:
    """Build a RiingConfig from decoded TOML.

    A bad ``[daemon]`` section is fatal; a bad port is recorded in
    ``port_errors`` and left out.
    """
    daemon_table = data.get('daemon', {})
    if not isinstance(daemon_table, dict):
        raise ConfigError("[daemon] must be a table")
    config = RiingConfig(daemon=parse_daemon(daemon_table))

    ports_table = data.get('ports', {})
    if not isinstance(ports_table, dict):
        raise ConfigError("[ports] must be a table")

    for key, table in ports_table.items():
        try:
            port = parse_port_key(key)
            if not isinstance(table, dict):
                raise ConfigError("expected a table")
            config.ports[port] = parse_port(port, table)
        except ConfigError as e:
            config.port_errors[str(key)] = str(e)
    return config


def load_config(path: Optional[str] = None) -> RiingConfig:
    """Read and parse a TOML config file.

    Raises:
        ConfigError: File missing, unreadable, not valid TOML, or a bad
            [daemon] section.
    """
    path = path or default_config_path()
    try:
        with open(path, 'rb') as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {path}") from None
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e
    log.debug("Loaded config from %s", path)
    return parse_config(data)
