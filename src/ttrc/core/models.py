"""
TTRC Models - Pure data classes with no device or I/O dependencies.

Everything here is an immutable value type except TempReactiveState,
which the daemon owns (one per temperature-reactive port) and mutates
every frame.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Dict, List, Optional, Tuple, Union

from .errors import ConfigError

# Animation clock: 30 frames per second, frame counter is a wrapping u32.
FRAMES_PER_SECOND = 30
FRAME_MASK = 0xFFFFFFFF

DEFAULT_LED_COUNT = 30
DEFAULT_TRANSITION_FRAMES = 30
DEFAULT_SENSOR_READ_INTERVAL = 5.0


def _clamp_unit(value: float) -> float:
    value = float(value)
    if math.isnan(value):
        return 0.0
    return min(max(value, 0.0), 1.0)


def _clamp_byte(value) -> int:
    return min(max(int(value), 0), 255)


# =============================================================================
# Color
# =============================================================================

@dataclass(frozen=True)
class Color:
    """24-bit RGB color, channels 0-255.

    All arithmetic clamps its float inputs first and truncates the result,
    so no operation can produce an out-of-range channel.
    """
    r: int = 0
    g: int = 0
    b: int = 0

    OFF: ClassVar['Color']
    WHITE: ClassVar['Color']
    RED: ClassVar['Color']
    GREEN: ClassVar['Color']
    BLUE: ClassVar['Color']
    CYAN: ClassVar['Color']
    MAGENTA: ClassVar['Color']
    YELLOW: ClassVar['Color']
    ORANGE: ClassVar['Color']
    PURPLE: ClassVar['Color']
    PINK: ClassVar['Color']
    LIME: ClassVar['Color']
    SKY: ClassVar['Color']

    @classmethod
    def from_rgb(cls, r: int, g: int, b: int) -> 'Color':
        return cls(_clamp_byte(r), _clamp_byte(g), _clamp_byte(b))

    @classmethod
    def from_name(cls, name: str) -> Optional['Color']:
        """Look up a named color ("red", "sky", ...). None if unknown."""
        return NAMED_COLORS.get(name.strip().lower())

    @classmethod
    def from_hsv(cls, h: float, s: float, v: float) -> 'Color':
        """Convert HSV to RGB.

        Args:
            h: Hue in degrees, wrapped modulo 360 (negative hues wrap too).
            s: Saturation, clamped to 0..1.
            v: Value, clamped to 0..1.
        """
        h = h % 360.0
        s = _clamp_unit(s)
        v = _clamp_unit(v)

        c = v * s
        x = c * (1.0 - abs((h / 60.0) % 2.0 - 1.0))
        m = v - c

        # float modulo can land exactly on 360.0 for tiny negative hues
        sector = min(int(h // 60.0), 5)
        r, g, b = (
            (c, x, 0.0),
            (x, c, 0.0),
            (0.0, c, x),
            (0.0, x, c),
            (x, 0.0, c),
            (c, 0.0, x),
        )[sector]

        return cls(
            int(_clamp_unit(r + m) * 255),
            int(_clamp_unit(g + m) * 255),
            int(_clamp_unit(b + m) * 255),
        )

    def with_brightness(self, brightness: float) -> 'Color':
        """Scale every channel by brightness (clamped to 0..1)."""
        b = _clamp_unit(brightness)
        return Color(int(self.r * b), int(self.g * b), int(self.b * b))

    def lerp(self, other: 'Color', t: float) -> 'Color':
        """Blend towards other; t=0 is self, t=1 is other (t clamped)."""
        t = _clamp_unit(t)
        inv = 1.0 - t
        return Color(
            _clamp_byte(self.r * inv + other.r * t),
            _clamp_byte(self.g * inv + other.g * t),
            _clamp_byte(self.b * inv + other.b * t),
        )

    def to_wire_order(self) -> bytes:
        """Hub wire order is G, R, B."""
        return bytes((self.g, self.r, self.b))

    def __str__(self) -> str:
        return f"#{self.r:02x}{self.g:02x}{self.b:02x}"


Color.OFF = Color(0, 0, 0)
Color.WHITE = Color(255, 255, 255)
Color.RED = Color(255, 0, 0)
Color.GREEN = Color(0, 255, 0)
Color.BLUE = Color(0, 0, 255)
Color.CYAN = Color(0, 255, 255)
Color.MAGENTA = Color(255, 0, 255)
Color.YELLOW = Color(255, 255, 0)
Color.ORANGE = Color(255, 165, 0)
Color.PURPLE = Color(128, 0, 128)
Color.PINK = Color(255, 192, 203)
Color.LIME = Color(0, 255, 0)
Color.SKY = Color(135, 206, 235)

NAMED_COLORS: Dict[str, Color] = {
    'off': Color.OFF,
    'black': Color.OFF,
    'white': Color.WHITE,
    'red': Color.RED,
    'green': Color.GREEN,
    'blue': Color.BLUE,
    'cyan': Color.CYAN,
    'magenta': Color.MAGENTA,
    'yellow': Color.YELLOW,
    'orange': Color.ORANGE,
    'purple': Color.PURPLE,
    'pink': Color.PINK,
    'lime': Color.LIME,
    'sky': Color.SKY,
}


# =============================================================================
# Effects
# =============================================================================

class EffectSpeed(Enum):
    """Animation speed, valued in frames per full cycle at 30 FPS."""
    EXTREME = 30    # 1 s
    FAST = 60       # 2 s
    NORMAL = 120    # 4 s
    SLOW = 240      # 8 s

    @property
    def frames_per_cycle(self) -> int:
        return self.value

    @classmethod
    def from_name(cls, name: str) -> Optional['EffectSpeed']:
        try:
            return cls[name.strip().upper()]
        except KeyError:
            return None


@dataclass(frozen=True)
class StaticEffect:
    color: Color
    name: ClassVar[str] = 'static'


@dataclass(frozen=True)
class SpectrumEffect:
    """Whole strip cycles through the hue wheel."""
    speed: EffectSpeed = EffectSpeed.NORMAL
    name: ClassVar[str] = 'spectrum'


@dataclass(frozen=True)
class WaveEffect:
    """Sine brightness wave travelling along the strip."""
    color: Color
    speed: EffectSpeed = EffectSpeed.NORMAL
    name: ClassVar[str] = 'wave'


@dataclass(frozen=True)
class PulseEffect:
    """Whole strip breathes in and out."""
    color: Color
    speed: EffectSpeed = EffectSpeed.NORMAL
    name: ClassVar[str] = 'pulse'


@dataclass(frozen=True)
class BlinkEffect:
    color: Color
    speed: EffectSpeed = EffectSpeed.NORMAL
    name: ClassVar[str] = 'blink'


@dataclass(frozen=True)
class FlowEffect:
    """A palette scrolled along the strip."""
    colors: Tuple[Color, ...]
    speed: EffectSpeed = EffectSpeed.NORMAL
    name: ClassVar[str] = 'flow'

    def __post_init__(self):
        object.__setattr__(self, 'colors', tuple(self.colors))


@dataclass(frozen=True)
class RippleEffect:
    """Brightness rings expanding outward from the strip's center."""
    color: Color
    speed: EffectSpeed = EffectSpeed.NORMAL
    name: ClassVar[str] = 'ripple'


# =============================================================================
# Temperature-reactive configuration
# =============================================================================

class SensorKind(Enum):
    PRESET = 'preset'
    EXPLICIT = 'explicit'


SENSOR_PRESETS = ('cpu', 'gpu', 'gpu-nvidia', 'nvme', 'hdd', 'ssd')


@dataclass(frozen=True)
class SensorSpec:
    """Which temperature to read: a named preset or an "adapter:field" pair."""
    kind: SensorKind
    name: str

    @classmethod
    def parse(cls, text: str) -> 'SensorSpec':
        text = text.strip()
        if text.lower() in SENSOR_PRESETS:
            return cls(SensorKind.PRESET, text.lower())
        if ':' in text:
            return cls(SensorKind.EXPLICIT, text)
        # Unknown preset names are kept; the sensor source rejects them.
        return cls(SensorKind.PRESET, text.lower())

    @property
    def adapter(self) -> str:
        return self._split()[0]

    @property
    def field(self) -> str:
        return self._split()[1]

    def _split(self) -> Tuple[str, str]:
        sep = ':' if ':' in self.name else '.'
        adapter, _, sensor_field = self.name.partition(sep)
        return adapter.strip(), sensor_field.strip()

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class TempZone:
    """Temperature band [min_temp, max_temp) mapped to an effect."""
    min_temp: float
    max_temp: float
    effect: 'Effect'

    def contains(self, temp: float) -> bool:
        return self.min_temp <= temp < self.max_temp


def validate_zones(zones) -> None:
    """Raise ConfigError unless zones are non-empty, ordered and contiguous."""
    if not zones:
        raise ConfigError("At least one temperature zone is required")
    for i, zone in enumerate(zones):
        if zone.min_temp >= zone.max_temp:
            raise ConfigError(
                f"Zone {i}: min_temp ({zone.min_temp}) must be less than "
                f"max_temp ({zone.max_temp})")
    for i in range(len(zones) - 1):
        if zones[i].max_temp != zones[i + 1].min_temp:
            raise ConfigError(
                f"Zones must be contiguous: zone {i} ends at {zones[i].max_temp} "
                f"but zone {i + 1} starts at {zones[i + 1].min_temp}")


@dataclass(frozen=True)
class TempReactiveConfig:
    sensor: SensorSpec
    zones: Tuple[TempZone, ...]
    transition_frames: int = DEFAULT_TRANSITION_FRAMES

    def __post_init__(self):
        object.__setattr__(self, 'zones', tuple(self.zones))
        validate_zones(self.zones)
        if self.transition_frames < 0:
            raise ConfigError(
                f"transition_frames must be >= 0, got {self.transition_frames}")


@dataclass(frozen=True)
class TempReactiveEffect:
    """Placeholder variant; rendered by the temperature-reactive engine."""
    config: TempReactiveConfig
    name: ClassVar[str] = 'temp_reactive'


Effect = Union[
    StaticEffect,
    SpectrumEffect,
    WaveEffect,
    PulseEffect,
    BlinkEffect,
    FlowEffect,
    RippleEffect,
    TempReactiveEffect,
]


@dataclass
class TempReactiveState:
    """Per-port runtime state of the temperature-reactive engine.

    last_sensor_read is a monotonic timestamp; -inf forces a read on the
    first frame. Fallback mode, once entered, is only left by a restart.
    """
    current_zone_idx: int = 0
    transition_start_frame: Optional[int] = None
    transition_from_colors: Optional[List[Color]] = None
    last_sensor_read: float = -math.inf
    sensor_read_interval: float = DEFAULT_SENSOR_READ_INTERVAL
    fallback_mode: bool = False
    fallback_frame_start: Optional[int] = None
    last_temperature: Optional[float] = None

    @property
    def in_transition(self) -> bool:
        return (self.transition_start_frame is not None
                and self.transition_from_colors is not None)

    def clear_transition(self) -> None:
        self.transition_start_frame = None
        self.transition_from_colors = None


# =============================================================================
# Device / configuration models
# =============================================================================

@dataclass(frozen=True)
class PortStatus:
    """Fan state reported by a status query."""
    port_id: int
    speed: int      # percent
    rpm: int


@dataclass(frozen=True)
class PortConfig:
    """Resolved settings for one hub port; effect None leaves the LEDs alone."""
    port: int
    effect: Optional[Effect]
    speed: Optional[int] = None
    brightness: float = 1.0
    led_count: int = DEFAULT_LED_COUNT
    reapply_speed: bool = False


@dataclass(frozen=True)
class DaemonConfig:
    interval_seconds: float = 5.0
    speed_once_at_startup: bool = True
    sensor_backend: str = 'lm-sensors'
    sensor_read_interval: float = DEFAULT_SENSOR_READ_INTERVAL


@dataclass
class RiingConfig:
    """Parsed configuration file.

    Ports that failed to parse are kept out of ``ports`` and reported in
    ``port_errors`` (key as written in the file -> message).
    """
    daemon: DaemonConfig = field(default_factory=DaemonConfig)
    ports: Dict[int, PortConfig] = field(default_factory=dict)
    port_errors: Dict[str, str] = field(default_factory=dict)
