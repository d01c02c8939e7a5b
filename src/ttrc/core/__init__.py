"""
TTRC Core - data models and error types.

Models: immutable value types (Color, effects, zones) plus the mutable
per-port TempReactiveState that the daemon owns.
"""

from .errors import (
    ConfigError,
    DeviceStatusError,
    NoDeviceError,
    ProtocolError,
    SensorError,
    TransportError,
)
from .models import (
    Color,
    EffectSpeed,
    PortStatus,
    SensorSpec,
    TempReactiveConfig,
    TempReactiveState,
    TempZone,
)

__all__ = [
    'Color',
    'EffectSpeed',
    'PortStatus',
    'SensorSpec',
    'TempZone',
    'TempReactiveConfig',
    'TempReactiveState',
    'ConfigError',
    'DeviceStatusError',
    'NoDeviceError',
    'ProtocolError',
    'SensorError',
    'TransportError',
]
