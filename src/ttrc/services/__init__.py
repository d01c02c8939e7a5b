"""TTRC Services: lighting logic (pure Python, no device I/O).

- effects.py: per-frame color generation for every effect variant
- temp_reactive.py: temperature-zone selection, cross-fades, sensor fallback
"""

from .effects import generate, interpolate_colors, is_animated
from .temp_reactive import TempReactiveEngine, select_zone

__all__ = [
    'generate',
    'interpolate_colors',
    'is_animated',
    'TempReactiveEngine',
    'select_zone',
]
