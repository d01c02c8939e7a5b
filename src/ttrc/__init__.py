"""
TTRC Linux - Thermaltake Riing Trio Controller

Drives the Thermaltake Riing Trio fan/RGB hub (VID 0x264A) over its
vendor HID protocol.

Features:
- Fan speed control and RPM readback per port (ports 1-5)
- Per-LED color writes (GRB wire order, two 19-LED chunks per port)
- Procedural effects: spectrum, wave, pulse, blink, flow, ripple
- Temperature-reactive lighting driven by lm-sensors, nvidia-smi or psutil
- Daemon mode reconciling a TOML config against the hub at 30 FPS

Usage:
    # As a library
    from ttrc import RiingTrioController, open_transport
    controller = RiingTrioController(open_transport(0x264A, 0x2135))
    controller.init()
    controller.set_speed(1, 60)

    # Command line
    ttrc status
    ttrc daemon -c riing-config.toml
"""

from ttrc.__version__ import __version__
from ttrc.core.models import Color, EffectSpeed, PortStatus
from ttrc.hid_device import open_transport
from ttrc.riing_device import RiingTrioController
from ttrc.services.effects import generate

__author__ = "TTRC Linux Contributors"

__all__ = [
    "__version__",
    "Color",
    "EffectSpeed",
    "PortStatus",
    "RiingTrioController",
    "generate",
    "open_transport",
]
