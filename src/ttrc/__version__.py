"""TTRC Linux version information."""

__version__ = "0.3.0"
__version_info__ = tuple(int(x) for x in __version__.split("."))

# Version history:
# 0.1.0 - Initial release: init/speed/status/off/white commands over hidapi
# 0.2.0 - Daemon mode with TOML config, effect engine (spectrum, wave, pulse,
#         blink, flow, ripple), speed reapplication policy
# 0.2.1 - Fix RGB chunk 2 carrying stale colors when led_count < 19
# 0.3.0 - Temperature-reactive lighting (lm-sensors / nvidia-smi / psutil),
#         zone transitions, magenta fallback on sensor loss, pyusb backend,
#         detect and setup-udev commands
