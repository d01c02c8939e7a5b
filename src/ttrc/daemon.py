"""
Riing Trio daemon.

Applies a TOML config to the hub continuously: fan speeds once at
startup (or periodically), and LED effects every frame.

Features:
- 30 FPS render loop when any port is animated, otherwise one static
  refresh per interval (the hub forgets colors after a while)
- Temperature-reactive ports with zone cross-fades and sensor fallback
- Per-port failures are logged (throttled to once per 150 frames while
  animating) and never stop the loop
- SIGTERM / SIGINT stop the loop and close the device
"""

import logging
import signal
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .core.errors import ConfigError, TransportError
from .core.models import (
    FRAME_MASK,
    FRAMES_PER_SECOND,
    PortConfig,
    RiingConfig,
    TempReactiveEffect,
    TempReactiveState,
)
from .riing_device import RiingTrioController
from .sensor_source import make_temperature_source
from .services.effects import generate, is_animated
from .services.temp_reactive import TempReactiveEngine

log = logging.getLogger(__name__)

# 33 ms per frame (~30 FPS)
ANIMATED_FRAME_PERIOD_S = round(1.0 / FRAMES_PER_SECOND, 3)

# Status logging and animated-mode speed sweeps happen every 5 s at 30 FPS
LOG_EVERY_FRAMES = 150
SPEED_SWEEP_FRAMES = 150

# Errors a port can raise mid-loop without stopping the daemon
PORT_ERRORS = (RuntimeError, ValueError, OSError)


# =========================================================================
# Fleet state
# =========================================================================

@dataclass
class PortRuntime:
    """One configured port plus its mutable render state."""
    config: PortConfig
    temp_state: Optional[TempReactiveState] = None

    @property
    def port(self) -> int:
        return self.config.port

    @property
    def has_leds(self) -> bool:
        return self.config.effect is not None

    @property
    def is_temp_reactive(self) -> bool:
        return isinstance(self.config.effect, TempReactiveEffect)


@dataclass
class FleetState:
    """All per-port state the daemon owns, sorted by port number."""
    ports: List[PortRuntime] = field(default_factory=list)
    last_speed_apply: float = 0.0

    @property
    def animated(self) -> bool:
        return any(p.has_leds and is_animated(p.config.effect) for p in self.ports)

    def frame_period(self, interval_s: float) -> float:
        return ANIMATED_FRAME_PERIOD_S if self.animated else interval_s


def build_fleet(config: RiingConfig, now: float = 0.0) -> FleetState:
    ports = []
    for port in sorted(config.ports):
        port_config = config.ports[port]
        runtime = PortRuntime(port_config)
        if runtime.is_temp_reactive:
            runtime.temp_state = TempReactiveState(
                sensor_read_interval=config.daemon.sensor_read_interval)
        ports.append(runtime)
    return FleetState(ports=ports, last_speed_apply=now)


# =========================================================================
# Scheduler
# =========================================================================

class Daemon:
    """Frame scheduler driving one controller.

    Args:
        controller: Initialized controller.
        config: Parsed configuration.
        interval: Seconds between static refreshes and speed sweeps;
            defaults to ``[daemon] interval_seconds``.
        engine: Temperature-reactive engine; built from the configured
            sensor backend when omitted and any port needs it.
        clock: Monotonic seconds.
        sleep: Sleep function.
    """

    def __init__(self, controller: RiingTrioController, config: RiingConfig,
                 interval: Optional[float] = None,
                 engine: Optional[TempReactiveEngine] = None,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        self.controller = controller
        self.config = config
        self.interval = float(interval if interval is not None
                              else config.daemon.interval_seconds)
        self._clock = clock
        self._sleep = sleep
        self.fleet = build_fleet(config, clock())

        if engine is None and any(p.is_temp_reactive for p in self.fleet.ports):
            engine = TempReactiveEngine(
                make_temperature_source(config.daemon.sensor_backend), clock)
        self.engine = engine

        self._stop = False

    # -- Lifecycle -----------------------------------------------------------

    def stop(self) -> None:
        self._stop = True

    def install_signal_handlers(self) -> None:
        """Stop cleanly on SIGTERM / SIGINT."""
        def _handle_signal(signum, frame):
            log.info("Received signal %d, stopping", signum)
            self.stop()

        signal.signal(signal.SIGTERM, _handle_signal)
        signal.signal(signal.SIGINT, _handle_signal)

    def apply_startup_speeds(self) -> None:
        """Set every configured fan speed once."""
        for runtime in self.fleet.ports:
            speed = runtime.config.speed
            if speed is None:
                continue
            try:
                self.controller.set_speed(runtime.port, speed)
                log.info("Port %d: speed set to %d%%", runtime.port, speed)
            except PORT_ERRORS as e:
                log.error("Port %d: failed to set speed: %s", runtime.port, e)

    def run(self, max_frames: Optional[int] = None) -> int:
        """Render frames until stopped (or max_frames reached).

        Returns:
            Number of frames rendered.
        """
        period = self.fleet.frame_period(self.interval)
        if self.fleet.animated:
            log.info("Animated effects running at %d FPS", FRAMES_PER_SECOND)
        else:
            log.info("Static LEDs reapplied every %g s", self.interval)

        frame = 0
        rendered = 0
        while not self._stop:
            loop_start = self._clock()
            self.step(frame)
            frame = (frame + 1) & FRAME_MASK
            rendered += 1
            if max_frames is not None and rendered >= max_frames:
                break

            remaining = period - (self._clock() - loop_start)
            if remaining > 0 and not self._stop:
                self._sleep(remaining)
        return rendered

    # -- One frame -------------------------------------------------------------

    def step(self, frame: int) -> None:
        """Apply one frame to every configured port."""
        fleet = self.fleet
        animated = fleet.animated
        should_log = frame % LOG_EVERY_FRAMES == 0 if animated else True
        now = self._clock()

        if should_log:
            log.info("Applying settings (frame %d)", frame)

        speeds_due = (not self.config.daemon.speed_once_at_startup
                      or now - fleet.last_speed_apply >= self.interval)
        sweep_frame = not animated or frame % SPEED_SWEEP_FRAMES == 0

        for runtime in fleet.ports:
            if runtime.is_temp_reactive:
                self._render_temp_port(runtime, frame, should_log)
                continue

            if (runtime.config.speed is not None
                    and (speeds_due or runtime.config.reapply_speed)
                    and sweep_frame):
                self._apply_speed(runtime, should_log)
            if runtime.has_leds:
                self._render_port(runtime, frame, should_log)

        if frame % SPEED_SWEEP_FRAMES == 0:
            fleet.last_speed_apply = now

    def _apply_speed(self, runtime: PortRuntime, should_log: bool) -> None:
        try:
            self.controller.set_speed(runtime.port, runtime.config.speed)
        except PORT_ERRORS as e:
            if should_log:
                log.warning("Port %d: failed to set speed: %s", runtime.port, e)

    def _render_port(self, runtime: PortRuntime, frame: int, should_log: bool) -> None:
        cfg = runtime.config
        try:
            colors = generate(cfg.effect, frame, cfg.led_count, cfg.brightness)
            self.controller.set_rgb_colors(runtime.port, colors)
        except PORT_ERRORS as e:
            if should_log:
                log.warning("Port %d: failed to set LEDs: %s", runtime.port, e)

    def _render_temp_port(self, runtime: PortRuntime, frame: int, should_log: bool) -> None:
        cfg = runtime.config
        try:
            colors = self.engine.render(cfg.effect.config, runtime.temp_state, frame,
                                        cfg.led_count, cfg.brightness, port=runtime.port)
            self.controller.set_rgb_colors(runtime.port, colors)
        except PORT_ERRORS as e:
            if should_log:
                log.warning("Port %d: failed to set LEDs: %s", runtime.port, e)


# =========================================================================
# Entry point
# =========================================================================

def run_daemon(vid: int, pid: int, config_path: str,
               interval: Optional[float] = None, backend: str = 'auto') -> int:
    """Load config, open the hub, and run until signalled.

    Returns:
        Exit code (0 = clean shutdown, 1 = error).
    """
    from .conf import load_config
    from .hid_device import open_transport

    print("=== Riing Trio Controller - Daemon Mode ===")
    print(f"Device: {vid:04x}:{pid:04x}")
    print(f"Config: {config_path}")

    try:
        config = load_config(config_path)
    except ConfigError as e:
        print(f"Error: {e}")
        return 1

    for key, message in config.port_errors.items():
        log.error("Port %s: %s (port skipped)", key, message)
    for port, port_config in sorted(config.ports.items()):
        speed = f", speed {port_config.speed}%" if port_config.speed is not None else ""
        if port_config.effect is None:
            log.info("Port %d: LEDs untouched%s", port, speed)
            continue
        log.info("Port %d: %s effect, %d LEDs, brightness %.0f%%%s",
                 port, port_config.effect.name, port_config.led_count,
                 port_config.brightness * 100, speed)
    if not config.ports:
        print("Error: No usable ports in config")
        return 1

    try:
        transport = open_transport(vid, pid, backend)
    except (TransportError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    controller = RiingTrioController(transport)
    try:
        controller.init()
        daemon = Daemon(controller, config, interval)
    except (RuntimeError, ConfigError) as e:
        print(f"Error: {e}")
        controller.close()
        return 1

    if config.daemon.speed_once_at_startup:
        daemon.apply_startup_speeds()

    daemon.install_signal_handlers()
    print("Starting daemon loop (Ctrl+C to stop)...")
    try:
        daemon.run()
    finally:
        controller.close()
    print("Daemon stopped.")
    return 0
