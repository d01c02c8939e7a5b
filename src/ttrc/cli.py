#!/usr/bin/env python3
"""
TTRC Linux - Command Line Interface

Entry point for the ttrc-linux package (``ttrc``).
"""

import argparse
import logging
import os
import subprocess
import sys
from typing import List, Optional

from .__version__ import __version__
from .core.errors import NoDeviceError
from .core.models import DEFAULT_LED_COUNT, Color
from .hid_device import BACKENDS, RIING_PID, RIING_VID

UDEV_RULES_PATH = "/etc/udev/rules.d/99-thermaltake.rules"


def parse_hex(text: str) -> int:
    """argparse type for USB ids: "264a", "0x264a" or "0X264A"."""
    digits = text[2:] if text.lower().startswith("0x") else text
    try:
        value = int(digits, 16)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid hex value: {text!r}") from None
    if not 0 <= value <= 0xFFFF:
        raise argparse.ArgumentTypeError(f"USB id out of range: {text!r}")
    return value


def setup_logging(verbose: int = 0, daemon: bool = False) -> None:
    """Configure root logging from the -v count.

    The daemon reports progress through logging, so it starts at INFO.
    """
    if verbose >= 2:
        logging.basicConfig(level=logging.DEBUG,
                            format='%(asctime)s [%(levelname)s] %(name)s: %(message)s')
        logging.getLogger('usb').setLevel(logging.WARNING)
    elif verbose == 1 or daemon:
        logging.basicConfig(level=logging.INFO,
                            format='%(asctime)s [%(levelname)s] %(message)s',
                            datefmt='%H:%M:%S')
    else:
        logging.basicConfig(level=logging.WARNING, format='[%(levelname)s] %(message)s')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ttrc",
        description="Thermaltake Riing Trio controller for Linux",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    ttrc status               Show speed/RPM of all ports
    ttrc speed -p 1 -s 60     Set port 1 fans to 60%
    ttrc white -p 2           Set port 2 LEDs to white
    ttrc off -p 2             Turn off port 2 LEDs
    ttrc detect               List attached controllers
    ttrc daemon -c riing-config.toml
    sudo ttrc setup-udev      Allow non-root access
        """
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v, -vv)"
    )
    parser.add_argument("--vid", type=parse_hex, default=RIING_VID,
                        help="USB vendor id in hex (default: 0x264a)")
    parser.add_argument("--pid", type=parse_hex, default=RIING_PID,
                        help="USB product id in hex, 0x2135-0x2144 (default: 0x2135)")
    parser.add_argument("--backend", choices=BACKENDS, default="auto",
                        help="USB backend (default: auto = hidapi, then pyusb)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    off_parser = subparsers.add_parser("off", help="Turn off LEDs on a port")
    off_parser.add_argument("--port", "-p", type=int, required=True, help="Port number (1-5)")
    off_parser.add_argument("--led-count", type=int, default=DEFAULT_LED_COUNT,
                            help="Number of LEDs (default: 30)")

    white_parser = subparsers.add_parser("white", help="Set LEDs on a port to white")
    white_parser.add_argument("--port", "-p", type=int, required=True, help="Port number (1-5)")
    white_parser.add_argument("--led-count", type=int, default=DEFAULT_LED_COUNT,
                              help="Number of LEDs (default: 30)")

    speed_parser = subparsers.add_parser("speed", help="Set fan speed on a port")
    speed_parser.add_argument("--port", "-p", type=int, required=True, help="Port number (1-5)")
    speed_parser.add_argument("--speed", "-s", type=int, required=True,
                              help="Speed percent (0-100)")

    status_parser = subparsers.add_parser("status", help="Show fan speed and RPM")
    status_parser.add_argument("--port", "-p", type=int, help="Port number (default: all)")

    subparsers.add_parser("detect", help="List attached Riing Trio controllers")

    daemon_parser = subparsers.add_parser("daemon", help="Apply a config file continuously")
    daemon_parser.add_argument("--config", "-c", default=None,
                               help="TOML config (default: ./riing-config.toml, "
                                    "then ~/.config/ttrc/riing-config.toml)")
    daemon_parser.add_argument("--interval", "-i", type=float, default=None,
                               help="Static refresh / speed interval in seconds "
                                    "(default: [daemon] interval_seconds, 5)")

    udev_parser = subparsers.add_parser("setup-udev",
                                        help="Install udev rules for non-root access")
    udev_parser.add_argument("--dry-run", action="store_true",
                             help="Print rules without installing")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    setup_logging(args.verbose, daemon=args.command == "daemon")

    if args.command == "off":
        return set_leds(args.vid, args.pid, args.backend, args.port, Color.OFF,
                        args.led_count)
    elif args.command == "white":
        return set_leds(args.vid, args.pid, args.backend, args.port, Color.WHITE,
                        args.led_count)
    elif args.command == "speed":
        return set_speed(args.vid, args.pid, args.backend, args.port, args.speed)
    elif args.command == "status":
        return show_status(args.vid, args.pid, args.backend, port=args.port)
    elif args.command == "detect":
        return detect()
    elif args.command == "daemon":
        return run_daemon(args.vid, args.pid, args.backend, args.config, args.interval)
    elif args.command == "setup-udev":
        return setup_udev(dry_run=args.dry_run)

    return 0


def _open_controller(vid: int, pid: int, backend: str):
    """Open and initialize the hub. Raises on failure."""
    from .hid_device import open_transport
    from .riing_device import RiingTrioController

    print(f"Device: {vid:04x}:{pid:04x}")
    controller = RiingTrioController(open_transport(vid, pid, backend))
    try:
        controller.init()
    except RuntimeError:
        controller.close()
        raise
    return controller


def set_leds(vid: int, pid: int, backend: str, port: int, color: Color,
             led_count: int = DEFAULT_LED_COUNT) -> int:
    """Fill a port's LEDs with one color."""
    try:
        controller = _open_controller(vid, pid, backend)
        try:
            controller.set_rgb(port, color, led_count)
        finally:
            controller.close()
        state = "off" if color == Color.OFF else f"set to {color}"
        print(f"Port {port}: {led_count} LEDs {state}")
        return 0
    except (RuntimeError, ValueError) as e:
        print(f"Error: {e}")
        return 1


def set_speed(vid: int, pid: int, backend: str, port: int, speed: int) -> int:
    """Set one port's fan speed."""
    try:
        controller = _open_controller(vid, pid, backend)
        try:
            controller.set_speed(port, speed)
        finally:
            controller.close()
        print(f"Port {port}: fan speed set to {speed}%")
        return 0
    except (RuntimeError, ValueError) as e:
        print(f"Error: {e}")
        return 1


def show_status(vid: int, pid: int, backend: str, port: Optional[int] = None) -> int:
    """Print speed/RPM for one port, or scan all five.

    A port with nothing plugged in is reported, not treated as a failure.
    """
    from .riing_device import PORTS

    try:
        controller = _open_controller(vid, pid, backend)
    except (RuntimeError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    ports = [port] if port is not None else list(PORTS)
    try:
        for p in ports:
            try:
                status = controller.get_port_status(p)
            except NoDeviceError as e:
                print(f"Port {p}: {e}")
                continue
            print(f"Port {p}:")
            print(f"  Speed: {status.speed}%")
            print(f"  RPM:   {status.rpm}")
        return 0
    except (RuntimeError, ValueError) as e:
        print(f"Error: {e}")
        return 1
    finally:
        controller.close()


def detect() -> int:
    """List attached controllers."""
    from .hid_device import HIDAPI_AVAILABLE, PYUSB_AVAILABLE, find_controllers

    if not HIDAPI_AVAILABLE and not PYUSB_AVAILABLE:
        print("Error: No USB backend. Install hid (hidapi) or pyusb.")
        return 1

    controllers = find_controllers()
    if not controllers:
        print("No Riing Trio controllers found")
        print("Check the USB header cable and run: lsusb -d 264a:")
        return 1

    for i, info in enumerate(controllers, start=1):
        product = f" {info.product}" if info.product else ""
        serial = f" serial={info.serial}" if info.serial else ""
        print(f"[{i}] {info.usb_id}{product} ({info.backend}: {info.path}){serial}")
    return 0


def run_daemon(vid: int, pid: int, backend: str, config: Optional[str],
               interval: Optional[float]) -> int:
    from .conf import default_config_path
    from .daemon import run_daemon as _run_daemon

    return _run_daemon(vid, pid, config or default_config_path(), interval, backend)


def setup_udev(dry_run: bool = False) -> int:
    """Install udev rules granting hidraw/usb access to Thermaltake devices."""
    rules_content = (
        "# Thermaltake Riing Trio controllers, auto-generated by ttrc setup-udev\n"
        f'SUBSYSTEM=="hidraw", ATTRS{{idVendor}}=="{RIING_VID:04x}", '
        'MODE="0666", TAG+="uaccess"\n'
        f'SUBSYSTEM=="usb", ATTRS{{idVendor}}=="{RIING_VID:04x}", '
        'MODE="0666", TAG+="uaccess"\n'
    )

    if dry_run:
        print(rules_content)
        print(f"# Would write to {UDEV_RULES_PATH}")
        return 0

    if os.geteuid() != 0:
        print("Error: root required. Run with:")
        print("  sudo ttrc setup-udev")
        print("\nOr preview first:")
        print("  ttrc setup-udev --dry-run")
        return 1

    try:
        with open(UDEV_RULES_PATH, "w") as f:
            f.write(rules_content)
    except OSError as e:
        print(f"Error: {e}")
        return 1
    print(f"Wrote {UDEV_RULES_PATH}")

    subprocess.run(["udevadm", "control", "--reload-rules"], check=False)
    subprocess.run(["udevadm", "trigger"], check=False)
    print("\nDone. Unplug and replug the controller for changes to take effect.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
