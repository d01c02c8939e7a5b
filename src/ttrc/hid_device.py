#!/usr/bin/env python3
"""
HID transport layer for the Thermaltake Riing Trio controller.

The hub enumerates as a vendor HID device (VID 0x264A, PID 0x2135-0x2144)
with one 64-byte interrupt IN and one 64-byte interrupt OUT endpoint.
Every command is a single output report: report id 0x00 followed by a
64-byte payload (65 bytes total).

The ``HidTransport`` ABC abstracts the raw report I/O so that:
  • Tests can inject a mock transport (no real hardware needed).
  • ``HidApiTransport`` talks to /dev/hidraw* via hidapi (preferred).
  • ``PyUsbTransport`` talks to the interrupt endpoints via pyusb.

Linux dependencies (install one):
  • hidapi: ``pip install hid``    (needs libhidapi: ``apt install libhidapi-hidraw0``)
  • pyusb:  ``pip install pyusb``  (needs libusb1: ``apt install libusb-1.0-0``)
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from .core.errors import TransportError

# Optional USB backends
try:
    import hid as hidapi
    HIDAPI_AVAILABLE = True
except ImportError:
    HIDAPI_AVAILABLE = False

try:
    import usb.core
    import usb.util
    PYUSB_AVAILABLE = True
except ImportError:
    PYUSB_AVAILABLE = False

log = logging.getLogger(__name__)


# =========================================================================
# Constants
# =========================================================================

RIING_VID = 0x264A
RIING_PID = 0x2135          # first controller; each extra hub gets the next PID
RIING_PID_RANGE = range(0x2135, 0x2145)

# Interrupt endpoints (pyusb backend only)
EP_READ_01 = 0x81
EP_WRITE_01 = 0x01

USB_CONFIGURATION = 1
USB_INTERFACE = 0

REPORT_ID = 0x00
DEFAULT_TIMEOUT_MS = 1000

BACKENDS = ('auto', 'hidapi', 'pyusb')


# =========================================================================
# Transport ABC
# =========================================================================

class HidTransport(ABC):
    """Abstract HID report transport, mockable for testing."""

    @abstractmethod
    def open(self) -> None:
        """Open the device."""

    @abstractmethod
    def close(self) -> None:
        """Release and close the device."""

    @abstractmethod
    def write(self, report: bytes) -> int:
        """Write one output report (report id first). Returns bytes written."""

    @abstractmethod
    def read(self, length: int, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> bytes:
        """Read one input report. Returns b'' on timeout."""

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """Whether the device is currently open."""

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *exc):
        self.close()


# =========================================================================
# Real transport: HIDAPI
# =========================================================================
# hidraw strips the report id from input reports, so a response's first
# byte is payload byte 0.

class HidApiTransport(HidTransport):
    """Report transport using HIDAPI (``hid`` package).

    Uses the kernel hidraw driver, so no driver detach is needed and a
    uaccess udev rule is enough for non-root access.

    Requires: ``pip install hid`` + ``apt install libhidapi-hidraw0``
    """

    def __init__(self, vid: int, pid: int, serial: Optional[str] = None,
                 path: Optional[bytes] = None):
        if not HIDAPI_AVAILABLE:
            raise ImportError(
                "hidapi is not installed. Install with: pip install hid\n"
                "Also need libhidapi: apt install libhidapi-hidraw0 (Debian/Ubuntu) "
                "or dnf install hidapi (Fedora)"
            )
        self._vid = vid
        self._pid = pid
        self._serial = serial
        self._path = path
        self._device = None
        self._is_open = False

    def open(self) -> None:
        """Open HID device by path, or by VID/PID (and serial)."""
        if self._path is not None:
            kwargs = {'path': self._path}
        else:
            kwargs = {'vid': self._vid, 'pid': self._pid}
            if self._serial:
                kwargs['serial'] = self._serial
        try:
            self._device = hidapi.Device(**kwargs)
        except (hidapi.HIDException, OSError) as e:
            raise TransportError(
                f"Cannot open HID device {self._vid:04x}:{self._pid:04x}: {e}"
            ) from e
        self._device.nonblocking = 0  # blocking reads, bounded by timeout
        self._is_open = True
        log.debug("hidapi: opened %04x:%04x", self._vid, self._pid)

    def close(self) -> None:
        """Close HID device."""
        if self._device is not None:
            try:
                self._device.close()
            except (hidapi.HIDException, OSError) as e:
                log.debug("hidapi: close failed: %s", e)
            self._device = None
        self._is_open = False

    def write(self, report: bytes) -> int:
        if not self._is_open or self._device is None:
            raise TransportError("Transport not open")
        try:
            return self._device.write(bytes(report))
        except (hidapi.HIDException, OSError) as e:
            raise TransportError(f"HID write failed: {e}") from e

    def read(self, length: int, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> bytes:
        if not self._is_open or self._device is None:
            raise TransportError("Transport not open")
        try:
            data = self._device.read(length, timeout_ms)
        except (hidapi.HIDException, OSError) as e:
            raise TransportError(f"HID read failed: {e}") from e
        return bytes(data) if data else b''

    @property
    def is_open(self) -> bool:
        return self._is_open


# =========================================================================
# Real transport: PyUSB
# =========================================================================
# Fallback for systems without libhidapi. Claims the interface from
# usbhid, so the hidraw node disappears while this transport is open.

class PyUsbTransport(HidTransport):
    """Report transport using pyusb (libusb backend).

    1. Find device by VID/PID
    2. Detach usbhid, SetConfiguration(1), ClaimInterface(0)
    3. Interrupt write to EP 0x01 / read from EP 0x81

    The report id byte is not part of an interrupt transfer, so
    ``write()`` strips it.

    Requires: ``pip install pyusb`` + ``apt install libusb-1.0-0``
    """

    def __init__(self, vid: int, pid: int, serial: Optional[str] = None):
        if not PYUSB_AVAILABLE:
            raise ImportError(
                "pyusb is not installed. Install with: pip install pyusb\n"
                "Also need libusb: apt install libusb-1.0-0 (Debian/Ubuntu) "
                "or dnf install libusb1 (Fedora)"
            )
        self._vid = vid
        self._pid = pid
        self._serial = serial
        self._device = None
        self._is_open = False

    def open(self) -> None:
        kwargs = {'idVendor': self._vid, 'idProduct': self._pid}
        if self._serial:
            kwargs['serial_number'] = self._serial

        self._device = usb.core.find(**kwargs)
        if self._device is None:
            raise TransportError(
                f"USB device not found: VID={self._vid:#06x} PID={self._pid:#06x}"
            )

        try:
            if self._device.is_kernel_driver_active(USB_INTERFACE):
                self._device.detach_kernel_driver(USB_INTERFACE)
            self._device.set_configuration(USB_CONFIGURATION)
            usb.util.claim_interface(self._device, USB_INTERFACE)
        except usb.core.USBError as e:
            self._device = None
            raise TransportError(f"Cannot claim USB interface: {e}") from e
        self._is_open = True
        log.debug("pyusb: opened %04x:%04x", self._vid, self._pid)

    def close(self) -> None:
        if self._device is not None:
            try:
                usb.util.release_interface(self._device, USB_INTERFACE)
                usb.util.dispose_resources(self._device)
            except usb.core.USBError as e:
                log.debug("pyusb: release failed: %s", e)
            self._device = None
        self._is_open = False

    def write(self, report: bytes) -> int:
        if not self._is_open or self._device is None:
            raise TransportError("Transport not open")
        payload = bytes(report[1:]) if report[:1] == bytes([REPORT_ID]) else bytes(report)
        try:
            return self._device.write(EP_WRITE_01, payload, timeout=DEFAULT_TIMEOUT_MS)
        except usb.core.USBError as e:
            raise TransportError(f"USB write failed: {e}") from e

    def read(self, length: int, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> bytes:
        if not self._is_open or self._device is None:
            raise TransportError("Transport not open")
        try:
            data = self._device.read(EP_READ_01, length, timeout=timeout_ms)
        except usb.core.USBTimeoutError:
            return b''
        except usb.core.USBError as e:
            raise TransportError(f"USB read failed: {e}") from e
        return bytes(data)

    @property
    def is_open(self) -> bool:
        return self._is_open


# =========================================================================
# Backend selection
# =========================================================================

def open_transport(vid: int = RIING_VID, pid: int = RIING_PID,
                   backend: str = 'auto') -> HidTransport:
    """Create and open a transport for the hub.

    Args:
        vid: USB vendor id.
        pid: USB product id.
        backend: 'hidapi', 'pyusb', or 'auto' (hidapi first, then pyusb).

    Raises:
        TransportError: No backend installed, or the device cannot be opened.
    """
    if backend not in BACKENDS:
        raise ValueError(f"Unknown backend '{backend}'. Choose from: {', '.join(BACKENDS)}")

    if backend == 'auto':
        if HIDAPI_AVAILABLE:
            backend = 'hidapi'
        elif PYUSB_AVAILABLE:
            backend = 'pyusb'
        else:
            raise TransportError("No USB backend. Install hid (hidapi) or pyusb.")

    try:
        if backend == 'hidapi':
            transport: HidTransport = HidApiTransport(vid, pid)
        else:
            transport = PyUsbTransport(vid, pid)
    except ImportError as e:
        raise TransportError(str(e)) from e

    try:
        transport.open()
    except TransportError as e:
        raise TransportError(
            f"{e}\nMake sure the controller is plugged in (lsusb | grep {vid:04x}) "
            "and udev rules are installed (ttrc setup-udev)."
        ) from e
    log.info("Opened controller %04x:%04x via %s", vid, pid, backend)
    return transport


# =========================================================================
# Device discovery helper
# =========================================================================

@dataclass
class ControllerInfo:
    """One attached hub as seen by enumeration."""
    vid: int
    pid: int
    serial: str = ""
    product: str = ""
    path: str = ""
    backend: str = ""

    @property
    def usb_id(self) -> str:
        return f"{self.vid:04x}:{self.pid:04x}"


def find_controllers(vid: int = RIING_VID) -> List[ControllerInfo]:
    """Scan for Riing Trio controllers across the known PID range.

    Tries hidapi first, falls back to pyusb enumeration.
    """
    found: List[ControllerInfo] = []

    if HIDAPI_AVAILABLE:
        for info in hidapi.enumerate(vid, 0):
            if info.get('product_id') not in RIING_PID_RANGE:
                continue
            path = info.get('path') or b''
            found.append(ControllerInfo(
                vid=info.get('vendor_id', vid),
                pid=info['product_id'],
                serial=info.get('serial_number') or "",
                product=info.get('product_string') or "",
                path=path.decode(errors='replace') if isinstance(path, bytes) else str(path),
                backend='hidapi',
            ))
    elif PYUSB_AVAILABLE:
        for dev in usb.core.find(find_all=True, idVendor=vid):
            if dev.idProduct not in RIING_PID_RANGE:
                continue
            found.append(ControllerInfo(
                vid=vid,
                pid=dev.idProduct,
                path=f"bus {dev.bus} address {dev.address}",
                backend='pyusb',
            ))

    log.debug("Found %d controller(s)", len(found))
    return found
