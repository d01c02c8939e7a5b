"""
Riing Trio controller protocol.

Command/response protocol over 64-byte HID reports. Each command is one
output report (report id 0x00 + 64-byte payload); the hub answers with
one input report whose byte 2 is a status marker.

Command table:
    init          FE 33
    set speed     32 51 <port> 01 <percent>
    set colors    32 52 <port> 24 03 <chunk> 00 <19 x G R B>
    port status   33 51 <port>  ->  .. .. <port> .. <speed> <rpm lo> <rpm hi>

Ports are numbered 1-5. LED colors go out in two chunks of at most 19
LEDs each, so one port carries up to 38 LEDs.
"""

import logging
from typing import List, Sequence

from .core.errors import (
    DeviceStatusError,
    NoDeviceError,
    ProtocolError,
    TransportError,
)
from .core.models import Color, PortStatus
from .hid_device import DEFAULT_TIMEOUT_MS, REPORT_ID, HidTransport

log = logging.getLogger(__name__)

# =========================================================================
# Constants
# =========================================================================

REPORT_SIZE = 65            # report id + payload
PAYLOAD_SIZE = 64
READ_TIMEOUT_MS = DEFAULT_TIMEOUT_MS

# Input reports arrive without the report id, so status sits at byte 2
STATUS_BYTE_INDEX = 2
STATUS_SUCCESS = 0xFC
STATUS_FAILURE = 0xFE

CMD_INIT = bytes([0xFE, 0x33])
CMD_SET_SPEED = bytes([0x32, 0x51])
CMD_SET_RGB = bytes([0x32, 0x52])
CMD_GET_STATUS = bytes([0x33, 0x51])

SPEED_SUBCOMMAND = 0x01
MODE_PER_LED = 0x24
RGB_SUBCOMMAND = 0x03

RGB_HEADER_SIZE = 7
MAX_COLORS_PER_CHUNK = 19   # 7 + 19 * 3 = 64
RGB_CHUNK_COUNT = 2
MAX_LEDS_PER_PORT = MAX_COLORS_PER_CHUNK * RGB_CHUNK_COUNT

STATUS_RESPONSE_MIN = 7

MIN_PORT = 1
MAX_PORT = 5
PORTS = range(MIN_PORT, MAX_PORT + 1)


def validate_port(port: int) -> None:
    if not MIN_PORT <= port <= MAX_PORT:
        raise ValueError(f"Invalid port {port}. Must be {MIN_PORT}-{MAX_PORT}")


def validate_speed(speed: int) -> None:
    if not 0 <= speed <= 100:
        raise ValueError(f"Invalid speed {speed}. Must be 0-100")


# =========================================================================
# Packet builder
# =========================================================================

class RiingPacketBuilder:
    """Builds Riing Trio output reports and payloads."""

    @staticmethod
    def build_report(payload: bytes) -> bytes:
        """Frame a payload into a 65-byte output report.

        Byte 0 is the report id, the payload starts at byte 1, and the
        rest is zero-padded.
        """
        if len(payload) > PAYLOAD_SIZE:
            raise ValueError(
                f"Payload too large: {len(payload)} bytes (max {PAYLOAD_SIZE})")
        report = bytearray(REPORT_SIZE)
        report[0] = REPORT_ID
        report[1:1 + len(payload)] = payload
        return bytes(report)

    @staticmethod
    def build_init() -> bytes:
        return CMD_INIT

    @staticmethod
    def build_set_speed(port: int, speed: int) -> bytes:
        return CMD_SET_SPEED + bytes([port, SPEED_SUBCOMMAND, speed])

    @staticmethod
    def build_rgb_chunk(port: int, chunk_id: int, colors: Sequence[Color]) -> bytes:
        """Build one per-LED color payload.

        Layout::

            [0x32, 0x52, port, 0x24, 0x03, chunk_id, 0x00] + GRB * n
        """
        if len(colors) > MAX_COLORS_PER_CHUNK:
            raise ValueError(
                f"Too many colors for one chunk: {len(colors)} (max {MAX_COLORS_PER_CHUNK})")
        header = CMD_SET_RGB + bytes([port, MODE_PER_LED, RGB_SUBCOMMAND, chunk_id, 0x00])
        return header + b''.join(c.to_wire_order() for c in colors)

    @staticmethod
    def build_get_status(port: int) -> bytes:
        return CMD_GET_STATUS + bytes([port])

    @staticmethod
    def chunk_colors(colors: Sequence[Color]) -> List[List[Color]]:
        """Split colors into exactly RGB_CHUNK_COUNT chunks.

        Colors beyond MAX_LEDS_PER_PORT are dropped; a short list leaves
        the second chunk empty.
        """
        return [
            list(colors[i * MAX_COLORS_PER_CHUNK:(i + 1) * MAX_COLORS_PER_CHUNK])
            for i in range(RGB_CHUNK_COUNT)
        ]


# =========================================================================
# Controller
# =========================================================================

class RiingTrioController:
    """Talks to one Riing Trio hub through an open HidTransport.

    Every command is a strict write-then-read pair; there is no pipelining
    and no retry.
    """

    def __init__(self, transport: HidTransport):
        self._transport = transport

    @property
    def transport(self) -> HidTransport:
        return self._transport

    # -- Raw I/O -----------------------------------------------------------

    def write(self, payload: bytes) -> None:
        """Frame payload into one report and write it."""
        self._transport.write(RiingPacketBuilder.build_report(payload))

    def write_and_read(self, payload: bytes) -> bytes:
        """Write one report and read the hub's response.

        Raises:
            TransportError: Nothing arrived within READ_TIMEOUT_MS.
        """
        self.write(payload)
        resp = self._transport.read(REPORT_SIZE, READ_TIMEOUT_MS)
        if not resp:
            raise TransportError(
                f"Timeout: No response from device after {READ_TIMEOUT_MS}ms")
        log.debug("TX %s -> RX %s", payload.hex(), resp[:8].hex())
        return resp

    @staticmethod
    def check_response_status(resp: bytes, operation: str) -> None:
        """Raise unless the response carries the success marker.

        Raises:
            ProtocolError: Response too short to hold a status byte.
            DeviceStatusError: Failure marker or unexpected status value.
        """
        if len(resp) <= STATUS_BYTE_INDEX:
            raise ProtocolError(
                f"{operation} failed: Response too short ({len(resp)} bytes)")

        status = resp[STATUS_BYTE_INDEX]
        if status == STATUS_SUCCESS:
            return
        if status == STATUS_FAILURE:
            raise DeviceStatusError(
                operation, status, f"Device returned error (0x{status:02X})")
        raise DeviceStatusError(
            operation, status,
            f"Unexpected status 0x{status:02X} (expected 0x{STATUS_SUCCESS:02X})")

    # -- Commands ----------------------------------------------------------

    def init(self) -> None:
        """Wake the hub; required once before any other command."""
        resp = self.write_and_read(RiingPacketBuilder.build_init())
        self.check_response_status(resp, "Init")
        log.info("Controller initialized")

    def set_speed(self, port: int, speed: int) -> None:
        """Set fan duty on a port (1-5) to speed percent (0-100)."""
        validate_port(port)
        validate_speed(speed)
        resp = self.write_and_read(RiingPacketBuilder.build_set_speed(port, speed))
        self.check_response_status(resp, f"Set speed on port {port}")
        log.debug("Port %d: speed set to %d%%", port, speed)

    def set_rgb(self, port: int, color: Color, led_count: int) -> None:
        """Fill led_count LEDs on a port with one color."""
        self.set_rgb_colors(port, [color] * led_count)

    def set_rgb_colors(self, port: int, colors: Sequence[Color]) -> None:
        """Write per-LED colors to a port, two chunks per call.

        The first chunk that does not answer with the success marker
        aborts the call; later chunks are not sent.
        """
        validate_port(port)
        if len(colors) > MAX_LEDS_PER_PORT:
            log.debug("Port %d: %d colors given, only %d are sent",
                      port, len(colors), MAX_LEDS_PER_PORT)

        for i, chunk in enumerate(RiingPacketBuilder.chunk_colors(colors), start=1):
            payload = RiingPacketBuilder.build_rgb_chunk(port, i, chunk)
            resp = self.write_and_read(payload)
            self.check_response_status(resp, f"RGB write chunk {i}/{RGB_CHUNK_COUNT}")

    def get_port_status(self, port: int) -> PortStatus:
        """Query fan speed and RPM of one port.

        Raises:
            NoDeviceError: Nothing is plugged into the port.
            ProtocolError: Response too short to parse.
        """
        validate_port(port)
        resp = self.write_and_read(RiingPacketBuilder.build_get_status(port))

        if len(resp) > STATUS_BYTE_INDEX and resp[STATUS_BYTE_INDEX] == STATUS_FAILURE:
            raise NoDeviceError(port)
        if len(resp) < STATUS_RESPONSE_MIN:
            raise ProtocolError(
                f"Invalid response length: {len(resp)} bytes "
                f"(expected at least {STATUS_RESPONSE_MIN})")

        return PortStatus(
            port_id=resp[2],
            speed=resp[4],
            rpm=resp[5] | (resp[6] << 8),
        )

    def close(self) -> None:
        self._transport.close()
