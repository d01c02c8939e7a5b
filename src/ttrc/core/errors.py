"""
TTRC error types.

Argument validation (port range, speed range) raises the built-in
ValueError before any device I/O. Everything that goes wrong while talking
to the hub or its collaborators raises one of the RuntimeError subclasses
below, so callers that only care about "the command failed" can keep
catching RuntimeError.
"""

from typing import Optional


class TransportError(RuntimeError):
    """Opening, writing to or reading from the HID transport failed.

    Also raised when a read times out with no data. Never retried.
    """


class ProtocolError(RuntimeError):
    """The hub answered with something that cannot be interpreted."""


class DeviceStatusError(ProtocolError):
    """The status byte of a response was not the success marker."""

    def __init__(self, operation: str, status: int, message: str):
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation
        self.status = status


class NoDeviceError(ProtocolError):
    """A status query found nothing plugged into the port."""

    def __init__(self, port: int, message: Optional[str] = None):
        super().__init__(message or f"No device connected on port {port}")
        self.port = port


class SensorError(RuntimeError):
    """A temperature could not be obtained from the sensor source."""


class ConfigError(ValueError):
    """The configuration file (or one port entry in it) is invalid."""
