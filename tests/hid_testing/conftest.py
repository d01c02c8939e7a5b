"""Shared fixtures for the HID protocol tests."""
from unittest.mock import MagicMock

import pytest

from ttrc.hid_device import HidTransport


@pytest.fixture
def transport():
    """A MagicMock satisfying HidTransport whose reads always succeed."""
    t = MagicMock(spec=HidTransport)
    t.is_open = True
    t.write.side_effect = lambda report: len(report)
    t.read.return_value = bytes([0x00, 0x00, 0xFC]) + bytes(61)
    return t
