"""
Command payload builders for Broadlink RM devices.

Each payload is built as plaintext; the packet framer encrypts it with the
device's session key before sending.
"""

import struct
from enum import IntEnum
from typing import Optional

from .protocol import PREFIXED_PAYLOAD_DEVICE_TYPE


class Command(IntEnum):
    """Known command codes for the 0x6A command message."""
    TRANSMIT = 2        # Send an IR/RF code
    ENTER_LEARNING = 3  # Put the device into learning mode
    FETCH_LEARNED = 4   # Read back the last learned code


class SecurityMode(IntEnum):
    """WLAN security modes accepted by the join datagram."""
    NONE = 0
    WEP = 1
    WPA1 = 2
    WPA2 = 3
    WPA_CCMP = 4    # WPA1/2 CCMP
    WPA_TKIP = 6    # WPA1/2 TKIP


# Payloads shorter than this many data bytes are padded to a full block
SHORT_PAYLOAD_LIMIT = 12


def build_command_payload(code: int, data: Optional[bytes] = None, device_type: int = 0) -> bytes:
    """
    Build the plaintext payload for a command.

    Layout: [code (u32 LE)][data...]. Short data is placed in a 16-byte
    payload; longer data follows the 4-byte code directly.

    Args:
        code: Command code (see Command enum)
        data: Optional command parameters
        device_type: Type of the target device

    Returns:
        Plaintext payload ready for encryption
    """
    data = bytes(data or b"")
    if len(data) < SHORT_PAYLOAD_LIMIT:
        payload = bytearray(16)
        payload[4:4 + len(data)] = data
    else:
        payload = bytearray(4) + data

    struct.pack_into("<I", payload, 0, code)

    if device_type == PREFIXED_PAYLOAD_DEVICE_TYPE:
        payload = bytearray([0x04, 0x00]) + payload

    return bytes(payload)
