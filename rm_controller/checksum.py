"""
Additive checksum embedded in every datagram.

The sum starts at 0xBEAF and adds every byte with 16-bit wraparound.
"""

import struct
from typing import Union

from .protocol import CHECKSUM_SEED, Offsets


def compute_checksum(data: Union[bytes, bytearray]) -> int:
    """
    Compute the 16-bit checksum of a byte sequence.

    Args:
        data: Bytes to sum

    Returns:
        Checksum in the range 0-0xFFFF
    """
    return (CHECKSUM_SEED + sum(data)) & 0xFFFF


def validate_checksum(packet: Union[bytes, bytearray], offset: int = Offsets.CHECKSUM) -> bool:
    """
    Check the checksum stored at ``offset`` against the packet contents.

    The stored field is zeroed while summing and restored afterwards, so a
    bytearray comes back unchanged whatever the outcome. Callers must make sure
    the packet is long enough to hold the field.

    Args:
        packet: Complete datagram
        offset: Position of the little-endian checksum field

    Returns:
        True if the stored checksum matches
    """
    buffer = packet if isinstance(packet, bytearray) else bytearray(packet)
    stored = bytes(buffer[offset:offset + 2])
    (expected,) = struct.unpack("<H", stored)

    buffer[offset:offset + 2] = b"\x00\x00"
    try:
        return compute_checksum(buffer) == expected
    finally:
        buffer[offset:offset + 2] = stored
