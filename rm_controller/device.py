"""
Device record for a discovered Broadlink bridge.
"""

from dataclasses import dataclass
from typing import Tuple

from .protocol import DEFAULT_KEY, DEVICE_PORT


@dataclass
class Device:
    """
    A Broadlink device found by discovery.

    The MAC is kept in the byte order the device reports it (reversed);
    use ``mac`` or ``mac_address`` for the natural order. ``device_id`` and
    ``key`` are replaced by a successful authentication, ``sequence`` is
    bumped by every request sent to the device.
    """

    device_type: int
    name: str
    host: str
    port: int = DEVICE_PORT
    mac_raw: bytes = bytes(6)
    device_id: int = 0
    key: bytes = DEFAULT_KEY
    sequence: int = 0

    @property
    def address(self) -> Tuple[str, int]:
        return (self.host, self.port)

    @property
    def mac(self) -> bytes:
        """MAC address bytes in natural order."""
        return bytes(reversed(self.mac_raw))

    @property
    def mac_address(self) -> str:
        return ":".join(f"{b:02x}" for b in self.mac)

    @property
    def is_authenticated(self) -> bool:
        return self.device_id != 0 or self.key != DEFAULT_KEY

    def next_sequence(self) -> int:
        """Advance the 16-bit request counter and return the new value."""
        self.sequence = (self.sequence + 1) & 0xFFFF
        return self.sequence
