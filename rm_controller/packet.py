"""
Packet framing for the Broadlink UDP protocol.

Every request shares a 0x38-byte envelope:

    0x00  magic 5A A5 AA 55 5A A5 AA 55 00
    0x20  checksum of the whole packet (u16 LE)
    0x22  status in responses (i16 LE)
    0x24  device type (u16 LE)
    0x26  message type (u16 LE)
    0x28  sequence counter (u16 LE)
    0x2A  device MAC (6 bytes)
    0x30  device ID (u32 LE)
    0x34  checksum of the plaintext payload (u16 LE)
    0x38  AES-CBC encrypted payload

Discovery (Hello) and WLAN setup (Join) use their own unencrypted layouts.
"""

import ipaddress
import logging
import struct
from datetime import datetime
from typing import Optional, Tuple

from .checksum import compute_checksum
from .device import Device
from .encryption import encrypt
from .exceptions import ProtocolError
from .protocol import (
    DEFAULT_IV,
    DEFAULT_KEY,
    HEADER_SIZE,
    MAGIC,
    MIN_RESPONSE_SIZE,
    MessageType,
    Offsets,
)

logger = logging.getLogger(__name__)

HELLO_SIZE = 0x30
HELLO_RESPONSE_MIN_SIZE = 0x40
AUTH_PAYLOAD_SIZE = 0x50
JOIN_SIZE = 0x88

# Field size for SSID/password in the join datagram and hostname in auth
MAX_FIELD_LENGTH = 0x20


def _finish(packet: bytearray) -> bytes:
    struct.pack_into("<H", packet, Offsets.CHECKSUM, compute_checksum(packet))
    return bytes(packet)


def build_request(command: int, device: Device, payload: Optional[bytes] = None) -> bytes:
    """
    Build an encrypted request envelope for a device.

    Advances the device's sequence counter.

    Args:
        command: Message type (e.g. MessageType.AUTH, MessageType.COMMAND)
        device: Target device; its key encrypts the payload
        payload: Optional plaintext payload

    Returns:
        Complete datagram
    """
    packet = bytearray(HEADER_SIZE)
    packet[Offsets.MAGIC:Offsets.MAGIC + len(MAGIC)] = MAGIC
    struct.pack_into("<H", packet, Offsets.DEVICE_TYPE, device.device_type)
    struct.pack_into("<H", packet, Offsets.MESSAGE_TYPE, command)
    struct.pack_into("<H", packet, Offsets.SEQUENCE, device.next_sequence())
    packet[Offsets.MAC:Offsets.MAC + 6] = bytes(device.mac_raw[:6]).ljust(6, b"\x00")
    struct.pack_into("<I", packet, Offsets.DEVICE_ID, device.device_id)

    if payload:
        struct.pack_into("<H", packet, Offsets.PAYLOAD_CHECKSUM, compute_checksum(payload))
        packet += encrypt(device.key, DEFAULT_IV, payload)

    return _finish(packet)


def parse_response(raw: bytes) -> Tuple[int, bytes]:
    """
    Split a response into its message type and encrypted body.

    Args:
        raw: Datagram received from a device

    Returns:
        Tuple of (message type, body); the body may be empty

    Raises:
        ProtocolError: If the datagram is too short to carry a message type
    """
    if len(raw) < MIN_RESPONSE_SIZE:
        raise ProtocolError(f"Response too short: {len(raw)} bytes")
    (message_type,) = struct.unpack_from("<H", raw, Offsets.MESSAGE_TYPE)
    return message_type, bytes(raw[Offsets.BODY:])


def response_status(raw: bytes) -> int:
    """Return the signed status field of a response (0 means success)."""
    if len(raw) < Offsets.STATUS + 2:
        raise ProtocolError(f"Response too short for status: {len(raw)} bytes")
    (status,) = struct.unpack_from("<h", raw, Offsets.STATUS)
    return status


def build_hello(local_ip: str, local_port: int, now: datetime) -> bytes:
    """
    Build the discovery datagram.

    The current UTC time lets the device sync its clock. Our own address is
    included for reference only; devices reply to the source address.

    Args:
        local_ip: IPv4 address of this host
        local_port: UDP port we listen on
        now: Current UTC time

    Returns:
        Complete datagram
    """
    packet = bytearray(HELLO_SIZE)
    struct.pack_into("<H", packet, 0x0C, now.year)
    packet[0x0E] = now.minute
    packet[0x0F] = now.hour
    packet[0x10] = (now.year - 2000) & 0xFF
    packet[0x11] = now.isoweekday() % 7  # Sunday = 0
    packet[0x12] = now.day
    packet[0x13] = now.month
    packet[0x18:0x1C] = ipaddress.IPv4Address(local_ip).packed
    struct.pack_into("<H", packet, 0x1C, local_port)
    struct.pack_into("<H", packet, Offsets.MESSAGE_TYPE, MessageType.HELLO)
    return _finish(packet)


def parse_hello_response(raw: bytes) -> Optional[Device]:
    """
    Build a Device from a discovery response.

    The device reports its own IPv4 address at 0x36-0x39, lowest octet first.

    Args:
        raw: Response datagram (message type 0x07)

    Returns:
        Device with the default key, or None if the response is too short
    """
    if len(raw) < HELLO_RESPONSE_MIN_SIZE:
        logger.debug("Ignoring %d-byte hello response", len(raw))
        return None

    (device_type,) = struct.unpack_from("<H", raw, 0x34)
    host = str(ipaddress.IPv4Address(bytes(reversed(raw[0x36:0x3A]))))
    name = bytes(raw[0x40:]).split(b"\x00", 1)[0].decode("utf-8", errors="replace")

    return Device(
        device_type=device_type,
        name=name,
        host=host,
        mac_raw=bytes(raw[0x3A:0x40]),
        key=DEFAULT_KEY,
    )


def build_auth_payload(hostname: str) -> bytes:
    """
    Build the plaintext payload of the authentication request.

    Args:
        hostname: Name this client identifies itself with

    Returns:
        0x50-byte payload
    """
    payload = bytearray(AUTH_PAYLOAD_SIZE)
    payload[0x2D] = 0x01
    name = hostname.encode("utf-8")[:MAX_FIELD_LENGTH]
    payload[0x30:0x30 + len(name)] = name
    return bytes(payload)


def build_join(ssid: str, password: str, security_mode: int) -> bytes:
    """
    Build the WLAN setup datagram for a device in AP mode.

    Args:
        ssid: Network name (at most 32 bytes)
        password: Network password (at most 32 bytes)
        security_mode: See SecurityMode

    Returns:
        Complete datagram

    Raises:
        ValueError: If the SSID or password does not fit its field
    """
    ssid_bytes = ssid.encode("utf-8")
    password_bytes = password.encode("utf-8")
    if len(ssid_bytes) > MAX_FIELD_LENGTH:
        raise ValueError(f"SSID too long: {len(ssid_bytes)} bytes (max {MAX_FIELD_LENGTH})")
    if len(password_bytes) > MAX_FIELD_LENGTH:
        raise ValueError(f"Password too long: {len(password_bytes)} bytes (max {MAX_FIELD_LENGTH})")

    packet = bytearray(JOIN_SIZE)
    struct.pack_into("<H", packet, Offsets.MESSAGE_TYPE, MessageType.JOIN)
    packet[0x44:0x44 + len(ssid_bytes)] = ssid_bytes
    packet[0x64:0x64 + len(password_bytes)] = password_bytes
    packet[0x84] = len(ssid_bytes)
    packet[0x85] = len(password_bytes)
    packet[0x86] = security_mode
    return _finish(packet)
