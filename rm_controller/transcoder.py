"""
Conversions between IR code formats.

    Pronto     big-endian 16-bit words: 0000, carrier divisor, once pairs,
               repeat pairs, then pulse lengths in carrier cycles
    LIRC       pulse/space durations in microseconds
    Broadlink  26 00 <len LE> pulses... 0D 05, pulses in ticks of 8192/269 us,
               one byte each or 00 followed by a big-endian 16-bit value

Every scaling step rounds to an integer, so conversions are lossy and round
trips are only accurate to about one tick.

Based on https://community.home-assistant.io/t/configuration-of-broadlink-ir-device-and-getting-the-right-ir-codes/48391
"""

import math
import re
import struct
from typing import List, Sequence

from .exceptions import MalformedCodeError

# Pronto carrier divisor unit: one divisor step is 0.241246 us
PRONTO_CLOCK = 0.241246

# Carrier divisor for 38 kHz, the usual consumer IR carrier
DEFAULT_CARRIER_DIVISOR = 0x6D

# Broadlink tick = BROADLINK_TICK_DENOMINATOR / BROADLINK_TICK_NUMERATOR us
BROADLINK_TICK_NUMERATOR = 269
BROADLINK_TICK_DENOMINATOR = 8192

BROADLINK_IR_TYPE = 0x26
BROADLINK_HEADER_SIZE = 4
BROADLINK_TRAILER = bytes([0x0D, 0x05])


def _round(value: float) -> int:
    """Round half away from zero."""
    return int(math.floor(value + 0.5))


def _carrier_frequency(divisor: int) -> float:
    if divisor <= 0:
        raise MalformedCodeError(f"Invalid carrier divisor: {divisor}")
    return 1 / (divisor * PRONTO_CLOCK)


def pronto_to_lirc(pronto: bytes) -> List[int]:
    """
    Convert a Pronto code to pulse durations.

    Args:
        pronto: Pronto code as raw bytes (big-endian 16-bit words)

    Returns:
        Pulse durations in microseconds

    Raises:
        MalformedCodeError: If the preamble is invalid or the pulse count
            does not match it
    """
    if len(pronto) < 8 or len(pronto) % 2:
        raise MalformedCodeError(f"Pronto code has invalid length: {len(pronto)} bytes")

    words = struct.unpack(f">{len(pronto) // 2}H", bytes(pronto))

    if words[0] != 0:
        raise MalformedCodeError("Pronto code should start with 0000")

    pairs = words[2] + words[3]
    if len(words) != 4 + 2 * pairs:
        raise MalformedCodeError(
            f"Number of pulse widths ({len(words) - 4}) does not match the preamble ({2 * pairs})"
        )

    frequency = _carrier_frequency(words[1])
    return [_round(word / frequency) for word in words[4:]]


def lirc_to_broadlink(pulses: Sequence[int]) -> bytes:
    """
    Convert pulse durations to a Broadlink IR packet.

    Args:
        pulses: Durations in microseconds

    Returns:
        Packet starting with 0x26 0x00 and ending with 0x0D 0x05

    Raises:
        MalformedCodeError: If a duration is negative or too long to encode
    """
    body = bytearray()

    for pulse in pulses:
        if pulse < 0:
            raise MalformedCodeError(f"Negative pulse duration: {pulse}")
        ticks = (pulse * BROADLINK_TICK_NUMERATOR + BROADLINK_TICK_DENOMINATOR // 2) \
            // BROADLINK_TICK_DENOMINATOR

        if 0 < ticks < 256:
            body.append(ticks)
        elif ticks <= 0xFFFF:
            body.append(0x00)  # next value is 2 bytes
            body += struct.pack(">H", ticks)
        else:
            raise MalformedCodeError(f"Pulse duration too long: {pulse} us")

    body += BROADLINK_TRAILER

    packet = bytearray([BROADLINK_IR_TYPE, 0x00])  # 0x00 = no repeats
    packet += struct.pack("<H", len(body))
    packet += body
    return bytes(packet)


def broadlink_to_lirc(packet: bytes) -> List[int]:
    """
    Convert a Broadlink IR packet to pulse durations.

    Ticks are converted back with integer truncation.

    Args:
        packet: Packet starting with 0x26 0x00

    Returns:
        Pulse durations in microseconds

    Raises:
        MalformedCodeError: If the header is wrong or the packet is truncated
    """
    if len(packet) < BROADLINK_HEADER_SIZE:
        raise MalformedCodeError(f"Broadlink code too short: {len(packet)} bytes")
    if (packet[0] + packet[1]) & 0xFF != BROADLINK_IR_TYPE:
        raise MalformedCodeError("Broadlink code does not start with 0x26 0x00")

    (length,) = struct.unpack_from("<H", packet, 2)
    end = BROADLINK_HEADER_SIZE + length
    body = bytes(packet[BROADLINK_HEADER_SIZE:end])
    if len(body) < length:
        raise MalformedCodeError(
            f"Broadlink code truncated: {len(body)} of {length} bytes present"
        )
    # A trailer right after the counted bytes means the length excludes it
    trailer_counted = bytes(packet[end:end + len(BROADLINK_TRAILER)]) != BROADLINK_TRAILER

    pulses = []
    i = 0
    while i < len(body):
        if trailer_counted and body[i:] == BROADLINK_TRAILER:
            break
        if body[i] == 0:
            if i + 3 > len(body):
                raise MalformedCodeError(f"Broadlink code truncated in pulse at offset {i}")
            (ticks,) = struct.unpack_from(">H", body, i + 1)
            i += 3
        else:
            ticks = body[i]
            i += 1
        pulses.append(ticks * BROADLINK_TICK_DENOMINATOR // BROADLINK_TICK_NUMERATOR)

    return pulses


def lirc_to_pronto(pulses: Sequence[int], carrier_divisor: int = DEFAULT_CARRIER_DIVISOR) -> bytes:
    """
    Convert pulse durations to a Pronto code.

    Args:
        pulses: Durations in microseconds
        carrier_divisor: Pronto carrier divisor (0x6D is 38 kHz)

    Returns:
        Pronto code as raw bytes

    Raises:
        MalformedCodeError: If the divisor is invalid or a pulse does not fit a word
    """
    frequency = _carrier_frequency(carrier_divisor)
    if carrier_divisor > 0xFFFF:
        raise MalformedCodeError(f"Invalid carrier divisor: {carrier_divisor}")

    words = [0x0000, carrier_divisor, 0x0000, 0x0000]
    for pulse in pulses:
        ticks = _round(pulse * frequency)
        if not 0 <= ticks <= 0xFFFF:
            raise MalformedCodeError(f"Pulse duration out of range: {pulse} us")
        words.append(ticks)
    words[3] = len(pulses) // 2

    return struct.pack(f">{len(words)}H", *words)


def pronto_to_broadlink(pronto: bytes) -> bytes:
    """Convert a Pronto code to a Broadlink IR packet."""
    return lirc_to_broadlink(pronto_to_lirc(pronto))


def broadlink_to_pronto(packet: bytes, carrier_divisor: int = DEFAULT_CARRIER_DIVISOR) -> bytes:
    """Convert a Broadlink IR packet to a Pronto code."""
    return lirc_to_pronto(broadlink_to_lirc(packet), carrier_divisor)


# Text helpers

def parse_hex(text: str) -> bytes:
    """
    Parse a hex string, ignoring whitespace.

    Raises:
        MalformedCodeError: If the text is not valid hex
    """
    cleaned = re.sub(r"\s+", "", text)
    try:
        return bytes.fromhex(cleaned)
    except ValueError as e:
        raise MalformedCodeError(f"Invalid hex code: {e}") from e


def format_pronto(pronto: bytes) -> str:
    """Format a Pronto code as space separated 4-digit words (e.g. '0000 006D ...')."""
    text = bytes(pronto).hex().upper()
    return " ".join(text[i:i + 4] for i in range(0, len(text), 4))


def format_broadlink(packet: bytes) -> str:
    """Format a Broadlink packet as a lower-case hex string."""
    return bytes(packet).hex()
