"""
Protocol constants for Broadlink RM communication.

Based on the reverse-engineered Broadlink LAN protocol.
Reference: https://blog.ipsumdomus.com/broadlink-smart-home-devices-complete-protocol-hack-bc0b4b397af1
"""

# UDP port the device listens on
DEVICE_PORT = 80

# Discovery and setup datagrams go here when no device IP is given
BROADCAST_ADDRESS = "255.255.255.255"


class MessageType:
    """Values of the 16-bit message-type field at offset 0x26."""

    # Requests
    HELLO = 0x06
    JOIN = 0x14
    AUTH = 0x65
    COMMAND = 0x6A

    # Responses (used to correlate a reply with its request)
    HELLO_RESPONSE = 0x07
    JOIN_RESPONSE = 0x15
    AUTH_RESPONSE = 0x3E9
    COMMAND_RESPONSE = 0x3EE


class Offsets:
    """Fixed offsets inside the packet envelope."""

    MAGIC = 0x00
    CHECKSUM = 0x20
    STATUS = 0x22
    DEVICE_TYPE = 0x24
    MESSAGE_TYPE = 0x26
    SEQUENCE = 0x28
    MAC = 0x2A
    DEVICE_ID = 0x30
    PAYLOAD_CHECKSUM = 0x34
    BODY = 0x38


# First bytes of every encrypted request
MAGIC = bytes([0x5A, 0xA5, 0xAA, 0x55, 0x5A, 0xA5, 0xAA, 0x55, 0x00])

# Envelope header size; an encrypted body follows
HEADER_SIZE = 0x38

# Smallest datagram that still carries a message type
MIN_RESPONSE_SIZE = Offsets.MESSAGE_TYPE + 2

# Seed of the additive checksum
CHECKSUM_SEED = 0xBEAF

# AES key every device accepts before authentication
DEFAULT_KEY = bytes([
    0x09, 0x76, 0x28, 0x34, 0x3F, 0xE9, 0x9E, 0x23,
    0x76, 0x5C, 0x15, 0x13, 0xAC, 0xCF, 0x8B, 0x02
])

# Fixed CBC initialization vector
DEFAULT_IV = bytes([
    0x56, 0x2E, 0x17, 0x99, 0x6D, 0x09, 0x3D, 0x28,
    0xDD, 0xB3, 0xBA, 0x69, 0x5A, 0x2E, 0x6F, 0x58
])

# AES block size
BLOCK_SIZE = 16

# Devices of this type expect a 2-byte length-like prefix before command payloads
PREFIXED_PAYLOAD_DEVICE_TYPE = 0x5F36

# Seconds to wait for a response
DEFAULT_TIMEOUT = 5.0

# Seconds to collect Hello responses during broadcast discovery
DISCOVERY_TIMEOUT = 5.0

# Learn workflow: poll the last learned code this often, for this long
LEARN_TIMEOUT = 30.0
LEARN_POLL_INTERVAL = 1.0

# Datagrams kept per message type before new ones are dropped
MAX_QUEUED_RESPONSES = 1000
