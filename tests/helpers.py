"""Test helpers: device response builders and a socket-free dispatcher."""

import struct
from typing import Callable, List, Optional, Tuple

from rm_controller.checksum import compute_checksum
from rm_controller.dispatcher import ResponseDispatcher
from rm_controller.encryption import decrypt, encrypt
from rm_controller.protocol import DEFAULT_IV, DEFAULT_KEY, HEADER_SIZE, MessageType, Offsets

DEVICE_MAC_RAW = bytes([0x66, 0x55, 0x44, 0x33, 0x22, 0x11])
SESSION_KEY = bytes(range(0x10, 0x20))
DEVICE_ID = 0x12345678

Responder = Callable[[bytes, Tuple[str, int]], List[bytes]]


def make_response(message_type: int, body: bytes = b"", status: int = 0) -> bytes:
    """Build a device response with a valid checksum."""
    packet = bytearray(HEADER_SIZE)
    struct.pack_into("<h", packet, Offsets.STATUS, status)
    struct.pack_into("<H", packet, Offsets.MESSAGE_TYPE, message_type)
    packet += body
    struct.pack_into("<H", packet, Offsets.CHECKSUM, compute_checksum(packet))
    return bytes(packet)


def make_encrypted_response(message_type: int, plaintext: bytes, key: bytes, status: int = 0) -> bytes:
    return make_response(message_type, encrypt(key, DEFAULT_IV, plaintext), status)


def make_hello_response(host: str, device_type: int, mac_raw: bytes, name: str) -> bytes:
    """Build a discovery response the way a device lays it out."""
    packet = bytearray(0x40)
    struct.pack_into("<H", packet, Offsets.MESSAGE_TYPE, MessageType.HELLO_RESPONSE)
    struct.pack_into("<H", packet, 0x34, device_type)
    packet[0x36:0x3A] = bytes(reversed([int(octet) for octet in host.split(".")]))
    packet[0x3A:0x40] = mac_raw
    packet += name.encode() + b"\x00"
    struct.pack_into("<H", packet, Offsets.CHECKSUM, compute_checksum(packet))
    return bytes(packet)


class FakeDispatcher(ResponseDispatcher):
    """ResponseDispatcher that never opens a socket."""

    def __init__(self, responder: Optional[Responder] = None):
        super().__init__()
        self.sent: List[Tuple[bytes, Tuple[str, int]]] = []
        self.responder = responder

    @property
    def is_open(self) -> bool:
        return True

    @property
    def local_address(self) -> Tuple[str, int]:
        return ("127.0.0.1", 40000)

    async def start(self) -> None:
        pass

    def close(self) -> None:
        pass

    def send(self, data: bytes, address: Tuple[str, int]) -> None:
        self.sent.append((data, address))
        if self.responder:
            for response in self.responder(data, address):
                self.datagram_received(response, (address[0], 80))


class FakeDevice:
    """
    Answers auth and command requests like an RM device.

    ``learned_after`` is the number of fetch requests answered with an error
    status before the learned code is returned.
    """

    def __init__(self, learned_code: bytes = b"", learned_after: int = 0, transmit_status: int = 0):
        self.learned_code = learned_code
        self.learned_after = learned_after
        self.transmit_status = transmit_status
        self.key = DEFAULT_KEY
        self.commands: List[Tuple[int, bytes]] = []

    def __call__(self, data: bytes, address: Tuple[str, int]) -> List[bytes]:
        (message_type,) = struct.unpack_from("<H", data, Offsets.MESSAGE_TYPE)
        if message_type not in (MessageType.AUTH, MessageType.COMMAND):
            return []
        payload = decrypt(self.key, DEFAULT_IV, data[HEADER_SIZE:])

        if message_type == MessageType.AUTH:
            reply = struct.pack("<I", DEVICE_ID) + SESSION_KEY
            response = make_encrypted_response(MessageType.AUTH_RESPONSE, reply, self.key)
            self.key = SESSION_KEY
            return [response]

        if message_type == MessageType.COMMAND:
            (code,) = struct.unpack_from("<I", payload, 0)
            self.commands.append((code, payload[4:]))
            if code == 2:
                return [self._reply(code, b"", self.transmit_status)]
            if code == 3:
                return [self._reply(code, b"")]
            if code == 4:
                if self.learned_after > 0 or not self.learned_code:
                    self.learned_after -= 1
                    return [self._reply(code, b"", status=-7)]
                return [self._reply(code, self.learned_code)]
        return []

    def _reply(self, code: int, data: bytes, status: int = 0) -> bytes:
        return make_encrypted_response(
            MessageType.COMMAND_RESPONSE, struct.pack("<I", code) + data, self.key, status
        )
