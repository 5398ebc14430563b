"""
UDP response dispatcher.

Owns the single UDP socket shared by all requests and sorts incoming
datagrams into one mailbox per message type, so a waiter for one type never
consumes or reorders responses meant for another. A mailbox only exists
while something expects its type; datagrams of any other type are dropped.
"""

import asyncio
import logging
import struct
from contextlib import contextmanager
from typing import Dict, Iterator, Optional, Tuple

from .checksum import validate_checksum
from .exceptions import NotConnectedError
from .protocol import MAX_QUEUED_RESPONSES, MIN_RESPONSE_SIZE, Offsets

logger = logging.getLogger(__name__)


class ResponseDispatcher(asyncio.DatagramProtocol):
    """
    Receives datagrams on one UDP endpoint and hands them out by message type.

    Usage:
        async with ResponseDispatcher() as dispatcher:
            with dispatcher.expecting(0x3EE):
                dispatcher.send(packet, ("192.168.1.20", 80))
                response = await dispatcher.wait_for_type(0x3EE, timeout=5.0)
    """

    def __init__(
        self,
        bind_host: str = "0.0.0.0",
        bind_port: int = 0,
        max_queued: int = MAX_QUEUED_RESPONSES
    ):
        """
        Initialize the dispatcher.

        Args:
            bind_host: Local address to bind
            bind_port: Local port to bind (0 picks an ephemeral port)
            max_queued: Datagrams kept per message type before dropping new ones
        """
        self.bind_host = bind_host
        self.bind_port = bind_port
        self.max_queued = max_queued
        self._transport: Optional[asyncio.DatagramTransport] = None
        self._mailboxes: Dict[int, "asyncio.Queue[bytes]"] = {}
        self._listeners: Dict[int, int] = {}

    async def __aenter__(self) -> "ResponseDispatcher":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._transport is not None and not self._transport.is_closing()

    @property
    def local_address(self) -> Tuple[str, int]:
        """Bound (host, port) of the socket."""
        if self._transport is None:
            raise NotConnectedError("Dispatcher socket is not open")
        return self._transport.get_extra_info("sockname")[:2]

    async def start(self) -> None:
        """Bind the UDP socket and start receiving."""
        if self.is_open:
            return
        loop = asyncio.get_running_loop()
        await loop.create_datagram_endpoint(
            lambda: self,
            local_addr=(self.bind_host, self.bind_port),
            allow_broadcast=True
        )
        logger.debug("Listening on %s:%d", *self.local_address)

    def close(self) -> None:
        """Close the socket. Queued responses are discarded."""
        if self._transport is not None:
            self._transport.close()
        self._transport = None
        for mailbox in self._mailboxes.values():
            while not mailbox.empty():
                mailbox.get_nowait()

    # asyncio.DatagramProtocol callbacks

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self._transport = transport  # type: ignore[assignment]

    def connection_lost(self, exc: Optional[Exception]) -> None:
        if exc is not None:
            logger.warning("UDP socket closed: %s", exc)
        self._transport = None

    def error_received(self, exc: Exception) -> None:
        logger.debug("UDP socket error: %s", exc)

    def datagram_received(self, data: bytes, addr: Tuple[str, int]) -> None:
        """Validate a datagram and file it under its message type."""
        if len(data) < MIN_RESPONSE_SIZE:
            logger.debug("Dropping %d-byte datagram from %s", len(data), addr[0])
            return
        if not validate_checksum(data, Offsets.CHECKSUM):
            logger.debug("Dropping datagram with bad checksum from %s", addr[0])
            return

        (message_type,) = struct.unpack_from("<H", data, Offsets.MESSAGE_TYPE)
        mailbox = self._mailboxes.get(message_type)
        if mailbox is None:
            logger.debug("Dropping unexpected message type 0x%x from %s", message_type, addr[0])
            return
        try:
            mailbox.put_nowait(bytes(data))
        except asyncio.QueueFull:
            logger.warning("Mailbox for message type 0x%x is full, dropping datagram", message_type)

    @contextmanager
    def expecting(self, message_type: int) -> Iterator["asyncio.Queue[bytes]"]:
        """
        Keep a mailbox open for a message type.

        Open the mailbox before sending a request so its response cannot be
        missed. Nested and concurrent users share one mailbox; it is removed,
        with anything still queued, when the last of them leaves.

        Args:
            message_type: Message type to accept

        Yields:
            The mailbox for the type
        """
        mailbox = self._mailboxes.get(message_type)
        if mailbox is None:
            mailbox = asyncio.Queue(maxsize=self.max_queued)
            self._mailboxes[message_type] = mailbox
        self._listeners[message_type] = self._listeners.get(message_type, 0) + 1
        try:
            yield mailbox
        finally:
            self._listeners[message_type] -= 1
            if not self._listeners[message_type]:
                del self._listeners[message_type]
                del self._mailboxes[message_type]
                if not mailbox.empty():
                    logger.debug("Discarding %d late datagram(s) of type 0x%x", mailbox.qsize(), message_type)

    def pending(self, message_type: int) -> int:
        """Number of queued datagrams of a message type."""
        mailbox = self._mailboxes.get(message_type)
        return mailbox.qsize() if mailbox else 0

    def send(self, data: bytes, address: Tuple[str, int]) -> None:
        """
        Send a datagram.

        Args:
            data: Complete packet
            address: (host, port) of the destination
        """
        if not self.is_open:
            raise NotConnectedError("Dispatcher socket is not open")
        self._transport.sendto(data, address)

    async def wait_for_type(self, expected_type: int, timeout: float) -> Optional[bytes]:
        """
        Wait for the next datagram of a message type.

        Outside an expecting() block only datagrams arriving during the wait
        are seen.

        Args:
            expected_type: Message type to wait for
            timeout: Maximum seconds to wait

        Returns:
            Raw datagram, or None if timeout
        """
        with self.expecting(expected_type) as mailbox:
            if not mailbox.empty():
                return mailbox.get_nowait()
            try:
                return await asyncio.wait_for(mailbox.get(), max(timeout, 0))
            except asyncio.TimeoutError:
                return None
