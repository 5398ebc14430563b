"""
High-level per-device API.

Wraps a discovered Device and the shared ProtocolClient, and serializes all
operations on that device so its sequence counter and key are never
updated by two requests at once.
"""

import asyncio
import logging
from typing import Optional

from .client import ProtocolClient
from .commands import Command
from .device import Device
from .protocol import LEARN_POLL_INTERVAL, LEARN_TIMEOUT
from .transcoder import pronto_to_broadlink

logger = logging.getLogger(__name__)


class DeviceSession:
    """
    Controller for a single Broadlink device.

    Usage:
        async with ProtocolClient() as client:
            for device in await client.hello():
                session = DeviceSession(client, device)
                if await session.authenticate():
                    await session.send_pronto(pronto_code)
    """

    def __init__(self, client: ProtocolClient, device: Device):
        self.client = client
        self.device = device
        self._lock: Optional[asyncio.Lock] = None

    def _get_lock(self) -> asyncio.Lock:
        # Created on first use so it belongs to the running loop
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    @property
    def is_authenticated(self) -> bool:
        return self.device.is_authenticated

    async def authenticate(self) -> bool:
        """Obtain a device ID and session key."""
        async with self._get_lock():
            return await self.client.auth(self.device)

    async def command(self, code: int, data: Optional[bytes] = None) -> Optional[bytes]:
        """
        Send a raw command.

        Args:
            code: Command code (see Command enum)
            data: Command parameters

        Returns:
            Decrypted response payload, or None
        """
        async with self._get_lock():
            return await self.client.command(code, data, self.device)

    async def send_code(self, ir_code: bytes) -> bool:
        """
        Transmit a Broadlink-format IR code.

        Args:
            ir_code: Packet starting with 0x26 0x00

        Returns:
            True if the device acknowledged the transmission
        """
        return await self.command(Command.TRANSMIT, ir_code) is not None

    async def send_pronto(self, pronto: bytes) -> bool:
        """
        Transmit a Pronto code.

        Args:
            pronto: Pronto code as raw bytes

        Returns:
            True if the device acknowledged the transmission

        Raises:
            MalformedCodeError: If the Pronto code is invalid
        """
        return await self.send_code(pronto_to_broadlink(pronto))

    async def enter_learning(self) -> bool:
        """Put the device into learning mode."""
        return await self.command(Command.ENTER_LEARNING) is not None

    async def fetch_learned_code(self) -> Optional[bytes]:
        """
        Read the last learned code.

        Returns:
            Learned code in Broadlink format, or None if nothing was learned
        """
        code = await self.command(Command.FETCH_LEARNED)
        return code or None

    async def learn_code(
        self,
        timeout: float = LEARN_TIMEOUT,
        interval: float = LEARN_POLL_INTERVAL
    ) -> Optional[bytes]:
        """
        Enter learning mode and wait for a code.

        Polls the last learned code once per interval until the device has
        one or the timeout expires.

        Args:
            timeout: Seconds to wait for a code
            interval: Seconds between polls

        Returns:
            Learned code in Broadlink format, or None if timeout
        """
        await self.enter_learning()

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while loop.time() < deadline:
            code = await self.fetch_learned_code()
            if code:
                logger.info("Learned %d-byte code from %s", len(code), self.device.host)
                return code
            await asyncio.sleep(interval)

        logger.info("No code learned from %s", self.device.host)
        return None
