"""
Protocol client for Broadlink RM devices.

Provides an async API for discovery, authentication and commands over a
single shared UDP socket.
"""

import asyncio
import logging
import socket
import struct
from datetime import datetime, timezone
from typing import List, Optional

from .commands import build_command_payload
from .device import Device
from .dispatcher import ResponseDispatcher
from .encryption import decrypt
from .packet import (
    build_auth_payload,
    build_hello,
    build_join,
    build_request,
    parse_hello_response,
    response_status,
)
from .protocol import (
    BROADCAST_ADDRESS,
    DEFAULT_IV,
    DEFAULT_TIMEOUT,
    DEVICE_PORT,
    DISCOVERY_TIMEOUT,
    HEADER_SIZE,
    MessageType,
    Offsets,
)

logger = logging.getLogger(__name__)


def get_local_ip() -> str:
    """
    Find the IPv4 address used for outgoing traffic.

    No packet is sent; connecting a UDP socket only selects a route.

    Returns:
        Local IPv4 address, or 0.0.0.0 if there is no route
    """
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        try:
            sock.connect(("10.255.255.255", 1))
            return sock.getsockname()[0]
        except OSError:
            return "0.0.0.0"


class ProtocolClient:
    """
    Broadlink protocol client.

    Usage:
        async with ProtocolClient() as client:
            devices = await client.hello()
            for device in devices:
                await client.auth(device)
                await client.command(Command.TRANSMIT, ir_code, device)
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        bind_host: str = "0.0.0.0",
        bind_port: int = 0,
        dispatcher: Optional[ResponseDispatcher] = None
    ):
        """
        Initialize the client.

        Args:
            timeout: Seconds to wait for each response
            bind_host: Local address for the UDP socket
            bind_port: Local port for the UDP socket (0 = ephemeral)
            dispatcher: Pre-built dispatcher to use instead of creating one
        """
        self.timeout = timeout
        self.dispatcher = dispatcher or ResponseDispatcher(bind_host, bind_port)

    async def __aenter__(self) -> "ProtocolClient":
        """Async context manager entry - opens the socket."""
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit - closes the socket."""
        self.close()

    async def open(self) -> None:
        await self.dispatcher.start()

    def close(self) -> None:
        self.dispatcher.close()

    async def hello(self, timeout: float = DISCOVERY_TIMEOUT, device_ip: Optional[str] = None) -> List[Device]:
        """
        Discover devices on the local network.

        Devices in AP mode do not answer.

        Args:
            timeout: Seconds to collect responses; 0 returns after the first answer
            device_ip: Ask a single device instead of broadcasting

        Returns:
            Discovered devices, with the default key
        """
        local_ip = get_local_ip()
        local_port = self.dispatcher.local_address[1]
        packet = build_hello(local_ip, local_port, datetime.now(timezone.utc))

        target = device_ip or BROADCAST_ADDRESS
        logger.debug("Sending hello to %s", target)
        with self.dispatcher.expecting(MessageType.HELLO_RESPONSE):
            self.dispatcher.send(packet, (target, DEVICE_PORT))

            if timeout <= 0:
                response = await self.dispatcher.wait_for_type(MessageType.HELLO_RESPONSE, self.timeout)
                device = parse_hello_response(response) if response else None
                return [device] if device else []

            return await self._collect_hello_responses(timeout)

    async def _collect_hello_responses(self, timeout: float) -> List[Device]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        devices: List[Device] = []
        seen = set()

        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            response = await self.dispatcher.wait_for_type(MessageType.HELLO_RESPONSE, remaining)
            if response is None:
                break
            device = parse_hello_response(response)
            if device is None or device.mac_raw in seen:
                continue
            seen.add(device.mac_raw)
            logger.info("Found device %s (type 0x%04x) at %s", device.name, device.device_type, device.host)
            devices.append(device)

        return devices

    async def auth(self, device: Device) -> bool:
        """
        Authenticate against a device.

        On success the device's ID and session key are replaced. On failure
        the device is left unchanged.

        Args:
            device: Device returned by hello()

        Returns:
            True if the device accepted the authentication
        """
        payload = build_auth_payload(socket.gethostname())
        with self.dispatcher.expecting(MessageType.AUTH_RESPONSE):
            self.dispatcher.send(build_request(MessageType.AUTH, device, payload), device.address)
            response = await self.dispatcher.wait_for_type(MessageType.AUTH_RESPONSE, self.timeout)
        if response is None:
            logger.warning("No auth response from %s", device.host)
            return False

        try:
            decrypted = decrypt(device.key, DEFAULT_IV, response[HEADER_SIZE:])
        except ValueError as e:
            logger.warning("Invalid auth response from %s: %s", device.host, e)
            return False
        if len(decrypted) < 0x14:
            logger.warning("Auth response from %s too short (%d bytes)", device.host, len(decrypted))
            return False

        (device.device_id,) = struct.unpack_from("<I", decrypted, 0)
        device.key = bytes(decrypted[0x04:0x14])
        logger.info("Authenticated with %s", device.host)
        return True

    async def command(self, code: int, data: Optional[bytes], device: Device) -> Optional[bytes]:
        """
        Send a command to a device.

        Args:
            code: Command code (2 transmit, 3 learn, 4 fetch last learned code)
            data: Command parameters
            device: Authenticated device

        Returns:
            Decrypted response without the echoed command code, or None on
            timeout or device error
        """
        payload = build_command_payload(code, data, device.device_type)
        with self.dispatcher.expecting(MessageType.COMMAND_RESPONSE):
            self.dispatcher.send(build_request(MessageType.COMMAND, device, payload), device.address)
            response = await self.dispatcher.wait_for_type(MessageType.COMMAND_RESPONSE, self.timeout)
        if response is None:
            logger.warning("No response to command %d from %s", code, device.host)
            return None
        if len(response) < Offsets.STATUS + 2:
            logger.warning("Response from %s too small (%d bytes)", device.host, len(response))
            return None

        status = response_status(response)
        if status != 0:
            logger.warning("Device %s returned error status %d for command %d", device.host, status, code)
            return None

        try:
            decrypted = decrypt(device.key, DEFAULT_IV, response[HEADER_SIZE:])
        except ValueError as e:
            logger.warning("Invalid command response from %s: %s", device.host, e)
            return None
        return decrypted[4:]

    async def join(
        self,
        ssid: str,
        password: str,
        security_mode: int,
        device_ip: Optional[str] = None
    ) -> Optional[bytes]:
        """
        Make a device in AP mode join a wireless network.

        Args:
            ssid: Name of the wireless network
            password: Password of the wireless network
            security_mode: See SecurityMode
            device_ip: Device to configure; broadcast if None

        Returns:
            Raw response datagram, or None if timeout
        """
        packet = build_join(ssid, password, security_mode)
        with self.dispatcher.expecting(MessageType.JOIN_RESPONSE):
            self.dispatcher.send(packet, (device_ip or BROADCAST_ADDRESS, DEVICE_PORT))
            return await self.dispatcher.wait_for_type(MessageType.JOIN_RESPONSE, self.timeout)
