"""
Broadlink RM Controller

A Python library for controlling Broadlink RM IR bridges over the local
network, and for converting IR codes between Pronto, LIRC and Broadlink
formats. Commands are AES-CBC encrypted with a per-device session key.

Usage:
    from rm_controller import ProtocolClient, DeviceSession

    async with ProtocolClient() as client:
        for device in await client.hello():
            session = DeviceSession(client, device)
            await session.authenticate()
            await session.send_pronto(pronto_code)

Or use the CLI:
    rm-controller discover
    rm-controller send-pronto "0000 006D 0000 0002 0096 0096 0096 0096"
"""

from .client import ProtocolClient
from .commands import Command, SecurityMode
from .device import Device
from .dispatcher import ResponseDispatcher
from .exceptions import MalformedCodeError, NotConnectedError, ProtocolError, RMError
from .session import DeviceSession
from .transcoder import (
    broadlink_to_lirc,
    broadlink_to_pronto,
    lirc_to_broadlink,
    lirc_to_pronto,
    pronto_to_broadlink,
    pronto_to_lirc,
)

__version__ = "0.1.0"

__all__ = [
    # Main classes
    "ProtocolClient",
    "DeviceSession",
    "Device",

    # IR code conversion
    "pronto_to_lirc",
    "lirc_to_broadlink",
    "broadlink_to_lirc",
    "lirc_to_pronto",
    "pronto_to_broadlink",
    "broadlink_to_pronto",

    # Low-level access
    "ResponseDispatcher",
    "Command",
    "SecurityMode",

    # Errors
    "RMError",
    "ProtocolError",
    "NotConnectedError",
    "MalformedCodeError",
]
