"""
Command-line interface for the Broadlink RM controller.

Usage:
    rm-controller discover [--ip <address>] [--no-auth]
    rm-controller send <broadlink-hex> [--ip <address>]
    rm-controller send-pronto <pronto-hex> [--ip <address>]
    rm-controller learn [--ip <address>] [--wait <seconds>]
    rm-controller learned [--ip <address>]
    rm-controller setup --ssid <ssid> [--password <password>] [--security <mode>]
    rm-controller convert-pronto <pronto-hex>
    rm-controller convert-broadlink <broadlink-hex> [--carrier <divisor>]
"""

import argparse
import asyncio
import logging
import sys
from typing import List

from .client import ProtocolClient
from .commands import SecurityMode
from .exceptions import RMError
from .protocol import DEFAULT_TIMEOUT, DISCOVERY_TIMEOUT, LEARN_TIMEOUT
from .session import DeviceSession
from .transcoder import (
    DEFAULT_CARRIER_DIVISOR,
    broadlink_to_pronto,
    format_broadlink,
    format_pronto,
    parse_hex,
    pronto_to_broadlink,
)


def setup_logging(verbose: int, quiet: bool) -> None:
    """Configure logging from the verbosity flags."""
    if quiet:
        level = logging.ERROR
    elif verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S"
    )


async def discover(client: ProtocolClient, args: argparse.Namespace) -> List[DeviceSession]:
    """Find devices and optionally authenticate against each of them."""
    if args.ip:
        devices = await client.hello(timeout=0, device_ip=args.ip)
    else:
        devices = await client.hello(timeout=args.timeout)

    sessions = []
    for i, device in enumerate(devices, 1):
        print(f"[{i:02d}] {device.name or '(unnamed)'}")
        print(f"     Type:    0x{device.device_type:04X}")
        print(f"     MAC:     {device.mac_address}")
        print(f"     Address: {device.host}")

        session = DeviceSession(client, device)
        if not args.no_auth:
            if await session.authenticate():
                print("     Authenticated")
            else:
                print("     Authentication failed")
        sessions.append(session)

    print(f"Found {len(sessions)} device(s)")
    return sessions


async def cmd_discover(args: argparse.Namespace) -> int:
    """Search for devices."""
    async with ProtocolClient(timeout=args.response_timeout) as client:
        sessions = await discover(client, args)
    return 0 if sessions else 1


async def cmd_send(args: argparse.Namespace) -> int:
    """Send a Broadlink or Pronto code to every discovered device."""
    if args.command == "send-pronto":
        ir_code = pronto_to_broadlink(parse_hex(args.code))
    else:
        ir_code = parse_hex(args.code)

    async with ProtocolClient(timeout=args.response_timeout) as client:
        sessions = await discover(client, args)
        failed = 0
        for i, session in enumerate(sessions, 1):
            if await session.send_code(ir_code):
                print(f"[{i:02d}] Code sent")
            else:
                print(f"[{i:02d}] Code send failed!")
                failed += 1

    return 0 if sessions and not failed else 1


async def cmd_learn(args: argparse.Namespace) -> int:
    """Learn a new code on every discovered device."""
    async with ProtocolClient(timeout=args.response_timeout) as client:
        sessions = await discover(client, args)
        learned = 0
        for i, session in enumerate(sessions, 1):
            print(f"[{i:02d}] Waiting up to {args.wait:.0f}s for a code...")
            code = await session.learn_code(timeout=args.wait)
            if code:
                print(f"[{i:02d}] Learned code: {format_broadlink(code)}")
                learned += 1
            else:
                print(f"[{i:02d}] No code learned!")

    return 0 if learned else 1


async def cmd_learned(args: argparse.Namespace) -> int:
    """Print the last learned code of every discovered device."""
    async with ProtocolClient(timeout=args.response_timeout) as client:
        sessions = await discover(client, args)
        for i, session in enumerate(sessions, 1):
            code = await session.fetch_learned_code()
            print(f"[{i:02d}] Last learned code: {format_broadlink(code) if code else 'None'}")
    return 0 if sessions else 1


async def cmd_setup(args: argparse.Namespace) -> int:
    """Configure the WLAN of a device in AP mode."""
    async with ProtocolClient(timeout=args.response_timeout) as client:
        response = await client.join(args.ssid, args.password, args.security, device_ip=args.ip)
    if response is None:
        print("No response from device.")
        return 1
    print(f"Device returned: {response.hex()}")
    return 0


async def cmd_convert_pronto(args: argparse.Namespace) -> int:
    """Convert a Pronto code to Broadlink format."""
    packet = pronto_to_broadlink(parse_hex(args.code))
    print(f"Broadlink: {format_broadlink(packet)}")
    return 0


async def cmd_convert_broadlink(args: argparse.Namespace) -> int:
    """Convert a Broadlink code to Pronto format."""
    pronto = broadlink_to_pronto(parse_hex(args.code), args.carrier)
    print(f"Pronto: {format_pronto(pronto)}")
    return 0


def _int_auto(value: str) -> int:
    return int(value, 0)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rm-controller",
        description="Control Broadlink RM IR bridges and convert IR codes"
    )
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Show detailed messages (repeat for debug output)")
    parser.add_argument("-q", "--quiet", action="store_true",
                        help="Only show errors")
    parser.add_argument("--response-timeout", type=float, default=DEFAULT_TIMEOUT,
                        help=f"Seconds to wait for each device response (default: {DEFAULT_TIMEOUT:.0f})")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    def add_device_arguments(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("--ip", help="IP of the device (default: broadcast discovery)")
        sub.add_argument("-t", "--timeout", type=float, default=DISCOVERY_TIMEOUT,
                         help=f"Discovery timeout in seconds (default: {DISCOVERY_TIMEOUT:.0f})")
        sub.add_argument("--no-auth", action="store_true",
                         help="Do not authenticate against discovered devices")

    # Discover command
    discover_parser = subparsers.add_parser("discover", help="Search for devices")
    add_device_arguments(discover_parser)

    # Send commands
    send_parser = subparsers.add_parser("send", help="Send a code in Broadlink format")
    send_parser.add_argument("code", help="Broadlink IR code (hex)")
    add_device_arguments(send_parser)

    pronto_parser = subparsers.add_parser("send-pronto", help="Send a code in Pronto format")
    pronto_parser.add_argument("code", help="Pronto IR code (hex)")
    add_device_arguments(pronto_parser)

    # Learn commands
    learn_parser = subparsers.add_parser("learn", help="Learn a new code")
    learn_parser.add_argument("--wait", type=float, default=LEARN_TIMEOUT,
                              help=f"Seconds to wait for a code (default: {LEARN_TIMEOUT:.0f})")
    add_device_arguments(learn_parser)

    learned_parser = subparsers.add_parser("learned", help="Get the last learned code")
    add_device_arguments(learned_parser)

    # Setup command
    setup_parser = subparsers.add_parser(
        "setup", help="Set device WLAN settings (device must be in AP mode)"
    )
    setup_parser.add_argument("--ssid", required=True, help="SSID of the WLAN")
    setup_parser.add_argument("--password", default="", help="Password of the WLAN")
    setup_parser.add_argument("--security", type=int, default=SecurityMode.NONE,
                              choices=[int(mode) for mode in SecurityMode],
                              help="WLAN security: 0=none, 1=WEP, 2=WPA1, 3=WPA2, "
                                   "4=WPA1/2 CCMP, 6=WPA1/2 TKIP")
    setup_parser.add_argument("--ip", help="IP of the device (default: broadcast)")

    # Convert commands
    convert_pronto_parser = subparsers.add_parser(
        "convert-pronto", help="Convert a Pronto code to Broadlink format"
    )
    convert_pronto_parser.add_argument("code", help="Pronto IR code (hex)")

    convert_broadlink_parser = subparsers.add_parser(
        "convert-broadlink", help="Convert a Broadlink code to Pronto format"
    )
    convert_broadlink_parser.add_argument("code", help="Broadlink IR code (hex)")
    convert_broadlink_parser.add_argument("--carrier", type=_int_auto, default=DEFAULT_CARRIER_DIVISOR,
                                          help="Pronto carrier divisor (default: 0x6D, 38 kHz)")

    return parser


def main(argv=None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(args.verbose, args.quiet)

    if args.command == "setup" and args.security != SecurityMode.NONE and not args.password:
        print("Error: a WLAN password is required for this security mode")
        return 1

    # Dispatch to handler
    handlers = {
        "discover": cmd_discover,
        "send": cmd_send,
        "send-pronto": cmd_send,
        "learn": cmd_learn,
        "learned": cmd_learned,
        "setup": cmd_setup,
        "convert-pronto": cmd_convert_pronto,
        "convert-broadlink": cmd_convert_broadlink,
    }

    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    try:
        return asyncio.run(handler(args))
    except (ValueError, OSError, RMError) as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
