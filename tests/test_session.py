"""Unit tests for DeviceSession: sending, learning and fetching codes."""

import asyncio

import pytest

from helpers import DEVICE_ID, SESSION_KEY, FakeDevice, FakeDispatcher
from rm_controller.client import ProtocolClient
from rm_controller.commands import Command
from rm_controller.device import Device
from rm_controller.exceptions import MalformedCodeError
from rm_controller.session import DeviceSession
from rm_controller.transcoder import parse_hex

LEARNED_CODE = bytes([0x26, 0x00, 0x06, 0x00, 0x82, 0x82, 0x82, 0x82, 0x0D, 0x05])
PRONTO = parse_hex("0000 006D 0000 0002 0096 0096 0096 0096")


def _session(device: Device, fake: FakeDevice) -> DeviceSession:
    client = ProtocolClient(timeout=0.2, dispatcher=FakeDispatcher(fake))
    return DeviceSession(client, device)


@pytest.mark.asyncio
async def test_authenticate(device: Device) -> None:
    session = _session(device, FakeDevice())

    assert not session.is_authenticated
    assert await session.authenticate()
    assert session.is_authenticated
    assert device.device_id == DEVICE_ID
    assert device.key == SESSION_KEY


@pytest.mark.asyncio
async def test_send_code(device: Device) -> None:
    fake = FakeDevice()
    session = _session(device, fake)
    await session.authenticate()

    assert await session.send_code(LEARNED_CODE)

    code, data = fake.commands[0]
    assert code == Command.TRANSMIT
    assert data.startswith(LEARNED_CODE)


@pytest.mark.asyncio
async def test_send_code_reports_device_error(device: Device) -> None:
    session = _session(device, FakeDevice(transmit_status=-1))
    await session.authenticate()

    assert not await session.send_code(LEARNED_CODE)


@pytest.mark.asyncio
async def test_send_pronto_converts_to_broadlink(device: Device) -> None:
    fake = FakeDevice()
    session = _session(device, fake)
    await session.authenticate()

    assert await session.send_pronto(PRONTO)
    assert fake.commands[0][1].startswith(LEARNED_CODE)


@pytest.mark.asyncio
async def test_send_pronto_rejects_malformed_code(device: Device) -> None:
    session = _session(device, FakeDevice())

    with pytest.raises(MalformedCodeError):
        await session.send_pronto(parse_hex("0001 006D 0000 0000"))


@pytest.mark.asyncio
async def test_fetch_learned_code(device: Device) -> None:
    session = _session(device, FakeDevice(learned_code=LEARNED_CODE))
    await session.authenticate()

    code = await session.fetch_learned_code()

    assert code is not None
    assert code.startswith(LEARNED_CODE)


@pytest.mark.asyncio
async def test_fetch_without_learned_code(device: Device) -> None:
    session = _session(device, FakeDevice())
    await session.authenticate()

    assert await session.fetch_learned_code() is None


@pytest.mark.asyncio
async def test_learn_code_polls_until_code_arrives(device: Device) -> None:
    fake = FakeDevice(learned_code=LEARNED_CODE, learned_after=2)
    session = _session(device, fake)
    await session.authenticate()

    code = await session.learn_code(timeout=5.0, interval=0.01)

    assert code is not None
    assert code.startswith(LEARNED_CODE)
    assert [c for c, _ in fake.commands] == [
        Command.ENTER_LEARNING,
        Command.FETCH_LEARNED,
        Command.FETCH_LEARNED,
        Command.FETCH_LEARNED,
    ]


def test_session_built_outside_event_loop(device: Device) -> None:
    session = _session(device, FakeDevice())

    async def run():
        return await asyncio.gather(session.authenticate(), session.fetch_learned_code())

    authenticated, code = asyncio.run(run())

    assert authenticated
    assert code is None


@pytest.mark.asyncio
async def test_learn_code_times_out(device: Device) -> None:
    session = _session(device, FakeDevice())
    await session.authenticate()

    assert await session.learn_code(timeout=0.05, interval=0.01) is None
