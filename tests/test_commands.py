"""Unit tests for command payload layout."""

from rm_controller.commands import Command, SecurityMode, build_command_payload


def test_short_data_fills_one_block():
    payload = build_command_payload(Command.TRANSMIT, b"\x26\x00")
    assert payload == b"\x02\x00\x00\x00\x26\x00" + bytes(10)


def test_no_data():
    assert build_command_payload(Command.FETCH_LEARNED) == b"\x04" + bytes(15)


def test_long_data_follows_code():
    data = bytes(range(1, 21))
    payload = build_command_payload(Command.TRANSMIT, data)
    assert payload == b"\x02\x00\x00\x00" + data


def test_prefixed_device_type():
    payload = build_command_payload(Command.ENTER_LEARNING, None, device_type=0x5F36)
    assert payload[:2] == b"\x04\x00"
    assert payload[2:6] == b"\x03\x00\x00\x00"
    assert len(payload) == 18


def test_known_codes():
    assert (Command.TRANSMIT, Command.ENTER_LEARNING, Command.FETCH_LEARNED) == (2, 3, 4)
    assert [int(mode) for mode in SecurityMode] == [0, 1, 2, 3, 4, 6]
