"""Shared fixtures for rm_controller tests."""

import pytest

from helpers import DEVICE_MAC_RAW, FakeDispatcher
from rm_controller.client import ProtocolClient
from rm_controller.device import Device


@pytest.fixture
def device() -> Device:
    return Device(device_type=0x2737, name="RM mini", host="192.168.1.20", mac_raw=DEVICE_MAC_RAW)


@pytest.fixture
def dispatcher() -> FakeDispatcher:
    return FakeDispatcher()


@pytest.fixture
def client(dispatcher: FakeDispatcher) -> ProtocolClient:
    return ProtocolClient(timeout=0.2, dispatcher=dispatcher)
