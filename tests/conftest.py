"""Shared fixtures: a fake device and transport configs."""

import pytest

from modbus_scanner.types import TransportConfig

from fakes import FakeDevice


@pytest.fixture
def device() -> FakeDevice:
    return FakeDevice()


@pytest.fixture
def tcp_config() -> TransportConfig:
    return TransportConfig.tcp("192.168.1.10", slave_id=1, timeout=0.5)


@pytest.fixture
def rtu_config() -> TransportConfig:
    return TransportConfig.rtu("COM1", baudrate=9600, slave_id=2)
