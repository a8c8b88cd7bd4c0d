"""Tests for BitFieldEditor read-modify-write of a holding register."""

import pytest

from modbus_scanner.bitfield import BitFieldEditor
from modbus_scanner.poller import PollLoop
from modbus_scanner.types import PollState, ScanRequest, TransportConfig
from modbus_scanner.writer import WriteCoordinator

from fakes import FakeDevice, wait_until


def test_read_decomposes_register(device: FakeDevice, rtu_config: TransportConfig) -> None:
    device.holding[100] = 0b1000_0000_0000_0101
    editor = BitFieldEditor(rtu_config, 100, connector=device.connector)
    bits = editor.read()
    assert len(bits) == 16
    assert bits[0] and bits[2] and bits[15]
    assert not any(bits[i] for i in (1, 3, 4, 14))
    assert editor.value == 0x8005
    assert device.entries("read") == [("read", 3, 100, 1)]


def test_edit_and_write_back(device: FakeDevice, rtu_config: TransportConfig) -> None:
    device.holding[100] = 0x0001
    editor = BitFieldEditor(rtu_config, 100, connector=device.connector)
    editor.read()
    editor.set_bit(0, False)
    editor.set_bit(3)
    assert editor.toggle(15) is True
    result = editor.write()
    assert result.value == 0x8008
    assert device.holding[100] == 0x8008


def test_read_overwrites_pending_edits(device: FakeDevice, rtu_config: TransportConfig) -> None:
    device.holding[5] = 0
    editor = BitFieldEditor(rtu_config, 5, connector=device.connector)
    editor.set_bit(7)
    assert editor.value == 0x0080
    editor.read()
    assert editor.value == 0


def test_bits_returns_copy(device: FakeDevice, rtu_config: TransportConfig) -> None:
    editor = BitFieldEditor(rtu_config, 5, connector=device.connector)
    bits = editor.bits
    bits[0] = True
    assert editor.value == 0


@pytest.mark.parametrize("index", [-1, 16])
def test_bit_index_range(device: FakeDevice, rtu_config: TransportConfig, index: int) -> None:
    editor = BitFieldEditor(rtu_config, 5, connector=device.connector)
    with pytest.raises(IndexError):
        editor.set_bit(index)
    with pytest.raises(IndexError):
        editor.toggle(index)


def test_write_goes_through_coordinator(device: FakeDevice, rtu_config: TransportConfig) -> None:
    states: list[PollState] = []
    loop = PollLoop(lambda e: None, interval=0.01, connector=device.connector, on_state=states.append)
    coordinator = WriteCoordinator(loop, connector=device.connector)
    editor = BitFieldEditor(rtu_config, 100, coordinator=coordinator, connector=device.connector)
    loop.start(rtu_config, ScanRequest(3, 0, 10))
    try:
        assert wait_until(lambda: len(device.entries("read")) >= 1)
        editor.set_bit(1)
        editor.write()
    finally:
        loop.stop()
    assert states.count(PollState.PAUSED) == 1
    assert device.holding[100] == 0x0002
