"""Tests for transport config and scan request validation."""

import dataclasses

import pytest

from modbus_scanner.errors import TransportError, UnsupportedFunctionError
from modbus_scanner.types import (
    FunctionCode,
    Parity,
    RegisterValue,
    ScanError,
    ScanRequest,
    ScanResult,
    TransportConfig,
    TransportKind,
)


def test_tcp_config_defaults() -> None:
    cfg = TransportConfig.tcp("10.0.0.5")
    assert cfg.kind == TransportKind.TCP
    assert cfg.port == 502
    assert cfg.slave_id == 1
    assert cfg.describe() == "tcp 10.0.0.5:502 unit 1"


def test_rtu_config_defaults() -> None:
    cfg = TransportConfig.rtu("COM1")
    assert cfg.kind == TransportKind.RTU
    assert cfg.baudrate == 9600
    assert cfg.parity == Parity.EVEN
    assert cfg.describe() == "rtu COM1 9600 8E1 unit 1"


def test_config_is_immutable() -> None:
    cfg = TransportConfig.tcp("10.0.0.5")
    with pytest.raises(dataclasses.FrozenInstanceError):
        cfg.host = "10.0.0.6"  # type: ignore[misc]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"kind": "rtu"},
        {"kind": "tcp"},
        {"kind": "tcp", "host": "h", "slave_id": 256},
        {"kind": "tcp", "host": "h", "port": 0},
        {"kind": "tcp", "host": "h", "timeout": 0},
        {"kind": "rtu", "serial_port": "COM1", "stopbits": 3},
        {"kind": "rtu", "serial_port": "COM1", "bytesize": 9},
        {"kind": "rtu", "serial_port": "COM1", "parity": "X"},
    ],
)
def test_config_validation(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        TransportConfig(**kwargs)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("N", Parity.NONE), ("e", Parity.EVEN), ("odd", Parity.ODD), ("None", Parity.NONE)],
)
def test_parity_parse(raw: str, expected: Parity) -> None:
    assert Parity.parse(raw) is expected


def test_link_identifies_physical_line() -> None:
    a = TransportConfig.rtu("COM1", slave_id=1)
    b = TransportConfig.rtu("COM1", slave_id=7, baudrate=19200)
    c = TransportConfig.rtu("COM2", slave_id=1)
    assert a.link == b.link
    assert a.link != c.link
    assert TransportConfig.tcp("PLC", 502).link == TransportConfig.tcp("plc", 502, slave_id=3).link
    assert TransportConfig.tcp("plc", 502).link != TransportConfig.tcp("plc", 503).link


def test_scan_request_coerces_function_code() -> None:
    req = ScanRequest(3, 500, 3)
    assert req.function_code is FunctionCode.READ_HOLDING_REGISTERS
    assert list(req.addresses) == [500, 501, 502]


@pytest.mark.parametrize("code", [0, 5, 6, 16, "x", None, True])
def test_scan_request_unsupported_function(code: object) -> None:
    with pytest.raises(UnsupportedFunctionError):
        ScanRequest(code, 0, 1)  # type: ignore[arg-type]


@pytest.mark.parametrize(("start", "count"), [(0, 0), (-1, 1), (65536, 1), (0, -3)])
def test_scan_request_range(start: int, count: int) -> None:
    with pytest.raises(ValueError):
        ScanRequest(FunctionCode.READ_COILS, start, count)


def test_scan_request_does_not_check_device_ceiling() -> None:
    # Ceilings are enforced per transaction, not at construction
    assert ScanRequest(3, 0, 500).count == 500


def test_function_code_properties() -> None:
    assert FunctionCode.READ_COILS.is_bit_read
    assert not FunctionCode.READ_INPUT_REGISTERS.is_bit_read
    assert FunctionCode.READ_INPUT_REGISTERS.is_read
    assert not FunctionCode.WRITE_SINGLE_REGISTER.is_read


def test_scan_error_from_exception() -> None:
    err = ScanError.from_exception(TransportError("timeout"))
    assert err.kind == "TransportError"
    assert err.message == "timeout"
    assert ScanError.from_exception(RuntimeError("boom")).kind == "UnexpectedError"


def test_scan_result_as_dict() -> None:
    result = ScanResult(
        request=ScanRequest(1, 10, 2),
        values=(RegisterValue(10, True), RegisterValue(11, False)),
    )
    data = result.as_dict()
    assert data["function_code"] == 1
    assert data["values"] == {"10": True, "11": False}
    assert data["timestamp"].endswith("+00:00")


def test_scan_error_as_dict() -> None:
    data = ScanError.from_exception(TransportError("timeout")).as_dict()
    assert data["error"] == "TransportError"
    assert data["message"] == "timeout"
    assert "timestamp" in data
