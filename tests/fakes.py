"""In-memory Modbus device and a connector that opens one FakeConnection per call."""

import struct
import threading
import time
from typing import Any, Callable

from modbus_scanner.types import TransportConfig


class FakeDevice:
    """Holding registers and coils in dicts; records every open/read/write/close in `log`."""

    def __init__(self) -> None:
        self.holding: dict[int, int] = {}
        self.coils: dict[int, bool] = {}
        self.responses: list[bytes] = []
        self.read_failures: list[Exception] = []
        self.write_failures: list[Exception] = []
        self.connect_failures: list[Exception] = []
        self.log: list[tuple[Any, ...]] = []
        self.read_started = threading.Event()
        self.read_gate: threading.Event | None = None
        self._lock = threading.Lock()

    def record(self, *entry: Any) -> None:
        with self._lock:
            self.log.append(entry)

    def entries(self, kind: str) -> list[tuple[Any, ...]]:
        with self._lock:
            return [e for e in self.log if e[0] == kind]

    def connector(self, config: TransportConfig) -> "FakeConnection":
        if self.connect_failures:
            raise self.connect_failures.pop(0)
        self.record("open", config.link)
        return FakeConnection(self)


class FakeConnection:
    def __init__(self, device: FakeDevice) -> None:
        self._device = device
        self._purpose = "idle"
        self.closed = False

    def __enter__(self) -> "FakeConnection":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._device.record("close", self._purpose)

    def read_registers(self, function: int, start: int, count: int) -> bytes:
        dev = self._device
        self._purpose = "read"
        dev.record("read", int(function), start, count)
        if dev.read_gate is not None:
            dev.read_started.set()
            dev.read_gate.wait(5)
        if dev.read_failures:
            raise dev.read_failures.pop(0)
        if dev.responses:
            return dev.responses.pop(0)
        if int(function) in (1, 2):
            packed = bytearray((count + 7) // 8)
            for i in range(count):
                if dev.coils.get(start + i, False):
                    packed[i // 8] |= 1 << (i % 8)
            return bytes(packed)
        return b"".join(struct.pack(">H", dev.holding.get(start + i, 0)) for i in range(count))

    def write_single_register(self, address: int, value: int) -> None:
        dev = self._device
        self._purpose = "write"
        dev.record("write", address, value)
        if dev.write_failures:
            raise dev.write_failures.pop(0)
        dev.holding[address] = value


def wait_until(predicate: Callable[[], bool], timeout: float = 3.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()

