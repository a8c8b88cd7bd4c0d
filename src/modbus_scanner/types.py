"""Core data model: transport config, scan request, decoded values and loop state."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any

from .errors import ModbusScannerError, UnsupportedFunctionError

DEFAULT_TCP_PORT = 502
WRITE_MESSAGE_TTL = 5.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TransportKind(str, Enum):
    """How the device is reached."""

    RTU = "rtu"
    TCP = "tcp"


class Parity(str, Enum):
    """Serial parity, valued with the letter pymodbus expects."""

    NONE = "N"
    EVEN = "E"
    ODD = "O"

    @classmethod
    def parse(cls, raw: "str | Parity") -> "Parity":
        """Accept N/E/O or none/even/odd, case-insensitive."""
        if isinstance(raw, Parity):
            return raw
        s = raw.strip().upper()
        for member in cls:
            if s in (member.value, member.name):
                return member
        raise ValueError(f"Invalid parity: {raw!r}")


class FunctionCode(IntEnum):
    """Modbus function codes handled by the scanner."""

    READ_COILS = 1
    READ_DISCRETE_INPUTS = 2
    READ_HOLDING_REGISTERS = 3
    READ_INPUT_REGISTERS = 4
    WRITE_SINGLE_REGISTER = 6

    @property
    def is_read(self) -> bool:
        return self in _READ_FUNCTIONS

    @property
    def is_bit_read(self) -> bool:
        return self in (FunctionCode.READ_COILS, FunctionCode.READ_DISCRETE_INPUTS)

    @classmethod
    def for_scan(cls, value: Any) -> "FunctionCode":
        """Return the read function for value; raise UnsupportedFunctionError for anything but 1..4."""
        if isinstance(value, bool):
            raise UnsupportedFunctionError(value)
        try:
            code = cls(int(value))
        except (TypeError, ValueError):
            raise UnsupportedFunctionError(value) from None
        if code not in _READ_FUNCTIONS:
            raise UnsupportedFunctionError(value)
        return code


_READ_FUNCTIONS = frozenset(
    {
        FunctionCode.READ_COILS,
        FunctionCode.READ_DISCRETE_INPUTS,
        FunctionCode.READ_HOLDING_REGISTERS,
        FunctionCode.READ_INPUT_REGISTERS,
    }
)


class PollState(str, Enum):
    """Lifecycle of a poll loop."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


@dataclass(frozen=True)
class TransportConfig:
    """Immutable description of how to reach one device (serial line or host:port)."""

    kind: TransportKind
    serial_port: str = ""
    baudrate: int = 9600
    bytesize: int = 8
    parity: Parity = Parity.EVEN
    stopbits: int = 1
    host: str = ""
    port: int = DEFAULT_TCP_PORT
    slave_id: int = 1
    timeout: float = 1.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", TransportKind(self.kind))
        object.__setattr__(self, "parity", Parity.parse(self.parity))
        if self.kind == TransportKind.RTU and not self.serial_port:
            raise ValueError("serial_port is required for an RTU transport")
        if self.kind == TransportKind.TCP and not self.host:
            raise ValueError("host is required for a TCP transport")
        if not 0 <= self.slave_id <= 255:
            raise ValueError(f"slave_id must be 0..255, got {self.slave_id}")
        if not 1 <= self.port <= 65535:
            raise ValueError(f"port must be 1..65535, got {self.port}")
        if self.baudrate <= 0:
            raise ValueError(f"baudrate must be > 0, got {self.baudrate}")
        if self.bytesize not in (5, 6, 7, 8):
            raise ValueError(f"bytesize must be 5..8, got {self.bytesize}")
        if self.stopbits not in (1, 2):
            raise ValueError(f"stopbits must be 1 or 2, got {self.stopbits}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")

    @classmethod
    def rtu(cls, serial_port: str, **kwargs: Any) -> "TransportConfig":
        return cls(kind=TransportKind.RTU, serial_port=serial_port, **kwargs)

    @classmethod
    def tcp(cls, host: str, port: int = DEFAULT_TCP_PORT, **kwargs: Any) -> "TransportConfig":
        return cls(kind=TransportKind.TCP, host=host, port=port, **kwargs)

    @property
    def link(self) -> tuple[str, ...]:
        """Identity of the physical link; two configs on one link cannot transact at once."""
        if self.kind == TransportKind.RTU:
            return (self.kind.value, self.serial_port)
        return (self.kind.value, self.host.lower(), str(self.port))

    def describe(self) -> str:
        if self.kind == TransportKind.RTU:
            framing = f"{self.bytesize}{self.parity.value}{self.stopbits}"
            return f"rtu {self.serial_port} {self.baudrate} {framing} unit {self.slave_id}"
        return f"tcp {self.host}:{self.port} unit {self.slave_id}"


@dataclass(frozen=True)
class ScanRequest:
    """One read to repeat each cycle: function code, first address and count."""

    function_code: FunctionCode
    start_address: int
    count: int = 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "function_code", FunctionCode.for_scan(self.function_code))
        if not 0 <= self.start_address <= 0xFFFF:
            raise ValueError(f"start_address must be 0..65535, got {self.start_address}")
        if not 1 <= self.count <= 0xFFFF:
            raise ValueError(f"count must be >= 1, got {self.count}")

    @property
    def addresses(self) -> range:
        return range(self.start_address, self.start_address + self.count)


@dataclass(frozen=True)
class RegisterValue:
    """A decoded coil/input bit or 16-bit register, tagged with its absolute address."""

    address: int
    value: bool | int

    @property
    def is_bit(self) -> bool:
        return isinstance(self.value, bool)


@dataclass(frozen=True)
class ScanResult:
    """Successful cycle: values index-aligned with request.start_address + i."""

    request: ScanRequest
    values: tuple[RegisterValue, ...]
    timestamp: datetime = field(default_factory=_utcnow)

    def as_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "function_code": int(self.request.function_code),
            "values": {str(v.address): v.value for v in self.values},
        }


@dataclass(frozen=True)
class ScanError:
    """Failed cycle: error class name and message."""

    kind: str
    message: str
    timestamp: datetime = field(default_factory=_utcnow)

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ScanError":
        kind = type(exc).__name__ if isinstance(exc, ModbusScannerError) else "UnexpectedError"
        return cls(kind=kind, message=str(exc))

    def as_dict(self) -> dict[str, Any]:
        return {"timestamp": self.timestamp.isoformat(), "error": self.kind, "message": self.message}


@dataclass(frozen=True)
class WriteResult:
    """Acknowledged single-register write with a human-readable confirmation."""

    address: int
    value: int
    message: str
    clear_after: float = WRITE_MESSAGE_TTL
