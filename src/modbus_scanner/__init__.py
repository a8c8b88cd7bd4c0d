"""modbus-scanner: poll and edit Modbus RTU/TCP devices via pymodbus."""

__version__ = "0.1.0"

from .bitfield import BitFieldEditor
from .codec import decode_bits, decode_bits_of, decode_registers, encode_bits_of, label, paginate
from .connection import Connection, open_connection
from .errors import (
    AlreadyRunningError,
    ConnectError,
    DecodeError,
    ModbusIOError,
    ModbusScannerError,
    ProtocolError,
    TransportError,
    UnsupportedFunctionError,
)
from .poller import PollLoop, scan_once
from .types import (
    FunctionCode,
    Parity,
    PollState,
    RegisterValue,
    ScanError,
    ScanRequest,
    ScanResult,
    TransportConfig,
    TransportKind,
    WriteResult,
)
from .writer import WriteCoordinator

__all__ = [
    "__version__",
    "BitFieldEditor",
    "decode_bits",
    "decode_bits_of",
    "decode_registers",
    "encode_bits_of",
    "label",
    "paginate",
    "Connection",
    "open_connection",
    "AlreadyRunningError",
    "ConnectError",
    "DecodeError",
    "ModbusIOError",
    "ModbusScannerError",
    "ProtocolError",
    "TransportError",
    "UnsupportedFunctionError",
    "PollLoop",
    "scan_once",
    "FunctionCode",
    "Parity",
    "PollState",
    "RegisterValue",
    "ScanError",
    "ScanRequest",
    "ScanResult",
    "TransportConfig",
    "TransportKind",
    "WriteResult",
    "WriteCoordinator",
]
