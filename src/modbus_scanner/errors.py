"""Clear exceptions for modbus-scanner: link, transaction, decode and loop errors."""

# Modbus exception codes returned by devices in an exception response
EXCEPTION_NAMES: dict[int, str] = {
    1: "Illegal function",
    2: "Illegal data address",
    3: "Illegal data value",
    4: "Slave device failure",
    5: "Acknowledge",
    6: "Slave device busy",
    8: "Memory parity error",
    10: "Gateway path unavailable",
    11: "Gateway target device failed to respond",
}


def describe_exception_code(code: int) -> str:
    return EXCEPTION_NAMES.get(code, f"Exception code {code}")


class ModbusScannerError(Exception):
    """Base exception for modbus-scanner."""

    pass


class ModbusIOError(ModbusScannerError):
    """Raised when a Modbus transaction fails (wraps pymodbus or connection errors)."""

    def __init__(
        self,
        message: str,
        *,
        function: int | None = None,
        address: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.function = function
        self.address = address
        self.cause = cause
        super().__init__(message)


class ConnectError(ModbusIOError):
    """Raised when the serial device cannot be opened or the TCP endpoint dialed."""


class TransportError(ModbusIOError):
    """Raised on timeout or I/O failure in the middle of a transaction."""


class ProtocolError(ModbusIOError):
    """Raised when the device answers with an exception response or a malformed frame."""

    def __init__(
        self,
        message: str,
        *,
        function: int | None = None,
        address: int | None = None,
        cause: BaseException | None = None,
        exception_code: int | None = None,
    ) -> None:
        self.exception_code = exception_code
        super().__init__(message, function=function, address=address, cause=cause)

    @property
    def exception_name(self) -> str | None:
        if self.exception_code is None:
            return None
        return describe_exception_code(self.exception_code)


class DecodeError(ModbusScannerError):
    """Raised when a response carries fewer bytes than the requested count needs."""

    def __init__(self, expected: int, received: int, message: str | None = None) -> None:
        self.expected = expected
        self.received = received
        super().__init__(message or f"Truncated response: expected {expected} bytes, got {received}")


class UnsupportedFunctionError(ModbusScannerError, ValueError):
    """Raised when a scan asks for a function code other than 1, 2, 3 or 4."""

    def __init__(self, function_code: object, message: str | None = None) -> None:
        self.function_code = function_code
        super().__init__(message or f"Unsupported function code: {function_code!r}")


class AlreadyRunningError(ModbusScannerError):
    """Raised when start() is called on a poll loop that is not idle."""
