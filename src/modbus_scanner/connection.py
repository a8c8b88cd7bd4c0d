"""Connection: one pymodbus RTU/TCP client opened, used and closed per transaction."""

import logging
from typing import Any

from pymodbus import FramerType
from pymodbus.client import ModbusSerialClient, ModbusTcpClient
from pymodbus.exceptions import ConnectionException, ModbusException, ModbusIOException

from .errors import ConnectError, ProtocolError, TransportError, describe_exception_code
from .types import FunctionCode, TransportConfig, TransportKind

logger = logging.getLogger(__name__)

# Modbus application protocol ceilings per read request
MAX_READ_REGISTERS = 125
MAX_READ_BITS = 2000

_READ_METHODS: dict[FunctionCode, str] = {
    FunctionCode.READ_COILS: "read_coils",
    FunctionCode.READ_DISCRETE_INPUTS: "read_discrete_inputs",
    FunctionCode.READ_HOLDING_REGISTERS: "read_holding_registers",
    FunctionCode.READ_INPUT_REGISTERS: "read_input_registers",
}


def _build_client(config: TransportConfig) -> ModbusSerialClient | ModbusTcpClient:
    # retries=0: a Connection performs exactly one physical transaction per call
    if config.kind == TransportKind.RTU:
        return ModbusSerialClient(
            port=config.serial_port,
            framer=FramerType.RTU,
            baudrate=config.baudrate,
            bytesize=config.bytesize,
            parity=config.parity.value,
            stopbits=config.stopbits,
            timeout=config.timeout,
            retries=0,
        )
    return ModbusTcpClient(
        host=config.host,
        port=config.port,
        timeout=config.timeout,
        retries=0,
    )


class Connection:
    """
    A single link to one device for the duration of one transaction.
    Use open_connection(config) or `with Connection(config) as conn:`; close() is idempotent.
    """

    def __init__(self, config: TransportConfig) -> None:
        self._config = config
        self._client: ModbusSerialClient | ModbusTcpClient | None = None

    @property
    def config(self) -> TransportConfig:
        return self._config

    @property
    def is_open(self) -> bool:
        return self._client is not None

    def open(self) -> "Connection":
        """Connect to the device; raise ConnectError if the link cannot be established."""
        if self._client is not None:
            return self
        client = _build_client(self._config)
        try:
            ok = client.connect()
        except (ModbusException, OSError) as e:
            self._safe_close(client)
            raise ConnectError(f"Failed to connect to {self._config.describe()}: {e}", cause=e) from e
        if not ok:
            self._safe_close(client)
            raise ConnectError(f"Failed to connect to {self._config.describe()}")
        logger.debug("Opened %s", self._config.describe())
        self._client = client
        return self

    def _require_client(self) -> ModbusSerialClient | ModbusTcpClient:
        if self._client is None:
            raise TransportError(f"Connection to {self._config.describe()} is not open")
        return self._client

    def _execute(self, function: FunctionCode, address: int, call: Any) -> Any:
        """Run one pymodbus request and map its failures onto the scanner's error taxonomy."""
        try:
            rr = call()
        except ModbusIOException as e:
            raise TransportError(str(e), function=function, address=address, cause=e) from e
        except ConnectionException as e:
            raise TransportError(str(e), function=function, address=address, cause=e) from e
        except ModbusException as e:
            raise ProtocolError(str(e), function=function, address=address, cause=e) from e
        except OSError as e:
            raise TransportError(str(e), function=function, address=address, cause=e) from e
        if rr is None:
            raise TransportError("No response", function=function, address=address)
        if rr.isError():
            code = getattr(rr, "exception_code", None)
            if isinstance(code, int):
                message = f"{describe_exception_code(code)} (function {int(function)}, address {address})"
            else:
                code, message = None, str(rr)
            raise ProtocolError(message, function=function, address=address, exception_code=code)
        return rr

    def read_registers(self, function: FunctionCode, start: int, count: int) -> bytes:
        """
        Issue one read and return the response data bytes: big-endian register words
        for functions 3/4, packed bits (LSB first) for functions 1/2.
        """
        function = FunctionCode.for_scan(function)
        limit = MAX_READ_BITS if function.is_bit_read else MAX_READ_REGISTERS
        if not 1 <= count <= limit:
            raise ProtocolError(
                f"Illegal quantity {count} for function {int(function)} (1..{limit})",
                function=function,
                address=start,
                exception_code=3,
            )
        client = self._require_client()
        method = getattr(client, _READ_METHODS[function])
        logger.debug(
            "FC%d start=%d count=%d on %s", int(function), start, count, self._config.describe()
        )
        rr = self._execute(
            function,
            start,
            lambda: method(start, count=count, device_id=self._config.slave_id),
        )
        # Response PDU body is [byte_count, data...]
        pdu = rr.encode()
        if not pdu or pdu[0] != len(pdu) - 1:
            raise ProtocolError(
                "Malformed response: byte count does not match payload",
                function=function,
                address=start,
            )
        return bytes(pdu[1:])

    def write_single_register(self, address: int, value: int) -> None:
        """Write one holding register (function 6)."""
        if not 0 <= address <= 0xFFFF:
            raise ValueError(f"Register address out of range 0..65535: {address}")
        if not 0 <= value <= 0xFFFF:
            raise ValueError(f"Unsigned 16-bit integer out of range: {value}")
        client = self._require_client()
        logger.debug("FC6 address=%d value=%d on %s", address, value, self._config.describe())
        self._execute(
            FunctionCode.WRITE_SINGLE_REGISTER,
            address,
            lambda: client.write_register(address, value, device_id=self._config.slave_id),
        )

    @staticmethod
    def _safe_close(client: ModbusSerialClient | ModbusTcpClient) -> None:
        try:
            client.close()
        except Exception as e:
            logger.warning("Error closing Modbus client: %s", e)

    def close(self) -> None:
        """Release the link; safe to call more than once."""
        if self._client is not None:
            client, self._client = self._client, None
            self._safe_close(client)
            logger.debug("Closed %s", self._config.describe())

    def __enter__(self) -> "Connection":
        return self.open()

    def __exit__(self, *args: Any) -> None:
        self.close()


def open_connection(config: TransportConfig) -> Connection:
    """Open and return a Connection for config; raises ConnectError."""
    return Connection(config).open()
