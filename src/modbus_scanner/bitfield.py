"""BitFieldEditor: read a holding register as 16 toggles, edit them, write the word back."""

from .codec import BITS_PER_REGISTER, decode_bits_of, encode_bits_of
from .connection import open_connection
from .poller import Connector, scan_once
from .types import FunctionCode, ScanRequest, TransportConfig, WriteResult
from .writer import WriteCoordinator


class BitFieldEditor:
    """
    Bit-level editor for one holding register. The toggles belong to the caller between
    read() and write(): nothing refreshes them in the background.
    """

    def __init__(
        self,
        config: TransportConfig,
        address: int,
        *,
        coordinator: WriteCoordinator | None = None,
        connector: Connector = open_connection,
    ) -> None:
        self._config = config
        self._request = ScanRequest(FunctionCode.READ_HOLDING_REGISTERS, address, 1)
        self._connector = connector
        self._coordinator = coordinator or WriteCoordinator(connector=connector)
        self._bits = [False] * BITS_PER_REGISTER

    @property
    def address(self) -> int:
        return self._request.start_address

    @property
    def bits(self) -> list[bool]:
        return list(self._bits)

    @property
    def value(self) -> int:
        return encode_bits_of(self._bits)

    def read(self) -> list[bool]:
        """Read the register and overwrite the toggles with its bits."""
        result = scan_once(self._config, self._request, self._connector)
        self._bits = decode_bits_of(int(result.values[0].value))
        return self.bits

    def set_bit(self, index: int, on: bool = True) -> None:
        if not 0 <= index < BITS_PER_REGISTER:
            raise IndexError(f"Bit index out of range 0..15: {index}")
        self._bits[index] = bool(on)

    def toggle(self, index: int) -> bool:
        if not 0 <= index < BITS_PER_REGISTER:
            raise IndexError(f"Bit index out of range 0..15: {index}")
        self._bits[index] = not self._bits[index]
        return self._bits[index]

    def write(self) -> WriteResult:
        """Write the current toggles back to the register."""
        return self._coordinator.write(self._config, self.address, self.value)
