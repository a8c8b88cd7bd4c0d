"""WriteCoordinator: single-register writes interleaved safely with an active PollLoop."""

import logging
import threading

from .connection import open_connection
from .poller import Connector, PollLoop
from .types import TransportConfig, WriteResult

logger = logging.getLogger(__name__)


class WriteCoordinator:
    """
    Performs one write transaction regardless of poll state. When the attached loop is
    polling the same link it is paused first and always resumed afterwards, even if the
    write fails.
    """

    def __init__(self, poller: PollLoop | None = None, *, connector: Connector = open_connection) -> None:
        self._poller = poller
        self._connector = connector
        self._lock = threading.Lock()

    @property
    def poller(self) -> PollLoop | None:
        return self._poller

    def write(self, config: TransportConfig, address: int, value: int) -> WriteResult:
        """
        Write value to holding register address (function 6).
        Raises ConnectError, TransportError or ProtocolError; ValueError for out-of-range input.
        """
        if not 0 <= address <= 0xFFFF:
            raise ValueError(f"Register address out of range 0..65535: {address}")
        if not 0 <= value <= 0xFFFF:
            raise ValueError(f"Unsigned 16-bit integer out of range: {value}")

        with self._lock:
            paused = False
            if self._poller is not None and self._poller.is_polling(config):
                paused = self._poller.pause()
            try:
                with self._connector(config) as conn:
                    conn.write_single_register(address, value)
            finally:
                if paused:
                    self._poller.resume()

        logger.info("Wrote %d to register %d on %s", value, address, config.describe())
        return WriteResult(
            address=address,
            value=value,
            message=f"Write successful! (Value {value} to register {address})",
        )
