"""PollLoop: cancellable background scan loop publishing one ScanResult or ScanError per cycle."""

import logging
import threading
from typing import Callable

from .codec import decode, label
from .connection import Connection, open_connection
from .errors import AlreadyRunningError, ModbusScannerError
from .types import PollState, ScanError, ScanRequest, ScanResult, TransportConfig

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 2.0

Connector = Callable[[TransportConfig], Connection]
ScanEvent = ScanResult | ScanError
Sink = Callable[[ScanEvent], None]
StateListener = Callable[[PollState], None]


def scan_once(
    config: TransportConfig,
    request: ScanRequest,
    connector: Connector = open_connection,
) -> ScanResult:
    """
    Run one read transaction: open a connection, read, close, decode and label.
    Raises ConnectError, TransportError, ProtocolError or DecodeError.
    """
    with connector(config) as conn:
        data = conn.read_registers(request.function_code, request.start_address, request.count)
    values = decode(request.function_code, data, request.count)
    return ScanResult(request=request, values=label(request.start_address, values))


class PollLoop:
    """
    Repeats one ScanRequest against one TransportConfig on a worker thread until stopped.

    Lifecycle: IDLE -> start() -> RUNNING <-> pause()/resume() <-> PAUSED -> stop() -> IDLE.
    Each cycle opens a fresh connection; failed cycles are published as ScanError and
    polling goes on. stop() and pause() are honored at cycle boundaries only, so at most
    one transaction is in flight per loop.
    """

    def __init__(
        self,
        sink: Sink,
        *,
        interval: float = DEFAULT_INTERVAL,
        connector: Connector = open_connection,
        on_state: StateListener | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"Interval must be positive, got {interval}")
        self._sink = sink
        self._interval = interval
        self._connector = connector
        self._on_state = on_state
        self._cond = threading.Condition()
        self._state = PollState.IDLE
        self._config: TransportConfig | None = None
        self._request: ScanRequest | None = None
        self._token: threading.Event | None = None
        self._thread: threading.Thread | None = None
        self._in_cycle = False
        self._cycles = 0
        self._last_result: ScanResult | None = None
        self._last_error: ScanError | None = None

    # -- state -----------------------------------------------------------------

    @property
    def state(self) -> PollState:
        with self._cond:
            return self._state

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def config(self) -> TransportConfig | None:
        return self._config

    @property
    def request(self) -> ScanRequest | None:
        return self._request

    @property
    def cycles(self) -> int:
        """Number of completed cycles in the current (or last) run."""
        with self._cond:
            return self._cycles

    @property
    def last_result(self) -> ScanResult | None:
        """Last good result; a failed cycle does not clear it."""
        with self._cond:
            return self._last_result

    @property
    def last_error(self) -> ScanError | None:
        with self._cond:
            return self._last_error

    def is_polling(self, config: TransportConfig) -> bool:
        """True when running or paused on the same physical link as config."""
        with self._cond:
            return (
                self._state is not PollState.IDLE
                and self._config is not None
                and self._config.link == config.link
            )

    def _set_state(self, state: PollState) -> None:
        # caller holds self._cond
        self._state = state
        self._cond.notify_all()
        if self._on_state is not None:
            self._on_state(state)

    # -- control ---------------------------------------------------------------

    def start(self, config: TransportConfig, request: ScanRequest) -> None:
        """Begin polling; raises AlreadyRunningError unless idle."""
        with self._cond:
            if self._state is not PollState.IDLE:
                raise AlreadyRunningError(f"Poll loop is already {self._state.value}")
            self._config = config
            self._request = request
            self._cycles = 0
            self._in_cycle = False
            self._last_result = None
            self._last_error = None
            token = threading.Event()
            self._token = token
            self._thread = threading.Thread(
                target=self._run,
                args=(token,),
                name=f"poll {config.describe()}",
                daemon=True,
            )
            self._set_state(PollState.RUNNING)
            self._thread.start()
        logger.info(
            "Polling %s: FC%d start=%d count=%d every %.2fs",
            config.describe(),
            int(request.function_code),
            request.start_address,
            request.count,
            self._interval,
        )

    def pause(self) -> bool:
        """
        Suspend ticking; blocks until the in-flight cycle (if any) has published.
        Returns True if this call paused the loop, False if it was not running.
        """
        with self._cond:
            if self._state is not PollState.RUNNING:
                return False
            self._set_state(PollState.PAUSED)
            if threading.current_thread() is not self._thread:
                self._cond.wait_for(lambda: not self._in_cycle)
        logger.info("Polling paused")
        return True

    def resume(self) -> bool:
        """Restart ticking with the same config and request; next cycle runs immediately."""
        with self._cond:
            if self._state is not PollState.PAUSED:
                return False
            self._set_state(PollState.RUNNING)
        logger.info("Polling resumed")
        return True

    def stop(self) -> None:
        """Cancel polling and wait for the worker to finish; no-op when idle."""
        with self._cond:
            if self._state is PollState.IDLE:
                return
            if self._token is not None:
                self._token.set()
            self._set_state(PollState.IDLE)
            thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        logger.info("Polling stopped after %d cycles", self.cycles)

    def __enter__(self) -> "PollLoop":
        return self

    def __exit__(self, *args: object) -> None:
        self.stop()

    # -- worker ----------------------------------------------------------------

    def _run(self, token: threading.Event) -> None:
        while True:
            with self._cond:
                self._cond.wait_for(lambda: token.is_set() or self._state is PollState.RUNNING)
                if token.is_set():
                    break
                self._in_cycle = True
                config, request = self._config, self._request
            try:
                event = self._cycle(config, request)
                if not token.is_set():
                    self._publish(event)
            finally:
                with self._cond:
                    # skip when this run was stopped from the sink and a new one started
                    if self._token is token:
                        self._in_cycle = False
                        self._cycles += 1
                    self._cond.notify_all()
            with self._cond:
                self._cond.wait_for(
                    lambda: token.is_set() or self._state is not PollState.RUNNING,
                    timeout=self._interval,
                )
        logger.debug("Poll worker exiting")

    def _cycle(self, config: TransportConfig, request: ScanRequest) -> ScanEvent:
        try:
            result = scan_once(config, request, self._connector)
        except ModbusScannerError as e:
            logger.warning("Scan of %s failed: %s", config.describe(), e)
            return ScanError.from_exception(e)
        except Exception as e:
            logger.exception("Unexpected error scanning %s", config.describe())
            return ScanError.from_exception(e)
        logger.debug("Scan of %s returned %d values", config.describe(), len(result.values))
        return result

    def _publish(self, event: ScanEvent) -> None:
        with self._cond:
            if isinstance(event, ScanResult):
                self._last_result = event
                self._last_error = None
            else:
                self._last_error = event
        try:
            self._sink(event)
        except Exception:
            logger.exception("Result sink raised; polling continues")
