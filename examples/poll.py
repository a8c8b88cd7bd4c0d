#!/usr/bin/env python3
"""Example: poll coils over Modbus RTU with PollLoop; graceful shutdown on Ctrl+C."""

import time

from modbus_scanner import PollLoop, ScanRequest, ScanResult, TransportConfig, paginate
from modbus_scanner.poller import ScanEvent


def show(event: ScanEvent) -> None:
    if isinstance(event, ScanResult):
        for page in paginate(event.values):
            print(" ".join(f"{v.address}={'ON' if v.value else 'OFF'}" for v in page))
    else:
        print(f"{event.kind}: {event.message}")


def main() -> None:
    config = TransportConfig.rtu("/dev/ttyUSB0", baudrate=9600, parity="E", slave_id=1)
    request = ScanRequest(1, 0, 40)

    with PollLoop(show, interval=1.0) as loop:
        loop.start(config, request)
        print(f"Polling {config.describe()} every {loop.interval}s (Ctrl+C to stop)...")
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            print("\nStopped.")


if __name__ == "__main__":
    main()
