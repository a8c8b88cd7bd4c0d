#!/usr/bin/env python3
"""Example: read a block of holding registers, write one, and flip a bit over Modbus TCP."""

import sys

from modbus_scanner import BitFieldEditor, ModbusIOError, ScanRequest, TransportConfig, WriteCoordinator, scan_once


def main() -> None:
    config = TransportConfig.tcp("192.168.1.10", slave_id=1)  # change to your device IP

    try:
        # Read holding registers 500..509
        result = scan_once(config, ScanRequest(3, 500, 10))
        for v in result.values:
            print(f"Register {v.address}: {v.value}")

        # Write a single holding register (function 6)
        written = WriteCoordinator().write(config, 500, 1234)
        print(written.message)

        # Turn on bit 3 of register 501, keeping the others
        editor = BitFieldEditor(config, 501)
        editor.read()
        editor.set_bit(3)
        print(editor.write().message)
    except ModbusIOError as e:
        print(f"Modbus/connection error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
