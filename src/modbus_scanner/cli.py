#!/usr/bin/env python3
"""Command line scanner for Modbus RTU/TCP devices using Typer."""

import json
import logging
import threading
from typing import Any, NoReturn, Optional

import typer
from typing_extensions import Annotated

from . import __version__  # type: ignore
from .bitfield import BitFieldEditor
from .codec import DEFAULT_PAGE_SIZE, format_value, from_signed, paginate, to_signed
from .connection import open_connection
from .errors import DecodeError, ModbusIOError
from .poller import DEFAULT_INTERVAL, PollLoop, ScanEvent, scan_once
from .types import FunctionCode, Parity, ScanRequest, ScanResult, TransportConfig
from .writer import WriteCoordinator

app = typer.Typer(
    name="modscan",
    help="Poll, read and write Modbus RTU/TCP devices.",
    no_args_is_help=True,
)

logger = logging.getLogger(__name__)

# ============================================================================
# Shared options and helpers
# ============================================================================

HostOption = Annotated[
    Optional[str],
    typer.Option("--host", "-h", help="Device hostname or IP address (Modbus TCP)", envvar="MODSCAN_HOST"),
]
PortOption = Annotated[
    int,
    typer.Option("--port", "-p", help="Modbus TCP port", envvar="MODSCAN_PORT"),
]
SerialPortOption = Annotated[
    Optional[str],
    typer.Option("--serial-port", "-s", help="Serial device, e.g. COM1 or /dev/ttyUSB0 (Modbus RTU)", envvar="MODSCAN_SERIAL_PORT"),
]
BaudrateOption = Annotated[
    int,
    typer.Option("--baudrate", "-b", help="Serial baud rate", envvar="MODSCAN_BAUDRATE"),
]
BytesizeOption = Annotated[
    int,
    typer.Option("--bytesize", help="Serial data bits", envvar="MODSCAN_BYTESIZE"),
]
ParityOption = Annotated[
    str,
    typer.Option("--parity", help="Serial parity: N, E, O (or none/even/odd)", envvar="MODSCAN_PARITY"),
]
StopbitsOption = Annotated[
    int,
    typer.Option("--stopbits", help="Serial stop bits (1 or 2)", envvar="MODSCAN_STOPBITS"),
]
SlaveIdOption = Annotated[
    int,
    typer.Option("--slave-id", "-u", help="Modbus slave/unit ID", envvar="MODSCAN_SLAVE_ID"),
]
TimeoutOption = Annotated[
    float,
    typer.Option("--timeout", "-t", help="Transaction timeout in seconds", envvar="MODSCAN_TIMEOUT"),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable debug logging"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output as JSON"),
]
SignedOption = Annotated[
    bool,
    typer.Option("--signed", help="Interpret register values as signed 16-bit integers"),
]
FunctionArgument = Annotated[
    int,
    typer.Argument(help="Function code: 1 coils, 2 discrete inputs, 3 holding registers, 4 input registers"),
]
StartArgument = Annotated[int, typer.Argument(help="First register address (e.g. 500)")]
CountArgument = Annotated[int, typer.Argument(help="Number of registers/bits to read")]


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbose flag."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if not verbose else "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def create_config(
    host: Optional[str],
    port: int,
    serial_port: Optional[str],
    baudrate: int,
    bytesize: int,
    parity: str,
    stopbits: int,
    slave_id: int,
    timeout: float,
) -> TransportConfig:
    """Build a TransportConfig from CLI options; exits with code 2 on invalid input."""
    if bool(host) == bool(serial_port):
        typer.echo("Error: exactly one of --host (TCP) or --serial-port (RTU) is required", err=True)
        raise typer.Exit(2)
    try:
        if host:
            return TransportConfig.tcp(host, port, slave_id=slave_id, timeout=timeout)
        return TransportConfig.rtu(
            serial_port,
            baudrate=baudrate,
            bytesize=bytesize,
            parity=Parity.parse(parity),
            stopbits=stopbits,
            slave_id=slave_id,
            timeout=timeout,
        )
    except ValueError as e:
        typer.echo(f"Error: Invalid transport settings: {e}", err=True)
        raise typer.Exit(2)


def create_request(function: int, start: int, count: int) -> ScanRequest:
    """Build a ScanRequest; exits with code 2 on unsupported function or bad range."""
    try:
        return ScanRequest(function, start, count)
    except ValueError as e:
        typer.echo(f"Error: Invalid request: {e}", err=True)
        raise typer.Exit(2)


def parse_int(value: str, signed: bool = False) -> int:
    """Parse integer value from string, supporting hex and validation."""
    v = value.strip()
    # Parse hex if starts with 0x
    if v.lower().startswith("0x"):
        num = int(v, 16)
    else:
        num = int(v)

    # Validate range
    if signed:
        if not (-32768 <= num <= 32767):
            raise ValueError(f"Signed 16-bit integer out of range: {num}")
    else:
        if not (0 <= num <= 65535):
            raise ValueError(f"Unsigned 16-bit integer out of range: {num}")

    return num


def result_dict(result: ScanResult, signed: bool = False) -> dict[str, Any]:
    """JSON object for a result; register values converted to signed 16-bit when asked."""
    data = result.as_dict()
    if signed:
        data["values"] = {
            str(v.address): v.value if v.is_bit else to_signed(v.value) for v in result.values
        }
    return data


def format_result_lines(result: ScanResult, signed: bool = False) -> list[str]:
    """One line per register in the style `Register 500: 10`."""
    return [f"Register {v.address}: {format_value(v.value, signed)}" for v in result.values]


def format_bits_lines(address: int, value: int, bits: list[bool]) -> list[str]:
    lines = [f"Register {address}: {value} (0x{value:04X})"]
    lines.extend(f"Bit {i}: {'ON' if on else 'OFF'}" for i, on in enumerate(bits))
    return lines


def fail(e: Exception, verbose: bool) -> NoReturn:
    """Report an error and exit with the matching code."""
    if isinstance(e, ModbusIOError):
        typer.echo(f"Error: Connection/Modbus error: {e}", err=True)
        raise typer.Exit(3)
    if isinstance(e, DecodeError):
        typer.echo(f"Error: Bad response: {e}", err=True)
        raise typer.Exit(3)
    typer.echo(f"Error: Unexpected error: {e}", err=True)
    if verbose:
        import traceback
        traceback.print_exc()
    raise typer.Exit(4)


# ============================================================================
# Commands
# ============================================================================

@app.command()
def ping(
    host: HostOption = None,
    port: PortOption = 502,
    serial_port: SerialPortOption = None,
    baudrate: BaudrateOption = 9600,
    bytesize: BytesizeOption = 8,
    parity: ParityOption = "E",
    stopbits: StopbitsOption = 1,
    slave_id: SlaveIdOption = 1,
    timeout: TimeoutOption = 1.0,
    verbose: VerboseOption = False,
) -> None:
    """
    Test connectivity by reading holding register 0 once.
    """
    setup_logging(verbose)
    config = create_config(host, port, serial_port, baudrate, bytesize, parity, stopbits, slave_id, timeout)

    try:
        scan_once(config, ScanRequest(FunctionCode.READ_HOLDING_REGISTERS, 0, 1), open_connection)
    except Exception as e:
        fail(e, verbose)
    typer.echo(f"OK: Connected to {config.describe()}")


@app.command()
def read(
    function: FunctionArgument,
    start: StartArgument,
    count: CountArgument = 1,
    host: HostOption = None,
    port: PortOption = 502,
    serial_port: SerialPortOption = None,
    baudrate: BaudrateOption = 9600,
    bytesize: BytesizeOption = 8,
    parity: ParityOption = "E",
    stopbits: StopbitsOption = 1,
    slave_id: SlaveIdOption = 1,
    timeout: TimeoutOption = 1.0,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
    signed: SignedOption = False,
) -> None:
    """
    Read COUNT registers or bits starting at START with one transaction.

    Bits print as ON/OFF, registers as decimal (use --signed for 16-bit signed).
    """
    setup_logging(verbose)
    config = create_config(host, port, serial_port, baudrate, bytesize, parity, stopbits, slave_id, timeout)
    request = create_request(function, start, count)

    try:
        result = scan_once(config, request, open_connection)
    except Exception as e:
        fail(e, verbose)

    if json_output:
        typer.echo(json.dumps(result_dict(result, signed)))
    else:
        for line in format_result_lines(result, signed):
            typer.echo(line)


@app.command()
def scan(
    function: FunctionArgument,
    start: StartArgument,
    count: CountArgument = 1,
    host: HostOption = None,
    port: PortOption = 502,
    serial_port: SerialPortOption = None,
    baudrate: BaudrateOption = 9600,
    bytesize: BytesizeOption = 8,
    parity: ParityOption = "E",
    stopbits: StopbitsOption = 1,
    slave_id: SlaveIdOption = 1,
    timeout: TimeoutOption = 1.0,
    verbose: VerboseOption = False,
    signed: SignedOption = False,
    interval: Annotated[
        float,
        typer.Option("--interval", "-i", help="Seconds between cycles", envvar="MODSCAN_INTERVAL"),
    ] = DEFAULT_INTERVAL,
    cycles: Annotated[int, typer.Option("--cycles", "-n", help="Stop after N cycles (0 = until Ctrl+C)")] = 0,
    format: Annotated[str, typer.Option("--format", "-f", help="Output format: text, json, csv")] = "text",
    page_size: Annotated[int, typer.Option("--page-size", help="Values per line in text output")] = DEFAULT_PAGE_SIZE,
) -> None:
    """
    Poll the device continuously, one transaction per cycle.

    Output formats:
    - text: timestamp + address=value pairs, PAGE_SIZE values per line (default)
    - json: NDJSON, one object per cycle
    - csv: addresses as columns, one row per cycle

    Failed cycles are reported on stderr (as NDJSON error objects on stdout with
    --format json) and polling continues.
    Press Ctrl+C to stop gracefully.
    """
    setup_logging(verbose)

    if format not in ("text", "json", "csv"):
        typer.echo(f"Error: Invalid format '{format}'. Must be text, json, or csv.", err=True)
        raise typer.Exit(2)

    if interval <= 0:
        typer.echo(f"Error: Interval must be positive, got {interval}", err=True)
        raise typer.Exit(2)

    if cycles < 0 or page_size < 1:
        typer.echo("Error: --cycles must be >= 0 and --page-size >= 1", err=True)
        raise typer.Exit(2)

    config = create_config(host, port, serial_port, baudrate, bytesize, parity, stopbits, slave_id, timeout)
    request = create_request(function, start, count)

    done = threading.Event()
    published = 0

    def sink(event: ScanEvent) -> None:
        nonlocal published
        if isinstance(event, ScanResult):
            timestamp = event.timestamp.isoformat()
            if format == "text":
                for page in paginate(event.values, page_size):
                    pairs = " ".join(f"{v.address}={format_value(v.value, signed)}" for v in page)
                    typer.echo(f"{timestamp} {pairs}")
            elif format == "json":
                typer.echo(json.dumps(result_dict(event, signed)))
            else:
                values = [format_value(v.value, signed) for v in event.values]
                typer.echo(timestamp + "," + ",".join(values))
        elif format == "json":
            typer.echo(json.dumps(event.as_dict()))
        else:
            typer.echo(f"Error: {event.kind}: {event.message}", err=True)
        published += 1
        if cycles and published >= cycles:
            done.set()

    if format == "csv":
        typer.echo("timestamp," + ",".join(str(a) for a in request.addresses))

    loop = PollLoop(sink, interval=interval, connector=open_connection)
    try:
        loop.start(config, request)
        while not done.wait(0.2):
            pass
    except KeyboardInterrupt:
        typer.echo("\nStopped by user", err=True)
    finally:
        loop.stop()


@app.command()
def write(
    address: Annotated[int, typer.Argument(help="Holding register address")],
    value: Annotated[str, typer.Argument(help="Value to write (decimal or 0x hex)")],
    host: HostOption = None,
    port: PortOption = 502,
    serial_port: SerialPortOption = None,
    baudrate: BaudrateOption = 9600,
    bytesize: BytesizeOption = 8,
    parity: ParityOption = "E",
    stopbits: StopbitsOption = 1,
    slave_id: SlaveIdOption = 1,
    timeout: TimeoutOption = 1.0,
    verbose: VerboseOption = False,
    signed: SignedOption = False,
) -> None:
    """
    Write a value to a single holding register (function 6).

    Accepts integers (decimal or hex with 0x prefix).
    Use --signed to allow negative values (-32768 to 32767).
    """
    setup_logging(verbose)
    config = create_config(host, port, serial_port, baudrate, bytesize, parity, stopbits, slave_id, timeout)

    try:
        parsed_value = parse_int(value, signed)
    except ValueError as e:
        typer.echo(f"Error: Invalid value: {e}", err=True)
        raise typer.Exit(2)
    # Convert signed to unsigned for Modbus
    if signed and parsed_value < 0:
        parsed_value = from_signed(parsed_value)

    try:
        result = WriteCoordinator(connector=open_connection).write(config, address, parsed_value)
    except ValueError as e:
        typer.echo(f"Error: Invalid value: {e}", err=True)
        raise typer.Exit(2)
    except Exception as e:
        fail(e, verbose)
    typer.echo(f"OK: {result.message}")


@app.command()
def bits(
    address: Annotated[int, typer.Argument(help="Holding register address")],
    host: HostOption = None,
    port: PortOption = 502,
    serial_port: SerialPortOption = None,
    baudrate: BaudrateOption = 9600,
    bytesize: BytesizeOption = 8,
    parity: ParityOption = "E",
    stopbits: StopbitsOption = 1,
    slave_id: SlaveIdOption = 1,
    timeout: TimeoutOption = 1.0,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """
    Read a holding register and show its 16 bits (bit 0 = least significant).
    """
    setup_logging(verbose)
    config = create_config(host, port, serial_port, baudrate, bytesize, parity, stopbits, slave_id, timeout)

    try:
        editor = BitFieldEditor(config, address, connector=open_connection)
        values = editor.read()
    except ValueError as e:
        typer.echo(f"Error: Invalid address: {e}", err=True)
        raise typer.Exit(2)
    except Exception as e:
        fail(e, verbose)

    if json_output:
        typer.echo(json.dumps({"address": address, "value": editor.value, "bits": values}))
    else:
        for line in format_bits_lines(address, editor.value, values):
            typer.echo(line)


@app.command(name="set-bits")
def set_bits(
    address: Annotated[int, typer.Argument(help="Holding register address")],
    set_: Annotated[Optional[list[int]], typer.Option("--set", help="Bit index to turn on (repeatable)")] = None,
    clear: Annotated[Optional[list[int]], typer.Option("--clear", help="Bit index to turn off (repeatable)")] = None,
    host: HostOption = None,
    port: PortOption = 502,
    serial_port: SerialPortOption = None,
    baudrate: BaudrateOption = 9600,
    bytesize: BytesizeOption = 8,
    parity: ParityOption = "E",
    stopbits: StopbitsOption = 1,
    slave_id: SlaveIdOption = 1,
    timeout: TimeoutOption = 1.0,
    verbose: VerboseOption = False,
) -> None:
    """
    Read a holding register, turn the given bits on/off, and write it back.
    """
    setup_logging(verbose)
    config = create_config(host, port, serial_port, baudrate, bytesize, parity, stopbits, slave_id, timeout)

    if not set_ and not clear:
        typer.echo("Error: at least one --set or --clear bit is required", err=True)
        raise typer.Exit(2)

    try:
        editor = BitFieldEditor(config, address, connector=open_connection)
        editor.read()
        before = editor.value
        for index in set_ or []:
            editor.set_bit(index, True)
        for index in clear or []:
            editor.set_bit(index, False)
        result = editor.write()
    except (ValueError, IndexError) as e:
        typer.echo(f"Error: Invalid input: {e}", err=True)
        raise typer.Exit(2)
    except Exception as e:
        fail(e, verbose)

    typer.echo(f"Register {address}: 0x{before:04X} -> 0x{result.value:04X}")
    typer.echo(f"OK: {result.message}")


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"modbus-scanner {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version and exit"),
    ] = None,
) -> None:
    """modscan - poll, read and write Modbus RTU/TCP devices."""
    pass


if __name__ == "__main__":
    app()
