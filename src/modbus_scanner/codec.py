"""Register codec: raw Modbus payload bytes to typed values, bit fields, labels and pages."""

import struct
from typing import Sequence, TypeVar

from .errors import DecodeError
from .types import FunctionCode, RegisterValue

T = TypeVar("T")

BITS_PER_REGISTER = 16
DEFAULT_PAGE_SIZE = 20


def decode_registers(data: bytes, count: int) -> list[int]:
    """
    Decode count big-endian 16-bit words from data ([hi, lo] per word).

    Raises DecodeError when data is shorter than 2 * count; extra trailing bytes are ignored.
    """
    needed = 2 * count
    if len(data) < needed:
        raise DecodeError(needed, len(data))
    return list(struct.unpack(f">{count}H", bytes(data[:needed])))


def decode_bits(data: bytes, count: int) -> list[bool]:
    """
    Unpack count bits, LSB first: bit i comes from byte i // 8, bit i % 8.

    Raises DecodeError when data is shorter than ceil(count / 8).
    """
    needed = (count + 7) // 8
    if len(data) < needed:
        raise DecodeError(needed, len(data))
    return [bool((data[i // 8] >> (i % 8)) & 1) for i in range(count)]


def decode(function: FunctionCode, data: bytes, count: int) -> list[bool] | list[int]:
    """Decode a read response payload according to its function code."""
    if function.is_bit_read:
        return decode_bits(data, count)
    return decode_registers(data, count)


def decode_bits_of(value: int) -> list[bool]:
    """Split a 16-bit register value into 16 booleans, bit 0 = least significant."""
    if not 0 <= value <= 0xFFFF:
        raise ValueError(f"Register value out of range 0..65535: {value}")
    return [bool((value >> i) & 1) for i in range(BITS_PER_REGISTER)]


def encode_bits_of(bits: Sequence[bool]) -> int:
    """Recombine 16 booleans (bit 0 first) into a register value."""
    if len(bits) != BITS_PER_REGISTER:
        raise ValueError(f"Expected {BITS_PER_REGISTER} bits, got {len(bits)}")
    value = 0
    for i, on in enumerate(bits):
        if on:
            value |= 1 << i
    return value


def label(start: int, values: Sequence[bool | int]) -> tuple[RegisterValue, ...]:
    """Pair each value with its absolute address start + index."""
    return tuple(RegisterValue(address=start + i, value=v) for i, v in enumerate(values))


def paginate(items: Sequence[T], page_size: int = DEFAULT_PAGE_SIZE) -> list[list[T]]:
    """Split an ordered sequence into consecutive pages of page_size (last page may be short)."""
    if page_size < 1:
        raise ValueError(f"page_size must be >= 1, got {page_size}")
    return [list(items[i : i + page_size]) for i in range(0, len(items), page_size)]


def to_signed(value: int) -> int:
    """Convert unsigned 16-bit to signed."""
    if value > 32767:
        return value - 65536
    return value


def from_signed(value: int) -> int:
    """Convert signed 16-bit to unsigned."""
    if value < 0:
        return value + 65536
    return value


def format_value(value: bool | int, signed: bool = False) -> str:
    """Format a decoded value for display: ON/OFF for bits, decimal for registers."""
    if isinstance(value, bool):
        return "ON" if value else "OFF"
    if signed:
        return str(to_signed(value))
    return str(value)
