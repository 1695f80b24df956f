"""Text formatting of numbers, memory contents and register names."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

_U8_MAX = 0xFF
_U32_MAX = 0xFFFF_FFFF
_HEX_DIGITS = re.compile(r"\+?[0-9a-fA-F]+")

_SIMPLE_ESCAPES = {
    "\t": "\\t",
    "\r": "\\r",
    "\n": "\\n",
    "\\": "\\\\",
    "'": "\\'",
    '"': '\\"',
}

_RISCV_ABI_NAMES = (
    "zero", "ra", "sp", "gp", "tp", "t0", "t1", "t2",
    "s0", "s1", "a0", "a1", "a2", "a3", "a4", "a5",
    "a6", "a7", "s2", "s3", "s4", "s5", "s6", "s7",
    "s8", "s9", "s10", "s11", "t3", "t4", "t5", "t6",
)


def _escape_default(ch: str) -> str:
    if ch in _SIMPLE_ESCAPES:
        return _SIMPLE_ESCAPES[ch]
    code = ord(ch)
    if 0x20 <= code <= 0x7E:
        return ch
    return f"\\u{{{code:x}}}"


def _check_range(value: int, maximum: int) -> None:
    if not 0 <= value <= maximum:
        raise ValueError(f"value {value} out of range 0..={maximum}")


class DisplayMode(Enum):
    """How an integer is rendered as text."""

    BINARY = "Binary"
    DECIMAL = "Decimal"
    HEXADECIMAL = "Hexadecimal"
    CHARACTER = "Character"

    def fmt_u8(self, value: int) -> str:
        """Format an unsigned byte."""
        _check_range(value, _U8_MAX)
        if self is DisplayMode.BINARY:
            return f"{value:08b}"
        if self is DisplayMode.DECIMAL:
            return f"{value:03}"
        if self is DisplayMode.HEXADECIMAL:
            return f"{value:02X}"
        return _escape_default(chr(value))

    def fmt_u32(self, value: int) -> str:
        """Format an unsigned 32-bit word."""
        _check_range(value, _U32_MAX)
        if self is DisplayMode.BINARY:
            return f"{value:032b}"
        if self is DisplayMode.DECIMAL:
            return f"{value:010}"
        if self is DisplayMode.HEXADECIMAL:
            return f"{value:08X}"
        if 0xD800 <= value <= 0xDFFF or value > 0x10FFFF:
            return f"0x{value:08X}"
        return _escape_default(chr(value))


@dataclass
class MemoryView:
    """Row-oriented textual view of a block of memory."""

    offset: int = 0
    bytes_per_row: int = 16
    display_mode: DisplayMode = field(default=DisplayMode.HEXADECIMAL)

    def __post_init__(self) -> None:
        if self.bytes_per_row <= 0:
            raise ValueError("bytes_per_row must be positive")

    def _row(self, memory: bytes, row_index: int) -> bytes:
        start = row_index * self.bytes_per_row
        return bytes(memory[start : start + self.bytes_per_row])

    def num_rows(self, memory: bytes) -> int:
        """Number of rows needed to show all of memory."""
        return -(-len(memory) // self.bytes_per_row)

    def row_offset(self, row_index: int) -> str:
        """Address of the first byte of a row, as eight hex digits."""
        return f"{self.offset + row_index * self.bytes_per_row:08X}"

    def row_values(self, memory: bytes, row_index: int) -> str:
        """The row's bytes in the current display mode, each followed by a space."""
        return "".join(
            f"{self.display_mode.fmt_u8(byte)} " for byte in self._row(memory, row_index)
        )

    def row_ascii(self, memory: bytes, row_index: int) -> str:
        """The row's bytes as printable ASCII, '.' for anything else."""
        return "".join(
            chr(byte) if 0x20 <= byte <= 0x7E else "."
            for byte in self._row(memory, row_index)
        )

    def row_for_address(self, address: int) -> int:
        """Row that holds the given address."""
        return address // self.bytes_per_row

    def parse_address(self, text: str) -> int | None:
        """Parse a hex address, with optional 0x prefixes; None if invalid."""
        while text.startswith("0x"):
            text = text[2:]
        if not _HEX_DIGITS.fullmatch(text):
            return None
        value = int(text, 16)
        return value if value <= _U32_MAX else None


def format_memory_length(size: int) -> str:
    """Human-readable size in B, KiB or MiB, rounded down."""
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size >> 10} KiB"
    return f"{size >> 20} MiB"


def riscv_register_name(register: int, with_convention: bool) -> str:
    """Name of a RISC-V integer register, plain (x5) or by ABI convention (t0)."""
    if not with_convention:
        return f"x{register}"
    if 0 <= register < len(_RISCV_ABI_NAMES):
        return _RISCV_ABI_NAMES[register]
    return "unknown"