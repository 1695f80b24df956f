"""Disassembly listing with address lookup and breakpoints."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

_U32_MAX = 0xFFFF_FFFF
_HEX_NUMBER = re.compile(r"\+?[0-9a-fA-F]+")


def _parse_hex_u32(text: str) -> int | None:
    if not _HEX_NUMBER.fullmatch(text):
        return None
    value = int(text, 16)
    return value if value <= _U32_MAX else None


def _split_lines(text: str) -> list[str]:
    """Split text into lines on '\\n', dropping a '\\r' that precedes it."""
    if not text:
        return []
    pieces = text.split("\n")
    ended_with_newline = pieces[-1] == ""
    if ended_with_newline:
        pieces.pop()
    lines = []
    last = len(pieces) - 1
    for position, piece in enumerate(pieces):
        terminated = position < last or ended_with_newline
        if terminated and piece.endswith("\r"):
            piece = piece[:-1]
        lines.append(piece)
    return lines


def parse_addr(line: str) -> int | None:
    """Address at the start of a listing line such as ``1000:  nop``.

    The text before the first colon, without leading whitespace, must be a
    hexadecimal number that fits in 32 bits; otherwise None.
    """
    if ":" not in line:
        return None
    head = line.split(":", 1)[0].lstrip()
    return _parse_hex_u32(head)


@dataclass
class Disassembler:
    """A disassembly listing that maps program-counter values to lines."""

    base_lines: tuple[str, ...] = ()
    lines: list[str] = field(default_factory=list)
    breakpoints: set[int] = field(default_factory=set)
    pc_to_line: dict[int, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.base_lines = tuple(self.base_lines)
        if not self.lines:
            self.lines = list(self.base_lines)

    def update_file(self, text: str) -> None:
        """Replace the listing with the base lines followed by ``text``."""
        self.lines = [*self.base_lines, *_split_lines(text)]
        self._rebuild_map(self.lines)

    def _rebuild_map(self, lines: Iterable[str]) -> None:
        self.pc_to_line = {}
        for index, line in enumerate(lines):
            addr = parse_addr(line)
            if addr is not None:
                self.pc_to_line[addr] = index

    def add_breakpoint(self, addr: int) -> None:
        self.breakpoints.add(addr)

    def remove_breakpoint(self, addr: int) -> None:
        self.breakpoints.discard(addr)

    def has_breakpoint(self, addr: int) -> bool:
        return addr in self.breakpoints

    def clear_breakpoints(self) -> None:
        self.breakpoints.clear()

    def line_for_address(self, addr: int) -> int | None:
        """Index of the listing line for an address, if it is known."""
        return self.pc_to_line.get(addr)

    def jump_to(self, text: str) -> int | None:
        """Line index for a typed hex address (``0x`` prefixes allowed)."""
        while text.startswith("0x"):
            text = text[2:]
        addr = _parse_hex_u32(text)
        if addr is None:
            return None
        return self.line_for_address(addr)