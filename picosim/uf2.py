"""Parser for UF2 firmware images."""

from __future__ import annotations

import struct
from collections.abc import Iterator
from dataclasses import dataclass

BLOCK_SIZE = 512
MAGIC_START0 = 0x0A32_4655
MAGIC_START1 = 0x9E5D_5157
MAGIC_END = 0x0AB1_6F30

FLAG_FAMILY_ID_PRESENT = 0x2000
_PAYLOAD_START = 32
_PAYLOAD_END = 508

_HEADER = struct.Struct("<8I")
_TRAILER = struct.Struct("<I")


class InvalidUf2FileError(ValueError):
    """Raised when data is not a well-formed UF2 image."""

    def __init__(self, message: str = "Invalid UF2 file") -> None:
        super().__init__(message)


@dataclass(frozen=True)
class Uf2Block:
    """One 512-byte block of a UF2 image."""

    flags: int
    target_addr: int
    block_no: int
    num_blocks: int
    data: bytes
    family_id: int | None = None

    def is_flashable(self) -> bool:
        """Whether the block is meant to be written to the target device."""
        return self.flags & 1 != 0


def _parse_block(chunk: bytes) -> Uf2Block | None:
    (
        magic0,
        magic1,
        flags,
        target_addr,
        payload_size,
        block_no,
        num_blocks,
        family_or_size,
    ) = _HEADER.unpack_from(chunk, 0)
    (magic_end,) = _TRAILER.unpack_from(chunk, _PAYLOAD_END)

    if (magic0, magic1, magic_end) != (MAGIC_START0, MAGIC_START1, MAGIC_END):
        return None

    family_id = family_or_size if flags & FLAG_FAMILY_ID_PRESENT else None
    payload = bytes(chunk[_PAYLOAD_START:_PAYLOAD_END][:payload_size])

    return Uf2Block(
        flags=flags,
        target_addr=target_addr,
        block_no=block_no,
        num_blocks=num_blocks,
        data=payload,
        family_id=family_id,
    )


def _iter_blocks(data: memoryview) -> Iterator[Uf2Block]:
    for start in range(0, len(data), BLOCK_SIZE):
        block = _parse_block(data[start : start + BLOCK_SIZE])
        if block is not None:
            yield block


def read_uf2(data: bytes | bytearray | memoryview) -> Iterator[Uf2Block]:
    """Return an iterator over the valid blocks of a UF2 image.

    Blocks whose magic numbers do not match are skipped. Raises
    InvalidUf2FileError at once if the length is not a multiple of 512.
    """
    view = memoryview(bytes(data))
    if len(view) % BLOCK_SIZE != 0:
        raise InvalidUf2FileError()
    return _iter_blocks(view)