"""Container header: fixed preamble read once at open, patched on write."""
from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import BinaryIO

from pcr_core.errors import FormatError
from pcr_core.fields import (
    bits_to_time,
    flush,
    pack_time,
    read_exact,
    seek_to,
    time_to_bits,
    write_all,
    write_u32,
)
from pcr_core.protocol import (
    FRAME_COUNT_OFFSET,
    HEADER_FMT,
    HEADER_LEN,
    MAGIC,
    VERSION,
    U32_FMT,
)


@dataclass
class ContainerHeader:
    version: int = VERSION
    frame_count: int = 0
    start_time: float = 0.0
    end_time: float = 0.0

    def pack(self) -> bytes:
        return struct.pack(
            HEADER_FMT,
            MAGIC,
            self.version,
            self.frame_count,
            time_to_bits(self.start_time),
            time_to_bits(self.end_time),
        )

    @classmethod
    def unpack(cls, raw: bytes) -> "ContainerHeader":
        if len(raw) < len(MAGIC) or raw[: len(MAGIC)] != MAGIC:
            raise FormatError(f"Invalid container magic {raw[:len(MAGIC)]!r}")
        if len(raw) != HEADER_LEN:
            raise FormatError(f"Truncated container header: {len(raw)} of {HEADER_LEN} bytes")
        _, ver, count, st, et = struct.unpack(HEADER_FMT, raw)
        return cls(ver, count, bits_to_time(st), bits_to_time(et))


def write_header(f: BinaryIO, header: ContainerHeader) -> None:
    seek_to(f, 0)
    write_all(f, header.pack(), "container header")
    flush(f)


def read_header(f: BinaryIO) -> ContainerHeader:
    seek_to(f, 0)
    magic = read_exact(f, len(MAGIC), "container magic")
    if magic != MAGIC:
        raise FormatError(f"Invalid container magic {magic!r}")
    rest = read_exact(f, HEADER_LEN - len(MAGIC), "container header")
    return ContainerHeader.unpack(magic + rest)


def patch_frame_count(f: BinaryIO, count: int) -> None:
    seek_to(f, FRAME_COUNT_OFFSET)
    write_u32(f, count, "frame count")


def patch_header(f: BinaryIO, header: ContainerHeader) -> None:
    """Rewrite count, start and end time in place."""
    seek_to(f, FRAME_COUNT_OFFSET)
    write_all(
        f,
        struct.pack(U32_FMT, header.frame_count)
        + pack_time(header.start_time)
        + pack_time(header.end_time),
        "header counters",
    )
