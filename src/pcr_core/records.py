"""Frame record codec.

A record is bracketed by two copies of its body size so that a reader can
hop over it in either direction:

    [size:4][index:4][time:8][info][depths][colors][size:4]
"""
from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import BinaryIO, Optional

import numpy as np

from pcr_core.errors import FormatError
from pcr_core.fields import (
    read_exact,
    read_field,
    pack_time,
    read_u32,
    seek_to,
    unpack_time,
    write_all,
    write_field,
    write_u32,
)
from pcr_core.protocol import (
    COLOR_CHANNELS,
    DEPTH_DTYPE,
    DEPTH_ITEM_LEN,
    MAX_INFO_SIZE,
    RECORD_OVERHEAD,
    RECORD_PREFIX_LEN,
    SIZE_LEN,
    U32_FMT,
)


@dataclass
class FrameRecord:
    index: int
    time: float
    size: int
    info: Optional[str] = None
    depths: Optional[np.ndarray] = None
    colors: Optional[np.ndarray] = None

    @property
    def point_count(self) -> int:
        return 0 if self.depths is None else int(self.depths.size)


def body_size(info_len: int, count: int) -> int:
    return RECORD_OVERHEAD + info_len + count * DEPTH_ITEM_LEN + count * COLOR_CHANNELS


def record_length(size: int) -> int:
    """Bytes occupied on storage by a record with body `size`."""
    return size + 2 * SIZE_LEN


def write_record(
    f: BinaryIO,
    index: int,
    time: float,
    info: bytes,
    depths: bytes,
    colors: bytes,
) -> int:
    """Append one record at the current position and return its body size."""
    count = len(depths) // DEPTH_ITEM_LEN
    size = body_size(len(info), count)

    write_u32(f, size, "leading size")
    write_all(f, struct.pack(U32_FMT, index) + pack_time(time), "record prefix")
    write_field(f, info, len(info))
    write_field(f, depths, len(depths))
    write_field(f, colors, len(colors))
    write_u32(f, size, "trailing size")
    return size


def read_record(f: BinaryIO, skip: bool = False) -> FrameRecord:
    """Read the record starting at the current position.

    With `skip` only index, time and size are decoded and the payload is
    stepped over. Either way the position ends past the trailing size.
    """
    size = read_u32(f, "leading size")
    if size < RECORD_OVERHEAD:
        raise FormatError(f"Record size {size} below minimum {RECORD_OVERHEAD}")
    prefix = read_exact(f, RECORD_PREFIX_LEN, "record prefix")
    index = struct.unpack(U32_FMT, prefix[:SIZE_LEN])[0]
    time = unpack_time(prefix[SIZE_LEN:])

    if skip:
        seek_to(f, size - RECORD_PREFIX_LEN + SIZE_LEN, 1)
        return FrameRecord(index, time, size)

    info = read_field(f, MAX_INFO_SIZE)
    depths = read_field(f)
    colors = read_field(f)

    trailing = read_u32(f, "trailing size")
    if trailing != size:
        raise FormatError(f"Frame {index}: trailing size {trailing} != leading size {size}")
    if RECORD_OVERHEAD + len(info) + len(depths) + len(colors) != size:
        raise FormatError(f"Frame {index}: field lengths do not add up to size {size}")
    if len(depths) % DEPTH_ITEM_LEN or len(colors) != len(depths) // DEPTH_ITEM_LEN * COLOR_CHANNELS:
        raise FormatError(
            f"Frame {index}: depths ({len(depths)} bytes) and colors ({len(colors)} bytes) disagree"
        )
    try:
        text = info.decode("utf-8")
    except UnicodeDecodeError as e:
        raise FormatError(f"Frame {index}: info is not UTF-8 text: {e}") from e

    return FrameRecord(
        index,
        time,
        size,
        info=text,
        depths=np.frombuffer(depths, dtype=DEPTH_DTYPE).astype(np.float32),
        colors=np.frombuffer(colors, dtype=np.uint8).copy(),
    )
