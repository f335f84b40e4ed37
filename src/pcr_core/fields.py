"""Length-prefixed field codec and exact-size I/O helpers."""
from __future__ import annotations

import struct
from typing import BinaryIO

from pcr_core.errors import FormatError, StorageError
from pcr_core.protocol import FIELD_LEN_FMT, SIZE_LEN, TIME_FMT, U32_FMT


def read_exact(f: BinaryIO, size: int, what: str = "data") -> bytes:
    """Read exactly `size` bytes or fail.

    A short read means the container ends early and is reported as a format
    problem. Faults of the storage itself surface as StorageError.
    """
    try:
        data = f.read(size)
    except OSError as e:
        raise StorageError(f"Read of {what} failed: {e}") from e
    if len(data) != size:
        raise FormatError(f"Truncated {what}: wanted {size} bytes, got {len(data)}")
    return data


def write_all(f: BinaryIO, data: bytes, what: str = "data") -> None:
    try:
        written = f.write(data)
    except OSError as e:
        raise StorageError(f"Write of {what} failed: {e}") from e
    if written is not None and written != len(data):
        raise StorageError(f"Short write of {what}: {written} of {len(data)} bytes")


def seek_to(f: BinaryIO, offset: int, whence: int = 0) -> int:
    try:
        return f.seek(offset, whence)
    except (OSError, ValueError) as e:
        raise StorageError(f"Seek to {offset} (whence={whence}) failed: {e}") from e


def read_u32(f: BinaryIO, what: str = "u32") -> int:
    return struct.unpack(U32_FMT, read_exact(f, SIZE_LEN, what))[0]


def write_u32(f: BinaryIO, value: int, what: str = "u32") -> None:
    write_all(f, struct.pack(U32_FMT, value), what)


def time_to_bits(value: float) -> int:
    """Reinterpret a double as its 64-bit integer pattern (no conversion)."""
    return struct.unpack("=Q", struct.pack("=d", value))[0]


def bits_to_time(bits: int) -> float:
    return struct.unpack("=d", struct.pack("=Q", bits))[0]


def pack_time(value: float) -> bytes:
    """Byte-swap the bit pattern of `value` into network order."""
    return struct.pack(TIME_FMT, time_to_bits(value))


def unpack_time(raw: bytes) -> float:
    return bits_to_time(struct.unpack(TIME_FMT, raw)[0])


def read_field(f: BinaryIO, max_size: int = 0) -> bytes:
    """Read one length-prefixed field and return its payload.

    The length must be positive. When `max_size` is non-zero the field may
    not be longer than that.
    """
    length = struct.unpack(FIELD_LEN_FMT, read_exact(f, SIZE_LEN, "field length"))[0]
    if length <= 0:
        raise FormatError(f"Invalid field length {length}")
    if max_size and length > max_size:
        raise FormatError(f"Field length {length} exceeds limit {max_size}")
    return read_exact(f, length, "field payload")


def text_payload(data: bytes | str) -> bytes:
    """Payload of a text field: UTF-8 encoded, cut at the first NUL."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return bytes(data).split(b"\x00", 1)[0]


def write_field(f: BinaryIO, data: bytes | str, length: int = 0) -> int:
    """Write a length-prefixed field and return the payload length.

    A zero `length` treats `data` as text whose length comes from its content.
    """
    if length == 0:
        payload = text_payload(data)
    else:
        if isinstance(data, str):
            data = data.encode("utf-8")
        if len(data) < length:
            raise FormatError(f"Field payload has {len(data)} bytes, {length} requested")
        payload = bytes(data[:length])

    write_all(f, struct.pack(FIELD_LEN_FMT, len(payload)), "field length")
    write_all(f, payload, "field payload")
    return len(payload)


def flush(f: BinaryIO) -> None:
    try:
        f.flush()
    except OSError as e:
        raise StorageError(f"Flush failed: {e}") from e
