"""Point-cloud recorder: append frames, navigate them by index or time.

Navigation never uses an index structure. The recorder keeps an explicit
cursor (the record it sits on and the byte after it) and hops across record
boundaries using the leading/trailing size markers. A seek picks the
cheapest of three walks: from the first record, from the end of storage,
or from the cursor.

The recorder is not thread-safe. Callers sharing one instance must hold an
exclusive lock for the duration of every call.
"""
from __future__ import annotations

import bisect
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator, Optional
from warnings import warn

import numpy as np

from pcr_core.errors import FormatError, InvalidStateError, PointCloudError, StorageError
from pcr_core.fields import flush, read_u32, seek_to, text_payload
from pcr_core.header import ContainerHeader, patch_frame_count, patch_header, read_header, write_header
from pcr_core.protocol import (
    COLOR_CHANNELS,
    DEPTH_DTYPE,
    HEADER_LEN,
    MAX_INFO_SIZE,
    SIZE_LEN,
    VERSION,
    Whence,
)
from pcr_core.records import FrameRecord, read_record, record_length, write_record


def _point_buffer(values, dtype, what: str) -> np.ndarray:
    """Flat array of `values`; raw bytes-like input is taken as uint8 data."""
    as_bytes = np.dtype(dtype) == np.uint8
    if as_bytes and isinstance(values, (bytes, bytearray, memoryview)):
        try:
            return np.frombuffer(memoryview(values), dtype=np.uint8)
        except (TypeError, ValueError) as e:
            raise FormatError(f"Cannot read {what} as bytes: {e}") from e

    try:
        arr = np.asarray(values)
        out = np.ascontiguousarray(arr, dtype=dtype).ravel()
    except (TypeError, ValueError, OverflowError) as e:
        raise FormatError(f"Cannot convert {what} to {np.dtype(dtype)}: {e}") from e
    # Older numpy wraps out-of-range integers instead of raising.
    if as_bytes and arr.size and arr.dtype.kind in "iuf" and (arr.min() < 0 or arr.max() > 255):
        raise FormatError(f"{what} values must lie in 0..255")
    return out


@dataclass
class Cursor:
    frame_number: int = -1
    frame_size: int = 0
    current_time: float = 0.0
    offset: int = HEADER_LEN  # start of the record under the cursor
    end: int = HEADER_LEN  # first byte after it
    info: Optional[str] = None
    depths: Optional[np.ndarray] = None
    colors: Optional[np.ndarray] = None


class PointCloudRecorder:
    """Append-only point-cloud container.

    Opened for write, frames are appended with `record`. Opened for read, the
    cursor starts on frame 0 and moves with `seek`, `next`, `prev`, `first`,
    `last` and `seek_time`.
    """

    def __init__(self, path: str | Path | None = None, for_write: bool = False):
        self._file: Optional[BinaryIO] = None
        self._path: Optional[Path] = None
        self._for_write = False
        self._usable = False
        self._header = ContainerHeader()
        self._cursor = Cursor()

        if path is not None:
            self.open(path, for_write=for_write)

    def __enter__(self):
        return self

    def __exit__(self, type, value, traceback):
        self.close()

    def __len__(self):
        return self._header.frame_count

    # -- accessors ---------------------------------------------------------

    @property
    def path(self) -> Optional[Path]:
        return self._path

    @property
    def closed(self) -> bool:
        return self._file is None

    @property
    def for_write(self) -> bool:
        return self._for_write

    @property
    def version(self) -> int:
        return self._header.version

    @property
    def start_time(self) -> float:
        return self._header.start_time

    @property
    def end_time(self) -> float:
        return self._header.end_time

    @property
    def recorded_duration(self) -> float:
        return self._header.end_time - self._header.start_time

    @property
    def frame_count(self) -> int:
        return self._header.frame_count

    @property
    def current_time(self) -> float:
        return self._cursor.current_time

    @property
    def frame_number(self) -> int:
        return self._cursor.frame_number

    @property
    def frame_size(self) -> int:
        return self._cursor.frame_size

    @property
    def frame_offset(self) -> int:
        return self._cursor.offset

    @property
    def info(self) -> Optional[str]:
        return self._cursor.info

    @property
    def depths(self) -> Optional[np.ndarray]:
        return self._cursor.depths

    @property
    def colors(self) -> Optional[np.ndarray]:
        return self._cursor.colors

    # -- lifecycle ---------------------------------------------------------

    def open(self, path: str | Path, for_write: bool = False) -> None:
        if self._file is not None:
            raise InvalidStateError(f"Recorder already open on {self._path}")

        path = Path(path)
        self._header = ContainerHeader()
        self._cursor = Cursor()
        self._usable = False
        self._path = None
        self._for_write = False

        try:
            self._file = open(path, "w+b" if for_write else "rb")
        except OSError as e:
            raise StorageError(f"Cannot open {path}: {e}") from e
        self._path = path
        self._for_write = for_write

        try:
            if for_write:
                write_header(self._file, self._header)
                self._usable = True
                return

            self._header = read_header(self._file)
            if self._header.version != VERSION:
                warn(f"Container version {self._header.version} differs from supported {VERSION}")
            self._usable = True
            self.first()
        except PointCloudError:
            try:
                self._release()
            finally:
                self._path = None
            raise

    def close(self) -> None:
        """Release storage. In write mode the header counters are finalized first."""
        if self._file is None:
            return
        try:
            if self._for_write and self._usable:
                patch_header(self._file, self._header)
        finally:
            self._release()

    def _release(self) -> None:
        f, self._file = self._file, None
        self._for_write = False
        self._usable = False
        self._cursor = Cursor()
        if f is not None:
            try:
                f.close()
            except OSError as e:
                raise StorageError(f"Closing {self._path} failed: {e}") from e

    def _check_usable(self) -> BinaryIO:
        if self._file is None:
            raise InvalidStateError("Recorder is closed")
        if not self._usable:
            raise InvalidStateError(f"Recorder on {self._path} is unusable after a failure")
        return self._file

    # -- writer ------------------------------------------------------------

    def record(self, time: float, info: str | bytes, count: int, depths, colors) -> int:
        """Append one frame and return its index.

        `depths` holds `count` floats, `colors` holds `count * 4` bytes.
        """
        f = self._check_usable()
        if not self._for_write:
            raise InvalidStateError("Recorder was opened for read")

        info_bytes = text_payload(info)
        if not info_bytes:
            raise FormatError("Frame info must not be empty")
        if len(info_bytes) > MAX_INFO_SIZE:
            raise FormatError(f"Frame info of {len(info_bytes)} bytes exceeds limit {MAX_INFO_SIZE}")
        try:
            info_bytes.decode("utf-8")
        except UnicodeDecodeError as e:
            raise FormatError(f"Frame info is not UTF-8 text: {e}") from e
        if count <= 0:
            raise FormatError(f"Point count must be positive, got {count}")
        depths = _point_buffer(depths, DEPTH_DTYPE, "depths")
        colors = _point_buffer(colors, np.uint8, "colors")
        if depths.size != count:
            raise FormatError(f"Expected {count} depths, got {depths.size}")
        if colors.size != count * COLOR_CHANNELS:
            raise FormatError(f"Expected {count * COLOR_CHANNELS} color bytes, got {colors.size}")

        offset = seek_to(f, 0, 2)

        if self._header.frame_count == 0:
            self._header.start_time = time
        self._header.end_time = time
        index = self._header.frame_count
        self._header.frame_count += 1

        # No rollback: a failure past this point leaves a torn record and/or
        # a stale frame count on storage.
        size = write_record(f, index, time, info_bytes, depths.tobytes(), colors.tobytes())
        patch_frame_count(f, self._header.frame_count)
        end = seek_to(f, 0, 2)
        flush(f)

        self._cursor = Cursor(index, size, time, offset, end)
        return index

    # -- navigation --------------------------------------------------------

    def _read_at(self, offset: int, skip: bool) -> None:
        f = self._file
        seek_to(f, offset)
        rec = read_record(f, skip)
        self._cursor = Cursor(
            frame_number=rec.index,
            frame_size=rec.size,
            current_time=rec.time,
            offset=offset,
            end=offset + record_length(rec.size),
            info=rec.info,
            depths=rec.depths,
            colors=rec.colors,
        )

    def read_frame(self, skip: bool = False) -> None:
        """Read the record that follows the cursor."""
        self._check_usable()
        try:
            self._read_at(self._cursor.end, skip)
        except PointCloudError:
            self._usable = False
            raise

    def next_frame(self, skip: bool = False) -> None:
        self.read_frame(skip)

    def prev_frame(self, skip: bool = False) -> None:
        """Step onto the record that precedes the cursor's record."""
        f = self._check_usable()
        pos = self._cursor.offset
        if pos - SIZE_LEN < HEADER_LEN:
            raise FormatError(f"No record precedes offset {pos}")

        try:
            seek_to(f, pos - SIZE_LEN)
            size = read_u32(f, "trailing size")
            if size == 0:
                raise FormatError(f"Zero trailing size before offset {pos}")
            target = pos - record_length(size)
            if target < HEADER_LEN:
                raise FormatError(f"Trailing size {size} before offset {pos} points into the header")
            self._read_at(target, skip)
        except PointCloudError:
            self._usable = False
            raise

    def seek(self, count: int, whence: Whence = Whence.FROM_START) -> int:
        """Move the cursor to a frame and return its number.

        Out-of-range targets are clamped to the first/last frame.
        """
        f = self._check_usable()
        cur = self._cursor.frame_number
        total = self._header.frame_count

        if whence == Whence.FROM_START:
            off = count
        elif whence == Whence.FROM_CURRENT:
            off = cur + count
        elif whence == Whence.FROM_END:
            off = total + count
        else:
            raise ValueError(f"Unknown whence {whence!r}")

        if off < 0:
            off = 0
        if off >= total:
            off = total - 1
        if off == cur:
            return cur

        dist_start = off
        dist_current = abs(cur - off)
        dist_end = total - off

        try:
            if dist_start < dist_current and dist_start <= dist_end:
                self._cursor.end = HEADER_LEN
                for left in range(dist_start, -1, -1):
                    self.next_frame(skip=left > 0)
            elif dist_end <= dist_start and dist_end < dist_current:
                self._cursor.offset = seek_to(f, 0, 2)
                for left in range(dist_end - 1, -1, -1):
                    self.prev_frame(skip=left > 0)
            else:
                step = self.next_frame if off > cur else self.prev_frame
                for left in range(dist_current - 1, -1, -1):
                    step(skip=left > 0)
        except PointCloudError:
            self._usable = False
            raise

        return self._cursor.frame_number

    def first(self) -> int:
        return self.seek(0, Whence.FROM_START)

    def last(self) -> int:
        return self.seek(0, Whence.FROM_END)

    def next(self, count: int = 1) -> int:
        # Always a single step; `count` is accepted but not honoured.
        return self.seek(1, Whence.FROM_CURRENT)

    def prev(self, count: int = 1) -> int:
        return self.seek(-1, Whence.FROM_CURRENT)

    # -- time index --------------------------------------------------------

    def frame_times(self) -> list[float]:
        """Timestamps of every frame, gathered without decoding payloads."""
        self._check_usable()
        if self._header.frame_count == 0:
            return []

        saved = self._cursor
        times = []
        self._cursor = Cursor()
        try:
            for _ in range(self._header.frame_count):
                self.next_frame(skip=True)
                times.append(self._cursor.current_time)
        except PointCloudError:
            self._usable = False
            raise
        self._cursor = saved
        return times

    def time_to_frame(self, time: float) -> int:
        """Index of the last frame recorded at or before `time`."""
        times = self.frame_times()
        if not times:
            return -1
        return max(bisect.bisect_right(times, time) - 1, 0)

    def seek_time(self, time: float) -> int:
        return self.seek(self.time_to_frame(time), Whence.FROM_START)

    def iter_frames(self, skip: bool = False) -> Iterator[FrameRecord]:
        """Yield every frame from first to last.

        Materialized buffers are shared with the cursor until the next hop.
        """
        self._check_usable()
        if self._header.frame_count == 0:
            return
        self.first()
        if not skip and self._cursor.info is None:
            self._read_at(self._cursor.offset, False)
        while True:
            c = self._cursor
            if skip:
                yield FrameRecord(c.frame_number, c.current_time, c.frame_size)
            else:
                yield FrameRecord(c.frame_number, c.current_time, c.frame_size, c.info, c.depths, c.colors)
            if c.frame_number >= self._header.frame_count - 1:
                return
            if skip:
                self.next_frame(skip=True)
            else:
                self.next()
