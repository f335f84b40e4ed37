"""Copy a time window of one container into a new container."""
from __future__ import annotations

from pathlib import Path
from warnings import warn

from pcr_core.protocol import Whence
from pcr_core.recorder import PointCloudRecorder


def clip_range(src: PointCloudRecorder, start: float, end: float) -> tuple[int, int]:
    """Frame range covering [start, end] seconds after the recording start.

    The end frame is stretched by one so the window's tail is not dropped.
    """
    first = src.time_to_frame(src.start_time + start)
    last = src.time_to_frame(src.start_time + end)
    if last < src.frame_count - 1:
        last += 1
    return first, last


def export_clip(src_path: Path, dst_path: Path, start: float, end: float) -> int:
    """Write the frames of [start, end] from src_path into dst_path.

    Returns the number of frames copied.
    """
    if end < start:
        raise ValueError(f"Clip end {end} precedes start {start}")

    with PointCloudRecorder(src_path) as src:
        if src.frame_count == 0:
            warn(f"Container {src_path} has no frames; nothing to clip")
            return 0

        first, last = clip_range(src, start, end)
        with PointCloudRecorder(dst_path, for_write=True) as dst:
            for ix in range(first, last + 1):
                src.seek(ix, Whence.FROM_START)
                dst.record(src.current_time, src.info, src.depths.size, src.depths, src.colors)
            return dst.frame_count
