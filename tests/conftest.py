import numpy as np
import pytest

from pcr_core.recorder import PointCloudRecorder


def synth_frames(n: int) -> list[tuple]:
    """Deterministic frames whose depths are exact in float32."""
    frames = []
    for i in range(n):
        count = i % 3 + 1
        depths = [i + 0.25 * k for k in range(count)]
        colors = [(i * 4 + k) % 256 for k in range(count * 4)]
        frames.append((10.0 + 0.5 * i, f"frame-{i}", count, depths, colors))
    return frames


@pytest.fixture
def make_container(tmp_path):
    def _make(frames, name="capture.pcr"):
        path = tmp_path / name
        with PointCloudRecorder(path, for_write=True) as rec:
            for time, info, count, depths, colors in frames:
                rec.record(time, info, count, depths, colors)
        return path

    return _make


@pytest.fixture
def frames():
    return synth_frames(9)


def assert_frame(rec, frame):
    time, info, count, depths, colors = frame
    assert rec.current_time == time
    assert rec.info == info
    np.testing.assert_array_equal(rec.depths, np.asarray(depths, dtype=np.float32))
    np.testing.assert_array_equal(rec.colors, np.asarray(colors, dtype=np.uint8))
