import numpy as np
import pytest

from conftest import assert_frame
from pcr_core.errors import FormatError, InvalidStateError, StorageError
from pcr_core.protocol import HEADER_LEN
from pcr_core.recorder import PointCloudRecorder
from pcr_verify.logic import verify_container


def test_two_frame_scenario(make_container):
    path = make_container([
        (1.0, "a", 2, [1.0, 2.0], [0, 0, 0, 0, 1, 1, 1, 1]),
        (2.0, "b", 1, [3.0], [2, 2, 2, 2]),
    ])

    with PointCloudRecorder(path) as rec:
        assert rec.seek(0) == 0
        assert rec.frame_number == 0
        assert rec.info == "a"
        np.testing.assert_array_equal(rec.depths, [1.0, 2.0])

        assert rec.next() == 1
        assert rec.info == "b"
        np.testing.assert_array_equal(rec.depths, [3.0])
        np.testing.assert_array_equal(rec.colors, [2, 2, 2, 2])

        rec.first()
        assert rec.last() == 1
        assert rec.frame_number == 1
        assert rec.info == "b"


def test_round_trip(make_container, frames):
    path = make_container(frames)

    with PointCloudRecorder(path) as rec:
        assert not rec.for_write
        assert rec.frame_count == len(frames)
        assert rec.start_time == frames[0][0]
        assert rec.end_time == frames[-1][0]
        assert rec.recorded_duration == frames[-1][0] - frames[0][0]

        assert rec.first() == 0
        for i, frame in enumerate(frames):
            assert rec.frame_number == i
            assert_frame(rec, frame)
            if i < len(frames) - 1:
                rec.next()


def test_record_layout_on_disk(tmp_path):
    path = tmp_path / "one.pcr"
    with PointCloudRecorder(path, for_write=True) as rec:
        assert rec.record(1.0, "a", 1, [3.0], [1, 2, 3, 4]) == 0
        assert rec.frame_size == 33

    raw = path.read_bytes()[HEADER_LEN:]
    assert raw == bytes.fromhex(
        "00000021"  # leading size
        "00000000"  # index
        "3ff0000000000000"  # time
        "00000001" "61"  # info
        "00000004" "40400000"  # depths
        "00000004" "01020304"  # colors
        "00000021"  # trailing size
    )


def test_record_moves_cursor_to_new_frame(tmp_path):
    with PointCloudRecorder(tmp_path / "w.pcr", for_write=True) as rec:
        assert rec.for_write
        for i in range(3):
            assert rec.record(5.0 + i, "x", 1, [0.0], [0, 0, 0, 0]) == i
            assert rec.frame_number == i
            assert rec.frame_count == i + 1
            assert rec.current_time == 5.0 + i
        assert rec.start_time == 5.0
        assert rec.end_time == 7.0


def test_record_accepts_numpy_buffers(tmp_path):
    path = tmp_path / "np.pcr"
    depths = np.linspace(0.5, 2.0, 4, dtype=np.float32)
    colors = np.arange(16, dtype=np.uint8).reshape(4, 4)
    with PointCloudRecorder(path, for_write=True) as rec:
        rec.record(0.0, b"bytes-info", 4, depths, colors)

    with PointCloudRecorder(path) as rec:
        assert rec.info == "bytes-info"
        np.testing.assert_array_equal(rec.depths, depths)
        np.testing.assert_array_equal(rec.colors, colors.ravel())


def test_record_in_read_mode_fails(make_container, frames):
    with PointCloudRecorder(make_container(frames)) as rec:
        with pytest.raises(InvalidStateError):
            rec.record(99.0, "x", 1, [0.0], [0, 0, 0, 0])


@pytest.mark.parametrize(
    "info,count,depths,colors",
    [
        ("", 1, [0.0], [0, 0, 0, 0]),
        ("\x00hidden", 1, [0.0], [0, 0, 0, 0]),
        ("x" * 8193, 1, [0.0], [0, 0, 0, 0]),
        ("x", 0, [], []),
        ("x", 2, [0.0], [0] * 8),
        ("x", 1, [0.0], [0, 0, 0]),
    ],
)
def test_record_rejects_unreadable_frames(tmp_path, info, count, depths, colors):
    path = tmp_path / "bad.pcr"
    with PointCloudRecorder(path, for_write=True) as rec:
        with pytest.raises(FormatError):
            rec.record(1.0, info, count, depths, colors)
        assert rec.frame_count == 0
    assert path.stat().st_size == HEADER_LEN


def test_open_twice_fails(make_container, frames):
    path = make_container(frames)
    with PointCloudRecorder(path) as rec:
        with pytest.raises(InvalidStateError):
            rec.open(path)


def test_reopen_after_close(make_container, frames):
    path = make_container(frames)
    rec = PointCloudRecorder(path)
    rec.last()
    rec.close()
    assert rec.closed
    rec.close()

    rec.open(path)
    assert rec.frame_number == 0
    assert_frame(rec, frames[0])
    rec.close()


def test_frame_times_and_time_lookup(make_container, frames):
    with PointCloudRecorder(make_container(frames)) as rec:
        rec.seek(4)
        times = rec.frame_times()
        assert times == [f[0] for f in frames]
        # The cursor is left where it was.
        assert rec.frame_number == 4
        assert_frame(rec, frames[4])

        assert rec.time_to_frame(0.0) == 0
        assert rec.time_to_frame(10.0) == 0
        assert rec.time_to_frame(11.2) == 2
        assert rec.time_to_frame(11.5) == 3
        assert rec.time_to_frame(1e9) == len(frames) - 1

        assert rec.seek_time(12.25) == 4
        assert_frame(rec, frames[4])


def test_iter_frames(make_container, frames):
    with PointCloudRecorder(make_container(frames)) as rec:
        rec.last()
        seen = list(rec.iter_frames())
        assert [f.index for f in seen] == list(range(len(frames)))
        for got, frame in zip(seen, frames):
            assert got.time == frame[0]
            assert got.info == frame[1]
            assert got.point_count == frame[2]

        skipped = list(rec.iter_frames(skip=True))
        assert [(f.index, f.time, f.size) for f in skipped] == [(f.index, f.time, f.size) for f in seen]
        assert all(f.info is None and f.depths is None for f in skipped)


def test_empty_container_time_lookup(tmp_path):
    path = tmp_path / "empty.pcr"
    PointCloudRecorder(path, for_write=True).close()
    with PointCloudRecorder(path) as rec:
        assert rec.frame_times() == []
        assert rec.time_to_frame(1.0) == -1
        assert list(rec.iter_frames()) == []
        assert len(rec) == 0


@pytest.mark.parametrize("colors", [b"\x01\x02\x03\x04\x05\x06\x07\x08", bytearray(range(8))])
def test_record_accepts_raw_color_bytes(tmp_path, colors):
    path = tmp_path / "raw.pcr"
    with PointCloudRecorder(path, for_write=True) as rec:
        rec.record(0.0, "raw", 2, [1.0, 2.0], colors)

    with PointCloudRecorder(path) as rec:
        np.testing.assert_array_equal(rec.colors, np.frombuffer(bytes(colors), dtype=np.uint8))


@pytest.mark.parametrize(
    "depths,colors",
    [
        ([0.0], [0, 0, 0, 300]),
        ([0.0], [0, 0, 0, -1]),
        (["deep"], [0, 0, 0, 0]),
        ([0.0], ["red", 0, 0, 0]),
    ],
)
def test_record_rejects_unconvertible_points(tmp_path, depths, colors):
    path = tmp_path / "bad.pcr"
    with PointCloudRecorder(path, for_write=True) as rec:
        with pytest.raises(FormatError):
            rec.record(1.0, "x", 1, depths, colors)
        assert rec.frame_count == 0
    assert path.stat().st_size == HEADER_LEN


def test_record_rejects_non_utf8_info(tmp_path):
    path = tmp_path / "latin.pcr"
    with PointCloudRecorder(path, for_write=True) as rec:
        with pytest.raises(FormatError, match="UTF-8"):
            rec.record(1.0, b"caf\xe9", 1, [0.0], [0, 0, 0, 0])
        assert rec.frame_count == 0
    assert path.stat().st_size == HEADER_LEN


def test_open_rejects_non_utf8_info_on_storage(tmp_path):
    path = tmp_path / "latin.pcr"
    with PointCloudRecorder(path, for_write=True) as rec:
        rec.record(1.0, "ab", 1, [0.0], [0, 0, 0, 0])

    raw = bytearray(path.read_bytes())
    # leading size, index, time, info length
    info_at = HEADER_LEN + 4 + 12 + 4
    assert raw[info_at:info_at + 2] == b"ab"
    raw[info_at:info_at + 2] = b"\xff\xfe"
    path.write_bytes(bytes(raw))

    with pytest.raises(FormatError, match="UTF-8"):
        PointCloudRecorder(path)


def test_failed_open_leaves_recorder_closed(tmp_path):
    rec = PointCloudRecorder()
    with pytest.raises(StorageError):
        rec.open(tmp_path / "missing" / "dir" / "w.pcr", for_write=True)
    assert rec.closed
    assert not rec.for_write
    assert rec.path is None
    with pytest.raises(InvalidStateError):
        rec.first()

    bogus = tmp_path / "bogus.pcr"
    bogus.write_bytes(b"PointCld")
    with pytest.raises(FormatError):
        rec.open(bogus)
    assert rec.closed
    assert rec.path is None


class FlakyFile:
    """File wrapper whose writes fail once `budget` bytes have been written."""

    def __init__(self, f, budget):
        self._f = f
        self.budget = budget
        self.written = 0

    def write(self, data):
        if self.written + len(data) > self.budget:
            raise OSError(28, "No space left on device")
        self.written += len(data)
        return self._f.write(data)

    def __getattr__(self, name):
        return getattr(self._f, name)


def test_storage_failure_mid_record_is_not_rolled_back(tmp_path):
    path = tmp_path / "torn.pcr"
    rec = PointCloudRecorder(path, for_write=True)
    rec.record(1.0, "a", 1, [0.0], [0, 0, 0, 0])
    first_len = rec.frame_size + 8

    flaky = FlakyFile(rec._file, 20)
    rec._file = flaky
    with pytest.raises(StorageError, match="No space left"):
        rec.record(2.0, "b", 2, [1.0, 2.0], [1] * 8)
    assert flaky.written == 20

    flaky.budget = 1 << 20
    rec.close()

    assert path.stat().st_size == HEADER_LEN + first_len + 20
    with pytest.warns(UserWarning, match="claims 2 frames"):
        result = verify_container(path)
    assert [e["code"] for e in result["errors"]][:2] == ["E_TORN_RECORD", "E_FRAME_COUNT"]
    assert result["stats"]["records"] == 1
