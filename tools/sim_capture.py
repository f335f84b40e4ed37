import json, random, uuid
from pathlib import Path

import numpy as np

from pcr_core.recorder import PointCloudRecorder

# --- CONFIGURATION ---
FPS = 10
WIDTH = 32
HEIGHT = 24
REFERENCE_WIDTH = 640  # intrinsics are calibrated against this width


def calibration_info(width: int, height: int) -> str:
    """Per-frame metadata in the shape a depth camera reports it."""
    fx = fy = 593.0
    cx, cy = REFERENCE_WIDTH / 2.0, REFERENCE_WIDTH * height / width / 2.0
    return json.dumps({
        "width": width,
        "height": height,
        "calibrationIntrinsicMatrix": [[fx, 0.0, 0.0], [0.0, fy, 0.0], [cx, cy, 1.0]],
        "calibrationIntrinsicMatrixReferenceDimensions": {
            "width": REFERENCE_WIDTH,
            "height": REFERENCE_WIDTH * height // width,
        },
    }, sort_keys=True, separators=(",", ":"))


def synth_frame(rng: np.random.Generator, frame_id: int) -> tuple[np.ndarray, np.ndarray]:
    """A slowly approaching plane with sensor noise, plus a colour ramp."""
    count = WIDTH * HEIGHT
    base = 2.0 - 0.01 * frame_id
    depths = (base + rng.normal(0.0, 0.005, count)).astype(np.float32)
    colors = np.empty((count, 4), dtype=np.uint8)
    colors[:, 0] = np.arange(count) % 256
    colors[:, 1] = frame_id % 256
    colors[:, 2] = rng.integers(0, 256, count, dtype=np.uint8)
    colors[:, 3] = 255
    return depths, colors


def generate_capture(out_dir, frames: int = 100, seed=None) -> Path:
    sess_id = str(uuid.uuid4())
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)
    path = out / f"capture-{sess_id[:8]}.pcr"

    rng = np.random.default_rng(seed if seed is not None else random.randint(0, 2**31))
    info = calibration_info(WIDTH, HEIGHT)
    t0 = 1000.0 + random.random()

    print(f"Generating: {sess_id} ({frames} frames)")
    with PointCloudRecorder(path, for_write=True) as rec:
        for frame_id in range(frames):
            depths, colors = synth_frame(rng, frame_id)
            rec.record(t0 + frame_id / FPS, info, WIDTH * HEIGHT, depths, colors)

    print(f"GENERATED: {path}")
    return path


if __name__ == "__main__":
    import sys

    # Usage:
    #   python tools/sim_capture.py OUT_DIR [--frames N] [--runs N]

    args = [a for a in sys.argv[1:] if a]

    def pop_value(arg_list: list[str], flag: str, default: int) -> tuple[int, list[str]]:
        """Remove an integer option from an argv-style list."""
        if flag not in arg_list:
            return default, arg_list
        i = arg_list.index(flag)
        if i + 1 >= len(arg_list):
            raise SystemExit(f"{flag} requires a value")
        return int(arg_list[i + 1]), arg_list[:i] + arg_list[i + 2:]

    frames, args = pop_value(args, "--frames", 100)
    runs, args = pop_value(args, "--runs", 1)

    out = args[0] if len(args) > 0 else "captures"
    for _ in range(runs):
        generate_capture(out, frames=frames)
