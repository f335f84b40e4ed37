from __future__ import annotations

import hashlib
import json
from pathlib import Path

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from pcr_core.protocol import MAGIC
from pcr_core.recorder import PointCloudRecorder

FRAME_INDEX_SCHEMA = pa.schema(
    [
        ("frame_number", pa.int32()),
        ("time", pa.float64()),
        ("relative_time", pa.float64()),
        ("frame_size", pa.int32()),
        ("offset", pa.int64()),
        ("point_count", pa.int32()),
        ("info", pa.string()),
    ]
)

CANONICAL_JSON_KW = {"sort_keys": True, "separators": (",", ":"), "ensure_ascii": False}


def frame_index_rows(container_path: Path) -> tuple[list[dict], dict]:
    """Walk every frame of a container and describe it.

    Returns the per-frame rows and the header summary.
    """
    rows: list[dict] = []
    with PointCloudRecorder(container_path) as rec:
        for frame in rec.iter_frames():
            rows.append(
                {
                    "frame_number": frame.index,
                    "time": frame.time,
                    "relative_time": frame.time - rec.start_time,
                    "frame_size": frame.size,
                    "offset": rec.frame_offset,
                    "point_count": frame.point_count,
                    "info": frame.info,
                }
            )
        summary = {
            "version": rec.version,
            "frame_count": rec.frame_count,
            "start_time": rec.start_time,
            "end_time": rec.end_time,
            "duration": rec.recorded_duration,
        }
    return rows, summary


def compile_frame_index(container_path: Path, out_path: Path) -> Path:
    """Build index/frames.parquet and manifest.json for one container."""
    container_path = Path(container_path)
    out_path = Path(out_path)
    rows, summary = frame_index_rows(container_path)

    (out_path / "index").mkdir(parents=True, exist_ok=True)

    df = pd.DataFrame(rows, columns=FRAME_INDEX_SCHEMA.names)
    if df.empty:
        table = FRAME_INDEX_SCHEMA.empty_table()
    else:
        table = pa.Table.from_pandas(df, schema=FRAME_INDEX_SCHEMA, preserve_index=False)
    pq.write_table(table, out_path / "index/frames.parquet")

    manifest = {
        "format": MAGIC.decode("ascii"),
        "container": container_path.name,
        "container_hash": hashlib.sha256(container_path.read_bytes()).hexdigest(),
        "index": "index/frames.parquet",
        **summary,
    }
    manifest_path = out_path / "manifest.json"
    manifest_path.write_bytes(json.dumps(manifest, **CANONICAL_JSON_KW).encode("utf-8"))
    return manifest_path
