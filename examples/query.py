"""Query a compiled frame index - find frames inside a time window."""
from __future__ import annotations

import sys
from pathlib import Path

import duckdb


def main() -> None:
    if len(sys.argv) < 4:
        print("Usage: python query.py <index_out> <start_s> <end_s>")
        print("Example: python query.py out/ 1.0 2.5")
        sys.exit(1)

    out = Path(sys.argv[1])
    start = float(sys.argv[2])
    end = float(sys.argv[3])

    con = duckdb.connect(":memory:")
    con.execute(f"CREATE VIEW frames AS SELECT * FROM '{out}/index/frames.parquet'")

    sql = """
    SELECT
        frame_number,
        relative_time,
        point_count,
        frame_size,
        "offset"
    FROM frames
    WHERE relative_time BETWEEN ? AND ?
    ORDER BY frame_number
    """

    print(f"--- Frames in [{start}s, {end}s] ---\n")

    df = con.execute(sql, [start, end]).fetchdf()
    if df.empty:
        print("No frames recorded in this window.")
    else:
        for _, row in df.iterrows():
            print(f"FRAME {row['frame_number']}: t+{row['relative_time']:.3f}s")
            print(f"  Points: {row['point_count']}")
            print(f"  Bytes: {row['frame_size']} @ {row['offset']}")
            print()


if __name__ == "__main__":
    main()
