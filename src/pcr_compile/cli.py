"""Point-cloud container compiler - frame index and clip export."""
from __future__ import annotations

from pathlib import Path

import click

from pcr_compile.clip import export_clip
from pcr_compile.index import compile_frame_index


@click.group()
def main() -> None:
    pass


@main.command("index")
@click.argument("container", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("out", type=click.Path(path_type=Path))
def index_cmd(container: Path, out: Path) -> None:
    """Compile a container into a parquet frame index."""
    print(f"Compiling container: {container}")
    try:
        manifest = compile_frame_index(container, out)
    except Exception as e:
        # Fail closed, with a single-line reason.
        print(f"FATAL: {e}")
        raise SystemExit(1)
    print(f"PASS: Index generated at {out}")
    print(f"  Manifest: {manifest.name}")


@main.command("clip")
@click.argument("src", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("dst", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--start", type=float, default=0.0, show_default=True, help="Seconds after recording start")
@click.option("--end", type=float, required=True, help="Seconds after recording start")
def clip_cmd(src: Path, dst: Path, start: float, end: float) -> None:
    """Copy the frames of a time window into a new container."""
    try:
        copied = export_clip(src, dst, start, end)
    except Exception as e:
        print(f"FATAL: {e}")
        raise SystemExit(1)
    print(f"PASS: {copied} frames written to {dst}")


if __name__ == "__main__":
    main()
