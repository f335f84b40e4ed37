"""Flip one bit of a container in place to exercise the verifier.

By default the bit sits in the low byte of the first record's frame index,
which the verifier reports as E_INDEX_DRIFT.
"""
import sys
from pathlib import Path

from pcr_core.protocol import HEADER_LEN, SIZE_LEN

FIRST_INDEX_LOW_BYTE = HEADER_LEN + SIZE_LEN + 3


def main(argv=None):
    args = sys.argv[1:] if argv is None else argv
    if len(args) not in (1, 2):
        print("Usage: corrupt_one_byte.py <container> [offset]")
        raise SystemExit(2)

    target = Path(args[0])
    try:
        offset = int(args[1], 0) if len(args) == 2 else FIRST_INDEX_LOW_BYTE
    except ValueError:
        print(f"Offset must be an integer, got {args[1]!r}")
        raise SystemExit(2)

    data = bytearray(target.read_bytes())
    if not 0 <= offset < len(data):
        print(f"Offset {offset} lies outside {target} ({len(data)} bytes)")
        raise SystemExit(2)

    data[offset] ^= 0x01
    target.write_bytes(bytes(data))
    print(f"Flipped bit 0 at offset {offset} of {target}")


if __name__ == "__main__":
    main()
