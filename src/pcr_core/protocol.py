"""Point-cloud container protocol constants.

Single source of truth for the on-disk magic, header and record layouts.
Keep this file stable. Recorder, compiler and verifier must remain synchronized.

    [magic:8][version:4][count:4][start-time:8][end-time:8]
    [size:4][index:4][time:8] [info-size:4][info] [depths-size:4][depths]
        [colors-size:4][colors] [size:4]

All integers are network byte order. Times travel as the byte-swapped
64-bit pattern of an IEEE double.
"""
from enum import IntEnum

MAGIC = b"PointCld"
VERSION = 0x01

# Header: [Magic(8) | Ver(4) | Count(4) | Start(8) | End(8)] = 32 bytes
HEADER_FMT = ">8sIIQQ"
HEADER_LEN = 32
FRAME_COUNT_OFFSET = 12  # count, start and end are patched from here

# Size markers, index and field lengths
U32_FMT = ">I"
FIELD_LEN_FMT = ">i"
SIZE_LEN = 4
TIME_FMT = ">Q"

# Fixed part read right after the leading size: [Index(4) | Time(8)]
RECORD_PREFIX_LEN = 12

# Body overhead: index + time + three length prefixes
RECORD_OVERHEAD = RECORD_PREFIX_LEN + 3 * SIZE_LEN

# Point payload layout
DEPTH_DTYPE = ">f4"
DEPTH_ITEM_LEN = 4
COLOR_CHANNELS = 4

# Safety bounds
MAX_INFO_SIZE = 8192


class Whence(IntEnum):
    """Reference point of a relative frame seek."""

    FROM_START = 0
    FROM_CURRENT = 1
    FROM_END = 2
