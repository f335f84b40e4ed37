"""Point-cloud container core - codec, header and recorder."""
from .errors import FormatError, InvalidStateError, PointCloudError, StorageError
from .protocol import Whence
from .records import FrameRecord
from .recorder import PointCloudRecorder

__all__ = [
    "FormatError",
    "FrameRecord",
    "InvalidStateError",
    "PointCloudError",
    "PointCloudRecorder",
    "StorageError",
    "Whence",
]
