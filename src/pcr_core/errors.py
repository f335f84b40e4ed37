"""Exception types raised by the container codec and recorder."""


class PointCloudError(Exception):
    """Base class for every container failure."""


class FormatError(PointCloudError, ValueError):
    """Bad magic, impossible lengths or truncated data."""


class StorageError(PointCloudError):
    """The underlying storage failed a read, write or seek."""


class InvalidStateError(PointCloudError, RuntimeError):
    """Operation not allowed in the recorder's current mode."""
