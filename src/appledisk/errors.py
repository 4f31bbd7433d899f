"""Exception hierarchy raised by the DOS 3.3 decoders."""

from __future__ import annotations


class DiskImageError(ValueError):
    """Base class for every failure raised while decoding a disk image."""


class MalformedRecordError(DiskImageError):
    """Raised when an on-disk record has the wrong size or inconsistent headers."""


class OutOfRangeError(DiskImageError, IndexError):
    """Raised when a track, sector or buffer falls outside the valid range."""


class EntryStateError(DiskImageError):
    """Raised when file data is requested for an unused or deleted entry."""


class FileTypeMismatchError(DiskImageError):
    """Raised when a typed decoder is applied to an entry of another type."""


class ChainCycleError(DiskImageError):
    """Raised when a linked sector chain loops or exceeds its step bound."""


def require_length(data: bytes, expected: int, record: str) -> None:
    """Raise ``MalformedRecordError`` unless ``data`` is exactly ``expected`` bytes."""

    if len(data) != expected:
        raise MalformedRecordError(
            f"{record} data must be {expected} bytes in length, received {len(data)}"
        )


__all__ = [
    "ChainCycleError",
    "DiskImageError",
    "EntryStateError",
    "FileTypeMismatchError",
    "MalformedRecordError",
    "OutOfRangeError",
    "require_length",
]
