"""Read-only access to Apple II DOS 3.3 disk images."""
from __future__ import annotations

from .config import AppConfig, ConfigError, DiskConfig, ExtractConfig, load_config
from .disk_image import AppleDisk, CatalogLine
from .errors import (
    ChainCycleError,
    DiskImageError,
    EntryStateError,
    FileTypeMismatchError,
    MalformedRecordError,
    OutOfRangeError,
)
from .files import (
    ApplesoftBasicFile,
    BinaryFile,
    IntegerBasicFile,
    RelocatableBinaryFile,
    TextFile,
)
from .floppy import FloppyDisk, Geometry, probe_geometry
from .records import FileDescriptiveEntry, FileType, VolumeTableOfContents

__all__ = [
    "AppConfig",
    "AppleDisk",
    "ApplesoftBasicFile",
    "BinaryFile",
    "CatalogLine",
    "ChainCycleError",
    "ConfigError",
    "DiskConfig",
    "DiskImageError",
    "EntryStateError",
    "ExtractConfig",
    "FileDescriptiveEntry",
    "FileType",
    "FileTypeMismatchError",
    "FloppyDisk",
    "Geometry",
    "IntegerBasicFile",
    "MalformedRecordError",
    "OutOfRangeError",
    "RelocatableBinaryFile",
    "TextFile",
    "VolumeTableOfContents",
    "load_config",
    "probe_geometry",
]
