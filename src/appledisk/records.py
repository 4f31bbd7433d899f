"""Fixed-size DOS 3.3 on-disk records.

Layouts follow the DOS 3.3 documentation: multi-byte integers are stored
low byte first, while the free-sector bitmap orders sectors from the most
significant bit of each track's first byte.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Final, Iterator, Tuple

from .encoding import FILE_NAME_LENGTH, decode_file_name
from .errors import OutOfRangeError, require_length

SECTOR_BYTES: Final[int] = 256
UNUSED_ENTRY_TRACK: Final[int] = 0x00
DELETED_ENTRY_TRACK: Final[int] = 0xFF
LOCKED_FLAG: Final[int] = 0x80


def u16(data: bytes, offset: int) -> int:
    """Read a little-endian 16-bit value at ``offset``."""

    return data[offset] | (data[offset + 1] << 8)


def s8(value: int) -> int:
    return value - 0x100 if value & 0x80 else value


class FileType(IntEnum):
    """Declared DOS 3.3 file types (type byte with the lock bit masked)."""

    TEXT = 0x00
    INTEGER_BASIC = 0x01
    APPLESOFT_BASIC = 0x02
    BINARY = 0x04
    S_TYPE = 0x08
    RELOCATABLE = 0x10
    A_TYPE = 0x20
    B_TYPE = 0x40

    @property
    def code(self) -> str:
        """Single-letter code shown by the DOS ``CATALOG`` command."""

        return _TYPE_CODES[self]


_TYPE_CODES = {
    FileType.TEXT: "T",
    FileType.INTEGER_BASIC: "I",
    FileType.APPLESOFT_BASIC: "A",
    FileType.BINARY: "B",
    FileType.S_TYPE: "S",
    FileType.RELOCATABLE: "R",
    FileType.A_TYPE: "a",
    FileType.B_TYPE: "b",
}


@dataclass(frozen=True)
class TrackSectorPair:
    """A data sector reference; ``(0, 0)`` marks a hole or the end of a list."""

    SIZE = 2

    track: int
    sector: int

    @classmethod
    def from_bytes(cls, data: bytes) -> "TrackSectorPair":
        require_length(data, cls.SIZE, "track/sector pair")
        return cls(track=data[0], sector=data[1])

    @property
    def is_empty(self) -> bool:
        return self.track == 0 and self.sector == 0


@dataclass(frozen=True)
class FreeSectorBitmap:
    """Per-track free sector bitmaps stored at VTOC offset ``$38``."""

    SIZE = 200
    BYTES_PER_TRACK = 4
    MAX_TRACKS = SIZE // BYTES_PER_TRACK

    raw: bytes

    @classmethod
    def from_bytes(cls, data: bytes) -> "FreeSectorBitmap":
        require_length(data, cls.SIZE, "free sector bitmap")
        return cls(raw=bytes(data))

    def track_bitmap(self, track: int) -> bytes:
        """Return the four bitmap bytes covering ``track``."""

        if not 0 <= track < self.MAX_TRACKS:
            raise OutOfRangeError(
                f"track {track} exceeds bitmap data (0-{self.MAX_TRACKS - 1})"
            )
        start = track * self.BYTES_PER_TRACK
        return self.raw[start : start + self.BYTES_PER_TRACK]

    def is_sector_free(self, track: int, sector: int, sectors_per_track: int) -> bool:
        if not 0 <= sector < min(sectors_per_track, self.BYTES_PER_TRACK * 8):
            raise OutOfRangeError(
                f"sector {sector} out of range for {sectors_per_track} sectors per track"
            )
        bitmap = self.track_bitmap(track)
        byte_index = sector // 8
        bit_index = 7 - (sector % 8)
        return bool(bitmap[byte_index] & (1 << bit_index))


@dataclass(frozen=True)
class VolumeTableOfContents:
    """The VTOC stored at track 17, sector 0."""

    SIZE = SECTOR_BYTES

    first_catalog_track: int
    first_catalog_sector: int
    release_number: int
    volume_number: int
    max_track_sector_pairs: int
    last_allocated_track: int
    allocation_direction: int
    tracks_per_disk: int
    sectors_per_track: int
    bytes_per_sector: int
    free_sectors: FreeSectorBitmap

    @classmethod
    def from_bytes(cls, data: bytes) -> "VolumeTableOfContents":
        require_length(data, cls.SIZE, "VTOC")
        return cls(
            first_catalog_track=data[0x01],
            first_catalog_sector=data[0x02],
            release_number=data[0x03],
            volume_number=data[0x06],
            max_track_sector_pairs=data[0x27],
            last_allocated_track=data[0x30],
            allocation_direction=s8(data[0x31]),
            tracks_per_disk=data[0x34],
            sectors_per_track=data[0x35],
            bytes_per_sector=u16(data, 0x36),
            free_sectors=FreeSectorBitmap.from_bytes(data[0x38:]),
        )

    def is_sector_free(self, track: int, sector: int) -> bool:
        return self.free_sectors.is_sector_free(track, sector, self.sectors_per_track)

    def free_sector_count(self) -> int:
        """Count free sectors across the tracks the VTOC declares."""

        tracks = min(self.tracks_per_disk, FreeSectorBitmap.MAX_TRACKS)
        sectors = min(self.sectors_per_track, 32)
        return sum(
            self.free_sectors.is_sector_free(track, sector, sectors)
            for track in range(tracks)
            for sector in range(sectors)
        )


@dataclass(frozen=True)
class FileDescriptiveEntry:
    """One of the seven file entries held by a catalog sector."""

    SIZE = 35

    first_list_track: int
    first_list_sector: int
    type_and_flags: int
    name_bytes: bytes
    sector_count: int

    @classmethod
    def from_bytes(cls, data: bytes) -> "FileDescriptiveEntry":
        require_length(data, cls.SIZE, "file descriptive entry")
        return cls(
            first_list_track=data[0x00],
            first_list_sector=data[0x01],
            type_and_flags=data[0x02],
            name_bytes=bytes(data[0x03 : 0x03 + FILE_NAME_LENGTH]),
            sector_count=u16(data, 0x21),
        )

    @property
    def is_unused(self) -> bool:
        return self.first_list_track == UNUSED_ENTRY_TRACK

    @property
    def is_deleted(self) -> bool:
        return self.first_list_track == DELETED_ENTRY_TRACK

    @property
    def is_locked(self) -> bool:
        return bool(self.type_and_flags & LOCKED_FLAG)

    @property
    def file_type(self) -> FileType | int:
        """Declared type; codes outside :class:`FileType` are returned as ints."""

        value = self.type_and_flags & 0x7F
        try:
            return FileType(value)
        except ValueError:
            return value

    @property
    def type_code(self) -> str:
        file_type = self.file_type
        if isinstance(file_type, FileType):
            return file_type.code
        return "?"

    @property
    def original_track(self) -> int:
        """Track of the first T/S list, recovered from the name for deleted files."""

        if self.is_deleted:
            return self.name_bytes[FILE_NAME_LENGTH - 1]
        return self.first_list_track

    @property
    def name(self) -> str:
        return decode_file_name(self.name_bytes, self.is_deleted)


@dataclass(frozen=True)
class CatalogSector:
    """A catalog sector: a link to the next sector plus seven file entries."""

    SIZE = SECTOR_BYTES
    ENTRIES_PER_SECTOR = 7
    _FIRST_ENTRY_OFFSET = 0x0B

    next_track: int
    next_sector: int
    entries: Tuple[FileDescriptiveEntry, ...]

    @classmethod
    def from_bytes(cls, data: bytes) -> "CatalogSector":
        require_length(data, cls.SIZE, "catalog sector")
        entry_size = FileDescriptiveEntry.SIZE
        entries = tuple(
            FileDescriptiveEntry.from_bytes(
                data[cls._FIRST_ENTRY_OFFSET + index * entry_size :][:entry_size]
            )
            for index in range(cls.ENTRIES_PER_SECTOR)
        )
        return cls(next_track=data[0x01], next_sector=data[0x02], entries=entries)

    @property
    def has_next(self) -> bool:
        return self.next_track != 0


@dataclass(frozen=True)
class TrackSectorList:
    """A track/sector list sector describing up to 122 data sectors."""

    SIZE = SECTOR_BYTES
    MAX_PAIRS = 122
    _FIRST_PAIR_OFFSET = 0x0C

    next_track: int
    next_sector: int
    sector_offset: int
    pairs: Tuple[TrackSectorPair, ...]

    @classmethod
    def from_bytes(cls, data: bytes) -> "TrackSectorList":
        require_length(data, cls.SIZE, "track/sector list")
        start = cls._FIRST_PAIR_OFFSET
        pairs = tuple(
            TrackSectorPair(track=data[offset], sector=data[offset + 1])
            for offset in range(start, start + cls.MAX_PAIRS * TrackSectorPair.SIZE, 2)
        )
        return cls(
            next_track=data[0x01],
            next_sector=data[0x02],
            sector_offset=u16(data, 0x05),
            pairs=pairs,
        )

    @property
    def has_next(self) -> bool:
        return self.next_track != 0

    def __iter__(self) -> Iterator[TrackSectorPair]:
        return iter(self.pairs)


__all__ = [
    "CatalogSector",
    "DELETED_ENTRY_TRACK",
    "FileDescriptiveEntry",
    "FileType",
    "FreeSectorBitmap",
    "SECTOR_BYTES",
    "TrackSectorList",
    "TrackSectorPair",
    "UNUSED_ENTRY_TRACK",
    "VolumeTableOfContents",
    "u16",
]
