"""Sector addressing over a flat disk image."""

from __future__ import annotations

import io
import logging
import os
from dataclasses import dataclass
from typing import BinaryIO, Final, Union

from .errors import OutOfRangeError

LOGGER = logging.getLogger(__name__)

SECTOR_BYTES: Final[int] = 256
DEFAULT_TRACKS: Final[int] = 35
DEFAULT_SECTORS_PER_TRACK: Final[int] = 16
VTOC_TRACK: Final[int] = 0x11
VTOC_SECTOR: Final[int] = 0x00
_VTOC_SECTORS_PER_TRACK_OFFSET: Final[int] = 0x35
_KNOWN_SECTORS_PER_TRACK: Final[tuple[int, ...]] = (13, 16)

ImageSource = Union[BinaryIO, bytes, bytearray, memoryview]


@dataclass(frozen=True)
class Geometry:
    """Track, sector and sector size layout of an image."""

    tracks: int
    sectors: int
    sector_size: int = SECTOR_BYTES

    @property
    def image_size(self) -> int:
        return self.tracks * self.sectors * self.sector_size


def as_stream(source: ImageSource) -> BinaryIO:
    if isinstance(source, (bytes, bytearray, memoryview)):
        return io.BytesIO(bytes(source))
    readable = getattr(source, "readable", None)
    seekable = getattr(source, "seekable", None)
    if not (callable(readable) and readable()) or not (callable(seekable) and seekable()):
        raise ValueError("disk image source must be seekable and readable")
    return source


def _source_size(stream: BinaryIO) -> int:
    position = stream.tell()
    size = stream.seek(0, os.SEEK_END)
    stream.seek(position)
    return size


def probe_geometry(
    source: ImageSource,
    *,
    default_sectors: int = DEFAULT_SECTORS_PER_TRACK,
    minimum_tracks: int = DEFAULT_TRACKS,
) -> Geometry:
    """Guess the geometry of ``source`` from its size and the VTOC.

    13-sector images are recognised by a size that divides into 13-sector
    tracks but not 16-sector ones.  The VTOC's sectors-per-track byte, read
    at the offset implied by that guess, wins when it holds 13 or 16.  The
    result is a heuristic; traversal bounds protect against a wrong guess.
    """

    stream = as_stream(source)
    size = _source_size(stream)

    track_13 = 13 * SECTOR_BYTES
    track_16 = 16 * SECTOR_BYTES
    sectors = default_sectors
    if size and size % track_13 == 0 and size % track_16 != 0:
        sectors = 13

    vtoc_offset = (VTOC_TRACK * sectors + VTOC_SECTOR) * SECTOR_BYTES
    probe_offset = vtoc_offset + _VTOC_SECTORS_PER_TRACK_OFFSET
    if probe_offset < size:
        stream.seek(probe_offset)
        declared = stream.read(1)[0]
        if declared in _KNOWN_SECTORS_PER_TRACK:
            sectors = declared
        else:
            LOGGER.warning(
                "VTOC declares %d sectors per track; keeping %d", declared, sectors
            )

    tracks = max(minimum_tracks, size // (sectors * SECTOR_BYTES))
    if size < tracks * sectors * SECTOR_BYTES:
        LOGGER.debug("image of %d bytes is shorter than %d tracks", size, tracks)
    LOGGER.debug("probed geometry: %d tracks, %d sectors", tracks, sectors)
    return Geometry(tracks=tracks, sectors=sectors)


class FloppyDisk:
    """Positioned sector reads over a seekable image source.

    Every read goes back to the source; nothing is cached.  Reads past the
    end of an undersized image are zero padded to a full sector.
    """

    def __init__(
        self,
        source: ImageSource,
        number_of_tracks: int,
        number_of_sectors: int,
        sector_size: int = SECTOR_BYTES,
    ) -> None:
        if number_of_tracks <= 0:
            raise ValueError(f"number_of_tracks must be positive, received {number_of_tracks}")
        if number_of_sectors <= 0:
            raise ValueError(f"number_of_sectors must be positive, received {number_of_sectors}")
        if sector_size <= 0:
            raise ValueError(f"sector_size must be positive, received {sector_size}")
        self._stream = as_stream(source)
        self.number_of_tracks = number_of_tracks
        self.number_of_sectors = number_of_sectors
        self.sector_size = sector_size

    @property
    def geometry(self) -> Geometry:
        return Geometry(self.number_of_tracks, self.number_of_sectors, self.sector_size)

    def offset_of(self, track: int, sector: int) -> int:
        if not 0 <= track < self.number_of_tracks:
            raise OutOfRangeError(
                f"track {track} out of range (0-{self.number_of_tracks - 1})"
            )
        if not 0 <= sector < self.number_of_sectors:
            raise OutOfRangeError(
                f"sector {sector} out of range (0-{self.number_of_sectors - 1})"
            )
        return (track * self.number_of_sectors + sector) * self.sector_size

    def read_sector(self, track: int, sector: int) -> bytes:
        """Return the ``sector_size`` bytes stored at ``track``/``sector``."""

        offset = self.offset_of(track, sector)
        self._stream.seek(offset)
        data = self._stream.read(self.sector_size)
        if len(data) < self.sector_size:
            data = data + bytes(self.sector_size - len(data))
        return data

    def read_sector_into(self, track: int, sector: int, buffer: bytearray | memoryview) -> int:
        """Copy a sector into ``buffer`` and return the number of bytes copied."""

        if len(buffer) < self.sector_size:
            raise OutOfRangeError(
                f"buffer of {len(buffer)} bytes is too small for a {self.sector_size}-byte sector"
            )
        buffer[: self.sector_size] = self.read_sector(track, sector)
        return self.sector_size


__all__ = [
    "DEFAULT_SECTORS_PER_TRACK",
    "DEFAULT_TRACKS",
    "FloppyDisk",
    "Geometry",
    "ImageSource",
    "as_stream",
    "SECTOR_BYTES",
    "VTOC_SECTOR",
    "VTOC_TRACK",
    "probe_geometry",
]
