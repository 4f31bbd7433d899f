"""Pytest configuration and shared DOS 3.3 image builders."""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Dict, Iterable, List, Sequence, Tuple

import pytest

_REPO_ROOT = Path(__file__).resolve().parents[1]
_root_str = str(_REPO_ROOT)
if _root_str not in sys.path:
    sys.path.insert(0, _root_str)

import sitecustomize  # noqa: F401,E402  # Ensure src/ is on sys.path via sitecustomize hook.

SECTOR_BYTES = 256
TRACKS = 35
SECTORS = 16
VTOC_TRACK = 17
FIRST_CATALOG = (17, 15)


def high_ascii(text: str, width: int = 30) -> bytes:
    """Encode ``text`` as a space padded, high-bit catalog name."""

    encoded = bytes(ord(char) | 0x80 for char in text)
    return encoded.ljust(width, b"\xa0")


class ImageBuilder:
    """Assemble a synthetic DOS 3.3 image sector by sector."""

    def __init__(self, tracks: int = TRACKS, sectors: int = SECTORS) -> None:
        self.tracks = tracks
        self.sectors = sectors
        self.image = bytearray(tracks * sectors * SECTOR_BYTES)
        self._entries: Dict[Tuple[int, int], List[bytes]] = {}
        self.write_vtoc()

    def offset(self, track: int, sector: int) -> int:
        return (track * self.sectors + sector) * SECTOR_BYTES

    def write_sector(self, track: int, sector: int, data: bytes) -> None:
        start = self.offset(track, sector)
        self.image[start : start + SECTOR_BYTES] = bytes(data).ljust(SECTOR_BYTES, b"\x00")

    def write_vtoc(self, catalog: Tuple[int, int] = FIRST_CATALOG, volume: int = 254) -> None:
        vtoc = bytearray(SECTOR_BYTES)
        vtoc[0x01], vtoc[0x02] = catalog
        vtoc[0x03] = 3
        vtoc[0x06] = volume
        vtoc[0x27] = 122
        vtoc[0x30] = 18
        vtoc[0x31] = 1
        vtoc[0x34] = self.tracks
        vtoc[0x35] = self.sectors
        vtoc[0x36:0x38] = SECTOR_BYTES.to_bytes(2, "little")
        self.write_sector(VTOC_TRACK, 0, vtoc)

    def write_catalog(
        self,
        track: int,
        sector: int,
        entries: Sequence[bytes],
        next_location: Tuple[int, int] = (0, 0),
    ) -> None:
        data = bytearray(SECTOR_BYTES)
        data[0x01], data[0x02] = next_location
        for index, entry in enumerate(entries):
            start = 0x0B + index * 35
            data[start : start + 35] = entry
        self.write_sector(track, sector, data)

    def write_ts_list(
        self,
        track: int,
        sector: int,
        pairs: Iterable[Tuple[int, int]],
        next_location: Tuple[int, int] = (0, 0),
    ) -> None:
        data = bytearray(SECTOR_BYTES)
        data[0x01], data[0x02] = next_location
        for index, (pair_track, pair_sector) in enumerate(pairs):
            data[0x0C + index * 2] = pair_track
            data[0x0D + index * 2] = pair_sector
        self.write_sector(track, sector, data)

    def to_bytes(self) -> bytes:
        return bytes(self.image)


def file_entry(
    name: str,
    ts_list: Tuple[int, int],
    *,
    file_type: int = 0x00,
    locked: bool = False,
    sector_count: int = 1,
    deleted: bool = False,
) -> bytes:
    """Build a 35-byte catalog entry."""

    entry = bytearray(35)
    track, sector = ts_list
    name_bytes = bytearray(high_ascii(name))
    if deleted:
        name_bytes[29] = track
        track = 0xFF
    entry[0] = track
    entry[1] = sector
    entry[2] = file_type | (0x80 if locked else 0x00)
    entry[3:33] = name_bytes
    entry[33:35] = sector_count.to_bytes(2, "little")
    return bytes(entry)


SAMPLE_APPLESOFT = bytes([0x09, 0x08, 0x0A, 0x00, 0xBA]) + b"HI" + b"\x00\x00\x00"
SAMPLE_INTEGER = bytes([0x05, 0x0A, 0x00, 0x51, 0x01])


def length_prefixed(program: bytes) -> bytes:
    return len(program).to_bytes(2, "little") + program


def build_sample_image(builder: ImageBuilder) -> bytes:
    """Lay out the catalog and files shared by the image and CLI tests."""

    builder.write_catalog(
        17,
        15,
        [
            file_entry("HELLO", (18, 0), file_type=0x02, locked=True, sector_count=2),
            file_entry("README", (18, 2), file_type=0x00, sector_count=2),
            file_entry("GONE", (19, 0), file_type=0x04, deleted=True, sector_count=2),
            file_entry("SPARSE", (19, 1), file_type=0x04, sector_count=4),
        ],
        next_location=(17, 14),
    )
    builder.write_catalog(
        17,
        14,
        [
            file_entry("COUNTER", (20, 0), file_type=0x01, sector_count=2),
            file_entry("HOLES", (21, 0), file_type=0x08, sector_count=3),
        ],
    )

    builder.write_ts_list(18, 0, [(18, 1)])
    builder.write_sector(18, 1, length_prefixed(SAMPLE_APPLESOFT))

    builder.write_ts_list(18, 2, [(18, 3)])
    builder.write_sector(18, 3, bytes(ord(char) | 0x80 for char in "HELLO\r"))

    builder.write_ts_list(19, 1, [(19, 2), (0, 0), (19, 3)])
    builder.write_sector(19, 2, b"\x11" * 256)
    builder.write_sector(19, 3, b"\x33" * 256)

    builder.write_ts_list(20, 0, [(20, 1)])
    builder.write_sector(20, 1, length_prefixed(SAMPLE_INTEGER))

    builder.write_ts_list(21, 0, [])
    return builder.to_bytes()


@pytest.fixture
def image_builder() -> ImageBuilder:
    return ImageBuilder()
