from __future__ import annotations

import pytest

from appledisk.errors import MalformedRecordError, OutOfRangeError
from appledisk.records import (
    CatalogSector,
    FileDescriptiveEntry,
    FileType,
    FreeSectorBitmap,
    TrackSectorList,
    TrackSectorPair,
    VolumeTableOfContents,
)

from conftest import file_entry


def _vtoc_bytes(bitmap: bytes = b"") -> bytearray:
    data = bytearray(256)
    data[0x01] = 17
    data[0x02] = 15
    data[0x03] = 3
    data[0x06] = 254
    data[0x27] = 122
    data[0x30] = 18
    data[0x31] = 0xFF
    data[0x34] = 35
    data[0x35] = 16
    data[0x36] = 0x00
    data[0x37] = 0x01
    data[0x38 : 0x38 + len(bitmap)] = bitmap
    return data


def test_vtoc_fields_are_read_from_documented_offsets():
    vtoc = VolumeTableOfContents.from_bytes(bytes(_vtoc_bytes()))

    assert vtoc.first_catalog_track == 17
    assert vtoc.first_catalog_sector == 15
    assert vtoc.release_number == 3
    assert vtoc.volume_number == 254
    assert vtoc.max_track_sector_pairs == 122
    assert vtoc.last_allocated_track == 18
    assert vtoc.allocation_direction == -1
    assert vtoc.tracks_per_disk == 35
    assert vtoc.sectors_per_track == 16
    assert vtoc.bytes_per_sector == 256


@pytest.mark.parametrize(
    ("record", "size"),
    [
        (VolumeTableOfContents, 256),
        (CatalogSector, 256),
        (TrackSectorList, 256),
        (FileDescriptiveEntry, 35),
        (FreeSectorBitmap, 200),
        (TrackSectorPair, 2),
    ],
)
@pytest.mark.parametrize("length", ["short", "long", "empty", "double"])
def test_records_reject_wrong_lengths(record, size, length):
    wrong_size = {"short": size - 1, "long": size + 1, "empty": 0, "double": size * 2}[length]
    with pytest.raises(MalformedRecordError, match=f"must be {size} bytes"):
        record.from_bytes(bytes(wrong_size))


def test_bitmap_all_zero_means_every_sector_used():
    vtoc = VolumeTableOfContents.from_bytes(bytes(_vtoc_bytes()))
    assert not any(vtoc.is_sector_free(track, sector) for track in range(35) for sector in range(16))
    assert vtoc.free_sector_count() == 0


def test_bitmap_all_ones_means_every_sector_free():
    vtoc = VolumeTableOfContents.from_bytes(bytes(_vtoc_bytes(b"\xff" * 200)))
    assert all(vtoc.is_sector_free(track, sector) for track in range(35) for sector in range(16))
    assert vtoc.free_sector_count() == 35 * 16


def test_bitmap_orders_sectors_from_most_significant_bit():
    bitmap = bytearray(200)
    bitmap[3 * 4] = 0x80
    bitmap[3 * 4 + 1] = 0x01
    free = FreeSectorBitmap.from_bytes(bytes(bitmap))

    assert free.is_sector_free(3, 0, 16)
    assert not free.is_sector_free(3, 1, 16)
    assert not free.is_sector_free(3, 7, 16)
    assert free.is_sector_free(3, 15, 16)
    assert not free.is_sector_free(2, 0, 16)


def test_bitmap_rejects_out_of_range_queries():
    free = FreeSectorBitmap.from_bytes(bytes(200))
    with pytest.raises(OutOfRangeError):
        free.is_sector_free(50, 0, 16)
    with pytest.raises(OutOfRangeError):
        free.is_sector_free(0, 16, 16)
    with pytest.raises(IndexError):
        free.track_bitmap(-1)


def test_catalog_sector_decodes_link_and_seven_entries():
    data = bytearray(256)
    data[0x01] = 17
    data[0x02] = 14
    data[0x0B : 0x0B + 35] = file_entry("HELLO", (18, 15), file_type=0x02, locked=True, sector_count=3)
    data[0x0B + 6 * 35 : 0x0B + 7 * 35] = file_entry("LAST", (19, 0), file_type=0x04)

    sector = CatalogSector.from_bytes(bytes(data))

    assert sector.has_next
    assert (sector.next_track, sector.next_sector) == (17, 14)
    assert len(sector.entries) == 7
    first = sector.entries[0]
    assert first.name == "HELLO"
    assert first.is_locked
    assert first.file_type is FileType.APPLESOFT_BASIC
    assert first.type_code == "A"
    assert first.sector_count == 3
    assert sector.entries[1].is_unused
    assert sector.entries[6].name == "LAST"
    assert sector.entries[6].type_code == "B"


def test_deleted_entry_recovers_original_track():
    entry = FileDescriptiveEntry.from_bytes(file_entry("GONE", (18, 3), deleted=True))

    assert entry.is_deleted
    assert not entry.is_unused
    assert entry.original_track == 18
    assert entry.name == "GONE"


def test_unknown_type_code_is_reported_as_question_mark():
    entry = FileDescriptiveEntry.from_bytes(file_entry("ODD", (18, 3), file_type=0x03))
    assert entry.file_type == 0x03
    assert entry.type_code == "?"


@pytest.mark.parametrize(
    ("file_type", "code"),
    [(0x00, "T"), (0x01, "I"), (0x02, "A"), (0x04, "B"), (0x08, "S"), (0x10, "R"), (0x20, "a"), (0x40, "b")],
)
def test_type_codes(file_type, code):
    assert FileType(file_type).code == code


def test_track_sector_list_decodes_pairs():
    data = bytearray(256)
    data[0x01] = 20
    data[0x02] = 5
    data[0x05] = 0x7A
    data[0x0C:0x10] = bytes([18, 14, 0, 0])
    data[0xFE:0x100] = bytes([34, 15])

    ts_list = TrackSectorList.from_bytes(bytes(data))

    assert ts_list.has_next
    assert ts_list.sector_offset == 122
    assert len(ts_list.pairs) == 122
    assert ts_list.pairs[0] == TrackSectorPair(18, 14)
    assert ts_list.pairs[1].is_empty
    assert ts_list.pairs[-1] == TrackSectorPair(34, 15)
    assert list(ts_list) == list(ts_list.pairs)


def test_first_bitmap_bit_is_track_zero_sector_zero():
    vtoc = VolumeTableOfContents.from_bytes(bytes(_vtoc_bytes(b"\x80")))

    assert vtoc.is_sector_free(0, 0)
    assert not vtoc.is_sector_free(0, 1)
    assert vtoc.free_sector_count() == 1


def test_bitmap_rejects_sectors_beyond_the_four_byte_span():
    data = _vtoc_bytes(b"\xff" * 200)
    data[0x35] = 40
    vtoc = VolumeTableOfContents.from_bytes(bytes(data))

    assert vtoc.is_sector_free(0, 31)
    with pytest.raises(OutOfRangeError):
        vtoc.is_sector_free(0, 33)
    assert vtoc.free_sector_count() == 35 * 32
