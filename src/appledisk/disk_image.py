"""Read-only access to files within an Apple II DOS 3.3 disk image."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable, Iterator, List, Optional, Protocol, TypeVar, Union

from .config import DiskConfig
from .errors import ChainCycleError, EntryStateError, FileTypeMismatchError
from .files import (
    ApplesoftBasicFile,
    BinaryFile,
    IntegerBasicFile,
    RelocatableBinaryFile,
    TextFile,
)
from .floppy import VTOC_SECTOR, VTOC_TRACK, FloppyDisk, ImageSource, as_stream, probe_geometry
from .records import (
    CatalogSector,
    FileDescriptiveEntry,
    FileType,
    TrackSectorList,
    TrackSectorPair,
    VolumeTableOfContents,
)

LOGGER = logging.getLogger(__name__)

TypedFile = Union[
    TextFile,
    BinaryFile,
    ApplesoftBasicFile,
    IntegerBasicFile,
    RelocatableBinaryFile,
    bytes,
]


class _Linked(Protocol):
    next_track: int
    next_sector: int


_LinkedT = TypeVar("_LinkedT", bound=_Linked)


class ByteSink(Protocol):
    def write(self, data: bytes) -> object: ...


@dataclass(frozen=True)
class CatalogLine:
    """A row of the DOS ``CATALOG`` listing."""

    locked: bool
    type_code: str
    sector_count: int
    name: str
    deleted: bool = False

    def __str__(self) -> str:
        lock = "*" if self.locked else " "
        return f"{lock}{self.type_code} {self.sector_count % 1000:03d} {self.name}"


class AppleDisk(FloppyDisk):
    """Provides read-only access to the catalog and files of a DOS 3.3 image."""

    def __init__(self, source: ImageSource, config: Optional[DiskConfig] = None):
        self.config = config or DiskConfig()
        stream = as_stream(source)
        geometry = probe_geometry(
            stream,
            default_sectors=self.config.default_sectors_per_track,
            minimum_tracks=self.config.minimum_tracks,
        )
        super().__init__(stream, geometry.tracks, geometry.sectors, geometry.sector_size)
        self.vtoc = VolumeTableOfContents.from_bytes(self.read_sector(VTOC_TRACK, VTOC_SECTOR))
        self._handle: Optional[BinaryIO] = None

    @classmethod
    def load(cls, path: Path | str, config: Optional[DiskConfig] = None) -> "AppleDisk":
        """Read the image at ``path`` into memory."""

        with open(Path(path), "rb") as source:
            return cls(source.read(), config)

    @classmethod
    def open(cls, path: Path | str, config: Optional[DiskConfig] = None) -> "AppleDisk":
        """Open ``path`` for positioned reads; close with :meth:`close`."""

        handle = open(Path(path), "rb")
        try:
            disk = cls(handle, config)
        except BaseException:
            handle.close()
            raise
        disk._handle = handle
        return disk

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __enter__(self) -> "AppleDisk":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # Catalog traversal

    def read_catalog_sector(self, track: int, sector: int) -> CatalogSector:
        return CatalogSector.from_bytes(self.read_sector(track, sector))

    def read_track_sector_list(self, track: int, sector: int) -> TrackSectorList:
        return TrackSectorList.from_bytes(self.read_sector(track, sector))

    def iter_catalog_sectors(self) -> Iterator[CatalogSector]:
        return self._walk_chain(
            self.vtoc.first_catalog_track,
            self.vtoc.first_catalog_sector,
            self.read_catalog_sector,
            "catalog",
        )

    def iter_file_entries(self, include_deleted: bool = True) -> Iterator[FileDescriptiveEntry]:
        """Yield every used catalog entry, deleted ones included by default."""

        for catalog_sector in self.iter_catalog_sectors():
            for entry in catalog_sector.entries:
                if entry.is_unused:
                    continue
                if entry.is_deleted and not include_deleted:
                    continue
                yield entry

    def iter_active_entries(self) -> Iterator[FileDescriptiveEntry]:
        return self.iter_file_entries(include_deleted=False)

    def get_entry(self, name: str) -> Optional[FileDescriptiveEntry]:
        normalized = name.strip().upper()
        for entry in self.iter_active_entries():
            if entry.name.upper() == normalized:
                return entry
        return None

    def require_entry(self, name: str) -> FileDescriptiveEntry:
        entry = self.get_entry(name)
        if entry is None:
            available = ", ".join(e.name for e in self.iter_active_entries())
            raise FileNotFoundError(f"{name!r} not found (available: {available})")
        return entry

    def catalog(self, include_deleted: bool = False) -> List[CatalogLine]:
        return [
            CatalogLine(
                locked=entry.is_locked,
                type_code=entry.type_code,
                sector_count=entry.sector_count,
                name=entry.name,
                deleted=entry.is_deleted,
            )
            for entry in self.iter_file_entries(include_deleted=include_deleted)
        ]

    # File data

    def iter_track_sector_lists(self, entry: FileDescriptiveEntry) -> Iterator[TrackSectorList]:
        if entry.is_unused or entry.is_deleted:
            return iter(())
        return self._walk_chain(
            entry.first_list_track,
            entry.first_list_sector,
            self.read_track_sector_list,
            f"track/sector list of {entry.name!r}",
        )

    def iter_data_sectors(self, entry: FileDescriptiveEntry) -> Iterator[TrackSectorPair]:
        """Yield the file's data sector references in file order, holes included."""

        for track_sector_list in self.iter_track_sector_lists(entry):
            yield from track_sector_list.pairs

    def read_file_data(self, entry: FileDescriptiveEntry) -> bytes:
        """Return the file's ``sector_count * sector_size`` byte stream."""

        return b"".join(self._iter_file_chunks(entry))

    def write_file_data(self, entry: FileDescriptiveEntry, sink: ByteSink) -> int:
        """Stream the file's bytes into ``sink``; return the number written."""

        written = 0
        for chunk in self._iter_file_chunks(entry):
            sink.write(chunk)
            written += len(chunk)
        return written

    def _iter_file_chunks(self, entry: FileDescriptiveEntry) -> Iterator[bytes]:
        if entry.is_unused:
            raise EntryStateError("cannot read data from an unused file entry")
        if entry.is_deleted:
            raise EntryStateError(f"cannot read data from deleted file entry {entry.name!r}")
        return self._file_chunks(entry)

    def _file_chunks(self, entry: FileDescriptiveEntry) -> Iterator[bytes]:
        total = entry.sector_count * self.sector_size
        emitted = 0
        for pair in self.iter_data_sectors(entry):
            if emitted >= total:
                break
            size = min(self.sector_size, total - emitted)
            if pair.is_empty:
                yield bytes(size)
            else:
                yield self.read_sector(pair.track, pair.sector)[:size]
            emitted += size
        if emitted < total:
            yield bytes(total - emitted)

    # Typed readers

    def read_text_file(self, entry: FileDescriptiveEntry) -> TextFile:
        _require_type(entry, FileType.TEXT, "a text file")
        return TextFile.from_bytes(self.read_file_data(entry))

    def read_binary_file(self, entry: FileDescriptiveEntry) -> BinaryFile:
        _require_type(entry, FileType.BINARY, "a binary file")
        return BinaryFile.from_bytes(self.read_file_data(entry))

    def read_applesoft_file(self, entry: FileDescriptiveEntry) -> ApplesoftBasicFile:
        _require_type(entry, FileType.APPLESOFT_BASIC, "an Applesoft BASIC file")
        return ApplesoftBasicFile.from_bytes(self.read_file_data(entry))

    def read_integer_basic_file(self, entry: FileDescriptiveEntry) -> IntegerBasicFile:
        _require_type(entry, FileType.INTEGER_BASIC, "an Integer BASIC file")
        return IntegerBasicFile.from_bytes(self.read_file_data(entry))

    def read_relocatable_file(self, entry: FileDescriptiveEntry) -> RelocatableBinaryFile:
        _require_type(entry, FileType.RELOCATABLE, "a relocatable file")
        return RelocatableBinaryFile.from_bytes(self.read_file_data(entry))

    def read_file(self, entry: FileDescriptiveEntry) -> TypedFile:
        """Decode ``entry`` with the reader matching its declared type.

        Types without a structured decoder (S, a, b and unknown codes) are
        returned as raw bytes.
        """

        reader = _READERS.get(entry.file_type)
        if reader is None:
            return self.read_file_data(entry)
        return reader(self, entry)

    # Chain walking

    def _walk_chain(
        self,
        track: int,
        sector: int,
        read: Callable[[int, int], _LinkedT],
        kind: str,
    ) -> Iterator[_LinkedT]:
        visited: set[tuple[int, int]] = set()
        while track != 0:
            location = (track, sector)
            if location in visited:
                self._chain_hazard(f"{kind} chain revisits track {track} sector {sector}")
                return
            if len(visited) >= self.config.max_chain_length:
                self._chain_hazard(
                    f"{kind} chain exceeds {self.config.max_chain_length} sectors"
                )
                return
            visited.add(location)
            LOGGER.debug("reading %s sector at track %d sector %d", kind, track, sector)
            record = read(track, sector)
            yield record
            track, sector = record.next_track, record.next_sector

    def _chain_hazard(self, message: str) -> None:
        if self.config.strict_chains:
            raise ChainCycleError(message)
        LOGGER.warning("%s; stopping traversal", message)


def _require_type(entry: FileDescriptiveEntry, expected: FileType, description: str) -> None:
    if entry.file_type != expected:
        raise FileTypeMismatchError(f"{entry.name!r} is not {description}")


_READERS: dict[object, Callable[[AppleDisk, FileDescriptiveEntry], TypedFile]] = {
    FileType.TEXT: AppleDisk.read_text_file,
    FileType.BINARY: AppleDisk.read_binary_file,
    FileType.APPLESOFT_BASIC: AppleDisk.read_applesoft_file,
    FileType.INTEGER_BASIC: AppleDisk.read_integer_basic_file,
    FileType.RELOCATABLE: AppleDisk.read_relocatable_file,
}


__all__ = ["AppleDisk", "ByteSink", "CatalogLine", "TypedFile"]
