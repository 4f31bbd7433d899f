"""Extract the files of an Apple II DOS 3.3 disk image to a host directory."""

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Iterable, List, Sequence, TextIO, TypedDict

from .config import AppConfig, ConfigError, ExtractConfig, load_config
from .disk_image import AppleDisk, CatalogLine
from .encoding import AppleTextDecoder
from .errors import DiskImageError
from .records import FileDescriptiveEntry, FileType

LOGGER = logging.getLogger(__name__)

_INVALID_NAME_CHARACTERS = frozenset('/\\:*?"<>|')
_LISTING_READERS = {
    FileType.APPLESOFT_BASIC: AppleDisk.read_applesoft_file,
    FileType.INTEGER_BASIC: AppleDisk.read_integer_basic_file,
}


class CatalogRecord(TypedDict):
    """Structured representation of one catalog entry."""

    name: str
    type: str
    locked: bool
    sectors: int
    deleted: bool


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="appledisk-dump", description=__doc__)
    parser.add_argument("image", type=Path, help="DOS 3.3 disk image (.dsk/.do)")
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        help="Destination directory (defaults to the image name without suffix)",
    )
    parser.add_argument("--config", type=Path, help="Optional TOML configuration file")
    parser.add_argument(
        "--list", action="store_true", help="Print the catalog instead of extracting"
    )
    parser.add_argument(
        "--json", action="store_true", help="Print the catalog as JSON records"
    )
    parser.add_argument(
        "--include-deleted",
        action="store_true",
        help="Show deleted entries when listing the catalog",
    )
    parser.add_argument(
        "--basic-listings",
        action="store_true",
        help="Also write detokenised .lst listings for BASIC programs",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity",
    )
    return parser.parse_args(argv)


def sanitize_name(name: str) -> str:
    """Return ``name`` with characters the host cannot store replaced by ``_``."""

    cleaned = "".join(
        "_" if char in _INVALID_NAME_CHARACTERS or not char.isprintable() else char
        for char in name
    )
    cleaned = cleaned.strip().rstrip(".")
    return cleaned or "UNNAMED"


def build_catalog_payload(lines: Iterable[CatalogLine]) -> List[CatalogRecord]:
    return [
        {
            "name": line.name,
            "type": line.type_code,
            "locked": line.locked,
            "sectors": line.sector_count,
            "deleted": line.deleted,
        }
        for line in lines
    ]


def render_catalog(disk: AppleDisk, *, include_deleted: bool = False) -> List[str]:
    lines = [f"DISK VOLUME {disk.vtoc.volume_number:03d}", ""]
    for line in disk.catalog(include_deleted=include_deleted):
        text = str(line)
        if line.deleted:
            text = f"{text} (deleted)"
        lines.append(text)
    return lines


class _TextSink:
    """Decode high-ASCII chunks into a text handle as they are written."""

    def __init__(self, handle: TextIO) -> None:
        self._handle = handle
        self._decoder = AppleTextDecoder()

    def write(self, data: bytes) -> int:
        return self._handle.write(self._decoder.feed(data))


def _unique_path(directory: Path, stem: str, extension: str, used: set[str]) -> Path:
    candidate = f"{stem}{extension}"
    counter = 2
    while candidate.lower() in used:
        candidate = f"{stem}_{counter}{extension}"
        counter += 1
    used.add(candidate.lower())
    return directory / candidate


def extract_entry(
    disk: AppleDisk,
    entry: FileDescriptiveEntry,
    target: Path,
    settings: ExtractConfig,
) -> List[Path]:
    """Write ``entry`` to ``target``; return every path written.

    Raw bytes are written before any structured decoding so a program whose
    listing fails to decode is still extracted.  A partially written data
    file is removed when the sector chain cannot be read.
    """

    written = [target]
    try:
        if entry.file_type == FileType.TEXT and settings.decode_text:
            with target.open("w", encoding="utf-8", newline="") as handle:
                disk.write_file_data(entry, _TextSink(handle))
        else:
            with target.open("wb") as handle:
                disk.write_file_data(entry, handle)
    except DiskImageError:
        target.unlink(missing_ok=True)
        raise

    reader = _LISTING_READERS.get(entry.file_type)
    if settings.list_basic and reader is not None:
        decoded = reader(disk, entry)
        listing_path = target.with_suffix(target.suffix + ".lst")
        listing_path.write_text(decoded.listing() + "\n", encoding="utf-8")
        written.append(listing_path)
    return written


def extract_all(disk: AppleDisk, output: Path, settings: ExtractConfig) -> int:
    output.mkdir(parents=True, exist_ok=True)
    used: set[str] = set()
    count = 0
    for entry in disk.iter_active_entries():
        extension = settings.extension_for(entry.type_code)
        target = _unique_path(output, sanitize_name(entry.name), extension, used)
        try:
            paths = extract_entry(disk, entry, target, settings)
        except DiskImageError as error:
            LOGGER.error("failed to extract %r: %s", entry.name, error)
            continue
        count += 1
        lock = " [locked]" if entry.is_locked else ""
        for path in paths:
            print(f"Wrote: {path.name} ({path.stat().st_size} bytes) [{entry.type_code}]{lock}")
    return count


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for ``appledisk-dump``."""

    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level))

    image: Path = args.image
    if not image.exists():
        raise SystemExit(f"input file not found: {image}")

    config = AppConfig()
    if args.config is not None:
        if not args.config.exists():
            raise SystemExit(f"configuration file not found: {args.config}")
        try:
            config = load_config(args.config)
        except ConfigError as error:
            raise SystemExit(str(error)) from error

    settings = config.extract
    if args.basic_listings:
        settings = replace(settings, list_basic=True)

    try:
        with AppleDisk.open(image, config.disk) as disk:
            if args.json:
                lines = disk.catalog(include_deleted=args.include_deleted)
                print(json.dumps(build_catalog_payload(lines)))
                return 0
            if args.list:
                print("\n".join(render_catalog(disk, include_deleted=args.include_deleted)))
                return 0

            output = args.output or settings.output or Path(image.stem)
            entries = sum(1 for _ in disk.iter_active_entries())
            print(f"Found {entries} files on disk.")
            print(f"Volume: {disk.vtoc.volume_number}")
            count = extract_all(disk, output, settings)
            print(f"Extraction complete: {count} files in {output.resolve()}")
            return 0 if count == entries else 1
    except DiskImageError as error:
        raise SystemExit(f"cannot read {image}: {error}") from error


if __name__ == "__main__":  # pragma: no cover - exercised via python -m
    raise SystemExit(main())
