#!/usr/bin/env python3
"""Decode a tokenised Applesoft or Integer BASIC program into a text listing.

The input is the byte stream of an ``A`` or ``I`` file as stored inside a
DOS 3.3 image: a two byte length prefix followed by the tokenised lines.
Programs extracted with ``appledisk-dump`` can be fed straight in.
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Iterable, Sequence

if __package__ in {None, ""}:
    import sys

    sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from appledisk.basic import ApplesoftBasicLine, IntegerBasicLine
from appledisk.files import ApplesoftBasicFile, IntegerBasicFile

_READERS = {
    "applesoft": ApplesoftBasicFile.from_bytes,
    "integer": IntegerBasicFile.from_bytes,
}


def decode_program(data: bytes, dialect: str) -> list[ApplesoftBasicLine | IntegerBasicLine]:
    return _READERS[dialect](data).lines()


def write_listing(lines: Iterable[ApplesoftBasicLine | IntegerBasicLine], output: Path) -> None:
    """Write the decoded BASIC listing to *output*."""

    with output.open("w", encoding="utf-8") as handle:
        for line in lines:
            handle.write(f"{line}\n")


def parse_arguments(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("program", type=Path, help="Tokenised BASIC program to decode")
    parser.add_argument(
        "--dialect",
        choices=sorted(_READERS),
        default="applesoft",
        help="BASIC dialect the program was saved from",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        help="Destination for the decoded listing (defaults to stdout)",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_arguments(argv)
    lines = decode_program(args.program.read_bytes(), args.dialect)

    if args.output:
        write_listing(lines, args.output)
    else:
        for line in lines:
            print(line)


if __name__ == "__main__":  # pragma: no cover - manual entry point
    main()
