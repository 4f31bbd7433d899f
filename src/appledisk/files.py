"""Typed views over the byte stream of a DOS 3.3 file."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntFlag
from typing import Iterator, List, Tuple

from .basic import ApplesoftBasicLine, IntegerBasicLine
from .encoding import decode_text
from .errors import MalformedRecordError, require_length
from .records import u16


@dataclass(frozen=True)
class TextFile:
    """A sequential text file decoded from high ASCII."""

    value: str

    @classmethod
    def from_bytes(cls, data: bytes) -> "TextFile":
        return cls(value=decode_text(data))

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class BinaryFile:
    """A ``B`` file: load address, declared length and the payload.

    ``data`` is clamped to the bytes actually present when the header
    overstates the length, so truncated images still decode.
    """

    MIN_SIZE = 4

    address: int
    length: int
    data: bytes

    @classmethod
    def from_bytes(cls, data: bytes) -> "BinaryFile":
        if len(data) < cls.MIN_SIZE:
            return cls(address=0, length=0, data=bytes(data))
        length = u16(data, 2)
        available = min(length, len(data) - cls.MIN_SIZE)
        return cls(
            address=u16(data, 0),
            length=length,
            data=bytes(data[cls.MIN_SIZE : cls.MIN_SIZE + available]),
        )

    @property
    def is_truncated(self) -> bool:
        return len(self.data) < self.length


def _length_prefixed(data: bytes, kind: str) -> Tuple[int, bytes]:
    if len(data) < 2:
        raise MalformedRecordError(f"{kind} file needs at least 2 bytes, received {len(data)}")
    length = u16(data, 0)
    if len(data) < 2 + length:
        raise MalformedRecordError(
            f"{kind} file declares {length} bytes but only {len(data) - 2} are present"
        )
    return length, bytes(data[2 : 2 + length])


@dataclass(frozen=True)
class ApplesoftBasicFile:
    """A tokenised Applesoft program (``A`` file)."""

    MIN_SIZE = 2

    length: int
    data: bytes

    @classmethod
    def from_bytes(cls, data: bytes) -> "ApplesoftBasicFile":
        length, program = _length_prefixed(data, "Applesoft BASIC")
        return cls(length=length, data=program)

    def lines(self) -> List[ApplesoftBasicLine]:
        """Walk the program's lines until the zero link that ends it."""

        return list(self._iter_lines())

    def _iter_lines(self) -> Iterator[ApplesoftBasicLine]:
        offset = 0
        while offset + 2 <= len(self.data):
            if u16(self.data, offset) == 0:
                break
            line, consumed = ApplesoftBasicLine.parse(self.data[offset:])
            yield line
            offset += consumed

    def listing(self) -> str:
        return "\n".join(str(line) for line in self.lines())


@dataclass(frozen=True)
class IntegerBasicFile:
    """A tokenised Integer BASIC program (``I`` file)."""

    MIN_SIZE = 2

    length: int
    data: bytes

    @classmethod
    def from_bytes(cls, data: bytes) -> "IntegerBasicFile":
        length, program = _length_prefixed(data, "Integer BASIC")
        return cls(length=length, data=program)

    def lines(self) -> List[IntegerBasicLine]:
        lines: List[IntegerBasicLine] = []
        offset = 0
        while offset < len(self.data):
            line_length = self.data[offset]
            if line_length == 0:
                break
            line = IntegerBasicLine.parse(self.data[offset : offset + line_length])
            lines.append(line)
            offset += line.length
        return lines

    def listing(self) -> str:
        return "\n".join(str(line) for line in self.lines())


class RelocationFlags(IntFlag):
    NONE = 0x00
    NOT_END_OF_RLD = 0x01
    EXTERNAL = 0x10
    REVERSED = 0x20
    HIGH_BYTE = 0x40
    TWO_BYTE_FIELD = 0x80


class SymbolFlags(IntFlag):
    NONE = 0x00
    ENTRY = 0x08
    EXTERNAL = 0x10


@dataclass(frozen=True)
class RelocationDictionaryEntry:
    """A four byte relocation dictionary (RLD) record."""

    SIZE = 4

    flags: RelocationFlags
    field_offset: int
    value: int

    @classmethod
    def from_bytes(cls, data: bytes) -> "RelocationDictionaryEntry":
        require_length(data, cls.SIZE, "relocation dictionary entry")
        return cls(
            flags=RelocationFlags(data[0]),
            field_offset=u16(data, 1),
            value=data[3],
        )


@dataclass(frozen=True)
class ExternalSymbolDirectoryEntry:
    """An ESD record: a high-bit continued name, flags and two value bytes."""

    MIN_SIZE = 4

    symbol_name: str
    flags: SymbolFlags
    symbol_number_or_offset_low: int
    offset_high: int

    @classmethod
    def parse(cls, data: bytes) -> Tuple["ExternalSymbolDirectoryEntry", int]:
        """Decode the entry at the start of ``data``; return it with its size."""

        if len(data) < cls.MIN_SIZE:
            raise MalformedRecordError(
                f"ESD entry needs at least {cls.MIN_SIZE} bytes, received {len(data)}"
            )
        name: List[str] = []
        offset = 0
        while offset < len(data):
            byte = data[offset]
            offset += 1
            name.append(chr(byte & 0x7F))
            if not byte & 0x80:
                break
        if offset + 3 > len(data):
            raise MalformedRecordError("insufficient data for ESD entry after symbol name")
        entry = cls(
            symbol_name="".join(name),
            flags=SymbolFlags(data[offset]),
            symbol_number_or_offset_low=data[offset + 1],
            offset_high=data[offset + 2],
        )
        return entry, offset + 3

    @property
    def entry_offset(self) -> int:
        return self.symbol_number_or_offset_low | (self.offset_high << 8)

    def __str__(self) -> str:
        if self.flags & SymbolFlags.ENTRY:
            return f"ENTRY {self.symbol_name} = ${self.entry_offset:04X}"
        if self.flags & SymbolFlags.EXTERNAL:
            return f"EXTRN {self.symbol_name} (#{self.symbol_number_or_offset_low})"
        return f"{self.symbol_name} (flags={int(self.flags):02X})"


@dataclass(frozen=True)
class RelocatableBinaryFile:
    """An ``R`` file produced by the DOS Toolkit assembler.

    Layout: six header bytes, the code image, the relocation dictionary
    ending in a zero byte, then an optional external symbol directory that
    also ends in a zero byte.
    """

    MIN_SIZE = 6

    start_address: int
    ram_image_length: int
    code_image_length: int
    code_image: bytes
    relocation_dictionary: Tuple[RelocationDictionaryEntry, ...]
    external_symbols: Tuple[ExternalSymbolDirectoryEntry, ...]

    @classmethod
    def from_bytes(cls, data: bytes) -> "RelocatableBinaryFile":
        if len(data) < cls.MIN_SIZE:
            raise MalformedRecordError(
                f"relocatable file needs at least {cls.MIN_SIZE} bytes, received {len(data)}"
            )
        code_length = u16(data, 4)
        offset = cls.MIN_SIZE
        if offset + code_length > len(data):
            raise MalformedRecordError(
                f"code image of {code_length} bytes exceeds {len(data) - offset} available"
            )
        code_image = bytes(data[offset : offset + code_length])
        offset += code_length

        relocations: List[RelocationDictionaryEntry] = []
        while offset < len(data):
            if data[offset] == 0x00:
                offset += 1
                break
            chunk = data[offset : offset + RelocationDictionaryEntry.SIZE]
            relocations.append(RelocationDictionaryEntry.from_bytes(chunk))
            offset += RelocationDictionaryEntry.SIZE

        symbols: List[ExternalSymbolDirectoryEntry] = []
        while offset < len(data):
            if data[offset] == 0x00:
                offset += 1
                break
            symbol, consumed = ExternalSymbolDirectoryEntry.parse(data[offset:])
            symbols.append(symbol)
            offset += consumed

        return cls(
            start_address=u16(data, 0),
            ram_image_length=u16(data, 2),
            code_image_length=code_length,
            code_image=code_image,
            relocation_dictionary=tuple(relocations),
            external_symbols=tuple(symbols),
        )


__all__ = [
    "ApplesoftBasicFile",
    "BinaryFile",
    "ExternalSymbolDirectoryEntry",
    "IntegerBasicFile",
    "RelocatableBinaryFile",
    "RelocationDictionaryEntry",
    "RelocationFlags",
    "SymbolFlags",
    "TextFile",
]
