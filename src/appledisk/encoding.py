"""Apple II high-ASCII translation helpers shared by the record decoders."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final, Iterable

FILE_NAME_LENGTH: Final[int] = 30
_DELETED_NAME_LENGTH: Final[int] = FILE_NAME_LENGTH - 1

_NUL: Final[int] = 0x00
_CARRIAGE_RETURN: Final[str] = "\r"
_NEWLINE: Final[str] = "\n"


def to_char(byte: int) -> str:
    """Return the 7-bit character for an Apple II byte."""

    return chr(int(byte) & 0x7F)


def _translate(char: str) -> str:
    if char == _CARRIAGE_RETURN:
        return _NEWLINE
    if " " <= char < "\x7f" or char == "\t":
        return char
    return ""


def decode_text(data: Iterable[int]) -> str:
    """Decode a high-ASCII text payload up to the first NUL byte."""

    parts: list[str] = []
    for raw in data:
        if raw == _NUL:
            break
        parts.append(_translate(to_char(raw)))
    return "".join(parts)


def decode_file_name(raw: bytes, deleted: bool = False) -> str:
    """Decode a catalog file name field.

    Names are padded with (high-bit) spaces.  A space only ends the name when
    every remaining byte is a space too, so embedded spaces survive.  Deleted
    entries reuse the final byte for the original track number, which is
    therefore excluded.
    """

    length = min(len(raw), _DELETED_NAME_LENGTH) if deleted else len(raw)
    chars = [to_char(byte) for byte in raw[:length]]
    name: list[str] = []
    for index, char in enumerate(chars):
        if char == " " and index > 0 and all(rest == " " for rest in chars[index:]):
            break
        name.append(char)
    return "".join(name).rstrip(" ")


@dataclass
class AppleTextDecoder:
    """Incrementally decode high-ASCII text chunks.

    Output is identical to :func:`decode_text` over the concatenated input,
    however the payload is split across :meth:`feed` calls.
    """

    finished: bool = False
    _pending: list[str] = field(default_factory=list)

    def feed(self, chunk: Iterable[int]) -> str:
        if self.finished:
            return ""
        for raw in chunk:
            if raw == _NUL:
                self.finished = True
                break
            translated = _translate(to_char(raw))
            if translated:
                self._pending.append(translated)
        output = "".join(self._pending)
        self._pending.clear()
        return output

    def reset(self) -> None:
        self.finished = False
        self._pending.clear()


__all__ = [
    "AppleTextDecoder",
    "FILE_NAME_LENGTH",
    "decode_file_name",
    "decode_text",
    "to_char",
]
