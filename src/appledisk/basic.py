"""Render tokenised Applesoft and Integer BASIC lines as source text.

Both dialects share one scan loop.  Applesoft stores keywords as bytes with
the high bit set and literal characters as plain ASCII; Integer BASIC does
the reverse, so each :class:`Dialect` supplies its token table, the
predicate deciding which byte range is a token, and the extras Integer
BASIC needs (quote tokens and inline integer constants).

The spacing rules reproduce the classic ``LIST`` output: a space is only
inserted between a keyword and an adjacent letter or digit, so ``FORI``
lists as ``FOR I`` while ``PRINT"HI"`` keeps its punctuation tight.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, FrozenSet, Optional, Tuple

from .errors import MalformedRecordError
from .records import u16

# Applesoft tokens $80-$FF.  Slots $EB-$FF are unused.
APPLESOFT_TOKENS: Tuple[str, ...] = (
    "END", "FOR", "NEXT", "DATA", "INPUT", "DEL", "DIM", "READ",
    "GR", "TEXT", "PR #", "IN #", "CALL", "PLOT", "HLIN", "VLIN",
    "HGR2", "HGR", "HCOLOR=", "HPLOT", "DRAW", "XDRAW", "HTAB", "HOME",
    "ROT=", "SCALE=", "SHLOAD", "TRACE", "NOTRACE", "NORMAL", "INVERSE", "FLASH",
    "COLOR=", "POP", "VTAB", "HIMEM:", "LOMEM:", "ONERR", "RESUME", "RECALL",
    "STORE", "SPEED=", "LET", "GOTO", "RUN", "IF", "RESTORE", "&",
    "GOSUB", "RETURN", "REM", "STOP", "ON", "WAIT", "LOAD", "SAVE",
    "DEF FN", "POKE", "PRINT", "CONT", "LIST", "CLEAR", "GET", "NEW",
    "TAB", "TO", "FN", "SPC(", "THEN", "AT", "NOT", "STEP",
    "+", "-", "*", "/", ";", "AND", "OR", ">",
    "=", "<", "SGN", "INT", "ABS", "USR", "FRE", "SCRN (",
    "PDL", "POS", "SQR", "RND", "LOG", "EXP", "COS", "SIN",
    "TAN", "ATN", "PEEK", "LEN", "STR$", "VAL", "ASC", "CHR$",
    "LEFT$", "RIGHT$", "MID$", "", "", "", "", "",
    "", "", "", "", "", "", "", "",
    "", "", "", "", "", "", "", "",
)

# Integer BASIC tokens $00-$7F.  Several keywords appear more than once
# because the interpreter encodes syntactic context in the token number.
INTEGER_BASIC_TOKENS: Tuple[str, ...] = (
    # $00-$0F
    "HIMEM:", "<$01>", "_", " : ", "LOAD", "SAVE", "CON", "RUN",
    "RUN", "DEL", ",", "NEW", "CLR", "AUTO", ",", "MAN",
    # $10-$1F
    "HIMEM:", "LOMEM:", "+", "-", "*", "/", "=", "#",
    ">=", ">", "<=", "<>", "<", "AND", "OR", "MOD",
    # $20-$2F
    "^", "+", "(", ",", "THEN", "THEN", ",", ",",
    "\"", "\"", "(", "!", "!", "(", "PEEK", "RND",
    # $30-$3F
    "SGN", "ABS", "PDL", "RNDX", "(", "+", "-", "NOT",
    "(", "=", "#", "LEN(", "ASC(", "SCRN(", ",", "(",
    # $40-$4F
    "$", "$", "(", ",", ",", ";", ";", ";",
    ",", ",", ",", "TEXT", "GR", "CALL", "DIM", "DIM",
    # $50-$5F
    "TAB", "END", "INPUT", "INPUT", "INPUT", "FOR", "=", "TO",
    "STEP", "NEXT", ",", "RETURN", "GOSUB", "REM", "LET", "GOTO",
    # $60-$6F
    "IF", "PRINT", "PRINT", "PRINT", "POKE", ",", "COLOR=", "PLOT",
    ",", "HLIN", ",", "AT", "VLIN", ",", "AT", "VTAB",
    # $70-$7F
    "=", "=", ")", ")", "LIST", ",", "LIST", "POP",
    "NODSP", "DSP", "NOTRACE", "DSP", "DSP", "TRACE", "PR#", "IN#",
)

APPLESOFT_REM = 0xB2
APPLESOFT_END_OF_LINE = 0x00

INTEGER_END_OF_LINE = 0x01
INTEGER_REM = 0x5D
INTEGER_UNARY_PLUS = 0x35
INTEGER_UNARY_MINUS = 0x36
INTEGER_QUOTE_START = 0x28
INTEGER_QUOTE_END = 0x29
INTEGER_CONSTANT_FIRST = 0xB0
INTEGER_CONSTANT_LAST = 0xB9


def _applesoft_literal(char: str) -> str:
    return char


def _integer_literal(char: str) -> str:
    if char >= " ":
        return char
    return "^" + chr(ord(char) + 0x40)


@dataclass(frozen=True)
class Dialect:
    """Token table and lexical quirks of one BASIC interpreter."""

    name: str
    tokens: Tuple[str, ...]
    is_token: Callable[[int], bool]
    end_of_line: int
    rem_token: int
    # Integer BASIC keeps decoding tokens inside strings so the closing
    # quote token is seen; Applesoft treats every byte there as literal.
    tokens_in_literals: bool = False
    quote_char: Optional[str] = None
    quote_start: Optional[int] = None
    quote_end: Optional[int] = None
    constant_range: Optional[range] = None
    spaced_tokens: FrozenSet[int] = field(default_factory=frozenset)
    spaced_literals: FrozenSet[str] = field(default_factory=frozenset)
    render_literal: Callable[[str], str] = _applesoft_literal

    def token_text(self, byte: int) -> str:
        return self.tokens[byte & 0x7F]


APPLESOFT = Dialect(
    name="applesoft",
    tokens=APPLESOFT_TOKENS,
    is_token=lambda byte: byte >= 0x80,
    end_of_line=APPLESOFT_END_OF_LINE,
    rem_token=APPLESOFT_REM,
    quote_char='"',
    spaced_literals=frozenset({'"'}),
)

INTEGER_BASIC = Dialect(
    name="integer",
    tokens=INTEGER_BASIC_TOKENS,
    is_token=lambda byte: byte < 0x80,
    end_of_line=INTEGER_END_OF_LINE,
    rem_token=INTEGER_REM,
    tokens_in_literals=True,
    quote_start=INTEGER_QUOTE_START,
    quote_end=INTEGER_QUOTE_END,
    constant_range=range(INTEGER_CONSTANT_FIRST, INTEGER_CONSTANT_LAST + 1),
    spaced_tokens=frozenset({INTEGER_UNARY_PLUS, INTEGER_UNARY_MINUS, INTEGER_QUOTE_START}),
    render_literal=_integer_literal,
)

_CLOSING_CHARACTERS = frozenset({")", '"'})


def detokenize(content: bytes, dialect: Dialect) -> str:
    """Render the body of one tokenised line (without its line number)."""

    parts: list[str] = []
    in_rem = False
    in_quote = False
    last_alphanumeric = False
    leading_space = False
    last_token = False

    length = len(content)
    offset = 0
    while offset < length and content[offset] != dialect.end_of_line:
        byte = content[offset]
        offset += 1

        leading_space = leading_space or last_alphanumeric
        literal_mode = in_rem or in_quote

        if (
            dialect.constant_range is not None
            and byte in dialect.constant_range
            and not literal_mode
            and not last_alphanumeric
        ):
            if offset + 2 > length:
                raise MalformedRecordError(
                    f"integer constant at offset {offset - 1} is truncated"
                )
            value = int.from_bytes(content[offset : offset + 2], "little", signed=True)
            if last_token and leading_space:
                parts.append(" ")
            parts.append(str(value))
            offset += 2
            leading_space = True
            last_token = False
            continue

        if dialect.is_token(byte) and (dialect.tokens_in_literals or not literal_mode):
            token = dialect.token_text(byte)
            if not token:
                continue
            if leading_space and (token[0].isalnum() or byte in dialect.spaced_tokens):
                parts.append(" ")
            if byte == dialect.rem_token:
                in_rem = True
            elif byte == dialect.quote_start:
                in_quote = True
            elif byte == dialect.quote_end:
                in_quote = False
            parts.append(token)
            last_alphanumeric = False
            leading_space = token[-1].isalnum() or token[-1] in _CLOSING_CHARACTERS
            last_token = True
            continue

        char = chr(byte & 0x7F)
        if (
            not literal_mode
            and last_token
            and leading_space
            and (char.isalnum() or char in dialect.spaced_literals)
        ):
            parts.append(" ")
        if dialect.quote_char is not None and char == dialect.quote_char:
            in_quote = not in_quote
        parts.append(dialect.render_literal(char))
        last_alphanumeric = char.isalnum()
        last_token = False

    return "".join(parts)


@dataclass(frozen=True)
class ApplesoftBasicLine:
    """One Applesoft line: link to the next line, line number, content."""

    MIN_SIZE = 4

    next_address: int
    line_number: int
    content: bytes

    @classmethod
    def parse(cls, data: bytes) -> tuple["ApplesoftBasicLine", int]:
        """Decode the line at the start of ``data``; return it with its size."""

        if len(data) < cls.MIN_SIZE:
            raise MalformedRecordError(
                f"Applesoft line needs at least {cls.MIN_SIZE} bytes, received {len(data)}"
            )
        terminator = data.find(bytes([APPLESOFT_END_OF_LINE]), cls.MIN_SIZE)
        end = len(data) if terminator == -1 else terminator + 1
        line = cls(
            next_address=u16(data, 0),
            line_number=u16(data, 2),
            content=bytes(data[cls.MIN_SIZE : end]),
        )
        return line, end

    def text(self) -> str:
        return detokenize(self.content, APPLESOFT)

    def __str__(self) -> str:
        return f"{self.line_number} {self.text()}"


@dataclass(frozen=True)
class IntegerBasicLine:
    """One Integer BASIC line: length byte, line number, content."""

    MIN_SIZE = 3

    length: int
    line_number: int
    content: bytes

    @classmethod
    def parse(cls, data: bytes) -> "IntegerBasicLine":
        if len(data) < cls.MIN_SIZE:
            raise MalformedRecordError(
                f"Integer BASIC line needs at least {cls.MIN_SIZE} bytes, received {len(data)}"
            )
        length = data[0]
        if length < cls.MIN_SIZE:
            raise MalformedRecordError(
                f"Integer BASIC line length {length} is shorter than its header"
            )
        if length > len(data):
            raise MalformedRecordError(
                f"Integer BASIC line length {length} exceeds {len(data)} available bytes"
            )
        return cls(
            length=length,
            line_number=u16(data, 1),
            content=bytes(data[cls.MIN_SIZE : length]),
        )

    def text(self) -> str:
        return detokenize(self.content, INTEGER_BASIC)

    def __str__(self) -> str:
        return f"{self.line_number} {self.text()}"


DIALECTS = {dialect.name: dialect for dialect in (APPLESOFT, INTEGER_BASIC)}


__all__ = [
    "APPLESOFT",
    "APPLESOFT_TOKENS",
    "ApplesoftBasicLine",
    "DIALECTS",
    "Dialect",
    "INTEGER_BASIC",
    "INTEGER_BASIC_TOKENS",
    "IntegerBasicLine",
    "detokenize",
]
