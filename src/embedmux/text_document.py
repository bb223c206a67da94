from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field
from typing import Iterable

from lsprotocol.types import Position, PositionEncodingKind, Range, TextEdit
from pygls.workspace import PositionCodec


@dataclass(frozen=True)
class TextDocument:
    """Immutable snapshot of a document's text.

    Offsets index the Python string. ``Position.character`` counts code
    units of ``position_encoding`` (UTF-16 unless the client negotiated
    another encoding). ``\\r\\n``, ``\\r`` and ``\\n`` all end a line.
    """

    uri: str
    language_id: str
    version: int
    text: str
    position_encoding: PositionEncodingKind | str = field(
        default=PositionEncodingKind.Utf16, compare=False
    )
    _line_offsets: tuple[int, ...] = field(
        init=False, repr=False, compare=False, default=()
    )
    _codec: PositionCodec | None = field(init=False, repr=False, compare=False, default=None)
    _single_unit: bool = field(init=False, repr=False, compare=False, default=True)

    def __post_init__(self) -> None:
        encoding = _encoding_kind(self.position_encoding)
        codec = PositionCodec(encoding=encoding)
        object.__setattr__(self, "position_encoding", encoding)
        object.__setattr__(self, "_line_offsets", _compute_line_offsets(self.text))
        object.__setattr__(self, "_codec", codec)
        object.__setattr__(self, "_single_unit", codec.client_num_units(self.text) == len(self.text))

    @property
    def line_count(self) -> int:
        return len(self._line_offsets)

    def get_text(self, range: Range | None = None) -> str:
        if range is None:
            return self.text
        return self.text[self.offset_at(range.start) : self.offset_at(range.end)]

    def with_text(self, text: str, *, uri: str | None = None, language_id: str | None = None) -> TextDocument:
        """A document sharing this one's version and position encoding."""
        return TextDocument(
            uri=self.uri if uri is None else uri,
            language_id=self.language_id if language_id is None else language_id,
            version=self.version,
            text=text,
            position_encoding=self.position_encoding,
        )

    def units(self, start: int, end: int) -> int:
        """Number of position code units spanned by ``text[start:end]``."""
        if self._single_unit:
            return max(end - start, 0)
        return self._codec.client_num_units(self.text[start:end])

    def offset_at(self, position: Position) -> int:
        offsets = self._line_offsets
        if position.line >= len(offsets):
            return len(self.text)
        if position.line < 0:
            return 0
        line_offset = offsets[position.line]
        next_line_offset = (
            offsets[position.line + 1]
            if position.line + 1 < len(offsets)
            else len(self.text)
        )
        if self._single_unit:
            return max(min(line_offset + position.character, next_line_offset), line_offset)
        # a column inside a multi-unit character resolves to the end of it
        offset = line_offset
        counted = 0
        while offset < next_line_offset and counted < position.character:
            counted += self._codec.client_num_units(self.text[offset])
            offset += 1
        return offset

    def position_at(self, offset: int) -> Position:
        offset = max(min(offset, len(self.text)), 0)
        line = bisect_right(self._line_offsets, offset) - 1
        line_offset = self._line_offsets[line]
        return Position(line=line, character=self.units(line_offset, offset))

    def full_range(self) -> Range:
        return Range(start=Position(line=0, character=0), end=self.position_at(len(self.text)))


def _encoding_kind(encoding: PositionEncodingKind | str) -> PositionEncodingKind:
    for kind in PositionEncodingKind:
        if encoding == kind:
            return kind
    return PositionEncodingKind.Utf16


def _compute_line_offsets(text: str) -> tuple[int, ...]:
    offsets = [0]
    index = 0
    length = len(text)
    while index < length:
        char = text[index]
        if char == "\r":
            if index + 1 < length and text[index + 1] == "\n":
                index += 1
            offsets.append(index + 1)
        elif char == "\n":
            offsets.append(index + 1)
        index += 1
    return tuple(offsets)


def apply_edits(document: TextDocument, edits: Iterable[TextEdit]) -> str:
    """Apply non-overlapping edits; edits at the same start keep their order."""
    indexed = list(enumerate(edits))
    indexed.sort(
        key=lambda item: (
            item[1].range.start.line,
            item[1].range.start.character,
            item[0],
        )
    )
    text = document.text
    parts: list[str] = []
    last = 0
    for _, edit in indexed:
        start = document.offset_at(edit.range.start)
        end = document.offset_at(edit.range.end)
        if start < last:
            raise ValueError("overlapping edits")
        parts.append(text[last:start])
        parts.append(edit.new_text)
        last = end
    parts.append(text[last:])
    return "".join(parts)


def before_or_same(p1: Position, p2: Position) -> bool:
    return p1.line < p2.line or (p1.line == p2.line and p1.character <= p2.character)


def equal_range(r1: Range, r2: Range) -> bool:
    return (
        r1.start.line == r2.start.line
        and r1.start.character == r2.start.character
        and r1.end.line == r2.end.line
        and r1.end.character == r2.end.character
    )


def inside_range_but_not_same(r1: Range, r2: Range) -> bool:
    """True when r2 lies within r1 and differs from it."""
    return (
        before_or_same(r1.start, r2.start)
        and before_or_same(r2.end, r1.end)
        and not equal_range(r1, r2)
    )


def is_eol(content: str, offset: int) -> bool:
    return 0 <= offset < len(content) and content[offset] in "\r\n"


def is_whitespace_only(text: str) -> bool:
    return not text or text.isspace()

