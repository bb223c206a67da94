"""Embedded-language regions of an HTML document.

``extract_regions`` scans the host text once and records every span that
belongs to another language. ``DocumentRegions`` answers routing questions
against that immutable region list and builds the synthetic single-language
documents handed to the per-language modes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from lsprotocol.types import Position, Range

from embedmux.scanner import Scanner, TokenType
from embedmux.text_document import TextDocument

HOST_LANGUAGE = "html"
CSS_STYLE_RULE = "__"

_ATTRIBUTE_LANGUAGE_RE = re.compile(r"^(style)$|^(on\w+)$", re.IGNORECASE)
_JAVASCRIPT_TYPE_RE = re.compile(
    r"[\"'](module|(text|application)/(java|ecma)script|text/babel)[\"']"
)
_TYPESCRIPT_TYPE_RE = re.compile(r"[\"']text/typescript[\"']")

_MAX_EMBEDDED_LANGUAGES = 3


@dataclass(frozen=True)
class Region:
    language_id: str | None
    start: int
    end: int
    attribute_value: bool = False


@dataclass(frozen=True)
class LanguageRange:
    start: Position
    end: Position
    language_id: str | None
    attribute_value: bool = False


def _attribute_language(attribute_name: str) -> str | None:
    match = _ATTRIBUTE_LANGUAGE_RE.match(attribute_name)
    if match is None:
        return None
    return "css" if match.group(1) else "javascript"


def _script_dialect(type_value: str) -> str | None:
    if _JAVASCRIPT_TYPE_RE.search(type_value):
        return "javascript"
    if _TYPESCRIPT_TYPE_RE.search(type_value):
        return "typescript"
    return None


def _unquote(value: str) -> str:
    if value[:1] in ("'", '"'):
        value = value[1:]
        if value[-1:] in ("'", '"'):
            value = value[:-1]
    return value


def extract_regions(document: TextDocument) -> DocumentRegions:
    text = document.text
    scanner = Scanner(text)
    regions: list[Region] = []
    imported_scripts: list[str] = []

    last_tag_name = ""
    last_attribute_name: str | None = None
    language_from_type: str | None = "javascript"

    token = scanner.scan()
    while token is not TokenType.EOS:
        if token is TokenType.START_TAG:
            last_tag_name = scanner.token_text
            last_attribute_name = None
            language_from_type = "javascript"
        elif token is TokenType.STYLES:
            regions.append(Region("css", scanner.token_offset, scanner.token_end))
        elif token is TokenType.SCRIPT:
            regions.append(
                Region(language_from_type, scanner.token_offset, scanner.token_end)
            )
        elif token is TokenType.ATTRIBUTE_NAME:
            last_attribute_name = scanner.token_text
        elif token is TokenType.ATTRIBUTE_VALUE:
            is_script_tag = last_tag_name.lower() == "script"
            if last_attribute_name == "src" and is_script_tag:
                imported_scripts.append(_unquote(scanner.token_text))
            elif last_attribute_name == "type" and is_script_tag:
                language_from_type = _script_dialect(scanner.token_text)
            elif last_attribute_name is not None:
                language_id = _attribute_language(last_attribute_name)
                if language_id is not None:
                    start = scanner.token_offset
                    end = scanner.token_end
                    if text[start] in ("'", '"'):
                        start += 1
                        if end - 1 >= start and text[end - 1] == text[start - 1]:
                            end -= 1
                    regions.append(Region(language_id, start, end, attribute_value=True))
            last_attribute_name = None
        token = scanner.scan()

    return DocumentRegions(document, tuple(regions), tuple(imported_scripts))


def _wrapper_prefix(region: Region) -> str:
    if region.attribute_value and region.language_id == "css":
        return f"{CSS_STYLE_RULE}{{"
    return ""


def _wrapper_suffix(region: Region) -> str:
    if region.attribute_value:
        if region.language_id == "css":
            return "}"
        if region.language_id == "javascript":
            return ";"
    return ""


def _blank_gap(gap: str, before: str, after: str) -> str:
    """Blank out ``gap`` keeping line breaks.

    ``before`` overwrites the leading blanks and ``after`` the trailing blanks
    of the last line; a wrapper that does not fit is cut so the gap keeps its
    length.
    """
    chars = [char if char in "\r\n" else " " for char in gap]
    cursor = 0
    for char in before:
        if cursor >= len(chars) or chars[cursor] != " ":
            break
        chars[cursor] = char
        cursor += 1
    tail = len(chars)
    for char in reversed(after):
        if tail <= cursor or chars[tail - 1] != " ":
            break
        tail -= 1
        chars[tail] = char
    return "".join(chars)


class DocumentRegions:
    """Immutable region index for one document version."""

    def __init__(
        self,
        document: TextDocument,
        regions: tuple[Region, ...],
        imported_scripts: tuple[str, ...] = (),
    ) -> None:
        self._document = document
        self._regions = regions
        self._imported_scripts = imported_scripts

    @property
    def document(self) -> TextDocument:
        return self._document

    @property
    def regions(self) -> tuple[Region, ...]:
        return self._regions

    def get_imported_scripts(self) -> list[str]:
        return list(self._imported_scripts)

    def get_language_at_position(self, position: Position) -> str | None:
        offset = self._document.offset_at(position)
        for region in self._regions:
            if region.start > offset:
                break
            if offset <= region.end:
                return region.language_id
        return HOST_LANGUAGE

    def get_languages_in_document(self) -> list[str]:
        result: list[str] = []
        for region in self._regions:
            if region.language_id and region.language_id not in result:
                result.append(region.language_id)
                if len(result) == _MAX_EMBEDDED_LANGUAGES:
                    return result
        result.append(HOST_LANGUAGE)
        return result

    def get_language_ranges(self, range: Range | None = None) -> list[LanguageRange]:
        document = self._document
        if range is None:
            end_offset = len(document.text)
            current_pos = Position(line=0, character=0)
            current_offset = 0
        else:
            end_offset = document.offset_at(range.end)
            current_pos = range.start
            current_offset = document.offset_at(range.start)

        result: list[LanguageRange] = []
        for region in self._regions:
            if region.end > current_offset and region.start < end_offset:
                start = max(region.start, current_offset)
                start_pos = document.position_at(start)
                if current_offset < region.start:
                    result.append(LanguageRange(current_pos, start_pos, HOST_LANGUAGE))
                end = min(region.end, end_offset)
                end_pos = document.position_at(end)
                if end > region.start:
                    result.append(
                        LanguageRange(
                            start_pos, end_pos, region.language_id, region.attribute_value
                        )
                    )
                current_offset = end
                current_pos = end_pos
        if current_offset < end_offset:
            end_pos = range.end if range is not None else document.position_at(end_offset)
            result.append(LanguageRange(current_pos, end_pos, HOST_LANGUAGE))
        return result

    def get_embedded_document(
        self, language_id: str, ignore_attribute_values: bool = False
    ) -> TextDocument:
        content = self._document.text
        parts: list[str] = []
        current = 0
        last_suffix = ""
        for region in self._regions:
            if region.language_id != language_id:
                continue
            if ignore_attribute_values and region.attribute_value:
                continue
            parts.append(
                _blank_gap(content[current : region.start], last_suffix, _wrapper_prefix(region))
            )
            parts.append(content[region.start : region.end])
            current = region.end
            last_suffix = _wrapper_suffix(region)
        parts.append(_blank_gap(content[current:], last_suffix, ""))
        return self._document.with_text("".join(parts), language_id=language_id)
