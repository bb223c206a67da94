"""Formatting across the host document and its embedded languages.

The host formatter runs first, on the whole requested range, so that the
embedded formatters see the final indentation of their surrounding markup.
The embedded formatters then run over the host-formatted text of a
temporary document, and everything is collapsed into one replacement edit
covering the requested range. Leading embedded ranges, which come before any
markup in the range, are formatted on the original document.
"""

from __future__ import annotations

import re

from lsprotocol.types import FormattingOptions, Position, Range, TextEdit

from embedmux.invariants import never
from embedmux.language_modes import LanguageModes, ModeRange
from embedmux.log import get_logger
from embedmux.regions import HOST_LANGUAGE
from embedmux.schema import Settings
from embedmux.text_document import TextDocument, apply_edits, is_eol

logger = get_logger(__name__)

_STYLE_TAG_RE = re.compile(r"\bstyle\b")
_SCRIPT_TAG_RE = re.compile(r"\bscript\b")

TEMPORARY_SUFFIX = ".tmp"


def enabled_embedded_languages(settings: Settings) -> dict[str, bool]:
    """Embedded languages whose formatter may run, keyed by language id."""
    unformatted = settings.html.format.unformatted
    scripts = _SCRIPT_TAG_RE.search(unformatted) is None
    return {
        "css": _STYLE_TAG_RE.search(unformatted) is None,
        "javascript": scripts,
        "typescript": scripts,
    }


def trim_trailing_range(document: TextDocument, range: Range) -> Range:
    """Drop a trailing empty line from a range that ends at column 0."""
    end = range.end
    content = document.text
    end_offset = document.offset_at(end)
    if end.character != 0 or end.line == 0 or end_offset == len(content):
        return range
    previous_line_start = document.offset_at(Position(line=end.line - 1, character=0))
    while end_offset > previous_line_start and is_eol(content, end_offset - 1):
        end_offset -= 1
    return Range(start=range.start, end=document.position_at(end_offset))


def _is_host(mode_range: ModeRange) -> bool:
    return mode_range.mode is not None and mode_range.mode.id == HOST_LANGUAGE


class FormatMerger:
    def __init__(self, language_modes: LanguageModes) -> None:
        self._language_modes = language_modes

    def format(
        self,
        document: TextDocument,
        range: Range,
        options: FormattingOptions,
        settings: Settings,
    ) -> list[TextEdit]:
        result: list[TextEdit] = []
        enabled = enabled_embedded_languages(settings)
        format_range = trim_trailing_range(document, range)

        all_ranges = self._language_modes.get_modes_in_range(document, format_range)
        index = 0
        start = format_range.start
        while index < len(all_ranges) and not _is_host(all_ranges[index]):
            mode_range = all_ranges[index]
            if not mode_range.attribute_value and mode_range.mode is not None:
                edits = mode_range.mode.format(
                    document, Range(start=start, end=mode_range.end), options, settings
                )
                if edits:
                    result.extend(edits)
            start = mode_range.end
            index += 1
        if index == len(all_ranges):
            return result

        format_range = Range(start=start, end=format_range.end)
        host = self._language_modes.get_mode(HOST_LANGUAGE)
        if host is None:
            never("formatting requires a host mode", uri=document.uri)
        host_edits = host.format(document, format_range, options, settings) or []
        host_content = apply_edits(document, host_edits)
        temporary = document.with_text(host_content, uri=f"{document.uri}{TEMPORARY_SUFFIX}")
        try:
            after_length = len(document.text) - document.offset_at(format_range.end)
            temporary_range = Range(
                start=format_range.start,
                end=temporary.position_at(len(host_content) - after_length),
            )
            embedded_edits: list[TextEdit] = []
            for mode_range in self._language_modes.get_modes_in_range(temporary, temporary_range):
                mode = mode_range.mode
                if mode is None or mode_range.attribute_value or not enabled.get(mode.id, False):
                    continue
                edits = mode.format(
                    temporary,
                    Range(start=mode_range.start, end=mode_range.end),
                    options,
                    settings,
                )
                if edits:
                    embedded_edits.extend(edits)

            if not embedded_edits:
                result.extend(host_edits)
                return result

            content = apply_edits(temporary, embedded_edits)
            replacement = content[document.offset_at(format_range.start) : len(content) - after_length]
            logger.debug(
                "merged %d host and %d embedded edits for %s",
                len(host_edits),
                len(embedded_edits),
                document.uri,
            )
            result.append(TextEdit(range=format_range, new_text=replacement))
            return result
        finally:
            self._language_modes.remove_document(temporary)
