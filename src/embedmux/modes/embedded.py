from __future__ import annotations

import re

from lsprotocol import types as lsp

from embedmux.cache import DEFAULT_CLEANUP_INTERVAL, DEFAULT_MAX_ENTRIES, DocumentCache
from embedmux.modes.base import LanguageMode
from embedmux.modes.code_scan import BracketPair, CodeScan, match_brackets, scan_code
from embedmux.modes.indent import compute_initial_indent, reindent_brace_code
from embedmux.regions import DocumentRegions
from embedmux.schema import Settings
from embedmux.text_document import TextDocument

_REGION_MARKER_RE = re.compile(r"^/[/*]\s*#(end)?region\b")
_CLOSING_NAMES = {"{": "}", "(": ")", "[": "]"}


def to_range(document: TextDocument, start: int, end: int) -> lsp.Range:
    return lsp.Range(start=document.position_at(start), end=document.position_at(end))


class BraceLanguageMode(LanguageMode):
    """Shared plumbing for the css and script modes.

    Both work on the projection of the host document to their language,
    memoized per host document version, plus a lexical scan of that
    projection. Folding, selection ranges, bracket validation and
    re-indenting come from the scan.
    """

    line_comments = True
    template_strings = True
    css_words = False
    folded_brackets = "{[("

    def __init__(
        self,
        language_id: str,
        regions: DocumentCache[DocumentRegions],
        *,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL,
        autostart: bool = True,
    ) -> None:
        self.id = language_id
        self._regions = regions
        self._documents: DocumentCache[TextDocument] = DocumentCache(
            lambda document: regions.get(document).get_embedded_document(language_id),
            max_entries,
            cleanup_interval,
            autostart=autostart,
        )
        self._scans: DocumentCache[CodeScan] = DocumentCache(
            lambda document: self.scan_text(self._documents.get(document).text),
            max_entries,
            cleanup_interval,
            autostart=autostart,
        )

    def scan_text(self, text: str) -> CodeScan:
        return scan_code(
            text,
            line_comments=self.line_comments,
            template_strings=self.template_strings,
            css_words=self.css_words,
        )

    def embedded(self, document: TextDocument) -> TextDocument:
        return self._documents.get(document)

    def scan(self, document: TextDocument) -> CodeScan:
        return self._scans.get(document)

    def word_at(self, document: TextDocument, position: lsp.Position) -> tuple[int, int] | None:
        return self.scan(document).identifier_at(document.offset_at(position))

    # -- diagnostics ----------------------------------------------------

    def validation_enabled(self, settings: Settings) -> bool:
        return True

    def do_validation(self, document: TextDocument, settings: Settings) -> list[lsp.Diagnostic] | None:
        if not self.validation_enabled(settings):
            return []
        embedded = self.embedded(document)
        scan = self.scan(document)
        diagnostics: list[lsp.Diagnostic] = []
        _, unmatched = match_brackets(scan)
        for offset, char in unmatched:
            if char in _CLOSING_NAMES:
                message = f"'{_CLOSING_NAMES[char]}' expected."
            else:
                message = f"Unexpected '{char}'."
            diagnostics.append(self._diagnostic(embedded, offset, offset + 1, message))
        for start, end in scan.unterminated:
            kind = "comment" if embedded.text.startswith("/*", start) else "string literal"
            diagnostics.append(self._diagnostic(embedded, start, end, f"Unterminated {kind}."))
        diagnostics.sort(key=lambda item: (item.range.start.line, item.range.start.character))
        return diagnostics

    def _diagnostic(self, document: TextDocument, start: int, end: int, message: str) -> lsp.Diagnostic:
        return lsp.Diagnostic(
            range=to_range(document, start, end),
            message=message,
            severity=lsp.DiagnosticSeverity.Error,
            source=self.id,
        )

    # -- structure ------------------------------------------------------

    def get_folding_ranges(self, document: TextDocument) -> list[lsp.FoldingRange] | None:
        embedded = self.embedded(document)
        scan = self.scan(document)
        text = embedded.text
        pairs, _ = match_brackets(scan)
        ranges: list[lsp.FoldingRange] = []
        for pair in pairs:
            if pair.char not in self.folded_brackets:
                continue
            start_line = embedded.position_at(pair.open).line
            close = embedded.position_at(pair.close)
            end_line = close.line
            close_line_start = embedded.offset_at(lsp.Position(line=close.line, character=0))
            if text[close_line_start : pair.close].strip() == "":
                end_line -= 1
            if end_line > start_line:
                ranges.append(lsp.FoldingRange(start_line=start_line, end_line=end_line))

        region_starts: list[int] = []
        for start, end in scan.comments:
            start_line = embedded.position_at(start).line
            marker = _REGION_MARKER_RE.match(text[start:end])
            if marker is not None:
                if marker.group(1) is None:
                    region_starts.append(start_line)
                elif region_starts:
                    region_start = region_starts.pop()
                    if start_line > region_start:
                        ranges.append(
                            lsp.FoldingRange(
                                start_line=region_start,
                                end_line=start_line,
                                kind=lsp.FoldingRangeKind.Region,
                            )
                        )
                continue
            end_line = embedded.position_at(end).line
            if end_line > start_line:
                ranges.append(
                    lsp.FoldingRange(
                        start_line=start_line, end_line=end_line, kind=lsp.FoldingRangeKind.Comment
                    )
                )
        ranges.sort(key=lambda item: (item.start_line, item.end_line))
        return ranges

    def get_selection_range(
        self, document: TextDocument, position: lsp.Position
    ) -> lsp.SelectionRange | None:
        embedded = self.embedded(document)
        scan = self.scan(document)
        offset = embedded.offset_at(position)
        spans: list[tuple[int, int]] = []
        word = scan.identifier_at(offset)
        if word is not None:
            spans.append(word)
        pairs, _ = match_brackets(scan)
        enclosing: list[BracketPair] = [pair for pair in pairs if pair.open < offset <= pair.close]
        for pair in reversed(enclosing):
            spans.append((pair.open + 1, pair.close))
            spans.append((pair.open, pair.close + 1))
        if not spans:
            return lsp.SelectionRange(range=lsp.Range(start=position, end=position))

        selection: lsp.SelectionRange | None = None
        previous: tuple[int, int] | None = None
        for span in reversed(spans):
            if span == previous:
                continue
            selection = lsp.SelectionRange(range=to_range(embedded, *span), parent=selection)
            previous = span
        return selection

    # -- formatting -----------------------------------------------------

    def format_enabled(self, settings: Settings) -> bool:
        return True

    def format(
        self,
        document: TextDocument,
        range: lsp.Range,
        options: lsp.FormattingOptions,
        settings: Settings,
    ) -> list[lsp.TextEdit] | None:
        if not self.format_enabled(settings):
            return []
        embedded = self._regions.get(document).get_embedded_document(self.id, ignore_attribute_values=True)
        host_level = compute_initial_indent(document, range, options)
        return reindent_brace_code(embedded, self.scan_text(embedded.text), range, options, host_level)

    # -- lifecycle ------------------------------------------------------

    def remove_document(self, document: TextDocument) -> None:
        self._regions.delete(document)
        self._documents.delete(document)
        self._scans.delete(document)

    def dispose(self) -> None:
        self._documents.dispose()
        self._scans.dispose()
