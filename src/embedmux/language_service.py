"""Dispatch of LSP operations to the modes serving one host document.

Single-target operations go to the mode at the request position and turn a
missing mode or a ``None`` answer into the operation's empty value.
Multi-target operations ask every registered mode, in registration order,
and concatenate their lists.
"""

from __future__ import annotations

from typing import Callable, Iterable, Sequence, TypeVar

from lsprotocol import types as lsp

from embedmux.cache import DEFAULT_CLEANUP_INTERVAL, DEFAULT_MAX_ENTRIES, DocumentCache
from embedmux.custom_data import HTMLDataProvider
from embedmux.document_context import DocumentContext
from embedmux.folding import limit_ranges
from embedmux.formatting import FormatMerger
from embedmux.language_modes import LanguageModes
from embedmux.modes import CssMode, HtmlMode, JavascriptMode, LanguageMode, SemanticTokenData
from embedmux.modes.base import AutoInsertKind
from embedmux.regions import HOST_LANGUAGE, DocumentRegions, extract_regions
from embedmux.schema import Settings
from embedmux.semantic_tokens import SemanticTokenProvider
from embedmux.text_document import TextDocument, inside_range_but_not_same

T = TypeVar("T")

LANGUAGE_ID_KEY = "languageId"


def validation_enabled(language_id: str, settings: Settings) -> bool:
    validate = settings.html.validate_
    if language_id == "css":
        return validate.styles
    if language_id in ("javascript", "typescript"):
        return validate.scripts
    return True


class LanguageService:
    def __init__(
        self,
        providers: Sequence[HTMLDataProvider] = (),
        *,
        folding_range_limit: int | None = None,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL,
        autostart: bool = True,
    ) -> None:
        self.folding_range_limit = folding_range_limit
        cache_options = dict(
            max_entries=max_entries, cleanup_interval=cleanup_interval, autostart=autostart
        )
        regions: DocumentCache[DocumentRegions] = DocumentCache(extract_regions, **cache_options)
        modes: dict[str, LanguageMode] = {
            HOST_LANGUAGE: HtmlMode(providers, **cache_options),
            "css": CssMode(regions, **cache_options),
            "javascript": JavascriptMode(regions, "javascript", **cache_options),
            "typescript": JavascriptMode(regions, "typescript", **cache_options),
        }
        self.language_modes = LanguageModes(regions, modes)
        self.semantic_tokens = SemanticTokenProvider(self.language_modes)
        self.formatter = FormatMerger(self.language_modes)

    # -- dispatch -------------------------------------------------------

    def _invoke(
        self,
        document: TextDocument,
        position: lsp.Position,
        call: Callable[[LanguageMode], T | None],
    ) -> T | None:
        mode = self.language_modes.get_mode_at_position(document, position)
        if mode is None:
            return None
        return call(mode)

    def _invoke_all(
        self,
        call: Callable[[LanguageMode], list[T] | None],
        condition: Callable[[LanguageMode], bool] | None = None,
    ) -> list[T]:
        result: list[T] = []
        for mode in self.language_modes.get_all_modes():
            if condition is not None and not condition(mode):
                continue
            items = call(mode)
            if items:
                result.extend(items)
        return result

    # -- single target --------------------------------------------------

    def do_auto_insert(
        self,
        document: TextDocument,
        position: lsp.Position,
        kind: AutoInsertKind,
        settings: Settings,
    ) -> str | None:
        return self._invoke(
            document, position, lambda mode: mode.do_auto_insert(document, position, kind, settings)
        )

    def do_complete(
        self,
        document: TextDocument,
        position: lsp.Position,
        context: DocumentContext,
        settings: Settings,
    ) -> lsp.CompletionList:
        result = self._invoke(
            document, position, lambda mode: mode.do_complete(document, position, context, settings)
        )
        if result is None:
            return lsp.CompletionList(is_incomplete=False, items=[])
        return result

    def do_resolve(self, document: TextDocument, item: lsp.CompletionItem) -> lsp.CompletionItem:
        data = item.data if isinstance(item.data, dict) else {}
        language_id = data.get(LANGUAGE_ID_KEY)
        mode = self.language_modes.get_mode(language_id) if isinstance(language_id, str) else None
        if mode is None:
            return item
        resolved = mode.do_resolve(document, item)
        return resolved if resolved is not None else item

    def do_hover(
        self, document: TextDocument, position: lsp.Position, settings: Settings
    ) -> lsp.Hover | None:
        return self._invoke(document, position, lambda mode: mode.do_hover(document, position, settings))

    def find_definition(
        self, document: TextDocument, position: lsp.Position
    ) -> list[lsp.Location] | None:
        return self._invoke(document, position, lambda mode: mode.find_definition(document, position))

    def find_references(self, document: TextDocument, position: lsp.Position) -> list[lsp.Location]:
        result = self._invoke(document, position, lambda mode: mode.find_references(document, position))
        return result or []

    def find_document_highlight(
        self, document: TextDocument, position: lsp.Position
    ) -> list[lsp.DocumentHighlight]:
        result = self._invoke(
            document, position, lambda mode: mode.find_document_highlight(document, position)
        )
        return result or []

    def do_rename(
        self, document: TextDocument, position: lsp.Position, new_name: str
    ) -> lsp.WorkspaceEdit | None:
        return self._invoke(document, position, lambda mode: mode.do_rename(document, position, new_name))

    def do_signature_help(
        self, document: TextDocument, position: lsp.Position
    ) -> lsp.SignatureHelp | None:
        return self._invoke(document, position, lambda mode: mode.do_signature_help(document, position))

    def get_color_presentations(
        self, document: TextDocument, color: lsp.Color, range: lsp.Range
    ) -> list[lsp.ColorPresentation]:
        result = self._invoke(
            document, range.start, lambda mode: mode.get_color_presentations(document, color, range)
        )
        return result or []

    def do_linked_editing(
        self, document: TextDocument, position: lsp.Position
    ) -> list[lsp.Range] | None:
        # the cursor usually sits right after the tag name being edited
        before = document.position_at(max(document.offset_at(position) - 1, 0))
        mode = self.language_modes.get_mode_at_position(document, before)
        if mode is None:
            return None
        return mode.do_linked_editing(document, position)

    # -- multi target ---------------------------------------------------

    def do_validation(self, document: TextDocument, settings: Settings) -> list[lsp.Diagnostic]:
        return self._invoke_all(
            lambda mode: mode.do_validation(document, settings),
            lambda mode: validation_enabled(mode.id, settings),
        )

    def find_document_symbols(self, document: TextDocument) -> list[lsp.SymbolInformation]:
        return self._invoke_all(lambda mode: mode.find_document_symbols(document))

    def find_document_links(
        self, document: TextDocument, context: DocumentContext
    ) -> list[lsp.DocumentLink]:
        return self._invoke_all(lambda mode: mode.find_document_links(document, context))

    def find_document_colors(self, document: TextDocument) -> list[lsp.ColorInformation]:
        return self._invoke_all(lambda mode: mode.find_document_colors(document))

    def get_selection_ranges(
        self, document: TextDocument, positions: Iterable[lsp.Position]
    ) -> list[lsp.SelectionRange]:
        host = self.language_modes.get_mode(HOST_LANGUAGE)
        result: list[lsp.SelectionRange] = []
        for position in positions:
            host_range = host.get_selection_range(document, position) if host is not None else None
            if host_range is None:
                host_range = lsp.SelectionRange(range=lsp.Range(start=position, end=position))
            mode = self.language_modes.get_mode_at_position(document, position)
            selection = None
            if mode is not None and mode is not host:
                selection = mode.get_selection_range(document, position)
            if selection is None:
                result.append(host_range)
                continue
            top = selection
            while top.parent is not None and inside_range_but_not_same(host_range.range, top.parent.range):
                top = top.parent
            top.parent = host_range
            result.append(selection)
        return result

    def get_folding_ranges(self, document: TextDocument) -> list[lsp.FoldingRange]:
        host = self.language_modes.get_mode(HOST_LANGUAGE)
        whole = lsp.Range(
            start=lsp.Position(line=0, character=0),
            end=lsp.Position(line=document.line_count, character=0),
        )
        result: list[lsp.FoldingRange] = []
        if host is not None:
            result.extend(host.get_folding_ranges(document) or [])

        per_mode: dict[str, list[lsp.FoldingRange]] = {}
        for mode_range in self.language_modes.get_modes_in_range(document, whole):
            mode = mode_range.mode
            if mode is None or mode is host or mode_range.attribute_value:
                continue
            if mode.id not in per_mode:
                per_mode[mode.id] = mode.get_folding_ranges(document) or []
            result.extend(
                item
                for item in per_mode[mode.id]
                if item.start_line >= mode_range.start.line and item.end_line < mode_range.end.line
            )

        limit = self.folding_range_limit
        if limit and len(result) > limit:
            result = limit_ranges(result, limit)
        return result

    def format(
        self,
        document: TextDocument,
        range: lsp.Range | None,
        options: lsp.FormattingOptions,
        settings: Settings,
    ) -> list[lsp.TextEdit]:
        if range is None:
            range = document.full_range()
        return self.formatter.format(document, range, options, settings)

    # -- semantic tokens ------------------------------------------------

    def get_semantic_tokens(
        self, document: TextDocument, ranges: Sequence[lsp.Range] | None = None
    ) -> list[int]:
        return self.semantic_tokens.get_semantic_tokens(document, ranges)

    def get_semantic_token_legend(self) -> lsp.SemanticTokensLegend:
        return self.semantic_tokens.legend

    # -- lifecycle ------------------------------------------------------

    def get_regions(self, document: TextDocument) -> DocumentRegions:
        return self.language_modes.regions.get(document)

    def update_data_providers(self, providers: Iterable[HTMLDataProvider]) -> None:
        self.language_modes.update_data_providers(providers)

    def remove_document(self, document: TextDocument) -> None:
        self.language_modes.remove_document(document)

    def dispose(self) -> None:
        self.language_modes.dispose()


def default_semantic_token_legend() -> lsp.SemanticTokensLegend:
    """Merged legend of a service built with the default modes."""
    service = LanguageService(autostart=False)
    try:
        return service.get_semantic_token_legend()
    finally:
        service.dispose()


__all__ = ["LanguageService", "SemanticTokenData", "default_semantic_token_legend", "validation_enabled"]
