"""Backend contract shared by every per-language mode.

A mode answers LSP-shaped questions for one language. The multiplexer always
passes the host document; a mode projects it to its own synthetic
sub-document when it needs one, and answers in the host's coordinate space
(projection preserves offsets, so no translation is needed).

Every operation returns ``None`` when the mode does not support it. Modes
override only what they implement; the multiplexer turns ``None`` into the
operation's empty value.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from lsprotocol import types as lsp

from embedmux.text_document import TextDocument

if TYPE_CHECKING:
    from embedmux.document_context import DocumentContext
    from embedmux.schema import Settings

AutoInsertKind = Literal["autoClose", "autoQuote"]


@dataclass
class SemanticTokenData:
    start: lsp.Position
    length: int
    type_index: int
    modifier_set: int


class LanguageMode:
    id: str = ""

    def do_auto_insert(
        self, document: TextDocument, position: lsp.Position, kind: AutoInsertKind, settings: Settings
    ) -> str | None:
        return None

    def do_complete(
        self,
        document: TextDocument,
        position: lsp.Position,
        context: DocumentContext,
        settings: Settings,
    ) -> lsp.CompletionList | None:
        return None

    def do_resolve(self, document: TextDocument, item: lsp.CompletionItem) -> lsp.CompletionItem | None:
        return None

    def do_hover(
        self, document: TextDocument, position: lsp.Position, settings: Settings
    ) -> lsp.Hover | None:
        return None

    def do_validation(self, document: TextDocument, settings: Settings) -> list[lsp.Diagnostic] | None:
        return None

    def find_definition(
        self, document: TextDocument, position: lsp.Position
    ) -> list[lsp.Location] | None:
        return None

    def find_references(
        self, document: TextDocument, position: lsp.Position
    ) -> list[lsp.Location] | None:
        return None

    def find_document_highlight(
        self, document: TextDocument, position: lsp.Position
    ) -> list[lsp.DocumentHighlight] | None:
        return None

    def do_rename(
        self, document: TextDocument, position: lsp.Position, new_name: str
    ) -> lsp.WorkspaceEdit | None:
        return None

    def find_document_links(
        self, document: TextDocument, context: DocumentContext
    ) -> list[lsp.DocumentLink] | None:
        return None

    def find_document_symbols(self, document: TextDocument) -> list[lsp.SymbolInformation] | None:
        return None

    def get_folding_ranges(self, document: TextDocument) -> list[lsp.FoldingRange] | None:
        return None

    def get_selection_range(
        self, document: TextDocument, position: lsp.Position
    ) -> lsp.SelectionRange | None:
        return None

    def find_document_colors(self, document: TextDocument) -> list[lsp.ColorInformation] | None:
        return None

    def get_color_presentations(
        self, document: TextDocument, color: lsp.Color, range: lsp.Range
    ) -> list[lsp.ColorPresentation] | None:
        return None

    def do_signature_help(
        self, document: TextDocument, position: lsp.Position
    ) -> lsp.SignatureHelp | None:
        return None

    def do_linked_editing(
        self, document: TextDocument, position: lsp.Position
    ) -> list[lsp.Range] | None:
        return None

    def format(
        self,
        document: TextDocument,
        range: lsp.Range,
        options: lsp.FormattingOptions,
        settings: Settings,
    ) -> list[lsp.TextEdit] | None:
        return None

    def get_semantic_tokens(self, document: TextDocument) -> list[SemanticTokenData] | None:
        return None

    def get_semantic_token_legend(self) -> lsp.SemanticTokensLegend | None:
        return None

    def remove_document(self, document: TextDocument) -> None:
        return None

    def dispose(self) -> None:
        return None
