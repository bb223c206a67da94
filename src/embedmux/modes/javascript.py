"""Script mode for javascript and typescript blocks and event handler attributes.

Names are resolved lexically within one document: a name is declared by the
first ``function``, ``class``, ``var``/``let``/``const`` (and for typescript
``interface``, ``type``, ``enum``, ``namespace``) that introduces it, and
every other occurrence of the same identifier refers to that declaration.
"""

from __future__ import annotations

from dataclasses import dataclass

from lsprotocol import types as lsp

from embedmux.cache import DEFAULT_CLEANUP_INTERVAL, DEFAULT_MAX_ENTRIES, DocumentCache
from embedmux.document_context import DocumentContext
from embedmux.modes.base import SemanticTokenData
from embedmux.modes.code_scan import CodeScan, match_brackets
from embedmux.modes.embedded import BraceLanguageMode, to_range
from embedmux.regions import DocumentRegions
from embedmux.schema import Settings
from embedmux.text_document import TextDocument

KEYWORDS = frozenset(
    {
        "abstract", "as", "async", "await", "break", "case", "catch", "class", "const",
        "continue", "debugger", "declare", "default", "delete", "do", "else", "enum",
        "export", "extends", "false", "finally", "for", "from", "function", "get", "if",
        "implements", "import", "in", "instanceof", "interface", "let", "namespace", "new",
        "null", "of", "private", "protected", "public", "readonly", "return", "set",
        "static", "super", "switch", "this", "throw", "true", "try", "type", "typeof",
        "var", "void", "while", "with", "yield",
    }
)

TOKEN_TYPES = (
    "class",
    "enum",
    "interface",
    "namespace",
    "typeParameter",
    "type",
    "parameter",
    "variable",
    "property",
    "function",
    "method",
)
TOKEN_MODIFIERS = ("declaration", "static", "async", "readonly")

DECLARATION = 1 << TOKEN_MODIFIERS.index("declaration")
STATIC = 1 << TOKEN_MODIFIERS.index("static")
ASYNC = 1 << TOKEN_MODIFIERS.index("async")
READONLY = 1 << TOKEN_MODIFIERS.index("readonly")

_DECLARING_KEYWORDS = {
    "function": "function",
    "class": "class",
    "var": "variable",
    "let": "variable",
    "const": "variable",
}
_TYPESCRIPT_DECLARING_KEYWORDS = {
    "interface": "interface",
    "type": "type",
    "enum": "enum",
    "namespace": "namespace",
}

_SYMBOL_KINDS = {
    "function": lsp.SymbolKind.Function,
    "class": lsp.SymbolKind.Class,
    "variable": lsp.SymbolKind.Variable,
    "interface": lsp.SymbolKind.Interface,
    "type": lsp.SymbolKind.TypeParameter,
    "enum": lsp.SymbolKind.Enum,
    "namespace": lsp.SymbolKind.Namespace,
}
_COMPLETION_KINDS = {
    "function": lsp.CompletionItemKind.Function,
    "class": lsp.CompletionItemKind.Class,
    "variable": lsp.CompletionItemKind.Variable,
    "parameter": lsp.CompletionItemKind.Variable,
    "interface": lsp.CompletionItemKind.Interface,
    "type": lsp.CompletionItemKind.TypeParameter,
    "enum": lsp.CompletionItemKind.Enum,
    "namespace": lsp.CompletionItemKind.Module,
}


@dataclass(frozen=True)
class Declaration:
    name: str
    kind: str
    start: int
    end: int
    modifiers: int = 0


@dataclass(frozen=True)
class ScriptIndex:
    """Lexical declarations of one projected script document."""

    identifiers: tuple[tuple[int, int, str], ...]
    declarations: dict[str, Declaration]
    sites: dict[int, tuple[str, int]]
    parameters: dict[str, tuple[str, ...]]

    def occurrences(self, name: str) -> list[tuple[int, int]]:
        return [(start, end) for start, end, text in self.identifiers if text == name]


def _previous_char(text: str, offset: int) -> str:
    index = offset - 1
    while index >= 0 and text[index] in " \t\r\n":
        index -= 1
    return text[index] if index >= 0 else ""


def _next_char(text: str, offset: int) -> str:
    index = offset
    while index < len(text) and text[index] in " \t\r\n":
        index += 1
    return text[index] if index < len(text) else ""


def index_script(text: str, scan: CodeScan, typescript: bool = False) -> ScriptIndex:
    declaring = dict(_DECLARING_KEYWORDS)
    if typescript:
        declaring.update(_TYPESCRIPT_DECLARING_KEYWORDS)
    identifiers = tuple((start, end, text[start:end]) for start, end in scan.identifiers)
    pairs, _ = match_brackets(scan)
    closing = {pair.open: pair.close for pair in pairs if pair.char == "("}
    declarations: dict[str, Declaration] = {}
    sites: dict[int, tuple[str, int]] = {}
    parameters: dict[str, tuple[str, ...]] = {}

    for index, (start, end, name) in enumerate(identifiers):
        if name in KEYWORDS or start in sites:
            continue
        previous = identifiers[index - 1] if index > 0 else None
        if previous is None or text[previous[1] : start].strip() not in ("", "*"):
            continue
        keyword = previous[2]
        if keyword == "static":
            kind = "method" if _next_char(text, end) == "(" else "property"
            sites[start] = (kind, DECLARATION | STATIC)
            continue
        if keyword not in declaring:
            continue
        kind = declaring[keyword]
        modifiers = READONLY if keyword == "const" else 0
        if keyword == "function" and index >= 2:
            before = identifiers[index - 2]
            if before[2] == "async" and text[before[1] : previous[0]].strip() == "":
                modifiers |= ASYNC
        sites[start] = (kind, modifiers | DECLARATION)
        declarations.setdefault(name, Declaration(name, kind, start, end, modifiers))
        if kind == "function":
            parameters[name] = _collect_parameters(
                text, identifiers, index, end, closing, declarations, sites
            )

    return ScriptIndex(
        identifiers=identifiers,
        declarations=declarations,
        sites=sites,
        parameters=parameters,
    )


def _collect_parameters(
    text: str,
    identifiers: tuple[tuple[int, int, str], ...],
    index: int,
    name_end: int,
    closing: dict[int, int],
    declarations: dict[str, Declaration],
    sites: dict[int, tuple[str, int]],
) -> tuple[str, ...]:
    open_paren = name_end
    while open_paren < len(text) and text[open_paren] in " \t\r\n":
        open_paren += 1
    close_paren = closing.get(open_paren)
    if close_paren is None:
        return ()
    names: list[str] = []
    for start, end, name in identifiers[index + 1 :]:
        if start >= close_paren:
            break
        if name in KEYWORDS or _previous_char(text, start) not in "(,":
            continue
        names.append(name)
        sites[start] = ("parameter", DECLARATION)
        declarations.setdefault(name, Declaration(name, "parameter", start, end))
    return tuple(names)


class JavascriptMode(BraceLanguageMode):
    def __init__(
        self,
        regions: DocumentCache[DocumentRegions],
        language_id: str = "javascript",
        *,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL,
        autostart: bool = True,
    ) -> None:
        super().__init__(
            language_id,
            regions,
            max_entries=max_entries,
            cleanup_interval=cleanup_interval,
            autostart=autostart,
        )
        self._indexes: DocumentCache[ScriptIndex] = DocumentCache(
            lambda document: index_script(
                self.embedded(document).text, self.scan(document), self.id == "typescript"
            ),
            max_entries,
            cleanup_interval,
            autostart=autostart,
        )

    def index(self, document: TextDocument) -> ScriptIndex:
        return self._indexes.get(document)

    def format_enabled(self, settings: Settings) -> bool:
        return settings.javascript.format.enable

    def _name_at(self, document: TextDocument, position: lsp.Position) -> tuple[int, int, str] | None:
        word = self.word_at(document, position)
        if word is None:
            return None
        name = self.embedded(document).text[word[0] : word[1]]
        if name in KEYWORDS:
            return None
        return word[0], word[1], name

    # -- completion -----------------------------------------------------

    def do_complete(
        self,
        document: TextDocument,
        position: lsp.Position,
        context: DocumentContext,
        settings: Settings,
    ) -> lsp.CompletionList | None:
        embedded = self.embedded(document)
        scan = self.scan(document)
        offset = embedded.offset_at(position)
        if scan.in_literal(offset):
            return lsp.CompletionList(is_incomplete=False, items=[])
        index = self.index(document)
        word = scan.identifier_at(offset)
        start = word[0] if word is not None and word[1] == offset else offset
        replace = to_range(embedded, start, offset)
        data = {"languageId": self.id, "uri": document.uri, "offset": offset}

        names: dict[str, lsp.CompletionItemKind] = {}
        for ident_start, _, name in index.identifiers:
            if ident_start == start or name in KEYWORDS or name in names:
                continue
            declaration = index.declarations.get(name)
            kind = declaration.kind if declaration is not None else ""
            names[name] = _COMPLETION_KINDS.get(kind, lsp.CompletionItemKind.Text)
        for keyword in sorted(KEYWORDS):
            names.setdefault(keyword, lsp.CompletionItemKind.Keyword)

        items = [
            lsp.CompletionItem(
                label=name,
                kind=kind,
                sort_text=f"{1 if kind == lsp.CompletionItemKind.Keyword else 0}{name}",
                text_edit=lsp.TextEdit(range=replace, new_text=name),
                data=data,
            )
            for name, kind in names.items()
        ]
        return lsp.CompletionList(is_incomplete=False, items=items)

    def do_resolve(self, document: TextDocument, item: lsp.CompletionItem) -> lsp.CompletionItem | None:
        declaration = self.index(document).declarations.get(item.label)
        if declaration is not None:
            item.detail = self._describe(declaration, self.index(document))
            item.data = None
        return item

    def _describe(self, declaration: Declaration, index: ScriptIndex) -> str:
        if declaration.kind == "function":
            parameters = ", ".join(index.parameters.get(declaration.name, ()))
            return f"function {declaration.name}({parameters})"
        if declaration.kind == "parameter":
            return f"(parameter) {declaration.name}"
        if declaration.kind == "variable":
            keyword = "const" if declaration.modifiers & READONLY else "var"
            return f"{keyword} {declaration.name}"
        return f"{declaration.kind} {declaration.name}"

    def do_hover(
        self, document: TextDocument, position: lsp.Position, settings: Settings
    ) -> lsp.Hover | None:
        found = self._name_at(document, position)
        if found is None:
            return None
        start, end, name = found
        index = self.index(document)
        declaration = index.declarations.get(name)
        if declaration is None:
            return None
        return lsp.Hover(
            contents=lsp.MarkupContent(
                kind=lsp.MarkupKind.Markdown,
                value=f"```typescript\n{self._describe(declaration, index)}\n```",
            ),
            range=to_range(self.embedded(document), start, end),
        )

    def do_signature_help(
        self, document: TextDocument, position: lsp.Position
    ) -> lsp.SignatureHelp | None:
        embedded = self.embedded(document)
        scan = self.scan(document)
        offset = embedded.offset_at(position)
        index = self.index(document)
        depth = 0
        commas = 0
        for punctuation_offset, char in reversed(scan.punctuation):
            if punctuation_offset >= offset:
                continue
            if char in ")]}":
                depth += 1
            elif char in "([{":
                if depth == 0:
                    if char != "(":
                        return None
                    callee = scan.identifier_at(punctuation_offset)
                    if callee is None:
                        name_end = punctuation_offset
                        while name_end > 0 and embedded.text[name_end - 1] in " \t":
                            name_end -= 1
                        callee = scan.identifier_at(name_end)
                    if callee is None:
                        return None
                    name = embedded.text[callee[0] : callee[1]]
                    if name not in index.parameters:
                        return None
                    parameters = index.parameters[name]
                    label = f"{name}({', '.join(parameters)})"
                    return lsp.SignatureHelp(
                        signatures=[
                            lsp.SignatureInformation(
                                label=label,
                                parameters=[lsp.ParameterInformation(label=item) for item in parameters],
                            )
                        ],
                        active_signature=0,
                        active_parameter=min(commas, max(len(parameters) - 1, 0)),
                    )
                depth -= 1
            elif char == "," and depth == 0:
                commas += 1
        return None

    # -- navigation -----------------------------------------------------

    def find_definition(
        self, document: TextDocument, position: lsp.Position
    ) -> list[lsp.Location] | None:
        found = self._name_at(document, position)
        if found is None:
            return None
        declaration = self.index(document).declarations.get(found[2])
        if declaration is None:
            return None
        embedded = self.embedded(document)
        return [
            lsp.Location(uri=document.uri, range=to_range(embedded, declaration.start, declaration.end))
        ]

    def find_references(
        self, document: TextDocument, position: lsp.Position
    ) -> list[lsp.Location] | None:
        found = self._name_at(document, position)
        if found is None:
            return []
        embedded = self.embedded(document)
        return [
            lsp.Location(uri=document.uri, range=to_range(embedded, start, end))
            for start, end in self.index(document).occurrences(found[2])
        ]

    def find_document_highlight(
        self, document: TextDocument, position: lsp.Position
    ) -> list[lsp.DocumentHighlight] | None:
        found = self._name_at(document, position)
        if found is None:
            return []
        embedded = self.embedded(document)
        index = self.index(document)
        return [
            lsp.DocumentHighlight(
                range=to_range(embedded, start, end),
                kind=lsp.DocumentHighlightKind.Write if start in index.sites else lsp.DocumentHighlightKind.Read,
            )
            for start, end in index.occurrences(found[2])
        ]

    def do_rename(
        self, document: TextDocument, position: lsp.Position, new_name: str
    ) -> lsp.WorkspaceEdit | None:
        found = self._name_at(document, position)
        if found is None:
            return None
        embedded = self.embedded(document)
        edits = [
            lsp.TextEdit(range=to_range(embedded, start, end), new_text=new_name)
            for start, end in self.index(document).occurrences(found[2])
        ]
        return lsp.WorkspaceEdit(changes={document.uri: edits})

    def find_document_symbols(self, document: TextDocument) -> list[lsp.SymbolInformation] | None:
        embedded = self.embedded(document)
        symbols: list[lsp.SymbolInformation] = []
        for declaration in self.index(document).declarations.values():
            kind = _SYMBOL_KINDS.get(declaration.kind)
            if kind is None:
                continue
            symbols.append(
                lsp.SymbolInformation(
                    name=declaration.name,
                    kind=kind,
                    location=lsp.Location(
                        uri=document.uri,
                        range=to_range(embedded, declaration.start, declaration.end),
                    ),
                )
            )
        symbols.sort(key=lambda item: (item.location.range.start.line, item.location.range.start.character))
        return symbols

    # -- semantic tokens ------------------------------------------------

    def get_semantic_token_legend(self) -> lsp.SemanticTokensLegend | None:
        return lsp.SemanticTokensLegend(
            token_types=list(TOKEN_TYPES), token_modifiers=list(TOKEN_MODIFIERS)
        )

    def get_semantic_tokens(self, document: TextDocument) -> list[SemanticTokenData] | None:
        embedded = self.embedded(document)
        text = embedded.text
        index = self.index(document)
        tokens: list[SemanticTokenData] = []
        for start, end, name in index.identifiers:
            if name in KEYWORDS:
                continue
            if start in index.sites:
                kind, modifiers = index.sites[start]
            elif _previous_char(text, start) == ".":
                kind = "method" if _next_char(text, end) == "(" else "property"
                modifiers = 0
            elif name in index.declarations:
                declaration = index.declarations[name]
                kind, modifiers = declaration.kind, declaration.modifiers
            else:
                continue
            tokens.append(
                SemanticTokenData(
                    start=embedded.position_at(start),
                    length=embedded.units(start, end),
                    type_index=TOKEN_TYPES.index(kind),
                    modifier_set=modifiers,
                )
            )
        return tokens

    # -- lifecycle ------------------------------------------------------

    def remove_document(self, document: TextDocument) -> None:
        super().remove_document(document)
        self._indexes.delete(document)

    def dispose(self) -> None:
        super().dispose()
        self._indexes.dispose()
