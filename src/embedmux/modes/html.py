"""Host-language mode.

Answers for the markup itself: tag and attribute completion from the
vocabulary providers, tag hover, tag-pair editing, links, the element
outline, folding, selection ranges and a line re-indenting formatter that
leaves the contents of script, style and preformatted elements alone.
"""

from __future__ import annotations

import re
from typing import Iterable, Sequence

from lsprotocol import types as lsp

from embedmux.cache import DEFAULT_CLEANUP_INTERVAL, DEFAULT_MAX_ENTRIES, DocumentCache
from embedmux.custom_data import HTMLDataProvider, builtin_provider
from embedmux.document_context import DocumentContext
from embedmux.modes.base import AutoInsertKind, LanguageMode
from embedmux.modes.html_tree import VOID_ELEMENTS, HTMLTree, Node, parse_html
from embedmux.modes.indent import indent_unit, range_lines
from embedmux.regions import HOST_LANGUAGE
from embedmux.scanner import Scanner, TokenType
from embedmux.schema import Description, Settings
from embedmux.text_document import TextDocument

CONTENT_UNFORMATTED = frozenset({"pre", "textarea", "script", "style"})
UNINDENTED_PARENTS = frozenset({"html"})

_OPEN_TAG_RE = re.compile(r"<(/?)([\w:.-]*)$")
_ATTRIBUTE_NAME_RE = re.compile(r"\s([^\s\"'<>/=]*)$")
_ATTRIBUTE_VALUE_RE = re.compile(r"([^\s\"'<>/=]+)\s*=\s*([\"']?)([^\s\"'<>]*)$")
_REGION_RE = re.compile(r"^<!--\s*#(end)?region\b")
_IGNORED_LINK_PREFIXES = ("#", "javascript:", "data:", "mailto:")


def _tag_list(value: str) -> set[str]:
    return {item.strip().lower() for item in value.split(",") if item.strip()}


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
        return value[1:-1]
    return value.lstrip("'\"")


def _description_text(description: Description | None) -> str | None:
    if description is None:
        return None
    if isinstance(description, str):
        return description
    return description.value


def _to_range(document: TextDocument, start: int, end: int) -> lsp.Range:
    return lsp.Range(start=document.position_at(start), end=document.position_at(end))


class HtmlMode(LanguageMode):
    id = HOST_LANGUAGE

    def __init__(
        self,
        providers: Sequence[HTMLDataProvider] = (),
        *,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL,
        autostart: bool = True,
    ) -> None:
        self._providers: list[HTMLDataProvider] = [builtin_provider(), *providers]
        self._void_elements = self._collect_void_elements()
        self._trees: DocumentCache[HTMLTree] = DocumentCache(
            lambda document: parse_html(document.text, self._void_elements),
            max_entries,
            cleanup_interval,
            autostart=autostart,
        )

    @property
    def providers(self) -> list[HTMLDataProvider]:
        return list(self._providers)

    def update_data_providers(self, providers: Iterable[HTMLDataProvider]) -> None:
        self._providers = [builtin_provider(), *providers]
        self._void_elements = self._collect_void_elements()
        # void elements change how documents parse
        self._trees.clear()

    def _collect_void_elements(self) -> frozenset[str]:
        names = set(VOID_ELEMENTS)
        for provider in self._providers:
            names.update(tag.name.lower() for tag in provider.provide_tags() if tag.void)
        return frozenset(names)

    def tree(self, document: TextDocument) -> HTMLTree:
        return self._trees.get(document)

    # -- editing assistance ---------------------------------------------

    def do_auto_insert(
        self, document: TextDocument, position: lsp.Position, kind: AutoInsertKind, settings: Settings
    ) -> str | None:
        offset = document.offset_at(position)
        text = document.text
        if offset <= 0:
            return None
        if kind == "autoQuote":
            if text[offset - 1] != "=":
                return None
            return self._quote_complete(text, offset, settings)
        if kind == "autoClose" and text[offset - 1] in ">/":
            return self._tag_complete(document, offset)
        return None

    def _quote_complete(self, text: str, offset: int, settings: Settings) -> str | None:
        scanner = Scanner(text)
        for token in scanner:
            if scanner.token_offset > offset:
                break
            if token is TokenType.DELIMITER_ASSIGN and scanner.token_end == offset:
                following = scanner.scan()
                while following is TokenType.WHITESPACE:
                    following = scanner.scan()
                if following is TokenType.ATTRIBUTE_VALUE:
                    return None
                default = settings.html.suggest.attribute_default_value
                if default == "empty":
                    return None
                return "'$1'" if default == "singlequotes" else '"$1"'
        return None

    def _tag_complete(self, document: TextDocument, offset: int) -> str | None:
        tree = self.tree(document)
        text = document.text
        if text[offset - 1] == ">":
            node = tree.find_node_before(offset)
            if (
                node.tag
                and node.tag.lower() not in self._void_elements
                and node.start_tag_end == offset
                and node.end_tag_start is None
            ):
                return f"$0</{node.tag}>"
            return None
        if offset >= 2 and text[offset - 2 : offset] == "</":
            open_node: Node | None = tree.find_node_before(offset - 1)
            while open_node is not None and open_node.closed:
                open_node = open_node.parent
            if open_node is not None and open_node.tag:
                return f"{open_node.tag}>"
        return None

    def do_complete(
        self,
        document: TextDocument,
        position: lsp.Position,
        context: DocumentContext,
        settings: Settings,
    ) -> lsp.CompletionList | None:
        offset = document.offset_at(position)
        text = document.text
        line_start = document.offset_at(lsp.Position(line=position.line, character=0))
        before = text[line_start:offset]
        items: list[lsp.CompletionItem] = []

        opening = _OPEN_TAG_RE.search(before)
        if opening is not None:
            replace = _to_range(document, offset - len(opening.group(2)), offset)
            if opening.group(1):
                items.extend(self._close_tag_items(document, offset, replace))
            else:
                items.extend(self._tag_items(replace))
            return lsp.CompletionList(is_incomplete=False, items=items)

        node = self.tree(document).find_node_at(offset)
        in_start_tag = node.tag is not None and (
            node.start_tag_end is None or node.start < offset < node.start_tag_end
        )
        if not in_start_tag:
            return lsp.CompletionList(is_incomplete=False, items=[])
        value = _ATTRIBUTE_VALUE_RE.search(before)
        if value is not None:
            replace = _to_range(document, offset - len(value.group(3)), offset)
            items.extend(self._value_items(node.tag or "", value.group(1), replace))
        else:
            name = _ATTRIBUTE_NAME_RE.search(before)
            if name is not None:
                replace = _to_range(document, offset - len(name.group(1)), offset)
                items.extend(self._attribute_items(node, replace, settings))
        return lsp.CompletionList(is_incomplete=False, items=items)

    def _tag_items(self, replace: lsp.Range) -> list[lsp.CompletionItem]:
        seen: set[str] = set()
        items: list[lsp.CompletionItem] = []
        for provider in self._providers:
            for tag in provider.provide_tags():
                if tag.name in seen:
                    continue
                seen.add(tag.name)
                items.append(
                    lsp.CompletionItem(
                        label=tag.name,
                        kind=lsp.CompletionItemKind.Property,
                        documentation=_description_text(tag.description),
                        text_edit=lsp.TextEdit(range=replace, new_text=tag.name),
                    )
                )
        return items

    def _close_tag_items(
        self, document: TextDocument, offset: int, replace: lsp.Range
    ) -> list[lsp.CompletionItem]:
        node: Node | None = self.tree(document).find_node_before(offset)
        while node is not None and node.closed:
            node = node.parent
        if node is None or not node.tag:
            return []
        return [
            lsp.CompletionItem(
                label=f"/{node.tag}",
                kind=lsp.CompletionItemKind.Property,
                filter_text=node.tag,
                text_edit=lsp.TextEdit(range=replace, new_text=f"{node.tag}>"),
            )
        ]

    def _attribute_items(
        self, node: Node, replace: lsp.Range, settings: Settings
    ) -> list[lsp.CompletionItem]:
        default = settings.html.suggest.attribute_default_value
        quote = {"doublequotes": '"', "singlequotes": "'"}.get(default, "")
        seen = set(node.attributes)
        items: list[lsp.CompletionItem] = []
        for provider in self._providers:
            for attribute in provider.provide_attributes(node.tag or ""):
                if attribute.name.lower() in seen:
                    continue
                seen.add(attribute.name.lower())
                if attribute.value_set == "v":
                    insert = attribute.name
                else:
                    insert = f"{attribute.name}={quote}$1{quote}"
                items.append(
                    lsp.CompletionItem(
                        label=attribute.name,
                        kind=lsp.CompletionItemKind.Value,
                        documentation=_description_text(attribute.description),
                        insert_text_format=lsp.InsertTextFormat.Snippet,
                        text_edit=lsp.TextEdit(range=replace, new_text=insert),
                    )
                )
        return items

    def _value_items(self, tag: str, attribute: str, replace: lsp.Range) -> list[lsp.CompletionItem]:
        seen: set[str] = set()
        items: list[lsp.CompletionItem] = []
        for provider in self._providers:
            for value in provider.provide_values(tag, attribute):
                if value.name in seen:
                    continue
                seen.add(value.name)
                items.append(
                    lsp.CompletionItem(
                        label=value.name,
                        kind=lsp.CompletionItemKind.Unit,
                        documentation=_description_text(value.description),
                        text_edit=lsp.TextEdit(range=replace, new_text=value.name),
                    )
                )
        return items

    def do_hover(
        self, document: TextDocument, position: lsp.Position, settings: Settings
    ) -> lsp.Hover | None:
        if not settings.html.hover.documentation:
            return None
        offset = document.offset_at(position)
        node = self.tree(document).find_node_at(offset)
        if node.tag is None:
            return None
        for span in (node.name_span, node.end_name_span()):
            if span is not None and span[0] <= offset <= span[1]:
                description = self._tag_description(node.tag)
                if description is None:
                    return None
                return self._hover(document, description, span)
        for name, (start, _) in node.attribute_spans.items():
            if start <= offset <= start + len(name):
                description = self._attribute_description(node.tag, name)
                if description is None:
                    return None
                return self._hover(document, description, (start, start + len(name)))
        return None

    def _hover(self, document: TextDocument, value: str, span: tuple[int, int]) -> lsp.Hover:
        return lsp.Hover(
            contents=lsp.MarkupContent(kind=lsp.MarkupKind.Markdown, value=value),
            range=_to_range(document, *span),
        )

    def _tag_description(self, tag: str) -> str | None:
        for provider in self._providers:
            entry = provider.get_tag(tag)
            if entry is not None:
                return _description_text(entry.description)
        return None

    def _attribute_description(self, tag: str, attribute: str) -> str | None:
        for provider in self._providers:
            entry = provider.get_attribute(tag, attribute)
            if entry is not None:
                return _description_text(entry.description)
        return None

    # -- tag pairs ------------------------------------------------------

    def _tag_pair_spans(self, document: TextDocument, offset: int) -> list[tuple[int, int]] | None:
        node = self.tree(document).find_node_at(offset)
        start_span = node.name_span
        end_span = node.end_name_span()
        if start_span is None or end_span is None:
            return None
        if start_span[0] <= offset <= start_span[1] or end_span[0] <= offset <= end_span[1]:
            return [start_span, end_span]
        return None

    def do_linked_editing(
        self, document: TextDocument, position: lsp.Position
    ) -> list[lsp.Range] | None:
        spans = self._tag_pair_spans(document, document.offset_at(position))
        if spans is None:
            return None
        return [_to_range(document, *span) for span in spans]

    def do_rename(
        self, document: TextDocument, position: lsp.Position, new_name: str
    ) -> lsp.WorkspaceEdit | None:
        spans = self._tag_pair_spans(document, document.offset_at(position))
        if spans is None:
            return None
        edits = [lsp.TextEdit(range=_to_range(document, *span), new_text=new_name) for span in spans]
        return lsp.WorkspaceEdit(changes={document.uri: edits})

    def find_document_highlight(
        self, document: TextDocument, position: lsp.Position
    ) -> list[lsp.DocumentHighlight] | None:
        spans = self._tag_pair_spans(document, document.offset_at(position))
        if spans is None:
            return []
        return [
            lsp.DocumentHighlight(range=_to_range(document, *span), kind=lsp.DocumentHighlightKind.Read)
            for span in spans
        ]

    # -- document-wide --------------------------------------------------

    def find_document_links(
        self, document: TextDocument, context: DocumentContext
    ) -> list[lsp.DocumentLink] | None:
        links: list[lsp.DocumentLink] = []
        for node in self.tree(document).walk():
            for name in ("href", "src"):
                raw = node.attributes.get(name)
                if not raw:
                    continue
                value = _unquote(raw).strip()
                if not value or value.lower().startswith(_IGNORED_LINK_PREFIXES):
                    continue
                _, value_end = node.attribute_spans[name]
                value_start = value_end - len(raw)
                if raw[0] in "'\"":
                    value_start += 1
                    value_end = value_start + len(_unquote(raw))
                links.append(
                    lsp.DocumentLink(
                        range=_to_range(document, value_start, value_end),
                        target=context.resolve_reference(value, document.uri),
                    )
                )
        return links

    def find_document_symbols(self, document: TextDocument) -> list[lsp.SymbolInformation] | None:
        symbols: list[lsp.SymbolInformation] = []
        names: dict[int, str] = {}
        for node in self.tree(document).walk():
            if not node.tag:
                continue
            name = _symbol_name(node)
            names[id(node)] = name
            container = names.get(id(node.parent)) if node.parent is not None else None
            symbols.append(
                lsp.SymbolInformation(
                    name=name,
                    kind=lsp.SymbolKind.Field,
                    location=lsp.Location(uri=document.uri, range=_to_range(document, node.start, node.end)),
                    container_name=container,
                )
            )
        return symbols

    def get_folding_ranges(self, document: TextDocument) -> list[lsp.FoldingRange] | None:
        tree = self.tree(document)
        ranges: list[lsp.FoldingRange] = []
        for node in tree.walk():
            if not node.tag or node.end_tag_start is None:
                continue
            start_line = document.position_at(node.start).line
            end_line = document.position_at(node.end_tag_start).line - 1
            if end_line > start_line:
                ranges.append(lsp.FoldingRange(start_line=start_line, end_line=end_line))
        region_starts: list[int] = []
        for start, end in tree.comments:
            start_line = document.position_at(start).line
            marker = _REGION_RE.match(document.text[start:end])
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
            end_line = document.position_at(end).line
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
        offset = document.offset_at(position)
        node: Node | None = self.tree(document).find_node_at(offset)
        spans: list[tuple[int, int]] = []
        first = True
        while node is not None and node.parent is not None:
            if first:
                name = node.name_span
                if name is not None and name[0] <= offset <= name[1]:
                    spans.append(name)
                if node.start_tag_end is not None and node.start <= offset < node.start_tag_end:
                    spans.append((node.start, node.start_tag_end))
                first = False
            if node.start_tag_end is not None and node.end_tag_start is not None:
                if node.start_tag_end <= offset <= node.end_tag_start:
                    spans.append((node.start_tag_end, node.end_tag_start))
            spans.append((node.start, node.end))
            node = node.parent
        spans.append((0, len(document.text)))

        selection: lsp.SelectionRange | None = None
        previous: tuple[int, int] | None = None
        for span in reversed(spans):
            if span == previous:
                continue
            selection = lsp.SelectionRange(range=_to_range(document, *span), parent=selection)
            previous = span
        return selection

    # -- formatting -----------------------------------------------------

    def format(
        self,
        document: TextDocument,
        range: lsp.Range,
        options: lsp.FormattingOptions,
        settings: Settings,
    ) -> list[lsp.TextEdit] | None:
        format_settings = settings.html.format
        skipped = (
            CONTENT_UNFORMATTED
            | _tag_list(format_settings.content_unformatted)
            | _tag_list(format_settings.unformatted)
        )
        tree = self.tree(document)
        text = document.text
        unit = indent_unit(options)
        start = document.offset_at(range.start)
        end = document.offset_at(range.end)
        edits: list[lsp.TextEdit] = []
        for line in range_lines(document, range.start.line, range.end.line):
            line_start = document.offset_at(lsp.Position(line=line, character=0))
            if line_start < start:
                continue
            if line_start >= end:
                break
            first = line_start
            while first < len(text) and text[first] in " \t":
                first += 1
            if first > end:
                continue
            if first >= len(text) or text[first] in "\r\n":
                wanted = ""
                if _content_depth(tree, line_start, skipped) is None:
                    continue
            else:
                depth = _content_depth(tree, first, skipped)
                if depth is None:
                    continue
                wanted = unit * depth
            if text[line_start:first] != wanted:
                edits.append(lsp.TextEdit(range=_to_range(document, line_start, first), new_text=wanted))
        return edits

    # -- lifecycle ------------------------------------------------------

    def remove_document(self, document: TextDocument) -> None:
        self._trees.delete(document)

    def dispose(self) -> None:
        self._trees.dispose()


def _symbol_name(node: Node) -> str:
    name = node.tag or "?"
    element_id = node.attributes.get("id")
    if element_id:
        name += f"#{_unquote(element_id)}"
    classes = node.attributes.get("class")
    if classes:
        name += "".join(f".{item}" for item in _unquote(classes).split())
    return name


def _content_depth(tree: HTMLTree, offset: int, skipped: frozenset[str] | set[str]) -> int | None:
    """Nesting depth of ``offset`` as element content.

    ``None`` means the line must be left alone: it starts inside a tag, a
    comment, or the content of an element whose body is not re-indented.
    """
    for start, end in tree.comments:
        if start < offset < end:
            return None
        if start >= offset:
            break
    depth = 0
    node = tree.root
    while True:
        inner: Node | None = None
        for child in node.children:
            if child.start >= offset:
                break
            if child.start_tag_end is None or offset < child.start_tag_end:
                if offset < child.end:
                    return None
                continue
            content_end = child.end_tag_start if child.end_tag_start is not None else child.end
            if child.closed and child.end_tag_start is None:
                continue
            if offset < content_end:
                inner = child
                break
        if inner is None:
            return depth
        if inner.tag and inner.tag.lower() in skipped:
            return None
        if not (inner.tag and inner.tag.lower() in UNINDENTED_PARENTS):
            depth += 1
        node = inner
