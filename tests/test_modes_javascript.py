from __future__ import annotations

from lsprotocol.types import DocumentHighlightKind, Position, Range, SymbolKind

from embedmux.document_context import DocumentContext
from embedmux.schema import Settings

SCRIPT = (
    "<script>\n"
    "function add(a, b) {\n"
    "  return a + b;\n"
    "}\n"
    "const total = add(1, 2);\n"
    "</script>"
)


def _at(line: int, character: int) -> Position:
    return Position(line=line, character=character)


def _span(line: int, start: int, end: int) -> Range:
    return Range(start=_at(line, start), end=_at(line, end))


def test_definition_and_references(service, make_document) -> None:
    document = make_document(SCRIPT)
    definition = service.find_definition(document, _at(4, 15))
    assert [item.range for item in definition] == [_span(1, 9, 12)]
    references = service.find_references(document, _at(4, 15))
    assert [item.range for item in references] == [_span(1, 9, 12), _span(4, 14, 17)]


def test_hover_describes_declarations(service, make_document) -> None:
    document = make_document(SCRIPT)
    hover = service.do_hover(document, _at(4, 15), Settings())
    assert hover.contents.value == "```typescript\nfunction add(a, b)\n```"
    assert hover.range == _span(4, 14, 17)
    assert "const total" in service.do_hover(document, _at(4, 7), Settings()).contents.value
    assert service.do_hover(document, _at(2, 4), Settings()) is None


def test_signature_help_tracks_active_parameter(service, make_document) -> None:
    document = make_document(SCRIPT)
    help = service.do_signature_help(document, _at(4, 21))
    assert help.signatures[0].label == "add(a, b)"
    assert help.active_parameter == 1
    assert service.do_signature_help(document, _at(4, 18)).active_parameter == 0


def test_rename_and_highlight_parameter(service, make_document) -> None:
    document = make_document(SCRIPT)
    edit = service.do_rename(document, _at(2, 9), "left")
    assert [item.range for item in edit.changes[document.uri]] == [_span(1, 13, 14), _span(2, 9, 10)]
    assert all(item.new_text == "left" for item in edit.changes[document.uri])
    highlights = service.find_document_highlight(document, _at(2, 9))
    assert [item.kind for item in highlights] == [DocumentHighlightKind.Write, DocumentHighlightKind.Read]


def test_completion_and_resolve(service, make_document) -> None:
    document = make_document("<script>const total = 1;\nto</script>")
    result = service.do_complete(document, _at(1, 2), DocumentContext(document.uri), Settings())
    labels = [item.label for item in result.items]
    assert "total" in labels
    assert "to" not in labels
    assert "return" in labels
    item = result.items[labels.index("total")]
    assert item.text_edit.range == _span(1, 0, 2)
    assert item.data["languageId"] == "javascript"
    resolved = service.do_resolve(document, item)
    assert resolved.detail == "const total"


def test_no_completion_inside_string(service, make_document) -> None:
    document = make_document("<script>'abc'</script>")
    result = service.do_complete(document, _at(0, 10), DocumentContext(document.uri), Settings())
    assert result.items == []


def test_symbols_and_folding(service, make_document) -> None:
    document = make_document(SCRIPT)
    symbols = [
        (item.name, item.kind)
        for item in service.find_document_symbols(document)
        if item.kind in (SymbolKind.Function, SymbolKind.Variable)
    ]
    assert symbols == [("add", SymbolKind.Function), ("total", SymbolKind.Variable)]
    mode = service.language_modes.get_mode("javascript")
    assert [(item.start_line, item.end_line) for item in mode.get_folding_ranges(document)] == [(1, 2)]


def test_handler_attribute_resolves_into_script_block(service, make_document) -> None:
    document = make_document('<script>function go() {}</script><button onclick="go()">x</button>')
    definition = service.find_definition(document, _at(0, 50))
    assert [item.range for item in definition] == [_span(0, 17, 19)]


def test_typescript_declarations(service, make_document) -> None:
    document = make_document(
        '<script type="text/typescript">interface Point { x: number }</script>'
    )
    symbols = [item for item in service.find_document_symbols(document) if item.kind == SymbolKind.Interface]
    assert [item.name for item in symbols] == ["Point"]


def test_unbalanced_braces_are_reported(service, make_document) -> None:
    document = make_document("<script>if (x) {</script>")
    diagnostics = service.do_validation(document, Settings())
    assert [item.message for item in diagnostics] == ["'}' expected."]
    assert diagnostics[0].source == "javascript"
    disabled = Settings.model_validate({"html": {"validate": {"scripts": False}}})
    assert service.do_validation(document, disabled) == []


def test_selection_range_grafts_onto_markup(service, make_document) -> None:
    document = make_document(SCRIPT)
    [selection] = service.get_selection_ranges(document, [_at(2, 9)])
    assert selection.range == _span(2, 9, 10)
    chain = []
    node = selection
    while node is not None:
        chain.append(node.range)
        node = node.parent
    assert chain[-1] == document.full_range()
    assert len(chain) == len(set((r.start.line, r.start.character, r.end.line, r.end.character) for r in chain))
