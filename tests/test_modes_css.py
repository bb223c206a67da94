from __future__ import annotations

import pytest
from lsprotocol.types import Color, DocumentHighlightKind, Position, Range, SymbolKind

from embedmux.document_context import DocumentContext

CUSTOM_PROPERTIES = "<style>:root{--main: red} a{color: var(--main)}</style>"


def _load():
    from embedmux.modes import css
    from embedmux.schema import Settings

    return css, Settings


def _at(character: int, line: int = 0) -> Position:
    return Position(line=line, character=character)


def test_parse_color_forms() -> None:
    css, _ = _load()
    assert css.parse_color("#f00") == Color(red=1.0, green=0.0, blue=0.0, alpha=1.0)
    assert css.parse_color("RED") == Color(red=1.0, green=0.0, blue=0.0, alpha=1.0)
    assert css.parse_color("rgba(0, 0, 255, 0.5)") == Color(red=0.0, green=0.0, blue=1.0, alpha=0.5)
    assert css.parse_color("rgb(100%, 0%, 0%)") == Color(red=1.0, green=0.0, blue=0.0, alpha=1.0)
    assert css.parse_color("#12345") is None
    assert css.parse_color("rgb(1, 2)") is None
    assert css.parse_color("nope") is None


def test_color_labels() -> None:
    css, _ = _load()
    assert css.color_labels(Color(red=1.0, green=0.0, blue=0.0, alpha=1.0)) == [
        "rgb(255, 0, 0)",
        "#ff0000",
        "hsl(0, 100%, 50%)",
    ]
    assert css.color_labels(Color(red=0.0, green=0.0, blue=1.0, alpha=0.5)) == [
        "rgba(0, 0, 255, 0.5)",
        "#0000ff80",
        "hsla(240, 100%, 50%, 0.5)",
    ]


def test_document_colors_cover_blocks_and_attributes(service, make_document) -> None:
    document = make_document(
        '<style>a{color:red;background:#00ff00}</style><p style="color: rgb(0,0,255)">'
    )
    colors = service.find_document_colors(document)
    assert [document.get_text(item.range) for item in colors] == ["red", "#00ff00", "rgb(0,0,255)"]
    assert colors[0].range == Range(start=_at(15), end=_at(18))
    assert colors[2].color == Color(red=0.0, green=0.0, blue=1.0, alpha=1.0)


def test_color_presentations_replace_given_range(service, make_document) -> None:
    document = make_document("<style>a{color:red}</style>")
    target = Range(start=_at(15), end=_at(18))
    presentations = service.get_color_presentations(
        document, Color(red=1.0, green=0.0, blue=0.0, alpha=1.0), target
    )
    assert [item.label for item in presentations] == ["rgb(255, 0, 0)", "#ff0000", "hsl(0, 100%, 50%)"]
    assert all(item.text_edit.range == target for item in presentations)


def test_property_completion_inside_rule(service, make_document) -> None:
    _, Settings = _load()
    document = make_document("<style>a{ co }</style>")
    result = service.do_complete(document, _at(12), DocumentContext(document.uri), Settings())
    labels = [item.label for item in result.items]
    assert "color" in labels
    color = result.items[labels.index("color")]
    assert color.text_edit.range == Range(start=_at(10), end=_at(12))
    assert color.text_edit.new_text == "color: $0;"


def test_value_completion_offers_colors(service, make_document) -> None:
    _, Settings = _load()
    document = make_document("<style>a{color: r}</style>")
    result = service.do_complete(document, _at(17), DocumentContext(document.uri), Settings())
    labels = [item.label for item in result.items]
    assert "red" in labels
    assert result.items[labels.index("red")].text_edit.range == Range(start=_at(16), end=_at(17))


def test_no_completion_outside_rule(service, make_document) -> None:
    _, Settings = _load()
    document = make_document("<style>a </style>")
    result = service.do_complete(document, _at(9), DocumentContext(document.uri), Settings())
    assert result.items == []


def test_property_hover(service, make_document) -> None:
    _, Settings = _load()
    document = make_document("<style>a{color:red}</style>")
    hover = service.do_hover(document, _at(10), Settings())
    assert hover.contents.value.startswith("**color**")
    assert hover.range == Range(start=_at(9), end=_at(14))
    assert service.do_hover(document, _at(16), Settings()) is None


def test_custom_property_navigation(service, make_document) -> None:
    document = make_document(CUSTOM_PROPERTIES)
    definition = service.find_definition(document, _at(40))
    assert [item.range for item in definition] == [Range(start=_at(13), end=_at(19))]
    references = service.find_references(document, _at(40))
    assert [item.range.start.character for item in references] == [13, 39]
    highlights = service.find_document_highlight(document, _at(15))
    assert [item.kind for item in highlights] == [DocumentHighlightKind.Write, DocumentHighlightKind.Read]


def test_symbols_for_rules_and_variables(service, make_document) -> None:
    document = make_document("<style>h1, h2 {color:red} .x{--gap: 1px}</style>")
    symbols = [
        item
        for item in service.find_document_symbols(document)
        if item.kind in (SymbolKind.Class, SymbolKind.Variable)
    ]
    assert [item.name for item in symbols] == ["h1, h2", ".x", "--gap"]
    assert symbols[0].location.range == Range(start=_at(7), end=_at(25))


def test_attribute_rule_wrapper_is_not_a_symbol(service, make_document) -> None:
    document = make_document('<p style="color: red"></p>')
    assert all(item.kind is not SymbolKind.Class for item in service.find_document_symbols(document))


def test_unclosed_rule_is_reported(service, make_document) -> None:
    _, Settings = _load()
    document = make_document("<style>a{color:red</style>")
    diagnostics = service.do_validation(document, Settings())
    assert [item.message for item in diagnostics] == ["'}' expected."]
    assert diagnostics[0].range == Range(start=_at(8), end=_at(9))
    assert diagnostics[0].source == "css"


@pytest.mark.parametrize(
    "settings_payload",
    [
        {"html": {"validate": {"styles": False}}},
        {"css": {"validate": False}},
    ],
)
def test_style_validation_can_be_disabled(service, make_document, settings_payload) -> None:
    _, Settings = _load()
    document = make_document("<style>a{color:red</style>")
    assert service.do_validation(document, Settings.model_validate(settings_payload)) == []


def test_rule_folding(service, make_document) -> None:
    document = make_document("<style>\na {\n  color: red;\n}\n</style>")
    mode = service.language_modes.get_mode("css")
    ranges = mode.get_folding_ranges(document)
    assert [(item.start_line, item.end_line) for item in ranges] == [(1, 2)]
