from __future__ import annotations

from hypothesis import given, settings
from hypothesis import strategies as st
from lsprotocol.types import Position, Range

SCENARIO = (
    "<a style='color: blue' onclick='noop'></a>"
    "<style>h1{color:red;}</style><script>alert(1)</script>"
)

FRAGMENTS = [
    "<div>",
    "</div>",
    "text\n",
    "\r\n",
    "<style>a { color: red; }\n</style>",
    "<script>let x = 1;\nx()</script>",
    "<script type='text/typescript'>let y: number = 2;</script>",
    "<script type=\"text/plain\">not code</script>",
    "<p style=\"margin: 0\" onclick='go()'>",
    "<b onmouseover=hover()>",
    "<i style=''>",
    "<!-- note -->",
    "<script src='app.js'></script>",
    "<",
    "'",
    "é",
]

documents = st.lists(st.sampled_from(FRAGMENTS), max_size=10).map("".join)


def _load():
    from embedmux import regions
    from embedmux.text_document import TextDocument

    return regions, TextDocument


def _index(text: str):
    regions, TextDocument = _load()
    return regions.extract_regions(TextDocument("file:///t.html", "html", 1, text))


def test_scenario_regions_and_languages() -> None:
    regions, _ = _load()
    index = _index(SCENARIO)
    assert index.regions == (
        regions.Region("css", 10, 21, attribute_value=True),
        regions.Region("javascript", 32, 36, attribute_value=True),
        regions.Region("css", 49, 63),
        regions.Region("javascript", 79, 87),
    )
    assert index.get_languages_in_document() == ["css", "javascript", "html"]


def test_empty_document_is_host_only() -> None:
    assert _index("").get_languages_in_document() == ["html"]


def test_typescript_script_dialect() -> None:
    index = _index('<script type="text/typescript">let x: number = 1;</script>')
    assert [region.language_id for region in index.regions] == ["typescript"]
    assert index.get_languages_in_document() == ["typescript", "html"]


def test_unrecognized_script_type_is_excluded_from_projection() -> None:
    text = '<script type="text/plain">alert(1)</script>'
    index = _index(text)
    assert [region.language_id for region in index.regions] == [None]
    assert index.get_languages_in_document() == ["html"]
    assert index.get_language_at_position(Position(line=0, character=30)) is None
    for language in ("javascript", "typescript", "css"):
        assert index.get_embedded_document(language).text == " " * len(text)


def test_module_script_stays_javascript() -> None:
    index = _index("<script type='module'>import x from 'y'</script>")
    assert [region.language_id for region in index.regions] == ["javascript"]


def test_imported_scripts_are_unquoted() -> None:
    index = _index("<script src=\"lib/a.js\"></script><script src=b.js></script>")
    assert index.get_imported_scripts() == ["lib/a.js", "b.js"]
    assert index.regions == ()


def test_language_at_position() -> None:
    index = _index(SCENARIO)
    assert index.get_language_at_position(Position(line=0, character=0)) == "html"
    assert index.get_language_at_position(Position(line=0, character=12)) == "css"
    assert index.get_language_at_position(Position(line=0, character=33)) == "javascript"
    assert index.get_language_at_position(Position(line=0, character=40)) == "html"
    assert index.get_language_at_position(Position(line=0, character=50)) == "css"


def test_css_attribute_projection_wraps_value() -> None:
    index = _index(SCENARIO)
    css = index.get_embedded_document("css").text
    assert css == (
        " " * 7 + "__{" + "color: blue" + "}" + " " * 27 + "h1{color:red;}" + " " * (96 - 63)
    )
    assert len(css) == len(SCENARIO)


def test_javascript_attribute_projection_gets_statement_terminator() -> None:
    index = _index(SCENARIO)
    javascript = index.get_embedded_document("javascript").text
    assert javascript == " " * 32 + "noop" + ";" + " " * 42 + "alert(1)" + " " * 9


def test_projection_can_ignore_attribute_values() -> None:
    index = _index(SCENARIO)
    css = index.get_embedded_document("css", ignore_attribute_values=True).text
    assert css == " " * 49 + "h1{color:red;}" + " " * (96 - 63)


def test_language_ranges_clip_to_query_range() -> None:
    index = _index("<p>\n<style>\na{}\n</style>\n</p>")
    query = Range(start=Position(line=1, character=3), end=Position(line=2, character=2))
    ranges = index.get_language_ranges(query)
    assert [item.language_id for item in ranges] == ["html", "css"]
    assert ranges[0].start == query.start
    assert ranges[-1].end == query.end
    assert ranges[0].end == ranges[1].start == Position(line=1, character=7)


@settings(max_examples=150)
@given(documents)
def test_language_ranges_tile_the_document(text: str) -> None:
    index = _index(text)
    document = index.document
    ranges = index.get_language_ranges()
    if not text:
        assert ranges == []
        return
    assert ranges[0].start == Position(line=0, character=0)
    assert ranges[-1].end == document.position_at(len(text))
    for previous, current in zip(ranges, ranges[1:]):
        assert previous.end == current.start
    for item in ranges:
        assert document.offset_at(item.start) < document.offset_at(item.end)


@settings(max_examples=150)
@given(documents, st.sampled_from(["css", "javascript", "typescript"]), st.booleans())
def test_projection_preserves_length_and_lines(text: str, language: str, ignore: bool) -> None:
    index = _index(text)
    embedded = index.get_embedded_document(language, ignore_attribute_values=ignore)
    assert len(embedded.text) == len(text)
    assert embedded.line_count == index.document.line_count
    for offset, char in enumerate(text):
        if char in "\r\n":
            assert embedded.text[offset] == char
    assert embedded.uri == index.document.uri
    assert embedded.language_id == language


@settings(max_examples=100)
@given(documents)
def test_regions_are_sorted_and_disjoint(text: str) -> None:
    index = _index(text)
    previous_end = 0
    for region in index.regions:
        assert previous_end <= region.start <= region.end <= len(text)
        previous_end = region.end
