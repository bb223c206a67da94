from __future__ import annotations

from hypothesis import given, settings
from hypothesis import strategies as st
from lsprotocol.types import Position, Range, SemanticTokensLegend

SCRIPT = "<script>\nconst answer = 42;\nfunction add(a, b) { return a + answer; }\n</script>"


def _load():
    from embedmux import semantic_tokens
    from embedmux.modes.base import SemanticTokenData

    return semantic_tokens, SemanticTokenData


class _StubMode:
    def __init__(self, id: str, types: list[str], modifiers: list[str], tokens) -> None:
        self.id = id
        self._legend = SemanticTokensLegend(token_types=types, token_modifiers=modifiers)
        self._tokens = tokens

    def get_semantic_token_legend(self):
        return self._legend

    def get_semantic_tokens(self, document):
        return list(self._tokens)


class _StubModes:
    def __init__(self, modes) -> None:
        self._modes = modes

    def get_all_modes(self):
        return list(self._modes)

    def get_all_modes_in_document(self, document):
        return list(self._modes)


def test_create_mapping_grows_shared_legend() -> None:
    semantic_tokens, _ = _load()
    shared: list[str] = []
    assert semantic_tokens.create_mapping(["variable", "property"], shared) is None
    assert semantic_tokens.create_mapping(["property", "function"], shared) == [1, 2]
    assert shared == ["variable", "property", "function"]


def test_remap_modifiers_moves_bits() -> None:
    semantic_tokens, _ = _load()
    assert semantic_tokens.remap_modifiers(0b11, [1, 0]) == 0b11
    assert semantic_tokens.remap_modifiers(0b01, [1, 0]) == 0b10
    assert semantic_tokens.remap_modifiers(0b10, [1, 0]) == 0b01
    assert semantic_tokens.remap_modifiers(0, [1, 0]) == 0


def test_provider_merges_legends_and_remaps_tokens(make_document) -> None:
    semantic_tokens, SemanticTokenData = _load()
    css = _StubMode(
        "css",
        ["variable", "property"],
        ["declaration"],
        [SemanticTokenData(Position(line=1, character=0), 2, 0, 0b1)],
    )
    javascript = _StubMode(
        "javascript",
        ["property", "function"],
        ["static", "declaration"],
        [SemanticTokenData(Position(line=0, character=0), 3, 1, 0b01)],
    )
    provider = semantic_tokens.SemanticTokenProvider(_StubModes([css, javascript]))
    assert provider.legend.token_types == ["variable", "property", "function"]
    assert provider.legend.token_modifiers == ["declaration", "static"]
    assert provider.mapping_for("css") == semantic_tokens.LegendMapping(None, None)
    assert provider.mapping_for("javascript") == semantic_tokens.LegendMapping([1, 2], [1, 0])
    assert provider.get_semantic_tokens(make_document("abc\nde")) == [
        0, 0, 3, 2, 2,
        1, 0, 2, 0, 1,
    ]


def test_script_tokens_full_document(service, make_document) -> None:
    document = make_document(SCRIPT)
    assert service.get_semantic_tokens(document) == [
        1, 6, 6, 7, 9,
        1, 9, 3, 9, 1,
        0, 4, 1, 6, 1,
        0, 3, 1, 6, 1,
        0, 12, 1, 6, 0,
        0, 4, 6, 7, 8,
    ]


def test_script_tokens_restricted_to_range(service, make_document) -> None:
    document = make_document(SCRIPT)
    ranges = [Range(start=Position(line=2, character=0), end=Position(line=2, character=20))]
    assert service.get_semantic_tokens(document, ranges) == [
        2, 9, 3, 9, 1,
        0, 4, 1, 6, 1,
        0, 3, 1, 6, 1,
    ]


def test_legend_lists_script_token_names(service) -> None:
    legend = service.get_semantic_token_legend()
    assert "function" in legend.token_types
    assert legend.token_modifiers[:2] == ["declaration", "static"]


def test_document_without_scripts_has_no_tokens(service, make_document) -> None:
    assert service.get_semantic_tokens(make_document("<p>plain</p>")) == []


def test_encode_drops_tokens_outside_ranges() -> None:
    semantic_tokens, SemanticTokenData = _load()
    tokens = [
        SemanticTokenData(Position(line=0, character=0), 2, 0, 0),
        SemanticTokenData(Position(line=0, character=9), 4, 0, 0),
        SemanticTokenData(Position(line=3, character=1), 1, 0, 0),
    ]
    ranges = [
        Range(start=Position(line=3, character=0), end=Position(line=4, character=0)),
        Range(start=Position(line=0, character=0), end=Position(line=0, character=10)),
    ]
    assert semantic_tokens.encode_tokens(tokens, ranges) == [0, 0, 2, 0, 0, 3, 1, 1, 0, 0]
    assert semantic_tokens.encode_tokens(tokens, []) == []


token_starts = st.lists(
    st.tuples(st.integers(0, 20), st.integers(0, 50), st.integers(1, 5), st.integers(0, 3), st.integers(0, 7)),
    max_size=30,
    unique_by=lambda item: (item[0], item[1]),
)


@settings(max_examples=150)
@given(token_starts)
def test_decode_recovers_absolute_tokens(items) -> None:
    semantic_tokens, SemanticTokenData = _load()
    tokens = [
        SemanticTokenData(Position(line=line, character=char), length, type_index, modifiers)
        for line, char, length, type_index, modifiers in items
    ]
    everything = [Range(start=Position(line=0, character=0), end=Position(line=100, character=0))]
    encoded = semantic_tokens.encode_tokens(tokens, everything)
    assert semantic_tokens.decode_tokens(encoded) == sorted(items)
