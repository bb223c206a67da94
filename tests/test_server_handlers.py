from __future__ import annotations

import json
import logging
from collections import namedtuple
from dataclasses import dataclass
from pathlib import Path

import pytest
from lsprotocol import types as lsp

from embedmux.language_service import LanguageService
from embedmux.schema import ServerOptions, Settings

URI = "file:///workspace/index.html"


def _load():
    from embedmux import server

    return server


@dataclass
class _OpenDocument:
    uri: str
    source: str
    language_id: str = "html"
    version: int = 1


class _DummyWorkspace:
    def __init__(self) -> None:
        self.text_documents: dict[str, _OpenDocument] = {}
        self.position_encoding = lsp.PositionEncodingKind.Utf16
        self.folders: dict[str, lsp.WorkspaceFolder] = {
            "file:///workspace": lsp.WorkspaceFolder(uri="file:///workspace", name="workspace")
        }


class _DummyServer:
    def __init__(self) -> None:
        self.workspace = _DummyWorkspace()
        self.service: LanguageService | None = LanguageService(autostart=False)
        self.options = ServerOptions()
        self.settings = Settings()
        self.settings_defaults: dict = {}
        self.root: Path | None = None
        self.provide_formatter = True
        self.published: list[lsp.PublishDiagnosticsParams] = []

    def open(self, text: str, uri: str = URI, version: int = 1) -> None:
        self.workspace.text_documents[uri] = _OpenDocument(uri=uri, source=text, version=version)

    def text_document_publish_diagnostics(self, params: lsp.PublishDiagnosticsParams) -> None:
        self.published.append(params)


@pytest.fixture
def ls():
    dummy = _DummyServer()
    yield dummy
    if dummy.service is not None:
        dummy.service.dispose()


def _identifier(uri: str = URI) -> lsp.TextDocumentIdentifier:
    return lsp.TextDocumentIdentifier(uri=uri)


def _at(character: int, line: int = 0) -> lsp.Position:
    return lsp.Position(line=line, character=character)


def test_uri_to_path() -> None:
    server = _load()
    path = Path("/tmp/demo.html")
    assert server._uri_to_path(path.as_uri()) == path
    assert server._uri_to_path("relative/page.html") == Path("relative/page.html")


def test_plain_unwraps_namedtuples() -> None:
    server = _load()
    Object = namedtuple("Object", ["textDocument", "ranges"])
    Identifier = namedtuple("Identifier", ["uri"])
    payload = Object(textDocument=Identifier(uri=URI), ranges=(1, 2))
    assert server._plain(payload) == {"textDocument": {"uri": URI}, "ranges": [1, 2]}


def test_start_uses_injected_callable() -> None:
    server = _load()
    called = {"value": False}

    def _start() -> None:
        called["value"] = True

    server.start(_start)
    assert called["value"] is True


def test_did_open_publishes_diagnostics(ls) -> None:
    server = _load()
    ls.open("<style>a{color:red</style>", version=3)
    server.did_open(
        ls,
        lsp.DidOpenTextDocumentParams(
            text_document=lsp.TextDocumentItem(uri=URI, language_id="html", version=3, text="<style>a{color:red</style>")
        ),
    )
    [published] = ls.published
    assert published.uri == URI
    assert published.version == 3
    assert [item.message for item in published.diagnostics] == ["'}' expected."]


def test_configuration_change_revalidates_open_documents(ls) -> None:
    server = _load()
    ls.open("<style>a{color:red</style>")
    server.did_change_configuration(
        ls, lsp.DidChangeConfigurationParams(settings={"html": {"validate": {"styles": False}}})
    )
    assert ls.settings.html.validate_.styles is False
    assert [item.diagnostics for item in ls.published] == [[]]


def test_did_close_clears_diagnostics(ls) -> None:
    server = _load()
    server.did_close(ls, lsp.DidCloseTextDocumentParams(text_document=_identifier()))
    assert ls.published[-1].diagnostics == []


def test_requests_for_unknown_documents_are_empty(ls) -> None:
    server = _load()
    params = lsp.CompletionParams(text_document=_identifier(), position=_at(0))
    assert server.completion(ls, params) is None
    assert server.references(
        ls,
        lsp.ReferenceParams(
            text_document=_identifier(), position=_at(0), context=lsp.ReferenceContext(include_declaration=True)
        ),
    ) == []
    assert server.folding_range(ls, lsp.FoldingRangeParams(text_document=_identifier())) == []


def test_hover_and_completion(ls) -> None:
    server = _load()
    ls.open("<div></div>")
    hover = server.hover(ls, lsp.HoverParams(text_document=_identifier(), position=_at(2)))
    assert hover.contents.value == "Generic flow container."
    ls.open("<di")
    result = server.completion(ls, lsp.CompletionParams(text_document=_identifier(), position=_at(3)))
    assert "div" in [item.label for item in result.items]


def test_completion_resolve_round_trip(ls) -> None:
    server = _load()
    ls.open("<script>const total = 1;\nto</script>")
    result = server.completion(ls, lsp.CompletionParams(text_document=_identifier(), position=_at(2, 1)))
    item = [entry for entry in result.items if entry.label == "total"][0]
    assert server.completion_resolve(ls, item).detail == "const total"
    plain = lsp.CompletionItem(label="div")
    assert server.completion_resolve(ls, plain) is plain


def test_linked_editing_needs_a_preceding_character(ls) -> None:
    server = _load()
    ls.open("<div></div>")
    at_start = lsp.LinkedEditingRangeParams(text_document=_identifier(), position=_at(0))
    assert server.linked_editing_range(ls, at_start) is None
    ranges = server.linked_editing_range(
        ls, lsp.LinkedEditingRangeParams(text_document=_identifier(), position=_at(3))
    )
    assert [item.start.character for item in ranges.ranges] == [1, 7]


def test_formatting_respects_provide_formatter(ls) -> None:
    server = _load()
    ls.open("<div>\n<p>hi</p>\n</div>")
    params = lsp.DocumentFormattingParams(
        text_document=_identifier(), options=lsp.FormattingOptions(tab_size=2, insert_spaces=True)
    )
    edits = server.formatting(ls, params)
    assert [edit.new_text for edit in edits] == ["  "]
    ls.provide_formatter = False
    assert server.formatting(ls, params) == []


def test_semantic_tokens(ls) -> None:
    server = _load()
    ls.open("<script>\nlet x = 1;\n</script>")
    full = server.semantic_tokens_full(ls, lsp.SemanticTokensParams(text_document=_identifier()))
    assert full.data == [1, 4, 1, 7, 1]
    ranged = server.semantic_tokens_range(
        ls,
        lsp.SemanticTokensRangeParams(
            text_document=_identifier(),
            range=lsp.Range(start=_at(0, 0), end=_at(0, 1)),
        ),
    )
    assert ranged.data == []
    legend = server.semantic_token_legend(ls, None)
    assert legend.token_types[7] == "variable"


def test_custom_semantic_token_request(ls) -> None:
    server = _load()
    ls.open("<script>\nlet x = 1;\n</script>")
    payload = {
        "textDocument": {"uri": URI},
        "ranges": [{"start": {"line": 1, "character": 0}, "end": {"line": 2, "character": 0}}],
    }
    assert server.semantic_token_request(ls, payload) == [1, 4, 1, 7, 1]
    assert server.semantic_token_request(ls, {"textDocument": {"uri": URI}}) == [1, 4, 1, 7, 1]


def test_auto_insert_request(ls) -> None:
    server = _load()
    ls.open("<div>")
    payload = {"kind": "autoClose", "position": {"line": 0, "character": 5}, "textDocument": {"uri": URI}}
    assert server.auto_insert(ls, payload) == "$0</div>"
    payload["position"] = {"line": 0, "character": 0}
    assert server.auto_insert(ls, payload) is None


def test_failing_handler_is_logged_and_falls_back(ls, caplog) -> None:
    server = _load()
    ls.open("<div>")
    with caplog.at_level(logging.ERROR, logger="embedmux.server"):
        assert server.auto_insert(ls, {"kind": "autoComplete", "textDocument": {"uri": URI}}) is None
    assert "Error while calling auto_insert for file:///workspace/index.html" in caplog.text


def test_custom_data_changed_reloads_vocabulary(ls, tmp_path: Path) -> None:
    server = _load()
    data = tmp_path / "tags.json"
    data.write_text(json.dumps({"version": 1.1, "tags": [{"name": "my-widget"}]}), encoding="utf-8")
    ls.root = tmp_path
    ls.open("<my")
    server.custom_data_changed(ls, ["tags.json"])
    result = server.completion(ls, lsp.CompletionParams(text_document=_identifier(), position=_at(3)))
    assert "my-widget" in [item.label for item in result.items]
    server.custom_data_changed(ls, {"dataPaths": []})
    result = server.completion(ls, lsp.CompletionParams(text_document=_identifier(), position=_at(3)))
    assert "my-widget" not in [item.label for item in result.items]


def test_initialize_reads_options_and_config(tmp_path: Path) -> None:
    server = _load()
    (tmp_path / "embedmux.toml").write_text(
        "[server]\ncache_max_entries = 4\n\n[html.format]\nunformatted = \"script\"\n", encoding="utf-8"
    )
    ls = _DummyServer()
    ls.service.dispose()
    ls.service = None
    params = lsp.InitializeParams(
        process_id=None,
        root_uri=tmp_path.as_uri(),
        capabilities=lsp.ClientCapabilities(
            text_document=lsp.TextDocumentClientCapabilities(
                folding_range=lsp.FoldingRangeClientCapabilities(range_limit=7)
            )
        ),
        initialization_options={
            "provideFormatter": False,
            "settings": {"html": {"format": {"contentUnformatted": "pre"}}},
        },
    )
    server.initialize(ls, params)
    try:
        assert ls.root == tmp_path
        assert ls.options.cache_max_entries == 4
        assert ls.options.folding_range_limit == 7
        assert ls.provide_formatter is False
        assert ls.settings.html.format.unformatted == "script"
        assert ls.settings.html.format.content_unformatted == "pre"
        assert ls.service is not None
        assert ls.service.folding_range_limit == 7
    finally:
        server.shutdown(ls, None)
    assert ls.service is None


def test_positions_use_the_negotiated_encoding(ls) -> None:
    server = _load()
    ls.open("\U0001F600<div></div>")
    params = lsp.LinkedEditingRangeParams(text_document=_identifier(), position=_at(4))
    ranges = server.linked_editing_range(ls, params)
    assert [(item.start.character, item.end.character) for item in ranges.ranges] == [(3, 6), (9, 12)]

    ls.workspace.position_encoding = lsp.PositionEncodingKind.Utf32
    ls.open("\U0001F600<div></div>", version=2)
    params = lsp.LinkedEditingRangeParams(text_document=_identifier(), position=_at(3))
    ranges = server.linked_editing_range(ls, params)
    assert [(item.start.character, item.end.character) for item in ranges.ranges] == [(2, 5), (8, 11)]


def test_advertised_legend_is_the_merged_legend(ls) -> None:
    server = _load()
    assert server.SEMANTIC_TOKENS_LEGEND == ls.service.get_semantic_token_legend()
    assert server.semantic_token_legend(ls, None) == server.SEMANTIC_TOKENS_LEGEND
