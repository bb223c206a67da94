from __future__ import annotations

import functools
from pathlib import Path
from typing import Any, Callable, TypeVar
from urllib.parse import unquote, urlparse

from lsprotocol import types as lsp
from pydantic import ValidationError
from pygls.lsp.server import LanguageServer

from embedmux import __version__
from embedmux.config import resolve_server_options, resolve_settings, server_defaults, settings_defaults
from embedmux.custom_data import FileRequestService, fetch_html_data_providers
from embedmux.document_context import DocumentContext
from embedmux.language_service import LanguageService, default_semantic_token_legend
from embedmux.log import get_logger
from embedmux.schema import (
    AutoInsertRequest,
    CustomDataChangedNotification,
    InitializationOptions,
    SemanticTokenRequest,
    ServerOptions,
    Settings,
)
from embedmux.text_document import TextDocument

AUTO_INSERT_REQUEST = "html/autoInsert"
CUSTOM_DATA_CHANGED_NOTIFICATION = "html/customDataChanged"
SEMANTIC_TOKEN_LEGEND_REQUEST = "html/semanticTokenLegend"
SEMANTIC_TOKEN_REQUEST = "html/semanticTokens"

COMPLETION_TRIGGER_CHARACTERS = [".", ":", "<", '"', "=", "/"]
SIGNATURE_TRIGGER_CHARACTERS = ["("]
SEMANTIC_TOKENS_LEGEND = default_semantic_token_legend()

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class EmbedmuxLanguageServer(LanguageServer):
    """Language server state shared by the feature handlers."""

    def __init__(self, name: str, version: str) -> None:
        super().__init__(name, version)
        self.service: LanguageService | None = None
        self.options = ServerOptions()
        self.settings = Settings()
        self.settings_defaults: dict = {}
        self.root: Path | None = None
        self.provide_formatter = True


server = EmbedmuxLanguageServer("embedmux", __version__)


def _uri_to_path(uri: str) -> Path:
    parsed = urlparse(uri)
    if parsed.scheme == "file":
        return Path(unquote(parsed.path))
    return Path(uri)


def _params_uri(params: object) -> str:
    text_document = getattr(params, "text_document", None)
    if text_document is not None:
        return getattr(text_document, "uri", "<unknown>")
    if isinstance(params, dict):
        identifier = params.get("textDocument")
        if isinstance(identifier, dict):
            return str(identifier.get("uri", "<unknown>"))
    return "<unknown>"


def _plain(value: object) -> object:
    """Turn a custom request payload into plain dicts and lists."""
    if hasattr(value, "_asdict"):
        return _plain(value._asdict())
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value


def _run_safe(fallback: Callable[[Any], Any]) -> Callable[[F], F]:
    """Log a failing handler and answer with its fallback value instead."""

    def decorate(fn: F) -> F:
        @functools.wraps(fn)
        def wrapper(ls: EmbedmuxLanguageServer, params: Any) -> Any:
            try:
                return fn(ls, params)
            except Exception:
                logger.exception("Error while calling %s for %s", fn.__name__, _params_uri(params))
                return fallback(params)

        return wrapper  # type: ignore[return-value]

    return decorate


def _none(params: object) -> None:
    return None


def _empty(params: object) -> list:
    return []


def _service(ls: EmbedmuxLanguageServer) -> LanguageService:
    if ls.service is None:
        ls.service = _build_service(ls, ls.options.data_paths)
    return ls.service


def _build_service(ls: EmbedmuxLanguageServer, data_paths: list[str]) -> LanguageService:
    providers = fetch_html_data_providers(data_paths, FileRequestService(root=ls.root))
    return LanguageService(
        providers,
        folding_range_limit=ls.options.folding_range_limit,
        max_entries=ls.options.cache_max_entries,
        cleanup_interval=ls.options.cache_cleanup_interval,
    )


def _document(ls: EmbedmuxLanguageServer, uri: str) -> TextDocument | None:
    opened = ls.workspace.text_documents.get(uri)
    if opened is None:
        return None
    return TextDocument(
        uri=opened.uri,
        language_id=opened.language_id or "html",
        version=opened.version or 0,
        text=opened.source,
        position_encoding=ls.workspace.position_encoding or lsp.PositionEncodingKind.Utf16,
    )


def _context(ls: EmbedmuxLanguageServer, uri: str) -> DocumentContext:
    return DocumentContext(uri, tuple(ls.workspace.folders.values()))


def _validate(ls: EmbedmuxLanguageServer, uri: str) -> None:
    document = _document(ls, uri)
    if document is None:
        return
    try:
        diagnostics = _service(ls).do_validation(document, ls.settings)
    except Exception:
        logger.exception("Error while validating %s", uri)
        return
    ls.text_document_publish_diagnostics(
        lsp.PublishDiagnosticsParams(uri=uri, version=document.version, diagnostics=diagnostics)
    )


def _validate_all(ls: EmbedmuxLanguageServer) -> None:
    for uri in list(ls.workspace.text_documents):
        _validate(ls, uri)


# -- lifecycle -----------------------------------------------------------


@server.feature(lsp.INITIALIZE)
def initialize(ls: EmbedmuxLanguageServer, params: lsp.InitializeParams) -> None:
    if params.root_uri:
        ls.root = _uri_to_path(params.root_uri)
    elif params.root_path:
        ls.root = Path(params.root_path)
    elif params.workspace_folders:
        ls.root = _uri_to_path(params.workspace_folders[0].uri)

    try:
        init = InitializationOptions.model_validate(_plain(params.initialization_options or {}))
    except ValidationError as exc:
        logger.warning("ignoring invalid initialization options: %s", exc)
        init = InitializationOptions()

    ls.options = resolve_server_options({}, server_defaults(root=ls.root))
    range_limit = None
    folding = params.capabilities.text_document and params.capabilities.text_document.folding_range
    if folding:
        range_limit = folding.range_limit
    if range_limit is not None:
        ls.options = ls.options.model_copy(update={"folding_range_limit": range_limit})
    ls.settings_defaults = settings_defaults(root=ls.root)
    ls.settings = resolve_settings(init.settings, ls.settings_defaults)
    ls.provide_formatter = init.provide_formatter

    if ls.service is not None:
        ls.service.dispose()
    ls.service = _build_service(ls, [*ls.options.data_paths, *init.data_paths])


@server.feature(lsp.SHUTDOWN)
def shutdown(ls: EmbedmuxLanguageServer, params: None) -> None:
    if ls.service is not None:
        ls.service.dispose()
        ls.service = None


@server.feature(lsp.WORKSPACE_DID_CHANGE_CONFIGURATION)
def did_change_configuration(
    ls: EmbedmuxLanguageServer, params: lsp.DidChangeConfigurationParams
) -> None:
    payload = _plain(params.settings)
    ls.settings = resolve_settings(payload, ls.settings_defaults)
    _validate_all(ls)


@server.feature(lsp.WORKSPACE_DID_CHANGE_WORKSPACE_FOLDERS)
def did_change_workspace_folders(
    ls: EmbedmuxLanguageServer, params: lsp.DidChangeWorkspaceFoldersParams
) -> None:
    _validate_all(ls)


@server.feature(lsp.TEXT_DOCUMENT_DID_OPEN)
def did_open(ls: EmbedmuxLanguageServer, params: lsp.DidOpenTextDocumentParams) -> None:
    _validate(ls, params.text_document.uri)


@server.feature(lsp.TEXT_DOCUMENT_DID_CHANGE)
def did_change(ls: EmbedmuxLanguageServer, params: lsp.DidChangeTextDocumentParams) -> None:
    _validate(ls, params.text_document.uri)


@server.feature(lsp.TEXT_DOCUMENT_DID_CLOSE)
def did_close(ls: EmbedmuxLanguageServer, params: lsp.DidCloseTextDocumentParams) -> None:
    uri = params.text_document.uri
    if ls.service is not None:
        ls.service.remove_document(TextDocument(uri=uri, language_id="html", version=0, text=""))
    ls.text_document_publish_diagnostics(lsp.PublishDiagnosticsParams(uri=uri, diagnostics=[]))


# -- single target -------------------------------------------------------


@server.feature(
    lsp.TEXT_DOCUMENT_COMPLETION,
    lsp.CompletionOptions(trigger_characters=COMPLETION_TRIGGER_CHARACTERS, resolve_provider=True),
)
@_run_safe(_none)
def completion(ls: EmbedmuxLanguageServer, params: lsp.CompletionParams) -> lsp.CompletionList | None:
    document = _document(ls, params.text_document.uri)
    if document is None:
        return None
    return _service(ls).do_complete(
        document, params.position, _context(ls, document.uri), ls.settings
    )


@server.feature(lsp.COMPLETION_ITEM_RESOLVE)
@_run_safe(lambda item: item)
def completion_resolve(ls: EmbedmuxLanguageServer, item: lsp.CompletionItem) -> lsp.CompletionItem:
    data = item.data if isinstance(item.data, dict) else {}
    uri = data.get("uri")
    if not data.get("languageId") or not isinstance(uri, str):
        return item
    document = _document(ls, uri)
    if document is None:
        return item
    return _service(ls).do_resolve(document, item)


@server.feature(lsp.TEXT_DOCUMENT_HOVER)
@_run_safe(_none)
def hover(ls: EmbedmuxLanguageServer, params: lsp.HoverParams) -> lsp.Hover | None:
    document = _document(ls, params.text_document.uri)
    if document is None:
        return None
    return _service(ls).do_hover(document, params.position, ls.settings)


@server.feature(lsp.TEXT_DOCUMENT_DEFINITION)
@_run_safe(_none)
def definition(ls: EmbedmuxLanguageServer, params: lsp.DefinitionParams) -> list[lsp.Location] | None:
    document = _document(ls, params.text_document.uri)
    if document is None:
        return None
    return _service(ls).find_definition(document, params.position)


@server.feature(lsp.TEXT_DOCUMENT_REFERENCES)
@_run_safe(_empty)
def references(ls: EmbedmuxLanguageServer, params: lsp.ReferenceParams) -> list[lsp.Location]:
    document = _document(ls, params.text_document.uri)
    if document is None:
        return []
    return _service(ls).find_references(document, params.position)


@server.feature(lsp.TEXT_DOCUMENT_DOCUMENT_HIGHLIGHT)
@_run_safe(_empty)
def document_highlight(
    ls: EmbedmuxLanguageServer, params: lsp.DocumentHighlightParams
) -> list[lsp.DocumentHighlight]:
    document = _document(ls, params.text_document.uri)
    if document is None:
        return []
    return _service(ls).find_document_highlight(document, params.position)


@server.feature(lsp.TEXT_DOCUMENT_RENAME)
@_run_safe(_none)
def rename(ls: EmbedmuxLanguageServer, params: lsp.RenameParams) -> lsp.WorkspaceEdit | None:
    document = _document(ls, params.text_document.uri)
    if document is None:
        return None
    return _service(ls).do_rename(document, params.position, params.new_name)


@server.feature(
    lsp.TEXT_DOCUMENT_SIGNATURE_HELP,
    lsp.SignatureHelpOptions(trigger_characters=SIGNATURE_TRIGGER_CHARACTERS),
)
@_run_safe(_none)
def signature_help(
    ls: EmbedmuxLanguageServer, params: lsp.SignatureHelpParams
) -> lsp.SignatureHelp | None:
    document = _document(ls, params.text_document.uri)
    if document is None:
        return None
    return _service(ls).do_signature_help(document, params.position)


@server.feature(lsp.TEXT_DOCUMENT_LINKED_EDITING_RANGE)
@_run_safe(_none)
def linked_editing_range(
    ls: EmbedmuxLanguageServer, params: lsp.LinkedEditingRangeParams
) -> lsp.LinkedEditingRanges | None:
    document = _document(ls, params.text_document.uri)
    if document is None or params.position.character <= 0:
        return None
    ranges = _service(ls).do_linked_editing(document, params.position)
    if not ranges:
        return None
    return lsp.LinkedEditingRanges(ranges=ranges)


@server.feature(lsp.TEXT_DOCUMENT_COLOR_PRESENTATION)
@_run_safe(_empty)
def color_presentation(
    ls: EmbedmuxLanguageServer, params: lsp.ColorPresentationParams
) -> list[lsp.ColorPresentation]:
    document = _document(ls, params.text_document.uri)
    if document is None:
        return []
    return _service(ls).get_color_presentations(document, params.color, params.range)


# -- multi target --------------------------------------------------------


@server.feature(lsp.TEXT_DOCUMENT_DOCUMENT_SYMBOL)
@_run_safe(_empty)
def document_symbol(
    ls: EmbedmuxLanguageServer, params: lsp.DocumentSymbolParams
) -> list[lsp.SymbolInformation]:
    document = _document(ls, params.text_document.uri)
    if document is None:
        return []
    return _service(ls).find_document_symbols(document)


@server.feature(lsp.TEXT_DOCUMENT_DOCUMENT_LINK, lsp.DocumentLinkOptions(resolve_provider=False))
@_run_safe(_empty)
def document_link(ls: EmbedmuxLanguageServer, params: lsp.DocumentLinkParams) -> list[lsp.DocumentLink]:
    document = _document(ls, params.text_document.uri)
    if document is None:
        return []
    return _service(ls).find_document_links(document, _context(ls, document.uri))


@server.feature(lsp.TEXT_DOCUMENT_DOCUMENT_COLOR)
@_run_safe(_empty)
def document_color(
    ls: EmbedmuxLanguageServer, params: lsp.DocumentColorParams
) -> list[lsp.ColorInformation]:
    document = _document(ls, params.text_document.uri)
    if document is None:
        return []
    return _service(ls).find_document_colors(document)


@server.feature(lsp.TEXT_DOCUMENT_FOLDING_RANGE)
@_run_safe(_empty)
def folding_range(ls: EmbedmuxLanguageServer, params: lsp.FoldingRangeParams) -> list[lsp.FoldingRange]:
    document = _document(ls, params.text_document.uri)
    if document is None:
        return []
    return _service(ls).get_folding_ranges(document)


@server.feature(lsp.TEXT_DOCUMENT_SELECTION_RANGE)
@_run_safe(_empty)
def selection_range(
    ls: EmbedmuxLanguageServer, params: lsp.SelectionRangeParams
) -> list[lsp.SelectionRange]:
    document = _document(ls, params.text_document.uri)
    if document is None:
        return []
    return _service(ls).get_selection_ranges(document, params.positions)


@server.feature(lsp.TEXT_DOCUMENT_FORMATTING)
@_run_safe(_empty)
def formatting(ls: EmbedmuxLanguageServer, params: lsp.DocumentFormattingParams) -> list[lsp.TextEdit]:
    document = _document(ls, params.text_document.uri)
    if document is None or not ls.provide_formatter:
        return []
    return _service(ls).format(document, document.full_range(), params.options, ls.settings)


@server.feature(lsp.TEXT_DOCUMENT_RANGE_FORMATTING)
@_run_safe(_empty)
def range_formatting(
    ls: EmbedmuxLanguageServer, params: lsp.DocumentRangeFormattingParams
) -> list[lsp.TextEdit]:
    document = _document(ls, params.text_document.uri)
    if document is None or not ls.provide_formatter:
        return []
    return _service(ls).format(document, params.range, params.options, ls.settings)


@server.feature(lsp.TEXT_DOCUMENT_SEMANTIC_TOKENS_FULL, SEMANTIC_TOKENS_LEGEND)
@_run_safe(_none)
def semantic_tokens_full(
    ls: EmbedmuxLanguageServer, params: lsp.SemanticTokensParams
) -> lsp.SemanticTokens | None:
    document = _document(ls, params.text_document.uri)
    if document is None:
        return None
    return lsp.SemanticTokens(data=_service(ls).get_semantic_tokens(document))


@server.feature(lsp.TEXT_DOCUMENT_SEMANTIC_TOKENS_RANGE, SEMANTIC_TOKENS_LEGEND)
@_run_safe(_none)
def semantic_tokens_range(
    ls: EmbedmuxLanguageServer, params: lsp.SemanticTokensRangeParams
) -> lsp.SemanticTokens | None:
    document = _document(ls, params.text_document.uri)
    if document is None:
        return None
    return lsp.SemanticTokens(data=_service(ls).get_semantic_tokens(document, [params.range]))


# -- custom methods ------------------------------------------------------


@server.feature(AUTO_INSERT_REQUEST)
@_run_safe(_none)
def auto_insert(ls: EmbedmuxLanguageServer, params: Any) -> str | None:
    request = AutoInsertRequest.model_validate(_plain(params))
    document = _document(ls, request.text_document.uri)
    if document is None or request.position.character <= 0:
        return None
    position = lsp.Position(line=request.position.line, character=request.position.character)
    return _service(ls).do_auto_insert(document, position, request.kind, ls.settings)


@server.feature(CUSTOM_DATA_CHANGED_NOTIFICATION)
def custom_data_changed(ls: EmbedmuxLanguageServer, params: Any) -> None:
    payload = _plain(params)
    if isinstance(payload, list):
        payload = {"dataPaths": payload}
    try:
        notification = CustomDataChangedNotification.model_validate(payload)
    except ValidationError as exc:
        logger.warning("ignoring invalid %s payload: %s", CUSTOM_DATA_CHANGED_NOTIFICATION, exc)
        return
    providers = fetch_html_data_providers(notification.data_paths, FileRequestService(root=ls.root))
    _service(ls).update_data_providers(providers)
    _validate_all(ls)


@server.feature(SEMANTIC_TOKEN_LEGEND_REQUEST)
def semantic_token_legend(ls: EmbedmuxLanguageServer, params: Any) -> lsp.SemanticTokensLegend:
    return _service(ls).get_semantic_token_legend()


@server.feature(SEMANTIC_TOKEN_REQUEST)
@_run_safe(_empty)
def semantic_token_request(ls: EmbedmuxLanguageServer, params: Any) -> list[int]:
    request = SemanticTokenRequest.model_validate(_plain(params))
    document = _document(ls, request.text_document.uri)
    if document is None:
        return []
    ranges = None
    if request.ranges is not None:
        ranges = [
            lsp.Range(
                start=lsp.Position(line=item.start.line, character=item.start.character),
                end=lsp.Position(line=item.end.line, character=item.end.character),
            )
            for item in request.ranges
        ]
    return _service(ls).get_semantic_tokens(document, ranges)


def start(start_fn: Callable[[], None] | None = None) -> None:
    """Serve over stdio."""
    (start_fn or server.start_io)()


if __name__ == "__main__":  # pragma: no cover
    start()  # pragma: no cover
