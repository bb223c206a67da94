from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from lsprotocol.types import FormattingOptions

from embedmux.config import resolve_server_options, resolve_settings, server_defaults, settings_defaults
from embedmux.language_service import LanguageService
from embedmux.log import configure_logging, get_logger
from embedmux.regions import extract_regions
from embedmux.text_document import TextDocument, apply_edits

app = typer.Typer(add_completion=False)
logger = get_logger(__name__)

HOST_LANGUAGE_ID = "html"


def _read_document(path: Path) -> TextDocument:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        typer.echo(f"cannot read {path}: {exc}", err=True)
        raise typer.Exit(code=2)
    return TextDocument(uri=path.resolve().as_uri(), language_id=HOST_LANGUAGE_ID, version=0, text=text)


def _service(root: Path, config: Optional[Path]) -> LanguageService:
    options = resolve_server_options({}, server_defaults(root=root, config_path=config))
    return LanguageService(
        folding_range_limit=options.folding_range_limit,
        max_entries=options.cache_max_entries,
        cleanup_interval=options.cache_cleanup_interval,
        autostart=False,
    )


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level for stderr output."),
    root: Path = typer.Option(Path("."), "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
) -> None:
    """Embedded-language multiplexing for HTML documents."""
    if log_level is None:
        log_level = resolve_server_options({}, server_defaults(root=root, config_path=config)).log_level
    configure_logging(log_level)


@app.command("serve")
def serve() -> None:
    """Run the language server over stdio."""
    from embedmux.server import start

    start()


@app.command("regions")
def regions(path: Path = typer.Argument(...)) -> None:
    """Dump the embedded regions of a document as JSON."""
    document = _read_document(path)
    index = extract_regions(document)
    payload = {
        "regions": [
            {
                "languageId": region.language_id,
                "start": region.start,
                "end": region.end,
                "attributeValue": region.attribute_value,
            }
            for region in index.regions
        ],
        "languages": index.get_languages_in_document(),
        "importedScripts": index.get_imported_scripts(),
    }
    typer.echo(json.dumps(payload, indent=2))


@app.command("project")
def project(
    path: Path = typer.Argument(...),
    language: str = typer.Argument(...),
    ignore_attribute_values: bool = typer.Option(False, "--ignore-attribute-values"),
) -> None:
    """Print the projection of a document onto one embedded language."""
    document = _read_document(path)
    embedded = extract_regions(document).get_embedded_document(
        language, ignore_attribute_values=ignore_attribute_values
    )
    typer.echo(embedded.text, nl=False)


@app.command("format")
def format_command(
    path: Path = typer.Argument(...),
    tab_size: int = typer.Option(4, "--tab-size"),
    tabs: bool = typer.Option(False, "--tabs"),
    write: bool = typer.Option(False, "--write", help="Rewrite the file in place."),
    root: Path = typer.Option(Path("."), "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
) -> None:
    """Format a whole document, host markup and embedded code together."""
    document = _read_document(path)
    settings = resolve_settings({}, settings_defaults(root=root, config_path=config))
    options = FormattingOptions(tab_size=tab_size, insert_spaces=not tabs)
    service = _service(root, config)
    try:
        edits = service.format(document, document.full_range(), options, settings)
    finally:
        service.dispose()
    formatted = apply_edits(document, edits)
    if write:
        if formatted != document.text:
            path.write_text(formatted, encoding="utf-8")
            logger.info("formatted %s", path)
        return
    typer.echo(formatted, nl=False)


@app.command("tokens")
def tokens(
    path: Path = typer.Argument(...),
    root: Path = typer.Option(Path("."), "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
) -> None:
    """Print the semantic token legend and encoded token stream as JSON."""
    document = _read_document(path)
    service = _service(root, config)
    try:
        legend = service.get_semantic_token_legend()
        data = service.get_semantic_tokens(document)
    finally:
        service.dispose()
    payload = {
        "legend": {"tokenTypes": legend.token_types, "tokenModifiers": legend.token_modifiers},
        "data": data,
    }
    typer.echo(json.dumps(payload))


if __name__ == "__main__":  # pragma: no cover
    app()  # pragma: no cover
