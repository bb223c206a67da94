from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
from typer.testing import CliRunner


def _load():
    from embedmux import cli

    return cli


@pytest.fixture(autouse=True)
def _reset_package_logger():
    yield
    logger = logging.getLogger("embedmux")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


def _invoke(root: Path, args: list[str]):
    cli = _load()
    runner = CliRunner()
    return runner.invoke(cli.app, ["--root", str(root), "--log-level", "ERROR", *args])


def _write(tmp_path: Path, text: str, name: str = "index.html") -> Path:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


def test_regions_command_dumps_json(tmp_path: Path) -> None:
    path = _write(tmp_path, "<p style='margin:0'></p><script src='app.js'></script><style>a{}</style>")
    result = _invoke(tmp_path, ["regions", str(path)])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["regions"] == [
        {"languageId": "css", "start": 10, "end": 18, "attributeValue": True},
        {"languageId": "css", "start": 61, "end": 64, "attributeValue": False},
    ]
    assert payload["languages"] == ["css", "html"]
    assert payload["importedScripts"] == ["app.js"]


def test_project_command_prints_projection(tmp_path: Path) -> None:
    text = "<p style='margin:0'></p><style>a{}</style>"
    path = _write(tmp_path, text)
    result = _invoke(tmp_path, ["project", str(path), "css", "--ignore-attribute-values"])
    assert result.exit_code == 0, result.output
    assert result.stdout == " " * 31 + "a{}" + " " * 8
    assert len(result.stdout) == len(text)


def test_format_command_prints_and_writes(tmp_path: Path) -> None:
    path = _write(tmp_path, "<div>\n<p>hi</p>\n</div>")
    printed = _invoke(tmp_path, ["format", str(path), "--tab-size", "2"])
    assert printed.exit_code == 0, printed.output
    assert printed.stdout == "<div>\n  <p>hi</p>\n</div>"
    assert path.read_text(encoding="utf-8") == "<div>\n<p>hi</p>\n</div>"

    written = _invoke(tmp_path, ["format", str(path), "--tabs", "--write"])
    assert written.exit_code == 0, written.output
    assert path.read_text(encoding="utf-8") == "<div>\n\t<p>hi</p>\n</div>"


def test_format_command_reads_config(tmp_path: Path) -> None:
    (tmp_path / "embedmux.toml").write_text('[html.format]\nunformatted = "div"\n', encoding="utf-8")
    path = _write(tmp_path, "<div>\n<p>hi</p>\n</div>")
    result = _invoke(tmp_path, ["format", str(path), "--root", str(tmp_path)])
    assert result.exit_code == 0, result.output
    assert result.stdout == "<div>\n<p>hi</p>\n</div>"


def test_tokens_command_emits_legend_and_data(tmp_path: Path) -> None:
    path = _write(tmp_path, "<script>\nlet x = 1;\n</script>")
    result = _invoke(tmp_path, ["tokens", str(path)])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["legend"]["tokenTypes"][7] == "variable"
    assert payload["legend"]["tokenModifiers"][0] == "declaration"
    assert payload["data"] == [1, 4, 1, 7, 1]


def test_missing_file_exits_with_usage_error(tmp_path: Path) -> None:
    result = _invoke(tmp_path, ["regions", str(tmp_path / "missing.html")])
    assert result.exit_code == 2
