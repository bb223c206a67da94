from __future__ import annotations

from pathlib import Path
import textwrap


def _load():
    from embedmux import config

    return config


def _write(path: Path, body: str) -> Path:
    path.write_text(textwrap.dedent(body).strip() + "\n", encoding="utf-8")
    return path


def test_defaults_read_from_project_config(tmp_path: Path) -> None:
    config = _load()
    _write(
        tmp_path / "embedmux.toml",
        """
        [server]
        folding_range_limit = 100
        data_paths = ["data/tags.json"]

        [html.format]
        unformatted = "style"

        [css]
        validate = false
        """,
    )
    assert config.server_defaults(root=tmp_path) == {
        "folding_range_limit": 100,
        "data_paths": ["data/tags.json"],
    }
    defaults = config.settings_defaults(root=tmp_path)
    assert defaults == {"html": {"format": {"unformatted": "style"}}, "css": {"validate": False}}
    settings = config.resolve_settings({}, defaults)
    assert settings.html.format.unformatted == "style"
    assert settings.css.validate_ is False


def test_missing_or_invalid_config_is_empty(tmp_path: Path) -> None:
    config = _load()
    assert config.load_config(root=tmp_path) == {}
    broken = _write(tmp_path / "broken.toml", "[server\n")
    assert config.load_config(config_path=broken) == {}


def test_merge_payload_overlays_nested_tables() -> None:
    config = _load()
    defaults = {"html": {"format": {"enable": True, "unformatted": "pre"}}, "css": {"validate": True}}
    payload = {"html": {"format": {"unformatted": "style"}}, "css": None}
    assert config.merge_payload(payload, defaults) == {
        "html": {"format": {"enable": True, "unformatted": "style"}},
        "css": {"validate": True},
    }


def test_client_settings_take_precedence() -> None:
    config = _load()
    settings = config.resolve_settings(
        {"html": {"validate": {"scripts": False}}},
        {"html": {"validate": {"scripts": True, "styles": False}}},
    )
    assert settings.html.validate_.scripts is False
    assert settings.html.validate_.styles is False


def test_invalid_settings_fall_back_to_defaults() -> None:
    config = _load()
    settings = config.resolve_settings(
        {"html": {"suggest": {"attributeDefaultValue": "backticks"}}},
        {"html": {"format": {"unformatted": "script"}}},
    )
    assert settings.html.suggest.attribute_default_value == "doublequotes"
    assert settings.html.format.unformatted == "script"
    assert config.resolve_settings("not a table").html.format.enable is True


def test_server_options_validation() -> None:
    config = _load()
    options = config.resolve_server_options({"foldingRangeLimit": 5}, {"cache_max_entries": 3})
    assert options.folding_range_limit == 5
    assert options.cache_max_entries == 3
    assert config.resolve_server_options({"cacheMaxEntries": "many"}).cache_max_entries == 10
