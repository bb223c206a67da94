from __future__ import annotations

from datetime import date, datetime, time
from pathlib import Path
from typing import TypeAlias
import tomllib

from pydantic import ValidationError

from embedmux.log import get_logger
from embedmux.schema import ServerOptions, Settings

DEFAULT_CONFIG_NAME = "embedmux.toml"
LANGUAGE_SECTIONS = ("css", "html", "javascript")

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]

logger = get_logger(__name__)


def _load_toml(path: Path) -> TomlTable:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError:
        return {}
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError as exc:
        logger.warning("ignoring invalid config %s: %s", path, exc)
        return {}
    return data if isinstance(data, dict) else {}


def load_config(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    if config_path is None:
        base = root if root is not None else Path.cwd()
        config_path = base / DEFAULT_CONFIG_NAME
    return _load_toml(config_path)


def server_defaults(
    root: Path | None = None, config_path: Path | None = None
) -> TomlTable:
    data = load_config(root=root, config_path=config_path)
    section = data.get("server", {})
    return section if isinstance(section, dict) else {}


def settings_defaults(
    root: Path | None = None, config_path: Path | None = None
) -> TomlTable:
    data = load_config(root=root, config_path=config_path)
    defaults: TomlTable = {}
    for name in LANGUAGE_SECTIONS:
        section = data.get(name)
        if isinstance(section, dict):
            defaults[name] = section
    return defaults


def merge_payload(payload: TomlTable, defaults: TomlTable) -> TomlTable:
    """Overlay payload on defaults; nested tables merge, None values are skipped."""
    merged = dict(defaults)
    for key, value in payload.items():
        if value is None:
            continue
        base = merged.get(key)
        if isinstance(value, dict) and isinstance(base, dict):
            merged[key] = merge_payload(value, base)
        else:
            merged[key] = value
    return merged


def resolve_settings(payload: object, defaults: TomlTable | None = None) -> Settings:
    data = payload if isinstance(payload, dict) else {}
    merged = merge_payload(data, defaults or {})
    try:
        return Settings.model_validate(merged)
    except ValidationError as exc:
        logger.warning("invalid language settings, using defaults: %s", exc)
    try:
        return Settings.model_validate(defaults or {})
    except ValidationError:
        return Settings()


def resolve_server_options(
    payload: object, defaults: TomlTable | None = None
) -> ServerOptions:
    data = payload if isinstance(payload, dict) else {}
    merged = merge_payload(data, defaults or {})
    try:
        return ServerOptions.model_validate(merged)
    except ValidationError as exc:
        logger.warning("invalid server options, using defaults: %s", exc)
        return ServerOptions()
