"""HTML vocabulary providers.

A provider wraps one HTML custom data payload (version 1 format: ``tags``,
``globalAttributes``, ``valueSets``) and answers the lookups the html mode
needs for completion and hover. ``fetch_html_data_providers`` loads one
provider per data source; a source that cannot be read or parsed degrades
to an empty provider so its siblings still load.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Protocol
from urllib.parse import unquote, urlparse

import httpx
from pydantic import ValidationError

from embedmux.exceptions import CustomDataError
from embedmux.log import get_logger
from embedmux.schema import AttributeData, HTMLDataV1, TagData, ValueData

logger = get_logger(__name__)

_FETCH_TIMEOUT = 10.0


class HTMLDataProvider:
    def __init__(self, provider_id: str, data: HTMLDataV1) -> None:
        self.id = provider_id
        self._data = data
        self._tags = {tag.name.lower(): tag for tag in data.tags}
        self._value_sets = {value_set.name: value_set for value_set in data.value_sets}

    @property
    def is_empty(self) -> bool:
        return not (self._data.tags or self._data.global_attributes or self._data.value_sets)

    def provide_tags(self) -> list[TagData]:
        return list(self._data.tags)

    def get_tag(self, name: str) -> TagData | None:
        return self._tags.get(name.lower())

    def provide_attributes(self, tag: str) -> list[AttributeData]:
        attributes: list[AttributeData] = []
        entry = self.get_tag(tag)
        if entry is not None:
            attributes.extend(entry.attributes)
        attributes.extend(self._data.global_attributes)
        return attributes

    def get_attribute(self, tag: str, attribute: str) -> AttributeData | None:
        name = attribute.lower()
        for candidate in self.provide_attributes(tag):
            if candidate.name.lower() == name:
                return candidate
        return None

    def provide_values(self, tag: str, attribute: str) -> list[ValueData]:
        entry = self.get_attribute(tag, attribute)
        if entry is None:
            return []
        values = list(entry.values)
        if entry.value_set is not None and entry.value_set in self._value_sets:
            values.extend(self._value_sets[entry.value_set].values)
        return values

    def is_void(self, tag: str) -> bool:
        entry = self.get_tag(tag)
        return bool(entry is not None and entry.void)


def empty_provider(provider_id: str) -> HTMLDataProvider:
    return HTMLDataProvider(provider_id, HTMLDataV1())


def parse_html_data(provider_id: str, source: str) -> HTMLDataProvider:
    try:
        data = HTMLDataV1.model_validate_json(source)
    except ValidationError as exc:
        logger.warning("malformed custom data %s: %s", provider_id, exc.errors()[:1])
        return empty_provider(provider_id)
    return HTMLDataProvider(provider_id, data)


class CustomDataRequestService(Protocol):
    def get_content(self, uri: str) -> str: ...


class FileRequestService:
    """Reads custom data from local paths, ``file:`` URIs and ``http(s):`` URLs."""

    def __init__(self, root: Path | None = None, client: httpx.Client | None = None) -> None:
        self.root = root
        self._client = client

    def get_content(self, uri: str) -> str:
        parsed = urlparse(uri)
        if parsed.scheme in ("http", "https"):
            return self._fetch(uri)
        if parsed.scheme == "file":
            path = Path(unquote(parsed.path))
        else:
            path = Path(uri)
            if not path.is_absolute() and self.root is not None:
                path = self.root / path
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise CustomDataError(uri, str(exc)) from exc

    def _fetch(self, uri: str) -> str:
        try:
            if self._client is not None:
                response = self._client.get(uri)
            else:
                response = httpx.get(uri, timeout=_FETCH_TIMEOUT, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise CustomDataError(uri, str(exc)) from exc
        return response.text


def fetch_html_data_providers(
    data_paths: Iterable[str], request_service: CustomDataRequestService
) -> list[HTMLDataProvider]:
    providers: list[HTMLDataProvider] = []
    for path in data_paths:
        try:
            content = request_service.get_content(path)
        except CustomDataError as exc:
            logger.warning("could not load custom data %s: %s", path, exc.reason)
            providers.append(empty_provider(path))
            continue
        providers.append(parse_html_data(path, content))
    return providers


def _tag(name: str, description: str, *, void: bool = False) -> TagData:
    return TagData(name=name, description=description, void=void)


def _attribute(name: str, description: str, value_set: str | None = None) -> AttributeData:
    return AttributeData(name=name, description=description, value_set=value_set)


BUILTIN_HTML_DATA = HTMLDataV1(
    version=1.1,
    tags=[
        _tag("html", "The root element of an HTML document."),
        _tag("head", "Machine-readable information about the document."),
        _tag("title", "The document's title shown in the browser's title bar."),
        _tag("base", "Base URL for relative URLs in the document.", void=True),
        _tag("link", "Relationship to an external resource.", void=True),
        _tag("meta", "Metadata that cannot be expressed by other elements.", void=True),
        _tag("style", "Style information for the document."),
        _tag("script", "Embedded or referenced executable code."),
        _tag("body", "The content of the document."),
        _tag("header", "Introductory content."),
        _tag("footer", "Footer for its nearest sectioning content."),
        _tag("main", "The dominant content of the body."),
        _tag("nav", "A section with navigation links."),
        _tag("section", "A generic standalone section."),
        _tag("article", "A self-contained composition."),
        _tag("aside", "Content indirectly related to the main content."),
        _tag("h1", "Level 1 section heading."),
        _tag("h2", "Level 2 section heading."),
        _tag("h3", "Level 3 section heading."),
        _tag("div", "Generic flow container."),
        _tag("span", "Generic inline container."),
        _tag("p", "A paragraph."),
        _tag("a", "A hyperlink."),
        _tag("ul", "An unordered list."),
        _tag("ol", "An ordered list."),
        _tag("li", "A list item."),
        _tag("img", "An embedded image.", void=True),
        _tag("br", "A line break.", void=True),
        _tag("hr", "A thematic break.", void=True),
        _tag("input", "An interactive form control.", void=True),
        _tag("form", "A form for submitting information."),
        _tag("button", "A clickable button."),
        _tag("label", "A caption for a form control."),
        _tag("select", "A control offering a menu of options."),
        _tag("option", "An option in a select element."),
        _tag("textarea", "A multi-line plain-text editing control."),
        _tag("table", "Tabular data."),
        _tag("tr", "A table row."),
        _tag("td", "A table data cell."),
        _tag("th", "A table header cell."),
        _tag("pre", "Preformatted text."),
        _tag("code", "A fragment of computer code."),
        _tag("template", "Inert content for later instantiation."),
    ],
    global_attributes=[
        _attribute("id", "A unique identifier for the element."),
        _attribute("class", "Space-separated list of classes."),
        _attribute("style", "Inline CSS declarations."),
        _attribute("title", "Advisory information about the element."),
        _attribute("lang", "Language of the element's content."),
        _attribute("dir", "Text direction.", value_set="d"),
        _attribute("hidden", "The element is not yet, or no longer, relevant.", value_set="v"),
        _attribute("tabindex", "Focus order of the element."),
        _attribute("onclick", "Script run when the element is clicked."),
        _attribute("onload", "Script run when the element has loaded."),
        _attribute("onchange", "Script run when the element's value changes."),
        _attribute("oninput", "Script run when the element receives input."),
    ],
    value_sets=[
        {"name": "v", "values": []},
        {"name": "d", "values": [{"name": "ltr"}, {"name": "rtl"}, {"name": "auto"}]},
    ],
)


def builtin_provider() -> HTMLDataProvider:
    return HTMLDataProvider("html5", BUILTIN_HTML_DATA)
