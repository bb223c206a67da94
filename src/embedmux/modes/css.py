"""Style sheet mode: style blocks and ``style`` attribute values."""

from __future__ import annotations

import colorsys
import re
from bisect import bisect_left
from typing import Any

from lsprotocol import types as lsp

from embedmux.cache import DocumentCache
from embedmux.document_context import DocumentContext
from embedmux.modes.code_scan import CodeScan, match_brackets
from embedmux.modes.embedded import BraceLanguageMode, to_range
from embedmux.regions import CSS_STYLE_RULE, DocumentRegions
from embedmux.schema import Settings
from embedmux.text_document import TextDocument

CSS_PROPERTIES = {
    "background": "Shorthand for the background properties.",
    "background-color": "Background color of an element.",
    "border": "Shorthand for border width, style and color.",
    "border-color": "Color of the four borders.",
    "border-radius": "Rounds the corners of the border box.",
    "bottom": "Bottom offset of a positioned element.",
    "color": "Foreground color of the element's text.",
    "cursor": "Mouse cursor shown over the element.",
    "display": "Display type of the element.",
    "flex": "Shorthand for flex-grow, flex-shrink and flex-basis.",
    "font": "Shorthand for the font properties.",
    "font-family": "Prioritized list of font family names.",
    "font-size": "Size of the font.",
    "font-weight": "Weight of the font.",
    "gap": "Gaps between rows and columns.",
    "height": "Height of the content area.",
    "left": "Left offset of a positioned element.",
    "line-height": "Height of a line box.",
    "margin": "Shorthand for the four margins.",
    "opacity": "Opacity of the element.",
    "outline-color": "Color of the outline.",
    "padding": "Shorthand for the four paddings.",
    "position": "Positioning method of the element.",
    "right": "Right offset of a positioned element.",
    "text-align": "Horizontal alignment of inline content.",
    "top": "Top offset of a positioned element.",
    "width": "Width of the content area.",
    "z-index": "Stacking order of a positioned element.",
}

NAMED_COLORS = {
    "black": (0, 0, 0),
    "white": (255, 255, 255),
    "red": (255, 0, 0),
    "green": (0, 128, 0),
    "blue": (0, 0, 255),
    "yellow": (255, 255, 0),
    "orange": (255, 165, 0),
    "purple": (128, 0, 128),
    "gray": (128, 128, 128),
    "grey": (128, 128, 128),
    "silver": (192, 192, 192),
    "navy": (0, 0, 128),
    "teal": (0, 128, 128),
    "maroon": (128, 0, 0),
    "lime": (0, 255, 0),
    "aqua": (0, 255, 255),
    "fuchsia": (255, 0, 255),
    "olive": (128, 128, 0),
}

_HEX_RE = re.compile(r"#([0-9a-fA-F]{8}|[0-9a-fA-F]{6}|[0-9a-fA-F]{3,4})(?![\w-])")
_RGB_RE = re.compile(r"\brgba?\(\s*([^)]*)\)", re.IGNORECASE)
_NAMED_RE = re.compile(r"(?<![\w-])(" + "|".join(NAMED_COLORS) + r")(?![\w-])", re.IGNORECASE)
_DECLARATION_KEY_RE = re.compile(r"(?:^|[{;\s])(-{0,2}[\w-]*)$")
_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)


def _value_context(text: str, offset: int) -> bool:
    """True when ``offset`` sits in a declaration value (after ``:``, before ``;``)."""
    index = offset - 1
    while index >= 0:
        char = text[index]
        if char == ":":
            return True
        if char in ";{}":
            return False
        index -= 1
    return False


def _depth(scan: CodeScan, offset: int) -> int:
    depth = 0
    for position, char in scan.brackets():
        if position >= offset:
            break
        if char == "{":
            depth += 1
        elif char == "}":
            depth = max(depth - 1, 0)
    return depth


def _parse_channel(value: str, scale: float) -> float:
    value = value.strip()
    if value.endswith("%"):
        return max(min(float(value[:-1]) / 100.0, 1.0), 0.0)
    return max(min(float(value) / scale, 1.0), 0.0)


def parse_color(text: str) -> lsp.Color | None:
    """Parse a hex, ``rgb()``/``rgba()`` or named color literal."""
    lowered = text.lower()
    if lowered in NAMED_COLORS:
        red, green, blue = NAMED_COLORS[lowered]
        return lsp.Color(red=red / 255, green=green / 255, blue=blue / 255, alpha=1.0)
    if lowered.startswith("#"):
        digits = lowered[1:]
        if len(digits) in (3, 4):
            digits = "".join(char * 2 for char in digits)
        if len(digits) not in (6, 8):
            return None
        channels = [int(digits[index : index + 2], 16) / 255 for index in range(0, len(digits), 2)]
        alpha = channels[3] if len(channels) == 4 else 1.0
        return lsp.Color(red=channels[0], green=channels[1], blue=channels[2], alpha=alpha)
    match = _RGB_RE.fullmatch(text)
    if match is None:
        return None
    parts = [part for part in re.split(r"[\s,/]+", match.group(1).strip()) if part]
    if len(parts) not in (3, 4):
        return None
    try:
        red, green, blue = (_parse_channel(part, 255.0) for part in parts[:3])
        alpha = _parse_channel(parts[3], 1.0) if len(parts) == 4 else 1.0
    except ValueError:
        return None
    return lsp.Color(red=red, green=green, blue=blue, alpha=alpha)


def _byte(value: float) -> int:
    return round(max(min(value, 1.0), 0.0) * 255)


def color_labels(color: lsp.Color) -> list[str]:
    red, green, blue = _byte(color.red), _byte(color.green), _byte(color.blue)
    opaque = color.alpha >= 1
    alpha = round(color.alpha, 2)
    labels = []
    if opaque:
        labels.append(f"rgb({red}, {green}, {blue})")
        labels.append(f"#{red:02x}{green:02x}{blue:02x}")
    else:
        labels.append(f"rgba({red}, {green}, {blue}, {alpha:g})")
        labels.append(f"#{red:02x}{green:02x}{blue:02x}{_byte(color.alpha):02x}")
    hue, lightness, saturation = colorsys.rgb_to_hls(color.red, color.green, color.blue)
    hsl = f"{round(hue * 360)}, {round(saturation * 100)}%, {round(lightness * 100)}%"
    labels.append(f"hsl({hsl})" if opaque else f"hsla({hsl}, {alpha:g})")
    return labels


class CssMode(BraceLanguageMode):
    line_comments = False
    template_strings = False
    css_words = True
    folded_brackets = "{"

    def __init__(self, regions: DocumentCache[DocumentRegions], **options: Any) -> None:
        super().__init__("css", regions, **options)

    def validation_enabled(self, settings: Settings) -> bool:
        return settings.css.validate_

    def do_complete(
        self,
        document: TextDocument,
        position: lsp.Position,
        context: DocumentContext,
        settings: Settings,
    ) -> lsp.CompletionList | None:
        embedded = self.embedded(document)
        scan = self.scan(document)
        offset = embedded.offset_at(position)
        text = embedded.text
        if scan.in_literal(offset) or _depth(scan, offset) == 0:
            return lsp.CompletionList(is_incomplete=False, items=[])
        items: list[lsp.CompletionItem] = []
        if _value_context(text, offset):
            word = re.search(r"[\w-]*$", text[:offset])
            prefix_start = word.start() if word else offset
            replace = to_range(embedded, prefix_start, offset)
            for name in NAMED_COLORS:
                items.append(
                    lsp.CompletionItem(
                        label=name,
                        kind=lsp.CompletionItemKind.Color,
                        text_edit=lsp.TextEdit(range=replace, new_text=name),
                    )
                )
            return lsp.CompletionList(is_incomplete=False, items=items)
        key = _DECLARATION_KEY_RE.search(text[:offset])
        if key is None:
            return lsp.CompletionList(is_incomplete=False, items=[])
        replace = to_range(embedded, offset - len(key.group(1)), offset)
        for name, description in CSS_PROPERTIES.items():
            items.append(
                lsp.CompletionItem(
                    label=name,
                    kind=lsp.CompletionItemKind.Property,
                    documentation=description,
                    insert_text_format=lsp.InsertTextFormat.Snippet,
                    text_edit=lsp.TextEdit(range=replace, new_text=f"{name}: $0;"),
                )
            )
        return lsp.CompletionList(is_incomplete=False, items=items)

    def do_hover(
        self, document: TextDocument, position: lsp.Position, settings: Settings
    ) -> lsp.Hover | None:
        if settings.css.hover.get("documentation") is False:
            return None
        embedded = self.embedded(document)
        word = self.word_at(document, position)
        if word is None:
            return None
        name = embedded.text[word[0] : word[1]].lower()
        if name not in CSS_PROPERTIES or _value_context(embedded.text, word[0]):
            return None
        return lsp.Hover(
            contents=lsp.MarkupContent(
                kind=lsp.MarkupKind.Markdown, value=f"**{name}**\n\n{CSS_PROPERTIES[name]}"
            ),
            range=to_range(embedded, *word),
        )

    # -- custom properties ----------------------------------------------

    def _custom_property_spans(
        self, document: TextDocument, position: lsp.Position
    ) -> list[tuple[int, int]] | None:
        embedded = self.embedded(document)
        scan = self.scan(document)
        word = scan.identifier_at(embedded.offset_at(position))
        if word is None:
            return None
        name = embedded.text[word[0] : word[1]]
        if not name.startswith("--"):
            return None
        return [span for span in scan.identifiers if embedded.text[span[0] : span[1]] == name]

    def _is_declaration(self, text: str, span: tuple[int, int]) -> bool:
        return text[span[1] :].lstrip(" \t").startswith(":")

    def find_definition(
        self, document: TextDocument, position: lsp.Position
    ) -> list[lsp.Location] | None:
        spans = self._custom_property_spans(document, position)
        if not spans:
            return None
        embedded = self.embedded(document)
        for span in spans:
            if self._is_declaration(embedded.text, span):
                return [lsp.Location(uri=document.uri, range=to_range(embedded, *span))]
        return None

    def find_references(
        self, document: TextDocument, position: lsp.Position
    ) -> list[lsp.Location] | None:
        spans = self._custom_property_spans(document, position)
        if spans is None:
            return []
        embedded = self.embedded(document)
        return [lsp.Location(uri=document.uri, range=to_range(embedded, *span)) for span in spans]

    def find_document_highlight(
        self, document: TextDocument, position: lsp.Position
    ) -> list[lsp.DocumentHighlight] | None:
        spans = self._custom_property_spans(document, position)
        if spans is None:
            return []
        embedded = self.embedded(document)
        return [
            lsp.DocumentHighlight(
                range=to_range(embedded, *span),
                kind=(
                    lsp.DocumentHighlightKind.Write
                    if self._is_declaration(embedded.text, span)
                    else lsp.DocumentHighlightKind.Read
                ),
            )
            for span in spans
        ]

    # -- symbols and colors ---------------------------------------------

    def find_document_symbols(self, document: TextDocument) -> list[lsp.SymbolInformation] | None:
        embedded = self.embedded(document)
        scan = self.scan(document)
        text = embedded.text
        boundaries = [offset for offset, char in scan.punctuation if char in "{};"]
        pairs, _ = match_brackets(scan)
        symbols: list[tuple[int, lsp.SymbolInformation]] = []
        for pair in pairs:
            if pair.char != "{":
                continue
            index = bisect_left(boundaries, pair.open) - 1
            selector_start = boundaries[index] + 1 if index >= 0 else 0
            raw = _COMMENT_RE.sub(" ", text[selector_start : pair.open])
            name = " ".join(raw.split())
            if not name or name == CSS_STYLE_RULE:
                continue
            while selector_start < pair.open and text[selector_start].isspace():
                selector_start += 1
            kind = lsp.SymbolKind.Module if name.startswith("@") else lsp.SymbolKind.Class
            symbols.append(
                (
                    selector_start,
                    lsp.SymbolInformation(
                        name=name,
                        kind=kind,
                        location=lsp.Location(
                            uri=document.uri, range=to_range(embedded, selector_start, pair.close + 1)
                        ),
                    ),
                )
            )
        for start, end in scan.identifiers:
            name = text[start:end]
            if name.startswith("--") and self._is_declaration(text, (start, end)):
                symbols.append(
                    (
                        start,
                        lsp.SymbolInformation(
                            name=name,
                            kind=lsp.SymbolKind.Variable,
                            location=lsp.Location(uri=document.uri, range=to_range(embedded, start, end)),
                        ),
                    )
                )
        symbols.sort(key=lambda item: item[0])
        return [symbol for _, symbol in symbols]

    def find_document_colors(self, document: TextDocument) -> list[lsp.ColorInformation] | None:
        embedded = self.embedded(document)
        scan = self.scan(document)
        text = embedded.text
        found: list[tuple[int, lsp.ColorInformation]] = []
        for pattern in (_HEX_RE, _RGB_RE, _NAMED_RE):
            for match in pattern.finditer(text):
                start, end = match.span()
                if scan.in_literal(start) or scan.in_literal(end - 1):
                    continue
                if not _value_context(text, start):
                    continue
                color = parse_color(match.group(0))
                if color is None:
                    continue
                found.append(
                    (start, lsp.ColorInformation(range=to_range(embedded, start, end), color=color))
                )
        found.sort(key=lambda item: item[0])
        return [information for _, information in found]

    def get_color_presentations(
        self, document: TextDocument, color: lsp.Color, range: lsp.Range
    ) -> list[lsp.ColorPresentation] | None:
        return [
            lsp.ColorPresentation(label=label, text_edit=lsp.TextEdit(range=range, new_text=label))
            for label in color_labels(color)
        ]
