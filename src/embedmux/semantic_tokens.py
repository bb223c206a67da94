"""One semantic token stream for a document served by several modes.

Each mode numbers token types and modifiers against its own legend. At
construction every mode legend is folded into one shared legend (names are
appended the first time they are seen) and a remap is kept per mode; a
``None`` remap means the mode's numbering already matches.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from lsprotocol.types import Position, Range, SemanticTokensLegend

from embedmux.language_modes import LanguageModes
from embedmux.modes.base import SemanticTokenData
from embedmux.text_document import TextDocument, before_or_same

__all__ = [
    "LegendMapping",
    "SemanticTokenData",
    "SemanticTokenProvider",
    "create_mapping",
    "encode_tokens",
    "remap_modifiers",
]


@dataclass(frozen=True)
class LegendMapping:
    types: list[int] | None
    modifiers: list[int] | None


def create_mapping(names: Sequence[str], shared: list[str]) -> list[int] | None:
    """Map positions in ``names`` to positions in ``shared``, growing ``shared``."""
    mapping: list[int] = []
    needs_mapping = False
    for index, name in enumerate(names):
        if name in shared:
            target = shared.index(name)
        else:
            target = len(shared)
            shared.append(name)
        mapping.append(target)
        needs_mapping = needs_mapping or target != index
    return mapping if needs_mapping else None


def remap_modifiers(modifier_set: int, mapping: Sequence[int]) -> int:
    result = 0
    index = 0
    while modifier_set > 0:
        if modifier_set & 1:
            result |= 1 << mapping[index]
        index += 1
        modifier_set >>= 1
    return result


def _position_key(position: Position) -> tuple[int, int]:
    return position.line, position.character


def encode_tokens(tokens: list[SemanticTokenData], ranges: Sequence[Range]) -> list[int]:
    """Delta-encode the tokens lying wholly inside one of ``ranges``.

    Tokens and ranges are both sorted, then merged in one forward pass; a
    token that falls between ranges or straddles a range end is dropped.
    """
    ordered_tokens = sorted(tokens, key=lambda token: _position_key(token.start))
    ordered_ranges = sorted(ranges, key=lambda item: _position_key(item.start))
    encoded: list[int] = []
    if not ordered_ranges:
        return encoded

    range_index = 0
    current: Range | None = ordered_ranges[0]
    previous_line = 0
    previous_char = 0
    for token in ordered_tokens:
        start = token.start
        while current is not None and before_or_same(current.end, start):
            range_index += 1
            current = ordered_ranges[range_index] if range_index < len(ordered_ranges) else None
        if current is None:
            break
        token_end = Position(line=start.line, character=start.character + token.length)
        if before_or_same(current.start, start) and before_or_same(token_end, current.end):
            if previous_line != start.line:
                previous_char = 0
            encoded.extend(
                (
                    start.line - previous_line,
                    start.character - previous_char,
                    token.length,
                    token.type_index,
                    token.modifier_set,
                )
            )
            previous_line = start.line
            previous_char = start.character
    return encoded


def decode_tokens(data: Sequence[int]) -> list[tuple[int, int, int, int, int]]:
    """Inverse of the delta encoding: absolute ``(line, char, length, type, modifiers)``."""
    decoded: list[tuple[int, int, int, int, int]] = []
    line = 0
    char = 0
    for index in range(0, len(data) - len(data) % 5, 5):
        delta_line, delta_char, length, type_index, modifiers = data[index : index + 5]
        if delta_line:
            line += delta_line
            char = delta_char
        else:
            char += delta_char
        decoded.append((line, char, length, type_index, modifiers))
    return decoded


class SemanticTokenProvider:
    def __init__(self, language_modes: LanguageModes) -> None:
        self._language_modes = language_modes
        self._types: list[str] = []
        self._modifiers: list[str] = []
        self._mappings: dict[str, LegendMapping] = {}
        for mode in language_modes.get_all_modes():
            legend = mode.get_semantic_token_legend()
            if legend is None:
                continue
            self._mappings[mode.id] = LegendMapping(
                types=create_mapping(legend.token_types, self._types),
                modifiers=create_mapping(legend.token_modifiers, self._modifiers),
            )

    @property
    def legend(self) -> SemanticTokensLegend:
        return SemanticTokensLegend(token_types=list(self._types), token_modifiers=list(self._modifiers))

    def mapping_for(self, language_id: str) -> LegendMapping | None:
        return self._mappings.get(language_id)

    def get_semantic_tokens(
        self, document: TextDocument, ranges: Sequence[Range] | None = None
    ) -> list[int]:
        collected: list[SemanticTokenData] = []
        for mode in self._language_modes.get_all_modes_in_document(document):
            mapping = self._mappings.get(mode.id)
            if mapping is None:
                continue
            tokens = mode.get_semantic_tokens(document)
            if not tokens:
                continue
            for token in tokens:
                if mapping.types is not None:
                    token.type_index = mapping.types[token.type_index]
                if mapping.modifiers is not None and token.modifier_set:
                    token.modifier_set = remap_modifiers(token.modifier_set, mapping.modifiers)
                collected.append(token)
        if ranges is None:
            ranges = [
                Range(
                    start=Position(line=0, character=0),
                    end=Position(line=document.line_count, character=0),
                )
            ]
        return encode_tokens(collected, ranges)
