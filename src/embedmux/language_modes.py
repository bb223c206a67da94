from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

from lsprotocol.types import Position, Range

from embedmux.cache import DocumentCache
from embedmux.custom_data import HTMLDataProvider
from embedmux.modes.base import LanguageMode
from embedmux.modes.html import HtmlMode
from embedmux.regions import HOST_LANGUAGE, DocumentRegions
from embedmux.text_document import TextDocument


@dataclass(frozen=True)
class ModeRange:
    start: Position
    end: Position
    mode: LanguageMode | None
    attribute_value: bool = False


class LanguageModes:
    """Ordered registry of the modes serving one kind of host document.

    Registration order is iteration order for every multi-target operation.
    """

    def __init__(
        self,
        regions: DocumentCache[DocumentRegions],
        modes: Mapping[str, LanguageMode],
    ) -> None:
        self._regions = regions
        self._modes: dict[str, LanguageMode] = dict(modes)

    @property
    def regions(self) -> DocumentCache[DocumentRegions]:
        return self._regions

    def update_data_providers(self, providers: Iterable[HTMLDataProvider]) -> None:
        host = self._modes.get(HOST_LANGUAGE)
        if isinstance(host, HtmlMode):
            host.update_data_providers(providers)

    def get_mode_at_position(self, document: TextDocument, position: Position) -> LanguageMode | None:
        language_id = self._regions.get(document).get_language_at_position(position)
        if language_id is None:
            return None
        return self._modes.get(language_id)

    def get_modes_in_range(self, document: TextDocument, range: Range | None = None) -> list[ModeRange]:
        return [
            ModeRange(
                start=item.start,
                end=item.end,
                mode=self._modes.get(item.language_id) if item.language_id is not None else None,
                attribute_value=item.attribute_value,
            )
            for item in self._regions.get(document).get_language_ranges(range)
        ]

    def get_all_modes_in_document(self, document: TextDocument) -> list[LanguageMode]:
        result: list[LanguageMode] = []
        for language_id in self._regions.get(document).get_languages_in_document():
            mode = self._modes.get(language_id)
            if mode is not None:
                result.append(mode)
        return result

    def get_all_modes(self) -> list[LanguageMode]:
        return list(self._modes.values())

    def get_mode(self, language_id: str) -> LanguageMode | None:
        return self._modes.get(language_id)

    def remove_document(self, document: TextDocument) -> None:
        self._regions.delete(document)
        for mode in self._modes.values():
            mode.remove_document(document)

    def dispose(self) -> None:
        for mode in self._modes.values():
            mode.dispose()
        self._modes.clear()
        self._regions.dispose()
