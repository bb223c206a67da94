from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


import pytest

from embedmux.language_service import LanguageService
from embedmux.text_document import TextDocument

SAMPLE_URI = "file:///workspace/index.html"


@pytest.fixture
def make_document():
    def _make(text: str, *, uri: str = SAMPLE_URI, version: int = 1, language_id: str = "html") -> TextDocument:
        return TextDocument(uri=uri, language_id=language_id, version=version, text=text)

    return _make


@pytest.fixture
def service():
    language_service = LanguageService(autostart=False)
    yield language_service
    language_service.dispose()
