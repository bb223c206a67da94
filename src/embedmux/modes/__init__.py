from embedmux.modes.base import LanguageMode, SemanticTokenData
from embedmux.modes.css import CssMode
from embedmux.modes.html import HtmlMode
from embedmux.modes.javascript import JavascriptMode

__all__ = [
    "CssMode",
    "HtmlMode",
    "JavascriptMode",
    "LanguageMode",
    "SemanticTokenData",
]
