"""Low-level HTML tokenizer.

The scanner walks the text once and reports one token per ``scan()`` call.
It never raises on malformed markup: anything it cannot classify becomes an
``UNKNOWN`` token and scanning continues.

Example:
    >>> scanner = Scanner("<p class='x'>hi</p>")
    >>> token = scanner.scan()
    >>> token is TokenType.START_TAG_OPEN
    True
"""

from __future__ import annotations

import re
from enum import Enum, auto


class TokenType(Enum):
    START_COMMENT_TAG = auto()
    COMMENT = auto()
    END_COMMENT_TAG = auto()
    START_TAG_OPEN = auto()
    START_TAG_CLOSE = auto()
    START_TAG_SELF_CLOSE = auto()
    START_TAG = auto()
    END_TAG_OPEN = auto()
    END_TAG_CLOSE = auto()
    END_TAG = auto()
    DELIMITER_ASSIGN = auto()
    ATTRIBUTE_NAME = auto()
    ATTRIBUTE_VALUE = auto()
    START_DOCTYPE_TAG = auto()
    DOCTYPE = auto()
    END_DOCTYPE_TAG = auto()
    CONTENT = auto()
    WHITESPACE = auto()
    UNKNOWN = auto()
    SCRIPT = auto()
    STYLES = auto()
    EOS = auto()


class ScannerState(Enum):
    WITHIN_CONTENT = auto()
    AFTER_OPENING_START_TAG = auto()
    AFTER_OPENING_END_TAG = auto()
    WITHIN_DOCTYPE = auto()
    WITHIN_TAG = auto()
    WITHIN_END_TAG = auto()
    WITHIN_COMMENT = auto()
    WITHIN_SCRIPT_CONTENT = auto()
    WITHIN_STYLE_CONTENT = auto()
    AFTER_ATTRIBUTE_NAME = auto()
    BEFORE_ATTRIBUTE_VALUE = auto()


_ELEMENT_NAME_RE = re.compile(r"[_:\w][_:\w\-.\d]*")
_ATTRIBUTE_NAME_RE = re.compile(r"[^\s\"'></=\x00-\x0F\x7F\x80-\x9F]*")
_UNQUOTED_VALUE_RE = re.compile(r"[^\s\"'`=<>]+")
_WHITESPACE_RE = re.compile(r"[ \t\r\n\f]+")
_DOCTYPE_RE = re.compile(r"!doctype", re.IGNORECASE)
_SCRIPT_END_RE = re.compile(r"</script", re.IGNORECASE)
_STYLE_END_RE = re.compile(r"</style", re.IGNORECASE)

# Script types whose body is markup rather than script.
_TEMPLATE_SCRIPT_TYPES = frozenset({"text/x-handlebars-template", "text/html"})


class Scanner:
    """Stateful tokenizer over a single string."""

    def __init__(
        self,
        text: str,
        initial_offset: int = 0,
        initial_state: ScannerState = ScannerState.WITHIN_CONTENT,
    ) -> None:
        self._text = text
        self._pos = initial_offset
        self._state = initial_state
        self._token_offset = initial_offset
        self._token_type = TokenType.UNKNOWN
        self._last_tag = ""
        self._last_attribute_name: str | None = None
        self._last_type_value: str | None = None
        self._has_space_after_tag = False

    @property
    def state(self) -> ScannerState:
        return self._state

    @property
    def token_type(self) -> TokenType:
        return self._token_type

    @property
    def token_offset(self) -> int:
        return self._token_offset

    @property
    def token_end(self) -> int:
        return self._pos

    @property
    def token_length(self) -> int:
        return self._pos - self._token_offset

    @property
    def token_text(self) -> str:
        return self._text[self._token_offset : self._pos]

    def scan(self) -> TokenType:
        offset = self._pos
        old_state = self._state
        token = self._internal_scan()
        if token is not TokenType.EOS and offset == self._pos and old_state == self._state:
            # no progress: consume a character so callers always terminate
            self._pos += 1
            token = self._finish(offset, TokenType.UNKNOWN)
        return token

    def __iter__(self):
        token = self.scan()
        while token is not TokenType.EOS:
            yield token
            token = self.scan()

    # -- stream helpers -------------------------------------------------

    def _eos(self) -> bool:
        return self._pos >= len(self._text)

    def _peek(self, n: int = 0) -> str:
        index = self._pos + n
        return self._text[index] if index < len(self._text) else ""

    def _advance_if_char(self, char: str) -> bool:
        if self._peek() == char:
            self._pos += 1
            return True
        return False

    def _advance_if_chars(self, chars: str) -> bool:
        if self._text.startswith(chars, self._pos):
            self._pos += len(chars)
            return True
        return False

    def _advance_if_regex(self, pattern: re.Pattern[str]) -> str:
        match = pattern.match(self._text, self._pos)
        if match is None or not match.group(0):
            return ""
        self._pos = match.end()
        return match.group(0)

    def _advance_until_regex(self, pattern: re.Pattern[str]) -> bool:
        match = pattern.search(self._text, self._pos)
        if match is None:
            self._pos = len(self._text)
            return False
        self._pos = match.start()
        return True

    def _advance_until_char(self, char: str) -> bool:
        index = self._text.find(char, self._pos)
        if index < 0:
            self._pos = len(self._text)
            return False
        self._pos = index
        return True

    def _advance_until_chars(self, chars: str) -> bool:
        index = self._text.find(chars, self._pos)
        if index < 0:
            self._pos = len(self._text)
            return False
        self._pos = index
        return True

    def _skip_whitespace(self) -> bool:
        return bool(self._advance_if_regex(_WHITESPACE_RE))

    def _finish(self, offset: int, token: TokenType) -> TokenType:
        self._token_type = token
        self._token_offset = offset
        return token

    # -- state machine --------------------------------------------------

    def _internal_scan(self) -> TokenType:
        offset = self._pos
        if self._eos():
            return self._finish(offset, TokenType.EOS)
        state = self._state

        if state is ScannerState.WITHIN_COMMENT:
            if self._advance_if_chars("-->"):
                self._state = ScannerState.WITHIN_CONTENT
                return self._finish(offset, TokenType.END_COMMENT_TAG)
            self._advance_until_chars("-->")
            return self._finish(offset, TokenType.COMMENT)

        if state is ScannerState.WITHIN_DOCTYPE:
            if self._advance_if_char(">"):
                self._state = ScannerState.WITHIN_CONTENT
                return self._finish(offset, TokenType.END_DOCTYPE_TAG)
            self._advance_until_char(">")
            return self._finish(offset, TokenType.DOCTYPE)

        if state is ScannerState.WITHIN_CONTENT:
            if self._advance_if_char("<"):
                if not self._eos() and self._peek() == "!":
                    if self._advance_if_chars("!--"):
                        self._state = ScannerState.WITHIN_COMMENT
                        return self._finish(offset, TokenType.START_COMMENT_TAG)
                    if self._advance_if_regex(_DOCTYPE_RE):
                        self._state = ScannerState.WITHIN_DOCTYPE
                        return self._finish(offset, TokenType.START_DOCTYPE_TAG)
                if self._advance_if_char("/"):
                    self._state = ScannerState.AFTER_OPENING_END_TAG
                    return self._finish(offset, TokenType.END_TAG_OPEN)
                self._state = ScannerState.AFTER_OPENING_START_TAG
                return self._finish(offset, TokenType.START_TAG_OPEN)
            self._advance_until_char("<")
            return self._finish(offset, TokenType.CONTENT)

        if state is ScannerState.AFTER_OPENING_END_TAG:
            if self._advance_if_regex(_ELEMENT_NAME_RE):
                self._state = ScannerState.WITHIN_END_TAG
                return self._finish(offset, TokenType.END_TAG)
            if self._skip_whitespace():
                return self._finish(offset, TokenType.WHITESPACE)
            self._state = ScannerState.WITHIN_END_TAG
            self._advance_until_char(">")
            if offset < self._pos:
                return self._finish(offset, TokenType.UNKNOWN)
            return self._internal_scan()

        if state is ScannerState.WITHIN_END_TAG:
            if self._skip_whitespace():
                return self._finish(offset, TokenType.WHITESPACE)
            if self._advance_if_char(">"):
                self._state = ScannerState.WITHIN_CONTENT
                return self._finish(offset, TokenType.END_TAG_CLOSE)
            self._pos += 1
            self._state = ScannerState.WITHIN_CONTENT
            return self._finish(offset, TokenType.UNKNOWN)

        if state is ScannerState.AFTER_OPENING_START_TAG:
            tag = self._advance_if_regex(_ELEMENT_NAME_RE)
            if tag:
                self._last_tag = tag.lower()
                self._last_attribute_name = None
                self._last_type_value = None
                self._has_space_after_tag = False
                self._state = ScannerState.WITHIN_TAG
                return self._finish(offset, TokenType.START_TAG)
            if self._skip_whitespace():
                return self._finish(offset, TokenType.WHITESPACE)
            self._last_tag = ""
            self._state = ScannerState.WITHIN_TAG
            self._advance_until_char(">")
            if offset < self._pos:
                return self._finish(offset, TokenType.UNKNOWN)
            return self._internal_scan()

        if state is ScannerState.WITHIN_TAG:
            if self._skip_whitespace():
                self._has_space_after_tag = True
                return self._finish(offset, TokenType.WHITESPACE)
            if self._has_space_after_tag:
                name = self._advance_if_regex(_ATTRIBUTE_NAME_RE)
                if name:
                    self._last_attribute_name = name.lower()
                    self._state = ScannerState.AFTER_ATTRIBUTE_NAME
                    return self._finish(offset, TokenType.ATTRIBUTE_NAME)
            if self._advance_if_chars("/>"):
                self._state = ScannerState.WITHIN_CONTENT
                return self._finish(offset, TokenType.START_TAG_SELF_CLOSE)
            if self._advance_if_char(">"):
                if self._last_tag == "script":
                    if self._last_type_value in _TEMPLATE_SCRIPT_TYPES:
                        self._state = ScannerState.WITHIN_CONTENT
                    else:
                        self._state = ScannerState.WITHIN_SCRIPT_CONTENT
                elif self._last_tag == "style":
                    self._state = ScannerState.WITHIN_STYLE_CONTENT
                else:
                    self._state = ScannerState.WITHIN_CONTENT
                return self._finish(offset, TokenType.START_TAG_CLOSE)
            self._pos += 1
            return self._finish(offset, TokenType.UNKNOWN)

        if state is ScannerState.AFTER_ATTRIBUTE_NAME:
            if self._skip_whitespace():
                self._has_space_after_tag = True
                return self._finish(offset, TokenType.WHITESPACE)
            if self._advance_if_char("="):
                self._state = ScannerState.BEFORE_ATTRIBUTE_VALUE
                return self._finish(offset, TokenType.DELIMITER_ASSIGN)
            self._state = ScannerState.WITHIN_TAG
            return self._internal_scan()

        if state is ScannerState.BEFORE_ATTRIBUTE_VALUE:
            if self._skip_whitespace():
                return self._finish(offset, TokenType.WHITESPACE)
            value = self._advance_if_regex(_UNQUOTED_VALUE_RE)
            if value and value.endswith("/") and self._peek() == ">":
                self._pos -= 1
                value = value[:-1]
            if value:
                if self._last_attribute_name == "type":
                    self._last_type_value = value
                self._state = ScannerState.WITHIN_TAG
                self._has_space_after_tag = False
                return self._finish(offset, TokenType.ATTRIBUTE_VALUE)
            quote = self._peek()
            if quote in ("'", '"'):
                self._pos += 1
                if self._advance_until_char(quote):
                    self._pos += 1
                if self._last_attribute_name == "type":
                    self._last_type_value = self._text[offset + 1 : self._pos - 1]
                self._state = ScannerState.WITHIN_TAG
                self._has_space_after_tag = False
                return self._finish(offset, TokenType.ATTRIBUTE_VALUE)
            self._state = ScannerState.WITHIN_TAG
            self._has_space_after_tag = False
            return self._internal_scan()

        if state is ScannerState.WITHIN_SCRIPT_CONTENT:
            self._advance_until_regex(_SCRIPT_END_RE)
            self._state = ScannerState.WITHIN_CONTENT
            if offset < self._pos:
                return self._finish(offset, TokenType.SCRIPT)
            return self._internal_scan()

        if state is ScannerState.WITHIN_STYLE_CONTENT:
            self._advance_until_regex(_STYLE_END_RE)
            self._state = ScannerState.WITHIN_CONTENT
            if offset < self._pos:
                return self._finish(offset, TokenType.STYLES)
            return self._internal_scan()

        self._pos += 1
        self._state = ScannerState.WITHIN_CONTENT
        return self._finish(offset, TokenType.UNKNOWN)
