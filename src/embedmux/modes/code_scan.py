"""Lexical skeleton of brace languages (css, javascript, typescript).

``scan_code`` walks a projected sub-document once and records what the
lightweight css and script modes need: punctuation outside strings and
comments, comment and string spans, and identifier spans. Nothing here
parses; it only tells structure from literal text.
"""

from __future__ import annotations

import re
from bisect import bisect_right
from dataclasses import dataclass

OPENERS = "{(["
CLOSERS = "})]"
PUNCTUATION = frozenset("{}()[];,:.=")
_MATCHING = {"}": "{", ")": "(", "]": "["}

_IDENTIFIER_RE = re.compile(r"[A-Za-z_$][\w$]*")
_NUMBER_RE = re.compile(r"\d[\w.]*")
_CSS_WORD_RE = re.compile(r"-{0,2}[A-Za-z_][\w-]*")


@dataclass(frozen=True)
class CodeScan:
    text: str
    punctuation: tuple[tuple[int, str], ...]
    comments: tuple[tuple[int, int], ...]
    strings: tuple[tuple[int, int], ...]
    identifiers: tuple[tuple[int, int], ...]
    unterminated: tuple[tuple[int, int], ...]

    def brackets(self) -> list[tuple[int, str]]:
        return [item for item in self.punctuation if item[1] in OPENERS or item[1] in CLOSERS]

    def in_literal(self, offset: int) -> bool:
        """True when ``offset`` lies strictly inside a comment or string."""
        return _strictly_inside(self.comments, offset) or _strictly_inside(self.strings, offset)

    def identifier_at(self, offset: int) -> tuple[int, int] | None:
        index = bisect_right(self.identifiers, (offset, len(self.text) + 1)) - 1
        if index >= 0:
            start, end = self.identifiers[index]
            if start <= offset <= end:
                return start, end
        return None


def _strictly_inside(spans: tuple[tuple[int, int], ...], offset: int) -> bool:
    index = bisect_right(spans, (offset, -1)) - 1
    if index < 0:
        return False
    start, end = spans[index]
    return start < offset < end


def scan_code(
    text: str, *, line_comments: bool = True, template_strings: bool = True, css_words: bool = False
) -> CodeScan:
    punctuation: list[tuple[int, str]] = []
    comments: list[tuple[int, int]] = []
    strings: list[tuple[int, int]] = []
    identifiers: list[tuple[int, int]] = []
    unterminated: list[tuple[int, int]] = []
    word_re = _CSS_WORD_RE if css_words else _IDENTIFIER_RE
    length = len(text)
    index = 0
    while index < length:
        char = text[index]
        following = text[index + 1] if index + 1 < length else ""
        if char == "/" and following == "*":
            close = text.find("*/", index + 2)
            end = length if close < 0 else close + 2
            comments.append((index, end))
            if close < 0:
                unterminated.append((index, end))
            index = end
        elif char == "/" and following == "/" and line_comments:
            end = index
            while end < length and text[end] not in "\r\n":
                end += 1
            comments.append((index, end))
            index = end
        elif char in "'\"" or (char == "`" and template_strings):
            end, closed = _scan_string(text, index)
            strings.append((index, end))
            if not closed:
                unterminated.append((index, end))
            index = end
        elif char in PUNCTUATION:
            punctuation.append((index, char))
            index += 1
        elif char.isdigit():
            match = _NUMBER_RE.match(text, index)
            index = match.end() if match else index + 1
        else:
            match = word_re.match(text, index)
            if match is not None and match.end() > index:
                identifiers.append((index, match.end()))
                index = match.end()
            else:
                index += 1
    return CodeScan(
        text=text,
        punctuation=tuple(punctuation),
        comments=tuple(comments),
        strings=tuple(strings),
        identifiers=tuple(identifiers),
        unterminated=tuple(unterminated),
    )


def _scan_string(text: str, start: int) -> tuple[int, bool]:
    quote = text[start]
    index = start + 1
    length = len(text)
    while index < length:
        char = text[index]
        if char == "\\":
            index += 2
            continue
        if char == quote:
            return index + 1, True
        if char in "\r\n" and quote != "`":
            return index, False
        index += 1
    return length, False


@dataclass(frozen=True)
class BracketPair:
    open: int
    close: int
    char: str


def match_brackets(scan: CodeScan) -> tuple[list[BracketPair], list[tuple[int, str]]]:
    """Pair brackets; returns the pairs (by open offset) and the unmatched ones."""
    pairs: list[BracketPair] = []
    unmatched: list[tuple[int, str]] = []
    stack: list[tuple[int, str]] = []
    for offset, char in scan.brackets():
        if char in OPENERS:
            stack.append((offset, char))
        elif stack and stack[-1][1] == _MATCHING[char]:
            open_offset, open_char = stack.pop()
            pairs.append(BracketPair(open_offset, offset, open_char))
        else:
            unmatched.append((offset, char))
    unmatched.extend(stack)
    pairs.sort(key=lambda pair: pair.open)
    unmatched.sort()
    return pairs, unmatched
