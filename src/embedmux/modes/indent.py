from __future__ import annotations

from lsprotocol.types import FormattingOptions, Position, Range, TextEdit

from embedmux.modes.code_scan import CLOSERS, OPENERS, CodeScan
from embedmux.text_document import TextDocument, is_whitespace_only


def indent_unit(options: FormattingOptions) -> str:
    return " " * options.tab_size if options.insert_spaces else "\t"


def compute_initial_indent(document: TextDocument, range: Range, options: FormattingOptions) -> int:
    """Indentation level of the host line on which ``range`` starts."""
    text = document.text
    tab_size = options.tab_size or 4
    index = document.offset_at(Position(line=range.start.line, character=0))
    columns = 0
    while index < len(text):
        char = text[index]
        if char == " ":
            columns += 1
        elif char == "\t":
            columns += tab_size
        else:
            break
        index += 1
    return columns // tab_size


def reindent_brace_code(
    document: TextDocument,
    scan: CodeScan,
    range: Range,
    options: FormattingOptions,
    host_level: int,
) -> list[TextEdit]:
    """Re-indent the lines of a projected brace-language document.

    Lines starting inside ``range`` are indented one level below the host
    line plus their bracket depth; a trailing line holding only the host's
    closing tag is put back on the host level. Lines that start inside a
    comment or string are left untouched. Edits that would not change the
    text are not emitted.
    """
    text = document.text
    unit = indent_unit(options)
    start = document.offset_at(range.start)
    end = document.offset_at(range.end)
    last_line: Range | None = None
    if range.end.line > range.start.line:
        last_line_start = document.offset_at(Position(line=range.end.line, character=0))
        if is_whitespace_only(text[last_line_start:end]):
            end = last_line_start
            last_line = Range(start=Position(line=range.end.line, character=0), end=range.end)

    brackets = [item for item in scan.brackets() if start <= item[0] < end]
    cursor = 0
    depth = 0
    edits: list[TextEdit] = []
    for line in range_lines(document, range.start.line, range.end.line):
        line_start = document.offset_at(Position(line=line, character=0))
        if line_start < start:
            continue
        if line_start >= end:
            break
        while cursor < len(brackets) and brackets[cursor][0] < line_start:
            depth += 1 if brackets[cursor][1] in OPENERS else -1
            cursor += 1
        if scan.in_literal(line_start):
            continue
        first = line_start
        while first < len(text) and text[first] in " \t":
            first += 1
        if first >= len(text) or text[first] in "\r\n":
            wanted = ""
        else:
            level = depth - 1 if text[first] in CLOSERS else depth
            wanted = unit * (host_level + 1 + max(level, 0))
        if first > end:
            continue
        if text[line_start:first] != wanted:
            edits.append(
                TextEdit(
                    range=Range(start=document.position_at(line_start), end=document.position_at(first)),
                    new_text=wanted,
                )
            )

    if last_line is not None:
        wanted = unit * host_level
        if document.get_text(last_line) != wanted:
            edits.append(TextEdit(range=last_line, new_text=wanted))
    return edits


def range_lines(document: TextDocument, first: int, last: int) -> range:
    return range(first, min(last, document.line_count - 1) + 1)
