from __future__ import annotations

from typing import Sequence

from lsprotocol.types import FoldingRange

MAX_COUNTED_LEVEL = 30


def nesting_levels(ranges: Sequence[FoldingRange]) -> list[int | None]:
    """Nesting level of each range in an already sorted sequence.

    A range sharing its start line with the enclosing candidate, or one that
    overlaps it without nesting, gets ``None`` and is not kept.
    """
    levels: list[int | None] = [None] * len(ranges)
    previous: list[FoldingRange] = []
    top: FoldingRange | None = None
    for index, entry in enumerate(ranges):
        if top is None:
            top = entry
            levels[index] = 0
            continue
        if entry.start_line <= top.start_line:
            continue
        if entry.end_line <= top.end_line:
            previous.append(top)
            top = entry
            levels[index] = len(previous)
        elif entry.start_line > top.end_line:
            candidate: FoldingRange | None = top
            while candidate is not None and entry.start_line > candidate.end_line:
                candidate = previous.pop() if previous else None
            if candidate is not None:
                previous.append(candidate)
            top = entry
            levels[index] = len(previous)
    return levels


def limit_ranges(ranges: Sequence[FoldingRange], max_ranges: int) -> list[FoldingRange]:
    """Keep at most ``max_ranges`` folding ranges, dropping the deepest first.

    Every range above the cut-off level is kept; ranges at the cut-off level
    are kept in sorted order until the quota is used up.
    """
    ordered = sorted(ranges, key=lambda item: (item.start_line, item.end_line))
    levels = nesting_levels(ordered)

    counts: dict[int, int] = {}
    for level in levels:
        if level is not None and level < MAX_COUNTED_LEVEL:
            counts[level] = counts.get(level, 0) + 1

    entries = 0
    cut_level: int | None = None
    for level in range(MAX_COUNTED_LEVEL):
        count = counts.get(level, 0)
        if not count:
            continue
        if count + entries > max_ranges:
            cut_level = level
            break
        entries += count

    result: list[FoldingRange] = []
    for entry, level in zip(ordered, levels):
        if level is None:
            continue
        if cut_level is None or level < cut_level:
            result.append(entry)
        elif level == cut_level and entries < max_ranges:
            result.append(entry)
            entries += 1
    return result
