from __future__ import annotations

from hypothesis import given, settings
from hypothesis import strategies as st
from lsprotocol.types import FoldingRange


def _load():
    from embedmux import folding

    return folding


def _ranges(*pairs: tuple[int, int]) -> list[FoldingRange]:
    return [FoldingRange(start_line=start, end_line=end) for start, end in pairs]


def _pairs(ranges: list[FoldingRange]) -> list[tuple[int, int]]:
    return [(item.start_line, item.end_line) for item in ranges]


SAMPLE = _ranges((4, 8), (0, 10), (2, 3), (1, 3), (5, 6))


def test_nesting_levels_of_sorted_ranges() -> None:
    folding = _load()
    ordered = sorted(SAMPLE, key=lambda item: (item.start_line, item.end_line))
    assert folding.nesting_levels(ordered) == [0, 1, 2, 1, 2]


def test_same_start_line_is_dropped() -> None:
    folding = _load()
    ordered = _ranges((0, 5), (0, 10))
    assert folding.nesting_levels(ordered) == [0, None]


def test_limit_keeps_shallow_levels_first() -> None:
    folding = _load()
    assert _pairs(folding.limit_ranges(SAMPLE, 3)) == [(0, 10), (1, 3), (4, 8)]


def test_limit_fills_cut_level_in_order() -> None:
    folding = _load()
    assert _pairs(folding.limit_ranges(SAMPLE, 4)) == [(0, 10), (1, 3), (2, 3), (4, 8)]


def test_limit_above_total_keeps_everything_sorted() -> None:
    folding = _load()
    assert _pairs(folding.limit_ranges(SAMPLE, 10)) == [
        (0, 10),
        (1, 3),
        (2, 3),
        (4, 8),
        (5, 6),
    ]


def test_limit_zero_keeps_nothing() -> None:
    folding = _load()
    assert folding.limit_ranges(SAMPLE, 0) == []


folding_pairs = st.lists(
    st.tuples(st.integers(0, 40), st.integers(0, 10)).map(lambda p: (p[0], p[0] + p[1])),
    max_size=20,
)


@settings(max_examples=200)
@given(folding_pairs, st.integers(0, 25))
def test_limit_is_bounded_sorted_subset(pairs: list[tuple[int, int]], max_ranges: int) -> None:
    folding = _load()
    ranges = _ranges(*pairs)
    result = _pairs(folding.limit_ranges(ranges, max_ranges))
    assert len(result) <= max_ranges
    assert result == sorted(result)
    remaining = list(pairs)
    for pair in result:
        remaining.remove(pair)


@settings(max_examples=200)
@given(folding_pairs, st.integers(0, 25))
def test_raising_the_limit_never_drops_ranges(pairs: list[tuple[int, int]], max_ranges: int) -> None:
    folding = _load()
    ranges = _ranges(*pairs)
    smaller = _pairs(folding.limit_ranges(ranges, max_ranges))
    larger = _pairs(folding.limit_ranges(ranges, max_ranges + 1))
    assert len(smaller) <= len(larger)
    for pair in smaller:
        assert pair in larger
