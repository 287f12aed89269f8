"""Tests for core.detection.bbox_utils — mapping character ranges to rectangles."""

from __future__ import annotations

import pytest

from core.detection.bbox_utils import auto_rect_id, cover_range, union_bbox
from core.detection.layout import build_line
from models.schemas import CharacterRange, PositionedFragment, RectSource


def _frag(text: str, x: float, y: float, w: float, h: float) -> PositionedFragment:
    return PositionedFragment(text=text, x=x, y_top=y, width=w, height=h)


def _line():
    # "Card 4111": the space between the two runs is inserted
    return build_line(3, [
        _frag("Card", 10, 100, 30, 10),
        _frag("4111", 50, 101, 20, 12),
    ])


class TestUnionBbox:
    def test_single_fragment(self):
        assert union_bbox([_frag("A", 10, 100, 30, 10)]) == (10, 90, 30, 10)

    def test_tallest_fragment_from_highest_baseline(self):
        x, y, w, h = union_bbox(_line().fragments)
        assert (x, y, w, h) == (10, 88, 60, 12)

    def test_descent_extends_below_baseline(self):
        frags = [
            PositionedFragment(text="Visa", x=10, y_top=100, width=30, height=10),
            PositionedFragment(text="ending", x=45, y_top=100, width=40, height=10, descent=3),
        ]
        assert union_bbox(frags) == (10, 90, 75, 13)


class TestCoverRange:
    def test_padded_on_all_sides(self):
        rect = cover_range(_line(), CharacterRange(start=0, end=9), page_index=0, range_index=1, pad=2)
        assert rect is not None
        assert (rect.x, rect.y, rect.width, rect.height) == (8, 86, 64, 16)

    def test_id_and_source(self):
        rect = cover_range(_line(), CharacterRange(start=5, end=9), page_index=2, range_index=4, pad=0)
        assert rect.id == "auto-2-3-4"
        assert rect.source == RectSource.AUTO

    def test_partial_fragment_covers_whole_fragment(self):
        rect = cover_range(_line(), CharacterRange(start=6, end=7), page_index=0, range_index=0, pad=0)
        assert (rect.x, rect.width) == (50, 20)

    def test_empty_range(self):
        assert cover_range(_line(), CharacterRange(start=3, end=3), 0, 0) is None

    def test_range_on_inserted_space_only(self):
        assert cover_range(_line(), CharacterRange(start=4, end=5), 0, 0) is None

    def test_default_pad_from_config(self):
        rect = cover_range(_line(), CharacterRange(start=0, end=4), 0, 0)
        assert rect.x == pytest.approx(8.0)


class TestIds:
    def test_auto_rect_id(self):
        assert auto_rect_id(0, 12, 3) == "auto-0-12-3"
