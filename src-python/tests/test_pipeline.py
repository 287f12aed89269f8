"""Tests for core.detection.pipeline — fragments in, auto rectangles out."""

from __future__ import annotations

from core.detection import detect_document, detect_page
from models.schemas import PositionedFragment, RectSource


def _words(words: list[str], y: float, x0: float = 50.0, h: float = 10.0) -> list[PositionedFragment]:
    """Lay out ``words`` left to right with a 6px gap (enough to insert a space)."""
    out: list[PositionedFragment] = []
    x = x0
    for w in words:
        width = len(w) * 6.0
        out.append(PositionedFragment(text=w, x=x, y_top=y, width=width, height=h))
        x += width + 6.0
    return out


class TestDetectPage:
    def test_empty_page(self):
        assert detect_page([], 0, 1000) == []

    def test_name_block_in_top_region(self):
        rects = detect_page(_words(["JOHN", "SMITH"], y=50), page_index=0, page_height=1000)
        assert len(rects) == 1
        r = rects[0]
        assert r.id == "auto-0-0-0"
        assert r.source == RectSource.AUTO
        assert (r.x, r.y, r.width, r.height) == (48, 38, 64, 14)

    def test_transaction_rows_left_alone(self):
        frags = _words(["01/02/2024", "UPI/DR/XXXX", "1234567890123456", "1200.00"], y=600)
        assert detect_page(frags, 0, 1000) == []

    def test_same_name_below_top_region(self):
        assert detect_page(_words(["JOHN", "SMITH"], y=900), 0, 1000) == []

    def test_line_order_then_rule_order(self):
        frags = (
            _words(["JOHN", "SMITH"], y=50)
            + _words(["01/02/2024", "Coffee", "4.50"], y=600)
            + _words(["Account", "Number:", "1234567890123"], y=120)
        )
        rects = detect_page(frags, 1, 1000)
        ids = [r.id for r in rects]
        assert ids[0] == "auto-1-0-0"
        # line 2 (account number) yields label, card and account ranges
        assert all(i.startswith("auto-1-2-") for i in ids[1:])
        assert len(ids) >= 4


class TestDetectDocument:
    def test_pages_kept_in_order(self):
        pages = [
            (_words(["JOHN", "SMITH"], y=50), 1000.0),
            ([], 1000.0),
            (_words(["JANE", "DOE"], y=60), 1000.0),
        ]
        result = detect_document(pages)
        assert [len(p) for p in result] == [1, 0, 1]
        assert result[2][0].id == "auto-2-0-0"
