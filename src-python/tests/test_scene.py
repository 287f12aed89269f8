"""Tests for core.editor.scene and core.editor.history."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.editor import scene
from core.editor.history import History
from core.errors import EditorError
from models.schemas import RectSource, RedactionDocument, RedactionPage, RedactionRect


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _rect(rid: str, x: float, y: float, w: float = 10, h: float = 10) -> RedactionRect:
    return RedactionRect(id=rid, x=x, y=y, width=w, height=h)


def _doc(*page_rects: list[RedactionRect]) -> RedactionDocument:
    return RedactionDocument(pages=[
        RedactionPage(page_number=i + 1, base_image="", width=100, height=100, rects=list(rects))
        for i, rects in enumerate(page_rects or ([],))
    ])


# ---------------------------------------------------------------------------
# Scene mutations
# ---------------------------------------------------------------------------

class TestMutations:
    def test_add_rect_appends_and_keeps_input(self):
        doc = _doc([_rect("a", 0, 0)])
        new = scene.add_rect(doc, 0, _rect("b", 5, 5))
        assert [r.id for r in new.pages[0].rects] == ["a", "b"]
        assert [r.id for r in doc.pages[0].rects] == ["a"]

    def test_remove_rect(self):
        doc = _doc([_rect("a", 0, 0), _rect("b", 5, 5)])
        assert [r.id for r in scene.remove_rect(doc, 0, "a").pages[0].rects] == ["b"]

    def test_replace_rect_keeps_position_in_list(self):
        doc = _doc([_rect("a", 0, 0), _rect("b", 5, 5), _rect("c", 9, 9)])
        new = scene.replace_rect(doc, 0, "b", x=50, y=60, width=4, height=4)
        assert [r.id for r in new.pages[0].rects] == ["a", "b", "c"]
        b = new.pages[0].rects[1]
        assert (b.x, b.y, b.width, b.height) == (50, 60, 4, 4)

    def test_source_survives_transform_and_cannot_be_reassigned(self):
        auto = RedactionRect(id="a", x=0, y=0, width=10, height=10, source=RectSource.AUTO)
        new = scene.replace_rect(_doc([auto]), 0, "a", x=5, y=5, width=20, height=20)
        moved = new.pages[0].rects[0]
        assert moved.source == RectSource.AUTO
        with pytest.raises(ValidationError):
            moved.source = RectSource.MANUAL

    def test_clear_page_and_all(self):
        doc = _doc([_rect("a", 0, 0)], [_rect("b", 0, 0)])
        assert scene.total_rect_count(scene.clear_page(doc, 1)) == 1
        assert scene.total_rect_count(scene.clear_all(doc)) == 0

    def test_delete_page(self):
        doc = _doc([_rect("a", 0, 0)], [])
        new = scene.delete_page(doc, 0)
        assert len(new.pages) == 1
        assert new.pages[0].page_number == 2

    def test_delete_last_page_rejected(self):
        with pytest.raises(EditorError):
            scene.delete_page(_doc([]), 0)

    def test_out_of_range_page(self):
        with pytest.raises(EditorError):
            scene.add_rect(_doc([]), 3, _rect("a", 0, 0))


class TestHitTesting:
    def test_topmost_wins(self):
        rects = [_rect("a", 0, 0), _rect("b", 5, 5)]
        assert scene.hit_test(rects, 7, 7).id == "b"
        assert scene.hit_test(rects, 2, 2).id == "a"

    def test_edges_inclusive(self):
        assert scene.hit_test([_rect("a", 0, 0)], 10, 10).id == "a"

    def test_miss(self):
        assert scene.hit_test([_rect("a", 0, 0)], 11, 0) is None

    def test_handle_within_tolerance(self):
        hit = scene.hit_test_handle([_rect("a", 10, 10, 20, 20)], 31, 29, tolerance=3)
        assert hit is not None
        rect, corner = hit
        assert (rect.id, corner) == ("a", "se")

    def test_handle_outside_tolerance(self):
        assert scene.hit_test_handle([_rect("a", 10, 10, 20, 20)], 20, 20, tolerance=3) is None

    def test_opposite_corners(self):
        r = _rect("a", 10, 10, 20, 20)
        c = scene.corners(r)
        assert c[scene.OPPOSITE_CORNER["se"]] == (10, 10)
        assert c[scene.OPPOSITE_CORNER["ne"]] == (10, 30)


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------

class TestHistory:
    def test_initial_state(self):
        h = History(_doc([]))
        assert len(h) == 1
        assert not h.can_undo()
        assert not h.can_redo()

    def test_undo_redo_n(self):
        doc = _doc([])
        h = History(doc)
        states = [doc]
        for i in range(5):
            doc = scene.add_rect(doc, 0, _rect(f"r{i}", i, i))
            h.commit(doc)
            states.append(doc)

        for _ in range(3):
            h.undo()
        assert h.current() == states[2]
        for _ in range(3):
            h.redo()
        assert h.current() == states[5]

    def test_commit_truncates_redo_tail(self):
        doc = _doc([])
        h = History(doc)
        h.commit(scene.add_rect(doc, 0, _rect("a", 0, 0)))
        h.commit(scene.add_rect(doc, 0, _rect("b", 0, 0)))
        h.undo()
        h.commit(scene.add_rect(doc, 0, _rect("c", 0, 0)))
        assert not h.can_redo()
        assert len(h) == 3
        assert [r.id for r in h.current().pages[0].rects] == ["c"]

    def test_undo_at_start_is_noop(self):
        h = History(_doc([]))
        h.undo()
        assert h.cursor == 0

    def test_limit_drops_oldest(self):
        doc = _doc([])
        h = History(doc, limit=3)
        for i in range(5):
            doc = scene.add_rect(doc, 0, _rect(f"r{i}", 0, 0))
            h.commit(doc)
        assert len(h) == 3
        assert h.cursor == 2
        h.undo()
        h.undo()
        assert not h.can_undo()
        assert len(h.current().pages[0].rects) == 3

    def test_snapshots_do_not_alias(self):
        doc = _doc([_rect("a", 0, 0)])
        h = History(doc)
        doc.pages[0].rects.append(_rect("b", 0, 0))
        current = h.current()
        current.pages[0].rects.clear()
        assert [r.id for r in h.current().pages[0].rects] == ["a"]
