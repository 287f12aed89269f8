"""Tests for core.editor.session — command layer over the gesture controller."""

from __future__ import annotations

import pytest

from core.editor.gestures import GestureController, PointerDown, PointerUp
from core.editor.session import EditingSession
from core.errors import EditorError
from models.schemas import (
    RectSource,
    RedactionDocument,
    RedactionPage,
    RedactionRect,
    Tool,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _page(n: int, rects=()) -> RedactionPage:
    return RedactionPage(page_number=n, base_image="", width=1000, height=1000, rects=list(rects))


def _session(*pages: RedactionPage, history_limit: int = 0) -> EditingSession:
    doc = RedactionDocument(pages=list(pages) or [_page(1)])
    ctl = GestureController(min_rect_size=4, handle_tolerance=10, zoom_range=(0.1, 4.0))
    return EditingSession(doc, filename="march.pdf", controller=ctl, history_limit=history_limit)


def _auto(rid: str) -> RedactionRect:
    return RedactionRect(id=rid, x=0, y=0, width=10, height=10, source=RectSource.AUTO)


def _draw(s: EditingSession, x: float, y: float) -> None:
    s.dispatch(PointerDown(x, y))
    s.dispatch(PointerUp(x + 20, y + 20))


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------

class TestConstruction:
    def test_requires_pages(self):
        with pytest.raises(EditorError):
            EditingSession(RedactionDocument(pages=[]))

    def test_initial_state(self):
        s = _session(_page(1, [_auto("auto-0-0-0")]), _page(2))
        info = s.info()
        assert info.page_count == 2
        assert info.current_page == 0
        assert info.tool == Tool.DRAW
        assert info.total_rects == 1
        assert info.pages[0].auto_rect_count == 1
        assert not info.can_undo
        assert [r.id for r in info.current_rects] == ["auto-0-0-0"]


# ---------------------------------------------------------------------------
# Undo / redo
# ---------------------------------------------------------------------------

class TestUndoRedo:
    def test_gesture_commit_enables_undo(self):
        s = _session()
        _draw(s, 10, 10)
        assert s.total_rect_count() == 1
        assert s.undo()
        assert s.total_rect_count() == 0
        assert s.redo()
        assert s.total_rect_count() == 1

    def test_undo_n_then_redo_n(self):
        s = _session()
        for i in range(4):
            _draw(s, 10 + i * 50, 10)
        snapshot = s.document.model_dump()
        for _ in range(4):
            assert s.undo()
        assert s.total_rect_count() == 0
        assert not s.undo()
        for _ in range(4):
            assert s.redo()
        assert s.document.model_dump() == snapshot
        assert not s.redo()

    def test_new_commit_drops_redo(self):
        s = _session()
        _draw(s, 10, 10)
        s.undo()
        _draw(s, 100, 100)
        assert not s.history.can_redo()

    def test_undo_clears_stale_selection(self):
        s = _session()
        _draw(s, 10, 10)
        s.set_tool(Tool.SELECT)
        s.dispatch(PointerDown(15, 15))
        s.dispatch(PointerUp(15, 15))
        assert s.state.selection is not None
        s.undo()
        assert s.state.selection is None


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

class TestCommands:
    def test_delete_selected(self):
        s = _session(_page(1, [RedactionRect(id="a", x=0, y=0, width=100, height=100)]))
        s.set_tool(Tool.SELECT)
        s.dispatch(PointerDown(50, 50))
        s.dispatch(PointerUp(50, 50))
        assert s.delete_selected()
        assert s.total_rect_count() == 0
        assert s.state.selection is None
        assert s.history.can_undo()

    def test_delete_selected_without_selection(self):
        s = _session()
        assert not s.delete_selected()
        assert not s.history.can_undo()

    def test_clear_page_and_all(self):
        s = _session(_page(1, [_auto("a")]), _page(2, [_auto("b")]))
        assert s.clear_page(1)
        assert s.page_rect_count(1) == 0
        assert s.page_rect_count(0) == 1
        assert s.clear_all()
        assert s.total_rect_count() == 0
        assert len(s.history) == 3

    def test_noop_commands_commit_nothing(self):
        s = _session()
        assert not s.clear_all()
        assert not s.clear_page()
        assert not s.remove_auto()
        assert len(s.history) == 1

    def test_remove_auto_keeps_manual(self):
        manual = RedactionRect(id="m", x=0, y=0, width=10, height=10)
        s = _session(_page(1, [_auto("a"), manual, _auto("b")]))
        assert s.remove_auto()
        assert [r.id for r in s.document.pages[0].rects] == ["m"]

    def test_delete_last_page_rejected(self):
        s = _session()
        with pytest.raises(EditorError):
            s.delete_page(0)
        assert len(s.document.pages) == 1
        assert not s.history.can_undo()

    def test_delete_page_is_undoable(self):
        s = _session(_page(1), _page(2), _page(3))
        s.set_page(2)
        s.delete_page(0)
        assert [p.page_number for p in s.document.pages] == [2, 3]
        assert s.page_index == 1
        s.undo()
        assert len(s.document.pages) == 3

    def test_delete_current_last_page_moves_back(self):
        s = _session(_page(1), _page(2))
        s.set_page(1)
        s.delete_page()
        assert s.page_index == 0

    def test_set_page_out_of_range(self):
        s = _session()
        with pytest.raises(EditorError):
            s.set_page(1)

    def test_set_page_during_drag_rejected(self):
        s = _session(_page(1), _page(2))
        s.dispatch(PointerDown(10, 10))
        with pytest.raises(EditorError):
            s.set_page(1)


class TestZoom:
    def test_zoom_in_clamped(self):
        s = _session()
        for _ in range(40):
            s.zoom_in()
        assert s.viewport.zoom == pytest.approx(4.0)

    def test_zoom_out_clamped(self):
        s = _session()
        for _ in range(40):
            s.zoom_out()
        assert s.viewport.zoom == pytest.approx(0.1)

    def test_reset(self):
        s = _session()
        s.zoom_in()
        s.reset_zoom()
        assert s.viewport.zoom == 1.0
        assert (s.viewport.scroll_x, s.viewport.scroll_y) == (0.0, 0.0)


class TestKeyboard:
    @pytest.mark.parametrize("kwargs", [{"ctrl": True}, {"meta": True}])
    def test_undo(self, kwargs):
        s = _session()
        _draw(s, 10, 10)
        assert s.handle_key("z", **kwargs) == "undo"
        assert s.total_rect_count() == 0

    @pytest.mark.parametrize("key,kwargs", [
        ("Z", {"ctrl": True, "shift": True}),
        ("z", {"meta": True, "shift": True}),
        ("y", {"ctrl": True}),
    ])
    def test_redo(self, key, kwargs):
        s = _session()
        _draw(s, 10, 10)
        s.undo()
        assert s.handle_key(key, **kwargs) == "redo"
        assert s.total_rect_count() == 1

    @pytest.mark.parametrize("key", ["Delete", "Backspace"])
    def test_delete(self, key):
        s = _session(_page(1, [RedactionRect(id="a", x=0, y=0, width=100, height=100)]))
        s.set_tool(Tool.SELECT)
        s.dispatch(PointerDown(50, 50))
        s.dispatch(PointerUp(50, 50))
        assert s.handle_key(key) == "delete_selected"
        assert s.total_rect_count() == 0

    def test_unbound_key(self):
        assert _session().handle_key("a") is None
