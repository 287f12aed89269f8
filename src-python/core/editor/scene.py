"""Pure operations over a :class:`RedactionDocument`.

Every mutating function returns a new document and leaves its input
untouched, so callers can hand snapshots to the history without
worrying about aliasing.  Page indices are 0-based.
"""

from __future__ import annotations

from typing import Optional

from core.errors import EditorError
from models.schemas import RedactionDocument, RedactionPage, RedactionRect


def get_page(doc: RedactionDocument, page_index: int) -> RedactionPage:
    if not 0 <= page_index < len(doc.pages):
        raise EditorError(f"Page index {page_index} out of range (0..{len(doc.pages) - 1})")
    return doc.pages[page_index]


def _with_rects(doc: RedactionDocument, page_index: int, rects: list[RedactionRect]) -> RedactionDocument:
    pages = list(doc.pages)
    pages[page_index] = pages[page_index].model_copy(update={"rects": rects})
    return doc.model_copy(update={"pages": pages})


# ---------------------------------------------------------------------------
# Rectangle mutations
# ---------------------------------------------------------------------------

def add_rect(doc: RedactionDocument, page_index: int, rect: RedactionRect) -> RedactionDocument:
    page = get_page(doc, page_index)
    return _with_rects(doc, page_index, [*page.rects, rect])


def add_rects(doc: RedactionDocument, page_index: int, rects: list[RedactionRect]) -> RedactionDocument:
    """Bulk insert (used for the detector's ``auto`` rectangles)."""
    page = get_page(doc, page_index)
    return _with_rects(doc, page_index, [*page.rects, *rects])


def remove_rect(doc: RedactionDocument, page_index: int, rect_id: str) -> RedactionDocument:
    page = get_page(doc, page_index)
    return _with_rects(doc, page_index, [r for r in page.rects if r.id != rect_id])


def replace_rect(
    doc: RedactionDocument,
    page_index: int,
    rect_id: str,
    *,
    x: float,
    y: float,
    width: float,
    height: float,
) -> RedactionDocument:
    """Move/resize a rectangle in place, keeping its id, position and source."""
    page = get_page(doc, page_index)
    rects = [
        r.model_copy(update={"x": x, "y": y, "width": width, "height": height})
        if r.id == rect_id else r
        for r in page.rects
    ]
    return _with_rects(doc, page_index, rects)


def clear_page(doc: RedactionDocument, page_index: int) -> RedactionDocument:
    get_page(doc, page_index)
    return _with_rects(doc, page_index, [])


def clear_all(doc: RedactionDocument) -> RedactionDocument:
    return doc.model_copy(update={
        "pages": [p.model_copy(update={"rects": []}) for p in doc.pages],
    })


def delete_page(doc: RedactionDocument, page_index: int) -> RedactionDocument:
    """Remove one page; the last remaining page can never be deleted."""
    get_page(doc, page_index)
    if len(doc.pages) <= 1:
        raise EditorError("Cannot delete the only remaining page")
    pages = [p for i, p in enumerate(doc.pages) if i != page_index]
    return doc.model_copy(update={"pages": pages})


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def find_rect(doc: RedactionDocument, page_index: int, rect_id: str) -> Optional[RedactionRect]:
    for r in get_page(doc, page_index).rects:
        if r.id == rect_id:
            return r
    return None


def hit_test(rects: list[RedactionRect], px: float, py: float) -> Optional[RedactionRect]:
    """Return the topmost (last-inserted) rectangle containing the point."""
    for r in reversed(rects):
        if r.contains(px, py):
            return r
    return None


def corners(rect: RedactionRect) -> dict[str, tuple[float, float]]:
    x0, y0 = rect.x, rect.y
    x1, y1 = rect.x + rect.width, rect.y + rect.height
    return {"nw": (x0, y0), "ne": (x1, y0), "sw": (x0, y1), "se": (x1, y1)}


OPPOSITE_CORNER = {"nw": "se", "ne": "sw", "sw": "ne", "se": "nw"}


def hit_test_handle(
    rects: list[RedactionRect],
    px: float,
    py: float,
    tolerance: float,
) -> Optional[tuple[RedactionRect, str]]:
    """Return ``(rect, corner)`` for the first corner handle within tolerance.

    Rectangles are checked topmost first.
    """
    for r in reversed(rects):
        for name, (cx, cy) in corners(r).items():
            if abs(px - cx) <= tolerance and abs(py - cy) <= tolerance:
                return r, name
    return None


def page_rect_count(doc: RedactionDocument, page_index: int) -> int:
    return len(get_page(doc, page_index).rects)


def total_rect_count(doc: RedactionDocument) -> int:
    return sum(len(p.rects) for p in doc.pages)
