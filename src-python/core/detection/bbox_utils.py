"""Bounding-box geometry: map character ranges back to page rectangles."""

from __future__ import annotations

from typing import Optional

from core.config import config
from core.detection.layout import Line
from models.schemas import CharacterRange, PositionedFragment, RectSource, RedactionRect


def union_bbox(fragments: list[PositionedFragment]) -> tuple[float, float, float, float]:
    """Return ``(x, y, width, height)`` of the union of ``fragments``.

    The vertical extent is taken from the tallest fragment, measured up
    from the highest baseline, plus the deepest descent below it.
    """
    max_h = max(f.height for f in fragments)
    max_descent = max(f.descent for f in fragments)
    x0 = min(f.x for f in fragments)
    x1 = max(f.x + f.width for f in fragments)
    y0 = min(f.y_top for f in fragments) - max_h
    return x0, y0, x1 - x0, max_h + max_descent


def auto_rect_id(page_index: int, line_index: int, range_index: int) -> str:
    return f"auto-{page_index}-{line_index}-{range_index}"


def cover_range(
    line: Line,
    rng: CharacterRange,
    page_index: int,
    range_index: int,
    pad: float | None = None,
) -> Optional[RedactionRect]:
    """Build the padded ``auto`` rectangle covering ``rng`` on ``line``.

    Returns ``None`` for an empty range or when no fragment intersects
    it (e.g. the range only covers an inserted space).
    """
    frags = line.fragments_in_range(rng)
    if not frags:
        return None

    p = config.rect_pad if pad is None else pad
    x, y, w, h = union_bbox(frags)
    if w <= 0 and h <= 0:
        return None

    return RedactionRect(
        id=auto_rect_id(page_index, line.index, range_index),
        x=x - p,
        y=y - p,
        width=w + 2 * p,
        height=h + 2 * p,
        source=RectSource.AUTO,
    )
