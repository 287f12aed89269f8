"""Gesture controller — pointer/touch input as a pure state machine.

``GestureController.handle(state, event)`` returns ``(new_state,
effects)`` and never mutates anything.  The new state is authoritative;
effects tell the owning session what changed so it can commit history
and re-render.  Only ``CommitHistory`` has a consequence beyond the
state itself.

Coordinates on events are surface (screen) pixels.  They are mapped to
page-raster coordinates through the state's viewport, except for pan
and pinch which work in screen space.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Optional, Union

from core.config import config
from core.editor import scene
from models.schemas import RectSource, RedactionDocument, RedactionRect, Tool, Viewport

logger = logging.getLogger(__name__)

Point = tuple[float, float]


# ═══════════════════════════════════════════════════════════════════════════
# Events
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PointerDown:
    x: float
    y: float


@dataclass(frozen=True)
class PointerMove:
    x: float
    y: float


@dataclass(frozen=True)
class PointerUp:
    x: float
    y: float


@dataclass(frozen=True)
class PointerCancel:
    pass


@dataclass(frozen=True)
class TouchStart:
    points: tuple[Point, ...]


@dataclass(frozen=True)
class TouchMove:
    points: tuple[Point, ...]


@dataclass(frozen=True)
class TouchEnd:
    """``points`` are the contacts still down; ``lifted`` the one released."""
    points: tuple[Point, ...]
    lifted: Optional[Point] = None


@dataclass(frozen=True)
class SetTool:
    tool: Tool


Event = Union[PointerDown, PointerMove, PointerUp, PointerCancel,
              TouchStart, TouchMove, TouchEnd, SetTool]


# ═══════════════════════════════════════════════════════════════════════════
# Effects
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ReplaceDocument:
    document: RedactionDocument


@dataclass(frozen=True)
class CommitHistory:
    pass


@dataclass(frozen=True)
class SetOverlay:
    rect: Optional[RedactionRect]


@dataclass(frozen=True)
class SetSelection:
    rect_id: Optional[str]


@dataclass(frozen=True)
class SetViewport:
    viewport: Viewport


Effect = Union[ReplaceDocument, CommitHistory, SetOverlay, SetSelection, SetViewport]


# ═══════════════════════════════════════════════════════════════════════════
# In-progress drags
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DrawDrag:
    anchor: Point


@dataclass(frozen=True)
class MoveDrag:
    rect_id: str
    start: Point
    original: RedactionRect
    moved: bool = False


@dataclass(frozen=True)
class ResizeDrag:
    rect_id: str
    corner: str
    anchor: Point
    moved: bool = False


@dataclass(frozen=True)
class PanDrag:
    start: Point
    start_scroll: Point


@dataclass(frozen=True)
class PinchDrag:
    start_dist: float
    start_zoom: float
    content_mid: Point


Drag = Union[DrawDrag, MoveDrag, ResizeDrag, PanDrag, PinchDrag]


@dataclass(frozen=True)
class EditorState:
    document: RedactionDocument
    page_index: int = 0
    viewport: Viewport = field(default_factory=Viewport)
    tool: Tool = Tool.DRAW
    drag: Optional[Drag] = None
    overlay: Optional[RedactionRect] = None
    selection: Optional[str] = None

    @property
    def rects(self) -> list[RedactionRect]:
        return self.document.pages[self.page_index].rects


# ═══════════════════════════════════════════════════════════════════════════
# Geometry helpers
# ═══════════════════════════════════════════════════════════════════════════

def normalized_rect(a: Point, b: Point) -> tuple[float, float, float, float]:
    """Min-corner plus non-negative size of the box spanned by two points."""
    return min(a[0], b[0]), min(a[1], b[1]), abs(b[0] - a[0]), abs(b[1] - a[1])


def resize_from_anchor(anchor: Point, p: Point, min_size: float) -> tuple[float, float, float, float]:
    """Box between a fixed ``anchor`` corner and the dragged point ``p``.

    The box flips to whichever side of the anchor the pointer is on, and
    each dimension is clamped to ``min_size`` growing away from the anchor.
    """
    ax, ay = anchor
    w = max(abs(p[0] - ax), min_size)
    h = max(abs(p[1] - ay), min_size)
    x = ax if p[0] >= ax else ax - w
    y = ay if p[1] >= ay else ay - h
    return x, y, w, h


def _distance(a: Point, b: Point) -> float:
    return math.hypot(b[0] - a[0], b[1] - a[1])


def _midpoint(a: Point, b: Point) -> Point:
    return (a[0] + b[0]) / 2, (a[1] + b[1]) / 2


def clamp_zoom(zoom: float, zoom_range: tuple[float, float]) -> float:
    lo, hi = zoom_range
    return min(hi, max(lo, zoom))


def zoom_about(zoom: float, content: Point, screen: Point) -> Viewport:
    """Viewport at ``zoom`` with ``content`` drawn under ``screen``."""
    return Viewport(
        zoom=zoom,
        scroll_x=content[0] * zoom - screen[0],
        scroll_y=content[1] * zoom - screen[1],
    )


# ═══════════════════════════════════════════════════════════════════════════
# Controller
# ═══════════════════════════════════════════════════════════════════════════

Result = tuple[EditorState, list[Effect]]


class GestureController:
    """Maps input events to scene mutations for the active tool."""

    def __init__(
        self,
        min_rect_size: float | None = None,
        handle_tolerance: float | None = None,
        zoom_range: tuple[float, float] | None = None,
    ) -> None:
        self.min_rect_size = config.min_rect_size if min_rect_size is None else min_rect_size
        self.handle_tolerance = (
            config.handle_tolerance if handle_tolerance is None else handle_tolerance
        )
        self.zoom_range = config.zoom_range if zoom_range is None else zoom_range

    # -- dispatch ---------------------------------------------------------

    def handle(self, state: EditorState, event: Event) -> Result:
        if isinstance(event, SetTool):
            return self._set_tool(state, event.tool)
        if isinstance(event, PointerDown):
            return self._down(state, (event.x, event.y))
        if isinstance(event, PointerMove):
            return self._move(state, (event.x, event.y))
        if isinstance(event, PointerUp):
            return self._up(state, (event.x, event.y))
        if isinstance(event, PointerCancel):
            return self._cancel(state)
        if isinstance(event, TouchStart):
            return self._touch_start(state, event.points)
        if isinstance(event, TouchMove):
            return self._touch_move(state, event.points)
        if isinstance(event, TouchEnd):
            return self._touch_end(state, event.points, event.lifted)
        raise TypeError(f"Unsupported gesture event: {event!r}")

    # -- tool switching ---------------------------------------------------

    def _set_tool(self, state: EditorState, tool: Tool) -> Result:
        if state.drag is not None:
            logger.debug("Ignoring tool switch to %s during an active drag", tool.value)
            return state, []
        effects: list[Effect] = []
        selection = state.selection
        if tool != Tool.SELECT and selection is not None:
            selection = None
            effects.append(SetSelection(None))
        return replace(state, tool=tool, overlay=None, selection=selection), effects

    # -- single pointer ---------------------------------------------------

    def _down(self, state: EditorState, screen: Point) -> Result:
        if state.drag is not None:
            return state, []
        p = state.viewport.to_content(*screen)

        if state.tool == Tool.DRAW:
            overlay = RedactionRect(x=p[0], y=p[1], width=0, height=0, source=RectSource.MANUAL)
            return replace(state, drag=DrawDrag(anchor=p), overlay=overlay), [SetOverlay(overlay)]

        if state.tool == Tool.ERASE:
            hit = scene.hit_test(state.rects, *p)
            if hit is None:
                return state, []
            doc = scene.remove_rect(state.document, state.page_index, hit.id)
            selection = None if state.selection == hit.id else state.selection
            return (
                replace(state, document=doc, selection=selection),
                [ReplaceDocument(doc), CommitHistory()],
            )

        if state.tool == Tool.SELECT:
            handle = scene.hit_test_handle(state.rects, *p, self.handle_tolerance)
            if handle is not None:
                rect, corner = handle
                anchor = scene.corners(rect)[scene.OPPOSITE_CORNER[corner]]
                drag = ResizeDrag(rect_id=rect.id, corner=corner, anchor=anchor)
                return replace(state, drag=drag, selection=rect.id), [SetSelection(rect.id)]
            hit = scene.hit_test(state.rects, *p)
            if hit is not None:
                drag = MoveDrag(rect_id=hit.id, start=p, original=hit)
                return replace(state, drag=drag, selection=hit.id), [SetSelection(hit.id)]
            if state.selection is None:
                return state, []
            return replace(state, selection=None), [SetSelection(None)]

        # Pan
        vp = state.viewport
        drag = PanDrag(start=screen, start_scroll=(vp.scroll_x, vp.scroll_y))
        return replace(state, drag=drag), []

    def _move(self, state: EditorState, screen: Point) -> Result:
        drag = state.drag
        if drag is None or isinstance(drag, PinchDrag):
            return state, []
        p = state.viewport.to_content(*screen)

        if isinstance(drag, DrawDrag):
            x, y, w, h = normalized_rect(drag.anchor, p)
            overlay = state.overlay.model_copy(update={"x": x, "y": y, "width": w, "height": h})
            return replace(state, overlay=overlay), [SetOverlay(overlay)]

        if isinstance(drag, MoveDrag):
            dx, dy = p[0] - drag.start[0], p[1] - drag.start[1]
            o = drag.original
            if not drag.moved and dx == 0 and dy == 0:
                return state, []
            doc = scene.replace_rect(
                state.document, state.page_index, drag.rect_id,
                x=o.x + dx, y=o.y + dy, width=o.width, height=o.height,
            )
            return (
                replace(state, document=doc, drag=replace(drag, moved=True)),
                [ReplaceDocument(doc)],
            )

        if isinstance(drag, ResizeDrag):
            x, y, w, h = resize_from_anchor(drag.anchor, p, self.min_rect_size)
            current = scene.find_rect(state.document, state.page_index, drag.rect_id)
            if current is None:
                return state, []
            if not drag.moved and (x, y, w, h) == (current.x, current.y, current.width, current.height):
                return state, []
            doc = scene.replace_rect(
                state.document, state.page_index, drag.rect_id, x=x, y=y, width=w, height=h,
            )
            return (
                replace(state, document=doc, drag=replace(drag, moved=True)),
                [ReplaceDocument(doc)],
            )

        # Pan
        vp = Viewport(
            zoom=state.viewport.zoom,
            scroll_x=drag.start_scroll[0] - (screen[0] - drag.start[0]),
            scroll_y=drag.start_scroll[1] - (screen[1] - drag.start[1]),
        )
        return replace(state, viewport=vp), [SetViewport(vp)]

    def _up(self, state: EditorState, screen: Point) -> Result:
        drag = state.drag
        if drag is None or isinstance(drag, PinchDrag):
            return state, []

        if isinstance(drag, DrawDrag):
            p = state.viewport.to_content(*screen)
            x, y, w, h = normalized_rect(drag.anchor, p)
            cleared = replace(state, drag=None, overlay=None)
            if w < self.min_rect_size or h < self.min_rect_size:
                return cleared, [SetOverlay(None)]
            rect = RedactionRect(x=x, y=y, width=w, height=h, source=RectSource.MANUAL)
            doc = scene.add_rect(state.document, state.page_index, rect)
            return (
                replace(cleared, document=doc),
                [SetOverlay(None), ReplaceDocument(doc), CommitHistory()],
            )

        if isinstance(drag, (MoveDrag, ResizeDrag)):
            done = replace(state, drag=None)
            if not drag.moved:
                return done, []
            return done, [CommitHistory()]

        # Pan: viewport changes are not history
        return replace(state, drag=None), []

    def _cancel(self, state: EditorState) -> Result:
        drag = state.drag
        if drag is None:
            return state, []
        if isinstance(drag, DrawDrag):
            return replace(state, drag=None, overlay=None), [SetOverlay(None)]
        if isinstance(drag, (MoveDrag, ResizeDrag)) and drag.moved:
            # Partial live mutation is kept and committed as-is.
            return replace(state, drag=None), [CommitHistory()]
        return replace(state, drag=None), []

    # -- touch ------------------------------------------------------------

    def _touch_start(self, state: EditorState, points: tuple[Point, ...]) -> Result:
        if len(points) >= 2:
            # A second contact turns any single-pointer gesture into a pinch.
            state, effects = self._cancel(state)
            a, b = points[0], points[1]
            mid = _midpoint(a, b)
            drag = PinchDrag(
                start_dist=_distance(a, b),
                start_zoom=state.viewport.zoom,
                content_mid=state.viewport.to_content(*mid),
            )
            return replace(state, drag=drag), effects
        if len(points) == 1:
            return self._down(state, points[0])
        return state, []

    def _touch_move(self, state: EditorState, points: tuple[Point, ...]) -> Result:
        drag = state.drag
        if isinstance(drag, PinchDrag):
            if len(points) < 2 or drag.start_dist <= 0:
                return state, []
            a, b = points[0], points[1]
            zoom = clamp_zoom(drag.start_zoom * _distance(a, b) / drag.start_dist, self.zoom_range)
            vp = zoom_about(zoom, drag.content_mid, _midpoint(a, b))
            return replace(state, viewport=vp), [SetViewport(vp)]
        if len(points) == 1:
            return self._move(state, points[0])
        return state, []

    def _touch_end(
        self,
        state: EditorState,
        points: tuple[Point, ...],
        lifted: Optional[Point],
    ) -> Result:
        drag = state.drag
        if isinstance(drag, PinchDrag):
            if len(points) >= 2:
                return state, []
            return replace(state, drag=None), []
        if drag is None:
            return state, []
        if lifted is None:
            return self._cancel(state)
        return self._up(state, lifted)
