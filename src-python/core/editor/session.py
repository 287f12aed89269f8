"""Editing session — owns the scene, its history and the gesture state."""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from core.config import config
from core.editor import scene
from core.editor.gestures import (
    CommitHistory,
    EditorState,
    Effect,
    Event,
    GestureController,
    SetTool,
    clamp_zoom,
)
from core.editor.history import History
from core.errors import EditorError
from models.schemas import (
    PageSummary,
    RectSource,
    RedactionDocument,
    SessionInfo,
    SessionStatus,
    Tool,
    Viewport,
)

logger = logging.getLogger(__name__)


class EditingSession:
    """One document being redacted.

    The session applies gesture effects and exposes the discrete command
    layer (undo/redo, clear, page deletion, zoom, keyboard shortcuts).
    Every command that changes the document commits exactly one history
    snapshot; no-ops commit nothing.
    """

    def __init__(
        self,
        document: RedactionDocument,
        filename: str = "",
        work_dir: Optional[Path] = None,
        controller: Optional[GestureController] = None,
        history_limit: Optional[int] = None,
        session_id: Optional[str] = None,
    ) -> None:
        if not document.pages:
            raise EditorError("A session needs at least one page")
        self.session_id = session_id or uuid.uuid4().hex
        self.filename = filename
        self.work_dir = work_dir
        self.status = SessionStatus.EDITING
        self.created_at = datetime.now(timezone.utc)
        self.controller = controller or GestureController()
        limit = config.history_limit if history_limit is None else history_limit
        self.history = History(document, limit=limit)
        self.state = EditorState(document=document)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def document(self) -> RedactionDocument:
        return self.state.document

    @property
    def page_index(self) -> int:
        return self.state.page_index

    @property
    def viewport(self) -> Viewport:
        return self.state.viewport

    @property
    def tool(self) -> Tool:
        return self.state.tool

    def page_rect_count(self, page_index: int) -> int:
        return scene.page_rect_count(self.document, page_index)

    def total_rect_count(self) -> int:
        return scene.total_rect_count(self.document)

    # ------------------------------------------------------------------
    # Gestures
    # ------------------------------------------------------------------

    def dispatch(self, event: Event) -> list[Effect]:
        """Feed one input event through the controller and apply its effects."""
        new_state, effects = self.controller.handle(self.state, event)
        self.state = new_state
        if any(isinstance(e, CommitHistory) for e in effects):
            self.history.commit(self.state.document)
        return effects

    def set_tool(self, tool: Tool) -> None:
        self.dispatch(SetTool(tool))

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def _commit(self, doc: RedactionDocument, **changes) -> None:
        self.state = replace(self.state, document=doc, drag=None, overlay=None, **changes)
        self.history.commit(doc)

    def _restore(self, doc: RedactionDocument) -> None:
        page_index = min(self.state.page_index, len(doc.pages) - 1)
        selection = self.state.selection
        if selection is not None and scene.find_rect(doc, page_index, selection) is None:
            selection = None
        self.state = replace(
            self.state, document=doc, page_index=page_index,
            drag=None, overlay=None, selection=selection,
        )

    def undo(self) -> bool:
        if not self.history.can_undo():
            return False
        self._restore(self.history.undo())
        return True

    def redo(self) -> bool:
        if not self.history.can_redo():
            return False
        self._restore(self.history.redo())
        return True

    def delete_selected(self) -> bool:
        rect_id = self.state.selection
        if rect_id is None or scene.find_rect(self.document, self.page_index, rect_id) is None:
            return False
        self._commit(scene.remove_rect(self.document, self.page_index, rect_id), selection=None)
        return True

    def clear_page(self, page_index: Optional[int] = None) -> bool:
        idx = self.page_index if page_index is None else page_index
        if scene.page_rect_count(self.document, idx) == 0:
            return False
        self._commit(scene.clear_page(self.document, idx), selection=None)
        return True

    def clear_all(self) -> bool:
        if self.total_rect_count() == 0:
            return False
        self._commit(scene.clear_all(self.document), selection=None)
        return True

    def remove_auto(self, page_index: Optional[int] = None) -> bool:
        """Drop every detector-generated rectangle on one page."""
        idx = self.page_index if page_index is None else page_index
        page = scene.get_page(self.document, idx)
        auto_ids = [r.id for r in page.rects if r.source == RectSource.AUTO]
        if not auto_ids:
            return False
        doc = self.document
        for rect_id in auto_ids:
            doc = scene.remove_rect(doc, idx, rect_id)
        self._commit(doc, selection=None)
        return True

    def delete_page(self, page_index: Optional[int] = None) -> None:
        """Delete a page; raises :class:`EditorError` for the last page."""
        idx = self.page_index if page_index is None else page_index
        doc = scene.delete_page(self.document, idx)
        current = self.page_index - 1 if idx < self.page_index else self.page_index
        self._commit(
            doc,
            page_index=min(current, len(doc.pages) - 1),
            selection=None,
        )
        logger.info(
            "Deleted page %d (%d remaining)", idx + 1, len(doc.pages),
            extra={"session_id": self.session_id},
        )

    def set_page(self, page_index: int) -> None:
        if self.state.drag is not None:
            raise EditorError("Cannot change page during an active gesture")
        if not 0 <= page_index < len(self.document.pages):
            raise EditorError(f"Page index {page_index} out of range")
        self.state = replace(self.state, page_index=page_index, selection=None, overlay=None)

    # -- zoom -------------------------------------------------------------

    def _set_zoom(self, zoom: float) -> None:
        zoom = clamp_zoom(zoom, self.controller.zoom_range)
        vp = self.state.viewport
        self.state = replace(self.state, viewport=vp.model_copy(update={"zoom": zoom}))

    def zoom_in(self) -> None:
        self._set_zoom(self.viewport.zoom + config.zoom_step)

    def zoom_out(self) -> None:
        self._set_zoom(self.viewport.zoom - config.zoom_step)

    def reset_zoom(self) -> None:
        self.state = replace(self.state, viewport=Viewport())

    # -- keyboard ---------------------------------------------------------

    def handle_key(self, key: str, ctrl: bool = False, shift: bool = False, meta: bool = False) -> Optional[str]:
        """Map a key press to a command; returns the command name or ``None``."""
        mod = ctrl or meta
        k = key.lower()
        if mod and k == "z" and shift:
            self.redo()
            return "redo"
        if mod and k == "z":
            self.undo()
            return "undo"
        if mod and k == "y":
            self.redo()
            return "redo"
        if not mod and key in ("Delete", "Backspace"):
            self.delete_selected()
            return "delete_selected"
        return None

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    def info(self) -> SessionInfo:
        vp = self.viewport
        return SessionInfo(
            session_id=self.session_id,
            filename=self.filename,
            status=self.status,
            page_count=len(self.document.pages),
            current_page=self.page_index,
            tool=self.tool,
            zoom=vp.zoom,
            scroll_x=vp.scroll_x,
            scroll_y=vp.scroll_y,
            selection=self.state.selection,
            can_undo=self.history.can_undo(),
            can_redo=self.history.can_redo(),
            total_rects=self.total_rect_count(),
            pages=[
                PageSummary(
                    page_number=p.page_number,
                    width=p.width,
                    height=p.height,
                    rect_count=len(p.rects),
                    auto_rect_count=sum(1 for r in p.rects if r.source == RectSource.AUTO),
                )
                for p in self.document.pages
            ],
            current_rects=list(self.document.pages[self.page_index].rects),
            overlay=self.state.overlay,
            created_at=self.created_at,
        )
