"""Editor input: gesture events and discrete commands."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException

from core.editor.gestures import (
    Event,
    PointerCancel,
    PointerDown,
    PointerMove,
    PointerUp,
    TouchEnd,
    TouchMove,
    TouchStart,
)
from core.editor.session import EditingSession
from core.errors import EditorError
from models.schemas import CommandRequest, GestureEventRequest, SessionInfo
from api.deps import get_editable_session

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["editor"])


def to_event(req: GestureEventRequest) -> Event:
    """Translate a posted gesture into a controller event."""
    points = tuple((float(x), float(y)) for x, y in req.points)
    kind = req.kind
    if kind == "pointer_down":
        return PointerDown(req.x, req.y)
    if kind == "pointer_move":
        return PointerMove(req.x, req.y)
    if kind == "pointer_up":
        return PointerUp(req.x, req.y)
    if kind == "pointer_cancel":
        return PointerCancel()
    if kind == "touch_start":
        return TouchStart(points)
    if kind == "touch_move":
        return TouchMove(points)
    if kind == "touch_end":
        return TouchEnd(points, lifted=(req.x, req.y))
    raise HTTPException(400, f"Unknown event kind '{kind}'")


@router.post("/sessions/{session_id}/events", response_model=SessionInfo)
async def post_event(session_id: str, body: GestureEventRequest):
    session = get_editable_session(session_id)
    session.dispatch(to_event(body))
    return session.info()


def _run_command(session: EditingSession, body: CommandRequest) -> None:
    cmd = body.command
    if cmd == "undo":
        session.undo()
    elif cmd == "redo":
        session.redo()
    elif cmd == "delete_selected":
        session.delete_selected()
    elif cmd == "clear_page":
        session.clear_page(body.page)
    elif cmd == "clear_all":
        session.clear_all()
    elif cmd == "remove_auto":
        session.remove_auto(body.page)
    elif cmd == "delete_page":
        session.delete_page(body.page)
    elif cmd == "set_page":
        if body.page is None:
            raise HTTPException(400, "set_page requires 'page'")
        session.set_page(body.page)
    elif cmd == "set_tool":
        if body.tool is None:
            raise HTTPException(400, "set_tool requires 'tool'")
        session.set_tool(body.tool)
    elif cmd == "zoom_in":
        session.zoom_in()
    elif cmd == "zoom_out":
        session.zoom_out()
    elif cmd == "reset_zoom":
        session.reset_zoom()
    elif cmd == "key":
        if not body.key:
            raise HTTPException(400, "key requires 'key'")
        session.handle_key(body.key, ctrl=body.ctrl, shift=body.shift, meta=body.meta)
    else:
        raise HTTPException(400, f"Unknown command '{cmd}'")


@router.post("/sessions/{session_id}/commands", response_model=SessionInfo)
async def post_command(session_id: str, body: CommandRequest):
    session = get_editable_session(session_id)
    try:
        _run_command(session, body)
    except EditorError as e:
        raise HTTPException(409, str(e))
    return session.info()
