"""Shared state, helpers, and re-exports used by all API routers."""

from __future__ import annotations

import logging
import shutil
import time as _time
from dataclasses import dataclass, field
from typing import Optional

from fastapi import HTTPException

from core.editor.session import EditingSession
from core.extraction.remote_engine import RemoteExtractionEngine
from core.host_channel import HostChannel
from models.schemas import SessionStatus, Transaction

logger = logging.getLogger(__name__)


@dataclass
class ExportResult:
    """A finished export: the records and the generated workbook."""
    export_id: str
    file_name: str
    transactions: list[Transaction]
    columns: list[str]
    workbook: bytes
    created_at: float = field(default_factory=_time.time)


# ---------------------------------------------------------------------------
# Singleton state  (mutated by routers, reset by tests)
# ---------------------------------------------------------------------------
sessions: dict[str, EditingSession] = {}
exports: dict[str, ExportResult] = {}
host_channel = HostChannel()

_engine: Optional[RemoteExtractionEngine] = None

# Maximum age (seconds) for finished exports kept for download
_EXPORT_TTL = 3600  # 1 hour


def get_engine() -> RemoteExtractionEngine:
    """Return the shared extraction engine, creating it on first use."""
    global _engine
    if _engine is None:
        _engine = RemoteExtractionEngine()
    return _engine


def set_engine(engine: Optional[RemoteExtractionEngine]) -> None:
    """Replace the shared extraction engine (used by tests and settings)."""
    global _engine
    if _engine is not None and _engine is not engine:
        _engine.close()
    _engine = engine


def get_session(session_id: str) -> EditingSession:
    if session_id not in sessions:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")
    return sessions[session_id]


def get_editable_session(session_id: str) -> EditingSession:
    """Like ``get_session``, but 409 once the session has left the editor."""
    session = get_session(session_id)
    if session.status != SessionStatus.EDITING:
        raise HTTPException(
            status_code=409,
            detail=f"Session '{session_id}' is {session.status.value.lower()}, not editable",
        )
    return session


def get_export(export_id: str) -> ExportResult:
    if export_id not in exports:
        raise HTTPException(status_code=404, detail=f"Export '{export_id}' not found")
    return exports[export_id]


def discard_session(session_id: str) -> None:
    """Drop a session and delete its rendered page bitmaps."""
    session = sessions.pop(session_id, None)
    if session is None:
        return
    if session.work_dir is not None:
        shutil.rmtree(session.work_dir, ignore_errors=True)
    logger.info("Discarded session", extra={"session_id": session_id})


def cleanup_stale_exports() -> None:
    """Remove exports older than TTL."""
    now = _time.time()
    stale = [k for k, v in exports.items() if now - v.created_at > _EXPORT_TTL]
    for k in stale:
        exports.pop(k, None)
