"""Session lifecycle: upload + auto-redaction, state summary, preview, cancel."""

from __future__ import annotations

import asyncio
import logging
import shutil
import uuid
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from fastapi.responses import JSONResponse, Response

from core.compositor import render_preview
from core.config import config
from core.detection.pipeline import detect_document
from core.editor.session import EditingSession
from core.errors import (
    InputAcquisitionError,
    InvalidPasswordError,
    PasswordRequiredError,
    UnsupportedFormatError,
)
from core.ingestion.loader import ingest_document
from models.schemas import RedactionDocument, RedactionPage, SessionInfo
from api.deps import discard_session, get_session, sessions

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["sessions"])

MAX_UPLOAD_BYTES = 50 * 1024 * 1024  # 50 MB


def acquisition_error_response(exc: InputAcquisitionError) -> JSONResponse:
    """Translate an ingestion failure into a single user-facing reply."""
    if isinstance(exc, PasswordRequiredError):
        return JSONResponse(status_code=401, content={"error": "password_required", "detail": str(exc)})
    if isinstance(exc, InvalidPasswordError):
        return JSONResponse(status_code=401, content={"error": "invalid_password", "detail": str(exc)})
    if isinstance(exc, UnsupportedFormatError):
        return JSONResponse(status_code=415, content={"error": "unsupported_format", "detail": str(exc)})
    return JSONResponse(status_code=422, content={"error": "unreadable_document", "detail": str(exc)})


async def _build_document(
    upload_path: Path,
    file: UploadFile,
    work_dir: Path,
    password: Optional[str],
) -> RedactionDocument:
    """Render the upload into ``work_dir`` and run auto-redaction on every page."""
    rendered = await ingest_document(
        upload_path,
        file.filename,
        work_dir,
        mime_type=file.content_type,
        password=password,
    )
    auto_rects = await asyncio.to_thread(
        detect_document, [(p.fragments, p.height) for p in rendered],
    )
    return RedactionDocument(pages=[
        RedactionPage(
            page_number=p.page_number,
            base_image=str(p.image_path),
            width=p.width,
            height=p.height,
            rects=rects,
        )
        for p, rects in zip(rendered, auto_rects)
    ])


@router.post("/sessions", response_model=SessionInfo)
async def create_session(
    file: UploadFile = File(...),
    password: Optional[str] = Form(None),
):
    """Upload a statement PDF, render its pages and run auto-redaction."""
    if not file.filename:
        raise HTTPException(400, "No filename provided")

    # Reject filenames with path separators
    if any(c in file.filename for c in ("/", "\\", "..")):
        raise HTTPException(400, "Invalid filename")

    session_id = uuid.uuid4().hex
    work_dir = config.temp_dir / session_id
    work_dir.mkdir(parents=True, exist_ok=True)
    upload_path = work_dir / f"upload_{Path(file.filename).name}"

    with open(upload_path, "wb") as f:
        total = 0
        while chunk := await file.read(256 * 1024):
            total += len(chunk)
            if total > MAX_UPLOAD_BYTES:
                f.close()
                shutil.rmtree(work_dir, ignore_errors=True)
                raise HTTPException(413, f"File too large (max {MAX_UPLOAD_BYTES // (1024*1024)} MB)")
            f.write(chunk)

    logger.info(f"Saved upload ({total} bytes)", extra={"session_id": session_id})

    try:
        document = await _build_document(upload_path, file, work_dir, password or None)
    except InputAcquisitionError as exc:
        shutil.rmtree(work_dir, ignore_errors=True)
        logger.warning(
            "Ingestion failed: %s", type(exc).__name__,
            extra={"session_id": session_id, "error_type": type(exc).__name__},
        )
        return acquisition_error_response(exc)
    except Exception as exc:
        shutil.rmtree(work_dir, ignore_errors=True)
        logger.error(
            "Session setup failed: %s", type(exc).__name__,
            extra={"session_id": session_id, "error_type": type(exc).__name__},
        )
        raise
    finally:
        upload_path.unlink(missing_ok=True)

    session = EditingSession(
        document, filename=file.filename, work_dir=work_dir, session_id=session_id,
    )
    sessions[session_id] = session

    logger.info(
        "Session ready: %d page(s), %d auto rect(s)",
        len(document.pages), session.total_rect_count(),
        extra={"session_id": session_id},
    )
    return session.info()


@router.get("/sessions/{session_id}", response_model=SessionInfo)
async def get_session_info(session_id: str):
    return get_session(session_id).info()


@router.delete("/sessions/{session_id}")
async def cancel_session(session_id: str):
    """Cancel editing and discard every rendered artifact."""
    get_session(session_id)
    discard_session(session_id)
    return {"status": "discarded", "session_id": session_id}


@router.get("/sessions/{session_id}/pages/{page_index}/preview")
async def page_preview(session_id: str, page_index: int):
    """PNG of one page with its rectangles (plus overlay/selection on the current page)."""
    session = get_session(session_id)
    if not 0 <= page_index < len(session.document.pages):
        raise HTTPException(404, f"Page {page_index} not found")

    page = session.document.pages[page_index]
    is_current = page_index == session.page_index
    png = await asyncio.to_thread(
        render_preview,
        page,
        session.state.overlay if is_current else None,
        session.state.selection if is_current else None,
    )
    return Response(content=png, media_type="image/png")
