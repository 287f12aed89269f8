"""Export: bake the redacted pages, extract transactions, build the workbook."""

from __future__ import annotations

import asyncio
import logging
import uuid

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse, Response

from core.compositor import bake_document, encode_jpeg
from core.config import config
from core.errors import EmptyExtractionError, ExtractionError
from core.export.spreadsheet import build_workbook, export_file_name, visible_columns
from models.schemas import ExportResponse, SessionStatus
from api.deps import (
    ExportResult,
    cleanup_stale_exports,
    discard_session,
    exports,
    get_editable_session,
    get_engine,
    get_export,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["export"])

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.post("/sessions/{session_id}/export", response_model=ExportResponse)
async def export_session(session_id: str):
    """Bake every page, send the bitmaps for extraction and build the xlsx.

    The editing session is discarded whether extraction succeeds or
    fails; on failure nothing is kept.
    """
    session = get_editable_session(session_id)
    if session.state.drag is not None:
        raise HTTPException(409, "Finish the current gesture before exporting")

    page_count = len(session.document.pages)
    if page_count > config.extraction_max_pages:
        raise HTTPException(
            400,
            f"Too many pages ({page_count}); delete pages to get to "
            f"{config.extraction_max_pages} or fewer",
        )

    session.status = SessionStatus.EXTRACTING
    log_extra = {"session_id": session_id}

    try:
        images = await bake_document(session.document)
        try:
            payloads = [encode_jpeg(img) for img in images]
        finally:
            for img in images:
                img.close()

        engine = get_engine()
        transactions = await asyncio.to_thread(engine.extract, payloads)
    except EmptyExtractionError as exc:
        logger.warning("Extraction returned no transactions", extra=log_extra)
        discard_session(session_id)
        return JSONResponse(status_code=422, content={"error": "no_transactions", "detail": str(exc)})
    except ExtractionError as exc:
        logger.error(
            "Extraction failed: %s", exc,
            extra={**log_extra, "error_type": type(exc).__name__},
        )
        discard_session(session_id)
        return JSONResponse(status_code=502, content={"error": "extraction_failed", "detail": str(exc)})
    except Exception:
        logger.exception("Export failed", extra=log_extra)
        discard_session(session_id)
        raise

    workbook = await asyncio.to_thread(build_workbook, transactions)
    cleanup_stale_exports()
    result = ExportResult(
        export_id=uuid.uuid4().hex[:12],
        file_name=export_file_name(session.filename),
        transactions=transactions,
        columns=visible_columns(transactions),
        workbook=workbook,
    )
    exports[result.export_id] = result

    session.status = SessionStatus.COMPLETED
    discard_session(session_id)
    logger.info(
        "Export %s: %d transaction(s)", result.export_id, len(transactions),
        extra={**log_extra, "export_id": result.export_id},
    )
    return ExportResponse(
        export_id=result.export_id,
        file_name=result.file_name,
        transactions=result.transactions,
        columns=result.columns,
    )


@router.get("/exports/{export_id}/download")
async def download_export(export_id: str):
    result = get_export(export_id)
    return Response(
        content=result.workbook,
        media_type=XLSX_MIME,
        headers={"Content-Disposition": f'attachment; filename="{result.file_name}"'},
    )
