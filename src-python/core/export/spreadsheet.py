"""Spreadsheet export — write extracted transactions to an .xlsx workbook."""

from __future__ import annotations

import io
import logging
from pathlib import Path

from openpyxl import Workbook
from openpyxl.utils import get_column_letter

from models.schemas import Transaction

logger = logging.getLogger(__name__)

SHEET_TITLE = "Transactions"

# Column order of the on-screen preview table
PREVIEW_COLUMNS: tuple[str, ...] = (
    "date", "description", "category", "currency", "debit", "credit", "balance",
)


def _populated(records: list[Transaction], column: str) -> bool:
    return any(getattr(r, column) not in (None, "") for r in records)


def visible_columns(records: list[Transaction]) -> list[str]:
    """Preview columns that have a value in at least one record."""
    return [c for c in PREVIEW_COLUMNS if _populated(records, c)]


def storage_columns(records: list[Transaction]) -> list[str]:
    """Workbook columns: record field order, skipping fields no record sets."""
    return [c for c in Transaction.model_fields if _populated(records, c)]


def export_file_name(source_name: str) -> str:
    stem = Path(source_name).stem or "statement"
    return f"{stem}_statement.xlsx"


def build_workbook(records: list[Transaction]) -> bytes:
    """Serialise ``records`` to xlsx bytes with auto-fitted column widths."""
    columns = storage_columns(records)

    wb = Workbook()
    try:
        ws = wb.active
        ws.title = SHEET_TITLE
        ws.append(columns)
        for record in records:
            ws.append([getattr(record, c) for c in columns])

        # Auto-fit: longest rendered value (or header) plus a little padding
        for idx, column in enumerate(columns, start=1):
            values = [getattr(r, column) for r in records]
            longest = max(
                [len(column)] + [len(str(v)) for v in values if v is not None]
            )
            ws.column_dimensions[get_column_letter(idx)].width = longest + 2

        buf = io.BytesIO()
        wb.save(buf)
    finally:
        wb.close()

    logger.info("Built workbook with %d row(s), %d column(s)", len(records), len(columns))
    return buf.getvalue()
