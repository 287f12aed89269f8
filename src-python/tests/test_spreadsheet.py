"""Tests for core.export.spreadsheet — xlsx output of extracted records."""

from __future__ import annotations

import io

from openpyxl import load_workbook

from core.export.spreadsheet import (
    SHEET_TITLE,
    build_workbook,
    export_file_name,
    storage_columns,
    visible_columns,
)
from models.schemas import Transaction


def _records() -> list[Transaction]:
    return [
        Transaction(date="2024-01-02", description="Coffee Shop", debit=12.5, category="Food & Dining"),
        Transaction(date="2024-01-03", description="Salary", credit=5000.0, balance=7300.25),
    ]


class TestColumns:
    def test_visible_columns_in_preview_order(self):
        assert visible_columns(_records()) == [
            "date", "description", "category", "debit", "credit", "balance",
        ]

    def test_storage_columns_in_record_order(self):
        assert storage_columns(_records()) == [
            "date", "description", "debit", "credit", "balance", "category",
        ]

    def test_export_file_name(self):
        assert export_file_name("march.pdf") == "march_statement.xlsx"
        assert export_file_name("") == "statement_statement.xlsx"


class TestBuildWorkbook:
    def _load(self, data: bytes):
        return load_workbook(io.BytesIO(data))

    def test_header_and_rows(self):
        wb = self._load(build_workbook(_records()))
        ws = wb[SHEET_TITLE]
        rows = list(ws.iter_rows(values_only=True))
        assert rows[0] == ("date", "description", "debit", "credit", "balance", "category")
        assert rows[1] == ("2024-01-02", "Coffee Shop", 12.5, None, None, "Food & Dining")
        assert rows[2] == ("2024-01-03", "Salary", None, 5000, 7300.25, None)

    def test_column_widths(self):
        ws = self._load(build_workbook(_records()))[SHEET_TITLE]
        # date: "2024-01-02" (10) + 2
        assert ws.column_dimensions["A"].width == 12
        # description: header and "Coffee Shop" are both 11
        assert ws.column_dimensions["B"].width == 13
        # category: "Food & Dining" (13) + 2
        assert ws.column_dimensions["F"].width == 15

    def test_empty_records(self):
        ws = self._load(build_workbook([]))[SHEET_TITLE]
        assert ws.max_row == 1
