"""Pydantic data models for the statement redactor."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class RectSource(str, enum.Enum):
    """Who created a redaction rectangle."""
    AUTO = "auto"          # Heuristic PII locator
    MANUAL = "manual"      # Drawn by the user in the editor


class Tool(str, enum.Enum):
    """Editor tool modes."""
    DRAW = "draw"
    ERASE = "erase"
    SELECT = "select"
    PAN = "pan"


class SessionStatus(str, enum.Enum):
    RENDERING = "RENDERING"
    EDITING = "EDITING"
    EXTRACTING = "EXTRACTING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"


TRANSACTION_CATEGORIES: tuple[str, ...] = (
    "Bills & Utilities", "Car rental", "EMI", "Entertainment", "Fees",
    "Food & Dining", "Gas", "Groceries", "Personal Care", "Healthcare",
    "Insurance", "Investment", "Rent", "Shopping", "Transportation",
    "Travel", "Other",
)


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

class PositionedFragment(BaseModel):
    """One positioned run of text on a rendered page.

    Coordinates are in page-raster pixels, origin top-left.  ``y_top`` is
    the run's baseline as reported by the renderer; the glyph box spans
    ``y_top - height`` to ``y_top + descent``.
    """
    model_config = {"frozen": True}

    text: str
    x: float
    y_top: float
    width: float
    height: float
    descent: float = 0.0


class CharacterRange(BaseModel):
    """Half-open ``[start, end)`` range over a line's concatenated text."""
    model_config = {"frozen": True}

    start: int
    end: int

    @property
    def is_empty(self) -> bool:
        return self.start >= self.end


class RedactionRect(BaseModel):
    """An axis-aligned box that is filled opaque at export time."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    x: float
    y: float
    width: float
    height: float
    source: RectSource = Field(default=RectSource.MANUAL, frozen=True)

    def contains(self, px: float, py: float) -> bool:
        """Inclusive point-in-rect test."""
        return (
            self.x <= px <= self.x + self.width
            and self.y <= py <= self.y + self.height
        )


class Viewport(BaseModel):
    """Editor viewport: zoom factor plus scroll offset in screen pixels."""
    model_config = {"frozen": True}

    zoom: float = 1.0
    scroll_x: float = 0.0
    scroll_y: float = 0.0

    def to_content(self, sx: float, sy: float) -> tuple[float, float]:
        """Map a surface (screen) point to page-raster coordinates."""
        return (sx + self.scroll_x) / self.zoom, (sy + self.scroll_y) / self.zoom

    def to_screen(self, cx: float, cy: float) -> tuple[float, float]:
        return cx * self.zoom - self.scroll_x, cy * self.zoom - self.scroll_y


# ---------------------------------------------------------------------------
# Scene
# ---------------------------------------------------------------------------

class RedactionPage(BaseModel):
    """A rendered source page plus its ordered redaction rectangles.

    ``base_image`` is the path of the un-redacted page bitmap; rectangles
    are only composited at preview or export time.
    """
    page_number: int                  # 1-based index in the source PDF
    base_image: str
    width: int
    height: int
    rects: list[RedactionRect] = []


class RedactionDocument(BaseModel):
    """Ordered pages of one editing session (never reordered or appended)."""
    pages: list[RedactionPage] = []

    def snapshot(self) -> "RedactionDocument":
        """Return a deep copy suitable for the undo history."""
        return self.model_copy(deep=True)


# ---------------------------------------------------------------------------
# Extraction records
# ---------------------------------------------------------------------------

class Transaction(BaseModel):
    """One extracted statement line item."""
    date: str
    description: str
    debit: Optional[float] = None
    credit: Optional[float] = None
    balance: Optional[float] = None
    currency: Optional[str] = None     # ISO 4217, e.g. INR, USD, CAD
    category: Optional[str] = None


# ---------------------------------------------------------------------------
# API Request / Response schemas
# ---------------------------------------------------------------------------

class PageSummary(BaseModel):
    page_number: int
    width: int
    height: int
    rect_count: int
    auto_rect_count: int


class SessionInfo(BaseModel):
    session_id: str
    filename: str
    status: SessionStatus
    page_count: int
    current_page: int
    tool: Tool
    zoom: float
    scroll_x: float = 0.0
    scroll_y: float = 0.0
    selection: Optional[str] = None
    can_undo: bool = False
    can_redo: bool = False
    total_rects: int = 0
    pages: list[PageSummary] = []
    current_rects: list[RedactionRect] = []
    overlay: Optional[RedactionRect] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class GestureEventRequest(BaseModel):
    """Pointer / touch event posted by the editing surface.

    ``kind`` is one of ``pointer_down``, ``pointer_move``, ``pointer_up``,
    ``pointer_cancel``, ``touch_start``, ``touch_move``, ``touch_end``.
    Coordinates are surface pixels; ``points`` lists active touches.
    """
    kind: str
    x: float = 0.0
    y: float = 0.0
    points: list[tuple[float, float]] = []


class CommandRequest(BaseModel):
    command: str
    page: Optional[int] = None         # 0-based, for set_page
    tool: Optional[Tool] = None        # for set_tool
    key: Optional[str] = None          # for key
    ctrl: bool = False
    shift: bool = False
    meta: bool = False


class ExportResponse(BaseModel):
    export_id: str
    file_name: str
    transactions: list[Transaction]
    columns: list[str]


class HandshakeRequest(BaseModel):
    type: str
    origin: str


class HostMessage(BaseModel):
    type: str
    target_origin: str
    transactions: list[Transaction]
