"""Document ingestion — render PDF pages to bitmaps and extract positioned text."""

from __future__ import annotations

import asyncio
import ctypes
import logging
import mimetypes
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import pypdfium2 as pdfium

from core.config import config
from core.errors import (
    CorruptDocumentError,
    InvalidPasswordError,
    PasswordRequiredError,
    UnsupportedFormatError,
)
from models.schemas import PositionedFragment

logger = logging.getLogger(__name__)

PDF_TYPES = {"application/pdf"}


@dataclass
class RenderedPage:
    """One rendered source page: bitmap on disk plus its text fragments."""
    page_number: int
    image_path: Path
    width: int
    height: int
    fragments: list[PositionedFragment] = field(default_factory=list)


def guess_mime(filepath: Path) -> str:
    """Guess MIME type from file extension."""
    mime, _ = mimetypes.guess_type(str(filepath))
    return mime or "application/octet-stream"


def _is_rotated_word(char_y_centers: list[float], char_heights: list[float]) -> bool:
    """Return True if the accumulated character positions indicate rotated text.

    Horizontal text keeps every character on roughly the same y-centre;
    diagonal watermarks drift.  Punctuation and accents are excluded
    (height below 70 % of the median) before measuring the spread.
    """
    if len(char_y_centers) < 2:
        return False

    sorted_h = sorted(char_heights)
    n = len(sorted_h)
    median_h = sorted_h[n // 2] if n % 2 == 1 else (sorted_h[n // 2 - 1] + sorted_h[n // 2]) / 2.0
    threshold = median_h * 0.70

    kept = [(yc, h) for yc, h in zip(char_y_centers, char_heights) if h >= threshold]
    if len(kept) < 2:
        return False

    ys = [yc for yc, _ in kept]
    avg_h = sum(h for _, h in kept) / len(kept)
    return max(ys) - min(ys) > avg_h * 0.65


def _extract_fragments_from_page(
    pdf_page: pdfium.PdfPage,
    page_index: int,
    scale: float,
) -> list[PositionedFragment]:
    """Extract word-level fragments in reading order, in raster coordinates.

    Characters are grouped into words on whitespace.  pdfium char boxes
    are ``(left, bottom, right, top)`` in PDF points with a bottom-left
    origin; they are flipped to a top-left origin and scaled.  ``y_top``
    is the word's baseline, taken from the first glyph's origin, so words
    with and without descenders on one visual line share the same value.
    ``height`` is measured up from the baseline and ``descent`` down.
    """
    textpage = pdf_page.get_textpage()
    try:
        n_chars = textpage.count_chars()
        if n_chars == 0:
            return []

        page_height = pdf_page.get_height()
        fragments: list[PositionedFragment] = []
        rotated_skipped = 0

        _raw_tp = textpage.raw
        _origin_func = pdfium.raw.FPDFText_GetCharOrigin
        _ox = ctypes.c_double(0.0)
        _oy = ctypes.c_double(0.0)

        def _char_baseline(idx: int, fallback: float) -> float:
            if _origin_func(_raw_tp, idx, ctypes.byref(_ox), ctypes.byref(_oy)):
                return _oy.value
            return fallback

        word = ""
        x0 = y0 = x1 = y1 = baseline = 0.0
        char_y_centers: list[float] = []
        char_heights: list[float] = []

        def _flush() -> None:
            nonlocal word, rotated_skipped
            if not word:
                return
            if _is_rotated_word(char_y_centers, char_heights):
                rotated_skipped += 1
            else:
                fragments.append(PositionedFragment(
                    text=word,
                    x=x0 * scale,
                    y_top=(page_height - baseline) * scale,
                    width=(x1 - x0) * scale,
                    height=max(0.0, y1 - baseline) * scale,
                    descent=max(0.0, baseline - y0) * scale,
                ))
            word = ""
            char_y_centers.clear()
            char_heights.clear()

        for i in range(n_chars):
            char = textpage.get_text_range(index=i, count=1)
            if char.strip() == "":
                _flush()
                continue
            left, bottom, right, top = textpage.get_charbox(i)
            if not word:
                x0, y0, x1, y1 = left, bottom, right, top
                baseline = _char_baseline(i, bottom)
            else:
                x0 = min(x0, left)
                y0 = min(y0, bottom)
                x1 = max(x1, right)
                y1 = max(y1, top)
            word += char
            char_y_centers.append((bottom + top) / 2.0)
            char_heights.append(top - bottom)
        _flush()
    finally:
        textpage.close()

    if rotated_skipped:
        logger.info(
            f"Page {page_index + 1}: discarded {rotated_skipped} rotated "
            f"text fragment(s) (watermarks/diagonal text)"
        )
    return fragments


def _render_page_bitmap(pdf_page: pdfium.PdfPage, page_index: int, out_dir: Path, scale: float) -> Path:
    """Render a PDF page to a PNG bitmap."""
    bitmap = pdf_page.render(scale=scale)
    pil_image = bitmap.to_pil()

    out_path = out_dir / f"page_{page_index + 1:04d}.png"
    out_path.parent.mkdir(parents=True, exist_ok=True)
    pil_image.save(str(out_path), "PNG")
    pil_image.close()
    del bitmap
    return out_path


def _render_page(doc: pdfium.PdfDocument, page_index: int, out_dir: Path, scale: float) -> RenderedPage:
    pdf_page = doc[page_index]
    try:
        image_path = _render_page_bitmap(pdf_page, page_index, out_dir, scale)
        fragments = _extract_fragments_from_page(pdf_page, page_index, scale)
        return RenderedPage(
            page_number=page_index + 1,
            image_path=image_path,
            width=round(pdf_page.get_width() * scale),
            height=round(pdf_page.get_height() * scale),
            fragments=fragments,
        )
    finally:
        pdf_page.close()


def _open_pdf(pdf_path: Path, password: Optional[str]) -> pdfium.PdfDocument:
    try:
        return pdfium.PdfDocument(str(pdf_path), password=password)
    except pdfium.PdfiumError as exc:
        if "password" in str(exc).lower():
            if password:
                raise InvalidPasswordError("The password for this PDF is incorrect") from exc
            raise PasswordRequiredError("This PDF is password protected") from exc
        raise CorruptDocumentError(f"Could not open PDF: {exc}") from exc


def render_pdf(
    pdf_path: Path,
    out_dir: Path,
    password: Optional[str] = None,
    scale: float | None = None,
) -> list[RenderedPage]:
    """Render every page of ``pdf_path`` and extract its fragments.

    PDFium is not thread-safe, so all pages go through one document
    handle sequentially.
    """
    s = config.render_scale if scale is None else scale
    doc = _open_pdf(pdf_path, password)
    try:
        n_pages = len(doc)
        if n_pages == 0:
            raise CorruptDocumentError("The PDF has no pages")

        pages: list[RenderedPage] = []
        for page_index in range(n_pages):
            try:
                pages.append(_render_page(doc, page_index, out_dir, s))
            except pdfium.PdfiumError as exc:
                raise CorruptDocumentError(
                    f"Could not render page {page_index + 1}: {exc}"
                ) from exc
        return pages
    finally:
        doc.close()


async def ingest_document(
    file_path: Path,
    original_filename: str,
    out_dir: Path,
    mime_type: Optional[str] = None,
    password: Optional[str] = None,
) -> list[RenderedPage]:
    """
    Main entry point: validate the upload, render pages, extract text.

    Raises:
        UnsupportedFormatError: the file is not a PDF.
        PasswordRequiredError / InvalidPasswordError: protected document.
        CorruptDocumentError: the PDF could not be parsed or rendered.
    """
    if mime_type is None or mime_type == "application/octet-stream":
        mime_type = guess_mime(Path(original_filename))
    if mime_type not in PDF_TYPES:
        raise UnsupportedFormatError(f"Unsupported file type: {mime_type}")

    logger.info(f"Ingesting '{original_filename}' (mime={mime_type})")
    pages = await asyncio.to_thread(render_pdf, file_path, out_dir, password)
    logger.info(f"Rendered {len(pages)} page(s) from '{original_filename}'")
    return pages
