"""Compositor — bake redaction rectangles into page bitmaps.

Baking happens once per export.  The base image is copied pixel-by-pixel
onto a fresh surface (dropping any embedded metadata), then every
rectangle is filled opaque in list order.
"""

from __future__ import annotations

import asyncio
import base64
import io
import logging
from typing import Optional

from PIL import Image, ImageDraw

from core.config import config
from core.editor.scene import corners
from models.schemas import RedactionDocument, RedactionPage, RedactionRect

logger = logging.getLogger(__name__)

FILL = (0, 0, 0)

# Preview styling
_OVERLAY_STROKE = (255, 255, 255)
_SELECTION_STROKE = (37, 99, 235)
_HANDLE_SIZE = 4
_DASH = 6


def _box(rect: RedactionRect) -> list[float]:
    return [rect.x, rect.y, rect.x + rect.width, rect.y + rect.height]


def _load_base(page: RedactionPage) -> Image.Image:
    with Image.open(page.base_image) as src:
        src = src.convert("RGB")
        surface = Image.new("RGB", src.size, (255, 255, 255))
        surface.paste(src, (0, 0))
    return surface


def bake_page(page: RedactionPage, fill: tuple[int, int, int] = FILL) -> Image.Image:
    """Return an opaque RGB bitmap of ``page`` with every rectangle filled."""
    img = _load_base(page)
    draw = ImageDraw.Draw(img)
    for rect in page.rects:
        if rect.width <= 0 or rect.height <= 0:
            continue
        draw.rectangle(_box(rect), fill=fill)
    return img


async def bake_document(
    document: RedactionDocument,
    fill: tuple[int, int, int] = FILL,
) -> list[Image.Image]:
    """Bake all pages concurrently; the result is in page order."""
    images = await asyncio.gather(
        *(asyncio.to_thread(bake_page, page, fill) for page in document.pages)
    )
    logger.info(
        "Baked %d page(s), %d rect(s)",
        len(images), sum(len(p.rects) for p in document.pages),
    )
    return list(images)


def _dashed_rectangle(draw: ImageDraw.ImageDraw, box: list[float], color, width: int = 1) -> None:
    x0, y0, x1, y1 = box
    for a, b, horizontal, fixed in (
        (x0, x1, True, y0), (x0, x1, True, y1),
        (y0, y1, False, x0), (y0, y1, False, x1),
    ):
        pos = a
        while pos < b:
            end = min(pos + _DASH, b)
            if horizontal:
                draw.line([(pos, fixed), (end, fixed)], fill=color, width=width)
            else:
                draw.line([(fixed, pos), (fixed, end)], fill=color, width=width)
            pos += _DASH * 2


def render_preview(
    page: RedactionPage,
    overlay: Optional[RedactionRect] = None,
    selection: Optional[str] = None,
) -> bytes:
    """Render the on-screen preview for one page as PNG bytes."""
    img = bake_page(page)
    draw = ImageDraw.Draw(img)

    if overlay is not None and (overlay.width > 0 or overlay.height > 0):
        _dashed_rectangle(draw, _box(overlay), _OVERLAY_STROKE, width=2)

    if selection is not None:
        for rect in page.rects:
            if rect.id != selection:
                continue
            draw.rectangle(_box(rect), outline=_SELECTION_STROKE, width=2)
            for cx, cy in corners(rect).values():
                draw.rectangle(
                    [cx - _HANDLE_SIZE, cy - _HANDLE_SIZE, cx + _HANDLE_SIZE, cy + _HANDLE_SIZE],
                    fill=(255, 255, 255),
                    outline=_SELECTION_STROKE,
                )

    buf = io.BytesIO()
    try:
        img.save(buf, "PNG")
    finally:
        img.close()
    return buf.getvalue()


def encode_jpeg(img: Image.Image, quality: int | None = None) -> str:
    """Encode a baked bitmap as a base64 JPEG payload."""
    buf = io.BytesIO()
    img.convert("RGB").save(buf, "JPEG", quality=quality or config.jpeg_quality)
    return base64.b64encode(buf.getvalue()).decode("ascii")
