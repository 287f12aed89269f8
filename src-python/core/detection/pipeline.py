"""PII detection pipeline — layout, rule cascade, then rectangle synthesis."""

from __future__ import annotations

import logging
import time
from collections import Counter
from typing import Iterable, Optional

from core.detection.bbox_utils import cover_range
from core.detection.detection_config import DetectionVocabulary
from core.detection.layout import reconstruct_lines
from core.detection.pii_detector import detect_line, is_top_region
from models.schemas import CharacterRange, PositionedFragment, RedactionRect

logger = logging.getLogger(__name__)


def detect_page(
    fragments: list[PositionedFragment],
    page_index: int,
    page_height: float,
    vocab: Optional[DetectionVocabulary] = None,
) -> list[RedactionRect]:
    """
    Run the auto-redaction pipeline on a single page.

    Args:
        fragments: Positioned text runs in the renderer's reading order.
        page_index: 0-based page index, encoded into the rectangle ids.
        page_height: Page height in raster pixels (top-region gate).
        vocab: Optional vocabulary override.

    Returns:
        ``auto`` rectangles in line order, then rule order within a line.
        Overlapping rectangles are kept as-is.
    """
    if not fragments:
        return []

    page_t0 = time.perf_counter()
    lines = reconstruct_lines(fragments)

    rects: list[RedactionRect] = []
    per_rule: Counter[str] = Counter()

    for line in lines:
        if not line.text.strip():
            continue
        top = is_top_region(line.top, page_height)
        for k, match in enumerate(detect_line(line.text, top, vocab)):
            rect = cover_range(line, CharacterRange(start=match.start, end=match.end), page_index, k)
            if rect is None:
                continue
            rects.append(rect)
            per_rule[match.rule] += 1

    elapsed = (time.perf_counter() - page_t0) * 1000
    logger.info(
        "Page %d: %d auto rect(s) from %d line(s) in %.0fms",
        page_index + 1, len(rects), len(lines), elapsed,
        extra={"page": page_index + 1},
    )
    if per_rule:
        logger.debug(
            "Page %d rule counts: %s",
            page_index + 1,
            ", ".join(f"{name}={n}" for name, n in per_rule.items()),
        )
    return rects


def detect_document(
    pages: Iterable[tuple[list[PositionedFragment], float]],
    vocab: Optional[DetectionVocabulary] = None,
) -> list[list[RedactionRect]]:
    """Detect every page in order; ``pages`` yields ``(fragments, page_height)``."""
    return [
        detect_page(fragments, i, height, vocab)
        for i, (fragments, height) in enumerate(pages)
    ]
