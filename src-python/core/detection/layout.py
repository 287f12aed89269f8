"""Line reconstruction: group positioned fragments into visual lines.

Clustering model
----------------
Fragments arrive in the renderer's reading order.  Each fragment is
assigned greedily to the *first* existing line whose running-average
``y_top`` lies within ``tolerance`` pixels; otherwise it opens a new
line.  There is no backtracking and no global sort, so the result
depends on input order (see DESIGN.md).  Within a line, fragments are
then sorted left-to-right and concatenated.

Detection text
--------------
When the horizontal gap between two neighbouring fragments exceeds
``word_gap_ratio × fragment height`` a single space is inserted.  The
inserted space occupies one character position but has no backing
fragment, so a range covering only that space maps to no geometry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from core.config import config
from models.schemas import CharacterRange, PositionedFragment

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------


@dataclass
class Line:
    """A reconstructed visual line.

    ``spans[i]`` is the ``[start, end)`` range that ``fragments[i]``
    occupies in ``text``.
    """

    index: int
    fragments: list[PositionedFragment] = field(default_factory=list)
    text: str = ""
    spans: list[tuple[int, int]] = field(default_factory=list)

    @property
    def top(self) -> float:
        """Top edge of the line's bounding box."""
        if not self.fragments:
            return 0.0
        return min(f.y_top - f.height for f in self.fragments)

    @property
    def bottom(self) -> float:
        if not self.fragments:
            return 0.0
        return max(f.y_top for f in self.fragments)

    def fragments_in_range(self, rng: CharacterRange) -> list[PositionedFragment]:
        """Return fragments whose text span intersects ``rng``."""
        if rng.is_empty:
            return []
        return [
            frag
            for frag, (s, e) in zip(self.fragments, self.spans)
            if s < rng.end and e > rng.start
        ]


@dataclass
class _Cluster:
    fragments: list[PositionedFragment] = field(default_factory=list)
    y_sum: float = 0.0

    @property
    def avg_y(self) -> float:
        return self.y_sum / len(self.fragments)

    def add(self, frag: PositionedFragment) -> None:
        self.fragments.append(frag)
        self.y_sum += frag.y_top


# ---------------------------------------------------------------------------
# Clustering
# ---------------------------------------------------------------------------


def cluster_into_lines(
    fragments: list[PositionedFragment],
    tolerance: float | None = None,
) -> list[list[PositionedFragment]]:
    """Greedy, order-dependent clustering of fragments by ``y_top``.

    Returns the clusters in creation order; fragments inside each
    cluster keep their arrival order.
    """
    tol = config.line_tolerance_px if tolerance is None else tolerance
    clusters: list[_Cluster] = []

    for frag in fragments:
        for cluster in clusters:
            if abs(cluster.avg_y - frag.y_top) <= tol:
                cluster.add(frag)
                break
        else:
            cluster = _Cluster()
            cluster.add(frag)
            clusters.append(cluster)

    return [c.fragments for c in clusters]


def _needs_space(prev: PositionedFragment, cur: PositionedFragment, gap_ratio: float) -> bool:
    if not prev.text or not cur.text:
        return False
    if prev.text[-1].isspace() or cur.text[0].isspace():
        return False
    gap = cur.x - (prev.x + prev.width)
    return gap > cur.height * gap_ratio


def build_line(
    index: int,
    fragments: list[PositionedFragment],
    word_gap_ratio: float | None = None,
) -> Line:
    """Sort ``fragments`` left-to-right and build the line text and spans."""
    ratio = config.word_gap_ratio if word_gap_ratio is None else word_gap_ratio
    ordered = sorted(fragments, key=lambda f: f.x)

    parts: list[str] = []
    spans: list[tuple[int, int]] = []
    pos = 0
    prev: PositionedFragment | None = None

    for frag in ordered:
        if prev is not None and _needs_space(prev, frag, ratio):
            parts.append(" ")
            pos += 1
        parts.append(frag.text)
        spans.append((pos, pos + len(frag.text)))
        pos += len(frag.text)
        prev = frag

    return Line(index=index, fragments=ordered, text="".join(parts), spans=spans)


def reconstruct_lines(
    fragments: list[PositionedFragment],
    tolerance: float | None = None,
    word_gap_ratio: float | None = None,
) -> list[Line]:
    """Full layout pass for one page: cluster, then build each line."""
    clusters = cluster_into_lines(fragments, tolerance)
    lines = [build_line(i, c, word_gap_ratio) for i, c in enumerate(clusters)]
    logger.debug("Reconstructed %d line(s) from %d fragment(s)", len(lines), len(fragments))
    return lines
