"""Linear snapshot history for the redaction scene."""

from __future__ import annotations

import logging
from typing import Optional

from models.schemas import RedactionDocument

logger = logging.getLogger(__name__)


class History:
    """Snapshot stack with a cursor.

    Invariant: ``0 <= cursor < len(snapshots)``.  Committing truncates
    everything after the cursor.  With a ``limit`` the oldest snapshots
    are dropped and the cursor shifted so it keeps pointing at the same
    snapshot.
    """

    def __init__(self, initial: RedactionDocument, limit: Optional[int] = None) -> None:
        self._snapshots: list[RedactionDocument] = [initial.snapshot()]
        self._cursor = 0
        self._limit = limit if limit and limit > 0 else None

    @property
    def cursor(self) -> int:
        return self._cursor

    def __len__(self) -> int:
        return len(self._snapshots)

    def commit(self, doc: RedactionDocument) -> None:
        """Record ``doc`` as the new head, discarding any redo tail."""
        del self._snapshots[self._cursor + 1:]
        self._snapshots.append(doc.snapshot())
        self._cursor = len(self._snapshots) - 1

        if self._limit is not None and len(self._snapshots) > self._limit:
            overflow = len(self._snapshots) - self._limit
            del self._snapshots[:overflow]
            self._cursor -= overflow
        logger.debug("History commit: %d snapshot(s), cursor=%d", len(self._snapshots), self._cursor)

    def can_undo(self) -> bool:
        return self._cursor > 0

    def can_redo(self) -> bool:
        return self._cursor < len(self._snapshots) - 1

    def undo(self) -> RedactionDocument:
        if self.can_undo():
            self._cursor -= 1
        return self.current()

    def redo(self) -> RedactionDocument:
        if self.can_redo():
            self._cursor += 1
        return self.current()

    def current(self) -> RedactionDocument:
        """Return a copy of the snapshot under the cursor."""
        return self._snapshots[self._cursor].snapshot()
