"""Host embedding channel — hand extracted records to a parent page.

When the UI runs embedded (iframe or popup), the parent announces
itself with a handshake message carrying its origin.  Outbound messages
are only ever addressed to that negotiated origin.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional
from urllib.parse import urlsplit

from core.errors import HostUnavailableError
from models.schemas import HostMessage, Transaction

logger = logging.getLogger(__name__)

HANDSHAKE_TYPE = "EXPENSO_PARENT_HANDSHAKE"
TRANSACTIONS_TYPE = "TRANSACTIONS_EXTRACTED"


def _normalize_origin(origin: str) -> str:
    """Reduce a URL to ``scheme://host[:port]``; reject anything else."""
    parts = urlsplit(origin.strip())
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ValueError(f"Invalid origin: {origin!r}")
    return f"{parts.scheme}://{parts.netloc}"


class HostChannel:
    """Remembers the negotiated parent origin and builds outbound messages."""

    def __init__(self) -> None:
        self._origin: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def target_origin(self) -> Optional[str]:
        return self._origin

    def is_connected(self) -> bool:
        return self._origin is not None

    def handshake(self, message_type: str, origin: str) -> str:
        """Accept a parent handshake and return the registered origin."""
        if message_type != HANDSHAKE_TYPE:
            raise ValueError(f"Unexpected handshake type: {message_type!r}")
        normalized = _normalize_origin(origin)
        with self._lock:
            self._origin = normalized
        logger.info("Host handshake accepted for %s", normalized)
        return normalized

    def set_target_origin(self, origin: str) -> str:
        """Register the origin passed via the ``targetOrigin`` query parameter."""
        normalized = _normalize_origin(origin)
        with self._lock:
            self._origin = normalized
        return normalized

    def reset(self) -> None:
        with self._lock:
            self._origin = None

    def build_message(self, transactions: list[Transaction]) -> HostMessage:
        """Outbound ``TRANSACTIONS_EXTRACTED`` message for the parent."""
        origin = self._origin
        if origin is None:
            raise HostUnavailableError(
                "No parent window is connected; open this page from the host app to send data back"
            )
        return HostMessage(
            type=TRANSACTIONS_TYPE,
            target_origin=origin,
            transactions=transactions,
        )
