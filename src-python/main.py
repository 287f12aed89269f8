"""Main entry point for the statement redactor.

Starts the FastAPI sidecar on the configured port (or a free one when
the port is 0) and prints ``PORT:<n>`` for the desktop shell to read.
"""

from __future__ import annotations

import logging
import socket

import uvicorn

from core.config import config
from core.logging_setup import setup_logging


def find_free_port() -> int:
    """Find an available TCP port.

    SO_REUSEADDR lets uvicorn rebind the port immediately.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def main():
    setup_logging(config.log_format, config.log_level)

    port = config.port if config.port != 0 else find_free_port()
    config.port = port

    # Print port to stdout for the desktop shell to read (sidecar mode)
    print(f"PORT:{port}", flush=True)

    log = logging.getLogger("statement_redactor")
    log.info(f"Starting on {config.host}:{port}")

    # Import here so logging is configured before the app modules load
    from api.server import app
    uvicorn.run(
        app,
        host=config.host,
        port=port,
        log_level=config.log_level.lower(),
        log_config=None,
        reload=False,
    )


if __name__ == "__main__":
    main()
