"""Logging setup shared by the server entrypoint."""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s - [%(levelname)s] - %(name)s - %(message)s"


def setup_logging(level: int = logging.INFO, development: bool = False) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.basicConfig(level=logging.DEBUG if development else level, handlers=[handler])

    # Client libraries log every request at INFO.
    for noisy in ("httpx", "httpcore", "hpack", "fontTools"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
