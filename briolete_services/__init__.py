"""Public package API for the Briolete service-ticket backend."""

from __future__ import annotations

import os
from typing import Any, Dict, Optional


def render_service_invoice(
    record: Dict[str, Any],
    paper: str = "letter",
    font_dir: Optional[str] = None,
    logo_path: Optional[str] = None,
) -> bytes:
    from .config import DEFAULT_FONT_DIR, FONT_BOLD_FILE, FONT_REGULAR_FILE
    from .rendering import render_service_invoice as _render_service_invoice

    fonts = font_dir or DEFAULT_FONT_DIR
    return _render_service_invoice(
        record,
        os.path.join(fonts, FONT_REGULAR_FILE),
        os.path.join(fonts, FONT_BOLD_FILE),
        paper=paper,
        logo_path=logo_path,
    )


def run() -> None:
    from .__main__ import main

    main()


__all__ = ["render_service_invoice", "run"]
