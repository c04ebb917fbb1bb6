"""Font loading and text drawing helpers for the invoice."""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Tuple

from fpdf import FPDF

from .errors import FontLoadError
from .pdf_constants import ASCENT_RATIO, LINE_SPACING

logger = logging.getLogger(__name__)

# TrueType, OpenType/CFF and legacy Apple TrueType signatures.
FONT_SIGNATURES = (b"\x00\x01\x00\x00", b"OTTO", b"true")


def check_font_signature(path: str) -> str:
    with open(path, "rb") as handle:
        signature = handle.read(4)
    if signature not in FONT_SIGNATURES:
        raise FontLoadError(f"Not a TrueType/OpenType font: {path}", expected=(path,))
    return path


def check_fonts(regular_path: str, bold_path: str) -> Tuple[str, str]:
    """Check both files exist and carry a font signature, concurrently.

    Either failure fails the pair. Registration with fpdf happens afterwards,
    one font at a time, in ``FontManager``.
    """
    expected = (regular_path, bold_path)
    with ThreadPoolExecutor(max_workers=2) as pool:
        futures = [pool.submit(check_font_signature, path) for path in expected]
        errors = []
        for future in futures:
            try:
                future.result()
            except (OSError, FontLoadError) as exc:
                errors.append(str(exc))
    if errors:
        raise FontLoadError("; ".join(errors), expected=expected)
    return expected


class FontManager:
    FAMILY = "Briolete"

    def __init__(self, pdf: FPDF, regular_path: str, bold_path: str) -> None:
        self.pdf = pdf
        self.family = self.FAMILY

        check_fonts(regular_path, bold_path)
        try:
            self.pdf.add_font(self.FAMILY, "", regular_path)
            self.pdf.add_font(self.FAMILY, "B", bold_path)
        except Exception as exc:
            raise FontLoadError(str(exc), expected=(regular_path, bold_path)) from exc
        logger.debug("Invoice fonts loaded from %s", os.path.dirname(regular_path))

    def set_font(self, size: float, bold: bool = False) -> None:
        self.pdf.set_font(self.family, "B" if bold else "", size)

    def text_width(self, text: str, size: float, bold: bool = False) -> float:
        self.set_font(size, bold=bold)
        return self.pdf.get_string_width(text)

    @staticmethod
    def line_height(size: float) -> float:
        return size * LINE_SPACING

    def draw_text(
        self,
        x: float,
        top: float,
        text: str,
        size: float,
        color: Tuple[int, int, int],
        bold: bool = False,
    ) -> None:
        """Draw one line whose box starts at ``top`` (fpdf places text on its baseline)."""
        self.pdf.set_text_color(*color)
        self.set_font(size, bold=bold)
        self.pdf.text(x, top + size * ASCENT_RATIO, text)

    def draw_right(
        self,
        right: float,
        top: float,
        text: str,
        size: float,
        color: Tuple[int, int, int],
        bold: bool = False,
    ) -> None:
        width = self.text_width(text, size, bold=bold)
        self.draw_text(right - width, top, text, size, color, bold=bold)

    def draw_centered(
        self,
        left: float,
        width: float,
        top: float,
        text: str,
        size: float,
        color: Tuple[int, int, int],
        bold: bool = False,
    ) -> None:
        text_w = self.text_width(text, size, bold=bold)
        self.draw_text(left + (width - text_w) / 2.0, top, text, size, color, bold=bold)
