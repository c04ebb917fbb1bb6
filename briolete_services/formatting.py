"""Formatting and text measuring helpers for the invoice."""

from __future__ import annotations

import math
import re
from typing import Any, List, Protocol

from dateutil import parser as dateutil_parser

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")
_LINE_SEPARATORS_RE = re.compile(r"[\u2028\u2029]")


class TextWidthProvider(Protocol):
    def text_width(self, text: str, size: float, bold: bool = False) -> float:
        ...


def safe_float(value: Any, default: float = 0.0) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def fmt_cop(value: Any) -> str:
    """Colombian pesos without decimals, e.g. ``$ 1.250.000``."""
    amount = safe_float(value)
    rounded = int(round(amount))
    grouped = f"{abs(rounded):,}".replace(",", ".")
    return f"-$ {grouped}" if rounded < 0 else f"$ {grouped}"


def fmt_date(raw: Any) -> str:
    """Parse a date string and return it formatted as '15-01-2024'."""
    raw = str(raw or "").strip()
    if not raw:
        return raw
    try:
        dt = dateutil_parser.isoparse(raw)
        return dt.strftime("%d-%m-%Y")
    except (ValueError, OverflowError):
        return raw


def fmt_time(raw: Any) -> str:
    return str(raw or "")[:5]


def normalize_time(raw: str) -> str:
    """'13:00' -> '13:00:00'; values already carrying seconds are kept."""
    value = str(raw or "").strip()
    if not value:
        return ""
    if len(value) == 5:
        return f"{value}:00"
    return value[:8]


def sanitize_pdf_text(value: Any) -> str:
    # Control characters render as boxes or break line layout in PDF viewers.
    text = "" if value is None else str(value)
    text = text.replace("\r\n", "\n").replace("\t", " ")
    text = _CONTROL_CHARS_RE.sub("", text)
    text = _LINE_SEPARATORS_RE.sub("\n", text)
    return text.rstrip()


def wrap_text(
    fonts_obj: TextWidthProvider,
    text: str,
    max_width: float,
    font_size: float,
    bold: bool = False,
) -> List[str]:
    def line_width(value: str) -> float:
        return fonts_obj.text_width(value, font_size, bold=bold)

    def wrap_paragraph(paragraph: str) -> List[str]:
        words = paragraph.split()
        if not words:
            return [""]

        lines: List[str] = []
        current = ""
        for word in words:
            candidate = word if not current else f"{current} {word}"
            if line_width(candidate) <= max_width:
                current = candidate
                continue

            if current:
                lines.append(current)
                current = ""

            if line_width(word) <= max_width:
                current = word
                continue

            chunk = ""
            for char in word:
                candidate_chunk = chunk + char
                if chunk and line_width(candidate_chunk) > max_width:
                    lines.append(chunk)
                    chunk = char
                else:
                    chunk = candidate_chunk
            current = chunk

        if current:
            lines.append(current)
        return lines

    result: List[str] = []
    for paragraph in text.split("\n"):
        result.extend(wrap_paragraph(paragraph))
    return result if result else [""]
