"""Service invoice PDF rendering."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple

from fpdf import FPDF
from PIL import Image

from .fonts import FontManager
from .formatting import fmt_cop, fmt_date, fmt_time, safe_float, sanitize_pdf_text, wrap_text
from .pdf_constants import (
    COLOR_COMPANY,
    COLOR_FOOTER,
    COLOR_RULE,
    COLOR_TEXT,
    COMPANY_BLOCK_H,
    COMPANY_INFO_OFFSET,
    COMPANY_INFO_W,
    COMPANY_LINE_OFFSETS,
    COMPANY_LINES,
    COMPANY_NAME,
    DEFAULT_PAPER,
    FONT_SIZE_COMPANY,
    FONT_SIZE_COMPANY_NAME,
    FONT_SIZE_FOOTER,
    FONT_SIZE_NORMAL,
    FONT_SIZE_SECTION,
    FONT_SIZE_TITLE,
    FOOTER_GAP,
    FOOTER_TEXT,
    GRID_COL_GAP,
    GRID_LINE_GAP,
    LOGO_GUTTER,
    LOGO_MAX_W,
    LOGO_MIN_COLUMN_W,
    MARGIN_TOP,
    MAX_CONTENT_W,
    MIN_SIDE_MARGIN,
    OBSERVATIONS_BODY_OFFSET,
    PAPER_SIZES,
    PAYMENTS_GAP,
    RULE_GAP,
    RULE_WIDTH,
    SECTION_BODY_OFFSET,
    SECTION_GAP,
    SECTION_RULE_OFFSET,
    TITLE_GAP,
    TITLE_RULE_OFFSET,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvoiceLayout:
    """Vertical positions measured while drawing, in points from the page top."""

    header_height: float
    title_top: float
    grid_bottom: float
    description_top: float
    description_bottom: float
    observations_top: float
    observations_bottom: float
    footer_top: float


def paper_from_param(value: Optional[str]) -> str:
    paper = (value or "").strip().lower()
    return paper if paper in PAPER_SIZES else DEFAULT_PAPER


def final_payment(record: Dict[str, Any]) -> float:
    stored = record.get("pago_final")
    if stored is not None:
        return safe_float(stored)
    return safe_float(record.get("costo_final")) - safe_float(record.get("abono"))


class ServiceInvoiceRenderer:
    def __init__(
        self,
        record: Dict[str, Any],
        font_regular_path: str,
        font_bold_path: str,
        paper: str = DEFAULT_PAPER,
        logo_path: Optional[str] = None,
    ) -> None:
        self.record = record
        self.paper = paper_from_param(paper)
        self.logo_path = logo_path
        self.layout: Optional[InvoiceLayout] = None

        page_w, page_h = PAPER_SIZES[self.paper]
        self.pdf = FPDF(orientation="P", unit="pt", format=(page_w, page_h))
        self.pdf.set_auto_page_break(False)
        self.pdf.set_margins(0, MARGIN_TOP, 0)
        self.pdf.add_page()
        self.pdf.set_title(f"Servicio {sanitize_pdf_text(record.get('code'))}")
        self.pdf.set_creator("Briolete")

        content_w = min(MAX_CONTENT_W, page_w - 2 * MIN_SIDE_MARGIN)
        self.left = (page_w - content_w) / 2.0
        self.right = self.left + content_w
        self.content_w = content_w

        self.fonts = FontManager(self.pdf, font_regular_path, font_bold_path)

    def _field(self, name: str) -> str:
        return sanitize_pdf_text(self.record.get(name))

    def _draw_block(
        self,
        x: float,
        top: float,
        text: str,
        width: float,
        size: float,
        color: Tuple[int, int, int] = COLOR_TEXT,
        bold: bool = False,
    ) -> float:
        line_h = self.fonts.line_height(size)
        lines = wrap_text(self.fonts, text, width, size, bold=bold)
        for i, line in enumerate(lines):
            if line:
                self.fonts.draw_text(x, top + i * line_h, line, size, color, bold=bold)
        return len(lines) * line_h

    def _rule(self, y: float) -> None:
        self.pdf.set_draw_color(*COLOR_RULE)
        self.pdf.set_line_width(RULE_WIDTH)
        self.pdf.line(self.left, y, self.right, y)

    def _logo_size(self) -> Optional[Tuple[float, float]]:
        if not self.logo_path or not os.path.exists(self.logo_path):
            logger.debug("Invoice logo not found at %s", self.logo_path)
            return None
        try:
            with Image.open(self.logo_path) as image:
                width, height = image.size
        except (OSError, ValueError) as exc:
            logger.warning("Could not read invoice logo %s: %s", self.logo_path, exc)
            return None
        if width <= 0 or height <= 0:
            return None
        return float(width), float(height)

    def _draw_logo(self, top: float) -> float:
        size = self._logo_size()
        if size is None:
            return 0.0

        company_x = self.right - COMPANY_INFO_OFFSET
        column_w = max(LOGO_MIN_COLUMN_W, company_x - LOGO_GUTTER - self.left)
        logo_w = min(LOGO_MAX_W, column_w)
        logo_h = logo_w / size[0] * size[1]
        logo_y = top + max(0.0, (COMPANY_BLOCK_H - logo_h) / 2.0)
        try:
            self.pdf.image(self.logo_path, x=self.left, y=logo_y, w=logo_w)
        except Exception as exc:
            logger.warning("Could not draw invoice logo %s: %s", self.logo_path, exc)
            return 0.0
        return logo_h

    def _draw_company_block(self, top: float) -> None:
        right = self.right - COMPANY_INFO_OFFSET + COMPANY_INFO_W
        self.fonts.draw_right(right, top, COMPANY_NAME, FONT_SIZE_COMPANY_NAME, COLOR_TEXT, bold=True)
        for offset, line in zip(COMPANY_LINE_OFFSETS, COMPANY_LINES):
            self.fonts.draw_right(right, top + offset, line, FONT_SIZE_COMPANY, COLOR_COMPANY)

    def _draw_grid_row(self, top: float, cells: Sequence[str], col_w: float) -> float:
        heights = []
        for index, text in enumerate(cells):
            x = self.left + index * (col_w + GRID_COL_GAP)
            heights.append(self._draw_block(x, top, text, col_w, FONT_SIZE_NORMAL))
        return max(heights)

    def _draw_details_grid(self, top: float) -> float:
        col_w = (self.content_w - GRID_COL_GAP * 2) / 3.0
        first_row = [
            f"Fecha: {sanitize_pdf_text(fmt_date(self.record.get('fecha')))}",
            f"Hora: {sanitize_pdf_text(fmt_time(self.record.get('hora')))}",
            f"Estado: {self._field('estado')}",
        ]
        second_row = [
            f"Cliente: {self._field('cliente')}",
            f"Teléfono: {self._field('telefono')}",
            f"Máquina: {self._field('maquina')}",
        ]
        # Second row starts below the tallest first-row cell.
        first_h = self._draw_grid_row(top, first_row, col_w)
        second_h = self._draw_grid_row(top + first_h + GRID_LINE_GAP, second_row, col_w)
        return first_h + GRID_LINE_GAP + second_h

    def _draw_payments(self, top: float) -> float:
        col_w = (self.content_w - GRID_COL_GAP * 2) / 3.0
        deposit = safe_float(self.record.get("abono"))
        total = safe_float(self.record.get("costo_final"))
        cells = [
            f"Abono: {fmt_cop(deposit)}",
            f"Costo final: {fmt_cop(total)}",
            f"Pago final: {fmt_cop(final_payment(self.record))}",
        ]
        return self._draw_grid_row(top, cells, col_w)

    def _draw_section(self, top: float, title: str, body: str, body_offset: float) -> float:
        """Draw a titled section and return the y where its body ends."""
        self.fonts.draw_text(self.left, top, title, FONT_SIZE_SECTION, COLOR_TEXT, bold=True)
        self._rule(top + SECTION_RULE_OFFSET)
        body_top = top + body_offset
        return body_top + self._draw_block(self.left, body_top, body, self.content_w, FONT_SIZE_NORMAL)

    def render(self) -> bytes:
        header_top = MARGIN_TOP
        logo_h = self._draw_logo(header_top)
        self._draw_company_block(header_top)

        header_h = max(COMPANY_BLOCK_H, logo_h)
        title_top = header_top + header_h + TITLE_GAP
        self.fonts.draw_text(
            self.left,
            title_top,
            f"Servicio: {self._field('code')}",
            FONT_SIZE_TITLE,
            COLOR_TEXT,
            bold=True,
        )
        title_rule_y = title_top + TITLE_RULE_OFFSET
        self._rule(title_rule_y)

        grid_top = title_rule_y + RULE_GAP
        grid_bottom = grid_top + self._draw_details_grid(grid_top) + RULE_GAP
        self._rule(grid_bottom)

        payments_top = grid_bottom + RULE_GAP
        payments_h = self._draw_payments(payments_top)

        description_top = payments_top + payments_h + PAYMENTS_GAP
        description_bottom = self._draw_section(
            description_top, "Descripción", self._field("descripcion"), SECTION_BODY_OFFSET
        )

        observations_top = description_bottom + SECTION_GAP
        observations_bottom = self._draw_section(
            observations_top, "Observaciones", self._field("material"), OBSERVATIONS_BODY_OFFSET
        )

        footer_top = observations_bottom + FOOTER_GAP
        self.fonts.draw_centered(
            self.left, self.content_w, footer_top, FOOTER_TEXT, FONT_SIZE_FOOTER, COLOR_FOOTER
        )

        self.layout = InvoiceLayout(
            header_height=header_h,
            title_top=title_top,
            grid_bottom=grid_bottom,
            description_top=description_top,
            description_bottom=description_bottom,
            observations_top=observations_top,
            observations_bottom=observations_bottom,
            footer_top=footer_top,
        )
        return bytes(self.pdf.output())


def render_service_invoice(
    record: Dict[str, Any],
    font_regular_path: str,
    font_bold_path: str,
    paper: str = DEFAULT_PAPER,
    logo_path: Optional[str] = None,
) -> bytes:
    return ServiceInvoiceRenderer(
        record,
        font_regular_path,
        font_bold_path,
        paper=paper,
        logo_path=logo_path,
    ).render()
