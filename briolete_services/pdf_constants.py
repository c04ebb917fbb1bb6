"""Invoice page geometry, colors and static company text (points, top-left origin)."""

from __future__ import annotations

PAPER_SIZES = {
    "letter": (612.0, 792.0),
    "a4": (595.28, 841.89),
}
DEFAULT_PAPER = "letter"

MARGIN_TOP = 36.0
MAX_CONTENT_W = 520.0
# Roughly 72pt per side keeps the block centered whatever margins the printer adds.
MIN_SIDE_MARGIN = 72.0

LINE_SPACING = 1.2
ASCENT_RATIO = 0.8

COMPANY_INFO_W = 190.0
COMPANY_INFO_OFFSET = 200.0
COMPANY_LINE_OFFSETS = (15.0, 28.0, 41.0, 54.0)
COMPANY_BLOCK_H = 54.0 + 10.0

LOGO_MAX_W = 220.0
LOGO_MIN_COLUMN_W = 120.0
LOGO_GUTTER = 20.0

TITLE_GAP = 18.0
TITLE_RULE_OFFSET = 22.0
RULE_GAP = 10.0

GRID_COL_GAP = 14.0
GRID_LINE_GAP = 6.0
PAYMENTS_GAP = 14.0

SECTION_RULE_OFFSET = 18.0
SECTION_BODY_OFFSET = 28.0
OBSERVATIONS_BODY_OFFSET = 30.0
SECTION_GAP = 18.0
FOOTER_GAP = 24.0

FONT_SIZE_COMPANY_NAME = 12
FONT_SIZE_COMPANY = 9
FONT_SIZE_TITLE = 16
FONT_SIZE_SECTION = 11
FONT_SIZE_NORMAL = 10
FONT_SIZE_FOOTER = 8

COLOR_TEXT = (17, 17, 17)           # #111111
COLOR_COMPANY = (51, 51, 51)        # #333333
COLOR_FOOTER = (68, 68, 68)         # #444444
COLOR_RULE = (17, 17, 17)           # #111111
RULE_WIDTH = 1.0

COMPANY_NAME = "Joyeria Briolete"
COMPANY_LINES = (
    "Dirección: Cra 45c # 38b sur - 64",
    "Envigado (Antioquia) Colombia",
    "Barrio Alcalá",
    "@joyeriabriolete",
)
FOOTER_TEXT = "Generado por Briolete · Sistema de Servicios"
