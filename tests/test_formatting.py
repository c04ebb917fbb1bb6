import unittest

from briolete_services.formatting import (
    fmt_cop,
    fmt_date,
    fmt_time,
    normalize_time,
    safe_float,
    sanitize_pdf_text,
    wrap_text,
)


class FixedWidthFonts:
    """Every character is 5pt wide at any size."""

    def text_width(self, text: str, size: float, bold: bool = False) -> float:
        return 5.0 * len(text)


class FormattingTests(unittest.TestCase):
    def test_fmt_cop_groups_thousands_with_dots(self) -> None:
        self.assertEqual(fmt_cop(1250000), "$ 1.250.000")
        self.assertEqual(fmt_cop("80000"), "$ 80.000")
        self.assertEqual(fmt_cop(0), "$ 0")

    def test_fmt_cop_rounds_and_signs(self) -> None:
        self.assertEqual(fmt_cop(999.6), "$ 1.000")
        self.assertEqual(fmt_cop(-20000), "-$ 20.000")
        self.assertEqual(fmt_cop("abc"), "$ 0")

    def test_fmt_date_formats_valid_dates(self) -> None:
        self.assertEqual(fmt_date("2024-01-15"), "15-01-2024")
        self.assertEqual(fmt_date("2024-01-15T13:00:00+00:00"), "15-01-2024")

    def test_fmt_date_returns_original_for_invalid_input(self) -> None:
        raw = "not-a-date"
        self.assertEqual(fmt_date(raw), raw)
        self.assertEqual(fmt_date(None), "")

    def test_time_helpers(self) -> None:
        self.assertEqual(fmt_time("13:00:00"), "13:00")
        self.assertEqual(normalize_time("13:00"), "13:00:00")
        self.assertEqual(normalize_time("07:05:09"), "07:05:09")
        self.assertEqual(normalize_time(""), "")

    def test_safe_float_uses_default_for_non_numeric_values(self) -> None:
        self.assertEqual(safe_float("abc", 7.5), 7.5)
        self.assertEqual(safe_float(float("nan"), 1.0), 1.0)

    def test_sanitize_pdf_text_removes_control_characters(self) -> None:
        raw = "Anillo\r\nTalla 7\tdorado\x00\x07\u2028fin  \n"
        self.assertEqual(sanitize_pdf_text(raw), "Anillo\nTalla 7 dorado\nfin")
        self.assertEqual(sanitize_pdf_text(None), "")


class WrapTextTests(unittest.TestCase):
    def setUp(self) -> None:
        self.fonts = FixedWidthFonts()

    def test_wraps_on_word_boundaries(self) -> None:
        lines = wrap_text(self.fonts, "uno dos tres cuatro", max_width=40, font_size=10)
        self.assertEqual(lines, ["uno dos", "tres", "cuatro"])

    def test_keeps_paragraph_breaks(self) -> None:
        lines = wrap_text(self.fonts, "a\n\nb", max_width=100, font_size=10)
        self.assertEqual(lines, ["a", "", "b"])

    def test_splits_words_longer_than_the_line(self) -> None:
        lines = wrap_text(self.fonts, "x" * 25, max_width=50, font_size=10)
        self.assertEqual(lines, ["x" * 10, "x" * 10, "x" * 5])
        for line in lines:
            self.assertLessEqual(self.fonts.text_width(line, 10), 50)

    def test_empty_text_yields_one_blank_line(self) -> None:
        self.assertEqual(wrap_text(self.fonts, "", max_width=50, font_size=10), [""])


if __name__ == "__main__":
    unittest.main()
