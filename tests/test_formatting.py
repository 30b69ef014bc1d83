import unittest

from quotation_generator.formatting import (
    DEFAULT_THEME_RGB,
    export_file_name,
    fmt_date,
    fmt_money,
    fmt_qty,
    parse_hex_color,
    safe_bool,
    safe_float,
    split_lines,
    wrap_text,
)


class FixedWidthFonts:
    def text_width(self, text: str, size: int, bold: bool = False) -> float:
        return len(text) * 5.0


class FormattingTests(unittest.TestCase):
    def test_fmt_date_normalises_valid_dates(self) -> None:
        self.assertEqual(fmt_date("2026/01/15"), "2026-01-15")
        self.assertEqual(fmt_date("Jan 15, 2026", "%Y/%m/%d"), "2026/01/15")

    def test_fmt_date_returns_original_for_invalid_input(self) -> None:
        raw = "not-a-date"
        self.assertEqual(fmt_date(raw), raw)

    def test_fmt_qty_handles_integer_and_float_values(self) -> None:
        self.assertEqual(fmt_qty(3), "3")
        self.assertEqual(fmt_qty(2.5), "2.5")

    def test_safe_float_uses_default_for_non_numeric_values(self) -> None:
        self.assertEqual(safe_float("abc", 7.5), 7.5)
        self.assertEqual(safe_float(None), 0.0)
        self.assertEqual(safe_float("nan", 1.0), 1.0)

    def test_safe_float_accepts_grouped_numbers(self) -> None:
        self.assertEqual(safe_float(" 12,500 "), 12500.0)

    def test_safe_bool_parses_strings_and_numbers(self) -> None:
        self.assertFalse(safe_bool("false"))
        self.assertFalse(safe_bool(" No "))
        self.assertTrue(safe_bool("TRUE"))
        self.assertTrue(safe_bool(1))
        self.assertFalse(safe_bool(0.0))
        self.assertTrue(safe_bool("maybe", True))
        self.assertFalse(safe_bool(None))

    def test_split_lines_ignores_blank_lines(self) -> None:
        self.assertEqual(split_lines("a\n\n b \n"), ["a", " b "])


class MoneyFormattingTests(unittest.TestCase):
    def test_groups_thousands_without_decimals(self) -> None:
        self.assertEqual(fmt_money(1234567), "NT$1,234,567")

    def test_rounds_half_away_from_zero(self) -> None:
        self.assertEqual(fmt_money(2.5), "NT$3")
        self.assertEqual(fmt_money(-2.5), "-NT$3")

    def test_sign_precedes_symbol(self) -> None:
        self.assertEqual(fmt_money(-1500), "-NT$1,500")

    def test_negative_zero_is_plain_zero(self) -> None:
        self.assertEqual(fmt_money(-0.4), "NT$0")

    def test_custom_symbol_and_decimals(self) -> None:
        self.assertEqual(fmt_money(1234.5, "$", 2), "$1,234.50")

    def test_non_numeric_amount_formats_as_zero(self) -> None:
        self.assertEqual(fmt_money("abc"), "NT$0")  # type: ignore[arg-type]

    def test_amounts_beyond_default_decimal_precision(self) -> None:
        self.assertEqual(fmt_money(1e30), f"NT${10 ** 30:,}")
        self.assertEqual(fmt_money(-1e30, "$", 2), f"-${10 ** 30:,}.00")


class ExportFileNameTests(unittest.TestCase):
    def test_uses_offset_year_tag_and_client(self) -> None:
        self.assertEqual(
            export_file_name("2024-10-24", "王小明", "ACME"),
            "1131024_ACME_王小明",
        )

    def test_blank_client_uses_placeholder(self) -> None:
        self.assertEqual(export_file_name("2024-01-05", "  ", "ACME"), "1130105_ACME_client")

    def test_blank_tag_is_omitted(self) -> None:
        self.assertEqual(export_file_name("2024-01-05", "Acme Ltd", ""), "1130105_Acme Ltd")

    def test_zero_offset_keeps_gregorian_year(self) -> None:
        self.assertEqual(export_file_name("2024-01-05", "Acme", "", year_offset=0), "20240105_Acme")

    def test_missing_or_invalid_date_falls_back(self) -> None:
        self.assertEqual(export_file_name("", "Acme", "ACME"), "quotation")
        self.assertEqual(export_file_name("24th of May", "Acme", "ACME"), "quotation")


class HexColorTests(unittest.TestCase):
    def test_parses_long_and_short_forms(self) -> None:
        self.assertEqual(parse_hex_color("#1f2937"), (31, 41, 55))
        self.assertEqual(parse_hex_color("fff"), (255, 255, 255))

    def test_invalid_values_use_default(self) -> None:
        self.assertEqual(parse_hex_color("#zzzzzz"), DEFAULT_THEME_RGB)
        self.assertEqual(parse_hex_color(""), DEFAULT_THEME_RGB)


class WrapTextTests(unittest.TestCase):
    def setUp(self) -> None:
        self.fonts = FixedWidthFonts()

    def test_wraps_on_word_boundaries(self) -> None:
        self.assertEqual(
            wrap_text(self.fonts, "aaaa bbbb cccc", 50, 10),
            ["aaaa bbbb", "cccc"],
        )

    def test_unspaced_text_breaks_per_character(self) -> None:
        self.assertEqual(
            wrap_text(self.fonts, "一二三四五六七", 25, 10),
            ["一二三四五", "六七"],
        )

    def test_long_word_after_short_word_is_chunked(self) -> None:
        self.assertEqual(
            wrap_text(self.fonts, "ab cdefghij", 25, 10),
            ["ab", "cdefg", "hij"],
        )

    def test_keeps_explicit_line_breaks(self) -> None:
        self.assertEqual(wrap_text(self.fonts, "a\nb", 100, 10), ["a", "b"])


if __name__ == "__main__":
    unittest.main()
