"""Formatting, parsing and text-wrapping helpers."""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Any, List, Protocol, Tuple

from dateutil import parser as dateutil_parser

DEFAULT_CURRENCY_SYMBOL = "NT$"
DEFAULT_THEME_RGB = (31, 41, 55)
FALLBACK_FILE_NAME = "quotation"
CLIENT_PLACEHOLDER = "client"
TRUE_STRINGS = ("1", "true", "yes", "on")
FALSE_STRINGS = ("0", "false", "no", "off", "")


class TextWidthProvider(Protocol):
    def text_width(self, text: str, size: int, bold: bool = False) -> float:
        ...


def fmt_money(amount: float, symbol: str = DEFAULT_CURRENCY_SYMBOL, decimals: int = 0) -> str:
    try:
        value = Decimal(str(float(amount)))
    except (TypeError, ValueError):
        return f"{symbol}0"
    if not value.is_finite():
        return f"{symbol}0"
    quantum = Decimal(1).scaleb(-decimals)
    with localcontext() as ctx:
        # quantize fails once the result has more digits than the context precision.
        ctx.prec = max(ctx.prec, value.adjusted() + decimals + 2)
        rounded = value.quantize(quantum, rounding=ROUND_HALF_UP)
        sign = "-" if rounded < 0 else ""
        return f"{sign}{symbol}{abs(rounded):,.{decimals}f}"


def fmt_qty(qty: Any) -> str:
    try:
        quantity = float(qty)
        if quantity.is_integer():
            return str(int(quantity))
        return str(quantity)
    except Exception:
        return str(qty)


def safe_float(value: Any, default: float = 0.0) -> float:
    if isinstance(value, str):
        value = value.strip().replace(",", "")
    try:
        result = float(value)
    except Exception:
        return default
    return result if math.isfinite(result) else default


def safe_bool(value: Any, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in TRUE_STRINGS:
            return True
        if text in FALSE_STRINGS:
            return False
        return default
    if isinstance(value, (int, float)):
        return value != 0 if math.isfinite(value) else default
    return default


def fmt_date(raw: str, fmt: str = "%Y-%m-%d") -> str:
    """Parse a date string and return it in ``fmt``; unparsable input is returned as-is."""
    raw = raw.strip()
    if not raw:
        return raw
    try:
        dt = dateutil_parser.parse(raw)
        return dt.strftime(fmt)
    except (ValueError, OverflowError):
        return raw


def export_file_name(
    date_str: str,
    client_name: str,
    company_tag: str,
    year_offset: int = 1911,
) -> str:
    """Build the export/print name ``{year - offset}{MM}{DD}_{tag}_{client}``.

    The default offset gives the Minguo calendar year used on the printed
    document title.
    """
    date_str = (date_str or "").strip()
    if not date_str:
        return FALLBACK_FILE_NAME
    try:
        dt = dateutil_parser.isoparse(date_str)
    except (ValueError, OverflowError):
        return FALLBACK_FILE_NAME

    client = (client_name or "").strip() or CLIENT_PLACEHOLDER
    parts = [f"{dt.year - year_offset}{dt.month:02d}{dt.day:02d}"]
    if company_tag.strip():
        parts.append(company_tag.strip())
    parts.append(client)
    return "_".join(parts)


def parse_hex_color(value: str) -> Tuple[int, int, int]:
    raw = (value or "").strip().lstrip("#")
    if len(raw) == 3:
        raw = "".join(ch * 2 for ch in raw)
    if len(raw) != 6:
        return DEFAULT_THEME_RGB
    try:
        return (int(raw[0:2], 16), int(raw[2:4], 16), int(raw[4:6], 16))
    except ValueError:
        return DEFAULT_THEME_RGB


def split_lines(text: str) -> List[str]:
    if not text:
        return []
    return [line for line in text.split("\n") if line.strip() != ""]


def wrap_text(
    fonts_obj: TextWidthProvider,
    text: str,
    max_width: float,
    font_size: int,
    bold: bool = False,
) -> List[str]:
    def line_width(value: str) -> float:
        return fonts_obj.text_width(value, font_size, bold=bold)

    def wrap_paragraph(paragraph: str) -> List[str]:
        words = paragraph.split()
        if not words:
            return [paragraph]

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

            # Unspaced scripts (CJK) and very long tokens break per character.
            for char in word:
                candidate_chunk = current + char
                if current and line_width(candidate_chunk) > max_width:
                    lines.append(current)
                    current = char
                else:
                    current = candidate_chunk

        if current:
            lines.append(current)
        return lines

    result: List[str] = []
    for paragraph in text.split("\n"):
        result.extend(wrap_paragraph(paragraph))
    return result if result else [text]
