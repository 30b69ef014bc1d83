"""Font discovery and text drawing helpers."""

from __future__ import annotations

import os
import threading
from typing import List, Optional, Tuple

from fpdf import FPDF

_PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def find_font_path(env_var: str, candidates: List[str]) -> Optional[str]:
    override = os.getenv(env_var)
    if override and os.path.exists(override):
        return override

    for path in candidates:
        if os.path.exists(path):
            return path
    return None


FONT_INIT_LOCK = threading.Lock()


class FontManager:
    FAMILY = "QuotationFont"
    BUNDLED_REGULAR = os.path.join(_PROJECT_ROOT, "fonts", "NotoSansTC-Regular.ttf")
    BUNDLED_BOLD = os.path.join(_PROJECT_ROOT, "fonts", "NotoSansTC-Bold.ttf")
    # CJK-capable faces first; DejaVu still covers Latin-only quotations.
    SYSTEM_REGULAR_CANDIDATES = [
        "/usr/share/fonts/truetype/noto/NotoSansTC-Regular.ttf",
        "/usr/share/fonts/opentype/noto/NotoSansCJK-Regular.ttc",
        "/usr/share/fonts/noto-cjk/NotoSansCJK-Regular.ttc",
        "/usr/share/fonts/truetype/wqy/wqy-microhei.ttc",
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
        "/usr/share/fonts/dejavu/DejaVuSans.ttf",
        "/Library/Fonts/Arial Unicode.ttf",
        "/Library/Fonts/DejaVuSans.ttf",
    ]
    SYSTEM_BOLD_CANDIDATES = [
        "/usr/share/fonts/truetype/noto/NotoSansTC-Bold.ttf",
        "/usr/share/fonts/opentype/noto/NotoSansCJK-Bold.ttc",
        "/usr/share/fonts/noto-cjk/NotoSansCJK-Bold.ttc",
        "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
        "/usr/share/fonts/dejavu/DejaVuSans-Bold.ttf",
        "/Library/Fonts/DejaVuSans-Bold.ttf",
    ]

    def __init__(self, pdf: FPDF) -> None:
        self.pdf = pdf
        self.family = self.FAMILY
        self.has_bold = False

        regular_path = find_font_path(
            "QUOTATION_FONT_PATH",
            [self.BUNDLED_REGULAR, *self.SYSTEM_REGULAR_CANDIDATES],
        )
        if not regular_path:
            raise RuntimeError(
                "Unicode font not found. Set QUOTATION_FONT_PATH to a valid TTF/TTC file."
            )

        bold_path = find_font_path(
            "QUOTATION_FONT_BOLD_PATH",
            [self.BUNDLED_BOLD, *self.SYSTEM_BOLD_CANDIDATES],
        )

        with FONT_INIT_LOCK:
            self.pdf.add_font(self.FAMILY, "", regular_path)
            if bold_path:
                self.pdf.add_font(self.FAMILY, "B", bold_path)
                self.has_bold = True

    def _style(self, bold: bool) -> str:
        return "B" if bold and self.has_bold else ""

    def text_width(self, text: str, size: int, bold: bool = False) -> float:
        self.pdf.set_font(self.family, self._style(bold), size)
        return self.pdf.get_string_width(text)

    def draw_text(
        self,
        x: float,
        y: float,
        text: str,
        size: int,
        color: Tuple[int, int, int],
        bold: bool = False,
    ) -> None:
        if not text:
            return
        self.pdf.set_text_color(*color)
        self.pdf.set_font(self.family, self._style(bold), size)
        if bold and not self.has_bold:
            self.pdf.text(x, y, text)
            self.pdf.text(x + 0.4, y, text)
        else:
            self.pdf.text(x, y, text)

    def draw_right(
        self,
        right: float,
        y: float,
        text: str,
        size: int,
        color: Tuple[int, int, int],
        bold: bool = False,
    ) -> None:
        self.draw_text(right - self.text_width(text, size, bold=bold), y, text, size, color, bold=bold)

    def draw_centered(
        self,
        center: float,
        y: float,
        text: str,
        size: int,
        color: Tuple[int, int, int],
        bold: bool = False,
    ) -> None:
        self.draw_text(center - self.text_width(text, size, bold=bold) / 2.0, y, text, size, color, bold=bold)
