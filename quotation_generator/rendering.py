"""Quotation PDF rendering logic."""

from __future__ import annotations

import io
import logging
from typing import Any, Dict, List, Optional, Tuple, Union

from fpdf import FPDF

from .calculator import FinancialSummary, summarize_quotation
from .fonts import FontManager
from .formatting import fmt_date, fmt_money, fmt_qty, parse_hex_color, split_lines, wrap_text
from .images import ImageError, decode_data_url
from .metrics import row_height
from .models import Quotation, QuoteItem
from .pagination import LayoutBudget, Page, plan_pages

logger = logging.getLogger(__name__)

# Layout budgets are in CSS pixels at 96 DPI; the PDF is drawn in points.
PX = 0.75

PAGE_W = 595.28
PAGE_H = 841.89
MARGIN = 22.7  # 8 mm
CONTENT_W = PAGE_W - 2 * MARGIN

# Column share of the table width: #, name, spec, quantity, unit price, amount.
COLUMN_SHARES = (0.05, 0.42, 0.21, 0.08, 0.12, 0.12)
CELL_PAD = 4.0

BAR_H = 20.0
BAR_RADIUS = 1.5
LOGO_MAX_H = 72.0
SEAL_MAX_H = 110.0
SEAL_W = 110.0
TOTALS_W = 190.0
SIGNATURE_W = 180.0

FONT_SIZE_TITLE = 30
FONT_SIZE_COMPANY = 18
FONT_SIZE_CLIENT = 13
FONT_SIZE_TOTAL = 14
FONT_SIZE_NORMAL = 10
FONT_SIZE_SMALL = 8

COLOR_TEXT = (0, 0, 0)
COLOR_MUTED = (75, 85, 99)
COLOR_FAINT = (107, 114, 128)
COLOR_RULE = (229, 231, 235)
COLOR_DISCOUNT = (220, 38, 38)
COLOR_BAR_TEXT = (255, 255, 255)

TITLE = "QUOTATION"
COLUMN_LABELS = ("#", "Item", "Spec", "Qty", "Unit price", "Amount")


def _column_edges() -> List[float]:
    edges = [MARGIN]
    for share in COLUMN_SHARES:
        edges.append(edges[-1] + CONTENT_W * share)
    return edges


class QuotationRenderer:
    def __init__(
        self,
        data: Union[Dict[str, Any], Quotation],
        budget: Optional[LayoutBudget] = None,
    ) -> None:
        self.quotation = data if isinstance(data, Quotation) else Quotation.from_dict(data)
        self.budget = budget or LayoutBudget()
        self.pdf = FPDF(unit="pt", format="A4")
        self.pdf.set_auto_page_break(False)
        self.pdf.set_margins(MARGIN, MARGIN, MARGIN)

        self.fonts = FontManager(self.pdf)
        self.theme = parse_hex_color(self.quotation.theme_color)
        self.edges = _column_edges()
        self.pages: List[Page] = plan_pages(self.quotation.items, self.budget)
        self.summary: FinancialSummary = summarize_quotation(self.quotation)

    def _image(self, data_url: Optional[str], x: float, y: float, w: float = 0, h: float = 0) -> bool:
        if not data_url:
            return False
        try:
            blob = decode_data_url(data_url)
            self.pdf.image(io.BytesIO(blob), x=x, y=y, w=w, h=h, keep_aspect_ratio=bool(w and h))
        except (ImageError, RuntimeError, ValueError, OSError) as exc:
            logger.warning("Skipping unreadable image on quotation %r: %s", self.quotation.file_name, exc)
            return False
        return True

    def _draw_header_full(self) -> float:
        company = self.quotation.company
        details = self.quotation.details
        y = MARGIN

        text_x = MARGIN
        if self._image(self.quotation.logo, MARGIN, y, w=LOGO_MAX_H, h=LOGO_MAX_H):
            text_x = MARGIN + LOGO_MAX_H + 12

        self.fonts.draw_text(text_x, y + 20, company.name, FONT_SIZE_COMPANY, COLOR_TEXT, bold=True)
        lines = [
            f"Address: {company.address}",
            f"Tel: {company.phone}    Fax: {company.fax}",
            f"Email: {company.email}",
            f"Tax ID: {company.tax_id}",
        ]
        line_y = y + 40
        for line in lines:
            self.fonts.draw_text(text_x, line_y, line, FONT_SIZE_NORMAL, COLOR_MUTED)
            line_y += 13

        right = PAGE_W - MARGIN
        self.fonts.draw_right(right, y + 30, TITLE, FONT_SIZE_TITLE, COLOR_TEXT, bold=True)
        self.fonts.draw_right(right - 120, y + 62, "No.:", FONT_SIZE_NORMAL, COLOR_MUTED, bold=True)
        self.fonts.draw_right(right, y + 62, details.number, FONT_SIZE_NORMAL, COLOR_TEXT)
        self.fonts.draw_right(right - 120, y + 78, "Date:", FONT_SIZE_NORMAL, COLOR_MUTED, bold=True)
        self.fonts.draw_right(right, y + 78, fmt_date(details.date), FONT_SIZE_NORMAL, COLOR_TEXT)

        rule_y = max(line_y, y + LOGO_MAX_H) + 4
        self.pdf.set_draw_color(*COLOR_TEXT)
        self.pdf.set_line_width(1.5)
        self.pdf.line(MARGIN, rule_y, PAGE_W - MARGIN, rule_y)

        client = self.quotation.client
        label_y = rule_y + 16
        columns = (
            (MARGIN, "Client", client.name, FONT_SIZE_CLIENT, True),
            (MARGIN + CONTENT_W * 0.45, "Phone", client.phone, FONT_SIZE_NORMAL, False),
            (MARGIN + CONTENT_W * 0.65, "Address", client.address, FONT_SIZE_NORMAL, False),
        )
        for x, label, value, size, bold in columns:
            self.fonts.draw_text(x, label_y, label, FONT_SIZE_SMALL, COLOR_FAINT)
            for offset, line in enumerate(split_lines(value)[:2]):
                self.fonts.draw_text(x, label_y + 16 + offset * 14, line, size, COLOR_TEXT, bold=bold)

        return MARGIN + self.budget.first_page_header_height * PX - BAR_H

    def _draw_continuation_header(self, page: Page) -> float:
        label = f"{self.quotation.details.number}  ({page.page_number}/{len(self.pages)})"
        self.fonts.draw_text(MARGIN, MARGIN + 10, label, FONT_SIZE_SMALL, COLOR_FAINT)
        return MARGIN + self.budget.continuation_header_height * PX - BAR_H

    def _draw_table_header(self, bar_y: float) -> float:
        self.pdf.set_fill_color(*self.theme)
        self.pdf.rect(MARGIN, bar_y, CONTENT_W, BAR_H, style="F", round_corners=True, corner_radius=BAR_RADIUS)
        text_y = bar_y + BAR_H / 2 + 4
        for index, label in enumerate(COLUMN_LABELS):
            left, right = self.edges[index], self.edges[index + 1]
            if index in (1, 2):
                self.fonts.draw_text(left + CELL_PAD, text_y, label, FONT_SIZE_NORMAL, COLOR_BAR_TEXT, bold=True)
            else:
                self.fonts.draw_centered((left + right) / 2, text_y, label, FONT_SIZE_NORMAL, COLOR_BAR_TEXT, bold=True)
        return bar_y + BAR_H

    def _cell_width(self, column: int) -> float:
        return self.edges[column + 1] - self.edges[column] - 2 * CELL_PAD

    def _draw_item(self, item: QuoteItem, number: int, y: float) -> float:
        line_h = self.budget.row_line_height * PX
        baseline = y + 16
        amounts = self.summary.amounts_for(item)

        self.fonts.draw_centered((self.edges[0] + self.edges[1]) / 2, baseline, str(number), FONT_SIZE_NORMAL, COLOR_FAINT)

        name_x = self.edges[1] + CELL_PAD
        line_y = baseline
        for line in wrap_text(self.fonts, item.name, self._cell_width(1), FONT_SIZE_NORMAL + 1, bold=True):
            self.fonts.draw_text(name_x, line_y, line, FONT_SIZE_NORMAL + 1, COLOR_TEXT, bold=True)
            line_y += line_h
        if item.description is not None:
            for line in wrap_text(self.fonts, item.description, self._cell_width(1), FONT_SIZE_SMALL + 1):
                self.fonts.draw_text(name_x, line_y, line, FONT_SIZE_SMALL + 1, COLOR_FAINT)
                line_y += line_h

        spec_y = baseline
        for line in wrap_text(self.fonts, item.spec, self._cell_width(2), FONT_SIZE_NORMAL):
            self.fonts.draw_text(self.edges[2] + CELL_PAD, spec_y, line, FONT_SIZE_NORMAL, COLOR_TEXT)
            spec_y += line_h

        self.fonts.draw_centered((self.edges[3] + self.edges[4]) / 2, baseline, fmt_qty(item.quantity), FONT_SIZE_NORMAL, COLOR_TEXT)
        self.fonts.draw_right(self.edges[5] - CELL_PAD, baseline, fmt_money(item.unit_price), FONT_SIZE_NORMAL, COLOR_TEXT)
        self.fonts.draw_right(self.edges[6] - CELL_PAD, baseline, fmt_money(amounts.row_amount), FONT_SIZE_NORMAL, COLOR_TEXT, bold=True)

        bottom = y + row_height(item, self.budget) * PX
        self.pdf.set_draw_color(*COLOR_RULE)
        self.pdf.set_line_width(0.5)
        self.pdf.line(MARGIN, bottom, PAGE_W - MARGIN, bottom)
        return bottom

    def _draw_totals(self, x: float, y: float) -> None:
        summary = self.summary
        right = x + TOTALS_W
        rows: List[Tuple[str, str, Tuple[int, int, int], bool]] = [
            ("Subtotal", fmt_money(summary.subtotal), COLOR_MUTED, False),
        ]
        if summary.discount:
            rows.append(("Discount", f"-{fmt_money(summary.discount)}", COLOR_DISCOUNT, True))
        rows.append((f"Tax ({fmt_qty(summary.tax_rate)}%)", fmt_money(summary.tax_amount), COLOR_MUTED, False))

        row_y = y + 14
        for label, value, color, bold in rows:
            self.fonts.draw_text(x, row_y, label, FONT_SIZE_NORMAL, color)
            self.fonts.draw_right(right, row_y, value, FONT_SIZE_NORMAL, color, bold=bold)
            row_y += 18

        self.pdf.set_draw_color(*COLOR_TEXT)
        self.pdf.set_line_width(1.5)
        self.pdf.line(x, row_y - 6, right, row_y - 6)
        self.fonts.draw_text(x, row_y + 14, "Total", FONT_SIZE_TOTAL, COLOR_TEXT, bold=True)
        self.fonts.draw_right(right, row_y + 14, fmt_money(summary.total), FONT_SIZE_TOTAL, COLOR_TEXT, bold=True)

    def _draw_footer(self, y: float) -> None:
        top = y + 8
        totals_x = PAGE_W - MARGIN - TOTALS_W
        seal_x = totals_x - SEAL_W - 12
        note_w = seal_x - MARGIN - 12

        note_y = top + 12
        for line in wrap_text(self.fonts, self.quotation.extra_note, note_w, FONT_SIZE_NORMAL)[:9]:
            self.fonts.draw_text(MARGIN, note_y, line, FONT_SIZE_NORMAL, COLOR_TEXT)
            note_y += 13
        self._image(self.quotation.seal, seal_x, top, w=SEAL_W, h=SEAL_MAX_H)
        self._draw_totals(totals_x, top)

        terms_top = top + SEAL_MAX_H + 14
        self.pdf.set_draw_color(*COLOR_RULE)
        self.pdf.set_line_width(1.5)
        self.pdf.line(MARGIN, terms_top, PAGE_W - MARGIN, terms_top)

        terms_w = CONTENT_W - SIGNATURE_W - 24
        self.fonts.draw_text(MARGIN, terms_top + 18, "Terms & Notes:", FONT_SIZE_NORMAL + 1, COLOR_MUTED, bold=True)
        terms_y = terms_top + 34
        for line in wrap_text(self.fonts, self.quotation.notes, terms_w, FONT_SIZE_NORMAL):
            self.fonts.draw_text(MARGIN, terms_y, line, FONT_SIZE_NORMAL, COLOR_MUTED)
            terms_y += 14

        sig_x = PAGE_W - MARGIN - SIGNATURE_W
        sig_center = sig_x + SIGNATURE_W / 2
        self.pdf.set_draw_color(*COLOR_TEXT)
        self.pdf.set_line_width(0.75)
        self.pdf.line(sig_x, terms_top + 48, sig_x + SIGNATURE_W, terms_top + 48)
        self.fonts.draw_centered(sig_center, terms_top + 62, "Client signature", FONT_SIZE_NORMAL, COLOR_TEXT)
        self.fonts.draw_centered(sig_center, terms_top + 100, self.quotation.sales_person, FONT_SIZE_CLIENT, COLOR_TEXT, bold=True)
        self.pdf.line(sig_x, terms_top + 108, sig_x + SIGNATURE_W, terms_top + 108)
        self.fonts.draw_centered(sig_center, terms_top + 122, "Sales representative", FONT_SIZE_NORMAL, COLOR_TEXT)

    def _draw_page_number(self, page: Page) -> None:
        label = f"Page {page.page_number} / {len(self.pages)}"
        self.fonts.draw_centered(PAGE_W / 2, PAGE_H - MARGIN / 2, label, FONT_SIZE_SMALL, COLOR_FAINT)

    def render(self) -> bytes:
        for page in self.pages:
            self.pdf.add_page()
            if page.is_first_page:
                bar_y = self._draw_header_full()
            else:
                bar_y = self._draw_continuation_header(page)
            y = self._draw_table_header(bar_y)

            for local_index, item in enumerate(page.items):
                y = self._draw_item(item, page.row_number(local_index), y)

            if page.has_footer:
                self._draw_footer(y)
            self._draw_page_number(page)

        return bytes(self.pdf.output())


def render_quotation(data: Dict[str, Any]) -> bytes:
    return QuotationRenderer(data, LayoutBudget.from_env()).render()
