"""Quotation layout, totals and PDF rendering."""

from __future__ import annotations

from typing import Any, Dict

from .calculator import FinancialSummary, compute_summary
from .metrics import estimate_lines
from .models import Quotation, QuoteItem, new_quotation
from .pagination import LayoutBudget, Page, plan_pages, row_number


def render_quotation(data: Dict[str, Any]) -> bytes:
    from .rendering import render_quotation as _render_quotation

    return _render_quotation(data)


def run(host: str = "0.0.0.0", port: int = 8080) -> None:
    from .server import run as _run

    _run(host, port)


__all__ = [
    "FinancialSummary",
    "LayoutBudget",
    "Page",
    "Quotation",
    "QuoteItem",
    "compute_summary",
    "estimate_lines",
    "new_quotation",
    "plan_pages",
    "render_quotation",
    "row_number",
    "run",
]
