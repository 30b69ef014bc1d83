"""Split the item table across fixed-height pages.

Items are placed greedily in canonical order; a row is never split and the
footer block (notes, signature, totals) always follows the last item.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from typing import Iterable, List, Optional, Sequence

from .metrics import LineEstimator, row_height
from .models import QuoteItem


@dataclass(frozen=True)
class LayoutBudget:
    """Page geometry in approximate pixels at 96 DPI (A4 = 794 x 1123)."""

    content_height: float = 1060
    first_page_header_height: float = 330
    continuation_header_height: float = 60
    footer_height: float = 420
    row_base_height: float = 45
    row_line_height: float = 24
    bottom_spacer: float = 20
    name_chars_per_line: int = 22
    description_chars_per_line: int = 35
    spec_chars_per_line: int = 15

    @property
    def limit(self) -> float:
        return self.content_height - self.bottom_spacer

    @classmethod
    def from_env(cls, prefix: str = "QUOTATION_LAYOUT_") -> "LayoutBudget":
        overrides = {}
        for budget_field in fields(cls):
            raw = os.getenv(prefix + budget_field.name.upper())
            if raw is None:
                continue
            cast = int if budget_field.type in (int, "int") else float
            try:
                value = cast(raw)
            except ValueError:
                continue
            if value >= 0:
                overrides[budget_field.name] = value
        return cls(**overrides)


@dataclass
class Page:
    items: List[QuoteItem] = field(default_factory=list)
    page_number: int = 1
    is_first_page: bool = False
    is_last_page: bool = False
    first_row_number: int = 1

    @property
    def has_footer(self) -> bool:
        return self.is_last_page

    def row_number(self, local_index: int) -> int:
        return self.first_row_number + local_index


def plan_pages(
    items: Sequence[QuoteItem],
    budget: Optional[LayoutBudget] = None,
    estimator: Optional[LineEstimator] = None,
) -> List[Page]:
    budget = budget or LayoutBudget()
    limit = budget.limit
    chunks: List[List[QuoteItem]] = []
    current: List[QuoteItem] = []
    height = budget.first_page_header_height
    last_index = len(items) - 1

    for index, item in enumerate(items):
        item_height = row_height(item, budget, estimator)

        if index < last_index:
            if height + item_height > limit:
                chunks.append(current)
                current = [item]
                height = budget.continuation_header_height + item_height
            else:
                current.append(item)
                height += item_height
            continue

        if height + item_height + budget.footer_height > budget.content_height:
            if height + item_height < limit:
                # Row fits but the footer does not: footer moves to a page of its own.
                current.append(item)
                chunks.append(current)
                current = []
            else:
                chunks.append(current)
                current = [item]
        else:
            current.append(item)

    chunks.append(current)
    return _number_pages(chunks)


def _number_pages(chunks: List[List[QuoteItem]]) -> List[Page]:
    pages: List[Page] = []
    next_row = 1
    for index, chunk in enumerate(chunks):
        pages.append(
            Page(
                items=chunk,
                page_number=index + 1,
                is_first_page=index == 0,
                is_last_page=index == len(chunks) - 1,
                first_row_number=next_row,
            )
        )
        next_row += len(chunk)
    return pages


def row_number(pages: Sequence[Page], page_index: int, local_index: int) -> int:
    """Global 1-based row number for the ``local_index``-th row of a page."""
    return sum(len(page.items) for page in pages[:page_index]) + local_index + 1


def flatten(pages: Iterable[Page]) -> List[QuoteItem]:
    return [item for page in pages for item in page.items]


def estimate_page_count(
    items: Sequence[QuoteItem],
    budget: Optional[LayoutBudget] = None,
    estimator: Optional[LineEstimator] = None,
) -> int:
    return len(plan_pages(items, budget, estimator))
