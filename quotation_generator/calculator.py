"""Quotation totals.

Rounding is part of the printed contract and must not change:

* in tax-inclusive mode the *unit price* is converted to its pre-tax value
  and rounded before it is multiplied by the quantity;
* tax is rounded once, on the discounted subtotal, never per row.

Rounding is half away from zero.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Optional, Sequence

from .models import Quotation, QuoteItem


def round_half_away(value: float) -> float:
    return float(Decimal(value).to_integral_value(rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class ItemAmounts:
    item_id: int
    effective_unit_price: float
    row_amount: float


@dataclass(frozen=True)
class FinancialSummary:
    subtotal: float
    discount: float
    taxable_amount: float
    tax_amount: float
    total: float
    tax_rate: float
    is_tax_inclusive: bool
    per_item: Dict[int, ItemAmounts] = field(default_factory=dict)

    def amounts_for(self, item: QuoteItem) -> ItemAmounts:
        return self.per_item[item.id]


def compute_summary(
    items: Sequence[QuoteItem],
    tax_rate: float,
    discount: Optional[float],
    is_tax_inclusive: bool,
) -> FinancialSummary:
    tax_factor = 1 + tax_rate / 100
    discount = discount or 0.0

    per_item: Dict[int, ItemAmounts] = {}
    subtotal = 0.0
    for item in items:
        if is_tax_inclusive:
            unit_price = round_half_away(item.unit_price / tax_factor) if tax_factor else 0.0
        else:
            unit_price = item.unit_price
        row_amount = unit_price * item.quantity
        per_item[item.id] = ItemAmounts(item.id, unit_price, row_amount)
        subtotal += row_amount

    taxable_amount = max(0.0, subtotal - discount)
    tax_amount = round_half_away(taxable_amount * tax_rate / 100)
    return FinancialSummary(
        subtotal=subtotal,
        discount=discount,
        taxable_amount=taxable_amount,
        tax_amount=tax_amount,
        total=taxable_amount + tax_amount,
        tax_rate=tax_rate,
        is_tax_inclusive=is_tax_inclusive,
        per_item=per_item,
    )


def summarize_quotation(quotation: Quotation) -> FinancialSummary:
    return compute_summary(
        quotation.items,
        quotation.details.tax_rate,
        quotation.discount,
        quotation.is_tax_inclusive,
    )
