"""JSON layout preview for the quotation editor."""

from __future__ import annotations

from typing import Any, Dict, Optional, Union

from .calculator import summarize_quotation
from .formatting import export_file_name
from .metrics import row_height
from .models import Quotation
from .pagination import LayoutBudget, plan_pages


def build_preview(
    data: Union[Dict[str, Any], Quotation],
    budget: Optional[LayoutBudget] = None,
    company_tag: str = "",
) -> Dict[str, Any]:
    quotation = data if isinstance(data, Quotation) else Quotation.from_dict(data)
    budget = budget or LayoutBudget()
    pages = plan_pages(quotation.items, budget)
    summary = summarize_quotation(quotation)

    page_payloads = []
    for page in pages:
        rows = []
        for local_index, item in enumerate(page.items):
            amounts = summary.amounts_for(item)
            rows.append(
                {
                    "item_id": item.id,
                    "row_number": page.row_number(local_index),
                    "row_height": row_height(item, budget),
                    "effective_unit_price": amounts.effective_unit_price,
                    "row_amount": amounts.row_amount,
                }
            )
        page_payloads.append(
            {
                "page_number": page.page_number,
                "is_first_page": page.is_first_page,
                "is_last_page": page.is_last_page,
                "has_footer": page.has_footer,
                "rows": rows,
            }
        )

    return {
        "page_count": len(pages),
        "pages": page_payloads,
        "summary": {
            "subtotal": summary.subtotal,
            "discount": summary.discount,
            "taxable_amount": summary.taxable_amount,
            "tax_rate": summary.tax_rate,
            "tax_amount": summary.tax_amount,
            "total": summary.total,
            "is_tax_inclusive": summary.is_tax_inclusive,
        },
        "export_file_name": export_file_name(
            quotation.details.date,
            quotation.client.name,
            company_tag,
        ),
    }
