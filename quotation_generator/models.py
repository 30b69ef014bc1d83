"""Quotation document model and item editing operations."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import date
from typing import Any, Dict, List, Optional

from .config import DEFAULT_THEME_COLOR
from .formatting import safe_bool, safe_float

DEFAULT_TAX_RATE = 5.0
DEFAULT_NOTES = (
    "1. This quotation is valid for 14 days. Please sign and return to confirm the order.\n"
    "2. Payment: cash for first orders, otherwise net 30. Warranty: 1 year.\n"
    "3. Prices include delivery to the ground floor of the named site; carrying to upper floors is charged separately.\n"
    "4. Water, power and gas supply lines, fittings and switches are provided by the client up to each installation point."
)

EDITABLE_ITEM_FIELDS = ("name", "spec", "description", "quantity", "unit_price")


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


@dataclass
class CompanyInfo:
    name: str = ""
    address: str = ""
    phone: str = ""
    fax: str = ""
    email: str = ""
    tax_id: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "CompanyInfo":
        data = data or {}
        return cls(**{f.name: _text(data.get(f.name, "")) for f in fields(cls)})


@dataclass
class ClientInfo:
    name: str = ""
    contact: str = ""
    address: str = ""
    phone: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ClientInfo":
        data = data or {}
        return cls(**{f.name: _text(data.get(f.name, "")) for f in fields(cls)})


@dataclass
class QuoteDetails:
    number: str = ""
    date: str = ""
    tax_rate: float = DEFAULT_TAX_RATE

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "QuoteDetails":
        data = data or {}
        return cls(
            number=_text(data.get("number", "")),
            date=_text(data.get("date", "")),
            tax_rate=safe_float(data.get("tax_rate", DEFAULT_TAX_RATE), 0.0),
        )


@dataclass
class QuoteItem:
    """One line of the quotation.

    ``description`` is ``None`` when the row has no description block at all,
    which is rendered differently from an empty description.
    """

    id: int
    name: str = ""
    spec: str = ""
    description: Optional[str] = None
    quantity: float = 1.0
    unit_price: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any], fallback_id: int) -> "QuoteItem":
        raw_id = data.get("id")
        try:
            item_id = int(raw_id)
        except (TypeError, ValueError):
            item_id = fallback_id

        description = data.get("description")
        return cls(
            id=item_id,
            name=_text(data.get("name", "")),
            spec=_text(data.get("spec", "")),
            description=None if description is None else str(description),
            quantity=safe_float(data.get("quantity", 0), 0.0),
            unit_price=safe_float(data.get("unit_price", data.get("price", 0)), 0.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "spec": self.spec,
            "description": self.description,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
        }


@dataclass
class Quotation:
    file_name: str = ""
    company: CompanyInfo = field(default_factory=CompanyInfo)
    client: ClientInfo = field(default_factory=ClientInfo)
    details: QuoteDetails = field(default_factory=QuoteDetails)
    items: List[QuoteItem] = field(default_factory=list)
    theme_color: str = DEFAULT_THEME_COLOR
    logo: Optional[str] = None
    seal: Optional[str] = None
    sales_person: str = ""
    notes: str = DEFAULT_NOTES
    extra_note: str = ""
    discount: float = 0.0
    is_tax_inclusive: bool = False
    updated_at: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.items:
            self.items.append(QuoteItem(id=1))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Quotation":
        raw_items = data.get("items") or []
        items: List[QuoteItem] = []
        seen_ids = set()
        for raw in raw_items:
            if not isinstance(raw, dict):
                continue
            next_id = max(seen_ids, default=0) + 1
            item = QuoteItem.from_dict(raw, fallback_id=next_id)
            if item.id in seen_ids:
                item.id = next_id
            seen_ids.add(item.id)
            items.append(item)

        updated_at = data.get("updated_at")
        try:
            updated_at = int(updated_at) if updated_at is not None else None
        except (TypeError, ValueError):
            updated_at = None

        return cls(
            file_name=_text(data.get("file_name", "")),
            company=CompanyInfo.from_dict(data.get("company")),
            client=ClientInfo.from_dict(data.get("client")),
            details=QuoteDetails.from_dict(data.get("details")),
            items=items,
            theme_color=_text(data.get("theme_color") or DEFAULT_THEME_COLOR),
            logo=data.get("logo") or None,
            seal=data.get("seal") or None,
            sales_person=_text(data.get("sales_person", "")),
            notes=_text(data.get("notes", DEFAULT_NOTES)),
            extra_note=_text(data.get("extra_note", "")),
            discount=safe_float(data.get("discount", 0), 0.0),
            is_tax_inclusive=safe_bool(data.get("is_tax_inclusive", False)),
            updated_at=updated_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_name": self.file_name,
            "company": asdict(self.company),
            "client": asdict(self.client),
            "details": asdict(self.details),
            "items": [item.to_dict() for item in self.items],
            "theme_color": self.theme_color,
            "logo": self.logo,
            "seal": self.seal,
            "sales_person": self.sales_person,
            "notes": self.notes,
            "extra_note": self.extra_note,
            "discount": self.discount,
            "is_tax_inclusive": self.is_tax_inclusive,
            "updated_at": self.updated_at,
        }

    def _next_item_id(self) -> int:
        return max((item.id for item in self.items), default=0) + 1

    def _find_item(self, item_id: int) -> QuoteItem:
        for item in self.items:
            if item.id == item_id:
                return item
        raise KeyError(item_id)

    def add_item(self) -> QuoteItem:
        item = QuoteItem(id=self._next_item_id())
        self.items.append(item)
        return item

    def update_item(self, item_id: int, field_name: str, value: Any) -> QuoteItem:
        if field_name not in EDITABLE_ITEM_FIELDS:
            raise AttributeError(f"QuoteItem has no editable field {field_name!r}")
        item = self._find_item(item_id)
        if field_name in ("quantity", "unit_price"):
            value = safe_float(value, 0.0)
        elif field_name == "description":
            value = None if value is None else str(value)
        else:
            value = _text(value)
        setattr(item, field_name, value)
        return item

    def toggle_description(self, item_id: int) -> QuoteItem:
        item = self._find_item(item_id)
        item.description = "" if item.description is None else None
        return item

    def delete_item(self, item_id: int) -> bool:
        if len(self.items) <= 1:
            return False
        item = self._find_item(item_id)
        self.items.remove(item)
        return True

    def move_item(self, from_index: int, to_index: int) -> None:
        count = len(self.items)
        if not (0 <= from_index < count and 0 <= to_index < count):
            raise IndexError(f"move_item({from_index}, {to_index}) out of range for {count} items")
        item = self.items.pop(from_index)
        self.items.insert(to_index, item)

    def reset(self) -> None:
        # Company block, theme and terms survive; everything client-specific is cleared.
        self.file_name = ""
        self.items = [QuoteItem(id=self._next_item_id())]
        self.client = ClientInfo()
        self.discount = 0.0
        self.extra_note = ""
        self.updated_at = None


def default_quote_number(today: date) -> str:
    return f"Q-{today.year}{today.month:02d}001"


def new_quotation(today: Optional[date] = None, theme_color: Optional[str] = None) -> Quotation:
    today = today or date.today()
    return Quotation(
        details=QuoteDetails(
            number=default_quote_number(today),
            date=today.isoformat(),
            tax_rate=DEFAULT_TAX_RATE,
        ),
        theme_color=theme_color or DEFAULT_THEME_COLOR,
    )
