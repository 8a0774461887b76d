"""
Typed shapes passed between the billing services and their callers.

Line items and plan payments live in JSON columns; they are converted to and
from these dataclasses at the model boundary so nothing above the repository
handles raw JSON.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

from .utils import ZERO, round_money, to_decimal


class DiscountType(str, Enum):
    PERCENTAGE = 'percentage'
    FIXED = 'fixed'


class DeleteAction(str, Enum):
    DELETED = 'deleted'
    VOIDED = 'voided'


def _optional_decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == '':
        return None
    return to_decimal(value)


def _decimal_str(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)


@dataclass
class LineItem:
    description: str
    quantity: Decimal = Decimal('1')
    rate: Decimal = ZERO
    amount: Optional[Decimal] = None
    tax_rate: Optional[Decimal] = None
    discount_type: Optional[str] = None
    discount_value: Optional[Decimal] = None

    def __post_init__(self):
        self.quantity = to_decimal(self.quantity, Decimal('1'))
        self.rate = to_decimal(self.rate)
        if self.amount is None:
            self.amount = round_money(self.quantity * self.rate)
        else:
            self.amount = to_decimal(self.amount)
        self.tax_rate = _optional_decimal(self.tax_rate)
        self.discount_value = _optional_decimal(self.discount_value)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LineItem':
        return cls(
            description=data.get('description', ''),
            quantity=data.get('quantity', 1),
            rate=data.get('rate', 0),
            amount=data.get('amount'),
            tax_rate=data.get('tax_rate'),
            discount_type=data.get('discount_type') or None,
            discount_value=data.get('discount_value'),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'description': self.description,
            'quantity': str(self.quantity),
            'rate': str(self.rate),
            'amount': str(self.amount),
        }
        if self.tax_rate is not None:
            data['tax_rate'] = str(self.tax_rate)
        if self.discount_type:
            data['discount_type'] = self.discount_type
        if self.discount_value is not None:
            data['discount_value'] = str(self.discount_value)
        return data


LineItemInput = Union[LineItem, Dict[str, Any]]


def coerce_line_items(items: Optional[Sequence[LineItemInput]]) -> List[LineItem]:
    return [item if isinstance(item, LineItem) else LineItem.from_dict(item) for item in (items or [])]


def dump_line_items(items: Sequence[LineItem]) -> List[Dict[str, Any]]:
    return [item.to_dict() for item in items]


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total: Decimal


@dataclass
class PaymentPlanPayment:
    percentage: Decimal
    trigger: str
    label: Optional[str] = None
    milestone_id: Optional[int] = None
    days_after_start: Optional[int] = None

    def __post_init__(self):
        self.percentage = to_decimal(self.percentage)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PaymentPlanPayment':
        return cls(
            percentage=data.get('percentage', 0),
            trigger=data.get('trigger', ''),
            label=data.get('label'),
            milestone_id=data.get('milestone_id'),
            days_after_start=data.get('days_after_start'),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'percentage': str(self.percentage), 'trigger': self.trigger}
        if self.label:
            data['label'] = self.label
        if self.milestone_id is not None:
            data['milestone_id'] = self.milestone_id
        if self.days_after_start is not None:
            data['days_after_start'] = self.days_after_start
        return data


@dataclass(frozen=True)
class BusinessInfo:
    name: str = ''
    contact: str = ''
    email: str = ''
    website: str = ''
    venmo_handle: str = ''
    paypal_email: str = ''


@dataclass
class DepositSummary:
    invoice_id: int
    invoice_number: str
    total_amount: Decimal
    applied_amount: Decimal
    available_amount: Decimal
    paid_date: Optional[date] = None


@dataclass
class AgingBucket:
    label: str
    count: int = 0
    total_amount: Decimal = ZERO
    invoices: List[Any] = field(default_factory=list)


@dataclass
class AgingReport:
    generated_at: datetime
    total_outstanding: Decimal
    buckets: List[AgingBucket]

    def bucket(self, label: str) -> AgingBucket:
        for bucket in self.buckets:
            if bucket.label == label:
                return bucket
        raise KeyError(label)


@dataclass
class InvoiceFilter:
    client_id: Optional[int] = None
    project_id: Optional[int] = None
    status: Optional[Union[str, List[str]]] = None
    invoice_type: Optional[str] = None
    search: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    due_date_from: Optional[date] = None
    due_date_to: Optional[date] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    limit: int = 50
    offset: int = 0
