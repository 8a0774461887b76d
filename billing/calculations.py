"""
Billing calculation engine.

Stateless money arithmetic for invoice totals and late fees. The order of the
steps in compute_totals is load-bearing: line-level adjustments are computed
independently of invoice-level ones, the invoice discount is taken from the
undiscounted subtotal, and invoice-level tax applies after all discounts.
"""

from decimal import Decimal
from typing import Optional, Sequence

from .types import DiscountType, InvoiceTotals, LineItem
from .utils import ZERO, clamp_non_negative, percent_of, round_money, to_decimal


def line_items_total(line_items: Sequence[LineItem]) -> Decimal:
    return round_money(sum((item.amount for item in line_items), ZERO))


def _discount(base: Decimal, discount_type: Optional[str], value: Decimal) -> Decimal:
    if discount_type == DiscountType.PERCENTAGE.value:
        return percent_of(base, value)
    return value


def compute_totals(
    line_items: Sequence[LineItem],
    tax_rate=None,
    discount_type: Optional[str] = None,
    discount_value=None,
) -> InvoiceTotals:
    tax_rate = to_decimal(tax_rate)
    discount_value = to_decimal(discount_value)

    subtotal = sum((item.amount for item in line_items), ZERO)

    line_tax = ZERO
    line_discount = ZERO
    for item in line_items:
        if item.tax_rate and item.tax_rate > 0:
            line_tax += percent_of(item.amount, item.tax_rate)
        if item.discount_value and item.discount_value > 0:
            line_discount += _discount(item.amount, item.discount_type, item.discount_value)

    invoice_discount = _discount(subtotal, discount_type, discount_value) if discount_value > 0 else ZERO
    total_discount = line_discount + invoice_discount

    invoice_tax = percent_of(subtotal - total_discount, tax_rate) if tax_rate > 0 else ZERO
    total_tax = line_tax + invoice_tax

    total = clamp_non_negative(subtotal - total_discount + total_tax)

    return InvoiceTotals(
        subtotal=round_money(subtotal),
        tax_amount=round_money(total_tax),
        discount_amount=round_money(total_discount),
        total=round_money(total),
    )


def calculate_late_fee(
    late_fee_type: Optional[str],
    late_fee_rate,
    outstanding: Decimal,
    days_overdue: int,
) -> Decimal:
    """Late fee for an overdue balance; 0 when nothing is owed yet."""
    if days_overdue <= 0:
        return ZERO
    rate = to_decimal(late_fee_rate)
    outstanding = to_decimal(outstanding)

    if late_fee_type == 'flat':
        # flat fees store a currency amount in the rate column
        fee = rate
    elif late_fee_type == 'percentage':
        fee = percent_of(outstanding, rate)
    elif late_fee_type == 'daily_percentage':
        fee = percent_of(outstanding, rate) * days_overdue
    else:
        fee = ZERO
    return round_money(fee)
