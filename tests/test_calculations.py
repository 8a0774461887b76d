from decimal import Decimal

from billing.calculations import calculate_late_fee, compute_totals, line_items_total
from billing.types import LineItem


class TestComputeTotals:
    def test_invoice_discount_then_tax(self):
        items = [LineItem(description="Design", quantity=10, rate=Decimal("100"))]

        totals = compute_totals(items, tax_rate=Decimal("8"), discount_type="percentage",
                                discount_value=Decimal("10"))

        assert totals.subtotal == Decimal("1000.00")
        assert totals.discount_amount == Decimal("100.00")
        assert totals.tax_amount == Decimal("72.00")
        assert totals.total == Decimal("972.00")

    def test_line_level_tax_and_discount(self):
        items = [
            LineItem(description="Hosting", quantity=2, rate=Decimal("100"), tax_rate=Decimal("10")),
            LineItem(description="Setup", quantity=1, rate=Decimal("300"), discount_type="fixed",
                     discount_value=Decimal("50")),
        ]

        totals = compute_totals(items)

        assert totals.subtotal == Decimal("500.00")
        assert totals.tax_amount == Decimal("20.00")
        assert totals.discount_amount == Decimal("50.00")
        assert totals.total == Decimal("470.00")

    def test_invoice_tax_applies_after_line_discounts(self):
        items = [
            LineItem(description="Hosting", quantity=2, rate=Decimal("100"), tax_rate=Decimal("10")),
            LineItem(description="Setup", quantity=1, rate=Decimal("300"), discount_type="fixed",
                     discount_value=Decimal("50")),
        ]

        totals = compute_totals(items, tax_rate=Decimal("10"))

        # 20 line tax + 10% of (500 - 50)
        assert totals.tax_amount == Decimal("65.00")
        assert totals.total == Decimal("515.00")

    def test_total_never_negative(self):
        items = [LineItem(description="Small job", quantity=1, rate=Decimal("1000"))]

        totals = compute_totals(items, discount_type="fixed", discount_value=Decimal("2000"))

        assert totals.discount_amount == Decimal("2000.00")
        assert totals.total == Decimal("0.00")

    def test_line_amount_defaults_to_quantity_times_rate(self):
        items = [LineItem(description="Widgets", quantity=3, rate=Decimal("0.333"))]
        assert items[0].amount == Decimal("1.00")
        assert line_items_total(items) == Decimal("1.00")


class TestLateFeeCalculation:
    def test_percentage(self):
        assert calculate_late_fee("percentage", Decimal("8"), Decimal("1000"), 10) == Decimal("80.00")

    def test_daily_percentage(self):
        assert calculate_late_fee("daily_percentage", Decimal("1"), Decimal("1000"), 5) == Decimal("50.00")

    def test_flat(self):
        assert calculate_late_fee("flat", Decimal("25"), Decimal("1000"), 3) == Decimal("25.00")

    def test_not_yet_overdue(self):
        assert calculate_late_fee("percentage", Decimal("8"), Decimal("1000"), 0) == Decimal("0")

    def test_no_policy(self):
        assert calculate_late_fee("none", Decimal("8"), Decimal("1000"), 10) == Decimal("0.00")
