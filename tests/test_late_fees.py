from datetime import date
from decimal import Decimal

import pytest

from billing.exceptions import AlreadyAppliedError, ValidationError
from billing.models import Invoice
from tests.factories import InvoiceFactory


def overdue_invoice(**kwargs):
    defaults = dict(
        status=Invoice.Status.OVERDUE,
        amount_total=Decimal("1000.00"),
        due_date=date(2024, 1, 5),
        late_fee_type=Invoice.LateFeeType.PERCENTAGE,
        late_fee_rate=Decimal("8.00"),
    )
    defaults.update(kwargs)
    return InvoiceFactory(**defaults)


@pytest.mark.django_db
class TestCalculateLateFee:
    def test_percentage_fee(self, engine):
        invoice = overdue_invoice()

        assert engine.late_fees.days_overdue(invoice) == 10
        assert engine.late_fees.calculate_late_fee(invoice) == Decimal("80.00")

    def test_daily_percentage_fee(self, engine):
        invoice = overdue_invoice(
            due_date=date(2024, 1, 10),
            late_fee_type=Invoice.LateFeeType.DAILY_PERCENTAGE,
            late_fee_rate=Decimal("1.00"),
        )

        assert engine.late_fees.calculate_late_fee(invoice) == Decimal("50.00")

    def test_fee_uses_outstanding_balance(self, engine):
        invoice = overdue_invoice(amount_paid=Decimal("500.00"))

        assert engine.late_fees.calculate_late_fee(invoice) == Decimal("40.00")

    def test_no_fee_before_due_date(self, engine):
        invoice = overdue_invoice(status=Invoice.Status.SENT, due_date=date(2024, 1, 20))

        assert engine.late_fees.calculate_late_fee(invoice) == Decimal("0")

    def test_no_fee_on_closed_invoice(self, engine):
        invoice = overdue_invoice(status=Invoice.Status.PAID, amount_paid=Decimal("1000.00"))

        assert engine.late_fees.calculate_late_fee(invoice) == Decimal("0")


@pytest.mark.django_db
class TestApplyLateFee:
    def test_apply_adds_fee_to_total(self, engine):
        invoice = overdue_invoice()

        updated = engine.late_fees.apply_late_fee(invoice.pk)

        assert updated.late_fee_amount == Decimal("80.00")
        assert updated.amount_total == Decimal("1080.00")
        assert updated.late_fee_applied_at == engine.clock.now()

    def test_fee_is_applied_once(self, engine):
        invoice = overdue_invoice()
        engine.late_fees.apply_late_fee(invoice.pk)

        with pytest.raises(AlreadyAppliedError):
            engine.late_fees.apply_late_fee(invoice.pk)

        invoice.refresh_from_db()
        assert invoice.amount_total == Decimal("1080.00")

    def test_zero_fee_is_rejected(self, engine):
        invoice = overdue_invoice(late_fee_type=Invoice.LateFeeType.NONE)

        with pytest.raises(ValidationError):
            engine.late_fees.apply_late_fee(invoice.pk)


@pytest.mark.django_db
class TestLateFeeSweep:
    def test_sweep_applies_each_fee_once(self, engine):
        overdue_invoice()
        overdue_invoice(late_fee_type=Invoice.LateFeeType.FLAT, late_fee_rate=Decimal("25.00"))
        overdue_invoice(late_fee_type=Invoice.LateFeeType.NONE)
        overdue_invoice(status=Invoice.Status.SENT)

        assert engine.late_fees.process_late_fees() == 2
        assert engine.late_fees.process_late_fees() == 0
        assert Invoice.objects.filter(late_fee_applied_at__isnull=False).count() == 2

    def test_one_failing_invoice_does_not_stop_the_sweep(self, engine, monkeypatch):
        good = overdue_invoice()
        bad = overdue_invoice()
        original_save = Invoice.save

        def save(invoice, *args, **kwargs):
            original_save(invoice, *args, **kwargs)
            if invoice.pk == bad.pk and invoice.late_fee_applied_at is not None:
                raise RuntimeError("storage failure")

        monkeypatch.setattr(Invoice, "save", save)

        assert engine.late_fees.process_late_fees() == 1

        good.refresh_from_db()
        bad.refresh_from_db()
        assert good.amount_total == Decimal("1080.00")
        assert bad.late_fee_applied_at is None
        assert bad.late_fee_amount == Decimal("0.00")
        assert bad.amount_total == Decimal("1000.00")
