from datetime import date
from decimal import Decimal

import pytest

from billing.exceptions import InsufficientCreditError, InvalidStateError, NotFoundError, ValidationError
from billing.models import Invoice, InvoiceCredit
from tests.factories import DepositInvoiceFactory, InvoiceFactory


@pytest.fixture
def deposit(db):
    return DepositInvoiceFactory(project_id=7, amount_total=Decimal("500.00"))


@pytest.fixture
def target(db):
    return InvoiceFactory(project_id=7, status=Invoice.Status.SENT, amount_total=Decimal("1000.00"))


@pytest.mark.django_db
class TestCreateDeposit:
    def test_creates_draft_deposit_invoice(self, engine):
        invoice = engine.deposits.create_deposit_invoice(7, 3, "500", percentage=25)

        assert invoice.invoice_type == Invoice.InvoiceType.DEPOSIT
        assert invoice.status == Invoice.Status.DRAFT
        assert invoice.deposit_for_project_id == 7
        assert invoice.amount_total == Decimal("500.00")
        assert invoice.due_date == date(2024, 1, 29)
        assert invoice.notes == "Deposit (25% of project total)"
        assert invoice.get_line_items()[0].description == "Project Deposit"

    @pytest.mark.parametrize("amount", ["0", "NaN", "Infinity"])
    def test_rejects_invalid_amount(self, engine, amount):
        with pytest.raises(ValidationError):
            engine.deposits.create_deposit_invoice(7, 3, amount)


@pytest.mark.django_db
class TestApplyCredit:
    def test_partial_credit(self, engine, deposit, target):
        credit = engine.deposits.apply_credit(target.pk, deposit.pk, "300", applied_by="ops@example.com")

        target.refresh_from_db()
        assert credit.amount == Decimal("300.00")
        assert target.amount_paid == Decimal("300.00")
        assert target.status == Invoice.Status.PARTIAL
        assert engine.deposits.get_applied_total(deposit.pk) == Decimal("300.00")
        assert engine.deposits.get_total_credits(target.pk) == Decimal("300.00")

        available = engine.deposits.get_available_deposits(7)
        assert len(available) == 1
        assert available[0].available_amount == Decimal("200.00")

    def test_cannot_overdraw_deposit(self, engine, deposit, target):
        engine.deposits.apply_credit(target.pk, deposit.pk, "300")

        with pytest.raises(InsufficientCreditError) as exc_info:
            engine.deposits.apply_credit(target.pk, deposit.pk, "250")

        assert exc_info.value.available == Decimal("200.00")
        assert "Available: 200.00" in str(exc_info.value)
        assert InvoiceCredit.objects.filter(deposit_invoice=deposit).count() == 1

    def test_credit_can_settle_invoice(self, engine, deposit):
        small = InvoiceFactory(project_id=7, status=Invoice.Status.SENT, amount_total=Decimal("500.00"))

        engine.deposits.apply_credit(small.pk, deposit.pk, "500")

        small.refresh_from_db()
        assert small.status == Invoice.Status.PAID
        assert engine.deposits.get_available_deposits(7) == []

    def test_credit_larger_than_balance_leaves_no_trace(self, engine, deposit):
        small = InvoiceFactory(project_id=7, status=Invoice.Status.SENT, amount_total=Decimal("400.00"))

        with pytest.raises(ValidationError):
            engine.deposits.apply_credit(small.pk, deposit.pk, "500")

        assert not InvoiceCredit.objects.exists()
        small.refresh_from_db()
        assert small.amount_paid == Decimal("0.00")

    def test_unpaid_deposit_is_rejected(self, engine, target):
        unpaid = DepositInvoiceFactory(project_id=7, status=Invoice.Status.SENT, amount_paid=Decimal("0.00"))

        with pytest.raises(InvalidStateError):
            engine.deposits.apply_credit(target.pk, unpaid.pk, "100")

    def test_source_must_be_a_deposit(self, engine, target):
        standard = InvoiceFactory(status=Invoice.Status.PAID, amount_paid=Decimal("1000.00"))

        with pytest.raises(InvalidStateError):
            engine.deposits.apply_credit(target.pk, standard.pk, "100")

    def test_cannot_credit_another_deposit(self, engine, deposit):
        other_deposit = DepositInvoiceFactory(project_id=7, status=Invoice.Status.SENT,
                                              amount_paid=Decimal("0.00"))

        with pytest.raises(InvalidStateError):
            engine.deposits.apply_credit(other_deposit.pk, deposit.pk, "100")

    def test_missing_invoices(self, engine, deposit, target):
        with pytest.raises(NotFoundError):
            engine.deposits.apply_credit(target.pk, 999999, "100")
        with pytest.raises(NotFoundError):
            engine.deposits.apply_credit(999999, deposit.pk, "100")

    def test_closed_target_is_rejected(self, engine, deposit):
        cancelled = InvoiceFactory(project_id=7, status=Invoice.Status.CANCELLED)

        with pytest.raises(InvalidStateError):
            engine.deposits.apply_credit(cancelled.pk, deposit.pk, "100")

    def test_credits_are_immutable(self, engine, deposit, target):
        credit = engine.deposits.apply_credit(target.pk, deposit.pk, "100")
        credit.amount = Decimal("1.00")

        with pytest.raises(ValueError):
            credit.save()
