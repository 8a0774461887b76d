from datetime import date
from decimal import Decimal

import pytest

from billing.engine import BillingEngine, BillingSettings
from billing.exceptions import InvalidStateError, NotFoundError, ValidationError
from billing.models import Invoice, InvoicePayment, InvoiceReminder
from billing.services import InvoiceService
from billing.types import DeleteAction, InvoiceFilter
from tests.factories import InvoiceFactory

LINE_ITEMS = [{"description": "Website build", "quantity": "2", "rate": "500.00"}]


def make_invoice(engine, **overrides):
    data = {"project_id": 10, "client_id": 20, "line_items": LINE_ITEMS}
    data.update(overrides)
    return engine.invoices.create(data)


@pytest.mark.django_db
class TestCreateInvoice:
    def test_create_draft_with_defaults(self, engine):
        invoice = make_invoice(engine)

        assert invoice.status == Invoice.Status.DRAFT
        assert invoice.invoice_number == "INV-202401-0001"
        assert invoice.amount_total == Decimal("1000.00")
        assert invoice.amount_paid == Decimal("0.00")
        assert invoice.issued_date == date(2024, 1, 15)
        assert invoice.due_date == date(2024, 2, 14)
        assert invoice.terms == "Payment due within 14 days of receipt."
        assert invoice.get_line_items()[0].amount == Decimal("1000.00")

    def test_numbers_are_sequential_per_prefix(self, engine):
        first = make_invoice(engine)
        second = make_invoice(engine)
        other = make_invoice(engine, prefix="WEB")

        assert first.invoice_number == "INV-202401-0001"
        assert second.invoice_number == "INV-202401-0002"
        assert other.invoice_number == "WEB-202401-0001"

    def test_requires_line_items(self, engine):
        with pytest.raises(ValidationError) as exc_info:
            make_invoice(engine, line_items=[])
        assert "line_items" in exc_info.value.fields

    def test_get_missing_invoice(self, engine):
        with pytest.raises(NotFoundError):
            engine.invoices.get(999999)


class TestTransitions:
    def test_allowed_transitions(self):
        assert InvoiceService.can_transition("draft", "sent")
        assert InvoiceService.can_transition("partial", "partial")
        assert InvoiceService.can_transition("overdue", "paid")

    def test_closed_statuses_are_terminal(self):
        assert not InvoiceService.can_transition("paid", "cancelled")
        assert not InvoiceService.can_transition("cancelled", "sent")
        assert not InvoiceService.can_transition("draft", "overdue")


@pytest.mark.django_db
class TestSendAndView:
    def test_send_schedules_reminders(self, engine):
        invoice = make_invoice(engine)

        sent = engine.invoices.send(invoice.pk)

        assert sent.status == Invoice.Status.SENT
        assert InvoiceReminder.objects.filter(invoice=invoice).count() == 6

    def test_send_twice_is_rejected(self, engine):
        invoice = make_invoice(engine)
        engine.invoices.send(invoice.pk)

        with pytest.raises(InvalidStateError):
            engine.invoices.send(invoice.pk)

    def test_mark_viewed_only_moves_sent_invoices(self, engine):
        draft = make_invoice(engine)
        assert engine.invoices.mark_viewed(draft.pk).status == Invoice.Status.DRAFT

        engine.invoices.send(draft.pk)
        assert engine.invoices.mark_viewed(draft.pk).status == Invoice.Status.VIEWED


@pytest.mark.django_db
class TestRecordPayment:
    def test_partial_then_full_payment(self, engine):
        invoice = InvoiceFactory(status=Invoice.Status.SENT)
        InvoiceReminder.objects.create(invoice=invoice, reminder_type="due", scheduled_date=date(2024, 1, 31))

        invoice, _ = engine.invoices.record_payment(invoice.pk, "400", "bank_transfer")
        assert invoice.status == Invoice.Status.PARTIAL
        assert invoice.outstanding == Decimal("600.00")

        invoice, payment = engine.invoices.record_payment(invoice.pk, Decimal("600"), "card", reference="ch_123")
        assert invoice.status == Invoice.Status.PAID
        assert invoice.paid_date == date(2024, 1, 15)
        assert payment.payment_reference == "ch_123"
        assert InvoiceReminder.objects.get(invoice=invoice).status == InvoiceReminder.Status.SKIPPED

    def test_payment_within_tolerance_settles(self, engine):
        invoice = InvoiceFactory(status=Invoice.Status.SENT)

        invoice, _ = engine.invoices.record_payment(invoice.pk, "999.99", "cash")

        assert invoice.status == Invoice.Status.PAID

    def test_overpayment_is_rejected(self, engine):
        invoice = InvoiceFactory(status=Invoice.Status.SENT)

        with pytest.raises(ValidationError):
            engine.invoices.record_payment(invoice.pk, "1000.02", "cash")

        invoice.refresh_from_db()
        assert invoice.amount_paid == Decimal("0.00")
        assert not InvoicePayment.objects.filter(invoice=invoice).exists()

    @pytest.mark.parametrize("status", [Invoice.Status.PAID, Invoice.Status.CANCELLED])
    def test_closed_invoice_rejects_payment(self, engine, status):
        invoice = InvoiceFactory(status=status)

        with pytest.raises(InvalidStateError):
            engine.invoices.record_payment(invoice.pk, "10", "cash")

    @pytest.mark.parametrize("amount", ["0", "-5", "abc", "NaN", "Infinity", "-Infinity"])
    def test_invalid_amount(self, engine, amount):
        invoice = InvoiceFactory(status=Invoice.Status.SENT)

        with pytest.raises(ValidationError):
            engine.invoices.record_payment(invoice.pk, amount, "cash")

    def test_payment_history(self, engine):
        invoice = InvoiceFactory(status=Invoice.Status.SENT)
        engine.invoices.record_payment(invoice.pk, "100", "cash")
        engine.invoices.record_payment(invoice.pk, "200", "cash")

        history = engine.invoices.get_payment_history(invoice.pk)

        assert sorted(p.amount for p in history) == [Decimal("100.00"), Decimal("200.00")]


@pytest.mark.django_db
class TestUpdate:
    def test_replacing_line_items_recomputes_totals(self, engine):
        invoice = make_invoice(engine)

        updated = engine.invoices.update(invoice.pk, {
            "line_items": [{"description": "Audit", "quantity": "3", "rate": "150.00"}],
            "notes": "Revised scope",
        })

        assert updated.amount_total == Decimal("450.00")
        assert updated.subtotal == Decimal("450.00")
        assert updated.notes == "Revised scope"

    def test_only_drafts_are_editable(self, engine):
        invoice = InvoiceFactory(status=Invoice.Status.SENT)

        with pytest.raises(InvalidStateError):
            engine.invoices.update(invoice.pk, {"notes": "too late"})

    def test_unknown_fields_are_rejected(self, engine):
        invoice = make_invoice(engine)

        with pytest.raises(ValidationError):
            engine.invoices.update(invoice.pk, {"amount_paid": "1000"})

    def test_clearing_currency_restores_default(self, engine):
        invoice = make_invoice(engine, currency="EUR")

        updated = engine.invoices.update(invoice.pk, {"currency": None})
        assert updated.currency == "USD"

        updated = engine.invoices.update(invoice.pk, {"currency": ""})
        assert updated.currency == "USD"

    def test_tax_and_discount(self, engine):
        invoice = make_invoice(engine)

        updated = engine.invoices.update_tax_and_discount(invoice.pk, Decimal("8"), "percentage", Decimal("10"))

        assert updated.discount_amount == Decimal("100.00")
        assert updated.tax_amount == Decimal("72.00")
        assert updated.amount_total == Decimal("972.00")

    def test_non_numeric_tax_rate(self, engine):
        invoice = make_invoice(engine)

        with pytest.raises(ValidationError):
            engine.invoices.update_tax_and_discount(invoice.pk, "NaN", None, None)

    def test_internal_notes_on_sent_invoice(self, engine):
        invoice = InvoiceFactory(status=Invoice.Status.SENT)

        updated = engine.invoices.update_internal_notes(invoice.pk, "Client asked for NET 45")

        assert updated.internal_notes == "Client asked for NET 45"


@pytest.mark.django_db
class TestDeleteOrVoid:
    def test_draft_is_deleted(self, engine):
        invoice = make_invoice(engine)

        assert engine.invoices.delete_or_void(invoice.pk) == DeleteAction.DELETED
        assert not Invoice.objects.filter(pk=invoice.pk).exists()

    def test_sent_invoice_is_voided(self, engine):
        invoice = make_invoice(engine)
        engine.invoices.send(invoice.pk)

        assert engine.invoices.delete_or_void(invoice.pk) == DeleteAction.VOIDED

        invoice.refresh_from_db()
        assert invoice.status == Invoice.Status.CANCELLED
        assert not InvoiceReminder.objects.filter(invoice=invoice, status="pending").exists()

    def test_paid_invoice_is_kept(self, engine):
        invoice = InvoiceFactory(status=Invoice.Status.PAID, amount_paid=Decimal("1000.00"))

        with pytest.raises(InvalidStateError):
            engine.invoices.delete_or_void(invoice.pk)


@pytest.mark.django_db
class TestOverdueSweep:
    def test_marks_past_due_invoices_once(self, engine):
        late = InvoiceFactory(status=Invoice.Status.SENT, due_date=date(2024, 1, 10))
        partial = InvoiceFactory(status=Invoice.Status.PARTIAL, due_date=date(2024, 1, 14),
                                 amount_paid=Decimal("100.00"))
        draft = InvoiceFactory(status=Invoice.Status.DRAFT, due_date=date(2024, 1, 1))
        not_due = InvoiceFactory(status=Invoice.Status.SENT, due_date=date(2024, 1, 15))

        assert engine.invoices.check_and_mark_overdue() == 2
        assert engine.invoices.check_and_mark_overdue() == 0

        for invoice, expected in [(late, "overdue"), (partial, "overdue"), (draft, "draft"), (not_due, "sent")]:
            invoice.refresh_from_db()
            assert invoice.status == expected


@pytest.mark.django_db
class TestDuplicateAndMilestones:
    def test_duplicate_keeps_payment_window(self, engine):
        original = InvoiceFactory(status=Invoice.Status.PAID, notes="January retainer",
                                  amount_paid=Decimal("1000.00"))

        copy = engine.invoices.duplicate(original.pk)

        assert copy.status == Invoice.Status.DRAFT
        assert copy.amount_paid == Decimal("0.00")
        assert copy.amount_total == Decimal("1000.00")
        assert copy.issued_date == date(2024, 1, 15)
        assert copy.due_date == date(2024, 2, 14)
        assert copy.notes == f"Copy of {original.invoice_number}: January retainer"
        assert copy.source_type == Invoice.SourceType.DUPLICATE
        assert copy.source_id == original.pk

    def test_milestone_invoices(self, engine):
        invoice = engine.invoices.create_milestone_invoice(7, {
            "project_id": 10, "client_id": 20, "line_items": LINE_ITEMS,
        })
        other = make_invoice(engine)
        engine.invoices.link_invoice_to_milestone(other.pk, 7)

        linked = engine.invoices.get_invoices_by_milestone(7)

        assert {i.pk for i in linked} == {invoice.pk, other.pk}
        assert invoice.source_type == Invoice.SourceType.MILESTONE


@pytest.mark.django_db
class TestSearch:
    def test_filters_and_pages(self, engine):
        InvoiceFactory(client_id=1, status=Invoice.Status.SENT)
        InvoiceFactory(client_id=1, status=Invoice.Status.PAID)
        InvoiceFactory(client_id=2, status=Invoice.Status.SENT)

        results, total = engine.invoices.search(InvoiceFilter(client_id=1))
        assert total == 2

        results, total = engine.invoices.search(InvoiceFilter(status=["sent"], limit=1))
        assert total == 2
        assert len(results) == 1

    def test_business_info_falls_back_to_defaults(self, clock):
        engine = BillingEngine(clock=clock, config=BillingSettings(
            business_info={"name": "Acme Studio", "email": "billing@acme.test"}
        ))
        invoice = InvoiceFactory(business_email="override@acme.test")

        info = engine.invoices.business_info(invoice)

        assert info.name == "Acme Studio"
        assert info.email == "override@acme.test"
