from datetime import date

import pytest

from billing.exceptions import InvalidStateError, ValidationError
from billing.models import Invoice, InvoiceReminder
from tests.factories import InvoiceFactory


@pytest.fixture
def sent_invoice(db):
    return InvoiceFactory(status=Invoice.Status.SENT, due_date=date(2024, 1, 16))


@pytest.mark.django_db
class TestScheduleReminders:
    def test_past_dates_are_not_scheduled(self, engine, sent_invoice):
        created = engine.reminders.schedule_reminders(sent_invoice.pk)

        by_type = {r.reminder_type: r.scheduled_date for r in created}
        assert "upcoming" not in by_type
        assert by_type == {
            "due": date(2024, 1, 16),
            "overdue_3": date(2024, 1, 19),
            "overdue_7": date(2024, 1, 23),
            "overdue_14": date(2024, 1, 30),
            "overdue_30": date(2024, 2, 15),
        }

    def test_rescheduling_does_not_duplicate(self, engine, sent_invoice):
        engine.reminders.schedule_reminders(sent_invoice.pk)

        assert engine.reminders.schedule_reminders(sent_invoice.pk) == []
        assert len(engine.reminders.get_invoice_reminders(sent_invoice.pk)) == 5

    def test_due_date_is_required(self, engine):
        invoice = InvoiceFactory(status=Invoice.Status.SENT, due_date=None)

        with pytest.raises(ValidationError):
            engine.reminders.schedule_reminders(invoice.pk)


@pytest.mark.django_db
class TestDispatchLifecycle:
    def test_process_returns_due_reminders(self, engine, clock, sent_invoice):
        engine.reminders.schedule_reminders(sent_invoice.pk)
        clock.set(date(2024, 1, 19))

        due = engine.reminders.process_reminders()

        assert sorted(r.reminder_type for r in due) == ["due", "overdue_3"]

    def test_closed_invoices_are_excluded(self, engine, clock, sent_invoice):
        engine.reminders.schedule_reminders(sent_invoice.pk)
        Invoice.objects.filter(pk=sent_invoice.pk).update(status=Invoice.Status.CANCELLED)
        clock.set(date(2024, 1, 19))

        assert engine.reminders.process_reminders() == []

    def test_status_moves_forward_only(self, engine, sent_invoice):
        engine.reminders.schedule_reminders(sent_invoice.pk)
        reminder = engine.reminders.get_invoice_reminders(sent_invoice.pk)[0]

        sent = engine.reminders.mark_reminder_sent(reminder.pk)
        assert sent.status == InvoiceReminder.Status.SENT
        assert sent.sent_at == engine.clock.now()

        with pytest.raises(InvalidStateError):
            engine.reminders.mark_reminder_sent(reminder.pk)
        with pytest.raises(InvalidStateError):
            engine.reminders.skip_reminder(reminder.pk)

    def test_failed_reminder_can_be_retried(self, engine, sent_invoice):
        engine.reminders.schedule_reminders(sent_invoice.pk)
        reminder = engine.reminders.get_invoice_reminders(sent_invoice.pk)[0]

        failed = engine.reminders.mark_reminder_failed(reminder.pk)
        assert failed.status == InvoiceReminder.Status.FAILED

        assert engine.reminders.mark_reminder_sent(reminder.pk).status == InvoiceReminder.Status.SENT

    def test_payment_skips_pending_reminders(self, engine, sent_invoice):
        engine.reminders.schedule_reminders(sent_invoice.pk)

        engine.invoices.record_payment(sent_invoice.pk, "1000", "card")

        statuses = {r.status for r in engine.reminders.get_invoice_reminders(sent_invoice.pk)}
        assert statuses == {InvoiceReminder.Status.SKIPPED}
