"""
Reminder Service - Payment reminder timetable for sent invoices.

Reminders are created in bulk when an invoice is sent and only ever move
forward through their status. Delivery is not done here: process_reminders()
hands due reminders to an external dispatcher, which reports back through
mark_reminder_sent() / mark_reminder_failed().
"""

import logging
from datetime import timedelta
from typing import List

from django.db import transaction

from ..exceptions import InvalidStateError, ValidationError
from ..models import Invoice, InvoiceReminder
from .base import BaseService

logger = logging.getLogger(__name__)

ReminderType = InvoiceReminder.ReminderType
ReminderStatus = InvoiceReminder.Status


class ReminderService(BaseService):
    # Days relative to the due date
    SCHEDULE = [
        (ReminderType.UPCOMING, -3),
        (ReminderType.DUE, 0),
        (ReminderType.OVERDUE_3, 3),
        (ReminderType.OVERDUE_7, 7),
        (ReminderType.OVERDUE_14, 14),
        (ReminderType.OVERDUE_30, 30),
    ]

    def schedule_reminders(self, invoice_id) -> List[InvoiceReminder]:
        """
        Create the reminder timetable for an invoice.

        Args:
            invoice_id: Invoice to schedule reminders for.

        Returns:
            The reminders created by this call. Dates already in the past and
            reminder types the invoice already has are not created.

        Raises:
            ValidationError: The invoice has no due date.
        """
        invoice = self.repository.get_invoice(invoice_id)
        return self.schedule_for_invoice(invoice)

    def schedule_for_invoice(self, invoice: Invoice) -> List[InvoiceReminder]:
        if not invoice.due_date:
            raise ValidationError(
                f"Invoice {invoice.invoice_number} has no due date", fields={'due_date': 'Required for reminders'}
            )

        today = self.today()
        existing = set(
            InvoiceReminder.objects.filter(invoice=invoice).values_list('reminder_type', flat=True)
        )
        reminders = []
        for reminder_type, offset in self.SCHEDULE:
            scheduled_date = invoice.due_date + timedelta(days=offset)
            if scheduled_date < today or reminder_type in existing:
                continue
            reminders.append(InvoiceReminder(
                invoice=invoice,
                reminder_type=reminder_type,
                scheduled_date=scheduled_date,
            ))

        created = InvoiceReminder.objects.bulk_create(reminders)
        logger.info(f"Scheduled {len(created)} reminder(s) for invoice {invoice.invoice_number}")
        return created

    def get_invoice_reminders(self, invoice_id) -> List[InvoiceReminder]:
        return list(InvoiceReminder.objects.filter(invoice_id=invoice_id))

    def process_reminders(self) -> List[InvoiceReminder]:
        """Pending reminders that are due today or earlier on invoices still awaiting payment."""
        return list(
            InvoiceReminder.objects.select_related('invoice').filter(
                status=ReminderStatus.PENDING,
                scheduled_date__lte=self.today(),
            ).exclude(invoice__status__in=Invoice.CLOSED_STATUSES)
        )

    @transaction.atomic
    def _advance(self, reminder_id, allowed_from, to_status) -> InvoiceReminder:
        reminder = self.repository.get_reminder(reminder_id, lock=True)
        if reminder.status not in allowed_from:
            raise InvalidStateError(
                f"Reminder {reminder.pk} is {reminder.status}, cannot mark {to_status}",
                reminder_id=reminder.pk, status=reminder.status,
            )
        reminder.status = to_status
        update_fields = ['status']
        if to_status == ReminderStatus.SENT:
            reminder.sent_at = self.now()
            update_fields.append('sent_at')
        reminder.save(update_fields=update_fields)
        return reminder

    def mark_reminder_sent(self, reminder_id) -> InvoiceReminder:
        return self._advance(reminder_id, (ReminderStatus.PENDING, ReminderStatus.FAILED), ReminderStatus.SENT)

    def mark_reminder_failed(self, reminder_id) -> InvoiceReminder:
        reminder = self._advance(reminder_id, (ReminderStatus.PENDING,), ReminderStatus.FAILED)
        logger.warning(f"Reminder {reminder.pk} for invoice {reminder.invoice_id} failed to send")
        return reminder

    def skip_reminder(self, reminder_id) -> InvoiceReminder:
        return self._advance(reminder_id, (ReminderStatus.PENDING,), ReminderStatus.SKIPPED)

    def skip_pending_for_invoice(self, invoice_id) -> int:
        return InvoiceReminder.objects.filter(
            invoice_id=invoice_id, status=ReminderStatus.PENDING
        ).update(status=ReminderStatus.SKIPPED)
