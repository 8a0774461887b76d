"""
Hand due payment reminders to the configured dispatcher.

Usage:
    python manage.py process_reminders            # Dispatch all due reminders
    python manage.py process_reminders --dry-run  # List them without dispatching
    python manage.py process_reminders --limit 50

The dispatcher is the callable named by BILLING_REMINDER_DISPATCHER. It receives
an InvoiceReminder; returning normally marks the reminder sent, raising marks
it failed. A dispatcher may also report the outcome itself through
mark_reminder_sent / mark_reminder_failed; the command then leaves it alone.
"""

import logging

from django.core.management.base import CommandError
from django.utils.module_loading import import_string

from billing.exceptions import BillingError
from billing.management.base import BillingCommand
from billing.models import InvoiceReminder

logger = logging.getLogger(__name__)


class Command(BillingCommand):
    help = 'Dispatch pending payment reminders that are due'

    def add_arguments(self, parser):
        super().add_arguments(parser)
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be dispatched without calling the dispatcher',
        )
        parser.add_argument(
            '--limit',
            type=int,
            default=100,
            help='Maximum number of reminders to dispatch (default: 100)',
        )

    def handle(self, *args, **options):
        engine = self.get_engine(options)
        due = engine.reminders.process_reminders()[:options['limit']]

        if not due:
            self.stdout.write(self.style.SUCCESS('No reminders due'))
            return

        self.stdout.write(f'Found {len(due)} due reminder(s)')

        if options['dry_run']:
            self.stdout.write(self.style.WARNING('DRY RUN - No reminders will be dispatched'))
            for reminder in due:
                self.stdout.write(
                    f'  - {reminder.reminder_type} for {reminder.invoice.invoice_number} '
                    f'(scheduled {reminder.scheduled_date})'
                )
            return

        dispatcher_path = engine.config.reminder_dispatcher
        if not dispatcher_path:
            raise CommandError('BILLING_REMINDER_DISPATCHER is not configured')
        dispatch = import_string(dispatcher_path)

        counts = {InvoiceReminder.Status.SENT: 0, InvoiceReminder.Status.FAILED: 0}
        skipped = 0
        for reminder in due:
            # a payment or another worker may have moved it since the list was taken
            status = self.current_status(reminder)
            if status != InvoiceReminder.Status.PENDING:
                logger.info(f'Reminder {reminder.pk} is {status or "deleted"}; not dispatching')
                skipped += 1
                continue

            try:
                dispatch(reminder)
            except Exception:
                logger.exception(f'Dispatcher failed for reminder {reminder.pk}')
                self.report(engine.reminders.mark_reminder_failed, reminder)
            else:
                self.report(engine.reminders.mark_reminder_sent, reminder)

            status = self.current_status(reminder)
            if status in counts:
                counts[status] += 1
            else:
                skipped += 1

        sent = counts[InvoiceReminder.Status.SENT]
        failed = counts[InvoiceReminder.Status.FAILED]

        self.stdout.write(self.style.SUCCESS(f'Dispatched {sent} reminder(s)'))
        if skipped:
            self.stdout.write(f'Skipped {skipped} reminder(s) no longer pending')
        if failed:
            self.stdout.write(self.style.WARNING(f'{failed} reminder(s) failed; check logs for details'))

    def report(self, callback, reminder):
        """Record the dispatch outcome unless the dispatcher already did."""
        try:
            callback(reminder.pk)
        except BillingError as e:
            logger.info(f'Reminder {reminder.pk} already handled: {e.message}')

    @staticmethod
    def current_status(reminder):
        try:
            reminder.refresh_from_db(fields=['status'])
        except InvoiceReminder.DoesNotExist:
            return None
        return reminder.status
