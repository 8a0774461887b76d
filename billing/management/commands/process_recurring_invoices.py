from billing.management.base import BillingCommand
from billing.models import RecurringInvoice, ScheduledInvoice


class Command(BillingCommand):
    help = "Generate invoices for due recurring rules and date-triggered scheduled invoices"

    def add_arguments(self, parser):
        super().add_arguments(parser)
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be generated without creating invoices.',
        )

    def handle(self, *args, **options):
        engine = self.get_engine(options)
        today = engine.clock.today()
        self.stdout.write(f"Processing recurring and scheduled invoices for {today}")

        if options['dry_run']:
            rules = RecurringInvoice.objects.filter(is_active=True, next_generation_date__lte=today).exclude(
                end_date__lt=today
            )
            scheduled = ScheduledInvoice.objects.filter(
                status=ScheduledInvoice.Status.PENDING,
                trigger_type=ScheduledInvoice.TriggerType.DATE,
                scheduled_date__lte=today,
            )
            self.stdout.write(f"[DRY RUN] {rules.count()} recurring rule(s) due:")
            for rule in rules:
                self.stdout.write(f"  - Recurring #{rule.id}: project {rule.project_id} ({rule.frequency})")
            self.stdout.write(f"[DRY RUN] {scheduled.count()} scheduled invoice(s) due:")
            for entry in scheduled:
                self.stdout.write(f"  - Scheduled #{entry.id}: project {entry.project_id} on {entry.scheduled_date}")
            return

        recurring = engine.recurring.process_recurring_invoices()
        scheduled = engine.recurring.process_scheduled_invoices()
        self.stdout.write(self.style.SUCCESS(
            f"Processing complete: {recurring} recurring, {scheduled} scheduled invoice(s) generated"
        ))
