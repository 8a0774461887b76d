from billing.management.base import BillingCommand
from billing.models import Invoice


class Command(BillingCommand):
    help = "Apply late fees to overdue invoices that have a late fee policy"

    def add_arguments(self, parser):
        super().add_arguments(parser)
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show the fees that would be applied without applying them.',
        )

    def handle(self, *args, **options):
        engine = self.get_engine(options)
        today = engine.clock.today()

        if options['dry_run']:
            candidates = Invoice.objects.late_fee_candidates(today)
            self.stdout.write(f"[DRY RUN] {candidates.count()} invoice(s) eligible for late fees:")
            for invoice in candidates:
                fee = engine.late_fees.calculate_late_fee(invoice)
                self.stdout.write(f"  - {invoice.invoice_number}: {invoice.late_fee_type} -> {fee} {invoice.currency}")
            return

        applied = engine.late_fees.process_late_fees()
        self.stdout.write(self.style.SUCCESS(f"Applied late fees to {applied} invoice(s) as of {today}"))
