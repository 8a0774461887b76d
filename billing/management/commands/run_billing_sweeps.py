from billing.management.base import BillingCommand


class Command(BillingCommand):
    help = "Run every periodic billing sweep: overdue, late fees, recurring and scheduled invoices"

    def handle(self, *args, **options):
        engine = self.get_engine(options)
        results = engine.run_sweeps()
        self.stdout.write(self.style.SUCCESS(
            f"Billing sweeps complete for {engine.clock.today()}: "
            f"{results['overdue']} overdue, "
            f"{results['late_fees']} late fee(s), "
            f"{results['recurring']} recurring, "
            f"{results['scheduled']} scheduled"
        ))
