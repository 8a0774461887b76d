from billing.management.base import BillingCommand


class Command(BillingCommand):
    help = "Mark sent, viewed and partially paid invoices past their due date as overdue"

    def handle(self, *args, **options):
        engine = self.get_engine(options)
        count = engine.invoices.check_and_mark_overdue()
        self.stdout.write(self.style.SUCCESS(f"Marked {count} invoice(s) overdue as of {engine.clock.today()}"))
