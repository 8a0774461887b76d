from datetime import date

from django.core.management.base import BaseCommand, CommandError

from billing.clock import FixedClock
from billing.engine import BillingEngine, get_engine


class BillingCommand(BaseCommand):
    """Base for sweep commands; --date runs the sweep as of another day."""

    def add_arguments(self, parser):
        parser.add_argument(
            '--date',
            type=str,
            help='Run as of this date (YYYY-MM-DD). Defaults to today.',
        )

    def get_engine(self, options) -> BillingEngine:
        if not options.get('date'):
            return get_engine()
        try:
            target_date = date.fromisoformat(options['date'])
        except ValueError:
            raise CommandError(f"Invalid date format: {options['date']}")
        return BillingEngine.from_settings(clock=FixedClock(target_date))
