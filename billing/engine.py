"""
Billing engine composition root.

BillingEngine wires one clock, one settings object and one repository into
every service. Django builds a single engine in BillingConfig.ready(); code
that needs it calls get_engine(). Tests build their own with a FixedClock.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional

from django.apps import apps
from django.conf import settings

from .business_profile import BusinessProfile
from .clock import Clock, SystemClock
from .repository import InvoiceRepository
from .utils import to_decimal

logger = logging.getLogger(__name__)


@dataclass
class BillingSettings:
    payment_tolerance: Decimal = Decimal('0.01')
    default_due_days: int = 30
    deposit_due_days: int = 14
    invoice_prefix: str = "INV"
    default_currency: str = "USD"
    default_terms: str = "Payment due within 14 days of receipt."
    reminder_dispatcher: Optional[str] = None
    business_info: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_settings(cls) -> 'BillingSettings':
        return cls(
            payment_tolerance=to_decimal(getattr(settings, 'BILLING_PAYMENT_TOLERANCE', '0.01')),
            default_due_days=int(getattr(settings, 'BILLING_DEFAULT_DUE_DAYS', 30)),
            deposit_due_days=int(getattr(settings, 'BILLING_DEPOSIT_DUE_DAYS', 14)),
            invoice_prefix=getattr(settings, 'BILLING_INVOICE_PREFIX', 'INV'),
            default_currency=getattr(settings, 'BILLING_DEFAULT_CURRENCY', 'USD'),
            default_terms=getattr(settings, 'BILLING_DEFAULT_TERMS', cls.default_terms),
            reminder_dispatcher=getattr(settings, 'BILLING_REMINDER_DISPATCHER', None) or None,
            business_info=dict(getattr(settings, 'BUSINESS_INFO', {}) or {}),
        )


class BillingEngine:
    def __init__(self, clock: Optional[Clock] = None, config: Optional[BillingSettings] = None,
                 repository: Optional[InvoiceRepository] = None):
        from .services import (
            DepositService,
            InvoiceService,
            LateFeeService,
            PaymentPlanService,
            PaymentTermsService,
            RecurringService,
            ReminderService,
            ReportingService,
        )

        self.clock = clock or SystemClock()
        self.config = config or BillingSettings()
        self.repository = repository or InvoiceRepository()
        self.business_profile = BusinessProfile(self.config.business_info)

        self.reminders = ReminderService(self)
        self.invoices = InvoiceService(self)
        self.deposits = DepositService(self)
        self.late_fees = LateFeeService(self)
        self.recurring = RecurringService(self)
        self.reporting = ReportingService(self)
        self.payment_terms = PaymentTermsService(self)
        self.payment_plans = PaymentPlanService(self)

    @classmethod
    def from_settings(cls, clock: Optional[Clock] = None) -> 'BillingEngine':
        engine = cls(clock=clock, config=BillingSettings.from_settings())
        logger.info(
            f"Billing engine ready (prefix={engine.config.invoice_prefix}, "
            f"tolerance={engine.config.payment_tolerance})"
        )
        return engine

    def run_sweeps(self) -> Dict[str, int]:
        """Run the periodic sweeps in dependency order."""
        return {
            'overdue': self.invoices.check_and_mark_overdue(),
            'late_fees': self.late_fees.process_late_fees(),
            'recurring': self.recurring.process_recurring_invoices(),
            'scheduled': self.recurring.process_scheduled_invoices(),
        }


def get_engine() -> BillingEngine:
    return apps.get_app_config('billing').engine
