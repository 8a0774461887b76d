"""
Billing services layer.

Each service is owned by a BillingEngine and shares its clock, settings and
repository. All writes to an invoice's amount_paid and status go through
InvoiceService.
"""

from .deposit_service import DepositService
from .invoice_service import InvoiceService
from .late_fee_service import LateFeeService
from .payment_plan_service import PaymentPlanService
from .payment_terms_service import PaymentTermsService
from .recurring_service import RecurringService
from .reminder_service import ReminderService
from .reporting_service import ReportingService

__all__ = [
    'DepositService',
    'InvoiceService',
    'LateFeeService',
    'PaymentPlanService',
    'PaymentTermsService',
    'RecurringService',
    'ReminderService',
    'ReportingService',
]
