"""
Persistence access for the billing engine.

Loads raise NotFoundError instead of returning None, row locks go through
select_for_update, and invoice search is built from an InvoiceFilter as a
chain of Q objects.
"""

from decimal import Decimal
from typing import List, Tuple

from django.db.models import Q, Sum

from .exceptions import NotFoundError
from .models import (
    Invoice,
    InvoiceCredit,
    InvoicePayment,
    InvoiceReminder,
    PaymentPlanTemplate,
    PaymentTermsPreset,
    RecurringInvoice,
    ScheduledInvoice,
)
from .types import InvoiceFilter
from .utils import ZERO


class InvoiceRepository:
    @staticmethod
    def _get(model, label: str, pk, lock: bool = False):
        qs = model.objects.select_for_update() if lock else model.objects.all()
        try:
            return qs.get(pk=pk)
        except model.DoesNotExist:
            raise NotFoundError(label, pk)

    def get_invoice(self, invoice_id, lock: bool = False) -> Invoice:
        return self._get(Invoice, "Invoice", invoice_id, lock=lock)

    def get_invoice_by_number(self, invoice_number: str) -> Invoice:
        try:
            return Invoice.objects.get(invoice_number=invoice_number)
        except Invoice.DoesNotExist:
            raise NotFoundError("Invoice", invoice_number)

    def lock_invoices(self, *invoice_ids) -> dict:
        """Lock several invoices in primary-key order; missing ids are absent from the result."""
        ids = sorted(set(invoice_ids))
        return {inv.pk: inv for inv in Invoice.objects.select_for_update().filter(pk__in=ids).order_by('pk')}

    def get_recurring(self, recurring_id, lock: bool = False) -> RecurringInvoice:
        return self._get(RecurringInvoice, "Recurring invoice", recurring_id, lock=lock)

    def get_scheduled(self, scheduled_id, lock: bool = False) -> ScheduledInvoice:
        return self._get(ScheduledInvoice, "Scheduled invoice", scheduled_id, lock=lock)

    def get_reminder(self, reminder_id, lock: bool = False) -> InvoiceReminder:
        return self._get(InvoiceReminder, "Reminder", reminder_id, lock=lock)

    def get_preset(self, preset_id) -> PaymentTermsPreset:
        return self._get(PaymentTermsPreset, "Payment terms preset", preset_id)

    def get_template(self, template_id) -> PaymentPlanTemplate:
        return self._get(PaymentPlanTemplate, "Payment plan template", template_id)

    def applied_credit_total(self, deposit_invoice_id) -> Decimal:
        total = InvoiceCredit.objects.filter(deposit_invoice_id=deposit_invoice_id).aggregate(
            total=Sum('amount')
        )['total']
        return total or ZERO

    def received_credit_total(self, invoice_id) -> Decimal:
        total = InvoiceCredit.objects.filter(invoice_id=invoice_id).aggregate(total=Sum('amount'))['total']
        return total or ZERO

    def credits_for_invoice(self, invoice_id) -> List[InvoiceCredit]:
        return list(InvoiceCredit.objects.filter(invoice_id=invoice_id).select_related('deposit_invoice'))

    def payments_for_invoice(self, invoice_id) -> List[InvoicePayment]:
        return list(InvoicePayment.objects.filter(invoice_id=invoice_id))

    def search(self, criteria: InvoiceFilter) -> Tuple[List[Invoice], int]:
        query = Q()
        if criteria.client_id is not None:
            query &= Q(client_id=criteria.client_id)
        if criteria.project_id is not None:
            query &= Q(project_id=criteria.project_id)
        if criteria.status:
            statuses = [criteria.status] if isinstance(criteria.status, str) else list(criteria.status)
            query &= Q(status__in=statuses)
        if criteria.invoice_type:
            query &= Q(invoice_type=criteria.invoice_type)
        if criteria.search:
            query &= Q(invoice_number__icontains=criteria.search) | Q(notes__icontains=criteria.search)
        if criteria.date_from:
            query &= Q(issued_date__gte=criteria.date_from)
        if criteria.date_to:
            query &= Q(issued_date__lte=criteria.date_to)
        if criteria.due_date_from:
            query &= Q(due_date__gte=criteria.due_date_from)
        if criteria.due_date_to:
            query &= Q(due_date__lte=criteria.due_date_to)
        if criteria.min_amount is not None:
            query &= Q(amount_total__gte=criteria.min_amount)
        if criteria.max_amount is not None:
            query &= Q(amount_total__lte=criteria.max_amount)

        qs = Invoice.objects.filter(query).order_by('-created_at', '-id')
        total = qs.count()
        start = max(criteria.offset, 0)
        return list(qs[start:start + criteria.limit]), total
