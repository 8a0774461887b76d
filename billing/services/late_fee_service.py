import logging
from decimal import Decimal

from django.db import transaction

from ..calculations import calculate_late_fee
from ..exceptions import AlreadyAppliedError, ValidationError
from ..models import Invoice
from ..utils import ZERO, days_between, round_money
from .base import BaseService

logger = logging.getLogger(__name__)


class LateFeeService(BaseService):

    def days_overdue(self, invoice: Invoice) -> int:
        if not invoice.due_date:
            return 0
        return days_between(invoice.due_date, self.today())

    def calculate_late_fee(self, invoice: Invoice) -> Decimal:
        if not invoice.due_date or invoice.is_closed:
            return ZERO
        return calculate_late_fee(
            invoice.late_fee_type,
            invoice.late_fee_rate,
            invoice.amount_total - invoice.amount_paid,
            self.days_overdue(invoice),
        )

    @transaction.atomic
    def apply_late_fee(self, invoice_id) -> Invoice:
        invoice = self.repository.get_invoice(invoice_id, lock=True)
        if invoice.late_fee_applied_at is not None:
            raise AlreadyAppliedError(
                f"Late fee already applied to invoice {invoice.invoice_number}",
                invoice_id=invoice.pk, applied_at=invoice.late_fee_applied_at,
            )

        fee = self.calculate_late_fee(invoice)
        if fee <= 0:
            raise ValidationError(f"No late fee applies to invoice {invoice.invoice_number}", invoice_id=invoice.pk)

        invoice.late_fee_amount = fee
        invoice.late_fee_applied_at = self.now()
        invoice.amount_total = round_money(invoice.amount_total + fee)
        invoice.save(update_fields=['late_fee_amount', 'late_fee_applied_at', 'amount_total', 'updated_at'])

        logger.info(f"Applied late fee of {fee} to invoice {invoice.invoice_number}")
        return invoice

    def process_late_fees(self) -> int:
        candidates = list(
            Invoice.objects.late_fee_candidates(self.today()).values_list('pk', flat=True)
        )
        applied = 0
        failed = 0

        for invoice_id in candidates:
            try:
                invoice = Invoice.objects.get(pk=invoice_id)
                if self.calculate_late_fee(invoice) <= 0:
                    continue
                self.apply_late_fee(invoice_id)
                applied += 1
            except AlreadyAppliedError:
                # another sweep got there first
                continue
            except Exception:
                failed += 1
                logger.exception(f"Failed to apply late fee to invoice {invoice_id}")

        logger.info(f"Late fee sweep complete: {applied} applied, {failed} failed")
        return applied
