"""
Deposit credit ledger.

A paid deposit invoice can be spent down as credit against other invoices on
the same project. Credits are append-only rows; the sum of credits drawn from a
deposit never exceeds the deposit's total.
"""

import logging
from datetime import timedelta
from decimal import Decimal
from typing import List, Optional

from django.db import transaction

from ..exceptions import InsufficientCreditError, InvalidStateError, NotFoundError
from ..models import Invoice, InvoiceCredit
from ..types import DepositSummary, LineItem
from ..utils import round_money
from .base import BaseService
from .invoice_service import parse_amount

logger = logging.getLogger(__name__)


class DepositService(BaseService):

    def create_deposit_invoice(self, project_id, client_id, amount, percentage=None,
                               description: Optional[str] = None, **extra) -> Invoice:
        """
        Create a draft deposit invoice for a project.

        Args:
            project_id: Project the deposit will later be credited against.
            client_id: Client being billed.
            amount: Deposit amount.
            percentage: Share of the project total this deposit represents.
            description: Line item description; defaults to "Project Deposit".

        Returns:
            The new draft Invoice with invoice_type=deposit.
        """
        amount = parse_amount(amount)
        notes = f"Deposit ({percentage}% of project total)" if percentage is not None else "Project deposit"
        data = dict(
            extra,
            project_id=project_id,
            client_id=client_id,
            line_items=[LineItem(description=description or "Project Deposit", quantity=1, rate=amount, amount=amount)],
            due_date=self.today() + timedelta(days=self.config.deposit_due_days),
            invoice_type=Invoice.InvoiceType.DEPOSIT,
            deposit_for_project_id=project_id,
            deposit_percentage=percentage,
            source_type=Invoice.SourceType.DEPOSIT,
        )
        data.setdefault('notes', notes)
        invoice = self.engine.invoices.create(data)
        logger.info(f"Deposit invoice {invoice.invoice_number} created for project {project_id}")
        return invoice

    def apply_credit(self, invoice_id, deposit_invoice_id, amount, applied_by: Optional[str] = None) -> InvoiceCredit:
        with transaction.atomic():
            locked = self.repository.lock_invoices(invoice_id, deposit_invoice_id)

            deposit = locked.get(deposit_invoice_id)
            if deposit is None:
                raise NotFoundError("Deposit invoice", deposit_invoice_id)
            if not deposit.is_deposit:
                raise InvalidStateError(
                    f"Invoice {deposit.invoice_number} is not a deposit invoice", invoice_id=deposit.pk
                )
            if deposit.status != Invoice.Status.PAID:
                raise InvalidStateError(
                    f"Deposit invoice {deposit.invoice_number} has not been paid", invoice_id=deposit.pk,
                    status=deposit.status,
                )

            amount = parse_amount(amount)
            available = round_money(deposit.amount_total - self.repository.applied_credit_total(deposit.pk))
            if amount > available:
                raise InsufficientCreditError(available=available, requested=amount, deposit_invoice_id=deposit.pk)

            invoice = locked.get(invoice_id)
            if invoice is None:
                raise NotFoundError("Invoice", invoice_id)
            if invoice.pk == deposit.pk or invoice.is_deposit:
                raise InvalidStateError("Cannot apply credit to a deposit invoice", invoice_id=invoice.pk)
            self.engine.invoices.ensure_payable(invoice)

            credit = InvoiceCredit.objects.create(
                invoice=invoice,
                deposit_invoice=deposit,
                amount=amount,
                applied_at=self.now(),
                applied_by=applied_by or '',
            )
            self.engine.invoices.apply_locked_amount(invoice, amount)

        logger.info(
            f"Applied {amount} credit from deposit {deposit.invoice_number} to {invoice.invoice_number}"
        )
        return credit

    def get_applied_total(self, deposit_invoice_id) -> Decimal:
        return self.repository.applied_credit_total(deposit_invoice_id)

    def get_available_deposits(self, project_id) -> List[DepositSummary]:
        deposits = Invoice.objects.deposits().filter(
            deposit_for_project_id=project_id, status=Invoice.Status.PAID
        ).order_by('paid_date', 'id')

        summaries = []
        for deposit in deposits:
            applied = self.repository.applied_credit_total(deposit.pk)
            available = round_money(deposit.amount_total - applied)
            if available > 0:
                summaries.append(DepositSummary(
                    invoice_id=deposit.pk,
                    invoice_number=deposit.invoice_number,
                    total_amount=deposit.amount_total,
                    applied_amount=round_money(applied),
                    available_amount=available,
                    paid_date=deposit.paid_date,
                ))
        return summaries

    def get_invoice_credits(self, invoice_id) -> List[InvoiceCredit]:
        return self.repository.credits_for_invoice(invoice_id)

    def get_total_credits(self, invoice_id) -> Decimal:
        return self.repository.received_credit_total(invoice_id)

