import logging
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from django.db import transaction

from ..calculations import compute_totals, line_items_total
from ..exceptions import InvalidStateError, ValidationError
from ..models import Invoice, InvoiceCredit, InvoiceNumberSequence, InvoicePayment, InvoiceReminder
from ..types import BusinessInfo, DeleteAction, InvoiceFilter, coerce_line_items, dump_line_items
from ..utils import days_between, is_settled, round_money, to_decimal
from .base import BaseService

logger = logging.getLogger(__name__)

Status = Invoice.Status


def parse_amount(value, field: str = 'amount') -> Decimal:
    """Positive money amount rounded to cents, or ValidationError."""
    try:
        amount = round_money(value)
    except ValueError:
        raise ValidationError(f"Invalid {field}", fields={field: 'Must be a number'})
    if amount <= 0:
        raise ValidationError(f"{field.capitalize()} must be positive", fields={field: 'Must be greater than 0'})
    return amount


class InvoiceService(BaseService):
    """Invoice lifecycle: the only code path that writes amount_paid and status."""

    VALID_TRANSITIONS = {
        Status.DRAFT: [Status.SENT, Status.PARTIAL, Status.PAID],
        Status.SENT: [Status.VIEWED, Status.PARTIAL, Status.PAID, Status.OVERDUE, Status.CANCELLED],
        Status.VIEWED: [Status.PARTIAL, Status.PAID, Status.OVERDUE, Status.CANCELLED],
        Status.PARTIAL: [Status.PARTIAL, Status.PAID, Status.OVERDUE, Status.CANCELLED],
        Status.OVERDUE: [Status.PARTIAL, Status.PAID, Status.CANCELLED],
        Status.PAID: [],
        Status.CANCELLED: [],
    }

    TEXT_FIELDS = (
        'notes', 'terms', 'currency',
        'business_name', 'business_contact', 'business_email', 'business_website',
        'venmo_handle', 'paypal_email',
        'bill_to_name', 'bill_to_email',
        'services_title', 'services_description', 'deliverables', 'features',
    )
    UPDATABLE_FIELDS = TEXT_FIELDS + ('due_date', 'line_items')

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        return to_status in cls.VALID_TRANSITIONS.get(from_status, [])

    def _transition(self, invoice: Invoice, to_status: str) -> None:
        if not self.can_transition(invoice.status, to_status):
            raise InvalidStateError(
                f"Cannot move invoice {invoice.invoice_number} from {invoice.status} to {to_status}",
                invoice_id=invoice.pk, status=invoice.status,
            )
        invoice.status = to_status

    # ------------------------------------------------------------------
    # Numbering
    # ------------------------------------------------------------------

    @transaction.atomic
    def next_invoice_number(self, prefix: Optional[str] = None) -> Tuple[str, int]:
        prefix = prefix or self.config.invoice_prefix
        InvoiceNumberSequence.objects.get_or_create(prefix=prefix)
        sequence = InvoiceNumberSequence.objects.select_for_update().get(prefix=prefix)
        sequence.last_value += 1
        sequence.save(update_fields=['last_value'])
        stamp = self.today().strftime('%Y%m')
        return f"{prefix}-{stamp}-{sequence.last_value:04d}", sequence.last_value

    # ------------------------------------------------------------------
    # Create / read / update
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(self, data: Dict[str, Any]) -> Invoice:
        line_items = coerce_line_items(data.get('line_items'))
        errors = {}
        if not line_items:
            errors['line_items'] = 'At least one line item is required'
        for key in ('project_id', 'client_id'):
            if data.get(key) is None:
                errors[key] = 'This field is required'
        if errors:
            raise ValidationError("Invalid invoice data", fields=errors)

        today = self.today()
        prefix = data.get('prefix') or self.config.invoice_prefix
        invoice_number, sequence = self.next_invoice_number(prefix)
        total = line_items_total(line_items)

        invoice = Invoice(
            invoice_number=invoice_number,
            invoice_prefix=prefix,
            invoice_sequence=sequence,
            project_id=data['project_id'],
            client_id=data['client_id'],
            milestone_id=data.get('milestone_id'),
            amount_total=total,
            subtotal=total,
            amount_paid=Decimal('0.00'),
            currency=data.get('currency') or self.config.default_currency,
            status=Status.DRAFT,
            issued_date=today,
            due_date=data.get('due_date') or today + timedelta(days=self.config.default_due_days),
            terms=data.get('terms') or self.config.default_terms,
            invoice_type=data.get('invoice_type') or Invoice.InvoiceType.STANDARD,
            deposit_for_project_id=data.get('deposit_for_project_id'),
            deposit_percentage=data.get('deposit_percentage'),
            payment_plan=data.get('payment_plan'),
            source_type=data.get('source_type') or Invoice.SourceType.MANUAL,
            source_id=data.get('source_id'),
        )
        invoice.set_line_items(line_items)
        for name in self.TEXT_FIELDS:
            if name not in ('currency', 'terms') and data.get(name):
                setattr(invoice, name, data[name])
        invoice.save()

        logger.info(f"Invoice {invoice.invoice_number} created for project {invoice.project_id} ({total})")
        return invoice

    def get(self, invoice_id) -> Invoice:
        return self.repository.get_invoice(invoice_id)

    def get_by_number(self, invoice_number: str) -> Invoice:
        return self.repository.get_invoice_by_number(invoice_number)

    def list_for_client(self, client_id) -> List[Invoice]:
        return list(Invoice.objects.filter(client_id=client_id))

    def list_for_project(self, project_id) -> List[Invoice]:
        return list(Invoice.objects.filter(project_id=project_id))

    def search(self, criteria: Optional[InvoiceFilter] = None) -> Tuple[List[Invoice], int]:
        return self.repository.search(criteria or InvoiceFilter())

    @transaction.atomic
    def update(self, invoice_id, patch: Dict[str, Any]) -> Invoice:
        invoice = self.repository.get_invoice(invoice_id, lock=True)
        if not invoice.is_draft:
            raise InvalidStateError(
                "Only draft invoices can be edited", invoice_id=invoice.pk, status=invoice.status
            )

        unknown = set(patch) - set(self.UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(
                "Unsupported fields", fields={name: 'Field cannot be updated' for name in sorted(unknown)}
            )

        if 'line_items' in patch:
            line_items = coerce_line_items(patch['line_items'])
            if not line_items:
                raise ValidationError("Invalid invoice data", fields={'line_items': 'At least one line item is required'})
            invoice.line_items = dump_line_items(line_items)
            self._apply_totals(invoice)

        for name in self.TEXT_FIELDS + ('due_date',):
            if name in patch:
                value = patch[name]
                if value is None or (name == 'currency' and not value):
                    value = self._blank(name)
                setattr(invoice, name, value)

        invoice.save()
        logger.info(f"Invoice {invoice.invoice_number} updated ({', '.join(sorted(patch))})")
        return invoice

    def _blank(self, name):
        if name == 'due_date':
            return None
        if name == 'currency':
            return self.config.default_currency
        if name == 'deliverables':
            return []
        return ''

    def _apply_totals(self, invoice: Invoice) -> None:
        totals = compute_totals(
            invoice.get_line_items(), invoice.tax_rate, invoice.discount_type or None, invoice.discount_value
        )
        invoice.subtotal = totals.subtotal
        invoice.tax_amount = totals.tax_amount
        invoice.discount_amount = totals.discount_amount
        invoice.amount_total = totals.total

    @transaction.atomic
    def update_tax_and_discount(self, invoice_id, tax_rate=None, discount_type: Optional[str] = None,
                                discount_value=None) -> Invoice:
        invoice = self.repository.get_invoice(invoice_id, lock=True)
        if not invoice.is_draft:
            raise InvalidStateError(
                "Tax and discount can only be changed on draft invoices",
                invoice_id=invoice.pk, status=invoice.status,
            )
        if discount_type and discount_type not in Invoice.DiscountType.values:
            raise ValidationError("Invalid discount type", fields={'discount_type': f'Unknown type {discount_type}'})

        try:
            tax_rate = to_decimal(tax_rate)
            discount_value = to_decimal(discount_value)
        except ValueError:
            raise ValidationError("Tax rate and discount must be numbers")
        if tax_rate < 0 or discount_value < 0:
            raise ValidationError("Tax rate and discount must not be negative")

        invoice.tax_rate = tax_rate
        invoice.discount_type = discount_type or ''
        invoice.discount_value = discount_value
        self._apply_totals(invoice)
        invoice.save(update_fields=[
            'tax_rate', 'discount_type', 'discount_value',
            'subtotal', 'tax_amount', 'discount_amount', 'amount_total', 'updated_at',
        ])
        logger.info(f"Invoice {invoice.invoice_number} totals recalculated: {invoice.amount_total}")
        return invoice

    def update_internal_notes(self, invoice_id, notes: str) -> Invoice:
        invoice = self.repository.get_invoice(invoice_id)
        invoice.internal_notes = notes or ''
        invoice.save(update_fields=['internal_notes', 'updated_at'])
        return invoice

    def business_info(self, invoice: Invoice) -> BusinessInfo:
        return self.engine.business_profile.resolve(invoice)

    # ------------------------------------------------------------------
    # Status changes
    # ------------------------------------------------------------------

    @transaction.atomic
    def send(self, invoice_id) -> Invoice:
        invoice = self.repository.get_invoice(invoice_id, lock=True)
        if not invoice.is_draft:
            raise InvalidStateError(
                f"Invoice {invoice.invoice_number} has already been sent", invoice_id=invoice.pk, status=invoice.status
            )
        self._transition(invoice, Status.SENT)
        invoice.save(update_fields=['status', 'updated_at'])

        if invoice.due_date:
            self.engine.reminders.schedule_for_invoice(invoice)

        logger.info(f"Invoice {invoice.invoice_number} sent")
        return invoice

    @transaction.atomic
    def mark_viewed(self, invoice_id) -> Invoice:
        invoice = self.repository.get_invoice(invoice_id, lock=True)
        if invoice.status == Status.SENT:
            self._transition(invoice, Status.VIEWED)
            invoice.save(update_fields=['status', 'updated_at'])
        return invoice

    def apply_locked_amount(self, invoice: Invoice, amount: Decimal) -> Invoice:
        """Add money to a locked invoice and derive its new status from the balance."""
        tolerance = self.config.payment_tolerance
        new_paid = round_money(invoice.amount_paid + amount)
        if new_paid > invoice.amount_total + tolerance:
            raise ValidationError(
                f"Amount exceeds outstanding balance of {round_money(invoice.outstanding)}",
                invoice_id=invoice.pk, outstanding=round_money(invoice.outstanding),
            )

        invoice.amount_paid = new_paid
        if is_settled(invoice.amount_total, new_paid, tolerance):
            self._transition(invoice, Status.PAID)
            if invoice.paid_date is None:
                invoice.paid_date = self.today()
        else:
            self._transition(invoice, Status.PARTIAL)
        invoice.save(update_fields=['amount_paid', 'status', 'paid_date', 'payment_method',
                                    'payment_reference', 'updated_at'])

        if invoice.status == Status.PAID:
            self.engine.reminders.skip_pending_for_invoice(invoice.pk)
        return invoice

    def ensure_payable(self, invoice: Invoice) -> None:
        if invoice.is_closed:
            raise InvalidStateError(
                f"Cannot apply payment to a {invoice.status} invoice", invoice_id=invoice.pk, status=invoice.status
            )

    def record_payment(self, invoice_id, amount, method: str, reference: Optional[str] = None,
                       notes: Optional[str] = None) -> Tuple[Invoice, InvoicePayment]:
        with transaction.atomic():
            invoice = self.repository.get_invoice(invoice_id, lock=True)
            self.ensure_payable(invoice)
            amount = parse_amount(amount)

            invoice.payment_method = method or ''
            invoice.payment_reference = reference or ''
            self.apply_locked_amount(invoice, amount)

            payment = InvoicePayment.objects.create(
                invoice=invoice,
                amount=amount,
                payment_method=method or '',
                payment_reference=reference or '',
                payment_date=self.today(),
                notes=notes or '',
            )

        logger.info(f"Recorded payment of {payment.amount} on invoice {invoice.invoice_number} -> {invoice.status}")
        return invoice, payment

    def get_payment_history(self, invoice_id) -> List[InvoicePayment]:
        self.repository.get_invoice(invoice_id)
        return self.repository.payments_for_invoice(invoice_id)

    def get_all_payments(self, date_from=None, date_to=None) -> List[InvoicePayment]:
        qs = InvoicePayment.objects.select_related('invoice')
        if date_from:
            qs = qs.filter(payment_date__gte=date_from)
        if date_to:
            qs = qs.filter(payment_date__lte=date_to)
        return list(qs)

    @transaction.atomic
    def delete_or_void(self, invoice_id) -> DeleteAction:
        invoice = self.repository.get_invoice(invoice_id, lock=True)
        if invoice.status == Status.PAID:
            raise InvalidStateError("Paid invoices cannot be deleted or voided", invoice_id=invoice.pk)

        number = invoice.invoice_number
        if invoice.status in (Status.DRAFT, Status.CANCELLED):
            InvoiceReminder.objects.filter(invoice=invoice).delete()
            InvoiceCredit.objects.filter(invoice=invoice).delete()
            invoice.delete()
            logger.info(f"Invoice {number} deleted")
            return DeleteAction.DELETED

        self._transition(invoice, Status.CANCELLED)
        invoice.save(update_fields=['status', 'updated_at'])
        self.engine.reminders.skip_pending_for_invoice(invoice.pk)
        logger.info(f"Invoice {number} voided")
        return DeleteAction.VOIDED

    def check_and_mark_overdue(self) -> int:
        count = Invoice.objects.overdue_candidates(self.today()).update(
            status=Status.OVERDUE, updated_at=self.now()
        )
        if count:
            logger.info(f"Marked {count} invoice(s) overdue")
        return count

    # ------------------------------------------------------------------
    # Copies and milestones
    # ------------------------------------------------------------------

    DUPLICATE_FIELDS = TEXT_FIELDS[2:] + ('tax_rate', 'discount_type', 'discount_value')

    @transaction.atomic
    def duplicate(self, invoice_id) -> Invoice:
        original = self.repository.get_invoice(invoice_id)

        due_days = self.config.default_due_days
        if original.due_date and original.issued_date:
            due_days = days_between(original.issued_date, original.due_date)

        today = self.today()
        invoice_number, sequence = self.next_invoice_number(original.invoice_prefix)
        notes = f"Copy of {original.invoice_number}"
        if original.notes:
            notes = f"{notes}: {original.notes}"

        copy = Invoice(
            invoice_number=invoice_number,
            invoice_prefix=original.invoice_prefix,
            invoice_sequence=sequence,
            project_id=original.project_id,
            client_id=original.client_id,
            status=Status.DRAFT,
            issued_date=today,
            due_date=today + timedelta(days=due_days),
            notes=notes,
            terms=original.terms,
            line_items=list(original.line_items),
            invoice_type=Invoice.InvoiceType.STANDARD,
            source_type=Invoice.SourceType.DUPLICATE,
            source_id=original.pk,
        )
        for name in self.DUPLICATE_FIELDS:
            setattr(copy, name, getattr(original, name))
        self._apply_totals(copy)
        copy.save()

        logger.info(f"Invoice {original.invoice_number} duplicated as {copy.invoice_number}")
        return copy

    def create_milestone_invoice(self, milestone_id, data: Dict[str, Any]) -> Invoice:
        payload = dict(data, milestone_id=milestone_id)
        payload.setdefault('source_type', Invoice.SourceType.MILESTONE)
        payload.setdefault('source_id', milestone_id)
        return self.create(payload)

    def get_invoices_by_milestone(self, milestone_id) -> List[Invoice]:
        return list(Invoice.objects.filter(milestone_id=milestone_id))

    def link_invoice_to_milestone(self, invoice_id, milestone_id) -> Invoice:
        invoice = self.repository.get_invoice(invoice_id)
        invoice.milestone_id = milestone_id
        invoice.save(update_fields=['milestone_id', 'updated_at'])
        return invoice
