import logging
from datetime import timedelta
from typing import List, Optional

from django.db import transaction

from ..exceptions import InvalidStateError, ValidationError
from ..models import Invoice, PaymentTermsPreset
from ..utils import to_decimal
from .base import BaseService

logger = logging.getLogger(__name__)


class PaymentTermsService(BaseService):

    @transaction.atomic
    def create_preset(self, name: str, days_until_due: int, description: str = '', late_fee_rate=None,
                      late_fee_type: str = Invoice.LateFeeType.NONE, late_fee_flat_amount=None,
                      grace_period_days: int = 0, is_default: bool = False) -> PaymentTermsPreset:
        errors = {}
        if not name:
            errors['name'] = 'This field is required'
        if days_until_due is None or int(days_until_due) < 0:
            errors['days_until_due'] = 'Must be zero or more days'
        if late_fee_type not in Invoice.LateFeeType.values:
            errors['late_fee_type'] = f"Must be one of {', '.join(Invoice.LateFeeType.values)}"
        try:
            late_fee_rate = to_decimal(late_fee_rate)
            if late_fee_flat_amount is not None:
                late_fee_flat_amount = to_decimal(late_fee_flat_amount)
        except ValueError:
            errors['late_fee_rate'] = 'Must be a number'
        if errors:
            raise ValidationError("Invalid payment terms", fields=errors)

        if is_default:
            PaymentTermsPreset.objects.filter(is_default=True).update(is_default=False)

        preset = PaymentTermsPreset.objects.create(
            name=name,
            days_until_due=int(days_until_due),
            description=description or '',
            late_fee_rate=late_fee_rate,
            late_fee_type=late_fee_type,
            late_fee_flat_amount=late_fee_flat_amount,
            grace_period_days=grace_period_days or 0,
            is_default=is_default,
        )
        logger.info(f"Payment terms preset '{preset.name}' created")
        return preset

    def list_presets(self) -> List[PaymentTermsPreset]:
        return list(PaymentTermsPreset.objects.order_by('days_until_due', 'name'))

    def get_preset(self, preset_id) -> PaymentTermsPreset:
        return self.repository.get_preset(preset_id)

    def get_default_preset(self) -> Optional[PaymentTermsPreset]:
        return PaymentTermsPreset.objects.filter(is_default=True).first()

    @transaction.atomic
    def apply_payment_terms(self, invoice_id, preset_id) -> Invoice:
        preset = self.repository.get_preset(preset_id)
        invoice = self.repository.get_invoice(invoice_id, lock=True)
        if not invoice.is_draft:
            raise InvalidStateError(
                "Payment terms can only be applied to draft invoices", invoice_id=invoice.pk, status=invoice.status
            )

        # snapshot: later edits to the preset do not touch this invoice
        invoice.payment_terms = preset
        invoice.payment_terms_name = preset.name
        invoice.due_date = (invoice.issued_date or self.today()) + timedelta(days=preset.days_until_due)
        invoice.late_fee_type = preset.late_fee_type
        if preset.late_fee_type == Invoice.LateFeeType.FLAT and preset.late_fee_flat_amount is not None:
            invoice.late_fee_rate = preset.late_fee_flat_amount
        else:
            invoice.late_fee_rate = preset.late_fee_rate
        invoice.save(update_fields=[
            'payment_terms', 'payment_terms_name', 'due_date', 'late_fee_type', 'late_fee_rate', 'updated_at',
        ])

        logger.info(f"Applied payment terms '{preset.name}' to invoice {invoice.invoice_number}")
        return invoice
