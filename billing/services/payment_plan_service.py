import logging
from datetime import timedelta
from typing import List, Optional, Sequence

from django.db import transaction

from ..exceptions import ValidationError
from ..models import Invoice, PaymentPlanTemplate
from ..types import LineItem, PaymentPlanPayment
from ..utils import percent_of, round_money
from .base import BaseService
from .invoice_service import parse_amount

logger = logging.getLogger(__name__)

Trigger = PaymentPlanTemplate.Trigger


class PaymentPlanService(BaseService):
    DUE_DAYS_BY_TRIGGER = {
        Trigger.UPFRONT: 7,
        Trigger.MIDPOINT: 45,
        Trigger.COMPLETION: 90,
    }
    DEFAULT_DUE_DAYS = 30
    PLAN_TERMS = "Payment due by the date specified above."

    @transaction.atomic
    def create_template(self, name: str, payments: Sequence, description: Optional[str] = None,
                        is_default: bool = False) -> PaymentPlanTemplate:
        try:
            parsed = [
                p if isinstance(p, PaymentPlanPayment) else PaymentPlanPayment.from_dict(p) for p in payments or []
            ]
        except ValueError:
            raise ValidationError("Invalid payment plan", fields={'payments': 'Percentages must be numbers'})
        errors = {}
        if not name:
            errors['name'] = 'This field is required'
        if not parsed:
            errors['payments'] = 'At least one payment is required'
        for index, payment in enumerate(parsed):
            if payment.percentage <= 0:
                errors[f'payments.{index}.percentage'] = 'Must be greater than 0'
            if payment.trigger not in Trigger.values:
                errors[f'payments.{index}.trigger'] = f"Must be one of {', '.join(Trigger.values)}"
        if errors:
            raise ValidationError("Invalid payment plan", fields=errors)

        if is_default:
            PaymentPlanTemplate.objects.filter(is_default=True).update(is_default=False)

        template = PaymentPlanTemplate(name=name, description=description or '', is_default=is_default)
        template.set_payments(parsed)
        template.save()
        logger.info(f"Payment plan template '{template.name}' created with {len(parsed)} payment(s)")
        return template

    def list_templates(self) -> List[PaymentPlanTemplate]:
        return list(PaymentPlanTemplate.objects.order_by('-is_default', 'name'))

    def get_template(self, template_id) -> PaymentPlanTemplate:
        return self.repository.get_template(template_id)

    def delete_template(self, template_id) -> None:
        self.repository.get_template(template_id).delete()
        logger.info(f"Payment plan template {template_id} deleted")

    @transaction.atomic
    def generate_invoices_from_template(self, project_id, client_id, template_id, total_amount) -> List[Invoice]:
        template = self.repository.get_template(template_id)
        total_amount = parse_amount(total_amount, 'total_amount')
        today = self.today()

        invoices = []
        for payment in template.get_payments():
            amount = round_money(percent_of(total_amount, payment.percentage))
            due_days = self.DUE_DAYS_BY_TRIGGER.get(payment.trigger, self.DEFAULT_DUE_DAYS)
            invoice = self.engine.invoices.create({
                'project_id': project_id,
                'client_id': client_id,
                'line_items': [LineItem(
                    description=payment.label or f"Payment ({payment.percentage}%)",
                    quantity=1,
                    rate=amount,
                    amount=amount,
                )],
                'due_date': today + timedelta(days=due_days),
                'milestone_id': payment.milestone_id,
                'notes': f"Generated from payment plan: {template.name}",
                'terms': self.PLAN_TERMS,
                'payment_plan': template,
                'source_type': Invoice.SourceType.PAYMENT_PLAN,
                'source_id': template.pk,
            })
            invoices.append(invoice)

        logger.info(f"Generated {len(invoices)} invoice(s) for project {project_id} from plan '{template.name}'")
        return invoices
